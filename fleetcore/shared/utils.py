"""Utility functions for subprocess management and cancellation."""

import asyncio
from typing import Any, BinaryIO, Dict, List, Optional


async def run_subprocess_with_cancellation(
    cmd: List[str], stdin_data: Optional[bytes] = None
) -> Dict[str, Any]:
    """
    Run a subprocess with proper cancellation support.

    When the task is cancelled, the subprocess will be terminated.

    Args:
        cmd: Command to execute as a list of strings
        stdin_data: Optional data to send to stdin

    Returns:
        Dictionary with returncode, stdout (bytes) and stderr (str)

    Raises:
        asyncio.CancelledError: If the task is cancelled
        OSError: If the executable cannot be started
    """
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.PIPE if stdin_data is not None else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    try:
        stdout, stderr = await process.communicate(input=stdin_data)
        return {
            "returncode": process.returncode,
            "stdout": stdout or b"",
            "stderr": stderr.decode(errors="replace") if stderr else "",
        }
    except asyncio.CancelledError:
        # Task was cancelled, terminate the subprocess
        try:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=2.0)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
        except (ProcessLookupError, OSError):
            # Process might have already finished
            pass
        raise


async def stream_to_subprocess(
    cmd: List[str], reader: BinaryIO, chunk_size: int = 65536
) -> Dict[str, Any]:
    """
    Run a subprocess, feeding ``reader`` to its stdin chunk by chunk.

    The reader is never loaded whole into memory.

    Returns:
        Dictionary with returncode, stdout, and stderr
    """
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    assert process.stdin is not None

    try:
        try:
            while True:
                chunk = reader.read(chunk_size)
                if not chunk:
                    break
                process.stdin.write(chunk)
                await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # The remote side exited early; its status tells us why.
            pass
        process.stdin.close()
        stdout, stderr = await process.communicate()
        return {
            "returncode": process.returncode,
            "stdout": stdout.decode(errors="replace") if stdout else "",
            "stderr": stderr.decode(errors="replace") if stderr else "",
        }
    except asyncio.CancelledError:
        try:
            process.kill()
            await process.wait()
        except (ProcessLookupError, OSError):
            pass
        raise


async def run_shell_command_with_cancellation(
    cmd: List[str], stdin_data: Optional[bytes] = None
) -> Dict[str, Any]:
    """
    Run a command and decode its stdout as text.

    Args:
        cmd: Command to execute as a list of strings
        stdin_data: Optional data to send to stdin

    Returns:
        Dictionary with returncode, stdout, and stderr
    """
    result = await run_subprocess_with_cancellation(cmd, stdin_data)
    result["stdout"] = result["stdout"].decode(errors="replace")
    return result
