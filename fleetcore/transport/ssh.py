"""SSH transport built on the system ``ssh`` client."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional, Sequence

from fleetcore.compute.base import Node, User
from fleetcore.shared import debug
from fleetcore.shared import script
from fleetcore.shared.errors import TransportFailure
from fleetcore.shared.utils import (
    run_shell_command_with_cancellation,
    run_subprocess_with_cancellation,
    stream_to_subprocess,
)
from fleetcore.transport.base import Endpoint, ExecResult

logger = logging.getLogger(__name__)

# ssh reserves this status for its own (connection) errors.
SSH_ERROR_STATUS = 255


class SshConnection:
    """One node, one user. Every call runs a separate ``ssh`` process."""

    def __init__(self, endpoint: Endpoint, user: User, options: Dict[str, Any]) -> None:
        self.endpoint = endpoint
        self.user = user
        self._options = options

    def __repr__(self) -> str:
        return f"<SshConnection {self.user.username}@{self.endpoint.server}:{self.endpoint.port}>"

    def _ssh_command(self, remote_command: Optional[str] = None) -> List[str]:
        opts = self._options
        cmd = [
            opts.get("ssh_binary", "ssh"),
            "-p",
            str(self.endpoint.port),
            "-o",
            "BatchMode=yes",
            "-o",
            f"ConnectTimeout={opts.get('connect_timeout', 10)}",
            "-o",
            f"StrictHostKeyChecking={opts.get('strict_host_key_checking', 'accept-new')}",
        ]
        if self.user.private_key_path:
            cmd += ["-i", self.user.private_key_path]
        cmd += list(opts.get("extra_args", ()))
        cmd.append(f"{self.user.username}@{self.endpoint.server}")
        if remote_command is not None:
            cmd.append(remote_command)
        return cmd

    def _check_connected(self, result: Dict[str, Any], command: str) -> None:
        if result["returncode"] == SSH_ERROR_STATUS:
            raise TransportFailure(
                f"ssh to {self.endpoint.server} failed: {result['stderr'].strip()}",
                command=command,
                exit=result["returncode"],
                output=result["stderr"],
            )

    async def exec(self, script_text: str) -> ExecResult:
        cmd = self._ssh_command("sh -s")
        debug.log_request("ssh exec", {"server": self.endpoint.server, "script": script_text})
        try:
            result = await run_shell_command_with_cancellation(cmd, script_text.encode())
        except OSError as exc:
            raise TransportFailure(f"Could not run ssh: {exc}", command=script_text) from exc
        self._check_connected(result, script_text)
        debug.log_response("ssh exec", result)
        return ExecResult(exit=result["returncode"], out=result["stdout"], err=result["stderr"])

    async def send_stream(
        self, reader: BinaryIO, remote_path: str, mode: Optional[int] = None
    ) -> None:
        target = script.quote(remote_path)
        command = f"umask 077 && cat > {target}"
        if mode is not None:
            command += f" && chmod {mode:o} {target}"
        debug.log_request("ssh send", {"server": self.endpoint.server, "path": remote_path})
        try:
            result = await stream_to_subprocess(self._ssh_command(command), reader)
        except OSError as exc:
            raise TransportFailure(f"Could not run ssh: {exc}", command=command) from exc
        self._check_connected(result, command)
        if result["returncode"] != 0:
            raise TransportFailure(
                f"Failed to write {remote_path} on {self.endpoint.server}",
                command=command,
                exit=result["returncode"],
                output=result["stderr"],
            )

    async def send_text(self, text: str, remote_path: str, mode: Optional[int] = None) -> None:
        await self.send_stream(io.BytesIO(text.encode("utf-8")), remote_path, mode)

    async def receive(self, remote_path: str, local_path: str) -> None:
        command = f"cat {script.quote(remote_path)}"
        try:
            result = await run_subprocess_with_cancellation(self._ssh_command(command))
        except OSError as exc:
            raise TransportFailure(f"Could not run ssh: {exc}", command=command) from exc
        self._check_connected(result, command)
        if result["returncode"] != 0:
            raise TransportFailure(
                f"Failed to read {remote_path} on {self.endpoint.server}",
                command=command,
                exit=result["returncode"],
                output=result["stderr"],
            )
        Path(local_path).write_bytes(result["stdout"])

    async def close(self) -> None:
        logger.debug("Closing %r", self)


class SshConnectionFactory:
    """Creates SSH connections to nodes.

    Options: ``ssh_binary``, ``connect_timeout``, ``strict_host_key_checking``
    and ``extra_args`` (additional ssh command line arguments).
    """

    def __init__(
        self,
        ssh_binary: str = "ssh",
        connect_timeout: int = 10,
        strict_host_key_checking: str = "accept-new",
        extra_args: Sequence[str] = (),
    ) -> None:
        self.options: Dict[str, Any] = {
            "ssh_binary": ssh_binary,
            "connect_timeout": connect_timeout,
            "strict_host_key_checking": strict_host_key_checking,
            "extra_args": tuple(extra_args),
        }

    async def connect(self, node: Node, user: User) -> SshConnection:
        endpoint = Endpoint(server=node.address, port=node.ssh_port)
        logger.debug("Connecting to %s:%s as %s", endpoint.server, endpoint.port, user.username)
        return SshConnection(endpoint, user, self.options)
