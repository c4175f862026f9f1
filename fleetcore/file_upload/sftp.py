"""File upload over a remote shell transport.

Uploads are content addressed. Each one lands in a per-user directory under
the upload root, named by hashing the logical target path, next to a
``.md5`` sidecar holding the digest of what was sent. An upload whose
digest matches the sidecar is skipped.

The sidecar fetch is opportunistic: any failure to read it, including a
transport error, is treated as "no digest" and forces a fresh upload.

This assumes that chown/chgrp/chmod are all going to work.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from fleetcore.compute.base import Node
from fleetcore.file_upload.base import UploadOutcome, action_user
from fleetcore.shared import script
from fleetcore.shared.errors import TransportFailure, UploadFailed
from fleetcore.transport.base import Connection, ConnectionFactory, factory, with_connection

logger = logging.getLogger(__name__)

HOME_MARKER = ":home"
CHUNK_SIZE = 1024


def _encode(digest: bytes) -> str:
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def base64_md5(text: str) -> str:
    """URL-safe, unpadded base64 MD5 of ``text``."""
    return _encode(hashlib.md5(text.encode("utf-8")).digest())


def md5(path: str) -> str:
    """URL-safe, unpadded base64 MD5 of the file at ``path``, read in chunks."""
    digest = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return _encode(digest.digest())


def upload_dir(upload_root: str, username: str) -> str:
    """Return the upload directory for ``username``.

    A ``:home`` at the start of the upload root is replaced by the user's
    home directory.
    """
    if upload_root.startswith(HOME_MARKER):
        path_rest = upload_root[len(HOME_MARKER):]
        home = script.user_home(username)
        return home if not path_rest.strip() else home + path_rest
    return f"{upload_root}/{username}"


def upload_path(upload_root: str, username: str, target_path: str) -> str:
    """Remote path that uploads of ``target_path`` by ``username`` go to."""
    for name, value in (
        ("upload_root", upload_root),
        ("username", username),
        ("target_path", target_path),
    ):
        if not value or not str(value).strip():
            raise ValueError(f"{name} must not be blank")
    return upload_dir(upload_root, username) + "/" + base64_md5(target_path)


async def ensure_dir(connection: Connection, path: str) -> None:
    """Ensure the directory holding ``path`` exists, mode 0700."""
    directory = script.dirname(path)
    logger.debug("Transfer: ensure dir %s on %s", directory, connection.endpoint.server)
    result = await connection.exec(
        script.chain(
            script.mkdir(directory, parents=True),
            script.chmod("0700", directory),
            script.exit_status(),
        )
    )
    if result.exit != 0:
        raise UploadFailed(
            f"Failed to create target directory {directory}. {result.out}",
            status=result,
            output=result.out or result.err,
        )


async def upload_payload(connection: Connection, local_path: str, path: str) -> None:
    logger.debug("upload-file %s:%s from %s", connection.endpoint.server, path, local_path)
    with open(local_path, "rb") as reader:
        await connection.send_stream(reader, path, mode=0o600)


async def remote_md5(connection: Connection, md5_path: str) -> Optional[str]:
    """Return the digest stored at ``md5_path``, or None if it can't be read."""
    with tempfile.TemporaryDirectory() as tmp:
        local_copy = os.path.join(tmp, "digest.md5")
        try:
            await connection.receive(md5_path, local_copy)
            return Path(local_copy).read_text().strip()
        except Exception as exc:
            logger.debug("No remote digest at %s: %s", md5_path, exc)
            return None


async def put_md5(connection: Connection, path: str, digest: str) -> None:
    try:
        await connection.send_text(digest, path, mode=0o600)
    except TransportFailure as exc:
        raise UploadFailed(f"Failed to upload md5 to {path}", status=exc.exit, output=exc.output) from exc


@dataclass
class SftpUpload:
    """Upload strategy streaming files over the connection's shell."""

    upload_root: str = "/tmp"
    connection_factory: ConnectionFactory = field(default_factory=lambda: factory("ssh"))

    def upload_file_path(self, target_path: str, action_options: Mapping[str, Any]) -> str:
        user = action_user(action_options)
        if not user.username or not user.username.strip():
            raise ValueError("action options user must have a username")
        return upload_path(self.upload_root, user.username, target_path)

    def user_file_path(self, target_path: str, action_options: Mapping[str, Any]) -> str:
        user = action_user(action_options)
        return upload_path(self.upload_root, user.effective_username(), target_path)

    async def upload_file(
        self,
        target: Mapping[str, Any],
        local_path: str,
        target_path: str,
        action_options: Mapping[str, Any],
    ) -> UploadOutcome:
        user = action_user(action_options)
        path = self.upload_file_path(target_path, action_options)
        md5_path = path + ".md5"
        node: Node = target["node"]

        async with with_connection(self.connection_factory, node, user) as connection:
            target_md5 = await remote_md5(connection, md5_path)
            local_md5 = md5(local_path)
            if target_md5 == local_md5:
                logger.debug(
                    "upload-file of file %s to %s suppressed (matching md5s)",
                    local_path,
                    path,
                )
                return UploadOutcome.SKIPPED

            await ensure_dir(connection, path)
            await upload_payload(connection, local_path, path)
            await put_md5(connection, md5_path, local_md5)
            return UploadOutcome.UPLOADED


def sftp_upload(**options: Any) -> SftpUpload:
    """Create an instance of the SFTP upload strategy.

    ``upload_root`` defaults to ``/tmp``; ``connection_factory`` defaults to
    an SSH connection factory.
    """
    options = {k: v for k, v in options.items() if v is not None}
    return SftpUpload(**options)
