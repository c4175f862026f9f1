"""File upload strategy interface and registry."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, Mapping, Protocol

from fleetcore.compute.base import User


class UploadOutcome(str, Enum):
    """How an upload finished. Failures raise instead."""

    SKIPPED = "skipped"
    UPLOADED = "uploaded"


class FileUpload(Protocol):
    """A way of getting local files onto a node."""

    def upload_file_path(self, target_path: str, action_options: Mapping[str, Any]) -> str:
        """Remote path an upload for ``target_path`` is written to."""

    def user_file_path(self, target_path: str, action_options: Mapping[str, Any]) -> str:
        """Remote path a caller reads the upload for ``target_path`` from."""

    async def upload_file(
        self,
        target: Mapping[str, Any],
        local_path: str,
        target_path: str,
        action_options: Mapping[str, Any],
    ) -> UploadOutcome:
        """Make the remote copy of ``target_path`` match ``local_path``."""


def action_user(action_options: Mapping[str, Any]) -> User:
    """The user carried by ``action_options``, as a User."""
    user = action_options.get("user") if action_options else None
    if user is None:
        raise ValueError("action options must carry a user")
    if isinstance(user, User):
        return user
    if isinstance(user, Mapping):
        return User(**dict(user))
    raise ValueError(f"Unsupported user value: {user!r}")


_UPLOADERS: Dict[str, Callable[..., FileUpload]] = {}


def register_uploader(kind: str, constructor: Callable[..., FileUpload]) -> None:
    """Register an upload strategy constructor under ``kind``."""
    _UPLOADERS[kind] = constructor


def file_uploader(kind: str, **options: Any) -> FileUpload:
    """Create the upload strategy registered as ``kind``."""
    if kind not in _UPLOADERS:
        _load_builtin_uploaders()
    if kind not in _UPLOADERS:
        raise ValueError(f"Unknown file upload strategy: {kind}. Available: {sorted(_UPLOADERS)}")
    return _UPLOADERS[kind](**options)


def _load_builtin_uploaders() -> None:
    if "sftp" not in _UPLOADERS:
        from fleetcore.file_upload.sftp import sftp_upload

        register_uploader("sftp", sftp_upload)
