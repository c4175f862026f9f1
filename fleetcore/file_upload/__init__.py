"""Idempotent file delivery onto nodes."""

from fleetcore.file_upload.base import (
    FileUpload,
    UploadOutcome,
    file_uploader,
    register_uploader,
)
from fleetcore.file_upload.sftp import SftpUpload, md5, sftp_upload, upload_path

__all__ = [
    "FileUpload",
    "SftpUpload",
    "UploadOutcome",
    "file_uploader",
    "md5",
    "register_uploader",
    "sftp_upload",
    "upload_path",
]
