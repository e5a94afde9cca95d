"""Local filesystem attachment storage."""

import logging
import secrets
import time
from pathlib import Path

from starlette.concurrency import run_in_threadpool

from support_chat.core.exceptions import FileTooLargeError, UnsupportedFileTypeError
from support_chat.domains.chat.models import Attachment
from support_chat.integrations.storage.base import AttachmentStorage

logger = logging.getLogger(__name__)

ALLOWED_MIMETYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "application/zip",
    "application/x-zip-compressed",
    "application/vnd.rar",
    "application/x-rar-compressed",
}


class LocalAttachmentStorage(AttachmentStorage):
    """Writes uploads under a directory as ``chat-file-<timestamp>-<random>.<ext>``."""

    def __init__(
        self,
        upload_dir: str | Path,
        max_size_bytes: int,
        allowed_extensions: list[str],
    ):
        self._upload_dir = Path(upload_dir)
        self._max_size_bytes = max_size_bytes
        self._allowed_extensions = {ext.lower().lstrip(".") for ext in allowed_extensions}

    def _validate(self, data: bytes, original_name: str, mimetype: str) -> str:
        if len(data) > self._max_size_bytes:
            raise FileTooLargeError(
                max_size_mb=self._max_size_bytes // (1024 * 1024),
                actual_size_mb=round(len(data) / (1024 * 1024), 2),
            )

        extension = Path(original_name).suffix.lower().lstrip(".")
        mimetype_ok = mimetype.startswith("image/") or mimetype in ALLOWED_MIMETYPES
        if extension not in self._allowed_extensions or not mimetype_ok:
            raise UnsupportedFileTypeError(original_name, mimetype)

        return extension

    async def save(self, data: bytes, original_name: str, mimetype: str) -> Attachment:
        extension = self._validate(data, original_name, mimetype)

        filename = f"chat-file-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}.{extension}"
        path = self._upload_dir / filename

        def _write() -> None:
            self._upload_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await run_in_threadpool(_write)
        logger.debug("Stored upload %s as %s", original_name, path)

        return Attachment(
            filename=filename,
            original_name=original_name,
            mimetype=mimetype,
            size=len(data),
            storage_path=str(path),
        )

    async def delete(self, attachment: Attachment) -> None:
        path = Path(attachment.storage_path)
        await run_in_threadpool(path.unlink, True)
