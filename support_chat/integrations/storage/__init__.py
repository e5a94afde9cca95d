"""Attachment storage integration.

The chat domain only persists the descriptor returned by the storage, never
the file bytes.
"""

from support_chat.core.config import settings
from support_chat.integrations.storage.base import AttachmentStorage
from support_chat.integrations.storage.local import LocalAttachmentStorage


def get_attachment_storage() -> AttachmentStorage:
    """Get the configured attachment storage."""
    return LocalAttachmentStorage(
        upload_dir=settings.upload_dir,
        max_size_bytes=settings.max_upload_size_bytes,
        allowed_extensions=settings.allowed_upload_extensions,
    )


__all__ = [
    "AttachmentStorage",
    "LocalAttachmentStorage",
    "get_attachment_storage",
]
