"""Base attachment storage interface."""

from abc import ABC, abstractmethod

from support_chat.domains.chat.models import Attachment


class AttachmentStorage(ABC):
    """Persists uploaded file bytes and returns a descriptor for the chat."""

    @abstractmethod
    async def save(self, data: bytes, original_name: str, mimetype: str) -> Attachment:
        """
        Store an upload.

        Args:
            data: Raw file bytes
            original_name: Client-side file name
            mimetype: Declared content type

        Returns:
            Attachment descriptor to embed in the message

        Raises:
            FileTooLargeError: If the upload exceeds the size limit
            UnsupportedFileTypeError: If the file type is not allowed
        """
        pass

    @abstractmethod
    async def delete(self, attachment: Attachment) -> None:
        """Remove a stored upload (used when the append that needed it failed)."""
        pass
