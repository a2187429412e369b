"""File storage abstraction for asset versions and comment media."""

import os
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

from creative_review.config import get_settings

settings = get_settings()


class StorageError(Exception):
    """Base exception for storage operations."""

    pass


@dataclass(frozen=True)
class StoredFile:
    """Location of a stored file."""

    path: str
    url: str


class Storage:
    """Abstract storage interface for file operations.

    The review engine never inspects file bytes; it only keeps the path and
    URL handed back by ``store``.
    """

    def store(self, content: bytes, destination_hint: str, filename: str) -> StoredFile:
        """Store file content.

        Args:
            content: File content as bytes
            destination_hint: Logical folder, e.g. ``assets/<project_id>``
            filename: Original filename, used for the extension

        Returns:
            StoredFile: Path and URL of the stored file

        Raises:
            StorageError: If file cannot be saved
        """
        raise NotImplementedError

    def delete(self, path: str) -> bool:
        """Delete a stored file.

        Returns:
            bool: True if a file was removed, False if there was nothing to remove

        Raises:
            StorageError: If file cannot be deleted
        """
        raise NotImplementedError


class LocalStorage(Storage):
    """Local file system storage implementation."""

    def __init__(self, base_path: str | Path | None = None, base_url: str | None = None):
        """Initialize local storage.

        Args:
            base_path: Base directory for file storage. Defaults to 'uploads' in project root.
            base_url: URL prefix the stored files are served under.
        """
        if base_path is None:
            # Default to 'uploads' directory in project root
            project_root = Path(__file__).resolve().parent.parent.parent
            base_path = project_root / "uploads"
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.base_url = (base_url if base_url is not None else settings.storage_base_url).rstrip("/")

    def _resolve(self, path: str) -> Path:
        """Resolve a relative storage path, refusing anything outside base_path."""
        full_path = (self.base_path / path).resolve()
        if not full_path.is_relative_to(self.base_path.resolve()):
            raise StorageError(f"Path escapes storage root: {path}")
        return full_path

    @staticmethod
    def _sanitize_segment(segment: str) -> str:
        """Sanitize one path segment to prevent directory traversal.

        Args:
            segment: Folder name or filename

        Returns:
            str: Sanitized segment
        """
        # Remove path components
        segment = os.path.basename(segment)
        # Remove any remaining path separators
        segment = segment.replace("/", "_").replace("\\", "_")
        # Remove null bytes
        segment = segment.replace("\x00", "")
        if segment in ("", ".", ".."):
            segment = "_"
        # Limit length
        if len(segment) > 255:
            name, ext = os.path.splitext(segment)
            segment = name[: 255 - len(ext)] + ext
        return segment

    def store(self, content: bytes, destination_hint: str, filename: str) -> StoredFile:
        """Save file content under ``destination_hint`` with a unique name.

        Raises:
            StorageError: If file cannot be saved
        """
        folders = [self._sanitize_segment(part) for part in destination_hint.split("/") if part]
        extension = os.path.splitext(self._sanitize_segment(filename))[1].lower()
        relative_path = "/".join([*folders, f"{uuid4().hex}{extension}"])
        file_path = self._resolve(relative_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            file_path.write_bytes(content)
        except OSError as e:
            raise StorageError(f"Failed to save file: {e}") from e

        return StoredFile(path=relative_path, url=f"{self.base_url}/{relative_path}")

    def delete(self, path: str) -> bool:
        file_path = self._resolve(path)

        if not file_path.exists():
            return False

        try:
            file_path.unlink()
        except OSError as e:
            raise StorageError(f"Failed to delete file: {e}") from e

        # Clean up the containing directory if it is now empty
        try:
            file_path.parent.rmdir()
        except OSError:
            pass
        return True


# Global storage instance
_storage: Storage | None = None


def get_storage() -> Storage:
    """Get storage instance.

    Returns:
        Storage: Storage instance (singleton)

    Example:
        ```python
        from creative_review.core.storage import get_storage

        storage = get_storage()
        stored = storage.store(content, f"assets/{project_id}", "poster.png")
        ```
    """
    global _storage
    if _storage is None:
        if settings.storage_path:
            _storage = LocalStorage(base_path=Path(settings.storage_path))
        else:
            # Default behavior: use 'uploads' directory in project root
            _storage = LocalStorage()
    return _storage
