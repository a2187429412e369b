"""Asset type registry: type detection, upload validation and annotation capabilities."""

import os
from dataclasses import dataclass

from creative_review.config import settings
from creative_review.core.errors import PreconditionError
from creative_review.models.asset import AssetType


class FileValidationError(PreconditionError):
    """Raised when file validation fails."""

    pass


@dataclass(frozen=True)
class AssetTypeHandler:
    """Describes one asset type.

    MIME patterns ending in "/" match by prefix (e.g. "image/"), others must
    match exactly.
    """

    type: AssetType
    display_name: str
    mime_patterns: tuple[str, ...]
    extensions: tuple[str, ...]
    spatial_annotations: bool = False
    temporal_annotations: bool = False
    paginated: bool = False
    # Design tools report unreliable MIME types, so those handlers only trust extensions
    match_by_extension_only: bool = False

    @property
    def has_prefix_pattern(self) -> bool:
        return any(pattern.endswith("/") for pattern in self.mime_patterns)

    @property
    def max_file_size(self) -> int:
        return settings.max_upload_sizes.get(self.type.value, 50 * 1024 * 1024)

    def supports(self, filename: str, mime_type: str | None) -> bool:
        extension = _extension(filename)
        if self.match_by_extension_only:
            return extension in self.extensions

        mime_type = (mime_type or "").lower()
        for pattern in self.mime_patterns:
            if pattern.endswith("/"):
                if mime_type.startswith(pattern):
                    return True
            elif mime_type == pattern:
                return True

        return extension in self.extensions


def _extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lstrip(".").lower()


IMAGE_HANDLER = AssetTypeHandler(
    type=AssetType.IMAGE,
    display_name="Image",
    mime_patterns=("image/",),
    extensions=("jpg", "jpeg", "png", "gif", "webp", "svg", "bmp", "tiff"),
    spatial_annotations=True,
)

VIDEO_HANDLER = AssetTypeHandler(
    type=AssetType.VIDEO,
    display_name="Video",
    mime_patterns=("video/",),
    extensions=("mp4", "mov", "webm", "avi", "mkv", "wmv", "m4v"),
    spatial_annotations=True,
    temporal_annotations=True,
)

PDF_HANDLER = AssetTypeHandler(
    type=AssetType.PDF,
    display_name="PDF",
    mime_patterns=("application/pdf",),
    extensions=("pdf",),
    paginated=True,
)

DESIGN_HANDLER = AssetTypeHandler(
    type=AssetType.DESIGN,
    display_name="Design File",
    mime_patterns=("application/postscript", "image/vnd.adobe.photoshop", "application/x-photoshop"),
    extensions=("ai", "psd", "eps", "indd", "sketch", "fig", "xd"),
    match_by_extension_only=True,
)


class AssetTypeRegistry:
    """Registry of asset type handlers.

    Handlers with exact MIME patterns (or extension-only matching) are checked
    before handlers with prefix patterns, so a Photoshop file reported as
    ``image/vnd.adobe.photoshop`` is a design file rather than an image.
    """

    def __init__(self, handlers: list[AssetTypeHandler] | None = None):
        self._handlers: dict[AssetType, AssetTypeHandler] = {}
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: AssetTypeHandler) -> None:
        self._handlers[handler.type] = handler

    def get(self, asset_type: str | AssetType) -> AssetTypeHandler:
        try:
            return self._handlers[AssetType(asset_type)]
        except (KeyError, ValueError) as e:
            raise FileValidationError(f"Unknown asset type: {asset_type}") from e

    def types(self) -> list[str]:
        return [t.value for t in self._handlers]

    def _by_priority(self) -> list[AssetTypeHandler]:
        # sorted() is stable, so registration order breaks ties
        return sorted(self._handlers.values(), key=lambda h: h.has_prefix_pattern and not h.match_by_extension_only)

    def determine_type(self, filename: str, mime_type: str | None) -> AssetType:
        """Determine the asset type for an uploaded file.

        Raises:
            FileValidationError: If no handler accepts the file
        """
        for handler in self._by_priority():
            if handler.supports(filename, mime_type):
                return handler.type
        raise FileValidationError(
            f"Unsupported file type. Allowed types: {', '.join(self.types())}"
        )

    def validate(self, filename: str, mime_type: str | None, size: int) -> AssetType:
        """Validate an upload and return its asset type.

        Raises:
            FileValidationError: If the filename, type or size is not acceptable
        """
        if not filename or not filename.strip():
            raise FileValidationError("Filename is required")

        # Check for path traversal attempts
        if ".." in filename or "/" in filename or "\\" in filename:
            raise FileValidationError("Filename contains invalid characters")

        asset_type = self.determine_type(filename, mime_type)
        handler = self._handlers[asset_type]

        if size <= 0:
            raise FileValidationError("File is empty")

        if size > handler.max_file_size:
            size_mb = size / (1024 * 1024)
            max_mb = handler.max_file_size / (1024 * 1024)
            raise FileValidationError(
                f"File size ({size_mb:.2f}MB) exceeds maximum allowed size for {handler.display_name} ({max_mb:.0f}MB)"
            )

        return asset_type

    @staticmethod
    def extract_metadata(filename: str, mime_type: str | None) -> dict:
        return {
            "original_name": filename,
            "mime_type": mime_type or "application/octet-stream",
            "extension": _extension(filename),
        }


_registry: AssetTypeRegistry | None = None


def get_asset_type_registry() -> AssetTypeRegistry:
    """Get the registry with the built-in handlers (singleton)."""
    global _registry
    if _registry is None:
        _registry = AssetTypeRegistry([IMAGE_HANDLER, VIDEO_HANDLER, PDF_HANDLER, DESIGN_HANDLER])
    return _registry
