"""Exception hierarchy for PackForge.

Every error carries a short user-facing ``message`` and an optional
``suggestion``; the GUI and CLI print ``str(exc)`` and never a traceback.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class PackForgeError(Exception):
    """Base exception for all PackForge errors."""

    def __init__(self, message: str, suggestion: Optional[str] = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}\nSuggestion: {self.suggestion}"
        return self.message


class ConfigError(PackForgeError):
    """Configuration or manifest failed validation."""


# ---------------------------------------------------------------------------
# Pack model
class PackModelError(PackForgeError):
    """A structural mutation of the pack was rejected."""


class DuplicateFolderError(PackModelError):
    def __init__(self, folder_path: str) -> None:
        self.folder_path = folder_path
        super().__init__(f"Folder '{folder_path}' already exists")


class CollisionError(PackModelError):
    def __init__(self, scope: Optional[str], virtual_path: str) -> None:
        self.scope = scope
        self.virtual_path = virtual_path
        where = f"folder '{scope}'" if scope else "the pack root"
        super().__init__(
            f"'{virtual_path}' already exists in {where}",
            "Choose a different name",
        )


class InvalidNameError(PackModelError):
    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        super().__init__(f"Invalid name '{name}': {reason}")


class UnknownFolderError(PackModelError):
    def __init__(self, folder_path: str) -> None:
        self.folder_path = folder_path
        super().__init__(f"Folder '{folder_path}' does not exist")


class UnknownItemError(PackModelError):
    def __init__(self, scope: Optional[str], virtual_path: str) -> None:
        self.scope = scope
        self.virtual_path = virtual_path
        where = f"folder '{scope}'" if scope else "the pack root"
        super().__init__(f"'{virtual_path}' not found in {where}")


# ---------------------------------------------------------------------------
# Sources and catalog
class SourceUnavailable(PackForgeError):
    """Bytes for one item reference could not be produced."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Source unavailable: {source} ({reason})")


class CatalogReadFailure(PackForgeError):
    """Listing a directory or archive failed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Could not read '{path}': {reason}")


# ---------------------------------------------------------------------------
# Export and combine
class ArchiveWriteFailure(PackForgeError):
    """The final compression step failed; the temp tree is kept for retry."""

    def __init__(self, output_path: Path, temp_dir: Path, reason: str) -> None:
        self.output_path = Path(output_path)
        self.temp_dir = Path(temp_dir)
        self.reason = reason
        super().__init__(
            f"Failed to write archive '{output_path}': {reason}",
            f"Staged files were kept in {temp_dir}",
        )


class CombineError(PackForgeError):
    """A batch combine was aborted."""

    def __init__(self, archive_path: str, reason: str) -> None:
        self.archive_path = archive_path
        self.reason = reason
        super().__init__(f"Batch combine failed on '{archive_path}': {reason}")


class PreviewError(PackForgeError):
    """Audio bytes were resolved but could not be decoded for preview."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Cannot preview {source}: {reason}")
