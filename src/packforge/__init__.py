"""PackForge package

This package contains the pack assembly engine (catalog, pack model,
materializer, batch combiner), the configuration service, a command-line
interface and an optional PySide6 GUI for building sample packs out of
folders and ZIP archives.

Public classes are re-exported here for convenience.
"""

from .catalog import CatalogEntry, CatalogListing, SourceCatalog, list_archive, list_directory  # noqa: F401
from .combiner import BatchCombiner  # noqa: F401
from .config_service import ConfigService  # noqa: F401
from .materializer import ExportReport, ExportStatus, FailedItem, PackMaterializer  # noqa: F401
from .pack_model import ArchiveItem, DiskItem, ItemReference, Pack, PackSession  # noqa: F401
from .sources import ByteResolver, Origin  # noqa: F401

__version__ = "1.0.0"

__all__ = [
    "ArchiveItem",
    "BatchCombiner",
    "ByteResolver",
    "CatalogEntry",
    "CatalogListing",
    "ConfigService",
    "DiskItem",
    "ExportReport",
    "ExportStatus",
    "FailedItem",
    "ItemReference",
    "Origin",
    "Pack",
    "PackMaterializer",
    "PackSession",
    "SourceCatalog",
    "list_archive",
    "list_directory",
]
