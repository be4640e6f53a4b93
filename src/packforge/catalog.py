"""Source catalog: browsable listings of folders and ZIP archives.

Listings never raise.  A folder or archive that cannot be read produces an
empty :class:`CatalogListing` whose ``warning`` explains why; the optional
``warn`` callback receives the same text so the GUI can show it in its
status bar.

Archives rarely store explicit directory entries, so directories are
synthesized from the path of every audio entry: ``a/b/c.wav`` yields
``a/`` and ``a/b/``.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional

from . import defaults
from .errors import CatalogReadFailure
from .sources import ArchiveReader, FilesystemReader, Origin, PathLike

WarnCallback = Callable[[str], None]


@dataclass(frozen=True)
class CatalogEntry:
    """One row of a catalog listing.

    ``path`` is an absolute filesystem path for disk entries and an
    archive-internal path for archive entries (directories end with ``/``).
    """

    name: str
    path: str
    is_directory: bool
    is_audio: bool
    size: Optional[int]
    origin: Origin
    archive_path: Optional[str] = None

    @property
    def parent(self) -> str:
        """Archive prefix containing this entry (``""`` for the root)."""
        if self.origin is Origin.DISK:
            return str(Path(self.path).parent)
        parent = posixpath.dirname(self.path.rstrip("/"))
        return f"{parent}/" if parent else ""

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "path": self.path,
            "is_directory": self.is_directory,
            "is_audio": self.is_audio,
            "size": self.size,
            "origin": self.origin.value,
            "archive_path": self.archive_path,
        }


@dataclass
class CatalogListing:
    """Result of a listing call; iterable over its entries."""

    source: str
    entries: List[CatalogEntry] = field(default_factory=list)
    warning: Optional[str] = None

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def ok(self) -> bool:
        return self.warning is None

    def audio(self) -> List[CatalogEntry]:
        return [e for e in self.entries if e.is_audio]

    def directories(self) -> List[CatalogEntry]:
        return [e for e in self.entries if e.is_directory]


def _failed(source: str, exc: CatalogReadFailure, warn: Optional[WarnCallback]) -> CatalogListing:
    message = str(exc)
    if warn is not None:
        try:
            warn(message)
        except Exception:
            pass
    return CatalogListing(source=source, entries=[], warning=message)


def _sort_key(entry: CatalogEntry) -> tuple:
    return (not entry.is_directory, entry.name.lower(), entry.name)


def list_directory(
    path: PathLike,
    warn: Optional[WarnCallback] = None,
    reader: Optional[FilesystemReader] = None,
) -> CatalogListing:
    """List the immediate children of a folder, directories first."""
    reader = reader or FilesystemReader()
    source = str(path)
    try:
        children = reader.read_dir(path, stat_files=True)
    except CatalogReadFailure as exc:
        return _failed(source, exc, warn)

    entries: List[CatalogEntry] = []
    for child in children:
        if defaults.should_ignore(child.name):
            continue
        is_audio = not child.is_directory and defaults.is_audio_name(child.name)
        entries.append(
            CatalogEntry(
                name=child.name,
                path=str(child.path),
                is_directory=child.is_directory,
                is_audio=is_audio,
                size=child.size if is_audio else None,
                origin=Origin.DISK,
            )
        )
    entries.sort(key=_sort_key)
    return CatalogListing(source=source, entries=entries)


def _ignored_entry(entry_path: str) -> bool:
    return any(defaults.should_ignore(part) for part in entry_path.split("/") if part)


def _parent_prefixes(entry_path: str) -> List[str]:
    """``a/b/c.wav`` -> ``["a/", "a/b/"]``."""
    parts = [p for p in entry_path.split("/")[:-1] if p]
    return ["/".join(parts[: i + 1]) + "/" for i in range(len(parts))]


def list_archive(
    archive_path: PathLike,
    warn: Optional[WarnCallback] = None,
) -> CatalogListing:
    """Flat listing of every audio entry plus synthesized directories.

    Directory entries come first in order of discovery, followed by audio
    entries in central directory order.  Non-audio files are omitted.
    """
    source = str(archive_path)
    try:
        with ArchiveReader(archive_path) as reader:
            raw = reader.entries()
    except CatalogReadFailure as exc:
        return _failed(source, exc, warn)

    directories: Dict[str, None] = {}
    audio: List[CatalogEntry] = []
    for item in raw:
        entry_path = item.entry_path.replace("\\", "/")
        if _ignored_entry(entry_path):
            continue
        if item.is_directory:
            directories.setdefault(entry_path if entry_path.endswith("/") else entry_path + "/", None)
            continue
        name = posixpath.basename(entry_path)
        if not defaults.is_audio_name(name):
            continue
        audio.append(
            CatalogEntry(
                name=name,
                path=item.entry_path,
                is_directory=False,
                is_audio=True,
                size=item.uncompressed_size,
                origin=Origin.ARCHIVE,
                archive_path=source,
            )
        )
        for prefix in _parent_prefixes(entry_path):
            directories.setdefault(prefix, None)

    dir_entries: List[CatalogEntry] = []
    for prefix in directories:
        name = posixpath.basename(prefix.rstrip("/"))
        if not name or name == ".":
            continue
        dir_entries.append(
            CatalogEntry(
                name=name,
                path=prefix,
                is_directory=True,
                is_audio=False,
                size=None,
                origin=Origin.ARCHIVE,
                archive_path=source,
            )
        )
    return CatalogListing(source=source, entries=dir_entries + audio)


@dataclass
class SourceCatalog:
    """Lazily populated, cached view over the sources a user has opened.

    Folder listings are cheap and always re-read; archive listings are read
    once and then served from the cache until :meth:`refresh`.
    """

    warn: Optional[WarnCallback] = None
    filesystem: FilesystemReader = field(default_factory=FilesystemReader)
    _archives: Dict[str, CatalogListing] = field(default_factory=dict, init=False, repr=False)

    def open_directory(self, path: PathLike) -> CatalogListing:
        return list_directory(path, warn=self.warn, reader=self.filesystem)

    def open_archive(self, archive_path: PathLike) -> CatalogListing:
        key = str(archive_path)
        cached = self._archives.get(key)
        if cached is not None:
            return cached
        listing = list_archive(archive_path, warn=self.warn)
        # Failed listings are not cached so a retry re-reads the file.
        if listing.ok:
            self._archives[key] = listing
        return listing

    def children(self, archive_path: PathLike, prefix: str = "") -> List[CatalogEntry]:
        """Immediate children of ``prefix`` inside an archive."""
        prefix = prefix.strip("/")
        prefix = f"{prefix}/" if prefix else ""
        result: List[CatalogEntry] = []
        for entry in self.open_archive(archive_path):
            normalized = entry.path.replace("\\", "/")
            if not normalized.startswith(prefix) or normalized == prefix:
                continue
            rest = normalized[len(prefix):]
            if entry.is_directory:
                if len([p for p in rest.split("/") if p]) == 1:
                    result.append(entry)
            elif "/" not in rest:
                result.append(entry)
        result.sort(key=_sort_key)
        return result

    @staticmethod
    def parent_of(prefix: str) -> str:
        """Prefix one level up; ``""`` is the archive root."""
        parts = [p for p in prefix.split("/") if p]
        if len(parts) <= 1:
            return ""
        return "/".join(parts[:-1]) + "/"

    def refresh(self, archive_path: Optional[PathLike] = None) -> None:
        if archive_path is None:
            self._archives.clear()
        else:
            self._archives.pop(str(archive_path), None)
