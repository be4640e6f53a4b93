"""Readers for the two places sample bytes can live.

* :class:`FilesystemReader` lists a directory and reads loose files.
* :class:`ArchiveReader` lists and extracts entries of one ZIP archive.
* :class:`ArchivePool` keeps archive readers open for the duration of an
  export so that many entries of the same archive share one central
  directory parse.
* :class:`ByteResolver` turns ``(origin, source_path, archive_id)`` into
  bytes.  It is the only place that knows how to fetch sample data and is
  shared by export and preview.
"""

from __future__ import annotations

import os
import threading
import zipfile
import zlib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

from .errors import CatalogReadFailure, SourceUnavailable

PathLike = Union[str, "os.PathLike[str]"]

# Raised by zipfile while inflating a damaged or truncated member
ARCHIVE_DATA_ERRORS = (OSError, EOFError, zlib.error, zipfile.BadZipFile, RuntimeError, NotImplementedError)


class Origin(str, Enum):
    DISK = "disk"
    ARCHIVE = "archive"


@dataclass(frozen=True)
class DirectoryChild:
    name: str
    path: Path
    is_directory: bool
    size: Optional[int] = None


@dataclass(frozen=True)
class ArchiveEntry:
    entry_path: str
    is_directory: bool
    uncompressed_size: int


# ----------------------------------------------------------------------
# Filesystem
class FilesystemReader:
    """Thin wrapper over the local filesystem."""

    def read_dir(self, path: PathLike, stat_files: bool = True) -> List[DirectoryChild]:
        """Return the immediate children of ``path``.

        Raises :class:`CatalogReadFailure` when the directory cannot be read.
        A child whose stat fails is still listed, with ``size=None``.
        """
        dir_path = Path(path)
        try:
            with os.scandir(dir_path) as it:
                raw = list(it)
        except OSError as exc:
            raise CatalogReadFailure(str(dir_path), exc.strerror or str(exc)) from exc

        children: List[DirectoryChild] = []
        for entry in raw:
            try:
                is_dir = entry.is_dir()
            except OSError:
                is_dir = False
            size: Optional[int] = None
            if stat_files and not is_dir:
                try:
                    size = entry.stat().st_size
                except OSError:
                    size = None
            children.append(DirectoryChild(entry.name, Path(entry.path), is_dir, size))
        return children

    def stat_size(self, path: PathLike) -> Optional[int]:
        try:
            return Path(path).stat().st_size
        except OSError:
            return None

    def read_file(self, path: PathLike) -> bytes:
        file_path = Path(path)
        if not file_path.is_file():
            raise SourceUnavailable(str(file_path), "file not found")
        try:
            return file_path.read_bytes()
        except OSError as exc:
            raise SourceUnavailable(str(file_path), exc.strerror or str(exc)) from exc


# ----------------------------------------------------------------------
# Archives
class ArchiveReader:
    """Read-only access to a single ZIP archive.

    The archive is opened lazily on first use.  Use as a context manager
    or call :meth:`close` when done.
    """

    def __init__(self, archive_path: PathLike) -> None:
        self.archive_path = Path(archive_path)
        self._zip: Optional[zipfile.ZipFile] = None
        # ZipFile reads share one file handle; open and read under this lock.
        self._lock = threading.Lock()

    def __enter__(self) -> "ArchiveReader":
        with self._lock:
            self._open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _open(self) -> zipfile.ZipFile:
        """Open the archive once.  Callers hold ``self._lock``."""
        if self._zip is None:
            try:
                self._zip = zipfile.ZipFile(self.archive_path, "r")
            except (OSError, zipfile.BadZipFile) as exc:
                raise CatalogReadFailure(str(self.archive_path), str(exc)) from exc
        return self._zip

    def close(self) -> None:
        with self._lock:
            if self._zip is not None:
                self._zip.close()
                self._zip = None

    def entries(self) -> List[ArchiveEntry]:
        """Return every entry in central directory order."""
        with self._lock:
            zf = self._open()
            return [
                ArchiveEntry(
                    entry_path=info.filename,
                    is_directory=info.is_dir(),
                    uncompressed_size=int(info.file_size),
                )
                for info in zf.infolist()
            ]

    def read(self, entry_path: str) -> bytes:
        """Return the bytes of ``entry_path``.

        Raises :class:`SourceUnavailable` when the archive cannot be opened,
        the entry does not exist or its data is corrupt.
        """
        source = f"{self.archive_path}!{entry_path}"
        with self._lock:
            try:
                zf = self._open()
            except CatalogReadFailure as exc:
                raise SourceUnavailable(source, exc.reason) from exc
            try:
                info = zf.getinfo(entry_path)
            except KeyError as exc:
                raise SourceUnavailable(source, "entry not found in archive") from exc
            if info.is_dir():
                raise SourceUnavailable(source, "entry is a directory")
            try:
                return zf.read(info)
            except ARCHIVE_DATA_ERRORS as exc:
                raise SourceUnavailable(source, str(exc) or type(exc).__name__) from exc


@dataclass
class ArchivePool:
    """Cache of open :class:`ArchiveReader` objects keyed by archive path."""

    _readers: Dict[str, ArchiveReader] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __enter__(self) -> "ArchivePool":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def get(self, archive_path: PathLike) -> ArchiveReader:
        key = str(Path(archive_path))
        with self._lock:
            reader = self._readers.get(key)
            if reader is None:
                reader = ArchiveReader(key)
                self._readers[key] = reader
            return reader

    def close(self) -> None:
        with self._lock:
            readers = list(self._readers.values())
            self._readers.clear()
        for reader in readers:
            reader.close()


# ----------------------------------------------------------------------
# Shared byte resolution
@dataclass
class ByteResolver:
    """Produce the bytes behind an item reference.

    Without a pool every archive read opens a fresh reader, which is what
    one-off previews want.  Exports pass an :class:`ArchivePool`.
    """

    filesystem: FilesystemReader = field(default_factory=FilesystemReader)
    pool: Optional[ArchivePool] = None

    def resolve(
        self,
        origin: Union[Origin, str],
        source_path: PathLike,
        archive_id: Optional[PathLike] = None,
    ) -> bytes:
        origin = Origin(origin)
        if origin is Origin.DISK:
            return self.filesystem.read_file(source_path)

        if archive_id is None:
            raise SourceUnavailable(str(source_path), "archive item without an archive")
        entry_path = str(source_path)
        if self.pool is not None:
            return self.pool.get(archive_id).read(entry_path)
        reader = ArchiveReader(archive_id)
        try:
            return reader.read(entry_path)
        finally:
            reader.close()

    def resolve_item(self, ref: object) -> bytes:
        """Resolve anything shaped like an item reference."""
        return self.resolve(
            getattr(ref, "origin"),
            getattr(ref, "source_path"),
            getattr(ref, "archive_id", None),
        )
