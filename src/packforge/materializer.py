"""Pack export: turn a virtual :class:`~packforge.pack_model.Pack` into a ZIP.

The :class:`PackMaterializer` stages every item into a fresh temporary
directory that mirrors the pack tree, compresses that directory into the
destination archive and removes the staging directory.

Hard rules (tests):
- A pack without items returns ``EMPTY_PACK`` and touches nothing on disk.
- One unreadable item never aborts the export; it is recorded in
  ``failed_items`` and the remaining items are still written.
- A failure while writing the archive raises :class:`ArchiveWriteFailure`
  and keeps the staging directory for inspection.
- Removing the staging directory is best-effort; failure is logged only.
"""

from __future__ import annotations

import datetime
import json
import os
import shutil
import tempfile
import threading
import uuid
import zipfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from . import defaults
from .errors import ArchiveWriteFailure, PackForgeError
from .pack_model import ItemReference, Pack, Scope
from .sources import ArchivePool, ByteResolver, FilesystemReader, PathLike

LogCallback = Callable[[str], None]
ProgressCallback = Callable[[int, int, str], None]


class ExportStatus(str, Enum):
    OK = "ok"
    EMPTY_PACK = "empty_pack"


@dataclass(frozen=True)
class FailedItem:
    scope: Scope
    name: str
    reason: str

    @property
    def label(self) -> str:
        return f"{self.scope}/{self.name}" if self.scope else self.name

    def to_dict(self) -> Dict[str, Any]:
        return {"scope": self.scope, "name": self.name, "reason": self.reason}


@dataclass
class ExportReport:
    status: ExportStatus
    run_id: str
    output_path: Optional[Path] = None
    total_items: int = 0
    succeeded_count: int = 0
    failed_items: List[FailedItem] = field(default_factory=list)
    temp_dir: Optional[Path] = None
    cleanup_warning: Optional[str] = None

    @property
    def failed_count(self) -> int:
        return len(self.failed_items)

    def summary(self) -> str:
        """One-line status text for the GUI and CLI."""
        if self.status is ExportStatus.EMPTY_PACK:
            return "No items to export"
        text = f"Exported {self.succeeded_count}/{self.total_items} items"
        if self.failed_items:
            names = ", ".join(f.label for f in self.failed_items)
            text += f", {self.failed_count} failed: {names}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "run_id": self.run_id,
            "output_path": str(self.output_path) if self.output_path else None,
            "total_items": self.total_items,
            "succeeded_count": self.succeeded_count,
            "failed_items": [f.to_dict() for f in self.failed_items],
            "temp_dir": str(self.temp_dir) if self.temp_dir else None,
            "cleanup_warning": self.cleanup_warning,
        }


# ----------------------------------------------------------------------
# Filesystem helpers shared with the batch combiner
def new_run_id() -> str:
    return datetime.datetime.now().strftime("%Y%m%d_%H%M%S_") + uuid.uuid4().hex[:8]


def make_temp_dir(prefix: str, base: Optional[PathLike] = None) -> Path:
    """Create a new, uniquely named directory under ``base`` (or the OS temp dir)."""
    root = Path(base) if base else Path(tempfile.gettempdir())
    root.mkdir(parents=True, exist_ok=True)
    path = root / f"{prefix}{new_run_id()}"
    path.mkdir(parents=False, exist_ok=False)
    return path


def zip_directory(source_dir: PathLike, output_path: PathLike, compression_level: int = 9) -> Path:
    """Compress the contents of ``source_dir`` into ``output_path``.

    Entries are stored relative to ``source_dir`` (the directory itself is
    not a level in the archive).  Empty directories get an explicit
    ``name/`` entry so they survive the round trip.  A partially written
    archive is deleted before the error propagates.
    """
    src = Path(source_dir)
    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    try:
        with zipfile.ZipFile(out, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=compression_level) as zf:
            for root, dirs, files in os.walk(src):
                dirs.sort()
                root_path = Path(root)
                if root_path != src and not dirs and not files:
                    zf.writestr(root_path.relative_to(src).as_posix() + "/", b"")
                for fname in sorted(files):
                    file_path = root_path / fname
                    zf.write(file_path, file_path.relative_to(src).as_posix())
    except BaseException:
        try:
            out.unlink()
        except OSError:
            pass
        raise
    return out


def remove_tree(path: PathLike) -> Optional[str]:
    """Delete a directory tree; return an error message instead of raising."""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return None
    except OSError as exc:
        return f"{path}: {exc.strerror or exc}"
    return None


# ----------------------------------------------------------------------
@dataclass
class PackMaterializer:
    """Stage, compress and clean up one pack export at a time."""

    temp_root: Optional[Path] = None
    compression_level: int = field(default_factory=lambda: defaults.COMPRESSION_LEVEL)
    workers: int = field(default_factory=lambda: defaults.EXPORT_WORKERS)
    logs_dir: Optional[Path] = None
    filesystem: FilesystemReader = field(default_factory=FilesystemReader)

    def materialize(
        self,
        pack: Pack,
        destination: PathLike,
        log_callback: Optional[LogCallback] = None,
        log_to_console: bool = True,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ExportReport:
        """Export ``pack`` to the ZIP file ``destination``."""
        run_id = new_run_id()
        destination = Path(destination)
        total = pack.item_count()
        report = ExportReport(status=ExportStatus.OK, run_id=run_id, total_items=total)

        log_lock = threading.Lock()
        log_handle = None

        def _log(msg: str) -> None:
            with log_lock:
                if log_to_console:
                    print(msg)
                if log_callback is not None:
                    try:
                        log_callback(msg)
                    except Exception:
                        pass
                if log_handle:
                    log_handle.write(msg + "\n")

        if total == 0:
            report.status = ExportStatus.EMPTY_PACK
            _log(f"PackForge export run_id={run_id}: pack '{pack.name}' has no items, nothing to export")
            return report

        log_dir: Optional[Path] = None
        if self.logs_dir is not None:
            log_dir = Path(self.logs_dir) / run_id
            try:
                log_dir.mkdir(parents=True, exist_ok=True)
                log_handle = open(log_dir / "export_log.txt", "w", encoding="utf-8", buffering=1)
            except OSError as exc:
                log_dir = None
                _log(f"Warning: could not write export log under {self.logs_dir}: {exc}")

        try:
            try:
                temp_dir = make_temp_dir(defaults.TEMP_PACK_PREFIX, self.temp_root)
            except OSError as exc:
                raise PackForgeError(f"Could not create staging directory: {exc}") from exc
            report.temp_dir = temp_dir
            _log(f"PackForge export run_id={run_id} pack={pack.name!r} items={total}")
            _log(f"Staging directory: {temp_dir}")

            done = 0
            progress_lock = threading.Lock()

            def _progress(label: str) -> None:
                nonlocal done
                if progress_callback is None:
                    return
                with progress_lock:
                    done += 1
                    current = done
                try:
                    progress_callback(current, total, label)
                except Exception:
                    pass

            scopes = list(pack.iter_scopes())
            with ArchivePool() as pool:
                resolver = ByteResolver(filesystem=self.filesystem, pool=pool)

                def _run(scope_items: Tuple[Scope, List[ItemReference]]) -> List[Optional[FailedItem]]:
                    scope, items = scope_items
                    return self._stage_scope(scope, list(items), temp_dir, resolver, _log, _progress)

                worker_count = max(1, int(self.workers or 1))
                if worker_count > 1 and len(scopes) > 1:
                    with ThreadPoolExecutor(max_workers=worker_count) as executor:
                        results = list(executor.map(_run, scopes))
                else:
                    results = [_run(s) for s in scopes]

            for outcomes in results:
                for outcome in outcomes:
                    if outcome is None:
                        report.succeeded_count += 1
                    else:
                        report.failed_items.append(outcome)

            _log(f"Creating archive: {destination}")
            try:
                zip_directory(temp_dir, destination, compression_level=self.compression_level)
            except (OSError, zipfile.LargeZipFile, ValueError) as exc:
                _log(f"Archive write failed: {exc}; staged files kept in {temp_dir}")
                raise ArchiveWriteFailure(destination, temp_dir, str(exc)) from exc
            report.output_path = destination

            cleanup_error = remove_tree(temp_dir)
            if cleanup_error:
                report.cleanup_warning = cleanup_error
                _log(f"Warning: could not remove staging directory {cleanup_error}")
            else:
                report.temp_dir = None

            _log(f"Done. {report.summary()}")
        finally:
            if log_handle:
                log_handle.close()

        if log_dir is not None:
            try:
                (log_dir / "export_report.json").write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")
            except OSError as exc:
                _log(f"Warning: could not write export report: {exc}")
        return report

    def _stage_scope(
        self,
        scope: Scope,
        items: List[ItemReference],
        temp_dir: Path,
        resolver: ByteResolver,
        log: LogCallback,
        progress: Callable[[str], None],
    ) -> List[Optional[FailedItem]]:
        """Write one scope's items in order; ``None`` marks a success."""
        outcomes: List[Optional[FailedItem]] = []
        target_dir = temp_dir
        if scope:
            target_dir = temp_dir / scope
            try:
                _ensure_inside(temp_dir, target_dir)
                target_dir.mkdir(parents=True, exist_ok=True)
                log(f"Created folder: {scope}")
            except (OSError, PackForgeError) as exc:
                reason = f"could not create folder: {exc}"
                log(f"Failed folder {scope}: {reason}")
                for item in items:
                    outcomes.append(FailedItem(scope, item.name, reason))
                    progress(f"{scope}/{item.name}")
                return outcomes

        for item in items:
            label = f"{scope}/{item.name}" if scope else item.name
            try:
                target = target_dir / item.name
                _ensure_inside(temp_dir, target)
                data = resolver.resolve_item(item)
                target.write_bytes(data)
            except (OSError, PackForgeError) as exc:
                reason = getattr(exc, "reason", None) or str(exc)
                outcomes.append(FailedItem(scope, item.name, str(reason)))
                log(f"Failed item: {label} ({reason})")
            else:
                outcomes.append(None)
                log(f"Processed item: {label}")
            progress(label)
        return outcomes


def _ensure_inside(root: Path, target: Path) -> None:
    try:
        target.resolve().relative_to(root.resolve())
    except ValueError:
        raise PackForgeError(f"destination '{target.name}' escapes the pack directory") from None
