"""Merge several sample-pack archives into one.

Each input archive is extracted in full into ``<temp>/<archive name>/`` and
the combined tree is zipped again.  Unlike pack export there is no
per-item isolation: the first archive that fails to extract aborts the
whole batch and no output is produced.
"""

from __future__ import annotations

import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set

from . import defaults
from .errors import CombineError
from .materializer import make_temp_dir, new_run_id, remove_tree, zip_directory
from .sources import ARCHIVE_DATA_ERRORS, PathLike


def _target_dir_name(archive_path: Path, used: Set[str]) -> str:
    """Archive base name, suffixed ``" (2)"`` etc. until no earlier input uses it."""
    base = archive_path.stem or "archive"
    name = base
    count = 1
    while name.lower() in used:
        count += 1
        name = f"{base} ({count})"
    used.add(name.lower())
    return name


@dataclass
class BatchCombiner:
    temp_root: Optional[Path] = None
    output_dir: Optional[Path] = None
    compression_level: int = field(default_factory=lambda: defaults.COMPRESSION_LEVEL)

    def default_output_path(self) -> Path:
        out_dir = Path(self.output_dir) if self.output_dir else Path(tempfile.gettempdir())
        return out_dir / f"{defaults.COMBINED_OUTPUT_PREFIX}{new_run_id()}.zip"

    def combine(
        self,
        archive_paths: Iterable[PathLike],
        output_path: Optional[PathLike] = None,
        log_callback: Optional[Callable[[str], None]] = None,
        log_to_console: bool = True,
    ) -> Path:
        """Combine ``archive_paths`` into one ZIP and return its path."""

        def _log(msg: str) -> None:
            if log_to_console:
                print(msg)
            if log_callback is not None:
                try:
                    log_callback(msg)
                except Exception:
                    pass

        inputs: List[Path] = [Path(p) for p in archive_paths]
        if not inputs:
            raise CombineError("", "no archives selected")

        out = Path(output_path) if output_path else self.default_output_path()
        try:
            temp_root = make_temp_dir(defaults.TEMP_BATCH_PREFIX, self.temp_root)
        except OSError as exc:
            raise CombineError(str(inputs[0]), f"could not create staging directory: {exc}") from exc
        _log(f"Combining {len(inputs)} archive(s) in {temp_root}")

        used: Set[str] = set()
        try:
            for archive_path in inputs:
                extract_dir = temp_root / _target_dir_name(archive_path, used)
                _log(f"Extracting {archive_path.name} -> {extract_dir.name}/")
                try:
                    with zipfile.ZipFile(archive_path, "r") as zf:
                        zf.extractall(extract_dir)
                except ARCHIVE_DATA_ERRORS as exc:
                    raise CombineError(str(archive_path), str(exc) or type(exc).__name__) from exc

            _log(f"Creating archive: {out}")
            try:
                zip_directory(temp_root, out, compression_level=self.compression_level)
            except OSError as exc:
                raise CombineError(str(out), f"could not write combined archive: {exc}") from exc
        except CombineError as exc:
            _log(f"Batch combine aborted: {exc}")
            remove_tree(temp_root)
            raise

        cleanup_error = remove_tree(temp_root)
        if cleanup_error:
            _log(f"Warning: could not remove staging directory {cleanup_error}")
        _log(f"Combined pack saved to {out}")
        return out
