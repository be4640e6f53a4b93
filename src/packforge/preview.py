"""Audio preview data for the sample browser.

Bytes come from the same :class:`~packforge.sources.ByteResolver` the
exporter uses, so whatever previews correctly also exports correctly.
Decoding is done with ``soundfile``; the peak envelope used to draw the
waveform is computed with ``numpy``.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import numpy as np
import soundfile as sf

from . import defaults
from .errors import PreviewError
from .sources import ByteResolver, Origin, PathLike


@dataclass
class PreviewData:
    sample_rate: int
    channels: int
    frames: int
    format: str = ""
    subtype: str = ""
    peaks_min: List[float] = field(default_factory=list)
    peaks_max: List[float] = field(default_factory=list)

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frames / float(self.sample_rate)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sample_rate": self.sample_rate,
            "channels": self.channels,
            "frames": self.frames,
            "duration": round(self.duration, 6),
            "format": self.format,
            "subtype": self.subtype,
            "peaks": len(self.peaks_max),
        }


def compute_peaks(samples: np.ndarray, buckets: int) -> tuple[np.ndarray, np.ndarray]:
    """Downmix to mono and return per-bucket (min, max) arrays.

    Fewer frames than ``buckets`` yields one bucket per frame.
    """
    data = np.asarray(samples, dtype=np.float32)
    if data.ndim > 1:
        data = data.mean(axis=1)
    if data.size == 0:
        return np.zeros(0, dtype=np.float32), np.zeros(0, dtype=np.float32)
    buckets = max(1, min(int(buckets), int(data.size)))
    chunks = np.array_split(data, buckets)
    mins = np.array([c.min() for c in chunks], dtype=np.float32)
    maxs = np.array([c.max() for c in chunks], dtype=np.float32)
    return mins, maxs


def decode_preview(data: bytes, source: str = "<bytes>", peaks: Optional[int] = None) -> PreviewData:
    """Decode audio bytes into :class:`PreviewData`."""
    if not data:
        raise PreviewError(source, "no audio data")
    try:
        with sf.SoundFile(io.BytesIO(data)) as snd:
            samples = snd.read(dtype="float32", always_2d=True)
            info = PreviewData(
                sample_rate=int(snd.samplerate),
                channels=int(snd.channels),
                frames=int(samples.shape[0]),
                format=str(snd.format),
                subtype=str(snd.subtype),
            )
    except (RuntimeError, TypeError) as exc:
        raise PreviewError(source, str(exc)) from exc

    mins, maxs = compute_peaks(samples, peaks or defaults.PREVIEW_PEAKS)
    info.peaks_min = [float(v) for v in mins]
    info.peaks_max = [float(v) for v in maxs]
    return info


def load_preview(
    origin: Union[Origin, str],
    source_path: PathLike,
    archive_id: Optional[PathLike] = None,
    resolver: Optional[ByteResolver] = None,
    peaks: Optional[int] = None,
) -> PreviewData:
    """Resolve and decode one sample (catalog entry or pack item)."""
    resolver = resolver or ByteResolver()
    data = resolver.resolve(origin, source_path, archive_id)
    label = f"{archive_id}!{source_path}" if archive_id else str(source_path)
    return decode_preview(data, source=label, peaks=peaks)


def load_item_preview(ref: object, resolver: Optional[ByteResolver] = None, peaks: Optional[int] = None) -> PreviewData:
    return load_preview(
        getattr(ref, "origin"),
        getattr(ref, "source_path"),
        getattr(ref, "archive_id", None),
        resolver=resolver,
        peaks=peaks,
    )


def load_entry_preview(entry: object, resolver: Optional[ByteResolver] = None, peaks: Optional[int] = None) -> PreviewData:
    """Preview a browsed catalog entry before it is added to a pack."""
    return load_preview(
        getattr(entry, "origin"),
        getattr(entry, "path"),
        getattr(entry, "archive_path", None),
        resolver=resolver,
        peaks=peaks,
    )
