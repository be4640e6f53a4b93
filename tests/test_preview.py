import io
import zipfile
from pathlib import Path

import sys
import numpy as np
import pytest
import soundfile as sf

# Add the src directory to sys.path so that packforge can be imported
SRC_DIR = Path(__file__).resolve().parents[1] / "src"
sys.path.insert(0, str(SRC_DIR))

from packforge.catalog import list_archive
from packforge.errors import PreviewError, SourceUnavailable
from packforge.pack_model import DiskItem
from packforge.preview import compute_peaks, decode_preview, load_entry_preview, load_item_preview
from packforge.sources import Origin


def sine_wav_bytes(seconds: float = 0.5, sr: int = 22050, channels: int = 1) -> bytes:
    t = np.linspace(0, seconds, int(sr * seconds), endpoint=False)
    tone = 0.5 * np.sin(2 * np.pi * 440 * t)
    data = np.stack([tone] * channels, axis=1) if channels > 1 else tone
    buf = io.BytesIO()
    sf.write(buf, data, sr, format="WAV", subtype="PCM_16")
    return buf.getvalue()


def test_decode_preview_reports_format():
    info = decode_preview(sine_wav_bytes(channels=2), peaks=64)
    assert info.sample_rate == 22050
    assert info.channels == 2
    assert info.frames == 11025
    assert info.duration == pytest.approx(0.5)
    assert info.format == "WAV"
    assert len(info.peaks_max) == 64
    assert max(info.peaks_max) == pytest.approx(0.5, abs=0.01)
    assert min(info.peaks_min) == pytest.approx(-0.5, abs=0.01)


def test_decode_preview_rejects_garbage():
    with pytest.raises(PreviewError):
        decode_preview(b"definitely not audio", source="junk.wav")
    with pytest.raises(PreviewError):
        decode_preview(b"")


def test_compute_peaks_short_signal():
    mins, maxs = compute_peaks(np.array([0.1, -0.2, 0.3], dtype=np.float32), 10)
    assert len(mins) == 3
    assert maxs[2] == pytest.approx(0.3)
    mins, maxs = compute_peaks(np.zeros(0), 10)
    assert len(mins) == 0


def test_item_preview_from_disk(tmp_path):
    path = tmp_path / "tone.wav"
    path.write_bytes(sine_wav_bytes())
    info = load_item_preview(DiskItem(name="tone.wav", source_path=str(path)))
    assert info.channels == 1
    assert info.to_dict()["frames"] == 11025


def test_entry_preview_from_archive(tmp_path):
    archive = tmp_path / "pack.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("tones/tone.wav", sine_wav_bytes())
    entry = list_archive(archive).audio()[0]
    assert entry.origin is Origin.ARCHIVE
    info = load_entry_preview(entry)
    assert info.sample_rate == 22050


def test_preview_missing_source(tmp_path):
    with pytest.raises(SourceUnavailable):
        load_item_preview(DiskItem(name="gone.wav", source_path=str(tmp_path / "gone.wav")))
