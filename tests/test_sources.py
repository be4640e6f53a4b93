import threading
import time
import zipfile
from pathlib import Path

import sys
import pytest

# Add the src directory to sys.path so that packforge can be imported
SRC_DIR = Path(__file__).resolve().parents[1] / "src"
sys.path.insert(0, str(SRC_DIR))

from packforge.errors import SourceUnavailable
from packforge.sources import ArchivePool, ArchiveReader, ByteResolver, Origin


def make_zip(path: Path, entries: dict) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return path


def test_concurrent_first_reads_open_archive_once(tmp_path, monkeypatch):
    archive = make_zip(tmp_path / "shared.zip", {f"s{i}.wav": f"data{i}".encode() for i in range(4)})
    real_zipfile = zipfile.ZipFile
    opened = []

    def slow_zipfile(*args, **kwargs):
        time.sleep(0.05)
        zf = real_zipfile(*args, **kwargs)
        opened.append(zf)
        return zf

    monkeypatch.setattr(zipfile, "ZipFile", slow_zipfile)
    reader = ArchiveReader(archive)
    results = {}

    def worker(i: int) -> None:
        results[i] = reader.read(f"s{i}.wav")

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    reader.close()

    assert len(opened) == 1
    assert results == {i: f"data{i}".encode() for i in range(4)}


def test_read_errors_become_source_unavailable(tmp_path):
    archive = make_zip(tmp_path / "pack.zip", {"dir/": b"", "a.wav": b"a"})
    with ArchiveReader(archive) as reader:
        assert reader.read("a.wav") == b"a"
        with pytest.raises(SourceUnavailable):
            reader.read("missing.wav")
        with pytest.raises(SourceUnavailable):
            reader.read("dir/")
    with pytest.raises(SourceUnavailable):
        ArchiveReader(tmp_path / "nope.zip").read("a.wav")


def test_resolver_with_pool_and_without(tmp_path):
    archive = make_zip(tmp_path / "pack.zip", {"x/a.wav": b"abc"})
    loose = tmp_path / "b.wav"
    loose.write_bytes(b"loose")
    assert ByteResolver().resolve(Origin.ARCHIVE, "x/a.wav", archive) == b"abc"
    assert ByteResolver().resolve("disk", loose) == b"loose"
    with ArchivePool() as pool:
        resolver = ByteResolver(pool=pool)
        assert resolver.resolve(Origin.ARCHIVE, "x/a.wav", archive) == b"abc"
        assert pool.get(archive) is pool.get(str(archive))
    with pytest.raises(SourceUnavailable):
        ByteResolver().resolve(Origin.ARCHIVE, "x/a.wav", None)
