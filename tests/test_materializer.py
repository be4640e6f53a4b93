import json
import struct
import zipfile
from pathlib import Path

import sys
import pytest

# Add the src directory to sys.path so that packforge can be imported
SRC_DIR = Path(__file__).resolve().parents[1] / "src"
sys.path.insert(0, str(SRC_DIR))

from packforge.errors import ArchiveWriteFailure
from packforge.materializer import ExportStatus, PackMaterializer, zip_directory
from packforge.pack_model import ArchiveItem, DiskItem, Pack


def make_source_zip(path: Path) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("Loops/loop1.wav", b"loop-bytes")
        zf.writestr("Loops/loop2.wav", b"loop2-bytes")
    return path


def build_pack(tmp_path: Path) -> Pack:
    kick = tmp_path / "kick.wav"
    kick.write_bytes(b"kick-bytes")
    archive = make_source_zip(tmp_path / "source.zip")
    pack = Pack(name="Mixed")
    pack.add_item(None, DiskItem(name="kick.wav", source_path=str(kick), size=10))
    pack.add_item("Loops", ArchiveItem(name="loop1.wav", source_path="Loops/loop1.wav", archive_id=str(archive)))
    return pack


def test_export_mixed_origins(tmp_path):
    pack = build_pack(tmp_path)
    out = tmp_path / "out" / "Mixed.zip"
    materializer = PackMaterializer(temp_root=tmp_path / "tmp")
    report = materializer.materialize(pack, out, log_to_console=False)

    assert report.status is ExportStatus.OK
    assert report.succeeded_count == 2
    assert report.failed_items == []
    assert report.output_path == out
    assert report.temp_dir is None
    with zipfile.ZipFile(out) as zf:
        assert sorted(zf.namelist()) == ["Loops/loop1.wav", "kick.wav"]
        assert zf.read("kick.wav") == b"kick-bytes"
        assert zf.read("Loops/loop1.wav") == b"loop-bytes"
    assert list((tmp_path / "tmp").iterdir()) == []


def test_renamed_item_uses_new_name(tmp_path):
    pack = build_pack(tmp_path)
    pack.rename_item("Loops", "loop1.wav", "groove")
    out = tmp_path / "renamed.zip"
    PackMaterializer(temp_root=tmp_path / "tmp").materialize(pack, out, log_to_console=False)
    with zipfile.ZipFile(out) as zf:
        assert zf.read("Loops/groove.wav") == b"loop-bytes"


def test_partial_failure_is_isolated(tmp_path):
    pack = build_pack(tmp_path)
    pack.add_item(None, DiskItem(name="gone.wav", source_path=str(tmp_path / "gone.wav")))
    pack.add_item(
        "Loops",
        ArchiveItem(name="missing.wav", source_path="Loops/missing.wav", archive_id=str(tmp_path / "source.zip")),
    )
    out = tmp_path / "partial.zip"
    lines = []
    report = PackMaterializer(temp_root=tmp_path / "tmp").materialize(
        pack, out, log_callback=lines.append, log_to_console=False
    )

    assert report.status is ExportStatus.OK
    assert report.total_items == 4
    assert report.succeeded_count == 2
    assert sorted(f.label for f in report.failed_items) == ["Loops/missing.wav", "gone.wav"]
    assert "2 failed" in report.summary()
    with zipfile.ZipFile(out) as zf:
        assert sorted(zf.namelist()) == ["Loops/loop1.wav", "kick.wav"]
    assert any(line.startswith("Failed item: gone.wav") for line in lines)


def test_empty_pack_touches_nothing(tmp_path):
    pack = Pack(name="Empty")
    pack.create_folder(None, "nothing")
    out = tmp_path / "empty.zip"
    temp_root = tmp_path / "tmp"
    report = PackMaterializer(temp_root=temp_root).materialize(pack, out, log_to_console=False)
    assert report.status is ExportStatus.EMPTY_PACK
    assert report.summary() == "No items to export"
    assert not out.exists()
    assert not temp_root.exists()


def test_empty_folder_is_kept_in_archive(tmp_path):
    pack = build_pack(tmp_path)
    pack.create_folder(None, "Vocals")
    out = tmp_path / "with_empty.zip"
    PackMaterializer(temp_root=tmp_path / "tmp").materialize(pack, out, log_to_console=False)
    with zipfile.ZipFile(out) as zf:
        assert "Vocals/" in zf.namelist()


def test_archive_write_failure_keeps_staging(tmp_path):
    pack = build_pack(tmp_path)
    out = tmp_path / "blocked.zip"
    out.mkdir()
    with pytest.raises(ArchiveWriteFailure) as excinfo:
        PackMaterializer(temp_root=tmp_path / "tmp").materialize(pack, out, log_to_console=False)
    staged = excinfo.value.temp_dir
    assert staged.is_dir()
    assert (staged / "kick.wav").read_bytes() == b"kick-bytes"
    assert (staged / "Loops" / "loop1.wav").exists()


def test_parallel_workers_produce_same_tree(tmp_path):
    pack = build_pack(tmp_path)
    pack.add_item(
        "More",
        ArchiveItem(name="loop2.wav", source_path="Loops/loop2.wav", archive_id=str(tmp_path / "source.zip")),
    )
    out = tmp_path / "parallel.zip"
    progress = []
    report = PackMaterializer(temp_root=tmp_path / "tmp", workers=3).materialize(
        pack, out, log_to_console=False, progress_callback=lambda done, total, label: progress.append((done, total))
    )
    assert report.succeeded_count == 3
    assert sorted(progress) == [(1, 3), (2, 3), (3, 3)]
    with zipfile.ZipFile(out) as zf:
        assert sorted(zf.namelist()) == ["Loops/loop1.wav", "More/loop2.wav", "kick.wav"]


def test_logs_dir_receives_log_and_report(tmp_path):
    pack = build_pack(tmp_path)
    logs = tmp_path / "logs"
    report = PackMaterializer(temp_root=tmp_path / "tmp", logs_dir=logs).materialize(
        pack, tmp_path / "logged.zip", log_to_console=False
    )
    run_dir = logs / report.run_id
    assert "Processed item: kick.wav" in (run_dir / "export_log.txt").read_text(encoding="utf-8")
    data = json.loads((run_dir / "export_report.json").read_text(encoding="utf-8"))
    assert data["status"] == "ok"
    assert data["succeeded_count"] == 2


def test_zip_directory_relative_names(tmp_path):
    src = tmp_path / "tree"
    (src / "a").mkdir(parents=True)
    (src / "a" / "x.wav").write_bytes(b"x")
    (src / "empty").mkdir()
    out = zip_directory(src, tmp_path / "tree.zip")
    with zipfile.ZipFile(out) as zf:
        assert sorted(zf.namelist()) == ["a/x.wav", "empty/"]
        assert zf.getinfo("a/x.wav").compress_type == zipfile.ZIP_DEFLATED


def make_corrupt_zip(path: Path, name: str, payload: bytes) -> Path:
    """Deflated archive whose member data is damaged but whose directory is intact."""
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(name, payload)
    with zipfile.ZipFile(path) as zf:
        info = zf.getinfo(name)
    raw = bytearray(path.read_bytes())
    name_len, extra_len = struct.unpack("<HH", raw[info.header_offset + 26 : info.header_offset + 30])
    start = info.header_offset + 30 + name_len + extra_len
    for i in range(start, start + info.compress_size):
        raw[i] ^= 0xFF
    path.write_bytes(bytes(raw))
    return path


def test_corrupt_archive_member_fails_alone(tmp_path):
    kick = tmp_path / "kick.wav"
    kick.write_bytes(b"kick-bytes")
    damaged = make_corrupt_zip(tmp_path / "damaged.zip", "loop.wav", b"loop-data " * 500)
    pack = Pack(name="Damaged")
    pack.add_item(None, DiskItem(name="kick.wav", source_path=str(kick)))
    pack.add_item("Loops", ArchiveItem(name="loop.wav", source_path="loop.wav", archive_id=str(damaged)))
    out = tmp_path / "damaged_out.zip"
    report = PackMaterializer(temp_root=tmp_path / "tmp").materialize(pack, out, log_to_console=False)

    assert report.status is ExportStatus.OK
    assert report.succeeded_count == 1
    assert [f.label for f in report.failed_items] == ["Loops/loop.wav"]
    with zipfile.ZipFile(out) as zf:
        assert zf.namelist() == ["kick.wav"]
    assert list((tmp_path / "tmp").iterdir()) == []


def test_unwritable_logs_dir_does_not_abort_export(tmp_path):
    pack = build_pack(tmp_path)
    logs = tmp_path / "logs"
    logs.write_text("not a directory", encoding="utf-8")
    lines = []
    report = PackMaterializer(temp_root=tmp_path / "tmp", logs_dir=logs).materialize(
        pack, tmp_path / "nolog.zip", log_callback=lines.append, log_to_console=False
    )
    assert report.status is ExportStatus.OK
    assert report.succeeded_count == 2
    assert any(line.startswith("Warning: could not write export log") for line in lines)
    assert (tmp_path / "nolog.zip").exists()
