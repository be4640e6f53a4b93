from pathlib import Path

import sys
import pytest

# Add the src directory to sys.path so that packforge can be imported
SRC_DIR = Path(__file__).resolve().parents[1] / "src"
sys.path.insert(0, str(SRC_DIR))

from packforge.catalog import CatalogEntry
from packforge.errors import (
    CollisionError,
    ConfigError,
    DuplicateFolderError,
    InvalidNameError,
    UnknownFolderError,
    UnknownItemError,
)
from packforge.pack_model import ArchiveItem, DiskItem, Pack, PackSession, item_from_entry
from packforge.sources import Origin


def disk(name: str, size: int = 10) -> DiskItem:
    return DiskItem(name=name, source_path=f"/samples/{name}", size=size)


def test_add_item_rejects_duplicate_virtual_path():
    pack = Pack(name="Demo")
    pack.add_item(None, disk("kick.wav"))
    with pytest.raises(CollisionError):
        pack.add_item(None, disk("kick.wav"))
    assert [i.name for i in pack.root_items] == ["kick.wav"]


def test_same_name_allowed_in_different_scopes():
    pack = Pack()
    pack.add_item(None, disk("kick.wav"))
    pack.add_item("drums", disk("kick.wav"))
    assert pack.item_count() == 2
    assert pack.has_folder("drums")


def test_add_item_creates_missing_folder_in_order():
    pack = Pack()
    pack.create_folder(None, "a")
    pack.add_item("c", disk("x.wav"))
    pack.create_folder(None, "b")
    assert list(pack.folders) == ["a", "c", "b"]


def test_create_folder_duplicate_and_invalid_names():
    pack = Pack()
    assert pack.create_folder(None, "drums") == "drums"
    assert pack.create_folder("drums", "kicks") == "drums/kicks"
    with pytest.raises(DuplicateFolderError):
        pack.create_folder(None, "drums")
    for bad in ["", "  ", "..", "a/b", "a\\b"]:
        with pytest.raises(InvalidNameError):
            pack.create_folder(None, bad)


def test_rename_item_preserves_extension():
    pack = Pack()
    pack.add_item(None, disk("kick.wav"))
    renamed = pack.rename_item(None, "kick.wav", "boom")
    assert renamed.name == "boom.wav"
    assert renamed.source_path == "/samples/kick.wav"
    renamed = pack.rename_item(None, "boom.wav", "thump.WAV")
    assert renamed.name == "thump.WAV"
    renamed = pack.rename_item(None, "thump.WAV", "snare.mp3")
    assert renamed.name == "snare.mp3.WAV"


def test_rename_item_collision_leaves_pack_unchanged():
    pack = Pack()
    pack.add_item(None, disk("a.wav"))
    pack.add_item(None, disk("b.wav"))
    with pytest.raises(CollisionError):
        pack.rename_item(None, "a.wav", "b")
    assert [i.name for i in pack.root_items] == ["a.wav", "b.wav"]


def test_rename_unknown_item():
    pack = Pack()
    with pytest.raises(UnknownItemError):
        pack.rename_item(None, "missing.wav", "x")


def test_rename_folder_keeps_position_and_items():
    pack = Pack()
    pack.add_item("one", disk("a.wav"))
    pack.add_item("two", disk("b.wav"))
    pack.add_item("three", disk("c.wav"))
    assert pack.rename_folder("two", "deux") == "deux"
    assert list(pack.folders) == ["one", "deux", "three"]
    assert [i.name for i in pack.folders["deux"]] == ["b.wav"]


def test_rename_folder_collision_and_unknown():
    pack = Pack()
    pack.create_folder(None, "a")
    pack.create_folder(None, "b")
    with pytest.raises(CollisionError):
        pack.rename_folder("a", "b")
    with pytest.raises(UnknownFolderError):
        pack.rename_folder("zzz", "c")
    assert list(pack.folders) == ["a", "b"]


def test_rename_folder_without_cascade_leaves_nested_keys():
    pack = Pack()
    pack.add_item("drums", disk("a.wav"))
    pack.add_item("drums/kicks", disk("b.wav"))
    pack.rename_folder("drums", "perc")
    assert set(pack.folders) == {"perc", "drums/kicks"}


def test_rename_folder_with_cascade_rekeys_nested():
    pack = Pack()
    pack.add_item("drums", disk("a.wav"))
    pack.add_item("drums/kicks", disk("b.wav"))
    pack.add_item("drumsticks", disk("c.wav"))
    pack.rename_folder("drums", "perc", cascade=True)
    assert list(pack.folders) == ["perc", "perc/kicks", "drumsticks"]


def test_delete_folder_cascade_and_not():
    pack = Pack()
    pack.add_item("drums", disk("a.wav"))
    pack.add_item("drums/kicks", disk("b.wav"))
    assert pack.delete_folder("drums") == ["drums"]
    assert list(pack.folders) == ["drums/kicks"]

    pack.add_item("drums", disk("a.wav"))
    removed = pack.delete_folder("drums", cascade=True)
    assert sorted(removed) == ["drums", "drums/kicks"]
    assert pack.folders == {}
    with pytest.raises(UnknownFolderError):
        pack.delete_folder("drums")


def test_remove_and_move_item():
    pack = Pack()
    pack.add_item(None, disk("a.wav"))
    pack.add_item("x", disk("a.wav"))
    with pytest.raises(CollisionError):
        pack.move_item(None, "a.wav", "x")
    pack.add_item(None, disk("b.wav"))
    pack.move_item(None, "b.wav", "x")
    assert [i.name for i in pack.folders["x"]] == ["a.wav", "b.wav"]
    assert [i.name for i in pack.root_items] == ["a.wav"]
    assert pack.remove_item("x", "a.wav") is True
    assert pack.remove_item("x", "a.wav") is False
    assert pack.remove_item("nope", "a.wav") is False


def test_stats_and_clear():
    pack = Pack(name="Stats")
    pack.add_item(None, disk("a.wav", 5))
    pack.add_item("f", disk("b.wav", 7))
    assert pack.item_count() == 2
    assert pack.total_size() == 12
    pack.clear()
    assert pack.is_empty()
    assert pack.folders == {}
    assert pack.name == "Stats"


def test_empty_folders_do_not_make_pack_non_empty():
    pack = Pack()
    pack.create_folder(None, "empty")
    assert pack.is_empty()


def test_archive_item_requires_archive_id():
    with pytest.raises(ValueError):
        ArchiveItem(name="a.wav", source_path="x/a.wav")
    item = ArchiveItem(name="a.wav", source_path="x/a.wav", archive_id="/tmp/p.zip")
    assert item.origin is Origin.ARCHIVE
    assert DiskItem(name="a.wav", source_path="/a.wav").origin is Origin.DISK


def test_item_from_entry_rejects_directories():
    entry = CatalogEntry("dir", "dir/", True, False, None, Origin.ARCHIVE, "/p.zip")
    with pytest.raises(InvalidNameError):
        item_from_entry(entry)
    entry = CatalogEntry("a.wav", "dir/a.wav", False, True, 3, Origin.ARCHIVE, "/p.zip")
    item = item_from_entry(entry)
    assert isinstance(item, ArchiveItem)
    assert item.archive_id == "/p.zip"
    assert item.size == 3


def test_manifest_round_trip_keeps_order():
    pack = Pack(name="Round")
    pack.add_item(None, disk("a.wav"))
    pack.add_item("z", ArchiveItem(name="b.wav", source_path="in/b.wav", archive_id="/src.zip"))
    pack.create_folder(None, "empty")
    restored = Pack.from_manifest(pack.to_manifest())
    assert restored.name == "Round"
    assert list(restored.folders) == ["z", "empty"]
    assert restored.folders["z"][0] == pack.folders["z"][0]
    assert restored.root_items == pack.root_items


def test_manifest_rejects_bad_data():
    with pytest.raises(ConfigError):
        Pack.from_manifest({"name": "x", "items": [{"origin": "disk"}]})
    with pytest.raises(ConfigError):
        Pack.from_manifest([])
    with pytest.raises(DuplicateFolderError):
        Pack.from_manifest({"name": "x", "folders": [{"path": "a"}, {"path": "a"}]})


def test_session_tracks_current_folder():
    session = PackSession()
    session.new_pack("  ")
    assert session.pack.name == "New Pack"
    session.create_folder("drums")
    assert session.current_folder == "drums"
    session.create_folder("kicks", parent="drums")
    assert session.current_folder == "drums/kicks"
    session.rename_folder("drums", "perc")
    assert session.current_folder == "perc/kicks"
    assert set(session.pack.folders) == {"perc", "perc/kicks"}
    session.delete_folder("perc")
    assert session.current_folder is None
    assert session.pack.folders == {}


def test_session_add_entry_uses_current_folder():
    session = PackSession()
    session.create_folder("f")
    entry = CatalogEntry("a.wav", "/s/a.wav", False, True, 1, Origin.DISK)
    session.add_entry(entry)
    assert [i.name for i in session.pack.folders["f"]] == ["a.wav"]
    session.add_entry(entry, target="")
    assert [i.name for i in session.pack.root_items] == ["a.wav"]
    with pytest.raises(UnknownFolderError):
        session.enter_folder("missing")


def test_snapshot_is_independent():
    pack = Pack()
    pack.add_item("f", disk("a.wav"))
    snap = pack.snapshot()
    pack.add_item("f", disk("b.wav"))
    assert len(snap.folders["f"]) == 1
