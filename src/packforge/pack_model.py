"""The virtual pack: references to samples arranged into folders.

A :class:`Pack` never holds audio bytes.  Each item is a frozen
:class:`ItemReference` pointing either at a loose file (:class:`DiskItem`)
or at an entry inside a source archive (:class:`ArchiveItem`).  Nothing on
disk changes until the pack is exported by
:class:`packforge.materializer.PackMaterializer`.

Folders are stored flat: ``folders`` maps a folder path such as
``"drums/kicks"`` to its ordered item list.  There is no parent/child link
between ``"drums"`` and ``"drums/kicks"``; nesting lives in the key only.
``rename_folder`` and ``delete_folder`` therefore touch exactly one key
unless called with ``cascade=True``.

Every mutation validates first and mutates last, so a rejected operation
leaves the pack exactly as it was.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from . import defaults
from .catalog import CatalogEntry
from .errors import (
    CollisionError,
    ConfigError,
    DuplicateFolderError,
    InvalidNameError,
    UnknownFolderError,
    UnknownItemError,
)
from .sources import Origin

Scope = Optional[str]


def _check_segment(name: str) -> str:
    """Validate one path segment (item name or folder name)."""
    text = str(name).strip()
    if not text:
        raise InvalidNameError(name, "name is empty")
    if text in {".", ".."}:
        raise InvalidNameError(name, "reserved name")
    if "/" in text or "\\" in text:
        raise InvalidNameError(name, "name may not contain path separators")
    return text


def _split_ext(name: str) -> Tuple[str, str]:
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem:
        return name, ""
    return stem, ext


# ----------------------------------------------------------------------
# Item references
@dataclass(frozen=True)
class ItemReference:
    """Base for the two origin variants.  Never instantiated directly."""

    name: str
    source_path: str
    size: int = 0

    origin = Origin.DISK

    @property
    def virtual_path(self) -> str:
        return self.name

    @property
    def extension(self) -> str:
        return _split_ext(self.name)[1]

    def renamed(self, new_name: str) -> "ItemReference":
        return replace(self, name=new_name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "origin": self.origin.value,
            "name": self.name,
            "source_path": self.source_path,
            "size": self.size,
        }


@dataclass(frozen=True)
class DiskItem(ItemReference):
    origin = Origin.DISK


@dataclass(frozen=True)
class ArchiveItem(ItemReference):
    archive_id: str = ""

    origin = Origin.ARCHIVE

    def __post_init__(self) -> None:
        if not self.archive_id:
            raise ValueError("ArchiveItem requires an archive_id")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["archive_id"] = self.archive_id
        return data


AnyItem = Union[DiskItem, ArchiveItem]


def item_from_entry(entry: CatalogEntry) -> ItemReference:
    """Build an item reference from a browsed catalog entry."""
    if entry.is_directory or not entry.is_audio:
        raise InvalidNameError(entry.name, "only audio files can be added to a pack")
    name = _check_segment(entry.name)
    if entry.origin is Origin.ARCHIVE:
        return ArchiveItem(
            name=name,
            source_path=entry.path,
            size=int(entry.size or 0),
            archive_id=str(entry.archive_path or ""),
        )
    return DiskItem(name=name, source_path=entry.path, size=int(entry.size or 0))


def item_from_dict(data: Dict[str, Any]) -> ItemReference:
    origin = Origin(data.get("origin", Origin.DISK.value))
    name = _check_segment(str(data["name"]))
    source_path = str(data["source_path"])
    size = int(data.get("size", 0) or 0)
    if origin is Origin.ARCHIVE:
        return ArchiveItem(name=name, source_path=source_path, size=size, archive_id=str(data["archive_id"]))
    return DiskItem(name=name, source_path=source_path, size=size)


def item_for_file(path: Union[str, Path]) -> DiskItem:
    """Reference a loose file on disk."""
    file_path = Path(path)
    try:
        size = file_path.stat().st_size
    except OSError:
        size = 0
    return DiskItem(name=_check_segment(file_path.name), source_path=str(file_path), size=size)


# ----------------------------------------------------------------------
# Pack aggregate
@dataclass
class Pack:
    """A named root with loose items and a flat mapping of folders."""

    name: str = field(default_factory=lambda: defaults.DEFAULT_PACK_NAME)
    root_items: List[ItemReference] = field(default_factory=list)
    folders: Dict[str, List[ItemReference]] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Lookup
    def _scope_list(self, scope: Scope) -> List[ItemReference]:
        if not scope:
            return self.root_items
        try:
            return self.folders[scope]
        except KeyError:
            raise UnknownFolderError(scope) from None

    def _index_of(self, items: List[ItemReference], virtual_path: str) -> int:
        for i, item in enumerate(items):
            if item.virtual_path == virtual_path:
                return i
        return -1

    def has_folder(self, folder_path: str) -> bool:
        return folder_path in self.folders

    def items_in(self, scope: Scope) -> List[ItemReference]:
        """Copy of the item list of ``scope`` (root when ``None``)."""
        return list(self._scope_list(scope))

    def find_item(self, scope: Scope, virtual_path: str) -> Optional[ItemReference]:
        if scope and scope not in self.folders:
            return None
        items = self._scope_list(scope)
        index = self._index_of(items, virtual_path)
        return items[index] if index >= 0 else None

    def iter_scopes(self) -> Iterator[Tuple[Scope, List[ItemReference]]]:
        """Yield ``(None, root_items)`` then each folder in insertion order."""
        yield None, self.root_items
        for folder_path, items in self.folders.items():
            yield folder_path, items

    def item_count(self) -> int:
        return len(self.root_items) + sum(len(items) for items in self.folders.values())

    def total_size(self) -> int:
        return sum(item.size for _, items in self.iter_scopes() for item in items)

    def is_empty(self) -> bool:
        return self.item_count() == 0

    def subfolders(self, folder_path: Scope) -> List[str]:
        """Folder keys nested directly below ``folder_path`` by name."""
        prefix = f"{folder_path}/" if folder_path else ""
        return [
            key
            for key in self.folders
            if key.startswith(prefix) and key != folder_path and "/" not in key[len(prefix):]
        ]

    def default_export_filename(self) -> str:
        safe = "".join("_" if ch in '<>:"/\\|?*' else ch for ch in self.name).strip() or defaults.DEFAULT_PACK_NAME
        return f"{safe}.zip"

    # ------------------------------------------------------------------
    # Folders
    def create_folder(self, parent: Scope, name: str) -> str:
        segment = _check_segment(name)
        folder_path = f"{parent}/{segment}" if parent else segment
        if folder_path in self.folders:
            raise DuplicateFolderError(folder_path)
        self.folders[folder_path] = []
        return folder_path

    def rename_folder(self, old_path: str, new_name: str, cascade: bool = False) -> str:
        """Replace the last segment of ``old_path``; return the new path.

        Position in the folder order is kept.  With ``cascade`` every key
        under ``old_path + "/"`` is re-keyed as well.
        """
        if old_path not in self.folders:
            raise UnknownFolderError(old_path)
        segment = _check_segment(new_name)
        head, _, _ = old_path.rpartition("/")
        new_path = f"{head}/{segment}" if head else segment
        if new_path == old_path:
            return old_path

        renames = {old_path: new_path}
        if cascade:
            prefix = old_path + "/"
            for key in self.folders:
                if key.startswith(prefix):
                    renames[key] = new_path + key[len(old_path):]
        for target in renames.values():
            if target in self.folders and target not in renames:
                raise CollisionError(head or None, target)

        self.folders = {renames.get(key, key): items for key, items in self.folders.items()}
        return new_path

    def delete_folder(self, folder_path: str, cascade: bool = False) -> List[str]:
        """Remove ``folder_path`` (and with ``cascade`` its nested keys)."""
        if folder_path not in self.folders:
            raise UnknownFolderError(folder_path)
        removed = [folder_path]
        if cascade:
            prefix = folder_path + "/"
            removed.extend(key for key in self.folders if key.startswith(prefix))
        for key in removed:
            del self.folders[key]
        return removed

    # ------------------------------------------------------------------
    # Items
    def add_item(self, target: Scope, ref: ItemReference) -> ItemReference:
        """Append ``ref`` to the root or to ``target``.

        A folder that does not exist yet is created with an empty list the
        first time an item lands in it.
        """
        if target:
            for segment in target.split("/"):
                _check_segment(segment)
            items = self.folders.get(target, [])
        else:
            items = self.root_items
        if self._index_of(items, ref.virtual_path) >= 0:
            raise CollisionError(target or None, ref.virtual_path)
        if target and target not in self.folders:
            self.folders[target] = items
        items.append(ref)
        return ref

    def remove_item(self, scope: Scope, virtual_path: str) -> bool:
        if scope and scope not in self.folders:
            return False
        items = self._scope_list(scope)
        index = self._index_of(items, virtual_path)
        if index < 0:
            return False
        del items[index]
        return True

    def rename_item(self, scope: Scope, virtual_path: str, new_name: str) -> ItemReference:
        """Rename an item, keeping its original extension.

        ``new_name`` is used as-is when it already ends with
        ``.<original ext>`` (any case); otherwise the extension is appended.
        """
        items = self._scope_list(scope)
        index = self._index_of(items, virtual_path)
        if index < 0:
            raise UnknownItemError(scope, virtual_path)
        item = items[index]
        final_name = _check_segment(new_name)
        ext = item.extension
        if ext and not final_name.lower().endswith("." + ext.lower()):
            final_name = f"{final_name}.{ext}"
        if final_name == item.name:
            return item
        if self._index_of(items, final_name) >= 0:
            raise CollisionError(scope, final_name)
        renamed = item.renamed(final_name)
        items[index] = renamed
        return renamed

    def move_item(self, scope: Scope, virtual_path: str, target: Scope) -> ItemReference:
        """Move an item between scopes, keeping its name."""
        source_items = self._scope_list(scope)
        index = self._index_of(source_items, virtual_path)
        if index < 0:
            raise UnknownItemError(scope, virtual_path)
        if (scope or None) == (target or None):
            return source_items[index]
        item = source_items[index]
        self.add_item(target, item)
        del source_items[index]
        return item

    def clear(self, name: Optional[str] = None) -> None:
        """Drop every item and folder; optionally rename the pack."""
        self.root_items = []
        self.folders = {}
        if name is not None:
            self.name = name.strip() or defaults.DEFAULT_PACK_NAME

    def snapshot(self) -> "Pack":
        return copy.deepcopy(self)

    # ------------------------------------------------------------------
    # Manifest (explicit save/load only)
    def to_manifest(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "items": [item.to_dict() for item in self.root_items],
            "folders": [
                {"path": folder_path, "items": [item.to_dict() for item in items]}
                for folder_path, items in self.folders.items()
            ],
        }

    @classmethod
    def from_manifest(cls, data: Dict[str, Any]) -> "Pack":
        if not isinstance(data, dict):
            raise ConfigError("Pack manifest must be a JSON object")
        pack = cls(name=str(data.get("name") or defaults.DEFAULT_PACK_NAME))
        try:
            for raw in data.get("items", []):
                pack.add_item(None, item_from_dict(raw))
            for folder in data.get("folders", []):
                folder_path = str(folder["path"]).strip("/")
                for segment in folder_path.split("/"):
                    _check_segment(segment)
                if folder_path in pack.folders:
                    raise DuplicateFolderError(folder_path)
                pack.folders[folder_path] = []
                for raw in folder.get("items", []):
                    pack.add_item(folder_path, item_from_dict(raw))
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid pack manifest: {exc}") from exc
        return pack


# ----------------------------------------------------------------------
# Session
@dataclass
class PackSession:
    """The pack being edited plus the user's position in it.

    Owned by the application window and handed to whoever needs the pack;
    there is no module-level pack.
    """

    pack: Pack = field(default_factory=Pack)
    current_folder: Scope = None
    current_source: Optional[str] = None
    current_archive_dir: str = ""

    def new_pack(self, name: Optional[str] = None) -> Pack:
        self.pack = Pack(name=(name or "").strip() or defaults.DEFAULT_PACK_NAME)
        self.current_folder = None
        return self.pack

    def clear(self) -> None:
        self.pack.clear()
        self.current_folder = None

    def enter_folder(self, folder_path: Scope) -> None:
        if folder_path and folder_path not in self.pack.folders:
            raise UnknownFolderError(folder_path)
        self.current_folder = folder_path or None

    def add_entry(self, entry: CatalogEntry, target: Scope = None) -> ItemReference:
        """Add a browsed entry to ``target`` or the current folder."""
        scope = target if target is not None else self.current_folder
        return self.pack.add_item(scope, item_from_entry(entry))

    def create_folder(self, name: str, parent: Scope = None) -> str:
        folder_path = self.pack.create_folder(parent, name)
        self.current_folder = folder_path
        return folder_path

    def rename_folder(self, old_path: str, new_name: str) -> str:
        new_path = self.pack.rename_folder(old_path, new_name, cascade=True)
        if self.current_folder and (
            self.current_folder == old_path or self.current_folder.startswith(old_path + "/")
        ):
            self.current_folder = new_path + self.current_folder[len(old_path):]
        return new_path

    def delete_folder(self, folder_path: str) -> List[str]:
        removed = self.pack.delete_folder(folder_path, cascade=True)
        if self.current_folder in removed:
            self.current_folder = None
        return removed
