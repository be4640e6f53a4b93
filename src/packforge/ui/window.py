from __future__ import annotations

import datetime
from pathlib import Path
from typing import Any, Optional

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QAbstractItemView,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QProgressBar,
    QPushButton,
    QSplitter,
    QTreeWidget,
    QTreeWidgetItem,
    QVBoxLayout,
    QWidget,
)

from packforge import defaults
from packforge.catalog import CatalogEntry, SourceCatalog
from packforge.combiner import BatchCombiner
from packforge.config_service import ConfigService
from packforge.errors import PackForgeError, PackModelError
from packforge.materializer import ExportReport, ExportStatus, PackMaterializer
from packforge.pack_model import Pack, PackSession
from packforge.preview import PreviewData, load_entry_preview, load_item_preview
from packforge.ui import dialogs
from packforge.ui.runners import TaskRunner
from packforge.ui.state import AppState

ENTRY_ROLE = Qt.ItemDataRole.UserRole
NODE_ROLE = Qt.ItemDataRole.UserRole + 1


def format_size(size: Optional[int]) -> str:
    if size is None:
        return ""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


class SourceList(QListWidget):
    """Browser listing; audio rows can be dragged onto the pack tree."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setSelectionMode(QAbstractItemView.SelectionMode.ExtendedSelection)
        self.setDragEnabled(True)
        self.setDragDropMode(QAbstractItemView.DragDropMode.DragOnly)

    def selected_entries(self) -> list[CatalogEntry]:
        entries = []
        for row in self.selectedItems():
            entry = row.data(ENTRY_ROLE)
            if isinstance(entry, CatalogEntry) and entry.is_audio:
                entries.append(entry)
        return entries


class PackTree(QTreeWidget):
    """Pack view.  Accepts drops from :class:`SourceList`."""

    def __init__(self, window: "PackForgeWindow") -> None:
        super().__init__()
        self._window = window
        self.setHeaderLabels(["Pack", "Size"])
        self.setAcceptDrops(True)
        self.setDragDropMode(QAbstractItemView.DragDropMode.DropOnly)

    def dragEnterEvent(self, event: Any) -> None:
        if isinstance(event.source(), SourceList):
            event.acceptProposedAction()
        else:
            event.ignore()

    def dragMoveEvent(self, event: Any) -> None:
        if isinstance(event.source(), SourceList):
            event.acceptProposedAction()
        else:
            event.ignore()

    def dropEvent(self, event: Any) -> None:
        source = event.source()
        if not isinstance(source, SourceList):
            event.ignore()
            return
        target = self.itemAt(event.position().toPoint())
        folder = self._window.folder_for_node(target)
        self._window.add_entries(source.selected_entries(), folder)
        event.acceptProposedAction()


class PackForgeWindow(QMainWindow):
    def __init__(self) -> None:
        super().__init__()
        self.setObjectName("AppWindow")
        self.setWindowTitle("PackForge")
        self.resize(1200, 800)
        self.setMinimumSize(900, 600)

        self.app_dir = Path(__file__).resolve().parents[1]
        self.config_service = ConfigService(app_dir=self.app_dir)
        self.config: dict[str, Any] = self.config_service.load_config()
        self.config_service.apply(self.config)
        self.state = AppState.from_config(self.config)

        self.session = PackSession()
        self.session.new_pack(self.state.default_pack_name)
        self.catalog = SourceCatalog(warn=self._on_catalog_warning)
        self.runner: Optional[TaskRunner] = None
        self.preview_runner: Optional[TaskRunner] = None

        self._build_shell()
        self.refresh_pack_tree()
        self._set_status("Ready")
        if self.state.last_source and Path(self.state.last_source).exists():
            self.open_source(Path(self.state.last_source))

    # ------------------------------------------------------------------
    # UI shell
    def _build_shell(self) -> None:
        root = QWidget()
        self.setCentralWidget(root)
        layout = QVBoxLayout(root)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(8)

        splitter = QSplitter(Qt.Orientation.Horizontal)
        layout.addWidget(splitter, 1)

        # Browser
        browser = QWidget()
        browser_layout = QVBoxLayout(browser)
        browser_layout.setContentsMargins(0, 0, 0, 0)
        nav_row = QHBoxLayout()
        for label, slot in (
            ("Open Folder", self.on_open_folder),
            ("Open ZIP", self.on_open_zip),
            ("Up", self.on_navigate_up),
            ("Home", self.on_navigate_home),
        ):
            btn = QPushButton(label)
            btn.clicked.connect(slot)
            nav_row.addWidget(btn)
        browser_layout.addLayout(nav_row)
        self.path_label = QLabel("No source opened")
        self.path_label.setObjectName("MutedLabel")
        browser_layout.addWidget(self.path_label)
        self.source_list = SourceList()
        self.source_list.itemDoubleClicked.connect(self.on_source_activated)
        self.source_list.itemSelectionChanged.connect(self.on_source_selection)
        browser_layout.addWidget(self.source_list, 1)
        add_btn = QPushButton("Add to Pack")
        add_btn.clicked.connect(lambda: self.add_entries(self.source_list.selected_entries(), self.session.current_folder))
        browser_layout.addWidget(add_btn)
        self.preview_label = QLabel("")
        self.preview_label.setObjectName("FieldHint")
        self.preview_label.setWordWrap(True)
        browser_layout.addWidget(self.preview_label)
        splitter.addWidget(browser)

        # Pack
        pack_panel = QWidget()
        pack_layout = QVBoxLayout(pack_panel)
        pack_layout.setContentsMargins(0, 0, 0, 0)
        pack_row = QHBoxLayout()
        for label, slot in (
            ("New Pack", self.on_new_pack),
            ("New Folder", self.on_new_folder),
            ("Rename", self.on_rename),
            ("Delete", self.on_delete),
            ("Clear", self.on_clear_pack),
        ):
            btn = QPushButton(label)
            btn.clicked.connect(slot)
            pack_row.addWidget(btn)
        pack_layout.addLayout(pack_row)
        self.pack_tree = PackTree(self)
        self.pack_tree.itemSelectionChanged.connect(self.on_pack_selection)
        pack_layout.addWidget(self.pack_tree, 1)
        self.stats_label = QLabel("0 items")
        pack_layout.addWidget(self.stats_label)
        export_row = QHBoxLayout()
        for label, slot in (
            ("Export Pack", self.on_export_pack),
            ("Combine ZIPs", self.on_combine_zips),
            ("Save Layout", self.on_save_layout),
            ("Open Layout", self.on_open_layout),
        ):
            btn = QPushButton(label)
            btn.clicked.connect(slot)
            export_row.addWidget(btn)
        pack_layout.addLayout(export_row)
        splitter.addWidget(pack_panel)
        splitter.setSizes([600, 600])

        self.progress = QProgressBar()
        self.progress.setVisible(False)
        self.statusBar().addPermanentWidget(self.progress)

    # ------------------------------------------------------------------
    # Status / logging
    def _set_status(self, message: str) -> None:
        self.statusBar().showMessage(message)
        self._debug_log("INFO", message)

    def _debug_log(self, level: str, message: str) -> None:
        try:
            path = self.config_service.get_debug_log_path()
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as f:
                f.write(f"[{level}] {datetime.datetime.now().isoformat()} {message}\n")
        except OSError:
            pass

    def _on_catalog_warning(self, message: str) -> None:
        self._debug_log("WARN", message)
        self.statusBar().showMessage(message)

    def _save_state(self) -> None:
        self.config.update(self.state.to_config_updates())
        try:
            self.config_service.save_config(self.config)
        except (OSError, PackForgeError) as exc:
            self._debug_log("WARN", f"Could not save config: {exc}")

    # ------------------------------------------------------------------
    # Browser
    def open_source(self, path: Path) -> None:
        self.session.current_source = str(path)
        self.session.current_archive_dir = ""
        self.state.last_source = str(path)
        self.state.recent_sources = [str(path), *[s for s in self.state.recent_sources if s != str(path)]][:10]
        self._save_state()
        self.refresh_source_list()

    def _is_archive_source(self) -> bool:
        source = self.session.current_source
        return bool(source) and Path(source).suffix.lower() == ".zip" and Path(source).is_file()

    def refresh_source_list(self) -> None:
        self.source_list.clear()
        source = self.session.current_source
        if not source:
            return
        if self._is_archive_source():
            entries = self.catalog.children(source, self.session.current_archive_dir)
            prefix = self.session.current_archive_dir
            self.path_label.setText(f"{source} - {prefix}" if prefix else source)
        else:
            entries = list(self.catalog.open_directory(source))
            self.path_label.setText(source)
        for entry in entries:
            if not entry.is_directory and not entry.is_audio:
                continue
            label = f"[{entry.name}]" if entry.is_directory else f"{entry.name}    {format_size(entry.size)}"
            row = QListWidgetItem(label)
            row.setData(ENTRY_ROLE, entry)
            self.source_list.addItem(row)
        self._set_status(f"{self.source_list.count()} item(s)")

    def on_open_folder(self) -> None:
        path = dialogs.ask_open_folder(self, self.state.last_source)
        if path is not None:
            self.open_source(path)

    def on_open_zip(self) -> None:
        path = dialogs.ask_open_zip(self, self.state.last_source)
        if path is not None:
            self.catalog.refresh(path)
            self.open_source(path)

    def on_navigate_up(self) -> None:
        source = self.session.current_source
        if not source:
            return
        if self._is_archive_source():
            if not self.session.current_archive_dir:
                return
            self.session.current_archive_dir = SourceCatalog.parent_of(self.session.current_archive_dir)
            self.refresh_source_list()
            return
        parent = Path(source).parent
        if parent != Path(source):
            self.session.current_source = str(parent)
            self.refresh_source_list()

    def on_navigate_home(self) -> None:
        if self._is_archive_source():
            self.session.current_archive_dir = ""
            self.refresh_source_list()
        elif self.state.last_source:
            self.session.current_source = self.state.last_source
            self.refresh_source_list()

    def on_source_activated(self, row: QListWidgetItem) -> None:
        entry = row.data(ENTRY_ROLE)
        if not isinstance(entry, CatalogEntry):
            return
        if entry.is_directory:
            if entry.archive_path:
                self.session.current_archive_dir = entry.path
            else:
                self.session.current_source = entry.path
            self.refresh_source_list()
        elif entry.is_audio:
            self.add_entries([entry], self.session.current_folder)

    def on_source_selection(self) -> None:
        entries = self.source_list.selected_entries()
        if len(entries) == 1:
            entry = entries[0]
            self._start_preview(lambda: load_entry_preview(entry), entry.name)

    # ------------------------------------------------------------------
    # Preview
    def _start_preview(self, loader: Any, label: str) -> None:
        self.preview_label.setText(f"Loading {label}...")
        runner = TaskRunner(lambda _log, _progress: loader(), name="preview")
        runner.finished.connect(lambda info: self._show_preview(label, info))
        runner.failed.connect(lambda msg: self.preview_label.setText(msg))
        self.preview_runner = runner
        runner.start()

    def _show_preview(self, label: str, info: PreviewData) -> None:
        self.preview_label.setText(
            f"{label}: {info.duration:.2f}s, {info.sample_rate} Hz, {info.channels} ch, {info.subtype}"
        )

    # ------------------------------------------------------------------
    # Pack tree
    def refresh_pack_tree(self) -> None:
        pack = self.session.pack
        self.pack_tree.clear()
        top = QTreeWidgetItem([pack.name, ""])
        top.setData(0, NODE_ROLE, ("root", None))
        self.pack_tree.addTopLevelItem(top)

        nodes: dict[str, QTreeWidgetItem] = {}
        for folder_path in pack.folders:
            head, _, name = folder_path.rpartition("/")
            parent = nodes.get(head, top) if head else top
            node = QTreeWidgetItem(parent, [name, ""])
            node.setData(0, NODE_ROLE, ("folder", folder_path))
            nodes[folder_path] = node

        for scope, items in pack.iter_scopes():
            parent = nodes.get(scope, top) if scope else top
            for item in items:
                row = QTreeWidgetItem(parent, [item.name, format_size(item.size)])
                row.setData(0, NODE_ROLE, ("item", scope, item.virtual_path))

        self.pack_tree.expandAll()
        if self.session.current_folder in nodes:
            self.pack_tree.setCurrentItem(nodes[self.session.current_folder])
        self.stats_label.setText(f"{pack.item_count()} items, {format_size(pack.total_size())}")

    def folder_for_node(self, node: Optional[QTreeWidgetItem]) -> Optional[str]:
        if node is None:
            return self.session.current_folder
        data = node.data(0, NODE_ROLE)
        if not data:
            return None
        if data[0] == "folder":
            return data[1]
        if data[0] == "item":
            return data[1]
        return None

    def _selected_node(self) -> Optional[tuple]:
        node = self.pack_tree.currentItem()
        return node.data(0, NODE_ROLE) if node is not None else None

    def on_pack_selection(self) -> None:
        data = self._selected_node()
        if not data:
            return
        if data[0] == "item":
            ref = self.session.pack.find_item(data[1], data[2])
            if ref is not None:
                self._start_preview(lambda: load_item_preview(ref), ref.name)
        self.session.current_folder = self.folder_for_node(self.pack_tree.currentItem())

    def add_entries(self, entries: list[CatalogEntry], folder: Optional[str]) -> None:
        added, rejected = 0, []
        for entry in entries:
            try:
                self.session.add_entry(entry, target=folder or "")
                added += 1
            except PackModelError as exc:
                rejected.append(f"{entry.name} ({exc.message})")
        self.refresh_pack_tree()
        where = f"folder {folder}" if folder else "root"
        message = f"Added {added} item(s) to {where}"
        if rejected:
            message += f"; skipped {', '.join(rejected)}"
        self._set_status(message)

    def on_new_pack(self) -> None:
        name = dialogs.prompt_text(self, "Create New Pack", "Enter pack name:", self.state.default_pack_name)
        if name is None:
            return
        self.session.new_pack(name)
        self.refresh_pack_tree()
        self._set_status("New pack created")

    def on_new_folder(self) -> None:
        data = self._selected_node()
        parent = None
        if data and data[0] == "folder":
            parent = data[1]
        name = dialogs.prompt_text(self, "Create New Folder", "Enter folder name:", defaults.DEFAULT_FOLDER_NAME)
        if name is None:
            return
        try:
            folder_path = self.session.create_folder(name, parent=parent)
        except PackModelError as exc:
            dialogs.warn(self, "New folder", str(exc))
            return
        self.refresh_pack_tree()
        self._set_status(f"Created folder {folder_path}")

    def on_rename(self) -> None:
        data = self._selected_node()
        if not data:
            return
        try:
            if data[0] == "root":
                name = dialogs.prompt_text(self, "Rename Pack", "Enter pack name:", self.session.pack.name)
                if name is None:
                    return
                self.session.pack.name = name
            elif data[0] == "folder":
                current = data[1].rpartition("/")[2]
                name = dialogs.prompt_text(self, "Rename Folder", "Enter new name:", current)
                if name is None:
                    return
                self.session.rename_folder(data[1], name)
            else:
                name = dialogs.prompt_text(self, "Rename Item", "Enter new name:", data[2])
                if name is None:
                    return
                self.session.pack.rename_item(data[1], data[2], name)
        except PackModelError as exc:
            dialogs.warn(self, "Rename", str(exc))
            return
        self.refresh_pack_tree()
        self._set_status(f"Renamed to {name}")

    def on_delete(self) -> None:
        data = self._selected_node()
        if not data or data[0] == "root":
            return
        if data[0] == "folder":
            self.session.delete_folder(data[1])
            self._set_status(f"Deleted folder {data[1]}")
        else:
            if self.session.pack.remove_item(data[1], data[2]):
                self._set_status(f"Removed {data[2]}")
        self.refresh_pack_tree()

    def on_clear_pack(self) -> None:
        if not dialogs.confirm(
            self, "Clear Pack", "Are you sure you want to clear the entire pack? This cannot be undone."
        ):
            return
        self.session.clear()
        self.refresh_pack_tree()
        self._set_status("Pack cleared")

    # ------------------------------------------------------------------
    # Export / combine
    def _busy(self) -> bool:
        if self.runner is not None and self.runner.is_running():
            self._set_status("Another export is still running")
            return True
        return False

    def _export_dir(self) -> Path:
        return Path(self.state.export_dir) if self.state.export_dir else Path.home()

    def on_export_pack(self) -> None:
        if self._busy():
            return
        pack = self.session.pack
        if pack.is_empty():
            self._set_status("No items to export")
            return
        dest = dialogs.ask_save_zip(self, "Save Sample Pack", self._export_dir() / pack.default_export_filename())
        if dest is None:
            self._set_status("Pack export cancelled")
            return
        self.state.export_dir = str(dest.parent)
        self._save_state()

        snapshot: Pack = pack.snapshot()
        materializer = PackMaterializer(
            temp_root=Path(self.state.temp_dir) if self.state.temp_dir else None,
            workers=self.state.workers,
            logs_dir=self.config_service.get_logs_dir() if self.state.write_export_logs else None,
        )

        def task(log: Any, progress: Any) -> ExportReport:
            return materializer.materialize(
                snapshot, dest, log_callback=log, log_to_console=False, progress_callback=progress
            )

        self._run(task, "export", self.on_export_finished)
        self._set_status("Preparing pack for export...")

    def on_export_finished(self, report: ExportReport) -> None:
        self.progress.setVisible(False)
        if report.status is ExportStatus.EMPTY_PACK:
            self._set_status(report.summary())
            return
        self._set_status(f"{report.summary()} -> {report.output_path}")

    def on_combine_zips(self) -> None:
        if self._busy():
            return
        paths = dialogs.ask_open_zips(self, self.state.last_source)
        if not paths:
            return
        combiner = BatchCombiner(
            temp_root=Path(self.state.temp_dir) if self.state.temp_dir else None,
            output_dir=self._export_dir(),
        )
        self._run(
            lambda log, _progress: combiner.combine(paths, log_callback=log, log_to_console=False),
            "combine",
            lambda out: self._set_status(f"Combined pack saved to {out}"),
        )
        self._set_status(f"Processing {len(paths)} ZIP(s)...")

    def _run(self, task: Any, name: str, on_done: Any) -> None:
        runner = TaskRunner(task, name=name)
        runner.logLine.connect(lambda line: self._debug_log("INFO", line))
        runner.progress.connect(self.on_progress)
        runner.finished.connect(on_done)
        runner.failed.connect(self.on_task_failed)
        self.runner = runner
        runner.start()

    def on_progress(self, done: int, total: int, label: str) -> None:
        self.progress.setVisible(True)
        self.progress.setRange(0, max(1, total))
        self.progress.setValue(done)
        self.statusBar().showMessage(f"Processing {label}...")

    def on_task_failed(self, message: str) -> None:
        self.progress.setVisible(False)
        self._debug_log("ERROR", message)
        self._set_status(message.splitlines()[0])
        dialogs.warn(self, "PackForge", message)

    # ------------------------------------------------------------------
    # Layout files
    def on_save_layout(self) -> None:
        pack = self.session.pack
        path = dialogs.ask_json(self, "Save pack layout", self._export_dir() / f"{pack.name}.json", save=True)
        if path is None:
            return
        try:
            self.config_service.save_manifest(pack.to_manifest(), path)
        except (OSError, PackForgeError) as exc:
            dialogs.warn(self, "Save layout", str(exc))
            return
        self._set_status(f"Saved layout to {path}")

    def on_open_layout(self) -> None:
        path = dialogs.ask_json(self, "Open pack layout", self._export_dir() / "pack.json", save=False)
        if path is None:
            return
        try:
            pack = Pack.from_manifest(self.config_service.load_manifest(path))
        except PackForgeError as exc:
            dialogs.warn(self, "Open layout", str(exc))
            return
        self.session.pack = pack
        self.session.current_folder = None
        self.refresh_pack_tree()
        self._set_status(f"Loaded layout {pack.name}")
