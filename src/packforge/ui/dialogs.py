"""Modal prompts.  Every helper returns ``None`` (or ``False``/``[]``) on cancel."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from PySide6.QtWidgets import QFileDialog, QInputDialog, QLineEdit, QMessageBox, QWidget


def prompt_text(parent: QWidget, title: str, label: str, default: str = "") -> Optional[str]:
    text, ok = QInputDialog.getText(parent, title, label, QLineEdit.EchoMode.Normal, default)
    if not ok:
        return None
    text = text.strip()
    return text or None


def confirm(parent: QWidget, title: str, message: str) -> bool:
    reply = QMessageBox.question(
        parent,
        title,
        message,
        QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
        QMessageBox.StandardButton.No,
    )
    return reply == QMessageBox.StandardButton.Yes


def ask_save_zip(parent: QWidget, title: str, default_path: Path) -> Optional[Path]:
    dest, _ = QFileDialog.getSaveFileName(parent, title, str(default_path), "ZIP archives (*.zip)")
    if not dest:
        return None
    path = Path(dest)
    if path.suffix.lower() != ".zip":
        path = path.with_name(path.name + ".zip")
    return path


def ask_open_folder(parent: QWidget, start: str = "") -> Optional[Path]:
    directory = QFileDialog.getExistingDirectory(parent, "Open folder", start or str(Path.home()))
    return Path(directory) if directory else None


def ask_open_zip(parent: QWidget, start: str = "") -> Optional[Path]:
    path, _ = QFileDialog.getOpenFileName(parent, "Open ZIP archive", start or str(Path.home()), "ZIP archives (*.zip)")
    return Path(path) if path else None


def ask_open_zips(parent: QWidget, start: str = "") -> List[Path]:
    paths, _ = QFileDialog.getOpenFileNames(
        parent, "Select ZIP archives to combine", start or str(Path.home()), "ZIP archives (*.zip)"
    )
    return [Path(p) for p in paths]


def ask_json(parent: QWidget, title: str, start: Path, save: bool) -> Optional[Path]:
    if save:
        path, _ = QFileDialog.getSaveFileName(parent, title, str(start), "Pack layout (*.json)")
    else:
        path, _ = QFileDialog.getOpenFileName(parent, title, str(start.parent), "Pack layout (*.json)")
    return Path(path) if path else None


def warn(parent: QWidget, title: str, message: str) -> None:
    QMessageBox.warning(parent, title, message)
