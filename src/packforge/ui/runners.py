from __future__ import annotations

import threading
from typing import Any, Callable

from PySide6.QtCore import QObject, Signal

from packforge.errors import PackForgeError

# Receives (log, progress) callbacks and returns the result object.
Task = Callable[[Callable[[str], None], Callable[[int, int, str], None]], Any]


class TaskRunner(QObject):
    """Run a blocking task on a background thread and report through signals.

    Qt delivers the signals on the GUI thread, so slots may touch widgets.
    """

    finished = Signal(object)
    failed = Signal(str)
    logLine = Signal(str)
    progress = Signal(int, int, str)

    def __init__(self, task: Task, name: str = "task") -> None:
        super().__init__()
        self.task = task
        self.name = name
        self._thread: threading.Thread | None = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, name=f"packforge-{self.name}", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        try:
            result = self.task(self.logLine.emit, self.progress.emit)
        except PackForgeError as exc:
            self.failed.emit(str(exc))
            return
        except Exception as exc:
            self.failed.emit(f"{type(exc).__name__}: {exc}")
            return
        self.finished.emit(result)
