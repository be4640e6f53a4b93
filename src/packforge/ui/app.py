from __future__ import annotations

import sys

from PySide6.QtWidgets import QApplication

from packforge import __version__
from packforge.ui.window import PackForgeWindow


def main() -> int:
    app = QApplication(sys.argv[:1])
    app.setApplicationName("PackForge")
    app.setApplicationVersion(__version__)

    win = PackForgeWindow()
    win.show()

    try:
        return app.exec()
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
