# build_gui_entry.py
from __future__ import annotations

from packforge.ui.app import main

if __name__ == "__main__":
    raise SystemExit(main())
