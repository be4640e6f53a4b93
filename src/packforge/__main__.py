"""``python -m packforge [gui | <command> ...]``"""

from __future__ import annotations

import sys


def _run_gui() -> int:
    try:
        from packforge.ui.app import main as gui_main
    except ModuleNotFoundError as e:
        if "PySide6" not in str(e):
            raise
        print('The PackForge window needs PySide6:\n  pip install -e ".[gui]"\nThe CLI works without it:\n  packforge --help')
        return 1
    return int(gui_main())


def main() -> int:
    args = sys.argv[1:]
    if args and args[0].lower() == "gui":
        return _run_gui()

    from packforge.cli import main as cli_main

    return int(cli_main(args))


if __name__ == "__main__":
    raise SystemExit(main())
