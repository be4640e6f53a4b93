"""Command-line interface for PackForge.

This module exposes subcommands mirroring the GUI actions that make sense
without a window: listing a folder or archive, exporting a saved pack
manifest, combining archives and inspecting a sample.  Each subcommand
delegates to the same services the GUI uses.  Run
``python -m packforge --help`` for usage.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from .catalog import SourceCatalog
from .combiner import BatchCombiner
from .config_service import ConfigService
from .errors import PackForgeError
from .materializer import PackMaterializer
from .pack_model import Pack
from .preview import load_preview
from .sources import Origin

APP_DIR = Path(__file__).resolve().parent


def _parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="packforge",
        description="PackForge - build sample packs from folders and ZIP archives",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--portable",
            "-p",
            action="store_true",
            help="Force portable mode (ignored if portable.flag is present)",
        )
        subparser.add_argument(
            "--verbose",
            action="store_true",
            help="Print progress messages while working",
        )

    # list
    sp = subparsers.add_parser("list", help="List a folder or ZIP archive as the browser would")
    sp.add_argument("path", help="Folder or .zip file")
    sp.add_argument("--dir", default="", help="Directory prefix inside the archive")
    sp.add_argument("--flat", action="store_true", help="Show the full flat archive listing")
    add_common(sp)
    # export
    sp = subparsers.add_parser("export", help="Export a saved pack manifest to a ZIP archive")
    sp.add_argument("manifest", help="Pack manifest (.json)")
    sp.add_argument("output", nargs="?", help="Destination .zip (defaults to <pack name>.zip)")
    sp.add_argument("--workers", type=int, default=None, help="Folders staged in parallel")
    add_common(sp)
    # combine
    sp = subparsers.add_parser("combine", help="Merge several ZIP archives into one")
    sp.add_argument("archives", nargs="+", help="Input .zip files")
    sp.add_argument("--output", "-o", default=None, help="Destination .zip (defaults to a temp file)")
    add_common(sp)
    # preview
    sp = subparsers.add_parser("preview", help="Decode one sample and print its audio summary")
    sp.add_argument("path", help="Audio file, or a .zip when --entry is given")
    sp.add_argument("--entry", default=None, help="Entry path inside the archive")
    add_common(sp)
    return parser.parse_args(argv)


def _load_config(config_service: ConfigService, portable: bool) -> dict:
    config = config_service.load_config(cli_portable=portable)
    config_service.apply(config)
    return config


def _cmd_list(args: argparse.Namespace) -> int:
    warnings: List[str] = []
    catalog = SourceCatalog(warn=warnings.append)
    path = Path(args.path).expanduser()
    if path.is_file() and path.suffix.lower() == ".zip":
        if args.flat:
            entries = list(catalog.open_archive(path))
        else:
            entries = catalog.children(path, args.dir)
    else:
        entries = list(catalog.open_directory(path))
    print(json.dumps([e.to_dict() for e in entries], indent=2))
    for warning in warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    return 1 if warnings else 0


def _cmd_export(args: argparse.Namespace, config_service: ConfigService, config: dict) -> int:
    manifest = config_service.load_manifest(Path(args.manifest).expanduser())
    pack = Pack.from_manifest(manifest)
    if args.output:
        output = Path(args.output).expanduser()
    else:
        export_dir = Path(config["export_dir"]).expanduser() if config.get("export_dir") else Path.cwd()
        output = export_dir / pack.default_export_filename()

    materializer = PackMaterializer(
        temp_root=Path(config["temp_dir"]).expanduser() if config.get("temp_dir") else None,
        logs_dir=config_service.get_logs_dir(args.portable) if config.get("write_export_logs") else None,
    )
    if args.workers:
        materializer.workers = max(1, args.workers)
    report = materializer.materialize(pack, output, log_to_console=args.verbose)
    print(json.dumps(report.to_dict(), indent=2))
    print(report.summary(), file=sys.stderr)
    return 0 if not report.failed_items else 2


def _cmd_combine(args: argparse.Namespace, config: dict) -> int:
    combiner = BatchCombiner(
        temp_root=Path(config["temp_dir"]).expanduser() if config.get("temp_dir") else None,
        output_dir=Path(config["export_dir"]).expanduser() if config.get("export_dir") else None,
    )
    output = combiner.combine(
        [Path(p).expanduser() for p in args.archives],
        output_path=Path(args.output).expanduser() if args.output else None,
        log_to_console=args.verbose,
    )
    print(json.dumps({"output_path": str(output)}, indent=2))
    return 0


def _cmd_preview(args: argparse.Namespace) -> int:
    path = Path(args.path).expanduser()
    if args.entry:
        info = load_preview(Origin.ARCHIVE, args.entry, archive_id=path)
    else:
        info = load_preview(Origin.DISK, path)
    print(json.dumps(info.to_dict(), indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_arguments(argv)
    command = args.command
    cli_portable = bool(getattr(args, "portable", False))
    config_service = ConfigService(app_dir=APP_DIR)
    config = _load_config(config_service, cli_portable)

    try:
        if command == "list":
            return _cmd_list(args)
        if command == "export":
            return _cmd_export(args, config_service, config)
        if command == "combine":
            return _cmd_combine(args, config)
        if command == "preview":
            return _cmd_preview(args)
    except PackForgeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Error: unrecognized command {command}", file=sys.stderr)
    return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
