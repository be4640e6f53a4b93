"""Configuration management for PackForge.

This module centralises all logic related to finding and loading
configuration files.  It supports both AppData and portable installation
modes, resolves the appropriate configuration directory, and exposes
helpers to read/write JSON files with JSON schema validation.  The same
validation is used for pack manifests (explicit "save pack layout" files).

Portable mode is controlled via a ``portable.flag`` file located alongside
the application or by passing ``--portable`` to the CLI.  The flag file
takes precedence over the command line.

Example usage::

    from packforge.config_service import ConfigService

    config_service = ConfigService(app_dir=Path(__file__).parent)
    cfg = config_service.load_config()
    cfg["export_dir"] = "C:/Samples/Packs"
    config_service.save_config(cfg)

"""

from __future__ import annotations

import json
import os
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema

from . import defaults
from .errors import ConfigError

SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"
RECENT_SOURCES_LIMIT = 10


def _get_appdata_root(app_name: str = "PackForge") -> Path:
    """Return the platform-specific base directory for config files."""
    system = platform.system().lower()
    if system == "windows":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / app_name
        return Path.home() / f"AppData/Roaming/{app_name}"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / app_name
    return Path.home() / ".config" / app_name


def _load_json(path: Path) -> Any:
    if not path.exists():
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _save_json(data: Any, file_path: Path) -> None:
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with file_path.open("w", encoding="utf-8", newline="\n") as f:
        json.dump(data, f, indent=2)


def _validate_json(data: Any, schema_path: Path) -> None:
    """Validate ``data`` against the schema at ``schema_path``."""
    schema = _load_json(schema_path)
    if not schema:
        return
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        location = "/".join(str(p) for p in exc.absolute_path)
        where = f" at '{location}'" if location else ""
        raise ConfigError(f"Invalid configuration{where}: {exc.message}") from exc


@dataclass
class ConfigService:
    """Resolve and manage PackForge configuration."""

    app_dir: Path
    portable_flag_filename: str = "portable.flag"
    config_filename: str = "config.json"
    config_schema: str = "config.schema.json"
    manifest_schema: str = "pack.schema.json"
    schema_dir: Path = SCHEMA_DIR
    _cached_mode: Optional[bool] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.app_dir = Path(self.app_dir)
        self.schema_dir = Path(self.schema_dir)

    def _portable_flag_exists(self) -> bool:
        return (self.app_dir / self.portable_flag_filename).exists()

    def detect_mode(self, cli_portable: bool = False) -> bool:
        """Return ``True`` if portable mode should be used.

        Portable mode is selected if a ``portable.flag`` file exists in the
        application directory, or else if ``cli_portable`` is truthy.  The
        result is cached for subsequent calls.
        """
        if self._cached_mode is None:
            if self._portable_flag_exists():
                self._cached_mode = True
            else:
                self._cached_mode = bool(cli_portable)
        return self._cached_mode

    def get_config_dir(self, cli_portable: bool = False) -> Path:
        if self.detect_mode(cli_portable=cli_portable):
            return self.app_dir
        return _get_appdata_root()

    def get_config_path(self, cli_portable: bool = False) -> Path:
        return self.get_config_dir(cli_portable) / self.config_filename

    def get_logs_dir(self, cli_portable: bool = False) -> Path:
        return self.get_config_dir(cli_portable) / "logs"

    def get_debug_log_path(self, cli_portable: bool = False) -> Path:
        return self.get_config_dir(cli_portable) / "app-debug.log"

    def get_schema_path(self, schema_name: str) -> Path:
        return self.schema_dir / schema_name

    def load_config(self, cli_portable: bool = False) -> Dict[str, Any]:
        """Load configuration from the resolved path, validating against schema.

        A missing file yields ``{}``.  An unreadable or invalid file prints
        a warning and also yields ``{}`` so the application starts with
        defaults.
        """
        cfg_path = self.get_config_path(cli_portable)
        try:
            data = _load_json(cfg_path)
        except (OSError, ValueError) as exc:
            print(f"Warning: could not read {cfg_path}: {exc}. Falling back to defaults.")
            return {}
        cfg: Dict[str, Any] = data if isinstance(data, dict) else {}
        schema_path = self.get_schema_path(self.config_schema)
        if schema_path.exists():
            try:
                _validate_json(cfg, schema_path)
            except ConfigError as exc:
                print(f"Warning: {exc}. Falling back to defaults.")
                cfg = {}
        return cfg

    def save_config(self, config: Dict[str, Any], cli_portable: bool = False) -> None:
        """Write configuration to disk, validating against the schema first."""
        schema_path = self.get_schema_path(self.config_schema)
        if schema_path.exists():
            _validate_json(config, schema_path)
        _save_json(config, self.get_config_path(cli_portable))

    def apply(self, config: Dict[str, Any]) -> None:
        """Push config values into :mod:`packforge.defaults`."""
        defaults.apply_overrides(config)

    def remember_source(self, config: Dict[str, Any], source: str, cli_portable: bool = False) -> None:
        """Record ``source`` as the most recent folder or archive opened."""
        recent: List[str] = [s for s in config.get("recent_sources", []) if isinstance(s, str) and s != source]
        config["recent_sources"] = [source, *recent][:RECENT_SOURCES_LIMIT]
        config["last_source"] = source
        self.save_config(config, cli_portable)

    # ------------------------------------------------------------------
    # Pack manifests
    # ------------------------------------------------------------------
    def validate_manifest(self, data: Any) -> None:
        _validate_json(data, self.get_schema_path(self.manifest_schema))

    def load_manifest(self, path: Path) -> Dict[str, Any]:
        """Read and validate a pack manifest; raises :class:`ConfigError`."""
        try:
            data = _load_json(Path(path))
        except (OSError, ValueError) as exc:
            raise ConfigError(f"Could not read pack manifest {path}: {exc}") from exc
        if data is None:
            raise ConfigError(f"Pack manifest not found: {path}")
        self.validate_manifest(data)
        return data

    def save_manifest(self, data: Dict[str, Any], path: Path) -> None:
        self.validate_manifest(data)
        _save_json(data, Path(path))

    def is_portable_mode(self) -> bool:
        """Portable mode is enabled when portable.flag exists in app_dir."""
        try:
            return self._portable_flag_exists()
        except OSError:
            return False
