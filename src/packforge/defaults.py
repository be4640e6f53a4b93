"""Centralized defaults for catalog listing, pack export and preview.

Every component reads its fallback values from here so that a single
``config.json`` override (see :func:`apply_overrides`) changes them
everywhere.
"""

from __future__ import annotations

from typing import Any, Dict, List

# ---------------------------------------------------------------------------
# Catalog
AUDIO_EXTENSIONS: List[str] = ["wav", "mp3", "ogg", "flac", "aiff", "aif"]

# Names (or name prefixes) hidden from catalog listings
IGNORE_RULES: List[str] = ["__MACOSX", ".DS_Store", "._"]

# ---------------------------------------------------------------------------
# Pack model
DEFAULT_PACK_NAME = "New Pack"
DEFAULT_FOLDER_NAME = "New Folder"

# ---------------------------------------------------------------------------
# Export / combine
COMPRESSION_LEVEL = 9
EXPORT_WORKERS = 1
TEMP_PACK_PREFIX = "sample-pack-"
TEMP_BATCH_PREFIX = "batch-zip-"
COMBINED_OUTPUT_PREFIX = "combined-pack-"

# ---------------------------------------------------------------------------
# Preview
PREVIEW_PEAKS = 512

# Keys accepted from config.json, mapped onto the module globals above
CONFIG_KEYS: Dict[str, str] = {
    "audio_extensions": "AUDIO_EXTENSIONS",
    "ignore_rules": "IGNORE_RULES",
    "default_pack_name": "DEFAULT_PACK_NAME",
    "compression_level": "COMPRESSION_LEVEL",
    "workers": "EXPORT_WORKERS",
    "preview_peaks": "PREVIEW_PEAKS",
}


def apply_overrides(data: Dict[str, Any]) -> None:
    """Merge config values into module globals (best-effort).

    Only keys listed in :data:`CONFIG_KEYS` are considered, and a value
    replaces the default only when its type matches.
    """
    if not isinstance(data, dict):
        return

    module_globals = globals()
    for key, value in data.items():
        target = CONFIG_KEYS.get(key)
        if target is None:
            continue
        current = module_globals[target]
        if isinstance(current, list) and isinstance(value, list):
            module_globals[target] = [str(v) for v in value if isinstance(v, str) and v]
        elif isinstance(current, bool) or isinstance(value, bool):
            continue
        elif isinstance(current, int) and isinstance(value, int):
            module_globals[target] = value
        elif isinstance(current, str) and isinstance(value, str) and value.strip():
            module_globals[target] = value.strip()


def audio_extensions() -> set[str]:
    """Return the active audio extension set, lower case and without dots."""
    return {ext.lower().lstrip(".") for ext in AUDIO_EXTENSIONS}


def is_audio_name(name: str) -> bool:
    """Return ``True`` when ``name`` carries one of the audio extensions."""
    _, dot, ext = name.rpartition(".")
    if not dot:
        return False
    return ext.lower() in audio_extensions()


def should_ignore(name: str) -> bool:
    for rule in IGNORE_RULES:
        if name == rule or name.startswith(rule):
            return True
    return False
