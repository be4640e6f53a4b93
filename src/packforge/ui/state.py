from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from packforge import defaults


@dataclass(slots=True)
class AppState:
    export_dir: str = ""
    temp_dir: str = ""
    last_source: str = ""
    recent_sources: list[str] = field(default_factory=list)
    default_pack_name: str = defaults.DEFAULT_PACK_NAME
    workers: int = defaults.EXPORT_WORKERS
    write_export_logs: bool = True

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "AppState":
        recent = config.get("recent_sources")
        workers = config.get("workers", defaults.EXPORT_WORKERS)
        return cls(
            export_dir=str(config.get("export_dir", "")),
            temp_dir=str(config.get("temp_dir", "")),
            last_source=str(config.get("last_source", "")),
            recent_sources=[str(s) for s in recent] if isinstance(recent, list) else [],
            default_pack_name=str(config.get("default_pack_name") or defaults.DEFAULT_PACK_NAME),
            workers=workers if isinstance(workers, int) and workers > 0 else defaults.EXPORT_WORKERS,
            write_export_logs=bool(config.get("write_export_logs", True)),
        )

    def to_config_updates(self) -> dict[str, Any]:
        return {
            "export_dir": self.export_dir,
            "temp_dir": self.temp_dir,
            "last_source": self.last_source,
            "recent_sources": list(self.recent_sources),
            "default_pack_name": self.default_pack_name,
            "workers": self.workers,
            "write_export_logs": self.write_export_logs,
        }
