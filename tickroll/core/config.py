"""User preferences persisted as JSON at ``~/.tickroll/config.json``.

Only editor preferences live here (grid, zoom, MIDI feedback port).
Songs themselves are never written by this module.
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)


DEFAULT_CONFIG = {
    "version": "1.0",
    "editor": {
        "timebase": 480,
        "quantize_denominator": 4,  # 120 ticks at timebase 480
        "quantize_enabled": True,
        "dotted": False,
        "triplet": False,
        "new_note_velocity": 100,
        "scale_x": 1.0,
        "scale_y": 1.0,
    },
    "midi": {
        "output_port": "",  # "" = no live feedback
        "send_feedback": True,
    },
    "tempo": {
        "max_bpm": 500,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """Dot-path access to the preferences file.

    Keys missing from the file fall back to :data:`DEFAULT_CONFIG`.  A file
    that cannot be read or parsed is logged and replaced by the defaults in
    memory; it is only overwritten on the next write.
    """

    def __init__(self, config_dir: Path | None = None) -> None:
        if config_dir is None:
            config_dir = Path.home() / ".tickroll"
        self.config_dir = config_dir
        self.config_file = config_dir / "config.json"
        self._config: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        if not self.config_file.exists():
            self._config = copy.deepcopy(DEFAULT_CONFIG)
            self._save()
            return self._config
        try:
            with open(self.config_file, encoding="utf-8") as f:
                loaded = json.load(f)
            if not isinstance(loaded, dict):
                raise ValueError("config root must be an object")
        except (ValueError, OSError):
            log.warning("Failed to load %s, using defaults", self.config_file, exc_info=True)
            return copy.deepcopy(DEFAULT_CONFIG)
        return _deep_merge(DEFAULT_CONFIG, loaded)

    def _save(self) -> None:
        try:
            with open(self.config_file, "w", encoding="utf-8") as f:
                json.dump(self._config, f, indent=2, ensure_ascii=False)
        except OSError:
            log.warning("Failed to save %s", self.config_file, exc_info=True)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Value at a dot path such as ``"editor.quantize_denominator"``.

        Returns *default* when any step of the path is missing or walks
        into a non-object.
        """
        value: Any = self._config
        for key in key_path.split("."):
            if not isinstance(value, dict):
                return default
            value = value.get(key)
            if value is None:
                return default
        return value

    def set(self, key_path: str, value: Any) -> None:
        self.update({key_path: value})

    def update(self, values: Mapping[str, Any]) -> None:
        """Write several dot-path keys and save the file once."""
        for key_path, value in values.items():
            *parents, leaf = key_path.split(".")
            target = self._config
            for key in parents:
                if not isinstance(target.get(key), dict):
                    target[key] = {}
                target = target[key]
            target[leaf] = value
        self._save()


_global_config: ConfigManager | None = None


def get_config() -> ConfigManager:
    """Config for the running application.

    Only the entry point calls this; everything below it receives the
    manager (or the values read from it) as an argument.
    """
    global _global_config
    if _global_config is None:
        _global_config = ConfigManager()
    return _global_config
