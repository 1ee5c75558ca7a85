"""Configuration loading for sysdash.

Loads settings from TOML config files with sensible defaults.
Search order: explicit --config path → ~/.config/sysdash/config.toml → defaults only.
"""

from __future__ import annotations

import sys
import tomllib
from pathlib import Path
from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "scan_root": "~",
    "top_processes": 15,
    "top_children": 5,
    "scan_max_depth": 0,  # 0 = unlimited
    "scan_time_budget": 0.0,  # seconds, 0 = no budget
    "rescan_after": 30.0,  # seconds a finished scan stays fresh
    "thresholds": {
        "cpu_percent": {"warning": 80.0, "critical": 95.0},
        "ram_percent": {"warning": 85.0, "critical": 95.0},
        "swap_percent": {"warning": 50.0, "critical": 80.0},
        "disk_percent": {"warning": 85.0, "critical": 95.0},
        "cpu_temp": {"warning": 80.0, "critical": 90.0},
    },
}

_SCALAR_KEYS = (
    "scan_root",
    "top_processes",
    "top_children",
    "scan_max_depth",
    "scan_time_budget",
    "rescan_after",
)

_INT_KEYS = ("top_processes", "top_children", "scan_max_depth")
_NUMBER_KEYS = ("scan_time_budget", "rescan_after")

_DEFAULT_PATH = Path.home() / ".config" / "sysdash" / "config.toml"


class ConfigError(ValueError):
    """A config value has the wrong type."""


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base. Nested dicts are merged at the first level only."""
    merged = dict(base)
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def validate_config(config: dict[str, Any]) -> None:
    """Check the types of the keys sysdash reads.

    Raises:
        ConfigError: naming the first offending key.
    """
    if not isinstance(config["scan_root"], str):
        raise ConfigError("scan_root must be a string")
    for key in _INT_KEYS:
        value = config[key]
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{key} must be an integer, got {value!r}")
    for key in _NUMBER_KEYS:
        value = config[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"{key} must be a number, got {value!r}")

    thresholds = config["thresholds"]
    if not isinstance(thresholds, dict):
        raise ConfigError("thresholds must be a table")
    for metric, levels in thresholds.items():
        if not isinstance(levels, dict):
            raise ConfigError(f"thresholds.{metric} must be a table")
        for level in ("warning", "critical"):
            value = levels.get(level)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"thresholds.{metric}.{level} must be a number, got {value!r}")


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration, merging user TOML over defaults.

    Args:
        path: Explicit config file path (from --config). If None, tries the
              default location ~/.config/sysdash/config.toml.

    Returns:
        Merged configuration dict.

    Raises:
        SystemExit: If an explicit path doesn't exist, can't be parsed or
            holds a value of the wrong type.
    """
    if path is not None:
        if not path.is_file():
            print(f"sysdash: config file not found: {path}", file=sys.stderr)
            raise SystemExit(1)
        try:
            config = _deep_merge(DEFAULT_CONFIG, tomllib.loads(path.read_text(encoding="utf-8")))
            validate_config(config)
        except tomllib.TOMLDecodeError as e:
            print(f"sysdash: invalid TOML in {path}: {e}", file=sys.stderr)
            raise SystemExit(1) from e
        except ConfigError as e:
            print(f"sysdash: invalid config in {path}: {e}", file=sys.stderr)
            raise SystemExit(1) from e
        return config

    if _DEFAULT_PATH.is_file():
        try:
            config = _deep_merge(
                DEFAULT_CONFIG, tomllib.loads(_DEFAULT_PATH.read_text(encoding="utf-8"))
            )
            validate_config(config)
            return config
        except tomllib.TOMLDecodeError:
            print(
                f"sysdash: warning: ignoring invalid TOML in {_DEFAULT_PATH}",
                file=sys.stderr,
            )
        except ConfigError as e:
            print(
                f"sysdash: warning: ignoring {_DEFAULT_PATH}: {e}",
                file=sys.stderr,
            )

    return dict(DEFAULT_CONFIG)


def optional_limit(value: Any) -> Any:
    """Map the TOML "0 means no limit" convention to None."""
    if not value or value < 0:
        return None
    return value


def dump_default_config() -> str:
    """Return the default configuration as a TOML string."""
    lines = [
        "# sysdash configuration",
        "# Place this file at ~/.config/sysdash/config.toml",
        "",
    ]
    for key in _SCALAR_KEYS:
        value = DEFAULT_CONFIG[key]
        if isinstance(value, str):
            lines.append(f'{key} = "{value}"')
        else:
            lines.append(f"{key} = {value}")
    lines.append("")

    # Thresholds colour the gauges; nothing alerts on them
    for metric, levels in DEFAULT_CONFIG["thresholds"].items():
        lines.append(f"[thresholds.{metric}]")
        lines.append(f"warning = {levels['warning']}")
        lines.append(f"critical = {levels['critical']}")
        lines.append("")

    return "\n".join(lines) + "\n"
