"""Configuration management for hyss.

Configuration priority (highest to lowest):
1. CLI overrides (passed to load_config)
2. Environment variables (HYSS_*)
3. Config file (~/.config/hyss/config.yaml)
4. Built-in defaults
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Any

import yaml
from platformdirs import user_cache_dir, user_config_dir, user_data_dir, user_runtime_dir

ENV_PREFIX = "HYSS"
APP_NAME = "hyss"
CONFIG_DIR = Path(user_config_dir(APP_NAME))
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.yaml"
# satty and swappy read their configs from the XDG config home itself
TOOL_CONFIG_DIR = Path(user_config_dir())


@dataclass
class Config:
    """hyss configuration."""

    # Storage roots
    data_dir: Path = field(default_factory=lambda: Path(user_data_dir(APP_NAME)))
    cache_dir: Path = field(default_factory=lambda: Path(user_cache_dir(APP_NAME)))
    tool_config_dir: Path = field(default_factory=lambda: TOOL_CONFIG_DIR)
    output_dir: Path = field(default_factory=lambda: Path.home() / "Pictures" / "Screenshots")
    lock_file: Path = field(default_factory=lambda: Path(user_runtime_dir(APP_NAME)) / "hyss.lock")

    # Screenshot behavior
    filename_format: str = "%y%m%d_%Hh%Mm%Ss_hyss.png"
    copy_to_clipboard: bool = True
    annotation_tool: str = "auto"

    # Desktop notifications
    notifications: bool = True
    notification_urgency: str = "normal"
    notification_timeout_ms: int = 5000

    # Capability cache
    cache_format: str = "json"
    capability_ttl_hours: int = 24
    probe_timeout: float = 5.0
    freeze_settle_ms: int = 200

    # Retention
    backup_retention_days: int = 30
    snapshot_retention_days: int = 7
    migration_history_limit: int = 50
    test_history_limit: int = 20

    def __post_init__(self):
        # Convert string paths to Path objects
        for key in PATH_KEYS:
            value = getattr(self, key)
            if isinstance(value, str):
                setattr(self, key, Path(value))

    @property
    def capability_cache_file(self) -> Path:
        return self.cache_dir / "tool-capabilities.json"

    @property
    def ledger_file(self) -> Path:
        return self.data_dir / "migration-metadata.json"

    @property
    def test_history_file(self) -> Path:
        return self.data_dir / "compatibility-test-results.json"

    @property
    def snapshot_dir(self) -> Path:
        return self.data_dir / "backups"


ANNOTATION_TOOLS = {"auto", "satty", "swappy", "none"}
CACHE_FORMATS = {"json", "text"}
URGENCY_LEVELS = {"low", "normal", "critical"}
PATH_KEYS = {
    "data_dir",
    "cache_dir",
    "tool_config_dir",
    "output_dir",
    "lock_file",
}
INT_KEYS = {
    "notification_timeout_ms",
    "capability_ttl_hours",
    "freeze_settle_ms",
    "backup_retention_days",
    "snapshot_retention_days",
    "migration_history_limit",
    "test_history_limit",
}
BOOL_KEYS = {"copy_to_clipboard", "notifications"}
FLOAT_KEYS = {"probe_timeout"}


def _env(name: str) -> Optional[str]:
    return os.environ.get(f"{ENV_PREFIX}_{name}")


def _config_path_from_env() -> Optional[Path]:
    value = _env("CONFIG") or _env("CONFIG_PATH")
    if value:
        return Path(value).expanduser()
    return None


def _load_config_file(path: Path, strict: bool = False) -> dict:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except Exception as exc:
        if strict:
            raise ValueError(f"Failed to parse config file {path}: {exc}")
        return {}

    if not isinstance(data, dict):
        if strict:
            raise ValueError(f"Config file {path} must be a mapping")
        return {}

    return data


def _expand_path(value: Any) -> Any:
    if value is None:
        return value
    return str(Path(value).expanduser())


def config_defaults() -> dict:
    return {
        "data_dir": str(Path(user_data_dir(APP_NAME))),
        "cache_dir": str(Path(user_cache_dir(APP_NAME))),
        "tool_config_dir": str(TOOL_CONFIG_DIR),
        "output_dir": str(Path.home() / "Pictures" / "Screenshots"),
        "lock_file": str(Path(user_runtime_dir(APP_NAME)) / "hyss.lock"),
        "filename_format": "%y%m%d_%Hh%Mm%Ss_hyss.png",
        "copy_to_clipboard": True,
        "annotation_tool": "auto",
        "notifications": True,
        "notification_urgency": "normal",
        "notification_timeout_ms": 5000,
        "cache_format": "json",
        "capability_ttl_hours": 24,
        "probe_timeout": 5.0,
        "freeze_settle_ms": 200,
        "backup_retention_days": 30,
        "snapshot_retention_days": 7,
        "migration_history_limit": 50,
        "test_history_limit": 20,
    }


def _load_env_overrides() -> dict:
    config: dict[str, Any] = {}

    for key in config_defaults():
        value = _env(key.upper())
        if value is None:
            continue
        if key in PATH_KEYS:
            config[key] = _expand_path(value)
        elif key in INT_KEYS:
            try:
                config[key] = int(value)
            except ValueError:
                continue
        elif key in FLOAT_KEYS:
            try:
                config[key] = float(value)
            except ValueError:
                continue
        elif key in BOOL_KEYS:
            config[key] = value.lower() in ("true", "1", "yes", "on")
        else:
            config[key] = value

    return config


def resolve_config_path(config_path: Optional[Path] = None) -> Path:
    return config_path or _config_path_from_env() or DEFAULT_CONFIG_PATH


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[dict] = None,
    strict: bool = False,
) -> Config:
    """Load configuration from all sources."""
    resolved_path = resolve_config_path(config_path)

    config_dict = config_defaults()
    file_config = _load_config_file(resolved_path, strict=strict)
    config_dict.update({k: v for k, v in file_config.items() if k in config_dict})
    config_dict.update(_load_env_overrides())

    if overrides:
        for key, value in overrides.items():
            if value is not None:
                config_dict[key] = value

    for key in PATH_KEYS:
        if key in config_dict and config_dict[key] is not None:
            config_dict[key] = _expand_path(config_dict[key])

    return Config(**config_dict)


# Global config instance (lazy loaded)
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def config_schema() -> dict:
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "properties": {
            "data_dir": {"type": "string"},
            "cache_dir": {"type": "string"},
            "tool_config_dir": {"type": "string"},
            "output_dir": {"type": "string"},
            "lock_file": {"type": "string"},
            "filename_format": {"type": "string"},
            "copy_to_clipboard": {"type": "boolean"},
            "annotation_tool": {"type": "string", "enum": sorted(ANNOTATION_TOOLS)},
            "notifications": {"type": "boolean"},
            "notification_urgency": {"type": "string", "enum": sorted(URGENCY_LEVELS)},
            "notification_timeout_ms": {"type": "integer", "minimum": 0},
            "cache_format": {"type": "string", "enum": sorted(CACHE_FORMATS)},
            "capability_ttl_hours": {"type": "integer", "minimum": 0},
            "probe_timeout": {"type": "number", "exclusiveMinimum": 0},
            "freeze_settle_ms": {"type": "integer", "minimum": 0},
            "backup_retention_days": {"type": "integer", "minimum": 1},
            "snapshot_retention_days": {"type": "integer", "minimum": 1},
            "migration_history_limit": {"type": "integer", "minimum": 1},
            "test_history_limit": {"type": "integer", "minimum": 1},
        },
        "additionalProperties": False,
    }


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config_dict(data: Any) -> list[str]:
    errors: list[str] = []
    if not isinstance(data, dict):
        return ["Config must be a mapping/object"]

    schema = config_schema()
    props = schema.get("properties", {})

    for key in data.keys():
        if key not in props:
            errors.append(f"Unknown config key: {key}")

    for key, value in data.items():
        if key not in props:
            continue
        spec = props[key]
        expected = spec.get("type")
        if expected == "string" and not isinstance(value, str):
            errors.append(f"{key} must be a string")
            continue
        if expected == "integer" and not _is_int(value):
            errors.append(f"{key} must be an integer")
            continue
        if expected == "number" and not (_is_int(value) or isinstance(value, float)):
            errors.append(f"{key} must be a number")
            continue
        if expected == "boolean" and not isinstance(value, bool):
            errors.append(f"{key} must be a boolean")
            continue

        if "enum" in spec and value not in spec["enum"]:
            errors.append(f"{key} must be one of: {', '.join(spec['enum'])}")
        if "minimum" in spec and value < spec["minimum"]:
            errors.append(f"{key} must be >= {spec['minimum']}")
        if "exclusiveMinimum" in spec and value <= spec["exclusiveMinimum"]:
            errors.append(f"{key} must be > {spec['exclusiveMinimum']}")

    return errors


def validate_config_file(config_path: Optional[Path] = None) -> list[str]:
    path = resolve_config_path(config_path)
    if not path.exists():
        return []
    data = _load_config_file(path, strict=True)
    return validate_config_dict(data)


def config_to_dict(config: Config) -> dict:
    def _format(value: Any) -> Any:
        if isinstance(value, Path):
            return str(value)
        return value

    return {key: _format(getattr(config, key)) for key in config_defaults()}


def dump_config(data: dict) -> str:
    """Render a config mapping as the YAML written by `hyss config init`."""
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
