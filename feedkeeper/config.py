"""Configuration for feedkeeper.

Settings come from an optional YAML file and are then overridden by
``FEEDKEEPER_*`` environment variables.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

ENV_PREFIX = "FEEDKEEPER_"
DEFAULT_CONFIG_PATH = Path.home() / ".feedkeeper" / "config.yaml"


@dataclass
class ServerConfig:
    """Runtime settings for the server and the fetch pipeline."""

    name: str = "feedkeeper"
    log_level: str = "INFO"
    log_file: Optional[str] = None
    db_path: str = str(Path.home() / ".feedkeeper" / "feedkeeper.db")
    request_timeout: float = 30.0
    user_agent: str = "feedkeeper/1.0 (RSS Feed Reader)"
    max_concurrent_fetches: int = 8


def _coerce(value: str, current: Any) -> Any:
    if isinstance(current, bool):
        return value.lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    return value


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_config(path: Optional[Union[str, Path]] = None) -> ServerConfig:
    """Build a ServerConfig from a YAML file and the environment.

    Args:
        path: YAML file to read. Defaults to FEEDKEEPER_CONFIG or
            ~/.feedkeeper/config.yaml; a missing default file is ignored.

    Returns:
        Populated ServerConfig

    Raises:
        FileNotFoundError: If an explicitly given path does not exist
        ValueError: If the file contains unknown keys or an env value has the wrong type
    """
    explicit = path is not None or ENV_PREFIX + "CONFIG" in os.environ
    if path is None:
        path = os.environ.get(ENV_PREFIX + "CONFIG", DEFAULT_CONFIG_PATH)
    path = Path(path)

    raw: Dict[str, Any] = {}
    if explicit or path.exists():
        raw = load_yaml(path)

    known = {f.name for f in fields(ServerConfig)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown configuration keys in {path}: {sorted(unknown)}")

    config = ServerConfig(**raw)

    for name in known:
        env_value = os.environ.get(ENV_PREFIX + name.upper())
        if env_value is not None:
            setattr(config, name, _coerce(env_value, getattr(config, name)))

    return config


_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Get the process-wide configuration, loading it on first use."""
    global _config

    if _config is None:
        _config = load_config()
    return _config


def set_config(config: ServerConfig) -> None:
    global _config
    _config = config
