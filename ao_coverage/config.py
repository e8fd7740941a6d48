"""Configuration loading for ao_coverage (.ao-coverage.yml plus environment)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError
from .models import GradientStyle

CONFIG_FILE_NAME = ".ao-coverage.yml"
DEFAULT_UPLOAD_LIMIT = 4194304
DEFAULT_PUBLIC_DIR = Path(__file__).resolve().parent / "public"


@dataclass
class Settings:
    """Effective service settings after merging file and environment sources."""

    host_dir: Path
    token: Optional[str] = None
    upload_limit: int = DEFAULT_UPLOAD_LIMIT
    public_dir: Path = field(default_factory=lambda: DEFAULT_PUBLIC_DIR)
    stage1: float = 95.0
    stage2: float = 80.0
    log_level: str = "info"
    bind_address: str = "localhost"
    port: int = 3000
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "ao-coverage"
    target_url: Optional[str] = None

    @property
    def gradient_style(self) -> GradientStyle:
        return GradientStyle(stage1=self.stage1, stage2=self.stage2)

    @property
    def public_url(self) -> str:
        """Base URL advertised in generated landing files."""
        if self.target_url:
            return self.target_url.rstrip("/")
        return f"http://{self.bind_address}:{self.port}"


def load_settings(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from an optional YAML file, overridden by environment variables."""
    env = os.environ if environ is None else environ
    data: Dict[str, Any] = {}
    if config_path is not None:
        data = _read_config(_resolve_config_path(config_path))

    gradient = _as_dict(data.get("gradient"))
    mongo = _as_dict(data.get("mongo"))

    host_dir = _pick_str(env, "HOST_DIR", data.get("host_dir"))
    if not host_dir:
        raise ConfigError("HOST_DIR must be defined")

    public_dir = _pick_str(env, "PUBLIC_DIR", data.get("public_dir"))
    settings = Settings(
        host_dir=Path(host_dir).expanduser(),
        token=_pick_str(env, "TOKEN", data.get("token")) or None,
        public_dir=Path(public_dir).expanduser() if public_dir else DEFAULT_PUBLIC_DIR,
        log_level=_pick_str(env, "LOG_LEVEL", data.get("log_level")) or "info",
        bind_address=_pick_str(env, "BIND_ADDRESS", data.get("bind_address")) or "localhost",
        mongo_uri=_pick_str(env, "MONGO_URI", mongo.get("uri")) or "mongodb://localhost:27017",
        mongo_db=_pick_str(env, "MONGO_DB", mongo.get("db")) or "ao-coverage",
        target_url=_pick_str(env, "TARGET_URL", data.get("target_url")) or None,
    )

    upload_limit = _as_int("UPLOAD_LIMIT", env.get("UPLOAD_LIMIT", data.get("upload_limit")))
    if upload_limit is not None:
        if upload_limit <= 0:
            raise ConfigError("UPLOAD_LIMIT must be a positive number of bytes")
        settings.upload_limit = upload_limit

    port = _as_int("PORT", env.get("PORT", data.get("port")))
    if port is not None:
        settings.port = port

    stage1 = _as_float("STAGE_1", env.get("STAGE_1", gradient.get("stage1")))
    stage2 = _as_float("STAGE_2", env.get("STAGE_2", gradient.get("stage2")))
    if stage1 is not None:
        settings.stage1 = stage1
    if stage2 is not None:
        settings.stage2 = stage2
    if settings.stage1 < settings.stage2:
        raise ConfigError("STAGE_1 must not be lower than STAGE_2")

    return settings


def check_host_dir(path: Path) -> None:
    """Ensure the host directory is an absolute, readable and writable directory."""
    if not path.is_absolute():
        raise ConfigError(f"HOST_DIR must be an absolute path: {path}")
    if not path.is_dir():
        raise ConfigError(f"HOST_DIR does not exist: {path}")
    if not os.access(path, os.R_OK | os.W_OK):
        raise ConfigError(f"HOST_DIR must be readable and writable: {path}")


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILE_NAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _pick_str(env: Mapping[str, str], key: str, fallback: Any) -> Optional[str]:
    value = env.get(key)
    if value is not None:
        return value
    return _as_str(fallback)


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return str(value)


def _as_int(name: str, value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def _as_float(name: str, value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc


__all__ = ["CONFIG_FILE_NAME", "Settings", "check_host_dir", "load_settings"]
