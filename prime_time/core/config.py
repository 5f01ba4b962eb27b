import json
import os
from pathlib import Path
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field, field_validator

from prime_time.server.constants import (
    DEFAULT_HOST,
    DEFAULT_MALFORMED_REPLY,
    DEFAULT_PORT,
    MAX_LINE_BYTES,
)

_CONFIG_ENV_KEYS = ("PRIME_TIME_CONFIG_PATH", "PRIME_TIME_CONFIG")
_DEFAULT_CONFIG_FILENAME = "config.json"
_SERVER_KEY = "server"


def project_root() -> Path | None:
    """Nearest directory holding a pyproject.toml, searched from the cwd, then from this package."""
    for start in (Path.cwd(), Path(__file__).parent):
        here = start.resolve()
        root = next(
            (d for d in (here, *here.parents) if (d / "pyproject.toml").exists()), None
        )
        if root is not None:
            return root
    return None


def _env_config_path() -> str | None:
    for key in _CONFIG_ENV_KEYS:
        value = os.environ.get(key, "").strip()
        if value:
            return value
    return None


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Explicit path as given; otherwise the env var or config.json, relative to the project root."""
    if path is not None:
        return Path(path).expanduser()
    candidate = Path(_env_config_path() or _DEFAULT_CONFIG_FILENAME).expanduser()
    if candidate.is_absolute():
        return candidate
    root = project_root()
    return root / candidate if root is not None else candidate


def load_config_json(
    path: str | Path | None = None, *, require_exists: bool = False
) -> dict[str, Any]:
    cfg_path = resolve_config_path(path)
    try:
        raw = cfg_path.read_text()
    except FileNotFoundError:
        if require_exists:
            raise FileNotFoundError(f"Config file not found: {cfg_path}") from None
        return {}
    except OSError as exc:
        logger.warning(f"Ignoring unreadable config {cfg_path}: {exc}")
        return {}

    try:
        data = json.loads(raw)
    except ValueError as exc:
        logger.warning(f"Ignoring invalid JSON in {cfg_path}: {exc}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config {cfg_path}: top level is not an object")
        return {}
    return data


class ServerSettings(BaseModel):
    host: str = Field(default=DEFAULT_HOST, description="Address to bind.")
    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535)
    max_line_bytes: int = Field(
        default=MAX_LINE_BYTES,
        gt=0,
        description="Largest unterminated line a connection may buffer before it is dropped.",
    )
    idle_timeout_seconds: float | None = Field(
        default=None,
        description="Close connections idle this long. None disables reaping.",
    )
    malformed_reply: str = Field(
        default=DEFAULT_MALFORMED_REPLY,
        description="Line sent before closing on malformed input. Empty sends nothing.",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_file: str | None = Field(default=None)

    @field_validator("idle_timeout_seconds")
    @classmethod
    def validate_idle_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("idle_timeout_seconds must be positive")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        return str(v).upper() if v is not None else v

    @field_validator("malformed_reply")
    @classmethod
    def validate_malformed_reply(cls, v: str) -> str:
        if "\n" in v.rstrip("\n"):
            raise ValueError("malformed_reply must be a single line")
        return v


def load_settings(path: str | Path | None = None, **overrides: Any) -> ServerSettings:
    """Build settings from the config file's "server" section plus overrides.

    Overrides that are None are ignored, so unset CLI options keep file values.
    """
    section = load_config_json(path).get(_SERVER_KEY) or {}
    if not isinstance(section, dict):
        section = {}
    merged = {**section, **{k: v for k, v in overrides.items() if v is not None}}
    return ServerSettings(**merged)
