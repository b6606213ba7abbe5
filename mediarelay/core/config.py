import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from mediarelay.core.errors import ConfigError

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

ENV_PREFIX = "MEDIARELAY_"

# field name -> env suffix, where they differ
_ENV_NAMES = {
    "render_unknown_platforms": "RENDER_UNKNOWN",
    "max_observed_requests": "MAX_OBSERVED",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings.

    Values come from the process environment (optionally primed from a
    `.env` file). Every field maps to `MEDIARELAY_<FIELD>`.
    """
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    user_agent: str = DEFAULT_USER_AGENT
    fetch_timeout: float = 15.0
    navigation_timeout: float = 30.0
    network_idle_timeout: float = 10.0
    settle_delay: float = 2.0
    transfer_timeout: float = 300.0
    max_browser_sessions: int = 2
    headless: bool = True
    render_unknown_platforms: bool = True
    chunk_size: int = 64 * 1024
    progress_interval: float = 0.25
    max_observed_requests: int = 256

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None, environ: Optional[dict] = None) -> "Settings":
        if environ is None:
            load_dotenv(dotenv_path=env_file, override=False)
            environ = os.environ

        values = {}
        for f in fields(cls):
            name = ENV_PREFIX + _ENV_NAMES.get(f.name, f.name.upper())
            raw = environ.get(name)
            if raw is None or raw == "":
                continue
            values[f.name] = _coerce(name, raw.strip(), f.type)

        settings = cls(**values)
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.max_browser_sessions < 1:
            raise ConfigError("MEDIARELAY_MAX_BROWSER_SESSIONS must be at least 1")
        if self.chunk_size <= 0:
            raise ConfigError("MEDIARELAY_CHUNK_SIZE must be positive")
        for name in ("fetch_timeout", "navigation_timeout", "transfer_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{ENV_PREFIX}{name.upper()} must be positive")

    def as_dict(self) -> dict:
        return asdict(self)


def _coerce(name: str, raw: str, type_name):
    type_name = getattr(type_name, "__name__", type_name)
    try:
        if type_name == "bool":
            lowered = raw.lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ValueError(raw)
        if type_name == "int":
            return int(raw)
        if type_name == "float":
            return float(raw)
    except ValueError:
        raise ConfigError(f"Invalid value for {name}: {raw!r}")
    return raw
