from __future__ import annotations

import os
from dataclasses import dataclass, field
from importlib import metadata
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Tuple

import requests
import yaml

from .errors import ConfigError
from .retry import JitteredBackoff

DEFAULT_BASE_URL = "https://ws.audioscrobbler.com/2.0/"
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 10.0
DEFAULT_MAX_RETRIES = 5

API_KEY_ENV_VAR = "LASTFM_API_KEY"
USERNAME_ENV_VAR = "LASTFM_USERNAME"

PACKAGE_NAME = "lastfm-history"


def _load_package_version() -> str:
    try:
        return metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:
        return "0.0.0"


def default_user_agent() -> str:
    return f"{PACKAGE_NAME}/{_load_package_version()}"


def default_config_paths() -> List[Path]:
    paths: List[Path] = []
    xdg_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_home:
        paths.append(Path(xdg_home) / PACKAGE_NAME / "config.yaml")
    paths.append(Path.home() / ".config" / PACKAGE_NAME / "config.yaml")
    return paths


@dataclass
class ClientConfig:
    api_key: Optional[str] = None
    username: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    read_timeout: float = DEFAULT_READ_TIMEOUT
    user_agent: str = field(default_factory=default_user_agent)
    max_retries: int = DEFAULT_MAX_RETRIES

    @property
    def timeout(self) -> Tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)

    def retry_strategy(self) -> JitteredBackoff:
        return JitteredBackoff(max_retries=self.max_retries)


def build_session(config: Optional[ClientConfig] = None) -> requests.Session:
    """Create the HTTP session used when the caller does not inject one."""

    cfg = config or ClientConfig()
    session = requests.Session()
    session.headers["User-Agent"] = cfg.user_agent
    return session


def _coerce(data: Mapping[str, Any], key: str, convert: Callable[[Any], Any], default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    try:
        return convert(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for {key!r}: {value!r}") from exc


def _read_yaml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level")
    return data


def load_config(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> ClientConfig:
    """Load configuration from YAML, falling back to defaults and the environment.

    An explicit ``path`` must exist. Without one, the first existing default
    location is used. ``LASTFM_API_KEY`` and ``LASTFM_USERNAME`` fill the
    credentials the file leaves out.
    """

    env = os.environ if environ is None else environ

    data: Mapping[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise ConfigError(f"Config file {path} does not exist")
        data = _read_yaml(path)
    else:
        for candidate in default_config_paths():
            if candidate.exists():
                data = _read_yaml(candidate)
                break

    max_retries = _coerce(data, "max_retries", int, DEFAULT_MAX_RETRIES)
    if max_retries < 0:
        raise ConfigError("max_retries must be >= 0")

    return ClientConfig(
        api_key=_coerce(data, "api_key", str, None) or env.get(API_KEY_ENV_VAR) or None,
        username=_coerce(data, "username", str, None) or env.get(USERNAME_ENV_VAR) or None,
        base_url=_coerce(data, "base_url", str, DEFAULT_BASE_URL),
        connect_timeout=_coerce(data, "connect_timeout", float, DEFAULT_CONNECT_TIMEOUT),
        read_timeout=_coerce(data, "read_timeout", float, DEFAULT_READ_TIMEOUT),
        user_agent=_coerce(data, "user_agent", str, None) or default_user_agent(),
        max_retries=max_retries,
    )


__all__ = [
    "DEFAULT_BASE_URL",
    "API_KEY_ENV_VAR",
    "USERNAME_ENV_VAR",
    "ClientConfig",
    "build_session",
    "default_config_paths",
    "load_config",
]
