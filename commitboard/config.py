"""Configuration loading for commitboard (.commitboard.yml plus environment)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

CONFIG_FILENAME = ".commitboard.yml"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed or is incomplete."""


@dataclass
class GitHubConfig:
    """Upstream repository, API endpoints and normalization filters."""

    repository: str = "DishpitDev/Slopify"
    api_url: str = "https://api.github.com"
    oauth_url: str = "https://github.com/login/oauth/access_token"
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    excluded_author: Optional[str] = "Dishpit"
    excluded_message_prefix: Optional[str] = "Merge"
    per_page: int = 100
    max_pages: int = 100
    request_timeout: float = 30.0


@dataclass
class RateLimitRule:
    """Sliding-window cap for one group of endpoints."""

    window_seconds: float
    max_requests: int


@dataclass
class RateLimitConfig:
    general: RateLimitRule = field(default_factory=lambda: RateLimitRule(15 * 60, 100))
    votes: RateLimitRule = field(default_factory=lambda: RateLimitRule(60 * 60, 100))
    sync: RateLimitRule = field(default_factory=lambda: RateLimitRule(60 * 60, 100))
    trust_proxy: bool = True


@dataclass
class StorageConfig:
    data_dir: Path = field(default_factory=lambda: Path.cwd())
    on_corrupt: str = "reseed"


@dataclass
class LoggingConfig:
    log_dir: Optional[Path] = field(default_factory=lambda: Path.cwd() / "logs")
    flush_interval: float = 15 * 60
    verbose: bool = False


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    max_body_bytes: int = 10 * 1024


@dataclass
class CommitboardConfig:
    """Represents the settings defined in .commitboard.yml and the environment."""

    root: Path
    github: GitHubConfig = field(default_factory=GitHubConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    rate_limits: RateLimitConfig = field(default_factory=RateLimitConfig)

    def require_oauth(self) -> None:
        """Fail fast when the OAuth relay cannot work."""
        if not self.github.client_id or not self.github.client_secret:
            raise ConfigError("GitHub OAuth credentials are not set (GITHUB_CLIENT_ID / GITHUB_CLIENT_SECRET).")


def default_config(root: Path | None = None) -> CommitboardConfig:
    """Return defaults rooted at `root` (current directory when omitted)."""
    base = (root or Path.cwd()).resolve()
    return CommitboardConfig(
        root=base,
        storage=StorageConfig(data_dir=base),
        logging=LoggingConfig(log_dir=base / "logs"),
    )


def load_config(
    config_path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> CommitboardConfig:
    """Load configuration from disk, then apply environment overrides."""
    environ = os.environ if env is None else env
    config_file = _resolve_config_path(config_path or Path.cwd())
    root = config_file.parent.resolve()
    config = default_config(root)

    if config_file.exists():
        data = _read_config(config_file)
        if not isinstance(data, dict):
            raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")
        _apply_github(config.github, _as_dict(data.get("github")))
        _apply_storage(config.storage, _as_dict(data.get("storage")), root)
        _apply_logging(config.logging, _as_dict(data.get("logging")), root)
        _apply_server(config.server, _as_dict(data.get("server")))
        _apply_rate_limits(config.rate_limits, _as_dict(data.get("rate_limits")))

    _apply_env(config, environ, root)

    if config.storage.on_corrupt not in ("reseed", "raise"):
        raise ConfigError(
            f"storage.on_corrupt must be 'reseed' or 'raise', got '{config.storage.on_corrupt}'"
        )
    return config


def _apply_github(github: GitHubConfig, data: Dict[str, Any]) -> None:
    if not data:
        return
    github.repository = _as_str(data.get("repository")) or github.repository
    github.api_url = (_as_str(data.get("api_url")) or github.api_url).rstrip("/")
    github.oauth_url = _as_str(data.get("oauth_url")) or github.oauth_url
    github.client_id = _as_str(data.get("client_id")) or github.client_id
    github.client_secret = _as_str(data.get("client_secret")) or github.client_secret
    if "excluded_author" in data:
        github.excluded_author = _as_str(data.get("excluded_author")) or None
    if "excluded_message_prefix" in data:
        github.excluded_message_prefix = _as_str(data.get("excluded_message_prefix")) or None
    github.per_page = _as_int(data.get("per_page")) or github.per_page
    github.max_pages = _as_int(data.get("max_pages")) or github.max_pages
    github.request_timeout = _as_float(data.get("request_timeout")) or github.request_timeout


def _apply_storage(storage: StorageConfig, data: Dict[str, Any], root: Path) -> None:
    if not data:
        return
    data_dir = _as_str(data.get("data_dir"))
    if data_dir:
        storage.data_dir = _resolve_path(data_dir, root)
    storage.on_corrupt = _as_str(data.get("on_corrupt")) or storage.on_corrupt


def _apply_logging(logging_config: LoggingConfig, data: Dict[str, Any], root: Path) -> None:
    if not data:
        return
    if "log_dir" in data:
        log_dir = _as_str(data.get("log_dir"))
        logging_config.log_dir = _resolve_path(log_dir, root) if log_dir else None
    logging_config.flush_interval = _as_float(data.get("flush_interval")) or logging_config.flush_interval
    verbose = _as_bool(data.get("verbose"))
    if verbose is not None:
        logging_config.verbose = verbose


def _apply_server(server: ServerConfig, data: Dict[str, Any]) -> None:
    if not data:
        return
    server.host = _as_str(data.get("host")) or server.host
    server.port = _as_int(data.get("port")) or server.port
    origins = _as_str_list(data.get("allowed_origins"))
    if origins:
        server.allowed_origins = origins
    server.max_body_bytes = _as_int(data.get("max_body_bytes")) or server.max_body_bytes


def _apply_rate_limits(limits: RateLimitConfig, data: Dict[str, Any]) -> None:
    if not data:
        return
    for name in ("general", "votes", "sync"):
        rule_data = _as_dict(data.get(name))
        if not rule_data:
            continue
        rule: RateLimitRule = getattr(limits, name)
        rule.window_seconds = _as_float(rule_data.get("window_seconds")) or rule.window_seconds
        rule.max_requests = _as_int(rule_data.get("max_requests")) or rule.max_requests
    trust_proxy = _as_bool(data.get("trust_proxy"))
    if trust_proxy is not None:
        limits.trust_proxy = trust_proxy


def _apply_env(config: CommitboardConfig, env: Mapping[str, str], root: Path) -> None:
    config.github.client_id = env.get("GITHUB_CLIENT_ID") or config.github.client_id
    config.github.client_secret = env.get("GITHUB_CLIENT_SECRET") or config.github.client_secret
    config.github.repository = env.get("GITHUB_REPOSITORY") or config.github.repository
    origins = env.get("ALLOWED_ORIGINS")
    if origins:
        config.server.allowed_origins = [origin.strip() for origin in origins.split(",") if origin.strip()]
    port = _as_int(env.get("PORT"))
    if port:
        config.server.port = port
    data_dir = env.get("COMMITBOARD_DATA_DIR")
    if data_dir:
        config.storage.data_dir = _resolve_path(data_dir, root)
    log_dir = env.get("COMMITBOARD_LOG_DIR")
    if log_dir:
        config.logging.log_dir = _resolve_path(log_dir, root)


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _resolve_path(value: str, root: Path) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else (root / path)


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "CommitboardConfig",
    "ConfigError",
    "GitHubConfig",
    "LoggingConfig",
    "RateLimitConfig",
    "RateLimitRule",
    "ServerConfig",
    "StorageConfig",
    "default_config",
    "load_config",
]
