"""Settings for debatelib, from the environment and an optional user config."""

import importlib.util
import os
import sys
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

_CONFIG_NOT_FOUND = object()
_user_config = None

USER_CONFIG_PATH = Path.home() / ".debatelib" / "config.py"

# Topic store used when DEBATE_SQLITE_PATH is not set
DEFAULT_SQLITE_PATH = str(Path.home() / ".debatelib" / "debates.db")


@dataclass(frozen=True)
class Settings:
    mcp_url: str = "http://localhost:8000"
    client_name: str = "debate-web-client"
    client_version: str = "1.0"
    call_timeout: float = 30.0
    session_timeout: float = 10.0
    storage: str = "sqlite"
    sqlite_path: str = DEFAULT_SQLITE_PATH
    remote_url: str = ""
    remote_key: str = ""
    remote_table: str = "debates"
    log_level: str = "WARNING"


# Environment variables read for each setting, first match wins
ENV_VARS = {
    "mcp_url": ["DEBATE_MCP_URL"],
    "client_name": ["DEBATE_CLIENT_NAME"],
    "client_version": ["DEBATE_CLIENT_VERSION"],
    "call_timeout": ["DEBATE_CALL_TIMEOUT"],
    "session_timeout": ["DEBATE_SESSION_TIMEOUT"],
    "storage": ["DEBATE_STORAGE"],
    "sqlite_path": ["DEBATE_SQLITE_PATH"],
    "remote_url": ["DEBATE_REMOTE_URL", "SUPABASE_URL", "VITE_SUPABASE_URL"],
    "remote_key": ["DEBATE_REMOTE_KEY", "SUPABASE_ANON_KEY", "VITE_SUPABASE_ANON_KEY"],
    "remote_table": ["DEBATE_REMOTE_TABLE"],
    "log_level": ["DEBATE_LOG_LEVEL"],
}


def get_user_config(path: Optional[Path] = None):
    """Load ~/.debatelib/config.py once. Returns the module or None."""
    global _user_config

    if path is None and _user_config is not None:
        return None if _user_config is _CONFIG_NOT_FOUND else _user_config

    config_path = path or USER_CONFIG_PATH
    module = _CONFIG_NOT_FOUND
    if config_path.exists():
        try:
            spec = importlib.util.spec_from_file_location("debatelib_user_config", config_path)
            if spec and spec.loader:
                module = importlib.util.module_from_spec(spec)
                spec.loader.exec_module(module)
        except Exception as e:
            print(f"Warning: Failed to load user config from {config_path}: {e}", file=sys.stderr)
            module = _CONFIG_NOT_FOUND

    if path is None:
        _user_config = module
    return None if module is _CONFIG_NOT_FOUND else module


def _coerce(name: str, value):
    if name in ("call_timeout", "session_timeout"):
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{name} must be a number, got {value!r}")
    return str(value)


def load_settings(dotenv: bool = True, user_config: bool = True, **overrides) -> Settings:
    """
    Build Settings from (lowest to highest precedence): defaults, environment
    (after loading .env), upper-case attributes of the user config module
    (e.g. MCP_URL = "..."), and keyword overrides.
    """
    if dotenv:
        load_dotenv()

    values = {}
    for name, candidates in ENV_VARS.items():
        for var in candidates:
            if value := os.getenv(var):
                values[name] = value
                break

    if user_config and (module := get_user_config()) is not None:
        for f in fields(Settings):
            if hasattr(module, f.name.upper()):
                values[f.name] = getattr(module, f.name.upper())

    values.update({k: v for k, v in overrides.items() if v is not None})
    unknown = set(values) - {f.name for f in fields(Settings)}
    if unknown:
        raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
    settings = replace(Settings(), **{k: _coerce(k, v) for k, v in values.items()})
    if settings.storage not in ("sqlite", "remote"):
        raise ValueError(f"storage must be 'sqlite' or 'remote', got {settings.storage!r}")
    if settings.storage == "remote":
        parsed = urlparse(settings.remote_url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"remote storage needs an http(s) DEBATE_REMOTE_URL, got {settings.remote_url!r}")
        if not settings.remote_key:
            raise ValueError("remote storage needs DEBATE_REMOTE_KEY")
    return settings
