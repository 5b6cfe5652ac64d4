"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for httpservice:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.httpservice/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_cache_dir`.
* **User config** -- a single :class:`~httpservice.models.ServiceConfig`
  JSON file, managed via :func:`load_config` and :func:`save_config`.
* **Precedence resolution** -- :func:`resolve_config` merges explicit
  arguments, environment variables, the project-local file and the user
  file into the effective configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from httpservice.exceptions import ConfigError
from httpservice.models import LogLevel, ServiceConfig

_APP_NAME = "httpservice"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "httpservice.json"

ENV_BASE_URL = "HTTPSERVICE_BASE_URL"
ENV_TIMEOUT = "HTTPSERVICE_TIMEOUT"
ENV_LOG_LEVEL = "HTTPSERVICE_LOG_LEVEL"
ENV_CONFIG = "HTTPSERVICE_CONFIG"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/httpservice/`` (default ``~/.config/httpservice/``).
    On macOS/Windows: ``~/.httpservice/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the response cache directory, creating it if necessary.

    Cached responses can be safely deleted at any time.

    On Linux/BSD: ``$XDG_CACHE_HOME/httpservice/`` (default ``~/.cache/httpservice/``).
    On macOS/Windows: ``~/.httpservice/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is removed and the original file is left untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- User config ---


def user_config_path() -> Path:
    """Path to the user config file; ``$HTTPSERVICE_CONFIG`` overrides the XDG location."""
    override = os.environ.get(ENV_CONFIG)
    if override:
        return Path(override).expanduser()
    return get_config_dir() / _CONFIG_FILENAME


def _read_json(path: Path, label: str) -> Optional[dict[str, Any]]:
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid {label} at {path}: expected a JSON object")
    return data


def load_config(path: Optional[Path] = None) -> ServiceConfig:
    """Load a :class:`~httpservice.models.ServiceConfig` from disk.

    Args:
        path: File to read; defaults to :func:`user_config_path`.

    Returns:
        The stored configuration, or a default instance if the file does
        not exist.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    path = path or user_config_path()
    data = _read_json(path, "config")
    if data is None:
        return ServiceConfig()
    try:
        return ServiceConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: ServiceConfig, path: Optional[Path] = None) -> Path:
    """Persist *config* atomically and return the path written."""
    path = path or user_config_path()
    data = config.model_dump(mode="json")
    _atomic_write(path, json.dumps(data, indent=2) + "\n")
    return path


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local overrides from ``./httpservice.json``.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    return _read_json(Path.cwd() / _PROJECT_CONFIG_FILENAME, "project config")


# --- Precedence resolution ---


def _merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    base_url = os.environ.get(ENV_BASE_URL)
    if base_url:
        overrides["base_url"] = base_url
    timeout = os.environ.get(ENV_TIMEOUT)
    if timeout:
        try:
            overrides["timeout"] = float(timeout)
        except ValueError as exc:
            raise ConfigError(f"{ENV_TIMEOUT} must be a number, got '{timeout}'") from exc
    log_level = os.environ.get(ENV_LOG_LEVEL)
    if log_level:
        overrides["log_level"] = log_level.lower()
    return overrides


def resolve_config(
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
    log_level: Optional[LogLevel | str] = None,
) -> ServiceConfig:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. Explicit arguments
        2. Environment variables (``HTTPSERVICE_BASE_URL``,
           ``HTTPSERVICE_TIMEOUT``, ``HTTPSERVICE_LOG_LEVEL``)
        3. Project config (``./httpservice.json``)
        4. User config (``$HTTPSERVICE_CONFIG`` or
           ``~/.config/httpservice/config.json``)
        5. Defaults

    Nested sections such as ``cache`` are merged key by key.

    Raises:
        ConfigError: If any layer is malformed or the merged result fails
            validation.
    """
    path = user_config_path()
    data = _read_json(path, "config") or {}

    project = load_project_config()
    if project is not None:
        data = _merge(data, project)

    data = _merge(data, _env_overrides())

    explicit: dict[str, Any] = {}
    if base_url is not None:
        explicit["base_url"] = base_url
    if timeout is not None:
        explicit["timeout"] = timeout
    if log_level is not None:
        explicit["log_level"] = log_level
    data = _merge(data, explicit)

    try:
        return ServiceConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
