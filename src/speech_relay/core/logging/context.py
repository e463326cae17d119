"""
Request Context and Configuration State for Logging.

The request id lives in a ContextVar, so every log line emitted while a
request is being handled (including inside awaited upstream calls) carries
the same id. Level and file settings are process-wide module state.

Environment Variables:
    - SPEECH_RELAY_LOG_LEVEL: Log level (1-4 or name)
    - SPEECH_RELAY_LOG_DIR: Directory for the JSONL log file
    - SPEECH_RELAY_JSONL_FILE: JSONL log filename
    - SPEECH_RELAY_LOG_ROTATE_BYTES: Max file size before rotation
    - SPEECH_RELAY_LOG_ROTATE_BACKUP: Number of rotated files kept
"""
from __future__ import annotations

import os
import warnings
from contextvars import ContextVar
from typing import Any, Dict

import yaml

from .levels import LEVEL_NAMES, LogLevel

# "-" marks log lines emitted outside any request
_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Return the request id bound to the current context, or "-"."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Bind a request id to the current context for log correlation."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    """Current level as "MINIMAL", "NORMAL", "VERBOSE" or "DEBUG"."""
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _env_int(name: str, cfg: Dict[str, Any], key: str) -> None:
    value = os.getenv(name)
    if not value:
        return
    try:
        cfg[key] = int(value)
    except ValueError:
        # Logging is not set up yet, so this goes to stderr via warnings.
        warnings.warn(f"{name} must be an integer, got {value!r}; using the configured value")


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve the logging configuration.

    Priority (highest first): environment variables, the `logging` section
    of the settings file, built-in defaults.

    Returns:
        Dictionary with keys level, log_dir, jsonl_file, rotate_max_bytes,
        rotate_backup_count (only those that are set).
    """
    cfg: Dict[str, Any] = {}

    from speech_relay.core.config import ConfigValidationError, load_settings

    try:
        settings = load_settings()
        cfg.update(settings.raw.get("logging", {}) or {})
    except (OSError, ValueError, yaml.YAMLError, ConfigValidationError):
        # Unreadable settings file or bad override: log with defaults so the
        # config error itself can still be reported.
        pass

    if os.getenv("SPEECH_RELAY_LOG_LEVEL"):
        cfg["level"] = os.environ["SPEECH_RELAY_LOG_LEVEL"]
    if os.getenv("SPEECH_RELAY_LOG_DIR"):
        cfg["log_dir"] = os.environ["SPEECH_RELAY_LOG_DIR"]
    if os.getenv("SPEECH_RELAY_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["SPEECH_RELAY_JSONL_FILE"]
    _env_int("SPEECH_RELAY_LOG_ROTATE_BYTES", cfg, "rotate_max_bytes")
    _env_int("SPEECH_RELAY_LOG_ROTATE_BACKUP", cfg, "rotate_backup_count")

    return cfg
