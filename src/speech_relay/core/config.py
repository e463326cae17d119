"""
Configuration Management for speech-relay.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration sections
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (OPENAI_API_KEY, SPEECH_RELAY_*)
    2. YAML config file (config/settings.yaml or $SPEECH_RELAY_SETTINGS)
    3. Defaults class values

The upstream credential is read once, at settings load, and handed to the
relay service at construction. Handlers never touch os.environ.

Example settings.yaml:
    upstream:
      base_url: https://api.openai.com/v1
      timeout_s: 60

    speech:
      voice: onyx
      response_format: mp3

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import os
import yaml


DEFAULT_SETTINGS_PATH = "config/settings.yaml"


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    This exception is thrown when a configuration value is outside
    acceptable bounds or of the wrong type.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Upstream: Provider endpoint and timeouts
        - Speech: Synthesis request defaults
        - Chat: Chat-completion request defaults
        - Server: Bind address and disconnect polling
        - Logging: Log level and formatting
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Upstream Provider
    # ─────────────────────────────────────────────────────────────────────────
    UPSTREAM_BASE_URL = "https://api.openai.com/v1"
    UPSTREAM_SPEECH_PATH = "/audio/speech"
    UPSTREAM_CHAT_PATH = "/chat/completions"
    UPSTREAM_TIMEOUT_S = 60.0           # Whole-request timeout for one upstream call

    # ─────────────────────────────────────────────────────────────────────────
    # Speech Synthesis Defaults
    # ─────────────────────────────────────────────────────────────────────────
    SPEECH_MODEL = "tts-1"
    SPEECH_VOICE = "onyx"
    SPEECH_RESPONSE_FORMAT = "mp3"
    SPEECH_SPEED = 1.0

    # ─────────────────────────────────────────────────────────────────────────
    # Chat Completion Defaults
    # ─────────────────────────────────────────────────────────────────────────
    CHAT_MODEL = "gpt-4o-mini"
    CHAT_MAX_TOKENS = 700
    CHAT_TEMPERATURE = 0.75
    CHAT_STREAM = True

    # ─────────────────────────────────────────────────────────────────────────
    # Server
    # ─────────────────────────────────────────────────────────────────────────
    SERVER_HOST = "0.0.0.0"
    SERVER_PORT = 8000
    SERVER_DISCONNECT_POLL_S = 0.25     # How often a waiting request checks for client disconnect

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG
    LOGGING_TEXT_PREVIEW_CHARS = 60     # Characters of input shown in debug logs


@dataclass
class UpstreamConfig:
    """
    Upstream provider configuration.

    `api_key` is None when no credential is configured; the relay then
    rejects every request with a configuration error.
    """
    base_url: str = Defaults.UPSTREAM_BASE_URL
    speech_path: str = Defaults.UPSTREAM_SPEECH_PATH
    chat_path: str = Defaults.UPSTREAM_CHAT_PATH
    timeout_s: float = Defaults.UPSTREAM_TIMEOUT_S
    api_key: Optional[str] = field(default=None, repr=False)

    @property
    def speech_url(self) -> str:
        return self.base_url.rstrip("/") + self.speech_path

    @property
    def chat_url(self) -> str:
        return self.base_url.rstrip("/") + self.chat_path

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)


@dataclass
class SpeechDefaults:
    """Values used for synthesis fields the caller leaves out."""
    model: str = Defaults.SPEECH_MODEL
    voice: str = Defaults.SPEECH_VOICE
    response_format: str = Defaults.SPEECH_RESPONSE_FORMAT
    speed: float = Defaults.SPEECH_SPEED


@dataclass
class ChatDefaults:
    """Values used for chat-completion fields the caller leaves out."""
    model: str = Defaults.CHAT_MODEL
    max_tokens: int = Defaults.CHAT_MAX_TOKENS
    temperature: float = Defaults.CHAT_TEMPERATURE
    stream: bool = Defaults.CHAT_STREAM


@dataclass
class ServerConfig:
    host: str = Defaults.SERVER_HOST
    port: int = Defaults.SERVER_PORT
    disconnect_poll_s: float = Defaults.SERVER_DISCONNECT_POLL_S


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, errors only
        2 = NORMAL: Request lifecycle (default)
        3 = VERBOSE: Upstream timing, payload summaries
        4 = DEBUG: Full request text, internal state
    """
    level: int = Defaults.LOGGING_LEVEL
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS


@dataclass
class RelayConfig:
    """
    Validated configuration for the relay services.

    Usage:
        settings = load_settings()
        config = RelayConfig.from_settings(settings)
        print(config.upstream.speech_url)
    """
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    speech: SpeechDefaults = field(default_factory=SpeechDefaults)
    chat: ChatDefaults = field(default_factory=ChatDefaults)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RelayConfig":
        """
        Create RelayConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML/environment.

        Returns:
            Validated RelayConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Upstream
        # ─────────────────────────────────────────────────────────────────────
        upstream_raw = raw.get("upstream", {}) or {}
        api_key = upstream_raw.get("api_key")
        upstream = UpstreamConfig(
            base_url=str(upstream_raw.get("base_url", Defaults.UPSTREAM_BASE_URL)),
            speech_path=str(upstream_raw.get("speech_path", Defaults.UPSTREAM_SPEECH_PATH)),
            chat_path=str(upstream_raw.get("chat_path", Defaults.UPSTREAM_CHAT_PATH)),
            timeout_s=float(upstream_raw.get("timeout_s", Defaults.UPSTREAM_TIMEOUT_S)),
            api_key=str(api_key) if api_key else None,
        )
        cls._validate_url("upstream.base_url", upstream.base_url)
        cls._validate_path("upstream.speech_path", upstream.speech_path)
        cls._validate_path("upstream.chat_path", upstream.chat_path)
        cls._validate_positive("upstream.timeout_s", upstream.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Speech defaults
        # ─────────────────────────────────────────────────────────────────────
        speech_raw = raw.get("speech", {}) or {}
        speech = SpeechDefaults(
            model=str(speech_raw.get("model", Defaults.SPEECH_MODEL)),
            voice=str(speech_raw.get("voice", Defaults.SPEECH_VOICE)),
            response_format=str(speech_raw.get("response_format", Defaults.SPEECH_RESPONSE_FORMAT)),
            speed=float(speech_raw.get("speed", Defaults.SPEECH_SPEED)),
        )
        cls._validate_positive("speech.speed", speech.speed)

        # ─────────────────────────────────────────────────────────────────────
        # Chat defaults
        # ─────────────────────────────────────────────────────────────────────
        chat_raw = raw.get("chat", {}) or {}
        chat = ChatDefaults(
            model=str(chat_raw.get("model", Defaults.CHAT_MODEL)),
            max_tokens=int(chat_raw.get("max_tokens", Defaults.CHAT_MAX_TOKENS)),
            temperature=float(chat_raw.get("temperature", Defaults.CHAT_TEMPERATURE)),
            stream=bool(chat_raw.get("stream", Defaults.CHAT_STREAM)),
        )
        cls._validate_positive("chat.max_tokens", chat.max_tokens)
        cls._validate_range("chat.temperature", chat.temperature, 0.0, 2.0)

        # ─────────────────────────────────────────────────────────────────────
        # Server
        # ─────────────────────────────────────────────────────────────────────
        server_raw = raw.get("server", {}) or {}
        server = ServerConfig(
            host=str(server_raw.get("host", Defaults.SERVER_HOST)),
            port=int(server_raw.get("port", Defaults.SERVER_PORT)),
            disconnect_poll_s=float(server_raw.get("disconnect_poll_s", Defaults.SERVER_DISCONNECT_POLL_S)),
        )
        cls._validate_range("server.port", server.port, 1, 65535)
        cls._validate_positive("server.disconnect_poll_s", server.disconnect_poll_s)

        # ─────────────────────────────────────────────────────────────────────
        # Logging (string levels such as "DEBUG" are accepted)
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            level=log_level,
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
        )
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)

        return cls(
            upstream=upstream,
            speech=speech,
            chat=chat,
            server=server,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")

    @staticmethod
    def _validate_url(name: str, value: str) -> None:
        if not value.startswith(("http://", "https://")):
            raise ConfigValidationError(f"{name} must be an http(s) URL, got {value!r}")

    @staticmethod
    def _validate_path(name: str, value: str) -> None:
        if not value.startswith("/"):
            raise ConfigValidationError(f"{name} must start with '/', got {value!r}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_relay_config() to get the validated RelayConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def api_key(self) -> Optional[str]:
        """The upstream credential, or None when not configured."""
        return (self.raw.get("upstream", {}) or {}).get("api_key") or None

    @property
    def host(self) -> str:
        return str((self.raw.get("server", {}) or {}).get("host", Defaults.SERVER_HOST))

    @property
    def port(self) -> int:
        return int((self.raw.get("server", {}) or {}).get("port", Defaults.SERVER_PORT))

    def get_relay_config(self) -> RelayConfig:
        """
        Get validated RelayConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return RelayConfig.from_settings(self)


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    # An empty YAML section (`upstream:`) loads as None.
    if not isinstance(raw.get(name), dict):
        raw[name] = {}
    return raw[name]


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from a YAML configuration file plus the environment.

    When `path` is None the file named by $SPEECH_RELAY_SETTINGS is used,
    falling back to config/settings.yaml; a missing fallback file simply
    means "use defaults". An explicitly requested file must exist.

    Environment variable overrides:
        - OPENAI_API_KEY: upstream.api_key
        - SPEECH_RELAY_UPSTREAM_URL: upstream.base_url
        - SPEECH_RELAY_TIMEOUT_S: upstream.timeout_s
        - SPEECH_RELAY_HOST / SPEECH_RELAY_PORT: server.host / server.port

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If an explicitly requested file doesn't exist.
        ConfigValidationError: If an environment override is not a number.
    """
    explicit = path is not None or bool(os.getenv("SPEECH_RELAY_SETTINGS"))
    p = Path(path or os.getenv("SPEECH_RELAY_SETTINGS") or DEFAULT_SETTINGS_PATH)

    raw: Dict[str, Any] = {}
    if p.exists():
        with p.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    elif explicit:
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    key = os.getenv("OPENAI_API_KEY")
    if key:
        _section(raw, "upstream")["api_key"] = key

    upstream_url = os.getenv("SPEECH_RELAY_UPSTREAM_URL")
    if upstream_url:
        _section(raw, "upstream")["base_url"] = upstream_url

    timeout = os.getenv("SPEECH_RELAY_TIMEOUT_S")
    if timeout:
        try:
            _section(raw, "upstream")["timeout_s"] = float(timeout)
        except ValueError:
            raise ConfigValidationError(f"SPEECH_RELAY_TIMEOUT_S must be a number, got {timeout!r}")

    host = os.getenv("SPEECH_RELAY_HOST")
    if host:
        _section(raw, "server")["host"] = host

    port = os.getenv("SPEECH_RELAY_PORT")
    if port:
        try:
            _section(raw, "server")["port"] = int(port)
        except ValueError:
            raise ConfigValidationError(f"SPEECH_RELAY_PORT must be an integer, got {port!r}")

    return Settings(raw=raw)
