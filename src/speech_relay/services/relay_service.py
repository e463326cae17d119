"""
RelayService - forwards caller requests to the upstream provider.

This module holds the provider-facing half of both relays. Routes handle
the HTTP framing (preflight, method check, status mapping); the service
checks the credential, turns payloads into typed requests, makes exactly
one upstream call per request and hands back the result.

Flow (speech):
    payload → SynthesisRequest → POST {base_url}/audio/speech → SynthesisResult

Flow (chat):
    payload → ChatRequest → POST {base_url}/chat/completions (streamed) → ChatStream

Error Handling:
    - CredentialMissingError: no upstream credential configured
    - InvalidInputError: missing/invalid `input` or `messages`
    - UpstreamError: provider answered non-2xx, carries its raw body
    - anything else (network failures, timeouts) propagates unchanged

There is no retry: a failed upstream call fails the request.

Example:
    >>> async with httpx.AsyncClient() as client:
    ...     service = RelayService(config, client)
    ...     request = service.parse_synthesis({"input": "Blessed are the peacemakers"})
    ...     result = await service.synthesize(request)
    >>> result.content_type
    'audio/mpeg'
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from speech_relay.core.config import RelayConfig
from speech_relay.core.logging import debug, get_logger, verbose, warn
from speech_relay.core.metrics import metrics
from speech_relay.services.errors import CredentialMissingError, UpstreamError
from speech_relay.services.validators import (
    nullish_default,
    or_default,
    validate_input,
    validate_messages,
)
from speech_relay.utils.timeit import timeit

_LOG = get_logger("speech-relay.service")

# Sent for every successful synthesis, whatever response_format was requested.
AUDIO_CONTENT_TYPE = "audio/mpeg"
CHAT_FALLBACK_CONTENT_TYPE = "text/event-stream"


# =============================================================================
# Request/Response Dataclasses
# =============================================================================

@dataclass
class SynthesisRequest:
    """
    A validated speech synthesis request.

    Attributes:
        input: Text to synthesize (non-empty).
        model: Provider model, e.g. "tts-1".
        voice: Provider voice, e.g. "onyx".
        response_format: Audio container, e.g. "mp3".
        speed: Speaking rate; forwarded as given.
    """
    input: str
    model: str
    voice: str
    response_format: str
    speed: Any

    def to_upstream_payload(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "input": self.input,
            "voice": self.voice,
            "response_format": self.response_format,
            "speed": self.speed,
        }


@dataclass
class SynthesisResult:
    """
    Buffered audio returned by the provider.

    The whole clip is held in memory; devotional clips are short.
    """
    audio: bytes
    content_type: str = AUDIO_CONTENT_TYPE
    upstream_seconds: float = 0.0

    @property
    def content_length(self) -> int:
        return len(self.audio)


@dataclass
class ChatRequest:
    """A validated chat-completion request."""
    messages: List[Any]
    model: str
    max_tokens: Any
    temperature: Any
    stream: Any

    def to_upstream_payload(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": self.messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "stream": self.stream,
        }


@dataclass
class ChatStream:
    """
    An open upstream chat response, relayed to the caller as it arrives.

    `iter_bytes()` closes the upstream response when iteration finishes,
    fails, or is abandoned; `aclose()` is for callers that never iterate.
    """
    response: httpx.Response
    content_type: str
    upstream_seconds: float = 0.0
    _closed: bool = field(default=False, init=False, repr=False)

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self.response.aiter_bytes():
                yield chunk
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if not self._closed:
            self._closed = True
            await self.response.aclose()


# =============================================================================
# Service
# =============================================================================

class RelayService:
    """
    Provider relay for speech synthesis and chat completions.

    The credential comes from `config.upstream.api_key`, read once when the
    settings were loaded. The httpx client is owned by the caller (the app
    lifespan or the CLI) and shared by all requests; the service keeps no
    per-request state.

    Args:
        config: Validated relay configuration.
        client: Shared async HTTP client used for upstream calls. May be
            None when the service is only used to parse requests.
    """

    def __init__(self, config: RelayConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client

    # -------------------------------------------------------------------------
    # Readiness
    # -------------------------------------------------------------------------

    def is_ready(self) -> bool:
        """True when an upstream credential is configured."""
        return self.config.upstream.has_credential

    def ensure_credential(self) -> None:
        """
        Raises:
            CredentialMissingError: If no upstream credential is configured.
        """
        if not self.is_ready():
            raise CredentialMissingError()

    def get_health_info(self) -> Dict[str, Any]:
        # Presence only; the credential itself never leaves the process.
        return {
            "credential_configured": self.is_ready(),
            "upstream": self.config.upstream.base_url,
            "timeout_s": self.config.upstream.timeout_s,
        }

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.upstream.api_key}",
            "Content-Type": "application/json",
        }

    # -------------------------------------------------------------------------
    # Speech
    # -------------------------------------------------------------------------

    def parse_synthesis(self, payload: Any) -> SynthesisRequest:
        """
        Build a SynthesisRequest from a decoded JSON body.

        Raises:
            InvalidInputError: If `input` is missing, empty or not a string.
        """
        text = validate_input(payload)
        defaults = self.config.speech
        return SynthesisRequest(
            input=text,
            model=or_default(payload, "model", defaults.model),
            voice=or_default(payload, "voice", defaults.voice),
            response_format=or_default(payload, "response_format", defaults.response_format),
            speed=nullish_default(payload, "speed", defaults.speed),
        )

    async def synthesize(self, request: SynthesisRequest) -> SynthesisResult:
        """
        Forward a synthesis request and buffer the audio.

        Args:
            request: Validated synthesis request.

        Returns:
            SynthesisResult with the provider's audio bytes.

        Raises:
            CredentialMissingError: If no credential is configured.
            UpstreamError: If the provider answers non-2xx.
            httpx.HTTPError: On network failures and timeouts.
        """
        self.ensure_credential()
        payload = request.to_upstream_payload()

        verbose(
            _LOG, "upstream_speech",
            chars=len(request.input),
            model=request.model,
            voice=request.voice,
            format=request.response_format,
            speed=request.speed,
        )
        debug(_LOG, "upstream_speech_text", text=request.input[: self.config.logging.text_preview_chars])

        with metrics.track_inflight(), timeit("upstream_speech") as t:
            try:
                response = await self._client.post(
                    self.config.upstream.speech_url,
                    json=payload,
                    headers=self._auth_headers(),
                )
            finally:
                metrics.observe_upstream("tts", t.seconds)

        if not response.is_success:
            warn(_LOG, "upstream_rejected", relay="tts", status=response.status_code, seconds=t.seconds)
            raise UpstreamError(response.status_code, response.content)

        return SynthesisResult(audio=response.content, upstream_seconds=t.seconds)

    # -------------------------------------------------------------------------
    # Chat
    # -------------------------------------------------------------------------

    def parse_chat(self, payload: Any) -> ChatRequest:
        """
        Build a ChatRequest from a decoded JSON body.

        Raises:
            InvalidInputError: If `messages` is missing or not a list.
        """
        messages = validate_messages(payload)
        defaults = self.config.chat
        return ChatRequest(
            messages=messages,
            model=or_default(payload, "model", defaults.model),
            max_tokens=or_default(payload, "max_tokens", defaults.max_tokens),
            temperature=nullish_default(payload, "temperature", defaults.temperature),
            stream=nullish_default(payload, "stream", defaults.stream),
        )

    async def open_chat_stream(self, request: ChatRequest) -> ChatStream:
        """
        Forward a chat request and return the open upstream response.

        Only the status line and headers are awaited here; the body is
        streamed later by ChatStream.iter_bytes().

        Raises:
            CredentialMissingError: If no credential is configured.
            UpstreamError: If the provider answers non-2xx (body fully read).
            httpx.HTTPError: On network failures and timeouts.
        """
        self.ensure_credential()

        verbose(
            _LOG, "upstream_chat",
            messages=len(request.messages),
            model=request.model,
            stream=request.stream,
        )

        upstream_request = self._client.build_request(
            "POST",
            self.config.upstream.chat_url,
            json=request.to_upstream_payload(),
            headers=self._auth_headers(),
        )

        with metrics.track_inflight(), timeit("upstream_chat") as t:
            try:
                response = await self._client.send(upstream_request, stream=True)
            finally:
                metrics.observe_upstream("chat", t.seconds)

        if not response.is_success:
            try:
                body = await response.aread()
            finally:
                await response.aclose()
            warn(_LOG, "upstream_rejected", relay="chat", status=response.status_code, seconds=t.seconds)
            raise UpstreamError(response.status_code, body)

        content_type = response.headers.get("content-type") or CHAT_FALLBACK_CONTENT_TYPE
        return ChatStream(response=response, content_type=content_type, upstream_seconds=t.seconds)
