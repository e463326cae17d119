"""
speech-relay: Stateless text-to-speech relay for a devotional reading app.

The mobile app never holds the provider credential. It posts a JSON request
to this service, which attaches the server-side credential, forwards the
request to the OpenAI speech API and relays the audio (or the provider's
error) back unchanged.

Key Features:
    - Speech relay (/tts): buffered audio/mpeg passthrough
    - Chat relay (/chat): streamed chat-completion passthrough
    - CORS preflight handling for browser callers
    - Structured logging with request id correlation
    - Prometheus metrics (/metrics) and health probe (/health)
    - CLI for running the server and one-off synthesis

Example Usage:
    >>> import httpx
    >>> from speech_relay.core.config import load_settings
    >>> from speech_relay.services import RelayService
    >>>
    >>> config = load_settings().get_relay_config()
    >>> async with httpx.AsyncClient(timeout=config.upstream.timeout_s) as client:
    ...     service = RelayService(config, client)
    ...     result = await service.synthesize(service.parse_synthesis({"input": "Amen."}))
    >>> with open("amen.mp3", "wb") as f:
    ...     f.write(result.audio)
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
