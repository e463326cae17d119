"""
Relay API Routes.

Each relay is mounted the way an edge function is hosted: it owns a path
prefix and answers every HTTP method there itself, so the preflight and
405 responses come from the relay rather than from the framework.

Endpoints:
    *    /tts[/...]    - Speech relay (POST JSON, returns audio/mpeg)
    *    /chat[/...]   - Chat relay (POST JSON, streams the upstream body)
    GET  /health       - Health check for load balancers and probes
    GET  /metrics      - Prometheus metrics

Request Flow (both relays):
    1. Generate a request id for log correlation
    2. OPTIONS → empty 200 with CORS headers
    3. Any other non-POST method → 405
    4. No upstream credential → 500 (checked before the body is read)
    5. Parse the JSON body and validate the required field → 400
    6. Exactly one upstream call, cancelled if the caller disconnects
    7. Relay the result, or the upstream's own error body and status

Error Handling:
    Relay errors are JSON objects with an `error` key:
        {"error": "Missing or invalid 'input' field"}

    Anything unexpected (malformed JSON, network failure, timeout) is
    logged with its traceback and reported as:
        {"error": "Internal server error", "details": "<exception text>"}

    Upstream rejections are relayed verbatim with the upstream status code
    and `application/json` content type.

Example Usage:
    >>> import requests
    >>> response = requests.post(
    ...     "http://localhost:8000/tts",
    ...     json={"input": "The Lord is my shepherd; I shall not want."},
    ... )
    >>> with open("psalm23.mp3", "wb") as f:
    ...     f.write(response.content)

See Also:
    - api/cors.py: preflight headers
    - api/cancellation.py: disconnect-aware upstream wait
    - services/relay_service.py: upstream calls
"""
from __future__ import annotations

import uuid
from typing import Awaitable, Callable, TypeVar

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse

from speech_relay import __version__
from speech_relay.api.cancellation import run_until_disconnect
from speech_relay.api.cors import is_preflight, preflight_response
from speech_relay.api.dependencies import get_relay_service
from speech_relay.api.schemas import RELAY_ERROR_RESPONSES, HealthResponse
from speech_relay.core.logging import error, get_logger, info, set_request_id, success, warn
from speech_relay.core.metrics import metrics
from speech_relay.services.errors import (
    ClientDisconnectedError,
    MethodNotAllowedError,
    RelayError,
    UpstreamError,
    internal_error,
)
from speech_relay.services.relay_service import AUDIO_CONTENT_TYPE, RelayService
from speech_relay.services.validators import parse_json_body

router = APIRouter()

_LOG = get_logger("speech-relay.api")

T = TypeVar("T")

# Every method is routed to the relay; it decides what is allowed.
RELAY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _new_request_id() -> str:
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)
    return rid


def _error_response(exc: RelayError) -> Response:
    """
    Map a RelayError onto its terminal HTTP response.

    UpstreamError carries the provider's raw body, which is relayed
    unchanged; every other error is rendered from to_dict().
    """
    if isinstance(exc, UpstreamError):
        return Response(content=exc.body, status_code=exc.status_code, media_type="application/json")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _relay(
    relay: str,
    request: Request,
    service: RelayService,
    call: Callable[[object], Awaitable[T]],
    on_success: Callable[[T, str], Response],
) -> Response:
    """
    Shared request flow of both relays.

    Args:
        relay: Relay name, used in logs and metric labels.
        request: The inbound request.
        service: The app's RelayService.
        call: Builds the upstream awaitable from the decoded JSON payload
            (validation errors raise from here).
        on_success: Builds the response from the upstream result.
    """
    rid = _new_request_id()

    if is_preflight(request.method):
        return preflight_response()

    try:
        if request.method.upper() != "POST":
            raise MethodNotAllowedError(request.method)

        service.ensure_credential()

        try:
            payload = parse_json_body(await request.body())
            result = await run_until_disconnect(
                request,
                call(payload),
                poll_interval=service.config.server.disconnect_poll_s,
            )
        except RelayError:
            raise
        except Exception as e:
            error(_LOG, "relay_failed", exc_info=True, relay=relay, error=str(e) or type(e).__name__)
            raise internal_error(e) from e

        return on_success(result, rid)

    except ClientDisconnectedError as e:
        warn(_LOG, "client_disconnected", relay=relay)
        metrics.record_request(relay, e.status_code)
        return _error_response(e)

    except UpstreamError as e:
        # Already logged by the service with the upstream timing.
        metrics.record_request(relay, e.status_code)
        return _error_response(e)

    except RelayError as e:
        info(_LOG, "relay_rejected", relay=relay, status=e.status_code, code=e.code)
        metrics.record_request(relay, e.status_code)
        return _error_response(e)


@router.api_route("/tts", methods=RELAY_METHODS, responses=RELAY_ERROR_RESPONSES)
@router.api_route("/tts/{subpath:path}", methods=RELAY_METHODS, include_in_schema=False)
async def tts_relay(
    request: Request,
    service: RelayService = Depends(get_relay_service),
):
    """
    Speech relay.

    Accepts `{"input": str, "model"?, "voice"?, "response_format"?, "speed"?}`
    and returns the provider's audio, fully buffered, as `audio/mpeg` with
    an explicit Content-Length.

    Example:
        curl -X POST http://localhost:8000/tts \\
            -H "Content-Type: application/json" \\
            -d '{"input": "In the beginning was the Word.", "voice": "alloy"}' \\
            --output john1.mp3
    """

    def synthesize(payload):
        return service.synthesize(service.parse_synthesis(payload))

    def respond(result, rid: str) -> Response:
        success(
            _LOG, "relayed",
            relay="tts",
            status=200,
            bytes=result.content_length,
            seconds=result.upstream_seconds,
        )
        metrics.record_request("tts", 200, audio_bytes=result.content_length)
        return Response(
            content=result.audio,
            status_code=200,
            media_type=AUDIO_CONTENT_TYPE,
            headers={
                "Content-Length": str(result.content_length),
                "X-Request-Id": rid,
            },
        )

    return await _relay("tts", request, service, synthesize, respond)


@router.api_route("/chat", methods=RELAY_METHODS, responses=RELAY_ERROR_RESPONSES)
@router.api_route("/chat/{subpath:path}", methods=RELAY_METHODS, include_in_schema=False)
async def chat_relay(
    request: Request,
    service: RelayService = Depends(get_relay_service),
):
    """
    Chat relay.

    Accepts `{"messages": list, "model"?, "max_tokens"?, "temperature"?, "stream"?}`
    and streams the provider's response body back as it arrives, with the
    provider's content type (server-sent events when streaming).
    """

    def open_stream(payload):
        return service.open_chat_stream(service.parse_chat(payload))

    def respond(stream, rid: str) -> Response:
        success(_LOG, "relayed", relay="chat", status=200, seconds=stream.upstream_seconds)
        metrics.record_request("chat", 200)
        # Content-Type goes in the headers so the upstream value is kept
        # exactly, without a charset appended.
        return StreamingResponse(
            stream.iter_bytes(),
            status_code=200,
            headers={
                "Content-Type": stream.content_type,
                "Cache-Control": "no-cache",
                "X-Request-Id": rid,
            },
        )

    return await _relay("chat", request, service, open_stream, respond)


@router.get("/health", response_model=HealthResponse)
def health(service: RelayService = Depends(get_relay_service)) -> HealthResponse:
    """
    Health check endpoint for load balancers and orchestration.

    Reports whether an upstream credential is configured, never the
    credential itself. The relay stays up without one and fails each
    request with the configuration error instead.
    """
    health_info = service.get_health_info()
    return HealthResponse(
        version=__version__,
        credential_configured=health_info["credential_configured"],
        upstream=health_info["upstream"],
    )


@router.get("/metrics")
def prometheus_metrics():
    """Prometheus metrics endpoint (text exposition format)."""
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
