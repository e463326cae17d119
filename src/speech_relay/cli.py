"""
Command-Line Interface for speech-relay.

Runs the relay server, or performs a one-off synthesis through the same
RelayService the server uses. The latter is an operator smoke test: it
checks the credential and upstream settings without a client app.

Usage Examples:
    # Run the HTTP server
    speech-relay serve --host 0.0.0.0 --port 8000

    # Synthesize one clip
    speech-relay say "Be still, and know that I am God." --out psalm46.mp3

    # Voice and speed overrides
    speech-relay say "Amen." --voice alloy --speed 0.9 --out amen.mp3

    # Dry-run mode (no network call, prints the outbound payload)
    speech-relay say "Test" --dry-run --json

Environment Variables:
    OPENAI_API_KEY: Upstream credential
    SPEECH_RELAY_SETTINGS: Settings file (default config/settings.yaml)
    SPEECH_RELAY_UPSTREAM_URL: Upstream base URL override
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

import httpx

from speech_relay.core.config import ConfigValidationError, RelayConfig, load_settings
from speech_relay.core.logging import configure_logging, fail, get_logger, info, set_request_id
from speech_relay.services.errors import RelayError, UpstreamError
from speech_relay.services.relay_service import RelayService, SynthesisRequest

DEFAULT_OUT = "speech.mp3"


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        argv: Optional list of arguments (defaults to sys.argv).

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(prog="speech-relay", description="speech-relay CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP relay server")
    serve.add_argument("--host", help="Bind address (default from settings)")
    serve.add_argument("--port", type=int, help="Bind port (default from settings)")

    say = sub.add_parser("say", help="Synthesize one clip through the relay service")
    say.add_argument("text", help="Text to synthesize")
    say.add_argument("--voice", help="Voice override")
    say.add_argument("--model", help="Model override")
    say.add_argument("--format", dest="response_format", help="Audio format override")
    say.add_argument("--speed", type=float, help="Speaking rate override")
    say.add_argument("--out", default=DEFAULT_OUT, help=f"Output file (default {DEFAULT_OUT})")
    say.add_argument("--dry-run", action="store_true",
                     help="Print the outbound payload without calling the upstream")
    say.add_argument("--json", action="store_true", help="Output result as JSON")

    return parser.parse_args(argv)


def _build_payload(args: argparse.Namespace) -> Dict[str, Any]:
    """Inbound-style request body from the CLI flags; unset flags are omitted."""
    payload: Dict[str, Any] = {"input": args.text}
    for key in ("model", "voice", "response_format", "speed"):
        value = getattr(args, key)
        if value is not None:
            payload[key] = value
    return payload


def _print_result(result: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(result, ensure_ascii=False))
    else:
        print(result)


async def _synthesize(
    config: RelayConfig,
    request: SynthesisRequest,
    transport: Optional[httpx.AsyncBaseTransport],
) -> bytes:
    async with httpx.AsyncClient(
        timeout=config.upstream.timeout_s,
        follow_redirects=True,
        transport=transport,
    ) as client:
        service = RelayService(config, client)
        result = await service.synthesize(request)
    return result.audio


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    try:
        settings = load_settings()
    except (FileNotFoundError, ConfigValidationError) as e:
        fail(get_logger("speech-relay.cli"), "config_invalid", error=str(e))
        return 1
    host = args.host or settings.host
    port = args.port or settings.port
    uvicorn.run("speech_relay.main:app", host=host, port=port, log_config=None)
    return 0


def _say(args: argparse.Namespace, transport: Optional[httpx.AsyncBaseTransport]) -> int:
    log = get_logger("speech-relay.cli")

    try:
        config = load_settings().get_relay_config()
    except (FileNotFoundError, ConfigValidationError) as e:
        fail(log, "config_invalid", error=str(e))
        return 1

    # Same validation and defaulting as the HTTP relay.
    try:
        request = RelayService(config).parse_synthesis(_build_payload(args))
    except RelayError as e:
        fail(log, "invalid_request", error=e.message)
        return 1

    if args.dry_run:
        payload = {
            "ok": True,
            "dry_run": True,
            "url": config.upstream.speech_url,
            "credential_configured": config.upstream.has_credential,
            "payload": request.to_upstream_payload(),
        }
        if not args.json:
            info(log, "dry_run", chars=len(request.input), voice=request.voice, model=request.model)
        _print_result(payload, args.json)
        print("DRY_RUN_OK")
        return 0

    out_path = Path(args.out)
    info(log, "synth_start", chars=len(request.input), out=str(out_path))

    try:
        audio = asyncio.run(_synthesize(config, request, transport))
    except UpstreamError as e:
        fail(log, "upstream_rejected", status=e.status_code, body=e.body.decode("utf-8", errors="replace"))
        return 1
    except RelayError as e:
        fail(log, "relay_failed", error=e.message)
        return 1
    except httpx.HTTPError as e:
        fail(log, "upstream_unreachable", error=str(e) or type(e).__name__)
        return 1

    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(audio)

    _print_result({"ok": True, "dry_run": False, "out": str(out_path), "bytes": len(audio)}, args.json)
    print("SAY_OK")
    return 0


def main(
    argv: Optional[List[str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Optional list of command-line arguments.
        transport: Optional httpx transport for the upstream client (tests).

    Returns:
        Exit code (0 for success, 1 for relay or configuration errors).
    """
    args = _parse_args(argv)

    configure_logging()
    set_request_id(str(uuid4())[:12])

    if args.command == "serve":
        return _serve(args)
    return _say(args, transport)


if __name__ == "__main__":
    raise SystemExit(main())
