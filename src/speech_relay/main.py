"""
FastAPI Application Entry Point.

This module creates and configures the FastAPI application instance for
speech-relay. It sets up logging, the shared upstream HTTP client and the
relay routes.

Routes:
    - Relays: /tts, /chat (any method, any sub-path)
    - Operations: /health, /metrics

Usage:
    # Run with uvicorn
    uvicorn speech_relay.main:app --host 0.0.0.0 --port 8000

    # Or through the CLI
    speech-relay serve --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
from fastapi import FastAPI

from speech_relay import __version__
from speech_relay.api.dependencies import get_settings
from speech_relay.api.routes import router
from speech_relay.core.config import Settings
from speech_relay.core.logging import configure_logging, get_logger, info, warn
from speech_relay.services.relay_service import RelayService

_LOG = get_logger("speech-relay.main")


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This factory function:
        1. Configures structured logging from environment/settings
        2. Validates the relay configuration (fails fast on bad values)
        3. Registers a lifespan that owns one shared httpx.AsyncClient
        4. Registers the relay and operations routes

    Args:
        settings: Settings to use; loaded from file and environment when None.
        transport: Optional httpx transport for the upstream client. Tests
            pass an httpx.MockTransport here.

    Returns:
        FastAPI: Configured application instance ready to serve requests.

    Raises:
        ConfigValidationError: If a configuration value is invalid.
    """
    configure_logging()

    settings = settings or get_settings()
    config = settings.get_relay_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with httpx.AsyncClient(
            timeout=config.upstream.timeout_s,
            follow_redirects=True,
            transport=transport,
        ) as client:
            app.state.relay_service = RelayService(config, client)
            info(
                _LOG, "startup",
                version=__version__,
                upstream=config.upstream.base_url,
                timeout_s=config.upstream.timeout_s,
            )
            if not config.upstream.has_credential:
                warn(_LOG, "credential_missing", hint="set OPENAI_API_KEY; relay requests will fail with 500")
            yield
        info(_LOG, "shutdown")

    app = FastAPI(title="speech-relay", version=__version__, lifespan=lifespan)
    app.include_router(router)

    return app


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
