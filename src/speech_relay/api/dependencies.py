"""
FastAPI Dependency Injection Providers.

    get_settings()       - loads and caches Settings (file + environment)
    get_relay_service()  - the RelayService created in the app lifespan

The RelayService lives on `app.state` rather than in a module global, so
each app built by create_app() (one per test, for instance) has its own
service, credential and HTTP client.

Usage in Route Handlers:
    @router.get("/health")
    def health(service: RelayService = Depends(get_relay_service)):
        return service.get_health_info()
"""
from __future__ import annotations

from functools import lru_cache

from fastapi import Request

from speech_relay.core.config import Settings, load_settings
from speech_relay.services.relay_service import RelayService


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    Read once per process: the credential and every other value are
    immutable for the process lifetime. Restart to pick up changes.
    """
    return load_settings()


def get_relay_service(request: Request) -> RelayService:
    """Return the RelayService of the app serving `request`."""
    return request.app.state.relay_service
