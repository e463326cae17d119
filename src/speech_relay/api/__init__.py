"""
FastAPI HTTP layer for speech-relay.

This package defines all HTTP endpoints:
    - routes.py: Relay mounts (/tts, /chat), /health, /metrics
    - cors.py: Preflight response and CORS headers
    - cancellation.py: Cancels upstream calls when the caller disconnects
    - dependencies.py: FastAPI dependency injection
"""
