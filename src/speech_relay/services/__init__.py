"""
speech-relay Services Layer.

Business logic between the HTTP routes and the upstream provider.

Components:
    - relay_service.py: RelayService (credential check, request building,
      upstream calls) and the request/result dataclasses
    - validators.py: payload field extraction and validation
    - errors.py: RelayError hierarchy and error codes
"""
from .errors import (
    ClientDisconnectedError,
    CredentialMissingError,
    ErrorCode,
    InvalidInputError,
    MethodNotAllowedError,
    RelayError,
    UpstreamError,
    internal_error,
)
from .relay_service import (
    ChatRequest,
    ChatStream,
    RelayService,
    SynthesisRequest,
    SynthesisResult,
)

__all__ = [
    "RelayService",
    "SynthesisRequest",
    "SynthesisResult",
    "ChatRequest",
    "ChatStream",
    "RelayError",
    "MethodNotAllowedError",
    "CredentialMissingError",
    "InvalidInputError",
    "UpstreamError",
    "ClientDisconnectedError",
    "ErrorCode",
    "internal_error",
]
