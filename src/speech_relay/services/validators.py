"""
Input Validation for relay requests.

Inbound bodies are free-form JSON; these helpers pull out and check the
fields the relays need. Two fallback rules are used for optional fields:

    - or_default:      missing, null, empty string, 0 or false fall back
                       (model, voice, response_format, max_tokens)
    - nullish_default: only missing or null fall back, so `speed: 0` or
                       `stream: false` reach the provider as given
                       (speed, temperature, stream)

Values are otherwise forwarded as-is; the provider is the authority on
what a valid voice or model is, and its error is relayed verbatim.

Usage:
    from speech_relay.services.validators import validate_input, or_default

    text = validate_input(payload)
    voice = or_default(payload, "voice", "onyx")
"""
from __future__ import annotations

import json
from typing import Any, Dict, List

from speech_relay.services.errors import InvalidInputError


def parse_json_body(body: bytes) -> Any:
    """
    Decode a request body as JSON.

    Decoding errors are not input errors: they propagate as-is and the
    route reports them as the internal error.

    Raises:
        json.JSONDecodeError / UnicodeDecodeError: If the body isn't JSON.
    """
    return json.loads(body)


def _as_object(payload: Any, field: str) -> Dict[str, Any]:
    # A null body has no fields to read: an internal error, not a 400.
    if payload is None:
        raise TypeError(f"cannot read '{field}' of a null body")
    if not isinstance(payload, dict):
        raise InvalidInputError(field)
    return payload


def validate_input(payload: Any) -> str:
    """
    Return the `input` text of a synthesis payload.

    Raises:
        InvalidInputError: If `input` is missing, not a string, or empty.
        TypeError: If the body was JSON null.
    """
    value = _as_object(payload, "input").get("input")
    if not isinstance(value, str) or not value:
        raise InvalidInputError("input")
    return value


def validate_messages(payload: Any) -> List[Any]:
    """
    Return the `messages` list of a chat payload.

    Message entries are not inspected; the provider validates them.

    Raises:
        InvalidInputError: If `messages` is missing or not a list.
        TypeError: If the body was JSON null.
    """
    value = _as_object(payload, "messages").get("messages")
    if not isinstance(value, list):
        raise InvalidInputError("messages")
    return value


def or_default(payload: Dict[str, Any], key: str, default: Any) -> Any:
    """Value of `key`, or `default` when it is missing or falsy."""
    return payload.get(key) or default


def nullish_default(payload: Dict[str, Any], key: str, default: Any) -> Any:
    """Value of `key`, or `default` when it is missing or null."""
    value = payload.get(key)
    return default if value is None else value
