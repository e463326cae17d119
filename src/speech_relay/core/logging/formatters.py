"""
Log Formatters for JSON and Console Output.

    JsonlFormatter: one JSON object per line, for the rotating log file.
    ColoredConsoleFormatter: short human-readable line for stdout.

Output Examples:
    JSONL:
        {"ts":"2026-01-15T14:30:05+00:00","level":2,"tag":"INFO","message":"relayed","request_id":"1f2e3d4c5b6a","seconds":0.812,"extra":{"relay":"tts","status":200,"bytes":48213}}

    Console:
        14:30:05 [ INFO  ] (1f2e3d4c5b6a) relayed 0.812s relay=tts status=200 bytes=48213

Console coloring:
    - Tags by severity (see colors.get_tag_color)
    - Upstream timing: green < 1s, yellow < 5s, red otherwise
    - `status` extra field: green 2xx, yellow 4xx, red 5xx
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from .colors import Colors, get_status_color, get_tag_color


def _paint(text: str, color: str) -> str:
    # Looked up at call time: configure_logging() and tests flip the flag.
    from . import colors
    if not colors.USE_COLORS:
        return text
    return f"{color}{text}{Colors.RESET}"


class JsonlFormatter(logging.Formatter):
    """
    Format log records as JSON Lines.

    Fields: ts (ISO, local tz), level (1-4), tag, message, request_id,
    plus event, seconds and extra when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Format log records for the console.

    Format:
        HH:MM:SS [ TAG   ] (rid) message event=... 0.123s key=value
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")

        parts = [
            _paint(ts, Colors.DIM),
            _paint(f"[{tag:^7}]", get_tag_color(tag)),
        ]
        if rid != "-":
            parts.append(_paint(f"({rid})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())

        event = getattr(record, "event", None)
        if event:
            parts.append(_paint(f"event={event}", Colors.BLUE))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            parts.append(_paint(f"{seconds:.3f}s", self._timing_color(seconds)))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for k, v in extra_data.items():
                parts.append(_paint(f"{k}={v}", self._field_color(k, v)))

        if record.exc_info:
            parts.append("\n" + self.formatException(record.exc_info))

        return " ".join(parts)

    @staticmethod
    def _timing_color(seconds: float) -> str:
        # Speech synthesis upstream calls routinely take around a second.
        if seconds < 1.0:
            return Colors.GREEN
        if seconds < 5.0:
            return Colors.YELLOW
        return Colors.RED

    @staticmethod
    def _field_color(key: str, value: Any) -> str:
        if key == "status" and isinstance(value, int):
            return get_status_color(value)
        if key == "relay":
            return Colors.MAGENTA
        return Colors.DIM
