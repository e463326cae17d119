"""
Prometheus Metrics for the relay.

Metrics Exposed:
    relay_requests_total               - Counter of relay requests by relay and final status
    relay_upstream_duration_seconds    - Histogram of upstream call latency by relay
    relay_audio_bytes_total            - Counter of audio bytes relayed to callers
    relay_inflight_requests            - Gauge of requests currently waiting on the upstream

Usage:
    from speech_relay.core.metrics import metrics

    metrics.record_request(relay="tts", status=200, audio_bytes=48213)
    metrics.observe_upstream("tts", 0.8)

    with metrics.track_inflight():
        response = await client.post(...)

    content, content_type = metrics.get_metrics_response()

Status label values are HTTP status codes as strings ("200", "429", ...);
"499" marks a caller that disconnected before the upstream answered.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class RelayMetrics:
    """
    Relay metrics collection.

    Each instance owns a private CollectorRegistry, so several apps (one
    per test, for example) can coexist in a process without duplicate
    metric registration errors. The module-level `metrics` instance is the
    one the application uses.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self._registry = registry or CollectorRegistry()

        self._requests_total = Counter(
            "relay_requests_total",
            "Total relay requests by final status",
            ["relay", "status"],
            registry=self._registry,
        )

        # Upstream TTS latency is dominated by clip length, hence the long tail.
        self._upstream_duration = Histogram(
            "relay_upstream_duration_seconds",
            "Upstream call duration in seconds",
            ["relay"],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )

        self._audio_bytes_total = Counter(
            "relay_audio_bytes_total",
            "Total audio bytes relayed to callers",
            registry=self._registry,
        )

        self._inflight = Gauge(
            "relay_inflight_requests",
            "Requests currently waiting on the upstream provider",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(self, relay: str, status: int, audio_bytes: int = 0) -> None:
        """
        Record a finished relay request.

        Args:
            relay: Relay name ("tts", "chat").
            status: HTTP status returned to the caller.
            audio_bytes: Audio bytes returned on success.
        """
        self._requests_total.labels(relay=relay, status=str(status)).inc()
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def observe_upstream(self, relay: str, seconds: float) -> None:
        """Record the duration of one upstream call, successful or not."""
        self._upstream_duration.labels(relay=relay).observe(seconds)

    @contextmanager
    def track_inflight(self) -> Iterator[None]:
        """Count the enclosed block as one in-flight upstream call."""
        self._inflight.inc()
        try:
            yield
        finally:
            self._inflight.dec()

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus text format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global metrics instance: from speech_relay.core.metrics import metrics
metrics = RelayMetrics()
