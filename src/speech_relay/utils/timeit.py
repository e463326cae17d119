"""
Timing Utilities.

`timeit` measures a block with perf_counter(); the relay uses it around
upstream calls so the duration can go into logs and the latency histogram.

Example:
    with timeit("upstream_speech") as t:
        response = await client.post(url, json=payload)
    print(f"Took {t.seconds:.3f}s")
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """
    Timing measurement result.

    Attributes:
        name: What was timed (e.g. "upstream_speech").
        seconds: Duration in seconds.
        meta: Optional metadata attached by the caller.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """
    Context manager for timing code blocks.

    The result is available as `timing` after the block exits, including
    when the block raised. `seconds` reads the elapsed time so far while
    still inside the block.
    """

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=perf_counter() - self._t0, meta=self.meta)

    @property
    def seconds(self) -> float:
        if self.timing is not None:
            return self.timing.seconds
        if self._t0 is None:
            return 0.0
        return perf_counter() - self._t0
