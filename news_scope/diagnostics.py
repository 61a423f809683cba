"""
Trace sinks for scope-resolution debugging.

Policy and resolver decisions are reported as (key, value) pairs. Sinks only
observe; nothing they record feeds back into a decision.
"""

from __future__ import annotations

import logging
from typing import Protocol


class TraceSink(Protocol):
    def __call__(self, key: str, value: str) -> None: ...


class NullTraceSink:
    def __call__(self, key: str, value: str) -> None:
        return None


class ListTraceSink:
    """Collects `key:value` lines; the resolver ships them in diagnostics."""

    def __init__(self):
        self.lines: list[str] = []

    def __call__(self, key: str, value: str) -> None:
        self.lines.append(f"{key}:{value}")


class LoggingTraceSink:
    def __init__(self, logger: logging.Logger | None = None, level: int = logging.DEBUG):
        self.logger = logger or logging.getLogger("news_scope.trace")
        self.level = level

    def __call__(self, key: str, value: str) -> None:
        self.logger.log(self.level, "%s %s", key, value)


class TeeTraceSink:
    def __init__(self, *sinks: TraceSink):
        self.sinks = sinks

    def __call__(self, key: str, value: str) -> None:
        for sink in self.sinks:
            sink(key, value)
