"""Exceptions raised by the candidate search backends and the resolver."""

from __future__ import annotations


class CandidateSearchError(Exception):
    """A candidate search backend could not answer (I/O, timeout, bad data)."""


class ScopeResolutionError(Exception):
    """A preview could not be built because a candidate search failed."""

    def __init__(self, query: str, message: str):
        super().__init__(message)
        self.query = query
