"""Scripted candidate search backends for resolver/API tests."""

from __future__ import annotations

import asyncio
from typing import Optional

from news_scope.errors import CandidateSearchError
from news_scope.models import GeoCandidate


def country(iso2: str, name: str, score: float, iso3: str | None = None,
            lat: float | None = None, lng: float | None = None) -> GeoCandidate:
    return GeoCandidate(id=iso2, name=name, country_iso2=iso2, country_iso3=iso3,
                        lat=lat, lng=lng, score=score)


def city(city_id: str, name: str, iso2: str, score: float,
         lat: float | None = 1.0, lng: float | None = 1.0) -> GeoCandidate:
    return GeoCandidate(id=city_id, name=name, country_iso2=iso2, lat=lat, lng=lng, score=score)


class ScriptedSearch:
    """Returns canned candidates per normalized term and records every call."""

    def __init__(self, table: dict[str, list[GeoCandidate]] | None = None):
        self.table = table or {}
        self.calls: list[tuple[str, int]] = []

    async def search(self, term: str, limit: int) -> list[GeoCandidate]:
        self.calls.append((term, limit))
        await asyncio.sleep(0)
        return list(self.table.get(term, []))[:limit]

    async def get_by_id(self, candidate_id: str) -> Optional[GeoCandidate]:
        for candidates in self.table.values():
            for c in candidates:
                if c.id == candidate_id:
                    return c.boosted()
        return None


class FailingSearch(ScriptedSearch):
    def __init__(self, fail_on: str, table: dict[str, list[GeoCandidate]] | None = None):
        super().__init__(table)
        self.fail_on = fail_on

    async def search(self, term: str, limit: int) -> list[GeoCandidate]:
        if term == self.fail_on:
            raise CandidateSearchError(f"backend down for '{term}'")
        return await super().search(term, limit)


class BlockingSearch(ScriptedSearch):
    """Never answers until cancelled; counts cancellations."""

    def __init__(self):
        super().__init__()
        self.started = 0
        self.cancelled = 0

    async def search(self, term: str, limit: int) -> list[GeoCandidate]:
        self.started += 1
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        return []
