"""
Candidate search contract consumed by the resolver.

A backend answers "which countries / cities look like this normalized term"
with a ranked list of scored candidates, and can fetch one candidate by id.
How scores are computed (pg_trgm in Postgres, rapidfuzz in memory) is the
backend's business; the resolver only needs them comparable, stable for
identical input and bounded to [0, 1].
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from news_scope.config import get_settings
from news_scope.models import GeoCandidate
from news_scope.tokenizer import QueryTokenizer, default_tokenizer

logger = logging.getLogger(__name__)


class CandidateSearch(Protocol):
    async def search(self, term: str, limit: int) -> list[GeoCandidate]: ...

    async def get_by_id(self, candidate_id: str) -> Optional[GeoCandidate]: ...


class _SearchService:
    """
    Normalizes the incoming term and clamps the limit before delegating to a
    repository backend. Blank terms never reach the backend.
    """

    kind = "candidate"

    def __init__(
        self,
        repository: CandidateSearch,
        tokenizer: QueryTokenizer | None = None,
        max_limit: int | None = None,
    ):
        self.repository = repository
        self.tokenizer = tokenizer or default_tokenizer
        self.max_limit = max_limit or get_settings().search.max_limit

    async def search(self, term: str, limit: int) -> list[GeoCandidate]:
        normalized = self.tokenizer.normalize(term)
        if not normalized.strip():
            return []
        capped = max(1, min(limit, self.max_limit))
        results = await self.repository.search(normalized, capped)
        logger.debug("%s search '%s' (limit=%d): %d candidates",
                     self.kind, normalized, capped, len(results))
        return results

    async def get_by_id(self, candidate_id: str) -> Optional[GeoCandidate]:
        return await self.repository.get_by_id(candidate_id)


class CountrySearchService(_SearchService):
    kind = "country"

    async def get_by_id(self, candidate_id: str) -> Optional[GeoCandidate]:
        # Countries are keyed by ISO2
        return await self.repository.get_by_id(candidate_id.strip().upper())


class CitySearchService(_SearchService):
    kind = "city"


def build_search_services(
    backend: str | None = None,
    seed_path: str | None = None,
) -> tuple[CountrySearchService, CitySearchService]:
    """Factory: country + city search services for the configured backend."""
    settings = get_settings().search
    backend = backend or settings.backend

    if backend == "gazetteer":
        from news_scope.gazetteer import Gazetteer

        gazetteer = Gazetteer.from_jsonl(seed_path or settings.gazetteer_seed)
        return CountrySearchService(gazetteer.countries), CitySearchService(gazetteer.cities)

    if backend == "postgres":
        from news_scope.db import PgCityRepository, PgCountryRepository

        return CountrySearchService(PgCountryRepository()), CitySearchService(PgCityRepository())

    raise ValueError(f"Unknown search backend '{backend}' (expected postgres | gazetteer)")
