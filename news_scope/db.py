"""
Postgres candidate search backend.
Uses asyncpg with connection pooling; similarity comes from pg_trgm over
lower(unaccent(name)), which is what the tokenizer mirrors in Python.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import asyncpg

from news_scope.config import get_settings
from news_scope.errors import CandidateSearchError
from news_scope.models import GeoCandidate

logger = logging.getLogger(__name__)

# ── Connection Pool ────────────────────────────────────────────────────

_pool: Optional[asyncpg.Pool] = None


async def get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = await asyncpg.create_pool(
            dsn=settings.db.dsn,
            min_size=settings.db.min_pool_size,
            max_size=settings.db.max_pool_size,
        )
        logger.info("Database connection pool created (min=%d, max=%d)",
                    settings.db.min_pool_size, settings.db.max_pool_size)
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Database connection pool closed")


@asynccontextmanager
async def get_connection() -> AsyncIterator[asyncpg.Connection]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        yield conn


# ── Schema Initialization ─────────────────────────────────────────────

async def run_migrations() -> None:
    """Execute SQL migrations in order (idempotent)."""
    from pathlib import Path

    migrations_dir = Path(__file__).parent / "migrations"
    migration_paths = sorted(migrations_dir.glob("*.sql"))

    async with get_connection() as conn:
        for path in migration_paths:
            await conn.execute(path.read_text())
            logger.info("Applied migration: %s", path.name)
    logger.info("Migrations applied successfully (%d files)", len(migration_paths))


# ── Row mapping ───────────────────────────────────────────────────────

def _upper(value: Optional[str]) -> Optional[str]:
    return value.strip().upper() if value else None


def country_row_to_candidate(row) -> GeoCandidate:
    iso2 = _upper(row["iso2"])
    return GeoCandidate(
        id=iso2 or "??",
        name=row["name"],
        country_name=None,
        country_iso2=iso2,
        country_iso3=_upper(row["iso3"]),
        lat=row["latitude"],
        lng=row["longitude"],
        score=_clamp(row["score"]),
    )


def city_row_to_candidate(row) -> GeoCandidate:
    return GeoCandidate(
        id=str(row["id"]),
        name=row["name"],
        country_name=row["country_name"],
        country_iso2=_upper(row["country_iso2"]),
        country_iso3=_upper(row["country_iso3"]),
        lat=row["latitude"],
        lng=row["longitude"],
        score=_clamp(row["score"]),
    )


def _clamp(score) -> float:
    return max(0.0, min(1.0, float(score or 0.0)))


# ── Repositories ──────────────────────────────────────────────────────

_COUNTRY_SEARCH_SQL = """
WITH q(term) AS (VALUES (lower(immutable_unaccent($1))))
SELECT co.iso2, co.iso3, co.name, co.latitude, co.longitude,
       similarity(lower(immutable_unaccent(co.name)), q.term) AS score
FROM countries co, q
WHERE lower(immutable_unaccent(co.name)) LIKE '%' || q.term || '%'
   OR lower(co.iso2) = q.term
   OR lower(co.iso3) = q.term
ORDER BY
    CASE
        WHEN lower(immutable_unaccent(co.name)) = q.term
          OR lower(co.iso2) = q.term
          OR lower(co.iso3) = q.term THEN 0
        WHEN lower(immutable_unaccent(co.name)) LIKE q.term || '%' THEN 1
        ELSE 2
    END,
    score DESC,
    co.iso2
LIMIT $2
"""

_CITY_SEARCH_SQL = """
WITH q(term) AS (VALUES (lower(immutable_unaccent($1))))
SELECT c.id, c.name, c.country_name, c.country_iso2, co.iso3 AS country_iso3,
       c.latitude, c.longitude,
       similarity(lower(immutable_unaccent(c.name)), q.term) AS score
FROM cities c
JOIN countries co ON co.iso2 = c.country_iso2, q
WHERE lower(immutable_unaccent(c.name)) LIKE '%' || q.term || '%'
ORDER BY
    CASE
        WHEN lower(immutable_unaccent(c.name)) = q.term THEN 0
        WHEN lower(immutable_unaccent(c.name)) LIKE q.term || '%' THEN 1
        ELSE 2
    END,
    score DESC,
    c.id
LIMIT $2
"""


class PgCountryRepository:
    async def search(self, term: str, limit: int) -> list[GeoCandidate]:
        try:
            async with get_connection() as conn:
                rows = await conn.fetch(_COUNTRY_SEARCH_SQL, term, limit)
        except (asyncpg.PostgresError, OSError) as e:
            raise CandidateSearchError(f"Country search failed for '{term}': {e}") from e
        return [country_row_to_candidate(r) for r in rows]

    async def get_by_id(self, candidate_id: str) -> Optional[GeoCandidate]:
        try:
            async with get_connection() as conn:
                row = await conn.fetchrow(
                    "SELECT iso2, iso3, name, latitude, longitude, 1.0 AS score "
                    "FROM countries WHERE iso2 = $1",
                    candidate_id.upper(),
                )
        except (asyncpg.PostgresError, OSError) as e:
            raise CandidateSearchError(f"Country lookup failed for '{candidate_id}': {e}") from e
        return country_row_to_candidate(row) if row else None


class PgCityRepository:
    async def search(self, term: str, limit: int) -> list[GeoCandidate]:
        try:
            async with get_connection() as conn:
                rows = await conn.fetch(_CITY_SEARCH_SQL, term, limit)
        except (asyncpg.PostgresError, OSError) as e:
            raise CandidateSearchError(f"City search failed for '{term}': {e}") from e
        return [city_row_to_candidate(r) for r in rows]

    async def get_by_id(self, candidate_id: str) -> Optional[GeoCandidate]:
        try:
            async with get_connection() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT c.id, c.name, c.country_name, c.country_iso2, co.iso3 AS country_iso3,
                           c.latitude, c.longitude, 1.0 AS score
                    FROM cities c JOIN countries co ON co.iso2 = c.country_iso2
                    WHERE c.id::text = $1
                    """,
                    candidate_id,
                )
        except (asyncpg.PostgresError, OSError) as e:
            raise CandidateSearchError(f"City lookup failed for '{candidate_id}': {e}") from e
        return city_row_to_candidate(row) if row else None
