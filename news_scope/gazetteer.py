"""
In-memory candidate search backend.

Holds a small table of countries and cities and answers searches with the
same contract as the Postgres backend (see db.py):

  - a candidate matches when the normalized term is a substring of its
    normalized name (countries also match on exact ISO2/ISO3);
  - ordering is exact match, then name prefix, then the rest; score
    descending within each bucket; id ascending as the final tie-break;
  - score is the normalized Indel similarity (rapidfuzz `ratio`) between the
    normalized name and the term, scaled to [0, 1].

Useful offline (CLI `preview --seed`) and as a deterministic backend in tests.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from rapidfuzz import fuzz

from news_scope.errors import CandidateSearchError
from news_scope.models import GeoCandidate
from news_scope.tokenizer import QueryTokenizer, default_tokenizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaceRecord:
    kind: str                      # country | city
    id: str                        # ISO2 for countries
    name: str
    country_iso2: Optional[str] = None
    country_iso3: Optional[str] = None
    country_name: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


# ── Similarity ────────────────────────────────────────────────────────

def similarity(name: str, term: str) -> float:
    """Fuzzy similarity in [0, 1]; identical strings score exactly 1.0."""
    if not name or not term:
        return 0.0
    return fuzz.ratio(name, term) / 100.0


# ── Gazetteer ─────────────────────────────────────────────────────────

class Gazetteer:
    def __init__(self, records: Iterable[PlaceRecord], tokenizer: QueryTokenizer | None = None):
        self.tokenizer = tokenizer or default_tokenizer
        self._countries: dict[str, PlaceRecord] = {}
        self._cities: dict[str, PlaceRecord] = {}
        for rec in records:
            if rec.kind == "country":
                self._countries[rec.id.upper()] = rec
            elif rec.kind == "city":
                self._cities[rec.id] = rec
            else:
                raise ValueError(f"Unknown place kind '{rec.kind}' for {rec.id}")
        self._normalized_names = {
            (rec.kind, rec.id): self.tokenizer.normalize(rec.name)
            for rec in list(self._countries.values()) + list(self._cities.values())
        }
        self.countries = GazetteerCountrySearch(self)
        self.cities = GazetteerCitySearch(self)

    @classmethod
    def from_jsonl(cls, path: str | Path) -> "Gazetteer":
        file_path = Path(path)
        if not file_path.exists():
            raise CandidateSearchError(f"Missing gazetteer seed file: {file_path}")
        records: list[PlaceRecord] = []
        with file_path.open("r", encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                records.append(PlaceRecord(**json.loads(line)))
        logger.info("Loaded gazetteer seed %s (%d records)", file_path, len(records))
        return cls(records)

    def __len__(self) -> int:
        return len(self._countries) + len(self._cities)

    def _name(self, rec: PlaceRecord) -> str:
        return self._normalized_names[(rec.kind, rec.id)]

    def country(self, iso2: str | None) -> Optional[PlaceRecord]:
        if not iso2:
            return None
        return self._countries.get(iso2.upper())

    def search_countries(self, term: str, limit: int) -> list[GeoCandidate]:
        ranked: list[tuple[tuple, GeoCandidate]] = []
        for rec in self._countries.values():
            name = self._name(rec)
            iso_hit = term in (rec.id.lower(), (rec.country_iso3 or "").lower())
            if term not in name and not iso_hit:
                continue
            score = similarity(name, term)
            bucket = 0 if (name == term or iso_hit) else 1 if name.startswith(term) else 2
            ranked.append(((bucket, -score, rec.id.upper()), self._country_candidate(rec, score)))
        ranked.sort(key=lambda pair: pair[0])
        return [c for _, c in ranked[:limit]]

    def search_cities(self, term: str, limit: int) -> list[GeoCandidate]:
        ranked: list[tuple[tuple, GeoCandidate]] = []
        for rec in self._cities.values():
            name = self._name(rec)
            if term not in name:
                continue
            score = similarity(name, term)
            bucket = 0 if name == term else 1 if name.startswith(term) else 2
            ranked.append(((bucket, -score, rec.id), self._city_candidate(rec, score)))
        ranked.sort(key=lambda pair: pair[0])
        return [c for _, c in ranked[:limit]]

    def country_by_id(self, iso2: str) -> Optional[GeoCandidate]:
        rec = self._countries.get(iso2.upper())
        return self._country_candidate(rec, 1.0) if rec else None

    def city_by_id(self, city_id: str) -> Optional[GeoCandidate]:
        rec = self._cities.get(city_id)
        return self._city_candidate(rec, 1.0) if rec else None

    @staticmethod
    def _country_candidate(rec: PlaceRecord, score: float) -> GeoCandidate:
        return GeoCandidate(
            id=rec.id.upper(),
            name=rec.name,
            country_name=None,
            country_iso2=rec.id.upper(),
            country_iso3=rec.country_iso3.upper() if rec.country_iso3 else None,
            lat=rec.lat,
            lng=rec.lng,
            score=score,
        )

    def _city_candidate(self, rec: PlaceRecord, score: float) -> GeoCandidate:
        iso2 = rec.country_iso2.upper() if rec.country_iso2 else None
        country = self.country(iso2)
        iso3 = rec.country_iso3 or (country.country_iso3 if country else None)
        return GeoCandidate(
            id=rec.id,
            name=rec.name,
            country_name=rec.country_name or (country.name if country else None),
            country_iso2=iso2,
            country_iso3=iso3.upper() if iso3 else None,
            lat=rec.lat,
            lng=rec.lng,
            score=score,
        )


class GazetteerCountrySearch:
    def __init__(self, gazetteer: Gazetteer):
        self.gazetteer = gazetteer

    async def search(self, term: str, limit: int) -> list[GeoCandidate]:
        return self.gazetteer.search_countries(term, limit)

    async def get_by_id(self, candidate_id: str) -> Optional[GeoCandidate]:
        return self.gazetteer.country_by_id(candidate_id)


class GazetteerCitySearch:
    def __init__(self, gazetteer: Gazetteer):
        self.gazetteer = gazetteer

    async def search(self, term: str, limit: int) -> list[GeoCandidate]:
        return self.gazetteer.search_cities(term, limit)

    async def get_by_id(self, candidate_id: str) -> Optional[GeoCandidate]:
        return self.gazetteer.city_by_id(candidate_id)
