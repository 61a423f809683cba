"""
Pydantic models shared by the resolver, the search backends and the API.
Plain data; no database or HTTP coupling.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


# ── Enums ──────────────────────────────────────────────────────────────

class ScopeKind(str, Enum):
    NONE = "none"
    CITY = "city"
    COUNTRY = "country"
    CITY_IN_COUNTRY = "city_in_country"
    OTHER = "other"
    COMPOSITE = "composite"


class MatchedType(str, Enum):
    NON_GEO = "non-geo"
    CITY = "city"
    COUNTRY = "country"


# ── Candidates ────────────────────────────────────────────────────────

class GeoCandidate(BaseModel):
    """One ranked country or city match returned by a candidate search."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="ISO2 for countries, city id for cities")
    name: str
    country_name: Optional[str] = None
    country_iso2: Optional[str] = None
    country_iso3: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    score: float = Field(..., ge=0.0, le=1.0)

    def boosted(self) -> "GeoCandidate":
        """Copy of this candidate pinned to an exact-match score."""
        return self.model_copy(update={"score": 1.0})


class ScopeToken(BaseModel):
    """A single parsed piece of the query and the candidates it matched."""
    model_config = ConfigDict(frozen=True)

    raw: str
    normalized: str
    matched_type: MatchedType = MatchedType.NON_GEO
    country_candidates: list[GeoCandidate] = Field(default_factory=list)
    city_candidates: list[GeoCandidate] = Field(default_factory=list)

    def promoted(self, matched_type: MatchedType) -> "ScopeToken":
        return self.model_copy(update={"matched_type": matched_type})


# ── Preview ───────────────────────────────────────────────────────────

class ScopePreview(BaseModel):
    """
    Pre-commit view of the user's geographic intent.

    `is_ambiguous` says we are unsure which place is meant; `is_blocking`
    says the scope is structurally not searchable yet (a country with several
    candidate cities always blocks, a composite blocks while ambiguous).
    """
    kind: ScopeKind = ScopeKind.OTHER
    is_ambiguous: bool = False
    original_query: str = ""
    tokens: list[ScopeToken] = Field(default_factory=list)
    country_matches: list[GeoCandidate] = Field(default_factory=list)
    city_matches: list[GeoCandidate] = Field(default_factory=list)
    cities_grouped_by_country: dict[str, list[GeoCandidate]] = Field(default_factory=dict)
    non_geo_keywords: list[str] = Field(default_factory=list)
    targets: list[GeoCandidate] = Field(default_factory=list)
    diagnostics: Optional[dict[str, Any]] = None

    @computed_field
    @property
    def is_blocking(self) -> bool:
        if self.kind == ScopeKind.CITY_IN_COUNTRY:
            return True
        if self.kind == ScopeKind.COMPOSITE:
            return self.is_ambiguous
        return False

    @computed_field
    @property
    def can_search(self) -> bool:
        return not self.is_ambiguous and not self.is_blocking


# ── API response models ───────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str = "ok"
    search_backend: str = ""
    env: str = ""
