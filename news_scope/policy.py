"""
Scope policy: pure decision logic over ranked country/city candidates.

  choose_country_iso2  which country (if any) the query clearly points at
  decide_kind          City / Country / CityInCountry / Composite / Other
  is_ambiguous         whether the top candidates are too close to pick one

Holds no mutable state; one instance is shared across requests.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Optional, Sequence

from news_scope.diagnostics import NullTraceSink, TraceSink
from news_scope.models import GeoCandidate, ScopeKind
from news_scope.tokenizer import QueryTokenizer, default_tokenizer

logger = logging.getLogger(__name__)

POLICY_VERSION = "ScopePolicy v2 (score-aware + tokenizer)"

# Tuned against a real place-name corpus; do not re-derive.
COUNTRY_THRESHOLD = 0.6
CITY_THRESHOLD = 0.6
CLEAR_LEADER_GAP = 0.10
HIGH_SCORE_FLOOR = 0.90
IN_COUNTRY_TIE_EPS = 0.01
CROSS_COUNTRY_TIE_EPS = 0.05

_NULL_SINK = NullTraceSink()


def same_iso(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.upper() == b.upper()


def _distinct_ids(cities: Sequence[GeoCandidate]) -> int:
    return len({c.id for c in cities if c.id and c.id.strip()})


def _has_same_country_multi_city(cities: Sequence[GeoCandidate]) -> bool:
    """True when some country holds more than one distinct city candidate."""
    groups: dict[Optional[str], list[GeoCandidate]] = defaultdict(list)
    for c in cities:
        groups[c.country_iso2].append(c)
    return any(len(g) > 1 and len({c.id for c in g}) > 1 for g in groups.values())


class ScopePolicy:
    def __init__(self, tokenizer: QueryTokenizer | None = None):
        self.tokenizer = tokenizer or default_tokenizer

    # ── Country choice ────────────────────────────────────────────────

    def choose_country_iso2(
        self,
        countries: Sequence[GeoCandidate],
        non_geo_keywords: Sequence[str],
        trace: TraceSink | None = None,
    ) -> Optional[str]:
        """
        Return the ISO2 of a clear country leader, or of the first country whose
        full name appears as separate non-geo keywords ("san marino"), else None.
        """
        trace = trace or _NULL_SINK
        if not countries:
            return None

        ordered = sorted(countries, key=lambda c: (-c.score, self.tokenizer.normalize(c.name)))
        top = ordered[0]
        top_iso2 = top.country_iso2.upper() if top.country_iso2 else None
        second = ordered[1].score if len(ordered) > 1 else 0.0

        trace("chooseCountry.top",
              f"iso={top_iso2} score={top.score:.3f} second={second:.3f} count={len(countries)}")

        if top_iso2 and top_iso2.strip() and (
            len(countries) == 1
            or (top.score - second) >= CLEAR_LEADER_GAP
            or top.score >= HIGH_SCORE_FLOOR
        ):
            return top_iso2

        keywords = {
            n for n in (self.tokenizer.normalize(k) for k in non_geo_keywords) if n.strip()
        }
        for country in ordered:
            iso2 = country.country_iso2.upper() if country.country_iso2 else None
            if not iso2 or not iso2.strip():
                continue
            name_tokens = [
                n for n in self.tokenizer.normalize_all(self.tokenizer.split(country.name)) if n.strip()
            ]
            if name_tokens and all(t in keywords for t in name_tokens):
                trace("chooseCountry.phrase",
                      f"picked={iso2} name='{country.name}' tokens=[{','.join(name_tokens)}]")
                return iso2

        trace("chooseCountry.none", "no clear leader and no phrase match")
        return None

    # ── Kind ──────────────────────────────────────────────────────────

    def decide_kind(
        self,
        countries: Sequence[GeoCandidate],
        cities: Sequence[GeoCandidate],
    ) -> ScopeKind:
        if not countries and not cities:
            return ScopeKind.OTHER

        if not cities:
            if self.choose_country_iso2(countries, []):
                return ScopeKind.COUNTRY
            return ScopeKind.COMPOSITE if len(countries) >= 2 else ScopeKind.COUNTRY

        chosen = self.choose_country_iso2(countries, [])
        if chosen:
            in_country = _distinct_ids([c for c in cities if same_iso(c.country_iso2, chosen)])
            if in_country == 1:
                return ScopeKind.CITY
            if in_country >= 2:
                return ScopeKind.CITY_IN_COUNTRY
            # Chosen country holds none of the cities
            return ScopeKind.COMPOSITE

        distinct_countries = {c.country_iso2.upper() for c in cities if c.country_iso2 and c.country_iso2.strip()}
        if len(distinct_countries) >= 2:
            return ScopeKind.COMPOSITE
        if len(distinct_countries) == 1 and len({c.id for c in cities}) > 1:
            return ScopeKind.CITY_IN_COUNTRY
        return ScopeKind.CITY

    # ── Ambiguity ─────────────────────────────────────────────────────

    def is_ambiguous(
        self,
        countries: Sequence[GeoCandidate],
        cities: Sequence[GeoCandidate],
        non_geo_keywords: Sequence[str],
        trace: TraceSink | None = None,
    ) -> bool:
        trace = trace or _NULL_SINK
        if not cities:
            return False

        if not countries and _has_same_country_multi_city(cities):
            trace("ambiguous.sameCountryMultiCity", "no countries")
            return True

        chosen = self.choose_country_iso2(countries, non_geo_keywords, trace)
        trace("ambiguous.chosenIso2", chosen or "(none)")

        if chosen:
            in_country = [c for c in cities if same_iso(c.country_iso2, chosen)]
            if not in_country:
                top = max(c.score for c in cities)
                floor = max(HIGH_SCORE_FLOOR, top - IN_COUNTRY_TIE_EPS)
                if any(not same_iso(c.country_iso2, chosen) and c.score >= floor for c in cities):
                    trace("ambiguous.strongCityElsewhere", f"top={top:.3f}")
                    return True
                # Weak cities elsewhere: judge as if no country had been chosen
                chosen = None
            elif len(in_country) > 1:
                top = max(c.score for c in in_country)
                floor = max(HIGH_SCORE_FLOOR, top - IN_COUNTRY_TIE_EPS)
                tied = _distinct_ids([c for c in in_country if c.score >= floor])
                trace("ambiguous.inCountryTop", f"top={top:.3f} tiedDistinct={tied}")
                return tied > 1
            else:
                return False

        if _has_same_country_multi_city(cities):
            trace("ambiguous.sameCountryMultiCity", "no chosen country")
            return True

        top = max(c.score for c in cities)
        floor = max(HIGH_SCORE_FLOOR, top - CROSS_COUNTRY_TIE_EPS)
        top_countries = {
            c.country_iso2.upper()
            for c in cities
            if c.score >= floor and c.country_iso2 and c.country_iso2.strip()
        }
        trace("ambiguous.crossCountryTop", f"top={top:.3f} distinctTopCountries={len(top_countries)}")
        return len(top_countries) >= 2
