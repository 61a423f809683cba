"""
Target selection: which concrete points (city pins or country centroids) a
resolved preview should show on the map.
"""

from __future__ import annotations

from typing import Optional, Sequence

from news_scope.diagnostics import NullTraceSink, TraceSink
from news_scope.models import GeoCandidate, ScopeKind
from news_scope.policy import CITY_THRESHOLD, COUNTRY_THRESHOLD, same_iso

MAX_COMPOSITE_TARGETS = 12
EXACT_FLOOR = 0.999  # tolerate float jitter around 1.0


def _dedupe_ranked(candidates: Sequence[GeoCandidate]) -> list[GeoCandidate]:
    """First candidate per id, then score desc, name asc."""
    seen: dict[str, GeoCandidate] = {}
    for c in candidates:
        seen.setdefault(c.id, c)
    return sorted(seen.values(), key=lambda c: (-c.score, c.name))


def select_targets(
    kind: ScopeKind,
    is_ambiguous: bool,
    chosen_iso2: Optional[str],
    city_matches: Sequence[GeoCandidate],
    country_matches: Sequence[GeoCandidate],
    trace: TraceSink | None = None,
) -> list[GeoCandidate]:
    trace = trace or NullTraceSink()

    if is_ambiguous and kind == ScopeKind.COMPOSITE:
        exacts = _dedupe_ranked([c for c in city_matches if c.score >= EXACT_FLOOR])
        if exacts:
            trace("targets.composite.exacts", str(len(exacts)))
            return exacts[:MAX_COMPOSITE_TARGETS]

        strong = _dedupe_ranked([c for c in city_matches if c.score >= CITY_THRESHOLD])
        if strong:
            trace("targets.composite.cities", str(min(len(strong), MAX_COMPOSITE_TARGETS)))
            return strong[:MAX_COMPOSITE_TARGETS]

        if len(country_matches) >= 2:
            centroids = [
                c.model_copy()
                for c in country_matches
                if c.score >= COUNTRY_THRESHOLD and c.lat is not None and c.lng is not None
            ][:MAX_COMPOSITE_TARGETS]
            if centroids:
                trace("targets.composite.countries", str(len(centroids)))
                return centroids
        return []

    if kind == ScopeKind.CITY_IN_COUNTRY and is_ambiguous and chosen_iso2:
        in_country = [c for c in city_matches if same_iso(c.country_iso2, chosen_iso2)]
        exacts = _dedupe_ranked([c for c in in_country if c.score >= EXACT_FLOOR])
        if exacts:
            trace("targets.cityincountry.exacts", f"{len(exacts)} iso={chosen_iso2}")
            return exacts[:MAX_COMPOSITE_TARGETS]
        everything = _dedupe_ranked(in_country)
        trace("targets.cityincountry.all", f"{len(everything)} iso={chosen_iso2}")
        return everything[:MAX_COMPOSITE_TARGETS]

    if not is_ambiguous:
        best = None
        if chosen_iso2:
            best = next((c for c in city_matches if same_iso(c.country_iso2, chosen_iso2)), None)
        if best is None and city_matches:
            best = city_matches[0]
        trace("targets.single", "1" if best is not None else "0")
        return [best] if best is not None else []

    trace("targets.suppressed", "ambiguous")
    return []
