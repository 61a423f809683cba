"""
Scope resolver.

Turns free-text search input into a ScopePreview:

  1. Tokenize + normalize the query
  2. Scatter one country search and one city search per token AND per
     adjacent token pair (bigram), then wait for all of them (barrier)
  3. Boost exact ISO/name country matches to 1.0, drop weak countries
  4. Classify tokens (country / city / non-geo) and apply promotions
  5. Deduplicate and rank country and city hits
  6. Ask the policy for kind + ambiguity, then pick map targets

A failed search fails the whole resolution: partial candidate data cannot
safely drive disambiguation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Optional, Sequence

from news_scope.config import get_settings
from news_scope.diagnostics import ListTraceSink, TeeTraceSink, TraceSink
from news_scope.errors import ScopeResolutionError
from news_scope.models import GeoCandidate, MatchedType, ScopeKind, ScopePreview, ScopeToken
from news_scope.policy import (
    CITY_THRESHOLD,
    COUNTRY_THRESHOLD,
    POLICY_VERSION,
    ScopePolicy,
    same_iso,
)
from news_scope.search import CandidateSearch
from news_scope.targets import select_targets
from news_scope.tokenizer import QueryTokenizer, default_tokenizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CountryHit:
    candidate: GeoCandidate
    token_index: int
    from_bigram: bool
    is_iso_exact: bool
    is_name_exact: bool
    is_name_starts: bool

    def rank_key(self) -> tuple:
        # ISO exact > name exact > name prefix > score > ISO2 alphabetical
        return (
            not self.is_iso_exact,
            not self.is_name_exact,
            not self.is_name_starts,
            -self.candidate.score,
            self.candidate.country_iso2 or "",
        )


@dataclass(frozen=True)
class CityHit:
    candidate: GeoCandidate
    token_index: int
    from_bigram: bool


async def gather_all(aws: Sequence[Awaitable[Any]]) -> list[Any]:
    """
    Run every awaitable concurrently and return once all have finished.
    The first failure cancels whatever is still running and propagates.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        raise


class ScopeResolver:
    def __init__(
        self,
        countries: CandidateSearch,
        cities: CandidateSearch,
        policy: ScopePolicy | None = None,
        tokenizer: QueryTokenizer | None = None,
        search_limit: int | None = None,
        trace: TraceSink | None = None,
    ):
        self.countries = countries
        self.cities = cities
        self.tokenizer = tokenizer or default_tokenizer
        self.policy = policy or ScopePolicy(self.tokenizer)
        self.search_limit = search_limit or get_settings().search.limit
        self.trace = trace

    # ── Entry point ───────────────────────────────────────────────────

    async def preview(self, query: str) -> ScopePreview:
        pieces = self.tokenizer.split(query)
        # Pieces that normalize to nothing ("·") are punctuation, not tokens
        kept = [
            (raw, term)
            for raw, term in zip(pieces, self.tokenizer.normalize_all(pieces))
            if term.strip()
        ]
        raw_tokens = [raw for raw, _ in kept]
        terms = [term for _, term in kept]

        if not terms:
            logger.debug("Empty scope query '%s'", query)
            return ScopePreview(kind=ScopeKind.OTHER, is_ambiguous=False, original_query=query or "")

        bigrams = [self.tokenizer.normalize(f"{a} {b}") for a, b in zip(terms, terms[1:])]
        token_results, bigram_results = await self._search_all(query, terms, bigrams)

        # ── Tokens ────────────────────────────────────────────────────
        tokens: list[ScopeToken] = []
        token_country_hits: list[list[CountryHit]] = []
        for i, (raw, term) in enumerate(zip(raw_tokens, terms)):
            raw_countries, raw_cities = token_results[i]
            hits = self._country_hits(raw_countries, term, i, from_bigram=False)
            token_country_hits.append(hits)
            tokens.append(ScopeToken(
                raw=raw,
                normalized=term,
                matched_type=self._classify(hits, raw_cities),
                country_candidates=[h.candidate for h in hits],
                city_candidates=list(raw_cities),
            ))

        tokens = self._promote_san_jose(tokens)
        tokens = self._promote_iso_exact(tokens)

        # ── Hits ──────────────────────────────────────────────────────
        country_hits: list[CountryHit] = []
        city_hits: list[CityHit] = []
        for start, (raw_countries, raw_cities) in enumerate(bigram_results):
            country_hits.extend(self._country_hits(raw_countries, bigrams[start], start, from_bigram=True))
        for hits in token_country_hits:
            country_hits.extend(hits)

        for i, token in enumerate(tokens):
            city_hits.extend(
                CityHit(c, i, from_bigram=False) for c in token.city_candidates if c.score >= CITY_THRESHOLD
            )
        for start, (_, raw_cities) in enumerate(bigram_results):
            city_hits.extend(
                CityHit(c, start, from_bigram=True) for c in raw_cities if c.score >= CITY_THRESHOLD
            )

        ranked_countries = self._rank_countries(country_hits)
        country_matches = [h.candidate for h in ranked_countries]
        best_cities = self._dedupe_cities(city_hits)

        non_geo = [t.normalized for t in tokens if t.matched_type == MatchedType.NON_GEO]

        # ── Country bias for ordering / targets ───────────────────────
        trace_lines = ListTraceSink()
        trace: TraceSink = TeeTraceSink(trace_lines, self.trace) if self.trace else trace_lines

        chosen_by_policy = self.policy.choose_country_iso2(country_matches, non_geo, trace)
        target_iso2 = chosen_by_policy
        if not target_iso2 and ranked_countries:
            target_iso2 = ranked_countries[0].candidate.country_iso2
        if not target_iso2:
            raw_isos = {h.candidate.country_iso2.upper() for h in city_hits if h.candidate.country_iso2}
            if len(raw_isos) == 1:
                target_iso2 = next(iter(raw_isos))
                trace("infer.iso2", f"{target_iso2} source=rawCityHits.singleCountry")

        city_matches = [h.candidate for h in self._order_cities(best_cities, target_iso2)]

        if target_iso2 and not any(same_iso(c.country_iso2, target_iso2) for c in city_matches):
            trace("targetIso2.dropped", f"{target_iso2} has no city matches")
            target_iso2 = None

        grouped: dict[str, list[GeoCandidate]] = {}
        for city in city_matches:
            if city.country_iso2 and city.country_iso2.strip():
                grouped.setdefault(city.country_iso2.upper(), []).append(city)

        # ── Decide ────────────────────────────────────────────────────
        kind = self.policy.decide_kind(country_matches, city_matches)
        ambiguous = self.policy.is_ambiguous(country_matches, city_matches, non_geo, trace)

        if (
            not ambiguous
            and kind == ScopeKind.CITY
            and len({c.country_iso2 for c in city_matches}) == 1
            and len({c.id for c in city_matches}) > 1
        ):
            kind = ScopeKind.CITY_IN_COUNTRY
            ambiguous = True
            trace("ambiguous.singleCountryMultipleCities", "true")

        targets = select_targets(kind, ambiguous, target_iso2, city_matches, country_matches, trace)

        preview = ScopePreview(
            kind=kind,
            is_ambiguous=ambiguous,
            original_query=query,
            tokens=tokens,
            country_matches=country_matches,
            city_matches=city_matches,
            cities_grouped_by_country=grouped,
            non_geo_keywords=non_geo,
            targets=targets,
            diagnostics=self._diagnostics(
                chosen_by_policy, target_iso2, targets, country_matches, city_matches, trace_lines.lines,
            ),
        )
        logger.info("Scope preview '%s': kind=%s ambiguous=%s countries=%d cities=%d targets=%d",
                    query, kind.value, ambiguous, len(country_matches), len(city_matches), len(targets))
        return preview

    # ── Scatter / gather ──────────────────────────────────────────────

    async def _search_all(
        self,
        query: str,
        terms: list[str],
        bigrams: list[str],
    ) -> tuple[list[tuple[list[GeoCandidate], list[GeoCandidate]]], list[tuple[list[GeoCandidate], list[GeoCandidate]]]]:
        calls: list[Awaitable[list[GeoCandidate]]] = []
        for term in terms + bigrams:
            calls.append(self.countries.search(term, self.search_limit))
            calls.append(self.cities.search(term, self.search_limit))

        try:
            results = await gather_all(calls)
        except Exception as exc:
            logger.error("Candidate search failed for '%s': %s", query, exc)
            raise ScopeResolutionError(query, f"Candidate search failed: {exc}") from exc

        pairs = [(list(results[k]), list(results[k + 1])) for k in range(0, len(results), 2)]
        return pairs[:len(terms)], pairs[len(terms):]

    # ── Countries ─────────────────────────────────────────────────────

    def _country_hits(
        self,
        candidates: Sequence[GeoCandidate],
        term: str,
        index: int,
        from_bigram: bool,
    ) -> list[CountryHit]:
        """Boost exact ISO/name matches to 1.0; keep the rest only above threshold."""
        hits: list[CountryHit] = []
        for co in candidates:
            name_n = self.tokenizer.normalize(co.name)
            iso2_n = self.tokenizer.normalize(co.country_iso2 or co.id)
            iso3_n = self.tokenizer.normalize(co.country_iso3)

            is_iso_exact = iso2_n == term or (bool(iso3_n) and iso3_n == term)
            is_name_exact = name_n == term
            if not is_iso_exact and not is_name_exact and co.score < COUNTRY_THRESHOLD:
                continue

            hits.append(CountryHit(
                candidate=co.boosted() if (is_iso_exact or is_name_exact) else co,
                token_index=index,
                from_bigram=from_bigram,
                is_iso_exact=is_iso_exact,
                is_name_exact=is_name_exact,
                is_name_starts=name_n.startswith(term),
            ))
        return hits

    @staticmethod
    def _rank_countries(hits: Sequence[CountryHit]) -> list[CountryHit]:
        groups: dict[str, list[CountryHit]] = {}
        for h in hits:
            groups.setdefault(h.candidate.country_iso2 or h.candidate.id, []).append(h)
        best = [min(group, key=CountryHit.rank_key) for group in groups.values()]
        return sorted(best, key=CountryHit.rank_key)

    # ── Cities ────────────────────────────────────────────────────────

    @staticmethod
    def _dedupe_cities(hits: Sequence[CityHit]) -> list[CityHit]:
        groups: dict[str, list[CityHit]] = {}
        for h in hits:
            groups.setdefault(h.candidate.id, []).append(h)
        return [
            min(group, key=lambda h: (not h.from_bigram, -h.candidate.score))
            for group in groups.values()
        ]

    @staticmethod
    def _order_cities(hits: Sequence[CityHit], iso2: Optional[str]) -> list[CityHit]:
        return sorted(
            hits,
            key=lambda h: (
                not same_iso(h.candidate.country_iso2, iso2),
                not h.from_bigram,
                -h.candidate.score,
                h.candidate.name,
            ),
        )

    # ── Token classification ──────────────────────────────────────────

    @staticmethod
    def _classify(country_hits: Sequence[CountryHit], cities: Sequence[GeoCandidate]) -> MatchedType:
        if country_hits:
            top = country_hits[0]
            if top.is_iso_exact or top.is_name_exact or top.candidate.score >= COUNTRY_THRESHOLD:
                return MatchedType.COUNTRY
        if cities and cities[0].score >= CITY_THRESHOLD:
            return MatchedType.CITY
        return MatchedType.NON_GEO

    @staticmethod
    def _promote_san_jose(tokens: list[ScopeToken]) -> list[ScopeToken]:
        # "san" + "jose..." is always a city pair, whatever the scores say
        out = list(tokens)
        for i in range(len(out) - 1):
            if out[i].normalized == "san" and out[i + 1].normalized.startswith("jose"):
                for j in (i, i + 1):
                    if out[j].matched_type == MatchedType.NON_GEO and out[j].city_candidates:
                        out[j] = out[j].promoted(MatchedType.CITY)
        return out

    def _promote_iso_exact(self, tokens: list[ScopeToken]) -> list[ScopeToken]:
        out = []
        for token in tokens:
            iso_hit = any(
                (co.country_iso2 and self.tokenizer.normalize(co.country_iso2) == token.normalized)
                or (co.country_iso3 and self.tokenizer.normalize(co.country_iso3) == token.normalized)
                for co in token.country_candidates
            )
            out.append(token.promoted(MatchedType.COUNTRY) if iso_hit else token)
        return out

    # ── Diagnostics ───────────────────────────────────────────────────

    @staticmethod
    def _diagnostics(
        chosen_by_policy: Optional[str],
        target_iso2: Optional[str],
        targets: Sequence[GeoCandidate],
        country_matches: Sequence[GeoCandidate],
        city_matches: Sequence[GeoCandidate],
        trace_lines: list[str],
    ) -> dict[str, Any]:
        top_in_chosen = None
        if chosen_by_policy:
            in_chosen = sorted(
                (c for c in city_matches if same_iso(c.country_iso2, chosen_by_policy)),
                key=lambda c: -c.score,
            )
            top_in_chosen = [{"id": c.id, "name": c.name, "score": c.score} for c in in_chosen[:5]]

        return {
            "policyVersion": POLICY_VERSION,
            "chosenIso2": chosen_by_policy,
            "targetIso2": target_iso2,
            "targetIds": [t.id for t in targets],
            "topCountries": [
                {"iso2": c.country_iso2, "name": c.name, "score": c.score} for c in country_matches[:3]
            ],
            "topCitiesInChosen": top_in_chosen,
            "trace": list(trace_lines),
        }
