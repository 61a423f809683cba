"""
Tests for the scope policy (country choice, kind, ambiguity).
Pure unit tests over hand-built candidate lists.
"""

from __future__ import annotations

from news_scope.diagnostics import ListTraceSink
from news_scope.models import ScopeKind
from news_scope.tests.fakes import city, country


class TestChooseCountry:
    def test_empty(self, policy):
        assert policy.choose_country_iso2([], []) is None

    def test_single_candidate_always_chosen(self, policy):
        assert policy.choose_country_iso2([country("cr", "Costa Rica", 0.61)], []) == "CR"

    def test_clear_gap(self, policy):
        countries = [country("CL", "Chile", 0.80), country("CN", "China", 0.65)]
        assert policy.choose_country_iso2(countries, []) == "CL"

    def test_high_top_score(self, policy):
        countries = [country("NE", "Niger", 0.95), country("NG", "Nigeria", 0.93)]
        assert policy.choose_country_iso2(countries, []) == "NE"

    def test_ordering_uses_score_then_name(self, policy):
        countries = [country("GN", "Guinea", 0.70), country("GQ", "Equatorial Guinea", 0.72)]
        # Leader is by score, but no gap and no high floor
        assert policy.choose_country_iso2(countries, []) is None

    def test_phrase_match_from_keywords(self, policy):
        countries = [country("SM", "San Marino", 0.70), country("SN", "Senegal", 0.68)]
        assert policy.choose_country_iso2(countries, ["san", "marino", "news"]) == "SM"

    def test_phrase_match_requires_every_name_token(self, policy):
        countries = [country("SM", "San Marino", 0.70), country("SN", "Senegal", 0.68)]
        assert policy.choose_country_iso2(countries, ["san", "news"]) is None

    def test_phrase_match_normalizes_keywords(self, policy):
        countries = [country("CI", "Côte d'Ivoire", 0.70), country("CO", "Colombia", 0.69)]
        assert policy.choose_country_iso2(countries, ["COTE", "d'ivoire"]) == "CI"

    def test_no_iso2_never_chosen(self, policy):
        c = country("XX", "Nowhere", 1.0).model_copy(update={"country_iso2": None})
        assert policy.choose_country_iso2([c], []) is None

    def test_trace_records_decision(self, policy):
        sink = ListTraceSink()
        policy.choose_country_iso2([country("GN", "Guinea", 0.70), country("GQ", "Equatorial Guinea", 0.72)], [], sink)
        assert sink.lines[0].startswith("chooseCountry.top:")
        assert sink.lines[-1].startswith("chooseCountry.none:")


class TestDecideKind:
    def test_nothing_is_other(self, policy):
        assert policy.decide_kind([], []) == ScopeKind.OTHER

    def test_single_country(self, policy):
        assert policy.decide_kind([country("FR", "France", 1.0)], []) == ScopeKind.COUNTRY

    def test_two_close_countries_is_composite(self, policy):
        countries = [country("GN", "Guinea", 0.70), country("GQ", "Equatorial Guinea", 0.72)]
        assert policy.decide_kind(countries, []) == ScopeKind.COMPOSITE

    def test_city_in_chosen_country(self, policy):
        countries = [country("FR", "France", 1.0)]
        cities = [city("p1", "Paris", "FR", 1.0), city("p2", "Paris", "US", 1.0)]
        assert policy.decide_kind(countries, cities) == ScopeKind.CITY

    def test_several_cities_in_chosen_country(self, policy):
        countries = [country("CR", "Costa Rica", 1.0)]
        cities = [city("s1", "San José", "CR", 1.0), city("s2", "San José", "CR", 1.0)]
        assert policy.decide_kind(countries, cities) == ScopeKind.CITY_IN_COUNTRY

    def test_chosen_country_without_cities(self, policy):
        countries = [country("DE", "Germany", 1.0)]
        cities = [city("p1", "Paris", "FR", 1.0)]
        assert policy.decide_kind(countries, cities) == ScopeKind.COMPOSITE

    def test_no_country_cities_span_countries(self, policy):
        cities = [city("l1", "London", "GB", 1.0), city("l2", "London", "CA", 1.0)]
        assert policy.decide_kind([], cities) == ScopeKind.COMPOSITE

    def test_no_country_many_cities_one_country(self, policy):
        cities = [city("a", "Springfield", "US", 1.0), city("b", "Springfield", "US", 1.0)]
        assert policy.decide_kind([], cities) == ScopeKind.CITY_IN_COUNTRY

    def test_no_country_single_city(self, policy):
        assert policy.decide_kind([], [city("b", "Berlin", "DE", 1.0)]) == ScopeKind.CITY


class TestIsAmbiguous:
    def test_no_cities(self, policy):
        assert policy.is_ambiguous([country("FR", "France", 1.0)], [], []) is False

    def test_same_country_multi_city_without_countries(self, policy):
        cities = [
            city("a", "Springfield", "US", 1.0),
            city("b", "Springfield", "US", 1.0),
            city("c", "Springfield", "US", 1.0),
        ]
        assert policy.is_ambiguous([], cities, []) is True

    def test_one_clear_city_in_chosen_country(self, policy):
        countries = [country("FR", "France", 1.0)]
        cities = [city("p1", "Paris", "FR", 1.0), city("p2", "Paris", "US", 1.0)]
        assert policy.is_ambiguous(countries, cities, []) is False

    def test_tie_inside_chosen_country(self, policy):
        countries = [country("CR", "Costa Rica", 1.0)]
        cities = [city("s1", "San José", "CR", 1.0), city("s2", "San José", "CR", 0.995)]
        assert policy.is_ambiguous(countries, cities, []) is True

    def test_clear_winner_inside_chosen_country(self, policy):
        countries = [country("CR", "Costa Rica", 1.0)]
        cities = [city("s1", "San José", "CR", 1.0), city("s2", "San Josecito", "CR", 0.7)]
        assert policy.is_ambiguous(countries, cities, []) is False

    def test_strong_city_elsewhere(self, policy):
        countries = [country("DE", "Germany", 1.0)]
        cities = [city("p1", "Paris", "FR", 1.0)]
        assert policy.is_ambiguous(countries, cities, []) is True

    def test_weak_city_elsewhere_falls_back_to_cross_country(self, policy):
        countries = [country("DE", "Germany", 1.0)]
        cities = [city("p1", "Parisville", "FR", 0.7)]
        assert policy.is_ambiguous(countries, cities, []) is False

    def test_weak_cities_elsewhere_in_one_country_still_ambiguous(self, policy):
        countries = [country("DE", "Germany", 1.0)]
        cities = [city("a", "Springfield", "US", 0.7), city("b", "Springfield", "US", 0.7)]
        assert policy.is_ambiguous(countries, cities, []) is True

    def test_cross_country_near_tie(self, policy):
        cities = [city("l1", "London", "GB", 1.0), city("l2", "London", "CA", 0.96)]
        assert policy.is_ambiguous([], cities, []) is True

    def test_cross_country_clear_gap(self, policy):
        cities = [city("l1", "London", "GB", 1.0), city("l2", "Londonderry", "IE", 0.7)]
        assert policy.is_ambiguous([], cities, []) is False

    def test_cross_country_below_floor(self, policy):
        cities = [city("a", "Santa", "ES", 0.8), city("b", "Santa", "MX", 0.8)]
        assert policy.is_ambiguous([], cities, []) is False
