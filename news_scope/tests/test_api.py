"""
Tests for the HTTP layer.
The resolver is injected with scripted backends; lifespan startup is not run.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from news_scope.api import app, configure
from news_scope.errors import CandidateSearchError
from news_scope.resolver import ScopeResolver
from news_scope.tests.fakes import FailingSearch, ScriptedSearch, city, country

COUNTRIES = {"france": [country("FR", "France", 1.0, iso3="FRA", lat=46.2, lng=2.2)]}
CITIES = {"paris": [city("fr-paris", "Paris", "FR", 1.0), city("us-tx-paris", "Paris", "US", 1.0)]}


class BrokenLookup(ScriptedSearch):
    async def get_by_id(self, candidate_id):
        raise CandidateSearchError("connection refused")


def client_for(countries, cities) -> TestClient:
    configure(app, ScopeResolver(countries, cities, search_limit=10))
    return TestClient(app)


@pytest.fixture
def client():
    return client_for(ScriptedSearch(COUNTRIES), ScriptedSearch(CITIES))


class TestPreviewEndpoint:
    def test_preview(self, client):
        resp = client.get("/scope/preview", params={"q": "Paris, France"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["kind"] == "city"
        assert body["is_ambiguous"] is False
        assert body["can_search"] is True
        assert body["is_blocking"] is False
        assert [t["id"] for t in body["targets"]] == ["fr-paris"]
        assert [t["matched_type"] for t in body["tokens"]] == ["city", "country"]
        assert body["diagnostics"]["chosenIso2"] == "FR"

    def test_ambiguous_preview_blocks(self, client):
        body = client.get("/scope/preview", params={"q": "paris"}).json()
        assert body["kind"] == "composite"
        assert body["is_ambiguous"] is True
        assert body["can_search"] is False

    def test_empty_query(self, client):
        body = client.get("/scope/preview").json()
        assert body["kind"] == "other"
        assert body["tokens"] == []
        assert body["diagnostics"] is None

    def test_query_too_long(self, client):
        resp = client.get("/scope/preview", params={"q": "x" * 201})
        assert resp.status_code == 400

    def test_backend_failure_is_503(self):
        client = client_for(ScriptedSearch(COUNTRIES), FailingSearch(fail_on="paris"))
        resp = client.get("/scope/preview", params={"q": "paris"})
        assert resp.status_code == 503


class TestLookupEndpoints:
    def test_country(self, client):
        resp = client.get("/countries/FR")
        assert resp.status_code == 200
        assert resp.json()["country_iso3"] == "FRA"

    def test_city(self, client):
        resp = client.get("/cities/us-tx-paris")
        assert resp.status_code == 200
        assert resp.json()["country_iso2"] == "US"

    def test_not_found(self, client):
        assert client.get("/countries/ZZ").status_code == 404
        assert client.get("/cities/atlantis").status_code == 404

    def test_lookup_failure_is_503(self):
        client = client_for(BrokenLookup(), BrokenLookup())
        assert client.get("/countries/FR").status_code == 503
        assert client.get("/cities/fr-paris").status_code == 503


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["search_backend"] in ("postgres", "gazetteer")
