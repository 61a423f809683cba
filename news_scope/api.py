"""
FastAPI service exposing scope previews.

Endpoints:
  GET /scope/preview      - Resolve free-text input into a ScopePreview
  GET /countries/{iso2}   - Single country candidate
  GET /cities/{city_id}   - Single city candidate
  GET /health             - Liveness + configured backend
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from news_scope.config import get_settings
from news_scope.diagnostics import LoggingTraceSink
from news_scope.errors import CandidateSearchError, ScopeResolutionError
from news_scope.models import GeoCandidate, HealthResponse, ScopePreview
from news_scope.resolver import ScopeResolver
from news_scope.search import build_search_services

logger = logging.getLogger(__name__)


# ── Lifespan ──────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: build search backends unless already injected. Shutdown: close pool."""
    settings = get_settings()
    logger.info("Starting up API server (search backend=%s)...", settings.search.backend)
    if getattr(app.state, "resolver", None) is None:
        countries, cities = build_search_services()
        configure(app, ScopeResolver(countries, cities, trace=LoggingTraceSink()))
    yield
    if settings.search.backend == "postgres":
        from news_scope.db import close_pool

        await close_pool()
    logger.info("API server shut down.")


def configure(app: FastAPI, resolver: ScopeResolver) -> None:
    app.state.resolver = resolver


# ── App ───────────────────────────────────────────────────────────────

app = FastAPI(
    title="News Scope API",
    description="Resolve free-text geographic search input into a disambiguated scope",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _resolver(request: Request) -> ScopeResolver:
    return request.app.state.resolver


# ══════════════════════════════════════════════════════════════════════
# ENDPOINTS
# ══════════════════════════════════════════════════════════════════════

@app.get("/scope/preview", response_model=ScopePreview)
async def scope_preview(
    request: Request,
    q: str = Query("", description="Free-text search, e.g. 'San José, CR sports'"),
):
    """
    Preview the geographic scope of a query.

    Empty or punctuation-only input yields an empty `other` preview. The
    caller should only fetch news once `can_search` is true.
    """
    max_len = get_settings().api.max_query_length
    if len(q) > max_len:
        raise HTTPException(400, f"q must be at most {max_len} characters")

    try:
        return await _resolver(request).preview(q)
    except ScopeResolutionError as e:
        logger.error("Scope preview failed for '%s': %s", q, e)
        raise HTTPException(503, "Candidate search unavailable")


@app.get("/countries/{iso2}", response_model=GeoCandidate)
async def get_country(request: Request, iso2: str):
    try:
        country = await _resolver(request).countries.get_by_id(iso2)
    except CandidateSearchError as e:
        logger.error("Country lookup failed for '%s': %s", iso2, e)
        raise HTTPException(503, "Candidate search unavailable")
    if country is None:
        raise HTTPException(404, "Country not found")
    return country


@app.get("/cities/{city_id}", response_model=GeoCandidate)
async def get_city(request: Request, city_id: str):
    try:
        city = await _resolver(request).cities.get_by_id(city_id)
    except CandidateSearchError as e:
        logger.error("City lookup failed for '%s': %s", city_id, e)
        raise HTTPException(503, "Candidate search unavailable")
    if city is None:
        raise HTTPException(404, "City not found")
    return city


@app.get("/health", response_model=HealthResponse)
async def health_check():
    settings = get_settings()
    return HealthResponse(status="ok", search_backend=settings.search.backend, env=settings.env)
