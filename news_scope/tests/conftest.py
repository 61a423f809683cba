from __future__ import annotations

from pathlib import Path

import pytest

from news_scope.gazetteer import Gazetteer
from news_scope.policy import ScopePolicy
from news_scope.tokenizer import QueryTokenizer

SAMPLE_SEED = Path(__file__).resolve().parents[2] / "data" / "places.sample.jsonl"


@pytest.fixture(scope="module")
def tokenizer():
    return QueryTokenizer()


@pytest.fixture(scope="module")
def policy():
    return ScopePolicy()


@pytest.fixture(scope="module")
def gazetteer():
    return Gazetteer.from_jsonl(SAMPLE_SEED)
