"""
Shared fixtures: scripted inference provider, temporary database, case inputs.
"""

import json
import os
from pathlib import Path

import pytest

from legal_analysis.errors import ProviderError
from legal_analysis.llm_client import InferenceProvider, LLMResponse
from legal_analysis.schemas import LegalAnalysisInput

FIXTURES_DIR = Path(__file__).parent / "fixtures"

TOKENS_PER_CALL = 150


class FakeProvider(InferenceProvider):
    """
    Provider returning scripted responses in order.

    Each scripted item is a dict (sent as JSON), a raw string, or an
    exception instance to raise. Once the script runs out every call fails.
    """

    name = "fake"
    default_model = "fake-model"

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []
        self.closed = False

    async def complete(self, prompt, system_prompt=None, *, model=None, max_tokens=4096):
        self.calls.append({
            "prompt": prompt,
            "system_prompt": system_prompt,
            "model": model,
            "max_tokens": max_tokens,
        })
        if not self.responses:
            raise ProviderError("No scripted response")

        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item

        content = item if isinstance(item, str) else json.dumps(item)
        return LLMResponse(
            content=content,
            model=model or self.default_model,
            usage={"input_tokens": 100, "output_tokens": TOKENS_PER_CALL - 100},
        )

    async def close(self):
        self.closed = True


def load_fixture(name: str) -> dict:
    with open(FIXTURES_DIR / name, "r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def make_provider():
    """FakeProvider factory: make_provider([response, ProviderError(...), ...])"""
    return FakeProvider


@pytest.fixture
def sqlalchemy_db(tmp_path):
    """Configure a fresh SQLAlchemy SQLite DB for tests."""
    from legal_analysis.db.session import reset_engine, init_db

    old_db_url = os.environ.get("DATABASE_URL")
    db_path = tmp_path / "legal_analysis.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
    reset_engine()
    init_db()

    yield

    if old_db_url is not None:
        os.environ["DATABASE_URL"] = old_db_url
    else:
        os.environ.pop("DATABASE_URL", None)
    reset_engine()


@pytest.fixture
def store(sqlalchemy_db):
    from legal_analysis.store import JobStore
    return JobStore()


@pytest.fixture
def contract_input():
    return LegalAnalysisInput.model_validate(load_fixture("contract_case.json"))


@pytest.fixture
def goods_input():
    return LegalAnalysisInput.model_validate(load_fixture("goods_case.json"))
