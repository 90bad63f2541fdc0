"""Pytest configuration and shared fixtures."""

import asyncio
import json
from pathlib import Path

import pytest

from procmatch.config import Settings
from procmatch.directory import CategoryCatalog, FALLBACK_CATEGORIES
from procmatch.errors import GatewayError
from procmatch.schemas.models import (
    Price,
    ProcurementRequirement,
    Quantity,
    ReasoningMessage,
    Role,
    Specification,
    SupplierCandidate,
    SupplierProfile,
)

FIXTURES_DIR = Path(__file__).parent / "fixtures"

TSHIRT_TEXT = (
    "I need 5000 units of 100% cotton t-shirts, black and white, sizes S-XXL. "
    "Target price is $3 per unit."
)

TSHIRT_ANSWER = json.dumps(
    {
        "title": "Cotton T-Shirts",
        "productDescription": "100% cotton t-shirts",
        "quantity": {"value": 5000, "unit": "units"},
        "specifications": [
            {"key": "material", "value": "100% cotton"},
            {"key": "colors", "value": ["black", "white"]},
            {"key": "sizes", "value": "S-XXL"},
        ],
        "targetPrice": {"amount": 3, "currency": "USD"},
        "categoryHints": ["Textiles & Apparel"],
        "destinationCountry": "Germany",
    }
)


class FakeGateway:
    """Scripted ReasoningClient: returns (or raises) queued replies and records every call."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[dict] = []

    async def complete(self, model, messages, reasoning_enabled=True):
        self.calls.append({"model": model, "messages": list(messages), "reasoning_enabled": reasoning_enabled})
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, ReasoningMessage):
            return reply
        return ReasoningMessage(role=Role.ASSISTANT, content=reply)


class FakeScout:
    """Scripted SupplierScout with optional delay, failure and cancellation tracking."""

    def __init__(self, candidates=None, delay: float = 0.0, error: Exception | None = None):
        self.candidates = candidates or []
        self.delay = delay
        self.error = error
        self.queries: list[str] = []
        self.cancelled = False

    async def discover(self, query):
        self.queries.append(query)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error:
            raise self.error
        return list(self.candidates)


def external(name: str, score: int, website: str | None = None) -> SupplierCandidate:
    slug = name.lower().replace(" ", "-")
    return SupplierCandidate(
        id=f"ext-{slug}",
        company_name=name,
        match_score=score,
        justification=f"Listed on indiamart.com matching: {name}.",
        is_external=True,
        website=website or f"https://www.indiamart.com/{slug}/",
    )


@pytest.fixture
def catalog():
    return CategoryCatalog(FALLBACK_CATEGORIES)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        openrouter_api_key="sk-or-test",
        procmatch_scout_timeout=0.5,
    )


@pytest.fixture
def requirement():
    return ProcurementRequirement(
        title="Cotton T-Shirts",
        product_description="100% cotton t-shirts",
        quantity=Quantity(value=5000, unit="units"),
        specifications=[
            Specification(key="material", value="100% cotton"),
            Specification(key="colors", value="black, white"),
        ],
        target_price=Price(amount=3, currency="USD"),
        category_hints=["Textiles & Apparel"],
    )


@pytest.fixture
def suppliers():
    return [
        SupplierProfile(
            id="sup-1",
            company_name="Tiruppur Knits Pvt Ltd",
            company_description="Knitted cotton garments, t-shirts and polos.",
            specialized_categories=["textiles-apparel"],
        ),
        SupplierProfile(
            id="sup-2",
            company_name="Ganga Home Textiles",
            company_description="Bed linen and towels.",
            specialized_categories=["Textiles & Apparel", "furniture-home"],
            website="https://gangahome.example",
        ),
        SupplierProfile(
            id="sup-3",
            company_name="Pune Precision Castings",
            company_description="Grey iron and SG iron castings.",
            specialized_categories=["metals-fabrication"],
        ),
    ]


@pytest.fixture
def search_html():
    return (FIXTURES_DIR / "directory_search.html").read_text(encoding="utf-8")
