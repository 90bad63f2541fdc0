"""Tests for the trade-directory scout: result parsing, normalization, degraded mode."""

import asyncio
from urllib.parse import parse_qs

import httpx

from procmatch.scout import get_scout
from procmatch.scout.trade_directories import (
    SearchHit,
    TradeDirectoryScout,
    company_name_from_title,
    hit_to_candidate,
    keywords,
    parse_search_results,
)


def _query_of(request: httpx.Request) -> str:
    return parse_qs(request.content.decode())["q"][0]


def _scout(handler, directories=None) -> TradeDirectoryScout:
    return TradeDirectoryScout(
        directories=directories or ["indiamart.com"],
        search_url="https://html.duckduckgo.com/html/",
        transport=httpx.MockTransport(handler),
    )


def test_keywords_drop_stopwords_and_keep_order():
    assert keywords("Need 100% cotton T-Shirts for the Textiles & Apparel market") == [
        "100%",
        "cotton",
        "t-shirts",
        "textiles",
        "apparel",
        "market",
    ]
    assert keywords("a of in") == []


def test_parse_search_results_unwraps_redirects(search_html):
    hits = parse_search_results(search_html)
    assert len(hits) == 4
    assert hits[0].url == "https://www.indiamart.com/indotex-exports/cotton-t-shirts.html"
    assert hits[0].title == "Cotton T-Shirts - IndoTex Exports, Tiruppur - IndiaMART"
    assert "100% cotton" in hits[0].snippet


def test_company_name_from_title():
    assert company_name_from_title("Cotton T-Shirts - IndoTex Exports, Tiruppur - IndiaMART", "indiamart.com") == "IndoTex Exports"
    assert company_name_from_title("Sri Murugan Garments | Knitted Apparel | IndiaMART", "indiamart.com") == "Sri Murugan Garments"
    assert company_name_from_title("IndiaMART", "indiamart.com") == ""


def test_hit_to_candidate_scores_overlap_with_rank_penalty():
    hit = SearchHit(
        title="Knit Wear - Sri Balaji Exports - TradeIndia",
        url="https://www.tradeindia.com/sri-balaji-exports/",
        snippet="Cotton hosiery and t-shirts.",
    )
    first = hit_to_candidate(hit, "tradeindia.com", ["cotton", "t-shirts"], rank=0)
    later = hit_to_candidate(hit, "tradeindia.com", ["cotton", "t-shirts"], rank=2)
    assert first.match_score == 100
    assert later.match_score == 94
    assert first.is_external
    assert first.id == later.id and first.id.startswith("ext-")
    assert first.website == "https://www.tradeindia.com/sri-balaji-exports/"
    assert "tradeindia.com" in first.justification


def test_hit_off_directory_or_irrelevant_is_dropped():
    off_site = SearchHit(title="Best Exports Ltd", url="https://blog.example/best", snippet="cotton")
    assert hit_to_candidate(off_site, "indiamart.com", ["cotton"], 0) is None
    irrelevant = SearchHit(title="Steel Pipes Co - IndiaMART", url="https://www.indiamart.com/steel/", snippet="pipes")
    assert hit_to_candidate(irrelevant, "indiamart.com", ["cotton"], 0) is None


def test_discover_returns_normalized_external_candidates(search_html):
    queries = []

    def handler(request: httpx.Request) -> httpx.Response:
        queries.append(_query_of(request))
        return httpx.Response(200, text=search_html)

    candidates = asyncio.run(_scout(handler).discover("cotton t-shirts"))

    assert queries == ["cotton t-shirts site:indiamart.com"]
    assert [(c.company_name, c.match_score) for c in candidates] == [
        ("IndoTex Exports", 100),
        ("Sri Murugan Garments", 47),
    ]
    assert all(c.is_external and c.justification for c in candidates)
    assert len({c.id for c in candidates}) == 2


def test_discover_membership_stable_for_unchanged_source(search_html):
    scout = _scout(lambda request: httpx.Response(200, text=search_html))
    first = asyncio.run(scout.discover("cotton t-shirts"))
    second = asyncio.run(scout.discover("cotton t-shirts"))
    assert {c.company_name for c in first} == {c.company_name for c in second}


def test_discover_degrades_per_directory(search_html):
    def handler(request: httpx.Request) -> httpx.Response:
        query = _query_of(request)
        if query.endswith("site:tradeindia.com"):
            return httpx.Response(503, text="unavailable")
        if query.endswith("site:exportersindia.com"):
            raise httpx.ConnectError("dns failure", request=request)
        return httpx.Response(200, text=search_html)

    scout = _scout(handler, directories=["indiamart.com", "tradeindia.com", "exportersindia.com"])
    candidates = asyncio.run(scout.discover("cotton t-shirts"))
    assert [c.company_name for c in candidates] == ["IndoTex Exports", "Sri Murugan Garments"]


def test_discover_total_failure_returns_empty():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    assert asyncio.run(_scout(handler).discover("cotton t-shirts")) == []


def test_discover_without_keywords_makes_no_request():
    calls = []
    scout = _scout(lambda request: calls.append(request) or httpx.Response(200, text=""))
    assert asyncio.run(scout.discover("   ")) == []
    assert calls == []


def test_get_scout_uses_configured_directories(settings):
    scout = get_scout(settings)
    assert isinstance(scout, TradeDirectoryScout)
