"""External supplier discovery on public trade directories.

Uses a keyless HTML search endpoint restricted per directory domain
(``<query> site:indiamart.com``) and parses result listings with BeautifulSoup.
No paid API credentials are involved.

Results depend on what the directories currently list, so scores and order
may drift between calls; membership is stable for an unchanged source set.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import parse_qs, urlparse

import httpx
from bs4 import BeautifulSoup

from procmatch.schemas.models import SupplierCandidate

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_URL = "https://html.duckduckgo.com/html/"
DEFAULT_DIRECTORIES = ["indiamart.com", "tradeindia.com", "exportersindia.com"]
RANK_PENALTY = 3  # score points lost per position in a directory's listing

_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; procmatch-scout/0.1)",
    "Accept": "text/html",
}

_TOKEN_RE = re.compile(r"[a-z0-9%+]+(?:-[a-z0-9]+)*")
_STOPWORDS = {
    "and", "for", "the", "with", "from", "need", "needs", "want", "our", "per",
    "unit", "units", "other", "any", "are", "of", "in", "to", "a", "an",
}
_SPLIT_RE = re.compile(r"\s+[-|–—:]\s+")
_COMPANY_RE = re.compile(
    r"\b(exports?|exporters?|industries|enterprises?|ltd|limited|pvt|private|llp|inc|co|"
    r"company|corporation|corp|traders?|trading|manufacturers?|mills|international|impex|"
    r"overseas|textiles|fabrics|group|works)\b",
    re.IGNORECASE,
)


class SupplierScout(Protocol):
    async def discover(self, query: str) -> list[SupplierCandidate]:
        """Return external candidates for free-text keywords; never raises on source failures."""
        ...


@dataclass
class SearchHit:
    """One organic search result."""

    title: str
    url: str
    snippet: str = ""


def keywords(query: str) -> list[str]:
    """Lowercase search terms in first-seen order, stopwords removed."""
    out: list[str] = []
    for token in _TOKEN_RE.findall(query.casefold()):
        if token in _STOPWORDS or (len(token) < 3 and not token.isdigit()):
            continue
        if token not in out:
            out.append(token)
    return out


def _unwrap_redirect(href: str) -> str:
    if href.startswith("//"):
        href = "https:" + href
    parsed = urlparse(href)
    target = parse_qs(parsed.query).get("uddg")
    if target:
        return target[0]
    return href


def parse_search_results(html: str) -> list[SearchHit]:
    """Parse organic results (``div.result`` / ``a.result__a`` / ``.result__snippet``)."""
    soup = BeautifulSoup(html, "html.parser")
    hits: list[SearchHit] = []
    for result in soup.select("div.result"):
        link = result.select_one("a.result__a")
        if link is None:
            continue
        url = _unwrap_redirect(link.get("href", ""))
        title = link.get_text(" ", strip=True)
        snippet_el = result.select_one(".result__snippet")
        snippet = snippet_el.get_text(" ", strip=True) if snippet_el else ""
        if title and url:
            hits.append(SearchHit(title=title, url=url, snippet=snippet))
    return hits


def company_name_from_title(title: str, directory: str) -> str:
    """
    Pick the company segment of a listing title.

    "Cotton T-Shirts - IndoTex Exports, Tiruppur - IndiaMART" -> "IndoTex Exports"
    """
    site = directory.split(".")[0].casefold()
    parts = [p.strip() for p in _SPLIT_RE.split(title) if p.strip()]
    parts = [p for p in parts if site not in p.casefold().replace(" ", "")]
    if not parts:
        return ""
    name = next((p for p in parts if _COMPANY_RE.search(p)), parts[0])
    return name.split(",")[0].strip()


def _on_directory(url: str, directory: str) -> bool:
    host = (urlparse(url).hostname or "").casefold()
    return host == directory or host.endswith("." + directory)


def hit_to_candidate(hit: SearchHit, directory: str, terms: list[str], rank: int) -> SupplierCandidate | None:
    """Score a hit by keyword overlap with a rank penalty; None if off-directory or irrelevant."""
    if not terms or not _on_directory(hit.url, directory):
        return None
    name = company_name_from_title(hit.title, directory)
    if not name:
        return None
    text_tokens = set(_TOKEN_RE.findall(f"{hit.title} {hit.snippet}".casefold()))
    matched = [t for t in terms if t in text_tokens]
    if not matched:
        return None
    score = round(100 * len(matched) / len(terms)) - RANK_PENALTY * rank
    score = max(0, min(100, score))

    parsed = urlparse(hit.url)
    website = f"{parsed.scheme or 'https'}://{parsed.netloc}{parsed.path}"
    return SupplierCandidate(
        id="ext-" + hashlib.sha1(website.encode()).hexdigest()[:12],
        company_name=name,
        match_score=score,
        justification=f"Listed on {directory} matching: {', '.join(matched)}.",
        is_external=True,
        website=website,
    )


class TradeDirectoryScout:
    """Best-effort discovery across trade directories. Failures yield no candidates."""

    def __init__(
        self,
        directories: list[str] | None = None,
        search_url: str = DEFAULT_SEARCH_URL,
        max_results: int = 5,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._directories = [d.casefold() for d in (directories or DEFAULT_DIRECTORIES)]
        self._search_url = search_url
        self._max_results = max_results
        self._timeout = timeout
        self._transport = transport

    async def discover(self, query: str) -> list[SupplierCandidate]:
        terms = keywords(query)
        if not terms:
            return []
        logger.info("[Scout] Searching %d directories for: %s", len(self._directories), query)
        try:
            async with httpx.AsyncClient(
                follow_redirects=True,
                timeout=self._timeout,
                headers=_HEADERS,
                transport=self._transport,
            ) as client:
                async with asyncio.TaskGroup() as group:
                    tasks = [
                        group.create_task(self._search_directory(client, d, query, terms))
                        for d in self._directories
                    ]
        except Exception as e:
            logger.warning("[Scout] Discovery failed, continuing without external suppliers: %s", e)
            return []
        candidates = [c for t in tasks for c in t.result()]
        logger.info("[Scout] Found %d external candidates", len(candidates))
        return candidates

    async def _search_directory(
        self, client: httpx.AsyncClient, directory: str, query: str, terms: list[str]
    ) -> list[SupplierCandidate]:
        try:
            response = await client.post(self._search_url, data={"q": f"{query} site:{directory}"})
            response.raise_for_status()
            hits = parse_search_results(response.text)
        except Exception as e:
            logger.warning("[Scout] Search on %s failed: %s", directory, e)
            return []
        candidates = []
        for rank, hit in enumerate(h for h in hits if _on_directory(h.url, directory)):
            if len(candidates) >= self._max_results:
                break
            candidate = hit_to_candidate(hit, directory, terms, rank)
            if candidate is not None:
                candidates.append(candidate)
        return candidates
