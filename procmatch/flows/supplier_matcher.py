"""Supplier matching: score internal suppliers with the LLM, merge external discoveries, rank.

Internal scoring and external discovery run concurrently inside one
``asyncio.TaskGroup``; if scoring fails the discovery task is cancelled with it.
"""

import asyncio
import json
import logging

from procmatch.directory import CategoryCatalog, normalize
from procmatch.errors import GatewayError, MatchingError
from procmatch.flows.common import parse_json_object, parse_number, render_prompt
from procmatch.llm.base import ReasoningClient
from procmatch.schemas.models import (
    MatchResult,
    ProcurementRequirement,
    ReasoningMessage,
    Role,
    SupplierCandidate,
    SupplierProfile,
)
from procmatch.scout.trade_directories import SupplierScout

logger = logging.getLogger(__name__)

DEFAULT_CAP = 20
DEFAULT_SCOUT_TIMEOUT = 10.0
UNRANKED_JUSTIFICATION = "Shares a product category with the requirement; not ranked by the model."
DEFAULT_JUSTIFICATION = "Matched on supplier profile."


def prefilter_suppliers(
    requirement: ProcurementRequirement,
    suppliers: list[SupplierProfile],
    catalog: CategoryCatalog,
) -> list[SupplierProfile]:
    """Drop suppliers with zero category overlap with the requirement's hints."""
    wanted = catalog.keys_for(requirement.category_hints)
    return [s for s in suppliers if wanted & catalog.keys_for(s.specialized_categories)]


def scout_query(requirement: ProcurementRequirement) -> str:
    hints = [h for h in requirement.category_hints if normalize(h) != "other"]
    return " ".join([requirement.product_description, *hints])


def parse_internal_scores(raw: str, eligible: list[SupplierProfile]) -> list[SupplierCandidate]:
    """
    Decode {"matches": [...]} into candidates for the eligible suppliers.

    Unknown ids and unusable entries are ignored; eligible suppliers the model
    omitted are appended with score 0. Raises ValueError if undecodable.
    """
    data = parse_json_object(raw)
    matches = data.get("matches")
    if not isinstance(matches, list):
        raise ValueError("'matches' must be a list")

    by_id = {s.id: s for s in eligible}
    scored: dict[str, SupplierCandidate] = {}
    for item in matches:
        if not isinstance(item, dict):
            logger.warning("Ignoring non-object match entry: %r", item)
            continue
        supplier = by_id.get(str(item.get("supplierId", "")))
        if supplier is None:
            logger.warning("Ignoring match for unknown supplier id: %r", item.get("supplierId"))
            continue
        if supplier.id in scored:
            continue
        parsed = parse_number(item.get("matchScore"))
        if parsed is None:
            logger.warning("Ignoring match without a score for supplier %s", supplier.id)
            continue
        score = max(0, min(100, round(parsed[0])))
        justification = item.get("justification")
        if not isinstance(justification, str) or not justification.strip():
            justification = DEFAULT_JUSTIFICATION
        scored[supplier.id] = SupplierCandidate(
            id=supplier.id,
            company_name=supplier.company_name,
            match_score=score,
            justification=justification.strip(),
            is_external=False,
            website=supplier.website,
        )

    candidates = list(scored.values())
    for supplier in eligible:
        if supplier.id not in scored:
            candidates.append(
                SupplierCandidate(
                    id=supplier.id,
                    company_name=supplier.company_name,
                    match_score=0,
                    justification=UNRANKED_JUSTIFICATION,
                    is_external=False,
                    website=supplier.website,
                )
            )
    return candidates


async def score_internal(
    requirement: ProcurementRequirement,
    eligible: list[SupplierProfile],
    gateway: ReasoningClient,
    *,
    model: str,
    reasoning_enabled: bool = True,
) -> list[SupplierCandidate]:
    if not eligible:
        logger.info("No internal suppliers share a category with the requirement; skipping scoring.")
        return []

    suppliers_json = json.dumps(
        [
            {
                "id": s.id,
                "companyName": s.company_name,
                "companyDescription": s.company_description,
                "specializedCategories": s.specialized_categories,
            }
            for s in eligible
        ],
        indent=2,
    )
    prompt = render_prompt("supplier_match.j2", requirement=requirement, suppliers_json=suppliers_json)
    try:
        reply = await gateway.complete(model, [ReasoningMessage(role=Role.USER, content=prompt)], reasoning_enabled)
    except GatewayError as e:
        raise MatchingError(f"Internal supplier scoring failed: {e}") from e
    logger.debug("Model raw output: %s", reply.content)

    try:
        candidates = parse_internal_scores(reply.content, eligible)
    except ValueError as e:
        raise MatchingError(f"Could not decode supplier scores from model response: {e}") from e
    logger.info("Model scored %d of %d eligible suppliers.", len(candidates), len(eligible))
    return candidates


async def discover_external(scout: SupplierScout, query: str, timeout: float) -> list[SupplierCandidate]:
    """Best-effort external discovery; timeout or failure yields no candidates."""
    try:
        return await asyncio.wait_for(scout.discover(query), timeout)
    except TimeoutError:
        logger.warning("External supplier discovery timed out after %.1fs", timeout)
        return []
    except Exception as e:
        logger.warning("External supplier discovery failed: %s", e)
        return []


def merge_candidates(
    internal: list[SupplierCandidate],
    external: list[SupplierCandidate],
    cap: int = DEFAULT_CAP,
) -> list[SupplierCandidate]:
    """
    Merge internal-then-external candidates, collapse duplicates, rank and truncate.

    Duplicates share a normalized company name; the higher score wins (first on ties)
    and keeps the first occurrence's position. Ids are unique in the result.
    Ranking: score descending, internal before external, then discovery order.
    """
    merged: list[SupplierCandidate] = []
    position: dict[str, int] = {}
    for candidate in [*internal, *external]:
        key = normalize(candidate.company_name)
        if key in position:
            i = position[key]
            if candidate.match_score > merged[i].match_score:
                merged[i] = candidate
            continue
        position[key] = len(merged)
        merged.append(candidate)

    seen_ids: set[str] = set()
    unique = []
    for candidate in merged:
        if candidate.id in seen_ids:
            continue
        seen_ids.add(candidate.id)
        unique.append(candidate)

    unique.sort(key=lambda c: (-c.match_score, c.is_external))
    return unique[:cap]


async def match_suppliers(
    requirement: ProcurementRequirement,
    internal_suppliers: list[SupplierProfile],
    gateway: ReasoningClient,
    scout: SupplierScout,
    *,
    model: str,
    catalog: CategoryCatalog,
    cap: int = DEFAULT_CAP,
    scout_timeout: float = DEFAULT_SCOUT_TIMEOUT,
    reasoning_enabled: bool = True,
) -> MatchResult:
    eligible = prefilter_suppliers(requirement, internal_suppliers, catalog)
    logger.info(
        "Starting supplier matching for '%s' (%d of %d suppliers eligible)",
        requirement.title or requirement.product_description[:60],
        len(eligible),
        len(internal_suppliers),
    )

    try:
        async with asyncio.TaskGroup() as group:
            internal_task = group.create_task(
                score_internal(requirement, eligible, gateway, model=model, reasoning_enabled=reasoning_enabled)
            )
            external_task = group.create_task(discover_external(scout, scout_query(requirement), scout_timeout))
    except ExceptionGroup as eg:
        # Only internal scoring can fail here; surface its error directly.
        raise eg.exceptions[0]

    candidates = merge_candidates(internal_task.result(), external_task.result(), cap)
    logger.info("Returning %d candidates.", len(candidates))
    return MatchResult(requirement=requirement, candidates=candidates)
