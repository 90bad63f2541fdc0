"""Suggest catalog categories for a supplier from its company description."""

import json
import logging

from procmatch.directory import CategoryCatalog
from procmatch.errors import ExtractionError
from procmatch.flows.common import parse_json_object, render_prompt
from procmatch.llm.base import ReasoningClient
from procmatch.schemas.models import ReasoningMessage, Role, SupplierCategoriesOutput

logger = logging.getLogger(__name__)

NO_CATEGORIES_JUSTIFICATION = (
    "No active categories were found in the system. "
    "Please contact the administrator to set up product categories."
)


def parse_category_suggestion(raw: str, catalog: CategoryCatalog) -> SupplierCategoriesOutput:
    """Keep only ids (or labels) that exist in the catalog, mapped to catalog ids."""
    try:
        data = parse_json_object(raw)
        ids = data.get("suggestedCategoryIds")
        if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
            raise ValueError("'suggestedCategoryIds' must be a list of strings")
        justification = data.get("justification")
        if not isinstance(justification, str):
            raise ValueError("'justification' must be a string")
    except ValueError as e:
        raise ExtractionError(f"Could not decode category suggestion: {e}", raw_response=raw) from e

    resolved: list[str] = []
    for value in ids:
        category = catalog.resolve(value)
        if category is None:
            logger.warning("Dropping unknown category suggestion: %s", value)
        elif category.id not in resolved:
            resolved.append(category.id)
    return SupplierCategoriesOutput(suggested_category_ids=resolved, justification=justification.strip())


async def suggest_supplier_categories(
    text: str,
    gateway: ReasoningClient,
    *,
    model: str,
    catalog: CategoryCatalog,
    reasoning_enabled: bool = True,
) -> SupplierCategoriesOutput:
    if not text or not text.strip():
        raise ExtractionError("Supplier description is empty")
    if len(catalog) == 0:
        return SupplierCategoriesOutput(suggested_category_ids=[], justification=NO_CATEGORIES_JUSTIFICATION)

    categories_json = json.dumps([c.model_dump() for c in catalog.categories], indent=2)
    prompt = render_prompt("supplier_categories.j2", text=text.strip(), categories_json=categories_json)
    logger.info("Suggesting supplier categories from %d active categories", len(catalog))
    reply = await gateway.complete(model, [ReasoningMessage(role=Role.USER, content=prompt)], reasoning_enabled)
    logger.debug("Model raw output: %s", reply.content)
    return parse_category_suggestion(reply.content, catalog)
