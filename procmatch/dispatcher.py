"""Named-flow dispatcher: Received -> Validated -> Dispatched -> Completed | Failed.

The flow name travels in the ``x-genkit-client`` header. Validation (header,
flow name, body shape) fails fast with a DispatchError before any flow runs;
errors raised by a flow propagate to the HTTP boundary, which maps them to 500.
"""

import logging
from enum import Enum
from typing import Any, Callable

from pydantic import ValidationError

from procmatch.config import Settings
from procmatch.directory import (
    CategoryCatalog,
    JsonSupplierDirectory,
    SupplierDirectory,
    json_category_loader,
)
from procmatch.errors import InvalidRequestError, MissingFlowNameError, UnknownFlowError
from procmatch.flows.conversation import handle_conversation
from procmatch.flows.requirement_extractor import extract_requirement
from procmatch.flows.supplier_categories import suggest_supplier_categories
from procmatch.flows.supplier_matcher import match_suppliers
from procmatch.llm import get_gateway
from procmatch.llm.base import ReasoningClient
from procmatch.schemas.models import (
    CamelModel,
    Category,
    ConversationalInput,
    RequirementExtractionInput,
    SupplierCategoriesInput,
    SupplierMatchingInput,
)
from procmatch.scout import get_scout
from procmatch.scout.trade_directories import SupplierScout

logger = logging.getLogger(__name__)

FLOW_HEADER = "x-genkit-client"


class Flow(str, Enum):
    EXTRACT_REQUIREMENT = "extractRequirementDetails"
    MATCH_SUPPLIERS = "findMatchingSuppliers"
    SUPPLIER_CATEGORIES = "extractSupplierCategories"
    CONVERSATIONAL_REQUIREMENT = "conversationalRequirement"


_INPUT_MODELS: dict[Flow, type[CamelModel]] = {
    Flow.EXTRACT_REQUIREMENT: RequirementExtractionInput,
    Flow.MATCH_SUPPLIERS: SupplierMatchingInput,
    Flow.SUPPLIER_CATEGORIES: SupplierCategoriesInput,
    Flow.CONVERSATIONAL_REQUIREMENT: ConversationalInput,
}


def resolve_flow(flow_name: str | None) -> Flow:
    if not flow_name:
        raise MissingFlowNameError()
    try:
        return Flow(flow_name)
    except ValueError:
        raise UnknownFlowError(flow_name) from None


def parse_flow_input(flow: Flow, body: Any) -> CamelModel:
    try:
        return _INPUT_MODELS[flow].model_validate(body)
    except ValidationError as e:
        raise InvalidRequestError(f"Invalid input for {flow.value}: {e.error_count()} validation error(s): {e}") from e


class FlowDispatcher:
    """Routes validated flow invocations to the flow functions. Holds no per-request state."""

    def __init__(
        self,
        gateway: ReasoningClient,
        scout: SupplierScout,
        settings: Settings,
        directory: SupplierDirectory | None = None,
        category_loader: Callable[[], list[Category]] | None = None,
    ):
        self.gateway = gateway
        self.scout = scout
        self.settings = settings
        self.directory = directory or JsonSupplierDirectory(settings.supplier_directory_path)
        self._category_loader = category_loader

    @classmethod
    def from_settings(cls, settings: Settings) -> "FlowDispatcher":
        path = settings.category_catalog_path
        return cls(
            gateway=get_gateway(settings),
            scout=get_scout(settings),
            settings=settings,
            category_loader=json_category_loader(path) if path else None,
        )

    def catalog(self) -> CategoryCatalog:
        return CategoryCatalog.load(self._category_loader)

    async def dispatch(self, flow_name: str | None, body: Any) -> CamelModel:
        flow = resolve_flow(flow_name)
        payload = parse_flow_input(flow, body)
        logger.info("Dispatching flow %s", flow.value)
        result = await self.run(flow, payload)
        logger.info("Flow %s completed", flow.value)
        return result

    async def run(self, flow: Flow, payload: CamelModel) -> CamelModel:
        s = self.settings
        if flow is Flow.EXTRACT_REQUIREMENT:
            assert isinstance(payload, RequirementExtractionInput)
            return await extract_requirement(
                payload.text,
                self.gateway,
                model=s.procmatch_extraction_model,
                catalog=self.catalog(),
                reasoning_enabled=s.procmatch_reasoning_enabled,
                repair_attempts=s.procmatch_extraction_repair_attempts,
                default_destination=s.procmatch_default_destination,
                image=payload.image,
                pdf=payload.pdf,
                attachment_max_chars=s.procmatch_attachment_max_chars,
            )
        if flow is Flow.MATCH_SUPPLIERS:
            assert isinstance(payload, SupplierMatchingInput)
            suppliers = payload.internal_suppliers
            if suppliers is None:
                suppliers = self.directory.list_suppliers()
            return await match_suppliers(
                payload.requirement,
                suppliers,
                self.gateway,
                self.scout,
                model=s.procmatch_matching_model,
                catalog=self.catalog(),
                cap=s.procmatch_match_cap,
                scout_timeout=s.procmatch_scout_timeout,
                reasoning_enabled=s.procmatch_reasoning_enabled,
            )
        if flow is Flow.SUPPLIER_CATEGORIES:
            assert isinstance(payload, SupplierCategoriesInput)
            return await suggest_supplier_categories(
                payload.text,
                self.gateway,
                model=s.procmatch_extraction_model,
                catalog=self.catalog(),
                reasoning_enabled=s.procmatch_reasoning_enabled,
            )
        if flow is Flow.CONVERSATIONAL_REQUIREMENT:
            assert isinstance(payload, ConversationalInput)
            return await handle_conversation(
                payload.user_message,
                self.gateway,
                model=s.procmatch_conversation_model,
                catalog=self.catalog(),
                state=payload.current_state,
                pdf=payload.pdf,
                spreadsheet=payload.spreadsheet,
                image=payload.image,
                reasoning_enabled=s.procmatch_reasoning_enabled,
                attachment_max_chars=s.procmatch_attachment_max_chars,
            )
        raise AssertionError(f"unhandled flow: {flow}")
