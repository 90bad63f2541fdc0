"""Named flows: requirement extraction, conversational intake, supplier matching, supplier category suggestion."""

from procmatch.flows.conversation import handle_conversation
from procmatch.flows.requirement_extractor import extract_requirement, parse_requirement
from procmatch.flows.supplier_categories import suggest_supplier_categories
from procmatch.flows.supplier_matcher import match_suppliers, merge_candidates

__all__ = [
    "extract_requirement",
    "handle_conversation",
    "match_suppliers",
    "merge_candidates",
    "parse_requirement",
    "suggest_supplier_categories",
]
