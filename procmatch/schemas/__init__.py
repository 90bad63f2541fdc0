"""Pydantic models for requirements, candidates and flow payloads."""

from procmatch.schemas.models import (
    Category,
    CollectedData,
    ConversationalInput,
    ConversationalOutput,
    ConversationState,
    ConversationStep,
    MatchResult,
    PdfAttachment,
    PotentialRequirement,
    Price,
    ProcurementRequirement,
    Quantity,
    ReasoningMessage,
    RequirementExtractionInput,
    Role,
    Specification,
    SpreadsheetAttachment,
    SupplierCandidate,
    SupplierCategoriesInput,
    SupplierCategoriesOutput,
    SupplierMatchingInput,
    SupplierProfile,
)

__all__ = [
    "Category",
    "CollectedData",
    "ConversationalInput",
    "ConversationalOutput",
    "ConversationState",
    "ConversationStep",
    "MatchResult",
    "PdfAttachment",
    "PotentialRequirement",
    "Price",
    "ProcurementRequirement",
    "Quantity",
    "ReasoningMessage",
    "RequirementExtractionInput",
    "Role",
    "Specification",
    "SpreadsheetAttachment",
    "SupplierCandidate",
    "SupplierCategoriesInput",
    "SupplierCategoriesOutput",
    "SupplierMatchingInput",
    "SupplierProfile",
]
