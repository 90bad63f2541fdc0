"""Pydantic models for requirement, candidate and message shapes.

Attributes are snake_case in Python; JSON on the wire is camelCase.
"""

from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator, model_validator
from pydantic.alias_generators import to_camel

from procmatch.attachments import decode_data_uri

NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Requirement
# ---------------------------------------------------------------------------
class Quantity(CamelModel):
    model_config = ConfigDict(frozen=True)

    value: int | float = Field(gt=0)
    unit: str


class Specification(CamelModel):
    """One extracted key/value specification (e.g. material = 100% cotton)."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: str


class Price(CamelModel):
    model_config = ConfigDict(frozen=True)

    amount: int | float = Field(ge=0)
    currency: str


class ProcurementRequirement(CamelModel):
    """A buyer's structured procurement need, derived from free text. Immutable."""

    model_config = ConfigDict(frozen=True)

    product_description: str = Field(min_length=1)
    quantity: Quantity
    specifications: tuple[Specification, ...] = ()  # extraction order
    target_price: Price | None = None
    category_hints: tuple[str, ...] = ()
    title: str | None = None
    destination_country: str | None = None

    @field_validator("category_hints")
    @classmethod
    def unique_hints(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Treat hints as a set: drop blanks and case-insensitive repeats, keep first-seen order."""
        seen: set[str] = set()
        out: list[str] = []
        for hint in v:
            h = hint.strip()
            if h and h.casefold() not in seen:
                seen.add(h.casefold())
                out.append(h)
        return tuple(out)


# ---------------------------------------------------------------------------
# Suppliers and candidates
# ---------------------------------------------------------------------------
class SupplierProfile(CamelModel):
    """Internal directory record (read-only, owned by the directory collaborator)."""

    id: str
    company_name: str
    company_description: str = ""
    specialized_categories: list[str] = Field(default_factory=list)
    verification_status: str = "verified"
    website: str | None = None


class SupplierCandidate(CamelModel):
    """A supplier scored as a possible match for a requirement."""

    id: str
    company_name: str
    match_score: int = Field(ge=0, le=100)
    justification: str = Field(min_length=1)
    is_external: bool = False
    website: str | None = None


class MatchResult(CamelModel):
    requirement: ProcurementRequirement
    candidates: list[SupplierCandidate] = Field(default_factory=list)


class Category(CamelModel):
    id: str
    label: str


# ---------------------------------------------------------------------------
# LLM conversation
# ---------------------------------------------------------------------------
class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ReasoningMessage(CamelModel):
    """One conversation turn. ``reasoning_details`` is opaque and echoed back verbatim."""

    role: Role
    content: str
    reasoning_details: Any | None = None
    images: list[str] = Field(default_factory=list)  # image URLs or data URIs

    def to_wire(self) -> dict[str, Any]:
        """Chat-completions message dict (snake_case keys, as the endpoint expects).

        A turn carrying images is sent as content parts: the text, then one
        ``image_url`` part per image.
        """
        content: Any = self.content
        if self.images:
            content = [{"type": "text", "text": self.content}]
            content += [{"type": "image_url", "image_url": {"url": url}} for url in self.images]
        msg: dict[str, Any] = {"role": self.role.value, "content": content}
        if self.reasoning_details is not None:
            msg["reasoning_details"] = self.reasoning_details
        return msg


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------
class PdfAttachment(CamelModel):
    """A PDF sent as a base64 data URI."""

    name: str
    content: str

    @field_validator("content")
    @classmethod
    def check_data_uri(cls, v: str) -> str:
        decode_data_uri(v)
        return v


class SpreadsheetAttachment(CamelModel):
    """Tabular data already rendered to text (CSV or similar)."""

    name: str
    data: str


def _check_image(v: str | None) -> str | None:
    if v is None:
        return None
    if v.startswith(("http://", "https://")):
        return v
    mime, _ = decode_data_uri(v)
    if not mime.startswith("image/"):
        raise ValueError(f"expected an image data URI, got {mime}")
    return v


# ---------------------------------------------------------------------------
# Flow inputs / outputs
# ---------------------------------------------------------------------------
class RequirementExtractionInput(CamelModel):
    text: str
    image: str | None = None
    pdf: PdfAttachment | None = None

    check_image = field_validator("image")(_check_image)

    @model_validator(mode="after")
    def check_has_content(self) -> "RequirementExtractionInput":
        if not self.text.strip() and self.image is None and self.pdf is None:
            raise ValueError("text must not be blank")
        return self


class SupplierMatchingInput(CamelModel):
    requirement: ProcurementRequirement
    # None means "use the configured supplier directory"
    internal_suppliers: list[SupplierProfile] | None = None


class SupplierCategoriesInput(CamelModel):
    text: NonBlankStr


class SupplierCategoriesOutput(CamelModel):
    suggested_category_ids: list[str] = Field(default_factory=list)
    justification: str = ""


# ---------------------------------------------------------------------------
# Conversational requirement intake
# ---------------------------------------------------------------------------
class ConversationStep(str, Enum):
    GREETING = "greeting"
    SELECTION = "selection"
    CATEGORY = "category"
    TITLE = "title"
    QUANTITY = "quantity"
    PRICE = "price"
    DESTINATION = "destination"
    DESCRIPTION = "description"
    CONFIRMATION = "confirmation"
    COMPLETE = "complete"


class PotentialRequirement(CamelModel):
    """One of several requirements found in a single message or document."""

    title: str
    product_category: str = "Other"
    description: str = ""


class CollectedData(CamelModel):
    title: str | None = None
    product_category: str | None = None
    quantity: int | float | None = Field(default=None, gt=0)
    target_price: int | float | None = Field(default=None, ge=0)  # EUR per unit
    destination_country: str | None = None
    description: str | None = None
    potential_requirements: list[PotentialRequirement] | None = None


class ConversationTurn(CamelModel):
    role: Role
    content: str


class ConversationState(CamelModel):
    step: ConversationStep = ConversationStep.GREETING
    collected_data: CollectedData = Field(default_factory=CollectedData)
    conversation_history: list[ConversationTurn] = Field(default_factory=list)


class ConversationalInput(CamelModel):
    user_message: str
    current_state: ConversationState | None = None
    pdf: PdfAttachment | None = None
    spreadsheet: SpreadsheetAttachment | None = None
    image: str | None = None

    check_image = field_validator("image")(_check_image)

    @model_validator(mode="after")
    def check_has_content(self) -> "ConversationalInput":
        if not self.user_message.strip() and not (self.pdf or self.spreadsheet or self.image):
            raise ValueError("userMessage must not be blank")
        return self


class ConversationalOutput(CamelModel):
    bot_message: str
    updated_state: ConversationState
    is_complete: bool = False
    # set once the buyer confirms; ready for findMatchingSuppliers
    requirement: ProcurementRequirement | None = None
