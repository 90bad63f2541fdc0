"""Conversational requirement intake: one buyer message per call, state kept by the caller.

Steps run greeting -> [selection] -> category -> title -> quantity -> price ->
destination -> description -> confirmation -> complete. Each turn asks the model
what the buyer just said, merges it into the collected data, then asks for the
first missing field.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import ValidationError

from procmatch.directory import CategoryCatalog
from procmatch.flows.common import attachment_context, parse_json_object, parse_number, render_prompt
from procmatch.llm.base import ReasoningClient
from procmatch.schemas.models import (
    CollectedData,
    ConversationalOutput,
    ConversationState,
    ConversationStep,
    ConversationTurn,
    PdfAttachment,
    PotentialRequirement,
    Price,
    ProcurementRequirement,
    Quantity,
    ReasoningMessage,
    Role,
    SpreadsheetAttachment,
)

logger = logging.getLogger(__name__)

PRICE_CURRENCY = "EUR"
APOLOGY = "I'm sorry, I had trouble processing that. Could you please try again?"
COMPLETE_MESSAGE = "Perfect! All details are collected. You can now look for matching suppliers."

QUESTIONS = {
    ConversationStep.GREETING: (
        "Hello! I'll help you create a product requirement. "
        "What product are you looking for? You can also attach a PDF, a spreadsheet or an image."
    ),
    ConversationStep.TITLE: "What would you like to call this requirement? A short title is enough.",
    ConversationStep.QUANTITY: "How many units do you need?",
    ConversationStep.PRICE: "What is your target price per unit in EUR?",
    ConversationStep.DESTINATION: "Which country should the goods be delivered to?",
    ConversationStep.DESCRIPTION: (
        "Please describe the product: materials, sizes, colors, certifications or anything else that matters."
    ),
}

# Order in which missing fields are asked for.
_FIELD_STEPS = (
    ("product_category", ConversationStep.CATEGORY),
    ("title", ConversationStep.TITLE),
    ("quantity", ConversationStep.QUANTITY),
    ("target_price", ConversationStep.PRICE),
    ("destination_country", ConversationStep.DESTINATION),
    ("description", ConversationStep.DESCRIPTION),
)

_TEXT_FIELDS = {
    "title": "title",
    "productCategory": "product_category",
    "destinationCountry": "destination_country",
    "description": "description",
}


class Intent(str, Enum):
    PROVIDE_INFO = "provide_info"
    SELECT_REQUIREMENT = "select_requirement"
    CONFIRM = "confirm"
    CHANGE_FIELD = "change_field"
    UNCLEAR = "unclear"


@dataclass
class TurnExtraction:
    """What the model read from one buyer message."""

    intent: Intent = Intent.UNCLEAR
    fields: dict[str, Any] = field(default_factory=dict)  # CollectedData attribute -> value
    potential_requirements: list[PotentialRequirement] = field(default_factory=list)
    selected_index: int | None = None


def _positive(raw: Any, name: str, allow_zero: bool = False) -> int | float | None:
    try:
        parsed = parse_number(raw)
    except ValueError as e:
        logger.warning("Ignoring %s %r: %s", name, raw, e)
        return None
    if parsed is None:
        return None
    value = parsed[0]
    if value < 0 or (value == 0 and not allow_zero):
        logger.warning("Ignoring %s %r: out of range", name, raw)
        return None
    return value


def parse_turn(raw: str, catalog: CategoryCatalog | None = None) -> TurnExtraction:
    """
    Decode the model's answer for one turn. Raises ValueError when it is not a JSON object.

    Individual fields that are missing or unusable are skipped so the
    conversation can ask for them again.
    """
    data = parse_json_object(raw)
    extracted = data.get("extractedData") or {}
    if not isinstance(extracted, dict):
        raise ValueError("'extractedData' must be an object")

    try:
        intent = Intent(data.get("userIntent"))
    except ValueError:
        intent = Intent.UNCLEAR
    turn = TurnExtraction(intent=intent)

    for key, attr in _TEXT_FIELDS.items():
        value = extracted.get(key)
        if isinstance(value, str) and value.strip():
            turn.fields[attr] = value.strip()
    if catalog is not None and "product_category" in turn.fields:
        category = catalog.resolve(turn.fields["product_category"])
        if category is not None:
            turn.fields["product_category"] = category.label

    # zero is how the model says "not given"
    quantity = _positive(extracted.get("quantity"), "quantity")
    if quantity is not None:
        turn.fields["quantity"] = quantity
    price = _positive(extracted.get("targetPrice"), "targetPrice")
    if price is not None:
        turn.fields["target_price"] = price

    options = extracted.get("potentialRequirements")
    for item in options if isinstance(options, list) else []:
        try:
            turn.potential_requirements.append(PotentialRequirement.model_validate(item))
        except ValidationError as e:
            logger.warning("Ignoring potential requirement %r: %s", item, e.error_count())

    index = _positive(extracted.get("selectedIndex"), "selectedIndex", allow_zero=True)
    if isinstance(index, int):
        turn.selected_index = index
    return turn


def apply_turn(data: CollectedData, turn: TurnExtraction) -> CollectedData:
    """Merge one turn into the collected data. A selection copies the chosen requirement."""
    values = data.model_dump()
    options = data.potential_requirements or []
    if turn.intent is Intent.SELECT_REQUIREMENT and turn.selected_index is not None:
        if 0 <= turn.selected_index < len(options):
            chosen = options[turn.selected_index]
            values.update(
                title=chosen.title,
                product_category=chosen.product_category,
                description=chosen.description or values["description"],
                potential_requirements=None,
            )
        else:
            logger.warning("Selected index %d out of range (%d options)", turn.selected_index, len(options))
    values.update(turn.fields)
    if turn.potential_requirements:
        values["potential_requirements"] = [r.model_dump() for r in turn.potential_requirements]
    return CollectedData.model_validate(values)


def next_step(data: CollectedData) -> ConversationStep:
    """Selection while several requirements are open, else the first missing field, else confirmation."""
    if data.potential_requirements and len(data.potential_requirements) > 1 and not data.title:
        return ConversationStep.SELECTION
    for attr, step in _FIELD_STEPS:
        if getattr(data, attr) is None:
            return step
    return ConversationStep.CONFIRMATION


def selection_message(options: list[PotentialRequirement]) -> str:
    lines = [f"I found {len(options)} potential requirements:", ""]
    for i, option in enumerate(options, start=1):
        lines.append(f"{i}. **{option.title}** ({option.product_category})")
        if option.description:
            desc = option.description
            lines.append(f"   {desc[:100]}..." if len(desc) > 100 else f"   {desc}")
    lines += ["", "Which one would you like to work on? Reply with the number or the name."]
    return "\n".join(lines)


def category_question(catalog: CategoryCatalog) -> str:
    examples = ", ".join(catalog.labels()[:5])
    return f"What product category is this? (e.g., {examples}, or specify your own)"


def confirmation_message(data: CollectedData) -> str:
    quantity = f"{data.quantity:,}" if data.quantity is not None else "-"
    price = f"€{data.target_price:,.2f}" if data.target_price is not None else "-"
    return "\n".join(
        [
            "Here is the summary of your requirement:",
            "",
            f"**Title:** {data.title}",
            f"**Category:** {data.product_category}",
            f"**Quantity:** {quantity} units",
            f"**Target price:** {price} per unit",
            f"**Destination:** {data.destination_country}",
            f"**Description:** {data.description}",
            "",
            'Reply "confirm" to finish, or tell me what to change.',
        ]
    )


def collected_requirement(data: CollectedData) -> ProcurementRequirement:
    """The confirmed conversation data as a requirement for matching."""
    return ProcurementRequirement(
        title=data.title,
        product_description=data.description or data.title or "",
        quantity=Quantity(value=data.quantity, unit="units"),
        target_price=Price(amount=data.target_price, currency=PRICE_CURRENCY)
        if data.target_price is not None
        else None,
        category_hints=(data.product_category,) if data.product_category else (),
        destination_country=data.destination_country,
    )


async def handle_conversation(
    user_message: str,
    gateway: ReasoningClient,
    *,
    model: str,
    catalog: CategoryCatalog,
    state: ConversationState | None = None,
    pdf: PdfAttachment | None = None,
    spreadsheet: SpreadsheetAttachment | None = None,
    image: str | None = None,
    reasoning_enabled: bool = True,
    attachment_max_chars: int | None = None,
) -> ConversationalOutput:
    """
    Process one buyer message and return the assistant's reply with the new state.

    An undecodable model answer yields an apology and leaves the state unchanged.
    Gateway and configuration errors propagate.
    """
    state = state or ConversationState()
    message = (user_message or "").strip()
    attachments = attachment_context(pdf=pdf, spreadsheet=spreadsheet, max_chars=attachment_max_chars)
    prompt = render_prompt(
        "conversation_turn.j2",
        step=state.step.value,
        collected_json=state.collected_data.model_dump_json(by_alias=True, exclude_none=True, indent=2),
        message=message,
        attachments=attachments,
        has_spreadsheet=spreadsheet is not None,
        has_image=image is not None,
        categories=catalog.labels(),
    )
    logger.info("Conversation turn at step %s (%d chars of input)", state.step.value, len(message))
    reply = await gateway.complete(
        model,
        [ReasoningMessage(role=Role.USER, content=prompt, images=[image] if image else [])],
        reasoning_enabled,
    )
    logger.debug("Model raw output: %s", reply.content)

    try:
        turn = parse_turn(reply.content, catalog)
        data = apply_turn(state.collected_data, turn)
    except ValueError as e:  # includes JSONDecodeError and pydantic ValidationError
        logger.warning("Conversation answer undecodable: %s", e)
        return ConversationalOutput(bot_message=APOLOGY, updated_state=state)

    step = next_step(data)
    requirement = None
    if step is ConversationStep.SELECTION:
        bot_message = selection_message(data.potential_requirements or [])
    elif step is ConversationStep.CONFIRMATION and turn.intent is Intent.CONFIRM:
        step = ConversationStep.COMPLETE
        requirement = collected_requirement(data)
        bot_message = COMPLETE_MESSAGE
    elif step is ConversationStep.CONFIRMATION:
        bot_message = confirmation_message(data)
    elif step is ConversationStep.CATEGORY:
        bot_message = category_question(catalog)
    else:
        bot_message = QUESTIONS[step]

    history = [
        *state.conversation_history,
        ConversationTurn(role=Role.USER, content=message),
        ConversationTurn(role=Role.ASSISTANT, content=bot_message),
    ]
    logger.info("Conversation moved %s -> %s", state.step.value, step.value)
    return ConversationalOutput(
        bot_message=bot_message,
        updated_state=ConversationState(step=step, collected_data=data, conversation_history=history),
        is_complete=requirement is not None,
        requirement=requirement,
    )
