"""Requirement extraction: buyer free text -> ProcurementRequirement via the LLM gateway."""

import logging
import re
from typing import Any

from procmatch.directory import CategoryCatalog
from procmatch.errors import ExtractionError
from procmatch.flows.common import attachment_context, parse_json_object, parse_number, render_prompt
from procmatch.llm.base import ReasoningClient
from procmatch.schemas.models import (
    PdfAttachment,
    Price,
    ProcurementRequirement,
    Quantity,
    ReasoningMessage,
    Role,
    Specification,
)

logger = logging.getLogger(__name__)

MAX_REPAIR_ATTEMPTS = 1  # extra model turns after the first undecodable answer
DEFAULT_UNIT = "units"

# Symbols that name one currency; a bare "¥" (JPY or CNY) does not.
_CURRENCY_SYMBOLS = {
    "€": "EUR",
    "£": "GBP",
    "₹": "INR",
    "cn¥": "CNY",
    "jp¥": "JPY",
}
# "$" with a country prefix; the bare sign means USD.
_DOLLAR_RE = re.compile(r"(?<![a-z])(us|ca|c|au|a|hk|sg|s|nz|r|mx)?\$")
_DOLLAR_PREFIXES = {
    None: "USD",
    "us": "USD",
    "ca": "CAD",
    "c": "CAD",
    "au": "AUD",
    "a": "AUD",
    "hk": "HKD",
    "sg": "SGD",
    "s": "SGD",
    "nz": "NZD",
    "r": "BRL",
    "mx": "MXN",
}
_CURRENCY_WORDS_RE = re.compile(r"\b(euros?|dollars?|rupees?|yuan|renminbi|yen|sterling)\b")
_CURRENCY_WORDS = {
    "euro": "EUR",
    "euros": "EUR",
    "dollar": "USD",
    "dollars": "USD",
    "rupee": "INR",
    "rupees": "INR",
    "yuan": "CNY",
    "renminbi": "CNY",
    "yen": "JPY",
    "sterling": "GBP",
}
ISO_CURRENCIES = frozenset(
    "AED AUD BDT BRL CAD CHF CNY CZK DKK EGP EUR GBP HKD HUF IDR ILS INR JPY KES KRW "
    "LKR MAD MXN MYR NGN NOK NZD PHP PKR PLN QAR RON RUB SAR SEK SGD THB TRY TWD UAH "
    "USD VND ZAR".split()
)
_ISO_CODE_RE = re.compile(r"\b([A-Z]{3})\b")


def _require_str(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{key}' must be a non-empty string")
    return value.strip()


def _optional_str(data: dict, key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value.strip() or None


def currency_from_text(text: str) -> str | None:
    """ISO 4217 code named by a symbol, word or upper-case code in free text; None if unclear."""
    lowered = text.casefold()
    for symbol, code in _CURRENCY_SYMBOLS.items():
        if symbol in lowered:
            return code
    m = _DOLLAR_RE.search(lowered)
    if m:
        return _DOLLAR_PREFIXES[m.group(1)]
    m = _CURRENCY_WORDS_RE.search(lowered)
    if m:
        return _CURRENCY_WORDS[m.group(1)]
    for code in _ISO_CODE_RE.findall(text):
        if code in ISO_CURRENCIES:
            return code
    return None


def _parse_currency(value: str) -> str:
    value = value.strip()
    if value.upper() in ISO_CURRENCIES:
        return value.upper()
    code = currency_from_text(value)
    if code is None:
        raise ValueError(f"unrecognized currency: {value!r}")
    return code


def parse_quantity(raw: Any) -> Quantity:
    """Quantity from {"value", "unit"}, a bare number, or text like "5000 units"."""
    unit: str | None = None
    value_raw = raw
    if isinstance(raw, dict):
        value_raw = raw.get("value")
        unit = raw.get("unit") if isinstance(raw.get("unit"), str) else None
    parsed = parse_number(value_raw)
    if parsed is None:
        raise ValueError(f"quantity has no numeric value: {raw!r}")
    value, rest = parsed
    if value <= 0:
        raise ValueError(f"quantity must be greater than 0, got {value}")
    unit = (unit or rest or DEFAULT_UNIT).strip()
    return Quantity(value=value, unit=unit)


def parse_price(raw: Any) -> Price | None:
    """Target price from {"amount", "currency"} or text like "$3 per unit"; None when absent."""
    if raw is None:
        return None
    currency: str | None = None
    amount_raw = raw
    if isinstance(raw, dict):
        if raw.get("amount") is None:
            return None
        amount_raw = raw.get("amount")
        if isinstance(raw.get("currency"), str) and raw["currency"].strip():
            currency = _parse_currency(raw["currency"])
    parsed = parse_number(amount_raw)
    if parsed is None:
        raise ValueError(f"targetPrice has no numeric amount: {raw!r}")
    amount, _ = parsed
    if amount < 0:
        raise ValueError(f"targetPrice must not be negative, got {amount}")
    if currency is None and isinstance(amount_raw, str):
        currency = currency_from_text(amount_raw)
    if currency is None:
        raise ValueError(f"targetPrice has no currency: {raw!r}")
    return Price(amount=amount, currency=currency)


def _spec_value(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(v).strip() for v in value if str(v).strip())
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value).strip()
    raise ValueError(f"unsupported specification value: {value!r}")


def parse_specifications(raw: Any) -> list[Specification]:
    """Ordered specs from [{"key", "value"}] or an object mapping key -> value."""
    if raw is None:
        return []
    if isinstance(raw, dict):
        pairs = list(raw.items())
    elif isinstance(raw, list):
        pairs = []
        for item in raw:
            if not isinstance(item, dict):
                raise ValueError(f"specification entry must be an object: {item!r}")
            pairs.append((item.get("key"), item.get("value")))
    else:
        raise ValueError("'specifications' must be a list or an object")

    specs = []
    for key, value in pairs:
        if not isinstance(key, str) or not key.strip():
            raise ValueError(f"specification key missing: {key!r}")
        text = _spec_value(value)
        if not text:
            raise ValueError(f"specification '{key}' has no value")
        specs.append(Specification(key=key.strip(), value=text))
    return specs


def _parse_hints(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return [raw]
    if isinstance(raw, list) and all(isinstance(h, str) for h in raw):
        return raw
    raise ValueError("'categoryHints' must be a list of strings")


def parse_requirement(
    raw: str,
    catalog: CategoryCatalog | None = None,
    default_destination: str | None = None,
) -> ProcurementRequirement:
    """
    Decode an assistant answer into a ProcurementRequirement, validating every field.
    Raises ExtractionError (carrying the raw answer) instead of guessing.
    """
    try:
        data = parse_json_object(raw)
        hints = _parse_hints(data.get("categoryHints"))
        if catalog is not None:
            hints = catalog.reconcile(hints)
        return ProcurementRequirement(
            product_description=_require_str(data, "productDescription"),
            quantity=parse_quantity(data.get("quantity")),
            specifications=parse_specifications(data.get("specifications")),
            target_price=parse_price(data.get("targetPrice")),
            category_hints=hints,
            title=_optional_str(data, "title"),
            destination_country=_optional_str(data, "destinationCountry") or default_destination,
        )
    except ValueError as e:  # includes JSONDecodeError and pydantic ValidationError
        raise ExtractionError(f"Could not decode requirement from model response: {e}", raw_response=raw) from e


async def extract_requirement(
    text: str,
    gateway: ReasoningClient,
    *,
    model: str,
    catalog: CategoryCatalog,
    reasoning_enabled: bool = True,
    repair_attempts: int = MAX_REPAIR_ATTEMPTS,
    default_destination: str | None = None,
    image: str | None = None,
    pdf: PdfAttachment | None = None,
    attachment_max_chars: int | None = None,
) -> ProcurementRequirement:
    """
    Turn buyer free text (plus an optional image and PDF) into a structured requirement.

    One instruction turn; the image travels as an ``image_url`` part and the PDF
    as extracted text. If the answer is undecodable the assistant turn is echoed
    back (with its reasoning details) followed by a fix-JSON request, up to
    ``repair_attempts`` times. Gateway errors propagate unchanged.
    """
    text = (text or "").strip()
    attachments = attachment_context(pdf=pdf, max_chars=attachment_max_chars)
    if not text and not attachments and image is None:
        raise ExtractionError("Requirement text is empty")

    prompt = render_prompt(
        "requirement_extract.j2",
        text=text,
        attachments=attachments,
        has_image=image is not None,
        categories=catalog.labels(),
        default_destination=default_destination or "the buyer's country",
    )
    messages = [ReasoningMessage(role=Role.USER, content=prompt, images=[image] if image else [])]
    logger.info(
        "Extracting requirement details (%d chars of input, %d chars of attachments, image=%s)",
        len(text),
        len(attachments),
        image is not None,
    )
    reply = await gateway.complete(model, messages, reasoning_enabled)
    logger.debug("Model raw output: %s", reply.content)

    attempts = 0
    while True:
        try:
            requirement = parse_requirement(reply.content, catalog, default_destination)
            break
        except ExtractionError as e:
            if attempts >= repair_attempts:
                raise
            attempts += 1
            logger.warning("Extraction answer undecodable (attempt %d): %s", attempts, e)
            messages = [
                *messages,
                reply,
                ReasoningMessage(role=Role.USER, content=render_prompt("fix_json.j2", error=str(e))),
            ]
            reply = await gateway.complete(model, messages, reasoning_enabled)
            logger.debug("Model raw output (repair %d): %s", attempts, reply.content)

    logger.info(
        "Extracted requirement: %s x %s %s",
        requirement.product_description[:60],
        requirement.quantity.value,
        requirement.quantity.unit,
    )
    return requirement
