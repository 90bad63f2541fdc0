"""Helpers shared by the flows: prompt templates, JSON decoding, numerals."""

import json
import math
import re
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from procmatch.attachments import pdf_data_uri_text
from procmatch.schemas.models import PdfAttachment, SpreadsheetAttachment

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"

_env = Environment(loader=FileSystemLoader(str(PROMPTS_DIR)), undefined=StrictUndefined)

# Sign only when it does not follow a word character ("ISO-9001" is not negative).
_NUMBER_RE = re.compile(
    r"(?:(?<!\w)(?P<sign>[-+\u2212])\s*)?"
    r"(?P<num>\d{1,3}(?:[ \u00a0\u202f]\d{3})+(?:[.,]\d+)?(?!\d)|\d+(?:[.,]\d+)*)"
    r"(?:\s*(?P<mult>k|thousand|million)\b)?",
    re.IGNORECASE,
)
_RANGE_RE = re.compile(r"\s*(?:[-\u2013\u2014]|to\b)\s*\d", re.IGNORECASE)
_MULTIPLIERS = {"k": 1_000, "thousand": 1_000, "million": 1_000_000}


def render_prompt(template_name: str, **context: Any) -> str:
    return _env.get_template(template_name).render(**context).strip()


def strip_code_fence(raw: str) -> str:
    s = raw.strip()
    if s.startswith("```"):
        s = re.sub(r"^```\w*\n?", "", s)
        s = re.sub(r"\n?```\s*$", "", s)
    return s.strip()


def parse_json_object(raw: str) -> dict:
    """Decode an assistant answer into a JSON object. Raises ValueError."""
    data = json.loads(strip_code_fence(raw))
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def parse_number(value: Any) -> tuple[int | float, str] | None:
    """
    Parse a natural-language numeral into (number, remaining text).

    Accepts JSON numbers and strings such as "5,000 units", "5.000 Stück",
    "5 000 pcs", "1.234,56 EUR", "$3 per unit" or "2.5k". A single "." or ","
    followed by exactly three digits groups thousands; otherwise it is the
    decimal mark. The sign is kept, so "-5 units" yields -5.

    Returns None when no finite numeral is present. Raises ValueError for
    ranges ("5-10 units") and digit groupings that cannot be read one way only.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        return _tidy(value), ""
    if not isinstance(value, str):
        return None
    m = _NUMBER_RE.search(value)
    if not m:
        return None
    rest = value[m.end():]
    if _RANGE_RE.match(rest):
        raise ValueError(f"expected a single number, got a range: {value!r}")
    number = _to_float(m.group("num"))
    if m.group("mult"):
        number *= _MULTIPLIERS[m.group("mult").lower()]
    if m.group("sign") in ("-", "\u2212"):
        number = -number
    if not math.isfinite(number):
        return None
    return _tidy(number), rest.strip()


def _to_float(num: str) -> float:
    digits = num.replace("\u00a0", " ").replace("\u202f", " ")
    if " " in digits:
        # space-grouped thousands; any remaining mark is the decimal one
        return float(digits.replace(" ", "").replace(",", "."))

    marks = [c for c in digits if c in ".,"]
    if not marks:
        return float(digits)
    if len(set(marks)) == 2:
        decimal = marks[-1]
        if marks.count(decimal) > 1:
            raise ValueError(f"ambiguous digit grouping: {num!r}")
        group = "," if decimal == "." else "."
        whole, frac = digits.rsplit(decimal, 1)
        return float(_ungroup(whole, group, num) + "." + frac)

    mark = marks[0]
    parts = digits.split(mark)
    if len(parts) == 2 and (len(parts[1]) != 3 or parts[0] == "0"):
        return float(f"{parts[0]}.{parts[1]}")
    return float(_ungroup(digits, mark, num))


def _ungroup(text: str, mark: str, original: str) -> str:
    groups = text.split(mark)
    if not 1 <= len(groups[0]) <= 3 or any(len(g) != 3 for g in groups[1:]):
        raise ValueError(f"ambiguous digit grouping: {original!r}")
    return "".join(groups)


def _tidy(number: int | float) -> int | float:
    if isinstance(number, float) and number.is_integer():
        return int(number)
    return number


def attachment_context(
    pdf: PdfAttachment | None = None,
    spreadsheet: SpreadsheetAttachment | None = None,
    max_chars: int | None = None,
) -> str:
    """Prompt block with the readable content of PDF and spreadsheet attachments."""
    blocks = []
    if pdf is not None:
        text = pdf_data_uri_text(pdf.name, pdf.content, max_chars)
        if text:
            blocks.append(f"PDF content ({pdf.name}):\n{text}")
    if spreadsheet is not None and spreadsheet.data.strip():
        data = spreadsheet.data.strip()
        if max_chars is not None:
            data = data[:max_chars]
        blocks.append(f"Spreadsheet content ({spreadsheet.name}):\n{data}")
    return "\n\n".join(blocks)
