"""Tests for buyer attachments: data URIs, PDF text, and their use in the extraction prompt."""

import asyncio
import base64

import pytest
from pydantic import ValidationError

from procmatch.attachments import PDFParseError, decode_data_uri, extract_pdf_text, pdf_data_uri_text
from procmatch.directory import CategoryCatalog
from procmatch.flows.common import attachment_context
from procmatch.flows.requirement_extractor import extract_requirement
from procmatch.schemas.models import PdfAttachment, RequirementExtractionInput, SpreadsheetAttachment

from tests.conftest import FIXTURES_DIR, TSHIRT_ANSWER, FakeGateway


@pytest.fixture
def pdf_bytes():
    return (FIXTURES_DIR / "requirement.pdf").read_bytes()


@pytest.fixture
def pdf_uri(pdf_bytes):
    return "data:application/pdf;base64," + base64.b64encode(pdf_bytes).decode("ascii")


def test_decode_data_uri(pdf_bytes, pdf_uri):
    assert decode_data_uri(pdf_uri) == ("application/pdf", pdf_bytes)
    assert decode_data_uri("data:,hello%20world") == ("text/plain", b"hello world")


@pytest.mark.parametrize("value", ["https://example.com/a.pdf", "data:application/pdf;base64,@@@", "plain text"])
def test_decode_data_uri_rejects_invalid_values(value):
    with pytest.raises(ValueError):
        decode_data_uri(value)


def test_extract_pdf_text_reads_page_text(pdf_bytes):
    text = extract_pdf_text(pdf_bytes)
    assert "Cotton" in text
    assert "5000" in text


def test_extract_pdf_text_raises_on_corrupt_document():
    with pytest.raises(PDFParseError):
        extract_pdf_text(b"%PDF-1.4 this is not really a pdf")


def test_unreadable_pdf_yields_empty_text():
    uri = "data:application/pdf;base64," + base64.b64encode(b"not a pdf").decode("ascii")
    assert pdf_data_uri_text("broken.pdf", uri) == ""


def test_pdf_text_is_truncated(pdf_uri):
    assert len(pdf_data_uri_text("rfq.pdf", pdf_uri, max_chars=6)) == 6


def test_attachment_context_labels_each_document(pdf_uri):
    context = attachment_context(
        pdf=PdfAttachment(name="rfq.pdf", content=pdf_uri),
        spreadsheet=SpreadsheetAttachment(name="items.csv", data="title,qty\nShirts,5000\n"),
    )
    assert context.startswith("PDF content (rfq.pdf):\n")
    assert "Spreadsheet content (items.csv):\ntitle,qty\nShirts,5000" in context
    assert attachment_context() == ""


def test_pdf_attachment_requires_a_data_uri():
    with pytest.raises(ValidationError):
        PdfAttachment(name="rfq.pdf", content="https://example.com/rfq.pdf")


def test_extraction_input_image_must_be_an_image():
    RequirementExtractionInput(text="", image="data:image/png;base64,iVBORw0KGgo=")
    with pytest.raises(ValidationError):
        RequirementExtractionInput(text="shirts", image="data:text/plain;base64,aGVsbG8=")


def _extract(gateway, text, **kwargs):
    return asyncio.run(
        extract_requirement(text, gateway, model="m", catalog=CategoryCatalog.load(), **kwargs)
    )


def test_extraction_puts_pdf_text_in_the_prompt(pdf_uri):
    gateway = FakeGateway(TSHIRT_ANSWER)
    req = _extract(gateway, "", pdf=PdfAttachment(name="rfq.pdf", content=pdf_uri))
    assert req.quantity.value == 5000
    prompt = gateway.calls[0]["messages"][0].content
    assert "PDF content (rfq.pdf):" in prompt
    assert "Cotton" in prompt
    assert gateway.calls[0]["messages"][0].images == []


def test_extraction_sends_image_as_content_part():
    image = "data:image/jpeg;base64,/9j/4AAQ"
    gateway = FakeGateway(TSHIRT_ANSWER)
    _extract(gateway, "Need 5000 of these", image=image)
    message = gateway.calls[0]["messages"][0]
    assert message.images == [image]
    assert message.to_wire()["content"][1] == {"type": "image_url", "image_url": {"url": image}}
