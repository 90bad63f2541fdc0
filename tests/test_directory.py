"""Tests for the category catalog, the JSON supplier directory and category suggestion."""

import asyncio
import json

import pytest

from procmatch.directory import (
    FALLBACK_CATEGORIES,
    CategoryCatalog,
    JsonSupplierDirectory,
    json_category_loader,
)
from procmatch.errors import ExtractionError
from procmatch.flows.supplier_categories import (
    NO_CATEGORIES_JUSTIFICATION,
    parse_category_suggestion,
    suggest_supplier_categories,
)
from procmatch.schemas.models import Category

from tests.conftest import FakeGateway


def test_catalog_falls_back_when_source_fails():
    def broken():
        raise OSError("catalog store unavailable")

    assert CategoryCatalog.load(broken).labels() == [c.label for c in FALLBACK_CATEGORIES]
    assert len(CategoryCatalog.load(lambda: [])) == len(FALLBACK_CATEGORIES)


def test_catalog_resolves_ids_and_labels(catalog):
    assert catalog.resolve("Textiles  &  apparel").id == "textiles-apparel"
    assert catalog.resolve("LEATHER-GOODS").label == "Leather Goods"
    assert catalog.resolve("Knitwear") is None
    assert catalog.reconcile(["textiles-apparel", "Knitwear"]) == ["Textiles & Apparel", "Knitwear"]
    assert catalog.keys_for(["textiles-apparel", "Textiles & Apparel"]) == {"textiles & apparel"}


def test_json_category_loader_skips_inactive(tmp_path):
    path = tmp_path / "categories.json"
    path.write_text(
        json.dumps(
            [
                {"id": "spices", "label": "Spices"},
                {"id": "coir", "label": "Coir Products", "active": False},
            ]
        ),
        encoding="utf-8",
    )
    catalog = CategoryCatalog.load(json_category_loader(path))
    assert catalog.labels() == ["Spices"]


def test_json_supplier_directory_lists_verified_only(tmp_path):
    path = tmp_path / "suppliers.json"
    path.write_text(
        json.dumps(
            [
                {"id": "s1", "companyName": "Verified Mill", "specializedCategories": ["textiles-apparel"]},
                {"id": "s2", "companyName": "Pending Mill", "verificationStatus": "pending"},
            ]
        ),
        encoding="utf-8",
    )
    suppliers = JsonSupplierDirectory(path).list_suppliers()
    assert [s.company_name for s in suppliers] == ["Verified Mill"]
    assert suppliers[0].specialized_categories == ["textiles-apparel"]


def test_json_supplier_directory_unconfigured_is_empty(tmp_path):
    assert JsonSupplierDirectory(None).list_suppliers() == []
    assert JsonSupplierDirectory(tmp_path / "missing.json").list_suppliers() == []


# --- Supplier category suggestion ---


def test_parse_category_suggestion_maps_to_ids_and_drops_unknown(catalog):
    raw = json.dumps(
        {
            "suggestedCategoryIds": ["Packaging", "packaging", "rockets", "chemicals"],
            "justification": "  Corrugated boxes and adhesives. ",
        }
    )
    result = parse_category_suggestion(raw, catalog)
    assert result.suggested_category_ids == ["packaging", "chemicals"]
    assert result.justification == "Corrugated boxes and adhesives."


def test_parse_category_suggestion_rejects_bad_shape(catalog):
    with pytest.raises(ExtractionError) as exc_info:
        parse_category_suggestion('{"suggestedCategoryIds": "packaging"}', catalog)
    assert exc_info.value.raw_response == '{"suggestedCategoryIds": "packaging"}'


def test_suggest_categories_prompts_with_active_categories(catalog):
    gateway = FakeGateway(json.dumps({"suggestedCategoryIds": ["handicrafts"], "justification": "Brass artware."}))
    result = asyncio.run(
        suggest_supplier_categories("We make brass artware and wooden toys.", gateway, model="m", catalog=catalog)
    )
    assert result.suggested_category_ids == ["handicrafts"]
    prompt = gateway.calls[0]["messages"][0].content
    assert "brass artware" in prompt
    assert '"id": "handicrafts"' in prompt


def test_suggest_categories_without_catalog_skips_gateway():
    gateway = FakeGateway()
    result = asyncio.run(
        suggest_supplier_categories("We make brass artware.", gateway, model="m", catalog=CategoryCatalog([]))
    )
    assert result.suggested_category_ids == []
    assert result.justification == NO_CATEGORIES_JUSTIFICATION
    assert gateway.calls == []


def test_custom_catalog_labels_are_used(catalog):
    custom = CategoryCatalog([Category(id="spices", label="Spices")])
    assert custom.reconcile(["spices"]) == ["Spices"]
    assert custom.resolve("textiles-apparel") is None
