"""Read-only collaborators: the category catalog and the internal supplier directory.

Both are pure lookups. The authoritative category source may be unavailable,
in which case the built-in fallback list is used.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable, Iterable, Protocol

from procmatch.schemas.models import Category, SupplierProfile

logger = logging.getLogger(__name__)

OTHER_CATEGORY = Category(id="other", label="Other")

FALLBACK_CATEGORIES: list[Category] = [
    Category(id="textiles-apparel", label="Textiles & Apparel"),
    Category(id="leather-goods", label="Leather Goods"),
    Category(id="machinery-equipment", label="Machinery & Equipment"),
    Category(id="electronics-electrical", label="Electronics & Electrical"),
    Category(id="automotive-parts", label="Automotive Parts"),
    Category(id="metals-fabrication", label="Metals & Fabrication"),
    Category(id="chemicals", label="Chemicals"),
    Category(id="plastics-rubber", label="Plastics & Rubber"),
    Category(id="packaging", label="Packaging"),
    Category(id="food-agriculture", label="Food & Agriculture"),
    Category(id="furniture-home", label="Furniture & Home Decor"),
    Category(id="handicrafts", label="Handicrafts"),
    Category(id="pharma-healthcare", label="Pharmaceuticals & Healthcare"),
    OTHER_CATEGORY,
]


def normalize(value: str) -> str:
    """Case-insensitive, whitespace-collapsed key for names and categories."""
    return " ".join(value.split()).casefold()


class CategoryCatalog:
    """Active product categories, addressable by id or label."""

    def __init__(self, categories: Iterable[Category]):
        self.categories = list(categories)
        self._by_key: dict[str, Category] = {}
        for c in self.categories:
            self._by_key.setdefault(normalize(c.id), c)
            self._by_key.setdefault(normalize(c.label), c)

    @classmethod
    def load(cls, loader: Callable[[], list[Category]] | None = None) -> CategoryCatalog:
        """Load from the authoritative source, falling back to FALLBACK_CATEGORIES."""
        if loader is None:
            return cls(FALLBACK_CATEGORIES)
        try:
            categories = loader()
        except Exception as e:
            logger.error("Error fetching categories, using fallback: %s", e)
            return cls(FALLBACK_CATEGORIES)
        if not categories:
            logger.info("No active categories found, using fallbacks.")
            return cls(FALLBACK_CATEGORIES)
        return cls(categories)

    def __len__(self) -> int:
        return len(self.categories)

    def resolve(self, value: str) -> Category | None:
        return self._by_key.get(normalize(value))

    def reconcile(self, hints: Iterable[str]) -> list[str]:
        """Rewrite hints that name a catalog category to its label; keep others verbatim."""
        out: list[str] = []
        for h in hints:
            c = self.resolve(h)
            out.append(c.label if c else h)
        return out

    def keys_for(self, values: Iterable[str]) -> set[str]:
        """Normalized comparison keys: catalog label when known, raw value otherwise."""
        keys: set[str] = set()
        for v in values:
            c = self.resolve(v)
            keys.add(normalize(c.label if c else v))
        return keys

    def labels(self) -> list[str]:
        return [c.label for c in self.categories]


def json_category_loader(path: Path) -> Callable[[], list[Category]]:
    """Loader for a JSON list of {id, label, active?} records."""

    def _load() -> list[Category]:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return [Category.model_validate(item) for item in data if item.get("active", True)]

    return _load


class SupplierDirectory(Protocol):
    def list_suppliers(self) -> list[SupplierProfile]:
        """Return verified supplier profiles."""
        ...


class JsonSupplierDirectory:
    """Supplier directory backed by a JSON export; only verified suppliers are listed."""

    def __init__(self, path: Path | None):
        self._path = path

    def list_suppliers(self) -> list[SupplierProfile]:
        if self._path is None or not self._path.exists():
            logger.info("No supplier directory configured; returning no suppliers.")
            return []
        with open(self._path, encoding="utf-8") as f:
            data = json.load(f)
        suppliers = [SupplierProfile.model_validate(item) for item in data]
        verified = [s for s in suppliers if s.verification_status == "verified"]
        logger.info("Found %d verified suppliers (%d total).", len(verified), len(suppliers))
        return verified
