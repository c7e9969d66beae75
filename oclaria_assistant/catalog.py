"""Catalog loader for the Oclaria product document.

This module loads catalog.json once into immutable CatalogProduct records. Prices
are never read from the document: each product takes its price from the pricing
table by product key.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .pricing import PRICING, PricingTable

logger = logging.getLogger("oclaria.catalog")

NAME_KEYS = ["name", "title", "product name"]
LINK_KEYS = ["link", "url", "product link"]
CATEGORY_KEYS = ["category", "type", "family"]
DEFAULT_CATALOG_PAGE = "https://oclaria.com/products"


@dataclass(frozen=True)
class CatalogProduct:
    """Display view of one catalog product with its derived price."""
    key: str
    name: str
    price: Optional[int]
    link: str
    category: str


@dataclass(frozen=True)
class Catalog:
    """Read-only product catalog shared by every request."""
    products: Tuple[CatalogProduct, ...] = ()
    catalog_page: Optional[str] = None
    sha256: Optional[str] = field(default=None, compare=False)

    @property
    def keys(self) -> List[str]:
        return [product.key for product in self.products]

    def get(self, key: str) -> Optional[CatalogProduct]:
        for product in self.products:
            if product.key == key:
                return product
        return None

    def page_url(self) -> str:
        return self.catalog_page or DEFAULT_CATALOG_PAGE

    def to_prompt_dict(self) -> Dict[str, Any]:
        """Purpose: Serialize the catalog into the structure embedded in the system prompt.
        Inputs/Outputs: No inputs; returns a JSON-ready dict.
        Side Effects / State: None.
        Dependencies: Reads products and catalog_page.
        Failure Modes: None; an empty catalog yields an empty products mapping.
        If Removed: The completion model loses its ground-truth product data.
        Testing Notes: Verify prices in the output match the pricing table.
        """
        # Keep document order so the prompt is stable between restarts.
        payload: Dict[str, Any] = {
            "products": {
                product.key: {
                    "name": product.name,
                    "price": product.price,
                    "link": product.link,
                    "category": product.category,
                }
                for product in self.products
            }
        }
        if self.catalog_page:
            payload["catalog_page"] = self.catalog_page
        return payload


class CatalogLoader:
    def __init__(self, path: Path, pricing: PricingTable = PRICING) -> None:
        """Purpose: Configure the loader with a catalog file path and pricing table.
        Inputs/Outputs: Inputs are a Path to catalog.json and a PricingTable; no return value.
        Side Effects / State: Stores both for later load calls.
        Dependencies: None beyond Path usage.
        Failure Modes: None at init; load() handles read/parse errors.
        If Removed: The app cannot build the catalog used by the system prompt.
        Testing Notes: Instantiate with a temp path and call load().
        """
        self._path = path
        self._pricing = pricing

    def load(self) -> Catalog:
        """Purpose: Load and normalize catalog data, degrading to an empty catalog.
        Inputs/Outputs: No inputs; returns a Catalog.
        Side Effects / State: Reads the file and logs the loaded product keys.
        Dependencies: Uses json, hashlib, and _build_product.
        Failure Modes: Missing file, invalid JSON, or a non-object document are logged
            and produce an empty Catalog instead of raising.
        If Removed: Startup has no catalog and the prompt lacks product data.
        Testing Notes: Use missing, malformed, and valid files and check the result.
        """
        # Read bytes for hashing and parse JSON into normalized products.
        try:
            raw_bytes = self._path.read_bytes()
            data = json.loads(raw_bytes.decode("utf-8-sig"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.error("Failed to load catalog %s: %s", self._path, exc)
            return Catalog()
        if not isinstance(data, dict):
            logger.error("Failed to load catalog %s: expected a JSON object", self._path)
            return Catalog()

        products: List[CatalogProduct] = []
        raw_products = data.get("products") or {}
        if isinstance(raw_products, dict):
            for key, item in raw_products.items():
                if not isinstance(item, dict):
                    continue
                products.append(self._build_product(str(key), item))

        catalog_page = data.get("catalog_page")
        catalog = Catalog(
            products=tuple(products),
            catalog_page=str(catalog_page).strip() if catalog_page else None,
            sha256=hashlib.sha256(raw_bytes).hexdigest(),
        )
        logger.info("Catalog loaded with products: %s (sha256=%s)", catalog.keys, catalog.sha256[:12])
        return catalog

    def _build_product(self, key: str, item: Dict[str, Any]) -> CatalogProduct:
        price = self._pricing.price_for(key)
        listed = item.get("price")
        if listed not in (None, "") and price is not None and _to_number(listed) != price:
            logger.warning(
                "Catalog price for %s (%s) ignored; pricing table says %s %s",
                key,
                listed,
                price,
                self._pricing.currency,
            )
        return CatalogProduct(
            key=key,
            name=str(_get_first_value(item, NAME_KEYS) or key).strip(),
            price=price,
            link=str(_get_first_value(item, LINK_KEYS) or "").strip(),
            category=str(_get_first_value(item, CATEGORY_KEYS) or "").strip(),
        )


def _get_first_value(item: Dict[str, Any], keys: List[str]) -> Optional[Any]:
    """Purpose: Find the first non-empty field in a dict by key synonyms.
    Inputs/Outputs: Input is a raw dict and candidate keys; returns value or None.
    Side Effects / State: None.
    Dependencies: None.
    Failure Modes: Returns None when no keys match or values are empty.
    If Removed: Documents using "title" or "url" lose their names and links.
    Testing Notes: Verify synonym keys resolve to the expected value.
    """
    lowered = {str(k).strip().lower(): k for k in item.keys()}
    for key in keys:
        actual = lowered.get(key)
        if actual is None:
            continue
        value = item.get(actual)
        if value not in (None, ""):
            return value
    return None


def _to_number(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
