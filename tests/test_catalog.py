import hashlib
import json
import logging

from oclaria_assistant.catalog import Catalog, CatalogLoader
from oclaria_assistant.config import DEFAULT_CATALOG_PATH
from oclaria_assistant.pricing import PRICING


def test_packaged_catalog_prices_match_pricing_table():
    catalog = CatalogLoader(DEFAULT_CATALOG_PATH).load()
    assert catalog.catalog_page == "https://oclaria.com/products"
    assert set(catalog.keys) == set(PRICING.prices)
    for product in catalog.products:
        assert product.price == PRICING.prices[product.key]
        assert product.link.startswith("https://oclaria.com/")


def test_missing_file_degrades_to_empty_catalog(tmp_path, caplog):
    with caplog.at_level(logging.ERROR, logger="oclaria.catalog"):
        catalog = CatalogLoader(tmp_path / "nope.json").load()
    assert catalog == Catalog()
    assert catalog.page_url() == "https://oclaria.com/products"
    assert "Failed to load catalog" in caplog.text


def test_invalid_json_degrades_to_empty_catalog(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text("{not json", encoding="utf-8")
    assert CatalogLoader(path).load().products == ()


def test_non_object_document_degrades_to_empty_catalog(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")
    assert CatalogLoader(path).load().products == ()


def test_document_price_is_overridden_by_pricing_table(tmp_path, caplog):
    path = tmp_path / "catalog.json"
    path.write_text(
        json.dumps(
            {
                "products": {
                    "hooks50": {"title": "Hooks 50", "price": 99, "url": "https://oclaria.com/h", "category": "hooks"},
                    "mug": {"name": "Mug", "price": 45},
                    "broken": "not a product",
                }
            }
        ),
        encoding="utf-8",
    )
    with caplog.at_level(logging.WARNING, logger="oclaria.catalog"):
        catalog = CatalogLoader(path).load()

    hooks = catalog.get("hooks50")
    assert hooks.name == "Hooks 50"
    assert hooks.link == "https://oclaria.com/h"
    assert hooks.price == 135
    assert catalog.get("mug").price is None
    assert catalog.get("broken") is None
    assert catalog.catalog_page is None
    assert "hooks50" in caplog.text


def test_prompt_dict_keeps_document_order(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(
        json.dumps({"catalog_page": "https://oclaria.com/all", "products": {"open6": {"name": "O6"}, "earbuds": {"name": "E"}}}),
        encoding="utf-8",
    )
    payload = CatalogLoader(path).load().to_prompt_dict()
    assert list(payload["products"]) == ["open6", "earbuds"]
    assert payload["products"]["earbuds"] == {"name": "E", "price": 320, "link": "", "category": ""}
    assert payload["catalog_page"] == "https://oclaria.com/all"


def test_loaded_catalog_carries_logged_file_digest(caplog):
    with caplog.at_level(logging.INFO, logger="oclaria.catalog"):
        catalog = CatalogLoader(DEFAULT_CATALOG_PATH).load()
    digest = hashlib.sha256(DEFAULT_CATALOG_PATH.read_bytes()).hexdigest()
    assert catalog.sha256 == digest
    assert f"sha256={digest[:12]}" in caplog.text
    assert Catalog().sha256 is None
