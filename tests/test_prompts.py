import json

import pytest

from oclaria_assistant.catalog import Catalog, CatalogLoader
from oclaria_assistant.config import DEFAULT_CATALOG_PATH
from oclaria_assistant.models import ConversationMessage
from oclaria_assistant.prompts import PromptComposer


def _history(count):
    roles = ["user", "assistant"]
    return [ConversationMessage(role=roles[i % 2], content=f"m{i}") for i in range(count)]


def test_system_prompt_embeds_catalog_and_rules():
    catalog = CatalogLoader(DEFAULT_CATALOG_PATH).load()
    prompt = PromptComposer(catalog).system_prompt
    assert "Oclaria Assistant" in prompt
    assert "Moroccan Darija (Arabic script) / French / English" in prompt
    assert json.dumps(catalog.to_prompt_dict(), ensure_ascii=False, indent=2) in prompt
    assert "Never invent or alter prices" in prompt
    assert "Always follow FACTS messages strictly" in prompt
    assert "Casablanca 20 MAD, Marrakech free, other cities 35 MAD" in prompt
    assert "wall hooks ≥120 MAD" in prompt
    assert "can openers ≥150 MAD" in prompt
    assert "earbuds i121 always free everywhere" in prompt
    assert "https://oclaria.com/products" in prompt


def test_empty_catalog_still_builds_prompt():
    prompt = PromptComposer(Catalog()).system_prompt
    assert '"products": {}' in prompt
    assert "https://oclaria.com/products" in prompt


def test_compose_orders_system_facts_history():
    composer = PromptComposer(Catalog())
    messages = composer.compose(_history(3), "FACTS: something")
    assert [m.role for m in messages] == ["system", "system", "user", "assistant", "user"]
    assert messages[1].content == "FACTS: something"
    assert [m.content for m in messages[2:]] == ["m0", "m1", "m2"]


def test_compose_without_facts_keeps_last_six():
    composer = PromptComposer(Catalog())
    messages = composer.compose(_history(8))
    assert len(messages) == 7
    assert messages[0].role == "system"
    assert [m.content for m in messages[1:]] == ["m2", "m3", "m4", "m5", "m6", "m7"]


def test_compose_empty_history():
    messages = PromptComposer(Catalog()).compose([])
    assert len(messages) == 1


def test_template_missing_placeholder_fails_at_startup(tmp_path):
    template = tmp_path / "prompt.txt"
    template.write_text(
        "Fees {delivery_fees}. Free {free_delivery}. Page {catalog_page}.", encoding="utf-8"
    )
    with pytest.raises(ValueError, match="catalog_json"):
        PromptComposer(Catalog(), template_path=template)


def test_template_unknown_placeholder_fails_at_startup(tmp_path):
    template = tmp_path / "prompt.txt"
    template.write_text(
        "{catalog_json} {delivery_fees} {free_delivery} {catalog_page} {discount}", encoding="utf-8"
    )
    with pytest.raises(ValueError, match="discount"):
        PromptComposer(Catalog(), template_path=template)


def test_template_with_bom_renders(tmp_path):
    template = tmp_path / "prompt.txt"
    template.write_text(
        "\ufeffPage {catalog_page}\n{catalog_json}\n{delivery_fees}\n{free_delivery}", encoding="utf-8"
    )
    prompt = PromptComposer(Catalog(), template_path=template).system_prompt
    assert prompt.startswith("Page https://oclaria.com/products")
