from __future__ import annotations

import json
from pathlib import Path
from string import Formatter
from typing import List, Optional, Sequence

from .catalog import Catalog
from .models import ConversationMessage
from .pricing import FAMILIES, PRICING, PricingTable, ProductFamily

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
SYSTEM_PROMPT_PATH = TEMPLATES_DIR / "system_prompt.txt"
PROMPT_FIELDS = frozenset({"catalog_json", "delivery_fees", "free_delivery", "catalog_page"})


class PromptComposer:
    """Builds the ordered message list sent to the completion model."""

    def __init__(
        self,
        catalog: Catalog,
        pricing: PricingTable = PRICING,
        families: Sequence[ProductFamily] = FAMILIES,
        history_window: int = 6,
        template_path: Path = SYSTEM_PROMPT_PATH,
    ) -> None:
        """Purpose: Render the persona/catalog system prompt once for the process.
        Inputs/Outputs: Inputs are the catalog, pricing table, families, window size,
            and template path; no return value.
        Side Effects / State: Reads the template file once and caches the rendered prompt.
        Dependencies: Uses load_template, Catalog.to_prompt_dict, and the pricing table.
        Failure Modes: A missing template raises FileNotFoundError and a template with
            missing or unknown placeholders raises ValueError, both at startup.
        If Removed: Requests have no persona, catalog, or pricing rules.
        Testing Notes: Check the rendered prompt embeds catalog JSON and thresholds.
        """
        self._history_window = history_window
        template = load_template(template_path)
        self._system_prompt = template.format(
            catalog_json=json.dumps(catalog.to_prompt_dict(), ensure_ascii=False, indent=2),
            delivery_fees=describe_delivery_fees(pricing),
            free_delivery=describe_free_delivery(families, pricing),
            catalog_page=catalog.page_url(),
        ).strip()

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    def compose(
        self, history: Sequence[ConversationMessage], facts: Optional[str] = None
    ) -> List[ConversationMessage]:
        """Purpose: Assemble system prompt, optional facts, and trimmed history.
        Inputs/Outputs: Inputs are chronological history (system turns already removed)
            and an optional FACTS statement; output is the message list.
        Side Effects / State: None; performs no I/O.
        Dependencies: Uses the cached system prompt and history_window.
        Failure Modes: None; empty history yields only system messages.
        If Removed: The completion client has nothing to send.
        Testing Notes: Verify ordering and that only the last history_window turns remain.
        """
        messages = [ConversationMessage(role="system", content=self._system_prompt)]
        if facts:
            messages.append(ConversationMessage(role="system", content=facts))
        if self._history_window > 0:
            messages.extend(list(history)[-self._history_window:])
        return messages


def describe_delivery_fees(pricing: PricingTable) -> str:
    parts = []
    for city, fee in pricing.delivery_fees.items():
        amount = "free" if fee == 0 else f"{fee} {pricing.currency}"
        parts.append(f"{city.title()} {amount}")
    parts.append(f"other cities {pricing.default_delivery_fee} {pricing.currency}")
    return ", ".join(parts)


def describe_free_delivery(families: Sequence[ProductFamily], pricing: PricingTable) -> str:
    parts = []
    for family in families:
        if family.always_free:
            parts.append(f"{family.label.lower()} always free everywhere")
        else:
            parts.append(f"{family.label.lower()} ≥{family.threshold} {pricing.currency}")
    return ", ".join(parts)


def load_template(path: Path) -> str:
    """Purpose: Read the system prompt template and check its placeholders.
    Inputs/Outputs: Input is the template path; output is the template text.
    Side Effects / State: Reads the file once.
    Dependencies: Uses string.Formatter to list the template's fields.
    Failure Modes: FileNotFoundError for a missing file; ValueError when a placeholder
        in PROMPT_FIELDS is absent or an unknown one is present.
    If Removed: A template edit that drops {catalog_json} ships a prompt without prices.
    Testing Notes: Write a template lacking {catalog_json} and expect ValueError.
    """
    template = path.read_text(encoding="utf-8-sig")
    fields = {name for _, name, _, _ in Formatter().parse(template) if name is not None}
    missing = PROMPT_FIELDS - fields
    unknown = fields - PROMPT_FIELDS
    if missing or unknown:
        raise ValueError(
            f"Prompt template {path.name} placeholders mismatch: "
            f"missing={sorted(missing)} unknown={sorted(unknown)}"
        )
    return template
