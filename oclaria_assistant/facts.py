"""Deterministic product-fact detection and rendering.

Detector:
    Scans the latest customer message for a product family (earbuds, hooks, openers)
    and an optional pack size, and resolves it against the pricing table.
Renderer:
    Turns the detected fact into a short FACTS statement injected as a system
    message; it overrides the completion model's own price or delivery guesses.

Only the first family in priority order is reported, even when a message names
several families.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from .models import ConversationMessage
from .pricing import FAMILIES, FAMILIES_BY_NAME, PRICING, PricingTable, ProductFamily
from .utils import normalize_message

logger = logging.getLogger("oclaria.facts")


@dataclass(frozen=True)
class ProductFact:
    """Pricing/delivery fact derived from one customer message."""
    family_type: str
    matched_key: Optional[str]
    price: Optional[int]
    qualifies: Optional[bool]
    threshold: int


def latest_user_text(messages: Iterable[ConversationMessage]) -> str:
    """Purpose: Return the content of the most recent user-authored message.
    Inputs/Outputs: Input is a chronological message list; output is text or "".
    Side Effects / State: None.
    Dependencies: None.
    Failure Modes: Returns an empty string when no user message exists.
    If Removed: Facts could be detected from assistant turns or stale user turns.
    Testing Notes: Put an assistant message last and check the prior user text wins.
    """
    for message in reversed(list(messages)):
        if message.role == "user":
            return message.content or ""
    return ""


def detect_product_fact(
    text: str,
    pricing: PricingTable = PRICING,
    families: Sequence[ProductFamily] = FAMILIES,
) -> Optional[ProductFact]:
    """Purpose: Map free-text customer input to at most one ProductFact.
    Inputs/Outputs: Input is raw message text; output is a ProductFact or None.
    Side Effects / State: None; pure function.
    Dependencies: Uses normalize_message and each ProductFamily matcher.
    Failure Modes: Returns None for empty text or text without family keywords.
    If Removed: Prices and free-delivery status are left to the model's guesses.
    Testing Notes: "crochet 50" -> hooks50/135/qualifies; "hooks 30" -> not qualifying;
        "écouteurs" -> earbuds with threshold 0.
    """
    # Walk families in priority order; the first keyword hit decides.
    normalized = normalize_message(text)
    if not normalized:
        return None
    for family in families:
        if not family.keywords.search(normalized):
            continue
        return _resolve_family(family, normalized, pricing)
    return None


def _resolve_family(family: ProductFamily, normalized: str, pricing: PricingTable) -> ProductFact:
    if family.always_free:
        return ProductFact(
            family_type=family.name,
            matched_key=family.key_prefix,
            price=pricing.family_price(family),
            qualifies=True,
            threshold=0,
        )
    match = family.quantity_pattern.search(normalized) if family.pack_sizes else None
    if match:
        key = family.pack_key(int(match.group(1)))
        price = pricing.price_for(key)
        if price is not None:
            return ProductFact(
                family_type=family.name,
                matched_key=key,
                price=price,
                qualifies=price >= family.threshold,
                threshold=family.threshold,
            )
        logger.warning("No price for detected pack %s; falling back to family rule", key)
    return ProductFact(
        family_type=family.name,
        matched_key=None,
        price=None,
        qualifies=None,
        threshold=family.threshold,
    )


def render_fact(fact: ProductFact, pricing: PricingTable = PRICING) -> Optional[str]:
    """Purpose: Render a ProductFact into an authoritative FACTS statement.
    Inputs/Outputs: Input is a ProductFact; output is the statement, or None for an
        unknown family.
    Side Effects / State: None; pure function.
    Dependencies: Uses FAMILIES_BY_NAME and the pricing table for example packs.
    Failure Modes: Never computes a price when fact.price is None; the generic
        statement only quotes the table's example pack.
    If Removed: Detected facts never reach the completion model.
    Testing Notes: Check each branch (always-free, qualifies, short, generic).
    """
    family = FAMILIES_BY_NAME.get(fact.family_type)
    if family is None:
        return None
    currency = pricing.currency
    if family.always_free:
        return (
            f"FACTS: {family.label} price is {fact.price} {currency} "
            "and delivery is always free (no threshold)."
        )
    if fact.price is not None:
        if fact.qualifies:
            note = f"This pack qualifies for free delivery (≥ {fact.threshold} {currency})."
        else:
            note = (
                f"This pack does not reach {fact.threshold} {currency}; "
                "customer must add items to qualify for free delivery."
            )
        return f"FACTS: {family.label} pack detected: price {fact.price} {currency}. {note}"

    statement = f"FACTS: {family.label} free delivery threshold is {fact.threshold} {currency}"
    example_price = pricing.example_price(family)
    if example_price is None:
        return f"{statement}."
    return f"{statement} (e.g., {family.example_pack} pcs = {example_price} {currency} qualifies)."
