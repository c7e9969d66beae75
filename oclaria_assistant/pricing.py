"""Compiled-in pricing and delivery rules for the Oclaria product families.

This table is the only source of prices. The catalog document supplies display
data (names, links, categories) and takes its prices from here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Pattern, Tuple

CURRENCY = "MAD"


@dataclass(frozen=True)
class ProductFamily:
    """Product family recognized in customer messages, with its matcher and pricing rule."""
    name: str
    label: str
    keywords: Pattern[str]
    key_prefix: str
    pack_sizes: Tuple[int, ...] = ()
    threshold: int = 0
    example_pack: Optional[int] = None
    always_free: bool = False
    quantity_pattern: Optional[Pattern[str]] = field(init=False, repr=False, compare=False, default=None)

    def __post_init__(self) -> None:
        if not self.pack_sizes:
            return
        # Keyword followed by a standalone pack size, e.g. "crochet ... 50".
        sizes = "|".join(str(size) for size in sorted(self.pack_sizes, reverse=True))
        pattern = re.compile(
            rf"(?:{self.keywords.pattern}).*?(?<!\d)({sizes})(?!\d)",
            re.IGNORECASE | re.DOTALL,
        )
        object.__setattr__(self, "quantity_pattern", pattern)

    def pack_key(self, size: int) -> str:
        """Purpose: Build the pricing key for a pack size of this family.
        Inputs/Outputs: Input is a pack size; output is a key such as "hooks50".
        Side Effects / State: None.
        Dependencies: Uses key_prefix.
        Failure Modes: None; unknown sizes still produce a key that may not be priced.
        If Removed: Quantity-qualified facts cannot be resolved to prices.
        Testing Notes: Verify hooks + 50 gives "hooks50" and openers + 24 gives "open24".
        """
        return f"{self.key_prefix}{size}"


HOOKS = ProductFamily(
    name="hooks",
    label="Wall hooks",
    keywords=re.compile(r"hook|crochet|كروشي", re.IGNORECASE),
    key_prefix="hooks",
    pack_sizes=(30, 40, 50, 60),
    threshold=120,
    example_pack=50,
)
OPENERS = ProductFamily(
    name="openers",
    label="Can openers",
    keywords=re.compile(r"openers?|ouvre|فتاحات", re.IGNORECASE),
    key_prefix="open",
    pack_sizes=(6, 12, 24, 48),
    threshold=150,
    example_pack=48,
)
EARBUDS = ProductFamily(
    name="earbuds",
    label="Earbuds i121",
    keywords=re.compile(r"earbud|i121|écouteur|ecouteur|سماعات|m91", re.IGNORECASE),
    key_prefix="earbuds",
    always_free=True,
)

# Detection priority: the first family that matches wins.
FAMILIES: Tuple[ProductFamily, ...] = (EARBUDS, HOOKS, OPENERS)
FAMILIES_BY_NAME: Dict[str, ProductFamily] = {family.name: family for family in FAMILIES}


@dataclass(frozen=True)
class PricingTable:
    """Fixed prices per SKU variant plus delivery fees and free-delivery thresholds."""
    prices: Dict[str, int] = field(default_factory=dict)
    delivery_fees: Dict[str, int] = field(default_factory=dict)
    default_delivery_fee: int = 35
    currency: str = CURRENCY

    def price_for(self, key: Optional[str]) -> Optional[int]:
        """Purpose: Look up the fixed price of a SKU variant.
        Inputs/Outputs: Input is a pricing key; output is the price or None.
        Side Effects / State: None.
        Dependencies: Reads the prices mapping.
        Failure Modes: Unknown or empty keys return None.
        If Removed: Facts and catalog display cannot resolve prices.
        Testing Notes: Check "hooks50" -> 135 and "unknown" -> None.
        """
        if not key:
            return None
        return self.prices.get(key)

    def family_price(self, family: ProductFamily) -> Optional[int]:
        # Earbuds are sold as a single item keyed by the family prefix.
        return self.price_for(family.key_prefix)

    def example_price(self, family: ProductFamily) -> Optional[int]:
        if family.example_pack is None:
            return None
        return self.price_for(family.pack_key(family.example_pack))


PRICING = PricingTable(
    prices={
        "hooks30": 80,
        "hooks40": 110,
        "hooks50": 135,
        "hooks60": 150,
        "open6": 40,
        "open12": 70,
        "open24": 135,
        "open48": 250,
        "earbuds": 320,
    },
    delivery_fees={"casablanca": 20, "marrakech": 0},
    default_delivery_fee=35,
)
