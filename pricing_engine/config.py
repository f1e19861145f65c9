"""
Configuration for the Pricing & Settlement Engine

Holds the fixed business constants and the process configuration surface
(static exchange rate, Super-Agent pricing table, timeouts), read from
environment variables.
"""

import json
import os
from dataclasses import dataclass
from decimal import Decimal

from .errors import InvalidPricingConfiguration
from .models import AgentPricingTable, FixedPricingTable, PricingBand, UrgencyLevel, UrgencyRule

# Super Worker pay is fixed system-wide, independent of client-side pricing
SUPER_WORKER_RATE_PER_500_WORDS = Decimal("6.25")
WORD_UNIT = 500

# Used only for display when no other rate can be resolved; always flagged stale
DISPLAY_FALLBACK_GBP_TO_INR_RATE = Decimal("105.50")

# Substituted when an Agent has no custom table
DEFAULT_AGENT_PRICING = AgentPricingTable(
    agent_id="default",
    min_words=1,
    max_words=20000,
    base_rate_per_500_words=Decimal("6.25"),
    agent_fee_percentage=Decimal("15.0"),
    is_default=True,
)

# Fixed Super-Agent bands: 1-500 £45, 501-1000 £55, 1001-1500 £65, 1501-2000 £70,
# then +£15 for 2001-2500, +£15 for 2501-3000 and +£10 per 500 words up to 20000.
_BAND_PRICES = [45, 55, 65, 70, 85, 100] + list(range(110, 450, 10))

DEFAULT_SUPER_AGENT_TABLE = FixedPricingTable(
    bands=tuple(
        PricingBand(
            lower_words=i * 500 + 1,
            upper_words=(i + 1) * 500,
            price_gbp=Decimal(price),
        )
        for i, price in enumerate(_BAND_PRICES)
    )
)

# Deadline surcharges. The terminal rule matches every remaining gap.
DEFAULT_URGENCY_RULES = (
    UrgencyRule(max_days=1, urgency_level=UrgencyLevel.RUSH, surcharge_gbp=Decimal("30")),
    UrgencyRule(max_days=2, urgency_level=UrgencyLevel.URGENT, surcharge_gbp=Decimal("10")),
    UrgencyRule(max_days=6, urgency_level=UrgencyLevel.MODERATE, surcharge_gbp=Decimal("5")),
    UrgencyRule(max_days=None, urgency_level=UrgencyLevel.NORMAL, surcharge_gbp=Decimal("0")),
)


def _env_decimal(name: str) -> Decimal | None:
    raw = os.environ.get(name)
    if raw in (None, ""):
        return None
    try:
        value = Decimal(raw)
    except ArithmeticError:
        raise InvalidPricingConfiguration(f"{name} must be a number, got: {raw}") from None
    if not value.is_finite():
        raise InvalidPricingConfiguration(f"{name} must be a finite number, got: {raw}")
    return value


def load_pricing_table(path: str) -> FixedPricingTable:
    """Load a Super-Agent table from a JSON list of bands."""
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, list):
        raise InvalidPricingConfiguration(f"{path} must contain a list of bands")
    return FixedPricingTable.from_list(data)


@dataclass
class Settings:
    """Process configuration."""

    static_exchange_rate: Decimal | None = None
    super_agent_table: FixedPricingTable = DEFAULT_SUPER_AGENT_TABLE
    urgency_rules: tuple[UrgencyRule, ...] = DEFAULT_URGENCY_RULES
    exchange_rate_api_url: str | None = None
    rate_max_age_seconds: int = 3600
    external_timeout_seconds: float = 5.0
    store_lock_timeout_seconds: float = 5.0
    environment: str = "dev"

    @classmethod
    def from_env(cls) -> "Settings":
        table_path = os.environ.get("SUPER_AGENT_PRICING_TABLE_PATH")
        return cls(
            static_exchange_rate=_env_decimal("GBP_TO_INR_RATE"),
            super_agent_table=load_pricing_table(table_path) if table_path else DEFAULT_SUPER_AGENT_TABLE,
            exchange_rate_api_url=os.environ.get("EXCHANGE_RATE_API_URL") or None,
            rate_max_age_seconds=int(os.environ.get("EXCHANGE_RATE_MAX_AGE_SECONDS", 3600)),
            external_timeout_seconds=float(os.environ.get("EXTERNAL_TIMEOUT_SECONDS", 5)),
            store_lock_timeout_seconds=float(os.environ.get("STORE_LOCK_TIMEOUT_SECONDS", 5)),
            environment=os.environ.get("ENVIRONMENT", "dev"),
        )
