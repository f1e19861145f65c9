"""
Pricing Calculator

Turns a word count, a deadline and the effective pricing table into an
immutable PriceBreakdown. All arithmetic uses Decimal; rounding happens
once, on the final total.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from ..config import WORD_UNIT
from ..errors import InvalidDeadline, OutOfRangeWordCount
from ..models import AgentPricingTable, FixedPricingTable, PriceBreakdown, PricingSource
from ..validators import InputValidator
from .urgency import UrgencyPolicy, days_between


def quantize_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half up."""
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def word_units(word_count: int) -> int:
    """Number of started 500-word units."""
    return -(-word_count // WORD_UNIT)


class PricingCalculator:
    """Computes quotes. Pure: same inputs, same breakdown."""

    def __init__(self, urgency_policy: UrgencyPolicy | None = None):
        self.validator = InputValidator()
        self.urgency_policy = urgency_policy or UrgencyPolicy()

    def calculate(
        self,
        word_count: int,
        deadline: datetime,
        requested_at: datetime,
        source: FixedPricingTable | AgentPricingTable,
        agent_id: str | None = None,
    ) -> PriceBreakdown:
        """
        Price a request.

        Fixed table:  base = price of the first band covering word_count
        Agent table:  base = units × rate, fee = base × fee% / 100
        Urgency:      rule chosen by ceil(days to deadline)
        Total:        base + fee + urgency, rounded to the penny
        """
        self.validator.validate_word_count(word_count)

        days = days_between(requested_at, deadline)
        if days <= 0:
            raise InvalidDeadline(f"deadline must be after the request date, got a gap of {days} days")

        if isinstance(source, AgentPricingTable):
            base_price, agent_fee = self._calculate_agent_price(word_count, source)
            pricing_source = PricingSource.AGENT
        else:
            base_price = self._calculate_band_price(word_count, source)
            agent_fee = Decimal("0")
            pricing_source = PricingSource.SUPER_AGENT

        rule = self.urgency_policy.select(days)
        urgency_charge = self.urgency_policy.charge(rule, base_price + agent_fee)

        return PriceBreakdown(
            word_count=word_count,
            pricing_source=pricing_source,
            base_price_gbp=base_price,
            agent_fee_gbp=agent_fee,
            urgency_charge_gbp=urgency_charge,
            total_price_gbp=quantize_money(base_price + agent_fee + urgency_charge),
            urgency_level=rule.urgency_level,
            days_until_deadline=days,
            agent_id=agent_id if pricing_source is PricingSource.AGENT else None,
            uses_default_agent_pricing=isinstance(source, AgentPricingTable) and source.is_default,
            pricing_table_version=source.version if isinstance(source, AgentPricingTable) else None,
        )

    def _calculate_band_price(self, word_count: int, table: FixedPricingTable) -> Decimal:
        """Round up to the first band that covers the word count."""
        for band in table.bands:
            if band.covers(word_count):
                return band.price_gbp

        raise OutOfRangeWordCount(
            f"word_count {word_count} exceeds the pricing table maximum of {table.max_words} words"
        )

    def _calculate_agent_price(self, word_count: int, table: AgentPricingTable) -> tuple[Decimal, Decimal]:
        if word_count < table.min_words or word_count > table.max_words:
            raise OutOfRangeWordCount(
                f"word_count must be between {table.min_words} and {table.max_words} for this agent, "
                f"got: {word_count}"
            )

        base_price = word_units(word_count) * table.base_rate_per_500_words
        agent_fee = base_price * table.agent_fee_percentage / Decimal("100")
        return base_price, agent_fee
