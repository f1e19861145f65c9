"""
Input Validation for the Pricing & Settlement Engine

Validates quote requests and pricing configuration before any calculation.
Raises ValidationError subclasses with clear messages for any violation.
"""

import logging
from datetime import datetime

from .errors import InvalidDeadline, InvalidPricingConfiguration, InvalidWordCount
from .models import AgentPricingTable, FixedPricingTable, QuoteRequest, UrgencyRule

logger = logging.getLogger(__name__)

AGENT_MAX_WORDS_LIMIT = 20000


class InputValidator:
    """Validates engine input according to business rules."""

    def validate_quote(self, request: QuoteRequest, requested_at: datetime) -> None:
        """Run all quote validations. Raises ValidationError if any check fails."""
        self.validate_word_count(request.word_count)
        if request.deadline <= requested_at:
            raise InvalidDeadline(
                f"deadline must be after the request date, got: {request.deadline.isoformat()}"
            )

    def validate_word_count(self, word_count) -> None:
        # bool is an int subclass; True is not a word count
        if isinstance(word_count, bool) or not isinstance(word_count, int):
            raise InvalidWordCount(f"word_count must be an integer, got: {word_count!r}")
        if word_count <= 0:
            raise InvalidWordCount(f"word_count must be positive, got: {word_count}")

    def validate_fixed_table(self, table: FixedPricingTable) -> None:
        """
        Bands must start at 1, be contiguous and ascending, carry
        non-decreasing positive prices, and only the last may be unbounded.
        """
        if not table.bands:
            raise InvalidPricingConfiguration("Super-Agent pricing table has no bands")

        expected_lower = 1
        previous_price = None
        last_index = len(table.bands) - 1

        for i, band in enumerate(table.bands):
            if band.lower_words != expected_lower:
                raise InvalidPricingConfiguration(
                    f"Band {i} must start at {expected_lower} words, got: {band.lower_words}"
                )
            if band.upper_words is None:
                if i != last_index:
                    raise InvalidPricingConfiguration(f"Only the last band may be unbounded (band {i})")
            elif band.upper_words < band.lower_words:
                raise InvalidPricingConfiguration(
                    f"Band {i} upper bound {band.upper_words} is below its lower bound {band.lower_words}"
                )
            if not band.price_gbp.is_finite():
                raise InvalidPricingConfiguration(f"Band {i} price must be a finite number, got: {band.price_gbp}")
            if band.price_gbp <= 0:
                raise InvalidPricingConfiguration(f"Band {i} price must be positive, got: {band.price_gbp}")
            if previous_price is not None and band.price_gbp < previous_price:
                raise InvalidPricingConfiguration(
                    f"Band {i} price {band.price_gbp} is lower than the previous band's {previous_price}"
                )

            previous_price = band.price_gbp
            if band.upper_words is not None:
                expected_lower = band.upper_words + 1

    def validate_agent_table(self, table: AgentPricingTable) -> list[str]:
        """
        Validate an Agent's custom table. Returns warnings for unusual but
        allowed values; raises for invalid ones.
        """
        non_finite = [
            name
            for name, value in (
                ("Base rate", table.base_rate_per_500_words),
                ("Agent fee percentage", table.agent_fee_percentage),
            )
            if not value.is_finite()
        ]
        if non_finite:
            raise InvalidPricingConfiguration(
                f"Invalid pricing data: {', '.join(f'{name} must be a finite number' for name in non_finite)}"
            )

        errors = []

        if table.min_words < 1:
            errors.append("Minimum word count must be at least 1")
        if table.max_words > AGENT_MAX_WORDS_LIMIT:
            errors.append(f"Maximum word count cannot exceed {AGENT_MAX_WORDS_LIMIT:,}")
        if table.min_words >= table.max_words:
            errors.append("Minimum word count must be less than maximum word count")
        if table.base_rate_per_500_words <= 0:
            errors.append("Base rate must be positive")
        if not (0 <= table.agent_fee_percentage <= 100):
            errors.append("Agent fee percentage must be between 0 and 100")

        if errors:
            raise InvalidPricingConfiguration(f"Invalid pricing data: {', '.join(errors)}")

        warnings = []
        if table.base_rate_per_500_words < 5:
            warnings.append("Base rate is unusually low (below £5.00 per 500 words)")
        if table.base_rate_per_500_words > 15:
            warnings.append("Base rate is unusually high (above £15.00 per 500 words)")
        if table.agent_fee_percentage > 25:
            warnings.append("Agent fee percentage is unusually high (above 25%)")

        for warning in warnings:
            logger.warning(f"Agent {table.agent_id} pricing: {warning}")
        return warnings

    def validate_urgency_rules(self, rules: tuple[UrgencyRule, ...]) -> None:
        """Rules must be ascending by max_days and end with one unbounded rule."""
        if not rules or rules[-1].max_days is not None:
            raise InvalidPricingConfiguration("Urgency rules must end with an unbounded rule")

        previous = 0
        for i, rule in enumerate(rules):
            if (rule.surcharge_gbp is None) == (rule.surcharge_percent is None):
                raise InvalidPricingConfiguration(
                    f"Urgency rule {i} must set exactly one of surcharge_gbp or surcharge_percent"
                )
            amount = rule.surcharge_gbp if rule.surcharge_gbp is not None else rule.surcharge_percent
            if not amount.is_finite():
                raise InvalidPricingConfiguration(f"Urgency rule {i} surcharge must be a finite number")
            if amount < 0:
                raise InvalidPricingConfiguration(f"Urgency rule {i} surcharge cannot be negative")
            if rule.max_days is None:
                if i != len(rules) - 1:
                    raise InvalidPricingConfiguration(f"Only the last urgency rule may be unbounded (rule {i})")
                continue
            if rule.max_days <= previous:
                raise InvalidPricingConfiguration(
                    f"Urgency rule {i} max_days must be greater than {previous}, got: {rule.max_days}"
                )
            previous = rule.max_days
