"""
Urgency Policy

Maps the gap between request and deadline to a surcharge and a label.
Charge and label always come from the same rule.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from ..config import DEFAULT_URGENCY_RULES
from ..models import UrgencyRule
from ..validators import InputValidator

ONE_DAY = timedelta(days=1)


def days_between(requested_at: datetime, deadline: datetime) -> int:
    """Whole days from request to deadline, rounded up."""
    return -((requested_at - deadline) // ONE_DAY)


class UrgencyPolicy:
    """A single rule table applied to every pricing source."""

    def __init__(self, rules: tuple[UrgencyRule, ...] = DEFAULT_URGENCY_RULES):
        InputValidator().validate_urgency_rules(rules)
        self.rules = rules

    def select(self, days: int) -> UrgencyRule:
        """The rule with the smallest max_days that is >= days."""
        for rule in self.rules:
            if rule.max_days is None or days <= rule.max_days:
                return rule
        # validated: the last rule is unbounded
        raise AssertionError("urgency rules have no terminal rule")

    def charge(self, rule: UrgencyRule, pre_urgency_amount: Decimal) -> Decimal:
        """
        Flat rules add a fixed GBP amount. Percentage rules apply to
        base + agent fee only, never to other surcharges.
        """
        if rule.surcharge_gbp is not None:
            return rule.surcharge_gbp
        return pre_urgency_amount * rule.surcharge_percent / Decimal("100")
