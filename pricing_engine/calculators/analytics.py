"""
Analytics Aggregator

Rolls settlement records up into per-role summaries for a time window.
Compensating records are summed like any other entry, so a refund lowers
the window it was recorded in.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable

from ..errors import FinancialAccessDenied, ValidationError
from ..models import (
    AnalyticsSummary,
    AnalyticsWindow,
    MonthlyTotals,
    Role,
    SettlementRecord,
    require_every_role,
    utc_now,
)

ANALYTICS_AVAILABLE = require_every_role(
    {
        Role.SUPER_AGENT: True,
        Role.AGENT: True,
        Role.SUPER_WORKER: True,
        Role.CLIENT: False,
        Role.WORKER: False,
    },
    "ANALYTICS_AVAILABLE",
)

WINDOW_KINDS = ("week", "month", "custom")


class AnalyticsAggregator:
    """Pure aggregation over ledger records."""

    def window(
        self,
        kind: str,
        now: datetime | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> AnalyticsWindow:
        """
        week:   current Sunday 00:00 to Saturday end of day
        month:  first to last day of the current month
        custom: [start, end], both inclusive
        """
        now = now or utc_now()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

        if kind == "week":
            days_since_sunday = (now.weekday() + 1) % 7
            week_start = midnight - timedelta(days=days_since_sunday)
            return AnalyticsWindow(kind, week_start, week_start + timedelta(days=7) - timedelta(microseconds=1))

        if kind == "month":
            month_start = midnight.replace(day=1)
            next_month = (month_start + timedelta(days=32)).replace(day=1)
            return AnalyticsWindow(kind, month_start, next_month - timedelta(microseconds=1))

        if kind == "custom":
            if start is None or end is None:
                raise ValidationError("custom window requires start and end")
            if start > end:
                raise ValidationError(f"window start {start.isoformat()} is after end {end.isoformat()}")
            return AnalyticsWindow(kind, start, end)

        raise ValidationError(f"Invalid window: {kind}. Must be one of {', '.join(WINDOW_KINDS)}")

    def aggregate(
        self,
        records: Iterable[SettlementRecord],
        user_id: str,
        role: Role,
        window: AnalyticsWindow,
    ) -> AnalyticsSummary:
        if not ANALYTICS_AVAILABLE[role]:
            raise FinancialAccessDenied(f"Analytics not available for role: {role.value}")

        summary = AnalyticsSummary(user_id=user_id, role=role, window=window)
        months: dict[str, MonthlyTotals] = {}

        for record in records:
            if record.payee_role is not role or record.payee_id != user_id:
                continue
            if not window.contains(record.computed_at):
                continue

            summary.total_revenue += record.earnings_gbp
            summary.total_fees_paid += record.fees_paid_gbp
            summary.total_profit += record.net_profit_gbp
            summary.total_earnings_inr += record.earnings_inr or Decimal("0")
            summary.record_count += 1

            key = record.computed_at.strftime("%Y-%m")
            bucket = months.setdefault(key, MonthlyTotals(month=key))
            bucket.revenue += record.earnings_gbp
            bucket.fees_paid += record.fees_paid_gbp
            bucket.profit += record.net_profit_gbp
            bucket.record_count += 1

        summary.monthly = [months[k] for k in sorted(months)]
        return summary
