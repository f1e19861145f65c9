"""
Output Builder

Turns engine results into API response dictionaries. Amounts are reported
as floats with 2 decimal places, each with a human-readable description.
"""

from decimal import Decimal

from .models import (
    AgentPricingHistoryEntry,
    AgentPricingTable,
    AnalyticsSummary,
    Assignment,
    ExchangeRateSnapshot,
    PriceBreakdown,
    PricingSource,
    QuoteChange,
    SettlementRecord,
    SettlementResult,
    UrgencyLevel,
)
from .workflow import allowed_next


def to_money(value: Decimal) -> float:
    """Convert Decimal to float with 2 decimal places."""
    return round(float(value), 2)


def _fmt(value) -> str:
    """Format a number as a GBP string for descriptions."""
    return f"£{value:,.2f}"


def _fmt_inr(value) -> str:
    return f"₹{value:,.2f}"


class OutputBuilder:
    """Builds API responses."""

    def format_breakdown(self, breakdown: PriceBreakdown) -> str:
        """e.g. '£55.00 + £30.00 (rush) = £85.00'"""
        parts = [_fmt(to_money(breakdown.base_price_gbp))]
        if breakdown.agent_fee_gbp:
            parts.append(f"{_fmt(to_money(breakdown.agent_fee_gbp))} (agent fee)")
        if breakdown.urgency_charge_gbp:
            parts.append(f"{_fmt(to_money(breakdown.urgency_charge_gbp))} ({breakdown.urgency_level.value})")

        total = _fmt(to_money(breakdown.total_price_gbp))
        if len(parts) == 1:
            return total
        return f"{' + '.join(parts)} = {total}"

    def build_quote(
        self,
        breakdown: PriceBreakdown,
        total_inr: Decimal | None = None,
        rate: ExchangeRateSnapshot | None = None,
    ) -> dict:
        """Quote summary plus a value/description entry per amount."""
        base = to_money(breakdown.base_price_gbp)
        fee = to_money(breakdown.agent_fee_gbp)
        urgency = to_money(breakdown.urgency_charge_gbp)
        total = to_money(breakdown.total_price_gbp)

        if breakdown.pricing_source is PricingSource.AGENT:
            table_desc = "default agent pricing" if breakdown.uses_default_agent_pricing else f"agent {breakdown.agent_id} pricing"
            base_desc = f"{table_desc}: {breakdown.word_count} words rounded up to 500-word units"
            fee_desc = f"Agent fee on base price of {_fmt(base)}"
        else:
            base_desc = f"Fixed band price for {breakdown.word_count} words"
            fee_desc = "No agent fee for direct clients"

        if breakdown.urgency_level is UrgencyLevel.NORMAL:
            urgency_desc = f"No surcharge, deadline in {breakdown.days_until_deadline} days"
        else:
            urgency_desc = (
                f"{breakdown.urgency_level.value.capitalize()} surcharge, "
                f"deadline in {breakdown.days_until_deadline} days"
            )

        output = {
            "quote_summary": {
                "word_count": breakdown.word_count,
                "pricing_source": breakdown.pricing_source.value,
                "agent_id": breakdown.agent_id,
                "uses_default_agent_pricing": breakdown.uses_default_agent_pricing,
                "pricing_table_version": breakdown.pricing_table_version,
                "urgency_level": breakdown.urgency_level.value,
                "days_until_deadline": breakdown.days_until_deadline,
            },
            "calculations": {
                "base_price": {"value": base, "description": base_desc},
                "agent_fee": {"value": fee, "description": fee_desc},
                "urgency_charge": {"value": urgency, "description": urgency_desc},
                "total_price": {
                    "value": total,
                    "description": f"Total rounded to the penny: {_fmt(total)}",
                },
            },
            "formatted_breakdown": self.format_breakdown(breakdown),
        }

        if total_inr is not None and rate is not None:
            description = f"{_fmt(total)} × {rate.rate} = {_fmt_inr(to_money(total_inr))}"
            if rate.is_stale:
                description += " (stale rate, display only)"
            output["calculations"]["total_price_inr"] = {
                "value": to_money(total_inr),
                "description": description,
                "exchange_rate": rate.to_dict(),
            }

        return output

    def build_assignment(self, assignment: Assignment, super_worker_payment: Decimal) -> dict:
        breakdown = assignment.breakdown
        return {
            "assignment_id": assignment.assignment_id,
            "status": assignment.status.value,
            "allowed_next_statuses": allowed_next(assignment.status),
            "version": assignment.version,
            "word_count": assignment.word_count,
            "deadline": assignment.deadline.isoformat(),
            "requested_at": assignment.requested_at.isoformat(),
            "chain": assignment.chain.to_dict(),
            "quote": self.build_quote(breakdown),
            "super_worker_payment": {
                "value": to_money(super_worker_payment),
                "description": f"Super worker pay for {breakdown.word_count} words at £6.25 per 500 words",
            },
            "pending_change": self.build_quote_change(assignment.pending_change) if assignment.pending_change else None,
        }

    def build_quote_change(self, change: QuoteChange) -> dict:
        return {
            "change_type": change.change_type.value,
            "word_count": change.word_count,
            "deadline": change.deadline.isoformat(),
            "priced_at": change.priced_at.isoformat(),
            "requested_by": change.requested_by.value,
            "quote": self.build_quote(change.breakdown),
        }

    def build_record(self, record: SettlementRecord) -> dict:
        return {
            "record_id": record.record_id,
            "batch_id": record.batch_id,
            "assignment_id": record.assignment_id,
            "entry_type": record.entry_type.value,
            "payee_role": record.payee_role.value,
            "payee_id": record.payee_id,
            "earnings_gbp": to_money(record.earnings_gbp),
            "fees_paid_gbp": to_money(record.fees_paid_gbp),
            "net_profit_gbp": to_money(record.net_profit_gbp),
            "earnings_inr": to_money(record.earnings_inr) if record.earnings_inr is not None else None,
            "exchange_rate": record.exchange_rate.to_dict() if record.exchange_rate else None,
            "computed_at": record.computed_at.isoformat(),
            "breakdown_word_count": record.breakdown_word_count,
            "reverses_record_id": record.reverses_record_id,
        }

    def build_settlement(
        self,
        result: SettlementResult,
        records: list[SettlementRecord] | None = None,
        compensations: list[SettlementRecord] | None = None,
    ) -> dict:
        """records/compensations default to the full result; pass filtered lists to narrow them."""
        records = result.records if records is None else records
        compensations = result.compensations if compensations is None else compensations
        return {
            "assignment_id": result.assignment_id,
            "batch_id": result.batch_id,
            "already_settled": result.already_settled,
            "records": [self.build_record(r) for r in records],
            "compensations": [self.build_record(r) for r in compensations],
        }

    def build_analytics(self, summary: AnalyticsSummary) -> dict:
        return {
            "user_id": summary.user_id,
            "role": summary.role.value,
            "window": {
                "kind": summary.window.kind,
                "start": summary.window.start.isoformat(),
                "end": summary.window.end.isoformat(),
            },
            "total_revenue": to_money(summary.total_revenue),
            "total_fees_paid": to_money(summary.total_fees_paid),
            "total_profit": to_money(summary.total_profit),
            "total_earnings_inr": to_money(summary.total_earnings_inr),
            "record_count": summary.record_count,
            "monthly": [
                {
                    "month": m.month,
                    "revenue": to_money(m.revenue),
                    "fees_paid": to_money(m.fees_paid),
                    "profit": to_money(m.profit),
                    "record_count": m.record_count,
                }
                for m in summary.monthly
            ],
        }

    def build_agent_pricing(
        self,
        table: AgentPricingTable,
        warnings: list[str],
        entry: AgentPricingHistoryEntry | None = None,
    ) -> dict:
        output = {
            "agent_id": table.agent_id,
            "version": table.version,
            "min_words": table.min_words,
            "max_words": table.max_words,
            "base_rate_per_500_words": to_money(table.base_rate_per_500_words),
            "agent_fee_percentage": float(table.agent_fee_percentage),
            "warnings": warnings,
        }
        if entry is not None:
            output["change_type"] = entry.change_type
            output["changed_at"] = entry.changed_at.isoformat()
            output["reason"] = entry.reason
        return output

    def build_pricing_history(
        self,
        agent_id: str,
        entries: list[AgentPricingHistoryEntry],
        total: int,
        limit: int | None,
        offset: int,
    ) -> dict:
        """Newest version first."""
        return {
            "agent_id": agent_id,
            "total": total,
            "limit": limit,
            "offset": offset,
            "history": [
                {
                    "version": entry.version,
                    "change_type": entry.change_type,
                    "changed_at": entry.changed_at.isoformat(),
                    "changed_by": entry.changed_by,
                    "reason": entry.reason,
                    "min_words": entry.table.min_words,
                    "max_words": entry.table.max_words,
                    "base_rate_per_500_words": to_money(entry.table.base_rate_per_500_words),
                    "agent_fee_percentage": float(entry.table.agent_fee_percentage),
                }
                for entry in entries
            ],
        }
