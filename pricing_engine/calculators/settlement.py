"""
Settlement Engine

Decomposes an assignment's frozen price into per-party ledger entries.

    Super Worker   earns  ceil(words / 500) × £6.25       (always, INR too)
    Agent          earns  the frozen agent fee             (agent-routed only)
    Super Agent    keeps  total - super worker - agent fee

The three net amounts must add back to the frozen total to the penny.
"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from ..config import SUPER_WORKER_RATE_PER_500_WORDS
from ..errors import SettlementConsistencyError, UnassignedHierarchyError, ValidationError
from ..models import (
    Assignment,
    AssignmentStatus,
    EntryType,
    HierarchyChain,
    PricingSource,
    Role,
    SettlementRecord,
    require_every_role,
    utc_now,
)
from .currency import CurrencyConverter
from .pricing import quantize_money, word_units

logger = logging.getLogger(__name__)

PAYABLE_STATUSES = frozenset({AssignmentStatus.COMPLETED})
REVERSAL_STATUSES = frozenset({AssignmentStatus.REFUND, AssignmentStatus.CANCELLED})

# Which chain member is paid for each role; None = never a ledger payee
PAYEE_OF_ROLE = require_every_role(
    {
        Role.SUPER_WORKER: lambda chain: chain.super_worker_id,
        Role.AGENT: lambda chain: chain.agent_id,
        Role.SUPER_AGENT: lambda chain: chain.super_agent_id,
        Role.CLIENT: None,
        Role.WORKER: None,
    },
    "PAYEE_OF_ROLE",
)

SETTLEMENT_ORDER = (Role.SUPER_WORKER, Role.AGENT, Role.SUPER_AGENT)


class SettlementEngine:
    """Builds settlement and compensation records. Never writes them."""

    def __init__(self, converter: CurrencyConverter):
        self.converter = converter

    @staticmethod
    def super_worker_earnings(word_count: int) -> Decimal:
        return word_units(word_count) * SUPER_WORKER_RATE_PER_500_WORDS

    def settle(
        self,
        assignment: Assignment,
        now: datetime | None = None,
        explicit_rate: Decimal | None = None,
    ) -> list[SettlementRecord]:
        """
        Compute one record per paid party.

        Raises SettlementConsistencyError (fatal, nothing to write) if the
        frozen breakdown and chain do not reconcile.
        """
        if assignment.status not in PAYABLE_STATUSES:
            raise ValidationError(
                f"Assignment {assignment.assignment_id} is {assignment.status.value}, not payable"
            )

        chain = assignment.chain
        if not chain.has_super_worker:
            raise UnassignedHierarchyError(
                f"Assignment {assignment.assignment_id} has no super worker to settle against"
            )

        now = now or utc_now()
        self._check_breakdown(assignment)

        breakdown = assignment.breakdown
        total = breakdown.total_price_gbp
        super_worker = self.super_worker_earnings(assignment.word_count)
        agent_fee = quantize_money(breakdown.agent_fee_gbp) if chain.routes_through_agent else Decimal("0")
        super_agent_net = total - super_worker - agent_fee

        if super_agent_net < 0:
            logger.warning(
                f"Assignment {assignment.assignment_id}: super agent net profit is negative ({super_agent_net})"
            )

        earnings_inr, rate_snapshot = self.converter.convert(super_worker, now, explicit_rate)
        batch_id = uuid.uuid4().hex

        amounts = {
            Role.SUPER_WORKER: dict(
                earnings_gbp=super_worker,
                fees_paid_gbp=Decimal("0"),
                net_profit_gbp=super_worker,
                earnings_inr=earnings_inr,
                exchange_rate=rate_snapshot,
            ),
            Role.AGENT: dict(
                earnings_gbp=total,
                fees_paid_gbp=total - agent_fee,
                net_profit_gbp=agent_fee,
            ),
            Role.SUPER_AGENT: dict(
                earnings_gbp=total,
                fees_paid_gbp=super_worker + agent_fee,
                net_profit_gbp=super_agent_net,
            ),
        }

        records = []
        for role in SETTLEMENT_ORDER:
            payee_id = PAYEE_OF_ROLE[role](chain)
            if payee_id is None:
                continue
            records.append(
                SettlementRecord(
                    record_id=uuid.uuid4().hex,
                    batch_id=batch_id,
                    assignment_id=assignment.assignment_id,
                    payee_role=role,
                    payee_id=payee_id,
                    computed_at=now,
                    breakdown_word_count=breakdown.word_count,
                    breakdown_fingerprint=breakdown.fingerprint,
                    **amounts[role],
                )
            )

        self._check_conservation(assignment.assignment_id, records, total)
        return records

    def compensate(self, records: list[SettlementRecord], now: datetime | None = None) -> list[SettlementRecord]:
        """Negated copies of records, dated now, in one new batch."""
        now = now or utc_now()
        batch_id = uuid.uuid4().hex
        return [
            replace(
                record,
                record_id=uuid.uuid4().hex,
                batch_id=batch_id,
                earnings_gbp=-record.earnings_gbp,
                fees_paid_gbp=-record.fees_paid_gbp,
                net_profit_gbp=-record.net_profit_gbp,
                earnings_inr=-record.earnings_inr if record.earnings_inr is not None else None,
                computed_at=now,
                entry_type=EntryType.COMPENSATION,
                reverses_record_id=record.record_id,
            )
            for record in records
        ]

    def _check_breakdown(self, assignment: Assignment) -> None:
        """The frozen breakdown must agree with itself and with the chain."""
        breakdown = assignment.breakdown
        chain: HierarchyChain = assignment.chain
        problems = []

        if breakdown.word_count != assignment.word_count:
            problems.append(
                f"breakdown priced {breakdown.word_count} words, assignment has {assignment.word_count}"
            )

        components = breakdown.base_price_gbp + breakdown.agent_fee_gbp + breakdown.urgency_charge_gbp
        if quantize_money(components) != breakdown.total_price_gbp:
            problems.append(f"components sum to {components}, total is {breakdown.total_price_gbp}")

        agent_priced = breakdown.pricing_source is PricingSource.AGENT
        if agent_priced != chain.routes_through_agent:
            problems.append(
                f"breakdown priced by {breakdown.pricing_source.value} table but chain agent is {chain.agent_id}"
            )
        elif agent_priced and breakdown.agent_id != chain.agent_id:
            problems.append(f"breakdown agent {breakdown.agent_id} differs from chain agent {chain.agent_id}")

        if not chain.routes_through_agent and breakdown.agent_fee_gbp != 0:
            problems.append(f"agent fee {breakdown.agent_fee_gbp} on a chain without an agent")

        if problems:
            self._fail(assignment.assignment_id, "; ".join(problems))

    def _check_conservation(self, assignment_id: str, records: list[SettlementRecord], total: Decimal) -> None:
        distributed = sum((r.net_profit_gbp for r in records), Decimal("0"))
        if distributed != total:
            self._fail(assignment_id, f"net amounts sum to {distributed}, frozen total is {total}")

    @staticmethod
    def _fail(assignment_id: str, message: str) -> None:
        logger.error(f"SETTLEMENT AUDIT: assignment {assignment_id}: {message}")
        raise SettlementConsistencyError(assignment_id, message)
