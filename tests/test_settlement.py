"""
Unit Tests for Settlement Engine

Every settlement must add back to the frozen total to the penny.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pricing_engine.calculators.currency import CurrencyConverter
from pricing_engine.calculators.pricing import PricingCalculator
from pricing_engine.calculators.settlement import SettlementEngine
from pricing_engine.config import DEFAULT_AGENT_PRICING, DEFAULT_SUPER_AGENT_TABLE
from pricing_engine.errors import (
    RateUnavailableError,
    SettlementConsistencyError,
    UnassignedHierarchyError,
    ValidationError,
)
from pricing_engine.models import (
    AgentPricingTable,
    Assignment,
    AssignmentStatus,
    EntryType,
    HierarchyChain,
    RateSource,
    Role,
)

REQUESTED_AT = datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc)
DEADLINE = REQUESTED_AT + timedelta(days=10)
NOW = datetime(2025, 6, 12, 9, 0, tzinfo=timezone.utc)

DIRECT_CHAIN = HierarchyChain(client_id="client-1", super_agent_id="sa-1", super_worker_id="sw-1", worker_id="w-1")
AGENT_CHAIN = replace(DIRECT_CHAIN, agent_id="agent-1")


def make_assignment(word_count, chain, source=DEFAULT_SUPER_AGENT_TABLE, deadline=DEADLINE) -> Assignment:
    breakdown = PricingCalculator().calculate(word_count, deadline, REQUESTED_AT, source, chain.agent_id)
    return Assignment(
        assignment_id="a-1",
        client_id=chain.client_id,
        word_count=word_count,
        deadline=deadline,
        requested_at=REQUESTED_AT,
        breakdown=breakdown,
        chain=chain,
        status=AssignmentStatus.COMPLETED,
    )


def by_role(records):
    return {r.payee_role: r for r in records}


@pytest.fixture
def engine():
    return SettlementEngine(CurrencyConverter(static_rate=Decimal("105")))


class TestSuperWorkerEarnings:

    @pytest.mark.parametrize("words,expected", [
        (1, "6.25"),
        (500, "6.25"),
        (501, "12.50"),
        (750, "12.50"),
        (20000, "250.00"),
    ])
    def test_rate_per_500_words(self, words, expected):
        assert SettlementEngine.super_worker_earnings(words) == Decimal(expected)


class TestDirectClientSettlement:
    """Client -> Super Agent. No agent record."""

    def test_records(self, engine):
        records = engine.settle(make_assignment(750, DIRECT_CHAIN), NOW)
        roles = by_role(records)

        assert set(roles) == {Role.SUPER_WORKER, Role.SUPER_AGENT}
        assert roles[Role.SUPER_WORKER].net_profit_gbp == Decimal("12.50")
        assert roles[Role.SUPER_AGENT].earnings_gbp == Decimal("55.00")
        assert roles[Role.SUPER_AGENT].fees_paid_gbp == Decimal("12.50")
        assert roles[Role.SUPER_AGENT].net_profit_gbp == Decimal("42.50")

    def test_super_worker_paid_in_inr(self, engine):
        """750 words -> £12.50 -> ₹1312.50 at 105"""
        worker = by_role(engine.settle(make_assignment(750, DIRECT_CHAIN), NOW))[Role.SUPER_WORKER]

        assert worker.earnings_inr == Decimal("1312.50")
        assert worker.exchange_rate.rate == Decimal("105")
        assert worker.exchange_rate.source is RateSource.CONFIGURED

    def test_one_batch(self, engine):
        records = engine.settle(make_assignment(750, DIRECT_CHAIN), NOW)
        assert len({r.batch_id for r in records}) == 1
        assert len({r.record_id for r in records}) == len(records)
        assert all(r.computed_at == NOW for r in records)
        assert all(r.breakdown_word_count == 750 for r in records)


class TestAgentRoutedSettlement:
    """Client -> Agent -> Super Agent."""

    def test_1000_word_example(self, engine):
        """£14.38 = £12.50 super worker + £1.88 agent + £0.00 super agent"""
        assignment = make_assignment(1000, AGENT_CHAIN, DEFAULT_AGENT_PRICING)
        roles = by_role(engine.settle(assignment, NOW))

        assert roles[Role.SUPER_WORKER].net_profit_gbp == Decimal("12.50")
        assert roles[Role.AGENT].net_profit_gbp == Decimal("1.88")
        assert roles[Role.SUPER_AGENT].net_profit_gbp == Decimal("0.00")

    def test_agent_record_shape(self, engine):
        assignment = make_assignment(1000, AGENT_CHAIN, DEFAULT_AGENT_PRICING)
        agent = by_role(engine.settle(assignment, NOW))[Role.AGENT]

        assert agent.payee_id == "agent-1"
        assert agent.earnings_gbp == Decimal("14.38")
        assert agent.fees_paid_gbp == Decimal("12.50")
        assert agent.earnings_inr is None

    def test_super_agent_net_may_be_negative(self, engine, caplog):
        cheap = AgentPricingTable("agent-1", 1, 20000, Decimal("1"), Decimal("0"))
        assignment = make_assignment(1000, AGENT_CHAIN, cheap)

        roles = by_role(engine.settle(assignment, NOW))

        assert roles[Role.SUPER_AGENT].net_profit_gbp == Decimal("-10.50")
        assert "negative" in caplog.text

    @pytest.mark.parametrize("words", [1, 499, 500, 501, 999, 1000, 1001, 7777, 20000])
    def test_conservation(self, engine, words):
        table = AgentPricingTable("agent-1", 1, 20000, Decimal("7.33"), Decimal("12.5"))
        for assignment in (
            make_assignment(words, AGENT_CHAIN, table, deadline=REQUESTED_AT + timedelta(days=1)),
            make_assignment(words, DIRECT_CHAIN),
        ):
            records = engine.settle(assignment, NOW)
            assert sum(r.net_profit_gbp for r in records) == assignment.breakdown.total_price_gbp


class TestSettlementGuards:

    def test_only_completed_assignments(self, engine):
        assignment = replace(make_assignment(750, DIRECT_CHAIN), status=AssignmentStatus.IN_PROGRESS)
        with pytest.raises(ValidationError, match="not payable"):
            engine.settle(assignment, NOW)

    def test_requires_super_worker(self, engine):
        chain = HierarchyChain(client_id="client-1", super_agent_id="sa-1")
        with pytest.raises(UnassignedHierarchyError):
            engine.settle(make_assignment(750, chain), NOW)

    def test_tampered_total(self, engine, caplog):
        assignment = make_assignment(750, DIRECT_CHAIN)
        tampered = replace(assignment, breakdown=replace(assignment.breakdown, total_price_gbp=Decimal("60.00")))

        with pytest.raises(SettlementConsistencyError):
            engine.settle(tampered, NOW)
        assert "SETTLEMENT AUDIT" in caplog.text

    def test_agent_breakdown_on_direct_chain(self, engine):
        assignment = make_assignment(1000, AGENT_CHAIN, DEFAULT_AGENT_PRICING)
        with pytest.raises(SettlementConsistencyError):
            engine.settle(replace(assignment, chain=DIRECT_CHAIN), NOW)

    def test_breakdown_for_other_agent(self, engine):
        assignment = make_assignment(1000, AGENT_CHAIN, DEFAULT_AGENT_PRICING)
        with pytest.raises(SettlementConsistencyError, match="differs from chain agent"):
            engine.settle(replace(assignment, chain=replace(AGENT_CHAIN, agent_id="agent-2")), NOW)

    def test_word_count_drift(self, engine):
        assignment = make_assignment(750, DIRECT_CHAIN)
        with pytest.raises(SettlementConsistencyError):
            engine.settle(replace(assignment, word_count=1200), NOW)

    def test_no_rate_no_settlement(self):
        engine = SettlementEngine(CurrencyConverter())
        with pytest.raises(RateUnavailableError):
            engine.settle(make_assignment(750, DIRECT_CHAIN), NOW)

    def test_request_rate_used(self):
        engine = SettlementEngine(CurrencyConverter())
        worker = by_role(engine.settle(make_assignment(750, DIRECT_CHAIN), NOW, Decimal("100")))[Role.SUPER_WORKER]
        assert worker.earnings_inr == Decimal("1250.00")
        assert worker.exchange_rate.source is RateSource.REQUEST


class TestCompensation:

    def test_negates_and_references(self, engine):
        records = engine.settle(make_assignment(1000, AGENT_CHAIN, DEFAULT_AGENT_PRICING), NOW)
        later = NOW + timedelta(days=3)

        compensations = engine.compensate(records, later)

        assert len(compensations) == len(records)
        for original, reversal in zip(records, compensations):
            assert reversal.entry_type is EntryType.COMPENSATION
            assert reversal.reverses_record_id == original.record_id
            assert reversal.record_id != original.record_id
            assert reversal.earnings_gbp == -original.earnings_gbp
            assert reversal.net_profit_gbp == -original.net_profit_gbp
            assert reversal.computed_at == later
        assert len({c.batch_id for c in compensations}) == 1
        assert compensations[0].batch_id != records[0].batch_id

    def test_ledger_nets_to_zero(self, engine):
        records = engine.settle(make_assignment(750, DIRECT_CHAIN), NOW)
        compensations = engine.compensate(records, NOW)
        total = sum(r.net_profit_gbp for r in records + compensations)
        assert total == Decimal("0")
        worker_inr = [r.earnings_inr for r in records + compensations if r.payee_role is Role.SUPER_WORKER]
        assert sum(worker_inr) == Decimal("0")
