"""
Pricing Processor - Main Orchestrator

Coordinates quoting, price freezing, status changes and settlement.

Quote pipeline:
1. Validate input
2. Resolve the client's hierarchy chain
3. Pick the effective pricing table
4. Calculate the breakdown
5. Build output (display conversion to INR, visibility filtering)

Every write to an assignment presents the version it was read at.
Settlement and compensation batches are computed in full before anything
is written, and written in the same store transaction as the status change.
"""

import json
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict

from .calculators import (
    AnalyticsAggregator,
    CurrencyConverter,
    ExchangeRateClient,
    PricingCalculator,
    RateCache,
    SettlementEngine,
    UrgencyPolicy,
)
from .calculators.settlement import REVERSAL_STATUSES
from .config import Settings
from .errors import InvalidDeadline, InvalidStatusTransition, ValidationError
from .hierarchy import HierarchyGraph, HierarchyResolver
from .models import (
    AgentPricingHistoryEntry,
    AgentPricingTable,
    AnalyticsSummary,
    Assignment,
    AssignmentStatus,
    ChangeType,
    PriceBreakdown,
    QuoteChange,
    QuoteRequest,
    Role,
    SettlementRecord,
    SettlementResult,
    parse_timestamp,
    utc_now,
)
from .output import OutputBuilder
from .repository import InMemoryRepository
from .store import PricingTableStore
from .validators import InputValidator
from .visibility import filter_financials, visible_records
from .workflow import (
    ADJUSTABLE_STATUSES,
    QUOTE_FLOW_TRANSITIONS,
    STAFFABLE_STATUSES,
    check_permission,
    check_quote_decision,
    check_staffed,
    check_transition,
)

logger = logging.getLogger(__name__)


class PricingProcessor:
    """Main orchestrator for the pricing and settlement engine."""

    def __init__(
        self,
        graph: HierarchyGraph | None = None,
        tables: PricingTableStore | None = None,
        converter: CurrencyConverter | None = None,
        repository: InMemoryRepository | None = None,
        urgency_policy: UrgencyPolicy | None = None,
    ):
        self.validator = InputValidator()
        self.graph = graph or HierarchyGraph()
        self.resolver = HierarchyResolver(self.graph)
        self.tables = tables or PricingTableStore()
        self.converter = converter or CurrencyConverter()
        self.repository = repository or InMemoryRepository()
        self.calculator = PricingCalculator(urgency_policy)
        self.settlement_engine = SettlementEngine(self.converter)
        self.analytics_aggregator = AnalyticsAggregator()
        self.output_builder = OutputBuilder()

    @classmethod
    def from_settings(cls, settings: Settings) -> "PricingProcessor":
        client = None
        if settings.exchange_rate_api_url:
            client = ExchangeRateClient(settings.exchange_rate_api_url, settings.external_timeout_seconds)

        return cls(
            tables=PricingTableStore(settings.super_agent_table),
            converter=CurrencyConverter(
                static_rate=settings.static_exchange_rate,
                cache=RateCache(),
                max_age_seconds=settings.rate_max_age_seconds,
                client=client,
            ),
            repository=InMemoryRepository(settings.store_lock_timeout_seconds),
            urgency_policy=UrgencyPolicy(settings.urgency_rules),
        )

    # -------------------------------------------------------------------------
    # Hierarchy & configuration
    # -------------------------------------------------------------------------

    def register_party(self, party_id: str, role: Role, parent_id: str | None = None) -> None:
        self.graph.add_party(party_id, role, parent_id)

    def update_agent_pricing(
        self,
        table: AgentPricingTable,
        reason: str | None = None,
        changed_by: str | None = None,
    ) -> list[str]:
        """Store a new version of an Agent's custom table. Returns validation warnings."""
        _, warnings = self._store_agent_pricing(table, reason, changed_by)
        return warnings

    def agent_pricing_history(
        self,
        agent_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[AgentPricingHistoryEntry]:
        self._require_agent(agent_id)
        return self.tables.pricing_history(agent_id, limit, offset)

    def _store_agent_pricing(
        self,
        table: AgentPricingTable,
        reason: str | None,
        changed_by: str | None,
    ) -> tuple[AgentPricingHistoryEntry, list[str]]:
        self._require_agent(table.agent_id)
        return self.tables.put_agent_table(table, reason, changed_by)

    def _require_agent(self, agent_id: str) -> None:
        node = self.graph.node(agent_id)
        if node.role is not Role.AGENT:
            raise ValidationError(f"{agent_id} is a {node.role.value}, not an agent")

    def refresh_exchange_rate(self):
        return self.converter.refresh()

    # -------------------------------------------------------------------------
    # Quoting
    # -------------------------------------------------------------------------

    def quote(self, request: QuoteRequest) -> PriceBreakdown:
        """Price a request. Read-only."""
        requested_at = request.requested_at or utc_now()
        self.validator.validate_quote(request, requested_at)

        chain = self.resolver.resolve_client(request.requester_id)
        source = self.tables.effective_source(chain)
        breakdown = self.calculator.calculate(
            request.word_count, request.deadline, requested_at, source, chain.agent_id
        )

        logger.info(
            f"Quote for {request.requester_id}: {breakdown.word_count} words, "
            f"{breakdown.pricing_source.value} table, {breakdown.urgency_level.value} = £{breakdown.total_price_gbp}"
        )
        return breakdown

    def quote_from_dict(self, data: Dict[str, Any], viewer_role: Role = Role.CLIENT) -> Dict[str, Any]:
        """
        Quote from raw dictionary input.

        Convenience method for API usage. An optional exchange_rate in the
        input overrides the configured rate for the INR display.
        """
        request = QuoteRequest.from_dict(data)
        breakdown = self.quote(request)

        explicit_rate = data.get("exchange_rate")
        total_inr, rate = self.converter.convert_for_display(
            breakdown.total_price_gbp, request.requested_at, explicit_rate
        )
        output = self.output_builder.build_quote(breakdown, total_inr, rate)
        return filter_financials(output, viewer_role)

    # -------------------------------------------------------------------------
    # Assignments
    # -------------------------------------------------------------------------

    def create_assignment(self, request: QuoteRequest, assignment_id: str | None = None) -> Assignment:
        """Quote and freeze the price on a new assignment."""
        requested_at = request.requested_at or utc_now()
        request = replace(request, requested_at=requested_at)
        breakdown = self.quote(request)
        chain = self.resolver.resolve_client(request.requester_id)

        assignment = self.repository.add_assignment(
            Assignment(
                assignment_id=assignment_id or uuid.uuid4().hex,
                client_id=request.requester_id,
                word_count=breakdown.word_count,
                deadline=request.deadline,
                requested_at=requested_at,
                breakdown=breakdown,
                chain=chain,
            )
        )
        logger.info(f"Assignment {assignment.assignment_id} created at £{breakdown.total_price_gbp}")
        return assignment

    def get_assignment(self, assignment_id: str) -> Assignment:
        return self.repository.get_assignment(assignment_id)

    def assign_worker(self, assignment_id: str, worker_id: str, expected_version: int) -> Assignment:
        """Attach the worker side of the chain. Starts work if it was waiting."""
        with self.repository.transaction():
            current = self.repository.check_version(assignment_id, expected_version)
            if current.status not in STAFFABLE_STATUSES:
                raise InvalidStatusTransition(
                    f"Cannot assign a worker to an assignment that is {current.status.value}"
                )

            super_worker_id, sub_worker_id = self.resolver.resolve_worker(worker_id)
            status = current.status
            if status is AssignmentStatus.AWAITING_WORKER_ASSIGNMENT:
                status = AssignmentStatus.IN_PROGRESS

            updated = replace(
                current,
                chain=current.chain.with_worker_side(super_worker_id, sub_worker_id),
                status=status,
            )
            saved = self.repository.save_assignment(updated, expected_version)

        logger.info(f"Assignment {assignment_id}: worker {worker_id} under super worker {super_worker_id}")
        return saved

    def approve_word_count_adjustment(
        self,
        assignment_id: str,
        new_word_count: int,
        expected_version: int,
        now: datetime | None = None,
        actor_role: Role = Role.SUPER_AGENT,
    ) -> tuple[Assignment, SettlementResult | None]:
        """
        Replace the frozen breakdown with one priced for new_word_count.

        Priced against the chain's current table with the original request
        date, so the urgency level does not drift. A completed assignment is
        re-settled whenever the new breakdown differs from the settled one:
        its active settlement is compensated and a new one written.
        """
        now = now or utc_now()
        check_quote_decision(actor_role)
        with self.repository.transaction():
            current = self.repository.check_version(assignment_id, expected_version)
            if current.status not in ADJUSTABLE_STATUSES:
                raise InvalidStatusTransition(
                    f"Cannot adjust the word count of an assignment that is {current.status.value}"
                )

            breakdown = self._reprice(current, new_word_count, current.deadline, current.requested_at)
            updated = replace(current, word_count=new_word_count, breakdown=breakdown)

            result = None
            if updated.status is AssignmentStatus.COMPLETED:
                result = self._settlement_for(updated, now)
                self._write(result)

            saved = self.repository.save_assignment(updated, expected_version)

        logger.info(
            f"Assignment {assignment_id}: word count {current.word_count} -> {new_word_count}, "
            f"£{current.breakdown.total_price_gbp} -> £{breakdown.total_price_gbp}"
        )
        return saved, result

    def transition_status(
        self,
        assignment_id: str,
        target: AssignmentStatus,
        expected_version: int,
        now: datetime | None = None,
        explicit_rate: Decimal | None = None,
        actor_role: Role = Role.SUPER_AGENT,
    ) -> tuple[Assignment, SettlementResult | None]:
        """
        Move an assignment to target on behalf of actor_role.

        completed       settles the assignment
        refund/cancel   compensates any active settlement

        Re-quotes enter and leave pending_quote_approval through
        request_*_change / approve_quote_change / reject_quote_change only.
        """
        now = now or utc_now()
        with self.repository.transaction():
            current = self.repository.check_version(assignment_id, expected_version)
            check_transition(current.status, target)
            if (current.status, target) in QUOTE_FLOW_TRANSITIONS:
                raise InvalidStatusTransition(
                    f"{current.status.value} -> {target.value} is only reachable through a quote change"
                )
            check_permission(actor_role, target)
            check_staffed(target, current.chain)
            updated = replace(current, status=target, pending_change=None)

            result = None
            if target is AssignmentStatus.COMPLETED:
                result = self._settlement_for(updated, now, explicit_rate)
            elif target in REVERSAL_STATUSES:
                active = self.repository.active_settlement(assignment_id)
                if active:
                    result = SettlementResult(
                        assignment_id=assignment_id,
                        compensations=self.settlement_engine.compensate(active, now),
                    )
            if result is not None:
                self._write(result)

            saved = self.repository.save_assignment(updated, expected_version)

        logger.info(f"Assignment {assignment_id}: {current.status.value} -> {target.value}")
        return saved, result

    # -------------------------------------------------------------------------
    # Quote changes
    # -------------------------------------------------------------------------

    def request_word_count_change(
        self,
        assignment_id: str,
        new_word_count: int,
        expected_version: int,
        actor_role: Role = Role.WORKER,
        now: datetime | None = None,
    ) -> Assignment:
        """Propose a re-quote for a new word count. Urgency stays as originally quoted."""
        now = now or utc_now()
        with self.repository.transaction():
            current = self._check_quote_request(assignment_id, expected_version, actor_role)
            breakdown = self._reprice(current, new_word_count, current.deadline, current.requested_at)
            saved = self._propose(current, ChangeType.WORD_COUNT, breakdown, current.deadline, now, actor_role)

        logger.info(
            f"Assignment {assignment_id}: re-quote requested for {new_word_count} words, "
            f"£{current.breakdown.total_price_gbp} -> £{breakdown.total_price_gbp}"
        )
        return saved

    def request_deadline_change(
        self,
        assignment_id: str,
        new_deadline: datetime,
        expected_version: int,
        actor_role: Role = Role.WORKER,
        now: datetime | None = None,
    ) -> Assignment:
        """Propose a re-quote for a new deadline. Urgency is priced from now."""
        now = now or utc_now()
        if new_deadline <= now:
            raise InvalidDeadline(f"deadline must be in the future, got: {new_deadline.isoformat()}")

        with self.repository.transaction():
            current = self._check_quote_request(assignment_id, expected_version, actor_role)
            breakdown = self._reprice(current, current.word_count, new_deadline, now)
            saved = self._propose(current, ChangeType.DEADLINE, breakdown, new_deadline, now, actor_role)

        logger.info(
            f"Assignment {assignment_id}: re-quote requested for deadline {new_deadline.isoformat()}, "
            f"{current.breakdown.urgency_level.value} -> {breakdown.urgency_level.value}"
        )
        return saved

    def approve_quote_change(
        self,
        assignment_id: str,
        expected_version: int,
        actor_role: Role = Role.CLIENT,
    ) -> Assignment:
        """Make the proposed breakdown the frozen one and resume work."""
        with self.repository.transaction():
            current = self._pending_quote(assignment_id, expected_version, actor_role)
            change = current.pending_change
            updated = replace(
                current,
                word_count=change.word_count,
                deadline=change.deadline,
                breakdown=change.breakdown,
                status=AssignmentStatus.IN_PROGRESS,
                pending_change=None,
            )
            saved = self.repository.save_assignment(updated, expected_version)

        logger.info(
            f"Assignment {assignment_id}: {change.change_type.value} change approved, "
            f"frozen price £{current.breakdown.total_price_gbp} -> £{change.breakdown.total_price_gbp}"
        )
        return saved

    def reject_quote_change(
        self,
        assignment_id: str,
        expected_version: int,
        actor_role: Role = Role.CLIENT,
    ) -> Assignment:
        """Drop the proposal; the frozen breakdown never changed."""
        with self.repository.transaction():
            current = self._pending_quote(assignment_id, expected_version, actor_role)
            updated = replace(current, status=AssignmentStatus.IN_PROGRESS, pending_change=None)
            saved = self.repository.save_assignment(updated, expected_version)

        logger.info(f"Assignment {assignment_id}: {current.pending_change.change_type.value} change rejected")
        return saved

    def _check_quote_request(self, assignment_id: str, expected_version: int, actor_role: Role) -> Assignment:
        current = self.repository.check_version(assignment_id, expected_version)
        check_transition(current.status, AssignmentStatus.PENDING_QUOTE_APPROVAL)
        check_permission(actor_role, AssignmentStatus.PENDING_QUOTE_APPROVAL)
        return current

    def _propose(
        self,
        current: Assignment,
        change_type: ChangeType,
        breakdown: PriceBreakdown,
        deadline: datetime,
        now: datetime,
        actor_role: Role,
    ) -> Assignment:
        change = QuoteChange(
            change_type=change_type,
            word_count=breakdown.word_count,
            deadline=deadline,
            priced_at=now,
            breakdown=breakdown,
            requested_by=actor_role,
        )
        updated = replace(current, status=AssignmentStatus.PENDING_QUOTE_APPROVAL, pending_change=change)
        return self.repository.save_assignment(updated, current.version)

    def _pending_quote(self, assignment_id: str, expected_version: int, actor_role: Role) -> Assignment:
        current = self.repository.check_version(assignment_id, expected_version)
        if current.status is not AssignmentStatus.PENDING_QUOTE_APPROVAL or current.pending_change is None:
            raise InvalidStatusTransition(f"Assignment {assignment_id} has no quote change awaiting approval")
        check_quote_decision(actor_role)
        return current

    def _reprice(self, current: Assignment, word_count: int, deadline: datetime, priced_at: datetime) -> PriceBreakdown:
        source = self.tables.effective_source(current.chain)
        return self.calculator.calculate(word_count, deadline, priced_at, source, current.chain.agent_id)

    # -------------------------------------------------------------------------
    # Settlement
    # -------------------------------------------------------------------------

    def settle(
        self,
        assignment_id: str,
        now: datetime | None = None,
        explicit_rate: Decimal | None = None,
    ) -> SettlementResult:
        """
        Settle a completed assignment.

        Idempotent: an active settlement for the current breakdown is
        returned as is with already_settled set.
        """
        now = now or utc_now()
        with self.repository.transaction():
            assignment = self.repository.get_assignment(assignment_id)
            result = self._settlement_for(assignment, now, explicit_rate)
            if not result.already_settled:
                self._write(result)
        return result

    def _settlement_for(
        self,
        assignment: Assignment,
        now: datetime,
        explicit_rate: Decimal | None = None,
    ) -> SettlementResult:
        """Work out what to write. Must be called inside a store transaction."""
        active = self.repository.active_settlement(assignment.assignment_id)
        if active and all(r.breakdown_fingerprint == assignment.breakdown.fingerprint for r in active):
            return SettlementResult(assignment.assignment_id, records=active, already_settled=True)

        records = self.settlement_engine.settle(assignment, now, explicit_rate)
        compensations = self.settlement_engine.compensate(active, now) if active else []
        return SettlementResult(assignment.assignment_id, records=records, compensations=compensations)

    def _write(self, result: SettlementResult) -> None:
        if result.already_settled:
            return
        if result.compensations:
            self.repository.append_batch(result.compensations)
        if result.records:
            self.repository.append_batch(result.records)

    def ledger(self, assignment_id: str | None = None) -> list[SettlementRecord]:
        if assignment_id is None:
            return self.repository.ledger()
        return self.repository.records_for(assignment_id)

    # -------------------------------------------------------------------------
    # Analytics
    # -------------------------------------------------------------------------

    def analytics(
        self,
        user_id: str,
        role: Role,
        window: str = "month",
        start=None,
        end=None,
        now: datetime | None = None,
    ) -> AnalyticsSummary:
        """
        Totals for one payee over a window. A date-only custom end covers
        that whole day.
        """
        start_at = parse_timestamp(start, "start") if start else None
        end_at = parse_timestamp(end, "end") if end else None
        if end_at is not None and _is_date_only(end):
            end_at = end_at + timedelta(days=1) - timedelta(microseconds=1)

        bounds = self.analytics_aggregator.window(window, now, start_at, end_at)
        return self.analytics_aggregator.aggregate(self.repository.ledger(), user_id, role, bounds)

    # -------------------------------------------------------------------------
    # Dict-level API
    # -------------------------------------------------------------------------

    def register_party_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        party_id = data.get("party_id")
        if not party_id:
            raise ValidationError("party_id is required")
        role = Role.parse(data.get("role"))
        self.register_party(str(party_id), role, data.get("parent_id"))
        return {"party_id": party_id, "role": role.value, **self.graph.stats(str(party_id))}

    def update_agent_pricing_from_dict(self, agent_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        table = AgentPricingTable.from_dict(data, agent_id=agent_id)
        entry, warnings = self._store_agent_pricing(table, data.get("reason"), data.get("changed_by"))
        return self.output_builder.build_agent_pricing(entry.table, warnings, entry)

    def agent_pricing_history_from_dict(self, agent_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        limit = _optional_int(data, "limit")
        offset = _optional_int(data, "offset") or 0
        entries = self.agent_pricing_history(agent_id, limit, offset)
        total = len(self.tables.pricing_history(agent_id))
        return self.output_builder.build_pricing_history(agent_id, entries, total, limit, offset)

    def assignment_to_dict(self, assignment: Assignment, viewer_role: Role) -> Dict[str, Any]:
        payment = self.settlement_engine.super_worker_earnings(assignment.word_count)
        output = self.output_builder.build_assignment(assignment, payment)
        return filter_financials(output, viewer_role)

    def settlement_to_dict(
        self,
        result: SettlementResult,
        viewer_role: Role,
        viewer_id: str | None = None,
    ) -> Dict[str, Any]:
        output = self.output_builder.build_settlement(
            result,
            records=visible_records(result.records, viewer_role, viewer_id),
            compensations=visible_records(result.compensations, viewer_role, viewer_id),
        )
        return filter_financials(output, viewer_role)

    def create_assignment_from_dict(self, data: Dict[str, Any], viewer_role: Role = Role.CLIENT) -> Dict[str, Any]:
        request = QuoteRequest.from_dict(data)
        assignment = self.create_assignment(request, data.get("assignment_id"))
        return self.assignment_to_dict(assignment, viewer_role)

    def assign_worker_from_dict(self, assignment_id: str, data: Dict[str, Any], viewer_role: Role) -> Dict[str, Any]:
        worker_id = data.get("worker_id")
        if not worker_id:
            raise ValidationError("worker_id is required")
        assignment = self.assign_worker(assignment_id, str(worker_id), _expected_version(data))
        return self.assignment_to_dict(assignment, viewer_role)

    def adjust_word_count_from_dict(self, assignment_id: str, data: Dict[str, Any], viewer_role: Role) -> Dict[str, Any]:
        assignment, result = self.approve_word_count_adjustment(
            assignment_id, data.get("word_count"), _expected_version(data), actor_role=viewer_role
        )
        return self._with_settlement(assignment, result, viewer_role, data.get("viewer_id"))

    def transition_status_from_dict(self, assignment_id: str, data: Dict[str, Any], viewer_role: Role) -> Dict[str, Any]:
        target = AssignmentStatus.parse(data.get("status"))
        assignment, result = self.transition_status(
            assignment_id,
            target,
            _expected_version(data),
            explicit_rate=data.get("exchange_rate"),
            actor_role=viewer_role,
        )
        return self._with_settlement(assignment, result, viewer_role, data.get("viewer_id"))

    def request_quote_change_from_dict(self, assignment_id: str, data: Dict[str, Any], viewer_role: Role) -> Dict[str, Any]:
        """Exactly one of word_count or deadline."""
        has_word_count = data.get("word_count") is not None
        has_deadline = bool(data.get("deadline"))
        if has_word_count == has_deadline:
            raise ValidationError("Provide exactly one of word_count or deadline")

        version = _expected_version(data)
        if has_word_count:
            assignment = self.request_word_count_change(assignment_id, data["word_count"], version, viewer_role)
        else:
            deadline = parse_timestamp(data["deadline"], "deadline")
            assignment = self.request_deadline_change(assignment_id, deadline, version, viewer_role)
        return self.assignment_to_dict(assignment, viewer_role)

    def approve_quote_change_from_dict(self, assignment_id: str, data: Dict[str, Any], viewer_role: Role) -> Dict[str, Any]:
        assignment = self.approve_quote_change(assignment_id, _expected_version(data), viewer_role)
        return self.assignment_to_dict(assignment, viewer_role)

    def reject_quote_change_from_dict(self, assignment_id: str, data: Dict[str, Any], viewer_role: Role) -> Dict[str, Any]:
        assignment = self.reject_quote_change(assignment_id, _expected_version(data), viewer_role)
        return self.assignment_to_dict(assignment, viewer_role)

    def settle_from_dict(self, assignment_id: str, data: Dict[str, Any], viewer_role: Role) -> Dict[str, Any]:
        result = self.settle(assignment_id, explicit_rate=data.get("exchange_rate"))
        return self.settlement_to_dict(result, viewer_role, data.get("viewer_id"))

    def analytics_from_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        user_id = data.get("user_id")
        if not user_id:
            raise ValidationError("user_id is required")
        summary = self.analytics(
            str(user_id),
            Role.parse(data.get("role")),
            data.get("window") or "month",
            data.get("start"),
            data.get("end"),
        )
        return self.output_builder.build_analytics(summary)

    def _with_settlement(
        self,
        assignment: Assignment,
        result: SettlementResult | None,
        viewer_role: Role,
        viewer_id: str | None,
    ) -> Dict[str, Any]:
        output = self.assignment_to_dict(assignment, viewer_role)
        if result is not None:
            output["settlement"] = self.settlement_to_dict(result, viewer_role, viewer_id)
        return filter_financials(output, viewer_role)


def _expected_version(data: Dict[str, Any]) -> int:
    version = data.get("expected_version")
    if isinstance(version, bool) or not isinstance(version, int):
        raise ValidationError(f"expected_version must be an integer, got: {version!r}")
    return version


def _optional_int(data: Dict[str, Any], name: str) -> int | None:
    value = data.get(name)
    if value in (None, ""):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer, got: {value!r}") from None
    if number < 0:
        raise ValidationError(f"{name} cannot be negative, got: {number}")
    return number


def _is_date_only(value) -> bool:
    if isinstance(value, datetime):
        return False
    if isinstance(value, str):
        return "T" not in value and " " not in value.strip()
    return True


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def process_quote_from_dict(input_data: Dict[str, Any], processor: PricingProcessor | None = None) -> Dict[str, Any]:
    """Quote from a Python dict and return a Python dict."""
    processor = processor or PricingProcessor.from_settings(Settings.from_env())
    return processor.quote_from_dict(input_data)


def process_quote_from_json(json_input: str, processor: PricingProcessor | None = None) -> str:
    """Quote from a JSON string and return a JSON string."""
    try:
        input_data = json.loads(json_input)
        result = process_quote_from_dict(input_data, processor)
        return json.dumps(result, indent=2)

    except ValueError as e:
        error_response = {"error": str(e), "status": "validation_failed"}
        return json.dumps(error_response, indent=2)

    except Exception as e:
        logger.error(f"Quote processing error: {e}", exc_info=True)
        error_response = {"error": "An unexpected error occurred during processing", "status": "failed"}
        return json.dumps(error_response, indent=2)
