"""
Domain Models for the Pricing & Settlement Engine

These dataclasses provide type-safe representations of all business entities.
All monetary values use Decimal for precision. All timestamps are
timezone-aware UTC datetimes.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum

from .errors import InvalidDeadline, InvalidPricingConfiguration, ValidationError

# =============================================================================
# ENUMERATIONS
# =============================================================================


class Role(str, Enum):
    """The five parties of the recruitment hierarchy."""

    SUPER_AGENT = "super_agent"
    AGENT = "agent"
    CLIENT = "client"
    SUPER_WORKER = "super_worker"
    WORKER = "worker"

    @classmethod
    def parse(cls, value) -> "Role":
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Unknown role: {value}") from None


class UrgencyLevel(str, Enum):
    NORMAL = "normal"
    MODERATE = "moderate"
    URGENT = "urgent"
    RUSH = "rush"


class PricingSource(str, Enum):
    """Which table produced a quote."""

    SUPER_AGENT = "super_agent"
    AGENT = "agent"


class AssignmentStatus(str, Enum):
    PENDING_PAYMENT_APPROVAL = "pending_payment_approval"
    REJECTED_PAYMENT = "rejected_payment"
    AWAITING_WORKER_ASSIGNMENT = "awaiting_worker_assignment"
    IN_PROGRESS = "in_progress"
    PENDING_QUOTE_APPROVAL = "pending_quote_approval"
    NEEDS_CHANGES = "needs_changes"
    PENDING_FINAL_APPROVAL = "pending_final_approval"
    COMPLETED = "completed"
    REFUND = "refund"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value) -> "AssignmentStatus":
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Unknown assignment status: {value}") from None


class EntryType(str, Enum):
    SETTLEMENT = "settlement"
    COMPENSATION = "compensation"


class RateSource(str, Enum):
    REQUEST = "request"
    CONFIGURED = "configured"
    CACHED = "cached"
    FALLBACK = "fallback"


# =============================================================================
# HELPERS
# =============================================================================


def require_every_role(mapping: dict, name: str) -> dict:
    """Fail at import time if a role-keyed table does not cover every Role."""
    missing = set(Role) - set(mapping)
    if missing:
        raise RuntimeError(f"{name} is missing roles: {sorted(r.value for r in missing)}")
    return mapping


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value, field_name: str = "timestamp") -> datetime:
    """Parse a date, datetime or ISO string into an aware UTC datetime.

    Naive values are taken to be UTC. A bare date means midnight.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"{field_name} is not a valid ISO date: {value}") from None
    else:
        raise ValidationError(f"{field_name} is required")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def finite_decimal(value, field_name: str) -> Decimal:
    """Decimal(str(value)), refusing NaN and infinities."""
    amount = Decimal(str(value))
    if not amount.is_finite():
        raise InvalidPricingConfiguration(f"{field_name} must be a finite number, got: {value}")
    return amount


def _optional_decimal(value, field_name: str) -> Decimal | None:
    return finite_decimal(value, field_name) if value is not None else None


# =============================================================================
# PRICING TABLES
# =============================================================================


@dataclass(frozen=True)
class PricingBand:
    """A contiguous word-count range mapped to a fixed GBP price."""

    lower_words: int
    upper_words: int | None  # None = unbounded terminal band
    price_gbp: Decimal

    def covers(self, word_count: int) -> bool:
        if word_count < self.lower_words:
            return False
        return self.upper_words is None or word_count <= self.upper_words

    @classmethod
    def from_dict(cls, data: dict) -> "PricingBand":
        try:
            upper = data.get("upper_words")
            return cls(
                lower_words=int(data["lower_words"]),
                upper_words=int(upper) if upper is not None else None,
                price_gbp=finite_decimal(data["price_gbp"], "price_gbp"),
            )
        except (KeyError, TypeError, ArithmeticError, ValueError) as e:
            raise InvalidPricingConfiguration(f"Malformed pricing band {data}: {e}") from None


@dataclass(frozen=True)
class FixedPricingTable:
    """The single system-wide Super-Agent banded table."""

    bands: tuple[PricingBand, ...]

    @property
    def max_words(self) -> int | None:
        """Largest priced word count, or None when the last band is unbounded."""
        if not self.bands:
            return None
        return self.bands[-1].upper_words

    @classmethod
    def from_list(cls, data: list) -> "FixedPricingTable":
        return cls(bands=tuple(PricingBand.from_dict(b) for b in data))


@dataclass(frozen=True)
class AgentPricingTable:
    """An Agent's custom rate-function table.

    version is assigned by the table store; None for tables not yet stored.
    """

    agent_id: str
    min_words: int
    max_words: int
    base_rate_per_500_words: Decimal
    agent_fee_percentage: Decimal
    is_default: bool = False
    version: int | None = None

    @classmethod
    def from_dict(cls, data: dict, agent_id: str | None = None) -> "AgentPricingTable":
        try:
            return cls(
                agent_id=agent_id or data["agent_id"],
                min_words=int(data["min_words"]),
                max_words=int(data["max_words"]),
                base_rate_per_500_words=finite_decimal(data["base_rate_per_500_words"], "base_rate_per_500_words"),
                agent_fee_percentage=finite_decimal(data["agent_fee_percentage"], "agent_fee_percentage"),
            )
        except InvalidPricingConfiguration:
            raise
        except (KeyError, TypeError, ArithmeticError, ValueError) as e:
            raise InvalidPricingConfiguration(f"Malformed agent pricing: {e}") from None


@dataclass(frozen=True)
class AgentPricingHistoryEntry:
    """One stored version of an Agent's table. Entries are never changed."""

    agent_id: str
    version: int
    table: AgentPricingTable
    change_type: str  # 'created' or 'updated'
    changed_at: datetime
    reason: str | None = None
    changed_by: str | None = None


@dataclass(frozen=True)
class UrgencyRule:
    """One row of the deadline surcharge table.

    Exactly one of surcharge_gbp / surcharge_percent is set.
    """

    max_days: int | None  # None = matches any gap
    urgency_level: UrgencyLevel
    surcharge_gbp: Decimal | None = None
    surcharge_percent: Decimal | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "UrgencyRule":
        max_days = data.get("max_days")
        return cls(
            max_days=int(max_days) if max_days is not None else None,
            urgency_level=UrgencyLevel(data["urgency_level"]),
            surcharge_gbp=_optional_decimal(data.get("surcharge_gbp"), "surcharge_gbp"),
            surcharge_percent=_optional_decimal(data.get("surcharge_percent"), "surcharge_percent"),
        )


# =============================================================================
# QUOTING
# =============================================================================


@dataclass(frozen=True)
class QuoteRequest:
    """A client's request for a price."""

    word_count: int
    deadline: datetime
    requester_id: str
    requested_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "QuoteRequest":
        requester_id = data.get("requester_id")
        if not requester_id:
            raise ValidationError("requester_id is required")
        if not data.get("deadline"):
            raise InvalidDeadline("deadline is required")
        requested_at = data.get("requested_at")
        return cls(
            word_count=data.get("word_count"),
            deadline=parse_timestamp(data["deadline"], "deadline"),
            requester_id=str(requester_id),
            requested_at=parse_timestamp(requested_at, "requested_at") if requested_at else None,
        )


@dataclass(frozen=True)
class PriceBreakdown:
    """Immutable result of a quote.

    Component amounts are kept at full precision; only total_price_gbp
    is rounded to the penny.
    """

    word_count: int
    pricing_source: PricingSource
    base_price_gbp: Decimal
    agent_fee_gbp: Decimal
    urgency_charge_gbp: Decimal
    total_price_gbp: Decimal
    urgency_level: UrgencyLevel
    days_until_deadline: int
    agent_id: str | None = None
    uses_default_agent_pricing: bool = False
    pricing_table_version: int | None = None

    @property
    def pre_urgency_total_gbp(self) -> Decimal:
        return self.base_price_gbp + self.agent_fee_gbp

    @property
    def fingerprint(self) -> str:
        """Identifies the priced amounts; two breakdowns that settle differently never share one."""
        return "|".join(
            str(part)
            for part in (
                self.word_count,
                self.pricing_source.value,
                self.agent_id or "",
                self.base_price_gbp,
                self.agent_fee_gbp,
                self.urgency_charge_gbp,
                self.total_price_gbp,
            )
        )


# =============================================================================
# HIERARCHY
# =============================================================================


@dataclass(frozen=True)
class HierarchyChain:
    """The parties that receive money for one assignment.

    The client side is known at quote time; the worker side is filled in
    when work is assigned.
    """

    client_id: str
    super_agent_id: str
    agent_id: str | None = None
    super_worker_id: str | None = None
    worker_id: str | None = None

    @property
    def routes_through_agent(self) -> bool:
        return self.agent_id is not None

    @property
    def has_super_worker(self) -> bool:
        return self.super_worker_id is not None

    def with_worker_side(self, super_worker_id: str, worker_id: str | None) -> "HierarchyChain":
        return replace(self, super_worker_id=super_worker_id, worker_id=worker_id)

    def to_dict(self) -> dict:
        return {
            "client_id": self.client_id,
            "super_agent_id": self.super_agent_id,
            "agent_id": self.agent_id,
            "super_worker_id": self.super_worker_id,
            "worker_id": self.worker_id,
        }


# =============================================================================
# ASSIGNMENTS & LEDGER
# =============================================================================


class ChangeType(str, Enum):
    WORD_COUNT = "word_count"
    DEADLINE = "deadline"


@dataclass(frozen=True)
class QuoteChange:
    """A re-quote waiting for the client's decision.

    The assignment's frozen breakdown stays in force until this is approved.
    """

    change_type: ChangeType
    word_count: int
    deadline: datetime
    priced_at: datetime
    breakdown: PriceBreakdown
    requested_by: Role


@dataclass(frozen=True)
class Assignment:
    """A stored assignment. Every change produces a new version."""

    assignment_id: str
    client_id: str
    word_count: int
    deadline: datetime
    requested_at: datetime
    breakdown: PriceBreakdown
    chain: HierarchyChain
    status: AssignmentStatus = AssignmentStatus.PENDING_PAYMENT_APPROVAL
    version: int = 1
    pending_change: QuoteChange | None = None


@dataclass(frozen=True)
class ExchangeRateSnapshot:
    """The GBP to INR rate used for one calculation."""

    rate: Decimal
    as_of: datetime
    source: RateSource
    is_stale: bool = False

    def to_dict(self) -> dict:
        return {
            "rate": float(self.rate),
            "as_of": self.as_of.isoformat(),
            "source": self.source.value,
            "is_stale": self.is_stale,
        }


@dataclass(frozen=True)
class SettlementRecord:
    """One ledger entry for one payee of one assignment."""

    record_id: str
    batch_id: str
    assignment_id: str
    payee_role: Role
    payee_id: str
    earnings_gbp: Decimal
    fees_paid_gbp: Decimal
    net_profit_gbp: Decimal
    computed_at: datetime
    entry_type: EntryType = EntryType.SETTLEMENT
    earnings_inr: Decimal | None = None
    exchange_rate: ExchangeRateSnapshot | None = None
    breakdown_word_count: int | None = None
    breakdown_fingerprint: str | None = None
    reverses_record_id: str | None = None


@dataclass
class SettlementResult:
    """Outcome of a settlement trigger."""

    assignment_id: str
    records: list[SettlementRecord] = field(default_factory=list)
    compensations: list[SettlementRecord] = field(default_factory=list)
    already_settled: bool = False

    @property
    def batch_id(self) -> str | None:
        return self.records[0].batch_id if self.records else None


# =============================================================================
# ANALYTICS
# =============================================================================


@dataclass(frozen=True)
class AnalyticsWindow:
    kind: str  # 'week', 'month' or 'custom'
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass
class MonthlyTotals:
    month: str  # YYYY-MM
    revenue: Decimal = Decimal("0")
    fees_paid: Decimal = Decimal("0")
    profit: Decimal = Decimal("0")
    record_count: int = 0


@dataclass
class AnalyticsSummary:
    user_id: str
    role: Role
    window: AnalyticsWindow
    total_revenue: Decimal = Decimal("0")
    total_fees_paid: Decimal = Decimal("0")
    total_profit: Decimal = Decimal("0")
    total_earnings_inr: Decimal = Decimal("0")
    record_count: int = 0
    monthly: list[MonthlyTotals] = field(default_factory=list)
