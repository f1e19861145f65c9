"""
Financial Visibility

Strips monetary fields a role is not allowed to see from response payloads.

    super_agent   everything
    agent         client prices and its own fee, never system profit
    client        prices only
    super_worker  its own payment
    worker        no monetary field at all
"""

from .models import Role, SettlementRecord, require_every_role

FINANCIAL_FIELDS = frozenset({
    "base_price",
    "agent_fee",
    "urgency_charge",
    "pre_urgency_total",
    "total_price",
    "total_price_inr",
    "formatted_breakdown",
    "super_worker_payment",
    "super_worker_payment_inr",
    "super_agent_profit",
    "exchange_rate",
    "earnings_gbp",
    "earnings_inr",
    "fees_paid_gbp",
    "net_profit_gbp",
    "settlement",
    "records",
    "compensations",
})

CLIENT_PRICE_FIELDS = frozenset({"total_price", "total_price_inr", "urgency_charge"})

VISIBLE_FINANCIAL_FIELDS = require_every_role(
    {
        Role.SUPER_AGENT: FINANCIAL_FIELDS,
        Role.AGENT: CLIENT_PRICE_FIELDS | {
            "base_price",
            "agent_fee",
            "pre_urgency_total",
            "formatted_breakdown",
            "exchange_rate",
            "settlement",
            "records",
            "compensations",
            "earnings_gbp",
            "fees_paid_gbp",
            "net_profit_gbp",
        },
        Role.CLIENT: CLIENT_PRICE_FIELDS | {"exchange_rate"},
        Role.SUPER_WORKER: frozenset({
            "super_worker_payment",
            "super_worker_payment_inr",
            "exchange_rate",
            "settlement",
            "records",
            "compensations",
            "earnings_gbp",
            "earnings_inr",
            "fees_paid_gbp",
            "net_profit_gbp",
        }),
        Role.WORKER: frozenset(),
    },
    "VISIBLE_FINANCIAL_FIELDS",
)

WORKER_ERROR_MESSAGE = "The request could not be completed"


def filter_financials(payload, role: Role):
    """Return a copy of payload without the financial keys role may not see."""
    allowed = VISIBLE_FINANCIAL_FIELDS[role]

    if isinstance(payload, dict):
        return {
            key: filter_financials(value, role)
            for key, value in payload.items()
            if key not in FINANCIAL_FIELDS or key in allowed
        }
    if isinstance(payload, list):
        return [filter_financials(item, role) for item in payload]
    return payload


def visible_records(records: list[SettlementRecord], role: Role, viewer_id: str | None) -> list[SettlementRecord]:
    """Super agents see every ledger entry; other payees see only their own."""
    if role is Role.SUPER_AGENT:
        return list(records)
    if "records" not in VISIBLE_FINANCIAL_FIELDS[role]:
        return []
    return [r for r in records if r.payee_role is role and r.payee_id == viewer_id]


def redact_error(message: str, role: Role | None) -> str:
    """Error text for a viewer. Workers never see engine messages, which may quote amounts."""
    if role is Role.WORKER:
        return WORKER_ERROR_MESSAGE
    return message
