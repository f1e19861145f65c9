"""
Assignment Status Workflow

Which status changes are allowed, who may make them, and which of them
move money.
"""

from .errors import ActionNotPermitted, InvalidStatusTransition
from .models import AssignmentStatus, HierarchyChain, Role, require_every_role

S = AssignmentStatus

ALLOWED_TRANSITIONS: dict[AssignmentStatus, frozenset[AssignmentStatus]] = {
    S.PENDING_PAYMENT_APPROVAL: frozenset({S.REJECTED_PAYMENT, S.AWAITING_WORKER_ASSIGNMENT}),
    S.REJECTED_PAYMENT: frozenset({S.PENDING_PAYMENT_APPROVAL}),
    S.AWAITING_WORKER_ASSIGNMENT: frozenset({S.IN_PROGRESS}),
    S.IN_PROGRESS: frozenset({S.NEEDS_CHANGES, S.PENDING_FINAL_APPROVAL, S.PENDING_QUOTE_APPROVAL, S.REFUND}),
    S.PENDING_QUOTE_APPROVAL: frozenset({S.IN_PROGRESS, S.REJECTED_PAYMENT}),
    S.NEEDS_CHANGES: frozenset({S.IN_PROGRESS, S.PENDING_QUOTE_APPROVAL, S.REFUND}),
    S.PENDING_FINAL_APPROVAL: frozenset({S.COMPLETED, S.NEEDS_CHANGES, S.REFUND}),
    S.COMPLETED: frozenset({S.REFUND}),
    S.REFUND: frozenset({S.CANCELLED}),
    S.CANCELLED: frozenset(),
}

_missing = set(AssignmentStatus) - set(ALLOWED_TRANSITIONS)
if _missing:
    raise RuntimeError(f"ALLOWED_TRANSITIONS is missing statuses: {sorted(s.value for s in _missing)}")

# Statuses each role may set
STATUS_PERMISSIONS = require_every_role(
    {
        Role.SUPER_AGENT: frozenset(AssignmentStatus),
        Role.AGENT: frozenset({
            S.AWAITING_WORKER_ASSIGNMENT,
            S.IN_PROGRESS,
            S.NEEDS_CHANGES,
            S.COMPLETED,
            S.CANCELLED,
            S.REJECTED_PAYMENT,
        }),
        Role.CLIENT: frozenset({S.PENDING_PAYMENT_APPROVAL, S.REJECTED_PAYMENT}),
        Role.SUPER_WORKER: frozenset({S.PENDING_FINAL_APPROVAL, S.PENDING_QUOTE_APPROVAL, S.REFUND}),
        Role.WORKER: frozenset({S.PENDING_FINAL_APPROVAL, S.PENDING_QUOTE_APPROVAL, S.REFUND}),
    },
    "STATUS_PERMISSIONS",
)

# Who may approve or reject a proposed re-quote
QUOTE_DECISION_PERMISSIONS = require_every_role(
    {
        Role.SUPER_AGENT: True,
        Role.AGENT: False,
        Role.CLIENT: True,
        Role.SUPER_WORKER: False,
        Role.WORKER: False,
    },
    "QUOTE_DECISION_PERMISSIONS",
)

# Only reachable through a re-quote request or decision, never a plain status change
QUOTE_FLOW_TRANSITIONS = frozenset({
    (S.IN_PROGRESS, S.PENDING_QUOTE_APPROVAL),
    (S.NEEDS_CHANGES, S.PENDING_QUOTE_APPROVAL),
    (S.PENDING_QUOTE_APPROVAL, S.IN_PROGRESS),
})

# Statuses that mean someone is working on the assignment
STAFFED_STATUSES = frozenset({
    S.IN_PROGRESS,
    S.PENDING_QUOTE_APPROVAL,
    S.NEEDS_CHANGES,
    S.PENDING_FINAL_APPROVAL,
    S.COMPLETED,
})

# Statuses in which the word count may still be renegotiated
ADJUSTABLE_STATUSES = frozenset({
    S.PENDING_PAYMENT_APPROVAL,
    S.AWAITING_WORKER_ASSIGNMENT,
    S.IN_PROGRESS,
    S.NEEDS_CHANGES,
    S.PENDING_FINAL_APPROVAL,
    S.COMPLETED,
})

# Statuses in which a worker may be (re)assigned
STAFFABLE_STATUSES = frozenset({
    S.AWAITING_WORKER_ASSIGNMENT,
    S.IN_PROGRESS,
    S.PENDING_QUOTE_APPROVAL,
    S.NEEDS_CHANGES,
})


def check_transition(current: AssignmentStatus, target: AssignmentStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        allowed = ", ".join(sorted(s.value for s in ALLOWED_TRANSITIONS[current])) or "none"
        raise InvalidStatusTransition(
            f"Cannot move from {current.value} to {target.value}. Allowed: {allowed}"
        )


def check_permission(role: Role, target: AssignmentStatus) -> None:
    if target not in STATUS_PERMISSIONS[role]:
        raise ActionNotPermitted(f"A {role.value} cannot set an assignment to {target.value}")


def check_quote_decision(role: Role) -> None:
    if not QUOTE_DECISION_PERMISSIONS[role]:
        raise ActionNotPermitted(f"A {role.value} cannot approve or reject a quote change")


def check_staffed(target: AssignmentStatus, chain: HierarchyChain) -> None:
    if target in STAFFED_STATUSES and not chain.has_super_worker:
        raise InvalidStatusTransition(f"Cannot move to {target.value} before a worker is assigned")


def allowed_next(current: AssignmentStatus) -> list[str]:
    return sorted(s.value for s in ALLOWED_TRANSITIONS[current])
