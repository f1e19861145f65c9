"""
Error Taxonomy for the Pricing & Settlement Engine

Every error raised by the engine derives from PricingEngineError.
Validation errors also derive from ValueError so callers that only
distinguish "bad input" from "failure" keep working.
"""


class PricingEngineError(Exception):
    """Base class for all engine errors."""


# =============================================================================
# VALIDATION (reported to caller, never retried)
# =============================================================================


class ValidationError(PricingEngineError, ValueError):
    """Bad input: word count, deadline, configuration or status."""


class InvalidWordCount(ValidationError):
    """Word count is missing, non-integer or not positive."""


class OutOfRangeWordCount(ValidationError):
    """Word count falls outside what the effective pricing table covers."""


class InvalidDeadline(ValidationError):
    """Deadline is missing or not after the request date."""


class InvalidPricingConfiguration(ValidationError):
    """A pricing table or urgency rule set violates its structural rules."""


class InvalidStatusTransition(ValidationError):
    """Requested status change is not allowed from the current status."""


# =============================================================================
# CONFIGURATION / HIERARCHY
# =============================================================================


class PricingConfigurationMissing(PricingEngineError):
    """An Agent has no custom pricing table.

    Recovered locally by substituting DEFAULT_AGENT_PRICING.
    """

    def __init__(self, agent_id: str, version: int | None = None):
        if version is None:
            super().__init__(f"No custom pricing table configured for agent {agent_id}")
        else:
            super().__init__(f"Agent {agent_id} has no pricing table version {version}")
        self.agent_id = agent_id
        self.version = version


class HierarchyResolutionError(PricingEngineError):
    """The recruitment hierarchy cannot produce a valid chain."""


class UnassignedHierarchyError(HierarchyResolutionError):
    """No Super Agent (or Super Worker) can be resolved for a party."""


class HierarchyCycleError(HierarchyResolutionError):
    """A parent link would make the hierarchy cyclic."""


class UnknownPartyError(HierarchyResolutionError):
    """The party id is not registered in the hierarchy."""


# =============================================================================
# STORE / CONCURRENCY
# =============================================================================


class AssignmentNotFound(PricingEngineError):
    """No assignment exists with the given id."""


class StaleVersionConflict(PricingEngineError):
    """A write carried a version token that no longer matches the stored one."""

    def __init__(self, assignment_id: str, expected: int, actual: int):
        super().__init__(
            f"Assignment {assignment_id} is at version {actual}, write expected version {expected}"
        )
        self.assignment_id = assignment_id
        self.expected = expected
        self.actual = actual


class StoreTimeout(PricingEngineError):
    """The store could not be acquired within its bounded timeout."""


# =============================================================================
# CURRENCY / SETTLEMENT / ACCESS
# =============================================================================


class RateUnavailableError(PricingEngineError):
    """No usable GBP to INR exchange rate could be resolved."""


class SettlementConsistencyError(PricingEngineError):
    """Settlement amounts do not reconcile with the frozen total.

    Always fatal; settlement for the assignment is halted and nothing is written.
    """

    def __init__(self, assignment_id: str, message: str):
        super().__init__(f"Settlement of assignment {assignment_id} is inconsistent: {message}")
        self.assignment_id = assignment_id


class FinancialAccessDenied(PricingEngineError):
    """A role asked for financial data it is not allowed to see."""


class ActionNotPermitted(PricingEngineError):
    """The acting role may not perform this workflow action."""


# =============================================================================
# HTTP MAPPING
# =============================================================================

GENERIC_ERROR_MESSAGE = "An unexpected error occurred during processing"

# Most specific first
HTTP_STATUS_BY_ERROR: tuple[tuple[type, int, str], ...] = (
    (ValidationError, 400, "validation_failed"),
    (FinancialAccessDenied, 403, "forbidden"),
    (ActionNotPermitted, 403, "forbidden"),
    (AssignmentNotFound, 404, "not_found"),
    (UnknownPartyError, 404, "not_found"),
    (PricingConfigurationMissing, 404, "not_found"),
    (StaleVersionConflict, 409, "conflict"),
    (HierarchyResolutionError, 422, "hierarchy_unresolved"),
    (RateUnavailableError, 503, "unavailable"),
    (StoreTimeout, 503, "unavailable"),
)


def http_status_for(error: Exception) -> tuple[int, str, str]:
    """(status code, status label, client-safe message) for an error."""
    for error_type, code, label in HTTP_STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return code, label, str(error)
    return 500, "failed", GENERIC_ERROR_MESSAGE
