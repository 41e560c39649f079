from __future__ import annotations

from dukkan.core.errors import InvalidTransitionError, ValidationError

DRAFT = "draft"
CONFIRMED = "confirmed"
OUT_FOR_DELIVERY = "out_for_delivery"
COMPLETED = "completed"
CANCELLED = "cancelled"
REJECTED_BY_CUSTOMER = "rejected_by_customer"

ORDER_STATUSES = {DRAFT, CONFIRMED, OUT_FOR_DELIVERY, COMPLETED, CANCELLED, REJECTED_BY_CUSTOMER}
TERMINAL_STATUSES = {COMPLETED, CANCELLED, REJECTED_BY_CUSTOMER}

# Merchant-driven moves. rejected_by_customer is only reachable through
# CUSTOMER_REJECTABLE_STATUSES below.
_VALID_TRANSITIONS = {
    DRAFT: {CONFIRMED, CANCELLED},
    CONFIRMED: {OUT_FOR_DELIVERY, COMPLETED, CANCELLED},
    OUT_FOR_DELIVERY: {COMPLETED},
    COMPLETED: set(),
    CANCELLED: set(),
    REJECTED_BY_CUSTOMER: set(),
}

CUSTOMER_REJECTABLE_STATUSES = {DRAFT, CONFIRMED}

REPLACEMENT_NONE = "none"
REPLACEMENT_PENDING = "pending"
REPLACEMENT_APPROVED = "approved"
REPLACEMENT_REJECTED = "rejected"

REPLACEMENT_STATUSES = {REPLACEMENT_NONE, REPLACEMENT_PENDING, REPLACEMENT_APPROVED, REPLACEMENT_REJECTED}

# Reset (any -> none) is handled separately; it is always allowed on a live order.
_VALID_REPLACEMENT_TRANSITIONS = {
    REPLACEMENT_NONE: {REPLACEMENT_PENDING},
    REPLACEMENT_PENDING: {REPLACEMENT_APPROVED, REPLACEMENT_REJECTED},
    REPLACEMENT_APPROVED: set(),
    REPLACEMENT_REJECTED: set(),
}

DECISION_APPROVE = "approve"
DECISION_REJECT = "reject"
_DECISION_TARGETS = {
    DECISION_APPROVE: REPLACEMENT_APPROVED,
    DECISION_REJECT: REPLACEMENT_REJECTED,
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: str, target: str) -> bool:
    return target in _VALID_TRANSITIONS.get(current, set())


def assert_can_transition(current: str, target: str) -> None:
    if target not in ORDER_STATUSES:
        raise ValidationError(f"Unknown order status: {target}")
    if target == REJECTED_BY_CUSTOMER:
        raise InvalidTransitionError("Only the customer can reject an order")
    if not can_transition(current, target):
        raise InvalidTransitionError(f"Cannot transition from {current} to {target}")


def assert_customer_can_reject(current: str) -> None:
    if current not in CUSTOMER_REJECTABLE_STATUSES:
        raise InvalidTransitionError(f"Order can no longer be rejected (status: {current})")


def assert_order_open_for_replacement(status: str) -> None:
    if is_terminal(status):
        raise InvalidTransitionError(f"Order is already {status}")


def assert_can_transition_replacement(current: str, target: str) -> None:
    if target not in _VALID_REPLACEMENT_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(f"Cannot move replacement from {current} to {target}")


def decision_target(decision: str) -> str:
    try:
        return _DECISION_TARGETS[decision]
    except KeyError:
        raise ValidationError(f"Unknown decision: {decision}") from None
