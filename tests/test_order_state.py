import pytest

from dukkan.core.errors import InvalidTransitionError, ValidationError
from dukkan.services import order_state


@pytest.mark.parametrize(
    "current, target",
    [
        ("draft", "confirmed"),
        ("draft", "cancelled"),
        ("confirmed", "out_for_delivery"),
        ("confirmed", "completed"),
        ("confirmed", "cancelled"),
        ("out_for_delivery", "completed"),
    ],
)
def test_allowed_merchant_transitions(current, target):
    assert order_state.can_transition(current, target)
    order_state.assert_can_transition(current, target)


@pytest.mark.parametrize(
    "current, target",
    [
        ("draft", "completed"),
        ("draft", "out_for_delivery"),
        ("draft", "draft"),
        ("confirmed", "confirmed"),
        ("out_for_delivery", "cancelled"),
        ("completed", "cancelled"),
        ("cancelled", "confirmed"),
        ("rejected_by_customer", "confirmed"),
        ("confirmed", "rejected_by_customer"),
    ],
)
def test_refused_merchant_transitions(current, target):
    with pytest.raises(InvalidTransitionError):
        order_state.assert_can_transition(current, target)


def test_unknown_target_status_is_a_validation_error():
    with pytest.raises(ValidationError):
        order_state.assert_can_transition("draft", "shipped")


def test_terminal_statuses():
    assert order_state.TERMINAL_STATUSES == {"completed", "cancelled", "rejected_by_customer"}
    for status in order_state.TERMINAL_STATUSES:
        assert order_state.is_terminal(status)
        with pytest.raises(InvalidTransitionError):
            order_state.assert_order_open_for_replacement(status)
    order_state.assert_order_open_for_replacement("out_for_delivery")


def test_customer_can_only_reject_before_dispatch():
    order_state.assert_customer_can_reject("draft")
    order_state.assert_customer_can_reject("confirmed")
    for status in ("out_for_delivery", "completed", "cancelled", "rejected_by_customer"):
        with pytest.raises(InvalidTransitionError):
            order_state.assert_customer_can_reject(status)


def test_replacement_moves():
    order_state.assert_can_transition_replacement("none", "pending")
    order_state.assert_can_transition_replacement("pending", "approved")
    order_state.assert_can_transition_replacement("pending", "rejected")

    for current, target in (
        ("none", "approved"),
        ("pending", "pending"),
        ("approved", "rejected"),
        ("rejected", "approved"),
        ("approved", "pending"),
    ):
        with pytest.raises(InvalidTransitionError):
            order_state.assert_can_transition_replacement(current, target)


def test_decision_target():
    assert order_state.decision_target("approve") == "approved"
    assert order_state.decision_target("reject") == "rejected"
    with pytest.raises(ValidationError):
        order_state.decision_target("maybe")
