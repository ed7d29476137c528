"""Tests for the order lifecycle state machine."""

import pytest
from datetime import timedelta

from labflow.exceptions import StateViolation, PermissionDenied
from labflow.models.order import OrderState
from labflow.services.lifecycle import (
    TRANSITIONS, Trigger, TransitionFacts, apply_transition, check_transition, accepts_results
)
from labflow.utils.timezone import utcnow


SAVE_OK = TransitionFacts(submitted_values=1)
APPROVE_OK = TransitionFacts(stored_results=1, alerts_acknowledged=True)
PRINT_OK = TransitionFacts(render_succeeded=True)


def advance(db, order, context, to):
    """Walk ``order`` forward through the legal transitions up to state ``to``."""
    steps = [
        (OrderState.HAS_RESULTS, Trigger.SAVE_RESULTS, SAVE_OK),
        (OrderState.APPROVED, Trigger.APPROVE, APPROVE_OK),
        (OrderState.PRINTED, Trigger.MARK_PRINTED, PRINT_OK),
    ]
    for target, trigger, facts in steps:
        if order.order_state == to:
            break
        if order.order_state != TRANSITIONS[trigger].source:
            continue
        apply_transition(order, trigger, context, facts)
        db.commit()
    return order


class TestTransitions:
    """Test the legal path registered -> has_results -> approved -> printed."""

    def test_full_path(self, db, order, contexts):
        """Test every transition stamps its timestamp and user."""
        admin = contexts["admin"]
        advance(db, order, admin, OrderState.PRINTED)

        assert order.order_state == OrderState.PRINTED
        assert order.registered_at <= order.results_at <= order.approved_at <= order.printed_at
        assert order.results_by == "admin-user"
        assert order.approved_by == "admin-user"
        assert order.printed_by == "admin-user"

    @pytest.mark.parametrize("state,trigger", [
        (OrderState.REGISTERED, Trigger.APPROVE),
        (OrderState.REGISTERED, Trigger.MARK_PRINTED),
        (OrderState.HAS_RESULTS, Trigger.SAVE_RESULTS),
        (OrderState.HAS_RESULTS, Trigger.MARK_PRINTED),
        (OrderState.APPROVED, Trigger.SAVE_RESULTS),
        (OrderState.APPROVED, Trigger.APPROVE),
    ])
    def test_skips_and_backward_moves_rejected(self, db, order, contexts, state, trigger):
        """Test any transition other than the next one raises and leaves state unchanged."""
        admin = contexts["admin"]
        advance(db, order, admin, state)
        facts = TransitionFacts(
            submitted_values=1, stored_results=1, alerts_acknowledged=True, render_succeeded=True
        )

        with pytest.raises(StateViolation):
            apply_transition(order, trigger, admin, facts)

        assert order.order_state == state

    @pytest.mark.parametrize("trigger", list(Trigger))
    def test_printed_is_terminal(self, db, order, contexts, trigger):
        """Test every trigger is rejected once the order is printed."""
        admin = contexts["admin"]
        advance(db, order, admin, OrderState.PRINTED)
        facts = TransitionFacts(
            submitted_values=1, stored_results=1, alerts_acknowledged=True, render_succeeded=True
        )

        with pytest.raises(StateViolation) as exc_info:
            check_transition(order, trigger, admin, facts)

        assert "already printed" in exc_info.value.message
        assert order.order_state == OrderState.PRINTED


class TestGuards:
    """Test transition guards."""

    def test_save_requires_a_value(self, order, contexts):
        """Test saving with no submitted values is rejected."""
        with pytest.raises(StateViolation):
            apply_transition(order, Trigger.SAVE_RESULTS, contexts["admin"], TransitionFacts())
        assert order.order_state == OrderState.REGISTERED
        assert order.results_at is None

    def test_approve_requires_results(self, db, order, contexts):
        """Test approving with zero stored results is rejected."""
        admin = contexts["admin"]
        advance(db, order, admin, OrderState.HAS_RESULTS)

        with pytest.raises(StateViolation):
            apply_transition(order, Trigger.APPROVE, admin, TransitionFacts(alerts_acknowledged=True))
        assert order.order_state == OrderState.HAS_RESULTS

    def test_approve_requires_acknowledged_alerts(self, db, order, contexts):
        """Test approving with unacknowledged alerts is rejected."""
        admin = contexts["admin"]
        advance(db, order, admin, OrderState.HAS_RESULTS)

        with pytest.raises(StateViolation):
            apply_transition(order, Trigger.APPROVE, admin, TransitionFacts(stored_results=3))
        assert order.approved_at is None

    def test_print_requires_render(self, db, order, contexts):
        """Test marking printed without a successful render is rejected."""
        admin = contexts["admin"]
        advance(db, order, admin, OrderState.APPROVED)

        with pytest.raises(StateViolation):
            apply_transition(order, Trigger.MARK_PRINTED, admin, TransitionFacts())
        assert order.order_state == OrderState.APPROVED


class TestPermissions:
    """Test each trigger's permission."""

    def test_technician_cannot_approve(self, db, order, contexts):
        """Test approval needs results.approve."""
        advance(db, order, contexts["technician"], OrderState.HAS_RESULTS)

        with pytest.raises(PermissionDenied):
            apply_transition(order, Trigger.APPROVE, contexts["technician"], APPROVE_OK)
        assert order.order_state == OrderState.HAS_RESULTS

    def test_read_only_cannot_save(self, order, contexts):
        """Test saving results needs results.update."""
        with pytest.raises(PermissionDenied):
            apply_transition(order, Trigger.SAVE_RESULTS, contexts["read_only"], SAVE_OK)

    def test_reception_can_mark_printed(self, db, order, contexts):
        """Test reception holds results.print."""
        advance(db, order, contexts["biologist"], OrderState.APPROVED)

        apply_transition(order, Trigger.MARK_PRINTED, contexts["reception"], PRINT_OK)
        assert order.printed_by == "reception-user"


class TestTimestamps:
    """Test timestamp monotonicity and write-time consistency."""

    def test_stamp_never_precedes_previous(self, db, order, contexts):
        """Test a transition stamp is clamped to the previous state's stamp."""
        future = utcnow() + timedelta(hours=1)
        order.registered_at = future
        db.commit()

        apply_transition(order, Trigger.SAVE_RESULTS, contexts["admin"], SAVE_OK)
        db.commit()

        assert order.results_at == future

    def test_inconsistent_timestamps_rejected_on_write(self, db, order):
        """Test a state without its timestamp cannot be written."""
        order.state = OrderState.APPROVED.value

        with pytest.raises(StateViolation):
            db.flush()
        db.rollback()

    def test_attention_number_is_immutable(self, order):
        """Test the attention number cannot be reassigned."""
        with pytest.raises(ValueError):
            order.attention_number = order.attention_number + 100


class TestAcceptsResults:
    """Test when result entry is open."""

    def test_open_until_approved(self, db, order, contexts):
        """Test results are accepted in registered and has_results only."""
        admin = contexts["admin"]
        assert accepts_results(order) is True

        advance(db, order, admin, OrderState.HAS_RESULTS)
        assert accepts_results(order) is True

        advance(db, order, admin, OrderState.APPROVED)
        assert accepts_results(order) is False
