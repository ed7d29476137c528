"""
Order lifecycle state machine.

    registered --save_results--> has_results --approve--> approved --mark_printed--> printed

No state is skipped and nothing moves backwards. This module is the only
place that changes ``Order.state``. It checks the source state, the acting
user's permission and the trigger's guard; deciding whether the guard holds
(how many results exist, whether alerts were acknowledged) is left to the
caller, which reports it through TransitionFacts.
"""

from dataclasses import dataclass
from typing import Dict, Optional
import enum
import logging

from labflow.config import PERM_RESULTS_UPDATE, PERM_RESULTS_APPROVE, PERM_RESULTS_PRINT
from labflow.exceptions import StateViolation
from labflow.models.order import Order, OrderState
from labflow.services.auth_service import ActingContext
from labflow.utils.timezone import utcnow

logger = logging.getLogger(__name__)


class Trigger(str, enum.Enum):
    SAVE_RESULTS = "save_results"
    APPROVE = "approve"
    MARK_PRINTED = "mark_printed"


@dataclass(frozen=True)
class Transition:
    trigger: Trigger
    source: OrderState
    target: OrderState
    permission: str
    timestamp_field: str
    user_field: str


TRANSITIONS: Dict[Trigger, Transition] = {
    Trigger.SAVE_RESULTS: Transition(
        Trigger.SAVE_RESULTS, OrderState.REGISTERED, OrderState.HAS_RESULTS,
        PERM_RESULTS_UPDATE, "results_at", "results_by"
    ),
    Trigger.APPROVE: Transition(
        Trigger.APPROVE, OrderState.HAS_RESULTS, OrderState.APPROVED,
        PERM_RESULTS_APPROVE, "approved_at", "approved_by"
    ),
    Trigger.MARK_PRINTED: Transition(
        Trigger.MARK_PRINTED, OrderState.APPROVED, OrderState.PRINTED,
        PERM_RESULTS_PRINT, "printed_at", "printed_by"
    ),
}

# Timestamp of the state a transition leaves; the new stamp may not precede it
_SOURCE_TIMESTAMP = {
    OrderState.REGISTERED: "registered_at",
    OrderState.HAS_RESULTS: "results_at",
    OrderState.APPROVED: "approved_at",
}


@dataclass(frozen=True)
class TransitionFacts:
    """What the caller knows about the order when asking for a transition."""

    submitted_values: int = 0  # non-empty values in the batch being saved
    stored_results: int = 0  # components currently holding a non-empty result
    alerts_acknowledged: bool = False
    render_succeeded: bool = False


def _guard_failure(transition: Transition, facts: TransitionFacts) -> Optional[str]:
    """Message describing why the guard fails, or None when it holds."""
    if transition.trigger == Trigger.SAVE_RESULTS:
        if facts.submitted_values < 1:
            return "Cannot save results: no result values were submitted"
    elif transition.trigger == Trigger.APPROVE:
        if facts.stored_results < 1:
            return "Cannot approve: the order has no results"
        if not facts.alerts_acknowledged:
            return "Cannot approve: critical values have not been acknowledged"
    elif transition.trigger == Trigger.MARK_PRINTED:
        if not facts.render_succeeded:
            return "Cannot mark as printed: the report was not rendered"
    return None


def check_transition(order: Order, trigger: Trigger, context: ActingContext, facts: TransitionFacts) -> Transition:
    """
    Verify that ``trigger`` may fire on ``order`` without changing anything.

    Raises:
        StateViolation: wrong source state or failed guard
        PermissionDenied: the acting user lacks the trigger's permission
    """
    trigger = Trigger(trigger)
    transition = TRANSITIONS[trigger]
    current = order.order_state

    if current == OrderState.PRINTED:
        raise StateViolation(
            f"Order {order.attention_number} is already printed; no further transitions are allowed",
            order_id=order.id, state=current.value, trigger=trigger.value
        )

    if current != transition.source:
        raise StateViolation(
            f"Cannot {trigger.value.replace('_', ' ')} order {order.attention_number} "
            f"in state '{current.value}' (expected '{transition.source.value}')",
            order_id=order.id, state=current.value, trigger=trigger.value
        )

    context.require(transition.permission)

    failure = _guard_failure(transition, facts)
    if failure:
        raise StateViolation(failure, order_id=order.id, state=current.value, trigger=trigger.value)

    return transition


def apply_transition(order: Order, trigger: Trigger, context: ActingContext, facts: TransitionFacts) -> Order:
    """
    Move ``order`` to the trigger's target state, stamping time and acting user.

    The order is modified in memory only; the caller flushes and commits.
    On any failure the order is left untouched.
    """
    transition = check_transition(order, trigger, context, facts)

    previous = getattr(order, _SOURCE_TIMESTAMP[transition.source])
    stamp = utcnow()
    if previous is not None and stamp < previous:
        stamp = previous

    order.state = transition.target.value
    setattr(order, transition.timestamp_field, stamp)
    setattr(order, transition.user_field, context.user_id)

    logger.info(
        f"Order {order.id} (#{order.attention_number}) {transition.source.value} -> "
        f"{transition.target.value} by {context.user_id}"
    )
    return order


def accepts_results(order: Order) -> bool:
    """Results may be entered until the order is approved."""
    return order.order_state in (OrderState.REGISTERED, OrderState.HAS_RESULTS)
