"""
Approval gate: result saving, two-step approval and print marking.

Approval is a request/response pair. ``approve_order`` saves the submitted
results and reports the critical values found; ``confirm_approval`` approves
once every reported critical value has been acknowledged. Declining keeps
the results saved by the first call. Each public method is one unit of
work: it commits on success, rolls back and re-raises on failure, and never
retries.
"""

from dataclasses import dataclass, field
from typing import Callable, Iterable, List
from sqlalchemy.orm import Session
import logging

from labflow.config import settings, PERM_RESULTS_READ, PERM_RESULTS_UPDATE, PERM_RESULTS_APPROVE, PERM_RESULTS_PRINT
from labflow.exceptions import (
    LifecycleError, StateViolation, ApprovalDeclined, ConfirmationRequired
)
from labflow.models.order import Order, OrderState
from labflow.schemas.results import BulkResultEntry, OrderSnapshot, ApprovedReport
from labflow.services.alert_evaluator import CriticalAlert, evaluate_alerts
from labflow.services.audit_service import (
    AuditService, ACTION_SAVE_RESULTS, ACTION_APPROVAL_CHECK, ACTION_APPROVE,
    ACTION_DECLINE_APPROVAL, ACTION_MARK_PRINTED
)
from labflow.services.auth_service import ActingContext
from labflow.services.catalog_service import CatalogService
from labflow.services.ingestion import IngestionReport, ingest
from labflow.services.lifecycle import Trigger, TransitionFacts, check_transition
from labflow.services.order_repository import OrderRepository
from labflow.utils.timezone import format_local

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApprovalCheck:
    """Outcome of the first approval call."""

    order_id: int
    alerts: List[CriticalAlert] = field(default_factory=list)

    @property
    def requires_confirmation(self) -> bool:
        return bool(self.alerts)


def _acknowledged_keys(acknowledged: Iterable) -> set:
    """
    Accept CriticalAlert objects, acknowledgement schemas or
    (component_id, order_analysis_id, kind, value, threshold) tuples.
    """
    keys = set()
    for item in acknowledged or ():
        if isinstance(item, tuple):
            component_id, order_analysis_id, kind, value, threshold = item
        else:
            component_id, order_analysis_id, kind, value, threshold = (
                item.component_id, item.order_analysis_id, item.kind, item.value, item.threshold
            )
        keys.add((component_id, order_analysis_id, kind, str(value).strip(), float(threshold)))
    return keys


def _is_acknowledged(alert: CriticalAlert, acknowledged: set) -> bool:
    # An acknowledgement without an analysis link covers the component in every link
    component_id, _, kind, value, threshold = alert.key
    return alert.key in acknowledged or (component_id, None, kind, value, threshold) in acknowledged


class ApprovalService:
    """Orchestrates ingestion, alert evaluation and lifecycle transitions."""

    def __init__(self, db: Session, catalog: CatalogService = None, audit: AuditService = None):
        self.db = db
        self.catalog = catalog or CatalogService(db)
        self.repository = OrderRepository(db, self.catalog)
        self.audit = audit or AuditService(db)

    # ------------------------------------------------------------------
    # Unit-of-work helper
    # ------------------------------------------------------------------

    def _unit_of_work(self, action: str, order_id: int, context: ActingContext, work: Callable):
        """Run ``work``, commit, and audit the outcome. Failures roll back and propagate."""
        try:
            result = work()
            self.db.commit()
        except LifecycleError as e:
            self.db.rollback()
            logger.warning(f"{action} on order {order_id} by {context.user_id} failed: {e.message}")
            self.audit.log_context_action(
                context, action, order_id, success=False, failure_reason=e.message
            )
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"{action} on order {order_id} by {context.user_id} failed: {e}")
            raise
        return result

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_order_snapshot(self, order_id: int, context: ActingContext) -> OrderSnapshot:
        context.require(PERM_RESULTS_READ)
        return self.repository.get_order_with_results(order_id)

    def evaluate_order_alerts(self, order_id: int, context: ActingContext) -> List[CriticalAlert]:
        """Current critical values of an order, against freshly read catalog bounds."""
        context.require(PERM_RESULTS_READ)
        order = self.repository.get_order(order_id)
        return evaluate_alerts(self.repository.alert_readings(order))

    # ------------------------------------------------------------------
    # Saving results
    # ------------------------------------------------------------------

    def _save(
        self,
        order: Order,
        entries: List[BulkResultEntry],
        context: ActingContext,
        require_values: bool = True
    ) -> IngestionReport:
        """Ingest and, for a registered order, advance it to has_results.

        With ``require_values`` off, a batch of only blanks leaves a registered
        order where it is instead of failing the save guard.
        """
        report = ingest(order, entries, self.repository, context)

        if order.order_state == OrderState.REGISTERED and (require_values or report.saved):
            if (
                settings.APPROVAL_REQUIRES_SAMPLE_RECEIVED
                and report.saved
                and order.sample_received_at is None
            ):
                raise StateViolation(
                    f"Sample of order {order.attention_number} has not been received",
                    order_id=order.id, state=order.state, trigger=Trigger.SAVE_RESULTS.value
                )
            self.repository.transition_state(
                order, Trigger.SAVE_RESULTS, context,
                TransitionFacts(submitted_values=report.saved)
            )
        return report

    def submit_bulk_results(
        self,
        order_id: int,
        entries: List[BulkResultEntry],
        context: ActingContext
    ) -> OrderSnapshot:
        """
        Save results without approving.

        A registered order moves to has_results when at least one non-empty
        value is saved; saving only blanks on a registered order is a
        StateViolation. Orders already in has_results stay there.
        """
        context.require(PERM_RESULTS_UPDATE)
        order = self.repository.get_order(order_id)

        report = self._unit_of_work(
            ACTION_SAVE_RESULTS, order_id, context,
            lambda: self._save(order, entries, context)
        )
        self.audit.log_context_action(
            context, ACTION_SAVE_RESULTS, order_id,
            details={"saved": report.saved, "skipped_blank": report.skipped_blank}
        )
        return self.repository.get_order_with_results(order_id)

    # ------------------------------------------------------------------
    # Two-step approval
    # ------------------------------------------------------------------

    def _check_approvable(self, order: Order, context: ActingContext) -> int:
        """Approve guard minus the alert acknowledgement; returns the stored result count."""
        stored = self.repository.stored_result_count(order)
        if stored == 0 and order.order_state in (OrderState.REGISTERED, OrderState.HAS_RESULTS):
            raise StateViolation(
                f"Cannot approve order {order.attention_number}: it has no results",
                order_id=order.id, state=order.state, trigger=Trigger.APPROVE.value
            )
        check_transition(
            order, Trigger.APPROVE, context,
            TransitionFacts(stored_results=stored, alerts_acknowledged=True)
        )
        return stored

    def approve_order(
        self,
        order_id: int,
        entries: List[BulkResultEntry],
        context: ActingContext
    ) -> ApprovalCheck:
        """
        First approval call: save the submitted results and report critical values.

        The results are committed before alerts are evaluated, so they survive
        a later decline. Nothing is approved here.

        Raises:
            ValidationError: the batch is malformed (nothing saved)
            StateViolation: the order cannot be approved (e.g. no results)
        """
        context.require(PERM_RESULTS_APPROVE)
        order = self.repository.get_order(order_id)

        if entries:
            report = self._unit_of_work(
                ACTION_SAVE_RESULTS, order_id, context,
                lambda: self._save(order, entries, context, require_values=False)
            )
            if report.saved:
                self.audit.log_context_action(
                    context, ACTION_SAVE_RESULTS, order_id,
                    details={"saved": report.saved, "skipped_blank": report.skipped_blank}
                )
            order = self.repository.get_order(order_id)

        try:
            self._check_approvable(order, context)
        except LifecycleError as e:
            self.audit.log_context_action(
                context, ACTION_APPROVAL_CHECK, order_id, success=False, failure_reason=e.message
            )
            raise

        alerts = evaluate_alerts(self.repository.alert_readings(order))
        if alerts:
            logger.warning(
                f"Order {order_id} has {len(alerts)} critical value(s): "
                + ", ".join(f"{a.component_name}={a.value} ({a.kind} {a.threshold})" for a in alerts)
            )
        return ApprovalCheck(order_id=order_id, alerts=alerts)

    def confirm_approval(
        self,
        order_id: int,
        context: ActingContext,
        acknowledged_alerts: Iterable = ()
    ) -> OrderSnapshot:
        """
        Second approval call: approve if every current critical value is acknowledged.

        Alerts are evaluated again here against the catalog as it is now, so a
        value or bound that changed after the first call needs a new
        acknowledgement.

        Raises:
            StateViolation: the order is not approvable
            ConfirmationRequired: some current alert was not acknowledged
        """
        context.require(PERM_RESULTS_APPROVE)
        order = self.repository.get_order(order_id)
        acknowledged = _acknowledged_keys(acknowledged_alerts)

        def approve():
            stored = self._check_approvable(order, context)
            alerts = evaluate_alerts(self.repository.alert_readings(order))
            pending = [a for a in alerts if not _is_acknowledged(a, acknowledged)]
            if pending:
                raise ConfirmationRequired(order_id, alerts)

            self.repository.transition_state(
                order, Trigger.APPROVE, context,
                TransitionFacts(stored_results=stored, alerts_acknowledged=True)
            )
            return alerts

        alerts = self._unit_of_work(ACTION_APPROVE, order_id, context, approve)
        self.audit.log_context_action(
            context, ACTION_APPROVE, order_id,
            details={"acknowledged_alerts": [a.to_dict() for a in alerts]}
        )
        return self.repository.get_order_with_results(order_id)

    def decline_approval(self, order_id: int, context: ActingContext):
        """
        Record that the operator declined to confirm critical values.

        The order keeps its state and its saved results.

        Raises:
            StateViolation: the order is not awaiting approval
            ApprovalDeclined: otherwise, as the outcome reported to the screen
        """
        context.require(PERM_RESULTS_APPROVE)
        order = self.repository.get_order(order_id)
        if order.order_state != OrderState.HAS_RESULTS:
            message = (
                f"Cannot decline approval of order {order.attention_number} "
                f"in state '{order.state}' (expected 'has_results')"
            )
            self.audit.log_context_action(
                context, ACTION_DECLINE_APPROVAL, order_id, success=False, failure_reason=message
            )
            raise StateViolation(message, order_id=order.id, state=order.state, trigger="decline")

        alerts = evaluate_alerts(self.repository.alert_readings(order))

        logger.info(f"Approval of order {order_id} declined by {context.user_id} ({len(alerts)} alerts)")
        self.audit.log_context_action(
            context, ACTION_DECLINE_APPROVAL, order_id,
            details={"alerts": [a.to_dict() for a in alerts]}
        )
        raise ApprovalDeclined(order_id, alert_count=len(alerts))

    # ------------------------------------------------------------------
    # Print / notification dispatcher boundary
    # ------------------------------------------------------------------

    def get_approved_snapshot(self, order_id: int, context: ActingContext) -> ApprovedReport:
        """Read-only snapshot of an approved (or already printed) order."""
        context.require(PERM_RESULTS_READ)
        order = self.repository.get_order(order_id)
        if order.order_state not in (OrderState.APPROVED, OrderState.PRINTED):
            raise StateViolation(
                f"Order {order.attention_number} is not approved (state '{order.state}')",
                order_id=order.id, state=order.state
            )

        snapshot = self.repository.build_snapshot(order)
        return ApprovedReport(
            order=snapshot,
            registered_at_display=format_local(snapshot.registered_at),
            approved_at_display=format_local(snapshot.approved_at),
            printed_at_display=format_local(snapshot.printed_at),
            timezone=settings.LAB_TIMEZONE
        )

    def mark_printed(self, order_id: int, context: ActingContext, rendered: bool = True) -> OrderSnapshot:
        """Record a successful print/render cycle of an approved order."""
        context.require(PERM_RESULTS_PRINT)
        order = self.repository.get_order(order_id)

        self._unit_of_work(
            ACTION_MARK_PRINTED, order_id, context,
            lambda: self.repository.transition_state(
                order, Trigger.MARK_PRINTED, context,
                TransitionFacts(render_succeeded=rendered)
            )
        )
        self.audit.log_context_action(context, ACTION_MARK_PRINTED, order_id)
        return self.repository.get_order_with_results(order_id)
