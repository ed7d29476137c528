"""Order persistence: loading, intake, result upserts, transitions and snapshots."""

from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload
import logging

from labflow.exceptions import OrderNotFound, ValidationError
from labflow.models.order import (
    Order, OrderAnalysis, OrderAnalysisComponent, ComponentResult, OrderState
)
from labflow.schemas.results import (
    OrderSnapshot, AnalysisResultsView, ComponentResultView, ProgressView
)
from labflow.services.alert_evaluator import AlertReading, is_out_of_reference_range
from labflow.services.catalog_service import CatalogService
from labflow.services.lifecycle import Trigger, TransitionFacts, apply_transition
from labflow.utils.timezone import utcnow

logger = logging.getLogger(__name__)


class OrderRepository:
    """SQLAlchemy-backed order repository.

    Methods flush but never commit; the calling service decides when a
    unit of work is complete.
    """

    def __init__(self, db: Session, catalog: CatalogService = None):
        self.db = db
        self.catalog = catalog or CatalogService(db)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def get_order(self, order_id: int) -> Order:
        order = (
            self.db.query(Order)
            .options(
                selectinload(Order.analyses).selectinload(OrderAnalysis.components),
                selectinload(Order.analyses).selectinload(OrderAnalysis.results),
                selectinload(Order.analyses).selectinload(OrderAnalysis.analysis),
            )
            .filter(Order.id == order_id)
            .first()
        )
        if not order:
            raise OrderNotFound(order_id)
        return order

    def get_order_with_results(self, order_id: int) -> OrderSnapshot:
        return self.build_snapshot(self.get_order(order_id))

    def list_by_state(
        self,
        state: OrderState,
        limit: int = 200,
        sample_received: Optional[bool] = None
    ) -> Tuple[int, List[Order]]:
        """Orders in ``state``, oldest first, with the total count before the limit."""
        query = self.db.query(Order).filter(Order.state == OrderState(state).value)
        if sample_received is True:
            query = query.filter(Order.sample_received_at.isnot(None))
        elif sample_received is False:
            query = query.filter(Order.sample_received_at.is_(None))

        total = query.count()
        orders = query.order_by(Order.registered_at, Order.id).limit(limit).all()
        return total, orders

    def count_by_state(self, state: OrderState) -> int:
        return self.db.query(Order).filter(Order.state == OrderState(state).value).count()

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def next_attention_number(self) -> int:
        current = self.db.query(func.max(Order.attention_number)).scalar()
        return (current or 0) + 1

    def create_order(
        self,
        patient_ref: int,
        site_ref: int,
        analyses: List[Tuple[int, Optional[Decimal]]],
        registered_by: str,
        client_ref: int = None,
        agreement_ref: int = None,
        notes: str = None
    ) -> Order:
        """
        Register an order with its priced analyses and frozen component sets.

        Args:
            analyses: (analysis_id, price) pairs; a None price takes the catalog base price
        """
        if not analyses:
            raise ValidationError("An order needs at least one analysis")

        order = Order(
            attention_number=self.next_attention_number(),
            state=OrderState.REGISTERED.value,
            patient_ref=patient_ref,
            site_ref=site_ref,
            client_ref=client_ref,
            agreement_ref=agreement_ref,
            notes=notes,
            registered_at=utcnow(),
            registered_by=registered_by
        )

        for analysis_id, price in analyses:
            analysis = self.catalog.get_analysis(analysis_id)
            component_ids = self.catalog.get_analysis_component_ids(analysis_id)
            if not component_ids:
                raise ValidationError(f"Analysis {analysis.code} has no components configured")

            order_analysis = OrderAnalysis(
                analysis_id=analysis.id,
                price=price if price is not None else (analysis.base_price or Decimal("0"))
            )
            for position, component_id in enumerate(component_ids):
                order_analysis.components.append(
                    OrderAnalysisComponent(component_id=component_id, position=position)
                )
            order.analyses.append(order_analysis)

        self.db.add(order)
        self.db.flush()
        logger.info(f"Registered order {order.id} with attention number {order.attention_number}")
        return order

    # ------------------------------------------------------------------
    # Results and transitions
    # ------------------------------------------------------------------

    def upsert_results(self, order: Order, entries, context) -> int:
        """Insert or overwrite one ComponentResult per (order_analysis_id, component_id)."""
        by_link: Dict[int, OrderAnalysis] = {oa.id: oa for oa in order.analyses}
        definitions = self.catalog.get_component_definitions(e.component_id for e in entries)

        for entry in entries:
            order_analysis = by_link[entry.order_analysis_id]
            existing = next(
                (r for r in order_analysis.results if r.component_id == entry.component_id),
                None
            )
            if existing is None:
                existing = ComponentResult(
                    order_analysis_id=entry.order_analysis_id,
                    component_id=entry.component_id
                )
                order_analysis.results.append(existing)

            definition = definitions[entry.component_id]
            existing.value = entry.value
            if entry.observations is not None:
                existing.observations = entry.observations
            existing.unit = definition.unit
            existing.reference_text = definition.reference_text
            existing.alert_min = definition.alert_min
            existing.alert_max = definition.alert_max
            existing.method_name = definition.method_name
            existing.entered_by = context.user_id

        self.db.flush()
        return len(entries)

    def transition_state(self, order: Order, trigger: Trigger, context, facts: TransitionFacts) -> Order:
        """Apply a lifecycle transition and flush it (write-time validation runs here)."""
        apply_transition(order, trigger, context, facts)
        self.db.flush()
        return order

    def mark_sample_received(self, order: Order, user_id: str) -> Order:
        order.sample_received_at = utcnow()
        order.sample_received_by = user_id
        self.db.flush()
        return order

    # ------------------------------------------------------------------
    # Reads used by the approval gate
    # ------------------------------------------------------------------

    @staticmethod
    def stored_result_count(order: Order) -> int:
        """Components currently holding a non-empty result."""
        return sum(
            1
            for order_analysis in order.analyses
            for result in order_analysis.results
            if result.value and result.value.strip()
        )

    def alert_readings(self, order: Order) -> List[AlertReading]:
        """Current values paired with alert bounds freshly read from the catalog."""
        for order_analysis in order.analyses:
            self.db.expire(order_analysis, ["results"])

        results = [
            (order_analysis, link, next((r for r in order_analysis.results if r.component_id == link.component_id), None))
            for order_analysis in order.analyses
            for link in order_analysis.components
        ]
        definitions = self.catalog.get_component_definitions(link.component_id for _, link, _ in results)

        readings = []
        for order_analysis, link, result in results:
            if result is None:
                continue
            definition = definitions[link.component_id]
            readings.append(AlertReading(
                component_id=link.component_id,
                component_name=definition.name,
                value=result.value,
                alert_min=definition.alert_min,
                alert_max=definition.alert_max,
                order_analysis_id=order_analysis.id
            ))
        return readings

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def build_snapshot(self, order: Order) -> OrderSnapshot:
        component_ids = [
            link.component_id for oa in order.analyses for link in oa.components
        ]
        definitions = self.catalog.get_component_definitions(component_ids)

        analyses = []
        total_components = 0
        completed = 0
        total_price = Decimal("0")

        for order_analysis in order.analyses:
            results = {r.component_id: r for r in order_analysis.results}
            components = []
            for link in order_analysis.components:
                definition = definitions[link.component_id]
                result = results.get(link.component_id)
                has_result = bool(result and result.value and result.value.strip())

                total_components += 1
                if has_result:
                    completed += 1

                components.append(ComponentResultView(
                    component_id=definition.component_id,
                    component_code=definition.code,
                    component_name=definition.name,
                    unit=result.unit if result else definition.unit,
                    reference_text=result.reference_text if result else definition.reference_text,
                    reference_min=definition.reference_min,
                    reference_max=definition.reference_max,
                    alert_min=definition.alert_min,
                    alert_max=definition.alert_max,
                    method_name=result.method_name if result else definition.method_name,
                    result_id=result.id if result else None,
                    value=result.value if result else None,
                    observations=result.observations if result else None,
                    has_result=has_result,
                    out_of_range=is_out_of_reference_range(
                        result.value if result else None,
                        definition.reference_min,
                        definition.reference_max
                    )
                ))

            price = Decimal(order_analysis.price or 0)
            total_price += price
            analyses.append(AnalysisResultsView(
                order_analysis_id=order_analysis.id,
                analysis_id=order_analysis.analysis_id,
                analysis_code=order_analysis.analysis.code,
                analysis_name=order_analysis.analysis.name,
                price=price,
                components=components
            ))

        percentage = round(completed * 100 / total_components) if total_components else 0

        return OrderSnapshot(
            id=order.id,
            attention_number=order.attention_number,
            state=order.state,
            patient_ref=order.patient_ref,
            site_ref=order.site_ref,
            client_ref=order.client_ref,
            agreement_ref=order.agreement_ref,
            notes=order.notes,
            registered_at=order.registered_at,
            registered_by=order.registered_by,
            sample_received_at=order.sample_received_at,
            results_at=order.results_at,
            results_by=order.results_by,
            approved_at=order.approved_at,
            approved_by=order.approved_by,
            printed_at=order.printed_at,
            printed_by=order.printed_by,
            total=total_price,
            analyses=analyses,
            progress=ProgressView(total=total_components, completed=completed, percentage=percentage)
        )
