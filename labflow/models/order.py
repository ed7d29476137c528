"""Order models: orders, their priced analyses and per-component results."""

import enum

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Float, Numeric, Index, Text,
    UniqueConstraint, event
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship, validates
from labflow.database import Base
from labflow.exceptions import StateViolation
from labflow.utils.timezone import utcnow


class OrderState(str, enum.Enum):
    """Lifecycle states, in the only order an order may pass through them."""

    REGISTERED = "registered"
    HAS_RESULTS = "has_results"
    APPROVED = "approved"
    PRINTED = "printed"


# State -> audit timestamp column stamped when the state is entered
STATE_TIMESTAMPS = [
    (OrderState.REGISTERED, "registered_at"),
    (OrderState.HAS_RESULTS, "results_at"),
    (OrderState.APPROVED, "approved_at"),
    (OrderState.PRINTED, "printed_at"),
]


class Order(Base):
    """Laboratory order for one patient visit."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    attention_number = Column(Integer, unique=True, nullable=False, index=True)

    # Authoritative lifecycle state; timestamps below are audit data
    state = Column(String(20), nullable=False, default=OrderState.REGISTERED.value)

    # External references (patient, site and client/agreement live in other services)
    patient_ref = Column(Integer, nullable=False, index=True)
    site_ref = Column(Integer, nullable=False)
    client_ref = Column(Integer, nullable=True)
    agreement_ref = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    # Transition audit
    registered_at = Column(DateTime, nullable=False)
    registered_by = Column(String(100), nullable=True)
    sample_received_at = Column(DateTime, nullable=True)
    sample_received_by = Column(String(100), nullable=True)
    results_at = Column(DateTime, nullable=True)
    results_by = Column(String(100), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(String(100), nullable=True)
    printed_at = Column(DateTime, nullable=True)
    printed_by = Column(String(100), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    analyses = relationship(
        "OrderAnalysis",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderAnalysis.id"
    )

    __table_args__ = (
        Index("idx_order_state", "state"),
        Index("idx_order_state_approved", "state", "approved_at"),
    )

    @validates("attention_number")
    def _validate_attention_number(self, key, value):
        if self.attention_number is not None and value != self.attention_number:
            raise ValueError(
                f"Attention number {self.attention_number} is immutable once assigned"
            )
        return value

    @property
    def order_state(self) -> OrderState:
        return OrderState(self.state)

    def check_audit_consistency(self):
        """
        Verify the transition timestamps agree with ``state``.

        Every state up to the current one must have its timestamp, no later
        state may have one, and the timestamps must be non-decreasing.

        Raises:
            StateViolation: if the timestamps and the state disagree
        """
        try:
            current = OrderState(self.state)
        except ValueError:
            raise StateViolation(f"Unknown order state '{self.state}'", order_id=self.id, state=self.state)

        reached = True
        previous = None
        for state, column in STATE_TIMESTAMPS:
            stamp = getattr(self, column)
            if reached and stamp is None:
                raise StateViolation(
                    f"Order in state '{current.value}' is missing {column}",
                    order_id=self.id, state=current.value
                )
            if not reached and stamp is not None:
                raise StateViolation(
                    f"Order in state '{current.value}' must not have {column} set",
                    order_id=self.id, state=current.value
                )
            if stamp is not None:
                if previous is not None and stamp < previous:
                    raise StateViolation(
                        f"{column} precedes the previous transition timestamp",
                        order_id=self.id, state=current.value
                    )
                previous = stamp
            if state == current:
                reached = False

    def __repr__(self):
        return f"<Order {self.id} #{self.attention_number} [{self.state}]>"


@event.listens_for(Order, "before_insert")
def _validate_order_before_insert(mapper, connection, target):
    if target.state is None:
        target.state = OrderState.REGISTERED.value
    if target.registered_at is None:
        target.registered_at = utcnow()
    target.check_audit_consistency()


@event.listens_for(Order, "before_update")
def _validate_order_before_update(mapper, connection, target):
    target.check_audit_consistency()


class OrderAnalysis(Base):
    """Priced analysis attached to an order. The price is frozen at order time."""

    __tablename__ = "order_analyses"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    analysis_id = Column(Integer, ForeignKey("analyses.id"), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)

    # Relationships
    order = relationship("Order", back_populates="analyses")
    analysis = relationship("Analysis")
    components = relationship(
        "OrderAnalysisComponent",
        back_populates="order_analysis",
        cascade="all, delete-orphan",
        order_by="OrderAnalysisComponent.position"
    )
    results = relationship(
        "ComponentResult",
        back_populates="order_analysis",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_order_analysis", "order_id", "analysis_id"),
    )

    def __repr__(self):
        return f"<OrderAnalysis Order={self.order_id} Analysis={self.analysis_id}>"


class OrderAnalysisComponent(Base):
    """Component set of an order analysis, frozen from the catalog when the order was created."""

    __tablename__ = "order_analysis_components"

    id = Column(Integer, primary_key=True, index=True)
    order_analysis_id = Column(Integer, ForeignKey("order_analyses.id"), nullable=False, index=True)
    component_id = Column(Integer, ForeignKey("components.id"), nullable=False)
    position = Column(Integer, default=0)

    # Relationships
    order_analysis = relationship("OrderAnalysis", back_populates="components")
    component = relationship("Component")

    __table_args__ = (
        UniqueConstraint("order_analysis_id", "component_id", name="uq_order_analysis_component"),
    )


class ComponentResult(Base):
    """Entered value for one component of one order analysis."""

    __tablename__ = "component_results"

    id = Column(Integer, primary_key=True, index=True)
    order_analysis_id = Column(Integer, ForeignKey("order_analyses.id"), nullable=False, index=True)
    component_id = Column(Integer, ForeignKey("components.id"), nullable=False, index=True)

    value = Column(String(500), nullable=False)
    observations = Column(Text, nullable=True)

    # Display snapshot taken from the catalog when the value was entered.
    # Alert evaluation never reads these; it asks the catalog again.
    unit = Column(String(50), nullable=True)
    reference_text = Column(Text, nullable=True)
    alert_min = Column(Float, nullable=True)
    alert_max = Column(Float, nullable=True)
    method_name = Column(String(100), nullable=True)

    entered_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    order_analysis = relationship("OrderAnalysis", back_populates="results")
    component = relationship("Component")

    __table_args__ = (
        UniqueConstraint("order_analysis_id", "component_id", name="uq_component_result"),
    )

    def __repr__(self):
        return f"<ComponentResult OA={self.order_analysis_id} Component={self.component_id} value={self.value!r}>"
