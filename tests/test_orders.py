"""Tests for order intake, sample reception and work lists."""

import pytest
from decimal import Decimal

from labflow.exceptions import CatalogLookupError, PermissionDenied, StateViolation, ValidationError
from labflow.models import OrderAnalysisComponent
from labflow.models.order import OrderState
from labflow.schemas.order import OrderCreate
from labflow.services.approval_service import ApprovalService
from labflow.services.order_service import OrderService


def order_data(catalog, *codes, price=None):
    return OrderCreate(
        patient_ref=2002,
        site_ref=1,
        analyses=[{"analysis_id": catalog["analyses"][code], "price": price} for code in codes]
    )


class TestCreateOrder:
    """Test order registration."""

    def test_create_order(self, db, catalog, contexts):
        """Test a new order is registered with frozen prices and components."""
        snapshot = OrderService(db).create_order(order_data(catalog, "RENAL", "GLU"), contexts["reception"])

        assert snapshot.state == OrderState.REGISTERED.value
        assert snapshot.registered_by == "reception-user"
        assert snapshot.attention_number == 1
        assert snapshot.total == Decimal("33.50")
        assert [a.analysis_code for a in snapshot.analyses] == ["RENAL", "GLU"]
        assert [c.component_code for c in snapshot.analyses[0].components] == ["CREA", "UREA"]
        assert snapshot.progress.percentage == 0

    def test_attention_numbers_increase(self, db, catalog, contexts):
        """Test each order gets the next attention number."""
        service = OrderService(db)
        first = service.create_order(order_data(catalog, "GLU"), contexts["reception"])
        second = service.create_order(order_data(catalog, "GLU"), contexts["reception"])

        assert second.attention_number == first.attention_number + 1

    def test_explicit_price_overrides_base_price(self, db, catalog, contexts):
        """Test a tariff price is frozen instead of the catalog price."""
        snapshot = OrderService(db).create_order(
            order_data(catalog, "GLU", price=Decimal("6.00")), contexts["reception"]
        )

        assert snapshot.analyses[0].price == Decimal("6.00")

    def test_component_set_is_frozen(self, db, catalog, contexts):
        """Test component links are copied onto the order analysis."""
        snapshot = OrderService(db).create_order(order_data(catalog, "RENAL"), contexts["reception"])

        links = db.query(OrderAnalysisComponent).filter(
            OrderAnalysisComponent.order_analysis_id == snapshot.analyses[0].order_analysis_id
        ).all()
        assert {link.component_id for link in links} == {
            catalog["components"]["CREA"], catalog["components"]["UREA"]
        }

    def test_analysis_without_components_rejected(self, db, catalog, contexts):
        """Test an analysis with no components cannot be ordered."""
        with pytest.raises(ValidationError):
            OrderService(db).create_order(order_data(catalog, "EMPTY"), contexts["reception"])

    def test_unknown_analysis_rejected(self, db, catalog, contexts):
        """Test an unknown analysis raises CatalogLookupError."""
        data = OrderCreate(patient_ref=1, site_ref=1, analyses=[{"analysis_id": 99999}])

        with pytest.raises(CatalogLookupError):
            OrderService(db).create_order(data, contexts["reception"])

    def test_technician_cannot_create(self, db, catalog, contexts):
        """Test creating orders needs orders.create."""
        with pytest.raises(PermissionDenied):
            OrderService(db).create_order(order_data(catalog, "GLU"), contexts["technician"])


class TestReceiveSample:
    """Test sample reception."""

    def test_receive_sample(self, db, order, contexts):
        """Test receiving stamps the sample reception."""
        snapshot = OrderService(db).receive_sample(order.id, contexts["technician"])

        assert snapshot.sample_received_at is not None
        assert snapshot.state == OrderState.REGISTERED.value

    def test_receive_twice_rejected(self, db, order, contexts):
        """Test a sample cannot be received twice."""
        service = OrderService(db)
        service.receive_sample(order.id, contexts["technician"])

        with pytest.raises(StateViolation):
            service.receive_sample(order.id, contexts["technician"])

    def test_receive_after_results_rejected(self, db, order, entries, contexts):
        """Test reception is only recorded on registered orders."""
        ApprovalService(db).submit_bulk_results(order.id, entries(order, CREA="80"), contexts["technician"])

        with pytest.raises(StateViolation):
            OrderService(db).receive_sample(order.id, contexts["technician"])


class TestWorkLists:
    """Test work lists and header counts."""

    def test_pending_results_needs_received_sample(self, db, make_order, contexts):
        """Test only registered orders with a received sample are pending results."""
        received = make_order("GLU")
        make_order("GLU")
        service = OrderService(db)
        service.receive_sample(received.id, contexts["technician"])

        total, orders = service.pending_results(contexts["technician"])

        assert total == 1
        assert orders[0].id == received.id

    def test_pending_approval_and_print(self, db, make_order, entries, contexts):
        """Test orders move between work lists as they progress."""
        first = make_order("GLU")
        second = make_order("GLU")
        approval = ApprovalService(db)
        approval.submit_bulk_results(first.id, entries(first, GLU="90"), contexts["technician"])
        approval.approve_order(second.id, entries(second, GLU="90"), contexts["biologist"])
        approval.confirm_approval(second.id, contexts["biologist"])

        service = OrderService(db)
        total, pending = service.pending_approval(contexts["biologist"])
        assert total == 1
        assert pending[0].id == first.id

        total, to_print = service.approved_pending_print(contexts["reception"])
        assert total == 1
        assert to_print[0].id == second.id

        counts = service.alert_counts(contexts["read_only"])
        assert counts.pending_approval == 1
        assert counts.approved_pending_print == 1
        assert counts.approved_pending_print_detail[0].attention_number == second.attention_number
