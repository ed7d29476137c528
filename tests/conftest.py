"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from labflow.main import app
from labflow.database import Base, get_db
from labflow.models import Analysis, AnalysisComponent, Component, Method
from labflow.schemas.results import BulkResultEntry
from labflow.services.auth_service import ActingContext, create_access_token
from labflow.services.order_repository import OrderRepository


# Create test database
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Create a test client with overridden database dependency."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def catalog(db):
    """
    Small catalog:

    - RENAL: creatinine (critical above 110) and urea (no critical bounds)
    - GLU: glucose (critical below 70)
    - HCG: qualitative pregnancy test with bounds that textual values never trip
    - EMPTY: analysis with no components
    """
    method = Method(code="COL", name="Colorimetry")
    db.add(method)
    db.flush()

    creatinine = Component(
        code="CREA", name="Creatinine", unit="umol/L",
        reference_text="45 - 90", reference_min=45, reference_max=90,
        alert_max=110, method_id=method.id
    )
    urea = Component(
        code="UREA", name="Urea", unit="mmol/L",
        reference_text="2.5 - 7.1", reference_min=2.5, reference_max=7.1
    )
    glucose = Component(
        code="GLU", name="Glucose", unit="mg/dL",
        reference_text="70 - 110", reference_min=70, reference_max=110,
        alert_min=70, method_id=method.id
    )
    hcg = Component(
        code="HCG", name="Pregnancy test",
        reference_text="Negativo", alert_min=1, alert_max=2
    )
    db.add_all([creatinine, urea, glucose, hcg])
    db.flush()

    renal = Analysis(code="RENAL", name="Renal panel", base_price=Decimal("25.00"))
    glu = Analysis(code="GLU", name="Fasting glucose", base_price=Decimal("8.50"))
    preg = Analysis(code="HCG", name="Pregnancy test", base_price=Decimal("15.00"))
    empty = Analysis(code="EMPTY", name="Unconfigured analysis", base_price=Decimal("1.00"))
    db.add_all([renal, glu, preg, empty])
    db.flush()

    db.add_all([
        AnalysisComponent(analysis_id=renal.id, component_id=creatinine.id, position=0),
        AnalysisComponent(analysis_id=renal.id, component_id=urea.id, position=1),
        AnalysisComponent(analysis_id=glu.id, component_id=glucose.id, position=0),
        AnalysisComponent(analysis_id=preg.id, component_id=hcg.id, position=0),
    ])
    db.commit()

    return {
        "components": {c.code: c.id for c in (creatinine, urea, glucose, hcg)},
        "analyses": {a.code: a.id for a in (renal, glu, preg, empty)},
    }


@pytest.fixture
def contexts():
    """Acting contexts for each role."""
    return {
        role: ActingContext.for_role(f"{role}-user", role, email=f"{role}@lab.example")
        for role in ("admin", "biologist", "technician", "reception", "read_only")
    }


@pytest.fixture
def make_order(db, catalog):
    """Factory registering an order with the given analysis codes."""
    def _make(*codes, registered_by="reception-user"):
        codes = codes or ("RENAL", "GLU")
        order = OrderRepository(db).create_order(
            patient_ref=1001,
            site_ref=1,
            analyses=[(catalog["analyses"][code], None) for code in codes],
            registered_by=registered_by
        )
        db.commit()
        return order
    return _make


@pytest.fixture
def order(make_order):
    """Registered order with the RENAL and GLU analyses."""
    return make_order("RENAL", "GLU")


@pytest.fixture
def entries(catalog):
    """
    Factory building bulk entries for an order from component codes.

    ``entries(order, CREA="130", UREA="12")``
    """
    def _entries(order, **values):
        by_component = {
            link.component_id: oa.id
            for oa in order.analyses
            for link in oa.components
        }
        result = []
        for code, value in values.items():
            component_id = catalog["components"][code]
            result.append(BulkResultEntry(
                order_analysis_id=by_component[component_id],
                component_id=component_id,
                value=value
            ))
        return result
    return _entries


@pytest.fixture
def headers_for():
    """Factory for bearer headers of a given role."""
    def _headers(role="admin", user_id=None, permissions=None):
        token = create_access_token(
            user_id=user_id or f"{role}-user",
            email=f"{role}@lab.example",
            role=role,
            permissions=permissions
        )
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json"
        }
    return _headers


@pytest.fixture
def auth_headers(headers_for):
    """Authentication headers for API requests (biologist)."""
    return headers_for("biologist")
