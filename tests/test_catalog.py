"""Tests for catalog lookups."""

import pytest

from labflow.exceptions import CatalogLookupError
from labflow.models import Component
from labflow.services.catalog_service import CatalogService


class TestCatalogService:
    """Test component definition lookups."""

    def test_get_component_definition(self, db, catalog):
        """Test a component definition carries unit, reference lines, bounds and method."""
        definition = CatalogService(db).get_component_definition(catalog["components"]["CREA"])

        assert definition.code == "CREA"
        assert definition.unit == "umol/L"
        assert definition.reference_values == ["45 - 90"]
        assert definition.alert_min is None
        assert definition.alert_max == 110
        assert definition.method_name == "Colorimetry"

    def test_component_without_method(self, db, catalog):
        """Test a component with no method has no method name."""
        definition = CatalogService(db).get_component_definition(catalog["components"]["UREA"])

        assert definition.method_name is None
        assert definition.alert_min is None and definition.alert_max is None

    def test_unknown_component(self, db, catalog):
        """Test looking up a missing component raises a 404 lookup error."""
        with pytest.raises(CatalogLookupError) as exc_info:
            CatalogService(db).get_component_definition(99999)

        assert exc_info.value.status_code == 404

    def test_definition_reflects_edited_bounds(self, db, catalog):
        """Test a bound edited after a first lookup is read again."""
        service = CatalogService(db)
        component_id = catalog["components"]["CREA"]
        assert service.get_component_definition(component_id).alert_max == 110

        db.query(Component).filter(Component.id == component_id).update(
            {Component.alert_max: 50}, synchronize_session=False
        )
        db.commit()

        assert service.get_component_definition(component_id).alert_max == 50

    def test_get_component_definitions(self, db, catalog):
        """Test several definitions come back keyed by id, and a missing id fails the lookup."""
        service = CatalogService(db)
        ids = [catalog["components"]["CREA"], catalog["components"]["GLU"]]

        definitions = service.get_component_definitions(ids)

        assert set(definitions) == set(ids)
        with pytest.raises(CatalogLookupError):
            service.get_component_definitions(ids + [99999])
