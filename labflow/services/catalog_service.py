"""Read-only catalog lookups used by the result lifecycle."""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from sqlalchemy.orm import Session, joinedload
import logging

from labflow.exceptions import CatalogLookupError
from labflow.models.catalog import Analysis, AnalysisComponent, Component

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComponentDefinition:
    """Catalog view of a component at the moment it was looked up."""

    component_id: int
    code: str
    name: str
    unit: Optional[str] = None
    reference_values: List[str] = field(default_factory=list)
    reference_text: Optional[str] = None
    reference_min: Optional[float] = None
    reference_max: Optional[float] = None
    alert_min: Optional[float] = None
    alert_max: Optional[float] = None
    method_name: Optional[str] = None


def _to_definition(component: Component) -> ComponentDefinition:
    reference_values = []
    if component.reference_text:
        reference_values = [
            line.strip() for line in component.reference_text.splitlines() if line.strip()
        ]

    return ComponentDefinition(
        component_id=component.id,
        code=component.code,
        name=component.name,
        unit=component.unit,
        reference_values=reference_values,
        reference_text=component.reference_text,
        reference_min=component.reference_min,
        reference_max=component.reference_max,
        alert_min=component.alert_min,
        alert_max=component.alert_max,
        method_name=component.method.name if component.method else None
    )


class CatalogService:
    """Catalog lookups.

    Every call reads the catalog rows again (``populate_existing``) so that
    bounds edited since an order was loaded are never served stale from
    the session's identity map.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_component_definition(self, component_id: int) -> ComponentDefinition:
        component = (
            self.db.query(Component)
            .options(joinedload(Component.method))
            .filter(Component.id == component_id)
            .populate_existing()
            .first()
        )
        if not component:
            raise CatalogLookupError("component", component_id)
        return _to_definition(component)

    def get_component_definitions(self, component_ids: Iterable[int]) -> Dict[int, ComponentDefinition]:
        """Definitions for several components in one query, keyed by id."""
        ids = set(component_ids)
        if not ids:
            return {}

        components = (
            self.db.query(Component)
            .options(joinedload(Component.method))
            .filter(Component.id.in_(ids))
            .populate_existing()
            .all()
        )
        definitions = {c.id: _to_definition(c) for c in components}

        missing = ids - set(definitions)
        if missing:
            raise CatalogLookupError("component", min(missing))
        return definitions

    def get_analysis(self, analysis_id: int) -> Analysis:
        analysis = self.db.query(Analysis).filter(Analysis.id == analysis_id).first()
        if not analysis:
            raise CatalogLookupError("analysis", analysis_id)
        return analysis

    def get_analysis_component_ids(self, analysis_id: int) -> List[int]:
        """Component ids of an analysis, in report order."""
        links = (
            self.db.query(AnalysisComponent)
            .filter(AnalysisComponent.analysis_id == analysis_id)
            .order_by(AnalysisComponent.position, AnalysisComponent.id)
            .all()
        )
        return [link.component_id for link in links]
