"""Catalog models: areas, methods, sample types, analyses and their components."""

from sqlalchemy import Column, Integer, String, Float, Numeric, ForeignKey, Index, Text, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from labflow.database import Base


class Area(Base):
    """Laboratory area (Hematology, Biochemistry, ...)."""

    __tablename__ = "areas"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True)

    def __repr__(self):
        return f"<Area {self.code}: {self.name}>"


class Method(Base):
    """Analytical method (Colorimetry, Flow cytometry, ...)."""

    __tablename__ = "methods"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True)

    def __repr__(self):
        return f"<Method {self.code}: {self.name}>"


class SampleType(Base):
    """Sample type (Serum, Whole blood, Urine, ...)."""

    __tablename__ = "sample_types"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True)

    def __repr__(self):
        return f"<SampleType {self.code}: {self.name}>"


class Analysis(Base):
    """Orderable analysis. Its measurable items are linked through AnalysisComponent."""

    __tablename__ = "analyses"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    area_id = Column(Integer, ForeignKey("areas.id"), nullable=True, index=True)
    method_id = Column(Integer, ForeignKey("methods.id"), nullable=True)
    sample_type_id = Column(Integer, ForeignKey("sample_types.id"), nullable=True)
    base_price = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, default=True)

    # Relationships
    area = relationship("Area")
    method = relationship("Method")
    sample_type = relationship("SampleType")
    component_links = relationship(
        "AnalysisComponent",
        back_populates="analysis",
        cascade="all, delete-orphan",
        order_by="AnalysisComponent.position"
    )

    def __repr__(self):
        return f"<Analysis {self.code}: {self.name}>"


class Component(Base):
    """Measurable item with its units, reference range and critical-value bounds."""

    __tablename__ = "components"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    unit = Column(String(50), nullable=True)

    # Reference range shown on reports; reference_text may hold several lines
    reference_text = Column(Text, nullable=True)
    reference_min = Column(Float, nullable=True)
    reference_max = Column(Float, nullable=True)

    # Critical-value bounds. NULL means no bound on that side.
    alert_min = Column(Float, nullable=True)
    alert_max = Column(Float, nullable=True)

    area_id = Column(Integer, ForeignKey("areas.id"), nullable=True)
    method_id = Column(Integer, ForeignKey("methods.id"), nullable=True)
    position = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)

    # Relationships
    area = relationship("Area")
    method = relationship("Method")
    analysis_links = relationship("AnalysisComponent", back_populates="component")

    def __repr__(self):
        return f"<Component {self.code}: {self.name}>"


class AnalysisComponent(Base):
    """Components that make up an analysis (junction table)."""

    __tablename__ = "analysis_components"

    id = Column(Integer, primary_key=True, index=True)
    analysis_id = Column(Integer, ForeignKey("analyses.id"), nullable=False, index=True)
    component_id = Column(Integer, ForeignKey("components.id"), nullable=False, index=True)
    position = Column(Integer, default=0)

    # Relationships
    analysis = relationship("Analysis", back_populates="component_links")
    component = relationship("Component", back_populates="analysis_links")

    __table_args__ = (
        UniqueConstraint("analysis_id", "component_id", name="uq_analysis_component"),
        Index("idx_analysis_component", "analysis_id", "component_id"),
    )

    def __repr__(self):
        return f"<AnalysisComponent Analysis={self.analysis_id} Component={self.component_id}>"
