"""SQLAlchemy models for the TWX asset registry, inspections and BIM links."""
from sqlalchemy import (
    JSON, Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Index,
    Integer, Numeric, String, Text, UniqueConstraint, text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from .database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")

PROJECT_STATUSES = ("active", "pending", "completed", "archived")
ELEMENT_STATUSES = ("active", "in_transit", "pending_approval", "in_storage", "retired", "scrapped")
HISTORY_STATUSES = ("active", "pending_approval", "transferred_out", "cancelled")
CONDITION_TYPES = ("Excellent", "Good", "Fair", "Poor")
INSPECTION_TYPES = ("receipt", "periodic", "transfer", "final", "maintenance")


def _uuid_str() -> str:
    return str(uuid.uuid4())


class User(Base):
    """User model. The id is the identity provider's subject claim."""
    __tablename__ = "users"

    id = Column(String(255), primary_key=True, default=_uuid_str)
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    profile_image_url = Column(String(1024), nullable=True)
    display_name = Column(String(255), nullable=True)
    company = Column(String(255), nullable=True)
    title = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class SessionRecord(Base):
    """Server-side login session, referenced by the session cookie."""
    __tablename__ = "sessions"

    sid = Column(String(255), primary_key=True)
    sess = Column(JSONType, nullable=False)
    expire = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("IDX_session_expire", "expire"),
    )


class Project(Base):
    """BIM project pointing at an externally hosted model."""
    __tablename__ = "projects"

    id = Column(String(255), primary_key=True)
    name = Column(String(255), nullable=False)
    status = Column(String(50), nullable=False, default="active")
    speckle_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_modified = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_projects_status", "status"),
        Index("idx_projects_last_modified", "last_modified"),
    )


class Inspection(Base):
    """Inspection record for one BIM element within one project."""
    __tablename__ = "inspections"

    id = Column(String(255), primary_key=True)
    element_id = Column(String(255), nullable=False)
    project_id = Column(String(255), nullable=False)
    inspector = Column(String(255), nullable=False, default="")
    status = Column(String(20), nullable=False, default="")
    notes = Column(Text, nullable=True)
    date = Column(String(50), nullable=False)
    last_modified_by = Column(String(255), nullable=False, default="user")
    timestamp = Column(DateTime(timezone=True), nullable=False)
    version = Column(Integer, nullable=False, default=1)

    # User tracking (server-side only)
    created_by_user_id = Column(String(255), nullable=True)
    last_modified_by_user_id = Column(String(255), nullable=True)

    # Material reuse tracking
    global_element_id = Column(String(255), nullable=True, index=True)
    inspection_type = Column(String(50), nullable=True)

    # TW package info
    design_package_number = Column(Text, nullable=True)
    design_package_description = Column(Text, nullable=True)
    risk_categories = Column(Text, nullable=True)

    # Planning & scheduling
    planned_erection_date = Column(String(50), nullable=True)
    planned_dismantle_date = Column(String(50), nullable=True)
    actual_erection_date = Column(String(50), nullable=True)
    actual_dismantle_date = Column(String(50), nullable=True)

    # Location & environment
    planned_location = Column(Text, nullable=True)
    actual_location = Column(Text, nullable=True)
    environmental_conditions = Column(Text, nullable=True)

    # Technical requirements
    loading_criteria = Column(Text, nullable=True)
    survey_data = Column(Text, nullable=True)
    material_requirements = Column(Text, nullable=True)
    installation_method_statement = Column(Text, nullable=True)
    removal_method_statement = Column(Text, nullable=True)

    # Commercial
    estimated_quantities = Column(Text, nullable=True)
    estimated_cost_design = Column(Text, nullable=True)
    estimated_cost_construction = Column(Text, nullable=True)
    procurement_reference = Column(Text, nullable=True)
    budget_comparison = Column(Text, nullable=True)
    material_cost_codes = Column(Text, nullable=True)

    # Quality & compliance
    twc_checking_remarks = Column(Text, nullable=True)
    ice_checking_remarks = Column(Text, nullable=True)
    material_certificates = Column(Text, nullable=True)
    lab_test_results = Column(Text, nullable=True)
    usage_history = Column(Text, nullable=True)
    overstressing_record = Column(Text, nullable=True)

    # Stakeholders
    responsible_site_person = Column(Text, nullable=True)
    temporary_works_coordinator = Column(Text, nullable=True)
    temporary_works_designer = Column(Text, nullable=True)
    independent_checking_engineer = Column(Text, nullable=True)

    # Documentation
    design_documentation_ref = Column(Text, nullable=True)
    approval_date = Column(String(50), nullable=True)
    construction_completion_date = Column(String(50), nullable=True)
    permit_to_load_date = Column(String(50), nullable=True)
    permit_to_remove_date = Column(String(50), nullable=True)

    __table_args__ = (
        CheckConstraint(
            inspection_type.in_(INSPECTION_TYPES) | (inspection_type == None),  # noqa: E711
            name="chk_inspection_type",
        ),
        UniqueConstraint("element_id", "project_id", name="uq_inspection_element_project"),
        Index("idx_inspections_project_id", "project_id"),
        Index("idx_inspections_element_id", "element_id"),
        Index("idx_inspections_status", "status"),
        Index("idx_inspections_date", "date"),
        Index("idx_inspections_timestamp", "timestamp"),
    )
    # Each flushed update bumps version; a stale version raises StaleDataError.
    __mapper_args__ = {"version_id_col": version}


class Element(Base):
    """Physical asset tracked independently of any one project."""
    __tablename__ = "elements"

    id = Column(String(255), primary_key=True, default=_uuid_str)
    asset_number = Column(String(100), unique=True, nullable=False)
    ifc_type = Column(String(100), nullable=False)
    asset_type = Column(String(100), nullable=True)
    category = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    manufacturer = Column(String(255), nullable=True)
    serial_number = Column(String(255), nullable=True)
    qr_code = Column(String(255), unique=True, nullable=True)
    rfid_tag = Column(String(255), nullable=True)
    specifications = Column(JSONType, nullable=True)
    purchase_date = Column(Date, nullable=True)
    purchase_value = Column(Numeric(12, 2), nullable=True)
    current_condition = Column(String(50), nullable=True)
    current_project_id = Column(String(255), nullable=True)
    status = Column(String(50), nullable=False, default="active")
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_by_user_id = Column(String(255), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(status.in_(ELEMENT_STATUSES), name="chk_element_status"),
        Index("idx_elements_asset_number", "asset_number"),
        Index("idx_elements_qr_code", "qr_code"),
        Index("idx_elements_current_project", "current_project_id"),
        Index("idx_elements_status", "status"),
        Index("idx_elements_ifc_type", "ifc_type"),
    )

    history = relationship("ElementProjectHistory", back_populates="element", cascade="all, delete-orphan")
    mappings = relationship("ElementSpeckleMapping", back_populates="element", cascade="all, delete-orphan")


class ElementProjectHistory(Base):
    """One stay of an element in a project, including the transfer approvals."""
    __tablename__ = "element_project_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    element_id = Column(String(255), ForeignKey("elements.id", ondelete="CASCADE"), nullable=False)
    project_id = Column(String(255), nullable=False)
    transferred_from_project_id = Column(String(255), nullable=True)
    transfer_date = Column(DateTime(timezone=True), nullable=True)
    transferred_by_user_id = Column(String(255), nullable=True)
    status = Column(String(50), nullable=False)
    activated_date = Column(DateTime(timezone=True), nullable=True)
    deactivated_date = Column(DateTime(timezone=True), nullable=True)
    received_condition = Column(String(50), nullable=True)
    transferred_condition = Column(String(50), nullable=True)
    condition_notes = Column(Text, nullable=True)
    planned_location = Column(Text, nullable=True)
    actual_location = Column(Text, nullable=True)
    receipt_inspection_id = Column(String(255), nullable=True)
    transfer_inspection_id = Column(String(255), nullable=True)

    # Transfer approval workflow
    transfer_requested_by_user_id = Column(String(255), nullable=True)
    transfer_request_date = Column(DateTime(timezone=True), nullable=True)
    source_project_manager_approval = Column("source_project_manager_approval", Boolean, nullable=True)
    source_project_manager_approved_by_user_id = Column("source_pm_approved_by_user_id", String(255), nullable=True)
    source_project_manager_approval_date = Column("source_pm_approval_date", DateTime(timezone=True), nullable=True)
    destination_project_manager_approval = Column("dest_project_manager_approval", Boolean, nullable=True)
    destination_project_manager_approved_by_user_id = Column("dest_pm_approved_by_user_id", String(255), nullable=True)
    destination_project_manager_approval_date = Column("dest_pm_approval_date", DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(status.in_(HISTORY_STATUSES), name="chk_eph_status"),
        Index("idx_eph_element_id", "element_id"),
        Index("idx_eph_project_id", "project_id"),
        Index("idx_eph_element_project", "element_id", "project_id"),
        Index("idx_eph_status", "status"),
        # At most one active stay per element.
        Index(
            "uq_eph_one_active_per_element",
            "element_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    element = relationship("Element", back_populates="history")


class ElementSpeckleMapping(Base):
    """Link between a physical element and a BIM element inside a project's model."""
    __tablename__ = "element_speckle_mappings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    element_id = Column(String(255), ForeignKey("elements.id", ondelete="CASCADE"), nullable=False)
    project_id = Column(String(255), nullable=False)
    speckle_element_id = Column(String(255), nullable=False)
    speckle_object_url = Column(Text, nullable=True)
    mapped_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    mapped_by_user_id = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_esm_element_id", "element_id"),
        Index("idx_esm_project_id", "project_id"),
        Index("idx_esm_speckle_element_id", "speckle_element_id"),
        Index("idx_esm_element_project", "element_id", "project_id"),
        Index("idx_esm_active", "is_active"),
        # A BIM element maps to at most one asset while the link is active.
        Index(
            "uq_esm_active_speckle_element",
            "project_id",
            "speckle_element_id",
            unique=True,
            postgresql_where=text("is_active = true"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    element = relationship("Element", back_populates="mappings")
