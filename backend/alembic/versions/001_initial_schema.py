"""initial schema: users, sessions, projects, inspections, elements, history, mappings

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

INSPECTION_TEXT_COLUMNS = (
    "design_package_number", "design_package_description", "risk_categories",
    "planned_location", "actual_location", "environmental_conditions",
    "loading_criteria", "survey_data", "material_requirements",
    "installation_method_statement", "removal_method_statement",
    "estimated_quantities", "estimated_cost_design", "estimated_cost_construction",
    "procurement_reference", "budget_comparison", "material_cost_codes",
    "twc_checking_remarks", "ice_checking_remarks", "material_certificates",
    "lab_test_results", "usage_history", "overstressing_record",
    "responsible_site_person", "temporary_works_coordinator",
    "temporary_works_designer", "independent_checking_engineer",
    "design_documentation_ref",
)
INSPECTION_DATE_COLUMNS = (
    "planned_erection_date", "planned_dismantle_date", "actual_erection_date",
    "actual_dismantle_date", "approval_date", "construction_completion_date",
    "permit_to_load_date", "permit_to_remove_date",
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("first_name", sa.String(255)),
        sa.Column("last_name", sa.String(255)),
        sa.Column("profile_image_url", sa.String(1024)),
        sa.Column("display_name", sa.String(255)),
        sa.Column("company", sa.String(255)),
        sa.Column("title", sa.String(255)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "sessions",
        sa.Column("sid", sa.String(255), primary_key=True),
        sa.Column("sess", JSONType, nullable=False),
        sa.Column("expire", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("IDX_session_expire", "sessions", ["expire"])

    op.create_table(
        "projects",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="active"),
        sa.Column("speckle_url", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_modified", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_projects_status", "projects", ["status"])
    op.create_index("idx_projects_last_modified", "projects", ["last_modified"])

    op.create_table(
        "inspections",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("element_id", sa.String(255), nullable=False),
        sa.Column("project_id", sa.String(255), nullable=False),
        sa.Column("inspector", sa.String(255), nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default=""),
        sa.Column("notes", sa.Text()),
        sa.Column("date", sa.String(50), nullable=False),
        sa.Column("last_modified_by", sa.String(255), nullable=False, server_default="user"),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_by_user_id", sa.String(255)),
        sa.Column("last_modified_by_user_id", sa.String(255)),
        sa.Column("global_element_id", sa.String(255)),
        sa.Column("inspection_type", sa.String(50)),
        *[sa.Column(name, sa.Text()) for name in INSPECTION_TEXT_COLUMNS],
        *[sa.Column(name, sa.String(50)) for name in INSPECTION_DATE_COLUMNS],
        sa.CheckConstraint(
            "inspection_type IS NULL OR inspection_type IN ('receipt', 'periodic', 'transfer', 'final', 'maintenance')",
            name="chk_inspection_type",
        ),
        sa.UniqueConstraint("element_id", "project_id", name="uq_inspection_element_project"),
    )
    op.create_index("idx_inspections_project_id", "inspections", ["project_id"])
    op.create_index("idx_inspections_element_id", "inspections", ["element_id"])
    op.create_index("idx_inspections_status", "inspections", ["status"])
    op.create_index("idx_inspections_date", "inspections", ["date"])
    op.create_index("idx_inspections_timestamp", "inspections", ["timestamp"])
    op.create_index("ix_inspections_global_element_id", "inspections", ["global_element_id"])

    op.create_table(
        "elements",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("asset_number", sa.String(100), nullable=False, unique=True),
        sa.Column("ifc_type", sa.String(100), nullable=False),
        sa.Column("asset_type", sa.String(100)),
        sa.Column("category", sa.String(100)),
        sa.Column("description", sa.Text()),
        sa.Column("manufacturer", sa.String(255)),
        sa.Column("serial_number", sa.String(255)),
        sa.Column("qr_code", sa.String(255), unique=True),
        sa.Column("rfid_tag", sa.String(255)),
        sa.Column("specifications", JSONType),
        sa.Column("purchase_date", sa.Date()),
        sa.Column("purchase_value", sa.Numeric(12, 2)),
        sa.Column("current_condition", sa.String(50)),
        sa.Column("current_project_id", sa.String(255)),
        sa.Column("status", sa.String(50), nullable=False, server_default="active"),
        sa.Column("remarks", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by_user_id", sa.String(255)),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('active', 'in_transit', 'pending_approval', 'in_storage', 'retired', 'scrapped')",
            name="chk_element_status",
        ),
    )
    op.create_index("idx_elements_asset_number", "elements", ["asset_number"])
    op.create_index("idx_elements_qr_code", "elements", ["qr_code"])
    op.create_index("idx_elements_current_project", "elements", ["current_project_id"])
    op.create_index("idx_elements_status", "elements", ["status"])
    op.create_index("idx_elements_ifc_type", "elements", ["ifc_type"])

    op.create_table(
        "element_project_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("element_id", sa.String(255), sa.ForeignKey("elements.id", ondelete="CASCADE"), nullable=False),
        sa.Column("project_id", sa.String(255), nullable=False),
        sa.Column("transferred_from_project_id", sa.String(255)),
        sa.Column("transfer_date", sa.DateTime(timezone=True)),
        sa.Column("transferred_by_user_id", sa.String(255)),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("activated_date", sa.DateTime(timezone=True)),
        sa.Column("deactivated_date", sa.DateTime(timezone=True)),
        sa.Column("received_condition", sa.String(50)),
        sa.Column("transferred_condition", sa.String(50)),
        sa.Column("condition_notes", sa.Text()),
        sa.Column("planned_location", sa.Text()),
        sa.Column("actual_location", sa.Text()),
        sa.Column("receipt_inspection_id", sa.String(255)),
        sa.Column("transfer_inspection_id", sa.String(255)),
        sa.Column("transfer_requested_by_user_id", sa.String(255)),
        sa.Column("transfer_request_date", sa.DateTime(timezone=True)),
        sa.Column("source_project_manager_approval", sa.Boolean()),
        sa.Column("source_pm_approved_by_user_id", sa.String(255)),
        sa.Column("source_pm_approval_date", sa.DateTime(timezone=True)),
        sa.Column("dest_project_manager_approval", sa.Boolean()),
        sa.Column("dest_pm_approved_by_user_id", sa.String(255)),
        sa.Column("dest_pm_approval_date", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('active', 'pending_approval', 'transferred_out', 'cancelled')",
            name="chk_eph_status",
        ),
    )
    op.create_index("idx_eph_element_id", "element_project_history", ["element_id"])
    op.create_index("idx_eph_project_id", "element_project_history", ["project_id"])
    op.create_index("idx_eph_element_project", "element_project_history", ["element_id", "project_id"])
    op.create_index("idx_eph_status", "element_project_history", ["status"])
    op.create_index(
        "uq_eph_one_active_per_element",
        "element_project_history",
        ["element_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "element_speckle_mappings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("element_id", sa.String(255), sa.ForeignKey("elements.id", ondelete="CASCADE"), nullable=False),
        sa.Column("project_id", sa.String(255), nullable=False),
        sa.Column("speckle_element_id", sa.String(255), nullable=False),
        sa.Column("speckle_object_url", sa.Text()),
        sa.Column("mapped_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("mapped_by_user_id", sa.String(255)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.Text()),
    )
    op.create_index("idx_esm_element_id", "element_speckle_mappings", ["element_id"])
    op.create_index("idx_esm_project_id", "element_speckle_mappings", ["project_id"])
    op.create_index("idx_esm_speckle_element_id", "element_speckle_mappings", ["speckle_element_id"])
    op.create_index("idx_esm_element_project", "element_speckle_mappings", ["element_id", "project_id"])
    op.create_index("idx_esm_active", "element_speckle_mappings", ["is_active"])
    op.create_index(
        "uq_esm_active_speckle_element",
        "element_speckle_mappings",
        ["project_id", "speckle_element_id"],
        unique=True,
        postgresql_where=sa.text("is_active = true"),
        sqlite_where=sa.text("is_active = 1"),
    )


def downgrade() -> None:
    op.drop_table("element_speckle_mappings")
    op.drop_table("element_project_history")
    op.drop_table("elements")
    op.drop_table("inspections")
    op.drop_table("projects")
    op.drop_table("sessions")
    op.drop_table("users")
