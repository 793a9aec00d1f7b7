"""Pydantic schemas for API. Field names are camelCase on the wire."""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Optional
from datetime import date, datetime
from decimal import Decimal


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class RequestModel(CamelModel):
    """Request body; unknown keys are dropped."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# User schemas
class UserProfileOut(CamelModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    company: Optional[str] = None
    title: Optional[str] = None
    profile_image_url: Optional[str] = None


class UserProfileUpdate(RequestModel):
    display_name: Optional[str] = None
    company: Optional[str] = None
    title: Optional[str] = None


class UserProfileResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
    data: UserProfileOut


# Project schemas
class ProjectCreate(RequestModel):
    name: Optional[str] = None
    speckle_url: Optional[str] = None
    status: Optional[str] = None


class ProjectOut(CamelModel):
    id: str
    name: str
    status: str
    speckle_url: Optional[str] = None
    created_at: datetime
    last_modified: datetime


class ProjectResponse(CamelModel):
    success: bool = True
    data: ProjectOut


class ProjectListMetadata(CamelModel):
    version: str
    last_update: datetime
    total_projects: int


class ProjectListResponse(CamelModel):
    success: bool = True
    data: list[ProjectOut]
    metadata: ProjectListMetadata


# Inspection schemas
class InspectionFields(CamelModel):
    """Free-text inspection form fields, grouped as in the inspection panel tabs."""
    global_element_id: Optional[str] = None
    inspection_type: Optional[str] = Field(
        default=None, pattern="^(receipt|periodic|transfer|final|maintenance)$"
    )

    # TW package info
    design_package_number: Optional[str] = None
    design_package_description: Optional[str] = None
    risk_categories: Optional[str] = None

    # Planning & scheduling
    planned_erection_date: Optional[str] = None
    planned_dismantle_date: Optional[str] = None
    actual_erection_date: Optional[str] = None
    actual_dismantle_date: Optional[str] = None

    # Location & environment
    planned_location: Optional[str] = None
    actual_location: Optional[str] = None
    environmental_conditions: Optional[str] = None

    # Technical
    loading_criteria: Optional[str] = None
    survey_data: Optional[str] = None
    material_requirements: Optional[str] = None
    installation_method_statement: Optional[str] = None
    removal_method_statement: Optional[str] = None

    # Commercial
    estimated_quantities: Optional[str] = None
    estimated_cost_design: Optional[str] = None
    estimated_cost_construction: Optional[str] = None
    procurement_reference: Optional[str] = None
    budget_comparison: Optional[str] = None
    material_cost_codes: Optional[str] = None

    # Quality & compliance
    twc_checking_remarks: Optional[str] = None
    ice_checking_remarks: Optional[str] = None
    material_certificates: Optional[str] = None
    lab_test_results: Optional[str] = None
    usage_history: Optional[str] = None
    overstressing_record: Optional[str] = None

    # Stakeholders
    responsible_site_person: Optional[str] = None
    temporary_works_coordinator: Optional[str] = None
    temporary_works_designer: Optional[str] = None
    independent_checking_engineer: Optional[str] = None

    # Documentation
    design_documentation_ref: Optional[str] = None
    approval_date: Optional[str] = None
    construction_completion_date: Optional[str] = None
    permit_to_load_date: Optional[str] = None
    permit_to_remove_date: Optional[str] = None


INSPECTION_FORM_FIELDS: tuple[str, ...] = tuple(InspectionFields.model_fields)


class InspectionSave(InspectionFields, RequestModel):
    element_id: Optional[str] = None
    project_id: Optional[str] = None
    inspector: Optional[str] = None
    status: Optional[str] = None
    notes: Optional[str] = None
    date: Optional[str] = None
    last_modified_by: Optional[str] = None
    # Optimistic concurrency token; omit for last-write-wins.
    version: Optional[int] = None


class InspectionOut(InspectionFields):
    id: str
    element_id: str
    project_id: str
    inspector: str
    status: str
    notes: Optional[str] = None
    date: str
    last_modified_by: str
    timestamp: datetime
    version: int
    created_by_user_id: Optional[str] = None
    last_modified_by_user_id: Optional[str] = None


class InspectionResponse(CamelModel):
    success: bool = True
    data: Optional[InspectionOut] = None


class InspectionListResponse(CamelModel):
    success: bool = True
    data: list[InspectionOut]


# Element schemas
class ElementEditable(RequestModel):
    asset_type: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    manufacturer: Optional[str] = None
    serial_number: Optional[str] = None
    rfid_tag: Optional[str] = None
    specifications: Optional[dict[str, Any]] = None
    purchase_date: Optional[date] = None
    purchase_value: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    current_condition: Optional[str] = Field(default=None, pattern="^(Excellent|Good|Fair|Poor)$")
    remarks: Optional[str] = None


class ElementCreate(ElementEditable):
    ifc_type: Optional[str] = None
    current_project_id: Optional[str] = None
    # Optional immediate BIM link
    speckle_element_id: Optional[str] = None
    speckle_object_url: Optional[str] = None
    # Raw viewer node the element was registered from
    speckle_node: Optional[dict[str, Any]] = None


class ElementUpdate(ElementEditable):
    ifc_type: Optional[str] = None


class ElementOut(CamelModel):
    id: str
    asset_number: str
    ifc_type: str
    asset_type: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    manufacturer: Optional[str] = None
    serial_number: Optional[str] = None
    qr_code: Optional[str] = None
    rfid_tag: Optional[str] = None
    specifications: Optional[dict[str, Any]] = None
    purchase_date: Optional[date] = None
    purchase_value: Optional[Decimal] = None
    current_condition: Optional[str] = None
    current_project_id: Optional[str] = None
    status: str
    remarks: Optional[str] = None
    created_at: Optional[datetime] = None
    created_by_user_id: Optional[str] = None
    updated_at: Optional[datetime] = None


class HistoryOut(CamelModel):
    id: int
    element_id: str
    project_id: str
    transferred_from_project_id: Optional[str] = None
    transfer_date: Optional[datetime] = None
    transferred_by_user_id: Optional[str] = None
    status: str
    activated_date: Optional[datetime] = None
    deactivated_date: Optional[datetime] = None
    received_condition: Optional[str] = None
    transferred_condition: Optional[str] = None
    condition_notes: Optional[str] = None
    planned_location: Optional[str] = None
    actual_location: Optional[str] = None
    receipt_inspection_id: Optional[str] = None
    transfer_inspection_id: Optional[str] = None
    transfer_requested_by_user_id: Optional[str] = None
    transfer_request_date: Optional[datetime] = None
    source_project_manager_approval: Optional[bool] = None
    source_project_manager_approved_by_user_id: Optional[str] = None
    source_project_manager_approval_date: Optional[datetime] = None
    destination_project_manager_approval: Optional[bool] = None
    destination_project_manager_approved_by_user_id: Optional[str] = None
    destination_project_manager_approval_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class HistoryEntryOut(CamelModel):
    history_record: HistoryOut
    project: Optional[ProjectOut] = None


class MappingOut(CamelModel):
    id: int
    element_id: str
    project_id: str
    speckle_element_id: str
    speckle_object_url: Optional[str] = None
    mapped_date: Optional[datetime] = None
    mapped_by_user_id: Optional[str] = None
    is_active: bool
    notes: Optional[str] = None


class MappingDetailOut(MappingOut):
    project_name: Optional[str] = None


class ElementDetailsOut(CamelModel):
    element: ElementOut
    qr_code: Optional[str] = None
    mappings: list[MappingDetailOut]
    inspections: list[InspectionOut]


# Transfer workflow schemas
class TransferRequest(RequestModel):
    destination_project_id: Optional[str] = None
    transfer_condition: Optional[str] = None
    condition_notes: Optional[str] = None
    transfer_inspection_id: Optional[str] = None


class TransferResult(CamelModel):
    message: str
    history_record: HistoryOut


class ApproveRequest(RequestModel):
    project_id: Optional[str] = None
    approval_type: Optional[str] = None


class ApproveResult(CamelModel):
    message: str
    history_record: HistoryOut
    both_approved: bool


class ReceiveRequest(RequestModel):
    project_id: Optional[str] = None
    received_condition: Optional[str] = None
    condition_notes: Optional[str] = None
    receipt_inspection_id: Optional[str] = None
    actual_location: Optional[str] = None


class ReceiveResult(CamelModel):
    message: str
    element: ElementOut


class CancelTransferRequest(RequestModel):
    condition_notes: Optional[str] = None


class CancelTransferResult(CamelModel):
    message: str
    element: ElementOut
    history_record: HistoryOut


# Linking schemas
class LinkRequest(RequestModel):
    project_id: Optional[str] = None
    speckle_element_id: Optional[str] = None
    speckle_object_url: Optional[str] = None
    notes: Optional[str] = None


class LinkedAssetOut(CamelModel):
    id: Optional[str] = None
    asset_number: Optional[str] = None
    status: Optional[str] = None
    condition: Optional[str] = None
    project_id: str
    is_active: bool


class LinkCheckOut(CamelModel):
    linked: bool
    asset: Optional[LinkedAssetOut] = None


class ElementLookupOut(CamelModel):
    element: ElementOut
    linkable: bool
    action: str
    message: Optional[str] = None


# Viewer schemas
class ColorBucketOut(CamelModel):
    color: str
    element_ids: list[str]


class ViewerColorsOut(CamelModel):
    project_id: str
    buckets: dict[str, ColorBucketOut]


class ElementPropertiesOut(CamelModel):
    id: str
    type: str
    name: Optional[str] = None
    ifc_type: Optional[str] = None
    category: Optional[str] = None
    level: Optional[str] = None
    properties: dict[str, Any]


# System schemas
class ChangelogResponse(CamelModel):
    success: bool = True
    changes: list[dict[str, Any]]
    metadata: dict[str, Any]


class StatsOut(CamelModel):
    total_inspections: int
    total_projects: int
    total_elements: int
    server: str


class StatsResponse(CamelModel):
    success: bool = True
    data: StatsOut


class ExportOut(CamelModel):
    project_name: str
    project_id: str
    export_date: datetime
    total_inspections: int
    inspections: list[InspectionOut]


class ExportResponse(CamelModel):
    success: bool = True
    data: ExportOut
