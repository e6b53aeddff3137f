"""Data models for asset manager."""

import dataclasses
import types
import typing
from dataclasses import dataclass, field
from typing import Any

ASSET_STATUSES = (
    "Active",
    "Available",
    "Assigned",
    "Deployed",
    "In Repair",
    "Maintenance",
    "In Stock",
    "Retired",
    "Disposed",
    "Lost",
    "Stolen",
)

MAINTENANCE_STATUSES = ("Scheduled", "In Progress", "Completed", "Cancelled", "Overdue")
VIOLATION_SEVERITIES = ("Low", "Medium", "High", "Critical")
VIOLATION_STATUSES = ("Open", "In Progress", "Resolved", "Closed")
COMPLIANCE_TYPES = ("License Compliance", "Security Compliance", "Regulatory Compliance", "Policy Compliance")
COMPLIANCE_STATUSES = ("Compliant", "Non-Compliant", "Under Review", "Remediation Required")
INTEGRATION_TYPES = ("Discovery Tool", "CMDB", "ITSM", "Procurement", "Financial", "HR System")
INTEGRATION_STATUSES = ("Active", "Inactive", "Error", "Syncing")
IMPORT_STATUSES = ("pending", "processing", "completed", "failed")
BILLING_CYCLES = ("Monthly", "Quarterly", "Annually", "One-time")


@dataclass
class Asset:
    """A tracked hardware asset."""

    id: str = ""
    name: str = ""
    tag: str = ""
    category: str = ""
    model: str = ""
    manufacturer: str = ""
    serial_number: str = ""
    status: str = "Available"
    assigned_to: str | None = None
    location: str | None = None
    purchase_date: str | None = None
    purchase_cost: float = 0.0
    warranty_expiry: str | None = None
    notes: str = ""
    current_value: float | None = None
    monthly_lease: float | None = None


@dataclass
class License:
    """A software license with a fixed number of seats."""

    id: str = ""
    name: str = ""
    product_key: str = ""
    seats: int = 0
    available_seats: int = 0
    manufacturer: str = ""
    category: str = ""
    expiry_date: str | None = None
    cost: float = 0.0
    vendor: str = ""
    license_type: str = "subscription"
    billing_cycle: str | None = None
    notes: str = ""

    @property
    def used_seats(self) -> int:
        return self.seats - self.available_seats


@dataclass
class Accessory:
    id: str = ""
    name: str = ""
    category: str = ""
    manufacturer: str = ""
    model: str = ""
    quantity: int = 0
    available_quantity: int = 0
    location: str = ""
    purchase_date: str | None = None
    purchase_cost: float = 0.0
    notes: str = ""


@dataclass
class Consumable:
    id: str = ""
    name: str = ""
    category: str = ""
    manufacturer: str = ""
    model: str = ""
    quantity: int = 0
    min_quantity: int = 0
    location: str = ""
    item_number: str = ""
    notes: str = ""


@dataclass
class Component:
    id: str = ""
    name: str = ""
    category: str = ""
    manufacturer: str = ""
    model: str = ""
    serial_number: str = ""
    quantity: int = 0
    location: str = ""
    purchase_date: str | None = None
    purchase_cost: float = 0.0
    notes: str = ""


@dataclass
class Person:
    """A person who can be assigned assets."""

    id: str = ""
    first_name: str = ""
    last_name: str = ""
    username: str = ""
    email: str = ""
    department: str = ""
    location: str = ""
    job_title: str = ""
    manager: str = ""
    employee_number: str = ""
    phone: str = ""
    activated: bool = True
    last_login: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class PredefinedKit:
    """A named bundle of asset, accessory, license and consumable ids."""

    id: str = ""
    name: str = ""
    description: str = ""
    category: str = ""
    assets: list[str] = field(default_factory=list)
    accessories: list[str] = field(default_factory=list)
    licenses: list[str] = field(default_factory=list)
    consumables: list[str] = field(default_factory=list)
    created_date: str | None = None


@dataclass
class RequestableItem:
    id: str = ""
    name: str = ""
    category: str = ""
    description: str = ""
    image: str = ""
    requestable: bool = True
    quantity: int = 0
    location: str = ""
    notes: str = ""


@dataclass
class Alert:
    id: str = ""
    type: str = "warning"
    title: str = ""
    message: str = ""
    priority: str = "medium"
    read: bool = False
    entity_id: str | None = None
    entity_type: str | None = None
    created_at: str | None = None


@dataclass
class MaintenanceRecord:
    id: str = ""
    asset_id: str | None = None
    date: str | None = None
    type: str = "Preventive"
    description: str = ""
    cost: float = 0.0
    vendor: str = ""
    technician: str = ""
    status: str = "Scheduled"
    scheduled_date: str | None = None
    completed_date: str | None = None
    next_maintenance_date: str | None = None
    parts_used: list[str] = field(default_factory=list)


@dataclass
class ComplianceCheck:
    id: str = ""
    type: str = "License Compliance"
    status: str = "Under Review"
    last_checked: str | None = None
    next_check: str | None = None
    auditor: str = ""
    notes: str = ""


@dataclass
class PolicyViolation:
    id: str = ""
    type: str = ""
    severity: str = "Medium"
    description: str = ""
    detected_date: str | None = None
    resolved_date: str | None = None
    assigned_to: str = ""
    status: str = "Open"


@dataclass
class FieldMapping:
    """Maps one field of an integration payload onto a record field."""

    source_field: str
    target_field: str
    transformation: str | None = None


@dataclass
class IntegrationError:
    timestamp: str
    error: str
    details: str = ""
    resolved: bool = False


@dataclass
class Integration:
    """An external system that feeds records through field mappings."""

    id: str = ""
    name: str = ""
    type: str = "Discovery Tool"
    endpoint: str = ""
    api_key: str = ""
    last_sync: str | None = None
    sync_frequency: str = "Daily"
    status: str = "Inactive"
    mappings: list[FieldMapping] = field(default_factory=list)
    error_log: list[IntegrationError] = field(default_factory=list)

    def __post_init__(self) -> None:
        # Rows come back from the backend with plain dicts
        self.mappings = [FieldMapping(**m) if isinstance(m, dict) else m for m in self.mappings or []]
        self.error_log = [IntegrationError(**e) if isinstance(e, dict) else e for e in self.error_log or []]


@dataclass
class ImportRecord:
    id: str = ""
    file_name: str = ""
    type: str = "assets"
    status: str = "pending"
    records_processed: int = 0
    total_records: int = 0
    errors: list[str] = field(default_factory=list)
    import_date: str | None = None


@dataclass
class Report:
    id: str = ""
    name: str = ""
    type: str = "asset"
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)
    last_run: str | None = None
    created_by: str = ""


@dataclass
class DashboardMetrics:
    """Summary numbers shown on the dashboard."""

    assets: int = 0
    licenses: int = 0
    accessories: int = 0
    consumables: int = 0
    components: int = 0
    people: int = 0
    predefined_kits: int = 0
    requestable_items: int = 0
    alerts: int = 0
    expiring_warranties: int = 0
    expiring_licenses: int = 0
    maintenance_due: int = 0
    compliance_issues: int = 0
    total_value: float = 0.0


@dataclass
class ChangeEvent:
    """A row change on a table, from a realtime feed or a snapshot diff."""

    type: str
    kind: str
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None


@dataclass(frozen=True)
class RecordKind:
    """Binds a short kind name to its model, table and REST endpoint."""

    name: str
    model: type
    table: str
    endpoint: str
    search_fields: tuple[str, ...] = ("name",)


KINDS: dict[str, RecordKind] = {
    kind.name: kind
    for kind in (
        RecordKind("asset", Asset, "assets", "/assets", ("name", "tag", "category", "manufacturer")),
        RecordKind("license", License, "licenses", "/licenses", ("name", "category", "manufacturer")),
        RecordKind("accessory", Accessory, "accessories", "/accessories", ("name", "category", "manufacturer")),
        RecordKind("consumable", Consumable, "consumables", "/consumables", ("name", "category", "manufacturer")),
        RecordKind("component", Component, "components", "/components", ("name", "category", "manufacturer")),
        RecordKind(
            "person", Person, "people", "/users", ("first_name", "last_name", "username", "email", "department")
        ),
        RecordKind("kit", PredefinedKit, "predefined_kits", "/predefined-kits", ("name", "category", "description")),
        RecordKind(
            "requestable", RequestableItem, "requestable_items", "/requestable-items", ("name", "category", "location")
        ),
        RecordKind("alert", Alert, "alerts", "/alerts", ("title", "message", "type")),
        RecordKind(
            "maintenance", MaintenanceRecord, "maintenance_records", "/maintenance/records", ("description", "vendor")
        ),
        RecordKind(
            "compliance_check", ComplianceCheck, "compliance_checks", "/compliance/checks", ("type", "auditor", "notes")
        ),
        RecordKind("violation", PolicyViolation, "policy_violations", "/compliance/violations", ("description", "type")),
        RecordKind("integration", Integration, "integrations", "/integrations", ("name", "type", "endpoint")),
        RecordKind("import", ImportRecord, "import_records", "/import/history", ("file_name", "type")),
        RecordKind("report", Report, "reports", "/reports", ("name", "type", "description")),
    )
}

_ALIASES = {"user": "person", "users": "person", "people": "person", "predefined_kit": "kit"}


def get_kind(name: str) -> RecordKind:
    """Look up a record kind by its name, table name or a known alias."""
    key = name.lower().strip().replace("-", "_")
    key = _ALIASES.get(key, key)
    if key in KINDS:
        return KINDS[key]
    for kind in KINDS.values():
        if kind.table == key:
            return kind
    raise ValueError(f"Unknown record kind: '{name}'. Known kinds: {', '.join(KINDS)}")


def kind_of(record: Any) -> RecordKind:
    """Return the kind that a record instance belongs to."""
    for kind in KINDS.values():
        if isinstance(record, kind.model):
            return kind
    raise ValueError(f"Not a known record type: {type(record).__name__}")


def _coerce(value: Any, field_type: Any) -> Any:
    """Coerce a raw (usually string) value to a dataclass field type."""
    if value is None:
        return None
    origin = typing.get_origin(field_type)
    if origin in (typing.Union, types.UnionType):
        args = [arg for arg in typing.get_args(field_type) if arg is not type(None)]
        if value == "":
            return None
        return _coerce(value, args[0]) if len(args) == 1 else value
    if origin is list:
        if isinstance(value, str):
            return [item.strip() for item in value.split(";") if item.strip()]
        return list(value)
    if field_type is bool and isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y", "on")
    if field_type is int and isinstance(value, str):
        return int(float(value)) if value.strip() else 0
    if field_type is float and isinstance(value, str):
        return float(value) if value.strip() else 0.0
    return value


def record_from_dict(kind: RecordKind | str, data: dict[str, Any], coerce: bool = False) -> Any:
    """Build a record of ``kind`` from a mapping, ignoring unknown keys.

    Args:
        kind: Record kind or kind name
        data: Field values keyed by field name
        coerce: If True, convert string values to the declared field types

    Returns:
        Record instance
    """
    if isinstance(kind, str):
        kind = get_kind(kind)
    hints = typing.get_type_hints(kind.model)
    values = {}
    for f in dataclasses.fields(kind.model):
        if f.name not in data:
            continue
        value = data[f.name]
        values[f.name] = _coerce(value, hints[f.name]) if coerce else value
    return kind.model(**values)


def coerce_fields(kind: RecordKind | str, data: dict[str, Any]) -> dict[str, Any]:
    """Convert string values to the field types of ``kind``; unknown keys are kept as given."""
    if isinstance(kind, str):
        kind = get_kind(kind)
    hints = typing.get_type_hints(kind.model)
    return {key: _coerce(value, hints[key]) if key in hints else value for key, value in data.items()}


def record_to_dict(record: Any) -> dict[str, Any]:
    """Convert a record into a plain dict."""
    return dataclasses.asdict(record)
