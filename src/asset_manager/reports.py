"""Export row builders and audit reports."""

from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from asset_manager.metrics import (
    ACTIVE_ASSET_STATUSES,
    field_value,
    group_by_field,
    stock_status,
    sum_field,
    to_datetime,
    to_number,
    used_seats,
    utilization,
)

logger = structlog.get_logger()

AUDIT_REPORT_TYPES = ("license-audit", "asset-audit", "security-compliance", "policy-violations", "comprehensive")

SECURITY_RECOMMENDATIONS = [
    "Implement regular security patch updates",
    "Conduct quarterly security assessments",
    "Review access control policies",
    "Update incident response procedures",
]


def _text(value: Any, default: str = "") -> Any:
    return default if value is None or value == "" else value


def asset_row(asset: Any) -> dict[str, Any]:
    return {
        "Asset Tag": field_value(asset, "tag"),
        "Name": field_value(asset, "name"),
        "Category": field_value(asset, "category"),
        "Manufacturer": field_value(asset, "manufacturer"),
        "Model": field_value(asset, "model"),
        "Serial Number": field_value(asset, "serial_number"),
        "Status": field_value(asset, "status"),
        "Assigned To": _text(field_value(asset, "assigned_to"), "Unassigned"),
        "Location": field_value(asset, "location"),
        "Purchase Date": field_value(asset, "purchase_date"),
        "Purchase Cost": field_value(asset, "purchase_cost"),
        "Warranty Expiry": _text(field_value(asset, "warranty_expiry"), "N/A"),
        "Notes": _text(field_value(asset, "notes")),
    }


def license_row(license: Any) -> dict[str, Any]:
    return {
        "License Name": field_value(license, "name"),
        "Product Key": field_value(license, "product_key"),
        "Manufacturer": field_value(license, "manufacturer"),
        "Category": field_value(license, "category"),
        "Total Seats": field_value(license, "seats"),
        "Available Seats": field_value(license, "available_seats"),
        "Used Seats": int(used_seats(license)),
        "Expiry Date": _text(field_value(license, "expiry_date"), "N/A"),
        "Notes": _text(field_value(license, "notes")),
    }


def accessory_row(accessory: Any) -> dict[str, Any]:
    quantity = to_number(field_value(accessory, "quantity"))
    available = to_number(field_value(accessory, "available_quantity"))
    return {
        "Name": field_value(accessory, "name"),
        "Category": field_value(accessory, "category"),
        "Manufacturer": field_value(accessory, "manufacturer"),
        "Model": field_value(accessory, "model"),
        "Total Quantity": field_value(accessory, "quantity"),
        "Available Quantity": field_value(accessory, "available_quantity"),
        "Assigned Quantity": int(quantity - available),
        "Location": field_value(accessory, "location"),
        "Purchase Date": field_value(accessory, "purchase_date"),
        "Purchase Cost": field_value(accessory, "purchase_cost"),
    }


def consumable_row(consumable: Any) -> dict[str, Any]:
    return {
        "Name": field_value(consumable, "name"),
        "Category": field_value(consumable, "category"),
        "Manufacturer": field_value(consumable, "manufacturer"),
        "Model": field_value(consumable, "model"),
        "Current Quantity": field_value(consumable, "quantity"),
        "Minimum Quantity": field_value(consumable, "min_quantity"),
        "Status": stock_status(field_value(consumable, "quantity"), field_value(consumable, "min_quantity")),
        "Location": field_value(consumable, "location"),
        "Item Number": _text(field_value(consumable, "item_number")),
    }


def component_row(component: Any) -> dict[str, Any]:
    return {
        "Name": field_value(component, "name"),
        "Category": field_value(component, "category"),
        "Manufacturer": field_value(component, "manufacturer"),
        "Model": field_value(component, "model"),
        "Serial Number": _text(field_value(component, "serial_number")),
        "Quantity": field_value(component, "quantity"),
        "Location": field_value(component, "location"),
        "Purchase Date": field_value(component, "purchase_date"),
        "Purchase Cost": field_value(component, "purchase_cost"),
    }


def person_row(person: Any) -> dict[str, Any]:
    last_login = to_datetime(field_value(person, "last_login"))
    return {
        "First Name": field_value(person, "first_name"),
        "Last Name": field_value(person, "last_name"),
        "Username": field_value(person, "username"),
        "Email": field_value(person, "email"),
        "Department": field_value(person, "department"),
        "Job Title": field_value(person, "job_title"),
        "Location": field_value(person, "location"),
        "Manager": _text(field_value(person, "manager")),
        "Employee Number": _text(field_value(person, "employee_number")),
        "Phone": _text(field_value(person, "phone")),
        "Status": "Active" if field_value(person, "activated") else "Inactive",
        "Last Login": last_login.date().isoformat() if last_login else "Never",
    }


def requestable_row(item: Any) -> dict[str, Any]:
    return {
        "Name": field_value(item, "name"),
        "Category": field_value(item, "category"),
        "Description": field_value(item, "description"),
        "Available Quantity": field_value(item, "quantity"),
        "Location": field_value(item, "location"),
        "Requestable": "Yes" if field_value(item, "requestable") else "No",
        "Notes": _text(field_value(item, "notes")),
    }


def _names(ids: Sequence[str] | None, records: Sequence[Any]) -> str:
    by_id = {field_value(r, "id"): field_value(r, "name") for r in records}
    return "; ".join(by_id[i] for i in ids or [] if by_id.get(i))


def kit_row(kit: Any, collections: Mapping[str, Sequence[Any]]) -> dict[str, Any]:
    """Kit row with member ids resolved to names; unknown ids are left out."""
    members = {key: list(field_value(kit, key) or []) for key in ("assets", "accessories", "licenses", "consumables")}
    created = to_datetime(field_value(kit, "created_date"))
    return {
        "Kit Name": field_value(kit, "name"),
        "Category": field_value(kit, "category"),
        "Description": field_value(kit, "description"),
        "Assets Count": len(members["assets"]),
        "Accessories Count": len(members["accessories"]),
        "Licenses Count": len(members["licenses"]),
        "Consumables Count": len(members["consumables"]),
        "Total Items": sum(len(ids) for ids in members.values()),
        "Created Date": created.date().isoformat() if created else "",
        "Assets": _names(members["assets"], collections.get("asset") or []),
        "Accessories": _names(members["accessories"], collections.get("accessory") or []),
        "Licenses": _names(members["licenses"], collections.get("license") or []),
        "Consumables": _names(members["consumables"], collections.get("consumable") or []),
    }


ROW_BUILDERS: dict[str, Callable[[Any], dict[str, Any]]] = {
    "asset": asset_row,
    "license": license_row,
    "accessory": accessory_row,
    "consumable": consumable_row,
    "component": component_row,
    "person": person_row,
    "requestable": requestable_row,
}


def build_report_rows(kind: str, collections: Mapping[str, Sequence[Any]]) -> list[dict[str, Any]]:
    """Build labelled export rows for every record of ``kind``.

    Raises:
        ValueError: If the kind has no export layout
    """
    records = collections.get(kind) or []
    if kind == "kit":
        return [kit_row(kit, collections) for kit in records]
    if kind not in ROW_BUILDERS:
        raise ValueError(f"No export layout for kind '{kind}'. Supported: {', '.join([*ROW_BUILDERS, 'kit'])}")
    return [ROW_BUILDERS[kind](record) for record in records]


def _license_audit(collections: Mapping[str, Sequence[Any]], now: datetime) -> dict[str, Any]:
    licenses = collections.get("license") or []
    violations = [v for v in collections.get("violation") or [] if field_value(v, "type") == "License Overuse"]
    return {
        "report_type": "License Compliance Audit",
        "summary": {
            "total_licenses": len(licenses),
            "total_seats": sum_field(licenses, "seats"),
            "used_seats": sum(used_seats(lic) for lic in licenses),
            "violations": len(violations),
        },
        "licenses": [
            {
                "id": field_value(lic, "id"),
                "name": field_value(lic, "name"),
                "vendor": field_value(lic, "vendor"),
                "total_seats": field_value(lic, "seats"),
                "used_seats": used_seats(lic),
                "available_seats": field_value(lic, "available_seats"),
                "utilization_rate": utilization(used_seats(lic), field_value(lic, "seats")),
                "expiry_date": field_value(lic, "expiry_date"),
                "compliance_status": (
                    "Compliant" if used_seats(lic) <= to_number(field_value(lic, "seats")) else "Non-Compliant"
                ),
            }
            for lic in licenses
        ],
        "violations": violations,
    }


def _is_active(asset: Any) -> bool:
    return str(field_value(asset, "status") or "").lower() in ACTIVE_ASSET_STATUSES


def _asset_audit(collections: Mapping[str, Sequence[Any]], now: datetime) -> dict[str, Any]:
    assets = collections.get("asset") or []
    maintenance = collections.get("maintenance") or []

    def warranty_status(asset: Any) -> str:
        expiry = to_datetime(field_value(asset, "warranty_expiry"))
        if expiry is None:
            return "N/A"
        return "Active" if expiry > now else "Expired"

    return {
        "report_type": "Asset Management Audit",
        "summary": {
            "total_assets": len(assets),
            "active_assets": sum(1 for a in assets if _is_active(a)),
            "maintenance_records": len(maintenance),
            "assets_with_warranty": sum(1 for a in assets if field_value(a, "warranty_expiry")),
        },
        "assets": [
            {
                "id": field_value(a, "id"),
                "name": field_value(a, "name"),
                "tag": field_value(a, "tag"),
                "category": field_value(a, "category"),
                "status": field_value(a, "status"),
                "assigned_to": field_value(a, "assigned_to"),
                "location": field_value(a, "location"),
                "purchase_date": field_value(a, "purchase_date"),
                "purchase_cost": field_value(a, "purchase_cost"),
                "warranty_expiry": field_value(a, "warranty_expiry"),
                "warranty_status": warranty_status(a),
                "compliance_status": "Compliant" if _is_active(a) else "Review Required",
            }
            for a in assets
        ],
        "maintenance_records": list(maintenance[:50]),
    }


def _security_compliance(collections: Mapping[str, Sequence[Any]], now: datetime) -> dict[str, Any]:
    checks = [c for c in collections.get("compliance_check") or [] if field_value(c, "type") == "Security Compliance"]
    violations = [v for v in collections.get("violation") or [] if field_value(v, "type") == "Security Policy"]
    return {
        "report_type": "Security Compliance Report",
        "summary": {
            "security_checks": len(checks),
            "compliant_checks": sum(1 for c in checks if field_value(c, "status") == "Compliant"),
            "security_violations": len(violations),
            "open_violations": sum(1 for v in violations if field_value(v, "status") == "Open"),
        },
        "checks": checks,
        "violations": violations,
        "recommendations": list(SECURITY_RECOMMENDATIONS),
    }


def _detected_since(violations: Sequence[Any], since: datetime) -> int:
    count = 0
    for violation in violations:
        detected = to_datetime(field_value(violation, "detected_date"))
        if detected is not None and detected >= since:
            count += 1
    return count


def _policy_violations(collections: Mapping[str, Sequence[Any]], now: datetime) -> dict[str, Any]:
    violations = sorted(
        collections.get("violation") or [],
        key=lambda v: to_datetime(field_value(v, "detected_date")) or datetime.min,
        reverse=True,
    )
    return {
        "report_type": "Policy Violations Summary",
        "summary": {
            "total_violations": len(violations),
            "open_violations": sum(1 for v in violations if field_value(v, "status") == "Open"),
            "resolved_violations": sum(1 for v in violations if field_value(v, "status") == "Resolved"),
            "critical_violations": sum(1 for v in violations if field_value(v, "severity") == "Critical"),
        },
        "violations_by_type": group_by_field(violations, "type"),
        "violations_by_severity": group_by_field(violations, "severity"),
        "violations": violations[:100],
        "trends": {
            "last_7_days": _detected_since(violations, now - timedelta(days=7)),
            "last_30_days": _detected_since(violations, now - timedelta(days=30)),
        },
    }


def _comprehensive(collections: Mapping[str, Sequence[Any]], now: datetime) -> dict[str, Any]:
    assets = collections.get("asset") or []
    licenses = collections.get("license") or []
    checks = collections.get("compliance_check") or []
    violations = collections.get("violation") or []
    compliant = sum(1 for c in checks if field_value(c, "status") == "Compliant")
    return {
        "report_type": "Comprehensive Compliance Audit",
        "summary": {
            "total_assets": len(assets),
            "total_licenses": len(licenses),
            "total_checks": len(checks),
            "total_violations": len(violations),
            "overall_score": compliant / len(checks) * 100 if checks else 100.0,
        },
        "assets": list(assets[:50]),
        "licenses": list(licenses[:50]),
        "compliance_checks": list(checks[:20]),
        "violations": list(violations[:20]),
    }


_AUDITS = {
    "license-audit": _license_audit,
    "asset-audit": _asset_audit,
    "security-compliance": _security_compliance,
    "policy-violations": _policy_violations,
}


def generate_audit_report(
    report_type: str | None, collections: Mapping[str, Sequence[Any]], now: Any = None
) -> dict[str, Any]:
    """Build an audit report from record snapshots.

    Unknown or missing report types produce the comprehensive audit.
    """
    current = to_datetime(now) or datetime.now(timezone.utc).replace(tzinfo=None)
    builder = _AUDITS.get(report_type or "", _comprehensive)
    report = builder(collections, current)
    report["generated_at"] = current.isoformat()
    logger.info("Audit report generated", report_type=report["report_type"])
    return report
