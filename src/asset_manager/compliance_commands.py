"""Compliance commands for asset manager CLI."""

import json
from pathlib import Path

from cyclopts import App

from asset_manager.backend import BackendError
from asset_manager.compliance import ComplianceResult, ComplianceService, compute_compliance_metrics
from asset_manager.reports import AUDIT_REPORT_TYPES, generate_audit_report
from asset_manager.store import VIEW_KINDS

compliance_app = App(name="compliance", help="Run compliance checks and audit reports")

REPORT_KINDS = VIEW_KINDS["compliance"] + ("maintenance",)


@compliance_app.command
def check(remote: bool = False) -> None:
    """Check license usage and expiring licenses and warranties.

    Violations, alerts and a compliance check record are saved to the backend.

    Args:
        remote: Run the backend's compliance-check function when it has one
    """
    from asset_manager.cli import get_backend
    from asset_manager.config import get_config

    window = get_config().get_int("dashboard.expiring_window_days")
    service = ComplianceService(get_backend(), window_days=window)
    result = service.run_check(prefer_remote=remote)

    if not isinstance(result, ComplianceResult):
        print(json.dumps(result, indent=2, default=str))
        return

    print(f"Compliance score: {result.score}")
    print(f"License violations: {len(result.overused_licenses)}")
    print(f"Expiring licenses: {len(result.expiring_licenses)}")
    print(f"Expiring warranties: {len(result.expiring_warranties)}")


@compliance_app.command
def metrics() -> None:
    """Show compliance score, violations and license utilization."""
    from asset_manager.cli import get_backend

    backend = get_backend()
    result = compute_compliance_metrics(
        backend.list_records("compliance_check"),
        backend.list_records("violation"),
        backend.list_records("asset"),
        backend.list_records("license"),
    )
    print(f"Overall score: {result.overall_score:.1f}")
    print(f"Open violations: {result.open_violations}")
    print(f"Critical violations: {result.critical_violations}")
    print(f"Violations in the last 30 days: {result.recent_violations}")
    print(f"License utilization: {result.license_utilization:.1f}%")
    for check_type, counts in result.checks_by_type.items():
        print(f"  {check_type}: {counts['compliant']}/{counts['total']} compliant")


@compliance_app.command
def violations(all: bool = False) -> None:
    """List policy violations; open ones only unless --all."""
    from asset_manager.cli import get_backend

    backend = get_backend()
    records = backend.list_records("violation", sort_by="-detected_date")
    if not all:
        records = [v for v in records if v.status == "Open"]
    print(f"Found {len(records)} violation(s):\n")
    for violation in records:
        print(f"{violation.id} [{violation.severity}] {violation.type}: {violation.description} ({violation.status})")


@compliance_app.command
def resolve(violation_id: str) -> None:
    """Mark a policy violation as resolved."""
    from asset_manager.cli import get_backend

    ComplianceService(get_backend()).resolve_violation(violation_id)
    print(f"Resolved violation {violation_id}")


@compliance_app.command
def report(report_type: str = "comprehensive", output: Path | None = None, remote: bool = False) -> None:
    """Generate an audit report as JSON.

    Args:
        report_type: One of license-audit, asset-audit, security-compliance,
            policy-violations or comprehensive
        output: File to write; printed when omitted
        remote: Use the backend's generate-audit-report function
    """
    from asset_manager.cli import get_backend

    if report_type not in AUDIT_REPORT_TYPES:
        raise ValueError(f"Unknown report type: '{report_type}'. Must be one of: {', '.join(AUDIT_REPORT_TYPES)}")
    backend = get_backend()

    data = None
    if remote:
        try:
            data = backend.invoke("generate-audit-report", {"type": report_type})
        except (BackendError, NotImplementedError) as e:
            print(f"Remote report unavailable ({e}), generating locally")
    if data is None:
        collections = {kind: backend.list_records(kind) for kind in REPORT_KINDS}
        data = generate_audit_report(report_type, collections)

    content = json.dumps(data, indent=2, default=str)
    if output is None:
        print(content)
    else:
        output.write_text(content, encoding="utf-8")
        print(f"Wrote {report_type} report to {output}")
