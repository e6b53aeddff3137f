"""License and warranty compliance checks."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from asset_manager.backend import Backend, BackendError
from asset_manager.metrics import (
    EXPIRING_WINDOW_DAYS,
    compute_utilization,
    field_value,
    filter_expiring,
    to_datetime,
    to_number,
    used_seats,
)
from asset_manager.models import Alert, ComplianceCheck, PolicyViolation

logger = structlog.get_logger()

FINDING_PENALTY = 10
RECENT_VIOLATION_DAYS = 30
CHECK_INTERVAL = timedelta(days=1)
AUTOMATED_AUDITOR = "Automated System Check"


@dataclass
class ComplianceResult:
    """Findings of one compliance evaluation."""

    overused_licenses: list[Any] = field(default_factory=list)
    expiring_licenses: list[Any] = field(default_factory=list)
    expiring_warranties: list[Any] = field(default_factory=list)
    score: int = 100

    @property
    def compliant(self) -> bool:
        return not self.overused_licenses


def compliance_score(findings: int) -> int:
    """100 for no findings, minus 10 per finding, never below 0."""
    return max(0, 100 - FINDING_PENALTY * findings)


def evaluate_compliance(
    licenses: Sequence[Any],
    assets: Sequence[Any],
    now: Any = None,
    window_days: int = EXPIRING_WINDOW_DAYS,
) -> ComplianceResult:
    """Find overused licenses, expiring licenses and expiring warranties.

    The score counts overused licenses and expiring warranties. Expiring
    licenses raise alerts but do not lower the score.
    """
    overused = [lic for lic in licenses if used_seats(lic) > to_number(field_value(lic, "seats"))]
    result = ComplianceResult(
        overused_licenses=overused,
        expiring_licenses=filter_expiring(licenses, "expiry_date", now, window_days),
        expiring_warranties=filter_expiring(assets, "warranty_expiry", now, window_days),
    )
    result.score = compliance_score(len(result.overused_licenses) + len(result.expiring_warranties))
    return result


def overuse_violation(license: Any, detected: str) -> PolicyViolation:
    over = int(used_seats(license) - to_number(field_value(license, "seats")))
    return PolicyViolation(
        type="License Overuse",
        severity="High",
        description=f'License "{field_value(license, "name")}" is overused by {over} seats',
        detected_date=detected,
        assigned_to="IT Manager",
        status="Open",
    )


def warranty_alert(asset: Any) -> Alert:
    return Alert(
        type="warning",
        title="Warranty Expiring Soon",
        message=f'Asset "{field_value(asset, "name")}" warranty expires on {field_value(asset, "warranty_expiry")}',
        priority="medium",
        entity_id=field_value(asset, "id") or None,
        entity_type="asset",
    )


def license_alert(license: Any) -> Alert:
    return Alert(
        type="warning",
        title="License Expiring Soon",
        message=f'License "{field_value(license, "name")}" expires on {field_value(license, "expiry_date")}',
        priority="high",
        entity_id=field_value(license, "id") or None,
        entity_type="license",
    )


class ComplianceService:
    """Runs compliance checks against a backend and records the outcome."""

    def __init__(self, backend: Backend, window_days: int = EXPIRING_WINDOW_DAYS) -> None:
        self.backend = backend
        self.window_days = window_days

    def run_check(self, now: datetime | None = None, prefer_remote: bool = False) -> ComplianceResult | dict[str, Any]:
        """Evaluate licenses and assets and persist findings.

        With ``prefer_remote`` the backend's ``compliance-check`` function is
        tried first; if the backend has none, the check runs locally.

        Returns:
            The local ComplianceResult, or the remote function's JSON result
        """
        if prefer_remote:
            try:
                result = self.backend.invoke("compliance-check")
                logger.info("Remote compliance check completed")
                return result
            except (BackendError, NotImplementedError) as e:
                logger.warning("Remote compliance check unavailable, running locally", error=str(e))

        now = now or datetime.now(timezone.utc)
        stamp = now.isoformat()
        licenses = self.backend.list_records("license")
        assets = self.backend.list_records("asset")
        result = evaluate_compliance(licenses, assets, now, self.window_days)
        logger.info(
            "Compliance evaluated",
            overused_licenses=len(result.overused_licenses),
            expiring_licenses=len(result.expiring_licenses),
            expiring_warranties=len(result.expiring_warranties),
            score=result.score,
        )

        for license in result.overused_licenses:
            self.backend.create("violation", overuse_violation(license, stamp))
        for asset in result.expiring_warranties:
            self.backend.create("alert", warranty_alert(asset))
        for license in result.expiring_licenses:
            self.backend.create("alert", license_alert(license))

        self.backend.create(
            "compliance_check",
            ComplianceCheck(
                type="License Compliance",
                status="Compliant" if result.compliant else "Non-Compliant",
                last_checked=stamp,
                next_check=(now + CHECK_INTERVAL).isoformat(),
                auditor=AUTOMATED_AUDITOR,
                notes=(
                    f"Automated compliance check completed. Found {len(result.overused_licenses)} license violations, "
                    f"{len(result.expiring_warranties)} warranty alerts."
                ),
            ),
        )
        return result

    def resolve_violation(self, violation_id: str) -> Any:
        logger.info("Resolving policy violation", violation_id=violation_id)
        return self.backend.resolve_violation(violation_id)


@dataclass
class ComplianceMetrics:
    overall_score: float = 100.0
    open_violations: int = 0
    critical_violations: int = 0
    license_utilization: float = 0.0
    checks_by_type: dict[str, dict[str, int]] = field(default_factory=dict)
    recent_violations: int = 0
    total_assets: int = 0


def compute_compliance_metrics(
    checks: Sequence[Any],
    violations: Sequence[Any],
    assets: Sequence[Any] = (),
    licenses: Sequence[Any] = (),
    now: Any = None,
) -> ComplianceMetrics:
    """Summarize compliance checks and violations.

    ``checks_by_type`` maps each check type to ``{"total": n, "compliant": m}``.
    """
    now = to_datetime(now) or datetime.now(timezone.utc).replace(tzinfo=None)
    compliant = sum(1 for check in checks if field_value(check, "status") == "Compliant")

    by_type: dict[str, dict[str, int]] = {}
    for check in checks:
        counts = by_type.setdefault(str(field_value(check, "type") or "Unknown"), {"total": 0, "compliant": 0})
        counts["total"] += 1
        if field_value(check, "status") == "Compliant":
            counts["compliant"] += 1

    recent_cutoff = now - timedelta(days=RECENT_VIOLATION_DAYS)
    recent = 0
    for violation in violations:
        detected = to_datetime(field_value(violation, "detected_date"))
        if detected is not None and detected >= recent_cutoff:
            recent += 1

    seats_in_use = [{"used": used_seats(lic), "total": field_value(lic, "seats")} for lic in licenses]
    return ComplianceMetrics(
        overall_score=compliant / len(checks) * 100 if checks else 100.0,
        open_violations=sum(1 for v in violations if field_value(v, "status") == "Open"),
        critical_violations=sum(1 for v in violations if field_value(v, "severity") == "Critical"),
        license_utilization=compute_utilization(seats_in_use, "used", "total"),
        checks_by_type=by_type,
        recent_violations=recent,
        total_assets=len(assets),
    )
