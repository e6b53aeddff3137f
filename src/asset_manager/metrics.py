"""Derived metrics over in-memory record snapshots.

Every function here is pure: it takes collections of records (dataclass
instances or plain mappings) and returns numbers. Missing or malformed fields
count as zero or absent; nothing here raises on bad data.
"""

import math
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any

from asset_manager.models import DashboardMetrics

EXPIRING_WINDOW_DAYS = 30
MAINTENANCE_LOOKAHEAD_DAYS = 7
TCO_MONTHS = 36

ACTIVE_ASSET_STATUSES = frozenset({"active", "assigned", "deployed", "available"})
IN_USE_ASSET_STATUSES = frozenset({"active", "assigned", "deployed"})

MONTHLY_DIVISORS = {"Monthly": 1, "Quarterly": 3, "Annually": 12}


def field_value(record: Any, name: str) -> Any:
    """Read a field from a mapping or an object, ``None`` if absent."""
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def to_number(value: Any) -> float:
    """Convert a value to float, treating absent or malformed values as 0."""
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(number) or math.isinf(number) else number


_FRACTION = re.compile(r"\.(\d+)")
_SHORT_OFFSET = re.compile(r"([+-]\d{2})$")


def _normalize_iso(text: str) -> str:
    """Rewrite Postgres timestamps into the forms ``fromisoformat`` accepts on 3.10.

    Fractions are padded or cut to microseconds, ``Z`` and ``+HH`` offsets
    become ``+HH:MM``.
    """
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    if not re.search(r"[T ]\d{2}:\d{2}", text):
        return text
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return _SHORT_OFFSET.sub(r"\1:00", text)


def to_datetime(value: Any) -> datetime | None:
    """Parse a date-like value into a naive UTC datetime, ``None`` if unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(_normalize_iso(value.strip()))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _now(now: Any = None) -> datetime:
    return to_datetime(now) or datetime.now(timezone.utc).replace(tzinfo=None)


def sum_field(records: Iterable[Any], name: str) -> float:
    """Sum a numeric field across records."""
    return sum((to_number(field_value(record, name)) for record in records), 0.0)


def utilization(used: Any, total: Any) -> float:
    """Percentage of ``used`` over ``total``; 0 when the total is zero."""
    total_number = to_number(total)
    if total_number == 0:
        return 0.0
    return to_number(used) / total_number * 100


def compute_utilization(records: Iterable[Any], used_field: str, total_field: str) -> float:
    """Overall utilization percentage across records.

    Sums ``used_field`` and ``total_field`` over all records and divides;
    a zero total gives 0.
    """
    records = list(records)
    return utilization(sum_field(records, used_field), sum_field(records, total_field))


def group_by_field(records: Iterable[Any], name: str) -> dict[str, int]:
    """Count records per value of a field."""
    counts: dict[str, int] = {}
    for record in records:
        value = field_value(record, name)
        key = "Unknown" if value is None or value == "" else str(value)
        counts[key] = counts.get(key, 0) + 1
    return counts


def filter_expiring(
    records: Iterable[Any], name: str, now: Any = None, window_days: int = EXPIRING_WINDOW_DAYS
) -> list[Any]:
    """Records whose date field falls on or before ``now + window_days``.

    Dates already in the past count as expiring; records without a parseable
    date are skipped.
    """
    cutoff = _now(now) + timedelta(days=window_days)
    expiring = []
    for record in records:
        expiry = to_datetime(field_value(record, name))
        if expiry is not None and expiry <= cutoff:
            expiring.append(record)
    return expiring


def search_records(records: Iterable[Any], term: str | None, fields: Sequence[str]) -> list[Any]:
    """Case-insensitive substring search across the given fields."""
    if not term:
        return list(records)
    needle = term.lower()
    return [
        record
        for record in records
        if any(needle in str(field_value(record, name) or "").lower() for name in fields)
    ]


def used_seats(license: Any) -> float:
    return to_number(field_value(license, "seats")) - to_number(field_value(license, "available_seats"))


def stock_status(quantity: Any, min_quantity: Any) -> str:
    """Stock level label for a consumable."""
    quantity, min_quantity = to_number(quantity), to_number(min_quantity)
    if quantity <= min_quantity:
        return "Low Stock"
    if quantity <= min_quantity * 2:
        return "Medium"
    return "Good"


def _scheduled_for(record: Any) -> datetime | None:
    return to_datetime(field_value(record, "scheduled_date") or field_value(record, "date"))


def _is_scheduled(record: Any) -> bool:
    return field_value(record, "status") == "Scheduled"


def compute_dashboard_metrics(
    collections: Mapping[str, Sequence[Any]], now: Any = None, window_days: int = EXPIRING_WINDOW_DAYS
) -> DashboardMetrics:
    """Compute dashboard summary numbers from record snapshots keyed by kind."""

    def get(kind: str) -> Sequence[Any]:
        return collections.get(kind) or []

    assets, licenses = get("asset"), get("license")
    maintenance_cutoff = _now(now) + timedelta(days=MAINTENANCE_LOOKAHEAD_DAYS)
    maintenance_due = [
        record
        for record in get("maintenance")
        if _is_scheduled(record) and (_scheduled_for(record) or datetime.max) <= maintenance_cutoff
    ]
    compliance_issues = sum(1 for v in get("violation") if field_value(v, "status") == "Open") + sum(
        1 for c in get("compliance_check") if field_value(c, "status") == "Non-Compliant"
    )

    return DashboardMetrics(
        assets=len(assets),
        licenses=len(licenses),
        accessories=len(get("accessory")),
        consumables=len(get("consumable")),
        components=len(get("component")),
        people=len(get("person")),
        predefined_kits=len(get("kit")),
        requestable_items=len(get("requestable")),
        alerts=sum(1 for alert in get("alert") if not field_value(alert, "read")),
        expiring_warranties=len(filter_expiring(assets, "warranty_expiry", now, window_days)),
        expiring_licenses=len(filter_expiring(licenses, "expiry_date", now, window_days)),
        maintenance_due=len(maintenance_due),
        compliance_issues=compliance_issues,
        total_value=(
            sum_field(assets, "purchase_cost")
            + sum_field(licenses, "cost")
            + sum_field(get("accessory"), "purchase_cost")
            + sum_field(get("component"), "purchase_cost")
        ),
    )


@dataclass
class FinancialMetrics:
    total_value: float = 0.0
    total_asset_value: float = 0.0
    total_license_value: float = 0.0
    total_accessory_value: float = 0.0
    total_component_value: float = 0.0
    current_depreciated_value: float = 0.0
    total_depreciation: float = 0.0
    monthly_license_costs: float = 0.0
    monthly_lease_costs: float = 0.0
    total_monthly_costs: float = 0.0
    value_share: dict[str, float] = field(default_factory=dict)


def monthly_license_cost(license: Any) -> float:
    """Monthly cost of a license from its billing cycle; one-time costs give 0."""
    divisor = MONTHLY_DIVISORS.get(field_value(license, "billing_cycle") or "")
    if not divisor:
        return 0.0
    return to_number(field_value(license, "cost")) / divisor


def total_cost_of_ownership(asset: Any, months: int = TCO_MONTHS) -> float:
    """Purchase cost plus lease payments over ``months``."""
    return to_number(field_value(asset, "purchase_cost")) + to_number(field_value(asset, "monthly_lease")) * months


def compute_financial_metrics(
    assets: Sequence[Any],
    licenses: Sequence[Any],
    accessories: Sequence[Any],
    components: Sequence[Any],
) -> FinancialMetrics:
    """Value totals, depreciation and recurring monthly costs."""
    metrics = FinancialMetrics(
        total_asset_value=sum_field(assets, "purchase_cost"),
        total_license_value=sum_field(licenses, "cost"),
        total_accessory_value=sum_field(accessories, "purchase_cost"),
        total_component_value=sum_field(components, "purchase_cost"),
    )
    metrics.total_value = (
        metrics.total_asset_value
        + metrics.total_license_value
        + metrics.total_accessory_value
        + metrics.total_component_value
    )

    # Assets without a recorded current value have not depreciated yet
    metrics.current_depreciated_value = sum(
        (
            to_number(field_value(a, "current_value"))
            if field_value(a, "current_value") is not None
            else to_number(field_value(a, "purchase_cost"))
            for a in assets
        ),
        0.0,
    )
    metrics.total_depreciation = metrics.total_asset_value - metrics.current_depreciated_value

    metrics.monthly_license_costs = sum((monthly_license_cost(lic) for lic in licenses), 0.0)
    metrics.monthly_lease_costs = sum_field(assets, "monthly_lease")
    metrics.total_monthly_costs = metrics.monthly_license_costs + metrics.monthly_lease_costs

    metrics.value_share = {
        "assets": utilization(metrics.total_asset_value, metrics.total_value),
        "licenses": utilization(metrics.total_license_value, metrics.total_value),
        "accessories": utilization(metrics.total_accessory_value, metrics.total_value),
        "components": utilization(metrics.total_component_value, metrics.total_value),
    }
    return metrics


@dataclass
class LicenseUtilization:
    name: str
    total: float
    used: float
    utilization: float


@dataclass
class AnalyticsMetrics:
    total_assets: int = 0
    total_licenses: int = 0
    total_users: int = 0
    total_asset_value: float = 0.0
    average_asset_age_days: float = 0.0
    assets_by_category: dict[str, int] = field(default_factory=dict)
    assets_by_status: dict[str, int] = field(default_factory=dict)
    utilization_rate: float = 0.0
    license_utilization: list[LicenseUtilization] = field(default_factory=list)
    cost_by_category: dict[str, float] = field(default_factory=dict)


def compute_analytics_metrics(
    assets: Sequence[Any],
    licenses: Sequence[Any],
    accessories: Sequence[Any] = (),
    components: Sequence[Any] = (),
    people: Sequence[Any] = (),
    now: Any = None,
) -> AnalyticsMetrics:
    """Groupings, utilization and age figures for the analytics view."""
    current = _now(now)

    ages = []
    for asset in assets:
        purchased = to_datetime(field_value(asset, "purchase_date")) or current
        ages.append((current - purchased).total_seconds() / 86400)

    in_use = sum(1 for a in assets if str(field_value(a, "status") or "").lower() in IN_USE_ASSET_STATUSES)

    return AnalyticsMetrics(
        total_assets=len(assets),
        total_licenses=len(licenses),
        total_users=len(people),
        total_asset_value=sum_field(assets, "purchase_cost"),
        average_asset_age_days=sum(ages) / len(ages) if ages else 0.0,
        assets_by_category=group_by_field(assets, "category"),
        assets_by_status=group_by_field(assets, "status"),
        utilization_rate=utilization(in_use, len(assets)),
        license_utilization=[
            LicenseUtilization(
                name=str(field_value(lic, "name") or ""),
                total=to_number(field_value(lic, "seats")),
                used=used_seats(lic),
                utilization=utilization(used_seats(lic), field_value(lic, "seats")),
            )
            for lic in licenses
        ],
        cost_by_category={
            "assets": sum_field(assets, "purchase_cost"),
            "licenses": sum_field(licenses, "cost"),
            "accessories": sum_field(accessories, "purchase_cost"),
            "components": sum_field(components, "purchase_cost"),
        },
    )


@dataclass
class MaintenanceMetrics:
    upcoming: int = 0
    overdue: int = 0
    total_cost: float = 0.0
    by_status: dict[str, int] = field(default_factory=dict)


def compute_maintenance_metrics(records: Sequence[Any], now: Any = None) -> MaintenanceMetrics:
    """Upcoming (next 7 days) and overdue scheduled maintenance, and total cost."""
    current = _now(now)
    cutoff = current + timedelta(days=MAINTENANCE_LOOKAHEAD_DAYS)
    scheduled = [(r, _scheduled_for(r)) for r in records if _is_scheduled(r)]
    return MaintenanceMetrics(
        upcoming=sum(1 for _, when in scheduled if when is not None and when <= cutoff),
        overdue=sum(1 for _, when in scheduled if when is not None and when < current),
        total_cost=sum_field(records, "cost"),
        by_status=group_by_field(records, "status"),
    )
