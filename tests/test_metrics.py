"""Tests for derived metrics."""

from datetime import datetime, timedelta

import pytest

from asset_manager.metrics import (
    compute_analytics_metrics,
    compute_dashboard_metrics,
    compute_financial_metrics,
    compute_maintenance_metrics,
    compute_utilization,
    filter_expiring,
    group_by_field,
    monthly_license_cost,
    search_records,
    stock_status,
    sum_field,
    to_datetime,
    total_cost_of_ownership,
    utilization,
)
from asset_manager.models import (
    Accessory,
    Alert,
    Asset,
    ComplianceCheck,
    Component,
    License,
    MaintenanceRecord,
    PolicyViolation,
)

NOW = datetime(2024, 6, 1, 12, 0, 0)


def days_from_now(days: int) -> str:
    return (NOW + timedelta(days=days)).date().isoformat()


def test_sum_field_treats_missing_as_zero() -> None:
    """Test summing a monetary field with gaps."""
    assert sum_field([{"cost": 10}, {"cost": None}, {"cost": 5}], "cost") == 15


def test_sum_field_ignores_malformed_values() -> None:
    """Test malformed numbers count as zero."""
    assert sum_field([{"cost": "abc"}, {"cost": "2.5"}, {}, {"cost": float("nan")}], "cost") == 2.5


def test_sum_field_over_records() -> None:
    """Test summing over dataclass records."""
    assets = [Asset(name="A", purchase_cost=100.5), Asset(name="B", purchase_cost=200)]
    assert sum_field(assets, "purchase_cost") == 300.5


def test_utilization_zero_total() -> None:
    """Test a zero total gives zero instead of raising."""
    assert utilization(5, 0) == 0.0
    assert compute_utilization([{"used": 3, "total": 0}], "used", "total") == 0.0
    assert compute_utilization([], "used", "total") == 0.0


def test_compute_utilization_aggregates() -> None:
    """Test overall utilization over several records."""
    records = [{"used": 5, "total": 10}, {"used": 10, "total": 10}]
    assert compute_utilization(records, "used", "total") == pytest.approx(75.0)


def test_group_by_field() -> None:
    """Test tallying field values."""
    assert group_by_field([], "category") == {}
    assets = [Asset(category="Laptop"), Asset(category="Laptop"), Asset(category="Monitor"), Asset()]
    assert group_by_field(assets, "category") == {"Laptop": 2, "Monitor": 1, "Unknown": 1}


def test_filter_expiring_window() -> None:
    """Test warranties inside the window are expiring and those outside are not."""
    soon = Asset(name="Soon", warranty_expiry=days_from_now(10))
    later = Asset(name="Later", warranty_expiry=days_from_now(40))
    expired = Asset(name="Expired", warranty_expiry=days_from_now(-5))
    unknown = Asset(name="Unknown", warranty_expiry=None)
    result = filter_expiring([soon, later, expired, unknown], "warranty_expiry", now=NOW)
    assert result == [soon, expired]


def test_filter_expiring_custom_window() -> None:
    """Test a longer window includes later dates."""
    later = Asset(name="Later", warranty_expiry=days_from_now(40))
    assert filter_expiring([later], "warranty_expiry", now=NOW, window_days=60) == [later]


def test_to_datetime_handles_formats() -> None:
    """Test parsing dates, ISO timestamps and garbage."""
    assert to_datetime("2024-06-01") == datetime(2024, 6, 1)
    assert to_datetime("2024-06-01T10:00:00Z") == datetime(2024, 6, 1, 10, 0)
    assert to_datetime("2024-06-01T12:00:00+02:00") == datetime(2024, 6, 1, 10, 0)
    assert to_datetime("not a date") is None
    assert to_datetime(None) is None


def test_to_datetime_postgres_timestamps() -> None:
    """Test Postgres timestamptz text with short fractions and offsets."""
    assert to_datetime("2024-06-01T10:00:00.12345+00:00") == datetime(2024, 6, 1, 10, 0, 0, 123450)
    assert to_datetime("2024-06-01 10:00:00.5+00") == datetime(2024, 6, 1, 10, 0, 0, 500000)
    assert to_datetime("2024-06-01T10:00:00.1234567Z") == datetime(2024, 6, 1, 10, 0, 0, 123456)
    assert to_datetime("2024-06-01 12:00:00-02") == datetime(2024, 6, 1, 14, 0)


def test_search_records_case_insensitive() -> None:
    """Test searching across several fields."""
    assets = [
        Asset(name="MacBook Pro", category="Laptop", manufacturer="Apple"),
        Asset(name="ThinkPad", category="Laptop", manufacturer="Lenovo"),
        Asset(name="UltraSharp", category="Monitor", manufacturer="Dell"),
    ]
    fields = ("name", "category", "manufacturer")
    assert [a.name for a in search_records(assets, "LAPTOP", fields)] == ["MacBook Pro", "ThinkPad"]
    assert [a.name for a in search_records(assets, "dell", fields)] == ["UltraSharp"]
    assert search_records(assets, "", fields) == assets


def test_compute_dashboard_metrics() -> None:
    """Test dashboard counts and totals."""
    collections = {
        "asset": [
            Asset(name="A", purchase_cost=1000, warranty_expiry=days_from_now(10)),
            Asset(name="B", purchase_cost=500, warranty_expiry=days_from_now(90)),
        ],
        "license": [License(name="L", cost=300, expiry_date=days_from_now(20))],
        "accessory": [Accessory(name="Mouse", purchase_cost=25)],
        "component": [Component(name="RAM", purchase_cost=75)],
        "alert": [Alert(title="a"), Alert(title="b", read=True)],
        "maintenance": [
            MaintenanceRecord(status="Scheduled", scheduled_date=days_from_now(3)),
            MaintenanceRecord(status="Scheduled", scheduled_date=days_from_now(30)),
            MaintenanceRecord(status="Completed", scheduled_date=days_from_now(1)),
        ],
        "violation": [PolicyViolation(status="Open"), PolicyViolation(status="Resolved")],
        "compliance_check": [ComplianceCheck(status="Non-Compliant"), ComplianceCheck(status="Compliant")],
    }
    metrics = compute_dashboard_metrics(collections, now=NOW)
    assert metrics.assets == 2
    assert metrics.licenses == 1
    assert metrics.consumables == 0
    assert metrics.total_value == 1900
    assert metrics.expiring_warranties == 1
    assert metrics.expiring_licenses == 1
    assert metrics.alerts == 1
    assert metrics.maintenance_due == 1
    assert metrics.compliance_issues == 2


def test_compute_dashboard_metrics_empty() -> None:
    """Test an empty snapshot gives zeros."""
    metrics = compute_dashboard_metrics({}, now=NOW)
    assert metrics.assets == 0
    assert metrics.total_value == 0.0


def test_compute_dashboard_metrics_is_deterministic() -> None:
    """Test the same snapshot gives the same metrics."""
    collections = {"asset": [Asset(name="A", purchase_cost=0.1), Asset(name="B", purchase_cost=0.2)]}
    assert compute_dashboard_metrics(collections, now=NOW) == compute_dashboard_metrics(collections, now=NOW)


@pytest.mark.parametrize(
    ("cycle", "expected"),
    [("Monthly", 120.0), ("Quarterly", 40.0), ("Annually", 10.0), ("One-time", 0.0), (None, 0.0)],
)
def test_monthly_license_cost(cycle: str | None, expected: float) -> None:
    """Test monthly cost by billing cycle."""
    assert monthly_license_cost(License(name="L", cost=120, billing_cycle=cycle)) == pytest.approx(expected)


def test_compute_financial_metrics() -> None:
    """Test value totals, depreciation and monthly costs."""
    assets = [
        Asset(name="A", purchase_cost=1000, current_value=600, monthly_lease=50),
        Asset(name="B", purchase_cost=500),
    ]
    licenses = [License(name="L", cost=1200, billing_cycle="Annually")]
    metrics = compute_financial_metrics(assets, licenses, [Accessory(purchase_cost=100)], [])
    assert metrics.total_value == 2800
    assert metrics.current_depreciated_value == 1100
    assert metrics.total_depreciation == 400
    assert metrics.monthly_license_costs == 100
    assert metrics.monthly_lease_costs == 50
    assert metrics.total_monthly_costs == 150
    assert metrics.value_share["components"] == 0.0


def test_total_cost_of_ownership() -> None:
    """Test three-year cost of ownership."""
    assert total_cost_of_ownership(Asset(purchase_cost=1000, monthly_lease=10)) == 1360
    assert total_cost_of_ownership(Asset(purchase_cost=1000)) == 1000


def test_compute_analytics_metrics() -> None:
    """Test groupings and utilization for analytics."""
    assets = [
        Asset(name="A", category="Laptop", status="Assigned", purchase_date="2024-05-22"),
        Asset(name="B", category="Laptop", status="Available", purchase_date="2024-05-02"),
        Asset(name="C", category="Monitor", status="Retired"),
    ]
    licenses = [License(name="Office", seats=10, available_seats=2)]
    metrics = compute_analytics_metrics(assets, licenses, now=NOW)
    assert metrics.assets_by_category == {"Laptop": 2, "Monitor": 1}
    assert metrics.assets_by_status == {"Assigned": 1, "Available": 1, "Retired": 1}
    assert metrics.utilization_rate == pytest.approx(100 / 3)
    assert metrics.license_utilization[0].utilization == pytest.approx(80.0)
    assert metrics.average_asset_age_days == pytest.approx((10.5 + 30.5 + 0) / 3)


def test_compute_maintenance_metrics() -> None:
    """Test upcoming and overdue maintenance."""
    records = [
        MaintenanceRecord(status="Scheduled", scheduled_date=days_from_now(2), cost=100),
        MaintenanceRecord(status="Scheduled", date=days_from_now(-3), cost=50),
        MaintenanceRecord(status="Completed", scheduled_date=days_from_now(-3), cost=25),
    ]
    metrics = compute_maintenance_metrics(records, now=NOW)
    assert metrics.upcoming == 2
    assert metrics.overdue == 1
    assert metrics.total_cost == 175


@pytest.mark.parametrize(("quantity", "expected"), [(3, "Low Stock"), (5, "Low Stock"), (8, "Medium"), (11, "Good")])
def test_stock_status(quantity: int, expected: str) -> None:
    """Test stock level labels."""
    assert stock_status(quantity, 5) == expected
