"""Tests for record/row column mapping."""

from asset_manager.models import Asset, Integration, License, Person
from asset_manager.schema import (
    camel_to_snake,
    column_for,
    from_row,
    snake_to_camel,
    to_camel_keys,
    to_row,
    to_snake_keys,
)


def test_asset_row_renames_columns() -> None:
    """Test asset fields are written to their table columns."""
    row = to_row("asset", Asset(name="Laptop", tag="AST-1", warranty_expiry="2025-01-01", manufacturer="Dell"))
    assert row["asset_tag"] == "AST-1"
    assert row["warranty_expires"] == "2025-01-01"
    assert "tag" not in row
    assert "manufacturer" not in row


def test_empty_id_left_out() -> None:
    """Test an empty ID is not sent so the database generates one."""
    assert "id" not in to_row("asset", Asset(name="Laptop"))
    assert to_row("asset", Asset(id="abc", name="Laptop"))["id"] == "abc"


def test_license_seats_round_trip() -> None:
    """Test seats in use are stored and available seats recovered."""
    row = to_row("license", License(name="Office", seats=10, available_seats=3))
    assert row["seats_total"] == 10
    assert row["seats_used"] == 7
    assert "available_seats" not in row

    license = from_row("license", {"id": 5, "name": "Office", "seats_total": 10, "seats_used": 7})
    assert license.id == "5"
    assert license.available_seats == 3


def test_person_name_split() -> None:
    """Test people are stored with a single name column."""
    row = to_row("person", Person(first_name="Grace", last_name="Hopper", activated=False))
    assert row["name"] == "Grace Hopper"
    assert row["status"] == "inactive"

    person = from_row("person", {"name": "Grace Brewster Hopper", "email": "grace@navy.mil", "status": "active"})
    assert person.first_name == "Grace"
    assert person.last_name == "Brewster Hopper"
    assert person.username == "grace"
    assert person.activated is True


def test_from_row_ignores_unknown_columns() -> None:
    """Test extra columns such as timestamps are dropped."""
    asset = from_row("asset", {"id": "1", "name": "Laptop", "asset_tag": "T-1", "created_at": "2024-01-01"})
    assert asset.tag == "T-1"


def test_column_for() -> None:
    """Test looking up the column of a field."""
    assert column_for("accessory", "manufacturer") == "brand"
    assert column_for("asset", "name") == "name"


def test_case_conversion() -> None:
    """Test camelCase and snake_case conversion."""
    assert camel_to_snake("serialNumber") == "serial_number"
    assert snake_to_camel("purchase_cost") == "purchaseCost"


def test_key_conversion_recurses_into_dataclasses() -> None:
    """Test nested payloads are converted."""
    integration = Integration(name="SCCM", mappings=[{"source_field": "Serial", "target_field": "serialNumber"}])
    payload = to_camel_keys(integration)
    assert payload["syncFrequency"] == "Daily"
    assert payload["mappings"][0]["sourceField"] == "Serial"
    assert to_snake_keys({"errorLog": [{"timeStamp": 1}]}) == {"error_log": [{"time_stamp": 1}]}
