"""Tests for form validation."""

import pytest

from asset_manager.models import Accessory, Asset, Consumable, License, Person
from asset_manager.validation import ValidationError, apply_changes, validate_record, validate_record_id


def test_validate_record_id_returns_stripped_id() -> None:
    """Test a valid ID passes through stripped."""
    assert validate_record_id("  abc  ") == "abc"


@pytest.mark.parametrize("record_id", [None, "", "   "])
def test_validate_record_id_rejects_empty(record_id: str | None) -> None:
    """Test empty IDs are rejected."""
    with pytest.raises(ValidationError, match="Invalid ID"):
        validate_record_id(record_id, "asset")


def test_validate_record_id_requires_uuid() -> None:
    """Test non-UUID IDs are rejected when a UUID is required."""
    with pytest.raises(ValidationError, match="Invalid ID format"):
        validate_record_id("12345", "asset", require_uuid=True)
    uuid = "3f2504e0-4f89-41d3-9a0c-0305e82c3301"
    assert validate_record_id(uuid, require_uuid=True) == uuid


def test_validation_error_is_value_error() -> None:
    """Test ValidationError can be caught as ValueError."""
    assert issubclass(ValidationError, ValueError)


def test_asset_requires_name() -> None:
    """Test an asset without a name is rejected."""
    with pytest.raises(ValidationError, match="name is required"):
        validate_record(Asset(name="  "))


def test_asset_status_must_be_known() -> None:
    """Test an unknown asset status is rejected."""
    with pytest.raises(ValidationError, match="Invalid asset status"):
        validate_record(Asset(name="Laptop", status="Borrowed"))


def test_negative_cost_rejected() -> None:
    """Test negative costs are rejected."""
    with pytest.raises(ValidationError, match="cannot be negative"):
        validate_record(Asset(name="Laptop", purchase_cost=-1))


def test_license_available_seats_cannot_exceed_seats() -> None:
    """Test available seats above total seats are rejected."""
    with pytest.raises(ValidationError, match="cannot exceed total seats"):
        validate_record(License(name="Office", seats=5, available_seats=6))
    validate_record(License(name="Office", seats=5, available_seats=5))


def test_accessory_available_quantity_cannot_exceed_quantity() -> None:
    """Test available quantity above quantity is rejected."""
    with pytest.raises(ValidationError, match="cannot exceed quantity"):
        validate_record(Accessory(name="Mouse", quantity=1, available_quantity=2))


def test_consumable_counts_non_negative() -> None:
    """Test consumable counts must not be negative."""
    with pytest.raises(ValidationError):
        validate_record(Consumable(name="Toner", quantity=-3))


def test_person_requires_first_and_last_name() -> None:
    """Test people need both names."""
    with pytest.raises(ValidationError, match="First name and last name"):
        validate_record(Person(first_name="Ada"))


def test_person_email_checked() -> None:
    """Test a malformed email is rejected."""
    with pytest.raises(ValidationError, match="Invalid email"):
        validate_record(Person(first_name="Ada", last_name="Lovelace", email="ada.example.com"))


def test_apply_changes() -> None:
    """Test applying known changes returns a new record."""
    asset = Asset(name="Old")
    updated = apply_changes(asset, {"name": "New"})
    assert updated.name == "New"
    assert asset.name == "Old"


def test_apply_changes_rejects_unknown_fields() -> None:
    """Test unknown fields are rejected."""
    with pytest.raises(ValidationError, match="Unknown asset field"):
        apply_changes(Asset(name="Laptop"), {"colour": "red"})
