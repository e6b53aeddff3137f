"""Form-level validation for records before they are sent to a backend."""

import dataclasses
import re
from typing import Any

import structlog

from asset_manager.models import (
    ASSET_STATUSES,
    Accessory,
    Asset,
    Component,
    Consumable,
    License,
    Person,
    kind_of,
)

logger = structlog.get_logger()

UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE)


class ValidationError(ValueError):
    """Raised when a record or identifier fails form validation."""


def validate_record_id(record_id: str | None, kind: str = "record", require_uuid: bool = False) -> str:
    """Check an identifier before an update or delete.

    Args:
        record_id: Identifier to check
        kind: Record kind, used in the error message
        require_uuid: If True, the identifier must be a UUID (v1-v5)

    Returns:
        The stripped identifier
    """
    if record_id is None or not str(record_id).strip():
        logger.error("Invalid or empty record id", kind=kind)
        raise ValidationError(f"Cannot update {kind}: Invalid ID. Please try creating a new {kind} instead.")

    record_id = str(record_id).strip()
    if require_uuid and not UUID_PATTERN.match(record_id):
        logger.error("Invalid UUID format for record id", kind=kind, record_id=record_id)
        raise ValidationError(f"Cannot update {kind}: Invalid ID format. Please try creating a new {kind} instead.")
    return record_id


def _require_non_negative(record: Any, *names: str) -> None:
    for name in names:
        value = getattr(record, name)
        if value is not None and value < 0:
            raise ValidationError(f"{name.replace('_', ' ').capitalize()} cannot be negative")


def validate_record(record: Any) -> None:
    """Validate a record the way its edit form does.

    Raises:
        ValidationError: If the record breaks one of its form rules
    """
    kind = kind_of(record)
    logger.debug("Validating record", kind=kind.name, record_id=getattr(record, "id", None))

    if isinstance(record, Person):
        if not record.first_name.strip() or not record.last_name.strip():
            raise ValidationError("First name and last name are required")
        if record.email and "@" not in record.email:
            raise ValidationError(f"Invalid email address: '{record.email}'")
        return

    name = getattr(record, "name", None)
    if name is not None and not str(name).strip():
        raise ValidationError(f"A {kind.name} name is required")

    if isinstance(record, Asset):
        if record.status not in ASSET_STATUSES:
            raise ValidationError(f"Invalid asset status: '{record.status}'. Must be one of: {', '.join(ASSET_STATUSES)}")
        _require_non_negative(record, "purchase_cost")
    elif isinstance(record, License):
        _require_non_negative(record, "seats", "cost")
        if record.available_seats > record.seats:
            raise ValidationError(
                f"Available seats ({record.available_seats}) cannot exceed total seats ({record.seats})"
            )
    elif isinstance(record, Accessory):
        _require_non_negative(record, "quantity", "available_quantity", "purchase_cost")
        if record.available_quantity > record.quantity:
            raise ValidationError(
                f"Available quantity ({record.available_quantity}) cannot exceed quantity ({record.quantity})"
            )
    elif isinstance(record, Consumable):
        _require_non_negative(record, "quantity", "min_quantity")
    elif isinstance(record, Component):
        _require_non_negative(record, "quantity", "purchase_cost")


def apply_changes(record: Any, changes: dict[str, Any]) -> Any:
    """Return a copy of ``record`` with ``changes`` applied.

    Raises:
        ValidationError: If a change names a field the record does not have
    """
    known = {f.name for f in dataclasses.fields(record)}
    unknown = sorted(set(changes) - known)
    if unknown:
        raise ValidationError(f"Unknown {kind_of(record).name} field(s): {', '.join(unknown)}")
    return dataclasses.replace(record, **changes)
