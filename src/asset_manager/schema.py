"""Column mapping between records and backend rows.

The hosted database names several columns differently from the record
fields, and a few fields are derived (license seats in use, a person's single
``name`` column). Each kind declares its renames plus optional encode/decode
hooks; everything not listed is persisted under its own name.

The REST API speaks camelCase JSON, converted with :func:`to_camel_keys` and
:func:`to_snake_keys`.
"""

import dataclasses
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from asset_manager.models import RecordKind, get_kind, record_from_dict, record_to_dict

Row = dict[str, Any]


@dataclass(frozen=True)
class ColumnMap:
    """How one kind's fields map onto table columns."""

    renames: dict[str, str] = field(default_factory=dict)
    local_only: tuple[str, ...] = ()
    encode: Callable[[dict[str, Any], Row], None] | None = None
    decode: Callable[[Row, dict[str, Any]], None] | None = None


def _encode_license(values: dict[str, Any], row: Row) -> None:
    seats = values.get("seats") or 0
    row["seats_used"] = seats - (values.get("available_seats") or 0)


def _decode_license(row: Row, values: dict[str, Any]) -> None:
    seats = row.get("seats_total") or 0
    values["available_seats"] = seats - (row.get("seats_used") or 0)


def _encode_person(values: dict[str, Any], row: Row) -> None:
    row["name"] = f"{values.get('first_name', '')} {values.get('last_name', '')}".strip()
    row["status"] = "active" if values.get("activated", True) else "inactive"


def _decode_person(row: Row, values: dict[str, Any]) -> None:
    first, _, last = (row.get("name") or "").partition(" ")
    values["first_name"] = first
    values["last_name"] = last
    values["activated"] = (row.get("status") or "active") == "active"
    if not values.get("username") and row.get("email"):
        values["username"] = row["email"].split("@", 1)[0]


def _decode_kit(row: Row, values: dict[str, Any]) -> None:
    values.setdefault("created_date", row.get("created_at"))


COLUMN_MAPS: dict[str, ColumnMap] = {
    "asset": ColumnMap(
        renames={"tag": "asset_tag", "warranty_expiry": "warranty_expires"},
        local_only=("manufacturer", "current_value", "monthly_lease"),
    ),
    "license": ColumnMap(
        renames={"seats": "seats_total", "license_type": "type"},
        local_only=("available_seats", "product_key", "manufacturer", "category", "billing_cycle"),
        encode=_encode_license,
        decode=_decode_license,
    ),
    "accessory": ColumnMap(
        renames={"manufacturer": "brand", "available_quantity": "available", "purchase_cost": "unit_cost"},
        local_only=("purchase_date",),
    ),
    "consumable": ColumnMap(
        renames={"manufacturer": "brand", "min_quantity": "min_stock"},
        local_only=("item_number",),
    ),
    "component": ColumnMap(
        renames={"manufacturer": "brand", "purchase_cost": "unit_cost"},
        local_only=("serial_number", "purchase_date"),
    ),
    "person": ColumnMap(
        renames={"job_title": "role"},
        local_only=("first_name", "last_name", "username", "manager", "employee_number", "activated", "last_login"),
        encode=_encode_person,
        decode=_decode_person,
    ),
    "kit": ColumnMap(local_only=("created_date",), decode=_decode_kit),
    "alert": ColumnMap(local_only=("created_at",)),
}


def to_row(kind: RecordKind | str, record: Any) -> Row:
    """Encode a record (or a dict of its fields) as a table row.

    The ``id`` column is left out when empty so the database generates it.
    """
    if isinstance(kind, str):
        kind = get_kind(kind)
    values = record if isinstance(record, dict) else record_to_dict(record)
    column_map = COLUMN_MAPS.get(kind.name, ColumnMap())

    row: Row = {}
    for name, value in values.items():
        if name in column_map.local_only:
            continue
        if name == "id" and not value:
            continue
        row[column_map.renames.get(name, name)] = value
    if column_map.encode:
        column_map.encode(values, row)
    return row


def from_row(kind: RecordKind | str, row: Row) -> Any:
    """Decode a table row into a record of ``kind``."""
    if isinstance(kind, str):
        kind = get_kind(kind)
    column_map = COLUMN_MAPS.get(kind.name, ColumnMap())
    columns = {column: name for name, column in column_map.renames.items()}

    values: dict[str, Any] = {}
    for column, value in row.items():
        values[columns.get(column, column)] = value
    if column_map.decode:
        column_map.decode(row, values)
    if values.get("id") is not None:
        values["id"] = str(values["id"])
    return record_from_dict(kind, values)


def column_for(kind: RecordKind | str, field_name: str) -> str:
    """Return the column a record field is stored in."""
    if isinstance(kind, str):
        kind = get_kind(kind)
    return COLUMN_MAPS.get(kind.name, ColumnMap()).renames.get(field_name, field_name)


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _convert_keys(value: Any, convert: Callable[[str], str]) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    if isinstance(value, dict):
        return {convert(k): _convert_keys(v, convert) for k, v in value.items()}
    if isinstance(value, list):
        return [_convert_keys(item, convert) for item in value]
    return value


def to_camel_keys(value: Any) -> Any:
    """Recursively convert dict keys (and dataclasses) to camelCase."""
    return _convert_keys(value, snake_to_camel)


def to_snake_keys(value: Any) -> Any:
    """Recursively convert dict keys to snake_case."""
    return _convert_keys(value, camel_to_snake)
