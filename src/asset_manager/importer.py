"""Bulk import of records from CSV files."""

import csv
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from asset_manager.backend import Backend, BackendError
from asset_manager.models import ImportRecord, get_kind, record_from_dict
from asset_manager.schema import COLUMN_MAPS, camel_to_snake
from asset_manager.validation import ValidationError, validate_record

logger = structlog.get_logger()

# Import type label stored on the import record -> record kind
IMPORT_TYPES = {
    "assets": "asset",
    "licenses": "license",
    "accessories": "accessory",
    "consumables": "consumable",
    "users": "person",
}


def normalize_header(header: str) -> str:
    """Turn ``Serial Number``, ``serialNumber`` or ``serial_number`` into ``serial_number``."""
    header = header.strip()
    if re.search(r"[\s-]", header):
        return re.sub(r"[\s-]+", "_", header.lower())
    return camel_to_snake(header)


def import_type_for(kind: str) -> str:
    """Import type label for a kind name, e.g. ``person`` -> ``users``.

    Raises:
        ValidationError: If the kind cannot be imported
    """
    name = get_kind(kind).name
    for label, import_kind in IMPORT_TYPES.items():
        if import_kind == name:
            return label
    raise ValidationError(f"Cannot import {name} records. Supported types: {', '.join(IMPORT_TYPES)}")


class ImportService:
    """Imports CSV rows as records and tracks progress in an import record."""

    def __init__(self, backend: Backend) -> None:
        self.backend = backend

    def read_rows(self, path: Path, kind: str) -> list[dict[str, Any]]:
        """Read CSV rows keyed by field name.

        Headers may also use the database column names (``asset_tag``,
        ``Warranty Expires``).
        """
        columns = {column: name for name, column in COLUMN_MAPS[kind].renames.items()} if kind in COLUMN_MAPS else {}
        with path.open(newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            rows = []
            for row in reader:
                fields = {}
                for key, value in row.items():
                    if key is None:
                        continue
                    name = normalize_header(key)
                    fields[columns.get(name, name)] = value
                rows.append(fields)
            return rows

    def import_file(self, path: Path | str, kind: str) -> ImportRecord:
        """Import every row of a CSV file as a record of ``kind``.

        Rows that fail validation or creation are reported in the import
        record's errors as ``Row N: message`` (N counts data rows from 1).
        The import fails only when no row succeeded.
        """
        path = Path(path)
        import_type = import_type_for(kind)
        record_kind = IMPORT_TYPES[import_type]

        tracking = self.backend.create(
            "import",
            ImportRecord(
                file_name=path.name,
                type=import_type,
                status="processing",
                import_date=datetime.now(timezone.utc).isoformat(),
            ),
        )
        logger.info("Import started", file=str(path), kind=record_kind, import_id=tracking.id)

        try:
            rows = self.read_rows(path, record_kind)
        except (OSError, csv.Error, UnicodeDecodeError) as e:
            logger.error("Failed to read import file", file=str(path), error=str(e))
            return self.backend.update("import", tracking.id, {"status": "failed", "errors": [str(e)]})

        errors: list[str] = []
        processed = 0
        for number, row in enumerate(rows, start=1):
            try:
                record = record_from_dict(record_kind, row, coerce=True)
                validate_record(record)
                self.backend.create(record_kind, record)
            except (ValueError, BackendError) as e:
                # ValidationError and coercion failures are both ValueErrors
                errors.append(f"Row {number}: {e}")
                logger.warning("Import row rejected", row=number, error=str(e))
                continue
            processed += 1

        if not rows:
            errors.append("File contains no data rows")
        status = "completed" if processed else "failed"

        result = self.backend.update(
            "import",
            tracking.id,
            {"status": status, "records_processed": processed, "total_records": len(rows), "errors": errors},
        )
        logger.info("Import finished", import_id=tracking.id, status=status, processed=processed, total=len(rows))
        return result
