"""Serialize export rows as CSV, JSON or Excel-compatible text."""

import csv
import dataclasses
import io
import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import structlog

from asset_manager.validation import ValidationError

logger = structlog.get_logger()

EXPORT_FORMATS = ("csv", "json", "excel")
EXCEL_BOM = "\ufeff"


def _rows(data: Sequence[Any]) -> list[dict[str, Any]]:
    if not data:
        raise ValidationError("No data to export")
    return [dataclasses.asdict(row) if dataclasses.is_dataclass(row) else dict(row) for row in data]


def _cell(value: Any) -> Any:
    return "" if value is None else value


def to_csv(data: Sequence[Any]) -> str:
    """Comma-separated text with a header row taken from the first row's keys."""
    rows = _rows(data)
    headers = list(rows[0])
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_cell(row.get(header)) for header in headers])
    return buffer.getvalue()


def to_json(data: Sequence[Any]) -> str:
    return json.dumps(_rows(data), indent=2, default=str)


def to_excel(data: Sequence[Any]) -> str:
    """Tab-separated text prefixed with a UTF-8 BOM so spreadsheets detect the encoding."""
    rows = _rows(data)
    headers = list(rows[0])
    lines = ["\t".join(headers)]
    for row in rows:
        lines.append("\t".join(str(_cell(row.get(header))) for header in headers))
    return EXCEL_BOM + "\n".join(lines)


_WRITERS = {"csv": to_csv, "json": to_json, "excel": to_excel}


def export_rows(data: Sequence[Any], fmt: str = "csv") -> str:
    """Render rows in the given format.

    Raises:
        ValidationError: If there is nothing to export
        ValueError: If the format is unknown
    """
    fmt = fmt.lower()
    if fmt not in _WRITERS:
        raise ValueError(f"Unknown export format: '{fmt}'. Must be one of: {', '.join(EXPORT_FORMATS)}")
    return _WRITERS[fmt](data)


def write_export(data: Sequence[Any], path: Path | str, fmt: str = "csv") -> Path:
    """Render rows and write them to ``path``."""
    path = Path(path)
    content = export_rows(data, fmt)
    path.write_text(content, encoding="utf-8")
    logger.info("Export written", path=str(path), format=fmt, rows=len(data))
    return path
