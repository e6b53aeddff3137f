"""Shared fixtures for asset manager tests."""

import dataclasses
import uuid
from typing import Any

import pytest

from asset_manager.backend import Backend, BackendError
from asset_manager.models import get_kind
from asset_manager.validation import apply_changes


class MockBackend(Backend):
    """In-memory backend for testing."""

    def __init__(self) -> None:
        """Initialize mock backend."""
        self.tables: dict[str, dict[str, Any]] = {}
        self.fail_on: set[str] = set()

    def _table(self, kind: str) -> dict[str, Any]:
        return self.tables.setdefault(get_kind(kind).name, {})

    def _check(self, operation: str, kind: str) -> None:
        if operation in self.fail_on or f"{operation}:{get_kind(kind).name}" in self.fail_on:
            raise BackendError(f"Failed to {operation} {kind}", kind=kind, operation=operation)

    def create(self, kind: str, record: Any) -> Any:
        """Create a record with a generated UUID."""
        self._check("create", kind)
        stored = dataclasses.replace(record, id=record.id or str(uuid.uuid4()))
        self._table(kind)[stored.id] = stored
        return stored

    def read(self, kind: str, record_id: str) -> Any:
        """Read a record by ID."""
        self._check("read", kind)
        try:
            return self._table(kind)[record_id]
        except KeyError:
            raise BackendError(f"{kind} {record_id} not found", kind=kind, operation="read") from None

    def update(self, kind: str, record_id: str, changes: dict[str, Any]) -> Any:
        """Update a record."""
        self._check("update", kind)
        updated = apply_changes(self.read(kind, record_id), changes)
        self._table(kind)[record_id] = updated
        return updated

    def delete(self, kind: str, record_ids: list[str]) -> None:
        """Delete records."""
        self._check("delete", kind)
        for record_id in record_ids:
            self._table(kind).pop(record_id, None)

    def list_records(
        self,
        kind: str,
        filters: dict[str, str] | None = None,
        sort_by: str | None = None,
        limit: int | None = None,
    ) -> list[Any]:
        """List records."""
        self._check("list", kind)
        records = list(self._table(kind).values())
        for key, value in (filters or {}).items():
            records = [r for r in records if str(getattr(r, key)) == str(value)]
        if sort_by:
            name = sort_by.lstrip("-")
            records.sort(key=lambda r: getattr(r, name) or "", reverse=sort_by.startswith("-"))
        if limit:
            records = records[:limit]
        return records


@pytest.fixture
def backend() -> MockBackend:
    """Create an empty in-memory backend."""
    return MockBackend()
