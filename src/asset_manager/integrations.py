"""External-system integrations: field mapping and sync bookkeeping."""

import dataclasses
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

import requests
import structlog

from asset_manager.backend import Backend, BackendError
from asset_manager.metrics import to_datetime
from asset_manager.models import FieldMapping, Integration, IntegrationError, record_from_dict
from asset_manager.schema import camel_to_snake
from asset_manager.validation import ValidationError, validate_record

logger = structlog.get_logger()

TRANSFORMATIONS: dict[str, Callable[[str], str]] = {
    "uppercase": str.upper,
    "lowercase": str.lower,
    "trim": str.strip,
    "capitalize": lambda value: value[:1].upper() + value[1:],
}

SYNC_INTERVALS = {
    "Real-time": timedelta(0),
    "Every 15 minutes": timedelta(minutes=15),
    "Hourly": timedelta(hours=1),
    "Daily": timedelta(days=1),
    "Weekly": timedelta(weeks=1),
    "Monthly": timedelta(days=30),
}


def transform(value: Any, transformation: str | None) -> Any:
    """Apply a named transformation to a string value.

    Non-string values and unknown transformation names pass through unchanged.
    """
    func = TRANSFORMATIONS.get(transformation or "")
    if func is None or not isinstance(value, str):
        return value
    return func(value)


def _lookup(payload: Mapping[str, Any], path: str) -> tuple[bool, Any]:
    """Resolve a dotted path such as ``profile.login`` in a nested payload."""
    current: Any = payload
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return False, None
        current = current[part]
    return True, current


def apply_mappings(payload: Mapping[str, Any], mappings: Iterable[FieldMapping]) -> dict[str, Any]:
    """Map a source payload onto record fields.

    Target fields may be written in camelCase; they are stored as snake_case.
    Source fields missing from the payload are skipped.
    """
    values: dict[str, Any] = {}
    for mapping in mappings:
        found, value = _lookup(payload, mapping.source_field)
        if not found:
            continue
        values[camel_to_snake(mapping.target_field)] = transform(value, mapping.transformation)
    return values


def sync_interval(frequency: str) -> timedelta:
    """Interval for a sync frequency label; unknown labels sync daily."""
    return SYNC_INTERVALS.get(frequency, SYNC_INTERVALS["Daily"])


def is_sync_due(integration: Integration, now: datetime | None = None) -> bool:
    """True when an active integration has never synced or its interval has elapsed."""
    if integration.status not in ("Active", "Error"):
        return False
    last_sync = to_datetime(integration.last_sync)
    if last_sync is None:
        return True
    current = to_datetime(now) or datetime.now(timezone.utc).replace(tzinfo=None)
    return current - last_sync >= sync_interval(integration.sync_frequency)


class IntegrationService:
    """Drives integration syncs against a backend."""

    def __init__(self, backend: Backend, timeout: float = 10.0) -> None:
        self.backend = backend
        self.timeout = timeout

    def sync(self, integration_id: str) -> Any:
        """Mark an integration as syncing and stamp its last sync time."""
        logger.info("Starting integration sync", integration_id=integration_id)
        return self.backend.sync_integration(integration_id)

    def complete_sync(self, integration_id: str, kind: str, payloads: Iterable[Mapping[str, Any]]) -> list[Any]:
        """Create records from fetched payloads and finish the sync.

        On success the integration goes back to ``Active``. If any record
        fails, the failure is appended to its error log and it is set to
        ``Error``; records created before the failure are kept.

        Returns:
            The records that were created
        """
        integration: Integration = self.backend.read("integration", integration_id)
        created = []
        try:
            for payload in payloads:
                record = record_from_dict(kind, apply_mappings(payload, integration.mappings), coerce=True)
                validate_record(record)
                created.append(self.backend.create(kind, record))
        except (BackendError, ValueError) as e:
            logger.error("Integration sync failed", integration_id=integration_id, error=str(e), created=len(created))
            entry = IntegrationError(
                timestamp=datetime.now(timezone.utc).isoformat(),
                error="Sync failed",
                details=str(e),
            )
            self.backend.update(
                "integration",
                integration_id,
                {"status": "Error", "error_log": [*integration.error_log, entry]},
            )
            return created

        self.backend.update("integration", integration_id, {"status": "Active"})
        logger.info("Integration sync completed", integration_id=integration_id, created=len(created))
        return created

    def test(self, integration_id: str) -> bool:
        """Check that an integration's endpoint answers.

        Backends with a test action are asked directly; otherwise the
        endpoint is probed over HTTP with the integration's API key.
        """
        test_action = getattr(self.backend, "test_integration", None)
        if test_action is not None:
            try:
                test_action(integration_id)
            except BackendError as e:
                logger.warning("Integration test failed", integration_id=integration_id, error=str(e))
                return False
            return True

        integration: Integration = self.backend.read("integration", integration_id)
        if not integration.endpoint:
            raise ValidationError(f"Integration '{integration.name}' has no endpoint")
        headers = {"Authorization": f"Bearer {integration.api_key}"} if integration.api_key else {}
        try:
            response = requests.get(integration.endpoint, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Integration endpoint unreachable", integration_id=integration_id, error=str(e))
            return False
        logger.info("Integration endpoint answered", integration_id=integration_id, status=response.status_code)
        return response.ok

    def due(self, now: datetime | None = None) -> list[Integration]:
        """Integrations whose sync interval has elapsed."""
        return [i for i in self.backend.list_records("integration") if is_sync_due(i, now)]


def add_mapping(integration: Integration, source_field: str, target_field: str, transformation: str | None = None):
    """Return a copy of ``integration`` with one more field mapping."""
    if transformation and transformation not in TRANSFORMATIONS:
        raise ValidationError(f"Unknown transformation: '{transformation}'. Must be one of: {', '.join(TRANSFORMATIONS)}")
    mapping = FieldMapping(source_field=source_field, target_field=target_field, transformation=transformation)
    return dataclasses.replace(integration, mappings=[*integration.mappings, mapping])
