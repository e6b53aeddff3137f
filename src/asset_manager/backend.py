"""Backend interface for asset management."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from asset_manager.models import ChangeEvent


class BackendError(Exception):
    """Raised when a backend call fails."""

    def __init__(self, message: str, kind: str | None = None, operation: str | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.operation = operation


class Backend(ABC):
    """Abstract base class for asset management backends."""

    @abstractmethod
    def create(self, kind: str, record: Any) -> Any:
        """Create a new record and return it as stored."""
        pass

    @abstractmethod
    def read(self, kind: str, record_id: str) -> Any:
        """Read a record by ID."""
        pass

    @abstractmethod
    def update(self, kind: str, record_id: str, changes: dict[str, Any]) -> Any:
        """Update fields of a record and return it as stored."""
        pass

    @abstractmethod
    def delete(self, kind: str, record_ids: list[str]) -> None:
        """Delete one or more records."""
        pass

    @abstractmethod
    def list_records(
        self,
        kind: str,
        filters: dict[str, str] | None = None,
        sort_by: str | None = None,
        limit: int | None = None,
    ) -> list[Any]:
        """List records with optional filtering, sorting, and limiting.

        ``sort_by`` is a field name; prefix it with ``-`` for descending order.
        Without it records come back newest first.
        """
        pass

    def subscribe(self, kind: str, callback: Callable[[ChangeEvent], None]) -> Any:
        """Subscribe to row changes of a kind.

        Returns:
            A handle that the caller can pass to :meth:`unsubscribe`
        """
        raise NotImplementedError(f"{type(self).__name__} has no realtime change feed")

    def unsubscribe(self, handle: Any) -> None:
        """Cancel a subscription returned by :meth:`subscribe`."""
        raise NotImplementedError(f"{type(self).__name__} has no realtime change feed")

    def invoke(self, function: str, body: dict[str, Any] | None = None) -> Any:
        """Invoke a server-side function by name."""
        raise NotImplementedError(f"{type(self).__name__} does not support server-side functions")

    def acknowledge_alert(self, alert_id: str) -> Any:
        """Mark an alert as read."""
        return self.update("alert", alert_id, {"read": True})

    def resolve_alert(self, alert_id: str) -> Any:
        """Resolve an alert. Tables without a status column only track read state."""
        return self.acknowledge_alert(alert_id)

    def dismiss_alert(self, alert_id: str) -> None:
        """Dismiss an alert, removing it from the active list."""
        self.delete("alert", [alert_id])

    def bulk_update_alerts(self, alert_ids: list[str], action: str) -> Any:
        """Apply ``acknowledge``, ``resolve`` or ``dismiss`` to several alerts."""
        actions = {
            "acknowledge": self.acknowledge_alert,
            "resolve": self.resolve_alert,
            "dismiss": self.dismiss_alert,
        }
        if action not in actions:
            raise ValueError(f"Unknown alert action: '{action}'. Must be one of: {', '.join(actions)}")
        return [actions[action](alert_id) for alert_id in alert_ids]

    def resolve_violation(self, violation_id: str) -> Any:
        """Mark a policy violation as resolved now."""
        return self.update(
            "violation",
            violation_id,
            {"status": "Resolved", "resolved_date": datetime.now(timezone.utc).isoformat()},
        )

    def sync_integration(self, integration_id: str) -> Any:
        """Flag an integration as syncing and stamp its last sync time."""
        return self.update(
            "integration",
            integration_id,
            {"status": "Syncing", "last_sync": datetime.now(timezone.utc).isoformat()},
        )
