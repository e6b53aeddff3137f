"""REST API backend implementation using requests."""

from dataclasses import dataclass
from typing import Any

import requests
import structlog

from asset_manager.backend import Backend, BackendError
from asset_manager.models import get_kind, record_from_dict, record_to_dict
from asset_manager.schema import to_camel_keys, to_snake_keys
from asset_manager.validation import apply_changes, validate_record, validate_record_id

logger = structlog.get_logger()

DEFAULT_BASE_URL = "http://localhost:3001/api"


@dataclass
class ApiResponse:
    """Outcome of one API call: either ``data`` or an ``error`` message."""

    data: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RestBackend(Backend):
    """Backend for a custom REST API with bearer-token auth."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize REST backend.

        Args:
            base_url: API base URL, e.g. http://localhost:3001/api
            token: Bearer token from a previous login
            timeout: Request timeout in seconds
            session: Optional preconfigured requests session
        """
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        logger.info("REST backend initialized", base_url=self.base_url)

    def request(
        self,
        method: str,
        endpoint: str,
        payload: Any = None,
        params: dict[str, Any] | None = None,
    ) -> ApiResponse:
        """Send a request and wrap the outcome.

        A 401 clears the stored token. Network failures come back as an
        error response rather than an exception.
        """
        url = f"{self.base_url}{endpoint}"
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        logger.debug("Sending API request", method=method, url=url)

        try:
            response = self.session.request(
                method, url, json=payload, params=params or None, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.warning("API request failed (backend may not be available)", method=method, url=url, error=str(e))
            return ApiResponse(error=f"Request failed: {e}")

        if response.status_code == 401:
            logger.warning("API request unauthorized, clearing token", url=url)
            self.logout()
            return ApiResponse(error="Unauthorized")

        if not response.ok:
            logger.warning("API request returned error status", url=url, status=response.status_code)
            return ApiResponse(error=f"HTTP error! status: {response.status_code}")

        if not response.content:
            return ApiResponse(data=None)
        try:
            return ApiResponse(data=response.json())
        except ValueError as e:
            logger.error("Failed to parse API response", url=url, error=str(e))
            return ApiResponse(error=f"Invalid JSON response: {e}")

    def _unwrap(self, response: ApiResponse, kind: str | None, operation: str) -> Any:
        if not response.ok:
            raise BackendError(f"Failed to {operation} {kind or 'request'}: {response.error}", kind, operation)
        data = response.data
        # Some endpoints wrap payloads as {"data": ..., "total": ...}
        if isinstance(data, dict) and "data" in data and operation == "list":
            data = data["data"]
        return data

    def _to_record(self, kind: str, data: Any) -> Any:
        return record_from_dict(kind, to_snake_keys(data or {}))

    def _to_payload(self, record: Any) -> dict[str, Any]:
        values = record if isinstance(record, dict) else record_to_dict(record)
        if not values.get("id"):
            values = {k: v for k, v in values.items() if k != "id"}
        return to_camel_keys(values)

    def login(self, username: str, password: str) -> ApiResponse:
        """Log in and keep the returned bearer token."""
        logger.info("Logging in to REST API", username=username)
        response = self.request("POST", "/auth/login", {"username": username, "password": password})
        if response.ok and isinstance(response.data, dict) and response.data.get("token"):
            self.token = response.data["token"]
            logger.info("Logged in to REST API", username=username)
        return response

    def logout(self) -> None:
        self.token = None

    def create(self, kind: str, record: Any) -> Any:
        record_kind = get_kind(kind)
        logger.info("Creating record via REST", kind=record_kind.name)
        validate_record(record)
        response = self.request("POST", record_kind.endpoint, self._to_payload(record))
        data = self._unwrap(response, record_kind.name, "create")
        created = self._to_record(record_kind.name, data) if data else record
        logger.info("Record created via REST", kind=record_kind.name, record_id=created.id)
        return created

    def read(self, kind: str, record_id: str) -> Any:
        record_kind = get_kind(kind)
        logger.info("Reading record via REST", kind=record_kind.name, record_id=record_id)
        response = self.request("GET", f"{record_kind.endpoint}/{record_id}")
        data = self._unwrap(response, record_kind.name, "read")
        if not data:
            raise BackendError(f"{record_kind.name} {record_id} not found", record_kind.name, "read")
        return self._to_record(record_kind.name, data)

    def update(self, kind: str, record_id: str, changes: dict[str, Any]) -> Any:
        """Send changed fields after validating the merged record.

        Unknown field names are rejected before any request; the current
        record is then read so form rules apply to the result.
        """
        record_kind = get_kind(kind)
        record_id = validate_record_id(record_id, record_kind.name)
        apply_changes(record_kind.model(), changes)
        validate_record(apply_changes(self.read(record_kind.name, record_id), changes))
        logger.info("Updating record via REST", kind=record_kind.name, record_id=record_id, fields=list(changes))
        response = self.request("PUT", f"{record_kind.endpoint}/{record_id}", to_camel_keys(changes))
        data = self._unwrap(response, record_kind.name, "update")
        if not data:
            return self.read(record_kind.name, record_id)
        return self._to_record(record_kind.name, data)

    def delete(self, kind: str, record_ids: list[str]) -> None:
        record_kind = get_kind(kind)
        logger.info("Deleting records via REST", kind=record_kind.name, record_ids=record_ids, count=len(record_ids))
        for record_id in record_ids:
            record_id = validate_record_id(record_id, record_kind.name)
            response = self.request("DELETE", f"{record_kind.endpoint}/{record_id}")
            self._unwrap(response, record_kind.name, "delete")
        logger.info("Records deleted via REST", kind=record_kind.name, count=len(record_ids))

    def list_records(
        self,
        kind: str,
        filters: dict[str, str] | None = None,
        sort_by: str | None = None,
        limit: int | None = None,
    ) -> list[Any]:
        record_kind = get_kind(kind)
        logger.info("Listing records via REST", kind=record_kind.name, filters=filters, sort_by=sort_by, limit=limit)
        params: dict[str, Any] = to_camel_keys(dict(filters or {}))
        params["sort"] = sort_by
        params["limit"] = limit
        response = self.request("GET", record_kind.endpoint, params=params)
        data = self._unwrap(response, record_kind.name, "list") or []
        records = [self._to_record(record_kind.name, item) for item in data]
        if limit:
            records = records[:limit]
        logger.info("Listed records via REST", kind=record_kind.name, count=len(records))
        return records

    def acknowledge_alert(self, alert_id: str) -> Any:
        logger.info("Acknowledging alert via REST", alert_id=alert_id)
        return self._unwrap(self.request("PUT", f"/alerts/{alert_id}/acknowledge"), "alert", "acknowledge")

    def resolve_alert(self, alert_id: str) -> Any:
        logger.info("Resolving alert via REST", alert_id=alert_id)
        return self._unwrap(self.request("PUT", f"/alerts/{alert_id}/resolve"), "alert", "resolve")

    def dismiss_alert(self, alert_id: str) -> None:
        logger.info("Dismissing alert via REST", alert_id=alert_id)
        self._unwrap(self.request("PUT", f"/alerts/{alert_id}/dismiss"), "alert", "dismiss")

    def bulk_update_alerts(self, alert_ids: list[str], action: str) -> Any:
        """Apply one action (acknowledge, resolve or dismiss) to several alerts."""
        logger.info("Bulk updating alerts via REST", action=action, count=len(alert_ids))
        response = self.request("PUT", "/alerts/bulk", {"alertIds": alert_ids, "action": action})
        return self._unwrap(response, "alert", action)

    def resolve_violation(self, violation_id: str) -> Any:
        logger.info("Resolving violation via REST", violation_id=violation_id)
        response = self.request("PUT", f"/compliance/violations/{violation_id}/resolve")
        return self._unwrap(response, "violation", "resolve")

    def sync_integration(self, integration_id: str) -> Any:
        logger.info("Syncing integration via REST", integration_id=integration_id)
        return self._unwrap(self.request("POST", f"/integrations/{integration_id}/sync"), "integration", "sync")

    def test_integration(self, integration_id: str) -> Any:
        logger.info("Testing integration via REST", integration_id=integration_id)
        return self._unwrap(self.request("POST", f"/integrations/{integration_id}/test"), "integration", "test")

