"""Supabase backend implementation using supabase-py."""

import json
from collections.abc import Callable
from typing import Any

import structlog
from supabase import Client, create_client

from asset_manager.backend import Backend, BackendError
from asset_manager.backends.realtime import RealtimeListener
from asset_manager.models import ChangeEvent, get_kind
from asset_manager.schema import column_for, from_row, to_row
from asset_manager.validation import apply_changes, validate_record, validate_record_id

logger = structlog.get_logger()


class SupabaseBackend(Backend):
    """Supabase-based backend using one table per record kind."""

    def __init__(self, url: str, key: str) -> None:
        """Initialize Supabase backend.

        Args:
            url: Supabase project URL
            key: Supabase anon or service-role key
        """
        if not url:
            raise ValueError("Supabase URL required")
        if not key:
            raise ValueError("Supabase key required")

        self.url = url
        self.key = key
        self.access_token: str | None = None
        self.realtime: RealtimeListener | None = None
        logger.debug("Initializing Supabase backend", url=url)
        self.client: Client = create_client(url, key)
        logger.info("Supabase backend initialized", url=url)

    def _execute(self, query: Any, kind: str, operation: str) -> list[dict[str, Any]]:
        """Execute a query builder and return its rows."""
        try:
            response = query.execute()
        except Exception as e:
            logger.error("Supabase request failed", kind=kind, operation=operation, error=str(e))
            raise BackendError(f"Failed to {operation} {kind}: {e}", kind=kind, operation=operation) from e
        return response.data or []

    def sign_in(self, email: str, password: str) -> Any:
        """Sign in with email and password.

        Returns:
            The new auth session, carrying ``access_token``, ``refresh_token``
            and ``user``
        """
        logger.info("Signing in to Supabase", email=email)
        try:
            response = self.client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as e:
            logger.error("Supabase sign-in failed", email=email, error=str(e))
            raise BackendError(f"Sign-in failed: {e}", operation="sign_in") from e
        session = response.session
        self.access_token = session.access_token
        logger.info("Signed in to Supabase", user_id=str(session.user.id))
        return session

    def restore_session(self, access_token: str, refresh_token: str) -> tuple[str, str]:
        """Resume a saved session, refreshing it if the access token expired.

        Returns:
            The current access and refresh tokens, which differ from the
            saved ones after a refresh
        """
        try:
            response = self.client.auth.set_session(access_token, refresh_token)
        except Exception as e:
            logger.warning("Failed to restore Supabase session", error=str(e))
            raise BackendError(
                f"Saved Supabase session is no longer valid, run 'am login' again: {e}", operation="restore_session"
            ) from e
        session = response.session
        self.access_token = session.access_token
        logger.debug("Supabase session restored", user_id=str(session.user.id))
        return session.access_token, session.refresh_token

    def sign_out(self) -> None:
        logger.info("Signing out of Supabase")
        self.client.auth.sign_out()
        self.access_token = None

    def create(self, kind: str, record: Any) -> Any:
        """Insert a row and return the stored record."""
        record_kind = get_kind(kind)
        logger.info("Creating Supabase row", kind=record_kind.name, table=record_kind.table)
        validate_record(record)

        row = to_row(record_kind, record)
        rows = self._execute(self.client.table(record_kind.table).insert(row), record_kind.name, "create")
        if not rows:
            raise BackendError(
                f"Insert into {record_kind.table} returned no row", kind=record_kind.name, operation="create"
            )

        created = from_row(record_kind, rows[0])
        logger.info("Supabase row created", kind=record_kind.name, record_id=created.id)
        return created

    def read(self, kind: str, record_id: str) -> Any:
        """Read a row by ID."""
        record_kind = get_kind(kind)
        logger.info("Reading Supabase row", kind=record_kind.name, record_id=record_id)
        query = self.client.table(record_kind.table).select("*").eq("id", record_id).limit(1)
        rows = self._execute(query, record_kind.name, "read")
        if not rows:
            raise BackendError(f"{record_kind.name} {record_id} not found", kind=record_kind.name, operation="read")
        return from_row(record_kind, rows[0])

    def update(self, kind: str, record_id: str, changes: dict[str, Any]) -> Any:
        """Update a row.

        The current row is read first so derived columns (like seats in use)
        are recomputed from the merged record.
        """
        record_kind = get_kind(kind)
        record_id = validate_record_id(record_id, record_kind.name, require_uuid=True)
        logger.info("Updating Supabase row", kind=record_kind.name, record_id=record_id, fields=list(changes))

        current = self.read(record_kind.name, record_id)
        merged = apply_changes(current, changes)
        validate_record(merged)

        row = to_row(record_kind, merged)
        row.pop("id", None)
        query = self.client.table(record_kind.table).update(row).eq("id", record_id)
        rows = self._execute(query, record_kind.name, "update")
        if not rows:
            raise BackendError(f"{record_kind.name} {record_id} not found", kind=record_kind.name, operation="update")

        updated = from_row(record_kind, rows[0])
        logger.info("Supabase row updated", kind=record_kind.name, record_id=record_id)
        return updated

    def delete(self, kind: str, record_ids: list[str]) -> None:
        """Delete rows by ID."""
        record_kind = get_kind(kind)
        record_ids = [validate_record_id(rid, record_kind.name) for rid in record_ids]
        logger.info("Deleting Supabase rows", kind=record_kind.name, record_ids=record_ids, count=len(record_ids))
        query = self.client.table(record_kind.table).delete().in_("id", record_ids)
        self._execute(query, record_kind.name, "delete")
        logger.info("Supabase rows deleted", kind=record_kind.name, count=len(record_ids))

    def list_records(
        self,
        kind: str,
        filters: dict[str, str] | None = None,
        sort_by: str | None = None,
        limit: int | None = None,
    ) -> list[Any]:
        """List rows of a table, newest first unless ``sort_by`` is given."""
        record_kind = get_kind(kind)
        logger.info("Listing Supabase rows", kind=record_kind.name, filters=filters, sort_by=sort_by, limit=limit)

        query = self.client.table(record_kind.table).select("*")
        for key, value in (filters or {}).items():
            query = query.eq(column_for(record_kind, key), value)

        if sort_by:
            descending = sort_by.startswith("-")
            query = query.order(column_for(record_kind, sort_by.lstrip("-")), desc=descending)
        else:
            query = query.order("created_at", desc=True)

        if limit:
            query = query.limit(limit)

        records = [from_row(record_kind, row) for row in self._execute(query, record_kind.name, "list")]
        logger.info("Listed Supabase rows", kind=record_kind.name, count=len(records))
        return records

    def subscribe(self, kind: str, callback: Callable[[ChangeEvent], None]) -> Any:
        """Subscribe to realtime ``postgres_changes`` on the kind's table."""
        record_kind = get_kind(kind)
        logger.info("Subscribing to Supabase changes", kind=record_kind.name, table=record_kind.table)

        def handle(payload: dict[str, Any]) -> None:
            data = payload.get("data", payload)
            event = ChangeEvent(
                type=str(data.get("type") or data.get("eventType") or "").upper(),
                kind=record_kind.name,
                new=data.get("record") or data.get("new") or None,
                old=data.get("old_record") or data.get("old") or None,
            )
            logger.debug("Received Supabase change", kind=record_kind.name, event_type=event.type)
            callback(event)

        if self.realtime is None:
            self.realtime = RealtimeListener(self.url, self.key, access_token=self.access_token)
        return self.realtime.subscribe(record_kind.table, handle)

    def unsubscribe(self, handle: Any) -> None:
        if self.realtime is None:
            return
        logger.info("Removing Supabase channel")
        self.realtime.unsubscribe(handle)

    def invoke(self, function: str, body: dict[str, Any] | None = None) -> Any:
        """Invoke a Supabase Edge Function and return its JSON result."""
        logger.info("Invoking Supabase function", function=function)
        try:
            result = self.client.functions.invoke(function, invoke_options={"body": body or {}, "responseType": "json"})
        except Exception as e:
            logger.warning("Supabase function failed", function=function, error=str(e))
            raise BackendError(f"Function {function} failed: {e}", operation="invoke") from e

        if isinstance(result, (bytes, str)):
            result = json.loads(result) if result else None
        logger.debug("Supabase function returned", function=function)
        return result
