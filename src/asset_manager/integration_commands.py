"""Integration commands for asset manager CLI."""

import json
from pathlib import Path

from cyclopts import App

from asset_manager.integrations import IntegrationService, add_mapping

integration_app = App(name="integration", help="Manage external-system integrations")


@integration_app.command(name="list")
def list_integrations() -> None:
    """List integrations and their sync status."""
    from asset_manager.cli import get_backend

    integrations = get_backend().list_records("integration")
    if not integrations:
        print("No integrations")
        return
    for integration in integrations:
        last_sync = integration.last_sync or "never"
        print(
            f"{integration.id}: {integration.name} ({integration.type}) "
            f"[{integration.status}] {integration.sync_frequency}, last sync {last_sync}"
        )
        for entry in integration.error_log:
            if not entry.resolved:
                print(f"    ! {entry.timestamp} {entry.error}: {entry.details}")


@integration_app.command
def sync(*integration_ids: str, due: bool = False) -> None:
    """Start a sync for the given integrations, or for every due one with --due."""
    from asset_manager.cli import get_backend

    service = IntegrationService(get_backend())
    ids = [*integration_ids]
    if due:
        ids.extend(i.id for i in service.due())
    if not ids:
        print("Nothing to sync")
        return
    for integration_id in ids:
        service.sync(integration_id)
        print(f"Sync started for {integration_id}")


@integration_app.command
def ingest(integration_id: str, kind: str, payload_file: Path) -> None:
    """Create records from a JSON list of source payloads using the integration's mappings."""
    from asset_manager.cli import get_backend

    payloads = json.loads(payload_file.read_text(encoding="utf-8"))
    if isinstance(payloads, dict):
        payloads = [payloads]
    created = IntegrationService(get_backend()).complete_sync(integration_id, kind, payloads)
    print(f"Created {len(created)} {kind} record(s) from {len(payloads)} payload(s)")


@integration_app.command
def test(integration_id: str) -> None:
    """Check that an integration's endpoint is reachable."""
    from asset_manager.cli import get_backend

    ok = IntegrationService(get_backend()).test(integration_id)
    print(f"Connection {'succeeded' if ok else 'failed'} for {integration_id}")


@integration_app.command(name="map")
def map_field(integration_id: str, source_field: str, target_field: str, transformation: str | None = None) -> None:
    """Add a field mapping to an integration."""
    from asset_manager.cli import get_backend

    backend = get_backend()
    integration = add_mapping(backend.read("integration", integration_id), source_field, target_field, transformation)
    backend.update("integration", integration_id, {"mappings": integration.mappings})
    print(f"Mapped {source_field} -> {target_field} on {integration_id}")
