"""CLI for asset manager."""

import dataclasses
import getpass
import sys
import time
from pathlib import Path
from typing import Annotated, Any, Literal

import structlog
from cyclopts import App, Parameter

from asset_manager.alert_commands import alert_app
from asset_manager.backend import Backend, BackendError
from asset_manager.backends import RestBackend, SupabaseBackend
from asset_manager.compliance_commands import compliance_app
from asset_manager.config import Config, get_config
from asset_manager.config_commands import config_app
from asset_manager.export import write_export
from asset_manager.importer import ImportService
from asset_manager.integration_commands import integration_app
from asset_manager.metrics import (
    compute_analytics_metrics,
    compute_dashboard_metrics,
    compute_financial_metrics,
    compute_maintenance_metrics,
    search_records,
    total_cost_of_ownership,
)
from asset_manager.models import ChangeEvent, coerce_fields, get_kind, record_from_dict, record_to_dict
from asset_manager.reports import build_report_rows
from asset_manager.store import REFRESH_INTERVALS, VIEW_KINDS, ChangeFeed, LoadState, Poller, RecordStore

logger = structlog.get_logger()

ACCESS_TOKEN_KEY = "supabase.access_token"
REFRESH_TOKEN_KEY = "supabase.refresh_token"

app = App(
    help="Asset Manager - IT asset, license and inventory tracking",
)

app.command(config_app)
app.command(compliance_app)
app.command(alert_app)
app.command(integration_app)


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def save_session(config: Config, access_token: str, refresh_token: str) -> None:
    """Store Supabase session tokens in the config that held the previous ones."""
    if not config.is_global and not config.defines(REFRESH_TOKEN_KEY):
        config = get_config(use_global=True)
    config.set(ACCESS_TOKEN_KEY, access_token)
    config.set(REFRESH_TOKEN_KEY, refresh_token)


def get_backend(restore_session: bool = True) -> Backend:
    """Get the configured backend.

    Args:
        restore_session: Resume the Supabase session saved by ``am login``
    """
    config = get_config()
    backend_type = config.get("backend")

    if backend_type == "supabase":
        url = config.get("supabase.url")
        key = config.get("supabase.key")
        if not url or not key:
            raise ValueError(
                "Supabase URL and key not configured. Set them using:\n"
                "  am config set supabase.url <url>\n"
                "  am config set supabase.key <anon-key>\n"
                "or export SUPABASE_URL and SUPABASE_ANON_KEY"
            )
        backend = SupabaseBackend(url=url, key=key)
        access_token = config.get(ACCESS_TOKEN_KEY)
        refresh_token = config.get(REFRESH_TOKEN_KEY)
        if restore_session and access_token and refresh_token:
            tokens = backend.restore_session(access_token, refresh_token)
            # Refresh tokens are single-use once rotated
            if tokens != (access_token, refresh_token):
                save_session(config, *tokens)
        return backend
    elif backend_type == "rest":
        return RestBackend(base_url=config.get("rest.base_url"), token=config.get("rest.token"))
    else:
        raise ValueError(f"Unknown backend: {backend_type}")


def parse_fields(pairs: tuple[str, ...] | list[str]) -> dict[str, str]:
    """Parse ``key=value`` tokens into a dict."""
    fields = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Expected key=value, got '{pair}'")
        key, value = pair.split("=", 1)
        fields[key.strip()] = value.strip()
    return fields


def label_of(record: Any) -> str:
    for name in ("full_name", "name", "title", "description", "file_name", "type"):
        value = getattr(record, name, None)
        if value:
            return str(value)
    return ""


def print_record(record: Any) -> None:
    for key, value in record_to_dict(record).items():
        if value in (None, "", [], {}):
            continue
        print(f"{key.replace('_', ' ').capitalize()}: {value}")


def describe_change(event: ChangeEvent) -> str:
    row = event.new or event.old or {}
    return f"{event.type} {event.kind} {row.get('id', '')} {row.get('name') or row.get('title') or ''}".rstrip()


@app.command
def create(kind: str, *fields: str) -> None:
    """Create a record from key=value fields.

    Example: am create asset name=Laptop tag=AST-001 purchase_cost=1200
    """
    backend = get_backend()
    record = record_from_dict(kind, parse_fields(fields), coerce=True)
    created = backend.create(kind, record)
    print(f"Created {get_kind(kind).name} {created.id}: {label_of(created)}")


@app.command
def read(kind: str, record_id: str) -> None:
    """Show a record."""
    backend = get_backend()
    print_record(backend.read(kind, record_id))


@app.command
def update(kind: str, record_id: str, *fields: str) -> None:
    """Update fields of a record given as key=value."""
    backend = get_backend()
    changes = coerce_fields(kind, parse_fields(fields))
    if not changes:
        raise ValueError("No fields to update")
    updated = backend.update(kind, record_id, changes)
    print(f"Updated {get_kind(kind).name} {updated.id}: {label_of(updated)}")


@app.command
def delete(kind: str, *record_ids: str, yes: bool = False) -> None:
    """Delete one or more records after confirmation."""
    if not record_ids:
        raise ValueError("No record IDs given")
    name = get_kind(kind).name
    if not yes:
        answer = input(f"Are you sure you want to delete {len(record_ids)} {name} record(s)? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Cancelled")
            return
    backend = get_backend()
    backend.delete(kind, [*record_ids])
    print(f"Deleted {len(record_ids)} {name} record(s)")


@app.command(name="list")
def list_records(
    kind: str,
    search: str | None = None,
    filter: str | None = None,
    sort: str | None = None,
    limit: int | None = None,
) -> None:
    """List records with optional search, filtering, sorting, and limiting.

    Filters are comma-separated key=value pairs; prefix sort with - for descending.
    """
    record_kind = get_kind(kind)
    backend = get_backend()
    filters = parse_fields([f for f in filter.split(",") if f.strip()]) if filter else None
    records = backend.list_records(record_kind.name, filters=filters, sort_by=sort, limit=limit)
    records = search_records(records, search, record_kind.search_fields)

    print(f"Found {len(records)} {record_kind.name} record(s):\n")
    for record in records:
        status = getattr(record, "status", None)
        suffix = f" [{status}]" if status else ""
        print(f"{record.id}: {label_of(record)}{suffix}")


def _print_metrics(title: str, metrics: Any) -> None:
    print(f"{title}:\n")
    for key, value in dataclasses.asdict(metrics).items():
        if isinstance(value, float):
            value = f"{value:,.2f}"
        print(f"  {key.replace('_', ' ').capitalize()}: {value}")


@app.command
def dashboard(
    view: Literal["dashboard", "financial", "analytics", "maintenance"] = "dashboard",
) -> None:
    """Show summary metrics for a view."""
    store = RecordStore(get_backend())
    kinds = VIEW_KINDS[view]
    for kind, snapshot in store.refresh_many(kinds).items():
        if snapshot.state is LoadState.ERROR:
            print(f"Warning: could not load {kind}: {snapshot.error}", file=sys.stderr)
    data = store.collections(kinds)
    window = get_config().get_int("dashboard.expiring_window_days")

    if view == "dashboard":
        _print_metrics("Dashboard", compute_dashboard_metrics(data, window_days=window))
    elif view == "financial":
        _print_metrics(
            "Financial",
            compute_financial_metrics(data["asset"], data["license"], data["accessory"], data["component"]),
        )
        print("\n  Total cost of ownership (3 years):")
        for asset in data["asset"]:
            print(f"    {asset.tag or asset.id} {asset.name}: {total_cost_of_ownership(asset):,.2f}")
    elif view == "analytics":
        _print_metrics(
            "Analytics",
            compute_analytics_metrics(
                data["asset"], data["license"], data["accessory"], data["component"], data["person"]
            ),
        )
    else:
        _print_metrics("Maintenance", compute_maintenance_metrics(data["maintenance"]))


def _watch_realtime(backend: Backend, kinds: tuple[str, ...]) -> bool:
    """Print realtime changes until interrupted; False if the backend has no change feed."""
    handles = []
    try:
        for kind in kinds:
            handles.append(backend.subscribe(kind, lambda event: print(describe_change(event))))
    except (BackendError, NotImplementedError) as e:
        for handle in handles:
            backend.unsubscribe(handle)
        logger.info("Realtime unavailable, polling instead", error=str(e))
        print(f"Realtime unavailable ({e}), polling instead", file=sys.stderr)
        return False

    print(f"Listening for changes to {', '.join(kinds)} (Ctrl-C to stop)")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        for handle in handles:
            backend.unsubscribe(handle)
    return True


@app.command
def watch(view: str = "alerts", interval: float | None = None, realtime: bool = False) -> None:
    """Watch the records behind a view and print changes until interrupted.

    With --realtime the backend's change feed is used when it has one;
    otherwise the view is polled.
    """
    if view not in VIEW_KINDS:
        raise ValueError(f"Unknown view: '{view}'. Must be one of: {', '.join(VIEW_KINDS)}")
    backend = get_backend()
    kinds = VIEW_KINDS[view]

    if realtime and _watch_realtime(backend, kinds):
        return

    store = RecordStore(backend)
    feeds = {kind: ChangeFeed(kind) for kind in kinds}

    def tick() -> None:
        for kind, snapshot in store.refresh_many(kinds).items():
            if snapshot.state is LoadState.ERROR:
                print(f"{kind}: refresh failed: {snapshot.error}")
                continue
            for event in feeds[get_kind(kind).name].diff(snapshot.records):
                print(describe_change(event))

    poller = Poller(tick, interval or REFRESH_INTERVALS.get(view, 60.0), name=view)
    print(f"Polling {', '.join(kinds)} every {poller.interval:g}s (Ctrl-C to stop)")
    poller.start()
    try:
        while poller.running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        pass
    finally:
        poller.stop()


@app.command
def export(kind: str, output: Path, format: Literal["csv", "json", "excel"] = "csv") -> None:
    """Export records of a kind to a file."""
    name = get_kind(kind).name
    backend = get_backend()
    # Kit rows resolve member names from the other inventories
    kinds = ["asset", "accessory", "license", "consumable", "kit"] if name == "kit" else [name]
    collections = {k: backend.list_records(k) for k in kinds}
    rows = build_report_rows(name, collections)
    path = write_export(rows, output, format)
    print(f"Exported {len(rows)} {name} record(s) to {path}")


@app.command(name="import")
def import_(path: Path, kind: str = "asset") -> None:
    """Import records from a CSV file."""
    service = ImportService(get_backend())
    result = service.import_file(path, kind)
    print(f"Import {result.status}: {result.records_processed}/{result.total_records} record(s) imported")
    for error in result.errors:
        print(f"  {error}")


@app.command
def login(username: str, password: str | None = None, global_: bool = False) -> None:
    """Log in to the configured backend.

    The REST bearer token or the Supabase session tokens are saved in the
    config so later commands run as this user.
    """
    if password is None:
        password = getpass.getpass("Password: ")
    backend = get_backend(restore_session=False)
    config = get_config(use_global=global_)
    if isinstance(backend, RestBackend):
        response = backend.login(username, password)
        if not response.ok or not backend.token:
            raise BackendError(f"Login failed: {response.error or 'no token returned'}", operation="login")
        config.set("rest.token", backend.token)
        print(f"Logged in as {username}")
    elif isinstance(backend, SupabaseBackend):
        session = backend.sign_in(username, password)
        config.set(ACCESS_TOKEN_KEY, session.access_token)
        config.set(REFRESH_TOKEN_KEY, session.refresh_token)
        print(f"Signed in as {username} ({session.user.id})")
    else:
        raise ValueError(f"{type(backend).__name__} does not support login")


@app.command
def logout(global_: bool = False) -> None:
    """Forget the saved login."""
    config = get_config(use_global=global_)
    for key in ("rest.token", ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY):
        config.unset(key)
    print("Logged out")


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "critical",
) -> None:
    """Main entry point with global options."""
    configure_logging(log_level)
    try:
        app(tokens)
    except (BackendError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    app.meta()
