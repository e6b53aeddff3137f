"""Alert commands for asset manager CLI."""

from cyclopts import App

alert_app = App(name="alert", help="Review and act on alerts")


@alert_app.command(name="list")
def list_alerts(unread: bool = False, priority: str | None = None) -> None:
    """List alerts, newest first."""
    from asset_manager.cli import get_backend

    backend = get_backend()
    filters = {"priority": priority} if priority else None
    alerts = backend.list_records("alert", filters=filters)
    if unread:
        alerts = [a for a in alerts if not a.read]

    if not alerts:
        print("No alerts")
        return

    print(f"Found {len(alerts)} alert(s):\n")
    for alert in alerts:
        marker = "○" if alert.read else "●"
        print(f"{marker} {alert.id} [{alert.priority}] {alert.title}: {alert.message}")


def _apply(action: str, alert_ids: tuple[str, ...]) -> None:
    from asset_manager.cli import get_backend

    if not alert_ids:
        raise ValueError("No alert IDs given")
    backend = get_backend()
    if len(alert_ids) == 1:
        getattr(backend, f"{action}_alert")(alert_ids[0])
    else:
        backend.bulk_update_alerts([*alert_ids], action)


@alert_app.command
def acknowledge(*alert_ids: str) -> None:
    """Mark alerts as read."""
    _apply("acknowledge", alert_ids)
    print(f"Acknowledged {len(alert_ids)} alert(s)")


@alert_app.command
def resolve(*alert_ids: str) -> None:
    """Resolve alerts."""
    _apply("resolve", alert_ids)
    print(f"Resolved {len(alert_ids)} alert(s)")


@alert_app.command
def dismiss(*alert_ids: str) -> None:
    """Dismiss alerts."""
    _apply("dismiss", alert_ids)
    print(f"Dismissed {len(alert_ids)} alert(s)")
