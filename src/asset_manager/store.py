"""Shared record cache with explicit load state, and interval polling."""

import dataclasses
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from asset_manager.backend import Backend, BackendError
from asset_manager.metrics import search_records
from asset_manager.models import ChangeEvent, get_kind, record_to_dict

logger = structlog.get_logger()

# Seconds between refreshes for each view
REFRESH_INTERVALS = {
    "imports": 5.0,
    "alerts": 30.0,
    "maintenance": 45.0,
    "integrations": 90.0,
    "compliance": 120.0,
    "analytics": 120.0,
    "financial": 300.0,
}

# Kinds each view needs loaded
VIEW_KINDS = {
    "dashboard": (
        "asset",
        "license",
        "accessory",
        "consumable",
        "component",
        "person",
        "kit",
        "requestable",
        "alert",
        "maintenance",
        "compliance_check",
        "violation",
    ),
    "imports": ("import",),
    "alerts": ("alert",),
    "maintenance": ("maintenance", "asset"),
    "integrations": ("integration",),
    "compliance": ("compliance_check", "violation", "license", "asset"),
    "analytics": ("asset", "license", "accessory", "component", "person"),
    "financial": ("asset", "license", "accessory", "component"),
}


class LoadState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass
class Snapshot:
    """Cached records of one kind and how they were last loaded."""

    records: list[Any] = field(default_factory=list)
    state: LoadState = LoadState.IDLE
    error: str | None = None
    loaded_at: float | None = None


class RecordStore:
    """Per-kind cache of backend records shared by all views.

    A failed refresh keeps the previous records and moves the kind into the
    ``ERROR`` state with the failure message.
    """

    def __init__(self, backend: Backend) -> None:
        self.backend = backend
        self._snapshots: dict[str, Snapshot] = {}
        self._lock = threading.Lock()

    def _snapshot(self, kind: str) -> Snapshot:
        return self._snapshots.setdefault(kind, Snapshot())

    def state(self, kind: str) -> LoadState:
        with self._lock:
            return self._snapshot(get_kind(kind).name).state

    def snapshot(self, kind: str) -> Snapshot:
        """Return a copy of the kind's snapshot."""
        with self._lock:
            current = self._snapshot(get_kind(kind).name)
            return dataclasses.replace(current, records=list(current.records))

    def get(self, kind: str) -> list[Any]:
        """Cached records of a kind, empty if never loaded."""
        return self.snapshot(kind).records

    def search(self, kind: str, term: str | None) -> list[Any]:
        return search_records(self.get(kind), term, get_kind(kind).search_fields)

    def collections(self, kinds: Iterable[str] | None = None) -> dict[str, list[Any]]:
        """Cached records keyed by kind name."""
        with self._lock:
            names = [get_kind(k).name for k in kinds] if kinds is not None else list(self._snapshots)
            return {name: list(self._snapshot(name).records) for name in names}

    def refresh(self, kind: str) -> Snapshot:
        """Reload one kind from the backend."""
        name = get_kind(kind).name
        with self._lock:
            self._snapshot(name).state = LoadState.LOADING

        try:
            records = self.backend.list_records(name)
        except (BackendError, NotImplementedError) as e:
            logger.error("Failed to refresh records", kind=name, error=str(e))
            with self._lock:
                current = self._snapshot(name)
                current.state = LoadState.ERROR
                current.error = str(e)
            return self.snapshot(name)

        with self._lock:
            self._snapshots[name] = Snapshot(records=records, state=LoadState.READY, loaded_at=time.time())
        logger.debug("Refreshed records", kind=name, count=len(records))
        return self.snapshot(name)

    def refresh_many(self, kinds: Iterable[str]) -> dict[str, Snapshot]:
        return {get_kind(kind).name: self.refresh(kind) for kind in kinds}

    def create(self, kind: str, record: Any) -> Any:
        name = get_kind(kind).name
        created = self.backend.create(name, record)
        with self._lock:
            current = self._snapshot(name)
            current.records = [created, *current.records]
        return created

    def update(self, kind: str, record_id: str, changes: dict[str, Any]) -> Any:
        name = get_kind(kind).name
        updated = self.backend.update(name, record_id, changes)
        with self._lock:
            current = self._snapshot(name)
            current.records = [updated if r.id == record_id else r for r in current.records]
        return updated

    def delete(self, kind: str, record_ids: list[str]) -> None:
        name = get_kind(kind).name
        self.backend.delete(name, record_ids)
        with self._lock:
            current = self._snapshot(name)
            current.records = [r for r in current.records if r.id not in record_ids]


class Poller:
    """Calls a function every ``interval`` seconds in a daemon thread."""

    def __init__(self, func: Callable[[], Any], interval: float, name: str = "poller") -> None:
        if interval <= 0:
            raise ValueError("Polling interval must be positive")
        self.func = func
        self.interval = interval
        self.name = name
        self.thread: threading.Thread | None = None
        self._stop = threading.Event()

    @property
    def running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self.thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self.thread.start()
        logger.info("Poller started", name=self.name, interval=self.interval)

    def stop(self, timeout: float | None = 2.0) -> None:
        self._stop.set()
        if self.thread:
            self.thread.join(timeout=timeout)
            self.thread = None
        logger.info("Poller stopped", name=self.name)

    def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.func()
            except Exception as e:
                # Keep polling; the next tick may succeed
                logger.error("Poll failed", name=self.name, error=str(e))
            self._stop.wait(self.interval)


def poll_view(store: RecordStore, view: str, interval: float | None = None) -> Poller:
    """Poller that refreshes every kind a view needs."""
    if view not in VIEW_KINDS:
        raise ValueError(f"Unknown view: '{view}'. Must be one of: {', '.join(VIEW_KINDS)}")
    kinds = VIEW_KINDS[view]
    return Poller(lambda: store.refresh_many(kinds), interval or REFRESH_INTERVALS.get(view, 60.0), name=view)


class ChangeFeed:
    """Turns consecutive snapshots of a kind into insert/update/delete events."""

    def __init__(self, kind: str) -> None:
        self.kind = get_kind(kind).name
        self._previous: dict[str, dict[str, Any]] | None = None

    def diff(self, records: Sequence[Any]) -> list[ChangeEvent]:
        """Compare ``records`` with the last snapshot seen.

        The first call only records the baseline and returns no events.
        """
        current = {r.id: record_to_dict(r) for r in records}
        previous, self._previous = self._previous, current
        if previous is None:
            return []

        events = []
        for record_id, new in current.items():
            old = previous.get(record_id)
            if old is None:
                events.append(ChangeEvent(type="INSERT", kind=self.kind, new=new))
            elif old != new:
                events.append(ChangeEvent(type="UPDATE", kind=self.kind, new=new, old=old))
        for record_id, old in previous.items():
            if record_id not in current:
                events.append(ChangeEvent(type="DELETE", kind=self.kind, old=old))
        return events
