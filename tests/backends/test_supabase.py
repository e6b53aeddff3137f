"""Tests for Supabase backend."""

from unittest.mock import MagicMock, Mock

import pytest

from asset_manager.backend import BackendError
from asset_manager.backends.realtime import RealtimeListener
from asset_manager.backends.supabase import SupabaseBackend
from asset_manager.models import Asset, License
from asset_manager.validation import ValidationError

ASSET_ID = "3f2504e0-4f89-41d3-9a0c-0305e82c3301"


@pytest.fixture
def mock_query() -> Mock:
    """Create a mock query builder whose filter methods chain."""
    query = MagicMock()
    for method in ("select", "insert", "update", "delete", "eq", "in_", "order", "limit"):
        getattr(query, method).return_value = query
    query.execute.return_value = MagicMock(data=[])
    return query


@pytest.fixture
def mock_supabase_client(mock_query: Mock) -> Mock:
    """Create a mock supabase-py client."""
    client = MagicMock()
    client.table.return_value = mock_query
    return client


@pytest.fixture
def supabase_backend(mock_supabase_client: Mock, monkeypatch: pytest.MonkeyPatch) -> SupabaseBackend:
    """Create a Supabase backend with mocked client."""
    with monkeypatch.context() as m:
        m.setattr("asset_manager.backends.supabase.create_client", lambda url, key: mock_supabase_client)
        backend = SupabaseBackend(url="https://test.supabase.co", key="anon-key")

    return backend


@pytest.fixture
def sample_asset_row() -> dict:
    """Create a sample assets table row."""
    return {
        "id": ASSET_ID,
        "name": "MacBook Pro",
        "asset_tag": "AST-001",
        "category": "Laptop",
        "status": "Assigned",
        "purchase_cost": 2499.0,
        "warranty_expires": "2026-01-01",
        "created_at": "2024-01-01T00:00:00Z",
    }


def test_init_requires_url_and_key() -> None:
    """Test missing settings are rejected."""
    with pytest.raises(ValueError, match="URL required"):
        SupabaseBackend(url="", key="k")
    with pytest.raises(ValueError, match="key required"):
        SupabaseBackend(url="https://test.supabase.co", key="")


def test_create_asset(
    supabase_backend: SupabaseBackend, mock_supabase_client: Mock, mock_query: Mock, sample_asset_row: dict
) -> None:
    """Test inserting an asset row."""
    mock_query.execute.return_value = MagicMock(data=[sample_asset_row])

    asset = supabase_backend.create("asset", Asset(name="MacBook Pro", tag="AST-001", status="Assigned"))

    mock_supabase_client.table.assert_called_with("assets")
    row = mock_query.insert.call_args[0][0]
    assert row["asset_tag"] == "AST-001"
    assert "id" not in row
    assert asset.id == ASSET_ID
    assert asset.tag == "AST-001"
    assert asset.warranty_expiry == "2026-01-01"


def test_create_validates_before_insert(supabase_backend: SupabaseBackend, mock_query: Mock) -> None:
    """Test invalid records never reach the database."""
    with pytest.raises(ValidationError):
        supabase_backend.create("license", License(name="Office", seats=1, available_seats=2))
    mock_query.insert.assert_not_called()


def test_create_with_no_row_returned(supabase_backend: SupabaseBackend) -> None:
    """Test an empty insert response is an error."""
    with pytest.raises(BackendError, match="returned no row"):
        supabase_backend.create("asset", Asset(name="Laptop"))


def test_read_asset(supabase_backend: SupabaseBackend, mock_query: Mock, sample_asset_row: dict) -> None:
    """Test reading a row by ID."""
    mock_query.execute.return_value = MagicMock(data=[sample_asset_row])

    asset = supabase_backend.read("asset", ASSET_ID)

    mock_query.eq.assert_called_with("id", ASSET_ID)
    assert asset.name == "MacBook Pro"


def test_read_missing(supabase_backend: SupabaseBackend) -> None:
    """Test reading a missing row."""
    with pytest.raises(BackendError, match="not found"):
        supabase_backend.read("asset", ASSET_ID)


def test_update_requires_uuid(supabase_backend: SupabaseBackend, mock_query: Mock) -> None:
    """Test updates with malformed IDs are rejected before any request."""
    with pytest.raises(ValidationError, match="Invalid ID format"):
        supabase_backend.update("asset", "42", {"name": "X"})
    mock_query.execute.assert_not_called()


def test_update_asset(supabase_backend: SupabaseBackend, mock_query: Mock, sample_asset_row: dict) -> None:
    """Test updating merges with the current row."""
    updated_row = {**sample_asset_row, "status": "In Repair"}
    mock_query.execute.side_effect = [MagicMock(data=[sample_asset_row]), MagicMock(data=[updated_row])]

    asset = supabase_backend.update("asset", ASSET_ID, {"status": "In Repair"})

    row = mock_query.update.call_args[0][0]
    assert row["status"] == "In Repair"
    assert row["asset_tag"] == "AST-001"
    assert "id" not in row
    assert asset.status == "In Repair"


def test_update_license_recomputes_seats_used(supabase_backend: SupabaseBackend, mock_query: Mock) -> None:
    """Test derived seat columns follow the merged record."""
    license_row = {"id": ASSET_ID, "name": "Office", "seats_total": 10, "seats_used": 4}
    mock_query.execute.side_effect = [MagicMock(data=[license_row]), MagicMock(data=[license_row])]

    supabase_backend.update("license", ASSET_ID, {"available_seats": 1})

    row = mock_query.update.call_args[0][0]
    assert row["seats_total"] == 10
    assert row["seats_used"] == 9


def test_delete(supabase_backend: SupabaseBackend, mock_query: Mock) -> None:
    """Test deleting several rows."""
    supabase_backend.delete("asset", ["a", "b"])
    mock_query.in_.assert_called_once_with("id", ["a", "b"])
    mock_query.execute.assert_called_once()


def test_list_defaults_to_newest_first(
    supabase_backend: SupabaseBackend, mock_query: Mock, sample_asset_row: dict
) -> None:
    """Test listing orders by creation time."""
    mock_query.execute.return_value = MagicMock(data=[sample_asset_row])

    assets = supabase_backend.list_records("asset")

    mock_query.select.assert_called_with("*")
    mock_query.order.assert_called_once_with("created_at", desc=True)
    assert [a.name for a in assets] == ["MacBook Pro"]


def test_list_with_filters_sort_and_limit(supabase_backend: SupabaseBackend, mock_query: Mock) -> None:
    """Test filters and sorting use table column names."""
    supabase_backend.list_records("asset", filters={"tag": "AST-001"}, sort_by="-warranty_expiry", limit=5)

    mock_query.eq.assert_called_once_with("asset_tag", "AST-001")
    mock_query.order.assert_called_once_with("warranty_expires", desc=True)
    mock_query.limit.assert_called_once_with(5)


def test_request_failure_raises_backend_error(supabase_backend: SupabaseBackend, mock_query: Mock) -> None:
    """Test client exceptions are wrapped."""
    mock_query.execute.side_effect = RuntimeError("connection reset")
    with pytest.raises(BackendError, match="Failed to list asset: connection reset") as excinfo:
        supabase_backend.list_records("asset")
    assert excinfo.value.kind == "asset"
    assert excinfo.value.operation == "list"


def test_sign_in(supabase_backend: SupabaseBackend, mock_supabase_client: Mock) -> None:
    """Test signing in returns the session and keeps its access token."""
    session = MagicMock(access_token="access-1", refresh_token="refresh-1", user=MagicMock(id="user-1"))
    mock_supabase_client.auth.sign_in_with_password.return_value = MagicMock(session=session)

    assert supabase_backend.sign_in("it@example.com", "secret") is session
    assert supabase_backend.access_token == "access-1"
    mock_supabase_client.auth.sign_in_with_password.assert_called_once_with(
        {"email": "it@example.com", "password": "secret"}
    )


def test_sign_in_failure(supabase_backend: SupabaseBackend, mock_supabase_client: Mock) -> None:
    """Test a failed sign-in raises BackendError."""
    mock_supabase_client.auth.sign_in_with_password.side_effect = RuntimeError("Invalid login credentials")
    with pytest.raises(BackendError, match="Sign-in failed"):
        supabase_backend.sign_in("it@example.com", "wrong")


def test_restore_session(supabase_backend: SupabaseBackend, mock_supabase_client: Mock) -> None:
    """Test resuming a saved session returns the current tokens."""
    session = MagicMock(access_token="access-2", refresh_token="refresh-2", user=MagicMock(id="user-1"))
    mock_supabase_client.auth.set_session.return_value = MagicMock(session=session)

    tokens = supabase_backend.restore_session("access-1", "refresh-1")

    mock_supabase_client.auth.set_session.assert_called_once_with("access-1", "refresh-1")
    assert tokens == ("access-2", "refresh-2")
    assert supabase_backend.access_token == "access-2"


def test_restore_session_expired(supabase_backend: SupabaseBackend, mock_supabase_client: Mock) -> None:
    """Test a rejected refresh token asks for a new login."""
    mock_supabase_client.auth.set_session.side_effect = RuntimeError("Invalid Refresh Token")
    with pytest.raises(BackendError, match="am login"):
        supabase_backend.restore_session("access-1", "refresh-1")


def test_subscribe_forwards_changes(supabase_backend: SupabaseBackend) -> None:
    """Test realtime payloads become change events."""
    listener = MagicMock(spec=RealtimeListener)
    supabase_backend.realtime = listener
    events = []

    handle = supabase_backend.subscribe("alert", events.append)

    assert handle is listener.subscribe.return_value
    table, forward = listener.subscribe.call_args.args
    assert table == "alerts"

    forward({"data": {"type": "INSERT", "record": {"id": "1", "title": "New"}, "old_record": None}})
    assert events[0].type == "INSERT"
    assert events[0].kind == "alert"
    assert events[0].new == {"id": "1", "title": "New"}
    assert events[0].old is None


def test_subscribe_creates_listener_with_session_token(
    supabase_backend: SupabaseBackend, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test the listener is created on first use with the signed-in token."""
    listener = MagicMock(spec=RealtimeListener)
    factory = MagicMock(return_value=listener)
    monkeypatch.setattr("asset_manager.backends.supabase.RealtimeListener", factory)
    supabase_backend.access_token = "access-1"

    supabase_backend.subscribe("alert", lambda event: None)
    supabase_backend.subscribe("asset", lambda event: None)

    factory.assert_called_once_with("https://test.supabase.co", "anon-key", access_token="access-1")
    assert listener.subscribe.call_count == 2


def test_unsubscribe(supabase_backend: SupabaseBackend) -> None:
    """Test removing a channel through the listener."""
    listener = MagicMock(spec=RealtimeListener)
    supabase_backend.realtime = listener
    channel = MagicMock()

    supabase_backend.unsubscribe(channel)

    listener.unsubscribe.assert_called_once_with(channel)


def test_invoke_function(supabase_backend: SupabaseBackend, mock_supabase_client: Mock) -> None:
    """Test invoking an edge function decodes JSON."""
    mock_supabase_client.functions.invoke.return_value = b'{"success": true, "complianceScore": 90}'

    result = supabase_backend.invoke("compliance-check")

    assert result == {"success": True, "complianceScore": 90}
    args, kwargs = mock_supabase_client.functions.invoke.call_args
    assert args == ("compliance-check",)
    assert kwargs["invoke_options"]["body"] == {}


def test_invoke_failure(supabase_backend: SupabaseBackend, mock_supabase_client: Mock) -> None:
    """Test edge function errors are wrapped."""
    mock_supabase_client.functions.invoke.side_effect = RuntimeError("500")
    with pytest.raises(BackendError, match="Function compliance-check failed"):
        supabase_backend.invoke("compliance-check")
