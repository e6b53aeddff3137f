"""Backend implementations."""

from asset_manager.backends.rest import RestBackend
from asset_manager.backends.supabase import SupabaseBackend

__all__ = ["SupabaseBackend", "RestBackend"]
