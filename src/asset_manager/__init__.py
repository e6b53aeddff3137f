"""Asset manager: IT asset, license and inventory tracking over Supabase or a REST API."""
