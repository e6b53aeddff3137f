"""Configuration commands for asset manager CLI."""

from cyclopts import App

from asset_manager.config import DEFAULTS, get_config

config_app = App(name="config", help="Manage backend selection, credentials and dashboard settings")


def is_secret(key: str) -> bool:
    """Keys holding API keys or session tokens, e.g. ``supabase.key`` or ``supabase.refresh_token``."""
    return key.rsplit(".", 1)[-1].endswith(("key", "token"))


def mask(secret: str) -> str:
    """Hide all but the last four characters of a secret."""
    return "*" * max(len(secret) - 4, 0) + secret[-4:]


def shown(key: str, value: object) -> object:
    return mask(str(value)) if is_secret(key) else value


@config_app.command
def set(key: str, value: str, global_: bool = False) -> None:
    """Set a configuration setting.

    Args:
        key: ``backend`` (supabase or rest), ``supabase.url``, ``supabase.key``,
            ``rest.base_url`` or ``dashboard.expiring_window_days``
        value: Configuration value
        global_: Write to ~/.asset-manager instead of ./.asset-manager
    """
    get_config(use_global=global_).set(key, value)
    print(f"Set {key} = {shown(key, value)} ({'global' if global_ else 'local'})")


@config_app.command
def unset(key: str, global_: bool = False) -> None:
    """Remove a setting so the global value, environment or default applies again."""
    get_config(use_global=global_).unset(key)
    print(f"Unset {key} ({'global' if global_ else 'local'})")


@config_app.command
def get(key: str, global_: bool = False) -> None:
    """Show the value a command would use for a key.

    Local settings win over global ones; ``supabase.url``, ``supabase.key``,
    ``rest.base_url`` and ``rest.token`` then fall back to their environment
    variables, and ``backend``, ``rest.base_url`` and
    ``dashboard.expiring_window_days`` to built-in defaults. Keys and tokens
    are masked.
    """
    value = get_config(use_global=global_).get(key)
    if value is None:
        print(f"{key} is not set")
        return
    print(f"{key} = {shown(key, value)}")


@config_app.command(name="list")
def list_config(global_: bool = False, defaults: bool = False) -> None:
    """List settings from the config files, with keys and tokens masked.

    Args:
        global_: Only the global file
        defaults: Also show built-in defaults that no file overrides
    """
    settings = get_config(use_global=global_).list()
    if defaults:
        settings = {**DEFAULTS, **settings}

    if not settings:
        print(f"No {'global' if global_ else 'local'} configuration settings")
        return

    print(f"{'Global' if global_ else 'Configuration'} settings:\n")
    for key, value in settings.items():
        print(f"{key} = {shown(key, value)}")
