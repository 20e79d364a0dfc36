"""Config command for tessellate."""

import click

from tessellate.core.config import INT_SETTINGS, get_int_setting, set_int_setting


@click.group()
def config() -> None:
    """View or change tessellate settings."""


@config.command("get")
@click.argument("name", required=False)
def get_command(name: str | None) -> None:
    """Show a setting, or all settings when NAME is omitted."""
    if name is None:
        for key in INT_SETTINGS:
            click.echo(f"{key} = {get_int_setting(key)}")
        return

    if name not in INT_SETTINGS:
        click.echo(
            f"Error: Unknown setting '{name}'\n"
            f"  Fix: Known settings: {', '.join(INT_SETTINGS)}",
            err=True,
        )
        raise SystemExit(1)
    click.echo(get_int_setting(name))


@config.command("set")
@click.argument("name")
@click.argument("value", type=int)
def set_command(name: str, value: int) -> None:
    """Set a numeric setting.

    Examples:

        tessellate config set max_exited_sessions 20

        tessellate config set max_exited_session_age_days 0
    """
    try:
        set_int_setting(name, value)
    except KeyError:
        click.echo(
            f"Error: Unknown setting '{name}'\n"
            f"  Fix: Known settings: {', '.join(INT_SETTINGS)}",
            err=True,
        )
        raise SystemExit(1)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    click.echo(f"{name} = {value}")
