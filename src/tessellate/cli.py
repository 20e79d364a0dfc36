"""CLI entry point for tessellate.

Usage:
    tessellate                        # Launch the session browser TUI
    tessellate sessions list          # List saved sessions
    tessellate sessions restore <id>  # Resume a session in a new host
    tessellate browse                 # Run a browser host
"""

import click

from tessellate.commands.browse import browse
from tessellate.commands.config import config
from tessellate.commands.sessions import sessions
from tessellate.logging_setup import configure_logging


@click.group(invoke_without_command=True)
@click.version_option(package_name="tessellate")
@click.pass_context
def main(ctx: click.Context) -> None:
    """Tessellate - tiling browser session manager.

    Every browser host owns a session whose tabs and pane layout are
    snapshotted as it runs. Exited sessions can be listed, inspected,
    restored into a new host or deleted.

    Running 'tessellate' without a subcommand launches the TUI.
    """
    ctx.ensure_object(dict)
    # Browser hosts log to the file only.
    configure_logging(stderr=ctx.invoked_subcommand != "browse")

    # If a subcommand was invoked, let it handle things
    if ctx.invoked_subcommand is not None:
        return

    from tessellate.tui.app import TessellateApp

    TessellateApp().run()


# Register commands
main.add_command(sessions)
main.add_command(browse)
main.add_command(config)
