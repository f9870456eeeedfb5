"""Unified CLI entry point for the SCRA runner.

Config precedence: settings.default.toml -> settings.local.toml -> env vars (SCRA_* with double underscores) -> CLI flags.
"""

from __future__ import annotations

import typer

from scra import __version__ as VERSION
from scra.cli.job import job_app
from scra.cli.run_cmd import run_command
from scra.cli.settings_cmd import settings_app

APP_HELP = (
    "scra: SCRA single-record lookup runner. "
    "Fills the remote form, classifies the returned document and reports it to a callback. "
    "Config precedence: settings.default.toml -> settings.local.toml -> env vars (SCRA_* with __) -> CLI flags."
)

app = typer.Typer(add_completion=True, help=APP_HELP)

app.command("run")(run_command)
app.add_typer(job_app, name="job")
app.add_typer(settings_app, name="settings")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context, version: bool = typer.Option(False, "--version", help="Show version and exit.")) -> None:
    """Show help when no subcommand is provided."""
    if version:
        typer.echo(f"scra {VERSION}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


if __name__ == "__main__":
    app()
