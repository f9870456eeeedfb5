"""CLI commands for running the SCRA lookup as a container job."""

from __future__ import annotations

import typer
from rich.console import Console

job_app = typer.Typer(help="Run SCRA jobs configured through SCRA_JOB__* env vars.")
console = Console()


@job_app.command("run")
def job_run() -> None:
    """Run one SCRA lookup as a job.

    Reads the request from SCRA_JOB__* env vars, so no personal data
    needs to appear on the command line.
    """
    from scra.worker.jobs import main

    exit_code = main()

    if exit_code != 0:
        console.print("[red]Job failed.[/red]")
        raise typer.Exit(code=exit_code)

    console.print("[green]Job completed successfully.[/green]")
