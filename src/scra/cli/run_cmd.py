"""CLI command for running one SCRA lookup."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

if TYPE_CHECKING:
    from scra.models.results import RunResult

console = Console()


def run_command(
    ssn: str = typer.Option(..., "--ssn", help="Subject identifier.", envvar="SCRA_JOB__SSN"),
    last_name: str = typer.Option(..., "--last-name", help="Subject last name."),
    first_name: str = typer.Option(..., "--first-name", help="Subject first name."),
    dob: Optional[str] = typer.Option(None, "--dob", help="Date of birth as the form expects it."),
    username: str = typer.Option(..., "--username", "-u", help="Remote-site username.", envvar="SCRA_JOB__USERNAME"),
    password: str = typer.Option(
        ...,
        "--password",
        help="Remote-site password.",
        envvar="SCRA_JOB__PASSWORD",
        prompt=True,
        hide_input=True,
    ),
    matter_id: str = typer.Option("", "--matter-id", help="Correlation id echoed to the callback."),
    callback_url: Optional[str] = typer.Option(None, "--callback-url", help="Where to deliver the result."),
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Directory for run artifacts."),
    output_json: bool = typer.Option(False, "--json", help="Print the run result as JSON."),
) -> None:
    """Run the SCRA lookup once and deliver the result.

    Navigates to the single-record form, signs in if asked, fills the
    subject fields, downloads the result document, classifies it and
    posts it to the callback URL when one is given.
    """
    from scra.automation.orchestrator import AutomationOrchestrator
    from scra.models.request import AutomationRequest
    from scra.settings import get_settings
    from scra.worker.jobs import configure_logging

    settings = get_settings()
    if output_dir is not None:
        settings = settings.model_copy(
            update={"artifacts": settings.artifacts.model_copy(update={"output_dir": str(output_dir.resolve())})}
        )
    configure_logging(settings.run)

    try:
        request = AutomationRequest(
            ssn=ssn,
            dob=dob,
            last_name=last_name,
            first_name=first_name,
            username=username,
            password=password,
            matter_id=matter_id,
            callback_url=callback_url,
        )
    except ValidationError as e:
        console.print(f"[red]✗[/red] Invalid request: {e.error_count()} error(s)")
        for err in e.errors():
            console.print(f"  {'.'.join(str(p) for p in err['loc'])}: {err['msg']}")
        raise typer.Exit(code=2)

    console.print(
        Panel(
            f"[bold]Subject:[/bold] {request.first_name} {request.last_name} ({request.masked_ssn()})",
            title="SCRA",
            border_style="blue",
        )
    )

    orchestrator = AutomationOrchestrator(settings)
    try:
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console) as progress:
            task = progress.add_task("Running SCRA lookup...", total=None)
            result = orchestrator.run(request)
            progress.update(task, completed=True)
    finally:
        orchestrator.callback_client.close()

    if output_json:
        console.print_json(json.dumps(result.to_dict(), default=str))
    else:
        _print_summary(result)

    if not result.success:
        raise typer.Exit(code=1)


def _print_summary(result: RunResult) -> None:
    if result.success:
        console.print(f"\n[green]✓[/green] Run complete: {result.run_id}")
    else:
        console.print(f"\n[red]✗[/red] Run failed: {result.run_id}")

    table = Table(show_header=False, box=None)
    table.add_row("Artifacts", result.artifact_dir)
    table.add_row("State", result.state.value)
    if result.classification:
        table.add_row("Determination", result.classification.determination.value)
        table.add_row("Document", result.document_path)
    if result.retry_delays:
        table.add_row("Navigation retries", ", ".join(f"{d:.1f}s" for d in result.retry_delays))
    if result.delivery is not None:
        table.add_row("Callback", f"{result.delivery.status_code} {result.delivery.reason_phrase}")
    elif result.delivery_skipped:
        table.add_row("Callback", "skipped (no callback URL)")
    if result.error:
        table.add_row("Error", f"{result.error_kind}: {result.error}")
    console.print(table)

    if result.delivery_error:
        console.print(f"\n[yellow]⚠[/yellow] Callback delivery failed: {result.delivery_error}")
