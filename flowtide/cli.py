"""Command line interface for running flowtide workflows."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer

from flowtide import WorkflowNotFound, create_orchestrator, load_config
from flowtide.contracts import RunStatus
from flowtide.orchestrator import WorkflowOrchestrator
from flowtide.runtime import configure_logging

app = typer.Typer(help="CLI for flowtide workflows")

workflow_app = typer.Typer(help="Commands for managing workflows")

app.add_typer(workflow_app, name="workflow")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", help="Python logging level"),
) -> None:
    """flowtide CLI entry point."""
    configure_logging(log_level.upper())


def _build(
    file: Optional[Path], builtin: bool, config_path: Optional[Path]
) -> WorkflowOrchestrator:
    config = load_config(str(config_path) if config_path else None)
    return create_orchestrator(config=config, workflows_file=file, builtin=builtin)


@workflow_app.command("list")
def workflow_list(
    file: Optional[Path] = typer.Option(None, help="YAML file with workflow definitions"),
    builtin: bool = typer.Option(False, help="Include the bundled workflows"),
    config: Optional[Path] = typer.Option(None, help="Path to flowtide.yaml"),
) -> None:
    """
    List registered workflows with their schedules and trigger events.

    Example:
        flowtide workflow list --builtin
        # Output: cms-sync    CMS Content Sync    */5 * * * *    cms.content.updated,cms.service.created
    """
    orchestrator = _build(file, builtin, config)
    registry = orchestrator.registry
    ids = registry.list_registered_workflow_ids()
    if not ids:
        typer.echo("No workflows registered")
        return
    for workflow_id in ids:
        wf = registry.get(workflow_id)
        typer.echo(
            f"{wf.id}\t{wf.name}\t{wf.schedule or '-'}\t{','.join(wf.trigger_events) or '-'}"
        )


@workflow_app.command("run")
def workflow_run(
    workflow_id: str,
    file: Optional[Path] = typer.Option(None, help="YAML file with workflow definitions"),
    builtin: bool = typer.Option(False, help="Include the bundled workflows"),
    config: Optional[Path] = typer.Option(None, help="Path to flowtide.yaml"),
    args: Optional[str] = typer.Option(None, help="JSON object passed as input data"),
    timeout: Optional[float] = typer.Option(None, help="Seconds to wait for the run"),
) -> None:
    """
    Trigger a workflow once and wait for it to finish.

    Unregistered handler names fall back to the placeholder handler unless
    ``orchestrator.allow_placeholder_handlers`` is disabled.

    Example:
        flowtide workflow run cms-sync --builtin --args '{"force": true}'
        # Output: Run run_1718000000000_k3j2h1g0f: completed
        #         - fetch-cms: {"handler": "cmsSyncHandler", ...}
    """
    try:
        input_data = json.loads(args) if args else {}
    except json.JSONDecodeError as exc:
        typer.secho(f"Invalid --args JSON: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=2)
    if not isinstance(input_data, dict):
        typer.secho("--args must be a JSON object", fg=typer.colors.RED)
        raise typer.Exit(code=2)

    orchestrator = _build(file, builtin, config)

    async def _run():
        await orchestrator.event_bus.connect()
        try:
            return await orchestrator.trigger_and_wait(
                workflow_id, input_data, timeout=timeout
            )
        finally:
            await orchestrator.shutdown()
            await orchestrator.event_bus.disconnect()

    try:
        run = asyncio.run(_run())
    except WorkflowNotFound as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    except asyncio.TimeoutError:
        typer.secho(f"Workflow {workflow_id} did not finish within {timeout}s", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"Run {run.run_id}: {run.status.value}")
    for step_id, result in run.step_results.items():
        typer.echo(f"- {step_id}: {json.dumps(result, default=str)}")
    if run.status == RunStatus.FAILED:
        typer.secho(f"Failed at {run.current_step}: {run.error}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    file: Optional[Path] = typer.Option(None, help="YAML file with workflow definitions"),
    builtin: bool = typer.Option(False, help="Include the bundled workflows"),
    config: Optional[Path] = typer.Option(None, help="Path to flowtide.yaml"),
    lifespan: Optional[float] = typer.Option(
        None, help="Seconds to run before shutting down (default: run indefinitely)"
    ),
) -> None:
    """
    Run the scheduler and event triggers until stopped.

    Connects the configured event bus, subscribes event-triggered workflows
    and starts the cron scheduler. Runs until interrupted or ``lifespan``
    expires, then stops the scheduler and waits for in-flight runs.

    Example:
        flowtide serve --builtin --lifespan 300
    """
    orchestrator = _build(file, builtin, config)
    count = len(orchestrator.registry)
    typer.echo(f"Starting flowtide with {count} workflows")

    async def _serve() -> None:
        await orchestrator.event_bus.connect()
        await orchestrator.start()
        try:
            if lifespan is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(lifespan)
        finally:
            await orchestrator.shutdown()
            await orchestrator.event_bus.disconnect()

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        typer.echo("Shutting down")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
