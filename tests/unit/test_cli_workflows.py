"""Tests for the flowtide CLI."""

from pathlib import Path

from typer.testing import CliRunner

from flowtide.cli import app

FIXTURES = Path(__file__).parent.parent / "fixtures"

runner = CliRunner()


def test_workflow_list_builtin():
    result = runner.invoke(app, ["workflow", "list", "--builtin"])
    assert result.exit_code == 0
    assert "cms-sync\tCMS Content Sync\t*/5 * * * *" in result.stdout
    assert "user-onboarding" in result.stdout


def test_workflow_list_empty():
    result = runner.invoke(app, ["workflow", "list"])
    assert result.exit_code == 0
    assert "No workflows registered" in result.stdout


def test_workflow_run_from_file_uses_placeholders():
    result = runner.invoke(
        app,
        ["workflow", "run", "signup", "--file", str(FIXTURES / "workflows.yaml"), "--args", '{"userId": 1}'],
    )
    assert result.exit_code == 0, result.stdout
    assert ": completed" in result.stdout
    assert "- welcome:" in result.stdout


def test_workflow_run_unknown_workflow():
    result = runner.invoke(
        app, ["workflow", "run", "missing", "--file", str(FIXTURES / "workflows.yaml")]
    )
    assert result.exit_code == 1
    assert "Workflow not found: missing" in result.stdout


def test_workflow_run_rejects_bad_args():
    result = runner.invoke(app, ["workflow", "run", "signup", "--args", "[1, 2]"])
    assert result.exit_code == 2
    assert "--args must be a JSON object" in result.stdout


def test_workflow_run_failure_exit_code(tmp_path, monkeypatch):
    config_path = tmp_path / "flowtide.yaml"
    config_path.write_text("orchestrator:\n  allow_placeholder_handlers: false\n")

    result = runner.invoke(
        app,
        [
            "workflow",
            "run",
            "signup",
            "--file",
            str(FIXTURES / "workflows.yaml"),
            "--config",
            str(config_path),
        ],
    )
    assert result.exit_code == 1
    assert ": failed" in result.stdout
    assert "Handler not registered: welcomeHandler" in result.stdout


def test_serve_with_lifespan():
    result = runner.invoke(
        app, ["serve", "--file", str(FIXTURES / "workflows.yaml"), "--lifespan", "0.05"]
    )
    assert result.exit_code == 0, result.stdout
    assert "Starting flowtide with 2 workflows" in result.stdout
