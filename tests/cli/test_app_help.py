"""CLI smoke tests: every command group loads and renders its help."""

import pytest
from typer.testing import CliRunner

from smartlists.config import settings
from smartlists.infrastructure.cli.app import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_paths(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "data_dir", tmp_path / "data")
    monkeypatch.setattr(settings.logging, "log_file", tmp_path / "logs" / "smartlists.log")


def test_root_help_lists_command_groups():
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    for group in ("playlist", "library", "setup", "version"):
        assert group in result.output


@pytest.mark.parametrize(
    ("group", "commands"),
    [
        ("playlist", ("list", "create", "update", "preview", "sync", "sync-all")),
        (
            "library",
            ("mirror", "tracks", "rate", "tags", "tag-create", "tag-rename", "tag-assign", "plays"),
        ),
        ("setup", ("seed", "onboard")),
    ],
)
def test_group_help_lists_commands(group, commands):
    result = runner.invoke(app, [group, "--help"])

    assert result.exit_code == 0
    for command in commands:
        assert command in result.output


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "Smartlists" in result.output


def test_rate_needs_a_rating_or_clear():
    result = runner.invoke(app, ["library", "rate", "1"])

    assert result.exit_code == 1
    assert "--clear" in result.output
