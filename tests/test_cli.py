"""
Tests for the command line interface, run against the bundled sample data.
"""

from typer.testing import CliRunner

from hangoutplanner import __version__
from hangoutplanner.cli.app import app

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_timezones():
    result = runner.invoke(app, ["timezones"])

    assert result.exit_code == 0
    assert "Europe/London" in result.output


def test_suggest_with_mock_data():
    result = runner.invoke(
        app,
        ["suggest", "alice", "carol", "--mock", "--start", "2026-10-26", "--end", "2026-11-01"],
    )

    assert result.exit_code == 0
    assert "Pattern confidence" in result.output


def test_mutual_with_mock_data():
    result = runner.invoke(
        app,
        ["mutual", "alice", "bob", "--mock", "--start", "2026-10-26", "--end", "2026-11-01"],
    )

    assert result.exit_code == 0


def test_conflicts_with_mock_data():
    result = runner.invoke(
        app,
        ["conflicts", "alice", "bob", "--mock", "--date", "2026-10-26", "--time", "11:00", "--duration", "60"],
    )

    assert result.exit_code == 0
    assert "calendar" in result.output
    assert "Alternative times" in result.output
    assert "2026-10-26  09:00 - 10:00" in result.output


def test_invalid_date_exits_with_error():
    result = runner.invoke(app, ["suggest", "alice", "carol", "--mock", "--start", "26.10.2026"])

    assert result.exit_code == 1


def test_reversed_range_exits_with_error():
    result = runner.invoke(
        app,
        ["suggest", "alice", "carol", "--mock", "--start", "2026-11-01", "--end", "2026-10-26"],
    )

    assert result.exit_code == 1
