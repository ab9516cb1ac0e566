import pytest
from typer.testing import CliRunner

from workmeter.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logs(monkeypatch):
    monkeypatch.setenv("WM_LOG_LEVEL", "ERROR")


def test_bench_prometheus_output():
    res = runner.invoke(app, ["bench", "--tasks", "5", "--workers", "2", "--queue-size", "10",
                              "--task-ms", "0", "--prefix", "bench", "--format", "prometheus"])
    assert res.exit_code == 0, res.output
    assert "bench_submitted_total 5.0" in res.output
    assert "bench_completed_total 5.0" in res.output
    assert "bench_rejected_total 0.0" in res.output
    assert "bench_running 0.0" in res.output


def test_bench_counts_rejections():
    res = runner.invoke(app, ["bench", "--tasks", "10", "--workers", "1", "--queue-size", "0",
                              "--task-ms", "200", "--prefix", "tight", "--format", "prometheus"])
    assert res.exit_code == 0, res.output
    assert "tight_submitted_total 10.0" in res.output
    assert "tight_rejected_total 9.0" in res.output
    assert "tight_completed_total 1.0" in res.output


def test_bench_table_output():
    res = runner.invoke(app, ["bench", "--tasks", "3", "--task-ms", "0", "--prefix", "tbl"])
    assert res.exit_code == 0, res.output
    assert "tbl.submitted" in res.output
    assert "3 admitted" in res.output


def test_tick():
    res = runner.invoke(app, ["tick", "--seconds", "0.2", "--period-ms", "20", "--work-ms", "0",
                              "--prefix", "tk", "--format", "prometheus"])
    assert res.exit_code == 0, res.output
    assert "tk_scheduled_repetitively_total 1.0" in res.output
    assert "tk_submitted_total 1.0" in res.output
