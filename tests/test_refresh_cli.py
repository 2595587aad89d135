"""Tests for the command line entry point."""
import json
from datetime import timedelta
from unittest.mock import patch

import pytest

import refresh
from powerbi_errors import RefreshFailedError, TransportError
from powerbi_models import RefreshOutput, RefreshRecord


@pytest.fixture(autouse=True)
def pbi_env(monkeypatch):
    for name in ("PBI_GROUP_ID", "PBI_WORKSPACE_ID", "PBI_WAIT", "PBI_POLL_DURATION",
                 "PBI_WAIT_DURATION", "PBI_REFRESH_OPTIONS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PBI_TENANT_ID", "tenant")
    monkeypatch.setenv("PBI_CLIENT_ID", "client")
    monkeypatch.setenv("PBI_CLIENT_SECRET", "secret")
    monkeypatch.setenv("PBI_DATASET_ID", "dataset")


def test_prints_output_and_succeeds(capsys):
    with patch("refresh.run_refresh", return_value=RefreshOutput("abc-123", status="Completed")) as run:
        code = refresh.main(["--group-id", "group", "--wait", "--poll-duration", "PT1S", "--wait-duration", "PT2M"])

    assert code == 0
    assert json.loads(capsys.readouterr().out) == {"requestId": "abc-123", "status": "Completed"}
    config = run.call_args.args[0]
    assert config.group_id == "group"
    assert config.wait is True
    assert config.poll_duration == timedelta(seconds=1)
    assert config.wait_duration == timedelta(minutes=2)


def test_environment_used_when_options_absent(monkeypatch):
    monkeypatch.setenv("PBI_WORKSPACE_ID", "ws-from-env")
    monkeypatch.setenv("PBI_WAIT", "yes")

    with patch("refresh.run_refresh", return_value=RefreshOutput("abc-123")) as run:
        assert refresh.main(["--no-wait"]) == 0

    config = run.call_args.args[0]
    assert config.group_id == "ws-from-env"
    assert config.wait is False


def test_refresh_options_passed_through():
    with patch("refresh.run_refresh", return_value=RefreshOutput("abc-123")) as run:
        refresh.main(["--group-id", "group", "--refresh-options", '{"type": "Full"}'])

    assert run.call_args.args[0].refresh_options == {"type": "Full"}


def test_missing_configuration_fails():
    with patch("refresh.run_refresh") as run:
        assert refresh.main([]) == 1

    run.assert_not_called()


def test_refresh_failure_prints_partial_output(capsys):
    record = RefreshRecord(request_id="abc-123", status="Failed", extended_status="ModelRefreshFailed")
    error = RefreshFailedError(record, RefreshOutput.from_record("abc-123", record))

    with patch("refresh.run_refresh", side_effect=error):
        assert refresh.main(["--group-id", "group", "--wait"]) == 1

    assert json.loads(capsys.readouterr().out)["status"] == "Failed"


def test_transport_failure_exits_non_zero(capsys):
    with patch("refresh.run_refresh", side_effect=TransportError("connection reset")):
        assert refresh.main(["--group-id", "group"]) == 1

    assert capsys.readouterr().out == ""
