"""
Unit tests for the typer CLI.
"""

import json

import pytest
from typer.testing import CliRunner

from stitch_client.cli import app

runner = CliRunner()

COMMON = ["--client-id", "12", "--token", "t", "--namespace", "cli_ns"]


@pytest.fixture
def patched_transport(monkeypatch, transport_factory):
    """Route every StitchClient built by the CLI to one recording transport."""
    holder = {"transport": transport_factory()}

    def factory(*args, **kwargs):
        return holder["transport"]

    monkeypatch.setattr("stitch_client.client.HttpTransport", factory)
    return holder


def test_push_file_batches_records(tmp_path, patched_transport):
    path = tmp_path / "people.ndjson"
    path.write_text("\n".join(json.dumps({"id": i}) for i in range(5)) + "\n\n")

    result = runner.invoke(app, ["push-file", str(path), *COMMON, "--max-records", "2", "--key-names", "id"])

    assert result.exit_code == 0, result.output
    summary = json.loads(result.stdout)
    assert summary == {"enqueued": 5, "accepted": 5, "failed": 0}
    transport = patched_transport["transport"]
    assert [len(b) for b in transport.batches] == [2, 2, 1]
    assert transport.records[0]["key_names"] == ["id"]
    assert transport.records[0]["namespace"] == "cli_ns"


def test_push_file_from_stdin(patched_transport):
    result = runner.invoke(app, ["push-file", "-", *COMMON], input='{"id": 1}\n{"id": 2}\n')
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["accepted"] == 2


def test_push_file_reports_failures(tmp_path, patched_transport, transport_factory):
    patched_transport["transport"] = transport_factory(status=400)
    path = tmp_path / "rows.ndjson"
    path.write_text('{"id": 1}\n')

    result = runner.invoke(app, ["push-file", str(path), *COMMON])

    assert result.exit_code == 1
    summary = json.loads(result.stdout)
    assert summary["failed"] == 1
    assert "400" in summary["last_error"]


def test_push_file_rejects_bad_json(tmp_path, patched_transport):
    path = tmp_path / "bad.ndjson"
    path.write_text("{nope\n")
    result = runner.invoke(app, ["push-file", str(path), *COMMON])
    assert result.exit_code != 0


def test_push_file_rejects_non_object_lines(tmp_path, patched_transport):
    path = tmp_path / "list.ndjson"
    path.write_text("[1, 2]\n")
    result = runner.invoke(app, ["push-file", str(path), *COMMON])
    assert result.exit_code == 2
    assert patched_transport["transport"].batches == []


def test_push_record_rejects_non_object(patched_transport):
    result = runner.invoke(app, ["push-record", "[1, 2]", *COMMON])
    assert result.exit_code == 2
    assert patched_transport["transport"].batches == []


def test_push_record(patched_transport):
    result = runner.invoke(app, ["push-record", '{"id": 7}', *COMMON, "--table-name", "people"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["status"] == 200
    rec = patched_transport["transport"].records[0]
    assert rec["id"] == 7
    assert rec["table_name"] == "people"


def test_push_record_rejected(patched_transport, transport_factory):
    patched_transport["transport"] = transport_factory(status=422)
    result = runner.invoke(app, ["push-record", '{"id": 7}', *COMMON])
    assert result.exit_code == 1
    assert json.loads(result.stdout)["status"] == 422


def test_options_from_environment(monkeypatch, patched_transport):
    monkeypatch.setenv("STITCH_CLIENT_ID", "77")
    monkeypatch.setenv("STITCH_TOKEN", "t")
    monkeypatch.setenv("STITCH_NAMESPACE", "env_ns")
    result = runner.invoke(app, ["push-record", '{"id": 1}'])
    assert result.exit_code == 0, result.output
    assert patched_transport["transport"].records[0]["client_id"] == 77
