"""Tests for the command line entry point."""

import json

import pytest

from proof_parity import cli
from proof_parity.errors import SetupError
from proof_parity.models.comparison import EndpointSummary, RunSummary
from proof_parity.models.tree import Endpoint

from conftest import TREE_ID

BASE = ["-t", TREE_ID, "-c", "https://rpc.example.com"]


def test_parse_args_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    args = cli.parse_args(BASE + ["-e", "A,https://a.example.com", "-e", "B,http://b.example.com"])
    assert args.endpoints == [Endpoint("A", "https://a.example.com"), Endpoint("B", "http://b.example.com")]
    assert args.rate_limit == [1]
    assert args.force is False
    assert args.output_folder.endswith("invalid-proofs")


@pytest.mark.parametrize("endpoint", ["A", "A,B,https://x", "A,ftp://x", ",https://x"])
def test_parse_args_rejects_bad_endpoints(endpoint):
    with pytest.raises(SystemExit):
        cli.parse_args(BASE + ["-e", endpoint])


def test_parse_args_rejects_duplicate_labels():
    with pytest.raises(SystemExit):
        cli.parse_args(BASE + ["-e", "A,https://a", "-e", "A,https://b"])


def test_parse_args_rejects_reserved_label():
    with pytest.raises(SystemExit):
        cli.parse_args(BASE + ["-e", "assetId,https://a"])


def test_parse_args_rejects_bad_tree():
    with pytest.raises(SystemExit):
        cli.parse_args(["-t", "nope", "-c", "https://rpc", "-e", "A,https://a"])


def test_parse_args_rate_limit_count_must_match():
    args = cli.parse_args(BASE + ["-e", "A,https://a", "-e", "B,https://b", "-r", "2", "5"])
    assert args.rate_limit == [2, 5]
    with pytest.raises(SystemExit):
        cli.parse_args(BASE + ["-e", "A,https://a", "-e", "B,https://b", "-r", "2", "5", "7"])
    with pytest.raises(SystemExit):
        cli.parse_args(BASE + ["-e", "A,https://a", "-r", "0"])


def test_run_cli_exits_on_setup_error(monkeypatch):
    def fake_run(**kwargs):
        raise SetupError("Proof folder exists")

    monkeypatch.setattr(cli, "run_validation", fake_run)
    with pytest.raises(SystemExit) as exc_info:
        cli.run_cli(BASE + ["-e", "A,https://a"])
    assert exc_info.value.code == 1


def test_run_cli_prints_summary_and_exports(monkeypatch, tmp_path, capsys):
    seen = {}

    def fake_run(**kwargs):
        seen.update(kwargs)
        kwargs["callback"]({'type': 'message', 'message': 'hello'})
        return RunSummary(
            tree_id=kwargs["tree_id"],
            total_leaves=3,
            completed_leaves=3,
            mismatched_leaves=1,
            endpoints=[EndpointSummary("A", 3, 3), EndpointSummary("B", 2, 3)],
        )

    monkeypatch.setattr(cli, "run_validation", fake_run)
    csv_path = tmp_path / "summary.csv"
    cli.run_cli(BASE + [
        "-e", "A,https://a", "-e", "B,https://b",
        "-o", str(tmp_path / "out"), "-f", "--export-csv", str(csv_path),
    ])

    assert seen["force"] is True
    assert seen["rate_limits"] == [1]
    printed = json.loads(capsys.readouterr().out)
    assert printed["mismatched_leaves"] == 1
    assert csv_path.read_text().splitlines()[0] == "Endpoint,Valid,Checked,Unchecked"


def test_run_cli_exits_on_unexpected_error(monkeypatch, caplog):
    def fake_run(**kwargs):
        raise RuntimeError("event loop exploded")

    monkeypatch.setattr(cli, "run_validation", fake_run)
    with pytest.raises(SystemExit) as exc_info:
        cli.run_cli(BASE + ["-e", "A,https://a"])
    assert exc_info.value.code == 1
    assert "event loop exploded" in caplog.text


def test_run_cli_exits_when_csv_cannot_be_written(monkeypatch, tmp_path):
    monkeypatch.setattr(
        cli,
        "run_validation",
        lambda **kwargs: RunSummary(tree_id=kwargs["tree_id"], total_leaves=0),
    )
    with pytest.raises(SystemExit) as exc_info:
        cli.run_cli(BASE + ["-e", "A,https://a", "--export-csv", str(tmp_path)])
    assert exc_info.value.code == 1
