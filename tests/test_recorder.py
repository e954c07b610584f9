"""Tests for mismatch persistence."""

import json
import os
import stat

import pytest

from proof_parity.errors import PersistenceError, SetupError
from proof_parity.models.proof import EndpointResult, FetchOutcome, VerificationOutcome
from proof_parity.services.recorder import MismatchRecorder, load_records, prepare_output_dir


def _valid(bundle):
    return EndpointResult(FetchOutcome.success(bundle), VerificationOutcome.VALID)


def _invalid(bundle):
    return EndpointResult(FetchOutcome.success(bundle), VerificationOutcome.INVALID)


def _unknown(message="timeout"):
    return EndpointResult(FetchOutcome.failure(message), VerificationOutcome.UNKNOWN)


def test_all_valid_writes_nothing(tmp_path, keccak_tree):
    recorder = MismatchRecorder(tmp_path)
    bundle = keccak_tree.bundle(0)
    written = recorder.record(0, "asset-0", {"A": _valid(bundle), "B": _valid(bundle)})
    assert written is False
    assert list(tmp_path.iterdir()) == []


def test_mismatch_writes_artifact(tmp_path, keccak_tree):
    recorder = MismatchRecorder(tmp_path)
    bundle = keccak_tree.bundle(1)
    written = recorder.record(1, "asset-1", {"A": _valid(bundle), "B": _invalid(bundle)})

    assert written is True
    data = json.loads((tmp_path / "1.json").read_text())
    assert data["assetId"] == "asset-1"
    assert list(data) == ["assetId", "A", "B"]
    assert data["A"]["verificationOutcome"] == "valid"
    assert data["B"]["verificationOutcome"] == "invalid"
    assert data["A"]["fetchOutcome"]["ok"] is True
    assert data["A"]["fetchOutcome"]["proof"]["node_index"] == bundle.leaf_index
    assert len(data["A"]["fetchOutcome"]["proof"]["proof"]) == len(bundle.proof_nodes)


def test_failed_fetch_alone_is_a_mismatch(tmp_path, keccak_tree):
    recorder = MismatchRecorder(tmp_path)
    bundle = keccak_tree.bundle(2)
    assert recorder.record(2, "asset-2", {"A": _valid(bundle), "B": _unknown("HTTP 502")})

    data = json.loads((tmp_path / "2.json").read_text())
    assert data["B"] == {
        "fetchOutcome": {"ok": False, "error": "HTTP 502"},
        "verificationOutcome": "unknown",
    }


def test_rerun_overwrites_and_leaves_no_temp_files(tmp_path, keccak_tree):
    recorder = MismatchRecorder(tmp_path)
    bundle = keccak_tree.bundle(3)
    recorder.record(3, "asset-3", {"A": _unknown("first")})
    recorder.record(3, "asset-3", {"A": _unknown("second")})

    assert sorted(p.name for p in tmp_path.iterdir()) == ["3.json"]
    data = json.loads((tmp_path / "3.json").read_text())
    assert data["A"]["fetchOutcome"]["error"] == "second"


@pytest.mark.skipif(os.name != "posix", reason="POSIX permission bits")
def test_artifact_mode_follows_umask(tmp_path):
    previous = os.umask(0o022)
    try:
        recorder = MismatchRecorder(tmp_path)
        recorder.record(4, "asset-4", {"A": _unknown()})
    finally:
        os.umask(previous)
    assert stat.S_IMODE((tmp_path / "4.json").stat().st_mode) == 0o644


def test_write_failure_raises_persistence_error(tmp_path):
    recorder = MismatchRecorder(tmp_path / "missing")
    with pytest.raises(PersistenceError) as exc_info:
        recorder.record(7, "asset-7", {"A": _unknown()})
    assert exc_info.value.leaf_index == 7


def test_prepare_output_dir_refuses_existing_without_force(tmp_path):
    with pytest.raises(SetupError):
        prepare_output_dir(tmp_path)


def test_prepare_output_dir_with_force(tmp_path):
    assert prepare_output_dir(tmp_path, force=True) == tmp_path


def test_prepare_output_dir_creates_nested(tmp_path):
    target = tmp_path / "a" / "b"
    prepare_output_dir(target)
    assert target.is_dir()


def test_load_records_sorted_by_leaf(tmp_path):
    recorder = MismatchRecorder(tmp_path)
    for index in (10, 2, 33):
        recorder.record(index, f"asset-{index}", {"A": _unknown()})
    (tmp_path / "notes.json").write_text("{}")

    records = load_records(tmp_path)
    assert [index for index, _ in records] == [2, 10, 33]
    assert records[0][1]["assetId"] == "asset-2"


def test_load_records_missing_folder(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_records(tmp_path / "nope")
