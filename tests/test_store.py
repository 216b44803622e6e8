"""Tests for the case store and its object store backends."""

from datetime import datetime, timedelta, timezone

import pytest

from onboarding.errors import CaseConflict, CaseNotFound, ObjectNotFound, PersistenceError, ValidationError
from onboarding.models import CheckResult, DecisionAction, DecisionRecord, DocumentDescriptor, ScreeningSummary, Severity
from onboarding.storage.cases import CaseStore
from onboarding.storage.filesystem import FileObjectStore
from tests.conftest import FailingDecisionWrites, make_entity, make_individual


def make_summary(case_id="case-jane", status=Severity.GREEN) -> ScreeningSummary:
    return ScreeningSummary(
        case_id=case_id,
        client_name="Jane Doe",
        client_type="individual",
        overall_status=status,
        results=[CheckResult(check="Tax ID Validation", severity=status, reason="r")],
    )


def make_record(case_id="case-jane", action=DecisionAction.APPROVE, token="t", **kwargs) -> DecisionRecord:
    return DecisionRecord(case_id=case_id, action=action, token=token, **kwargs)


class TestApplicantRecords:
    def test_save_and_get(self, case_store):
        assert case_store.save_applicant(make_individual()) is True
        stored = case_store.get_applicant("case-jane")
        assert stored.full_legal_name == "Jane Doe"
        assert stored.client_type == "individual"

    def test_entity_round_trips_as_entity(self, case_store):
        case_store.save_applicant(make_entity())
        stored = case_store.get_applicant("case-stoneval")
        assert stored.client_type == "entity"
        assert stored.registration_number == "933 819 963"

    def test_identical_resubmission_is_noop(self, case_store):
        case_store.save_applicant(make_individual())
        assert case_store.save_applicant(make_individual()) is False

    def test_different_record_conflicts(self, case_store):
        case_store.save_applicant(make_individual())
        with pytest.raises(CaseConflict):
            case_store.save_applicant(make_individual(full_legal_name="John Doe"))
        assert case_store.get_applicant("case-jane").full_legal_name == "Jane Doe"

    def test_missing_case(self, case_store):
        with pytest.raises(CaseNotFound):
            case_store.get_applicant("nope")
        assert case_store.has_applicant("nope") is False

    def test_unsafe_case_id_rejected(self, case_store):
        with pytest.raises(ValidationError):
            case_store.get_applicant("../etc")

    def test_corrupt_record(self, case_store, object_store):
        object_store.put_object("submissions/bad/submission.json", "application/json", b"{not json")
        with pytest.raises(PersistenceError):
            case_store.get_applicant("bad")


class TestScreeningSummaries:
    def test_missing_summary_is_none(self, case_store):
        assert case_store.get_summary("case-jane") is None

    def test_last_write_wins(self, case_store):
        case_store.save_summary(make_summary(status=Severity.AMBER))
        case_store.save_summary(make_summary(status=Severity.GREEN))
        assert case_store.get_summary("case-jane").overall_status == Severity.GREEN

    def test_stored_with_camel_case_keys(self, case_store, object_store):
        case_store.save_summary(make_summary())
        body = object_store.get_object("screening/case-jane/results.json").decode("utf-8")
        assert '"overallStatus"' in body
        assert '"missingInfo"' in body


class TestDecisions:
    def test_append_never_overwrites(self, case_store):
        case_store.append_decision(make_record(token="first"))
        case_store.append_decision(make_record(token="second"))
        records = case_store.list_decisions("case-jane")
        assert [r.token for r in records] == ["first", "second"]

    def test_sorted_by_timestamp(self, case_store):
        now = datetime.now(timezone.utc)
        case_store.append_decision(make_record(action=DecisionAction.REJECT, timestamp=now))
        case_store.append_decision(make_record(action=DecisionAction.REQUEST, timestamp=now - timedelta(hours=1)))
        assert [r.action for r in case_store.list_decisions("case-jane")] == [
            DecisionAction.REQUEST,
            DecisionAction.REJECT,
        ]

    def test_cases_isolated(self, case_store):
        case_store.append_decision(make_record(case_id="case-a"))
        assert case_store.list_decisions("case-b") == []

    def test_same_token_id_recorded_once(self, case_store):
        assert case_store.append_decision(make_record(token_id="abc123")) is True
        assert case_store.append_decision(make_record(token_id="abc123", action=DecisionAction.REJECT)) is False
        assert case_store.append_decision(make_record(case_id="case-other", token_id="abc123")) is True
        records = case_store.list_decisions("case-jane")
        assert [r.action for r in records] == [DecisionAction.APPROVE]

    def test_decision_keyed_by_token_id(self, case_store, object_store):
        case_store.append_decision(make_record(token_id="abc123"))
        assert object_store.list_keys("decisions/") == ["decisions/case-jane/abc123.json"]

    def test_unsafe_token_id_rejected(self, case_store):
        with pytest.raises(ValidationError):
            case_store.append_decision(make_record(token_id="../../x"))

    def test_failed_write_raises_persistence_error(self, object_store):
        case_store = CaseStore(FailingDecisionWrites(object_store))
        with pytest.raises(PersistenceError):
            case_store.append_decision(make_record(token_id="abc123"))
        assert case_store.list_decisions("case-jane") == []


class TestApplicantVersions:
    def test_replace_archives_previous_version(self, case_store):
        original = make_individual()
        case_store.save_applicant(original)
        document = DocumentDescriptor(category="proof_of_address", key="k", filename="poa.pdf")
        stored = case_store.replace_applicant(make_individual(documents=[document]))

        assert stored.submitted_at == original.submitted_at
        assert case_store.get_applicant("case-jane").documents[0].category == "proof_of_address"
        history = case_store.applicant_history("case-jane")
        assert len(history) == 1
        assert history[0].documents == ()

    def test_replace_unknown_case(self, case_store):
        with pytest.raises(CaseNotFound):
            case_store.replace_applicant(make_individual())


class TestFileObjectStore:
    def test_put_and_get(self, tmp_path):
        store = FileObjectStore(tmp_path)
        store.put_object("a/b.json", "application/json", b"{}")
        assert store.get_object("a/b.json") == b"{}"

    def test_put_replaces(self, tmp_path):
        store = FileObjectStore(tmp_path)
        store.put_object("a.json", "application/json", b"1")
        store.put_object("a.json", "application/json", b"2")
        assert store.get_object("a.json") == b"2"

    def test_put_if_absent(self, tmp_path):
        store = FileObjectStore(tmp_path)
        assert store.put_object_if_absent("a.json", "application/json", b"1") is True
        assert store.put_object_if_absent("a.json", "application/json", b"2") is False
        assert store.get_object("a.json") == b"1"

    def test_missing_object(self, tmp_path):
        with pytest.raises(ObjectNotFound):
            FileObjectStore(tmp_path).get_object("missing.json")

    def test_list_keys_by_prefix(self, tmp_path):
        store = FileObjectStore(tmp_path)
        store.put_object("decisions/x/1.json", "application/json", b"")
        store.put_object("decisions/x/2.json", "application/json", b"")
        store.put_object("decisions/y/1.json", "application/json", b"")
        assert store.list_keys("decisions/x/") == ["decisions/x/1.json", "decisions/x/2.json"]

    def test_key_cannot_escape_root(self, tmp_path):
        store = FileObjectStore(tmp_path / "root")
        with pytest.raises(PersistenceError):
            store.put_object("../outside.json", "application/json", b"")

    def test_case_store_on_filesystem(self, tmp_path):
        case_store = CaseStore(FileObjectStore(tmp_path))
        case_store.save_applicant(make_individual())
        case_store.append_decision(make_record())
        assert case_store.get_applicant("case-jane").email == "jane@example.com"
        assert len(case_store.list_decisions("case-jane")) == 1

    def test_failed_create_leaves_no_file(self, tmp_path, monkeypatch):
        store = FileObjectStore(tmp_path)

        def full_disk(fd):
            raise OSError("No space left on device")

        monkeypatch.setattr("onboarding.storage.filesystem.os.fsync", full_disk)
        with pytest.raises(OSError):
            store.put_object_if_absent("submissions/case-jane/submission.json", "application/json", b"{}")
        assert list((tmp_path / "submissions" / "case-jane").iterdir()) == []

        monkeypatch.undo()
        assert store.put_object_if_absent("submissions/case-jane/submission.json", "application/json", b"{}") is True
        assert store.get_object("submissions/case-jane/submission.json") == b"{}"

    def test_case_store_retries_after_failed_create(self, tmp_path, monkeypatch):
        case_store = CaseStore(FileObjectStore(tmp_path))

        def full_disk(fd):
            raise OSError("No space left on device")

        monkeypatch.setattr("onboarding.storage.filesystem.os.fsync", full_disk)
        with pytest.raises(PersistenceError):
            case_store.save_applicant(make_individual())
        assert case_store.has_applicant("case-jane") is False

        monkeypatch.undo()
        assert case_store.save_applicant(make_individual()) is True
        assert case_store.get_applicant("case-jane").full_legal_name == "Jane Doe"

    def test_put_if_absent_leaves_no_temp_files(self, tmp_path):
        store = FileObjectStore(tmp_path)
        store.put_object_if_absent("a/b.json", "application/json", b"1")
        store.put_object_if_absent("a/b.json", "application/json", b"2")
        assert [p.name for p in (tmp_path / "a").iterdir()] == ["b.json"]

    def test_list_keys_missing_prefix_directory(self, tmp_path):
        store = FileObjectStore(tmp_path)
        store.put_object("decisions/x/1.json", "application/json", b"")
        assert store.list_keys("screening/") == []
        assert store.list_keys("decisions/nope/") == []

    def test_list_keys_partial_segment(self, tmp_path):
        store = FileObjectStore(tmp_path)
        store.put_object("submissions/case-a/submission.json", "application/json", b"")
        store.put_object("submissions/case-ab/submission.json", "application/json", b"")
        store.put_object("screening/case-a/results.json", "application/json", b"")
        assert store.list_keys("submissions/case-a") == [
            "submissions/case-a/submission.json",
            "submissions/case-ab/submission.json",
        ]
