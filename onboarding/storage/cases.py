"""Case store: the system of record for onboarding cases.

Every record is a JSON document in an object store, under a case-scoped key:

    submissions/<caseId>/submission.json         current applicant record
    submissions/<caseId>/history/<ts>.json       superseded applicant versions
    screening/<caseId>/results.json              latest screening, replaced on re-screen
    decisions/<caseId>/<tokenId>.json            decision records, create-only

A decision record is keyed by the id of the token that authorised it, so
writing the record is also what consumes the token: a failed write leaves
the link usable, a successful one makes any replay collide. The screening
summary is simply last-write-wins.
"""

import json
from typing import List, Optional, Protocol
from uuid import uuid4

from onboarding.errors import (
    CaseConflict,
    CaseNotFound,
    ObjectNotFound,
    PersistenceError,
    ValidationError,
)
from onboarding.models import (
    CASE_ID_PATTERN,
    Applicant,
    DecisionRecord,
    ScreeningSummary,
    parse_applicant,
    utcnow,
)
from onboarding.utils.logging import get_logger

LOGGER = get_logger(__name__)

JSON = "application/json"


class ObjectStore(Protocol):
    def put_object(self, key: str, content_type: str, body: bytes) -> None:
        ...

    def put_object_if_absent(self, key: str, content_type: str, body: bytes) -> bool:
        ...

    def get_object(self, key: str) -> bytes:
        ...

    def list_keys(self, prefix: str) -> List[str]:
        ...


def _check_case_id(case_id: str) -> str:
    if not case_id or not CASE_ID_PATTERN.match(case_id):
        raise ValidationError(f"Invalid case identifier: {case_id!r}")
    return case_id


def submission_key(case_id: str) -> str:
    return f"submissions/{_check_case_id(case_id)}/submission.json"


def screening_key(case_id: str) -> str:
    return f"screening/{_check_case_id(case_id)}/results.json"


def decisions_prefix(case_id: str) -> str:
    return f"decisions/{_check_case_id(case_id)}/"


class CaseStore:
    """Reads and writes case records through an object store."""

    def __init__(self, objects: ObjectStore) -> None:
        self.objects = objects

    # -- low-level helpers -------------------------------------------------

    def _put(self, key: str, body: bytes) -> None:
        try:
            self.objects.put_object(key, JSON, body)
        except OSError as e:
            raise PersistenceError(f"Failed to write {key}: {e}", original_error=e) from e

    def _put_if_absent(self, key: str, body: bytes) -> bool:
        try:
            return self.objects.put_object_if_absent(key, JSON, body)
        except OSError as e:
            raise PersistenceError(f"Failed to write {key}: {e}", original_error=e) from e

    def _get(self, key: str) -> Optional[bytes]:
        try:
            return self.objects.get_object(key)
        except ObjectNotFound:
            return None
        except OSError as e:
            raise PersistenceError(f"Failed to read {key}: {e}", original_error=e) from e

    # -- applicant records -------------------------------------------------

    def save_applicant(self, applicant: Applicant) -> bool:
        """Persist a new applicant record.

        Returns False when the identical record is already stored. Raises
        CaseConflict when the case id is taken by a different record.
        """
        key = submission_key(applicant.case_id)
        body = applicant.model_dump_json(by_alias=True, indent=2).encode("utf-8")
        if self._put_if_absent(key, body):
            LOGGER.info(f"Stored applicant record for case {applicant.case_id}")
            return True

        existing = self.get_applicant(applicant.case_id)
        if existing.model_dump(exclude={"submitted_at"}) != applicant.model_dump(exclude={"submitted_at"}):
            raise CaseConflict(f"Case {applicant.case_id} already exists with a different applicant record")
        return False

    def replace_applicant(self, applicant: Applicant) -> Applicant:
        """Store a new version of an existing applicant record.

        The current version is archived under ``history/`` first, and the new
        version keeps the original submission time. Returns what was stored.
        """
        existing = self.get_applicant(applicant.case_id)
        stamp = utcnow().strftime("%Y%m%dT%H%M%S%fZ")
        archive_key = f"submissions/{applicant.case_id}/history/{stamp}-{uuid4().hex[:8]}.json"
        self._put_if_absent(archive_key, existing.model_dump_json(by_alias=True, indent=2).encode("utf-8"))

        updated = applicant.model_copy(update={"submitted_at": existing.submitted_at})
        self._put(submission_key(applicant.case_id), updated.model_dump_json(by_alias=True, indent=2).encode("utf-8"))
        LOGGER.info(f"Stored new version of applicant record for case {applicant.case_id}")
        return updated

    def applicant_history(self, case_id: str) -> List[Applicant]:
        """Superseded versions of an applicant record, oldest first."""
        prefix = f"submissions/{_check_case_id(case_id)}/history/"
        versions = []
        for key in self.objects.list_keys(prefix):
            data = self._get(key)
            if data is not None:
                versions.append(parse_applicant(json.loads(data)))
        return versions

    def get_applicant(self, case_id: str) -> Applicant:
        data = self._get(submission_key(case_id))
        if data is None:
            raise CaseNotFound(f"Case {case_id} not found")
        try:
            return parse_applicant(json.loads(data))
        except (ValueError, ValidationError) as e:
            raise PersistenceError(f"Stored applicant record for case {case_id} is corrupt", original_error=e) from e

    def has_applicant(self, case_id: str) -> bool:
        return self._get(submission_key(case_id)) is not None

    # -- screening summaries -----------------------------------------------

    def save_summary(self, summary: ScreeningSummary) -> None:
        """Persist a screening summary, replacing any earlier one."""
        self._put(screening_key(summary.case_id), summary.model_dump_json(by_alias=True, indent=2).encode("utf-8"))
        LOGGER.info(f"Stored screening summary for case {summary.case_id}: {summary.overall_status.value}")

    def get_summary(self, case_id: str) -> Optional[ScreeningSummary]:
        data = self._get(screening_key(case_id))
        if data is None:
            return None
        try:
            return ScreeningSummary.model_validate_json(data)
        except ValueError as e:
            raise PersistenceError(f"Stored screening summary for case {case_id} is corrupt", original_error=e) from e

    # -- decisions ---------------------------------------------------------

    def append_decision(self, record: DecisionRecord) -> bool:
        """Record a decision under its token id. Never overwrites.

        Returns False when a decision was already recorded with this token.
        """
        token_id = record.token_id or uuid4().hex
        if not CASE_ID_PATTERN.match(token_id):
            raise ValidationError("Invalid decision token identifier")
        key = f"{decisions_prefix(record.case_id)}{token_id}.json"
        body = record.model_dump_json(by_alias=True, indent=2).encode("utf-8")
        if not self._put_if_absent(key, body):
            return False
        LOGGER.info(f"Recorded decision {record.action.value} for case {record.case_id}")
        return True

    def list_decisions(self, case_id: str) -> List[DecisionRecord]:
        """All decision records for a case, oldest first."""
        records = []
        for key in self.objects.list_keys(decisions_prefix(case_id)):
            data = self._get(key)
            if data is not None:
                records.append(DecisionRecord.model_validate_json(data))
        return sorted(records, key=lambda r: r.timestamp)
