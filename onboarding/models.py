"""Pydantic models for the onboarding screening and decision service.

Wire payloads use camelCase keys (``caseId``, ``fullLegalName``,
``overallStatus``); Python attributes stay snake_case. Every model accepts
both spellings on input.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from onboarding.errors import ValidationError


# Case ids become storage key segments
CASE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Severity(str, Enum):
    """Traffic-light outcome, ordered GREEN < AMBER < RED.

    Comparisons follow the precedence rather than the string values, so
    ``max(severities)`` is the aggregate verdict.
    """

    GREEN = "GREEN"
    AMBER = "AMBER"
    RED = "RED"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self.value]

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {"GREEN": 0, "AMBER": 1, "RED": 2}


class ClientType(str, Enum):
    INDIVIDUAL = "individual"
    ENTITY = "entity"


class DecisionAction(str, Enum):
    APPROVE = "approve"
    REQUEST = "request"
    REJECT = "reject"


class CaseState(str, Enum):
    SUBMITTED = "Submitted"
    SCREENED = "Screened"
    INFO_REQUESTED = "InfoRequested"
    APPROVED = "Approved"
    REJECTED = "Rejected"


TERMINAL_STATES = {CaseState.APPROVED, CaseState.REJECTED}


# ---------------------------------------------------------------------------
# Applicant records
# ---------------------------------------------------------------------------


class DocumentDescriptor(CamelModel):
    """An uploaded document, already stored by the upload step."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    category: str
    key: str
    filename: str
    size: int = 0
    content_type: str = "application/octet-stream"


class _ApplicantBase(CamelModel):
    """Fields shared by every client category. Immutable once submitted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    case_id: str
    full_legal_name: str
    email: Optional[str] = None
    date_of_birth: Optional[str] = None  # date of incorporation for entities
    full_address: Optional[str] = None
    tax_residency_country: Optional[str] = None
    tin: Optional[str] = None
    mobile_number: Optional[str] = None
    pep_status: Literal["yes", "no"] = "no"
    pep_details: Optional[str] = None
    expected_subscription: Optional[str] = None
    documents: tuple[DocumentDescriptor, ...] = ()
    submitted_at: datetime = Field(default_factory=utcnow)

    @field_validator("case_id", "full_legal_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("case_id")
    @classmethod
    def _safe_case_id(cls, value: str) -> str:
        if not CASE_ID_PATTERN.match(value):
            raise ValueError("may only contain letters, digits, dots, dashes and underscores")
        return value

    @field_validator("pep_status", mode="before")
    @classmethod
    def _normalize_pep_status(cls, value: Any) -> Any:
        if value is None or value == "":
            return "no"
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("tax_residency_country")
    @classmethod
    def _upper_country(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().upper() if value else value


class IndividualApplicant(_ApplicantBase):
    client_type: Literal["individual"] = "individual"
    nationality: Optional[str] = None


class EntityApplicant(_ApplicantBase):
    client_type: Literal["entity"] = "entity"
    registration_number: Optional[str] = None
    ubo_list: Optional[str] = None
    authorized_signatory_name: Optional[str] = None
    authorized_signatory_title: Optional[str] = None
    lei: Optional[str] = None


Applicant = Union[IndividualApplicant, EntityApplicant]

ApplicantRecord = Annotated[
    Applicant,
    Field(discriminator="client_type"),
]

_APPLICANT_ADAPTER: TypeAdapter = TypeAdapter(ApplicantRecord)


def _describe_validation_error(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error["loc"]) or "payload"
        parts.append(f"{location}: {error['msg']}")
    return "Invalid applicant payload - " + "; ".join(parts)


def parse_applicant(payload: dict[str, Any]) -> Applicant:
    """Validate a raw applicant payload into its category-specific record.

    A missing ``clientType`` defaults to ``individual``.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Applicant payload must be a JSON object")

    data = dict(payload)
    client_type = data.pop("client_type", None) or data.get("clientType") or "individual"
    data["clientType"] = str(client_type).strip().lower()

    try:
        return _APPLICANT_ADAPTER.validate_python(data)
    except PydanticValidationError as exc:
        raise ValidationError(_describe_validation_error(exc), original_error=exc) from exc


# ---------------------------------------------------------------------------
# Screening
# ---------------------------------------------------------------------------


class CheckResult(CamelModel):
    """Output of a single verification check."""

    check: str
    severity: Severity
    reason: str
    evidence: dict[str, Any] = Field(default_factory=dict)


class UBOEntry(CamelModel):
    """A beneficial owner parsed from the free-text UBO declaration."""

    name: str
    date_of_birth: str
    ownership_percentage: float


class ScreeningSummary(CamelModel):
    """Latest screening outcome for a case. Re-screening replaces it."""

    case_id: str
    client_name: str
    client_type: str
    overall_status: Severity
    results: list[CheckResult]
    missing_info: list[str] = Field(default_factory=list)
    rfis: list[str] = Field(default_factory=list)
    documents: list[DocumentDescriptor] = Field(default_factory=list)
    screened_at: datetime = Field(default_factory=utcnow)


class ScreeningResponse(CamelModel):
    success: bool = True
    case_id: str
    overall_status: Severity
    results_count: int
    documents_count: int


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


class DecisionRecord(CamelModel):
    """One decision click. Append-only; never rewritten."""

    case_id: str
    action: DecisionAction
    token: str
    token_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class DecisionOutcome(CamelModel):
    success: bool = True
    case_id: str
    action: DecisionAction
    client_email: str
    notified: bool
    status: CaseState


# ---------------------------------------------------------------------------
# Case status view
# ---------------------------------------------------------------------------


class TimelineEvent(CamelModel):
    status: CaseState
    timestamp: datetime
    description: str


class ChecklistItem(CamelModel):
    item: str
    status: Literal["pending", "complete", "required"]
    description: str


class RfiItem(CamelModel):
    id: str
    title: str
    description: str
    required: bool = True
    submitted: bool = False


class ClientInfo(CamelModel):
    name: str
    email: Optional[str] = None
    type: str


class CaseStatusView(CamelModel):
    case_id: str
    client: ClientInfo
    status: CaseState
    submitted_at: datetime
    updated_at: datetime
    timeline: list[TimelineEvent]
    checklist: list[ChecklistItem]
    rfis: list[RfiItem]
    next_steps: list[str]
    can_upload: bool
    documents: list[DocumentDescriptor] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ScreeningConfig(BaseModel):
    """Tunable thresholds for the screening checks."""

    fuzzy_match_threshold: int = 85
    tin_min_length: int = 5
    ubo_total_tolerance: float = 0.5
    check_timeout_seconds: float = 10.0
    sanctions_fail_open: bool = True
    required_documents: list[str] = Field(default_factory=list)
    media_hit_limit: int = 5
