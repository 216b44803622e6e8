"""Case status derived from the stored records.

Nothing stores a status field. The state of a case is replayed from its
screening summary and decision log, oldest event first:

    Submitted -> Screened -> {Approved | InfoRequested | Rejected}

A re-screen after InfoRequested moves the case back to Screened. Approved
and Rejected are terminal: the first terminal decision wins and later
events are ignored.
"""

from datetime import datetime
from typing import List, Optional, Sequence

from onboarding.models import (
    TERMINAL_STATES,
    Applicant,
    CaseState,
    CaseStatusView,
    ChecklistItem,
    ClientInfo,
    DecisionAction,
    DecisionRecord,
    RfiItem,
    ScreeningConfig,
    ScreeningSummary,
    TimelineEvent,
)

DECISION_STATES = {
    DecisionAction.APPROVE: CaseState.APPROVED,
    DecisionAction.REQUEST: CaseState.INFO_REQUESTED,
    DecisionAction.REJECT: CaseState.REJECTED,
}

DECISION_DESCRIPTIONS = {
    DecisionAction.APPROVE: "Account approved and validated",
    DecisionAction.REQUEST: "Request for information sent",
    DecisionAction.REJECT: "Application declined",
}

# (category, checklist label, description once uploaded)
CHECKLIST = [
    ("identity_document", "Identity Document", "Government-issued ID"),
    ("proof_of_address", "Proof of Address", "Address verification document"),
    ("tax_documentation", "Tax Documentation", "CRS/FATCA tax form"),
    ("source_of_funds", "Source of Funds", "Source of funds documentation"),
]

NEXT_STEPS = {
    CaseState.SUBMITTED: [
        "Your application is being reviewed",
        "You will receive an email update within 24 hours",
    ],
    CaseState.SCREENED: [
        "Automated screening is complete",
        "A compliance officer is reviewing your application",
    ],
    CaseState.INFO_REQUESTED: [
        "Please provide the requested additional information",
        "Upload documents through this portal",
    ],
    CaseState.APPROVED: [
        "Your account is ready to use",
        "You can now proceed with your subscription",
    ],
    CaseState.REJECTED: [
        "This decision is final",
        "Thank you for your interest",
    ],
}

UPLOAD_STATES = {CaseState.SUBMITTED, CaseState.INFO_REQUESTED}


def case_events(
    summary: Optional[ScreeningSummary],
    decisions: Sequence[DecisionRecord],
) -> List[TimelineEvent]:
    """Transitions that took effect, in order. Excludes the submission itself."""
    pending: List[tuple] = []
    if summary is not None:
        description = f"Screening completed - overall status {summary.overall_status.value}"
        pending.append((summary.screened_at, CaseState.SCREENED, description))
    for record in decisions:
        pending.append((record.timestamp, DECISION_STATES[record.action], DECISION_DESCRIPTIONS[record.action]))

    events: List[TimelineEvent] = []
    for timestamp, state, description in sorted(pending, key=lambda e: e[0]):
        if events and events[-1].status in TERMINAL_STATES:
            break
        events.append(TimelineEvent(status=state, timestamp=timestamp, description=description))
    return events


def derive_state(summary: Optional[ScreeningSummary], decisions: Sequence[DecisionRecord]) -> CaseState:
    events = case_events(summary, decisions)
    return events[-1].status if events else CaseState.SUBMITTED


def _checklist(applicant: Applicant, config: ScreeningConfig) -> List[ChecklistItem]:
    provided = {doc.category for doc in applicant.documents}
    items = []
    for category, label, description in CHECKLIST:
        if category in provided:
            items.append(ChecklistItem(item=label, status="complete", description=f"{description} uploaded"))
        elif category in config.required_documents:
            items.append(ChecklistItem(item=label, status="required", description=f"{description} required"))
        else:
            items.append(ChecklistItem(item=label, status="pending", description=f"{description} not yet provided"))
    return items


def _rfi_items(summary: Optional[ScreeningSummary]) -> List[RfiItem]:
    if summary is None:
        return []
    items = []
    for rfi in summary.rfis:
        title, _, description = rfi.partition(": ")
        items.append(RfiItem(id=f"rfi-{len(items) + 1:03d}", title=title, description=description or title))
    for missing in summary.missing_info:
        items.append(
            RfiItem(id=f"rfi-{len(items) + 1:03d}", title=missing, description=f"Please provide: {missing}")
        )
    return items


def build_case_view(
    applicant: Applicant,
    summary: Optional[ScreeningSummary],
    decisions: Sequence[DecisionRecord],
    config: ScreeningConfig,
) -> CaseStatusView:
    """Client-facing status of a case: timeline, checklist and open RFIs."""
    submitted = TimelineEvent(
        status=CaseState.SUBMITTED,
        timestamp=applicant.submitted_at,
        description="Application submitted successfully",
    )
    timeline = [submitted] + case_events(summary, decisions)
    state = timeline[-1].status
    updated_at: datetime = max(event.timestamp for event in timeline)

    return CaseStatusView(
        case_id=applicant.case_id,
        client=ClientInfo(name=applicant.full_legal_name, email=applicant.email, type=applicant.client_type),
        status=state,
        submitted_at=applicant.submitted_at,
        updated_at=updated_at,
        timeline=timeline,
        checklist=_checklist(applicant, config),
        rfis=_rfi_items(summary) if state is CaseState.INFO_REQUESTED else [],
        next_steps=list(NEXT_STEPS[state]),
        can_upload=state in UPLOAD_STATES,
        documents=list(applicant.documents),
    )
