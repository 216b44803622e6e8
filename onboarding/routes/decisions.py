"""Decision endpoints: the reviewer's one-click decision links and the decision log."""

from typing import List, Optional

from fastapi import APIRouter, Query, Request

from onboarding.decisions.processor import DecisionProcessor
from onboarding.models import DecisionOutcome, DecisionRecord

router = APIRouter(prefix="/api")


def _get_processor(request: Request) -> DecisionProcessor:
    """Retrieve the decision processor from application state."""
    return request.app.state.processor


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.get("/decide", response_model=DecisionOutcome)
async def decide(
    request: Request,
    case_id: Optional[str] = Query(default=None, alias="caseId"),
    case: Optional[str] = Query(default=None),
    action: Optional[str] = Query(default=None),
    token: Optional[str] = Query(default=None),
) -> DecisionOutcome:
    """Record a decision from a signed link in the screening report email.

    ``case`` is accepted as a synonym for ``caseId``.
    """
    return await _get_processor(request).decide(
        case_id or case,
        action,
        token,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


@router.get("/cases/{case_id}/decisions", response_model=List[DecisionRecord])
async def get_decision_log(case_id: str, request: Request) -> List[DecisionRecord]:
    """Every decision recorded for a case, oldest first."""
    store = request.app.state.case_store
    store.get_applicant(case_id)
    return store.list_decisions(case_id)
