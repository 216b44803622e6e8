"""Case status endpoint for the client portal."""

from fastapi import APIRouter, Request

from onboarding.models import CaseStatusView
from onboarding.status import build_case_view

router = APIRouter(prefix="/api")


@router.get("/cases/{case_id}", response_model=CaseStatusView)
async def get_case_status(case_id: str, request: Request) -> CaseStatusView:
    """Derived status, timeline, document checklist and open RFIs of a case."""
    store = request.app.state.case_store
    applicant = store.get_applicant(case_id)
    return build_case_view(
        applicant,
        store.get_summary(case_id),
        store.list_decisions(case_id),
        request.app.state.config,
    )
