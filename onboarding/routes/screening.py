"""Screening endpoints: submit-and-screen, re-screen, and the stored summary."""

from typing import Any, Dict

from fastapi import APIRouter, Body, Request

from onboarding.errors import NotFoundError
from onboarding.models import ScreeningResponse, ScreeningSummary, parse_applicant
from onboarding.screening.engine import ScreeningEngine
from onboarding.storage.cases import CaseStore

router = APIRouter(prefix="/api")


def _get_engine(request: Request) -> ScreeningEngine:
    """Retrieve the screening engine from application state."""
    return request.app.state.engine


def _get_case_store(request: Request) -> CaseStore:
    return request.app.state.case_store


def _response(summary: ScreeningSummary) -> ScreeningResponse:
    return ScreeningResponse(
        case_id=summary.case_id,
        overall_status=summary.overall_status,
        results_count=len(summary.results),
        documents_count=len(summary.documents),
    )


@router.post("/screening", response_model=ScreeningResponse)
async def screen_applicant(request: Request, payload: Dict[str, Any] = Body(...)) -> ScreeningResponse:
    """Store a new applicant record and screen it.

    Resubmitting the identical record re-runs screening. A different record
    under an existing case id replaces it only while information is
    requested; otherwise it is rejected with 409.
    """
    applicant = parse_applicant(payload)
    summary = await _get_engine(request).submit(applicant)
    return _response(summary)


@router.post("/cases/{case_id}/screening", response_model=ScreeningResponse)
async def rescreen_case(case_id: str, request: Request) -> ScreeningResponse:
    """Re-run screening on the stored applicant record, replacing the summary."""
    summary = await _get_engine(request).rescreen(case_id)
    return _response(summary)


@router.get("/cases/{case_id}/screening", response_model=ScreeningSummary)
async def get_screening(case_id: str, request: Request) -> ScreeningSummary:
    store = _get_case_store(request)
    store.get_applicant(case_id)
    summary = store.get_summary(case_id)
    if summary is None:
        raise NotFoundError(f"No screening found for case {case_id}")
    return summary
