"""Screening configuration endpoints.

Thresholds are held on app state and shared with the engine. A PUT swaps in
a whole new config object, so a screening in flight keeps the snapshot it
started with.
"""

from typing import Any, Dict

from fastapi import APIRouter, Request

from onboarding.models import ScreeningConfig
from onboarding.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter(prefix="/api")


def _changes(old: ScreeningConfig, new: ScreeningConfig) -> Dict[str, Any]:
    before, after = old.model_dump(), new.model_dump()
    return {field: after[field] for field in after if before.get(field) != after[field]}


@router.get("/config", response_model=ScreeningConfig)
async def get_config(request: Request) -> ScreeningConfig:
    return request.app.state.config


@router.put("/config", response_model=ScreeningConfig)
async def update_config(new_config: ScreeningConfig, request: Request) -> ScreeningConfig:
    """Replace the screening thresholds used by subsequent screenings."""
    state = request.app.state
    changed = _changes(state.config, new_config)
    state.config = state.engine.config = new_config
    if changed:
        LOGGER.info(f"Screening configuration updated: {changed}")
    else:
        LOGGER.info("Screening configuration unchanged")
    return new_config
