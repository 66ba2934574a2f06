"""Alert ingestion and query routes."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import BaseModel

from alertrouter.api.deps import RouterState, get_state
from alertrouter.logging import log_context

logger = structlog.get_logger()

router = APIRouter()


class IngestResponse(BaseModel):
    accepted: int
    rejected: int
    errors: list[str] = []


@router.post("/alerts", response_model=IngestResponse, status_code=status.HTTP_200_OK)
async def post_alerts(
    payload: list[Any] = Body(...),  # noqa: B008
    state: RouterState = Depends(get_state),  # noqa: B008
) -> IngestResponse:
    """Accept a batch of alerts; malformed ones are rejected and counted."""
    with log_context(endpoint="post_alerts", batch_size=len(payload)):
        result = state.ingestor.ingest_batch(payload)
        if result.accepted:
            state.dispatcher.process_many(result.accepted)
        logger.info("alerts_ingested", accepted=len(result.accepted), rejected=result.rejected)
    return IngestResponse(**result.to_dict())


@router.get("/alerts")
async def list_alerts(
    active: bool = Query(True),  # noqa: B008
    silenced: bool = Query(True),  # noqa: B008
    inhibited: bool = Query(True),  # noqa: B008
    receiver: str | None = Query(None),  # noqa: B008
    state: RouterState = Depends(get_state),  # noqa: B008
) -> list[dict[str, Any]]:
    """Active alerts with their inhibition, silence and group status."""
    views = []
    for view in state.dispatcher.alert_statuses():
        if not active and view.state == "active":
            continue
        if not silenced and view.silenced_by:
            continue
        if not inhibited and view.inhibited_by:
            continue
        if receiver is not None and receiver not in view.receivers:
            continue
        views.append(view.to_dict())
    return views


@router.get("/alerts/groups")
async def list_groups(state: RouterState = Depends(get_state)) -> list[dict[str, Any]]:  # noqa: B008
    """Active alert groups."""
    return state.dispatcher.groups()
