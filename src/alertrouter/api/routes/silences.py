"""Silence management routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel

from alertrouter.api.deps import RouterState, get_state
from alertrouter.core.errors import AlertRouterError
from alertrouter.routing.silences import Silence

router = APIRouter()


class SilenceCreated(BaseModel):
    silenceID: str


@router.get("/silences")
async def list_silences(state: RouterState = Depends(get_state)) -> list[dict[str, Any]]:  # noqa: B008
    now = state.dispatcher.clock.now()
    return [s.to_dict(now) for s in state.dispatcher.silencer.list_silences()]


@router.post("/silences", response_model=SilenceCreated, status_code=status.HTTP_200_OK)
async def create_silence(
    payload: dict[str, Any] = Body(...),  # noqa: B008
    state: RouterState = Depends(get_state),  # noqa: B008
) -> SilenceCreated:
    try:
        silence = Silence.from_dict(payload, now=state.dispatcher.clock.now())
        silence_id = state.dispatcher.add_silence(silence)
    except AlertRouterError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc
    except (AttributeError, KeyError, TypeError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"malformed silence: {exc}") from exc
    return SilenceCreated(silenceID=silence_id)


@router.get("/silence/{silence_id}")
async def get_silence(silence_id: str, state: RouterState = Depends(get_state)) -> dict[str, Any]:  # noqa: B008
    silence = state.dispatcher.silencer.get(silence_id)
    if silence is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="silence not found")
    return silence.to_dict(state.dispatcher.clock.now())


@router.delete("/silence/{silence_id}", status_code=status.HTTP_200_OK)
async def delete_silence(silence_id: str, state: RouterState = Depends(get_state)) -> dict[str, str]:  # noqa: B008
    if not state.dispatcher.expire_silence(silence_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="silence not found or already expired")
    return {"status": "expired"}
