from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from alertrouter.api.deps import RouterState, get_state
from alertrouter.core.errors import ConfigurationError, format_error_message

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str = "0.1.0"


@router.get("/-/healthy", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(status="healthy")


@router.get("/-/ready", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def readiness_check(state: RouterState = Depends(get_state)) -> HealthResponse:  # noqa: B008
    """Ready once a configuration is active and the registry is open."""
    if not state.config_manager.loaded or not state.dispatcher.registry.is_open:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="not ready")
    return HealthResponse(status="ready")


@router.post("/-/reload", status_code=status.HTTP_200_OK)
async def reload_config(state: RouterState = Depends(get_state)) -> dict[str, str]:  # noqa: B008
    """Reload the configuration file; the previous one stays active on failure."""
    try:
        state.config_manager.reload()
    except ConfigurationError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=format_error_message(exc),
        ) from exc
    return {"status": "reloaded"}
