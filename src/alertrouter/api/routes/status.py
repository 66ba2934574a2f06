from __future__ import annotations

import time
from typing import Any

from fastapi import APIRouter, Depends

from alertrouter.api.deps import RouterState, get_state
from alertrouter.config import dump_config


router = APIRouter()


@router.get("/status")
async def get_status(state: RouterState = Depends(get_state)) -> dict[str, Any]:  # noqa: B008
    """Active configuration, counters and the last reload error."""
    manager = state.config_manager
    last_error = manager.last_error
    return {
        "config": {"original": dump_config(manager.config)},
        "uptimeSeconds": round(time.time() - state.started_at, 3),
        "dispatcher": state.dispatcher.snapshot(),
        "ingestion": {
            "accepted": state.ingestor.accepted_total,
            "rejected": state.ingestor.rejected_total,
        },
        "reload": {
            "count": manager.reload_count,
            "failed": manager.failed_reloads,
            "lastError": last_error.message if last_error else None,
        },
    }
