"""Model host health endpoint."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...core.config import ConfigStore
from ...services.host_monitor import ModelHostMonitor
from ..dependencies import get_config_store, get_host_monitor

router = APIRouter(tags=["health"])

_START_VALUES = frozenset(["1", "true", "yes"])


@router.get("/health")
async def health_check(
    start: str | None = None,
    monitor: ModelHostMonitor = Depends(get_host_monitor),
    store: ConfigStore = Depends(get_config_store),
):
    """Report model host reachability; ``?start=1`` launches it if needed."""
    allow_start = (start or "").strip().lower() in _START_VALUES
    status = await monitor.ensure_running(allow_start=allow_start)
    config = store.snapshot().to_dict()

    if status.reachable:
        return {"ok": True, "reachable": True, "starting": status.started, "config": config}

    return JSONResponse(
        status_code=503,
        content={
            "ok": False,
            "reachable": False,
            "starting": status.started,
            "message": "Ollama is not reachable.",
            "config": config,
        },
    )
