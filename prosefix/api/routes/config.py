"""Runtime configuration of the model host."""

from fastapi import APIRouter, Depends

from ...core.config import ConfigStore, parse_bool
from ..dependencies import get_config_store
from ..schemas import ConfigUpdateRequest

router = APIRouter(tags=["config"])


@router.get("/config")
async def read_config(store: ConfigStore = Depends(get_config_store)):
    return {"ok": True, "config": store.snapshot().to_dict()}


@router.post("/config")
async def update_config(
    body: ConfigUpdateRequest,
    store: ConfigStore = Depends(get_config_store),
):
    """
    Merge a partial update into the running configuration.

    With ``persist`` the result is also written to the config file, which
    seeds the configuration on the next start.
    """
    persist = parse_bool(body.persist, False)
    config = store.update(body.changes(), persist=persist)
    return {"ok": True, "config": config.to_dict(), "persisted": persist}
