# clayminds/routers/cloud.py
from fastapi import APIRouter, Depends

from clayminds.dependencies import get_app_state
from clayminds.schemas.schema_cloud import CloudConfig, ConnectionTestResult
from clayminds.services.app_state import AppState

router = APIRouter(prefix="/cloud", tags=["nube"])


@router.get("/config", response_model=CloudConfig)
def get_config(state: AppState = Depends(get_app_state)):
    return state.db.get_config()


@router.put("/config", response_model=CloudConfig)
async def save_config(
    body: CloudConfig,
    state: AppState = Depends(get_app_state),
):
    """Switching endpoints reloads diary, diet and evidences from the new one."""
    return await state.save_config(body)


@router.post("/reset", response_model=CloudConfig)
async def reset_to_master(state: AppState = Depends(get_app_state)):
    """Clears all local state (tombstones included) and reloads from the master source."""
    return await state.reset_to_master()


@router.get("/test", response_model=ConnectionTestResult)
async def test_connection(state: AppState = Depends(get_app_state)):
    return await state.db.test_connection()
