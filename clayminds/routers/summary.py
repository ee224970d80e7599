# clayminds/routers/summary.py
from fastapi import APIRouter, Depends

from clayminds.dependencies import get_app_state
from clayminds.schemas.schema_cloud import ExportBundle, SyncResult
from clayminds.services.app_state import AppState
from clayminds.services.summary import build_summary

router = APIRouter(prefix="/summary", tags=["resumen"])


@router.get("")
def get_summary(state: AppState = Depends(get_app_state)):
    return build_summary(state.diary_entries, state.diet_plan)


@router.get("/export", response_model=ExportBundle)
def export_data(state: AppState = Depends(get_app_state)):
    return state.export_data()


@router.post("/import", response_model=SyncResult)
async def import_data(
    body: ExportBundle,
    state: AppState = Depends(get_app_state),
):
    ok = await state.import_data(body)
    if ok:
        await state.init_app()
    return SyncResult(success=ok)
