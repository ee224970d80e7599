# clayminds/routers/diet.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from clayminds.dependencies import get_app_state
from clayminds.schemas.schema_cloud import SyncResult
from clayminds.schemas.schema_diet import DietPlan, ParseDietRequest
from clayminds.services.app_state import AppState
from clayminds_ai.core.diet_parser import DietParseError

router = APIRouter(prefix="/diet", tags=["dieta"])


@router.get("", response_model=Optional[DietPlan])
def get_diet(state: AppState = Depends(get_app_state)):
    return state.diet_plan


@router.put("", response_model=SyncResult)
async def replace_diet(
    body: DietPlan,
    state: AppState = Depends(get_app_state),
):
    ok = await state.save_diet(body)
    return SyncResult(success=ok)


@router.post("/parse", response_model=DietPlan)
async def parse_diet(
    body: ParseDietRequest,
    state: AppState = Depends(get_app_state),
):
    """
    Pasted diet text -> structured plan, which replaces the current one.
    422 with a user-facing message when the text can't be understood.
    """
    if not body.text.strip():
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "El texto de la dieta está vacío.")
    try:
        plan = await state.import_diet_text(body.text)
    except DietParseError as e:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, str(e))
    if plan is None:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, "No se pudo guardar la dieta en la nube.")
    return plan


@router.post("/meals/{index}/toggle", response_model=DietPlan)
async def toggle_meal(
    index: int,
    state: AppState = Depends(get_app_state),
):
    try:
        ok = await state.toggle_meal(index)
    except (LookupError, IndexError):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Comida no encontrada")
    if not ok:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, "No se pudo guardar el cambio en la nube.")
    return state.diet_plan
