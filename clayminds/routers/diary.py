# clayminds/routers/diary.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from clayminds.dependencies import get_app_state
from clayminds.schemas.schema_cloud import SyncResult
from clayminds.schemas.schema_diary import CreateDiaryEntry, DiaryEntry
from clayminds.services.app_state import AppState

router = APIRouter(prefix="/diary", tags=["diario"])


@router.get("", response_model=List[DiaryEntry])
def list_diary(state: AppState = Depends(get_app_state)):
    return state.diary_entries


@router.post("", response_model=DiaryEntry, status_code=201)
async def create_diary_entry(
    body: CreateDiaryEntry,
    state: AppState = Depends(get_app_state),
):
    """
    Saved right away; the AI insight is added to the entry later,
    so `insight` is empty in this response.
    """
    entry = await state.add_diary_entry(
        date=body.date,
        situation=body.situation,
        emotions=body.emotions,
        automatic_thoughts=body.automatic_thoughts,
    )
    if entry is None:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, "No se pudo guardar la entrada en la nube.")
    return entry


@router.put("", response_model=SyncResult)
async def replace_diary(
    body: List[DiaryEntry],
    state: AppState = Depends(get_app_state),
):
    ok = await state.save_diary(body)
    return SyncResult(success=ok, message=None if ok else "Sincronización fallida, se restauró la lista anterior.")


@router.delete("/{entry_id}", response_model=SyncResult)
async def delete_diary_entry(
    entry_id: str,
    state: AppState = Depends(get_app_state),
):
    if state.find_diary(entry_id) is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Entrada no encontrada")
    ok = await state.delete_diary_entry(entry_id)
    return SyncResult(success=ok, message=None if ok else "No se pudo borrar en la nube; la entrada se restauró.")
