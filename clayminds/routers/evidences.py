# clayminds/routers/evidences.py
from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from clayminds.dependencies import get_app_state
from clayminds.schemas.schema_cloud import SyncResult
from clayminds.schemas.schema_evidence import EVIDENCE_TASKS, EvidenceEntry
from clayminds.services.app_state import AppState

router = APIRouter(prefix="/evidences", tags=["evidencias"])


@router.get("", response_model=List[EvidenceEntry])
def list_evidences(state: AppState = Depends(get_app_state)):
    return state.evidence_entries


@router.get("/tasks", response_model=List[str])
def list_tasks():
    return EVIDENCE_TASKS


@router.post("", response_model=EvidenceEntry, status_code=201)
async def create_evidence(
    task_name: str = Form(..., min_length=1),
    photo: UploadFile = File(...),
    state: AppState = Depends(get_app_state),
):
    content = await photo.read()
    entry = await state.upload_evidence(
        task_name=task_name,
        filename=photo.filename or "photo",
        content=content,
        content_type=photo.content_type,
    )
    if entry is None:
        raise HTTPException(
            status.HTTP_502_BAD_GATEWAY,
            "Error al subir la imagen. Verifica el bucket 'evidences'.",
        )
    return entry


@router.post("/refresh", response_model=List[EvidenceEntry])
async def refresh_evidences(state: AppState = Depends(get_app_state)):
    return await state.refresh_evidences()


@router.delete("/{entry_id}", response_model=SyncResult)
async def delete_evidence(
    entry_id: str,
    state: AppState = Depends(get_app_state),
):
    entry = state.find_evidence(entry_id)
    if entry is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Evidencia no encontrada")
    ok = await state.delete_evidence(entry)
    return SyncResult(
        success=ok,
        message=None if ok else "No se pudo borrar en la nube; la evidencia se mantendrá oculta localmente.",
    )
