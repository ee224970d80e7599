# clayminds/schemas/schema_evidence.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from clayminds.schemas.schema_diary import coerce_id

# reserved task name of the evidences row that carries the diary backup
DIARY_BACKUP_EVIDENCE_TASK = "__diary_backup_v1__"

EVIDENCE_TASKS = [
    "Bañarme (Diaria)",
    "Caminar 30 min (Diaria)",
    "Nadar (Mar/Jue)",
    "Visitar a un amigo (Semanal)",
    "Otra tarea psicológica",
]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class EvidenceEntry(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    task_name: str
    photo_url: str
    created_at: str = Field(default_factory=now_iso)

    @field_validator("id", mode="before")
    @classmethod
    def id_as_string(cls, v):
        normalized = coerce_id(v)
        if normalized is None:
            raise ValueError("id is required")
        return normalized


class EvidenceRow(BaseModel):
    """Wire shape of a row in the `evidences` table."""

    id: Optional[str] = None
    task_name: str
    photo_url: str
    created_at: Optional[str] = None


def evidence_row_to_entry(row: Dict[str, Any]) -> EvidenceEntry:
    return EvidenceEntry(
        id=coerce_id(row.get("id")) or row.get("photo_url") or "",
        task_name=row.get("task_name") or "",
        photo_url=row.get("photo_url") or "",
        created_at=str(row.get("created_at") or ""),
    )


def evidence_entry_to_row(entry: EvidenceEntry) -> EvidenceRow:
    return EvidenceRow(
        id=entry.id,
        task_name=entry.task_name,
        photo_url=entry.photo_url,
        created_at=entry.created_at,
    )


def _created_at_key(entry: EvidenceEntry) -> float:
    try:
        parsed = datetime.fromisoformat(entry.created_at.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return float("-inf")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def sort_evidences(entries: List[EvidenceEntry]) -> List[EvidenceEntry]:
    return sorted(entries, key=_created_at_key, reverse=True)
