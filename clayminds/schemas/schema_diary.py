# clayminds/schemas/schema_diary.py
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    return int(time.time() * 1000)


def coerce_id(value: Any) -> Optional[str]:
    """Normalises string/numeric ids to one canonical string form."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def coerce_epoch_ms(value: Any) -> Optional[int]:
    """
    created_at has been stored as epoch millis (bigint) and as ISO text
    across table generations; accept both.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(float(text))
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


class DiaryEntry(BaseModel):
    """Application-side diary entry (camelCase on the JSON surface)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    date: str = ""
    situation: str = ""
    emotions: str = ""
    automatic_thoughts: str = ""
    insight: Optional[str] = None
    created_at: int = Field(default_factory=now_ms)

    @field_validator("id", mode="before")
    @classmethod
    def id_as_string(cls, v):
        normalized = coerce_id(v)
        if normalized is None:
            raise ValueError("id is required")
        return normalized


class CreateDiaryEntry(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    date: str = Field(min_length=1)
    situation: str = ""
    emotions: str = ""
    automatic_thoughts: str = ""


class DiaryRow(BaseModel):
    """Wire shape of a row in the `diary` table."""

    id: Optional[str] = None
    fecha: Optional[str] = None
    situacion: Optional[str] = None
    emociones: Optional[str] = None
    pensamientos_automaticos: Optional[str] = None
    insight: Optional[str] = None
    created_at: Optional[int] = None


def diary_row_to_entry(row: Dict[str, Any]) -> DiaryEntry:
    created_at = coerce_epoch_ms(row.get("created_at"))
    return DiaryEntry(
        id=coerce_id(row.get("id")) or "",
        date=row.get("fecha") or "",
        situation=row.get("situacion") or "",
        emotions=row.get("emociones") or "",
        automatic_thoughts=row.get("pensamientos_automaticos") or "",
        insight=row.get("insight"),
        created_at=created_at if created_at is not None else now_ms(),
    )


def diary_entry_to_row(entry: DiaryEntry) -> DiaryRow:
    return DiaryRow(
        id=entry.id,
        fecha=entry.date,
        situacion=entry.situation,
        emociones=entry.emotions,
        pensamientos_automaticos=entry.automatic_thoughts,
        insight=entry.insight,
        created_at=entry.created_at,
    )


# field-name variants written by earlier app versions into backups
_BACKUP_ALIASES = {
    "date": ("date", "fecha"),
    "situation": ("situation", "situacion"),
    "emotions": ("emotions", "emociones"),
    "automatic_thoughts": (
        "automaticThoughts",
        "automatic_thoughts",
        "pensamientosAutomaticos",
        "pensamientos_automaticos",
    ),
    "insight": ("insight",),
    "created_at": ("createdAt", "created_at"),
}


def _pick(item: Dict[str, Any], keys) -> Any:
    for key in keys:
        if item.get(key) is not None:
            return item[key]
    return None


def diary_entry_from_backup(item: Any) -> Optional[DiaryEntry]:
    if not isinstance(item, dict):
        return None
    entry_id = coerce_id(item.get("id"))
    if entry_id is None:
        return None
    created_at = coerce_epoch_ms(_pick(item, _BACKUP_ALIASES["created_at"]))
    return DiaryEntry(
        id=entry_id,
        date=str(_pick(item, _BACKUP_ALIASES["date"]) or ""),
        situation=str(_pick(item, _BACKUP_ALIASES["situation"]) or ""),
        emotions=str(_pick(item, _BACKUP_ALIASES["emotions"]) or ""),
        automatic_thoughts=str(_pick(item, _BACKUP_ALIASES["automatic_thoughts"]) or ""),
        insight=_pick(item, _BACKUP_ALIASES["insight"]),
        created_at=created_at if created_at is not None else now_ms(),
    )


def sort_diary(entries: List[DiaryEntry]) -> List[DiaryEntry]:
    return sorted(entries, key=lambda e: e.created_at, reverse=True)


def normalize_diary(entries: List[DiaryEntry]) -> List[DiaryEntry]:
    """Newest first, one entry per id (the newest copy wins)."""
    seen = set()
    unique = []
    for entry in sort_diary(entries):
        if entry.id in seen:
            continue
        seen.add(entry.id)
        unique.append(entry)
    return unique
