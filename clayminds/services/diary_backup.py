# clayminds/services/diary_backup.py
"""
Redundant copy of the whole diary list, for when the diary table's schema
drifts and the normal row sync silently stops working.

- BlobDiaryBackup: one JSON document at a fixed object path (upsert).
- SentinelRowDiaryBackup: the same JSON inside photo_url of a reserved
  evidences row; old sentinel rows are deleted, then a fresh one inserted.

Both treat malformed payloads as "no backup" instead of raising.
"""
from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from clayminds.config.settings import BackupStrategy, settings
from clayminds.schemas.schema_diary import DiaryEntry, diary_entry_from_backup, sort_diary
from clayminds.schemas.schema_evidence import DIARY_BACKUP_EVIDENCE_TASK, now_iso
from clayminds.services.remote_store import BUCKET, RemoteStoreClient

logger = logging.getLogger(__name__)

DIARY_BACKUP_OBJECT = "backups/diary_backup_v1.json"


def encode_diary(entries: List[DiaryEntry]) -> str:
    return json.dumps([e.model_dump(by_alias=True) for e in entries], ensure_ascii=False)


def decode_diary(payload: Any) -> Optional[List[DiaryEntry]]:
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError:
            logger.warning("Diary backup payload is not valid JSON")
            return None
    if not isinstance(payload, list):
        logger.warning("Diary backup payload is not a list")
        return None
    entries = [entry for entry in (diary_entry_from_backup(item) for item in payload) if entry]
    return sort_diary(entries)


class BlobDiaryBackup:
    name = "blob"

    def __init__(
        self,
        remote: RemoteStoreClient,
        object_name: str = DIARY_BACKUP_OBJECT,
        bucket: str = BUCKET,
    ):
        self._remote = remote
        self._object_name = object_name
        self._bucket = bucket

    async def save(self, entries: List[DiaryEntry]) -> bool:
        url = await self._remote.upload_blob(
            filename=self._object_name,
            content=encode_diary(entries).encode("utf-8"),
            content_type="application/json",
            object_name=self._object_name,
            upsert=True,
            bucket=self._bucket,
        )
        return url is not None

    async def fetch(self) -> Optional[List[DiaryEntry]]:
        # the shared evidences bucket is public; any other one is read with the API key
        content = await self._remote.download_blob(
            self._object_name,
            bucket=self._bucket,
            public=self._bucket == BUCKET,
        )
        if content is None:
            return None
        return decode_diary(content)


class SentinelRowDiaryBackup:
    name = "sentinel"

    def __init__(self, remote: RemoteStoreClient):
        self._remote = remote

    async def save(self, entries: List[DiaryEntry]) -> bool:
        # never patch: a partial write would leave an ambiguous payload
        await self._remote.delete_row("evidences", "task_name", DIARY_BACKUP_EVIDENCE_TASK)
        created = await self._remote.create_row(
            "evidences",
            {
                "task_name": DIARY_BACKUP_EVIDENCE_TASK,
                "photo_url": encode_diary(entries),
                "created_at": now_iso(),
            },
        )
        return created is not None

    async def fetch(self) -> Optional[List[DiaryEntry]]:
        rows = await self._remote.fetch_rows(
            "evidences",
            {
                "task_name": f"eq.{DIARY_BACKUP_EVIDENCE_TASK}",
                "order": "created_at.desc",
                "limit": "1",
            },
        )
        if not rows:
            return None
        return decode_diary(rows[0].get("photo_url"))


class DiaryBackupRecovery:
    """Runs the configured strategies; blob is read first when both are active."""

    def __init__(
        self,
        remote: RemoteStoreClient,
        strategy: Optional[BackupStrategy] = None,
        bucket: Optional[str] = None,
    ):
        self.strategy = strategy or settings.diary_backup_strategy
        self.bucket = bucket or settings.diary_backup_bucket
        self._backends = []
        if self.strategy in ("blob", "both"):
            self._backends.append(BlobDiaryBackup(remote, bucket=self.bucket))
        if self.strategy in ("sentinel", "both"):
            self._backends.append(SentinelRowDiaryBackup(remote))

    @property
    def enabled(self) -> bool:
        return bool(self._backends)

    async def save(self, entries: List[DiaryEntry]) -> bool:
        if not self._backends:
            return False
        saved = False
        for backend in self._backends:
            if await backend.save(entries):
                saved = True
            else:
                logger.warning(f"Diary backup via {backend.name} failed")
        return saved

    async def fetch(self) -> Optional[List[DiaryEntry]]:
        for backend in self._backends:
            entries = await backend.fetch()
            if entries is not None:
                logger.info(f"Recovered {len(entries)} diary entries from {backend.name} backup")
                return entries
        return None
