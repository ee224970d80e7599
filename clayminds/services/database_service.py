# clayminds/services/database_service.py
"""
Single entry point the app state uses to reach the cloud.

Stateless: each call reports success/failure and the caller
decides about rollback and tombstones. With the cloud disabled, writes are
a no-op success and reads return None, so the app keeps working locally.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Tuple

from clayminds.schemas.schema_cloud import CloudConfig, ConnectionTestResult
from clayminds.schemas.schema_diary import DiaryEntry
from clayminds.schemas.schema_diet import DietPlan
from clayminds.schemas.schema_evidence import EvidenceEntry
from clayminds.services.config_store import ConfigStore
from clayminds.services.diary_backup import DiaryBackupRecovery
from clayminds.services.remote_store import RemoteStoreClient

logger = logging.getLogger(__name__)


class DatabaseService:
    def __init__(
        self,
        config_store: ConfigStore,
        remote: RemoteStoreClient,
        backup: Optional[DiaryBackupRecovery] = None,
    ):
        self.config_store = config_store
        self.remote = remote
        self.backup = backup

    # ---------- config ----------
    def get_config(self) -> CloudConfig:
        return self.config_store.config

    def save_config(self, config: CloudConfig) -> CloudConfig:
        return self.config_store.save(config)

    def reset_to_master(self) -> CloudConfig:
        return self.config_store.reset_to_master()

    @property
    def enabled(self) -> bool:
        return self.remote.is_enabled()

    async def test_connection(self) -> ConnectionTestResult:
        return await self.remote.test_connection()

    # ---------- reads ----------
    async def fetch_diary(self) -> Optional[List[DiaryEntry]]:
        if not self.enabled:
            return None
        entries = await self.remote.fetch_table("diary")
        if entries:
            return entries
        if self.backup and self.backup.enabled:
            recovered = await self.backup.fetch()
            if recovered:
                return recovered
        return entries

    async def fetch_diet(self) -> Optional[DietPlan]:
        if not self.enabled:
            return None
        return await self.remote.fetch_table("diet")

    async def fetch_evidences(self) -> Optional[List[EvidenceEntry]]:
        if not self.enabled:
            return None
        return await self.remote.fetch_table("evidences")

    async def fetch_all(self) -> Tuple[Optional[List[DiaryEntry]], Optional[DietPlan], Optional[List[EvidenceEntry]]]:
        diary, diet, evidences = await asyncio.gather(
            self.fetch_diary(),
            self.fetch_diet(),
            self.fetch_evidences(),
        )
        return diary, diet, evidences

    # ---------- writes ----------
    async def save_diary_list(self, entries: List[DiaryEntry]) -> bool:
        """
        Rows are synced entry by entry and the full list is mirrored to the
        backup. Succeeds if either copy was written.
        """
        if not self.enabled:
            return True
        rows_ok = await self.remote.sync_diary(entries)
        backup_ok = False
        if self.backup and self.backup.enabled:
            backup_ok = await self.backup.save(entries)
        if not rows_ok:
            logger.warning(f"Diary row sync incomplete (backup written: {backup_ok})")
        return rows_ok or backup_ok

    async def delete_from_cloud(self, table: str, entry_id: str) -> bool:
        if not self.enabled:
            return True
        return await self.remote.delete_verified(table, "id", entry_id)

    async def delete_diary_entry(self, entry_id: str, remaining: Optional[List[DiaryEntry]] = None) -> bool:
        deleted = await self.delete_from_cloud("diary", entry_id)
        # keep the backup from resurrecting the entry on the next fetch
        if deleted and self.enabled and remaining is not None and self.backup and self.backup.enabled:
            await self.backup.save(remaining)
        return deleted

    async def save_diet_plan(self, plan: DietPlan) -> bool:
        if not self.enabled:
            return True
        return await self.remote.save_diet(plan)

    async def upload_photo(self, filename: str, content: bytes, content_type: Optional[str]) -> Optional[str]:
        if not self.enabled:
            return None
        return await self.remote.upload_blob(filename, content, content_type)

    async def add_evidence(self, entry: EvidenceEntry) -> Optional[EvidenceEntry]:
        """Returns the stored row, or None when nothing came back."""
        if not self.enabled:
            return None
        return await self.remote.create_evidence(entry)

    async def delete_evidence(self, entry: EvidenceEntry) -> bool:
        if not self.enabled:
            return True
        return await self.remote.delete_evidence(entry)
