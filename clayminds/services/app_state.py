# clayminds/services/app_state.py
"""
In-memory application state and the reconciliation policy around the
DatabaseService: optimistic updates with rollback, evidence tombstones,
and fire-and-forget diary enrichment.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Protocol, Set

from clayminds.schemas.schema_cloud import CloudConfig, ExportBundle
from clayminds.schemas.schema_diary import DiaryEntry, normalize_diary, now_ms
from clayminds.schemas.schema_diet import DietPlan
from clayminds.schemas.schema_evidence import EvidenceEntry, now_iso
from clayminds.services.database_service import DatabaseService
from clayminds.services.optimistic import OptimisticUpdate
from clayminds.services.tombstones import EvidenceTombstones
from clayminds_ai.core.diet_parser import DietParser

logger = logging.getLogger(__name__)


class InsightGenerator(Protocol):
    def get_diary_insight(self, entry: DiaryEntry) -> str: ...


class DietTextParser(Protocol):
    def parse_diet_from_text(self, text: str) -> DietPlan: ...


class AppState:
    def __init__(
        self,
        db: DatabaseService,
        tombstones: EvidenceTombstones,
        insight_generator: Optional[InsightGenerator] = None,
        diet_parser: Optional[DietTextParser] = None,
    ):
        self.db = db
        self.tombstones = tombstones
        self.insight_generator = insight_generator
        self.diet_parser = diet_parser or DietParser()

        self.diary_entries: List[DiaryEntry] = []
        self.diet_plan: Optional[DietPlan] = None
        self.evidence_entries: List[EvidenceEntry] = []
        self.is_loading = True

        self._syncing = 0
        self._generation = itertools.count(1)
        self._generations: Dict[str, int] = {}
        self._enrichment_tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # status
    # ------------------------------------------------------------------
    @property
    def is_cloud_enabled(self) -> bool:
        return self.db.enabled

    @property
    def is_syncing(self) -> bool:
        return self._syncing > 0

    @asynccontextmanager
    async def _syncing_scope(self):
        self._syncing += 1
        try:
            yield
        finally:
            self._syncing -= 1

    def find_diary(self, entry_id: str) -> Optional[DiaryEntry]:
        return next((e for e in self.diary_entries if e.id == entry_id), None)

    def find_evidence(self, entry_id: str) -> Optional[EvidenceEntry]:
        return next((e for e in self.evidence_entries if e.id == entry_id), None)

    # ------------------------------------------------------------------
    # load
    # ------------------------------------------------------------------
    async def init_app(self) -> None:
        """Fetch the three tables together; a None result keeps the local value."""
        self.is_loading = True
        try:
            diary, diet, evidences = await self.db.fetch_all()
            if diary is not None:
                self.diary_entries = diary
            if diet is not None:
                self.diet_plan = diet
            if evidences is not None:
                self.evidence_entries = await asyncio.to_thread(self.tombstones.mask, evidences)
        finally:
            self.is_loading = False
        logger.info(
            f"State loaded: {len(self.diary_entries)} diary, "
            f"diet={'yes' if self.diet_plan else 'no'}, {len(self.evidence_entries)} evidences"
        )

    # ------------------------------------------------------------------
    # diary
    # ------------------------------------------------------------------
    async def save_diary(self, entries: List[DiaryEntry]) -> bool:
        entries = normalize_diary(entries)
        update = OptimisticUpdate(self, "diary_entries", entries)
        if not self.is_cloud_enabled:
            update.commit()
            return True
        async with self._syncing_scope():
            ok = await self.db.save_diary_list(entries)
        if not ok:
            logger.warning("Diary save failed, rolling back local list")
        return update.settle(ok)

    async def add_diary_entry(
        self,
        date: str,
        situation: str,
        emotions: str,
        automatic_thoughts: str,
    ) -> Optional[DiaryEntry]:
        entry = DiaryEntry(
            id=str(uuid.uuid4()),
            date=date,
            situation=situation,
            emotions=emotions,
            automatic_thoughts=automatic_thoughts,
            created_at=now_ms(),
        )
        if not await self.save_diary([entry] + self.diary_entries):
            return None
        self._schedule_enrichment(entry)
        return entry

    async def delete_diary_entry(self, entry_id: str) -> bool:
        if self.find_diary(entry_id) is None:
            return False
        # any in-flight enrichment for this entry is now stale
        self._generations.pop(entry_id, None)
        remaining = [e for e in self.diary_entries if e.id != entry_id]
        update = OptimisticUpdate(self, "diary_entries", remaining)
        if not self.is_cloud_enabled:
            update.commit()
            return True
        async with self._syncing_scope():
            ok = await self.db.delete_diary_entry(entry_id, remaining)
        if not ok:
            logger.warning(f"Diary entry {entry_id} could not be deleted remotely, restoring it")
        return update.settle(ok)

    def _schedule_enrichment(self, entry: DiaryEntry) -> None:
        if self.insight_generator is None:
            return
        generation = next(self._generation)
        self._generations[entry.id] = generation
        task = asyncio.create_task(self._enrich(entry, generation))
        self._enrichment_tasks.add(task)
        task.add_done_callback(self._enrichment_tasks.discard)

    async def _enrich(self, entry: DiaryEntry, generation: int) -> None:
        try:
            insight = await asyncio.to_thread(self.insight_generator.get_diary_insight, entry)
        except Exception as e:
            logger.exception(f"Insight generation failed for {entry.id}: {e}")
            return

        if self._generations.get(entry.id) != generation or self.find_diary(entry.id) is None:
            logger.info(f"Dropping insight for superseded diary entry {entry.id}")
            return
        self._generations.pop(entry.id, None)

        updated = [
            e.model_copy(update={"insight": insight}) if e.id == entry.id else e
            for e in self.diary_entries
        ]
        await self.save_diary(updated)

    async def wait_for_enrichments(self) -> None:
        if self._enrichment_tasks:
            await asyncio.gather(*list(self._enrichment_tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # diet
    # ------------------------------------------------------------------
    async def save_diet(self, plan: DietPlan) -> bool:
        update = OptimisticUpdate(self, "diet_plan", plan)
        if not self.is_cloud_enabled:
            update.commit()
            return True
        async with self._syncing_scope():
            ok = await self.db.save_diet_plan(plan)
        if not ok:
            logger.warning("Diet save failed, rolling back local plan")
        return update.settle(ok)

    async def toggle_meal(self, index: int) -> bool:
        if self.diet_plan is None:
            raise LookupError("no diet plan loaded")
        if not 0 <= index < len(self.diet_plan.schedule):
            raise IndexError(f"meal index out of range: {index}")
        plan = self.diet_plan.model_copy(deep=True)
        meal = plan.schedule[index]
        meal.completed = not meal.completed
        # no partial-update protocol: the whole plan is written again
        return await self.save_diet(plan)

    async def import_diet_text(self, text: str) -> Optional[DietPlan]:
        """Raises DietParseError when the text cannot be turned into a plan."""
        plan = await asyncio.to_thread(self.diet_parser.parse_diet_from_text, text)
        if not await self.save_diet(plan):
            return None
        return plan

    # ------------------------------------------------------------------
    # evidences
    # ------------------------------------------------------------------
    async def upload_evidence(
        self,
        task_name: str,
        filename: str,
        content: bytes,
        content_type: Optional[str],
    ) -> Optional[EvidenceEntry]:
        async with self._syncing_scope():
            photo_url = await self.db.upload_photo(filename, content, content_type)
        if not photo_url:
            return None
        entry = EvidenceEntry(
            id=str(uuid.uuid4()),
            task_name=task_name,
            photo_url=photo_url,
            created_at=now_iso(),
        )
        return await self.add_evidence(entry)

    async def add_evidence(self, entry: EvidenceEntry) -> Optional[EvidenceEntry]:
        # re-uploading a deleted photo is a legitimate resurrection
        if await asyncio.to_thread(self.tombstones.discard, entry.photo_url):
            logger.info(f"Cleared tombstone for {entry.photo_url}")

        update = OptimisticUpdate(self, "evidence_entries", [entry] + self.evidence_entries)
        if not self.is_cloud_enabled:
            update.commit()
            return entry
        async with self._syncing_scope():
            saved = await self.db.add_evidence(entry)
        if saved is None:
            logger.warning(f"Evidence {entry.id} was not stored remotely, removing it")
            update.rollback()
            return None
        update.commit()
        self.evidence_entries = [saved if e.id == entry.id else e for e in self.evidence_entries]
        return saved

    async def delete_evidence(self, entry: EvidenceEntry) -> bool:
        """
        Hidden locally right away and for good (tombstone); a failed remote
        delete is not rolled back.
        """
        await asyncio.to_thread(self.tombstones.add, entry.photo_url)
        self.evidence_entries = [e for e in self.evidence_entries if e.id != entry.id]
        if not self.is_cloud_enabled:
            return True

        async with self._syncing_scope():
            deleted = await self.db.delete_evidence(entry)
            if not deleted:
                logger.warning(f"Evidence {entry.id} could not be deleted remotely; it stays hidden locally")
                return False
            cloud_evidences = await self.db.fetch_evidences()
        if cloud_evidences is not None:
            self.evidence_entries = await asyncio.to_thread(self.tombstones.mask, cloud_evidences)
        return True

    async def refresh_evidences(self) -> List[EvidenceEntry]:
        async with self._syncing_scope():
            cloud_evidences = await self.db.fetch_evidences()
        if cloud_evidences is not None:
            self.evidence_entries = await asyncio.to_thread(self.tombstones.mask, cloud_evidences)
        return self.evidence_entries

    # ------------------------------------------------------------------
    # config / import / export
    # ------------------------------------------------------------------
    async def _reload(self) -> None:
        """Drop everything held in memory and load again from the active endpoint."""
        self.diary_entries = []
        self.diet_plan = None
        self.evidence_entries = []
        self._generations.clear()
        await self.init_app()

    async def save_config(self, config: CloudConfig) -> CloudConfig:
        saved = await asyncio.to_thread(self.db.save_config, config)
        await self._reload()
        return saved

    async def reset_to_master(self) -> CloudConfig:
        config = await asyncio.to_thread(self.db.reset_to_master)
        await self._reload()
        return config

    def export_data(self) -> ExportBundle:
        return ExportBundle(diary=self.diary_entries, diet=self.diet_plan)

    async def import_data(self, bundle: ExportBundle) -> bool:
        diary_ok = await self.save_diary(bundle.diary)
        diet_ok = True
        if bundle.diet is not None:
            diet_ok = await self.save_diet(bundle.diet)
        return diary_ok and diet_ok
