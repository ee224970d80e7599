# clayminds/services/remote_store.py
"""
PostgREST / storage client for the diary, diet and evidences tables.

Every public method maps failures (transport errors, non-2xx status,
undecodable JSON) to False / None / [] and logs them; nothing here raises
to the caller.
"""
from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Dict, List, Literal, Optional, Union

import httpx
from pydantic import ValidationError

from clayminds.config.settings import settings
from clayminds.schemas.schema_cloud import CloudConfig, ConnectionTestResult
from clayminds.schemas.schema_diary import (
    DiaryEntry,
    diary_entry_to_row,
    diary_row_to_entry,
    sort_diary,
)
from clayminds.schemas.schema_diet import DietPlan
from clayminds.schemas.schema_evidence import (
    DIARY_BACKUP_EVIDENCE_TASK,
    EvidenceEntry,
    evidence_entry_to_row,
    evidence_row_to_entry,
    sort_evidences,
)
from clayminds.services.config_store import ConfigStore

logger = logging.getLogger(__name__)

Table = Literal["diary", "diet", "evidences"]
BUCKET = "evidences"
DIET_ROW_ID = 1

# UnicodeEncodeError: httpx encodes header values as ASCII
REQUEST_ERRORS = (httpx.HTTPError, httpx.InvalidURL, UnicodeEncodeError)


def build_object_name(filename: str) -> str:
    safe_name = re.sub(r"[^a-z0-9.]", "_", filename or "file", flags=re.IGNORECASE)
    return f"{int(time.time() * 1000)}-{safe_name}"


def _json_or_none(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        logger.warning(f"Undecodable JSON body from {response.request.url}")
        return None


class RemoteStoreClient:
    def __init__(
        self,
        config_store: ConfigStore,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config_store = config_store
        self._timeout = settings.http_timeout if timeout is None else timeout
        self._transport = transport

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------
    @property
    def config(self) -> CloudConfig:
        return self._config_store.config

    def is_enabled(self) -> bool:
        return bool(self.config.enabled and self.config.url)

    def _base_url(self) -> str:
        return self.config.url.rstrip("/")

    def _auth_headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.config.key,
            "Authorization": f"Bearer {self.config.key}",
        }
        if extra:
            headers.update(extra)
        return headers

    def _json_headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        extra = {"Content-Type": "application/json"}
        if prefer:
            extra["Prefer"] = prefer
        return self._auth_headers(extra)

    def rest_url(self, table: str) -> str:
        return f"{self._base_url()}/rest/v1/{table}"

    def object_url(self, object_name: str, bucket: str = BUCKET) -> str:
        return f"{self._base_url()}/storage/v1/object/{bucket}/{object_name}"

    def public_url(self, object_name: str, bucket: str = BUCKET) -> str:
        return f"{self._base_url()}/storage/v1/object/public/{bucket}/{object_name}"

    async def _request(self, method: str, url: str, **kwargs) -> Optional[httpx.Response]:
        if not self.is_enabled():
            return None
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                return await client.request(method, url, **kwargs)
        except REQUEST_ERRORS as e:
            logger.error(f"{method} {url} failed: {e}")
            return None

    # ------------------------------------------------------------------
    # rows
    # ------------------------------------------------------------------
    async def fetch_rows(self, table: str, params: Optional[Dict[str, str]] = None) -> Optional[List[Dict[str, Any]]]:
        query = {"select": "*"}
        if params:
            query.update(params)
        r = await self._request("GET", self.rest_url(table), headers=self._json_headers(), params=query)
        if r is None:
            return None
        if r.is_error:
            logger.warning(f"GET {table} returned {r.status_code}: {r.text}")
            return None
        data = _json_or_none(r)
        if not isinstance(data, list):
            return None
        return [row for row in data if isinstance(row, dict)]

    async def fetch_table(self, table: Table) -> Union[List[DiaryEntry], List[EvidenceEntry], Optional[DietPlan], None]:
        """
        diary/evidences -> list (empty on failure); diet -> plan or None.
        None for every table when the cloud is disabled.
        """
        if not self.is_enabled():
            return None

        rows = await self.fetch_rows(table)

        if table == "diet":
            return self._last_diet_plan(rows or [])

        if rows is None:
            return []

        if table == "diary":
            entries = []
            for row in rows:
                try:
                    entries.append(diary_row_to_entry(row))
                except ValidationError as e:
                    logger.warning(f"Skipping diary row without usable id: {e}")
            return sort_diary(entries)

        if table == "evidences":
            entries = []
            for row in rows:
                if row.get("task_name") == DIARY_BACKUP_EVIDENCE_TASK:
                    continue
                try:
                    entries.append(evidence_row_to_entry(row))
                except ValidationError as e:
                    logger.warning(f"Skipping malformed evidence row: {e}")
            return sort_evidences(entries)

        return rows

    @staticmethod
    def _last_diet_plan(rows: List[Dict[str, Any]]) -> Optional[DietPlan]:
        # singleton table, but tolerate duplicates by taking the last row
        if not rows:
            return None
        plan = rows[-1].get("plan")
        if isinstance(plan, str):
            try:
                plan = json.loads(plan)
            except ValueError:
                logger.warning("Diet plan column holds undecodable JSON")
                return None
        if not plan:
            return None
        try:
            return DietPlan.model_validate(plan)
        except ValidationError as e:
            logger.warning(f"Diet plan does not match the expected shape: {e}")
            return None

    async def create_row(self, table: str, row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        r = await self._request(
            "POST",
            self.rest_url(table),
            headers=self._json_headers("return=representation"),
            json=row,
        )
        if r is None:
            return None
        if r.is_error:
            logger.warning(f"POST {table} returned {r.status_code}: {r.text}")
            return None
        data = _json_or_none(r)
        if isinstance(data, list):
            data = data[0] if data else None
        return data if isinstance(data, dict) else None

    async def upsert_row(self, table: str, row: Dict[str, Any]) -> bool:
        r = await self._request(
            "POST",
            self.rest_url(table),
            headers=self._json_headers("resolution=merge-duplicates"),
            json=row,
        )
        if r is None:
            return False
        if r.is_error:
            logger.warning(f"Upsert into {table} returned {r.status_code}: {r.text}")
            return False
        return True

    async def patch_row(self, table: str, row_id: str, fields: Dict[str, Any]) -> bool:
        """True only when the server reports at least one updated row."""
        r = await self._request(
            "PATCH",
            self.rest_url(table),
            headers=self._json_headers("return=representation"),
            params={"id": f"eq.{row_id}"},
            json=fields,
        )
        if r is None:
            return False
        if r.is_error:
            logger.warning(f"PATCH {table} id={row_id} returned {r.status_code}: {r.text}")
            return False
        data = _json_or_none(r)
        return isinstance(data, list) and len(data) > 0

    async def delete_row(self, table: str, column: str, value: str) -> bool:
        # 2xx only; a row-level-security policy can still filter the delete to zero rows
        r = await self._request(
            "DELETE",
            self.rest_url(table),
            headers=self._json_headers(),
            params={column: f"eq.{value}"},
        )
        if r is None:
            return False
        if r.is_error:
            logger.warning(f"DELETE {table} {column}={value} returned {r.status_code}: {r.text}")
            return False
        return True

    async def row_exists(self, table: str, column: str, value: str) -> bool:
        """An unanswerable check counts as 'still exists'."""
        rows = await self.fetch_rows(table, {column: f"eq.{value}", "limit": "1"})
        if rows is None:
            return True
        return len(rows) > 0

    # ------------------------------------------------------------------
    # blob storage
    # ------------------------------------------------------------------
    async def upload_blob(
        self,
        filename: str,
        content: bytes,
        content_type: Optional[str] = None,
        object_name: Optional[str] = None,
        upsert: bool = False,
        bucket: str = BUCKET,
    ) -> Optional[str]:
        name = object_name or build_object_name(filename)
        extra = {"Content-Type": content_type or "application/octet-stream"}
        if upsert:
            extra["x-upsert"] = "true"
        r = await self._request("POST", self.object_url(name, bucket), headers=self._auth_headers(extra), content=content)
        if r is None:
            return None
        if r.is_error:
            logger.warning(f"Upload of {name} returned {r.status_code}: {r.text}")
            return None
        return self.public_url(name, bucket)

    async def download_blob(self, object_name: str, bucket: str = BUCKET, public: bool = True) -> Optional[bytes]:
        """public=False reads through the authenticated endpoint (private buckets)."""
        url = self.public_url(object_name, bucket) if public else self.object_url(object_name, bucket)
        r = await self._request("GET", url, headers=self._auth_headers())
        if r is None:
            return None
        if r.is_error:
            logger.info(f"Blob {object_name} not available ({r.status_code})")
            return None
        return r.content

    # ------------------------------------------------------------------
    # entity protocols
    # ------------------------------------------------------------------
    async def create_evidence(self, entry: EvidenceEntry) -> Optional[EvidenceEntry]:
        row = evidence_entry_to_row(entry).model_dump(exclude_none=True)
        created = await self.create_row("evidences", row)
        if not created:
            return None
        try:
            return evidence_row_to_entry(created)
        except ValidationError as e:
            logger.warning(f"Created evidence row could not be read back: {e}")
            return None

    async def delete_evidence(self, entry: EvidenceEntry) -> bool:
        """
        The evidences table went through revisions where `id` may be stale
        or missing, so photo_url is the key that decides the outcome.
        1) delete by id  2) gone by photo_url? done
        3) delete by photo_url  4) success = row no longer exists
        """
        await self.delete_row("evidences", "id", entry.id)
        if not await self.row_exists("evidences", "photo_url", entry.photo_url):
            return True

        logger.warning(f"Evidence {entry.id} survived delete by id, retrying by photo_url")
        await self.delete_row("evidences", "photo_url", entry.photo_url)
        return not await self.row_exists("evidences", "photo_url", entry.photo_url)

    async def delete_verified(self, table: str, column: str, value: str) -> bool:
        await self.delete_row(table, column, value)
        return not await self.row_exists(table, column, value)

    async def sync_diary(self, entries: List[DiaryEntry]) -> bool:
        """PATCH every entry by id; entries the server does not know are inserted."""
        all_synced = True
        for entry in entries:
            row = diary_entry_to_row(entry).model_dump()
            fields = {k: v for k, v in row.items() if k != "id"}
            if await self.patch_row("diary", entry.id, fields):
                continue
            if await self.create_row("diary", row) is None:
                logger.warning(f"Diary entry {entry.id} could not be synced")
                all_synced = False
        return all_synced

    async def save_diet(self, plan: DietPlan) -> bool:
        return await self.upsert_row("diet", {"id": DIET_ROW_ID, "plan": plan.model_dump()})

    async def test_connection(self) -> ConnectionTestResult:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                r = await client.get(
                    self.rest_url("diary"),
                    headers=self._json_headers(),
                    params={"select": "count"},
                )
        except UnicodeEncodeError as e:
            logger.error(f"Connection test failed, non-ASCII credentials: {e}")
            return ConnectionTestResult(success=False, message="La URL o la clave contienen caracteres no válidos")
        except REQUEST_ERRORS as e:
            logger.error(f"Connection test failed: {e}")
            return ConnectionTestResult(success=False, message="Error de red: Verifica la URL")

        if not r.is_error:
            return ConnectionTestResult(success=True, message="¡Conexión Exitosa con la DB!")
        body = _json_or_none(r)
        message = body.get("message") if isinstance(body, dict) else None
        return ConnectionTestResult(success=False, message=message or "Error de permisos (401/403)")
