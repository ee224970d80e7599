import itertools
import json
import pathlib
import sys
from typing import Any, Dict, List, Optional, Set, Tuple

import httpx
import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from clayminds.db.database import build_engine, build_session_factory, init_local_db  # noqa: E402
from clayminds.services.app_state import AppState  # noqa: E402
from clayminds.services.config_store import ConfigStore  # noqa: E402
from clayminds.services.database_service import DatabaseService  # noqa: E402
from clayminds.services.diary_backup import DiaryBackupRecovery  # noqa: E402
from clayminds.services.local_storage import LocalStorage  # noqa: E402
from clayminds.services.remote_store import RemoteStoreClient  # noqa: E402
from clayminds.services.tombstones import EvidenceTombstones  # noqa: E402

MASTER_URL = "https://fake-project.supabase.co"
MASTER_KEY = "anon-test-key"

REST_PREFIX = "/rest/v1/"
OBJECT_PREFIX = "/storage/v1/object/"
RESERVED_PARAMS = {"select", "order", "limit"}


class FakeSupabase:
    """
    In-process PostgREST + storage server for httpx.MockTransport.

    silent_deletes: tables whose DELETE answers 204 but removes nothing
    (row-level security filtering the statement to zero rows).
    failures: (method, table) -> (status, message); storage calls use the
    table name "storage".
    offline: every request raises a transport error.
    """

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {"diary": [], "diet": [], "evidences": []}
        self.buckets: Dict[str, Dict[str, bytes]] = {"evidences": {}}
        self.public_buckets: Set[str] = {"evidences"}
        self.requests: List[Tuple[str, str, Dict[str, str]]] = []
        self.silent_deletes: Set[str] = set()
        self.failures: Dict[Tuple[str, str], Tuple[int, str]] = {}
        self.offline = False
        self._ids = itertools.count(1000)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def fail(self, method: str, table: str, status: int = 500, message: str = "internal error") -> None:
        self.failures[(method, table)] = (status, message)

    def calls(self, method: Optional[str] = None, table: Optional[str] = None) -> List[Tuple[str, str, Dict[str, str]]]:
        return [
            c for c in self.requests
            if (method is None or c[0] == method) and (table is None or c[1] == table)
        ]

    # ------------------------------------------------------------------
    def handle(self, request: httpx.Request) -> httpx.Response:
        if self.offline:
            raise httpx.ConnectError("network unreachable", request=request)

        path = request.url.path
        params = dict(request.url.params)
        if path.startswith(REST_PREFIX):
            table = path[len(REST_PREFIX):]
        elif path.startswith("/storage/"):
            table = "storage"
        else:
            return httpx.Response(404, json={"message": "not found"})
        self.requests.append((request.method, table, params))

        failure = self.failures.get((request.method, table))
        if failure:
            status, message = failure
            return httpx.Response(status, json={"message": message})

        if table == "storage":
            return self._storage(request, path)
        rows = self.tables.setdefault(table, [])
        handler = getattr(self, f"_{request.method.lower()}")
        return handler(request, table, rows, params)

    @staticmethod
    def _matches(row: Dict[str, Any], params: Dict[str, str]) -> bool:
        for column, condition in params.items():
            if column in RESERVED_PARAMS or not condition.startswith("eq."):
                continue
            if str(row.get(column)) != condition[3:]:
                return False
        return True

    def _get(self, request, table, rows, params):
        if params.get("select") == "count":
            return httpx.Response(200, json=[{"count": len(rows)}])
        found = [dict(r) for r in rows if self._matches(r, params)]
        if "order" in params:
            column, _, direction = params["order"].rpartition(".")
            found.sort(key=lambda r: r.get(column) or "", reverse=direction == "desc")
        if "limit" in params:
            found = found[: int(params["limit"])]
        return httpx.Response(200, json=found)

    def _post(self, request, table, rows, params):
        body = json.loads(request.content or b"null")
        prefer = request.headers.get("Prefer", "")
        incoming = body if isinstance(body, list) else [body]
        stored = []
        for row in incoming:
            row = dict(row)
            row.setdefault("id", next(self._ids))
            existing = next((r for r in rows if str(r.get("id")) == str(row["id"])), None)
            if existing is not None:
                if "merge-duplicates" not in prefer:
                    return httpx.Response(409, json={"message": "duplicate key value violates unique constraint"})
                existing.update(row)
                stored.append(dict(existing))
            else:
                rows.append(row)
                stored.append(dict(row))
        if "return=representation" in prefer:
            return httpx.Response(201, json=stored)
        return httpx.Response(201)

    def _patch(self, request, table, rows, params):
        fields = json.loads(request.content or b"{}")
        updated = []
        for row in rows:
            if self._matches(row, params):
                row.update(fields)
                updated.append(dict(row))
        return httpx.Response(200, json=updated)

    def _delete(self, request, table, rows, params):
        if table not in self.silent_deletes:
            self.tables[table] = [r for r in rows if not self._matches(r, params)]
        return httpx.Response(204)

    @property
    def blobs(self) -> Dict[str, bytes]:
        return self.buckets["evidences"]

    def _storage(self, request, path):
        rest = path[len(OBJECT_PREFIX):]
        public = rest.startswith("public/")
        if public:
            rest = rest[len("public/"):]
        bucket, _, name = rest.partition("/")
        if bucket not in self.buckets:
            return httpx.Response(400, json={"message": "Bucket not found"})
        objects = self.buckets[bucket]

        if request.method == "GET":
            if public and bucket not in self.public_buckets:
                return httpx.Response(400, json={"message": "Bucket is not public"})
            if not public and not request.headers.get("Authorization"):
                return httpx.Response(401, json={"message": "Missing authorization"})
            if name not in objects:
                return httpx.Response(400, json={"message": "Object not found"})
            return httpx.Response(200, content=objects[name])
        if request.method == "POST" and not public:
            if name in objects and request.headers.get("x-upsert") != "true":
                return httpx.Response(400, json={"message": "The resource already exists"})
            objects[name] = request.content
            return httpx.Response(200, json={"Key": f"{bucket}/{name}"})
        return httpx.Response(405, json={"message": "method not allowed"})


@pytest.fixture
def fake():
    return FakeSupabase()


@pytest.fixture
def storage():
    engine = build_engine("sqlite://")
    init_local_db(engine)
    return LocalStorage(build_session_factory(engine))


@pytest.fixture
def config_store(storage):
    return ConfigStore(storage, master_url=MASTER_URL, master_key=MASTER_KEY)


@pytest.fixture
def remote(config_store, fake):
    return RemoteStoreClient(config_store, timeout=5.0, transport=fake.transport())


@pytest.fixture
def backup(remote):
    return DiaryBackupRecovery(remote, strategy="both")


@pytest.fixture
def db_service(config_store, remote, backup):
    return DatabaseService(config_store, remote, backup)


@pytest.fixture
def tombstones(storage):
    return EvidenceTombstones(storage)


@pytest.fixture
def app_state(db_service, tombstones):
    return AppState(db_service, tombstones)
