import pytest
from fastapi.testclient import TestClient

from clayminds.config.settings import Settings
from clayminds.db.database import build_engine, build_session_factory
from clayminds.main import create_app
from clayminds.schemas.schema_evidence import EVIDENCE_TASKS
from clayminds.services.config_store import CLOUD_CONFIG_KEY
from clayminds.services.local_storage import LocalStorage
from clayminds_ai.core.diet_parser import PARSE_ERROR_MESSAGE

from conftest import MASTER_KEY, MASTER_URL


@pytest.fixture
def client(fake):
    cfg = Settings(
        supabase_url=MASTER_URL,
        supabase_key=MASTER_KEY,
        openai_api_key="",
        local_db_url="sqlite://",
        diary_backup_strategy="blob",
    )
    with TestClient(create_app(cfg, transport=fake.transport())) as c:
        yield c


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_startup_loads_cloud_state(fake):
    fake.tables["diary"] = [{"id": 3, "fecha": "2024-05-01", "situacion": "s", "created_at": 10}]
    cfg = Settings(supabase_url=MASTER_URL, supabase_key=MASTER_KEY, openai_api_key="", local_db_url="sqlite://")
    with TestClient(create_app(cfg, transport=fake.transport())) as c:
        data = c.get("/diary").json()
    assert data[0]["id"] == "3"
    assert data[0]["situation"] == "s"


def test_diary_create_list_delete(client, fake):
    res = client.post(
        "/diary",
        json={"date": "2024-05-01", "situation": "Reunión", "emotions": "nervios", "automaticThoughts": "Lo arruiné"},
    )
    assert res.status_code == 201
    created = res.json()
    assert created["automaticThoughts"] == "Lo arruiné"
    assert created["insight"] is None

    listed = client.get("/diary").json()
    assert [e["id"] for e in listed] == [created["id"]]
    assert fake.tables["diary"][0]["pensamientos_automaticos"] == "Lo arruiné"

    res = client.delete(f"/diary/{created['id']}")
    assert res.json() == {"success": True, "message": None}
    assert client.get("/diary").json() == []
    assert client.delete("/diary/unknown").status_code == 404


def test_diary_create_validates_date(client):
    assert client.post("/diary", json={"date": ""}).status_code == 422


def test_diary_create_reports_cloud_failure(client, fake):
    fake.fail("POST", "diary")
    fake.fail("POST", "storage")
    res = client.post("/diary", json={"date": "2024-05-01"})
    assert res.status_code == 502
    assert client.get("/diary").json() == []


def test_diet_parse_and_toggle(client, fake):
    res = client.post("/diet/parse", json={"text": "DÍA 1\nDesayuno\nAvena, leche\nComida\nPollo, arroz"})
    assert res.status_code == 200
    plan = res.json()
    assert [m["category"] for m in plan["schedule"]] == ["breakfast", "lunch"]
    assert fake.tables["diet"][0]["plan"]["name"] == plan["name"]

    toggled = client.post("/diet/meals/0/toggle").json()
    assert toggled["schedule"][0]["completed"] is True
    assert client.post("/diet/meals/7/toggle").status_code == 404


def test_diet_parse_errors(client):
    assert client.post("/diet/parse", json={"text": "  "}).status_code == 400
    res = client.post("/diet/parse", json={"text": "sin comidas reconocibles"})
    assert res.status_code == 422
    assert res.json()["detail"] == PARSE_ERROR_MESSAGE


def test_toggle_without_plan_is_not_found(client):
    assert client.get("/diet").json() is None
    assert client.post("/diet/meals/0/toggle").status_code == 404


def test_evidence_upload_and_delete(client, fake):
    assert client.get("/evidences/tasks").json() == EVIDENCE_TASKS

    res = client.post(
        "/evidences",
        data={"task_name": EVIDENCE_TASKS[2]},
        files={"photo": ("alberca.jpg", b"jpeg-bytes", "image/jpeg")},
    )
    assert res.status_code == 201
    evidence = res.json()
    assert evidence["taskName"] == EVIDENCE_TASKS[2]
    assert evidence["photoUrl"].endswith("-alberca.jpg")

    res = client.delete(f"/evidences/{evidence['id']}")
    assert res.json()["success"] is True
    assert client.get("/evidences").json() == []
    assert client.delete("/evidences/unknown").status_code == 404


def test_evidence_upload_failure(client, fake):
    fake.fail("POST", "storage")
    res = client.post(
        "/evidences",
        data={"task_name": EVIDENCE_TASKS[0]},
        files={"photo": ("a.jpg", b"x", "image/jpeg")},
    )
    assert res.status_code == 502


def test_cloud_config_and_connection(client, fake):
    assert client.get("/cloud/config").json()["enabled"] is True
    assert client.get("/cloud/test").json()["success"] is True

    res = client.put("/cloud/config", json={"url": MASTER_URL, "key": MASTER_KEY, "enabled": False})
    assert res.json()["enabled"] is False

    fake.requests.clear()
    assert client.post("/diary", json={"date": "2024-05-01"}).status_code == 201
    assert fake.requests == []

    reset = client.post("/cloud/reset").json()
    assert reset["enabled"] is True
    assert client.get("/diary").json() == []


def test_summary_export_import(client, fake):
    client.post("/diary", json={"date": "2024-05-05", "emotions": "alegría, calma"})
    summary = client.get("/summary").json()
    assert summary["diary_count"] == 1
    assert summary["activity"][0] == {"day": "Dom", "entries": 1}

    bundle = client.get("/summary/export").json()
    bundle["diary"][0]["situation"] = "editado"
    assert client.post("/summary/import", json=bundle).json()["success"] is True
    assert client.get("/diary").json()[0]["situation"] == "editado"


def test_non_ascii_key_is_rejected_and_restart_survives(fake, tmp_path):
    db_url = f"sqlite:///{tmp_path / 'local.db'}"
    cfg = Settings(supabase_url=MASTER_URL, supabase_key=MASTER_KEY, openai_api_key="", local_db_url=db_url)

    with TestClient(create_app(cfg, transport=fake.transport())) as c:
        res = c.put("/cloud/config", json={"url": MASTER_URL, "key": "clave-ñ", "enabled": True})
        assert res.status_code == 422
        assert c.get("/cloud/config").json()["key"] == MASTER_KEY

    # a value written by an older version bypassed validation
    engine = build_engine(db_url)
    LocalStorage(build_session_factory(engine)).set_json(
        CLOUD_CONFIG_KEY, {"url": MASTER_URL, "key": "clave-ñ", "enabled": True}
    )
    engine.dispose()

    with TestClient(create_app(cfg, transport=fake.transport())) as c:
        assert c.get("/health").status_code == 200
        assert c.get("/cloud/config").json()["key"] == MASTER_KEY


def test_replacing_diary_normalises_the_list(client):
    body = [
        {"id": "a", "date": "2024-05-01", "createdAt": 1000},
        {"id": "b", "date": "2024-05-02", "createdAt": 2000},
        {"id": "b", "date": "2024-05-02", "situation": "final", "createdAt": 3000},
    ]
    assert client.put("/diary", json=body).json()["success"] is True

    listed = client.get("/diary").json()
    assert [e["id"] for e in listed] == ["b", "a"]
    assert listed[0]["situation"] == "final"


def test_saving_config_reloads_state(fake):
    fake.tables["diary"] = [{"id": "x1", "fecha": "2024-05-01", "created_at": 1}]
    cfg = Settings(supabase_url=MASTER_URL, supabase_key=MASTER_KEY, openai_api_key="", local_db_url="sqlite://")
    with TestClient(create_app(cfg, transport=fake.transport())) as c:
        assert [e["id"] for e in c.get("/diary").json()] == ["x1"]

        c.put("/cloud/config", json={"url": "", "key": "", "enabled": False})
        assert c.get("/diary").json() == []

        fake.tables["diary"].append({"id": "x2", "fecha": "2024-05-02", "created_at": 2})
        c.put("/cloud/config", json={"url": MASTER_URL, "key": "otra-clave", "enabled": True})
        assert [e["id"] for e in c.get("/diary").json()] == ["x2", "x1"]
