from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from taskproof.apps.api import deps
from taskproof.apps.api.main import app
from taskproof.core.scheduler.jobs import CHECK_IN_JOB_ID


def test_notifications_list_and_acknowledge() -> None:
    store = deps.get_notification_store()
    record = store.append(user_id="demo-user", type="task_reminder", title="Reminder", message="Renew domain")
    store.append(user_id="someone-else", type="task_reminder", title="Hidden", message="x")

    with TestClient(app) as client:
        listed = client.get("/notifications", params={"acknowledged": False})
        assert [item["id"] for item in listed.json()["notifications"]] == [record.id]

        acked = client.post(f"/notifications/{record.id}/acknowledge")
        assert acked.status_code == 200
        assert acked.json()["acknowledged"] is True

        assert client.get("/notifications", params={"acknowledged": False}).json()["notifications"] == []
        assert client.post("/notifications/missing/acknowledge").status_code == 404


def test_check_in_job_registered_on_startup(monkeypatch) -> None:
    monkeypatch.setenv("TASKPROOF_CHECKINS_ENABLED", "on")
    monkeypatch.setenv("TASKPROOF_CHECKIN_EVERY_MINUTES", "30")

    with TestClient(app) as client:
        jobs = client.get("/jobs").json()
        health = client.get("/healthz/full").json()

        assert [job["id"] for job in jobs] == [CHECK_IN_JOB_ID]
        assert jobs[0]["kwargs"]["user_id"] == "demo-user"
        assert health["scheduler"]["checkins_enabled"] is True

        assert client.delete(f"/jobs/{CHECK_IN_JOB_ID}").status_code == 200
        assert client.get("/jobs").json() == []
        assert client.delete(f"/jobs/{CHECK_IN_JOB_ID}").status_code == 404


def test_check_ins_off_by_default() -> None:
    with TestClient(app) as client:
        assert client.get("/jobs").json() == []
        upserted = client.post("/jobs/check-in", json={"every_minutes": 15})
        assert upserted.json() == {"job_id": CHECK_IN_JOB_ID, "every_minutes": 15}
        assert [job["id"] for job in client.get("/jobs").json()] == [CHECK_IN_JOB_ID]


def test_task_reminder_job() -> None:
    with TestClient(app) as client:
        task = client.post("/tasks", json={"title": "Renew domain"}).json()
        run_at = (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat()

        created = client.post("/jobs/reminder", json={"task_id": task["id"], "run_at_iso": run_at})
        assert created.status_code == 200
        assert created.json()["job_id"].startswith(f"reminder:{task['id']}:")
        assert any(job["id"] == created.json()["job_id"] for job in client.get("/jobs").json())

        assert client.post("/jobs/reminder", json={"task_id": "missing", "run_at_iso": run_at}).status_code == 404
        assert client.post("/jobs/reminder", json={"task_id": task["id"], "run_at_iso": "soon"}).status_code == 400


def test_healthz_full_defaults(tmp_path) -> None:
    with TestClient(app) as client:
        payload = client.get("/healthz/full").json()

    assert payload["ok"] is True
    assert payload["state_dir"] == {"path": str(tmp_path), "writable": True}
    assert payload["llm"]["provider"] == "off"
    assert payload["llm"]["features"] == {"follow_ups": False}
    assert payload["scheduler"]["checkins_enabled"] is False
