from __future__ import annotations

from dataclasses import replace

from fastapi.testclient import TestClient


def test_app_smoke_routes(settings):
    import app as app_module

    with TestClient(app_module.create_app(settings)) as client:
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json() == {"status": "ok"}

        # lifespan seeded every document
        r = client.get("/admin/integrity")
        assert r.status_code == 200
        body = r.json()
        assert body["valid"] is True
        assert len(body["results"]) == 7

        r = client.get("/admin/documents")
        assert r.status_code == 200
        trackers = next(d for d in r.json() if d["document"] == "TRACKERS")
        assert trackers["shape"] == "mapping"
        assert trackers["locked"] is False


def test_backup_routes(settings):
    import app as app_module

    with TestClient(app_module.create_app(settings)) as client:
        r = client.post("/admin/backups")
        assert r.status_code == 200
        timestamp = r.json()["timestamp"]

        r = client.get("/admin/backups")
        assert [b["timestamp"] for b in r.json()] == [timestamp]

        r = client.get("/admin/backups/status")
        assert r.json()["total_backups"] == 1

        r = client.get(f"/admin/backups/{timestamp}/verify")
        assert r.status_code == 200
        assert r.json()["valid"] is True

        r = client.post(f"/admin/backups/{timestamp}/restore")
        assert r.status_code == 200
        assert len(r.json()["restored"]) == 7

        r = client.post("/admin/backups/2001-01-01T00-00-00-000Z/restore")
        assert r.status_code == 404

        r = client.get("/admin/backups/nope/verify")
        assert r.status_code == 404

        r = client.post("/admin/backups/cleanup")
        assert r.json() == {"deleted": 0, "remaining": 2}

        r = client.get("/admin/export")
        assert r.status_code == 200
        assert r.json()["data"]["CLUB"] == {}


def test_admin_routes_require_token_when_configured(settings):
    import app as app_module

    with TestClient(app_module.create_app(replace(settings, admin_token="s3cret"))) as client:
        assert client.get("/health").status_code == 200
        assert client.get("/admin/integrity").status_code == 401
        assert client.get("/admin/integrity", headers={"Authorization": "Bearer wrong"}).status_code == 401
        assert client.get("/admin/integrity", headers={"Authorization": "Bearer s3cret"}).status_code == 200
