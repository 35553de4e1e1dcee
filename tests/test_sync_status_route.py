from services.itam.heartbeat import SyncHeartbeat


def test_status_starts_at_zero(app):
    res = app.test_client().get("/api/sync/status")

    assert res.status_code == 200
    assert res.get_json() == {"ok": True, "revision": 0, "last_sync_at": None}


def test_status_follows_heartbeat(app):
    heartbeat = app.extensions["itam_sync_heartbeat"]
    heartbeat.mark_changed()
    heartbeat.mark_changed()

    body = app.test_client().get("/api/sync/status").get_json()

    assert body["revision"] == 2
    assert body["last_sync_at"] is not None


def test_status_without_heartbeat_is_unavailable(app):
    app.extensions.pop("itam_sync_heartbeat")

    res = app.test_client().get("/api/sync/status")

    assert res.status_code == 503
    assert res.get_json()["ok"] is False


def test_tick_without_changes_keeps_revision():
    heartbeat = SyncHeartbeat()
    assert heartbeat.mark_changed() == 1

    assert heartbeat.mark_tick() == 1
    assert heartbeat.status()["revision"] == 1
    assert heartbeat.last_sync_at is not None
