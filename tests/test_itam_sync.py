from extensions import db
from models.itam import ItamAsset, ItamSyncRun
from oa_fakes import FakeOpenAudit, device
from services.itam import ingest
from services.itam.heartbeat import SyncHeartbeat
from services.itam.ingest import run_tenant_sync
from services.openaudit.errors import AuthError, ConstraintViolation, UpstreamError

import pytest


def _scenario_rows(host_a_serial=None):
    host_a = {"hostname": "host-a", "type": "computer"}
    if host_a_serial:
        host_a["serial"] = host_a_serial
    return [
        device(1, org_id=7, hostname="pc-sn1", serial="SN1", manufacturer="Dell"),
        device(2, org_id=7, **host_a),
        device(3, org_id=9, hostname="elsewhere", serial="SN3"),
    ]


def test_scenario_three_syncs(make_tenant):
    tenant = make_tenant("Tenant T", org_id="7")
    heartbeat = SyncHeartbeat()

    _, first = run_tenant_sync(tenant, FakeOpenAudit(_scenario_rows()), heartbeat)
    assert first["created"] == 2
    assert first["updated"] == 0
    assert first["reported_total"] == 3
    assert first["filtered_total"] == 2
    assert ItamAsset.query.filter_by(tenant_id=tenant.id).count() == 2

    _, second = run_tenant_sync(tenant, FakeOpenAudit(_scenario_rows()), heartbeat)
    assert second["created"] == 0
    assert second["updated"] == 2
    assert ItamAsset.query.filter_by(tenant_id=tenant.id).count() == 2

    # host-a now reports a serial: it lands on the serial path as a new row and
    # the old nameless row stays behind (known identity-migration gap).
    _, third = run_tenant_sync(tenant, FakeOpenAudit(_scenario_rows("SN2")), heartbeat)
    assert third["created"] == 1
    assert third["updated"] == 1
    host_a_rows = ItamAsset.query.filter_by(tenant_id=tenant.id, name="host-a").all()
    assert sorted(r.serial_number or "" for r in host_a_rows) == ["", "SN2"]


def test_resync_is_idempotent_and_keeps_user_fields(make_tenant):
    tenant = make_tenant("Acme", org_id="7")
    heartbeat = SyncHeartbeat()
    rows = _scenario_rows()

    run_tenant_sync(tenant, FakeOpenAudit(rows), heartbeat)
    for asset in ItamAsset.query.all():
        asset.status = "deployed"
        asset.location = "Floor 3"
    db.session.commit()
    before = ItamAsset.query.count()

    run_tenant_sync(tenant, FakeOpenAudit(rows), heartbeat)

    assert ItamAsset.query.count() == before
    for asset in ItamAsset.query.all():
        assert asset.status == "deployed"
        assert asset.location == "Floor 3"
        assert asset.notes == "Imported from Open-AudIT"


def test_heartbeat_advances_once_per_tenant_sync_with_records(make_tenant):
    tenant = make_tenant("Acme", org_id="7")
    heartbeat = SyncHeartbeat()

    run_tenant_sync(tenant, FakeOpenAudit(_scenario_rows()), heartbeat)
    assert heartbeat.revision == 1

    run_tenant_sync(tenant, FakeOpenAudit([device(9, org_id=9, hostname="x")]), heartbeat)
    assert heartbeat.revision == 1
    assert heartbeat.last_sync_at is not None


def test_bad_rows_do_not_abort_the_page(make_tenant, monkeypatch):
    tenant = make_tenant("Acme", org_id="7")
    rows = [
        device(1, org_id=7, hostname="good-1"),
        device(2, org_id=7, hostname="clash"),
        device(3, org_id=7, hostname="good-2"),
        device(4, org_id=7, hostname="weird"),
    ]
    # A non-dict attribute bag fails mapping.
    broken = {"id": 5, "attributes": 7}

    real_upsert = ingest.upsert_asset

    def flaky_upsert(draft):
        if draft.name == "clash":
            raise ConstraintViolation("duplicate key")
        return real_upsert(draft)

    monkeypatch.setattr(ingest, "upsert_asset", flaky_upsert)

    class Client(FakeOpenAudit):
        def fetch_devices_first_page(self, limit=50, org_id=None):
            page = super().fetch_devices_first_page(limit=limit, org_id=org_id)
            page.rows.append(broken)
            return page

    run, summary = run_tenant_sync(tenant, Client(rows), SyncHeartbeat())

    assert summary["fetched"] == 5
    assert summary["imported"] == 3
    assert summary["failed"] == 2
    assert run.status == "completed_with_errors"
    names = sorted(a.name for a in ItamAsset.query.all())
    assert names == ["good-1", "good-2", "weird"]


def test_upstream_failure_marks_run_failed_and_propagates(make_tenant):
    tenant = make_tenant("Acme", org_id="7")
    heartbeat = SyncHeartbeat()

    with pytest.raises(UpstreamError):
        run_tenant_sync(tenant, FakeOpenAudit(error=UpstreamError("HTTP 500", 500)), heartbeat)

    run = ItamSyncRun.query.one()
    assert run.status == "failed"
    assert "HTTP 500" in run.error_text
    assert heartbeat.revision == 0


def test_auth_failure_propagates(make_tenant):
    tenant = make_tenant("Acme", org_id="7")
    with pytest.raises(AuthError):
        run_tenant_sync(tenant, FakeOpenAudit(error=AuthError("no cookie")), SyncHeartbeat())


def test_sync_run_records_stats(make_tenant):
    tenant = make_tenant("Acme", org_id="7")

    run, summary = run_tenant_sync(tenant, FakeOpenAudit(_scenario_rows()), SyncHeartbeat(), limit=25)

    stored = db.session.get(ItamSyncRun, run.id)
    assert stored.status == "completed"
    assert stored.stats_json["created"] == 2
    assert stored.ended_at is not None
    assert stored.to_dict()["tenant_name"] == "Acme"
    assert summary["revision"] == 1


def test_unexpected_fetch_error_still_closes_the_run(make_tenant):
    tenant = make_tenant("Acme", org_id="7")

    class Broken(FakeOpenAudit):
        def fetch_devices_first_page(self, limit=50, org_id=None):
            raise TypeError("unexpected payload")

    with pytest.raises(TypeError):
        run_tenant_sync(tenant, Broken(), SyncHeartbeat())

    run = ItamSyncRun.query.one()
    assert run.status == "failed"
    assert run.ended_at is not None
    assert run.error_text == "unexpected payload"


def test_truncated_first_page_is_logged(make_tenant, caplog):
    tenant = make_tenant("Acme", org_id="7")

    class Partial(FakeOpenAudit):
        def fetch_devices_first_page(self, limit=50, org_id=None):
            page = super().fetch_devices_first_page(limit=limit, org_id=org_id)
            page.reported_total = 250
            return page

    with caplog.at_level("WARNING", logger="itam.sync"):
        _, summary = run_tenant_sync(tenant, Partial(_scenario_rows()), SyncHeartbeat())

    assert summary["reported_total"] == 250
    assert "past the first page" in caplog.text


def test_full_first_page_logs_no_truncation(make_tenant, caplog):
    tenant = make_tenant("Acme", org_id="7")

    with caplog.at_level("WARNING", logger="itam.sync"):
        run_tenant_sync(tenant, FakeOpenAudit(_scenario_rows()), SyncHeartbeat())

    assert "past the first page" not in caplog.text
