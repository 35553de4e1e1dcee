import pytest

from extensions import db
from models.itam import ItamAsset
from services.itam.mapper import AssetDraft
from services.itam.reconcile import upsert_asset
from services.openaudit.errors import ConstraintViolation


def _draft(tenant_id, name, serial=None, **kw):
    kw.setdefault("manufacturer", "Dell")
    kw.setdefault("specifications", {"openaudit": {"id": "1"}})
    kw.setdefault("notes", "Imported from Open-AudIT")
    return AssetDraft(tenant_id=tenant_id, name=name, serial_number=serial, **kw)


def _merge(draft):
    result = upsert_asset(draft)
    db.session.commit()
    return result


def test_serial_upsert_collapses_on_tenant_and_serial(make_tenant):
    t = make_tenant("Acme", org_id="7")

    first_id, created = _merge(_draft(t.id, "old-name", serial="SN1", model="A"))
    assert created is True

    second_id, created = _merge(_draft(t.id, "new-name", serial="SN1", model="B"))
    assert created is False
    assert second_id == first_id

    rows = ItamAsset.query.filter_by(tenant_id=t.id).all()
    assert len(rows) == 1
    assert rows[0].name == "new-name"
    assert rows[0].model == "B"


def test_same_serial_in_other_tenant_is_a_separate_asset(make_tenant):
    a = make_tenant("Acme", org_id="7")
    b = make_tenant("Beta", org_id="9")

    _merge(_draft(a.id, "pc", serial="SN1"))
    _, created = _merge(_draft(b.id, "pc", serial="SN1"))

    assert created is True
    assert ItamAsset.query.count() == 2


def test_nameless_merge_updates_existing_row(make_tenant):
    t = make_tenant("Acme", org_id="7")

    first_id, created = _merge(_draft(t.id, "host-a", category="laptop"))
    assert created is True

    second_id, created = _merge(_draft(t.id, "host-a", category="desktop"))
    assert created is False
    assert second_id == first_id

    row = db.session.get(ItamAsset, first_id)
    assert row.category == "desktop"
    assert row.serial_number is None
    assert ItamAsset.query.count() == 1


def test_serialed_row_does_not_absorb_nameless_draft(make_tenant):
    t = make_tenant("Acme", org_id="7")

    _merge(_draft(t.id, "host-a", serial="SN9"))
    _, created = _merge(_draft(t.id, "host-a"))

    assert created is True
    assert ItamAsset.query.filter_by(tenant_id=t.id, name="host-a").count() == 2


def test_user_owned_fields_survive_later_merges(make_tenant):
    t = make_tenant("Acme", org_id="7")

    serial_id, _ = _merge(_draft(t.id, "pc-1", serial="SN1"))
    nameless_id, _ = _merge(_draft(t.id, "pc-2"))

    for asset_id in (serial_id, nameless_id):
        row = db.session.get(ItamAsset, asset_id)
        row.status = "deployed"
        row.location = "HQ"
        row.assigned_user_name = "J. Doe"
    db.session.commit()

    _merge(_draft(t.id, "pc-1-renamed", serial="SN1", manufacturer="HP"))
    _merge(_draft(t.id, "pc-2", manufacturer="HP"))
    db.session.expire_all()

    for asset_id in (serial_id, nameless_id):
        row = db.session.get(ItamAsset, asset_id)
        assert row.status == "deployed"
        assert row.location == "HQ"
        assert row.assigned_user_name == "J. Doe"
        assert row.manufacturer == "HP"


def test_store_rejection_becomes_constraint_violation(make_tenant):
    t = make_tenant("Acme", org_id="7")

    with pytest.raises(ConstraintViolation):
        upsert_asset(_draft(t.id, None))
    db.session.rollback()

    assert ItamAsset.query.count() == 0
