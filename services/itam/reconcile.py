import logging
from datetime import datetime, timezone

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from extensions import db
from models.itam import ItamAsset, SYNC_OWNED_FIELDS, USER_OWNED_FIELDS
from services.openaudit.errors import ConstraintViolation


logger = logging.getLogger("itam.reconcile")

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _utcnow():
    # Columns are naive UTC, matching the model defaults.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _has_serial(draft):
    return bool(draft.serial_number and str(draft.serial_number).strip())


def _sync_values(draft, include_name=True):
    values = {f: getattr(draft, f) for f in SYNC_OWNED_FIELDS}
    if not include_name:
        values.pop("name", None)
    return values


def _insert_values(draft, now):
    values = _sync_values(draft)
    values.update({f: getattr(draft, f) for f in USER_OWNED_FIELDS})
    values["tenant_id"] = draft.tenant_id
    values["serial_number"] = draft.serial_number if _has_serial(draft) else None
    values["created_at"] = now
    values["updated_at"] = now
    return values


def _dialect_insert():
    name = db.session.get_bind().dialect.name
    insert = _UPSERT_DIALECTS.get(name)
    if insert is None:
        raise NotImplementedError(f"asset upsert is not supported on {name}")
    return insert


def _upsert_by_serial(draft, now):
    insert = _dialect_insert()
    stmt = insert(ItamAsset.__table__).values(**_insert_values(draft, now))
    update_cols = {f: stmt.excluded[f] for f in SYNC_OWNED_FIELDS}
    update_cols["updated_at"] = stmt.excluded.updated_at
    stmt = stmt.on_conflict_do_update(
        index_elements=[ItamAsset.__table__.c.tenant_id, ItamAsset.__table__.c.serial_number],
        set_=update_cols,
    ).returning(ItamAsset.__table__.c.id, ItamAsset.__table__.c.created_at)

    row = db.session.execute(stmt).one()
    # An update keeps the original created_at.
    return row.id, row.created_at == now


def _merge_by_name(draft, now):
    # (tenant_id, name) is only unique WHERE serial_number IS NULL, and
    # ON CONFLICT cannot target a partial index: update first, insert on miss.
    values = _sync_values(draft, include_name=False)
    values["updated_at"] = now
    updated = ItamAsset.query.filter(
        ItamAsset.tenant_id == draft.tenant_id,
        ItamAsset.name == draft.name,
        ItamAsset.serial_number.is_(None),
    ).update(values, synchronize_session=False)

    if updated:
        row = (
            db.session.query(ItamAsset.id)
            .filter(
                ItamAsset.tenant_id == draft.tenant_id,
                ItamAsset.name == draft.name,
                ItamAsset.serial_number.is_(None),
            )
            .first()
        )
        return row.id, False

    asset = ItamAsset(**_insert_values(draft, now))
    db.session.add(asset)
    db.session.flush()
    return asset.id, True


def upsert_asset(draft):
    """Merge one mapped draft into the tenant's asset store.

    Returns ``(asset_id, created)``. The caller owns the transaction.
    Raises ``ConstraintViolation`` when the store rejects the write.
    """
    now = _utcnow()
    try:
        if _has_serial(draft):
            return _upsert_by_serial(draft, now)
        return _merge_by_name(draft, now)
    except IntegrityError as ex:
        logger.warning(
            "Asset write rejected for tenant=%s name=%r serial=%r: %s",
            draft.tenant_id,
            draft.name,
            draft.serial_number,
            ex.orig,
        )
        raise ConstraintViolation(str(ex.orig)) from ex
