from sqlalchemy import inspect

from extensions import db
from models.itam import ItamAsset, ItamSyncRun
from models.tenant import Tenant


_SCHEMA_READY = False


def ensure_sync_schema():
    global _SCHEMA_READY
    if _SCHEMA_READY:
        return []

    engine = db.engine
    inspector = inspect(engine)

    models_by_table = {
        Tenant.__tablename__: Tenant,
        ItamAsset.__tablename__: ItamAsset,
        ItamSyncRun.__tablename__: ItamSyncRun,
    }

    missing = []
    for table_name, model_cls in models_by_table.items():
        if inspector.has_table(table_name):
            continue
        model_cls.__table__.create(bind=engine, checkfirst=True)
        missing.append(table_name)

    _SCHEMA_READY = True
    return missing
