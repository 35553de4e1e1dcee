from flask import Flask
from urllib.parse import quote_plus
import os

from extensions import db
from flask_migrate import Migrate

# Models to ensure they are registered with SQLAlchemy
from models.tenant import Tenant
from models.itam import ItamAsset, ItamSyncRun

from routes.itam_sync_routes import itam_sync_bp
from services.itam.heartbeat import SyncHeartbeat
from services.itam.scheduler import SyncWorker
from services.openaudit.client import OpenAuditClient

# -----------------------------
# APP INITIALIZATION
# -----------------------------
BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def _env_bool(name, default):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name, default):
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _database_uri():
    db_uri = os.environ.get("SQLALCHEMY_DATABASE_URI") or os.environ.get("DATABASE_URL")
    if db_uri:
        return db_uri
    db_user = os.environ.get("DB_USER", "itam")
    db_pass = os.environ.get("DB_PASSWORD")
    db_host = os.environ.get("DB_HOST", "localhost")
    db_name = os.environ.get("DB_NAME", "itam")
    if db_pass:
        return f"postgresql://{db_user}:{quote_plus(db_pass)}@{db_host}/{db_name}"
    return f"sqlite:///{os.path.join(BASE_DIR, 'itam.db')}"


def load_config():
    return {
        "SQLALCHEMY_DATABASE_URI": _database_uri(),
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        # Open-AudIT: one shared instance for every tenant
        "OPEN_AUDIT_URL": (
            os.environ.get("OPEN_AUDIT_URL") or "https://open-audit.example.com"
        ).rstrip("/"),
        "OPEN_AUDIT_USERNAME": os.environ.get("OPEN_AUDIT_USERNAME", "admin"),
        "OPEN_AUDIT_PASSWORD": os.environ.get("OPEN_AUDIT_PASSWORD", ""),
        "OPEN_AUDIT_TIMEOUT": _env_int("OPEN_AUDIT_TIMEOUT", 15),
        "OPEN_AUDIT_VERIFY_TLS": _env_bool("OPEN_AUDIT_VERIFY_TLS", True),
        # Sync scheduler
        "OA_SYNC_ENABLED": _env_bool("OA_SYNC_ENABLED", False),
        "OA_SYNC_INTERVAL_SECONDS": max(10, _env_int("OA_SYNC_INTERVAL_SECONDS", 60)),
        "OA_SYNC_LIMIT": max(1, _env_int("OA_SYNC_LIMIT", 100)),
    }


def create_app(config_overrides=None):
    app = Flask(__name__)
    app.config.update(load_config())
    if config_overrides:
        app.config.update(config_overrides)

    # Init DB + Migration
    db.init_app(app)
    Migrate(app, db)

    app.register_blueprint(itam_sync_bp)

    heartbeat = SyncHeartbeat()
    worker = SyncWorker(
        app,
        client_factory=lambda: OpenAuditClient.from_config(app.config),
        heartbeat=heartbeat,
        interval_seconds=app.config["OA_SYNC_INTERVAL_SECONDS"],
        limit=app.config["OA_SYNC_LIMIT"],
    )
    app.extensions["itam_sync_heartbeat"] = heartbeat
    # Started only by itam_sync_service.py; importing the app never syncs.
    app.extensions["itam_sync_worker"] = worker

    return app


app = create_app()


# Dev mode only
if __name__ == '__main__':
    app.run(host="127.0.0.1", port=5050, debug=True, use_reloader=False)
