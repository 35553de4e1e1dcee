import logging
import threading

from extensions import db
from models.tenant import Tenant
from services.itam.ingest import run_tenant_sync
from services.itam.normalize import norm_str
from services.itam.schema import ensure_sync_schema


logger = logging.getLogger("itam.scheduler")

MIN_INTERVAL_SECONDS = 10


def run_scheduler_tick(client_factory, heartbeat, limit=100):
    """Reconcile every mapped tenant, one after another.

    A tenant that fails is logged and rolled back; the rest of the tick
    carries on. Nothing is checkpointed, the next tick starts fresh.
    """
    result = {"tenants": 0, "synced": [], "skipped": [], "failed": []}

    tenants = Tenant.query.order_by(Tenant.name.asc(), Tenant.id.asc()).all()
    result["tenants"] = len(tenants)

    for tenant in tenants:
        tenant_id = tenant.id
        if not norm_str(tenant.openaudit_org_id):
            logger.warning("Tenant %s (%s) has no Open-AudIT org mapping, skipped", tenant_id, tenant.name)
            result["skipped"].append(tenant_id)
            continue

        try:
            # Fresh client per tenant: the session cookie never outlives one reconciliation.
            client = client_factory()
            _, summary = run_tenant_sync(tenant, client, heartbeat, limit=limit)
            result["synced"].append({"tenant_id": tenant_id, "summary": summary})
        except Exception as ex:
            db.session.rollback()
            logger.exception("Open-AudIT sync failed for tenant %s", tenant_id)
            result["failed"].append({"tenant_id": tenant_id, "error": str(ex)})

    return result


class SyncWorker:
    """Background driver for the Open-AudIT sync.

    Built once by the composition root. The first tick fires as soon as the
    thread starts; each following tick waits ``interval_seconds`` after the
    previous one finished, so ticks never overlap.
    """

    IDLE = "idle"
    RECONCILING = "reconciling"

    def __init__(self, app, client_factory, heartbeat, interval_seconds=60, limit=100):
        self.app = app
        self.client_factory = client_factory
        self.heartbeat = heartbeat
        self.interval_seconds = max(MIN_INTERVAL_SECONDS, int(interval_seconds or 60))
        self.limit = max(1, int(limit or 100))
        self.state = self.IDLE
        self.last_result = None
        self._tick_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread = None

    def run_once(self):
        if not self._tick_lock.acquire(blocking=False):
            logger.info("Open-AudIT sync skipped: previous run still in progress")
            return {"ran": False, "reason": "already_running"}

        try:
            self.state = self.RECONCILING
            with self.app.app_context():
                ensure_sync_schema()
                result = run_scheduler_tick(self.client_factory, self.heartbeat, limit=self.limit)
            self.last_result = result
            return {"ran": True, **result}
        finally:
            self.state = self.IDLE
            self._tick_lock.release()

    def _loop(self):
        while not self._stop.is_set():
            try:
                result = self.run_once()
                if result.get("ran"):
                    logger.info(
                        "Open-AudIT sync tick: tenants=%s synced=%s skipped=%s failed=%s",
                        result["tenants"],
                        len(result["synced"]),
                        len(result["skipped"]),
                        len(result["failed"]),
                    )
            except Exception:
                logger.exception("Open-AudIT sync tick crashed")
            self._stop.wait(self.interval_seconds)

    def start(self):
        if self._thread and self._thread.is_alive():
            return self._thread
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="openaudit-sync", daemon=True)
        self._thread.start()
        logger.info("Open-AudIT sync worker started (interval=%ss, limit=%s)", self.interval_seconds, self.limit)
        return self._thread

    def stop(self, timeout=None):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)

    def is_running(self):
        return bool(self._thread and self._thread.is_alive())
