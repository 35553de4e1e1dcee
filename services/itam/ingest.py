import logging
from datetime import datetime, timezone

from extensions import db
from models.itam import ItamSyncRun
from services.itam.mapper import map_device_to_asset, parse_device
from services.itam.reconcile import upsert_asset
from services.openaudit.errors import ConstraintViolation, MappingError


logger = logging.getLogger("itam.sync")

SOURCE_NAME = "openaudit"
MAX_ERRORS_KEPT = 20


def _new_summary():
    return {
        "fetched": 0,
        "imported": 0,
        "created": 0,
        "updated": 0,
        "failed": 0,
        "reported_total": 0,
        "filtered_total": None,
        "errors": [],
    }


def _record_error(summary, message):
    summary["failed"] += 1
    if len(summary["errors"]) < MAX_ERRORS_KEPT:
        summary["errors"].append(message)


def _finish_run(run, status, summary, error_text=None):
    run.status = status
    run.stats_json = dict(summary)
    run.error_text = error_text
    run.ended_at = datetime.now(timezone.utc)
    db.session.add(run)
    db.session.commit()


def run_tenant_sync(tenant, client, heartbeat, limit=100):
    """Reconcile one tenant's Open-AudIT devices into its asset store.

    Fetches the first page, keeps the rows carrying the tenant's org id and
    merges each one on its own commit, so a bad row only costs itself.
    Any fetch failure marks the run failed and propagates.
    """
    run = ItamSyncRun(
        tenant_id=tenant.id,
        source_name=SOURCE_NAME,
        status="running",
        started_at=datetime.now(timezone.utc),
        stats_json={},
    )
    db.session.add(run)
    db.session.commit()

    summary = _new_summary()

    try:
        page = client.fetch_devices_first_page(limit=limit, org_id=tenant.openaudit_org_id)
    except Exception as ex:
        db.session.rollback()
        _finish_run(run, "failed", summary, error_text=str(ex))
        raise

    summary["reported_total"] = page.reported_total
    summary["filtered_total"] = page.filtered_total
    if page.reported_total > page.received:
        logger.warning(
            "Tenant %s: Open-AudIT reports %s devices but only the first %s were read; "
            "devices past the first page are not synced (raise OA_SYNC_LIMIT)",
            tenant.id,
            page.reported_total,
            page.received,
        )

    for idx, raw in enumerate(page.rows):
        summary["fetched"] += 1
        try:
            device = parse_device(raw)
            draft = map_device_to_asset(device, tenant.id)
            _, created = upsert_asset(draft)
            db.session.commit()
        except (MappingError, ConstraintViolation) as ex:
            db.session.rollback()
            logger.warning("Tenant %s: skipped Open-AudIT row %s: %s", tenant.id, idx, ex)
            _record_error(summary, f"row {idx}: {ex}")
            continue
        except Exception as ex:
            db.session.rollback()
            logger.exception("Tenant %s: failed to merge Open-AudIT row %s", tenant.id, idx)
            _record_error(summary, f"row {idx}: {ex}")
            continue

        summary["imported"] += 1
        if created:
            summary["created"] += 1
        else:
            summary["updated"] += 1

    if summary["fetched"] > 0:
        summary["revision"] = heartbeat.mark_changed()
    else:
        summary["revision"] = heartbeat.mark_tick()

    status = "completed" if not summary["failed"] else "completed_with_errors"
    _finish_run(run, status, summary)

    logger.info(
        "Tenant %s Open-AudIT sync: imported=%s/%s created=%s updated=%s failed=%s",
        tenant.id,
        summary["imported"],
        summary["reported_total"],
        summary["created"],
        summary["updated"],
        summary["failed"],
    )
    return run, summary
