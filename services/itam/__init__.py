from services.itam.heartbeat import SyncHeartbeat
from services.itam.ingest import run_tenant_sync
from services.itam.mapper import AssetDraft, ExternalDevice, map_device_to_asset, parse_device, pick_name
from services.itam.provision import assign_device_to_tenant, ensure_tenant_org
from services.itam.reconcile import upsert_asset
from services.itam.schema import ensure_sync_schema
from services.itam.scheduler import SyncWorker, run_scheduler_tick

__all__ = [
    "SyncHeartbeat",
    "run_tenant_sync",
    "AssetDraft",
    "ExternalDevice",
    "map_device_to_asset",
    "parse_device",
    "pick_name",
    "assign_device_to_tenant",
    "ensure_tenant_org",
    "upsert_asset",
    "ensure_sync_schema",
    "SyncWorker",
    "run_scheduler_tick",
]
