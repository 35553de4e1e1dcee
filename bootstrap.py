#!/usr/bin/env python3
"""
ITAM Open-AudIT Sync – Bootstrap Script
---------------------------------------

This script initializes:
 - Sync tables (tenants, assets, sync runs)
 - Tenants from ITAM_TENANTS_JSON
 - Optional Open-AudIT organizations for unmapped tenants (OA_CREATE_ORGS=true)
 - Optional device moves from OA_ASSIGN_DEVICES_JSON

Safe for production. Idempotent. No data overwritten.
"""

import json
import os

from app import app
from extensions import db
from models.tenant import Tenant
from services.itam.provision import assign_device_to_tenant, ensure_tenant_org
from services.itam.schema import ensure_sync_schema
from services.openaudit.client import OpenAuditClient
from services.openaudit.errors import SyncError


# ----------------------------------------------------
# Utility helpers
# ----------------------------------------------------
def get_or_create(model, defaults=None, **kwargs):
    """Return existing record or create new one."""
    instance = model.query.filter_by(**kwargs).first()
    if instance:
        return instance, False
    params = dict((defaults or {}), **kwargs)
    instance = model(**params)
    db.session.add(instance)
    db.session.commit()
    return instance, True


def _env_flag(name):
    return os.environ.get(name, "false").strip().lower() in {"1", "true", "yes", "on"}


def _env_json_list(name):
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return []
    parsed = json.loads(raw)
    return parsed if isinstance(parsed, list) else [parsed]


# ----------------------------------------------------
# 1. Tables
# ----------------------------------------------------
def create_tables():
    print("\n[+] Checking sync tables:")
    created = ensure_sync_schema()
    for name in created:
        print(f"   - {name} (created)")
    if not created:
        print("   - all tables exist")


# ----------------------------------------------------
# 2. Tenants
# ----------------------------------------------------
def seed_tenants():
    rows = _env_json_list("ITAM_TENANTS_JSON")
    print("\n[+] Seeding tenants:")
    if not rows:
        print("   - Skipping (set ITAM_TENANTS_JSON to seed tenants)")
        return

    for row in rows:
        if not isinstance(row, dict) or not row.get("slug"):
            print(f"   [ERROR] Invalid tenant entry: {row}")
            continue
        tenant, created = get_or_create(
            Tenant,
            slug=row["slug"],
            defaults={
                "name": row.get("name") or row["slug"],
                "openaudit_org_id": row.get("openaudit_org_id"),
            },
        )
        print(f"   - {tenant.slug} ({'created' if created else 'exists'})")


# ----------------------------------------------------
# 3. Open-AudIT organizations
# ----------------------------------------------------
def provision_orgs(client):
    print("\n[+] Provisioning Open-AudIT organizations...")
    unmapped = Tenant.query.filter(
        db.or_(Tenant.openaudit_org_id.is_(None), Tenant.openaudit_org_id == "")
    ).all()
    if not unmapped:
        print("   - every tenant is mapped")
        return

    cookie = client.login()
    for tenant in unmapped:
        try:
            org_id = ensure_tenant_org(tenant, client, cookie=cookie)
            print(f"   - {tenant.slug} -> org {org_id}")
        except SyncError as ex:
            db.session.rollback()
            print(f"   [ERROR] {tenant.slug}: {ex}")


# ----------------------------------------------------
# 4. Device moves
# ----------------------------------------------------
def assign_devices(client):
    rows = _env_json_list("OA_ASSIGN_DEVICES_JSON")
    print("\n[+] Assigning Open-AudIT devices...")
    if not rows:
        print("   - Skipping (set OA_ASSIGN_DEVICES_JSON to move devices)")
        return

    cookie = client.login()
    for row in rows:
        tenant = Tenant.query.filter_by(slug=(row or {}).get("tenant")).first()
        if not tenant:
            print(f"   [ERROR] Unknown tenant in entry: {row}")
            continue
        try:
            device_id = assign_device_to_tenant(
                tenant,
                client,
                serial=row.get("serial"),
                hostname=row.get("hostname"),
                cookie=cookie,
            )
        except (SyncError, ValueError) as ex:
            db.session.rollback()
            print(f"   [ERROR] {tenant.slug}: {ex}")
            continue
        if device_id:
            print(f"   - device {device_id} -> {tenant.slug}")
        else:
            print(f"   - no device matched {row}")


# ----------------------------------------------------
# MASTER RUNNER
# ----------------------------------------------------
if __name__ == "__main__":
    with app.app_context():
        print("===================================================")
        print("      ITAM OPEN-AUDIT SYNC – BOOTSTRAP             ")
        print("===================================================")

        create_tables()
        seed_tenants()

        client = OpenAuditClient.from_config(app.config)
        if _env_flag("OA_CREATE_ORGS"):
            provision_orgs(client)
        else:
            print("\n   - Skipping org provisioning (set OA_CREATE_ORGS=true to enable)")
        assign_devices(client)

        print("\n[BOOTSTRAP COMPLETED SUCCESSFULLY]")
