import logging

from extensions import db
from services.itam.normalize import none_if_blank, norm_str


logger = logging.getLogger("itam.provision")


def ensure_tenant_org(tenant, client, cookie=None):
    """Return the tenant's Open-AudIT org id, creating the org when unmapped."""
    current = norm_str(tenant.openaudit_org_id)
    if current:
        return current

    cookie = cookie or client.login()
    org_id = client.create_organization(cookie, tenant.name)
    tenant.openaudit_org_id = org_id
    db.session.commit()
    logger.info("Tenant %s mapped to new Open-AudIT org %s", tenant.id, org_id)
    return org_id


def assign_device_to_tenant(tenant, client, serial=None, hostname=None, cookie=None):
    """Move an Open-AudIT device into the tenant's organization.

    Returns the device id, or ``None`` when no device matches.
    """
    serial = none_if_blank(serial)
    hostname = none_if_blank(hostname)
    if not serial and not hostname:
        raise ValueError("serial or hostname is required")

    cookie = cookie or client.login()
    org_id = ensure_tenant_org(tenant, client, cookie=cookie)

    device_id = client.find_device_id(cookie, serial=serial, hostname=hostname)
    if not device_id:
        logger.warning(
            "No Open-AudIT device for tenant %s (serial=%r hostname=%r)", tenant.id, serial, hostname
        )
        return None

    client.update_device_org(cookie, device_id, org_id, hostname, serial)
    return device_id
