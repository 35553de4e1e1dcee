from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from services.itam.normalize import none_if_blank, norm_ip
from services.openaudit.errors import MappingError


UNNAMED_DEVICE = "Unnamed Device"
IMPORT_NOTE = "Imported from Open-AudIT"


@dataclass(frozen=True)
class ExternalDevice:
    device_id: Optional[str]
    org_id: Optional[str] = None
    hostname: Optional[str] = None
    name: Optional[str] = None
    ip: Optional[str] = None
    type: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial: Optional[str] = None
    os_name: Optional[str] = None
    os_version: Optional[str] = None
    first_seen: Optional[str] = None
    last_seen: Optional[str] = None


@dataclass
class AssetDraft:
    tenant_id: int
    name: str
    type: str = "Hardware"
    category: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    status: str = "in-stock"
    specifications: Dict[str, Any] = field(default_factory=dict)
    notes: Optional[str] = None

    location: Optional[str] = None
    assigned_user_id: Optional[str] = None
    assigned_user_name: Optional[str] = None
    purchase_date: Optional[Any] = None
    purchase_cost: Optional[Any] = None
    warranty_expiry: Optional[Any] = None


def parse_device(raw) -> ExternalDevice:
    """Validate one Open-AudIT device row into an ``ExternalDevice``.

    Rows normally look like ``{"id": .., "attributes": {..}}``; some builds
    put the id inside ``attributes`` or return the bag flat.
    """
    if not isinstance(raw, dict):
        raise MappingError(f"device row is {type(raw).__name__}, expected an object")

    attrs = raw.get("attributes", raw)
    if not isinstance(attrs, dict):
        raise MappingError(f"device attributes is {type(attrs).__name__}, expected an object")

    device_id = none_if_blank(raw.get("id")) or none_if_blank(attrs.get("id"))

    return ExternalDevice(
        device_id=device_id,
        org_id=none_if_blank(attrs.get("org_id")),
        hostname=none_if_blank(attrs.get("hostname")),
        name=none_if_blank(attrs.get("name")),
        ip=none_if_blank(attrs.get("ip")),
        type=none_if_blank(attrs.get("type")),
        manufacturer=none_if_blank(attrs.get("manufacturer")),
        model=none_if_blank(attrs.get("model")),
        serial=none_if_blank(attrs.get("serial")),
        os_name=none_if_blank(attrs.get("os_name")),
        os_version=none_if_blank(attrs.get("os_version")),
        first_seen=none_if_blank(attrs.get("first_seen")),
        last_seen=none_if_blank(attrs.get("last_seen")),
    )


def pick_name(device: ExternalDevice) -> str:
    if device.hostname:
        return device.hostname
    if device.name:
        return device.name
    if device.ip:
        return f"device-{norm_ip(device.ip) or device.ip}"
    return UNNAMED_DEVICE


def map_device_to_asset(device: ExternalDevice, tenant_id) -> AssetDraft:
    return AssetDraft(
        tenant_id=tenant_id,
        name=pick_name(device),
        type="Hardware",
        category=device.type,
        manufacturer=device.manufacturer,
        model=device.model,
        serial_number=device.serial,
        status="in-stock",
        specifications={
            "openaudit": {
                "id": device.device_id,
                "hostname": device.hostname,
                "ip": device.ip,
                "os": {
                    "name": device.os_name,
                    "version": device.os_version,
                },
                "firstSeen": device.first_seen,
                "lastSeen": device.last_seen,
            }
        },
        notes=IMPORT_NOTE,
    )
