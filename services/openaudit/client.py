"""
Open-AudIT API client used by the inventory sync.

One shared Open-AudIT instance serves every tenant; tenants are told apart by
the organization id each device carries. Every reconciliation logs in fresh
and keeps the session cookie only for the calls it makes itself.

Quirks handled here:
 - the ``org_id`` list filter returns HTTP 500 on some builds, so organization
   filtering happens client-side after an unfiltered fetch
 - filtered device queries intermittently fail, so identity lookups fall back
   to a bounded unfiltered listing matched locally
 - writes need a single-use ``access_token`` read from ``meta`` of a prior GET
 - organization reassignment only sticks with PUT (full replace), and the
   payload must repeat hostname and serial
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from services.http_utils import request_with_retry
from services.itam.normalize import norm_lower, norm_str
from services.openaudit.errors import AuthError, UpstreamError


logger = logging.getLogger("itam.openaudit")

USER_AGENT = "ITAM-Bridge/1.0 (+Open-AudIT integration)"
LOOKUP_FALLBACK_LIMIT = 200


@dataclass
class DevicePage:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    reported_total: int = 0
    # Rows received before the client-side org filter.
    received: int = 0
    filtered_total: Optional[int] = None
    org_id_filter: Optional[str] = None


@dataclass(frozen=True)
class SoftwareEndpoint:
    """One candidate route for a device's installed software."""

    label: str
    path: str
    params: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)


def _snippet(res, size=200):
    return (res.text or "")[:size]


def _json_or_none(res):
    try:
        return res.json()
    except ValueError:
        return None


def _row_id(row):
    if not isinstance(row, dict):
        return None
    attrs = row.get("attributes") if isinstance(row.get("attributes"), dict) else {}
    value = row.get("id") or attrs.get("id")
    return str(value) if value else None


def _row_attrs(row):
    if not isinstance(row, dict):
        return {}
    attrs = row.get("attributes")
    return attrs if isinstance(attrs, dict) else row


def _ok(res):
    return 200 <= res.status_code < 300


def _normalize_software_rows(payload):
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
        raise UpstreamError(
            f"Unexpected Open-AudIT response shape for software list: {str(payload)[:200]}"
        )

    out = []
    for row in payload["data"]:
        a = _row_attrs(row)
        publisher = norm_str(a.get("publisher")) or norm_str(a.get("vendor"))
        out.append(
            {
                "name": norm_str(a.get("name")),
                "version": norm_str(a.get("version")) or None,
                "publisher": publisher or None,
                "installed_on": norm_str(a.get("installed_on")) or None,
            }
        )
    return out


class OpenAuditClient:
    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout: float = 15,
        verify_tls: bool = True,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = norm_str(base_url).rstrip("/")
        self.username = username
        self.password = password
        self.timeout = timeout
        self.verify_tls = verify_tls
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})

    @classmethod
    def from_config(cls, config):
        return cls(
            base_url=config["OPEN_AUDIT_URL"],
            username=config["OPEN_AUDIT_USERNAME"],
            password=config["OPEN_AUDIT_PASSWORD"],
            timeout=config.get("OPEN_AUDIT_TIMEOUT", 15),
            verify_tls=config.get("OPEN_AUDIT_VERIFY_TLS", True),
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _url(self, path):
        return f"{self.base_url}/index.php/{path.lstrip('/')}"

    def _send(self, method, path, cookie=None, headers=None, **kwargs):
        merged = dict(headers or {})
        if cookie:
            merged["Cookie"] = cookie
        # Writes carry single-use tokens and are never replayed.
        retries = 2 if method == "GET" else 0
        try:
            return request_with_retry(
                method,
                self._url(path),
                session=self.session,
                retries=retries,
                headers=merged,
                timeout=self.timeout,
                verify=self.verify_tls,
                allow_redirects=True,
                **kwargs,
            )
        except requests.RequestException as ex:
            raise UpstreamError(f"Open-AudIT {method} {path} failed: {ex}") from ex

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    def login(self) -> str:
        """Log in and return the consolidated ``Cookie`` header value."""
        try:
            res = self._send(
                "POST",
                "logon",
                headers={"Accept": "*/*"},
                data={"username": self.username, "password": self.password},
            )
        except UpstreamError as ex:
            raise AuthError(str(ex)) from ex

        if not _ok(res):
            logger.error("Open-AudIT login HTTP %s: %s", res.status_code, _snippet(res, 300))
            raise AuthError(f"Open-AudIT login HTTP {res.status_code}")

        cookie = "; ".join(f"{c.name}={c.value}" for c in res.cookies if c.name)
        if not cookie:
            logger.error("Open-AudIT login returned no Set-Cookie header")
            raise AuthError("Open-AudIT login failed: no session cookie returned.")
        return cookie

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------
    def list_devices(self, cookie, limit=50, offset=0, org_id=None) -> DevicePage:
        # No org_id parameter: some Open-AudIT builds answer it with HTTP 500.
        res = self._send(
            "GET",
            "devices",
            cookie=cookie,
            params={"format": "json", "limit": int(limit), "offset": int(offset)},
        )
        if not _ok(res):
            logger.error("Open-AudIT devices HTTP %s: %s", res.status_code, _snippet(res))
            raise UpstreamError(f"Open-AudIT devices HTTP {res.status_code}", res.status_code)

        payload = _json_or_none(res)
        rows = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            raise UpstreamError(f"Open-AudIT devices returned no data list: {_snippet(res)}")

        meta = payload.get("meta") if isinstance(payload.get("meta"), dict) else {}
        try:
            reported_total = int(meta.get("total"))
        except (TypeError, ValueError):
            reported_total = len(rows)

        page = DevicePage(rows=rows, reported_total=reported_total, received=len(rows))
        if org_id is None or norm_str(org_id) == "":
            return page

        wanted = norm_str(org_id)
        page.rows = [r for r in rows if norm_str(_row_attrs(r).get("org_id")) == wanted]
        page.filtered_total = len(page.rows)
        page.org_id_filter = wanted
        return page

    def fetch_devices_first_page(self, limit=50, org_id=None) -> DevicePage:
        cookie = self.login()
        return self.list_devices(cookie, limit=limit, offset=0, org_id=org_id)

    def _query_device_with_filter(self, cookie, filters):
        try:
            res = self._send(
                "GET",
                "devices",
                cookie=cookie,
                params={"format": "json", "limit": 1, "filter": json.dumps(filters)},
            )
        except UpstreamError as ex:
            logger.warning("Open-AudIT filtered device query failed: %s", ex)
            return None

        if not _ok(res):
            logger.warning(
                "Open-AudIT filtered device query HTTP %s (%s): %s",
                res.status_code,
                filters,
                _snippet(res),
            )
            return None

        payload = _json_or_none(res)
        rows = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(rows, list) or not rows:
            return None
        return _row_id(rows[0])

    def find_device_id(self, cookie, serial=None, hostname=None) -> Optional[str]:
        serial = norm_str(serial)
        hostname = norm_str(hostname)

        attempts = []
        if serial:
            attempts.append([{"name": "system.serial", "operator": "=", "value": serial}])
        if hostname:
            attempts.append([{"name": "system.hostname", "operator": "=", "value": hostname}])
            attempts.append([{"name": "system.name", "operator": "=", "value": hostname}])
            attempts.append(
                [{"name": "system.hostname", "operator": "LIKE", "value": f"%{hostname}%"}]
            )
            attempts.append([{"name": "system.name", "operator": "LIKE", "value": f"%{hostname}%"}])

        for filters in attempts:
            device_id = self._query_device_with_filter(cookie, filters)
            if device_id:
                return device_id
            logger.debug("Open-AudIT lookup: no match for %s", filters)

        if not attempts:
            return None

        try:
            page = self.list_devices(cookie, limit=LOOKUP_FALLBACK_LIMIT, offset=0)
        except UpstreamError as ex:
            logger.warning("Open-AudIT lookup list fallback failed: %s", ex)
            return None

        return self._match_locally(page.rows, serial, hostname)

    @staticmethod
    def _match_locally(rows, serial, hostname):
        wanted_serial = norm_lower(serial)
        wanted_host = norm_lower(hostname)

        if wanted_serial:
            for row in rows:
                if norm_lower(_row_attrs(row).get("serial")) == wanted_serial:
                    found = _row_id(row)
                    if found:
                        return found

        if wanted_host:
            for row in rows:
                a = _row_attrs(row)
                if wanted_host in (norm_lower(a.get("hostname")), norm_lower(a.get("name"))):
                    found = _row_id(row)
                    if found:
                        return found
            # FQDNs and suffixed names
            for row in rows:
                a = _row_attrs(row)
                if wanted_host in norm_lower(a.get("hostname")) or wanted_host in norm_lower(a.get("name")):
                    found = _row_id(row)
                    if found:
                        return found
        return None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def _access_token(self, cookie, path, params=None):
        res = self._send("GET", path, cookie=cookie, params=params or {"format": "json"})
        if res.status_code != 200:
            raise UpstreamError(
                f"Open-AudIT token fetch {path} HTTP {res.status_code}", res.status_code
            )
        payload = _json_or_none(res)
        meta = payload.get("meta") if isinstance(payload, dict) else None
        token = meta.get("access_token") if isinstance(meta, dict) else None
        if not token:
            raise UpstreamError(f"Open-AudIT {path} response carried no access_token")
        return token

    def update_device_org(self, cookie, device_id, org_id, hostname, serial):
        device_id = str(device_id)
        token = self._access_token(cookie, f"devices/{device_id}")

        data = {
            "access_token": token,
            "type": "devices",
            "id": device_id,
            "attributes": {
                "org_id": str(org_id),
                "hostname": hostname,
                "serial": serial or hostname,
                "description": "Auto-assigned to organization via API",
            },
        }
        # PATCH is accepted but silently leaves org_id unchanged.
        res = self._send("PUT", f"devices/{device_id}", cookie=cookie, data={"data": json.dumps(data)})
        if not _ok(res):
            logger.error(
                "Open-AudIT update device %s org HTTP %s: %s",
                device_id,
                res.status_code,
                _snippet(res, 300),
            )
            raise UpstreamError(
                f"Open-AudIT update device org HTTP {res.status_code}", res.status_code
            )
        logger.info("Open-AudIT device %s (%s) moved to org %s", device_id, hostname, org_id)
        return True

    def create_organization(self, cookie, name, parent_id=1) -> str:
        token = self._access_token(cookie, "devices", params={"format": "json", "limit": 1})

        data = {
            "access_token": token,
            "type": "orgs",
            "attributes": {
                "name": name,
                "description": f"Auto-created for {name}",
                "parent_id": parent_id,
            },
        }
        res = self._send("POST", "orgs", cookie=cookie, data={"data": json.dumps(data)})
        payload = _json_or_none(res)
        payload = payload if isinstance(payload, dict) else {}

        if _ok(res):
            body = payload.get("data") if isinstance(payload.get("data"), dict) else {}
            attrs = body.get("attributes") if isinstance(body.get("attributes"), dict) else {}
            meta = payload.get("meta") if isinstance(payload.get("meta"), dict) else {}
            org_id = body.get("id") or attrs.get("id") or meta.get("id")
            if not org_id:
                raise UpstreamError(
                    f"Open-AudIT created org '{name}' but returned no id: {_snippet(res, 300)}"
                )
            logger.info("Open-AudIT org '%s' created with id %s", name, org_id)
            return str(org_id)

        if payload.get("errors"):
            raise UpstreamError(f"Open-AudIT API error: {payload['errors']}", res.status_code)
        logger.error("Open-AudIT create org HTTP %s: %s", res.status_code, _snippet(res))
        raise UpstreamError(f"Failed to create org in Open-AudIT: HTTP {res.status_code}", res.status_code)

    # ------------------------------------------------------------------
    # Software
    # ------------------------------------------------------------------
    def software_endpoints(self, device_id, limit=1000):
        device_id = str(device_id)
        return [
            SoftwareEndpoint(
                label="components",
                path="components",
                params={
                    "format": "json",
                    "limit": limit,
                    "components.type": "software",
                    "components.device_id": device_id,
                },
                headers={"X-Requested-With": "XMLHttpRequest"},
            ),
            SoftwareEndpoint(
                label="device_software",
                path=f"devices/{device_id}/software",
                params={"format": "json", "limit": limit},
            ),
            SoftwareEndpoint(
                label="device_components_software",
                path=f"devices/{device_id}/components/software",
                params={"format": "json", "limit": limit},
            ),
            SoftwareEndpoint(
                label="software_filter",
                path="software",
                params={
                    "format": "json",
                    "limit": limit,
                    "filter": json.dumps(
                        [{"name": "software.system_id", "operator": "=", "value": device_id}]
                    ),
                },
            ),
        ]

    def fetch_device_software(self, cookie, device_id, limit=1000):
        """Installed software for one device, from the first endpoint that answers.

        Library call only: the periodic sync does not import software and no
        route exposes it.
        """
        for endpoint in self.software_endpoints(device_id, limit=limit):
            try:
                res = self._send(
                    "GET", endpoint.path, cookie=cookie, headers=endpoint.headers, params=endpoint.params
                )
                if not _ok(res):
                    raise UpstreamError(f"HTTP {res.status_code}", res.status_code)
                return _normalize_software_rows(_json_or_none(res))
            except UpstreamError as ex:
                logger.info(
                    "Open-AudIT software via %s failed for device %s: %s",
                    endpoint.label,
                    device_id,
                    ex,
                )
        raise UpstreamError(f"Open-AudIT returned no software for device {device_id} on any known endpoint")
