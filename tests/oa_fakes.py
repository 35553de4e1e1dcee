import json
from types import SimpleNamespace
from urllib.parse import urlparse

from requests.cookies import cookiejar_from_dict

from services.openaudit.client import DevicePage


def response(status=200, payload=None, cookies=None, text=None):
    def _json():
        if payload is None:
            raise ValueError("No JSON object could be decoded")
        return payload

    if text is None:
        text = json.dumps(payload) if payload is not None else ""
    return SimpleNamespace(
        status_code=status,
        json=_json,
        text=text,
        cookies=cookiejar_from_dict(cookies or {}),
    )


def device(device_id, org_id=None, **attrs):
    body = dict(attrs)
    if org_id is not None:
        body["org_id"] = org_id
    return {"id": device_id, "type": "devices", "attributes": body}


class FakeSession:
    """Stands in for ``requests.Session``; ``handler`` answers each call."""

    def __init__(self, handler):
        self.headers = {}
        self.calls = []
        self.handler = handler

    def request(self, method, url, **kwargs):
        call = SimpleNamespace(
            method=method,
            url=url,
            path=urlparse(url).path,
            params=kwargs.get("params") or {},
            data=kwargs.get("data") or {},
            headers=kwargs.get("headers") or {},
        )
        self.calls.append(call)
        result = self.handler(call)
        if isinstance(result, Exception):
            raise result
        return result


class FakeOpenAudit:
    """Client double for the reconciler: serves one fixed device list."""

    def __init__(self, rows=None, error=None):
        self.rows = list(rows or [])
        self.error = error
        self.calls = []

    def fetch_devices_first_page(self, limit=50, org_id=None):
        self.calls.append({"limit": limit, "org_id": org_id})
        if self.error is not None:
            raise self.error
        rows = self.rows
        if org_id is not None:
            rows = [r for r in rows if str(r.get("attributes", {}).get("org_id")) == str(org_id)]
        return DevicePage(
            rows=rows,
            reported_total=len(self.rows),
            received=len(self.rows),
            filtered_total=len(rows) if org_id is not None else None,
            org_id_filter=str(org_id) if org_id is not None else None,
        )
