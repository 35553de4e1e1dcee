import pytest
import requests

from oa_fakes import FakeSession, response
from services import http_utils
from services.http_utils import request_with_retry


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    delays = []
    monkeypatch.setattr(http_utils.time, "sleep", delays.append)
    return delays


def test_transport_errors_are_retried_with_backoff(no_sleep):
    outcomes = [requests.ConnectionError("reset"), requests.Timeout("slow"), response(200, {"ok": 1})]
    session = FakeSession(lambda call: outcomes.pop(0))

    res = request_with_retry("GET", "https://oa.local/x", session=session, retries=2)

    assert res.status_code == 200
    assert len(session.calls) == 3
    assert no_sleep == pytest.approx([0.4, 0.8])


def test_http_errors_are_not_retried():
    session = FakeSession(lambda call: response(500, text="boom"))

    res = request_with_retry("GET", "https://oa.local/x", session=session)

    assert res.status_code == 500
    assert len(session.calls) == 1


def test_last_error_raised_when_attempts_run_out():
    session = FakeSession(lambda call: requests.ConnectionError("down"))

    with pytest.raises(requests.ConnectionError):
        request_with_retry("POST", "https://oa.local/x", session=session, retries=0)
    assert len(session.calls) == 1
