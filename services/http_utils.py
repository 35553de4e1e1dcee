import time
from typing import Any, Optional

import requests


RETRYABLE_ERRORS = (requests.ConnectionError, requests.Timeout)


def request_with_retry(
    method: str,
    url: str,
    session: Optional[requests.Session] = None,
    retries: int = 2,
    backoff_seconds: float = 0.4,
    **kwargs: Any,
) -> requests.Response:
    """
    Send a request, retrying only transport failures with small backoff.
    HTTP error statuses are returned to the caller untouched.
    Raises the last exception if all attempts fail.
    """
    last_exc = None
    caller = session or requests

    for i in range(retries + 1):
        try:
            return caller.request(method, url, **kwargs)
        except RETRYABLE_ERRORS as e:
            last_exc = e
            if i < retries:
                time.sleep(backoff_seconds * (i + 1))
    raise last_exc
