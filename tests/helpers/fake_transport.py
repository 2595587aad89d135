"""In-memory stand-ins for the HTTP transport and the clock."""
import json
from collections import deque
from typing import Any, Dict, Optional

import requests


def make_response(
    status_code: int = 200,
    body: Any = None,
    text: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    url: str = "https://example.test",
) -> requests.Response:
    """Build a real requests.Response so raise_for_status/json behave as in production."""
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    if text is not None:
        response._content = text.encode("utf-8")
    elif body is not None:
        response._content = json.dumps(body).encode("utf-8")
    else:
        response._content = b""
    response.encoding = "utf-8"
    response.headers.update(headers or {})
    return response


class FakeSession:
    """
    Records calls and replays queued responses.

    Token exchanges go through ``post`` and are answered from ``token_responses``;
    when that queue is empty a valid token is returned. API calls go through
    ``request`` and are answered from ``responses``. Queued exceptions are raised.
    """

    def __init__(self, token: str = "test-token"):
        self.token = token
        self.token_responses = deque()
        self.responses = deque()
        self.token_calls = []
        self.calls = []
        self.closed = False

    def queue_token(self, item):
        self.token_responses.append(item)

    def queue(self, *items):
        self.responses.extend(items)

    def post(self, url, data=None, headers=None, timeout=None):
        self.token_calls.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
        if self.token_responses:
            return self._answer(self.token_responses.popleft())
        return make_response(200, {"token_type": "Bearer", "access_token": self.token})

    def request(self, method, url, headers=None, json=None, params=None, timeout=None):
        self.calls.append({
            "method": method, "url": url, "headers": headers, "json": json, "params": params, "timeout": timeout,
        })
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        return self._answer(self.responses.popleft())

    @staticmethod
    def _answer(item):
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self):
        self.closed = True


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds
