"""
pytest configuration for the gadget OAuth2 runtime tests.

Adds src directory to Python path for imports and provides shared fixtures.
"""

import asyncio
import json
import sys
from pathlib import Path

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from core.http.exceptions import TransportError  # noqa: E402
from core.http.models import HttpRequest, HttpResponse  # noqa: E402
from core.logging.context import clear_log_context  # noqa: E402


class ScriptedFetcher:
    """
    HttpFetcher test double.

    Records every request and answers from a queue of canned responses.
    A queued exception is raised instead of returned; a queued callable
    is called with the request. With yielding=True every fetch gives up
    the event loop once before answering, like a real transport.
    """

    def __init__(self, *responses, yielding: bool = False):
        self.requests: list[HttpRequest] = []
        self._responses = list(responses)
        self.yielding = yielding

    def add(self, *responses) -> "ScriptedFetcher":
        self._responses.extend(responses)
        return self

    def add_json(self, payload: dict, status: int = 200) -> "ScriptedFetcher":
        return self.add(json_response(payload, status))

    async def fetch(self, request: HttpRequest) -> HttpResponse:
        self.requests.append(request)
        if self.yielding:
            await asyncio.sleep(0)
        if not self._responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.uri}")
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(request)
        return response

    def requests_to(self, url_prefix: str) -> list[HttpRequest]:
        return [r for r in self.requests if r.uri.startswith(url_prefix)]

    @property
    def pending(self) -> int:
        return len(self._responses)


def json_response(payload: dict, status: int = 200) -> HttpResponse:
    return HttpResponse(
        status=status,
        headers={"Content-Type": "application/json; charset=utf-8"},
        body=json.dumps(payload).encode("utf-8"),
    )


def text_response(body: str, status: int = 200, content_type: str = "text/plain") -> HttpResponse:
    return HttpResponse(status=status, headers={"Content-Type": content_type}, body=body.encode())


@pytest.fixture
def fetcher():
    """Empty scripted fetcher; tests queue responses on it."""
    return ScriptedFetcher()


@pytest.fixture
def make_fetcher():
    return ScriptedFetcher


@pytest.fixture
def make_json_response():
    return json_response


@pytest.fixture
def make_text_response():
    return text_response


@pytest.fixture
def transport_error():
    return TransportError("Connection refused")


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Context variables must not leak between tests."""
    yield
    clear_log_context()
