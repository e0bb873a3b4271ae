"""Pytest configuration - loads .env and provides a fake record API."""

import io
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
from dotenv import load_dotenv

from reinventory.sdk import InventoryClient

# Load .env from project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)

BASE_URL = "https://api.test/api"


# =============================================================================
# Fake Server
# =============================================================================


@dataclass
class RecordedRequest:
    """One request seen by the fake server."""

    method: str
    url: str
    headers: dict[str, str]
    body: Any

    @property
    def target(self) -> str:
        """Path and query relative to the API base."""
        return self.url[len(BASE_URL) :]

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())


@dataclass
class Route:
    method: str
    target: str
    status: int = 200
    body: Any = None
    error: Exception | None = None
    raw: bytes | None = None
    read_error: Exception | None = None

    def matches(self, method: str, target: str) -> bool:
        if method != self.method:
            return False
        if self.target.endswith("*"):
            return target.startswith(self.target[:-1])
        return target == self.target


class FakeResponse:
    def __init__(self, status: int, payload: bytes, read_error: Exception | None = None):
        self.status = status
        self._payload = payload
        self._read_error = read_error

    def read(self) -> bytes:
        if self._read_error is not None:
            raise self._read_error
        return self._payload

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *_exc: object) -> None:
        return None


@dataclass
class FakeServer:
    """Routes urllib requests to canned responses and records them in order."""

    routes: list[Route] = field(default_factory=list)
    requests: list[RecordedRequest] = field(default_factory=list)

    def route(
        self,
        method: str,
        target: str,
        status: int = 200,
        body: Any = None,
        error: Exception | None = None,
        raw: bytes | None = None,
        read_error: Exception | None = None,
    ) -> None:
        """
        Register a response; ``target`` may end with ``*`` to match a prefix. Later routes win.

        ``error`` is raised by ``urlopen`` itself, ``read_error`` while the body is read.
        ``raw`` replaces the JSON-encoded ``body`` byte for byte.
        """
        self.routes.insert(0, Route(method, target, status, body, error, raw, read_error))

    def calls(self, method: str | None = None) -> list[RecordedRequest]:
        return [r for r in self.requests if method is None or r.method == method]

    def urlopen(self, req: urllib.request.Request, timeout: float | None = None) -> FakeResponse:
        recorded = RecordedRequest(
            method=req.get_method(),
            url=req.full_url,
            headers={k.lower(): v for k, v in req.header_items()},
            body=json.loads(req.data) if req.data else None,
        )
        self.requests.append(recorded)

        route = next((r for r in self.routes if r.matches(recorded.method, recorded.target)), None)
        if route is None:
            route = Route(recorded.method, recorded.target, 404, {"message": "no route"})
        if route.error is not None:
            raise route.error

        if route.raw is not None:
            payload = route.raw
        else:
            payload = json.dumps(route.body).encode("utf-8") if route.body is not None else b""
        if route.status >= 400:
            raise urllib.error.HTTPError(req.full_url, route.status, "error", None, io.BytesIO(payload))
        return FakeResponse(route.status, payload, route.read_error)


@pytest.fixture
def server(monkeypatch) -> FakeServer:
    """Fake record API patched into urllib."""
    fake = FakeServer()
    monkeypatch.setattr(urllib.request, "urlopen", fake.urlopen)
    return fake


@pytest.fixture
def client(server) -> InventoryClient:
    return InventoryClient(base_url=BASE_URL)


@pytest.fixture
def reset_logging():
    """Detach the package logger's handlers for the test and restore them afterwards."""
    logger = logging.getLogger("reinventory")
    saved = (logger.handlers[:], logger.level, logger.propagate)
    logger.handlers.clear()
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


# =============================================================================
# Payloads
# =============================================================================


def record_payload(**overrides: Any) -> dict[str, Any]:
    """A record as the API returns it."""
    payload: dict[str, Any] = {
        "id": "R-aaa",
        "assetUri": "neosdb:///abc.7zbson",
        "globalVersion": 3,
        "localVersion": 1,
        "lastModifyingUserId": "U-1",
        "lastModifyingMachineId": "machine",
        "name": "Chair",
        "recordType": "object",
        "ownerName": "someone",
        "tags": ["furniture"],
        "path": "Inventory\\Y",
        "isPublic": False,
        "isForPatrons": False,
        "isListed": False,
        "isDeleted": False,
        "thumbnailUri": "neosdb:///thumb.webp",
        "creationTime": "2022-01-02T03:04:05Z",
        "lastModificationTime": "2022-02-03T04:05:06.1234567Z",
        "randomOrder": 7,
        "visits": 0,
        "rating": 0.0,
        "ownerId": "U-1",
        "submissions": [],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_record():
    return record_payload
