import base64
import json
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from requests.adapters import BaseAdapter

from expense_client.app import ExpenseClient
from expense_client.auth.credential_store import CredentialStore
from expense_client.auth.session import SessionManager
from expense_client.utils.config import Settings

API_BASE = "http://api.test/api"
BACKEND_ORIGIN = "http://api.test"


def _b64(data: Dict[str, Any]) -> str:
    raw = json.dumps(data).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def make_token(
    sub: str = "alice",
    user_id: Any = 1,
    exp_in: Optional[float] = 3600,
    roles=("ROLE_EMPLOYEE",),
    **extra,
) -> str:
    """Unsigned JWT-shaped token; only the claims matter to the client."""
    payload: Dict[str, Any] = {"sub": sub, "userId": user_id, "iat": int(time.time())}
    if exp_in is not None:
        payload["exp"] = int(time.time() + exp_in)
    if roles is not None:
        payload["roles"] = list(roles)
    payload.update(extra)
    return f"{_b64({'alg': 'HS256', 'typ': 'JWT'})}.{_b64(payload)}.signature"


def expense_json(
    expense_id: int = 42,
    status: str = "SUBMITTED",
    user_id: int = 1,
    amount: str = "25.50",
    **extra,
) -> Dict[str, Any]:
    data = {
        "id": expense_id,
        "description": "Taxi to airport",
        "amount": amount,
        "expenseDate": "2024-03-01",
        "status": status,
        "userId": user_id,
        "username": "alice",
        "categoryId": 3,
        "categoryName": "Travel",
        "attachments": [],
        "createdAt": "2024-03-01T10:00:00",
        "updatedAt": "2024-03-01T10:00:00",
    }
    data.update(extra)
    return data


def page_json(items: List[Dict[str, Any]], total: Optional[int] = None, number: int = 0, size: int = 10) -> Dict[str, Any]:
    total = len(items) if total is None else total
    return {
        "content": items,
        "totalElements": total,
        "totalPages": -(-total // size),
        "number": number,
        "size": size,
        "first": number == 0,
        "last": True,
    }


Handler = Callable[[requests.PreparedRequest], Tuple[int, Any]]


class FakeBackend(BaseAdapter):
    """
    In-process stand-in for the REST API, mounted on a requests.Session.

    Routes map (METHOD, path) to either a (status, body) tuple or a callable
    returning one. Every request is recorded in `calls`.
    """

    def __init__(self):
        super().__init__()
        self.routes: Dict[Tuple[str, str], Any] = {}
        self.calls: List[requests.PreparedRequest] = []

    def add(self, method: str, path: str, response: Any) -> None:
        self.routes[(method.upper(), path)] = response

    def calls_to(self, method: str, path: str) -> List[requests.PreparedRequest]:
        return [
            c for c in self.calls
            if c.method == method.upper() and urlparse(c.url).path == "/api" + path
        ]

    @staticmethod
    def query(request: requests.PreparedRequest) -> Dict[str, List[str]]:
        return parse_qs(urlparse(request.url).query)

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        self.calls.append(request)
        path = urlparse(request.url).path
        if path.startswith("/api"):
            path = path[len("/api"):]
        route = self.routes.get((request.method, path))
        if route is None:
            status, body = 404, {"message": f"No route for {request.method} {path}"}
        elif callable(route):
            status, body = route(request)
        else:
            status, body = route

        headers = {}
        if isinstance(body, tuple):
            body, headers = body

        response = requests.Response()
        response.status_code = status
        response.url = request.url
        response.request = request
        if isinstance(body, bytes):
            response._content = body
        elif body is None:
            response._content = b""
        elif isinstance(body, str):
            response._content = body.encode("utf-8")
            headers.setdefault("Content-Type", "text/plain")
        else:
            response._content = json.dumps(body).encode("utf-8")
            headers.setdefault("Content-Type", "application/json")
        response.headers.update(headers)
        response.encoding = "utf-8"
        return response

    def close(self):
        pass


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def http(backend) -> requests.Session:
    session = requests.Session()
    session.mount("http://api.test", backend)
    return session


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        api={"base_url": API_BASE},
        session={"store_path": str(tmp_path / "session.json")},
    )


@pytest.fixture
def store(tmp_path: Path) -> CredentialStore:
    return CredentialStore(tmp_path / "session.json")


@pytest.fixture
def session(store) -> SessionManager:
    return SessionManager(store)


class FakePopup:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class FakeOpener:
    """Records window.open calls; `blocked` simulates a popup blocker."""

    def __init__(self, blocked: bool = False):
        self.blocked = blocked
        self.opened: List[Tuple[str, str, int, int]] = []
        self.popups: List[FakePopup] = []

    def open(self, url, name, width, height):
        self.opened.append((url, name, width, height))
        if self.blocked:
            return None
        popup = FakePopup()
        self.popups.append(popup)
        return popup


@pytest.fixture
def opener() -> FakeOpener:
    return FakeOpener()


@pytest.fixture
def client(settings, http, opener) -> ExpenseClient:
    c = ExpenseClient(settings=settings, http=http, opener=opener)
    c.session.hydrate()
    yield c
    c.close()


def sign_in(client: ExpenseClient, roles=("ROLE_EMPLOYEE",), user_id: int = 1, sub: str = "alice") -> str:
    token = make_token(sub=sub, user_id=user_id, roles=roles)
    client.session.validate_and_adopt(token)
    return token
