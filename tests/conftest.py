import hashlib
import hmac
import json
import random
from pathlib import Path

import pytest

from tambola import create_app
from tambola.clients.account_client import AccountClient
from tambola.clients.file_store import FileStore
from tambola.clients.payment_gateway import PaymentGateway
from tambola.services.payment_service import PaymentService

KEY_SECRET = "test-key-secret"
WEBHOOK_SECRET = "test-webhook-secret"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeOrders:
    def __init__(self):
        self.created = []

    def create(self, data):
        self.created.append(data)
        return {"id": f"order_{len(self.created)}", "amount": data["amount"], "currency": data["currency"]}


class FakeRazorpay:
    def __init__(self):
        self.order = FakeOrders()


class FakeS3:
    def __init__(self):
        self.objects = {}

    def put_object(self, Bucket, Key, Body, ContentType):
        self.objects[(Bucket, Key)] = (Body, ContentType)


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.content = json.dumps(payload).encode() if payload is not None else b""
        self.text = self.content.decode()

    def json(self):
        if self._payload is None:
            raise ValueError("no body")
        return self._payload


class FakeHttp:
    """Stands in for requests.Session: replays queued responses, records calls."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return self.responses.pop(0)


class FakeAuthHttp(FakeHttp):
    """Queued responses first; otherwise "Bearer tok-<user>" resolves to that user."""

    def request(self, method, url, **kwargs):
        if self.responses:
            return super().request(method, url, **kwargs)
        self.calls.append((method, url, kwargs))
        header = (kwargs.get("headers") or {}).get("Authorization", "")
        if method == "GET" and url.endswith("/user") and header.startswith("Bearer tok-"):
            user = header[len("Bearer tok-"):]
            return FakeResponse(200, {"id": user, "email": f"{user}@example.com"})
        return FakeResponse(401, {"msg": "invalid JWT"})


def auth(user):
    return {"Authorization": f"Bearer tok-{user}"}


def sign(secret, message):
    if isinstance(message, str):
        message = message.encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


@pytest.fixture
def razorpay_client():
    return FakeRazorpay()


@pytest.fixture
def s3_client():
    return FakeS3()


@pytest.fixture
def auth_http():
    return FakeAuthHttp()


@pytest.fixture
def app(tmp_path: Path, razorpay_client, s3_client, auth_http):
    app = create_app(
        {
            "TESTING": True,
            "DATABASE_URL": f"sqlite:///{tmp_path / 'test.db'}",
            "PUBLIC_BASE_URL": "https://tambola.test",
            "ADMIN_USER_IDS": "ops-1, ops-2",
        }
    )
    gateway = PaymentGateway("rzp_test_key", KEY_SECRET, WEBHOOK_SECRET, client=razorpay_client)
    app.extensions["payment_service"] = PaymentService(gateway, rooms=app.extensions["room_service"])
    app.extensions["file_store"] = FileStore(
        "tambola-test",
        public_base_url="https://files.tambola.test",
        client=s3_client,
    )
    app.extensions["account_client"] = AccountClient("https://auth.test", "anon-key", http=auth_http)
    yield app
    app.extensions["engine"].dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    session = app.extensions["session_factory"]()
    yield session
    session.close()


def create_room(client, host_id="host-1", **overrides):
    body = {"name": "Friday Housie"}
    body.update(overrides)
    resp = client.post("/rooms", json=body, headers=auth(host_id))
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


def join(client, room_id, player_id):
    resp = client.post(f"/rooms/{room_id}/join", headers=auth(player_id))
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


def start(client, room_id, host_id="host-1"):
    resp = client.post(f"/rooms/{room_id}/start", headers=auth(host_id))
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()["data"]


def call(client, room_id, number=None, host_id="host-1"):
    body = {}
    if number is not None:
        body["number"] = number
    return client.post(f"/rooms/{room_id}/call", json=body, headers=auth(host_id))


@pytest.fixture
def rng():
    return random.Random(20240601)
