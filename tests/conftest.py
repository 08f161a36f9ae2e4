import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_guiche.db")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from guiche.database import Base
from guiche.main import app as fastapi_app
import guiche.models  # noqa: F401

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_orders.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={
                       "check_same_thread": False})
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine)

FREEPAY_OK = {
    "success": True,
    "id": "abc123",
    "status": "waiting_payment",
    "pix": {
        "qr_code": "00020126580014br.gov.bcb.pix0136abc123 5204 0000&5303+986",
        "expiration_date": "2026-10-19",
    },
}


class FakeHttp:
    """Stands in for httpx.post; answers per host and records every call."""

    def __init__(self):
        self.calls = []
        self.freepay = httpx.Response(200, json=FREEPAY_OK)
        self.utmify = httpx.Response(200, json={"OK": True})

    def __call__(self, url, json=None, headers=None, auth=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "auth": auth})
        answer = self.freepay if "freepay" in url else self.utmify
        if isinstance(answer, Exception):
            raise answer
        return answer

    def sent_to(self, host):
        return [call for call in self.calls if host in call["url"]]


@pytest.fixture(autouse=True)
def setup_db(monkeypatch):
    Base.metadata.create_all(bind=engine)
    monkeypatch.setattr("guiche.order_store.SessionLocal", TestingSessionLocal)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def settings(monkeypatch):
    monkeypatch.setenv("FREEPAY_PUBLIC_KEY", "pk_test")
    monkeypatch.setenv("FREEPAY_SECRET_KEY", "sk_test")
    monkeypatch.setenv("UTMIFY_API_KEY", "utmify_test")
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://ingressos.example.com/")
    monkeypatch.setenv("ADMIN_PASSWORD", "verao2026")
    monkeypatch.setenv("JWT_SECRET", "jwt_test_secret")
    monkeypatch.delenv("FREEPAY_API_URL", raising=False)
    monkeypatch.delenv("UTMIFY_API_URL", raising=False)


@pytest.fixture
def http(mocker):
    fake = FakeHttp()
    mocker.patch("httpx.post", side_effect=fake)
    return fake


@pytest.fixture
def client():
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def session_factory():
    return TestingSessionLocal
