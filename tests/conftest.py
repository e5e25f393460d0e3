"""Pytest fixtures for storefront tests."""

from datetime import datetime

import mongomock
import pytest
from fastapi.testclient import TestClient

import accounts
import stock
from currency import CurrencyConverter
from database import ensure_indexes
from errors import UpstreamError
from notifications import DispatchResult


class FakeRates:
    """Rate provider that counts calls and can be told to fail."""

    def __init__(self, rates=None):
        self.rates = rates if rates is not None else {"USD": 1.0, "PHP": 56.0, "EUR": 0.9}
        self.calls = 0
        self.fail = False

    def latest(self, base="USD"):
        self.calls += 1
        if self.fail:
            raise UpstreamError("exchange-rate", "boom")
        return dict(self.rates)


class RecordingMailer:
    def __init__(self):
        self.sent = []

    def send(self, to, subject, html):
        self.sent.append({"to": to, "subject": subject, "html": html})
        return DispatchResult(ok=True, message_id=f"msg-{len(self.sent)}")


class FakeCatalog:
    """Stands in for SneakerCatalogClient with canned records keyed by id."""

    def __init__(self, records=None):
        self.records = records or {}

    def search(self, query, limit=50):
        return list(self.records.values())[:limit]

    def get_sneaker(self, sneaker_id):
        if sneaker_id == "down":
            raise UpstreamError("sneaker-db", "timeout")
        return self.records.get(sneaker_id)


class PassingCaptcha:
    def verify(self, token, remote_ip=None):
        return True


class FakeGeo:
    def __init__(self, country=None):
        self.country = country
        self.lookups = []

    def country_for(self, ip):
        self.lookups.append(ip)
        return self.country


def sneaker_record(sneaker_id, sku, name="Air Jordan 1", brand="Jordan", price=180, story="Classic."):
    return {
        "id": sneaker_id,
        "sku": sku,
        "name": name,
        "brand": brand,
        "gender": "men",
        "retailPrice": price,
        "colorway": "Black/Red",
        "releaseDate": "2024-01-01",
        "story": story,
        "image": {"original": f"https://img/{sku}.png", "thumbnail": f"https://img/{sku}_t.png"},
    }


@pytest.fixture
def db():
    database = mongomock.MongoClient()["storefront_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def rates():
    return FakeRates()


@pytest.fixture
def converter(rates):
    return CurrencyConverter(rates, ttl_seconds=3600)


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def catalog_client():
    return FakeCatalog(
        {
            "s1": sneaker_record("s1", "AJ1-001"),
            "s2": sneaker_record("s2", "DUNK-002", name="Dunk Low", brand="Nike", price=110),
        }
    )


@pytest.fixture
def make_product(db):
    def _make(sku="AA1", name="Air Max 1", brand="Nike", price=100.0, stock_levels=None, **extra):
        doc = {
            "sku": sku,
            "name": name,
            "brand": brand,
            "gender": "men",
            "retail_price": price,
            "thumbnail_url": f"https://img/{sku}_t.png",
            "description": "No description available.",
            "imported_at": datetime(2024, 1, 1),
            "stock": stock_levels if stock_levels is not None else stock.initial_stock(),
        }
        doc.update(extra)
        doc["_id"] = db["products"].insert_one(doc).inserted_id
        return doc

    return _make


@pytest.fixture
def client(db, converter, mailer, catalog_client):
    from deps import get_captcha, get_catalog, get_converter, get_db, get_geo, get_mailer
    from main import app

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_converter] = lambda: converter
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_catalog] = lambda: catalog_client
    app.dependency_overrides[get_captcha] = lambda: PassingCaptcha()
    app.dependency_overrides[get_geo] = lambda: FakeGeo()
    yield TestClient(app, follow_redirects=False)
    app.dependency_overrides.clear()


@pytest.fixture
def customer(db):
    return accounts.register(db, "Jane", "Doe", "jane@example.com", "sneakers1", "sneakers1")


@pytest.fixture
def admin_user(db):
    return accounts.register(db, "Ada", "Admin", "ada@example.com", "adminpass1", "adminpass1", role=accounts.ROLE_ADMIN)


def _login(client, email, password):
    response = client.post("/users/login", data={"email": email, "password": password})
    assert response.status_code == 303
    assert response.headers["location"] == "/account"
    return response


@pytest.fixture
def customer_client(client, customer):
    _login(client, "jane@example.com", "sneakers1")
    return client


@pytest.fixture
def admin_client(client, admin_user):
    _login(client, "ada@example.com", "adminpass1")
    return client


@pytest.fixture
def login():
    return _login
