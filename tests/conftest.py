import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("DEFAULT_TIMEZONE", "America/Sao_Paulo")

import pytest
from fastapi.testclient import TestClient

from sitebuilder import storage
from sitebuilder.auth import create_access_token
from sitebuilder.database import Base, SessionLocal, engine
from sitebuilder.main import app


def auth_headers(sub: str, **claims) -> dict:
    token = create_access_token({"sub": sub, **claims})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_headers():
    return auth_headers


@pytest.fixture
def owner():
    return auth_headers("owner-1", email="dono@acai.com", first_name="Ana")


@pytest.fixture
def intruder():
    return auth_headers("owner-2", email="outro@burger.com")


@pytest.fixture
def template_id(db):
    tpl = storage.create_template(db, {
        "name": "Açaí Tropical",
        "category": "acai",
        "html_content": "<h1>{{siteName}}</h1>",
        "css_content": "h1{color:purple}",
        "config": {"colors": {"primary": "#6b21a8"}},
    })
    return tpl.id


@pytest.fixture
def site(client, owner, template_id):
    resp = client.post("/api/sites", headers=owner, json={
        "templateId": template_id,
        "name": "Açaí da Praia",
        "slug": "acai-da-praia",
        "whatsappNumber": "+55 (11) 98765-4321",
        "address": "Rua das Flores, 10",
        "pixKey": "123.456.789-09",
        "pixKeyType": "cpf",
        "config": {"city": "Santos"},
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def order_payload():
    return {
        "customerName": "Bruno",
        "customerPhone": "11999990000",
        "customerAddress": "Av. Atlântica, 200",
        "deliveryType": "delivery",
        "items": [
            {"name": "Açaí 500ml", "price": "18.50", "quantity": 2, "observations": "sem granola"},
            {"name": "Água", "price": "4.00", "quantity": 1},
        ],
        "totalAmount": "41.00",
        "notes": "Tocar a campainha",
    }
