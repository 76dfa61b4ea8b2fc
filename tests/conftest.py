import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["SITE_DOMAIN"] = "https://zapshift.test"

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.dependencies import get_gateway
from app.main import app as fastapi_app
from app.models import Parcel

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def client():
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def checkout_sessions(mocker):
    """Stripe Checkout Sessions service of the shared gateway, mocked."""
    return mocker.patch.object(get_gateway(), "sessions")


@pytest.fixture
def parcel(db):
    p = Parcel(sender_email="a@x.com", parcel_name="Box", cost=25.5)
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


def make_token(email, secret="test-secret", **claims):
    return jwt.encode({"email": email, **claims}, secret, algorithm="HS256")


def auth_header(email):
    return {"Authorization": f"Bearer {make_token(email)}"}


def stripe_session(**values):
    """Stand-in for a Stripe Checkout Session with attribute access."""
    data = {
        "id": "cs_test_1",
        "url": "https://checkout.stripe.com/c/pay/cs_test_1",
        "payment_status": "unpaid",
        "payment_intent": None,
        "amount_total": 2550,
        "currency": "usd",
        "customer_email": "a@x.com",
        "metadata": {},
    }
    data.update(values)
    return SimpleNamespace(**data)
