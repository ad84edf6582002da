"""
Shared test fixtures — SQLite test database, test client, auth helpers,
and a quote with one part and one line item to price.
"""

import os
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Set JWT_SECRET before importing app modules
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["DATABASE_URL"] = "sqlite:///./test.db"

from quotecalc import models
from quotecalc.database import Base, get_db
from quotecalc.main import app


TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def db():
    """Direct database session for test setup/assertions."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def auth_headers(client):
    """Register a test user and return auth headers."""
    response = client.post("/api/auth/register", json={
        "email": "estimator@machineshop.com",
        "password": "strongpassword123",
    })
    assert response.status_code == 200
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_headers(client):
    """A second user, for ownership checks."""
    response = client.post("/api/auth/register", json={
        "email": "second@machineshop.com",
        "password": "anotherpassword456",
    })
    assert response.status_code == 200
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def priced_quote(db):
    """
    A Draft quote with one part (tolerance ±0.005) and its line item (qty 2).

    Returns (quote_id, part_id, line_item_id).
    """
    customer = models.Customer(name="Acme Robotics", company="Acme")
    db.add(customer)
    db.flush()

    quote = models.Quote(
        quote_number="Q-2026-0001",
        customer_id=customer.id,
        status=models.QuoteStatus.DRAFT,
    )
    db.add(quote)
    db.flush()

    part = models.QuotePart(
        quote_id=quote.id,
        part_number="BRK-100",
        part_name="Mounting bracket",
        material="6061-T6",
        tolerance="±0.005",
    )
    db.add(part)
    db.flush()

    line_item = models.QuoteLineItem(
        quote_id=quote.id,
        quote_part_id=part.id,
        name="Mounting bracket",
        quantity=2,
        unit_price=0.0,
        total_price=0.0,
    )
    db.add(line_item)
    db.commit()
    return quote.id, part.id, line_item.id
