# tests/conftest.py
"""
Shared fixtures: an app on in-memory sqlite, a db session inside an app
context for service-level tests, and factories for users and investments.

Run:
    pytest -v
"""
import itertools
from datetime import timedelta
from decimal import Decimal

import pytest
from dateutil.relativedelta import relativedelta

from app import create_app
from config import TestingConfig
from extensions import db
from models import User, Referral, InvestmentPackage, utcnow
from referrals.categories import rate_for_category, MONTHLY_ROI_RATE

PASSWORD = "secret123"

_counter = itertools.count(1)


# =============================================================================
# APP / DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def app():
    """Fresh application and schema per test."""
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    """db.session inside a pushed app context (service-level tests)."""
    with app.app_context():
        yield db.session
        db.session.rollback()


# =============================================================================
# FACTORIES
# =============================================================================

def create_user(name="Test User", category="bronze", referrer=None, created_at=None,
                email=None, password=PASSWORD, is_admin=False):
    """Insert a user (and its referral edge when `referrer` is given) and commit."""
    n = next(_counter)
    user = User(
        full_name=name,
        email=email or f"user{n}@example.com",
        phone=f"+23480{n:08d}",
        bank_name="Test Bank",
        account_number=f"{n:010d}",
        account_name=name,
        category=category,
        referral_code=f"PSS-T{n:06d}",
        referred_by=referrer.referral_code if referrer else None,
        is_admin=is_admin,
        created_at=created_at or utcnow(),
    )
    user.set_password(password)
    db.session.add(user)
    db.session.flush()

    if referrer is not None:
        db.session.add(Referral(
            referrer_id=referrer.id,
            referred_id=user.id,
            commission_rate=rate_for_category(referrer.category),
            created_at=user.created_at,
        ))
    db.session.commit()
    return user


def create_investment(user, amount, category=None, duration=12, created_at=None, total_earned="0"):
    """Insert an investment row directly, without running the promotion check."""
    start = created_at or utcnow()
    amount = Decimal(str(amount))
    investment = InvestmentPackage(
        user_id=user.id,
        category=category or user.category,
        amount=amount,
        duration=duration,
        monthly_roi=(amount * MONTHLY_ROI_RATE).quantize(Decimal("0.01")),
        total_earned=Decimal(str(total_earned)),
        start_date=start,
        maturity_date=start + relativedelta(months=duration),
        created_at=start,
    )
    db.session.add(investment)
    db.session.commit()
    return investment


@pytest.fixture
def make_user(session):
    return create_user


@pytest.fixture
def make_investment(session):
    return create_investment


@pytest.fixture
def days_ago():
    def _days_ago(days):
        return utcnow() - timedelta(days=days)
    return _days_ago


# =============================================================================
# HTTP HELPERS
# =============================================================================

def registration_payload(email, category="bronze", referred_by=None, name="Ada Lovelace"):
    payload = {
        "fullName": name,
        "email": email,
        "phone": "+2348012345678",
        "password": PASSWORD,
        "bankName": "Test Bank",
        "accountNumber": "0123456789",
        "accountName": name,
        "category": category,
    }
    if referred_by:
        payload["referredBy"] = referred_by
    return payload


@pytest.fixture
def seed_user(app):
    """Create a user outside any request; returns (id, email, referral_code)."""
    def _seed_user(**kwargs):
        with app.app_context():
            user = create_user(**kwargs)
            return user.id, user.email, user.referral_code
    return _seed_user


@pytest.fixture
def login(client):
    def _login(email, password=PASSWORD, http=None):
        return (http or client).post("/api/auth/login", json={"email": email, "password": password})
    return _login


@pytest.fixture
def admin_client(app, seed_user):
    """A separate test client logged in as an admin."""
    _, email, _ = seed_user(name="Site Admin", is_admin=True)
    http = app.test_client()
    response = http.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200
    return http


@pytest.fixture
def registration_data():
    return registration_payload


@pytest.fixture
def seed_investment(app):
    """Investment for an existing user id, outside any request."""
    def _seed_investment(user_id, amount, **kwargs):
        with app.app_context():
            investment = create_investment(db.session.get(User, user_id), amount, **kwargs)
            return investment.id
    return _seed_investment
