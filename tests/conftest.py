"""
Shared pytest fixtures for the LocalPerks test suite.

Each test gets a fresh app bound to an in-memory SQLite database with all
tables created, and an application context pushed for its duration.
"""
from datetime import datetime, timedelta
from decimal import Decimal

import jwt
import pytest

from localperks import create_app
from localperks.extensions import db
from localperks.models import (
    Tenant,
    Customer,
    Reward,
    RewardType,
    LedgerEntryType,
    LedgerEntryStatus,
    LedgerSource,
)
from localperks.services.ledger_service import ledger_service


@pytest.fixture
def app():
    """Create application for testing."""
    app = create_app('testing')

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Test client for API requests."""
    return app.test_client()


@pytest.fixture
def db_session(app):
    return db.session


@pytest.fixture
def cli_runner(app):
    return app.test_cli_runner()


def _make_tenant(name: str, slug: str) -> Tenant:
    tenant = Tenant(name=name, slug=slug, is_active=True)
    db.session.add(tenant)
    db.session.commit()
    return tenant


@pytest.fixture
def sample_tenant(app):
    """The Corner Cafe: issuing tenant for most tests."""
    return _make_tenant('The Corner Cafe', 'corner-cafe')


@pytest.fixture
def second_tenant(app):
    """A different partner business."""
    return _make_tenant('High Street Books', 'high-street-books')


@pytest.fixture
def sample_customer(sample_tenant):
    customer = Customer(tenant_id=sample_tenant.id, email='alex@example.com', name='Alex Doe')
    db.session.add(customer)
    db.session.commit()
    return customer


@pytest.fixture
def other_customer(sample_tenant):
    customer = Customer(tenant_id=sample_tenant.id, email='sam@example.com', name='Sam Roe')
    db.session.add(customer)
    db.session.commit()
    return customer


@pytest.fixture
def sample_reward(sample_tenant):
    """Free coffee at The Corner Cafe for 500 points."""
    reward = Reward(
        tenant_id=sample_tenant.id,
        name='Free Coffee',
        description='Any regular hot drink',
        reward_type=RewardType.REWARD.value,
        points_cost=500,
        is_active=True
    )
    db.session.add(reward)
    db.session.commit()
    return reward


@pytest.fixture
def earn(app):
    """
    Credit approved points directly to the ledger.

    Usage:
        earn(customer, 450)
        earn(customer, 100, tenant=second_tenant)
    """
    def _earn(customer, points, tenant=None, amount=None):
        return ledger_service.create_entry(
            customer.id,
            tenant.id if tenant else customer.tenant_id,
            LedgerEntryType.EARNED.value,
            amount if amount is not None else Decimal(points) / 10,
            points,
            LedgerEntryStatus.APPROVED.value,
            source=LedgerSource.MANUAL.value,
            description='Test credit'
        )
    return _earn


# ==================== Bearer tokens ====================

def make_token(app, sub, role, tenant_id=None, expires_in=timedelta(hours=1)) -> str:
    payload = {
        'sub': str(sub),
        'role': role,
        'tenant_id': tenant_id,
        'exp': datetime.utcnow() + expires_in,
    }
    return jwt.encode(payload, app.config['SECRET_KEY'], algorithm='HS256')


def bearer(token: str) -> dict:
    return {
        'Authorization': f'Bearer {token}',
        'Content-Type': 'application/json',
    }


@pytest.fixture
def customer_headers(app, sample_customer):
    return bearer(make_token(app, sample_customer.id, 'CUSTOMER', sample_customer.tenant_id))


@pytest.fixture
def other_customer_headers(app, other_customer):
    return bearer(make_token(app, other_customer.id, 'CUSTOMER', other_customer.tenant_id))


@pytest.fixture
def partner_headers(app, sample_tenant):
    """Staff at the issuing tenant."""
    return bearer(make_token(app, 9001, 'PARTNER', sample_tenant.id))


@pytest.fixture
def other_partner_headers(app, second_tenant):
    """Staff at a different tenant."""
    return bearer(make_token(app, 9002, 'PARTNER', second_tenant.id))


@pytest.fixture
def admin_headers(app, sample_tenant):
    return bearer(make_token(app, 9100, 'ADMIN', sample_tenant.id))


@pytest.fixture
def make_headers(app):
    """
    Build Authorization headers for arbitrary claims.

    Usage:
        make_headers(customer.id, 'CUSTOMER', tenant.id)
        make_headers(1, 'CUSTOMER', expires_in=timedelta(seconds=-10))
    """
    def _make(sub, role, tenant_id=None, expires_in=timedelta(hours=1)):
        return bearer(make_token(app, sub, role, tenant_id, expires_in))
    return _make
