"""Pytest configuration: in-memory ledger database and common fixtures."""

from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from tuition_ledger.services.account_service import AccountService
from tuition_ledger.services.billing_service import BillingService
from tuition_ledger.services.db import create_ledger_engine, init_db


@pytest.fixture
def db_session():
    """Create test database session."""
    engine = create_ledger_engine("sqlite:///:memory:")
    init_db(engine)
    Session = sessionmaker(bind=engine, autoflush=False)
    session = Session()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def organization(db_session):
    """Academy billing on the 1st with late fees on the 10th."""
    return BillingService(db_session).create_organization(
        name="Dojo Norte",
        billing_day=1,
        late_fee_day=10,
        monthly_tuition=Decimal("500.00"),
        late_fee_amount=Decimal("50.00"),
        ranks=[("White", 10), ("Yellow", 20), ("Black", 0)],
    )


@pytest.fixture
def white_rank(organization):
    return organization.ranks[0]


@pytest.fixture
def member(db_session, organization, white_rank):
    """Member holding the first rank, empty ledger."""
    return AccountService(db_session).add_member(organization.id, "Ana Torres", white_rank.id)


@pytest.fixture
def other_member(db_session, organization, white_rank):
    return AccountService(db_session).add_member(organization.id, "Luis Pena", white_rank.id)
