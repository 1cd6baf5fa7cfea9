"""Shared test fixtures for FundHub."""

import sys
import os
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

# Keep the app's own engine off disk; tests bind their own databases
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

# Add package root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from fundhub.database import Base
from fundhub import models
from fundhub.engines.tiers import default_tier_templates

USER_ID = "user-789"


def _foreign_keys_on(dbapi_connection, connection_record):
    dbapi_connection.execute("PRAGMA foreign_keys=ON")


@pytest.fixture
def db_session():
    """Fresh in-memory FundHub schema per test, foreign keys enforced."""
    engine = create_engine("sqlite:///:memory:")
    event.listen(engine, "connect", _foreign_keys_on)
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def sample_structure(db_session):
    """Create a sample fund structure with an 8% hurdle and 20% carry."""
    structure = models.Structure(
        name="Growth Fund I",
        type="Fund",
        total_commitment=10_000_000.0,
        hurdle_rate=8.0,
        carried_interest=20.0,
        user_id=USER_ID,
    )
    db_session.add(structure)
    db_session.commit()
    db_session.refresh(structure)
    return structure


@pytest.fixture
def sample_tiers(db_session, sample_structure):
    """Persist the canonical 8/20 waterfall for the sample structure."""
    tiers = [
        models.WaterfallTier(
            structure_id=sample_structure.id,
            user_id=USER_ID,
            is_active=True,
            **template,
        )
        for template in default_tier_templates(8, 20)
    ]
    db_session.add_all(tiers)
    db_session.commit()
    for tier in tiers:
        db_session.refresh(tier)
    return tiers


@pytest.fixture
def sample_investors(db_session, sample_structure):
    """Two investors committing 300k and 700k."""
    investors = [
        models.StructureInvestor(
            structure_id=sample_structure.id, user_id="lp-a", commitment=300_000.0,
        ),
        models.StructureInvestor(
            structure_id=sample_structure.id, user_id="lp-b", commitment=700_000.0,
        ),
    ]
    db_session.add_all(investors)
    db_session.commit()
    for investor in investors:
        db_session.refresh(investor)
    return investors
