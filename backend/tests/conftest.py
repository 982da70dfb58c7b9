"""
Pytest configuration and fixtures
"""
import os
import sys
import tempfile
from pathlib import Path

import pytest

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Settings are read on first import; point everything at a throwaway database
_test_db_dir = Path(tempfile.mkdtemp(prefix="adjudication-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_test_db_dir / 'app.db'}"
os.environ["MATRIX_ID"] = "M1"
os.environ["COLLABORATOR_EMAIL"] = "alice@x.com"
os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_FILE_ENABLED"] = "false"

from sqlalchemy.orm import sessionmaker

from adjudication.core.config import SessionConfig
from adjudication.core.database import Base, build_engine
from adjudication.services.decision_change_feed import DecisionChangeFeed
from adjudication.services.decision_store import SqlDecisionStore
from adjudication.services.offense_catalog import OffenseCatalog

SAMPLE_OFFENSES = [
    (101, "Simple assault"),
    (205, "Burglary"),
    (150, "Petty theft"),
]


@pytest.fixture(scope="function")
def engine(tmp_path):
    """Fresh SQLite database per test"""
    import adjudication.models  # noqa: F401
    engine = build_engine(f"sqlite:///{tmp_path / 'decisions.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture(scope="function")
def feed():
    return DecisionChangeFeed()


@pytest.fixture(scope="function")
def store(session_factory, feed):
    return SqlDecisionStore(session_factory, feed)


@pytest.fixture(scope="function")
def catalog(session_factory):
    catalog = OffenseCatalog(session_factory)
    catalog.seed_offenses(SAMPLE_OFFENSES)
    return catalog


@pytest.fixture(scope="function")
def session_config():
    return SessionConfig(matrix_id="M1", collaborator_email="alice@x.com")


@pytest.fixture(scope="function")
def client(store, catalog, session_config):
    """Create test client with the decision dependencies overridden"""
    from fastapi.testclient import TestClient

    from adjudication.api.dependencies import (get_offense_catalog,
                                               get_session_config, get_store)
    from adjudication.main import app

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_offense_catalog] = lambda: catalog
    app.dependency_overrides[get_session_config] = lambda: session_config
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()
