"""
Shared pytest fixtures for STI Result Verification tests.

Provides sample LLM extractions, identity profiles, a fixed upload time and
an isolated SQLite database.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Time and identity
# =============================================================================

@pytest.fixture
def reference_time() -> datetime:
    """Fixed upload time so date checks don't depend on the clock."""
    return datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def john_smith():
    from workers.verification.models import Profile
    return Profile(first_name="John", last_name="Smith")


@pytest.fixture
def jane_doe():
    from workers.verification.models import Profile
    return Profile(first_name="Jane", last_name="Doe")


# =============================================================================
# LLM extractions
# =============================================================================

@pytest.fixture
def full_extraction() -> Dict[str, Any]:
    """An extraction where every verification signal is present (scores 100)."""
    return {
        "collection_date": "2025-06-01",
        "test_type": "STI Panel",
        "lab_name": "LifeLabs",
        "patient_name": "SMITH, JOHN",
        "health_card_present": True,
        "accession_number": "L12345678",
        "notes": "Specimen received intact",
        "tests": [
            {"name": "HIV 1/2 Ag/Ab Combo Screen", "result": "Non-Reactive"},
            {"name": "Syphilis Antibody Screen", "result": "Non-Reactive"},
            {"name": "Chlamydia trachomatis", "result": "Not Detected"},
            {"name": "Neisseria gonorrhoeae", "result": "Not Detected"},
        ],
    }


@pytest.fixture
def make_extraction(full_extraction: Dict[str, Any]) -> Callable[..., Dict[str, Any]]:
    """Build an extraction from the full one with some fields overridden."""
    def _make(**overrides) -> Dict[str, Any]:
        extraction = dict(full_extraction)
        extraction["tests"] = [dict(t) for t in full_extraction["tests"]]
        extraction.update(overrides)
        return extraction
    return _make


@pytest.fixture
def bare_extraction() -> Dict[str, Any]:
    """An extraction with no identity signals at all."""
    return {
        "collection_date": None,
        "tests": [],
        "lab_name": None,
        "patient_name": None,
        "health_card_present": False,
        "accession_number": None,
    }


# =============================================================================
# Reference data
# =============================================================================

@pytest.fixture
def lab_directory():
    """Lab directory loaded from config/labs.yaml."""
    from workers.verification.lab_lookup import LabDirectory
    return LabDirectory(labs_path=PROJECT_ROOT / "config" / "labs.yaml")


@pytest.fixture
def sample_test_mappings() -> Dict[str, Any]:
    """Small terminology dictionary for standardizer testing."""
    return {
        "mappings": {
            "HIV FINAL INTERPRETATION": "HIV-1/2",
            "HBSAG": "Hepatitis B",
            "HEPATITIS B": "Hepatitis B",
            "RPR": "Syphilis",
        },
        "acronyms": ["HIV", "HSV", "RPR"],
    }


@pytest.fixture
def mappings_file(sample_test_mappings: Dict[str, Any], tmp_path: Path) -> Path:
    import yaml

    path = tmp_path / "test_mappings.yaml"
    with open(path, "w") as f:
        yaml.safe_dump(sample_test_mappings, f, sort_keys=False)
    return path


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def test_database_url(tmp_path: Path) -> str:
    """Create temporary SQLite database URL."""
    db_path = tmp_path / "test.db"
    return f"sqlite:///{db_path}"


@pytest.fixture
def test_engine(test_database_url: str):
    from backend.core.database import create_db_and_tables, get_engine

    engine = get_engine(test_database_url)
    create_db_and_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def test_session(test_engine):
    """Create test database session."""
    from sqlmodel import Session

    with Session(test_engine) as session:
        yield session


# =============================================================================
# FastAPI Test Client
# =============================================================================

@pytest.fixture
def client(test_engine):
    """FastAPI test client backed by the temporary database."""
    from fastapi.testclient import TestClient
    from sqlmodel import Session

    from backend.core.database import get_session
    from backend.main import app

    def override_get_session():
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()
