"""
Pytest configuration and shared fixtures for the BrokerPro billing test suite.
"""
import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="brokerpro_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> "Config":
    """Provide a configuration with an isolated database and no settings overlay."""
    from config import Config

    monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "config"))
    monkeypatch.delenv("DEFAULT_COMMISSION_RATE", raising=False)
    monkeypatch.delenv("DEFAULT_PAYMENT_TERMS", raising=False)

    config = Config()
    config.db_path = temp_dir / "data" / "brokerpro.db"
    return config


@pytest.fixture
def test_db(test_config) -> "Database":
    """Provide a test database instance."""
    from billing.database import Database
    return Database(test_config.db_path)


@pytest.fixture
def service(test_config) -> "DocumentService":
    """A document service backed by in-memory repositories."""
    from billing.documents import DocumentService
    return DocumentService.in_memory(test_config)


@pytest.fixture
def sqlite_service(test_config) -> "DocumentService":
    """A document service backed by the temporary SQLite database."""
    from billing.documents import DocumentService
    return DocumentService(test_config)


@pytest.fixture
def sample_items() -> list[dict]:
    """Raw line items as the invoice form posts them (string numerics included)."""
    return [
        {"_id": "it-1", "itemCode": "CH-01", "description": "Office chair", "quantity": "10", "unitPrice": "45.50"},
        {"_id": "it-2", "itemCode": "DK-02", "description": "Standing desk", "quantity": 2, "unitPrice": 310},
    ]


@pytest.fixture
def sample_shipping_items() -> list[dict]:
    return [
        {"itemId": "it-1", "description": "Office chair", "quantity": 10, "weight": 120, "volume": 0.8},
        {"itemId": "it-2", "description": "Standing desk", "quantity": 2, "weight": 90, "volume": 0.3},
    ]


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API tests")
