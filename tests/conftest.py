"""Shared fixtures."""

import sqlite3
import sys
from pathlib import Path

import pytest

# Tests import the builders module as a sibling
sys.path.insert(0, str(Path(__file__).parent))

import dashvars.variables  # noqa: E402,F401  (registers every variable kind)


@pytest.fixture
def test_db():
    """In-memory database with the variables schema."""
    from dashvars.database import init_db

    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    init_db(conn)
    yield conn
    conn.close()


@pytest.fixture
def legacy_datasource():
    from builders import FakeLegacyDataSource

    return FakeLegacyDataSource(
        values={
            "regions": ["eu", "us"],
            "hosts.eu": ["eu-1", "eu-2"],
            "hosts.us": ["us-1"],
        }
    )
