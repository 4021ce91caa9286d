"""Shared fixtures for the accounting tests"""

import pytest

from database import DatabaseVersion


@pytest.fixture
def db():
    """The bundled sample database."""
    return DatabaseVersion.SAMPLE.load_database()
