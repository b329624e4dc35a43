"""
Test configuration: an in-memory SQLite database and a throwaway storage directory.

The environment is set before any gatehouse module is imported, because settings
and the engine are created at import time.
"""

import os
import shutil
import tempfile

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["APP_ENV"] = "dev"
os.environ["PASSWORD_RESET_SECRET"] = "test-reset-secret"
os.environ.pop("MAIL_HOST", None)
STORAGE_DIR = tempfile.mkdtemp(prefix="gatehouse-storage-")
os.environ["STORAGE_DIR"] = STORAGE_DIR

import pytest

from gatehouse.core import security
from gatehouse.core.database import engine
from gatehouse.models import Base
from gatehouse.services.rate_limit import limiter

# Full-cost bcrypt makes the suite slow; the algorithm is the same.
security.BCRYPT_ROUNDS = 4


@pytest.fixture(autouse=True)
def fresh_database():
    """Every test starts with empty tables and empty rate-limit counters."""
    Base.metadata.create_all(bind=engine)
    limiter.reset()
    yield
    Base.metadata.drop_all(bind=engine)
    limiter.reset()


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(STORAGE_DIR, ignore_errors=True)
