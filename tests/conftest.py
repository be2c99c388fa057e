"""
SiteCheck - Test Infrastructure (conftest.py)
=============================================
Provides:
  - A throwaway SQLite database per test
  - FastAPI TestClient against main.app
  - Record builders and DB assertion helpers
"""

import os
import sys
import sqlite3
import datetime
import tempfile
import pytest

# Ensure project root is on path
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT_DIR)

# ============================================================================
# TEST MODE: Use separate test database
# ============================================================================
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), f"sitecheck_test_{os.getpid()}.db")

os.environ["CHECKS_DB_PATH"] = TEST_DB_PATH

from app.checks import repository  # noqa: E402
from app.checks.config import CheckConfig  # noqa: E402
from app.checks.models import Schedule, CheckTemplate, AssignmentStrategy  # noqa: E402


def _remove_db():
    try:
        if os.path.exists(TEST_DB_PATH):
            os.remove(TEST_DB_PATH)
    except (PermissionError, OSError):
        pass


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def fresh_db():
    """Empty database with the check schema and a cold config cache."""
    _remove_db()
    repository.DB_PATH = TEST_DB_PATH
    repository.init_check_schema()
    CheckConfig.reset_cache()
    yield TEST_DB_PATH
    CheckConfig.reset_cache()
    _remove_db()


@pytest.fixture
def client(fresh_db):
    """FastAPI TestClient bound to the test database."""
    from starlette.testclient import TestClient
    import main
    with TestClient(main.app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture
def rotate_template():
    return CheckTemplate(id="tpl-rotate", name="Call point test", strategy=AssignmentStrategy.ROTATE)


@pytest.fixture
def all_template():
    return CheckTemplate(id="tpl-all", name="Emergency lighting", strategy=AssignmentStrategy.ALL)


# ============================================================================
# Builders
# ============================================================================

def make_schedule(**overrides) -> Schedule:
    """A monthly, active schedule starting 2024-01-01 unless overridden."""
    fields = dict(
        id="sched-1",
        org_id="org-1",
        site_id="site-1",
        name="Fire extinguishers",
        asset_ids=[],
        asset_id="asset-legacy",
        template_id="tpl-1",
        frequency="monthly",
        start_date=datetime.date(2024, 1, 1),
        active=True,
        rotation_cursor=0,
    )
    fields.update(overrides)
    return Schedule(**fields)


def at(year, month, day, hour=0, minute=0) -> datetime.datetime:
    return datetime.datetime(year, month, day, hour, minute)


# ============================================================================
# DB helpers
# ============================================================================

def get_test_db():
    conn = sqlite3.connect(TEST_DB_PATH, timeout=30)
    conn.row_factory = sqlite3.Row
    return conn


def db_query(sql, params=()):
    """Run a query against the test DB and return list of dicts."""
    conn = get_test_db()
    rows = conn.execute(sql, params).fetchall()
    result = [dict(r) for r in rows]
    conn.close()
    return result


def db_count(table, where="1=1", params=()):
    """Count rows in a table."""
    conn = get_test_db()
    row = conn.execute(f"SELECT COUNT(*) AS cnt FROM {table} WHERE {where}", params).fetchone()
    conn.close()
    return row["cnt"]
