"""Pytest configuration and fixtures.

The project ships top-level modules rather than a package, so the repository
root is put on ``sys.path`` for runs that do not install it first.
"""
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from powerbi_client import PowerBIClient  # noqa: E402
from powerbi_models import Credentials  # noqa: E402
from powerbi_refresh_manager import PowerBIRefreshManager  # noqa: E402
from tests.helpers.fake_transport import FakeClock, FakeSession  # noqa: E402

GROUP_ID = "9f1c2b8c-12ab-4f3e-9bcd-0af2c5e6d123"
DATASET_ID = "5c8b4a1e-7f89-4c33-9dd8-1f23c4567890"


@pytest.fixture
def credentials():
    return Credentials(tenant_id="test-tenant", client_id="test-client-id", client_secret="test-secret-value")


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def client(credentials, session):
    return PowerBIClient(credentials, session=session)


@pytest.fixture
def manager(client):
    return PowerBIRefreshManager(client, workspace_id=GROUP_ID, dataset_id=DATASET_ID)


@pytest.fixture
def clock():
    return FakeClock()
