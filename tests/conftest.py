"""Pytest configuration.

Settings are read from the environment, so pin an in-memory job store and
empty Supabase credentials before the app package is imported.
"""

import os

os.environ["REPOSITORY_BACKEND"] = "memory"
os.environ.setdefault("SUPABASE_URL", "")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "")
os.environ.setdefault("SUPABASE_ANON_KEY", "")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient

from registry_exports.auth.supabase_auth import (
    get_current_principal,
    get_current_vendor_principal,
)
from registry_exports.config import Settings
from registry_exports.jobs.errors import Unauthenticated
from registry_exports.jobs.in_memory_repository import InMemoryExportJobRepository
from registry_exports.jobs.models import Principal
from registry_exports.main import create_app

T0 = datetime(2026, 1, 10, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> datetime:
        self.now = self.now + timedelta(minutes=minutes)
        return self.now


class PrincipalSwitch:
    """Stands in for Supabase token resolution; tests pick who is calling."""

    def __init__(self):
        self.current: Optional[Principal] = None

    def use(self, principal: Optional[Principal]) -> None:
        self.current = principal

    async def __call__(self) -> Principal:
        if self.current is None:
            raise Unauthenticated("Missing or invalid token")
        return self.current


ADMIN = Principal(id="admin-a", role="finance_admin", email="a@example.com")
OTHER_ADMIN = Principal(id="admin-b", role="marketing_admin", email="b@example.com")
SUPER_ADMIN = Principal(id="root", role="super_admin", email="root@example.com")
CUSTOMER = Principal(id="cust-1", role="host", email="c@example.com")
VENDOR = Principal(id="vendor-user-1", role="vendor", email="v@example.com", vendor_id="vnd-1")
OTHER_VENDOR = Principal(id="vendor-user-2", role="vendor", email="w@example.com", vendor_id="vnd-2")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def analytics_repo():
    return InMemoryExportJobRepository()


@pytest.fixture
def vendor_repo():
    return InMemoryExportJobRepository()


@pytest.fixture
def caller():
    return PrincipalSwitch()


@pytest.fixture
def app(clock, analytics_repo, vendor_repo, caller):
    application = create_app(
        settings=Settings(repository_backend="memory", log_level="WARNING"),
        analytics_repository=analytics_repo,
        vendor_repository=vendor_repo,
        clock=clock,
    )
    application.dependency_overrides[get_current_principal] = caller
    application.dependency_overrides[get_current_vendor_principal] = caller
    return application


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
