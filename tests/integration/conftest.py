"""Pytest configuration and fixtures for integration tests against a real SQLite file."""

from typing import Any

import pytest

from siteops.core import db_client
from siteops.core.config import settings
from siteops.domain.create_models import SiteCreate, WorkerCreate
from siteops.domain.geo import GeoPoint
from siteops.domain.user import UserRole
from siteops.modules.sites import service as site_service
from siteops.services import checkin_service


STORE_POINT = GeoPoint(latitude=33.0, longitude=-87.0)


@pytest.fixture
async def sqlite_db(tmp_path, monkeypatch):
    """Point the client at a fresh database file and create the schema."""
    monkeypatch.setattr(settings, "sqlite_db_path", str(tmp_path / "siteops.db"))
    await db_client.init_db()
    yield
    await db_client.close_connection()


@pytest.fixture
async def fenced_store(sqlite_db) -> dict[str, Any]:
    """A store fenced at (33.0, -87.0) with radius 100 m, three employees and a manager, all checked in."""
    site = await site_service.create_site(
        params=SiteCreate(
            name="Downtown",
            latitude=STORE_POINT.latitude,
            longitude=STORE_POINT.longitude,
            geofence_radius_m=100,
        )
    )
    workers = {}
    for name, role in (
        ("alice", UserRole.EMPLOYEE),
        ("bob", UserRole.EMPLOYEE),
        ("carol", UserRole.EMPLOYEE),
        ("manager", UserRole.STORE_MANAGER),
    ):
        worker = await site_service.create_worker(params=WorkerCreate(name=name.title(), role=role, site_id=site.id))
        await checkin_service.check_in(worker_id=worker.id, site_id=site.id, point=STORE_POINT)
        workers[name] = worker
    return {"site": site, **workers}
