"""Pytest configuration and fixtures for unit tests."""

from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from siteops.domain.create_models import SiteCreate, TaskCreate, WorkerCreate
from siteops.domain.geo import GeoPoint
from siteops.domain.site import Site
from siteops.domain.task import Task
from siteops.domain.user import UserRole, Worker
from siteops.modules.sites import service as site_service
from siteops.modules.tasks import service as task_service
from siteops.services import checkin_service
from tests.unit.mocks import InMemoryDBClient


STORE_CENTER = GeoPoint(latitude=33.0, longitude=-87.0)
# Roughly 55 m north of the store center
INSIDE_POINT = GeoPoint(latitude=33.0005, longitude=-87.0)
# Roughly 1.1 km north of the store center
OUTSIDE_POINT = GeoPoint(latitude=33.01, longitude=-87.0)


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches siteops.core.db_client functions to use InMemoryDBClient."""

    # Patch all db_client functions
    monkeypatch.setattr("siteops.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("siteops.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("siteops.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("siteops.core.db_client.update_record_if", in_memory_db.update_record_if)
    monkeypatch.setattr("siteops.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("siteops.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("siteops.core.db_client.get_first_record", in_memory_db.get_first_record)
    monkeypatch.setattr("siteops.core.db_client.transaction", in_memory_db.transaction)

    return in_memory_db


@pytest.fixture
def make_site(patched_db) -> Callable[..., Awaitable[Site]]:
    """Factory for sites, fenced at the store center by default."""

    async def _make(**overrides: Any) -> Site:
        fields: dict[str, Any] = {
            "name": "Downtown",
            "latitude": STORE_CENTER.latitude,
            "longitude": STORE_CENTER.longitude,
            "geofence_radius_m": 100.0,
        }
        fields.update(overrides)
        return await site_service.create_site(params=SiteCreate(**fields))

    return _make


@pytest.fixture
def make_worker(patched_db) -> Callable[..., Awaitable[Worker]]:
    """Factory for workers."""

    async def _make(site: Site | None, role: UserRole = UserRole.EMPLOYEE, **overrides: Any) -> Worker:
        fields: dict[str, Any] = {"name": f"{role} worker", "role": role, "site_id": site.id if site else None}
        fields.update(overrides)
        return await site_service.create_worker(params=WorkerCreate(**fields))

    return _make


@pytest.fixture
def make_task(patched_db) -> Callable[..., Awaitable[Task]]:
    """Factory for single standalone tasks."""

    async def _make(site: Site, **overrides: Any) -> Task:
        fields: dict[str, Any] = {"site_id": site.id, "title": "Restock aisle 4"}
        fields.update(overrides)
        tasks = await task_service.create_task(params=TaskCreate(**fields))
        return tasks[0]

    return _make


@pytest.fixture
def check_in(patched_db) -> Callable[..., Awaitable[Any]]:
    """Check a worker in at a site from inside its fence."""

    async def _check_in(worker: Worker, site: Site, point: GeoPoint = INSIDE_POINT):
        return await checkin_service.check_in(worker_id=worker.id, site_id=site.id, point=point)

    return _check_in


@pytest.fixture
async def store(make_site, make_worker, check_in) -> dict[str, Any]:
    """A fenced store with an employee, a second employee and a manager, all checked in."""
    site = await make_site()
    alice = await make_worker(site, name="Alice")
    bob = await make_worker(site, name="Bob")
    manager = await make_worker(site, UserRole.STORE_MANAGER, name="Morgan")
    for worker in (alice, bob, manager):
        await check_in(worker, site)
    return {"site": site, "alice": alice, "bob": bob, "manager": manager}
