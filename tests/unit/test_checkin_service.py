"""Unit tests for check-in sessions."""

from datetime import UTC, datetime, timedelta

import pytest

from siteops.core.config import settings
from siteops.core.errors import AuthorizationError, GeofenceViolation, NotFoundError, ValidationError
from siteops.domain.geo import GeoPoint
from siteops.services import checkin_service
from tests.unit.conftest import INSIDE_POINT, OUTSIDE_POINT


@pytest.mark.unit
class TestCheckIn:
    """Tests for check_in function."""

    async def test_check_in_snapshots_fence(self, make_site, make_worker):
        site = await make_site(geofence_radius_m=150.0)
        worker = await make_worker(site)

        session = await checkin_service.check_in(worker_id=worker.id, site_id=site.id, point=INSIDE_POINT)

        assert session.worker_id == worker.id
        assert session.site_id == site.id
        assert session.site_name == "Downtown"
        assert session.fence_radius_m == 150.0
        assert session.fence.center == GeoPoint(latitude=33.0, longitude=-87.0)
        assert session.expires_at - session.started_at == timedelta(hours=12)

    async def test_default_radius_when_site_has_none(self, make_site, make_worker):
        site = await make_site(geofence_radius_m=None)
        worker = await make_worker(site)

        session = await checkin_service.check_in(worker_id=worker.id, site_id=site.id, point=INSIDE_POINT)

        assert session.fence_radius_m == 100.0

    async def test_outside_fence_rejected(self, make_site, make_worker):
        site = await make_site()
        worker = await make_worker(site)

        with pytest.raises(GeofenceViolation, match="Outside store geofence"):
            await checkin_service.check_in(worker_id=worker.id, site_id=site.id, point=OUTSIDE_POINT)

        assert await checkin_service.get_active_session(worker_id=worker.id) is None

    async def test_location_required_at_fenced_site(self, make_site, make_worker):
        site = await make_site()
        worker = await make_worker(site)

        with pytest.raises(ValidationError, match="Location required"):
            await checkin_service.check_in(worker_id=worker.id, site_id=site.id)

    async def test_unfenced_site_needs_no_location(self, make_site, make_worker):
        site = await make_site(latitude=None, longitude=None)
        worker = await make_worker(site)

        session = await checkin_service.check_in(worker_id=worker.id, site_id=site.id)

        assert session.fence is None

    async def test_geofence_disabled_skips_location(self, make_site, make_worker, monkeypatch):
        monkeypatch.setattr(settings, "enforce_geofence", False)
        site = await make_site()
        worker = await make_worker(site)

        session = await checkin_service.check_in(worker_id=worker.id, site_id=site.id, point=OUTSIDE_POINT)

        assert session.site_id == site.id

    async def test_latest_check_in_replaces_previous(self, make_site, make_worker, patched_db):
        first = await make_site(name="Downtown")
        second = await make_site(name="Uptown")
        worker = await make_worker(first)

        await checkin_service.check_in(worker_id=worker.id, site_id=first.id, point=INSIDE_POINT)
        await checkin_service.check_in(worker_id=worker.id, site_id=second.id, point=INSIDE_POINT)

        sessions = patched_db.records("checkins")
        assert len(sessions) == 1
        assert sessions[0]["site_id"] == second.id

    async def test_inactive_site_rejected(self, make_site, make_worker):
        site = await make_site(is_active=False)
        worker = await make_worker(site)

        with pytest.raises(ValidationError, match="not active"):
            await checkin_service.check_in(worker_id=worker.id, site_id=site.id, point=INSIDE_POINT)

    async def test_inactive_worker_rejected(self, make_site, make_worker):
        site = await make_site()
        worker = await make_worker(site, is_active=False)

        with pytest.raises(AuthorizationError):
            await checkin_service.check_in(worker_id=worker.id, site_id=site.id, point=INSIDE_POINT)

    async def test_unknown_site(self, make_site, make_worker):
        worker = await make_worker(None)

        with pytest.raises(NotFoundError):
            await checkin_service.check_in(worker_id=worker.id, site_id="424242", point=INSIDE_POINT)


@pytest.mark.unit
class TestSessions:
    """Tests for reading and ending sessions."""

    async def test_check_out(self, make_site, make_worker, check_in):
        site = await make_site()
        worker = await make_worker(site)
        await check_in(worker, site)

        assert await checkin_service.check_out(worker_id=worker.id) is True
        assert await checkin_service.check_out(worker_id=worker.id) is False
        assert await checkin_service.get_active_session(worker_id=worker.id) is None

    async def test_expired_session_is_dropped(self, make_site, make_worker, check_in, patched_db):
        site = await make_site()
        worker = await make_worker(site)
        session = await check_in(worker, site)

        past = datetime.now(UTC) - timedelta(minutes=1)
        await patched_db.update_record(collection="checkins", record_id=session.id, data={"expires_at": past})

        assert await checkin_service.get_active_session(worker_id=worker.id) is None
        assert patched_db.records("checkins") == []

    async def test_snapshot_survives_site_edit(self, make_site, make_worker, check_in, patched_db):
        """Moving the site after check-in does not move the session's fence."""
        site = await make_site()
        worker = await make_worker(site)
        await check_in(worker, site)

        await patched_db.update_record(collection="sites", record_id=site.id, data={"latitude": 40.0})

        session = await checkin_service.get_active_session(worker_id=worker.id)
        assert session.fence.center.latitude == 33.0

    async def test_require_checkin_at_returns_session(self, make_site, make_worker, check_in):
        site = await make_site()
        worker = await make_worker(site)
        await check_in(worker, site)

        session = await checkin_service.require_checkin_at(worker_id=worker.id, site_id=site.id)

        assert session.site_id == site.id

    async def test_require_checkin_at_other_site(self, make_site, make_worker, check_in):
        site = await make_site()
        other = await make_site(name="Uptown")
        worker = await make_worker(site)
        await check_in(worker, other)

        with pytest.raises(AuthorizationError, match="Check-in required at the store to continue."):
            await checkin_service.require_checkin_at(worker_id=worker.id, site_id=site.id)
