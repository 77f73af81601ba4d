"""Pytest configuration and shared fixtures."""

import pytest

from siteops.core.config import settings


@pytest.fixture(autouse=True)
def location_gating(monkeypatch):
    """Run every test with check-in and geofence enforcement switched on."""
    monkeypatch.setattr(settings, "require_checkin", True)
    monkeypatch.setattr(settings, "enforce_geofence", True)
    monkeypatch.setattr(settings, "default_geofence_radius_m", 100.0)
    monkeypatch.setattr(settings, "checkin_session_hours", 12)
