"""Sites module: stores, workers, check-in sessions and notifications."""

from siteops.core.module import ScheduledJob


class SitesModule:
    """Sites module for multi-store location data.

    Provides:
    - Site records with optional geofence center and radius
    - Worker records with roles and home site
    - Check-in sessions (one per worker)
    - Notification records for task events
    """

    @property
    def name(self) -> str:
        """Module name (unique identifier)."""
        return "sites"

    @property
    def description(self) -> str:
        """Module description (human-readable)."""
        return "Stores, workers, presence and notifications"

    def get_table_schemas(self) -> dict[str, str]:
        """Return table schemas for this module."""
        return {
            "sites": """CREATE TABLE IF NOT EXISTS sites (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        name TEXT NOT NULL,
        address TEXT,
        latitude REAL,
        longitude REAL,
        geofence_radius_m REAL,
        is_active INTEGER NOT NULL DEFAULT 1
    )""",
            "workers": """CREATE TABLE IF NOT EXISTS workers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        name TEXT NOT NULL,
        email TEXT,
        role TEXT NOT NULL DEFAULT 'employee'
            CHECK (role IN ('master_admin', 'admin', 'store_manager', 'employee')),
        site_id INTEGER REFERENCES sites(id),
        is_active INTEGER NOT NULL DEFAULT 1
    )""",
            "checkins": """CREATE TABLE IF NOT EXISTS checkins (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        worker_id INTEGER NOT NULL UNIQUE REFERENCES workers(id),
        site_id INTEGER NOT NULL REFERENCES sites(id),
        site_name TEXT NOT NULL,
        fence_latitude REAL,
        fence_longitude REAL,
        fence_radius_m REAL,
        started_at TEXT NOT NULL,
        expires_at TEXT NOT NULL
    )""",
            "notifications": """CREATE TABLE IF NOT EXISTS notifications (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        worker_id INTEGER NOT NULL REFERENCES workers(id),
        type TEXT NOT NULL,
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        data TEXT,
        is_read INTEGER NOT NULL DEFAULT 0
    )""",
        }

    def get_indexes(self) -> list[str]:
        """Return indexes for this module's tables."""
        return [
            "CREATE INDEX IF NOT EXISTS idx_workers_site_id ON workers (site_id)",
            "CREATE INDEX IF NOT EXISTS idx_workers_role ON workers (role)",
            "CREATE INDEX IF NOT EXISTS idx_checkins_site_id ON checkins (site_id)",
            "CREATE INDEX IF NOT EXISTS idx_notifications_worker_id ON notifications (worker_id)",
        ]

    def get_scheduled_jobs(self) -> list[ScheduledJob]:
        """Return scheduled jobs for this module."""
        return []
