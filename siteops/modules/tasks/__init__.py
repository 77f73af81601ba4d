"""Tasks module for location-gated task execution."""

from siteops.core.module import ScheduledJob


class TasksModule:
    """Tasks module for store task management.

    Provides:
    - Task creation, including templates and recurring series
    - Compare-and-swap claiming and the task state machine
    - Proof photo tracking and the completion photo gate
    - Claim transfers between workers
    - Scheduled overdue sweep and daily template instantiation
    """

    @property
    def name(self) -> str:
        """Module name (unique identifier)."""
        return "tasks"

    @property
    def description(self) -> str:
        """Module description (human-readable)."""
        return "Store task lifecycle with claims, geofencing, proof photos and transfers"

    def get_table_schemas(self) -> dict[str, str]:
        """Return table schemas for this module."""
        return {
            "task_templates": """CREATE TABLE IF NOT EXISTS task_templates (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        title TEXT NOT NULL,
        description TEXT,
        site_id INTEGER REFERENCES sites(id),
        estimated_duration INTEGER,
        photo_required INTEGER NOT NULL DEFAULT 0,
        photo_count INTEGER NOT NULL DEFAULT 1,
        assigned_to INTEGER REFERENCES workers(id),
        priority TEXT NOT NULL DEFAULT 'normal' CHECK (priority IN ('low', 'normal', 'high')),
        is_active INTEGER NOT NULL DEFAULT 1
    )""",
            "tasks": """CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        site_id INTEGER NOT NULL REFERENCES sites(id),
        origin_kind TEXT NOT NULL DEFAULT 'standalone'
            CHECK (origin_kind IN ('standalone', 'template', 'recurrence')),
        template_id INTEGER REFERENCES task_templates(id),
        sequence_index INTEGER,
        title TEXT NOT NULL,
        description TEXT,
        priority TEXT NOT NULL DEFAULT 'normal' CHECK (priority IN ('low', 'normal', 'high')),
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'available', 'claimed', 'in_progress', 'completed', 'overdue')),
        assignee_type TEXT NOT NULL DEFAULT 'store_wide'
            CHECK (assignee_type IN ('store_wide', 'specific_employee')),
        assigned_to INTEGER REFERENCES workers(id),
        claimed_by INTEGER REFERENCES workers(id),
        completed_by INTEGER REFERENCES workers(id),
        created_by INTEGER REFERENCES workers(id),
        scheduled_for TEXT,
        due_at TEXT,
        claimed_at TEXT,
        started_at TEXT,
        completed_at TEXT,
        estimated_duration INTEGER,
        actual_duration INTEGER,
        photo_required INTEGER NOT NULL DEFAULT 0,
        photo_count INTEGER NOT NULL DEFAULT 1 CHECK (photo_count >= 0),
        photos_uploaded INTEGER NOT NULL DEFAULT 0 CHECK (photos_uploaded >= 0),
        geofence_latitude REAL,
        geofence_longitude REAL,
        geofence_radius_m REAL,
        notes TEXT
    )""",
            "task_photos": """CREATE TABLE IF NOT EXISTS task_photos (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        task_id INTEGER NOT NULL REFERENCES tasks(id),
        task_item_id INTEGER,
        site_id INTEGER NOT NULL REFERENCES sites(id),
        uploaded_by INTEGER NOT NULL REFERENCES workers(id),
        latitude REAL,
        longitude REAL,
        filename TEXT,
        mime_type TEXT,
        size_bytes INTEGER NOT NULL,
        uploaded_at TEXT NOT NULL
    )""",
            "task_transfers": """CREATE TABLE IF NOT EXISTS task_transfers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created TEXT NOT NULL DEFAULT (datetime('now')),
        updated TEXT NOT NULL DEFAULT (datetime('now')),
        task_id INTEGER NOT NULL REFERENCES tasks(id),
        from_worker_id INTEGER NOT NULL REFERENCES workers(id),
        to_worker_id INTEGER NOT NULL REFERENCES workers(id),
        reason TEXT,
        transferred_at TEXT NOT NULL
    )""",
        }

    def get_indexes(self) -> list[str]:
        """Return indexes for this module's tables."""
        return [
            "CREATE INDEX IF NOT EXISTS idx_tasks_site_id ON tasks (site_id)",
            "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks (status)",
            "CREATE INDEX IF NOT EXISTS idx_tasks_claimed_by ON tasks (claimed_by)",
            "CREATE INDEX IF NOT EXISTS idx_tasks_due_at ON tasks (due_at)",
            "CREATE INDEX IF NOT EXISTS idx_tasks_template_id ON tasks (template_id)",
            "CREATE INDEX IF NOT EXISTS idx_task_photos_task_id ON task_photos (task_id)",
            "CREATE INDEX IF NOT EXISTS idx_task_transfers_task_id ON task_transfers (task_id)",
        ]

    def get_scheduled_jobs(self) -> list[ScheduledJob]:
        """Return scheduled jobs for this module."""
        from siteops.modules.tasks import scheduler_jobs

        return scheduler_jobs.get_scheduled_jobs()
