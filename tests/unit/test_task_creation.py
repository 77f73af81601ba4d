"""Unit tests for task creation, templates and recurring series."""

from datetime import UTC, datetime, timedelta

import pytest

from siteops.core.errors import AuthorizationError, NotFoundError, ValidationError
from siteops.domain.create_models import RecurrenceRule, TaskCreate, TemplateCreate
from siteops.domain.task import AssigneeType, TaskStatus
from siteops.modules.tasks import service as task_service


T0 = datetime(2026, 10, 19, 9, 0, tzinfo=UTC)


@pytest.mark.unit
class TestCreateTask:
    """Tests for create_task function."""

    async def test_single_task(self, store):
        tasks = await task_service.create_task(
            params=TaskCreate(
                site_id=store["site"].id,
                title="Clean spill in aisle 2",
                scheduled_for=T0,
                due_at=T0 + timedelta(minutes=30),
                photo_required=True,
                photo_count=2,
            ),
            created_by=store["manager"].id,
        )

        assert len(tasks) == 1
        task = tasks[0]
        assert task.status == TaskStatus.PENDING
        assert task.origin.kind == "standalone"
        assert task.scheduled_for == T0
        assert task.due_at == T0 + timedelta(minutes=30)
        assert task.photos_uploaded == 0
        assert task.created_by == store["manager"].id

    async def test_naive_times_are_utc(self, store):
        tasks = await task_service.create_task(
            params=TaskCreate(site_id=store["site"].id, title="Open registers", scheduled_for=datetime(2026, 10, 19, 9))
        )

        assert tasks[0].scheduled_for == T0

    async def test_recurring_series(self, store):
        tasks = await task_service.create_task(
            params=TaskCreate(
                site_id=store["site"].id,
                title="Check cooler temperature",
                scheduled_for=T0,
                due_at=T0 + timedelta(hours=1),
                recurrence=RecurrenceRule(frequency="daily", count=3),
            )
        )

        assert [t.origin.sequence_index for t in tasks] == [0, 1, 2]
        assert all(t.origin.kind == "recurrence" for t in tasks)
        assert [t.scheduled_for for t in tasks] == [T0 + timedelta(days=i) for i in range(3)]
        assert [t.due_at - t.scheduled_for for t in tasks] == [timedelta(hours=1)] * 3
        assert len({t.id for t in tasks}) == 3

    async def test_invalid_series_creates_nothing(self, store, patched_db):
        with pytest.raises(ValidationError, match="Invalid recurrence pattern"):
            await task_service.create_task(
                params=TaskCreate(
                    site_id=store["site"].id,
                    title="Bad series",
                    recurrence=RecurrenceRule(frequency="custom", cron="61 * * * *", count=2),
                )
            )

        assert patched_db.records("tasks") == []

    async def test_employee_cannot_create(self, store):
        with pytest.raises(AuthorizationError):
            await task_service.create_task(
                params=TaskCreate(site_id=store["site"].id, title="Sneaky"), created_by=store["alice"].id
            )

    async def test_unknown_site(self, patched_db):
        with pytest.raises(NotFoundError):
            await task_service.create_task(params=TaskCreate(site_id="31337", title="Lost"))

    async def test_unknown_assignee(self, store):
        with pytest.raises(NotFoundError):
            await task_service.create_task(
                params=TaskCreate(site_id=store["site"].id, title="For nobody", assigned_to="31337")
            )


@pytest.mark.unit
class TestTemplates:
    """Tests for template instantiation."""

    async def test_create_from_template(self, store):
        template = await task_service.create_template(
            params=TemplateCreate(title="Morning walkthrough", estimated_duration=45, photo_required=True)
        )

        tasks = await task_service.create_task_from_template(
            template_id=template.id, site_id=store["site"].id, scheduled_for=T0
        )

        task = tasks[0]
        assert task.origin.kind == "template"
        assert task.template_id == template.id
        assert task.title == "Morning walkthrough"
        assert task.photo_required is True
        assert task.estimated_duration == 45
        assert task.due_at == T0 + timedelta(minutes=45)

    async def test_template_assignee_carried_over(self, store):
        template = await task_service.create_template(
            params=TemplateCreate(title="Cash count", assigned_to=store["alice"].id)
        )

        tasks = await task_service.create_task_from_template(template_id=template.id, site_id=store["site"].id)

        assert tasks[0].assignee_type == AssigneeType.SPECIFIC_EMPLOYEE
        assert tasks[0].assigned_to == store["alice"].id

    async def test_recurring_from_template(self, store):
        template = await task_service.create_template(params=TemplateCreate(title="Weekly deep clean"))

        tasks = await task_service.create_task_from_template(
            template_id=template.id,
            site_id=store["site"].id,
            scheduled_for=T0,
            recurrence=RecurrenceRule(frequency="weekly", count=2),
        )

        assert [t.origin.kind for t in tasks] == ["recurrence", "recurrence"]
        assert all(t.template_id == template.id for t in tasks)

    async def test_inactive_template(self, store):
        template = await task_service.create_template(params=TemplateCreate(title="Retired", is_active=False))

        with pytest.raises(ValidationError, match="inactive"):
            await task_service.create_task_from_template(template_id=template.id, site_id=store["site"].id)

    async def test_template_for_other_site(self, store, make_site):
        other = await make_site(name="Uptown")
        template = await task_service.create_template(params=TemplateCreate(title="Uptown only", site_id=other.id))

        with pytest.raises(ValidationError, match="different store"):
            await task_service.create_task_from_template(template_id=template.id, site_id=store["site"].id)

    async def test_unknown_template(self, store):
        with pytest.raises(NotFoundError):
            await task_service.create_task_from_template(template_id="4040", site_id=store["site"].id)


@pytest.mark.unit
class TestEnsureTasksForSiteToday:
    """Tests for ensure_tasks_for_site_today function."""

    async def test_creates_once_per_day(self, store, make_site):
        other = await make_site(name="Uptown")
        await task_service.create_template(params=TemplateCreate(title="Open doors"))
        await task_service.create_template(params=TemplateCreate(title="Uptown only", site_id=other.id))
        await task_service.create_template(params=TemplateCreate(title="Retired", is_active=False))

        first = await task_service.ensure_tasks_for_site_today(site_id=store["site"].id, now=T0)
        second = await task_service.ensure_tasks_for_site_today(site_id=store["site"].id, now=T0 + timedelta(hours=3))

        assert first == 1
        assert second == 0
        tasks = await task_service.list_tasks(site_id=store["site"].id)
        assert [t.title for t in tasks] == ["Open doors"]

    async def test_next_day_creates_again(self, store):
        await task_service.create_template(params=TemplateCreate(title="Open doors"))

        await task_service.ensure_tasks_for_site_today(site_id=store["site"].id, now=T0)
        created = await task_service.ensure_tasks_for_site_today(site_id=store["site"].id, now=T0 + timedelta(days=1))

        assert created == 1
        assert len(await task_service.list_tasks(site_id=store["site"].id)) == 2
