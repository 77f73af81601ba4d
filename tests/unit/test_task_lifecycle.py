"""Unit tests for starting, completing and overdue marking of tasks."""

from datetime import UTC, datetime, timedelta

import pytest

from siteops.core.errors import AuthorizationError, ConflictError, GeofenceViolation, ValidationError
from siteops.domain.notification import Notification, NotificationType
from siteops.domain.task import TaskStatus
from siteops.modules.tasks import service as task_service
from siteops.modules.tasks import state_machine
from tests.unit.conftest import INSIDE_POINT, OUTSIDE_POINT


T0 = datetime(2026, 10, 19, 9, 0, tzinfo=UTC)


@pytest.fixture
def clock(monkeypatch):
    """Controllable time source for task timestamps."""
    current = {"now": T0}
    monkeypatch.setattr(state_machine, "now_utc", lambda: current["now"])
    return current


@pytest.mark.unit
class TestStateMachine:
    """Tests for allowed transitions."""

    def test_completed_is_terminal(self):
        for status in TaskStatus:
            assert not state_machine.can_transition(from_status=TaskStatus.COMPLETED, to_status=status)

    def test_overdue_can_only_complete(self):
        assert state_machine.can_transition(from_status=TaskStatus.OVERDUE, to_status=TaskStatus.COMPLETED)
        assert not state_machine.can_transition(from_status=TaskStatus.OVERDUE, to_status=TaskStatus.CLAIMED)

    async def test_disallowed_transition_raises(self):
        with pytest.raises(ValueError, match="Invalid transition"):
            await state_machine.transition(
                task_id="1", from_statuses={TaskStatus.COMPLETED}, to_status=TaskStatus.CLAIMED
            )


@pytest.mark.unit
class TestStartTask:
    """Tests for start_task function."""

    async def test_start_stamps_once(self, store, make_task, clock):
        task = await make_task(store["site"])
        await task_service.claim_task(task_id=task.id, worker_id=store["alice"].id)

        started = await task_service.start_task(task_id=task.id, worker_id=store["alice"].id)
        clock["now"] = T0 + timedelta(minutes=5)
        again = await task_service.start_task(task_id=task.id, worker_id=store["alice"].id)

        assert started.status == TaskStatus.IN_PROGRESS
        assert started.started_at == T0
        assert again.started_at == T0

    async def test_only_claimant_starts(self, store, make_task):
        task = await make_task(store["site"])
        await task_service.claim_task(task_id=task.id, worker_id=store["alice"].id)

        with pytest.raises(AuthorizationError):
            await task_service.start_task(task_id=task.id, worker_id=store["bob"].id)

    async def test_unclaimed_cannot_start(self, store, make_task):
        task = await make_task(store["site"])

        with pytest.raises(AuthorizationError):
            await task_service.start_task(task_id=task.id, worker_id=store["alice"].id)


@pytest.mark.unit
class TestCompleteTask:
    """Tests for complete_task function."""

    async def test_duration_rounds_half_up(self, store, make_task, clock):
        task = await make_task(store["site"])
        await task_service.claim_task(task_id=task.id, worker_id=store["alice"].id)
        await task_service.start_task(task_id=task.id, worker_id=store["alice"].id)

        clock["now"] = T0 + timedelta(seconds=150)
        completed = await task_service.complete_task(
            task_id=task.id, worker_id=store["alice"].id, notes="Done", point=INSIDE_POINT
        )

        assert completed.status == TaskStatus.COMPLETED
        assert completed.completed_at == T0 + timedelta(seconds=150)
        assert completed.completed_by == store["alice"].id
        assert completed.actual_duration == 3
        assert completed.notes == "Done"

    @pytest.mark.parametrize(("seconds", "minutes"), [(0, 0), (29, 0), (30, 1), (89, 1), (90, 2), (149, 2)])
    def test_duration_minutes(self, seconds, minutes):
        assert task_service.duration_minutes(started_at=T0, completed_at=T0 + timedelta(seconds=seconds)) == minutes

    async def test_without_start_has_no_duration(self, store, make_task):
        task = await make_task(store["site"])
        await task_service.claim_task(task_id=task.id, worker_id=store["alice"].id)

        completed = await task_service.complete_task(task_id=task.id, worker_id=store["alice"].id, point=INSIDE_POINT)

        assert completed.actual_duration is None

    async def test_notifies_managers(self, store, make_task, patched_db):
        task = await make_task(store["site"])
        await task_service.claim_task(task_id=task.id, worker_id=store["alice"].id)

        await task_service.complete_task(task_id=task.id, worker_id=store["alice"].id, point=INSIDE_POINT)

        types = [Notification(**r).type for r in patched_db.records("notifications")]
        assert types == [NotificationType.TASK_CLAIMED, NotificationType.TASK_COMPLETED]

    async def test_other_employee_cannot_complete(self, store, make_task):
        task = await make_task(store["site"])
        await task_service.claim_task(task_id=task.id, worker_id=store["alice"].id)

        with pytest.raises(AuthorizationError):
            await task_service.complete_task(task_id=task.id, worker_id=store["bob"].id, point=INSIDE_POINT)

    async def test_manager_force_completes_unclaimed(self, store, make_task):
        task = await make_task(store["site"])

        completed = await task_service.complete_task(
            task_id=task.id, worker_id=store["manager"].id, point=INSIDE_POINT
        )

        assert completed.status == TaskStatus.COMPLETED
        assert completed.completed_by == store["manager"].id
        assert completed.claimed_by is None

    async def test_complete_twice_conflicts(self, store, make_task):
        task = await make_task(store["site"])
        await task_service.claim_task(task_id=task.id, worker_id=store["alice"].id)
        await task_service.complete_task(task_id=task.id, worker_id=store["alice"].id, point=INSIDE_POINT)

        with pytest.raises(ConflictError):
            await task_service.complete_task(task_id=task.id, worker_id=store["alice"].id, point=INSIDE_POINT)

    async def test_location_required(self, store, make_task):
        task = await make_task(store["site"])
        await task_service.claim_task(task_id=task.id, worker_id=store["alice"].id)

        with pytest.raises(GeofenceViolation, match="Location required"):
            await task_service.complete_task(task_id=task.id, worker_id=store["alice"].id)

    async def test_outside_fence_leaves_task_open(self, store, make_task):
        task = await make_task(store["site"])
        await task_service.claim_task(task_id=task.id, worker_id=store["alice"].id)

        with pytest.raises(GeofenceViolation):
            await task_service.complete_task(task_id=task.id, worker_id=store["alice"].id, point=OUTSIDE_POINT)

        current = await task_service.get_task(task_id=task.id)
        assert current.status == TaskStatus.CLAIMED

    async def test_stale_claimant_conflicts(self, store, make_task, patched_db):
        """A completion based on an outdated claimant is rejected by the conditional write."""
        task = await make_task(store["site"])
        await task_service.claim_task(task_id=task.id, worker_id=store["alice"].id)

        result = await state_machine.transition(
            task_id=task.id,
            from_statuses={TaskStatus.CLAIMED},
            to_status=TaskStatus.COMPLETED,
            extra_filter=state_machine.claimed_by_filter(store["bob"].id),
        )

        assert result is None

    async def test_overdue_task_can_complete(self, store, make_task):
        task = await make_task(
            store["site"], scheduled_for=T0 - timedelta(hours=2), due_at=T0 - timedelta(hours=1)
        )
        await task_service.claim_task(task_id=task.id, worker_id=store["alice"].id)
        await task_service.mark_overdue(task_id=task.id, now=T0)

        completed = await task_service.complete_task(task_id=task.id, worker_id=store["alice"].id, point=INSIDE_POINT)

        assert completed.status == TaskStatus.COMPLETED


@pytest.mark.unit
class TestMarkOverdue:
    """Tests for overdue marking."""

    async def test_mark_overdue_is_idempotent(self, store, make_task):
        task = await make_task(store["site"], scheduled_for=T0 - timedelta(hours=2), due_at=T0 - timedelta(hours=1))

        first = await task_service.mark_overdue(task_id=task.id, now=T0)
        second = await task_service.mark_overdue(task_id=task.id, now=T0)

        assert first.status == TaskStatus.OVERDUE
        assert second.status == TaskStatus.OVERDUE
        assert second.updated == first.updated

    async def test_not_yet_due(self, store, make_task):
        task = await make_task(store["site"], scheduled_for=T0, due_at=T0 + timedelta(hours=1))

        with pytest.raises(ValidationError, match="not past due"):
            await task_service.mark_overdue(task_id=task.id, now=T0)

    async def test_completed_cannot_become_overdue(self, store, make_task):
        task = await make_task(store["site"], scheduled_for=T0 - timedelta(hours=2), due_at=T0 - timedelta(hours=1))
        await task_service.complete_task(task_id=task.id, worker_id=store["manager"].id, point=INSIDE_POINT)

        with pytest.raises(ConflictError):
            await task_service.mark_overdue(task_id=task.id, now=T0)

    async def test_overdue_task_cannot_be_claimed(self, store, make_task):
        task = await make_task(store["site"], scheduled_for=T0 - timedelta(hours=2), due_at=T0 - timedelta(hours=1))
        await task_service.mark_overdue(task_id=task.id, now=T0)

        with pytest.raises(ConflictError):
            await task_service.claim_task(task_id=task.id, worker_id=store["alice"].id)

    async def test_sweep_marks_only_past_due_open_tasks(self, store, make_task):
        late = await make_task(store["site"], scheduled_for=T0 - timedelta(hours=3), due_at=T0 - timedelta(hours=1))
        late_claimed = await make_task(
            store["site"], scheduled_for=T0 - timedelta(hours=3), due_at=T0 - timedelta(minutes=1)
        )
        await task_service.claim_task(task_id=late_claimed.id, worker_id=store["alice"].id)
        on_time = await make_task(store["site"], scheduled_for=T0, due_at=T0 + timedelta(hours=1))
        no_due = await make_task(store["site"], scheduled_for=T0 - timedelta(hours=3))

        marked = await task_service.mark_overdue_tasks(now=T0)

        assert marked == 2
        statuses = {t.id: t.status for t in await task_service.list_tasks(site_id=store["site"].id)}
        assert statuses[late.id] == TaskStatus.OVERDUE
        assert statuses[late_claimed.id] == TaskStatus.OVERDUE
        assert statuses[on_time.id] == TaskStatus.PENDING
        assert statuses[no_due.id] == TaskStatus.PENDING

        assert await task_service.mark_overdue_tasks(now=T0) == 0

    async def test_overdue_keeps_claimant(self, store, make_task):
        task = await make_task(store["site"], scheduled_for=T0 - timedelta(hours=2), due_at=T0 - timedelta(hours=1))
        await task_service.claim_task(task_id=task.id, worker_id=store["alice"].id)

        overdue = await task_service.mark_overdue(task_id=task.id, now=T0)

        assert overdue.claimed_by == store["alice"].id
