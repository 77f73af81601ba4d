"""Recurrence expansion for task series."""

from datetime import datetime

from croniter import croniter
from dateutil.relativedelta import relativedelta

from siteops.core.config import Constants
from siteops.domain.create_models import RecurrenceFrequency, RecurrenceRule


def step_for(rule: RecurrenceRule) -> relativedelta:
    """Return the offset between consecutive occurrences of a calendar rule."""
    if rule.frequency == RecurrenceFrequency.DAILY:
        return relativedelta(days=rule.interval)
    if rule.frequency == RecurrenceFrequency.WEEKLY:
        return relativedelta(weeks=rule.interval)
    if rule.frequency == RecurrenceFrequency.MONTHLY:
        return relativedelta(months=rule.interval)
    msg = f"No fixed step for recurrence frequency: {rule.frequency}"
    raise ValueError(msg)


def expand_occurrences(*, rule: RecurrenceRule, start: datetime) -> list[datetime]:
    """Return the scheduled times of every occurrence, starting with `start`.

    Calendar rules advance by `interval` days/weeks/months from the first
    occurrence, so month-end anchors clamp rather than drift. Custom rules
    take every `interval`-th fire time of the cron expression after `start`.

    Raises:
        ValueError: If the rule cannot be expanded
    """
    if rule.count > Constants.MAX_RECURRENCE_OCCURRENCES:
        msg = f"Recurrence count {rule.count} exceeds limit of {Constants.MAX_RECURRENCE_OCCURRENCES}"
        raise ValueError(msg)

    if rule.frequency == RecurrenceFrequency.CUSTOM:
        if not rule.cron or not croniter.is_valid(rule.cron):
            msg = f"Invalid recurrence pattern: {rule.cron!r}"
            raise ValueError(msg)
        occurrences = [start]
        cron = croniter(rule.cron, start)
        while len(occurrences) < rule.count:
            for _ in range(rule.interval):
                next_time = cron.get_next(datetime)
            occurrences.append(next_time)
        return occurrences

    step = step_for(rule)
    return [start + step * index for index in range(rule.count)]
