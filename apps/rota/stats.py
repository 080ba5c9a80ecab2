"""
Figures and filters computed from assignment lists.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from apps.core.timeutils import overlaps

from .entities import Assignment, AvailabilityRequest, RequestStatus, ShiftTemplate

UNKNOWN_TEMPLATE_COLOR = "#E5E7EB"
RECENT_LIMIT = 5


@dataclass
class TemplateShare:
    template_id: str
    name: str
    color: str
    count: int
    percent: int


def is_active(assignment: Assignment, now: datetime) -> bool:
    """
    Whether the shift is running at ``now``.

    A window ending before it starts runs past midnight, so yesterday's
    overnight shifts still count until they end.
    """
    today = now.date()
    minute = now.hour * 60 + now.minute
    if assignment.date == today:
        if assignment.crosses_midnight:
            return minute >= assignment.start_minutes
        return assignment.start_minutes <= minute < assignment.end_minutes
    if assignment.date == today - timedelta(days=1) and assignment.crosses_midnight:
        return minute < assignment.end_minutes
    return False


def active_shift_count(assignments: list[Assignment], now: datetime) -> int:
    return sum(1 for a in assignments if is_active(a, now))


def assignments_on(assignments: list[Assignment], day: date) -> list[Assignment]:
    return sorted((a for a in assignments if a.date == day), key=lambda a: a.start_minutes)


def recent_assignments(assignments: list[Assignment], limit: int = RECENT_LIMIT) -> list[Assignment]:
    """Newest first by creation time; falls back to date and start time."""
    def key(a: Assignment):
        created = a.created_at.isoformat() if a.created_at else ""
        return (created, a.date, a.start_minutes)

    return sorted(assignments, key=key, reverse=True)[:limit]


def shift_distribution(assignments: list[Assignment], templates: list[ShiftTemplate]) -> list[TemplateShare]:
    """Share of template-based assignments per template, largest first."""
    counts = Counter(a.template_id for a in assignments if a.template_id)
    total = sum(counts.values())
    if not total:
        return []

    by_id = {t.id: t for t in templates}
    shares = []
    for template_id, count in counts.items():
        tpl = by_id.get(template_id)
        shares.append(TemplateShare(
            template_id=template_id,
            name=tpl.name if tpl else "Unknown",
            color=(tpl.color if tpl else "") or UNKNOWN_TEMPLATE_COLOR,
            count=count,
            percent=round(count * 100 / total),
        ))
    shares.sort(key=lambda s: s.count, reverse=True)
    return shares


def visible_assignments(
    assignments: list[Assignment], requests: list[AvailabilityRequest], day: date
) -> list[Assignment]:
    """An employee's shifts for ``day``, minus those excused by an approved request."""
    todays = assignments_on(assignments, day)
    approved = [r for r in requests if r.status == RequestStatus.APPROVED and r.date == day]
    if not approved:
        return todays
    if any(r.is_full_day for r in approved):
        return []
    return [
        a
        for a in todays
        if not any(overlaps(a.start_minutes, a.end_minutes, r.start_minutes, r.end_minutes) for r in approved)
    ]
