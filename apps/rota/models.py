# models.py (Django 5.x) - Rota local state
#
# Domain data lives in the scheduling backend. The only thing kept here is
# each user's queue of unsaved ("pending") assignment creates per week.

from __future__ import annotations

from datetime import date, timedelta

from django.conf import settings
from django.db import models, transaction

from .entities import PendingCreate


class PendingAssignmentQuerySet(models.QuerySet):
    def for_week(self, user, week_start: date):
        return self.filter(user=user, date__gte=week_start, date__lte=week_start + timedelta(days=6))


class PendingAssignment(models.Model):
    """
    One queued create on the schedule board.

    Either ``template_id`` or the ``start_minutes``/``end_minutes`` window is set.
    """
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="pending_assignments")
    employee_id = models.CharField(max_length=64)
    date = models.DateField()
    template_id = models.CharField(max_length=64, blank=True, default="")
    start_minutes = models.PositiveSmallIntegerField(null=True, blank=True)
    end_minutes = models.PositiveSmallIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = PendingAssignmentQuerySet.as_manager()

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        what = self.template_id or f"{self.start_minutes}-{self.end_minutes}"
        return f"{self.user} {self.employee_id} {self.date} {what}"

    def to_pending(self) -> PendingCreate:
        return PendingCreate(
            employee_id=self.employee_id,
            date=self.date,
            template_id=self.template_id or None,
            start_minutes=self.start_minutes,
            end_minutes=self.end_minutes,
        )

    @classmethod
    def load(cls, user, week_start: date) -> list[PendingCreate]:
        return [row.to_pending() for row in cls.objects.for_week(user, week_start)]

    @classmethod
    def sync(cls, user, week_start: date, pending: list[PendingCreate]) -> None:
        """Replace the user's stored queue for the week with ``pending``."""
        week_end = week_start + timedelta(days=6)
        with transaction.atomic():
            cls.objects.for_week(user, week_start).delete()
            cls.objects.bulk_create(
                cls(
                    user=user,
                    employee_id=p.employee_id,
                    date=p.date,
                    template_id=p.template_id or "",
                    start_minutes=p.start_minutes,
                    end_minutes=p.end_minutes,
                )
                for p in pending
                if week_start <= p.date <= week_end
            )
