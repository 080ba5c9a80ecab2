"""Django admin configuration for rota app."""

from django.contrib import admin

from .models import PendingAssignment


@admin.register(PendingAssignment)
class PendingAssignmentAdmin(admin.ModelAdmin):
    """Admin for inspecting queued (unsaved) board creates."""
    list_display = ["created_at", "user", "employee_id", "date", "template_id", "start_minutes", "end_minutes"]
    list_filter = ["date"]
    search_fields = ["user__username", "employee_id", "template_id"]
    readonly_fields = ["created_at"]
    ordering = ["-created_at"]
