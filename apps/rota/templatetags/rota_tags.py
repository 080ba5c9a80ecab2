"""Template filters for the scheduling screens."""

from django import template

from apps.core.timeutils import format_window, to_hhmm

register = template.Library()


@register.filter
def hhmm(minutes):
    """Minutes since midnight as HH:mm; blank for None."""
    if minutes is None or minutes == "":
        return ""
    return to_hhmm(minutes)


@register.filter
def window(assignment):
    return format_window(assignment.start_minutes, assignment.end_minutes)


@register.filter
def get_item(mapping, key):
    if not mapping:
        return ""
    return mapping.get(key, "")
