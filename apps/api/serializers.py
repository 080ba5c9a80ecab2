"""
Serializers for the scheduling backend's JSON.

The backend speaks camelCase; entities use snake_case. Each field is declared
under its wire name with ``source`` pointing at the entity attribute, so the
same serializer decodes backend payloads (``decode``) and re-encodes local
copies for the session snapshot (``encode``).
"""

from rest_framework import serializers

from apps.core.client import MalformedPayload
from apps.core.timeutils import minutes_to_hours, parse_day
from apps.rota.entities import (
    Assignment,
    AvailabilityRequest,
    Department,
    Employee,
    EmployeeTotals,
    PendingCreate,
    ReportSummary,
    Roster,
    ShiftTemplate,
    SwapRequest,
    SwapSide,
    TemplateTotals,
)


class CalendarDateField(serializers.Field):
    """Accepts ``YYYY-MM-DD`` or a full ISO datetime; keeps the calendar date."""

    default_error_messages = {"invalid": "Expected an ISO date or datetime."}

    def to_internal_value(self, data):
        if not isinstance(data, str):
            self.fail("invalid")
        day = parse_day(data)
        if day is None:
            self.fail("invalid")
        return day

    def to_representation(self, value):
        return value.isoformat()


def _optional(field_cls, **kwargs):
    return field_cls(default=None, allow_null=True, **kwargs)


class EntitySerializer(serializers.Serializer):
    """Base: ``save()`` builds the entity instead of touching a database."""

    entity = None
    # Fields the backend may send as null that we keep as ""
    blank_if_null = ()

    def validate(self, attrs):
        for name in self.blank_if_null:
            if attrs.get(name) is None:
                attrs[name] = ""
        return attrs

    def create(self, validated_data):
        return self.entity(**validated_data)


class DepartmentSerializer(EntitySerializer):
    entity = Department
    blank_if_null = ("color", "description")

    id = serializers.CharField()
    name = serializers.CharField()
    color = _optional(serializers.CharField, allow_blank=True)
    description = _optional(serializers.CharField, allow_blank=True)


class EmployeeSerializer(EntitySerializer):
    entity = Employee

    id = serializers.CharField()
    email = serializers.CharField()
    fullName = serializers.CharField(source="full_name")
    role = serializers.CharField(default="EMPLOYEE")
    departmentId = _optional(serializers.CharField, source="department_id")
    active = serializers.BooleanField(default=True)


class ShiftTemplateSerializer(EntitySerializer):
    entity = ShiftTemplate
    blank_if_null = ("color",)

    id = serializers.CharField()
    departmentId = serializers.CharField(source="department_id")
    code = serializers.CharField()
    name = serializers.CharField()
    startMinutes = serializers.IntegerField(source="start_minutes")
    endMinutes = serializers.IntegerField(source="end_minutes")
    color = _optional(serializers.CharField, allow_blank=True)


class RosterSerializer(EntitySerializer):
    entity = Roster

    id = serializers.CharField()
    departmentId = serializers.CharField(source="department_id")
    startDate = CalendarDateField(source="start_date")
    endDate = CalendarDateField(source="end_date")
    status = serializers.CharField(default="DRAFT")
    locked = serializers.BooleanField(default=False)
    version = _optional(serializers.IntegerField)
    publishedAt = _optional(serializers.DateTimeField, source="published_at")


class AssignmentSerializer(EntitySerializer):
    entity = Assignment

    id = serializers.CharField()
    rosterId = serializers.CharField(source="roster_id")
    employeeId = serializers.CharField(source="employee_id")
    date = CalendarDateField()
    startMinutes = serializers.IntegerField(source="start_minutes")
    endMinutes = serializers.IntegerField(source="end_minutes")
    templateId = _optional(serializers.CharField, source="template_id")
    createdAt = _optional(serializers.DateTimeField, source="created_at")


class PendingCreateSerializer(EntitySerializer):
    entity = PendingCreate

    employeeId = serializers.CharField(source="employee_id")
    date = CalendarDateField()
    templateId = _optional(serializers.CharField, source="template_id")
    startMinutes = _optional(serializers.IntegerField, source="start_minutes")
    endMinutes = _optional(serializers.IntegerField, source="end_minutes")


class AvailabilityRequestSerializer(EntitySerializer):
    entity = AvailabilityRequest

    id = serializers.CharField()
    employeeId = serializers.CharField(source="employee_id")
    date = CalendarDateField()
    status = serializers.CharField(default="PENDING")
    startMinutes = _optional(serializers.IntegerField, source="start_minutes")
    endMinutes = _optional(serializers.IntegerField, source="end_minutes")
    note = _optional(serializers.CharField, allow_blank=True)
    createdAt = _optional(serializers.DateTimeField, source="created_at")
    decidedAt = _optional(serializers.DateTimeField, source="decided_at")
    employee = _optional(serializers.DictField)


class SwapSideSerializer(serializers.Serializer):
    id = serializers.CharField()
    date = CalendarDateField()
    startMinutes = serializers.IntegerField(source="start_minutes")
    endMinutes = serializers.IntegerField(source="end_minutes")
    employeeId = serializers.CharField(source="employee_id")
    employee = _optional(serializers.DictField)


class SwapRequestSerializer(EntitySerializer):
    entity = SwapRequest

    id = serializers.CharField()
    status = serializers.CharField()
    requestedById = serializers.CharField(source="requested_by_id")
    requestedBy = _optional(serializers.DictField, source="requested_by")
    fromAssignment = SwapSideSerializer(source="from_assignment")
    toAssignment = SwapSideSerializer(source="to_assignment")
    createdAt = _optional(serializers.DateTimeField, source="created_at")
    decidedAt = _optional(serializers.DateTimeField, source="decided_at")

    def create(self, validated_data):
        validated_data["from_assignment"] = SwapSide(**validated_data["from_assignment"])
        validated_data["to_assignment"] = SwapSide(**validated_data["to_assignment"])
        return super().create(validated_data)


# =============================================================================
# Report summary
# =============================================================================


class _RangeSerializer(serializers.Serializer):
    startDate = _optional(CalendarDateField)
    endDate = _optional(CalendarDateField)


class _TotalsSerializer(serializers.Serializer):
    totalAssignments = serializers.IntegerField(default=0)
    totalMinutes = _optional(serializers.FloatField)
    totalHours = _optional(serializers.FloatField)


class _EmployeeRowSerializer(serializers.Serializer):
    employeeId = serializers.CharField()
    fullName = serializers.CharField()
    departmentId = _optional(serializers.CharField)
    minutes = _optional(serializers.FloatField)
    hours = _optional(serializers.FloatField)
    overtimeMinutes = _optional(serializers.FloatField)
    overtimeHours = _optional(serializers.FloatField)
    assignmentCount = serializers.IntegerField(default=0)


class _TemplateRowSerializer(serializers.Serializer):
    templateId = serializers.CharField()
    code = serializers.CharField()
    name = serializers.CharField()
    departmentId = _optional(serializers.CharField)
    count = serializers.IntegerField(default=0)
    minutes = _optional(serializers.FloatField)
    hours = _optional(serializers.FloatField)


def _hours(row: dict, hours_key: str, minutes_key: str) -> float:
    if row.get(hours_key) is not None:
        return row[hours_key]
    return minutes_to_hours(row.get(minutes_key))


class ReportSummarySerializer(serializers.Serializer):
    range = _RangeSerializer(default=dict)
    totals = _TotalsSerializer(default=dict)
    byEmployee = _EmployeeRowSerializer(many=True, default=list)
    byTemplate = _TemplateRowSerializer(many=True, default=list)

    def create(self, validated_data):
        totals = validated_data.get("totals") or {}
        span = validated_data.get("range") or {}
        employees = validated_data.get("byEmployee") or []
        templates = validated_data.get("byTemplate") or []

        by_employee = [
            EmployeeTotals(
                employee_id=row["employeeId"],
                full_name=row["fullName"],
                department_id=row.get("departmentId"),
                assignment_count=row.get("assignmentCount", 0),
                hours=_hours(row, "hours", "minutes"),
                overtime_hours=_hours(row, "overtimeHours", "overtimeMinutes"),
            )
            for row in employees
        ]
        by_template = [
            TemplateTotals(
                template_id=row["templateId"],
                code=row["code"],
                name=row["name"],
                department_id=row.get("departmentId"),
                count=row.get("count", 0),
                hours=_hours(row, "hours", "minutes"),
            )
            for row in templates
        ]

        overtime_hours = sum(row.get("overtimeHours") or 0 for row in employees)
        if not overtime_hours:
            overtime_hours = minutes_to_hours(sum(row.get("overtimeMinutes") or 0 for row in employees))

        return ReportSummary(
            start_date=span.get("startDate"),
            end_date=span.get("endDate"),
            total_assignments=totals.get("totalAssignments", 0),
            total_hours=_hours(totals, "totalHours", "totalMinutes"),
            overtime_hours=overtime_hours,
            by_employee=by_employee,
            by_template=by_template,
        )


# =============================================================================
# Codec helpers
# =============================================================================


def decode(serializer_class, payload, *, many: bool = False):
    """Validate backend JSON and build entities from it."""
    if payload is None:
        payload = [] if many else {}
    serializer = serializer_class(data=payload, many=many)
    if not serializer.is_valid():
        raise MalformedPayload(serializer_class.__name__, serializer.errors)
    return serializer.save()


def encode(serializer_class, instance, *, many: bool = False):
    """Render entities back to backend-shaped JSON."""
    return serializer_class(instance, many=many).data
