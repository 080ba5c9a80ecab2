"""URL configuration for the Rota screens."""

from django.urls import path

from . import schedule, views

app_name = "rota"

urlpatterns = [
    path("", views.home, name="home"),
    path("dashboard/", views.dashboard, name="dashboard"),
    # Departments
    path("departments/", views.department_list, name="departments"),
    path("departments/add/", views.department_add, name="department_add"),
    path("departments/<str:pk>/edit/", views.department_edit, name="department_edit"),
    path("departments/<str:pk>/delete/", views.department_delete, name="department_delete"),
    # Employees
    path("employees/", views.employee_list, name="employees"),
    path("employees/add/", views.employee_add, name="employee_add"),
    path("employees/<str:pk>/edit/", views.employee_edit, name="employee_edit"),
    path("employees/<str:pk>/delete/", views.employee_delete, name="employee_delete"),
    path("employees/<str:pk>/password/", views.employee_password, name="employee_password"),
    # Shift templates
    path("templates/", views.template_list, name="templates"),
    path("templates/add/", views.template_add, name="template_add"),
    path("templates/<str:pk>/edit/", views.template_edit, name="template_edit"),
    path("templates/<str:pk>/delete/", views.template_delete, name="template_delete"),
    # Schedule board
    path("schedule/", schedule.schedule, name="schedule"),
    path("schedule/pending/add/", schedule.pending_add, name="pending_add"),
    path("schedule/pending/remove/", schedule.pending_remove, name="pending_remove"),
    path("schedule/pending/save/", schedule.pending_save, name="pending_save"),
    path("schedule/assignments/add/", schedule.assignment_add, name="assignment_add"),
    path("schedule/assignments/<str:pk>/delete/", schedule.assignment_delete, name="assignment_delete"),
    path("schedule/assignments/<str:pk>/move/", schedule.assignment_move, name="assignment_move"),
    path("schedule/assignments/<str:pk>/swap/", schedule.swap_candidates, name="swap_candidates"),
    path("schedule/assignments/<str:pk>/swap/request/", schedule.swap_request, name="swap_request"),
    path("schedule/publish/", schedule.roster_publish, name="roster_publish"),
    path("schedule/clone/", schedule.roster_clone, name="roster_clone"),
    # Availability requests
    path("availability/", views.availability_list, name="availability"),
    path("availability/<str:pk>/<str:action>/", views.availability_decide, name="availability_decide"),
    # Swap requests
    path("swaps/", views.swap_list, name="swaps"),
    path("swaps/<str:pk>/<str:action>/", views.swap_decide, name="swap_decide"),
    # Reports
    path("reports/", views.reports, name="reports"),
    # Employee's own week
    path("me/", views.my_week, name="my_week"),
    path("me/requests/", views.my_request, name="my_request"),
]
