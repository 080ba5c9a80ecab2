"""URL configuration for the JSON endpoints."""

from django.urls import path

from . import views

app_name = "api"

urlpatterns = [
    path("health/", views.health_check, name="health"),
    path("v1/board/", views.BoardStateView.as_view(), name="board"),
]
