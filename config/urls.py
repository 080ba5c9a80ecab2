"""
URL configuration for the Rota project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.0/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    # Django admin
    path("admin/", admin.site.urls),
    # Authentication (login form posts to the scheduling backend)
    path("", include("django.contrib.auth.urls")),
    # Main application
    path("", include("apps.rota.urls", namespace="rota")),
    # JSON endpoints
    path("api/", include("apps.api.urls", namespace="api")),
]
