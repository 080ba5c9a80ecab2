"""
Tests for the core plumbing.

This module tests:
- Time-of-day and calendar helpers
- The backend HTTP client (errors, 401 handling, unreachable backend)
- Sign-in through the backend and the backend_view decorator
- Context processors
"""

from datetime import date, datetime
from unittest.mock import patch

import httpx
from jose import jwt

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.test import RequestFactory, SimpleTestCase, TestCase
from django.urls import reverse

from .auth import token_claims, token_expired
from .client import (
    SESSION_EMPLOYEE_KEY,
    SESSION_TOKEN_KEY,
    BackendAuthError,
    BackendClient,
    BackendError,
    BackendUnavailable,
    MalformedPayload,
)
from .context_processors import (
    ALL_DEPARTMENTS,
    SESSION_DEPARTMENT_KEY,
    department_filter,
    selected_department,
    version_info,
)
from .testing import BackendTestMixin, FakeBackend
from .timeutils import (
    end_of_month,
    format_window,
    iso_datetime,
    minutes_to_hours,
    monday_of,
    next_monday,
    overlaps,
    parse_day,
    parse_hhmm,
    to_hhmm,
    to_minutes,
)

User = get_user_model()


# =============================================================================
# TIME HELPERS
# =============================================================================


class TimeHelperTests(SimpleTestCase):
    """Tests for apps.core.timeutils."""

    def test_to_hhmm_pads_hours_and_minutes(self):
        self.assertEqual(to_hhmm(0), "00:00")
        self.assertEqual(to_hhmm(545), "09:05")
        self.assertEqual(to_hhmm(1440), "24:00")

    def test_to_minutes_treats_missing_minutes_as_zero(self):
        self.assertEqual(to_minutes("09:30"), 570)
        self.assertEqual(to_minutes("9"), 540)

    def test_parse_hhmm_is_strict(self):
        self.assertEqual(parse_hhmm("09:00"), 540)
        self.assertEqual(parse_hhmm("9:15"), 555)
        self.assertIsNone(parse_hhmm("24:00"))
        self.assertIsNone(parse_hhmm("12:60"))
        self.assertIsNone(parse_hhmm("noon"))
        self.assertIsNone(parse_hhmm(None))

    def test_monday_of_and_next_monday(self):
        wednesday = date(2026, 10, 21)
        self.assertEqual(monday_of(wednesday), date(2026, 10, 19))
        self.assertEqual(next_monday(wednesday), date(2026, 10, 26))
        # A Monday maps to the following week
        self.assertEqual(next_monday(date(2026, 10, 19)), date(2026, 10, 26))

    def test_end_of_month_handles_leap_years(self):
        self.assertEqual(end_of_month(date(2028, 2, 10)), date(2028, 2, 29))
        self.assertEqual(end_of_month(date(2026, 2, 10)), date(2026, 2, 28))

    def test_parse_day_accepts_iso_datetimes(self):
        self.assertEqual(parse_day("2026-10-19T00:00:00.000Z"), date(2026, 10, 19))
        self.assertEqual(parse_day("not-a-date", date(2020, 1, 1)), date(2020, 1, 1))
        self.assertIsNone(parse_day(""))

    def test_iso_datetime_renders_calendar_date(self):
        self.assertEqual(iso_datetime(date(2026, 3, 2)), "2026-03-02T00:00:00.000Z")
        self.assertEqual(iso_datetime(date(2026, 3, 2), 12), "2026-03-02T12:00:00.000Z")

    def test_minutes_to_hours_rounds_and_ignores_junk(self):
        self.assertEqual(minutes_to_hours(90), 1.5)
        self.assertEqual(minutes_to_hours(100), 1.67)
        self.assertEqual(minutes_to_hours(None), 0)
        self.assertEqual(minutes_to_hours(float("nan")), 0)
        self.assertEqual(minutes_to_hours("60"), 0)

    def test_overlaps_is_half_open(self):
        self.assertTrue(overlaps(540, 1020, 600, 660))
        self.assertFalse(overlaps(540, 600, 600, 660))

    def test_format_window(self):
        self.assertEqual(format_window(540, 1020), "09:00 - 17:00")


# =============================================================================
# BACKEND CLIENT
# =============================================================================


class BackendClientTests(BackendTestMixin, TestCase):
    """Tests for BackendClient against the in-memory backend."""

    def setUp(self):
        super().setUp()
        self.admin = self.backend.add_employee("admin@example.com", "Ada Admin", role="ADMIN")
        self.token = self.backend.issue_token(self.admin)

    def test_get_returns_decoded_json(self):
        self.backend.add_department("Kitchen")

        payload = BackendClient(token=self.token).get("/departments")

        self.assertEqual([d["name"] for d in payload], ["Kitchen"])

    def test_request_without_token_raises_auth_error(self):
        with self.assertRaises(BackendAuthError) as ctx:
            BackendClient().get("/departments")

        self.assertEqual(ctx.exception.status_code, 401)
        self.assertIn("Unauthorized", str(ctx.exception))

    def test_auth_error_is_not_a_backend_error(self):
        self.assertFalse(issubclass(BackendAuthError, BackendError))

    def test_error_message_combines_status_and_detail(self):
        self.backend.fail("GET", "/departments", status=500, error="boom")

        with self.assertRaises(BackendError) as ctx:
            BackendClient(token=self.token).get("/departments")

        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.message, "500 Internal Server Error - boom")
        self.assertFalse(ctx.exception.is_conflict)

    def test_conflict_is_flagged(self):
        self.backend.fail("POST", "/departments", status=409, error="already exists")

        with self.assertRaises(BackendError) as ctx:
            BackendClient(token=self.token).post("/departments", {"name": "Kitchen"})

        self.assertTrue(ctx.exception.is_conflict)

    def test_unreachable_backend_raises_unavailable(self):
        self.backend.down = True

        with self.assertRaises(BackendUnavailable) as ctx:
            BackendClient(token=self.token).get("/departments")

        self.assertIsNone(ctx.exception.status_code)
        self.assertTrue(ctx.exception.message.startswith("Backend unavailable"))

    def test_non_json_success_raises_malformed_payload(self):
        html = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>proxy login</html>"))

        with patch.object(BackendClient, "transport", html):
            with self.assertRaises(MalformedPayload) as ctx:
                BackendClient(token=self.token).get("/departments")

        self.assertIsInstance(ctx.exception, BackendError)
        self.assertIn("proxy login", ctx.exception.message)

    def test_delete_returns_none_on_no_content(self):
        department = self.backend.add_department("Kitchen")

        result = BackendClient(token=self.token).delete(f"/departments/{department['id']}")

        self.assertIsNone(result)
        self.assertEqual(self.backend.departments, {})

    def test_empty_query_params_are_dropped(self):
        BackendClient(token=self.token).get("/assignments", {"departmentId": "", "employeeId": None})

        self.assertEqual(self.backend.calls[-1], ("GET", "/assignments"))
        self.assertEqual(dict(self.backend.requests[-1].url.params), {})
        self.assertEqual(self.backend.requests[-1].headers["Authorization"], f"Bearer {self.token}")

    def test_login_returns_token_and_profile(self):
        self.backend.passwords["admin@example.com"] = "secret123"

        payload = BackendClient().login("admin@example.com", "secret123")

        self.assertEqual(payload["user"]["role"], "ADMIN")
        self.assertEqual(token_claims(payload["token"])["sub"], self.admin["id"])


# =============================================================================
# TOKENS
# =============================================================================


class TokenTests(SimpleTestCase):
    """Tests for reading the backend's JWT without its key."""

    def setUp(self):
        self.backend = FakeBackend()
        self.employee = self.backend.add_employee("alice@example.com", "Alice Worker")

    def test_claims_are_read_without_verification(self):
        token = self.backend.issue_token(self.employee)

        claims = token_claims(token)

        self.assertEqual(claims["sub"], self.employee["id"])
        self.assertEqual(claims["role"], "EMPLOYEE")

    def test_garbage_token_has_no_claims(self):
        self.assertEqual(token_claims("not.a.jwt"), {})
        self.assertEqual(token_claims(None), {})

    def test_token_expiry(self):
        live = self.backend.issue_token(self.employee, ttl=3600)
        stale = self.backend.issue_token(self.employee, ttl=-60)

        self.assertFalse(token_expired(live))
        self.assertTrue(token_expired(stale))
        self.assertFalse(token_expired(None))

    def test_unreadable_expiry_counts_as_expired(self):
        token = jwt.encode({"sub": self.employee["id"], "exp": "soon"}, "any-key", algorithm="HS256")

        self.assertTrue(token_expired(token))


# =============================================================================
# SIGN-IN
# =============================================================================


class SignInTests(BackendTestMixin, TestCase):
    """Tests for BackendAuthentication and the user_logged_in receiver."""

    def setUp(self):
        super().setUp()
        self.admin = self.backend.add_employee(
            "admin@example.com", "Ada Lovelace", role="ADMIN", password="admin123"
        )
        self.worker = self.backend.add_employee("alice@example.com", "Alice Worker", password="alice123")

    def test_login_mirrors_backend_user(self):
        self.assertTrue(self.client.login(username="admin@example.com", password="admin123"))

        user = User.objects.get(username="admin@example.com")
        self.assertTrue(user.is_staff)
        self.assertEqual(user.first_name, "Ada")
        self.assertEqual(user.last_name, "Lovelace")
        self.assertFalse(user.has_usable_password())

    def test_login_stores_token_and_employee_in_session(self):
        self.client.login(username="alice@example.com", password="alice123")

        session = self.client.session
        self.assertEqual(token_claims(session[SESSION_TOKEN_KEY])["sub"], self.worker["id"])
        self.assertEqual(session[SESSION_EMPLOYEE_KEY], self.worker["id"])
        self.assertFalse(User.objects.get(username="alice@example.com").is_staff)

    def test_bad_password_is_refused(self):
        self.assertFalse(self.client.login(username="admin@example.com", password="wrong"))
        self.assertFalse(User.objects.filter(username="admin@example.com").exists())

    def test_unreachable_backend_refuses_login(self):
        self.backend.down = True

        self.assertFalse(self.client.login(username="admin@example.com", password="admin123"))

    def test_login_form_redirects_home(self):
        response = self.client.post(
            reverse("login"), {"username": "admin@example.com", "password": "admin123"}
        )

        self.assertRedirects(response, reverse("rota:home"), fetch_redirect_response=False)

    def test_role_change_is_picked_up_on_next_login(self):
        self.client.login(username="alice@example.com", password="alice123")
        self.backend.employees[self.worker["id"]]["role"] = "ADMIN"

        self.client.login(username="alice@example.com", password="alice123")

        self.assertTrue(User.objects.get(username="alice@example.com").is_staff)


class BackendViewDecoratorTests(BackendTestMixin, TestCase):
    """Tests for the backend_view decorator."""

    def setUp(self):
        super().setUp()
        self.admin = self.backend.add_employee("admin@example.com", "Ada Admin", role="ADMIN")
        self.worker = self.backend.add_employee("alice@example.com", "Alice Worker")

    def test_anonymous_user_goes_to_login(self):
        response = self.client.get(reverse("rota:dashboard"))

        self.assertRedirects(
            response, f"{reverse('login')}?next={reverse('rota:dashboard')}", fetch_redirect_response=False
        )

    def test_employee_is_sent_to_own_week(self):
        self.sign_in(self.worker)

        response = self.client.get(reverse("rota:dashboard"))

        self.assertRedirects(response, reverse("rota:my_week"), fetch_redirect_response=False)

    def test_home_routes_by_role(self):
        self.sign_in(self.admin)

        response = self.client.get(reverse("rota:home"))

        self.assertRedirects(response, reverse("rota:dashboard"), fetch_redirect_response=False)

    def test_expired_token_signs_out(self):
        self.sign_in(self.admin)
        session = self.client.session
        session[SESSION_TOKEN_KEY] = self.backend.issue_token(self.admin, ttl=-60)
        session.save()

        response = self.client.get(reverse("rota:dashboard"))

        self.assertRedirects(response, reverse("login"), fetch_redirect_response=False)
        self.assertNotIn("_auth_user_id", self.client.session)

    def test_unreadable_expiry_signs_out(self):
        self.sign_in(self.admin)
        session = self.client.session
        session[SESSION_TOKEN_KEY] = jwt.encode({"sub": self.admin["id"], "exp": "soon"}, "any-key", algorithm="HS256")
        session.save()

        response = self.client.get(reverse("rota:dashboard"))

        self.assertRedirects(response, reverse("login"), fetch_redirect_response=False)

    def test_rejected_token_signs_out(self):
        self.sign_in(self.admin)
        self.backend.tokens.clear()

        response = self.client.get(reverse("rota:departments"))

        self.assertRedirects(response, reverse("login"), fetch_redirect_response=False)
        self.assertNotIn(SESSION_TOKEN_KEY, self.client.session)

    def test_missing_token_signs_out(self):
        user = User.objects.create_user(username="local", password="localpass123", is_staff=True)
        self.client.force_login(user, backend="django.contrib.auth.backends.ModelBackend")

        response = self.client.get(reverse("rota:dashboard"))

        self.assertRedirects(response, reverse("login"), fetch_redirect_response=False)


# =============================================================================
# CONTEXT PROCESSORS
# =============================================================================


class ContextProcessorTests(BackendTestMixin, TestCase):
    """Tests for apps.core.context_processors."""

    def setUp(self):
        super().setUp()
        self.factory = RequestFactory()

    def _request(self, path="/", user=None, session=None):
        request = self.factory.get(path)
        request.user = user or AnonymousUser()
        request.session = session if session is not None else {}
        return request

    def test_version_info_keys(self):
        context = version_info(self._request())

        self.assertIn("app_version", context)
        self.assertIn("app_version_date", context)

    def test_department_defaults_to_all(self):
        self.assertEqual(selected_department(self._request()), ALL_DEPARTMENTS)

    def test_department_query_is_remembered(self):
        session = {}
        self.assertEqual(selected_department(self._request("/?department=dep-1", session=session)), "dep-1")

        self.assertEqual(session[SESSION_DEPARTMENT_KEY], "dep-1")
        self.assertEqual(selected_department(self._request(session=session)), "dep-1")

    def test_anonymous_user_gets_no_departments(self):
        context = department_filter(self._request())

        self.assertEqual(list(context["filter_departments"]), [])
        self.assertEqual(self.backend.calls, [])

    def test_departments_listed_for_signed_in_user(self):
        admin = self.backend.add_employee("admin@example.com", "Ada Admin", role="ADMIN")
        self.backend.add_department("Kitchen")
        user = User.objects.create_user(username="admin@example.com")
        request = self._request(user=user, session={SESSION_TOKEN_KEY: self.backend.issue_token(admin)})

        context = department_filter(request)

        self.assertEqual([d.name for d in context["filter_departments"]], ["Kitchen"])

    def test_backend_failure_yields_empty_list(self):
        admin = self.backend.add_employee("admin@example.com", "Ada Admin", role="ADMIN")
        self.backend.fail("GET", "/departments", status=503, error="maintenance")
        user = User.objects.create_user(username="admin@example.com")
        request = self._request(user=user, session={SESSION_TOKEN_KEY: self.backend.issue_token(admin)})

        with patch("apps.core.context_processors.logger") as logger:
            departments = list(department_filter(request)["filter_departments"])

        self.assertEqual(departments, [])
        logger.warning.assert_called_once()
