"""
API tests.

Run the whole app through TestClient: authentication, role checks, the
error body shape, and the response shapes of each router. Today is
2025-06-15 (the clock dependency is pinned in conftest).
"""

from datetime import date

import pytest

from src.core.billing.models import AdminRole


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class TestHealth:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["message"] == "Super Sheets Admin API is running"

    def test_liveness(self, client):
        body = client.get("/health").json()

        assert body["status"] == "ok"
        assert body["details"]["environment"] == "development"

    def test_readiness(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"
        assert {c["name"] for c in response.json()["checks"]} == {"configuration", "database"}


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class TestAuthentication:

    def test_login_returns_token(self, client, make_admin):
        make_admin(email="ada@example.com", password="s3cret")

        response = client.post("/api/admins/login", json={"email": "ada@example.com", "password": "s3cret"})

        assert response.status_code == 200
        body = response.json()
        assert body["email"] == "ada@example.com"
        assert body["role"] == "admin"
        assert body["token"]

    def test_token_from_login_is_accepted(self, client, make_admin):
        make_admin(email="ada@example.com", password="s3cret")
        login = client.post(
            "/api/admins/login", json={"email": "ada@example.com", "password": "s3cret"}
        ).json()

        response = client.get(
            f"/api/admins/{login['id']}", headers={"Authorization": f"Bearer {login['token']}"}
        )

        assert response.status_code == 200
        assert response.json()["email"] == "ada@example.com"

    def test_bad_credentials(self, client, make_admin):
        make_admin(email="ada@example.com", password="s3cret")

        response = client.post("/api/admins/login", json={"email": "ada@example.com", "password": "nope"})

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    def test_missing_token(self, client):
        response = client.get("/api/plans")

        assert response.status_code == 401
        assert response.json() == {"message": "Not authorized, no token"}
        assert response.headers["www-authenticate"] == "Bearer"

    def test_garbage_token(self, client):
        response = client.get("/api/plans", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["message"] == "Not authorized, token failed"

    def test_register_requires_admin(self, client, auth_headers):
        response = client.post(
            "/api/admins/register",
            json={"name": "Fin", "email": "fin@example.com", "password": "pw", "role": "finance"},
            headers=auth_headers(AdminRole.SALES),
        )

        assert response.status_code == 403


# ---------------------------------------------------------------------------
# Role Checks
# ---------------------------------------------------------------------------

class TestRoles:

    @pytest.mark.parametrize("role", [AdminRole.FINANCE, AdminRole.SALES])
    def test_subscriptions_are_admin_only(self, client, auth_headers, role):
        response = client.get("/api/subscriptions", headers=auth_headers(role))

        assert response.status_code == 403
        assert response.json()["message"] == f"Role '{role.value}' is not authorized to access this route"

    def test_finance_reads_payments(self, client, auth_headers):
        assert client.get("/api/payments", headers=auth_headers(AdminRole.FINANCE)).status_code == 200

    def test_sales_reads_coaches_not_payments(self, client, auth_headers):
        headers = auth_headers(AdminRole.SALES)

        assert client.get("/api/coaches", headers=headers).status_code == 200
        assert client.get("/api/payments", headers=headers).status_code == 403

    @pytest.mark.parametrize("role", [AdminRole.ADMIN, AdminRole.FINANCE, AdminRole.SALES])
    def test_everyone_reads_dashboard(self, client, auth_headers, role):
        assert client.get("/api/dashboard/summary", headers=auth_headers(role)).status_code == 200


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

class TestPlans:

    def test_create_and_list(self, client, auth_headers):
        headers = auth_headers()
        created = client.post(
            "/api/plans",
            json={"name": "Monthly", "price": "29.99", "duration_days": 30},
            headers=headers,
        )

        assert created.status_code == 201
        body = client.get("/api/plans", headers=headers).json()
        assert (body["total"], body["page"], body["pages"]) == (1, 1, 1)
        assert body["plans"][0]["name"] == "Monthly"

    def test_update_applies_zero_price_and_false(self, client, auth_headers, make_plan):
        plan = make_plan(price="49.00")

        response = client.put(
            f"/api/plans/{plan.id}",
            json={"price": 0, "is_active": False},
            headers=auth_headers(),
        )

        assert response.status_code == 200
        body = response.json()
        assert float(body["price"]) == 0
        assert body["is_active"] is False
        assert body["duration_days"] == 30

    def test_update_rejects_null_price(self, client, auth_headers, make_plan):
        plan = make_plan()

        response = client.put(f"/api/plans/{plan.id}", json={"price": None}, headers=auth_headers())

        assert response.status_code == 400

    def test_negative_price_is_a_400(self, client, auth_headers):
        response = client.post(
            "/api/plans",
            json={"name": "Broken", "price": -1, "duration_days": 30},
            headers=auth_headers(),
        )

        assert response.status_code == 400
        assert response.json()["message"].startswith("price")

    def test_unknown_plan(self, client, auth_headers):
        response = client.get("/api/plans/404", headers=auth_headers())

        assert response.status_code == 404
        assert response.json()["message"] == "Plan not found"


# ---------------------------------------------------------------------------
# Coaches
# ---------------------------------------------------------------------------

class TestCoaches:

    def test_pagination_shape(self, client, auth_headers, make_coach):
        for _ in range(3):
            make_coach()

        body = client.get("/api/coaches?page=2&limit=2", headers=auth_headers()).json()

        assert (body["total"], body["page"], body["pages"]) == (3, 2, 2)
        assert len(body["coaches"]) == 1

    def test_password_is_never_returned(self, client, auth_headers):
        response = client.post(
            "/api/coaches",
            json={"name": "Sam", "email": "sam@example.com", "password": "pw"},
            headers=auth_headers(),
        )

        assert response.status_code == 201
        assert "password" not in response.json()
        assert "password_hash" not in response.json()

    def test_duplicate_email_is_a_conflict(self, client, auth_headers, make_coach):
        make_coach(email="sam@example.com")

        response = client.post(
            "/api/coaches",
            json={"name": "Sam", "email": "sam@example.com", "password": "pw"},
            headers=auth_headers(),
        )

        assert response.status_code == 409


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------

class TestSubscriptions:

    def _create(self, client, headers, coach_id, plan_id, start, end):
        return client.post(
            "/api/subscriptions",
            json={
                "coach_id": coach_id,
                "plan_id": plan_id,
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
            },
            headers=headers,
        )

    def test_create(self, client, auth_headers, make_coach, make_plan):
        coach, plan = make_coach(), make_plan()

        response = self._create(client, auth_headers(), coach.id, plan.id, date(2025, 6, 1), date(2025, 6, 30))

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "active"
        assert body["payment_status"] == "paid"

    def test_overlap_is_a_conflict_with_details(self, client, auth_headers, make_coach, make_plan):
        headers = auth_headers()
        coach, plan = make_coach(), make_plan()
        first = self._create(client, headers, coach.id, plan.id, date(2025, 6, 1), date(2025, 6, 30)).json()

        response = self._create(client, headers, coach.id, plan.id, date(2025, 6, 30), date(2025, 7, 29))

        assert response.status_code == 409
        body = response.json()
        assert body["message"] == "Coach already has a subscription for this period"
        assert body["error"] == {"coach_id": coach.id, "conflicting_ids": [first["id"]]}

    def test_inverted_dates_are_a_400(self, client, auth_headers, make_coach, make_plan):
        coach, plan = make_coach(), make_plan()

        response = self._create(client, auth_headers(), coach.id, plan.id, date(2025, 6, 30), date(2025, 6, 1))

        assert response.status_code == 400

    def test_missing_field_is_a_400(self, client, auth_headers):
        response = client.post("/api/subscriptions", json={"coach_id": 1}, headers=auth_headers())

        assert response.status_code == 400
        assert "plan_id" in response.json()["message"]

    def test_list_includes_coach_and_plan(self, client, auth_headers, make_subscription):
        make_subscription(date(2025, 5, 1), date(2025, 5, 31))
        latest = make_subscription(date(2025, 6, 1), date(2025, 6, 30))

        body = client.get("/api/subscriptions", headers=auth_headers()).json()

        assert body["total"] == 2
        assert body["subscriptions"][0]["id"] == latest.id
        assert body["subscriptions"][0]["coach"]["id"] == latest.coach_id
        assert body["subscriptions"][0]["plan"]["id"] == latest.plan_id

    def test_invalid_status_filter(self, client, auth_headers):
        response = client.get("/api/subscriptions?status=paused", headers=auth_headers())

        assert response.status_code == 400

    def test_renew(self, client, auth_headers, make_subscription):
        subscription = make_subscription(date(2025, 6, 1), date(2025, 6, 30))

        response = client.post(
            f"/api/subscriptions/{subscription.id}/renew",
            json={"duration_days": 30},
            headers=auth_headers(),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Subscription renewed successfully"
        assert body["subscription"]["end_date"] == "2025-07-30"

    def test_renew_past_the_calendar_is_a_400(self, client, auth_headers, make_subscription):
        subscription = make_subscription(date(2025, 6, 1), date(2025, 6, 30))

        response = client.post(
            f"/api/subscriptions/{subscription.id}/renew",
            json={"duration_days": 10_000_000},
            headers=auth_headers(),
        )

        assert response.status_code == 400
        assert "duration_days" in response.json()["message"]

    def test_cancel_without_body(self, client, auth_headers, make_subscription):
        subscription = make_subscription(date(2025, 6, 1), date(2025, 6, 30))

        response = client.post(f"/api/subscriptions/{subscription.id}/cancel", headers=auth_headers())

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Subscription cancelled successfully"
        assert body["subscription"]["status"] == "cancelled"

    def test_cancel_with_reason(self, client, auth_headers, make_subscription):
        subscription = make_subscription(date(2025, 6, 1), date(2025, 6, 30))

        body = client.post(
            f"/api/subscriptions/{subscription.id}/cancel",
            json={"cancellation_reason": "Moved abroad"},
            headers=auth_headers(),
        ).json()

        assert body["subscription"]["cancellation_reason"] == "Moved abroad"

    def test_expiring_soon(self, client, auth_headers, make_subscription):
        expiring = make_subscription(date(2025, 6, 1), date(2025, 6, 20))
        make_subscription(date(2025, 6, 1), date(2025, 7, 31))

        body = client.get("/api/subscriptions/expiring-soon?days=7", headers=auth_headers()).json()

        assert [s["id"] for s in body] == [expiring.id]

    def test_delete(self, client, auth_headers, make_subscription):
        headers = auth_headers()
        subscription = make_subscription(date(2025, 6, 1), date(2025, 6, 30))

        response = client.delete(f"/api/subscriptions/{subscription.id}", headers=headers)

        assert response.json() == {"message": "Subscription removed successfully"}
        assert client.get(f"/api/subscriptions/{subscription.id}", headers=headers).status_code == 404


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

class TestPayments:

    def test_record_payment(self, client, auth_headers, make_subscription):
        subscription = make_subscription(date(2025, 6, 1), date(2025, 6, 30), payment_status="pending")

        response = client.post(
            "/api/payments",
            json={
                "subscription_id": subscription.id,
                "payment_status": "paid",
                "payment_method": "card",
                "payment_reference": "ch_123",
            },
            headers=auth_headers(),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Payment recorded successfully"
        assert body["subscription"]["payment_status"] == "paid"
        assert body["subscription"]["payment_method"] == "card"
        assert body["subscription"]["payment_date"].startswith("2025-06-15")

    def test_record_requires_admin(self, client, auth_headers, make_subscription):
        subscription = make_subscription(date(2025, 6, 1), date(2025, 6, 30), payment_status="pending")

        response = client.post(
            "/api/payments",
            json={"subscription_id": subscription.id, "payment_status": "paid"},
            headers=auth_headers(AdminRole.FINANCE),
        )

        assert response.status_code == 403

    def test_stats(self, client, auth_headers, make_subscription):
        make_subscription(date(2025, 6, 1), date(2025, 6, 30))

        body = client.get("/api/payments/stats", headers=auth_headers(AdminRole.FINANCE)).json()

        assert [g["key"] for g in body["by_status"]] == ["paid"]
        assert set(body) == {"by_status", "by_method", "monthly"}


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

class TestDashboard:

    def test_summary(self, client, auth_headers, make_subscription):
        make_subscription(date(2025, 6, 1), date(2025, 6, 30))

        body = client.get("/api/dashboard/summary", headers=auth_headers(AdminRole.FINANCE)).json()

        assert body["total_coaches"] == 1
        assert body["active_subscriptions"] == 1
        assert float(body["total_revenue"]) == pytest.approx(29.99)

    def test_revenue_rejects_unknown_period(self, client, auth_headers):
        response = client.get("/api/dashboard/revenue?period=decade", headers=auth_headers())

        assert response.status_code == 400

    def test_revenue_month(self, client, auth_headers, make_subscription):
        make_subscription(date(2025, 6, 1), date(2025, 6, 30))

        body = client.get("/api/dashboard/revenue?period=month", headers=auth_headers()).json()

        assert body["period"] == "month"
        assert body["since"] == "2025-05-15"
        assert [b["label"] for b in body["revenue_data"]] == ["2025-06-01"]


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class TestNotifications:

    def test_overview(self, client, auth_headers, make_subscription):
        expiring = make_subscription(date(2025, 6, 1), date(2025, 6, 20))

        body = client.get("/api/notifications", headers=auth_headers()).json()

        assert body["expiring_days"] == 7
        assert [s["id"] for s in body["expiring_subscriptions"]["subscriptions"]] == [expiring.id]

    def test_send_expiring(self, client, auth_headers, sender, make_subscription):
        subscription = make_subscription(date(2025, 6, 1), date(2025, 6, 20))

        response = client.post(f"/api/notifications/expiring/{subscription.id}", headers=auth_headers())

        assert response.status_code == 200
        assert response.json()["message"] == "Notification sent successfully"
        assert len(sender.sent) == 1

    def test_payment_reminder_requires_pending(self, client, auth_headers, make_subscription):
        paid = make_subscription(date(2025, 6, 1), date(2025, 6, 30))

        response = client.post(f"/api/notifications/payment/{paid.id}", headers=auth_headers())

        assert response.status_code == 400

    def test_bulk_expiring(self, client, auth_headers, sender, make_subscription):
        make_subscription(date(2025, 6, 1), date(2025, 6, 18))
        make_subscription(date(2025, 6, 1), date(2025, 6, 19))

        response = client.post("/api/notifications/bulk/expiring", json={"days": 7}, headers=auth_headers())

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Sent 2 notifications, 0 failed"
        assert len(body["sent"]) == 2
        assert body["failed"] == []

    def test_bulk_with_nothing_to_send(self, client, auth_headers):
        response = client.post("/api/notifications/bulk/expiring", headers=auth_headers())

        assert response.status_code == 404

    def test_settings_round_trip(self, client, auth_headers):
        headers = auth_headers()

        updated = client.put(
            "/api/notifications/settings",
            json={"expiring_subscription_days": 14, "enable_sms_notifications": True},
            headers=headers,
        )

        assert updated.status_code == 200
        body = client.get("/api/notifications/settings", headers=headers).json()
        assert body["expiring_subscription_days"] == 14
        assert body["enable_sms_notifications"] is True
