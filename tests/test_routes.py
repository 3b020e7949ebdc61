import unittest
from datetime import timedelta
from unittest import mock

import stripe
from fastapi.testclient import TestClient

from fakes import FakeProvider, clean_env
from lhyst.db.memory import InMemoryStore
from lhyst.db.session import get_store
from lhyst.main import app
from lhyst.services.mailer import Mailer, get_mailer

SENDER = "no-reply@lhystlog.com"


class RouteTestCase(unittest.TestCase):
    env = {}

    def setUp(self):
        patcher = clean_env(**self.env)
        patcher.start()
        self.addCleanup(patcher.stop)

        self.store = InMemoryStore()
        self.provider = FakeProvider("Resend")
        self.mailer = Mailer([self.provider], SENDER)
        app.dependency_overrides[get_store] = lambda: self.store
        app.dependency_overrides[get_mailer] = lambda: self.mailer
        self.addCleanup(app.dependency_overrides.clear)
        self.client = TestClient(app)


class GenerateCodeRouteTests(RouteTestCase):
    def test_issues_code_without_exposing_it(self):
        response = self.client.post("/generate-code", json={"email": "a@example.com"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True})
        self.assertEqual(len(self.store.codes), 1)
        self.assertEqual(len(self.provider.sent), 1)

    def test_returns_code_when_enabled(self):
        with clean_env(RETURN_CODE_IN_RESPONSE="true"):
            response = self.client.post("/generate-code", json={"email": "a@example.com"})
        self.assertEqual(response.json()["code"], self.store.codes[0].code)

    def test_missing_email(self):
        response = self.client.post("/generate-code", json={})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["type"], "ValidationError")

    def test_malformed_body(self):
        response = self.client.post("/generate-code", content="not json", headers={"Content-Type": "application/json"})
        self.assertEqual(response.status_code, 400)

    def test_duplicate_account(self):
        self.store.create_user("a@example.com", "pw")

        response = self.client.post("/generate-code", json={"email": "a@example.com"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["type"], "DuplicateAccountError")
        self.assertEqual(self.store.codes, [])

    def test_no_provider_configured(self):
        self.mailer.providers = []

        response = self.client.post("/generate-code", json={"email": "a@example.com"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True, "note": "no provider configured"})
        self.assertEqual(len(self.store.codes), 1)

    def test_fail_policy(self):
        self.mailer.providers = [FakeProvider("Resend", "invalid key")]
        with clean_env(DELIVERY_FAILURE_POLICY="fail"):
            response = self.client.post("/generate-code", json={"email": "a@example.com"})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["type"], "UpstreamError")
        self.assertEqual(response.json()["note"], "all providers failed: Resend error: invalid key")
        self.assertEqual(len(self.store.codes), 1)

    def test_missing_supabase_configuration(self):
        del app.dependency_overrides[get_store]

        response = self.client.post("/generate-code", json={"email": "a@example.com"})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["type"], "ConfigurationError")

    def test_only_post_is_allowed(self):
        self.assertEqual(self.client.get("/generate-code").status_code, 405)
        self.assertEqual(self.client.get("/verify-code").status_code, 405)


class VerifyCodeRouteTests(RouteTestCase):
    env = {"RETURN_CODE_IN_RESPONSE": "1"}

    def _issue(self, email="a@example.com"):
        return self.client.post("/generate-code", json={"email": email}).json()["code"]

    def test_issue_then_verify(self):
        code = self._issue()

        response = self.client.post(
            "/verify-code",
            json={"email": "A@Example.com ", "code": code, "password": "x", "plan": "pro"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True})
        self.assertTrue(self.store.codes[0].used)
        self.assertEqual(len(self.store.users), 1)
        user_id = self.store.users["a@example.com"]["id"]
        self.assertEqual(self.store.profiles[user_id]["plan"], "pro")

    def test_second_redemption_is_invalid(self):
        code = self._issue()
        body = {"email": "a@example.com", "code": code, "password": "x"}
        self.assertEqual(self.client.post("/verify-code", json=body).status_code, 200)

        response = self.client.post("/verify-code", json=body)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["type"], "InvalidCodeError")

    def test_expired_code(self):
        self._issue()
        row = self.store.codes[0]
        row.expires_at = row.expires_at - timedelta(hours=2)

        response = self.client.post("/verify-code", json={"email": "a@example.com", "code": row.code, "password": "x"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["type"], "ExpiredCodeError")
        self.assertFalse(row.used)

    def test_missing_password(self):
        code = self._issue()
        response = self.client.post("/verify-code", json={"email": "a@example.com", "code": code})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["type"], "ValidationError")


class FeedbackRouteTests(RouteTestCase):
    def test_relays_feedback(self):
        response = self.client.post(
            "/feedback",
            json={"to": "support@lhystlog.com", "body": "Love it", "from": "user@example.com", "name": "Sam"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True, "provider": "Resend"})
        message, sender = self.provider.sent[0]
        self.assertEqual(sender, SENDER)
        self.assertEqual(message.to, "support@lhystlog.com")
        self.assertEqual(message.subject, "Feedback")
        self.assertEqual(message.reply_to, "user@example.com")
        self.assertEqual(message.sender_name, "Sam")

    def test_logs_relay_with_feedback_tag(self):
        with self.assertLogs("lhyst.api.routes.support", level="INFO") as logs:
            self.client.post("/feedback", json={"to": "support@lhystlog.com", "body": "hi"})
        self.assertTrue(any("[FEEDBACK]" in line for line in logs.output))

    def test_truncates_long_body(self):
        self.client.post("/feedback", json={"to": "support@lhystlog.com", "body": "x" * 25000})
        self.assertEqual(len(self.provider.sent[0][0].text), 20000)

    def test_configured_recipient_wins(self):
        with clean_env(FEEDBACK_TO_EMAIL="inbox@lhystlog.com"):
            response = self.client.post("/feedback", json={"to": "someone@else.com", "body": "hi"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.provider.sent[0][0].to, "inbox@lhystlog.com")

    def test_default_sender(self):
        self.mailer.sender = None
        self.client.post("/feedback", json={"to": "support@lhystlog.com", "body": "hi"})
        self.assertEqual(self.provider.sent[0][1], "no-reply@lhystlog.com")

    def test_missing_fields(self):
        response = self.client.post("/feedback", json={"to": "support@lhystlog.com"})
        self.assertEqual(response.status_code, 400)

    def test_falls_back_to_next_provider(self):
        sendgrid = FakeProvider("SendGrid")
        self.mailer.providers = [FakeProvider("Resend", "down"), sendgrid]

        response = self.client.post("/feedback", json={"to": "support@lhystlog.com", "body": "hi"})

        self.assertEqual(response.json()["provider"], "SendGrid")
        self.assertEqual(len(sendgrid.sent), 1)

    def test_no_provider(self):
        self.mailer.providers = []
        response = self.client.post("/feedback", json={"to": "support@lhystlog.com", "body": "hi"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["type"], "ConfigurationError")

    def test_all_providers_failed(self):
        self.mailer.providers = [FakeProvider("Resend", "down"), FakeProvider("SendGrid", "denied")]
        response = self.client.post("/feedback", json={"to": "support@lhystlog.com", "body": "hi"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["note"], "all providers failed: Resend error: down | SendGrid error: denied")


class CheckoutRouteTests(RouteTestCase):
    env = {
        "STRIPE_SECRET_KEY": "sk_test_123",
        "PRICE_BASIC_MONTHLY": "price_basic_m",
        "PRICE_PRO_YEARLY": "price_pro_y",
    }

    @mock.patch("lhyst.api.routes.billing.stripe.checkout.Session.create")
    def test_creates_subscription_session(self, create):
        create.return_value = mock.Mock(url="https://checkout.stripe.com/c/pay/cs_1", id="cs_1")

        response = self.client.post("/create-checkout-session", json={"plan": "pro", "frequency": "yearly"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"url": "https://checkout.stripe.com/c/pay/cs_1", "id": "cs_1"})
        kwargs = create.call_args[1]
        self.assertEqual(kwargs["line_items"], [{"price": "price_pro_y", "quantity": 1}])
        self.assertEqual(kwargs["mode"], "subscription")
        self.assertEqual(kwargs["subscription_data"], {"trial_period_days": 14})
        self.assertEqual(
            kwargs["success_url"],
            "https://lhystlog.com/#/success?session_id={CHECKOUT_SESSION_ID}&plan=pro",
        )
        self.assertEqual(kwargs["cancel_url"], "https://lhystlog.com/#/cancel")

    @mock.patch("lhyst.api.routes.billing.stripe.checkout.Session.create")
    def test_defaults_to_basic_monthly(self, create):
        create.return_value = mock.Mock(url="https://checkout.stripe.com/c/pay/cs_2", id="cs_2")
        self.client.post("/create-checkout-session", json={})
        self.assertEqual(create.call_args[1]["line_items"][0]["price"], "price_basic_m")

    def test_missing_price(self):
        response = self.client.post("/create-checkout-session", json={"plan": "pro", "frequency": "monthly"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["type"], "ConfigurationError")

    def test_unknown_frequency(self):
        response = self.client.post("/create-checkout-session", json={"plan": "pro", "frequency": "weekly"})
        self.assertEqual(response.status_code, 400)

    @mock.patch("lhyst.api.routes.billing.stripe.checkout.Session.create")
    def test_stripe_error_keeps_status(self, create):
        create.side_effect = stripe.InvalidRequestError("No such price: 'price_basic_m'", "line_items", http_status=400)

        response = self.client.post("/create-checkout-session", json={})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["type"], "UpstreamError")
        self.assertIn("No such price", response.json()["error"])


class HealthCheckTests(RouteTestCase):
    def test_health(self):
        self.assertEqual(self.client.get("/").json(), {"status": "ok"})


if __name__ == "__main__":
    unittest.main()
