import re
from datetime import timedelta
from unittest.mock import patch

from django.core import mail
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from apps.storage import get_storage
from apps.utils.utils import now

from .services import AuthService, TWO_FACTOR_SALT, hash_secret


class AuthFlowTests(TestCase):

    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.storage = get_storage()
        self.payload = {
            "username": "awa",
            "email": "awa@example.com",
            "password": "password123",
            "phone": "+242061234567",
        }

    def register(self, **overrides):
        return self.client.post(reverse("auth-register"), {**self.payload, **overrides}, format="json")

    def login(self, identifier="awa@example.com", password="password123"):
        return self.client.post(
            reverse("auth-login"),
            {"email_or_username": identifier, "password": password},
            format="json",
        )

    def test_1_register_login_and_me(self):
        response = self.register()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["username"], "awa")
        self.assertNotIn("password", response.data)

        response = self.login()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("access", response.data)
        self.assertIn("refresh", response.data)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        me = self.client.get(reverse("auth-me"))

        self.assertEqual(me.status_code, status.HTTP_200_OK)
        self.assertEqual(me.data["email"], "awa@example.com")

    def test_2_login_by_username(self):
        self.register()
        response = self.login(identifier="awa")
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_3_duplicate_email_is_rejected(self):
        self.register()
        response = self.register(username="someone-else")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "email_taken")

    def test_4_wrong_password(self):
        self.register()
        response = self.login(password="not-the-password")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["error"], "Invalid credentials")

    def test_5_me_requires_token(self):
        response = self.client.get(reverse("auth-me"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_6_refresh_accepts_only_refresh_tokens(self):
        self.register()
        tokens = self.login().data

        response = self.client.post(reverse("auth-refresh"), {"refresh": tokens["refresh"]}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("access", response.data)

        response = self.client.post(reverse("auth-refresh"), {"refresh": tokens["access"]}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_7_refresh_token_cannot_authenticate(self):
        self.register()
        tokens = self.login().data

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['refresh']}")
        response = self.client.get(reverse("auth-me"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_8_profile_update_and_password_change(self):
        self.register()
        access = self.login().data["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")

        response = self.client.patch(
            reverse("auth-me"),
            {"phone": "+242069999999", "current_password": "wrong-one", "new_password": "newpassword1"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        response = self.client.patch(
            reverse("auth-me"),
            {"phone": "+242069999999", "current_password": "password123", "new_password": "newpassword1"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["phone"], "+242069999999")

        self.client.credentials()
        self.assertEqual(self.login(password="newpassword1").status_code, status.HTTP_200_OK)


@override_settings(FRONTEND_URL="https://shop.example.test", PASSWORD_RESET_TTL_MINUTES=60)
class PasswordResetTests(TestCase):

    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.storage = get_storage()
        self.user = AuthService.register(self.storage, "awa", "awa@example.com", "password123")

    def request_reset(self, email="awa@example.com"):
        return self.client.post(reverse("auth-forgot-password"), {"email": email}, format="json")

    def reset_token_from_outbox(self):
        match = re.search(r"reset-password\?token=([\w-]+)", mail.outbox[-1].body)
        self.assertIsNotNone(match)
        return match.group(1)

    def test_unknown_email_gets_the_same_answer(self):
        known = self.request_reset()
        unknown = self.request_reset("nobody@example.com")

        self.assertEqual(known.status_code, status.HTTP_200_OK)
        self.assertEqual(unknown.status_code, status.HTTP_200_OK)
        self.assertEqual(known.data, unknown.data)
        self.assertEqual(len(mail.outbox), 1)

    def test_only_the_digest_is_stored(self):
        self.request_reset()
        token = self.reset_token_from_outbox()

        stored = self.storage.get_user(self.user.id)
        self.assertNotEqual(stored.password_reset_token, token)
        self.assertIsNotNone(stored.password_reset_expires)

    def test_reset_token_is_single_use(self):
        self.request_reset()
        token = self.reset_token_from_outbox()
        url = reverse("auth-reset-password")

        response = self.client.post(url, {"token": token, "new_password": "brandnew123"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post(url, {"token": token, "new_password": "another123"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        result = AuthService.login(self.storage, "awa", "brandnew123")
        self.assertEqual(result["user"].id, self.user.id)

    def test_short_password_is_rejected(self):
        self.request_reset()
        token = self.reset_token_from_outbox()

        response = self.client.post(
            reverse("auth-reset-password"),
            {"token": token, "new_password": "short"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_expired_token_is_rejected(self):
        self.request_reset()
        token = self.reset_token_from_outbox()
        self.storage.update_user(self.user.id, password_reset_expires=now() - timedelta(minutes=1))

        response = self.client.post(
            reverse("auth-reset-password"),
            {"token": token, "new_password": "brandnew123"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    @patch("apps.accounts.services.notifications.send_password_reset", return_value=False)
    def test_mail_failure_is_reported(self, mock_send):
        response = self.request_reset()

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        mock_send.assert_called_once()


@override_settings(TWO_FACTOR_TTL_MINUTES=10, TWILIO_ACCOUNT_SID=None, TWILIO_AUTH_TOKEN=None, TWILIO_FROM_NUMBER=None)
class TwoFactorTests(TestCase):

    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.storage = get_storage()
        self.user = AuthService.register(self.storage, "awa", "awa@example.com", "password123")
        tokens = AuthService.issue_tokens(self.user)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")

    def code_from_outbox(self):
        match = re.search(r"\b(\d{6})\b", mail.outbox[-1].body)
        self.assertIsNotNone(match)
        return match.group(1)

    def test_email_code_round_trip(self):
        response = self.client.post(reverse("auth-request-2fa"), {"method": "email"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        code = self.code_from_outbox()
        response = self.client.post(reverse("auth-verify-2fa"), {"code": code}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        # Cleared after a successful check
        self.assertIsNone(self.storage.get_user(self.user.id).two_factor_code)

    def test_wrong_code(self):
        self.client.post(reverse("auth-request-2fa"), {"method": "email"}, format="json")
        code = self.code_from_outbox()
        wrong = "000000" if code != "000000" else "111111"

        response = self.client.post(reverse("auth-verify-2fa"), {"code": wrong}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["error"], "Invalid code")

    def test_expired_code(self):
        self.storage.update_user(
            self.user.id,
            two_factor_code=hash_secret(TWO_FACTOR_SALT, "123456"),
            two_factor_expires=now() - timedelta(seconds=1),
        )

        response = self.client.post(reverse("auth-verify-2fa"), {"code": "123456"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["error"], "Code expired")

    def test_sms_without_phone(self):
        response = self.client.post(reverse("auth-request-2fa"), {"method": "sms"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"], "Phone number not set")

    def test_sms_without_twilio_credentials(self):
        self.storage.update_user(self.user.id, phone="+242061234567")

        response = self.client.post(reverse("auth-request-2fa"), {"method": "sms"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
