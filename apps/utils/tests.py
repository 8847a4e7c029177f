import json
import logging
from unittest.mock import patch

from django.db import OperationalError
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import exceptions, serializers, status
from rest_framework.test import APIClient

from apps.storage.memory import MemoryStorage

from .exceptions import (
    ConflictError,
    DeliveryError,
    NotFoundError,
    custom_exception_handler,
)
from .logging import JSONFormatter
from .utils import CODE_ALPHABET, generate_code, generate_numeric_code, generate_order_number
from .validators import validate_phone, validate_slot_date


class ValidatorTests(TestCase):
    def test_phone_validator(self):
        self.assertEqual(validate_phone(" +242 06 123 4567 "), "+242 06 123 4567")
        with self.assertRaises(serializers.ValidationError):
            validate_phone("123")  # Invalid

    def test_slot_date_validator(self):
        self.assertEqual(validate_slot_date("2026-03-14"), "2026-03-14")

        with self.assertRaises(serializers.ValidationError):
            validate_slot_date("14/03/2026")

        # Right shape, impossible day
        with self.assertRaises(serializers.ValidationError):
            validate_slot_date("2026-02-30")


class CodeGeneratorTests(TestCase):
    def test_generate_code_alphabet(self):
        code = generate_code(8)
        self.assertEqual(len(code), 8)
        self.assertTrue(all(c in CODE_ALPHABET for c in code))

    def test_order_number_format(self):
        prefix, millis, suffix = generate_order_number().split("-")
        self.assertEqual(prefix, "GC")
        self.assertTrue(millis.isdigit())
        self.assertEqual(len(suffix), 6)

    def test_numeric_code_is_zero_padded(self):
        for _ in range(20):
            code = generate_numeric_code(6)
            self.assertEqual(len(code), 6)
            self.assertTrue(code.isdigit())


class ExceptionHandlerTests(TestCase):
    def test_domain_exception_uses_its_status(self):
        response = custom_exception_handler(NotFoundError("Product not found"), {})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data, {"error": "Product not found", "code": "not_found"})

    def test_conflict_is_a_bad_request(self):
        response = custom_exception_handler(ConflictError("Email taken", code="email_taken"), {})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "email_taken")

    def test_delivery_error_is_server_side(self):
        response = custom_exception_handler(DeliveryError("Failed to send email"), {})
        self.assertEqual(response.status_code, 500)

    def test_drf_field_errors_are_flattened(self):
        exc = exceptions.ValidationError({"quantity": ["Ensure this value is greater than or equal to 1."]})
        response = custom_exception_handler(exc, {})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"], "quantity: Ensure this value is greater than or equal to 1.")

    def test_unknown_exception_is_500(self):
        response = custom_exception_handler(RuntimeError("boom"), {})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data["code"], "server_error")


class JSONFormatterTests(TestCase):
    def test_sensitive_keys_are_redacted(self):
        record = logging.LogRecord("test", logging.INFO, __file__, 1, {"email": "a@b.c", "password": "x"}, None, None)
        record.order_number = "GC-1-ABCDEF"

        payload = json.loads(JSONFormatter().format(record))

        self.assertIn("***REDACTED***", payload["msg"])
        self.assertNotIn("'x'", payload["msg"])
        self.assertEqual(payload["order_number"], "GC-1-ABCDEF")


@override_settings(PERISHABLE_EXPIRY_HOURS=24, NON_PERISHABLE_EXPIRY_HOURS=48)
class PublicEndpointTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_expiration_policy(self):
        response = self.client.get(reverse("expiration-policy"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["perishable_expiry"], 24)
        self.assertEqual(response.data["non_perishable_expiry"], 48)
        self.assertIn("24h", response.data["expiration_policy"])

    @override_settings(REDIS_URL="")
    def test_health(self):
        response = self.client.get(reverse("health-check"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["components"]["db"], "ok")

    @override_settings(REDIS_URL="")
    def test_health_while_memory_fallback_serves(self):
        from django.apps import apps

        config = apps.get_app_config("storage")
        saved = {key: config.__dict__.get(key) for key in ("storage", "fallback_active", "_checked")}
        self.addCleanup(config.__dict__.update, saved)
        config.storage, config.fallback_active, config._checked = MemoryStorage(), True, True

        with patch("apps.utils.health.connection") as mock_connection:
            mock_connection.cursor.side_effect = OperationalError("connection refused")
            response = self.client.get(reverse("health-check"))

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "degraded")
        self.assertEqual(body["components"]["db"], "unavailable")
        self.assertEqual(body["components"]["storage"], "MemoryStorage")

    @override_settings(REDIS_URL="")
    def test_health_fails_when_database_backend_is_down(self):
        with patch("apps.utils.health.connection") as mock_connection:
            mock_connection.cursor.side_effect = OperationalError("connection refused")
            response = self.client.get(reverse("health-check"))

        self.assertEqual(response.status_code, 503)
