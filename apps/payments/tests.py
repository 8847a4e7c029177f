from django.core.cache import cache
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from .services import PaymentService


@override_settings(MOCK_PAYMENT_BASE_URL="https://pay.example.test/")
class PaymentServiceTests(TestCase):
    def test_momo_uses_mobile_money_provider(self):
        result = PaymentService.initiate("order-1", "momo")

        self.assertEqual(result["provider"], "MTN Mobile Money")
        self.assertEqual(result["payment_url"], "https://pay.example.test/pay?order=order-1&method=momo")

    def test_other_methods_fall_back_to_card(self):
        result = PaymentService.initiate("order-1", "card")
        self.assertEqual(result["provider"], "Visa/Mastercard")


@override_settings(MOCK_PAYMENT_BASE_URL="https://pay.example.test")
class InitiatePaymentViewTests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.url = reverse("payment-initiate")

    def test_initiate_returns_payment_url(self):
        response = self.client.post(self.url, {"order_id": "abc", "method": "momo"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("order=abc", response.data["payment_url"])
        self.assertEqual(response.data["provider"], "MTN Mobile Money")

    def test_order_id_is_required(self):
        response = self.client.post(self.url, {"method": "momo"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("order_id", response.data["error"])
