from decimal import Decimal
from unittest.mock import patch

from django.core import mail
from django.core.cache import cache
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from apps.accounts.services import AuthService
from apps.orders.models import OrderStatus
from apps.orders.services import OrderService
from apps.storage import get_storage


class StorefrontTestCase(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.storage = get_storage()

        category = self.storage.create_category("Épicerie", slug="epicerie")
        self.pasta = self.storage.create_product(
            sku="EP003", name="Pâtes 500g", price=Decimal("1200"), category_id=category.id,
            stock=50, images=["https://img.example.test/pasta.jpg"],
        )
        self.oil = self.storage.create_product(
            sku="EP002", name="Huile végétale 1L", price=Decimal("2800"), category_id=category.id, stock=5,
        )

    def login_as(self, username, is_staff=False):
        user = AuthService.register(self.storage, username, f"{username}@example.com", "password123")
        if is_staff:
            user = self.storage.update_user(user.id, is_staff=True)
        access = AuthService.issue_tokens(user)["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
        return user


class PickupSlotTests(StorefrontTestCase):
    def test_slots_are_filtered_by_date(self):
        self.storage.create_pickup_slot("2030-01-15", "14:00", "16:00")
        self.storage.create_pickup_slot("2030-01-15", "08:00", "10:00")
        self.storage.create_pickup_slot("2030-01-16", "08:00", "10:00")

        response = self.client.get(reverse("pickup-slot-list"), {"date": "2030-01-15"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s["time_from"] for s in response.data], ["08:00", "14:00"])
        self.assertEqual(response.data[0]["remaining"], 50)

    def test_bad_date(self):
        response = self.client.get(reverse("pickup-slot-list"), {"date": "15-01-2030"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class GuestCartTests(StorefrontTestCase):
    def setUp(self):
        super().setUp()
        self.client.credentials(HTTP_X_SESSION_ID="guest-session-1")

    def test_add_merges_same_product(self):
        self.client.post(reverse("cart"), {"product_id": self.pasta.id, "quantity": 2}, format="json")
        response = self.client.post(reverse("cart"), {"product_id": self.pasta.id}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["quantity"], 3)
        self.assertEqual(response.data["name"], "Pâtes 500g")
        self.assertEqual(response.data["image_url"], "https://img.example.test/pasta.jpg")

        cart = self.client.get(reverse("cart")).data
        self.assertEqual(len(cart["items"]), 1)
        self.assertEqual(Decimal(cart["total"]), Decimal("3600.00"))
        self.assertEqual(cart["currency"], "XAF")

    def test_update_and_remove(self):
        item_id = self.client.post(reverse("cart"), {"product_id": self.oil.id}, format="json").data["id"]

        response = self.client.patch(reverse("cart-item", args=[item_id]), {"quantity": 4}, format="json")
        self.assertEqual(response.data["quantity"], 4)

        response = self.client.patch(reverse("cart-item", args=[item_id]), {"quantity": 0}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.delete(reverse("cart-item", args=[item_id]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.get(reverse("cart")).data["items"], [])

    def test_unknown_product(self):
        response = self.client.post(
            reverse("cart"),
            {"product_id": "00000000-0000-0000-0000-000000000000"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_session_header_required_for_writes(self):
        self.client.credentials()
        response = self.client.post(reverse("cart"), {"product_id": self.pasta.id}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cart_without_session_is_empty(self):
        self.client.credentials()
        response = self.client.get(reverse("cart"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["items"], [])
        self.assertEqual(Decimal(response.data["total"]), Decimal("0.00"))
        self.assertEqual(response.data["currency"], "XAF")

    def test_other_session_cannot_touch_item(self):
        item_id = self.client.post(reverse("cart"), {"product_id": self.oil.id}, format="json").data["id"]

        self.client.credentials(HTTP_X_SESSION_ID="guest-session-2")
        response = self.client.delete(reverse("cart-item", args=[item_id]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertIsNotNone(self.storage.get_cart_item(item_id))


class UserCartTests(StorefrontTestCase):
    def test_user_cart_ignores_session(self):
        self.login_as("awa")
        self.client.post(reverse("cart"), {"product_id": self.pasta.id}, format="json")

        self.login_as("ben")
        self.assertEqual(self.client.get(reverse("cart")).data["items"], [])

    def test_other_user_cannot_update_item(self):
        self.login_as("awa")
        item_id = self.client.post(reverse("cart"), {"product_id": self.pasta.id}, format="json").data["id"]

        self.login_as("ben")
        response = self.client.patch(reverse("cart-item", args=[item_id]), {"quantity": 9}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


@patch("apps.orders.services.notifications.queue_order_confirmation")
class OrderEndpointTests(StorefrontTestCase):
    def setUp(self):
        super().setUp()
        self.slot = self.storage.create_pickup_slot("2030-01-15", "10:00", "12:00")

    def place(self, user=None, email="awa@example.com"):
        return OrderService.place_order(
            self.storage,
            customer_name="Awa",
            customer_phone="+242061234567",
            pickup_slot_id=self.slot.id,
            items=[{"product_id": self.pasta.id, "quantity": 1}],
            user=user,
            customer_email=email,
        )

    def test_order_detail_is_public(self, mock_queue):
        order = self.place()

        response = self.client.get(reverse("order-detail", args=[order.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["order_number"], order.order_number)
        self.assertEqual(response.data["items"][0]["product_name"], "Pâtes 500g")

    def test_unknown_order(self, mock_queue):
        response = self.client.get(reverse("order-detail", args=["missing"]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_invalid_checkout_payload(self, mock_queue):
        response = self.client.post(reverse("order-list"), {"customer_name": "Awa", "items": []}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_resend_confirmation(self, mock_queue):
        user = self.login_as("awa")
        order = self.place(user=user)

        response = self.client.post(reverse("order-resend-confirmation", args=[order.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(order.temp_pickup_code, mail.outbox[0].body)

    def test_resend_for_someone_elses_order(self, mock_queue):
        owner = self.login_as("awa")
        order = self.place(user=owner)

        self.login_as("ben")
        response = self.client.post(reverse("order-resend-confirmation", args=[order.id]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @patch("apps.orders.services.notifications.send_order_confirmation_email", return_value=False)
    def test_resend_delivery_failure(self, mock_send, mock_queue):
        user = self.login_as("awa")
        order = self.place(user=user)

        response = self.client.post(reverse("order-resend-confirmation", args=[order.id]))
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    def test_status_update_is_staff_only(self, mock_queue):
        order = self.place()
        url = reverse("order-status", args=[order.id])

        self.login_as("awa")
        response = self.client.patch(url, {"status": OrderStatus.PREPARING}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.login_as("manager", is_staff=True)
        response = self.client.patch(url, {"status": OrderStatus.PREPARING}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], OrderStatus.PREPARING)

        response = self.client.patch(url, {"status": OrderStatus.PICKED_UP}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
