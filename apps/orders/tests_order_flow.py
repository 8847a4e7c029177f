from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.core.cache import cache
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from apps.accounts.services import AuthService
from apps.orders.models import Order, OrderStatus
from apps.orders.services import OrderService
from apps.orders.tasks import expire_overdue_orders
from apps.storage import get_storage
from apps.storage.memory import MemoryStorage
from apps.storage.orm import DjangoStorage
from apps.utils.exceptions import InsufficientStockError, SlotUnavailableError, ValidationError
from apps.utils.utils import now


@override_settings(PERISHABLE_EXPIRY_HOURS=24, NON_PERISHABLE_EXPIRY_HOURS=48, STOREFRONT_CURRENCY="XAF")
@patch("apps.orders.services.notifications.queue_order_confirmation")
class OrderFlowTests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.storage = get_storage()

        category = self.storage.create_category("Boulangerie", slug="boulangerie")
        self.bread = self.storage.create_product(
            sku="BL001", name="Pain complet", price=Decimal("800"), category_id=category.id,
            stock=5, is_perishable=True,
        )
        self.rice = self.storage.create_product(
            sku="EP001", name="Riz 5kg", price=Decimal("5500"), category_id=category.id, stock=10,
        )
        self.slot = self.storage.create_pickup_slot("2030-01-15", "10:00", "12:00", capacity=2)

    def payload(self, items=None, **overrides):
        data = {
            "customer_name": "Awa Mbemba",
            "customer_phone": "+242 06 123 4567",
            "customer_email": "awa@example.com",
            "pickup_slot_id": self.slot.id,
            "items": items or [{"product_id": self.rice.id, "quantity": 2}],
        }
        data.update(overrides)
        return data

    def place(self, items=None, **overrides):
        data = self.payload(items, **overrides)
        return OrderService.place_order(self.storage, **data)

    def test_guest_checkout(self, mock_queue):
        response = self.client.post(reverse("order-list"), self.payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["status"], OrderStatus.PAID)
        self.assertEqual(Decimal(response.data["amount"]), Decimal("11000.00"))
        self.assertIsNone(response.data["user_id"])
        self.assertEqual(len(response.data["temp_pickup_code"]), 8)
        self.assertTrue(response.data["order_number"].startswith("GC-"))
        self.assertEqual(response.data["pickup_slot"]["time_from"], "10:00")

        self.assertEqual(self.storage.get_product(self.rice.id).stock, 8)
        self.assertEqual(self.storage.get_pickup_slot(self.slot.id).remaining, 1)
        mock_queue.assert_called_once()
        self.assertEqual(mock_queue.call_args[0][1], "awa@example.com")

    def test_signed_in_checkout_is_listed(self, mock_queue):
        user = AuthService.register(self.storage, "awa", "awa@example.com", "password123")
        access = AuthService.issue_tokens(user)["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")

        response = self.client.post(reverse("order-list"), self.payload(customer_email=""), format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["user_id"], user.id)
        # Falls back to the account address
        self.assertEqual(mock_queue.call_args[0][1], "awa@example.com")

        response = self.client.get(reverse("order-list"))
        self.assertEqual(len(response.data), 1)

    def test_listing_requires_authentication(self, mock_queue):
        response = self.client.get(reverse("order-list"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_amount_is_sum_of_line_subtotals(self, mock_queue):
        order = self.place([
            {"product_id": self.rice.id, "quantity": 3},
            {"product_id": self.bread.id, "quantity": 2},
        ])

        self.assertEqual(len(order.items), 2)
        self.assertEqual(sum(item.subtotal for item in order.items), order.amount)
        self.assertEqual(order.amount, Decimal("18100.00"))

        response = self.client.get(reverse("order-detail", args=[order.id]))
        subtotals = sum(Decimal(item["subtotal"]) for item in response.data["items"])
        self.assertEqual(subtotals, Decimal(response.data["amount"]))

    def test_duplicate_lines_are_merged(self, mock_queue):
        order = self.place([
            {"product_id": self.rice.id, "quantity": 1},
            {"product_id": self.rice.id, "quantity": 2},
        ])

        self.assertEqual(len(order.items), 1)
        self.assertEqual(order.items[0].quantity, 3)
        self.assertEqual(self.storage.get_product(self.rice.id).stock, 7)

    def test_insufficient_stock_rolls_back_everything(self, mock_queue):
        with self.assertRaises(InsufficientStockError):
            self.place([
                {"product_id": self.rice.id, "quantity": 2},
                {"product_id": self.bread.id, "quantity": 6},
            ])

        # The rice taken for the first line went back
        self.assertEqual(self.storage.get_product(self.rice.id).stock, 10)
        self.assertEqual(self.storage.get_pickup_slot(self.slot.id).remaining, 2)
        self.assertEqual(Order.objects.count(), 0)
        mock_queue.assert_not_called()

    def test_insufficient_stock_over_http(self, mock_queue):
        response = self.client.post(
            reverse("order-list"),
            self.payload([{"product_id": self.bread.id, "quantity": 99}]),
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "insufficient_stock")
        self.assertIn("Pain complet", response.data["error"])

    def test_full_slot(self, mock_queue):
        self.place()
        self.place()

        with self.assertRaises(SlotUnavailableError):
            self.place()

        self.assertEqual(self.storage.get_pickup_slot(self.slot.id).remaining, 0)
        # Stock for the refused order was not kept
        self.assertEqual(self.storage.get_product(self.rice.id).stock, 6)

    def test_unknown_slot(self, mock_queue):
        with self.assertRaises(ValidationError):
            self.place(pickup_slot_id="00000000-0000-0000-0000-000000000000")

    def test_expiry_window_by_perishability(self, mock_queue):
        dry = self.place()
        fresh = self.place([{"product_id": self.bread.id, "quantity": 1}])

        self.assertEqual(dry.expires_at - dry.created_at, timedelta(hours=48))
        self.assertEqual(fresh.expires_at - fresh.created_at, timedelta(hours=24))

    def test_status_walks_forward_only(self, mock_queue):
        order = self.place()

        with self.assertRaises(ValidationError):
            OrderService.update_status(self.storage, order.id, OrderStatus.READY)

        order = OrderService.update_status(self.storage, order.id, OrderStatus.PREPARING)
        order = OrderService.update_status(self.storage, order.id, OrderStatus.READY)
        self.assertEqual(len(order.final_pickup_code), 8)

        order = OrderService.update_status(self.storage, order.id, OrderStatus.PICKED_UP)
        self.assertEqual(order.status, OrderStatus.PICKED_UP)

        with self.assertRaises(ValidationError):
            OrderService.update_status(self.storage, order.id, OrderStatus.CANCELLED_EXPIRED)

    def test_manual_cancel_restores_stock(self, mock_queue):
        order = self.place()

        order = OrderService.update_status(self.storage, order.id, OrderStatus.CANCELLED_EXPIRED)

        self.assertEqual(order.status, OrderStatus.CANCELLED_EXPIRED)
        self.assertEqual(self.storage.get_product(self.rice.id).stock, 10)
        self.assertEqual(self.storage.get_pickup_slot(self.slot.id).remaining, 2)

    def test_expire_overdue_orders(self, mock_queue):
        overdue = self.place()
        current = self.place([{"product_id": self.bread.id, "quantity": 1}])
        Order.objects.filter(pk=overdue.id).update(expires_at=now() - timedelta(minutes=1))

        result = expire_overdue_orders()

        self.assertEqual(result, "Expired 1 orders")
        self.assertEqual(self.storage.get_order(overdue.id).status, OrderStatus.CANCELLED_EXPIRED)
        self.assertEqual(self.storage.get_order(current.id).status, OrderStatus.PAID)
        self.assertEqual(self.storage.get_product(self.rice.id).stock, 10)
        self.assertEqual(self.storage.get_pickup_slot(self.slot.id).remaining, 1)

        # A second sweep finds nothing
        self.assertEqual(OrderService.expire_overdue_orders(self.storage), 0)

    def test_picked_up_orders_never_expire(self, mock_queue):
        order = self.place()
        for next_status in (OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.PICKED_UP):
            OrderService.update_status(self.storage, order.id, next_status)
        Order.objects.filter(pk=order.id).update(expires_at=now() - timedelta(hours=1))

        self.assertEqual(OrderService.expire_overdue_orders(self.storage), 0)
        self.assertEqual(self.storage.get_product(self.rice.id).stock, 8)


class CancellationRaceContract:
    """
    Two writers cancelling the same order restore its stock and seat once.
    """

    def make_storage(self):
        raise NotImplementedError

    def setUp(self):
        self.storage = self.make_storage()
        category = self.storage.create_category("Épicerie", slug="epicerie")
        self.rice = self.storage.create_product(
            sku="EP001", name="Riz 5kg", price=Decimal("5500"), category_id=category.id, stock=10,
        )
        self.slot = self.storage.create_pickup_slot("2030-01-15", "10:00", "12:00", capacity=2)

    def place(self):
        return OrderService.place_order(
            self.storage,
            customer_name="Awa",
            customer_phone="+242061234567",
            pickup_slot_id=self.slot.id,
            items=[{"product_id": self.rice.id, "quantity": 3}],
        )

    def assertRestoredOnce(self):
        self.assertEqual(self.storage.get_product(self.rice.id).stock, 10)
        self.assertEqual(self.storage.get_pickup_slot(self.slot.id).remaining, 2)

    def test_staff_cancel_during_sweep(self, mock_queue):
        order = self.place()
        self.assertEqual(self.storage.get_product(self.rice.id).stock, 7)

        read_expired = self.storage.get_expired_orders

        def read_then_cancel(*args):
            stale = read_expired(*args)
            # Lands between the sweep's read and its write
            OrderService.update_status(self.storage, order.id, OrderStatus.CANCELLED_EXPIRED)
            return stale

        with patch.object(self.storage, "get_expired_orders", side_effect=read_then_cancel):
            self.assertEqual(OrderService.expire_overdue_orders(self.storage), 0)

        self.assertEqual(self.storage.get_order(order.id).status, OrderStatus.CANCELLED_EXPIRED)
        self.assertRestoredOnce()

    def test_stale_cancel_is_refused(self, mock_queue):
        order = self.place()
        stale = self.storage.get_order(order.id)

        OrderService.expire_overdue_orders(self.storage)

        self.assertFalse(OrderService._cancel(self.storage, stale))
        self.assertRestoredOnce()

    def test_cancel_after_pickup_does_nothing(self, mock_queue):
        order = self.place()
        stale = self.storage.get_order(order.id)
        for next_status in (OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.PICKED_UP):
            OrderService.update_status(self.storage, order.id, next_status)

        self.assertFalse(OrderService._cancel(self.storage, stale))
        self.assertEqual(self.storage.get_order(order.id).status, OrderStatus.PICKED_UP)
        self.assertEqual(self.storage.get_product(self.rice.id).stock, 7)

    def test_stale_forward_move_is_refused(self, mock_queue):
        order = self.place()
        OrderService.expire_overdue_orders(self.storage)

        applied = self.storage.update_order_status(
            order.id, OrderStatus.PREPARING, from_statuses=(OrderStatus.PAID,),
        )

        self.assertFalse(applied)
        self.assertEqual(self.storage.get_order(order.id).status, OrderStatus.CANCELLED_EXPIRED)


@override_settings(NON_PERISHABLE_EXPIRY_HOURS=-1)
@patch("apps.orders.services.notifications.queue_order_confirmation")
class DjangoCancellationRaceTests(CancellationRaceContract, TestCase):
    def make_storage(self):
        return DjangoStorage()


@override_settings(NON_PERISHABLE_EXPIRY_HOURS=-1)
@patch("apps.orders.services.notifications.queue_order_confirmation")
class MemoryCancellationRaceTests(CancellationRaceContract, TestCase):
    def make_storage(self):
        return MemoryStorage()
