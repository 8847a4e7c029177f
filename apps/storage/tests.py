import threading
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase, override_settings

from apps.utils.utils import now

from . import records
from .apps import MEMORY_BACKEND, StorageConfig
from .memory import MemoryStorage
from .orm import DjangoStorage


class StorageContract:
    """
    Behaviour every backend must share. Subclasses provide make_storage().
    """

    def make_storage(self):
        raise NotImplementedError

    def setUp(self):
        self.storage = self.make_storage()
        self.category = self.storage.create_category("Boissons", slug="boissons")
        self.product = self.storage.create_product(
            sku="BO001", name="Eau minérale 1.5L", price=Decimal("600"),
            category_id=self.category.id, stock=3, images=["https://img.example.test/water.jpg"],
        )
        self.slot = self.storage.create_pickup_slot("2030-01-15", "10:00", "12:00", capacity=1)

    def test_decrement_stock_is_conditional(self):
        self.assertTrue(self.storage.decrement_stock(self.product.id, 2))
        self.assertFalse(self.storage.decrement_stock(self.product.id, 2))
        self.assertEqual(self.storage.get_product(self.product.id).stock, 1)

        self.storage.increment_stock(self.product.id, 4)
        self.assertEqual(self.storage.get_product(self.product.id).stock, 5)

    def test_slot_booking_never_goes_negative(self):
        self.assertTrue(self.storage.book_slot(self.slot.id))
        self.assertFalse(self.storage.book_slot(self.slot.id))
        self.assertEqual(self.storage.get_pickup_slot(self.slot.id).remaining, 0)

    def test_release_never_exceeds_capacity(self):
        self.storage.release_slot(self.slot.id)
        self.assertEqual(self.storage.get_pickup_slot(self.slot.id).remaining, 1)

        self.storage.book_slot(self.slot.id)
        self.storage.release_slot(self.slot.id)
        self.assertEqual(self.storage.get_pickup_slot(self.slot.id).remaining, 1)

    def test_atomic_rolls_back(self):
        with self.assertRaises(RuntimeError):
            with self.storage.atomic():
                self.storage.decrement_stock(self.product.id, 3)
                self.storage.book_slot(self.slot.id)
                raise RuntimeError("abort")

        self.assertEqual(self.storage.get_product(self.product.id).stock, 3)
        self.assertEqual(self.storage.get_pickup_slot(self.slot.id).remaining, 1)

    def test_missing_and_malformed_ids(self):
        self.assertIsNone(self.storage.get_product("not-a-uuid"))
        self.assertIsNone(self.storage.get_order("00000000-0000-0000-0000-000000000000"))
        self.assertIsNone(self.storage.get_user("nope"))

    def test_user_lookups(self):
        user = self.storage.create_user("awa", "Awa@Example.com", "hash")

        self.assertEqual(self.storage.get_user_by_email("awa@example.com").id, user.id)
        self.assertEqual(self.storage.get_user_by_username("awa").id, user.id)

        updated = self.storage.update_user(user.id, phone="+242061234567", password_reset_token="digest",
                                           password_reset_expires=now() + timedelta(minutes=5))
        self.assertEqual(updated.phone, "+242061234567")
        self.assertEqual(self.storage.get_user_by_reset_token("digest", now()).id, user.id)
        self.assertIsNone(self.storage.get_user_by_reset_token("digest", now() + timedelta(minutes=10)))

    def test_update_user_rejects_unknown_fields(self):
        user = self.storage.create_user("awa", "awa@example.com", "hash")
        with self.assertRaises(ValueError):
            self.storage.update_user(user.id, favourite_colour="blue")

    def test_records_are_copies(self):
        product = self.storage.get_product(self.product.id)
        product.stock = 999
        product.images.append("https://img.example.test/other.jpg")

        fresh = self.storage.get_product(self.product.id)
        self.assertEqual(fresh.stock, 3)
        self.assertEqual(fresh.images, ["https://img.example.test/water.jpg"])

    def test_suggestions_and_category_counts(self):
        suggestions = self.storage.get_product_suggestions("eau")
        self.assertEqual([s.name for s in suggestions], ["Eau minérale 1.5L"])
        self.assertEqual(suggestions[0].thumb_url, "https://img.example.test/water.jpg")

        self.assertEqual(self.storage.get_category_by_slug("boissons").product_count, 1)

    def test_rating_average(self):
        user = self.storage.create_user("awa", "awa@example.com", "hash")
        for value in (5, 4, 4):
            self.storage.create_rating(user.id, self.product.id, value)

        product = self.storage.get_product(self.product.id)
        self.assertEqual(product.rating_count, 3)
        self.assertEqual(product.rating_average, Decimal("4.33"))

        page = self.storage.get_product_ratings(self.product.id)
        self.assertEqual(page.count, 3)
        self.assertEqual(page.results[0].username, "awa")

    def test_favorites_are_unique(self):
        user = self.storage.create_user("awa", "awa@example.com", "hash")
        self.storage.add_favorite(user.id, self.product.id)
        self.storage.add_favorite(user.id, self.product.id)

        favorites = self.storage.get_user_favorites(user.id)
        self.assertEqual(len(favorites), 1)
        self.assertEqual(favorites[0].product.name, "Eau minérale 1.5L")

        self.storage.remove_favorite(user.id, self.product.id)
        self.assertEqual(self.storage.get_user_favorites(user.id), [])

    def test_guest_and_user_carts_are_separate(self):
        user = self.storage.create_user("awa", "awa@example.com", "hash")
        self.storage.add_to_cart(self.product.id, 1, session_id="s-1")
        self.storage.add_to_cart(self.product.id, 2, session_id="s-1")
        self.storage.add_to_cart(self.product.id, 1, user_id=user.id)

        guest = self.storage.get_session_cart("s-1")
        self.assertEqual(len(guest), 1)
        self.assertEqual(guest[0].quantity, 3)
        self.assertEqual(guest[0].subtotal, Decimal("1800"))

        self.assertEqual(len(self.storage.get_user_cart(user.id)), 1)
        self.assertEqual(self.storage.get_session_cart("s-2"), [])

    def test_order_round_trip_and_expiry_query(self):
        created = now()
        order = self.storage.create_order(
            records.Order(
                id="",
                order_number="GC-1-AAAAAA",
                customer_name="Awa",
                customer_phone="+242061234567",
                pickup_slot_id=self.slot.id,
                status="paid",
                amount=Decimal("1200.00"),
                temp_pickup_code="ABCD1234",
                expires_at=created - timedelta(minutes=1),
                created_at=created,
            ),
            [records.OrderItem(
                id="", order_id="", product_id=self.product.id, product_name="Eau minérale 1.5L",
                product_price=Decimal("600.00"), quantity=2, subtotal=Decimal("1200.00"),
            )],
        )

        fetched = self.storage.get_order(order.id)
        self.assertEqual(fetched.items[0].quantity, 2)
        self.assertEqual(fetched.pickup_slot.time_from, "10:00")

        expired = self.storage.get_expired_orders(now(), ("paid", "preparing", "ready"))
        self.assertEqual([o.id for o in expired], [order.id])
        self.assertEqual(len(expired[0].items), 1)

        self.assertFalse(self.storage.update_order_status(order.id, "ready", from_statuses=("preparing",)))
        self.assertEqual(self.storage.get_order(order.id).status, "paid")

        self.assertTrue(self.storage.update_order_status(order.id, "ready", final_pickup_code="ZZZZ9999"))
        self.assertEqual(self.storage.get_order(order.id).final_pickup_code, "ZZZZ9999")
        self.assertFalse(self.storage.update_order_status("00000000-0000-0000-0000-000000000000", "ready"))
        self.assertEqual(self.storage.get_expired_orders(now(), ("paid",)), [])


class DjangoStorageTests(StorageContract, TestCase):
    def make_storage(self):
        return DjangoStorage()

    def test_ping(self):
        self.assertTrue(self.storage.ping())


class MemoryStorageTests(StorageContract, TestCase):
    def make_storage(self):
        return MemoryStorage()

    def test_concurrent_bookings_for_last_seat(self):
        results = []
        barrier = threading.Barrier(10)

        def book():
            barrier.wait()
            results.append(self.storage.book_slot(self.slot.id))

        threads = [threading.Thread(target=book) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(results.count(True), 1)
        self.assertEqual(self.storage.get_pickup_slot(self.slot.id).remaining, 0)

    def test_concurrent_stock_takes(self):
        results = []
        barrier = threading.Barrier(8)

        def take():
            barrier.wait()
            results.append(self.storage.decrement_stock(self.product.id, 1))

        threads = [threading.Thread(target=take) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(results.count(True), 3)
        self.assertEqual(self.storage.get_product(self.product.id).stock, 0)


class BackendSelectionTests(TestCase):
    def setUp(self):
        from django.apps import apps

        self.config = apps.get_app_config("storage")
        saved = {key: self.config.__dict__.get(key) for key in ("storage", "fallback_active", "_checked")}
        self.addCleanup(self.config.__dict__.update, saved)

    @override_settings(STOREFRONT_STORAGE=MEMORY_BACKEND, STOREFRONT_STORAGE_FALLBACK=False)
    def test_configured_backend_is_loaded(self):
        StorageConfig.ready(self.config)

        self.assertIsInstance(self.config.get_storage(), MemoryStorage)
        self.assertFalse(self.config.fallback_active)

    @override_settings(STOREFRONT_STORAGE="apps.storage.orm.DjangoStorage", STOREFRONT_STORAGE_FALLBACK=True)
    def test_fallback_is_probed_on_first_use(self):
        with patch.object(DjangoStorage, "ping", return_value=False) as mock_ping:
            StorageConfig.ready(self.config)
            mock_ping.assert_not_called()

            storage = self.config.get_storage()
            self.config.get_storage()

        mock_ping.assert_called_once()
        self.assertIsInstance(storage, MemoryStorage)
        self.assertTrue(self.config.fallback_active)

    @override_settings(STOREFRONT_STORAGE="apps.storage.orm.DjangoStorage", STOREFRONT_STORAGE_FALLBACK=True)
    def test_reachable_database_is_kept(self):
        StorageConfig.ready(self.config)

        self.assertIsInstance(self.config.get_storage(), DjangoStorage)
        self.assertFalse(self.config.fallback_active)
