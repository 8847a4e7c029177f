from decimal import Decimal
from io import StringIO

from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from apps.accounts.services import AuthService
from apps.storage import get_storage

from .seed import CATEGORIES, PRODUCTS, seed_storefront
from .services import CatalogService


class CatalogTestMixin:

    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.storage = get_storage()
        self.fruits = self.storage.create_category("Fruits", slug="fruits")
        self.drinks = self.storage.create_category("Boissons", slug="boissons")

        self.banana = self.create_product("FL001", "Bananes", "1500", self.fruits, stock=50, perishable=True)
        self.tomato = self.create_product("FL002", "Tomates", "800", self.fruits, stock=0, perishable=True)
        self.water = self.create_product("BO001", "Eau minérale", "600", self.drinks, stock=100)

    def create_product(self, sku, name, price, category, stock=10, perishable=False, is_active=True):
        return self.storage.create_product(
            sku=sku,
            name=name,
            price=Decimal(price),
            category_id=category.id,
            stock=stock,
            is_perishable=perishable,
            is_active=is_active,
            images=[f"https://img.example.test/{sku}.jpg"],
        )

    def authenticate(self, username="awa"):
        user = AuthService.register(self.storage, username, f"{username}@example.com", "password123")
        tokens = AuthService.issue_tokens(user)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
        return user


class CategoryTests(CatalogTestMixin, TestCase):

    def test_categories_count_active_products(self):
        self.create_product("FL999", "Mangues", "2000", self.fruits, is_active=False)

        response = self.client.get(reverse("category-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        counts = {c["slug"]: c["product_count"] for c in response.data}
        self.assertEqual(counts, {"fruits": 2, "boissons": 1})


class ProductListTests(CatalogTestMixin, TestCase):

    def test_price_sort_and_stock_flag(self):
        response = self.client.get(reverse("product-list"), {"sort": "price_asc"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 3)
        self.assertEqual([p["sku"] for p in response.data["results"]], ["BO001", "FL002", "FL001"])

        tomato = response.data["results"][1]
        self.assertFalse(tomato["in_stock"])
        self.assertEqual(tomato["thumb_url"], "https://img.example.test/FL002.jpg")

    def test_filter_by_category_slug(self):
        response = self.client.get(reverse("product-list"), {"category": "boissons"})

        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["name"], "Eau minérale")

    def test_unknown_category_is_an_empty_page(self):
        response = self.client.get(reverse("product-list"), {"category": "nope"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 0)
        self.assertEqual(response.data["results"], [])

    def test_search_is_case_insensitive(self):
        response = self.client.get(reverse("product-list"), {"search": "BANA"})
        self.assertEqual([p["sku"] for p in response.data["results"]], ["FL001"])

    def test_inactive_products_are_hidden(self):
        self.create_product("FL999", "Mangues", "2000", self.fruits, is_active=False)

        response = self.client.get(reverse("product-list"), {"search": "Mangues"})
        self.assertEqual(response.data["count"], 0)

    def test_pagination_links(self):
        response = self.client.get(reverse("product-list"), {"page_size": 2, "sort": "price_asc"})

        self.assertEqual(len(response.data["results"]), 2)
        self.assertEqual(response.data["next"], 2)
        self.assertIsNone(response.data["previous"])

        response = self.client.get(reverse("product-list"), {"page_size": 2, "page": 2, "sort": "price_asc"})
        self.assertEqual(len(response.data["results"]), 1)
        self.assertIsNone(response.data["next"])
        self.assertEqual(response.data["previous"], 1)

    def test_invalid_sort(self):
        response = self.client.get(reverse("product-list"), {"sort": "random"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ProductDetailTests(CatalogTestMixin, TestCase):

    def test_detail_includes_category(self):
        response = self.client.get(reverse("product-detail", args=[self.banana.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["category"]["slug"], "fruits")
        self.assertEqual(response.data["currency"], "XAF")

    def test_unknown_and_malformed_ids(self):
        for product_id in ("00000000-0000-0000-0000-000000000000", "not-a-uuid"):
            response = self.client.get(reverse("product-detail", args=[product_id]))
            self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class SuggestionTests(CatalogTestMixin, TestCase):

    def test_suggestions_are_capped(self):
        for i in range(7):
            self.create_product(f"JU00{i}", f"Jus {i}", "1000", self.drinks)

        response = self.client.get(reverse("product-suggest"), {"q": "jus"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 5)
        self.assertEqual(set(response.data[0]), {"id", "name", "thumb_url"})

    def test_blank_query(self):
        self.assertEqual(CatalogService.suggest(self.storage, "   "), [])


class FavoriteTests(CatalogTestMixin, TestCase):

    def test_requires_authentication(self):
        response = self.client.get(reverse("favorite-list"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_add_list_remove(self):
        self.authenticate()
        url = reverse("favorite-detail", args=[self.banana.id])

        self.assertEqual(self.client.post(url).status_code, status.HTTP_201_CREATED)
        # Adding twice keeps one favorite
        self.assertEqual(self.client.post(url).status_code, status.HTTP_201_CREATED)

        response = self.client.get(reverse("favorite-list"))
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]["product"]["name"], "Bananes")

        self.assertEqual(self.client.delete(url).status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.get(reverse("favorite-list")).data, [])

    def test_favorite_unknown_product(self):
        self.authenticate()
        response = self.client.post(reverse("favorite-detail", args=["00000000-0000-0000-0000-000000000000"]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class RatingTests(CatalogTestMixin, TestCase):

    def test_rating_updates_average(self):
        url = reverse("product-ratings", args=[self.banana.id])

        self.authenticate("awa")
        self.assertEqual(self.client.post(url, {"rating": 5, "comment": "Top"}, format="json").status_code, 201)
        self.authenticate("ben")
        self.assertEqual(self.client.post(url, {"rating": 4}, format="json").status_code, 201)
        self.authenticate("cia")
        self.assertEqual(self.client.post(url, {"rating": 4}, format="json").status_code, 201)

        product = self.storage.get_product(self.banana.id)
        self.assertEqual(product.rating_count, 3)
        self.assertEqual(product.rating_average, Decimal("4.33"))

        self.client.credentials()
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 3)
        self.assertIn(response.data["results"][0]["user"]["username"], {"awa", "ben", "cia"})

    def test_rating_out_of_range(self):
        self.authenticate()
        response = self.client.post(reverse("product-ratings", args=[self.banana.id]), {"rating": 6}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_rating_requires_authentication(self):
        response = self.client.post(reverse("product-ratings", args=[self.banana.id]), {"rating": 3}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_popular_sort_follows_ratings(self):
        user = self.authenticate()
        CatalogService.rate_product(self.storage, user.id, self.water.id, 5)

        response = self.client.get(reverse("product-list"), {"sort": "popular"})
        self.assertEqual(response.data["results"][0]["sku"], "BO001")


class SeedTests(TestCase):

    def test_seed_is_idempotent(self):
        storage = get_storage()

        first = seed_storefront(storage, days=2, slot_capacity=10)
        self.assertEqual(first["categories"], len(CATEGORIES))
        self.assertEqual(first["products"], len(PRODUCTS))
        self.assertEqual(first["slots"], 8)
        self.assertEqual(first["users"], 1)

        second = seed_storefront(storage, days=2, slot_capacity=10)
        self.assertEqual(second, {"categories": 0, "products": 0, "slots": 0, "users": 0})

        self.assertIsNotNone(storage.get_user_by_email("test@example.com"))

    def test_management_command(self):
        out = StringIO()
        call_command("seed_storefront", "--days", "1", "--no-demo-user", stdout=out)

        self.assertEqual(len(get_storage().get_pickup_slots()), 4)
        self.assertIsNone(get_storage().get_user_by_email("test@example.com"))
