import copy
import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import replace
from decimal import Decimal, ROUND_HALF_UP

from django.utils import timezone
from django.utils.text import slugify

from . import records
from .base import RATINGS_PAGE_SIZE, SUGGESTION_LIMIT, Storage

logger = logging.getLogger(__name__)

TABLES = (
    "users",
    "categories",
    "products",
    "favorites",
    "ratings",
    "cart_items",
    "pickup_slots",
    "orders",
    "order_items",
)


def _new_id() -> str:
    return str(uuid.uuid4())


class MemoryStorage(Storage):
    """
    Process-local backend for development without a database.

    One re-entrant lock serializes every operation, so the conditional
    counter updates are atomic across request threads. Records handed out
    are copies; mutating them never changes the stored state.
    """

    def __init__(self):
        self._lock = threading.RLock()
        for table in TABLES:
            setattr(self, f"_{table}", {})

    @contextmanager
    def atomic(self):
        with self._lock:
            snapshot = {table: copy.deepcopy(getattr(self, f"_{table}")) for table in TABLES}
            try:
                yield
            except Exception:
                for table, rows in snapshot.items():
                    setattr(self, f"_{table}", rows)
                raise

    # ---------- Users ----------

    def get_user(self, user_id):
        with self._lock:
            user = self._users.get(str(user_id))
            return replace(user) if user else None

    def get_user_by_username(self, username):
        with self._lock:
            for user in self._users.values():
                if user.username == username:
                    return replace(user)
        return None

    def get_user_by_email(self, email):
        with self._lock:
            for user in self._users.values():
                if user.email.lower() == (email or "").lower():
                    return replace(user)
        return None

    def get_user_by_reset_token(self, token_hash, now):
        with self._lock:
            for user in self._users.values():
                if (
                    user.password_reset_token == token_hash
                    and user.password_reset_expires is not None
                    and user.password_reset_expires > now
                ):
                    return replace(user)
        return None

    def create_user(self, username, email, password, phone=""):
        with self._lock:
            user = records.User(
                id=_new_id(),
                username=username,
                email=email,
                password=password,
                phone=phone or "",
                created_at=timezone.now(),
            )
            self._users[user.id] = user
            return replace(user)

    def update_user(self, user_id, **fields):
        with self._lock:
            user = self._users.get(str(user_id))
            if user is None:
                return None
            for key, value in fields.items():
                if not hasattr(user, key) or key in ("id", "created_at"):
                    raise ValueError(f"Unknown user field: {key}")
                setattr(user, key, value)
            return replace(user)

    # ---------- Categories ----------

    def _active_count(self, category_id):
        return sum(1 for p in self._products.values() if p.category_id == category_id and p.is_active)

    def _category_copy(self, category):
        return replace(category, product_count=self._active_count(category.id))

    def get_categories(self):
        with self._lock:
            return [self._category_copy(c) for c in sorted(self._categories.values(), key=lambda c: c.name)]

    def get_category(self, category_id):
        with self._lock:
            category = self._categories.get(str(category_id))
            return self._category_copy(category) if category else None

    def get_category_by_slug(self, slug):
        with self._lock:
            for category in self._categories.values():
                if category.slug == slug:
                    return self._category_copy(category)
        return None

    def create_category(self, name, slug="", image_url="", description=""):
        with self._lock:
            if any(c.name == name for c in self._categories.values()):
                raise ValueError(f"Category {name!r} already exists")
            category = records.Category(
                id=_new_id(),
                name=name,
                slug=slug or slugify(name),
                image_url=image_url,
                description=description,
            )
            self._categories[category.id] = category
            return replace(category)

    # ---------- Products ----------

    def _product_copy(self, product, with_category=False):
        product = replace(product, images=list(product.images), category=None)
        if with_category:
            category = self._categories.get(product.category_id)
            product.category = replace(category) if category else None
        return product

    def get_products(self, search=None, category_id=None, sort="newest", page=1, page_size=20):
        with self._lock:
            products = [p for p in self._products.values() if p.is_active]
            if search:
                needle = search.lower()
                products = [p for p in products if needle in p.name.lower()]
            if category_id:
                products = [p for p in products if p.category_id == str(category_id)]

            # Stable sorts: newest first as the tie-breaker
            products.sort(key=lambda p: p.created_at, reverse=True)
            if sort == "price_asc":
                products.sort(key=lambda p: p.price)
            elif sort == "price_desc":
                products.sort(key=lambda p: p.price, reverse=True)
            elif sort == "popular":
                products.sort(key=lambda p: (p.rating_count, p.rating_average), reverse=True)

            offset = (max(page, 1) - 1) * page_size
            results = [self._product_copy(p) for p in products[offset:offset + page_size]]
            return records.Page(results=results, count=len(products))

    def get_product(self, product_id):
        with self._lock:
            product = self._products.get(str(product_id))
            return self._product_copy(product, with_category=True) if product else None

    def get_product_suggestions(self, query, limit=SUGGESTION_LIMIT):
        needle = (query or "").lower()
        with self._lock:
            matches = sorted(
                (p for p in self._products.values() if p.is_active and needle in p.name.lower()),
                key=lambda p: p.name,
            )
            return [records.Suggestion(id=p.id, name=p.name, thumb_url=p.thumb_url) for p in matches[:limit]]

    def create_product(self, **fields):
        with self._lock:
            fields.setdefault("created_at", timezone.now())
            fields["category_id"] = str(fields["category_id"])
            fields["price"] = Decimal(str(fields["price"]))
            if any(p.sku == fields["sku"] for p in self._products.values()):
                raise ValueError(f"SKU {fields['sku']!r} already exists")
            product = records.Product(id=_new_id(), **fields)
            self._products[product.id] = product
            return self._product_copy(product)

    def decrement_stock(self, product_id, quantity):
        with self._lock:
            product = self._products.get(str(product_id))
            if product is None or product.stock < quantity:
                return False
            product.stock -= quantity
            return True

    def increment_stock(self, product_id, quantity):
        with self._lock:
            product = self._products.get(str(product_id))
            if product is not None:
                product.stock += quantity

    def update_product_rating(self, product_id):
        with self._lock:
            product = self._products.get(str(product_id))
            if product is None:
                return
            values = [r.rating for r in self._ratings.values() if r.product_id == product.id]
            if values:
                average = Decimal(sum(values)) / Decimal(len(values))
            else:
                average = Decimal("0")
            product.rating_average = average.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
            product.rating_count = len(values)

    # ---------- Favorites ----------

    def get_user_favorites(self, user_id):
        with self._lock:
            favorites = [f for f in self._favorites.values() if f.user_id == str(user_id)]
            favorites.sort(key=lambda f: f.added_at, reverse=True)
            return [
                replace(f, product=self._product_copy(self._products[f.product_id]))
                for f in favorites
                if f.product_id in self._products
            ]

    def add_favorite(self, user_id, product_id):
        with self._lock:
            for favorite in self._favorites.values():
                if favorite.user_id == str(user_id) and favorite.product_id == str(product_id):
                    return replace(favorite)
            favorite = records.Favorite(
                id=_new_id(),
                user_id=str(user_id),
                product_id=str(product_id),
                added_at=timezone.now(),
            )
            self._favorites[favorite.id] = favorite
            return replace(favorite)

    def remove_favorite(self, user_id, product_id):
        with self._lock:
            for key, favorite in list(self._favorites.items()):
                if favorite.user_id == str(user_id) and favorite.product_id == str(product_id):
                    del self._favorites[key]

    # ---------- Ratings ----------

    def get_product_ratings(self, product_id, page=1):
        with self._lock:
            ratings = [r for r in self._ratings.values() if r.product_id == str(product_id)]
            ratings.sort(key=lambda r: r.created_at, reverse=True)
            offset = (max(page, 1) - 1) * RATINGS_PAGE_SIZE
            return records.Page(
                results=[replace(r) for r in ratings[offset:offset + RATINGS_PAGE_SIZE]],
                count=len(ratings),
            )

    def create_rating(self, user_id, product_id, rating, comment=""):
        with self._lock:
            user = self._users.get(str(user_id))
            created = records.Rating(
                id=_new_id(),
                user_id=str(user_id),
                product_id=str(product_id),
                rating=rating,
                comment=comment or "",
                created_at=timezone.now(),
                username=user.username if user else "",
            )
            self._ratings[created.id] = created
            self.update_product_rating(product_id)
            return replace(created)

    # ---------- Cart ----------

    def _cart_copy(self, item):
        product = self._products.get(item.product_id)
        return replace(item, product=self._product_copy(product) if product else None)

    def get_user_cart(self, user_id):
        with self._lock:
            items = [i for i in self._cart_items.values() if i.user_id == str(user_id)]
            return [self._cart_copy(i) for i in sorted(items, key=lambda i: i.created_at)]

    def get_session_cart(self, session_id):
        with self._lock:
            items = [i for i in self._cart_items.values() if i.user_id is None and i.session_id == session_id]
            return [self._cart_copy(i) for i in sorted(items, key=lambda i: i.created_at)]

    def get_cart_item(self, item_id):
        with self._lock:
            item = self._cart_items.get(str(item_id))
            return self._cart_copy(item) if item else None

    def add_to_cart(self, product_id, quantity, user_id=None, session_id=""):
        with self._lock:
            user_id = str(user_id) if user_id else None
            for item in self._cart_items.values():
                same_owner = item.user_id == user_id if user_id else (
                    item.user_id is None and item.session_id == session_id
                )
                if same_owner and item.product_id == str(product_id):
                    item.quantity += quantity
                    return self._cart_copy(item)

            item = records.CartItem(
                id=_new_id(),
                product_id=str(product_id),
                quantity=quantity,
                user_id=user_id,
                session_id="" if user_id else session_id,
                created_at=timezone.now(),
            )
            self._cart_items[item.id] = item
            return self._cart_copy(item)

    def update_cart_item(self, item_id, quantity):
        with self._lock:
            item = self._cart_items.get(str(item_id))
            if item is None:
                return None
            item.quantity = quantity
            return self._cart_copy(item)

    def remove_from_cart(self, item_id):
        with self._lock:
            self._cart_items.pop(str(item_id), None)

    # ---------- Pickup slots ----------

    def get_pickup_slots(self, date=None):
        with self._lock:
            slots = [s for s in self._pickup_slots.values() if s.is_active]
            if date:
                slots = [s for s in slots if s.date == date]
            return [replace(s) for s in sorted(slots, key=lambda s: (s.date, s.time_from))]

    def get_pickup_slot(self, slot_id):
        with self._lock:
            slot = self._pickup_slots.get(str(slot_id))
            return replace(slot) if slot else None

    def create_pickup_slot(self, date, time_from, time_to, capacity=50):
        with self._lock:
            slot = records.PickupSlot(
                id=_new_id(),
                date=str(date),
                time_from=str(time_from)[:5],
                time_to=str(time_to)[:5],
                capacity=capacity,
                remaining=capacity,
            )
            self._pickup_slots[slot.id] = slot
            return replace(slot)

    def book_slot(self, slot_id):
        with self._lock:
            slot = self._pickup_slots.get(str(slot_id))
            if slot is None or not slot.is_active or slot.remaining <= 0:
                return False
            slot.remaining -= 1
            return True

    def release_slot(self, slot_id):
        with self._lock:
            slot = self._pickup_slots.get(str(slot_id))
            if slot is not None and slot.remaining < slot.capacity:
                slot.remaining += 1

    # ---------- Orders ----------

    def _order_copy(self, order):
        items = [replace(i) for i in self._order_items.values() if i.order_id == order.id]
        slot = self._pickup_slots.get(order.pickup_slot_id)
        return replace(order, items=items, pickup_slot=replace(slot) if slot else None)

    def get_orders(self, user_id=None):
        with self._lock:
            orders = list(self._orders.values())
            if user_id:
                orders = [o for o in orders if o.user_id == str(user_id)]
            orders.sort(key=lambda o: o.created_at, reverse=True)
            return [self._order_copy(o) for o in orders]

    def get_order(self, order_id):
        with self._lock:
            order = self._orders.get(str(order_id))
            return self._order_copy(order) if order else None

    def create_order(self, order, items):
        with self._lock:
            if any(o.order_number == order.order_number for o in self._orders.values()):
                raise ValueError(f"Order number {order.order_number} already exists")
            stored = replace(order, id=order.id or _new_id(), items=[], pickup_slot=None)
            self._orders[stored.id] = stored
            for item in items:
                line = replace(item, id=item.id or _new_id(), order_id=stored.id)
                self._order_items[line.id] = line
            return self._order_copy(stored)

    def update_order_status(self, order_id, status, temp_pickup_code=None, final_pickup_code=None,
                            from_statuses=None):
        with self._lock:
            order = self._orders.get(str(order_id))
            if order is None:
                return False
            if from_statuses is not None and order.status not in from_statuses:
                return False
            order.status = status
            if temp_pickup_code is not None:
                order.temp_pickup_code = temp_pickup_code
            if final_pickup_code is not None:
                order.final_pickup_code = final_pickup_code
            return True

    def get_expired_orders(self, now, statuses):
        with self._lock:
            return [
                self._order_copy(o)
                for o in self._orders.values()
                if o.status in statuses and o.expires_at is not None and o.expires_at < now
            ]
