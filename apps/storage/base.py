import abc
from contextlib import AbstractContextManager
from typing import List, Optional

from . import records

PRODUCT_SORTS = ("newest", "price_asc", "price_desc", "popular")
RATINGS_PAGE_SIZE = 10
SUGGESTION_LIMIT = 5


class Storage(abc.ABC):
    """
    Repository interface for the storefront.

    One implementation per backend; the active one is chosen once at startup
    (see apps.storage.apps.StorageConfig) and passed explicitly to services.

    Counter mutations (stock, slot seats) are conditional updates that report
    whether they applied, so callers never read-then-write a shared counter.
    """

    # ---------- Transactions ----------

    @abc.abstractmethod
    def atomic(self) -> AbstractContextManager:
        """All writes inside the block commit or roll back together."""

    # ---------- Users ----------

    @abc.abstractmethod
    def get_user(self, user_id: str) -> Optional[records.User]: ...

    @abc.abstractmethod
    def get_user_by_username(self, username: str) -> Optional[records.User]: ...

    @abc.abstractmethod
    def get_user_by_email(self, email: str) -> Optional[records.User]: ...

    @abc.abstractmethod
    def get_user_by_reset_token(self, token_hash: str, now) -> Optional[records.User]:
        """User holding this reset digest with an expiry later than `now`."""

    @abc.abstractmethod
    def create_user(self, username: str, email: str, password: str, phone: str = "") -> records.User: ...

    @abc.abstractmethod
    def update_user(self, user_id: str, **fields) -> Optional[records.User]: ...

    # ---------- Categories ----------

    @abc.abstractmethod
    def get_categories(self) -> List[records.Category]: ...

    @abc.abstractmethod
    def get_category(self, category_id: str) -> Optional[records.Category]: ...

    @abc.abstractmethod
    def get_category_by_slug(self, slug: str) -> Optional[records.Category]: ...

    @abc.abstractmethod
    def create_category(self, name: str, slug: str = "", image_url: str = "", description: str = "") -> records.Category: ...

    # ---------- Products ----------

    @abc.abstractmethod
    def get_products(
        self,
        search: Optional[str] = None,
        category_id: Optional[str] = None,
        sort: str = "newest",
        page: int = 1,
        page_size: int = 20,
    ) -> records.Page:
        """Active products only; `count` is the filtered total."""

    @abc.abstractmethod
    def get_product(self, product_id: str) -> Optional[records.Product]: ...

    @abc.abstractmethod
    def get_product_suggestions(self, query: str, limit: int = SUGGESTION_LIMIT) -> List[records.Suggestion]: ...

    @abc.abstractmethod
    def create_product(self, **fields) -> records.Product: ...

    @abc.abstractmethod
    def decrement_stock(self, product_id: str, quantity: int) -> bool:
        """Take `quantity` units if at least that many are left."""

    @abc.abstractmethod
    def increment_stock(self, product_id: str, quantity: int) -> None: ...

    @abc.abstractmethod
    def update_product_rating(self, product_id: str) -> None:
        """Recompute rating_average / rating_count from the ratings."""

    # ---------- Favorites ----------

    @abc.abstractmethod
    def get_user_favorites(self, user_id: str) -> List[records.Favorite]: ...

    @abc.abstractmethod
    def add_favorite(self, user_id: str, product_id: str) -> records.Favorite: ...

    @abc.abstractmethod
    def remove_favorite(self, user_id: str, product_id: str) -> None: ...

    # ---------- Ratings ----------

    @abc.abstractmethod
    def get_product_ratings(self, product_id: str, page: int = 1) -> records.Page: ...

    @abc.abstractmethod
    def create_rating(self, user_id: str, product_id: str, rating: int, comment: str = "") -> records.Rating: ...

    # ---------- Cart ----------

    @abc.abstractmethod
    def get_user_cart(self, user_id: str) -> List[records.CartItem]: ...

    @abc.abstractmethod
    def get_session_cart(self, session_id: str) -> List[records.CartItem]: ...

    @abc.abstractmethod
    def get_cart_item(self, item_id: str) -> Optional[records.CartItem]: ...

    @abc.abstractmethod
    def add_to_cart(
        self,
        product_id: str,
        quantity: int,
        user_id: Optional[str] = None,
        session_id: str = "",
    ) -> records.CartItem:
        """Adds to the existing line for the same owner and product."""

    @abc.abstractmethod
    def update_cart_item(self, item_id: str, quantity: int) -> Optional[records.CartItem]: ...

    @abc.abstractmethod
    def remove_from_cart(self, item_id: str) -> None: ...

    # ---------- Pickup slots ----------

    @abc.abstractmethod
    def get_pickup_slots(self, date: Optional[str] = None) -> List[records.PickupSlot]: ...

    @abc.abstractmethod
    def get_pickup_slot(self, slot_id: str) -> Optional[records.PickupSlot]: ...

    @abc.abstractmethod
    def create_pickup_slot(self, date: str, time_from: str, time_to: str, capacity: int = 50) -> records.PickupSlot: ...

    @abc.abstractmethod
    def book_slot(self, slot_id: str) -> bool:
        """Take one seat if the slot is active and has one left."""

    @abc.abstractmethod
    def release_slot(self, slot_id: str) -> None:
        """Give one seat back, never above capacity."""

    # ---------- Orders ----------

    @abc.abstractmethod
    def get_orders(self, user_id: Optional[str] = None) -> List[records.Order]: ...

    @abc.abstractmethod
    def get_order(self, order_id: str) -> Optional[records.Order]:
        """Order hydrated with its items and pickup slot."""

    @abc.abstractmethod
    def create_order(self, order: records.Order, items: List[records.OrderItem]) -> records.Order: ...

    @abc.abstractmethod
    def update_order_status(
        self,
        order_id: str,
        status: str,
        temp_pickup_code: Optional[str] = None,
        final_pickup_code: Optional[str] = None,
        from_statuses=None,
    ) -> bool:
        """
        Set the status, only while the order is still in one of `from_statuses`
        when given. Returns whether a row changed.
        """

    @abc.abstractmethod
    def get_expired_orders(self, now, statuses) -> List[records.Order]:
        """Orders in `statuses` whose expires_at is before `now`, with items."""

    # ---------- Health ----------

    def ping(self) -> bool:
        return True
