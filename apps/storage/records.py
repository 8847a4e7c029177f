"""
Backend-neutral records returned by every storage implementation.

Views and services only ever see these dataclasses, never ORM instances,
so the relational and in-memory backends stay interchangeable.
"""
import datetime
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional


@dataclass
class User:
    id: str
    username: str
    email: str
    password: str
    phone: str = ""
    is_staff: bool = False
    created_at: Optional[datetime.datetime] = None
    password_reset_token: Optional[str] = None
    password_reset_expires: Optional[datetime.datetime] = None
    two_factor_code: Optional[str] = None
    two_factor_expires: Optional[datetime.datetime] = None


@dataclass
class Category:
    id: str
    name: str
    slug: str
    image_url: str = ""
    description: str = ""
    product_count: int = 0


@dataclass
class Product:
    id: str
    sku: str
    name: str
    price: Decimal
    category_id: str
    description: str = ""
    images: List[str] = field(default_factory=list)
    stock: int = 0
    is_active: bool = True
    is_perishable: bool = False
    rating_average: Decimal = Decimal("0.00")
    rating_count: int = 0
    created_at: Optional[datetime.datetime] = None
    category: Optional[Category] = None

    @property
    def thumb_url(self) -> str:
        return self.images[0] if self.images else ""


@dataclass
class Favorite:
    id: str
    user_id: str
    product_id: str
    added_at: Optional[datetime.datetime] = None
    product: Optional[Product] = None


@dataclass
class Rating:
    id: str
    user_id: str
    product_id: str
    rating: int
    comment: str = ""
    created_at: Optional[datetime.datetime] = None
    username: str = ""


@dataclass
class CartItem:
    id: str
    product_id: str
    quantity: int
    user_id: Optional[str] = None
    session_id: str = ""
    created_at: Optional[datetime.datetime] = None
    product: Optional[Product] = None

    @property
    def subtotal(self) -> Decimal:
        if self.product is None:
            return Decimal("0.00")
        return self.product.price * self.quantity


@dataclass
class PickupSlot:
    id: str
    date: str  # YYYY-MM-DD
    time_from: str  # HH:MM
    time_to: str
    capacity: int = 50
    remaining: int = 50
    is_active: bool = True


@dataclass
class OrderItem:
    id: str
    order_id: str
    product_id: str
    product_name: str
    product_price: Decimal
    quantity: int
    subtotal: Decimal


@dataclass
class Order:
    id: str
    order_number: str
    customer_name: str
    customer_phone: str
    pickup_slot_id: str
    status: str
    amount: Decimal
    user_id: Optional[str] = None
    customer_email: str = ""
    currency: str = "XAF"
    payment_method: str = ""
    notes: str = ""
    temp_pickup_code: str = ""
    final_pickup_code: str = ""
    expires_at: Optional[datetime.datetime] = None
    created_at: Optional[datetime.datetime] = None
    items: List[OrderItem] = field(default_factory=list)
    pickup_slot: Optional[PickupSlot] = None


@dataclass
class Page:
    results: list
    count: int


@dataclass
class Suggestion:
    id: str
    name: str
    thumb_url: str
