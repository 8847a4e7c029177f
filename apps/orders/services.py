import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings

from apps.notifications import services as notifications
from apps.storage import records
from apps.utils.exceptions import (
    DeliveryError,
    InsufficientStockError,
    NotFoundError,
    PermissionDeniedError,
    SlotUnavailableError,
    ValidationError,
)
from apps.utils.utils import generate_code, generate_order_number, now

from .models import OrderStatus

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# Allowed forward moves; cancelled_expired is reachable from any non-terminal state.
STATUS_FLOW = {
    OrderStatus.PENDING_PAYMENT: OrderStatus.PAID,
    OrderStatus.PAID: OrderStatus.PREPARING,
    OrderStatus.PREPARING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.PICKED_UP,
}
TERMINAL_STATUSES = {OrderStatus.PICKED_UP, OrderStatus.CANCELLED_EXPIRED}
EXPIRABLE_STATUSES = (OrderStatus.PAID, OrderStatus.PREPARING, OrderStatus.READY)
CANCELLABLE_STATUSES = tuple(s for s in OrderStatus.values if s not in TERMINAL_STATUSES)


def _merge_lines(items) -> list:
    """
    [{product_id, quantity}] with duplicate products folded into one line,
    first-seen order preserved.
    """
    merged = {}
    for item in items:
        product_id = str(item.get("product_id") or "").strip()
        try:
            quantity = int(item.get("quantity", 0))
        except (TypeError, ValueError):
            quantity = 0

        if not product_id:
            raise ValidationError("Each item needs a product_id")
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        merged[product_id] = merged.get(product_id, 0) + quantity
    return list(merged.items())


class OrderService:

    @staticmethod
    def place_order(
        storage,
        customer_name: str,
        customer_phone: str,
        pickup_slot_id: str,
        items: list,
        user=None,
        customer_email: str = "",
        payment_method: str = "",
        notes: str = "",
    ):
        """
        Checkout for click & collect:
        1. Validate input and the pickup slot (outside the transaction)
        2. Take stock and a slot seat with conditional updates (atomic)
        3. Persist the order, then queue confirmations after commit
        """
        if not (customer_name or "").strip():
            raise ValidationError("customer_name is required")
        if not (customer_phone or "").strip():
            raise ValidationError("customer_phone is required")
        if not pickup_slot_id:
            raise ValidationError("pickup_slot_id is required")
        if not items:
            raise ValidationError("Order must contain at least one item")

        lines = _merge_lines(items)

        slot = storage.get_pickup_slot(pickup_slot_id)
        if slot is None or not slot.is_active:
            raise ValidationError("Invalid pickup slot")

        with storage.atomic():
            total = Decimal("0.00")
            order_items = []
            has_perishable = False

            for product_id, quantity in lines:
                product = storage.get_product(product_id)
                if product is None or not product.is_active:
                    raise InsufficientStockError("Insufficient stock for product")

                # Conditional update: no read-then-write on the counter
                if not storage.decrement_stock(product.id, quantity):
                    raise InsufficientStockError(f"Insufficient stock for {product.name}")

                subtotal = (product.price * quantity).quantize(CENT)
                total += subtotal
                has_perishable = has_perishable or product.is_perishable

                order_items.append(records.OrderItem(
                    id="",
                    order_id="",
                    product_id=product.id,
                    product_name=product.name,
                    product_price=product.price,
                    quantity=quantity,
                    subtotal=subtotal,
                ))

            if not storage.book_slot(slot.id):
                raise SlotUnavailableError("Pickup slot is full")

            created_at = now()
            hours = settings.PERISHABLE_EXPIRY_HOURS if has_perishable else settings.NON_PERISHABLE_EXPIRY_HOURS

            order = storage.create_order(
                records.Order(
                    id="",
                    order_number=generate_order_number(),
                    customer_name=customer_name.strip(),
                    customer_phone=customer_phone.strip(),
                    pickup_slot_id=slot.id,
                    # Payment is mocked: orders are paid on creation
                    status=OrderStatus.PAID,
                    amount=total.quantize(CENT),
                    user_id=user.id if user else None,
                    customer_email=customer_email or "",
                    currency=settings.STOREFRONT_CURRENCY,
                    payment_method=payment_method or "",
                    notes=notes or "",
                    temp_pickup_code=generate_code(8),
                    expires_at=created_at + timedelta(hours=hours),
                    created_at=created_at,
                ),
                order_items,
            )

        logger.info(
            f"Order {order.order_number} placed: {len(order_items)} lines, {order.amount} {order.currency}",
            extra={"order_number": order.order_number, "user_id": order.user_id},
        )

        email = customer_email or (user.email if user else "")
        try:
            notifications.queue_order_confirmation(order, email)
        except Exception as e:
            logger.error(f"Confirmation dispatch failed for {order.order_number}: {e}")

        return storage.get_order(order.id)

    @staticmethod
    def get_order(storage, order_id):
        order = storage.get_order(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    @staticmethod
    def resend_confirmation(storage, order_id, user) -> str:
        order = OrderService.get_order(storage, order_id)

        if order.user_id and order.user_id != user.id:
            raise PermissionDeniedError("Unauthorized")

        email = order.customer_email or user.email
        if not email:
            raise ValidationError("No email address available")

        if not notifications.send_order_confirmation_email(order, email):
            raise DeliveryError("Failed to send email")
        return email

    @staticmethod
    def update_status(storage, order_id, new_status: str):
        order = OrderService.get_order(storage, order_id)

        if new_status not in OrderStatus.values:
            raise ValidationError(f"Unknown status '{new_status}'")
        if order.status in TERMINAL_STATUSES:
            raise ValidationError(f"Order is already {order.status}")

        if new_status == OrderStatus.CANCELLED_EXPIRED:
            if not OrderService._cancel(storage, order):
                raise ValidationError("Order status changed, retry")
            return storage.get_order(order.id)

        if STATUS_FLOW.get(order.status) != new_status:
            raise ValidationError(f"Cannot move order from {order.status} to {new_status}")

        final_code = generate_code(8) if new_status == OrderStatus.READY else None
        applied = storage.update_order_status(
            order.id, new_status, final_pickup_code=final_code, from_statuses=(order.status,),
        )
        if not applied:
            raise ValidationError("Order status changed, retry")

        logger.info(
            f"Order {order.order_number}: {order.status} -> {new_status}",
            extra={"order_number": order.order_number},
        )
        return storage.get_order(order.id)

    @staticmethod
    def _cancel(storage, order) -> bool:
        """
        Stock goes back on the shelf and the slot seat is freed, once.
        Returns False when another writer already moved the order on.
        """
        with storage.atomic():
            # Claim the transition first; only the winner restores counters
            if not storage.update_order_status(
                order.id, OrderStatus.CANCELLED_EXPIRED, from_statuses=CANCELLABLE_STATUSES,
            ):
                return False
            for item in order.items:
                storage.increment_stock(item.product_id, item.quantity)
            storage.release_slot(order.pickup_slot_id)
        return True

    @staticmethod
    def expire_overdue_orders(storage) -> int:
        count = 0
        for order in storage.get_expired_orders(now(), EXPIRABLE_STATUSES):
            try:
                if not OrderService._cancel(storage, order):
                    continue
                count += 1
                logger.info(
                    f"Order {order.order_number} expired and cancelled",
                    extra={"order_number": order.order_number},
                )
            except Exception as e:
                logger.error(f"Failed to expire order {order.order_number}: {e}")
        return count


class CartService:
    """
    Cart lines belong to a user, or to a guest identified by X-Session-Id.
    """

    @staticmethod
    def _owner(user, session_id):
        if user is not None:
            return {"user_id": user.id, "session_id": ""}
        if not session_id:
            raise ValidationError("X-Session-Id header required for guest carts")
        return {"user_id": None, "session_id": session_id}

    @staticmethod
    def get_items(storage, user=None, session_id=""):
        # Reading without an owner is an empty cart, not an error
        if user is None and not session_id:
            return []
        owner = CartService._owner(user, session_id)
        if owner["user_id"]:
            return storage.get_user_cart(owner["user_id"])
        return storage.get_session_cart(owner["session_id"])

    @staticmethod
    def summary(storage, user=None, session_id="") -> dict:
        items = CartService.get_items(storage, user, session_id)
        total = sum((item.subtotal for item in items), Decimal("0.00"))
        return {
            "items": items,
            "total": total.quantize(CENT),
            "currency": settings.STOREFRONT_CURRENCY,
        }

    @staticmethod
    def add_item(storage, product_id, quantity: int, user=None, session_id=""):
        owner = CartService._owner(user, session_id)
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        product = storage.get_product(product_id)
        if product is None or not product.is_active:
            raise NotFoundError("Product not found")

        return storage.add_to_cart(product.id, quantity, **owner)

    @staticmethod
    def _owned_item(storage, item_id, user, session_id):
        owner = CartService._owner(user, session_id)
        item = storage.get_cart_item(item_id)
        if item is None:
            raise NotFoundError("Cart item not found")

        if owner["user_id"]:
            owned = item.user_id == owner["user_id"]
        else:
            owned = item.user_id is None and item.session_id == owner["session_id"]

        # Someone else's line looks exactly like a missing one
        if not owned:
            raise NotFoundError("Cart item not found")
        return item

    @staticmethod
    def update_item(storage, item_id, quantity: int, user=None, session_id=""):
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        item = CartService._owned_item(storage, item_id, user, session_id)
        return storage.update_cart_item(item.id, quantity)

    @staticmethod
    def remove_item(storage, item_id, user=None, session_id=""):
        item = CartService._owned_item(storage, item_id, user, session_id)
        storage.remove_from_cart(item.id)

