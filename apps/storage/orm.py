import logging
from decimal import Decimal, ROUND_HALF_UP

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import connection, transaction
from django.db.models import Avg, Count, F, Q

from apps.accounts.models import User
from apps.catalog.models import Category, Favorite, Product, Rating
from apps.orders.models import CartItem, Order, OrderItem, PickupSlot

from . import records
from .base import RATINGS_PAGE_SIZE, SUGGESTION_LIMIT, Storage

logger = logging.getLogger(__name__)

PRODUCT_ORDERING = {
    "newest": ("-created_at",),
    "price_asc": ("price", "-created_at"),
    "price_desc": ("-price", "-created_at"),
    "popular": ("-rating_count", "-rating_average", "-created_at"),
}

USER_FIELDS = {
    "username",
    "email",
    "password",
    "phone",
    "is_staff",
    "password_reset_token",
    "password_reset_expires",
    "two_factor_code",
    "two_factor_expires",
}


# ==========================================
# MODEL -> RECORD
# ==========================================

def _user(obj: User) -> records.User:
    return records.User(
        id=str(obj.id),
        username=obj.username,
        email=obj.email,
        password=obj.password,
        phone=obj.phone,
        is_staff=obj.is_staff,
        created_at=obj.created_at,
        password_reset_token=obj.password_reset_token,
        password_reset_expires=obj.password_reset_expires,
        two_factor_code=obj.two_factor_code,
        two_factor_expires=obj.two_factor_expires,
    )


def _category(obj: Category, product_count=0) -> records.Category:
    return records.Category(
        id=str(obj.id),
        name=obj.name,
        slug=obj.slug,
        image_url=obj.image_url,
        description=obj.description,
        product_count=product_count,
    )


def _product(obj: Product, with_category=False) -> records.Product:
    return records.Product(
        id=str(obj.id),
        sku=obj.sku,
        name=obj.name,
        price=obj.price,
        category_id=str(obj.category_id),
        description=obj.description,
        images=list(obj.images or []),
        stock=obj.stock,
        is_active=obj.is_active,
        is_perishable=obj.is_perishable,
        rating_average=obj.rating_average,
        rating_count=obj.rating_count,
        created_at=obj.created_at,
        category=_category(obj.category) if with_category else None,
    )


def _cart_item(obj: CartItem) -> records.CartItem:
    return records.CartItem(
        id=str(obj.id),
        product_id=str(obj.product_id),
        quantity=obj.quantity,
        user_id=str(obj.user_id) if obj.user_id else None,
        session_id=obj.session_id,
        created_at=obj.created_at,
        product=_product(obj.product),
    )


def _slot(obj: PickupSlot) -> records.PickupSlot:
    return records.PickupSlot(
        id=str(obj.id),
        date=obj.date.isoformat(),
        time_from=obj.time_from.strftime("%H:%M"),
        time_to=obj.time_to.strftime("%H:%M"),
        capacity=obj.capacity,
        remaining=obj.remaining,
        is_active=obj.is_active,
    )


def _order_item(obj: OrderItem) -> records.OrderItem:
    return records.OrderItem(
        id=str(obj.id),
        order_id=str(obj.order_id),
        product_id=str(obj.product_id),
        product_name=obj.product_name,
        product_price=obj.product_price,
        quantity=obj.quantity,
        subtotal=obj.subtotal,
    )


def _order(obj: Order, hydrate=False) -> records.Order:
    order = records.Order(
        id=str(obj.id),
        order_number=obj.order_number,
        customer_name=obj.customer_name,
        customer_phone=obj.customer_phone,
        pickup_slot_id=str(obj.pickup_slot_id),
        status=obj.status,
        amount=obj.amount,
        user_id=str(obj.user_id) if obj.user_id else None,
        customer_email=obj.customer_email,
        currency=obj.currency,
        payment_method=obj.payment_method,
        notes=obj.notes,
        temp_pickup_code=obj.temp_pickup_code,
        final_pickup_code=obj.final_pickup_code,
        expires_at=obj.expires_at,
        created_at=obj.created_at,
    )
    if hydrate:
        order.items = [_order_item(i) for i in obj.items.all()]
        order.pickup_slot = _slot(obj.pickup_slot)
    return order


def _get(queryset, **lookup):
    """
    .first() that also treats a malformed primary key as "not found".
    """
    try:
        return queryset.filter(**lookup).first()
    except (DjangoValidationError, ValueError) as e:
        logger.debug(f"Lookup {lookup} rejected: {e}")
        return None


class DjangoStorage(Storage):
    """
    Relational backend on the Django ORM (Postgres in production, SQLite locally).
    """

    def atomic(self):
        return transaction.atomic()

    def ping(self) -> bool:
        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
            return True
        except Exception as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    # ---------- Users ----------

    def get_user(self, user_id):
        obj = _get(User.objects, pk=user_id)
        return _user(obj) if obj else None

    def get_user_by_username(self, username):
        obj = User.objects.filter(username=username).first()
        return _user(obj) if obj else None

    def get_user_by_email(self, email):
        obj = User.objects.filter(email__iexact=email).first()
        return _user(obj) if obj else None

    def get_user_by_reset_token(self, token_hash, now):
        obj = User.objects.filter(
            password_reset_token=token_hash,
            password_reset_expires__gt=now,
        ).first()
        return _user(obj) if obj else None

    def create_user(self, username, email, password, phone=""):
        # `password` is already hashed by the service layer
        obj = User.objects.create(username=username, email=email, password=password, phone=phone or "")
        return _user(obj)

    def update_user(self, user_id, **fields):
        unknown = set(fields) - USER_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)}")
        if _get(User.objects, pk=user_id) is None:
            return None
        User.objects.filter(pk=user_id).update(**fields)
        return self.get_user(user_id)

    # ---------- Categories ----------

    def get_categories(self):
        qs = Category.objects.annotate(
            active_products=Count("products", filter=Q(products__is_active=True)),
        ).order_by("name")
        return [_category(c, c.active_products) for c in qs]

    def get_category(self, category_id):
        obj = _get(Category.objects, pk=category_id)
        return _category(obj, obj.products.filter(is_active=True).count()) if obj else None

    def get_category_by_slug(self, slug):
        obj = Category.objects.filter(slug=slug).first()
        return _category(obj, obj.products.filter(is_active=True).count()) if obj else None

    def create_category(self, name, slug="", image_url="", description=""):
        obj = Category.objects.create(name=name, slug=slug, image_url=image_url, description=description)
        return _category(obj)

    # ---------- Products ----------

    def get_products(self, search=None, category_id=None, sort="newest", page=1, page_size=20):
        qs = Product.objects.filter(is_active=True)
        if search:
            qs = qs.filter(name__icontains=search)
        if category_id:
            qs = qs.filter(category_id=category_id)

        count = qs.count()
        offset = (max(page, 1) - 1) * page_size
        qs = qs.order_by(*PRODUCT_ORDERING.get(sort, PRODUCT_ORDERING["newest"]))
        results = [_product(p) for p in qs[offset:offset + page_size]]
        return records.Page(results=results, count=count)

    def get_product(self, product_id):
        obj = _get(Product.objects.select_related("category"), pk=product_id)
        return _product(obj, with_category=True) if obj else None

    def get_product_suggestions(self, query, limit=SUGGESTION_LIMIT):
        qs = (
            Product.objects.filter(is_active=True, name__icontains=query)
            .order_by("name")
            .only("id", "name", "images")[:limit]
        )
        return [
            records.Suggestion(id=str(p.id), name=p.name, thumb_url=(p.images or [""])[0])
            for p in qs
        ]

    def create_product(self, **fields):
        obj = Product.objects.create(**fields)
        return _product(obj)

    def decrement_stock(self, product_id, quantity):
        updated = Product.objects.filter(
            pk=product_id,
            stock__gte=quantity,
        ).update(stock=F("stock") - quantity)
        return updated == 1

    def increment_stock(self, product_id, quantity):
        Product.objects.filter(pk=product_id).update(stock=F("stock") + quantity)

    def update_product_rating(self, product_id):
        agg = Rating.objects.filter(product_id=product_id).aggregate(avg=Avg("rating"), count=Count("id"))
        average = Decimal(str(agg["avg"] or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        Product.objects.filter(pk=product_id).update(
            rating_average=average,
            rating_count=agg["count"] or 0,
        )

    # ---------- Favorites ----------

    def get_user_favorites(self, user_id):
        qs = Favorite.objects.filter(user_id=user_id).select_related("product").order_by("-added_at")
        return [
            records.Favorite(
                id=str(f.id),
                user_id=str(f.user_id),
                product_id=str(f.product_id),
                added_at=f.added_at,
                product=_product(f.product),
            )
            for f in qs
        ]

    def add_favorite(self, user_id, product_id):
        obj, _ = Favorite.objects.get_or_create(user_id=user_id, product_id=product_id)
        return records.Favorite(
            id=str(obj.id),
            user_id=str(obj.user_id),
            product_id=str(obj.product_id),
            added_at=obj.added_at,
        )

    def remove_favorite(self, user_id, product_id):
        Favorite.objects.filter(user_id=user_id, product_id=product_id).delete()

    # ---------- Ratings ----------

    def get_product_ratings(self, product_id, page=1):
        qs = Rating.objects.filter(product_id=product_id).select_related("user").order_by("-created_at")
        count = qs.count()
        offset = (max(page, 1) - 1) * RATINGS_PAGE_SIZE
        results = [
            records.Rating(
                id=str(r.id),
                user_id=str(r.user_id),
                product_id=str(r.product_id),
                rating=r.rating,
                comment=r.comment,
                created_at=r.created_at,
                username=r.user.username,
            )
            for r in qs[offset:offset + RATINGS_PAGE_SIZE]
        ]
        return records.Page(results=results, count=count)

    def create_rating(self, user_id, product_id, rating, comment=""):
        with transaction.atomic():
            obj = Rating.objects.create(user_id=user_id, product_id=product_id, rating=rating, comment=comment)
            self.update_product_rating(product_id)
        return records.Rating(
            id=str(obj.id),
            user_id=str(obj.user_id),
            product_id=str(obj.product_id),
            rating=obj.rating,
            comment=obj.comment,
            created_at=obj.created_at,
            username=obj.user.username,
        )

    # ---------- Cart ----------

    def get_user_cart(self, user_id):
        qs = CartItem.objects.filter(user_id=user_id).select_related("product")
        return [_cart_item(i) for i in qs]

    def get_session_cart(self, session_id):
        qs = CartItem.objects.filter(user__isnull=True, session_id=session_id).select_related("product")
        return [_cart_item(i) for i in qs]

    def get_cart_item(self, item_id):
        obj = _get(CartItem.objects.select_related("product"), pk=item_id)
        return _cart_item(obj) if obj else None

    def add_to_cart(self, product_id, quantity, user_id=None, session_id=""):
        with transaction.atomic():
            if user_id:
                owner = {"user_id": user_id}
            else:
                owner = {"user__isnull": True, "session_id": session_id}

            existing = CartItem.objects.filter(product_id=product_id, **owner).first()
            if existing:
                CartItem.objects.filter(pk=existing.pk).update(quantity=F("quantity") + quantity)
                item_id = existing.pk
            else:
                item_id = CartItem.objects.create(
                    product_id=product_id,
                    quantity=quantity,
                    user_id=user_id,
                    session_id="" if user_id else session_id,
                ).pk
        return self.get_cart_item(item_id)

    def update_cart_item(self, item_id, quantity):
        if _get(CartItem.objects, pk=item_id) is None:
            return None
        CartItem.objects.filter(pk=item_id).update(quantity=quantity)
        return self.get_cart_item(item_id)

    def remove_from_cart(self, item_id):
        obj = _get(CartItem.objects, pk=item_id)
        if obj is not None:
            obj.delete()

    # ---------- Pickup slots ----------

    def get_pickup_slots(self, date=None):
        qs = PickupSlot.objects.filter(is_active=True)
        if date:
            qs = qs.filter(date=date)
        return [_slot(s) for s in qs.order_by("date", "time_from")]

    def get_pickup_slot(self, slot_id):
        obj = _get(PickupSlot.objects, pk=slot_id)
        return _slot(obj) if obj else None

    def create_pickup_slot(self, date, time_from, time_to, capacity=50):
        obj = PickupSlot.objects.create(
            date=date,
            time_from=time_from,
            time_to=time_to,
            capacity=capacity,
            remaining=capacity,
        )
        obj.refresh_from_db()
        return _slot(obj)

    def book_slot(self, slot_id):
        updated = PickupSlot.objects.filter(
            pk=slot_id,
            is_active=True,
            remaining__gt=0,
        ).update(remaining=F("remaining") - 1)
        return updated == 1

    def release_slot(self, slot_id):
        PickupSlot.objects.filter(
            pk=slot_id,
            remaining__lt=F("capacity"),
        ).update(remaining=F("remaining") + 1)

    # ---------- Orders ----------

    def get_orders(self, user_id=None):
        qs = Order.objects.select_related("pickup_slot").prefetch_related("items")
        if user_id:
            qs = qs.filter(user_id=user_id)
        return [_order(o, hydrate=True) for o in qs.order_by("-created_at")]

    def get_order(self, order_id):
        obj = _get(
            Order.objects.select_related("pickup_slot").prefetch_related("items"),
            pk=order_id,
        )
        return _order(obj, hydrate=True) if obj else None

    def create_order(self, order, items):
        with transaction.atomic():
            obj = Order.objects.create(
                order_number=order.order_number,
                user_id=order.user_id,
                customer_name=order.customer_name,
                customer_phone=order.customer_phone,
                customer_email=order.customer_email or "",
                pickup_slot_id=order.pickup_slot_id,
                status=order.status,
                amount=order.amount,
                currency=order.currency,
                payment_method=order.payment_method or "",
                notes=order.notes or "",
                temp_pickup_code=order.temp_pickup_code,
                final_pickup_code=order.final_pickup_code or "",
                expires_at=order.expires_at,
                created_at=order.created_at,
            )
            OrderItem.objects.bulk_create([
                OrderItem(
                    order=obj,
                    product_id=item.product_id,
                    product_name=item.product_name,
                    product_price=item.product_price,
                    quantity=item.quantity,
                    subtotal=item.subtotal,
                )
                for item in items
            ])
        return self.get_order(obj.pk)

    def update_order_status(self, order_id, status, temp_pickup_code=None, final_pickup_code=None,
                            from_statuses=None):
        fields = {"status": status}
        if temp_pickup_code is not None:
            fields["temp_pickup_code"] = temp_pickup_code
        if final_pickup_code is not None:
            fields["final_pickup_code"] = final_pickup_code

        qs = Order.objects.filter(pk=order_id)
        if from_statuses is not None:
            qs = qs.filter(status__in=list(from_statuses))
        try:
            return qs.update(**fields) == 1
        except (DjangoValidationError, ValueError) as e:
            logger.debug(f"Status update for {order_id} rejected: {e}")
            return False

    def get_expired_orders(self, now, statuses):
        qs = (
            Order.objects.filter(status__in=list(statuses), expires_at__lt=now)
            .select_related("pickup_slot")
            .prefetch_related("items")
        )
        return [_order(o, hydrate=True) for o in qs]
