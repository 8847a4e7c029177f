from rest_framework import serializers

from apps.utils.validators import validate_phone, validate_slot_date
from .models import OrderStatus


class PickupSlotSerializer(serializers.Serializer):
    id = serializers.CharField()
    date = serializers.CharField()
    time_from = serializers.CharField()
    time_to = serializers.CharField()
    capacity = serializers.IntegerField()
    remaining = serializers.IntegerField()
    is_active = serializers.BooleanField()


class OrderItemSerializer(serializers.Serializer):
    id = serializers.CharField()
    product_id = serializers.CharField()
    product_name = serializers.CharField()
    product_price = serializers.DecimalField(max_digits=10, decimal_places=2)
    quantity = serializers.IntegerField()
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)


class OrderSerializer(serializers.Serializer):
    id = serializers.CharField()
    order_number = serializers.CharField()
    user_id = serializers.CharField(allow_null=True)
    customer_name = serializers.CharField()
    customer_phone = serializers.CharField()
    customer_email = serializers.CharField()
    pickup_slot_id = serializers.CharField()
    pickup_slot = PickupSlotSerializer(allow_null=True)
    status = serializers.CharField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField()
    payment_method = serializers.CharField()
    notes = serializers.CharField()
    temp_pickup_code = serializers.CharField()
    final_pickup_code = serializers.CharField()
    expires_at = serializers.DateTimeField(allow_null=True)
    created_at = serializers.DateTimeField()
    items = OrderItemSerializer(many=True)


class CartItemSerializer(serializers.Serializer):
    """
    Flattened cart line: product details inline, no nested product object.
    """
    id = serializers.CharField()
    product_id = serializers.CharField()
    name = serializers.CharField(source="product.name")
    price = serializers.DecimalField(source="product.price", max_digits=10, decimal_places=2)
    quantity = serializers.IntegerField()
    image_url = serializers.CharField(source="product.thumb_url")
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)


class CartSerializer(serializers.Serializer):
    items = CartItemSerializer(many=True)
    total = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField()


# ==========================================
# INPUT
# ==========================================

class CartAddSerializer(serializers.Serializer):
    product_id = serializers.CharField()
    quantity = serializers.IntegerField(min_value=1, default=1)


class CartUpdateSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)


class OrderLineSerializer(serializers.Serializer):
    product_id = serializers.CharField()
    quantity = serializers.IntegerField(min_value=1)


class PlaceOrderSerializer(serializers.Serializer):
    customer_name = serializers.CharField(max_length=150)
    customer_phone = serializers.CharField(max_length=32, validators=[validate_phone])
    customer_email = serializers.EmailField(required=False, allow_blank=True, default="")
    pickup_slot_id = serializers.CharField()
    items = OrderLineSerializer(many=True, allow_empty=False)
    payment_method = serializers.CharField(required=False, allow_blank=True, default="", max_length=20)
    notes = serializers.CharField(required=False, allow_blank=True, default="", max_length=1000)


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)


class PickupSlotQuerySerializer(serializers.Serializer):
    date = serializers.CharField(required=False, validators=[validate_slot_date])
