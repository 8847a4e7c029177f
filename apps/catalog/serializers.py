# apps/catalog/serializers.py
from django.conf import settings
from rest_framework import serializers

from apps.storage.base import PRODUCT_SORTS


class CategorySerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField()
    slug = serializers.CharField()
    image_url = serializers.CharField()
    description = serializers.CharField()
    product_count = serializers.IntegerField()


class ProductSerializer(serializers.Serializer):
    id = serializers.CharField()
    sku = serializers.CharField()
    name = serializers.CharField()
    description = serializers.CharField()
    price = serializers.DecimalField(max_digits=10, decimal_places=2)
    currency = serializers.SerializerMethodField()
    images = serializers.ListField(child=serializers.CharField())
    thumb_url = serializers.CharField()
    stock = serializers.IntegerField()
    in_stock = serializers.SerializerMethodField()
    category_id = serializers.CharField()
    is_perishable = serializers.BooleanField()
    rating_average = serializers.DecimalField(max_digits=3, decimal_places=2)
    rating_count = serializers.IntegerField()
    created_at = serializers.DateTimeField()

    def get_currency(self, obj):
        return settings.STOREFRONT_CURRENCY

    def get_in_stock(self, obj):
        return obj.stock > 0


class ProductDetailSerializer(ProductSerializer):
    category = CategorySerializer(allow_null=True)


class SuggestionSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField()
    thumb_url = serializers.CharField()


class FavoriteSerializer(serializers.Serializer):
    id = serializers.CharField()
    product_id = serializers.CharField()
    added_at = serializers.DateTimeField()
    product = ProductSerializer(allow_null=True, required=False)


class RatingSerializer(serializers.Serializer):
    id = serializers.CharField()
    product_id = serializers.CharField()
    rating = serializers.IntegerField()
    comment = serializers.CharField()
    created_at = serializers.DateTimeField()
    user = serializers.SerializerMethodField()

    def get_user(self, obj):
        return {"id": obj.user_id, "username": obj.username}


# ==========================================
# INPUT
# ==========================================

class ProductQuerySerializer(serializers.Serializer):
    search = serializers.CharField(required=False, allow_blank=True, default="")
    category = serializers.CharField(required=False, allow_blank=True, default="")
    sort = serializers.ChoiceField(choices=PRODUCT_SORTS, required=False, default="newest")
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    page_size = serializers.IntegerField(required=False, min_value=1, default=20)

    def validate_page_size(self, value):
        return min(value, 100)


class RatingCreateSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True, default="", max_length=2000)
