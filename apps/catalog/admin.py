# apps/catalog/admin.py
from django.contrib import admin
from .models import Category, Product, Favorite, Rating


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}
    ordering = ("name",)


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        "sku",
        "name",
        "category",
        "price",
        "stock",
        "is_active",
        "is_perishable",
        "rating_average",
    )
    search_fields = ("sku", "name")
    list_filter = ("category", "is_active", "is_perishable")
    list_editable = ("price", "is_active")
    readonly_fields = ("rating_average", "rating_count", "created_at")


@admin.register(Favorite)
class FavoriteAdmin(admin.ModelAdmin):
    list_display = ("user", "product", "added_at")
    raw_id_fields = ("user", "product")


@admin.register(Rating)
class RatingAdmin(admin.ModelAdmin):
    list_display = ("product", "user", "rating", "created_at")
    list_filter = ("rating",)
    raw_id_fields = ("user", "product")
