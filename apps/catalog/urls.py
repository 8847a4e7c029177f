from django.urls import path
from .views import (
    CategoryListView,
    FavoriteDetailView,
    FavoriteListView,
    ProductDetailView,
    ProductListView,
    ProductRatingsView,
    ProductSuggestView,
)

urlpatterns = [
    path("categories", CategoryListView.as_view(), name="category-list"),
    path("products", ProductListView.as_view(), name="product-list"),
    path("products/suggest", ProductSuggestView.as_view(), name="product-suggest"),
    path("products/<str:product_id>", ProductDetailView.as_view(), name="product-detail"),
    path("products/<str:product_id>/ratings", ProductRatingsView.as_view(), name="product-ratings"),
    path("favorites", FavoriteListView.as_view(), name="favorite-list"),
    path("favorites/<str:product_id>", FavoriteDetailView.as_view(), name="favorite-detail"),
]
