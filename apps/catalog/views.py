from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.authentication import StorageJWTAuthentication
from apps.storage import get_storage

from .serializers import (
    CategorySerializer,
    FavoriteSerializer,
    ProductDetailSerializer,
    ProductQuerySerializer,
    ProductSerializer,
    RatingCreateSerializer,
    RatingSerializer,
    SuggestionSerializer,
)
from .services import CatalogService


class CategoryListView(APIView):
    """
    Publicly accessible category list with active product counts.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        categories = get_storage().get_categories()
        return Response(CategorySerializer(categories, many=True).data)


class ProductListView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        query = ProductQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        payload = CatalogService.list_products(get_storage(), **query.validated_data)
        payload["results"] = ProductSerializer(payload["results"], many=True).data
        return Response(payload)


class ProductSuggestView(APIView):
    """
    Type-ahead: at most 5 {id, name, thumb_url}.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        suggestions = CatalogService.suggest(get_storage(), request.query_params.get("q", ""))
        return Response(SuggestionSerializer(suggestions, many=True).data)


class ProductDetailView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, product_id):
        product = CatalogService.get_product(get_storage(), product_id)
        return Response(ProductDetailSerializer(product).data)


class ProductRatingsView(APIView):
    authentication_classes = [StorageJWTAuthentication]

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAuthenticated()]

    def get(self, request, product_id):
        try:
            page = max(int(request.query_params.get("page", 1)), 1)
        except (TypeError, ValueError):
            page = 1

        payload = CatalogService.list_ratings(get_storage(), product_id, page)
        payload["results"] = RatingSerializer(payload["results"], many=True).data
        return Response(payload)

    def post(self, request, product_id):
        serializer = RatingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        rating = CatalogService.rate_product(
            get_storage(),
            request.user.id,
            product_id,
            serializer.validated_data["rating"],
            serializer.validated_data["comment"],
        )
        return Response(RatingSerializer(rating).data, status=status.HTTP_201_CREATED)


class FavoriteListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        favorites = get_storage().get_user_favorites(request.user.id)
        return Response(FavoriteSerializer(favorites, many=True).data)


class FavoriteDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, product_id):
        favorite = CatalogService.add_favorite(get_storage(), request.user.id, product_id)
        return Response(FavoriteSerializer(favorite).data, status=status.HTTP_201_CREATED)

    def delete(self, request, product_id):
        CatalogService.remove_favorite(get_storage(), request.user.id, product_id)
        return Response(status=status.HTTP_204_NO_CONTENT)
