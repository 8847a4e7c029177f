import logging

from apps.storage import records
from apps.utils.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class CatalogService:

    @staticmethod
    def list_products(storage, search="", category="", sort="newest", page=1, page_size=20) -> dict:
        """
        `category` is a slug. An unknown slug yields an empty page rather than
        the whole catalog.
        """
        category_id = None
        if category:
            found = storage.get_category_by_slug(category)
            if found is None:
                return CatalogService._page_payload(records.Page(results=[], count=0), page, page_size)
            category_id = found.id

        result = storage.get_products(
            search=search.strip() or None,
            category_id=category_id,
            sort=sort,
            page=page,
            page_size=page_size,
        )
        return CatalogService._page_payload(result, page, page_size)

    @staticmethod
    def _page_payload(result, page, page_size) -> dict:
        has_next = page * page_size < result.count
        return {
            "results": result.results,
            "count": result.count,
            "next": page + 1 if has_next else None,
            "previous": page - 1 if page > 1 else None,
        }

    @staticmethod
    def get_product(storage, product_id):
        product = storage.get_product(product_id)
        if product is None:
            raise NotFoundError("Product not found")
        return product

    @staticmethod
    def suggest(storage, query: str):
        query = (query or "").strip()
        if not query:
            return []
        return storage.get_product_suggestions(query)

    # ==========================================
    # FAVORITES
    # ==========================================

    @staticmethod
    def add_favorite(storage, user_id, product_id):
        CatalogService.get_product(storage, product_id)
        return storage.add_favorite(user_id, product_id)

    @staticmethod
    def remove_favorite(storage, user_id, product_id):
        storage.remove_favorite(user_id, product_id)

    # ==========================================
    # RATINGS
    # ==========================================

    @staticmethod
    def list_ratings(storage, product_id, page=1) -> dict:
        CatalogService.get_product(storage, product_id)
        result = storage.get_product_ratings(product_id, page)
        return {"results": result.results, "count": result.count}

    @staticmethod
    def rate_product(storage, user_id, product_id, rating: int, comment=""):
        if not 1 <= int(rating) <= 5:
            raise ValidationError("Rating must be between 1 and 5")
        CatalogService.get_product(storage, product_id)

        created = storage.create_rating(user_id, product_id, int(rating), comment or "")
        logger.info(f"Product {product_id} rated {rating} by {user_id}", extra={"user_id": user_id})
        return created
