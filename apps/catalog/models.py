# apps/catalog/models.py
import uuid
from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.text import slugify


class Category(models.Model):
    """
    Store aisle (Fruits & Vegetables, Dairy, Bakery...)
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=120, unique=True)
    slug = models.SlugField(unique=True, blank=True, db_index=True)
    image_url = models.URLField(blank=True, default="")
    description = models.TextField(blank=True, default="")

    class Meta:
        verbose_name_plural = "Categories"
        ordering = ["name"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            base_slug = slugify(self.name)
            slug_candidate = base_slug
            counter = 1

            while Category.objects.filter(slug=slug_candidate).exclude(pk=self.pk).exists():
                slug_candidate = f"{base_slug}-{counter}"
                counter += 1

            self.slug = slug_candidate
        super().save(*args, **kwargs)


class Product(models.Model):
    """
    Sellable shelf item.

    NOTE:
    - stock is only changed through conditional updates (see apps.storage.orm).
    - rating_average / rating_count are derived from Rating rows, never edited by hand.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sku = models.CharField(
        max_length=64,
        unique=True,
        db_index=True,
        help_text="Human-readable code (e.g. LAIT-1L-PRESIDENT)",
    )
    name = models.CharField(max_length=255, db_index=True)
    description = models.TextField(blank=True, default="")

    category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        related_name='products',
    )

    price = models.DecimalField(max_digits=10, decimal_places=2)
    images = models.JSONField(default=list, blank=True, help_text="Image URLs, first one is the thumbnail")
    stock = models.PositiveIntegerField(default=0)

    is_active = models.BooleanField(default=True)
    is_perishable = models.BooleanField(
        default=False,
        help_text="Perishable goods shorten the pickup window to 24h",
    )

    rating_average = models.DecimalField(max_digits=3, decimal_places=2, default=0)
    rating_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["is_active", "category"], name="product_active_category_idx"),
            models.Index(fields=["price"], name="product_price_idx"),
        ]

    def __str__(self):
        return f"{self.sku} - {self.name}"


class Favorite(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="favorites")
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="favorites")
    added_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-added_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "product"],
                name="uniq_favorite_user_product",
            )
        ]

    def __str__(self):
        return f"{self.user_id} <3 {self.product_id}"


class Rating(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="ratings")
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="ratings")
    rating = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(5)],
    )
    comment = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["product", "created_at"], name="rating_product_created_idx"),
        ]

    def __str__(self):
        return f"{self.product_id}: {self.rating}/5"
