"""
Demo catalog, pickup slots and a test account.

Runs through the storage interface so it fills whichever backend is active.
Safe to run repeatedly: existing categories, SKUs and slot dates are skipped.
"""
import datetime
import logging
from decimal import Decimal

from django.contrib.auth.hashers import make_password
from django.utils import timezone

logger = logging.getLogger(__name__)

_IMG = "https://images.unsplash.com/photo-{}?w=600&h=600&fit=crop"

CATEGORIES = [
    ("Fruits & Légumes", "fruits-legumes", "1610832958506-aa56368176cf", "Fresh fruit and vegetables"),
    ("Viandes & Poissons", "viandes-poissons", "1607623814075-e51df1bdc82f", "Meat and fish"),
    ("Produits Laitiers", "produits-laitiers", "1628088062854-d1870b4553da", "Milk, yogurt and cheese"),
    ("Épicerie", "epicerie", "1586201375761-83865001e31c", "Pantry staples"),
    ("Boissons", "boissons", "1523677011781-c91d1bbe2f34", "Water, juice and soft drinks"),
    ("Boulangerie", "boulangerie", "1509440159596-0249088772ff", "Bread and pastries"),
    ("Hygiène & Beauté", "hygiene-beaute", "1556228578-8c89e6adf883", "Personal care"),
    ("Entretien", "entretien", "1610657820036-dfd1b5b94e25", "Household cleaning"),
]

# (category slug, sku, name, description, price, image id, stock, perishable)
PRODUCTS = [
    ("fruits-legumes", "FL001", "Bananes", "Bananes mûres et sucrées", "1500", "1571771894821-ce9b6c11b08e", 50, True),
    ("fruits-legumes", "FL002", "Tomates", "Tomates fraîches et juteuses", "800", "1546094096-0df4bcaaa337", 40, True),
    ("fruits-legumes", "FL003", "Pommes de terre", "Pommes de terre de qualité", "1200", "1518977676601-b53f82aba655", 60, False),
    ("viandes-poissons", "VP001", "Poulet entier", "Poulet fermier frais", "4500", "1598103442097-8b74394b95c6", 20, True),
    ("viandes-poissons", "VP002", "Filet de tilapia", "Poisson frais du Congo", "3500", "1599084993091-1cb5c0721cc6", 15, True),
    ("produits-laitiers", "PL001", "Lait entier 1L", "Lait frais pasteurisé", "1800", "1550583724-b2692b85b150", 30, True),
    ("produits-laitiers", "PL002", "Yaourt nature", "Yaourt nature 4x125g", "2200", "1488477181946-6428a0291777", 25, True),
    ("epicerie", "EP001", "Riz 5kg", "Riz long grain", "5500", "1586201375761-83865001e31c", 45, False),
    ("epicerie", "EP002", "Huile végétale 1L", "Huile de palme raffinée", "2800", "1474979266404-7eaacbcd87c5", 35, False),
    ("epicerie", "EP003", "Pâtes 500g", "Spaghetti de qualité", "1200", "1551462147-ff29053bfc14", 50, False),
    ("boissons", "BO001", "Eau minérale 1.5L", "Eau plate naturelle", "600", "1548839140-29a749e1cf4d", 100, False),
    ("boissons", "BO002", "Jus d'orange 1L", "Jus 100% pur fruit", "1800", "1600271886742-f049cd451bba", 30, False),
    ("boulangerie", "BL001", "Pain complet", "Pain frais du jour", "800", "1509440159596-0249088772ff", 40, True),
    ("boulangerie", "BL002", "Croissants x6", "Croissants pur beurre", "2500", "1555507036-ab1f4038808a", 20, True),
    ("hygiene-beaute", "HB001", "Savon de toilette", "Savon antibactérien", "1200", "1631729371254-42c2892f0e6e", 50, False),
    ("hygiene-beaute", "HB002", "Dentifrice", "Dentifrice protection complète", "1500", "1622786344615-0fc96e5591e3", 40, False),
    ("entretien", "EN001", "Lessive liquide 2L", "Lessive pour tout le linge", "3500", "1610557892470-55d9e80c0bce", 30, False),
    ("entretien", "EN002", "Javel 1L", "Eau de javel désinfectante", "1200", "1563453392212-326f5e854473", 35, False),
]

SLOT_WINDOWS = [("08:00", "10:00"), ("10:00", "12:00"), ("14:00", "16:00"), ("16:00", "18:00")]

DEMO_USER = ("testuser", "test@example.com", "password123")


def seed_storefront(storage, days=7, slot_capacity=50, with_demo_user=True) -> dict:
    stats = {"categories": 0, "products": 0, "slots": 0, "users": 0}

    categories = {}
    for name, slug, image, description in CATEGORIES:
        category = storage.get_category_by_slug(slug)
        if category is None:
            category = storage.create_category(
                name=name,
                slug=slug,
                image_url=_IMG.format(image).replace("600&h=600", "400&h=300"),
                description=description,
            )
            stats["categories"] += 1
        categories[slug] = category

    existing_skus = set()
    page = 1
    while True:
        batch = storage.get_products(page=page, page_size=100)
        existing_skus.update(p.sku for p in batch.results)
        if page * 100 >= batch.count:
            break
        page += 1

    for slug, sku, name, description, price, image, stock, perishable in PRODUCTS:
        if sku in existing_skus:
            continue
        storage.create_product(
            sku=sku,
            name=name,
            description=description,
            price=Decimal(price),
            images=[_IMG.format(image)],
            stock=stock,
            category_id=categories[slug].id,
            is_perishable=perishable,
        )
        stats["products"] += 1

    today = timezone.localdate()
    for offset in range(1, days + 1):
        date = (today + datetime.timedelta(days=offset)).isoformat()
        if storage.get_pickup_slots(date=date):
            continue
        for time_from, time_to in SLOT_WINDOWS:
            storage.create_pickup_slot(date, time_from, time_to, capacity=slot_capacity)
            stats["slots"] += 1

    if with_demo_user:
        username, email, password = DEMO_USER
        if storage.get_user_by_email(email) is None and storage.get_user_by_username(username) is None:
            storage.create_user(username=username, email=email, password=make_password(password))
            stats["users"] += 1

    logger.info(f"Storefront seeded: {stats}")
    return stats
