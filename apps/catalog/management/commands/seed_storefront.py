from django.core.management.base import BaseCommand

from apps.catalog.seed import seed_storefront
from apps.storage import get_storage


class Command(BaseCommand):
    help = "Seed categories, products, pickup slots and a demo user"

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=7,
            help='Create pickup slots for this many upcoming days'
        )
        parser.add_argument(
            '--capacity',
            type=int,
            default=50,
            help='Seats per pickup slot'
        )
        parser.add_argument(
            '--no-demo-user',
            action='store_true',
            help='Skip the testuser / password123 account'
        )

    def handle(self, *args, **options):
        storage = get_storage()
        self.stdout.write(f"Seeding storefront using {type(storage).__name__}...")

        with storage.atomic():
            stats = seed_storefront(
                storage,
                days=options['days'],
                slot_capacity=options['capacity'],
                with_demo_user=not options['no_demo_user'],
            )

        self.stdout.write(self.style.SUCCESS(
            f"Done: {stats['categories']} categories, {stats['products']} products, "
            f"{stats['slots']} pickup slots, {stats['users']} users created"
        ))
