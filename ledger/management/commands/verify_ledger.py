"""
Management command to check that every product balance matches its ledger.

Usage:
    python manage.py verify_ledger
    python manage.py verify_ledger --product 42
"""
from django.core.management.base import BaseCommand, CommandError

from inventory.models import Product
from ledger.reports import replay_product


class Command(BaseCommand):
    help = 'Replay the stock ledger and report products whose balance does not match'

    def add_arguments(self, parser):
        parser.add_argument(
            '--product',
            type=int,
            help='Only verify this product ID',
        )

    def handle(self, *args, **options):
        products = Product.objects.order_by('id')
        if options['product']:
            products = products.filter(pk=options['product'])

        checked = 0
        mismatches = []
        for product in products.iterator():
            result = replay_product(product)
            checked += 1
            if not result['consistent']:
                mismatches.append(result)
                self.stdout.write(self.style.ERROR(
                    f"  {result['sku']}: stock {result['current_stock']}, "
                    f"ledger {result['replayed_stock']}, "
                    f"{result['broken_links']} broken link(s)"
                ))

        if mismatches:
            raise CommandError(f'{len(mismatches)} of {checked} products do not match their ledger')

        self.stdout.write(self.style.SUCCESS(f'Verified {checked} products: ledger is consistent'))
