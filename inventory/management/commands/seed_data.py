"""
Management command to seed the database with sample data.

Generates:
- Categories and suppliers
- Products with stocking thresholds and locations
- Opening stock, posted through the ledger so balances replay cleanly

Usage:
    python manage.py seed_data
    python manage.py seed_data --products 500 --username admin
"""
import random
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from inventory.models import Category, Product, Supplier
from ledger.services import stock_in


class Command(BaseCommand):
    help = 'Seed the database with sample categories, suppliers, products and opening stock'

    def add_arguments(self, parser):
        parser.add_argument(
            '--products',
            type=int,
            default=200,
            help='Number of products to create (default: 200)',
        )
        parser.add_argument(
            '--username',
            default='seed',
            help='User recorded as performing the opening stock entries (default: seed)',
        )

    def handle(self, *args, **options):
        self.stdout.write('Starting database seeding...')

        actor = self._get_actor(options['username'])
        categories = self._create_categories()
        suppliers = self._create_suppliers()
        products = self._create_products(options['products'], categories, suppliers)
        self._post_opening_stock(products, actor)

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully!'))

    def _get_actor(self, username):
        user, created = get_user_model().objects.get_or_create(username=username)
        if created:
            user.set_unusable_password()
            user.save()
            self.stdout.write(f'  Created user: {username}')
        return user

    def _create_categories(self):
        palette = {
            'Electronics': '#1f77b4', 'Groceries': '#2ca02c', 'Beverages': '#17becf',
            'Hardware': '#7f7f7f', 'Office Supplies': '#ff7f0e', 'Cleaning': '#9467bd',
            'Packaging': '#8c564b', 'Pharmacy': '#d62728',
        }
        categories = []
        for name, color in palette.items():
            category, created = Category.objects.get_or_create(name=name, defaults={'color': color})
            categories.append(category)
            if created:
                self.stdout.write(f'  Created category: {name}')

        self.stdout.write(self.style.SUCCESS(f'Created {len(categories)} categories'))
        return categories

    def _create_suppliers(self):
        names = [
            ('Northwind Traders', 'NWT'), ('Acme Wholesale', 'ACME'),
            ('Contoso Supply', 'CTS'), ('Globex Distribution', 'GLX'),
            ('Initech Parts', 'INI'),
        ]
        suppliers = []
        for name, code in names:
            supplier, _ = Supplier.objects.get_or_create(
                code=code,
                defaults={'name': name, 'email': f'orders@{code.lower()}.example.com'}
            )
            suppliers.append(supplier)

        self.stdout.write(self.style.SUCCESS(f'Created {len(suppliers)} suppliers'))
        return suppliers

    def _create_products(self, count, categories, suppliers):
        adjectives = ['Premium', 'Classic', 'Compact', 'Heavy-Duty', 'Eco', 'Standard']
        items = ['Widget', 'Cable', 'Cleaner', 'Carton', 'Notebook', 'Juice', 'Bolt Set', 'Tablet']
        units = [choice for choice, _ in Product.Unit.choices]

        products = []
        self.stdout.write(f'Creating {count} products...')

        for i in range(count):
            sku = f'SEED-{i + 1:05d}'
            cost = Decimal(str(round(random.uniform(1, 200), 2)))
            min_level = Decimal(random.randint(5, 25))
            product, created = Product.objects.get_or_create(
                sku=sku,
                defaults={
                    'name': f'{random.choice(adjectives)} {random.choice(items)} {i + 1}',
                    'category': random.choice(categories),
                    'supplier': random.choice(suppliers),
                    'unit': random.choice(units),
                    'cost_price': cost,
                    'selling_price': (cost * Decimal('1.35')).quantize(Decimal('0.01')),
                    'min_stock_level': min_level,
                    'max_stock_level': min_level * 20,
                    'location_warehouse': random.choice(['Main', 'North', 'South']),
                    'location_aisle': random.choice('ABCDEF'),
                    'location_shelf': str(random.randint(1, 8)),
                }
            )
            if created:
                products.append(product)

            if (i + 1) % 100 == 0:
                self.stdout.write(f'  Processed {i + 1} products...')

        self.stdout.write(self.style.SUCCESS(f'Created {len(products)} products'))
        return products

    def _post_opening_stock(self, products, actor):
        """Opening balances go through the ledger like any other receipt."""
        posted = 0
        for product in products:
            quantity = random.randint(0, 400)
            if quantity == 0:
                continue
            stock_in(
                product.pk, quantity, actor,
                reason='Opening stock',
                unit_price=product.cost_price,
                reference='seed',
            )
            posted += 1

        self.stdout.write(self.style.SUCCESS(f'Posted opening stock for {posted} products'))
