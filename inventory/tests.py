"""
Tests for the product directory and stock status evaluation.

Test Cases:
1. Status evaluation against min/max thresholds
2. Product defaults (uppercase SKU, generated barcode, margin)
3. Product API never changes stock
4. Soft delete, lookups and list filters
5. Stale saves never overwrite stock
6. Seed data replays cleanly
"""
from decimal import Decimal
from io import StringIO

from django.contrib import admin
from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import RequestFactory, TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from inventory.admin import ProductAdmin
from inventory.alerts import StockStatus, evaluate_stock_status, stock_alerts
from inventory.models import Category, Product, Supplier
from ledger.reports import replay_product
from ledger.services import stock_in

User = get_user_model()


class StockStatusTestCase(TestCase):
    """Low/normal/high classification."""

    def build(self, current, minimum='10', maximum=None):
        return Product(
            name='Probe',
            sku='PROBE',
            cost_price=Decimal('1.00'),
            selling_price=Decimal('1.00'),
            current_stock=Decimal(current),
            min_stock_level=Decimal(minimum),
            max_stock_level=Decimal(maximum) if maximum is not None else None,
        )

    def test_thresholds(self):
        cases = [
            ('0', '10', None, StockStatus.LOW),
            ('10', '10', None, StockStatus.LOW),
            ('11', '10', None, StockStatus.NORMAL),
            ('49', '10', '50', StockStatus.NORMAL),
            ('50', '10', '50', StockStatus.HIGH),
            ('500', '10', None, StockStatus.NORMAL),
        ]
        for current, minimum, maximum, expected in cases:
            with self.subTest(current=current, maximum=maximum):
                self.assertEqual(evaluate_stock_status(self.build(current, minimum, maximum)), expected)

    def test_low_wins_over_high(self):
        product = self.build('5', minimum='10', maximum='5')
        self.assertEqual(evaluate_stock_status(product), StockStatus.LOW)

    def test_evaluation_is_idempotent(self):
        product = self.build('50', maximum='50')
        self.assertEqual(evaluate_stock_status(product), evaluate_stock_status(product))
        self.assertEqual(product.current_stock, Decimal('50'))

    def test_alert_lists_match_evaluator(self):
        user = User.objects.create_user(username='clerk')
        low = Product.objects.create(
            name='Low', sku='LOW', cost_price=Decimal('1'), selling_price=Decimal('1')
        )
        high = Product.objects.create(
            name='High', sku='HIGH', cost_price=Decimal('1'), selling_price=Decimal('1'),
            max_stock_level=Decimal('20')
        )
        inactive = Product.objects.create(
            name='Gone', sku='GONE', cost_price=Decimal('1'), selling_price=Decimal('1'),
            is_active=False
        )
        stock_in(high.id, 25, user, reason='Delivery')

        alerts = stock_alerts()

        self.assertEqual([p.id for p in alerts['low_stock']], [low.id])
        self.assertEqual([p.id for p in alerts['over_stock']], [high.id])
        self.assertNotIn(inactive.id, [p.id for p in alerts['low_stock']])


class ProductModelTestCase(TestCase):

    def test_sku_uppercased_and_barcode_generated(self):
        product = Product.objects.create(
            name='Cable', sku='  usb-c-1 ', cost_price=Decimal('1.00'), selling_price=Decimal('2.00')
        )
        self.assertEqual(product.sku, 'USB-C-1')
        self.assertTrue(product.barcode.startswith('BC'))
        self.assertEqual(product.current_stock, Decimal('0'))

    def test_blank_barcode_replaced(self):
        product = Product.objects.create(
            name='Cable', sku='C-2', barcode='  ', cost_price=Decimal('1'), selling_price=Decimal('1')
        )
        self.assertTrue(product.barcode.startswith('BC'))

    def test_profit_margin(self):
        product = Product(cost_price=Decimal('8.00'), selling_price=Decimal('10.00'))
        self.assertEqual(product.profit_margin, Decimal('25.00'))

        product.cost_price = Decimal('0')
        self.assertIsNone(product.profit_margin)

    def test_supplier_code_uppercased(self):
        supplier = Supplier.objects.create(name='Acme', code='acme')
        self.assertEqual(supplier.code, 'ACME')


class ProductAPITestCase(APITestCase):
    """Product endpoints."""

    def setUp(self):
        self.user = User.objects.create_user(username='manager', password='secret')
        self.client.force_authenticate(user=self.user)
        self.category = Category.objects.create(name='Hardware')
        self.supplier = Supplier.objects.create(name='Acme', code='ACME')
        self.product = Product.objects.create(
            name='Hammer',
            sku='HAM-1',
            barcode='4006381333931',
            category=self.category,
            supplier=self.supplier,
            cost_price=Decimal('8.00'),
            selling_price=Decimal('12.00'),
        )
        stock_in(self.product.id, 30, self.user, reason='Opening stock')

    def test_create_product_ignores_stock(self):
        response = self.client.post(
            reverse('inventory:product-list'),
            {
                'name': 'Nails',
                'sku': 'nail-100',
                'cost_price': '0.05',
                'selling_price': '0.10',
                'current_stock': '500',
                'category_id': self.category.id,
                'location': {'warehouse': 'Main', 'aisle': 'A'},
                'tags': 'fasteners, steel',
            },
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['sku'], 'NAIL-100')
        self.assertEqual(Decimal(response.data['current_stock']), Decimal('0'))
        self.assertEqual(response.data['category']['name'], 'Hardware')
        self.assertEqual(response.data['location']['aisle'], 'A')
        self.assertEqual(response.data['tags'], ['fasteners', 'steel'])
        self.assertTrue(response.data['barcode'])

    def test_duplicate_sku_rejected(self):
        response = self.client.post(
            reverse('inventory:product-list'),
            {'name': 'Copy', 'sku': 'ham-1', 'cost_price': '1', 'selling_price': '1'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('sku', response.data)

    def test_max_below_min_rejected(self):
        response = self.client.patch(
            reverse('inventory:product-detail', args=[self.product.id]),
            {'min_stock_level': '10', 'max_stock_level': '5'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_keeps_stock(self):
        response = self.client.patch(
            reverse('inventory:product-detail', args=[self.product.id]),
            {'name': 'Claw Hammer', 'current_stock': '0'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.product.refresh_from_db()
        self.assertEqual(self.product.name, 'Claw Hammer')
        self.assertEqual(self.product.current_stock, Decimal('30'))

    def test_soft_delete(self):
        response = self.client.delete(reverse('inventory:product-detail', args=[self.product.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.product.refresh_from_db()
        self.assertFalse(self.product.is_active)
        self.assertEqual(self.product.current_stock, Decimal('30'))

        response = self.client.get(reverse('inventory:product-list'))
        self.assertEqual(response.data['total_count'], 0)

    def test_lookup_by_sku_and_barcode(self):
        response = self.client.get(reverse('inventory:product-by-sku', args=['ham-1']))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], self.product.id)

        response = self.client.get(reverse('inventory:product-by-barcode', args=['4006381333931']))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['sku'], 'HAM-1')

        self.product.is_active = False
        self.product.save(update_fields=['is_active'])
        response = self.client.get(reverse('inventory:product-by-sku', args=['HAM-1']))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_filters(self):
        Product.objects.create(
            name='Screwdriver', sku='SCR-1', cost_price=Decimal('3'), selling_price=Decimal('5')
        )
        url = reverse('inventory:product-list')

        response = self.client.get(url, {'search': 'hamm'})
        self.assertEqual([p['sku'] for p in response.data['items']], ['HAM-1'])

        response = self.client.get(url, {'supplier_id': self.supplier.id})
        self.assertEqual(response.data['total_count'], 1)

        response = self.client.get(url, {'stock_status': 'low'})
        self.assertEqual([p['sku'] for p in response.data['items']], ['SCR-1'])

        response = self.client.get(url, {'sort_by': 'name', 'sort_order': 'asc'})
        self.assertEqual([p['sku'] for p in response.data['items']], ['HAM-1', 'SCR-1'])

    def test_stock_status_and_value_fields(self):
        response = self.client.get(reverse('inventory:product-detail', args=[self.product.id]))
        self.assertEqual(response.data['stock_status'], StockStatus.NORMAL)
        self.assertEqual(Decimal(response.data['stock_value']), Decimal('240.00'))
        self.assertEqual(Decimal(response.data['profit_margin']), Decimal('50.00'))


class ProductStockProtectionTestCase(TestCase):
    """Saving a stale product instance never overwrites its stock."""

    def setUp(self):
        self.user = User.objects.create_user(username='admin-user', is_staff=True, is_superuser=True)
        self.product = Product.objects.create(
            name='Drill', sku='DRL-1', cost_price=Decimal('40.00'), selling_price=Decimal('60.00')
        )
        stock_in(self.product.id, 10, self.user, reason='Opening stock')

    def test_admin_save_keeps_concurrent_stock_in(self):
        """
        Test: An admin edit of a stale instance keeps later stock movements.

        Given: Product loaded with 10 units
        When: 5 units are received, then the admin saves the loaded instance
        Then: The edit is applied, stock is 15 and the ledger replays cleanly
        """
        loaded = Product.objects.get(pk=self.product.pk)
        stock_in(self.product.id, 5, self.user, reason='Delivery')

        loaded.name = 'Cordless Drill'
        request = RequestFactory().post('/admin/inventory/product/')
        request.user = self.user
        ProductAdmin(Product, admin.site).save_model(request, loaded, form=None, change=True)

        self.product.refresh_from_db()
        self.assertEqual(self.product.name, 'Cordless Drill')
        self.assertEqual(self.product.current_stock, Decimal('15'))
        self.assertTrue(replay_product(self.product)['consistent'])

    def test_save_ignores_stock_columns(self):
        loaded = Product.objects.get(pk=self.product.pk)
        version = loaded.version
        loaded.current_stock = Decimal('999')
        loaded.version = 0
        loaded.min_stock_level = Decimal('3')
        loaded.save()

        self.product.refresh_from_db()
        self.assertEqual(self.product.min_stock_level, Decimal('3'))
        self.assertEqual(self.product.current_stock, Decimal('10'))
        self.assertEqual(self.product.version, version)

        loaded.save(update_fields=['current_stock', 'name'])
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('10'))


class SeedDataCommandTestCase(TestCase):

    def test_seed_data_posts_opening_stock_through_ledger(self):
        out = StringIO()
        call_command('seed_data', products=5, stdout=out)

        self.assertEqual(Product.objects.filter(sku__startswith='SEED-').count(), 5)
        self.assertTrue(Category.objects.exists())
        self.assertTrue(Supplier.objects.exists())
        self.assertIn('Database seeding completed', out.getvalue())

        for product in Product.objects.filter(current_stock__gt=0):
            self.assertTrue(product.transactions.exists())

        call_command('verify_ledger', stdout=out)
        self.assertIn('ledger is consistent', out.getvalue())
