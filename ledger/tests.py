"""
Tests for the stock mutation engine, ledger, reports and API.

Test Cases:
1. Each mutation kind moves stock by its signed impact
2. Rejected mutations leave stock and ledger untouched
3. Ledger entries are immutable
4. Retries on concurrent modification, conflict when attempts run out
5. Database failures roll the whole mutation back
6. Concurrent stock-outs never oversell
7. Replaying the ledger reproduces every balance
"""
import threading
from decimal import Decimal
from io import StringIO
from unittest.mock import MagicMock, patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.exceptions import ValidationError
from django.core.management import CommandError, call_command
from django.db import DatabaseError, OperationalError, connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from inventory.alerts import StockStatus, evaluate_stock_status
from inventory.models import Product
from ledger import services
from ledger.models import STOCK_IMPACT_SIGN, InventoryTransaction, TransactionType, stock_impact
from ledger.reports import (
    dashboard_summary,
    inventory_summary,
    parse_boundary,
    replay_product,
    transaction_summary,
)
from ledger.services import (
    ConcurrencyConflictError,
    InsufficientStockError,
    PersistenceError,
    ProductNotFoundError,
    StockValidationError,
    adjust_stock,
    record_damage,
    record_expiry,
    record_return,
    stock_in,
    stock_out,
    transfer_stock,
)
from ledger.tasks import generate_daily_transaction_report, send_stock_alert

User = get_user_model()


def make_product(sku='WID-1', **fields):
    defaults = {
        'name': f'Widget {sku}',
        'cost_price': Decimal('2.00'),
        'selling_price': Decimal('3.00'),
        'min_stock_level': Decimal('10'),
    }
    defaults.update(fields)
    return Product.objects.create(sku=sku, **defaults)


class StockMutationTestCase(TestCase):
    """Stock mutation engine behaviour against a single product."""

    def setUp(self):
        self.user = User.objects.create_user(username='clerk', password='secret')
        self.product = make_product()
        stock_in(self.product.id, 10, self.user, reason='Opening stock')
        self.product.refresh_from_db()

    def test_stock_out_to_zero(self):
        """
        Test: Issuing the whole balance empties the product.

        Given: 10 units in stock, minimum level 10
        When: Issuing 10 units
        Then: Stock is 0, impact is -10, status is low
        """
        entry = stock_out(self.product.id, 10, self.user, reason='Sale')

        self.assertEqual(entry.type, TransactionType.OUT)
        self.assertEqual(entry.previous_stock, Decimal('10'))
        self.assertEqual(entry.new_stock, Decimal('0'))
        self.assertEqual(entry.stock_impact, Decimal('-10'))

        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('0'))
        self.assertEqual(evaluate_stock_status(self.product), StockStatus.LOW)

    def test_stock_out_insufficient(self):
        """
        Test: Issuing more than the balance is rejected.

        Given: 10 units in stock
        When: Issuing 11 units
        Then: InsufficientStockError, stock stays 10, no entry written
        """
        with self.assertRaises(InsufficientStockError) as context:
            stock_out(self.product.id, 11, self.user, reason='Sale')

        self.assertEqual(context.exception.requested, Decimal('11'))
        self.assertEqual(context.exception.available, Decimal('10'))

        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('10'))
        self.assertEqual(self.product.transactions.count(), 1)

    def test_adjustment_records_absolute_difference(self):
        """
        Test: Adjustment sets the level and stores |difference| as quantity.

        Given: 10 units in stock
        When: Adjusting to 3
        Then: quantity is 7, net change is -7
        """
        entry = adjust_stock(self.product.id, 3, self.user, reason='Cycle count')

        self.assertEqual(entry.quantity, Decimal('7'))
        self.assertEqual(entry.previous_stock, Decimal('10'))
        self.assertEqual(entry.new_stock, Decimal('3'))
        self.assertEqual(entry.stock_impact, Decimal('0'))
        self.assertEqual(entry.net_change, Decimal('-7'))

        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('3'))

    def test_adjustment_upwards_and_to_zero(self):
        entry = adjust_stock(self.product.id, 25, self.user, reason='Found stock')
        self.assertEqual(entry.quantity, Decimal('15'))
        self.assertEqual(entry.net_change, Decimal('15'))

        entry = adjust_stock(self.product.id, 0, self.user, reason='Write-off')
        self.assertEqual(entry.quantity, Decimal('25'))
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('0'))

    def test_stock_in_total_value(self):
        """
        Test: Total value is quantity times unit price.

        When: Receiving 5 units at 2.50
        Then: total_value is 12.50
        """
        entry = stock_in(self.product.id, 5, self.user, reason='Delivery', unit_price='2.50')

        self.assertEqual(entry.total_value, Decimal('12.50'))
        self.assertEqual(entry.new_stock, Decimal('15'))

    def test_stock_in_without_price_has_zero_value(self):
        entry = stock_in(self.product.id, 5, self.user, reason='Delivery')
        self.assertIsNone(entry.unit_price)
        self.assertEqual(entry.total_value, Decimal('0.00'))

    def test_fractional_quantities(self):
        stock_in(self.product.id, '2.125', self.user, reason='Bulk delivery')
        stock_out(self.product.id, '0.5', self.user, reason='Sample')

        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('11.625'))

    def test_return_damage_expiry(self):
        record_return(self.product.id, 2, self.user, reason='Customer return')
        record_damage(self.product.id, 3, self.user, reason='Dropped pallet')
        record_expiry(self.product.id, 4, self.user, reason='Past best-before')

        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('5'))

        types = list(
            self.product.transactions.order_by('id').values_list('type', flat=True)
        )
        self.assertEqual(types, ['in', 'return', 'damage', 'expiry'])

    def test_damage_cannot_exceed_stock(self):
        with self.assertRaises(InsufficientStockError):
            record_damage(self.product.id, 50, self.user, reason='Flood')

    def test_outbound_records_source_location(self):
        self.product.set_location({'warehouse': 'Main', 'aisle': 'B'})
        self.product.save()

        entry = stock_out(self.product.id, 1, self.user, reason='Sale')

        self.assertEqual(entry.from_location['warehouse'], 'Main')
        self.assertEqual(entry.from_location['aisle'], 'B')

    def test_inbound_records_destination_location(self):
        entry = stock_in(
            self.product.id, 1, self.user,
            reason='Delivery',
            location={'warehouse': 'North', 'bin': '7'}
        )
        self.assertEqual(
            entry.to_location,
            {'warehouse': 'North', 'aisle': '', 'shelf': '', 'bin': '7'}
        )

    def test_transfer_moves_location_not_stock(self):
        """
        Test: Transfer keeps the balance and relocates the product.
        """
        entry = transfer_stock(
            self.product.id, 4, self.user,
            to_location={'warehouse': 'North'},
            reason='Rebalance'
        )

        self.assertEqual(entry.type, TransactionType.TRANSFER)
        self.assertEqual(entry.previous_stock, entry.new_stock)
        self.assertEqual(entry.from_location['warehouse'], '')
        self.assertEqual(entry.to_location['warehouse'], 'North')

        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('10'))
        self.assertEqual(self.product.location_warehouse, 'North')

    def test_transfer_requires_destination_and_stock(self):
        with self.assertRaises(StockValidationError):
            transfer_stock(self.product.id, 1, self.user, to_location=None, reason='Move')
        with self.assertRaises(InsufficientStockError):
            transfer_stock(
                self.product.id, 11, self.user,
                to_location={'warehouse': 'North'},
                reason='Move'
            )

    def test_entries_are_completed_and_attributed(self):
        entry = stock_out(self.product.id, 1, self.user, reason='Sale', reference_number='SO-1')
        self.assertEqual(entry.status, InventoryTransaction.Status.COMPLETED)
        self.assertEqual(entry.performed_by, self.user)
        self.assertEqual(entry.reference_number, 'SO-1')

    def test_version_increments_per_mutation(self):
        version = self.product.version
        stock_in(self.product.id, 1, self.user, reason='Delivery')
        stock_out(self.product.id, 1, self.user, reason='Sale')

        self.product.refresh_from_db()
        self.assertEqual(self.product.version, version + 2)


class StockValidationTestCase(TestCase):
    """Malformed requests are rejected before anything is written."""

    def setUp(self):
        self.user = User.objects.create_user(username='clerk')
        self.product = make_product()

    def assertNothingWritten(self):
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('0'))
        self.assertEqual(InventoryTransaction.objects.count(), 0)

    def test_invalid_quantities(self):
        for quantity in (0, -1, '', None, 'abc', '1.0001', 'NaN', True):
            with self.subTest(quantity=quantity):
                with self.assertRaises(StockValidationError):
                    stock_in(self.product.id, quantity, self.user, reason='Delivery')
        self.assertNothingWritten()

    def test_adjustment_rejects_negative_level(self):
        with self.assertRaises(StockValidationError):
            adjust_stock(self.product.id, -1, self.user, reason='Count')
        self.assertNothingWritten()

    def test_reason_required(self):
        with self.assertRaises(StockValidationError) as context:
            stock_in(self.product.id, 1, self.user, reason='   ')
        self.assertIn('reason', str(context.exception))
        self.assertNothingWritten()

    def test_text_length_limits(self):
        with self.assertRaises(StockValidationError):
            stock_in(self.product.id, 1, self.user, reason='x' * 201)
        with self.assertRaises(StockValidationError):
            stock_in(self.product.id, 1, self.user, reason='ok', notes='x' * 501)
        with self.assertRaises(StockValidationError):
            stock_in(self.product.id, 1, self.user, reason='ok', reference_number='x' * 101)
        self.assertNothingWritten()

    def test_negative_unit_price(self):
        with self.assertRaises(StockValidationError):
            stock_in(self.product.id, 1, self.user, reason='Delivery', unit_price='-1')

    def test_unknown_location_field(self):
        with self.assertRaises(StockValidationError):
            stock_in(self.product.id, 1, self.user, reason='Delivery', location={'room': '1'})

    def test_actor_required(self):
        with self.assertRaises(StockValidationError):
            stock_in(self.product.id, 1, None, reason='Delivery')
        self.assertNothingWritten()

    def test_unknown_product(self):
        with self.assertRaises(ProductNotFoundError):
            stock_in(99999, 1, self.user, reason='Delivery')

    def test_inactive_product(self):
        self.product.is_active = False
        self.product.save(update_fields=['is_active'])

        with self.assertRaises(ProductNotFoundError):
            stock_in(self.product.id, 1, self.user, reason='Delivery')
        self.assertNothingWritten()


class LedgerModelTestCase(TestCase):
    """Ledger entry rules enforced by the model itself."""

    def setUp(self):
        self.user = User.objects.create_user(username='auditor')
        self.product = make_product()
        self.entry = stock_in(self.product.id, 5, self.user, reason='Delivery')

    def test_every_type_has_an_impact_sign(self):
        self.assertEqual(set(STOCK_IMPACT_SIGN), set(TransactionType))

    def test_stock_impact_signs(self):
        self.assertEqual(stock_impact('in', Decimal('3')), Decimal('3'))
        self.assertEqual(stock_impact('return', Decimal('3')), Decimal('3'))
        self.assertEqual(stock_impact('out', Decimal('3')), Decimal('-3'))
        self.assertEqual(stock_impact('damage', Decimal('3')), Decimal('-3'))
        self.assertEqual(stock_impact('expiry', Decimal('3')), Decimal('-3'))
        self.assertEqual(stock_impact('adjustment', Decimal('3')), Decimal('0'))
        self.assertEqual(stock_impact('transfer', Decimal('3')), Decimal('0'))
        with self.assertRaises(ValueError):
            stock_impact('gift', Decimal('3'))

    def test_entries_cannot_be_updated(self):
        self.entry.reason = 'Rewritten'
        with self.assertRaises(ValidationError):
            self.entry.save()

        self.entry.refresh_from_db()
        self.assertEqual(self.entry.reason, 'Delivery')

    def test_entries_cannot_be_deleted(self):
        with self.assertRaises(ValidationError):
            self.entry.delete()
        self.assertTrue(InventoryTransaction.objects.filter(pk=self.entry.pk).exists())

    def test_inconsistent_entry_rejected(self):
        entry = InventoryTransaction.inbound(
            self.product, TransactionType.IN, Decimal('2'), self.user, reason='Delivery'
        )
        entry.new_stock = Decimal('100')
        with self.assertRaises(ValidationError):
            entry.save()

    def test_factories_reject_wrong_direction(self):
        with self.assertRaises(ValueError):
            InventoryTransaction.inbound(
                self.product, TransactionType.OUT, Decimal('1'), self.user, reason='x'
            )
        with self.assertRaises(ValueError):
            InventoryTransaction.outbound(
                self.product, TransactionType.IN, Decimal('1'), self.user, reason='x'
            )


class RetryAndRollbackTestCase(TestCase):
    """Attempt loop behaviour under conflicts and database failures."""

    def setUp(self):
        self.user = User.objects.create_user(username='clerk')
        self.product = make_product()
        stock_in(self.product.id, 10, self.user, reason='Opening stock')
        self.product.refresh_from_db()

    def test_retries_after_concurrent_write(self):
        real_swap = services._swap_stock
        calls = []

        def lose_first_race(product, new_stock, extra_fields=None):
            calls.append(product.version)
            if len(calls) == 1:
                return False
            return real_swap(product, new_stock, extra_fields)

        with patch('ledger.services._swap_stock', side_effect=lose_first_race):
            entry = stock_out(self.product.id, 4, self.user, reason='Sale')

        self.assertEqual(len(calls), 2)
        self.assertEqual(entry.new_stock, Decimal('6'))

        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('6'))
        self.assertEqual(self.product.transactions.count(), 2)

    @override_settings(STOCK_MUTATION_MAX_ATTEMPTS=3)
    def test_conflict_after_exhausted_attempts(self):
        with patch('ledger.services._swap_stock', return_value=False) as swap:
            with self.assertRaises(ConcurrencyConflictError):
                stock_out(self.product.id, 4, self.user, reason='Sale')

        self.assertEqual(swap.call_count, 3)
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('10'))
        self.assertEqual(self.product.transactions.count(), 1)

    def test_database_error_rolls_back(self):
        """
        Test: A failing ledger insert undoes the balance swap.

        Given: 10 units in stock
        When: Writing the entry raises DatabaseError
        Then: PersistenceError, stock and version unchanged
        """
        version = self.product.version

        with patch('ledger.services._append_entry', side_effect=DatabaseError('disk full')):
            with self.assertRaises(PersistenceError):
                stock_out(self.product.id, 4, self.user, reason='Sale')

        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('10'))
        self.assertEqual(self.product.version, version)
        self.assertEqual(self.product.transactions.count(), 1)

    def test_retries_while_database_is_locked(self):
        """
        Test: A writer that finds the database locked waits and retries.

        Given: 10 units in stock
        When: The first attempt reports "database is locked"
        Then: The second attempt applies the stock-out once
        """
        real_swap = services._swap_stock
        calls = []

        def locked_once(product, new_stock, extra_fields=None):
            calls.append(product.version)
            if len(calls) == 1:
                raise OperationalError('database is locked')
            return real_swap(product, new_stock, extra_fields)

        with patch('ledger.services.time.sleep') as sleep:
            with patch('ledger.services._swap_stock', side_effect=locked_once):
                entry = stock_out(self.product.id, 4, self.user, reason='Sale')

        self.assertEqual(len(calls), 2)
        sleep.assert_called_once()
        self.assertEqual(entry.new_stock, Decimal('6'))
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('6'))
        self.assertEqual(self.product.transactions.count(), 2)

    @override_settings(STOCK_MUTATION_MAX_ATTEMPTS=3)
    def test_conflict_when_database_stays_locked(self):
        locked = OperationalError('database table is locked: inventory_product')
        with patch('ledger.services.time.sleep'):
            with patch('ledger.services._swap_stock', side_effect=locked) as swap:
                with self.assertRaises(ConcurrencyConflictError):
                    stock_out(self.product.id, 4, self.user, reason='Sale')

        self.assertEqual(swap.call_count, 3)
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('10'))

    def test_other_operational_errors_are_not_retried(self):
        with patch('ledger.services._swap_stock', side_effect=OperationalError('no such column')) as swap:
            with self.assertRaises(PersistenceError):
                stock_out(self.product.id, 4, self.user, reason='Sale')

        self.assertEqual(swap.call_count, 1)


class ConcurrentStockOutTestCase(TransactionTestCase):
    """
    Concurrent stock-outs against one product.
    Uses TransactionTestCase for proper multi-threading support.
    """

    def setUp(self):
        self.user = User.objects.create_user(username='racer')
        self.product = make_product(sku='RACE-1', min_stock_level=Decimal('0'))
        stock_in(self.product.id, 10, self.user, reason='Opening stock')

    @override_settings(STOCK_MUTATION_MAX_ATTEMPTS=5)
    def test_concurrent_stock_outs_never_oversell(self):
        """
        Test: Concurrent stock-outs are serialized, never oversold.

        Given: 10 units in stock
        When: Five stock-outs of 3 units each start at the same moment
        Then: Exactly three succeed, two fail with InsufficientStockError,
              stock is 1 and the ledger accounts for every success
        """
        results = []
        lock = threading.Lock()
        start = threading.Barrier(5)

        def issue():
            try:
                start.wait(timeout=10)
                stock_out(self.product.id, 3, self.user, reason='Concurrent sale')
                outcome = 'ok'
            except Exception as e:
                outcome = type(e).__name__
            finally:
                connection.close()
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=issue) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.product.refresh_from_db()

        self.assertEqual(sorted(results), ['InsufficientStockError'] * 2 + ['ok'] * 3)
        self.assertEqual(self.product.current_stock, Decimal('1'))
        self.assertEqual(
            self.product.transactions.filter(type=TransactionType.OUT).count(),
            3
        )
        self.assertTrue(replay_product(self.product)['consistent'])


class ReplayTestCase(TestCase):
    """Replaying the ledger reproduces the stored balance."""

    def setUp(self):
        self.user = User.objects.create_user(username='auditor')
        self.product = make_product()

    def test_replay_matches_balance(self):
        stock_in(self.product.id, 20, self.user, reason='Delivery')
        stock_out(self.product.id, 5, self.user, reason='Sale')
        adjust_stock(self.product.id, 12, self.user, reason='Count')
        record_return(self.product.id, 1, self.user, reason='Return')
        transfer_stock(self.product.id, 2, self.user, to_location={'warehouse': 'B'}, reason='Move')
        record_expiry(self.product.id, 3, self.user, reason='Expired')

        self.product.refresh_from_db()
        result = replay_product(self.product)

        self.assertTrue(result['consistent'])
        self.assertEqual(result['broken_links'], 0)
        self.assertEqual(result['replayed_stock'], Decimal('10'))
        self.assertEqual(self.product.current_stock, Decimal('10'))

    def test_replay_detects_tampered_balance(self):
        stock_in(self.product.id, 20, self.user, reason='Delivery')
        Product.objects.filter(pk=self.product.pk).update(current_stock=Decimal('99'))

        self.product.refresh_from_db()
        result = replay_product(self.product)

        self.assertFalse(result['consistent'])
        self.assertEqual(result['replayed_stock'], Decimal('20'))

    def test_verify_ledger_command(self):
        stock_in(self.product.id, 20, self.user, reason='Delivery')
        out = StringIO()
        call_command('verify_ledger', stdout=out)
        self.assertIn('consistent', out.getvalue())

        Product.objects.filter(pk=self.product.pk).update(current_stock=Decimal('1'))
        with self.assertRaises(CommandError):
            call_command('verify_ledger', stdout=StringIO())


class ReportTestCase(TestCase):
    """Aggregations over products and the ledger."""

    def setUp(self):
        self.user = User.objects.create_user(username='analyst')

    def test_empty_reports(self):
        summary = dashboard_summary()
        self.assertEqual(summary['total_products'], 0)
        self.assertEqual(summary['low_stock_count'], 0)
        self.assertEqual(summary['total_value'], '0.00')
        self.assertEqual(summary['recent_transactions'], [])

        self.assertEqual(inventory_summary()['total_value'], '0.00')

        now = timezone.now()
        totals = transaction_summary(now, now)
        self.assertEqual(totals['total_transactions'], 0)
        self.assertEqual(totals['total_value'], '0.00')
        self.assertEqual(Decimal(totals['total_in']), Decimal('0'))

    def test_dashboard_counts(self):
        low = make_product(sku='LOW-1')
        over = make_product(sku='OVER-1', max_stock_level=Decimal('50'))
        normal = make_product(sku='OK-1')
        stock_in(low.id, 5, self.user, reason='Delivery')
        stock_in(over.id, 60, self.user, reason='Delivery')
        stock_in(normal.id, 20, self.user, reason='Delivery')

        summary = dashboard_summary()

        self.assertEqual(summary['total_products'], 3)
        self.assertEqual(summary['low_stock_count'], 1)
        self.assertEqual(summary['over_stock_count'], 1)
        self.assertEqual(summary['out_of_stock_count'], 0)
        # (5 + 60 + 20) * 2.00
        self.assertEqual(summary['total_value'], '170.00')
        self.assertEqual(len(summary['recent_transactions']), 3)

    def test_transaction_summary(self):
        product = make_product()
        stock_in(product.id, 5, self.user, reason='Delivery', unit_price='2.50')
        stock_out(product.id, 2, self.user, reason='Sale')

        today = timezone.localdate().isoformat()
        summary = transaction_summary(
            parse_boundary(today),
            parse_boundary(today, end_of_day=True)
        )

        self.assertEqual(summary['total_transactions'], 2)
        self.assertEqual(Decimal(summary['total_in']), Decimal('5'))
        self.assertEqual(Decimal(summary['total_out']), Decimal('2'))
        self.assertEqual(summary['total_value'], '12.50')
        self.assertEqual(set(summary['type_breakdown']), {'in', 'out'})
        self.assertEqual(len(summary['daily_breakdown']), 1)

    def test_parse_boundary(self):
        self.assertIsNone(parse_boundary(''))
        self.assertIsNone(parse_boundary('not-a-date'))
        self.assertIsNone(parse_boundary('2024-13-45'))

        start = parse_boundary('2024-03-01')
        end = parse_boundary('2024-03-01', end_of_day=True)
        self.assertTrue(timezone.is_aware(start))
        self.assertEqual(start.date(), end.date())
        self.assertLess(start, end)


class StockAlertTaskTestCase(TestCase):
    """Alert queuing after commit and the alert task itself."""

    def setUp(self):
        self.user = User.objects.create_user(username='clerk')
        self.product = make_product(min_stock_level=Decimal('5'))

    def test_alert_queued_when_stock_runs_low(self):
        stock_in(self.product.id, 20, self.user, reason='Delivery')

        with patch.object(send_stock_alert, 'delay') as delay:
            with self.captureOnCommitCallbacks(execute=True):
                stock_out(self.product.id, 18, self.user, reason='Sale')

        delay.assert_called_once_with(self.product.id)

    def test_no_alert_for_normal_stock(self):
        with patch.object(send_stock_alert, 'delay') as delay:
            with self.captureOnCommitCallbacks(execute=True):
                stock_in(self.product.id, 20, self.user, reason='Delivery')

        delay.assert_not_called()

    def test_no_alert_queued_for_rejected_mutation(self):
        with patch.object(send_stock_alert, 'delay') as delay:
            with self.captureOnCommitCallbacks(execute=True) as callbacks:
                with self.assertRaises(InsufficientStockError):
                    stock_out(self.product.id, 1, self.user, reason='Sale')

        self.assertEqual(len(callbacks), 0)
        delay.assert_not_called()

    @override_settings(STOCK_ALERT_EMAILS=['ops@example.com'])
    def test_send_stock_alert_emails_low_stock(self):
        result = send_stock_alert(self.product.id)

        self.assertEqual(result['status'], 'success')
        self.assertEqual(result['stock_status'], StockStatus.LOW)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(self.product.sku, mail.outbox[0].subject)
        self.assertEqual(mail.outbox[0].to, ['ops@example.com'])

    @override_settings(STOCK_ALERT_EMAILS=['ops@example.com'])
    def test_send_stock_alert_skips_normal_stock(self):
        stock_in(self.product.id, 20, self.user, reason='Delivery')

        result = send_stock_alert(self.product.id)

        self.assertEqual(result['status'], 'skipped')
        self.assertEqual(len(mail.outbox), 0)

    def test_send_stock_alert_missing_product(self):
        result = send_stock_alert(99999)
        self.assertEqual(result['status'], 'error')

    def test_daily_report_on_empty_ledger(self):
        summary = generate_daily_transaction_report()
        self.assertEqual(summary['total_transactions'], 0)
        self.assertEqual(summary['total_value'], '0.00')


class LedgerAPITestCase(APITestCase):
    """HTTP endpoints for mutations, the ledger and reports."""

    def setUp(self):
        self.user = User.objects.create_user(username='api-user', password='secret')
        self.client.force_authenticate(user=self.user)
        self.product = make_product()

    def post_stock_in(self, quantity='10', **extra):
        payload = {'product_id': self.product.id, 'quantity': quantity, 'reason': 'Delivery'}
        payload.update(extra)
        return self.client.post(reverse('ledger:stock-in'), payload, format='json')

    def test_authentication_required(self):
        self.client.force_authenticate(user=None)
        response = self.post_stock_in()
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_stock_in_created(self):
        response = self.post_stock_in('5', unit_price='2.50', reference_number='PO-9')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['type'], 'in')
        self.assertEqual(Decimal(response.data['new_stock']), Decimal('5'))
        self.assertEqual(Decimal(response.data['total_value']), Decimal('12.50'))
        self.assertEqual(Decimal(response.data['stock_impact']), Decimal('5'))
        self.assertEqual(response.data['product']['sku'], self.product.sku)
        self.assertEqual(response.data['performed_by']['username'], 'api-user')

    def test_stock_out_insufficient(self):
        self.post_stock_in('10')

        response = self.client.post(
            reverse('ledger:stock-out'),
            {'product_id': self.product.id, 'quantity': '11', 'reason': 'Sale'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Insufficient Stock')
        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('10'))

    def test_unknown_product_404(self):
        response = self.client.post(
            reverse('ledger:stock-in'),
            {'product_id': 99999, 'quantity': '1', 'reason': 'Delivery'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Not Found')

    def test_invalid_quantity_400(self):
        response = self.post_stock_in('0')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Validation Error')

    def test_missing_fields_400(self):
        response = self.client.post(reverse('ledger:stock-in'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('product_id', response.data)
        self.assertIn('reason', response.data)

    def test_adjustment_and_transfer(self):
        self.post_stock_in('10')

        response = self.client.post(
            reverse('ledger:adjustment'),
            {'product_id': self.product.id, 'quantity': '3', 'reason': 'Count'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['quantity']), Decimal('7'))
        self.assertEqual(Decimal(response.data['net_change']), Decimal('-7'))

        response = self.client.post(
            reverse('ledger:transfer'),
            {
                'product_id': self.product.id,
                'quantity': '2',
                'to_location': {'warehouse': 'North', 'aisle': 'C'},
                'reason': 'Rebalance'
            },
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['to_location']['aisle'], 'C')

    def test_return_damage_expiry_endpoints(self):
        self.post_stock_in('10')
        for name in ('ledger:return', 'ledger:damage', 'ledger:expiry'):
            with self.subTest(endpoint=name):
                response = self.client.post(
                    reverse(name),
                    {'product_id': self.product.id, 'quantity': '1', 'reason': 'Test'},
                    format='json'
                )
                self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        self.product.refresh_from_db()
        self.assertEqual(self.product.current_stock, Decimal('9'))

    def test_unexpected_error_is_500(self):
        with patch('ledger.services.apply_mutation', side_effect=RuntimeError('boom')):
            response = self.post_stock_in('1')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['error'], 'Server Error')

    def test_transaction_list_filters_and_pagination(self):
        self.post_stock_in('10')
        self.client.post(
            reverse('ledger:stock-out'),
            {'product_id': self.product.id, 'quantity': '1', 'reason': 'Sale'},
            format='json'
        )

        response = self.client.get(reverse('ledger:transaction-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_count'], 2)
        self.assertEqual(response.data['current_page'], 1)
        self.assertEqual(response.data['items'][0]['type'], 'out')

        response = self.client.get(reverse('ledger:transaction-list'), {'type': 'in'})
        self.assertEqual(response.data['total_count'], 1)

        response = self.client.get(reverse('ledger:transaction-list'), {'limit': 1, 'page': 2})
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(len(response.data['items']), 1)

        response = self.client.get(reverse('ledger:transaction-list'), {'start_date': 'yesterday-ish'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_transaction_detail(self):
        entry_id = self.post_stock_in('3').data['id']
        response = self.client.get(reverse('ledger:transaction-detail', args=[entry_id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['reason'], 'Delivery')

    def test_stock_alerts_and_dashboard(self):
        self.post_stock_in('3')

        response = self.client.get(reverse('ledger:stock-alerts'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['id'] for p in response.data['low_stock']], [self.product.id])
        self.assertEqual(response.data['over_stock'], [])

        response = self.client.get(reverse('ledger:dashboard'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['low_stock_count'], 1)
        self.assertEqual(len(response.data['recent_transactions']), 1)

    def test_transaction_summary_requires_dates(self):
        response = self.client.get(reverse('ledger:transaction-summary'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        today = timezone.localdate().isoformat()
        response = self.client.get(
            reverse('ledger:transaction-summary'),
            {'start_date': today, 'end_date': today}
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_transactions'], 0)

    def test_stock_level_reports(self):
        self.post_stock_in('3')

        response = self.client.get(reverse('ledger:low-stock-report'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['sku'], self.product.sku)
        self.assertEqual(response.data[0]['stock_value'], '6.00')

        response = self.client.get(reverse('ledger:overstock-report'))
        self.assertEqual(response.data, [])

        response = self.client.get(reverse('ledger:inventory-summary'))
        self.assertEqual(response.data['total_products'], 1)

    @override_settings(RATE_LIMIT_ENABLED=True)
    def test_rate_limited(self):
        redis_client = MagicMock()
        redis_client.incr.return_value = 61
        redis_client.ttl.return_value = 30

        with patch('core.rate_limiting.get_redis_client', return_value=redis_client):
            response = self.post_stock_in('1')

        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(response['Retry-After'], '30')
        self.assertEqual(InventoryTransaction.objects.count(), 0)

    @override_settings(RATE_LIMIT_ENABLED=True)
    def test_rate_limit_headers(self):
        redis_client = MagicMock()
        redis_client.incr.return_value = 1
        redis_client.ttl.return_value = 60

        with patch('core.rate_limiting.get_redis_client', return_value=redis_client):
            response = self.post_stock_in('1')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response['X-RateLimit-Remaining'], '59')
