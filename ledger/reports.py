"""
Read-only aggregations over products and the transaction ledger.

None of these take locks; results may trail in-flight mutations.
"""
from datetime import datetime, time, timedelta
from decimal import Decimal

from django.db.models import Count, DecimalField, ExpressionWrapper, F, Q, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from inventory.alerts import LOW_STOCK_Q, OVER_STOCK_Q, active_products, low_stock_products, over_stock_products
from .models import InventoryTransaction, TransactionType

MONEY = Decimal('0.01')

SORTABLE_FIELDS = ('transaction_date', 'created_at', 'quantity', 'total_value', 'type', 'status')

STOCK_VALUE = ExpressionWrapper(
    F('current_stock') * F('cost_price'),
    output_field=DecimalField(max_digits=28, decimal_places=5),
)


def money(value) -> str:
    """Format an aggregate as a two-decimal string; None becomes "0.00"."""
    return str(Decimal(value or 0).quantize(MONEY))


def quantity(value) -> str:
    return str(Decimal(value or 0))


def parse_boundary(value, end_of_day: bool = False):
    """
    Parse a date or datetime query value into an aware datetime.

    A bare date used as an upper bound covers the whole day.
    Returns None for empty or unparsable input.
    """
    if not value:
        return None
    try:
        parsed = parse_datetime(value)
        day = parse_date(value) if parsed is None else None
    except ValueError:
        return None
    if parsed is None:
        if day is None:
            return None
        parsed = datetime.combine(day, time.max if end_of_day else time.min)
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


# =============================================================================
# Transaction queries
# =============================================================================

def filter_transactions(product_id=None, transaction_type=None, start=None, end=None,
                        sort_by='transaction_date', sort_order='desc'):
    """
    Ledger entries filtered by product, type and date range.

    Unknown types and sort fields are ignored rather than rejected.
    """
    queryset = InventoryTransaction.objects.select_related(
        'product', 'performed_by', 'approved_by'
    )

    if product_id:
        queryset = queryset.filter(product_id=product_id)

    if transaction_type in TransactionType.values:
        queryset = queryset.filter(type=transaction_type)

    if start:
        queryset = queryset.filter(transaction_date__gte=start)
    if end:
        queryset = queryset.filter(transaction_date__lte=end)

    if sort_by not in SORTABLE_FIELDS:
        sort_by = 'transaction_date'
    prefix = '' if sort_order == 'asc' else '-'
    return queryset.order_by(f'{prefix}{sort_by}', f'{prefix}id')


def replay_product(product) -> dict:
    """
    Rebuild a product's balance from its ledger starting at zero.

    Also counts broken links, i.e. entries whose previous_stock does not
    match the new_stock of the entry before them.
    """
    balance = Decimal('0')
    broken_links = 0
    entries = product.transactions.order_by('transaction_date', 'id')

    for entry in entries.iterator():
        if entry.previous_stock != balance:
            broken_links += 1
        balance += entry.net_change

    return {
        'product_id': product.pk,
        'sku': product.sku,
        'current_stock': product.current_stock,
        'replayed_stock': balance,
        'broken_links': broken_links,
        'consistent': balance == product.current_stock and broken_links == 0,
    }


# =============================================================================
# Dashboard and summaries
# =============================================================================

def dashboard_summary(recent: int = 10) -> dict:
    products = active_products()
    stats = products.aggregate(
        total_products=Count('id'),
        low_stock_count=Count('id', filter=LOW_STOCK_Q),
        over_stock_count=Count('id', filter=OVER_STOCK_Q),
        out_of_stock_count=Count('id', filter=Q(current_stock=0)),
        total_value=Sum(STOCK_VALUE),
    )
    stats['total_value'] = money(stats['total_value'])
    stats['recent_transactions'] = list(
        InventoryTransaction.objects.select_related('product', 'performed_by')
        .order_by('-transaction_date', '-id')[:recent]
    )
    return stats


def _breakdown(products, key: str) -> dict:
    rows = (
        products.exclude(**{f'{key}__isnull': True})
        .values(f'{key}__id', f'{key}__name')
        .annotate(count=Count('id'), value=Sum(STOCK_VALUE))
        .order_by(f'{key}__name')
    )
    return {
        str(row[f'{key}__id']): {
            'name': row[f'{key}__name'],
            'count': row['count'],
            'value': money(row['value']),
        }
        for row in rows
    }


def inventory_summary() -> dict:
    products = active_products()
    stats = products.aggregate(
        total_products=Count('id'),
        low_stock_count=Count('id', filter=LOW_STOCK_Q),
        out_of_stock_count=Count('id', filter=Q(current_stock=0)),
        total_value=Sum(STOCK_VALUE),
    )
    stats['total_value'] = money(stats['total_value'])
    stats['category_breakdown'] = _breakdown(products, 'category')
    stats['supplier_breakdown'] = _breakdown(products, 'supplier')
    return stats


def transaction_summary(start, end) -> dict:
    """
    Totals for ledger entries dated within [start, end].

    Args:
        start, end: aware datetimes (see parse_boundary)
    """
    entries = InventoryTransaction.objects.filter(
        transaction_date__gte=start,
        transaction_date__lte=end,
    )

    totals = entries.aggregate(
        total_transactions=Count('id'),
        total_in=Sum('quantity', filter=Q(type=TransactionType.IN)),
        total_out=Sum('quantity', filter=Q(type=TransactionType.OUT)),
        total_value=Sum('total_value'),
    )

    by_type = (
        entries.values('type')
        .annotate(count=Count('id'), quantity=Sum('quantity'), value=Sum('total_value'))
        .order_by('type')
    )
    by_day = (
        entries.annotate(day=TruncDate('transaction_date'))
        .values('day')
        .annotate(count=Count('id'), quantity=Sum('quantity'), value=Sum('total_value'))
        .order_by('day')
    )

    return {
        'start_date': start.isoformat(),
        'end_date': end.isoformat(),
        'total_transactions': totals['total_transactions'],
        'total_in': quantity(totals['total_in']),
        'total_out': quantity(totals['total_out']),
        'total_value': money(totals['total_value']),
        'type_breakdown': {
            row['type']: {
                'count': row['count'],
                'quantity': quantity(row['quantity']),
                'value': money(row['value']),
            }
            for row in by_type
        },
        'daily_breakdown': {
            row['day'].isoformat(): {
                'count': row['count'],
                'quantity': quantity(row['quantity']),
                'value': money(row['value']),
            }
            for row in by_day
        },
    }


def yesterday_bounds():
    today = timezone.localdate()
    yesterday = today - timedelta(days=1)
    return (
        timezone.make_aware(datetime.combine(yesterday, time.min)),
        timezone.make_aware(datetime.combine(yesterday, time.max)),
    )


# =============================================================================
# Stock level reports
# =============================================================================

def _stock_row(product, level_field: str) -> dict:
    return {
        'id': product.id,
        'name': product.name,
        'sku': product.sku,
        'barcode': product.barcode,
        'current_stock': quantity(product.current_stock),
        level_field: quantity(getattr(product, level_field)),
        'category': product.category.name if product.category else None,
        'supplier': product.supplier.name if product.supplier else None,
        'supplier_code': product.supplier.code if product.supplier else None,
        'cost_price': money(product.cost_price),
        'selling_price': money(product.selling_price),
        'stock_value': money(product.current_stock * product.cost_price),
    }


def low_stock_report() -> list:
    return [
        _stock_row(product, 'min_stock_level')
        for product in low_stock_products().order_by('current_stock', 'name')
    ]


def overstock_report() -> list:
    return [
        _stock_row(product, 'max_stock_level')
        for product in over_stock_products().order_by('-current_stock', 'name')
    ]
