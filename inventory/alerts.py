"""
Stock status evaluation and alert lists.

evaluate_stock_status() is the single definition of low/normal/high. The
querysets below express the same rules in SQL so alert lists and dashboard
counts always agree with the per-product status.
"""
from django.db.models import F, Q

from .models import Product


class StockStatus:
    LOW = 'low'
    NORMAL = 'normal'
    HIGH = 'high'

    CHOICES = (LOW, NORMAL, HIGH)


def evaluate_stock_status(product) -> str:
    """
    Classify a product's balance against its thresholds.

    Low wins over high when both apply (misconfigured thresholds).
    """
    if product.current_stock <= product.min_stock_level:
        return StockStatus.LOW
    if product.max_stock_level is not None and product.current_stock >= product.max_stock_level:
        return StockStatus.HIGH
    return StockStatus.NORMAL


LOW_STOCK_Q = Q(current_stock__lte=F('min_stock_level'))
OVER_STOCK_Q = (
    Q(max_stock_level__isnull=False)
    & Q(current_stock__gte=F('max_stock_level'))
    & Q(current_stock__gt=F('min_stock_level'))
)


def active_products():
    return Product.objects.filter(is_active=True)


def low_stock_products():
    """Active products at or below their minimum level."""
    return active_products().filter(LOW_STOCK_Q).select_related('category', 'supplier')


def over_stock_products():
    """Active products at or above their maximum level."""
    return active_products().filter(OVER_STOCK_Q).select_related('category', 'supplier')


def filter_by_status(queryset, status: str):
    if status == StockStatus.LOW:
        return queryset.filter(LOW_STOCK_Q)
    if status == StockStatus.HIGH:
        return queryset.filter(OVER_STOCK_Q)
    if status == StockStatus.NORMAL:
        return queryset.exclude(LOW_STOCK_Q).exclude(OVER_STOCK_Q)
    return queryset


def stock_alerts() -> dict:
    return {
        'low_stock': list(low_stock_products().order_by('current_stock', 'name')),
        'over_stock': list(over_stock_products().order_by('-current_stock', 'name')),
    }
