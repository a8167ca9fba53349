"""
Inventory Models - Product directory and live stock balances.

Models:
    - Category: Product categorization
    - Supplier: Vendors products are sourced from
    - Product: Stocked items holding the current balance and stocking thresholds

Product.current_stock is written only by the stock mutation engine
(ledger.services); every other code path treats it as read-only.
"""
import random
import string
import time
from decimal import Decimal, ROUND_HALF_UP

from django.core.validators import MinValueValidator
from django.db import models

LOCATION_FIELDS = ('warehouse', 'aisle', 'shelf', 'bin')
STOCK_FIELDS = ('current_stock', 'version')


class Category(models.Model):
    """
    Product category for organizing products.
    """
    name = models.CharField(
        max_length=50,
        unique=True,
        db_index=True,
        help_text="Unique category name"
    )
    description = models.CharField(max_length=200, blank=True, default='')
    color = models.CharField(max_length=20, default='#007bff')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Category'
        verbose_name_plural = 'Categories'
        ordering = ['name']

    def __str__(self):
        return self.name


class Supplier(models.Model):
    """
    Supplier a product is purchased from.
    """
    name = models.CharField(max_length=100, db_index=True)
    code = models.CharField(
        max_length=30,
        unique=True,
        help_text="Unique supplier code (stored uppercase)"
    )
    email = models.EmailField(blank=True, default='')
    phone = models.CharField(max_length=30, blank=True, default='')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Supplier'
        verbose_name_plural = 'Suppliers'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.code})"

    def save(self, *args, **kwargs):
        self.code = self.code.strip().upper()
        super().save(*args, **kwargs)


def generate_barcode() -> str:
    """Barcode used when a product is created without one."""
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=5))
    return f"BC{int(time.time() * 1000)}{suffix}"


class Product(models.Model):
    """
    Product entity holding the live stock balance.

    ``version`` is bumped on every stock write and used as the
    compare-and-swap token by the mutation engine.
    """

    class Unit(models.TextChoices):
        PIECE = 'piece', 'Piece'
        KG = 'kg', 'Kilogram'
        LITER = 'liter', 'Liter'
        METER = 'meter', 'Meter'
        BOX = 'box', 'Box'
        PACK = 'pack', 'Pack'
        DOZEN = 'dozen', 'Dozen'
        PAIR = 'pair', 'Pair'

    name = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Product name for display and search"
    )
    sku = models.CharField(
        max_length=64,
        unique=True,
        help_text="Stock keeping unit (stored uppercase)"
    )
    barcode = models.CharField(
        max_length=64,
        unique=True,
        null=True,
        blank=True,
        help_text="Optional unique barcode"
    )
    description = models.CharField(max_length=500, blank=True, default='')
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='products',
    )
    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='products',
    )
    unit = models.CharField(max_length=10, choices=Unit.choices, default=Unit.PIECE)
    cost_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))],
    )
    selling_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))],
    )
    current_stock = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        default=Decimal('0'),
        editable=False,
        help_text="Live balance, changed only through stock transactions"
    )
    min_stock_level = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        default=Decimal('10'),
        validators=[MinValueValidator(Decimal('0'))],
        help_text="At or below this level the product is low on stock"
    )
    max_stock_level = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0'))],
        help_text="At or above this level the product is over-stocked"
    )
    location_warehouse = models.CharField(max_length=100, blank=True, default='')
    location_aisle = models.CharField(max_length=50, blank=True, default='')
    location_shelf = models.CharField(max_length=50, blank=True, default='')
    location_bin = models.CharField(max_length=50, blank=True, default='')
    tags = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True, default='')
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Inactive products are soft-deleted"
    )
    version = models.PositiveIntegerField(default=0, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Product'
        verbose_name_plural = 'Products'
        ordering = ['name']
        indexes = [
            models.Index(fields=['name', 'is_active'], name='product_name_active_idx'),
            models.Index(fields=['category', 'is_active'], name='product_category_active_idx'),
            models.Index(fields=['supplier', 'is_active'], name='product_supplier_active_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(current_stock__gte=0),
                name='product_current_stock_non_negative'
            ),
            models.CheckConstraint(
                condition=models.Q(cost_price__gte=0) & models.Q(selling_price__gte=0),
                name='product_prices_non_negative'
            ),
        ]

    def __str__(self):
        return f"{self.name} [{self.sku}]"

    def save(self, *args, **kwargs):
        self.sku = self.sku.strip().upper()
        if self.barcode is not None:
            self.barcode = self.barcode.strip() or None
        if self._state.adding and not self.barcode:
            self.barcode = generate_barcode()
        if not self._state.adding and not kwargs.get('force_insert'):
            # current_stock and version are only written by the mutation engine
            update_fields = kwargs.get('update_fields')
            if update_fields is None:
                update_fields = [
                    field.name for field in self._meta.concrete_fields
                    if not field.primary_key
                ]
            kwargs['update_fields'] = [
                name for name in update_fields if name not in STOCK_FIELDS
            ]
        super().save(*args, **kwargs)

    @property
    def location(self) -> dict:
        """Location snapshot as stored on ledger entries."""
        return {name: getattr(self, f'location_{name}') for name in LOCATION_FIELDS}

    def set_location(self, location) -> list:
        """Apply a location dict; returns the model fields that changed."""
        changed = []
        for name in LOCATION_FIELDS:
            value = (location or {}).get(name) or ''
            if getattr(self, f'location_{name}') != value:
                setattr(self, f'location_{name}', value)
                changed.append(f'location_{name}')
        return changed

    @property
    def profit_margin(self):
        """Margin over cost in percent, or None when cost price is zero."""
        if not self.cost_price:
            return None
        margin = (self.selling_price - self.cost_price) / self.cost_price * 100
        return margin.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

    @property
    def stock_value(self) -> Decimal:
        return (self.current_stock * self.cost_price).quantize(Decimal('0.01'))

    @property
    def stock_status(self) -> str:
        from .alerts import evaluate_stock_status
        return evaluate_stock_status(self)

    @property
    def is_out_of_stock(self) -> bool:
        return self.current_stock == 0
