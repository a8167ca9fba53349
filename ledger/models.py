"""
Ledger Models - Immutable record of every stock mutation.

Each InventoryTransaction stores the product balance before and after it was
applied. Entries are built through one factory per kind of movement:

    inbound     in, return               new = previous + quantity
    outbound    out, damage, expiry      new = previous - quantity
    adjustment  adjustment               new = caller-specified level
    transfer    transfer                 new = previous (location move only)
"""
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from inventory.models import Product

MONEY = Decimal('0.01')


class TransactionType(models.TextChoices):
    IN = 'in', 'Stock In'
    OUT = 'out', 'Stock Out'
    ADJUSTMENT = 'adjustment', 'Adjustment'
    TRANSFER = 'transfer', 'Transfer'
    RETURN = 'return', 'Return'
    DAMAGE = 'damage', 'Damage'
    EXPIRY = 'expiry', 'Expiry'


# Sign of the stock impact per type. Every TransactionType member must appear
# here; ledger tests assert the mapping is complete.
STOCK_IMPACT_SIGN = {
    TransactionType.IN: 1,
    TransactionType.RETURN: 1,
    TransactionType.OUT: -1,
    TransactionType.DAMAGE: -1,
    TransactionType.EXPIRY: -1,
    TransactionType.ADJUSTMENT: 0,
    TransactionType.TRANSFER: 0,
}

INBOUND_TYPES = frozenset(t for t, sign in STOCK_IMPACT_SIGN.items() if sign > 0)
OUTBOUND_TYPES = frozenset(t for t, sign in STOCK_IMPACT_SIGN.items() if sign < 0)


def stock_impact(transaction_type, quantity):
    """Signed quantity a transaction of this type contributes to stock."""
    try:
        sign = STOCK_IMPACT_SIGN[TransactionType(transaction_type)]
    except (KeyError, ValueError):
        raise ValueError(f"Unknown transaction type: {transaction_type!r}")
    return sign * quantity


class InventoryTransaction(models.Model):
    """
    Ledger entry for one applied stock mutation.

    Status:
        - PENDING / APPROVED / REJECTED: reserved for approval workflows
        - COMPLETED: applied to the product balance (all engine writes)
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        APPROVED = 'approved', 'Approved'
        REJECTED = 'rejected', 'Rejected'
        COMPLETED = 'completed', 'Completed'

    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='transactions',
        help_text="Product whose stock changed"
    )
    type = models.CharField(
        max_length=20,
        choices=TransactionType.choices,
        db_index=True,
    )
    quantity = models.DecimalField(
        max_digits=14,
        decimal_places=3,
        validators=[MinValueValidator(Decimal('0'))],
        help_text="Magnitude of the movement"
    )
    previous_stock = models.DecimalField(max_digits=14, decimal_places=3)
    new_stock = models.DecimalField(max_digits=14, decimal_places=3)
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0'))],
    )
    total_value = models.DecimalField(
        max_digits=16,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0'))],
    )
    reference = models.CharField(max_length=100, blank=True, default='')
    reference_number = models.CharField(max_length=100, blank=True, default='')
    from_location = models.JSONField(null=True, blank=True)
    to_location = models.JSONField(null=True, blank=True)
    reason = models.CharField(max_length=200)
    notes = models.CharField(max_length=500, blank=True, default='')
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='stock_transactions',
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='approved_stock_transactions',
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    transaction_date = models.DateTimeField(default=timezone.now, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Inventory Transaction'
        verbose_name_plural = 'Inventory Transactions'
        ordering = ['-transaction_date', '-id']
        indexes = [
            models.Index(fields=['product', 'type', '-transaction_date', 'status'], name='txn_product_type_date_idx'),
            models.Index(fields=['type', 'transaction_date'], name='txn_type_date_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(new_stock__gte=0) & models.Q(previous_stock__gte=0),
                name='transaction_stock_snapshots_non_negative'
            ),
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0),
                name='transaction_quantity_non_negative'
            ),
        ]

    def __str__(self):
        return f"#{self.pk} {self.get_type_display()} {self.quantity} of {self.product_id}"

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def _build(cls, product, transaction_type, quantity, new_stock, actor, **fields):
        return cls(
            product=product,
            type=transaction_type,
            quantity=quantity,
            previous_stock=product.current_stock,
            new_stock=new_stock,
            performed_by=actor,
            status=cls.Status.COMPLETED,
            **fields
        )

    @classmethod
    def inbound(cls, product, transaction_type, quantity, actor, unit_price=None, **fields):
        """Entry that adds ``quantity`` to the product balance (in, return)."""
        if transaction_type not in INBOUND_TYPES:
            raise ValueError(f"{transaction_type!r} is not an inbound transaction type")
        return cls._build(
            product, transaction_type, quantity,
            new_stock=product.current_stock + quantity,
            actor=actor,
            unit_price=unit_price,
            total_value=_total_value(quantity, unit_price),
            **fields
        )

    @classmethod
    def outbound(cls, product, transaction_type, quantity, actor, unit_price=None, **fields):
        """Entry that removes ``quantity`` from the product balance (out, damage, expiry)."""
        if transaction_type not in OUTBOUND_TYPES:
            raise ValueError(f"{transaction_type!r} is not an outbound transaction type")
        return cls._build(
            product, transaction_type, quantity,
            new_stock=product.current_stock - quantity,
            actor=actor,
            unit_price=unit_price,
            total_value=_total_value(quantity, unit_price),
            **fields
        )

    @classmethod
    def adjustment(cls, product, new_quantity, actor, **fields):
        """Entry that sets the balance to ``new_quantity``; stores |difference|."""
        return cls._build(
            product, TransactionType.ADJUSTMENT,
            abs(new_quantity - product.current_stock),
            new_stock=new_quantity,
            actor=actor,
            **fields
        )

    @classmethod
    def transfer(cls, product, quantity, actor, to_location, **fields):
        """Entry that moves ``quantity`` to another location without changing stock."""
        return cls._build(
            product, TransactionType.TRANSFER, quantity,
            new_stock=product.current_stock,
            actor=actor,
            from_location=product.location,
            to_location=to_location,
            **fields
        )

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------

    @property
    def stock_impact(self) -> Decimal:
        return stock_impact(self.type, self.quantity)

    @property
    def net_change(self) -> Decimal:
        """Change applied to the balance; adjustments carry it in the snapshots."""
        if self.type == TransactionType.ADJUSTMENT:
            return self.new_stock - self.previous_stock
        return self.stock_impact

    # -------------------------------------------------------------------------
    # Immutability
    # -------------------------------------------------------------------------

    def clean(self):
        if self.new_stock is None or self.previous_stock is None or self.quantity is None:
            return
        if self.new_stock < 0:
            raise ValidationError("Stock cannot become negative")
        if self.type == TransactionType.ADJUSTMENT:
            expected_quantity = abs(self.new_stock - self.previous_stock)
            if self.quantity != expected_quantity:
                raise ValidationError(
                    f"Adjustment quantity must be {expected_quantity}, got {self.quantity}"
                )
        elif self.new_stock - self.previous_stock != self.stock_impact:
            raise ValidationError(
                f"{self.type} of {self.quantity} cannot move stock "
                f"from {self.previous_stock} to {self.new_stock}"
            )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Inventory transactions are immutable")
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Inventory transactions are immutable and cannot be deleted")


def _total_value(quantity, unit_price) -> Decimal:
    if unit_price is None:
        return Decimal('0.00')
    return (quantity * unit_price).quantize(MONEY)
