"""
Stock Mutation Engine - the only code path that changes Product.current_stock.

Every mutation runs as a bounded attempt loop. One attempt is a single
database transaction:

1. Lock the product row with select_for_update()
2. Validate the request against the locked balance
3. Build the ledger entry through its InventoryTransaction factory
4. Compare-and-swap the balance on the product's version column
5. Insert the ledger entry

If the swap matches no row, another writer committed first: the attempt is
rolled back and retried on fresh state. A locked or busy database (SQLite
with a competing writer) is retried the same way after a short pause.
Other database failures roll the attempt back and surface as
PersistenceError; nothing is ever half-applied.
"""
import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, OperationalError, transaction
from django.db.models import F
from django.utils import timezone

from inventory.alerts import StockStatus, evaluate_stock_status
from inventory.models import LOCATION_FIELDS, Product
from .models import InventoryTransaction, TransactionType

logger = logging.getLogger(__name__)

QUANTITY_PLACES = 3
PRICE_PLACES = 2
REASON_MAX_LENGTH = 200
NOTES_MAX_LENGTH = 500
REFERENCE_MAX_LENGTH = 100
LOCK_RETRY_DELAY = 0.05


# =============================================================================
# Errors
# =============================================================================

class StockMutationError(Exception):
    """Base class for errors raised by the mutation engine."""
    status_code = 400
    label = 'Stock Mutation Error'


class StockValidationError(StockMutationError):
    """Raised when a mutation request is malformed."""
    label = 'Validation Error'


class ProductNotFoundError(StockMutationError):
    """Raised when the product does not exist or is inactive."""
    status_code = 404
    label = 'Not Found'

    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found or inactive")


class InsufficientStockError(StockMutationError):
    """Raised when there's not enough stock for an outbound movement."""
    label = 'Insufficient Stock'

    def __init__(self, product_id, requested, available):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}"
        )


class ConcurrencyConflictError(StockMutationError):
    """Raised when concurrent writers kept winning for every attempt."""
    status_code = 409
    label = 'Conflict'


class PersistenceError(StockMutationError):
    """Raised when the database fails while applying a mutation."""
    status_code = 500
    label = 'Server Error'


class _StaleProduct(Exception):
    """The product row changed between lock and swap."""


# =============================================================================
# Input validation
# =============================================================================

def _to_decimal(value, field: str, places: int) -> Decimal:
    if isinstance(value, bool):
        raise StockValidationError(f"{field} must be a number")
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, TypeError, ValueError):
        raise StockValidationError(f"{field} must be a number")
    if not number.is_finite():
        raise StockValidationError(f"{field} must be a finite number")
    try:
        rounded = number.quantize(Decimal(1).scaleb(-places))
    except InvalidOperation:
        raise StockValidationError(f"{field} is too large")
    if number != rounded:
        raise StockValidationError(f"{field} allows at most {places} decimal places")
    return number


def validate_quantity(value, field: str = 'quantity', allow_zero: bool = False) -> Decimal:
    """Parse a stock quantity; positive unless ``allow_zero``."""
    if value is None or value == '':
        raise StockValidationError(f"{field} is required")
    quantity = _to_decimal(value, field, QUANTITY_PLACES)
    if quantity < 0 or (quantity == 0 and not allow_zero):
        qualifier = 'zero or a positive number' if allow_zero else 'a positive number'
        raise StockValidationError(f"{field} must be {qualifier}")
    return quantity


def validate_unit_price(value) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    price = _to_decimal(value, 'unit_price', PRICE_PLACES)
    if price < 0:
        raise StockValidationError("unit_price cannot be negative")
    return price


def validate_reason(reason) -> str:
    reason = (reason or '').strip()
    if not reason:
        raise StockValidationError("reason is required")
    if len(reason) > REASON_MAX_LENGTH:
        raise StockValidationError(f"reason cannot exceed {REASON_MAX_LENGTH} characters")
    return reason


def validate_notes(notes) -> str:
    notes = (notes or '').strip()
    if len(notes) > NOTES_MAX_LENGTH:
        raise StockValidationError(f"notes cannot exceed {NOTES_MAX_LENGTH} characters")
    return notes


def validate_reference(value, field: str) -> str:
    value = (value or '').strip()
    if len(value) > REFERENCE_MAX_LENGTH:
        raise StockValidationError(f"{field} cannot exceed {REFERENCE_MAX_LENGTH} characters")
    return value


def require_actor(actor) -> None:
    if actor is None or getattr(actor, 'pk', None) is None:
        raise StockValidationError("An authenticated user is required to change stock")


def normalize_location(location) -> Optional[dict]:
    """Reduce a location payload to the warehouse/aisle/shelf/bin snapshot."""
    if not location:
        return None
    if not isinstance(location, dict):
        raise StockValidationError("location must be an object")
    unknown = set(location) - set(LOCATION_FIELDS)
    if unknown:
        raise StockValidationError(f"Unknown location fields: {sorted(unknown)}")
    snapshot = {name: str(location.get(name) or '').strip() for name in LOCATION_FIELDS}
    return snapshot if any(snapshot.values()) else None


# =============================================================================
# Attempt loop
# =============================================================================

def _lock_product(product_id) -> Product:
    try:
        return Product.objects.select_for_update().get(pk=product_id, is_active=True)
    except (Product.DoesNotExist, ValueError, TypeError):
        raise ProductNotFoundError(product_id)


def _swap_stock(product: Product, new_stock: Decimal, extra_fields: Optional[dict] = None) -> bool:
    """
    Write the new balance only if nobody else has since the product was read.

    Returns False when the version no longer matches.
    """
    updated = Product.objects.filter(
        pk=product.pk,
        version=product.version,
    ).update(
        current_stock=new_stock,
        version=F('version') + 1,
        updated_at=timezone.now(),
        **(extra_fields or {})
    )
    return updated == 1


def _append_entry(entry: InventoryTransaction) -> InventoryTransaction:
    entry.save()
    return entry


def _max_attempts() -> int:
    return max(1, getattr(settings, 'STOCK_MUTATION_MAX_ATTEMPTS', 3))


def _is_lock_contention(error: OperationalError) -> bool:
    """SQLite reports a competing writer as a locked or busy database."""
    message = str(error).lower()
    return "locked" in message or "busy" in message


def apply_mutation(
    product_id,
    build_entry: Callable[[Product], InventoryTransaction],
    product_updates: Callable[[Product], dict] = None,
) -> InventoryTransaction:
    """
    Run one stock mutation with locking, compare-and-swap and retries.

    Args:
        product_id: Product to mutate
        build_entry: Validates against the locked product and returns the
            unsaved ledger entry (may raise StockMutationError)
        product_updates: Optional extra product columns to write in the
            same swap (e.g. location for transfers)

    Raises:
        ProductNotFoundError, StockValidationError, InsufficientStockError,
        ConcurrencyConflictError, PersistenceError
    """
    attempts = _max_attempts()

    for attempt in range(1, attempts + 1):
        try:
            with transaction.atomic():
                product = _lock_product(product_id)
                entry = build_entry(product)
                extra = product_updates(product) if product_updates else None

                if not _swap_stock(product, entry.new_stock, extra):
                    raise _StaleProduct()

                _append_entry(entry)
                product.current_stock = entry.new_stock
                product.version += 1
                for field, value in (extra or {}).items():
                    setattr(product, field, value)
                transaction.on_commit(lambda: _queue_stock_alert(product))

        except _StaleProduct:
            logger.warning(
                f"Product {product_id} changed concurrently "
                f"(attempt {attempt}/{attempts}), retrying"
            )
            continue
        except OperationalError as e:
            if not _is_lock_contention(e):
                logger.error(f"Database error applying stock mutation to product {product_id}: {e}")
                raise PersistenceError(f"Could not apply stock mutation: {e}") from e
            logger.warning(
                f"Product {product_id} is locked by another writer "
                f"(attempt {attempt}/{attempts}): {e}"
            )
            if attempt < attempts:
                time.sleep(LOCK_RETRY_DELAY * attempt)
            continue
        except DjangoValidationError as e:
            raise StockValidationError('; '.join(e.messages)) from e
        except DatabaseError as e:
            logger.error(f"Database error applying stock mutation to product {product_id}: {e}")
            raise PersistenceError(f"Could not apply stock mutation: {e}") from e

        logger.info(
            f"Transaction #{entry.pk} {entry.type} on product {product.sku}: "
            f"{entry.previous_stock} -> {entry.new_stock}"
        )
        return entry

    logger.error(f"Giving up on product {product_id} after {attempts} conflicting attempts")
    raise ConcurrencyConflictError(
        f"Product {product_id} was modified concurrently; retry the operation"
    )


def _queue_stock_alert(product: Product) -> None:
    if evaluate_stock_status(product) == StockStatus.NORMAL:
        return
    try:
        from .tasks import send_stock_alert
        send_stock_alert.delay(product.pk)
    except Exception as e:
        # Mutation is already committed
        logger.error(f"Failed to queue stock alert for product {product.pk}: {e}")


# =============================================================================
# Public operations
# =============================================================================

def _check_available(product: Product, quantity: Decimal) -> None:
    if quantity > product.current_stock:
        logger.warning(
            f"Rejected movement of {quantity} from product {product.sku}: "
            f"only {product.current_stock} available"
        )
        raise InsufficientStockError(product.pk, quantity, product.current_stock)


def _movement_fields(quantity, actor, reason, unit_price, reference, reference_number, location, notes):
    require_actor(actor)
    return {
        'quantity': validate_quantity(quantity),
        'unit_price': validate_unit_price(unit_price),
        'reason': validate_reason(reason),
        'notes': validate_notes(notes),
        'reference': validate_reference(reference, 'reference'),
        'reference_number': validate_reference(reference_number, 'reference_number'),
        'location': normalize_location(location),
    }


def _record_inbound(transaction_type, product_id, quantity, actor, *, reason, unit_price=None,
                    reference='', reference_number='', location=None, notes=''):
    fields = _movement_fields(
        quantity, actor, reason, unit_price, reference, reference_number, location, notes
    )
    location = fields.pop('location')
    quantity = fields.pop('quantity')

    def build(product):
        return InventoryTransaction.inbound(
            product, transaction_type, quantity, actor,
            to_location=location,
            **fields
        )

    return apply_mutation(product_id, build)


def _record_outbound(transaction_type, product_id, quantity, actor, *, reason, unit_price=None,
                     reference='', reference_number='', location=None, notes=''):
    fields = _movement_fields(
        quantity, actor, reason, unit_price, reference, reference_number, location, notes
    )
    location = fields.pop('location')
    quantity = fields.pop('quantity')

    def build(product):
        _check_available(product, quantity)
        return InventoryTransaction.outbound(
            product, transaction_type, quantity, actor,
            from_location=location or product.location,
            **fields
        )

    return apply_mutation(product_id, build)


def stock_in(product_id, quantity, actor, **kwargs) -> InventoryTransaction:
    """
    Receive stock into a product.

    Keyword Args:
        reason (required), unit_price, reference, reference_number,
        location (destination snapshot), notes
    """
    return _record_inbound(TransactionType.IN, product_id, quantity, actor, **kwargs)


def stock_out(product_id, quantity, actor, **kwargs) -> InventoryTransaction:
    """
    Issue stock from a product. Fails with InsufficientStockError when the
    locked balance cannot cover ``quantity``.
    """
    return _record_outbound(TransactionType.OUT, product_id, quantity, actor, **kwargs)


def record_return(product_id, quantity, actor, **kwargs) -> InventoryTransaction:
    """Put returned goods back into stock."""
    return _record_inbound(TransactionType.RETURN, product_id, quantity, actor, **kwargs)


def record_damage(product_id, quantity, actor, **kwargs) -> InventoryTransaction:
    """Write off damaged goods."""
    return _record_outbound(TransactionType.DAMAGE, product_id, quantity, actor, **kwargs)


def record_expiry(product_id, quantity, actor, **kwargs) -> InventoryTransaction:
    """Write off expired goods."""
    return _record_outbound(TransactionType.EXPIRY, product_id, quantity, actor, **kwargs)


def adjust_stock(product_id, new_quantity, actor, *, reason, notes='') -> InventoryTransaction:
    """
    Set a product's balance to ``new_quantity`` (e.g. after a stock count).

    The entry stores the absolute difference as its quantity; the direction
    is visible in previous_stock/new_stock.
    """
    require_actor(actor)
    new_quantity = validate_quantity(new_quantity, allow_zero=True)
    reason = validate_reason(reason)
    notes = validate_notes(notes)

    def build(product):
        return InventoryTransaction.adjustment(
            product, new_quantity, actor,
            reason=reason,
            notes=notes,
        )

    return apply_mutation(product_id, build)


def transfer_stock(product_id, quantity, actor, *, to_location, reason,
                   reference='', reference_number='', notes='') -> InventoryTransaction:
    """
    Move stock to another location. The balance is unchanged; the product's
    location becomes ``to_location``.
    """
    fields = _movement_fields(
        quantity, actor, reason, None, reference, reference_number, to_location, notes
    )
    to_location = fields.pop('location')
    quantity = fields.pop('quantity')
    fields.pop('unit_price')
    if to_location is None:
        raise StockValidationError("to_location is required for a transfer")

    def build(product):
        _check_available(product, quantity)
        return InventoryTransaction.transfer(
            product, quantity, actor,
            to_location=to_location,
            **fields
        )

    def relocate(product):
        return {f'location_{name}': value for name, value in to_location.items()}

    return apply_mutation(product_id, build, product_updates=relocate)
