"""
Celery tasks for stock notifications and scheduled reports.

Tasks:
    - send_stock_alert: Notify after a mutation leaves a product low or over-stocked
    - generate_daily_transaction_report: Log yesterday's ledger totals (Celery Beat)
"""
import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(OSError,),
    retry_backoff=True
)
def send_stock_alert(self, product_id: int):
    """
    Alert stock managers about a product outside its normal band.

    The status is re-evaluated from the database, so alerts queued for a
    product that has since been restocked are skipped.

    Args:
        product_id: ID of the product that changed

    Returns:
        Dict with alert details
    """
    from inventory.alerts import StockStatus, evaluate_stock_status
    from inventory.models import Product

    try:
        product = Product.objects.get(id=product_id)
    except Product.DoesNotExist:
        logger.error(f"Product #{product_id} not found for stock alert")
        return {'status': 'error', 'message': f'Product {product_id} not found'}

    stock_status = evaluate_stock_status(product)
    if stock_status == StockStatus.NORMAL or not product.is_active:
        logger.info(f"Product {product.sku} is {stock_status}, skipping alert")
        return {'status': 'skipped', 'product_id': product.id, 'stock_status': stock_status}

    if stock_status == StockStatus.LOW:
        threshold = f"minimum level {product.min_stock_level}"
    else:
        threshold = f"maximum level {product.max_stock_level}"

    subject = f"[Stock alert] {product.name} ({product.sku}) is {stock_status}"
    message = (
        f"Product: {product.name}\n"
        f"SKU: {product.sku}\n"
        f"Current stock: {product.current_stock} {product.unit}\n"
        f"Threshold: {threshold}\n"
    )

    logger.warning(f"Stock alert: {product.sku} is {stock_status} ({product.current_stock}, {threshold})")

    recipients = getattr(settings, 'STOCK_ALERT_EMAILS', [])
    if recipients:
        send_mail(subject, message, settings.DEFAULT_FROM_EMAIL, recipients)
        logger.info(f"Stock alert for {product.sku} sent to {len(recipients)} recipient(s)")

    return {
        'status': 'success',
        'product_id': product.id,
        'stock_status': stock_status,
        'recipients': len(recipients),
    }


@shared_task
def generate_daily_transaction_report():
    """
    Generate yesterday's transaction summary.

    Scheduled via Celery Beat (see config/celery.py).
    """
    from .reports import transaction_summary, yesterday_bounds

    start, end = yesterday_bounds()
    summary = transaction_summary(start, end)

    report = f"""
    ===============================================
    DAILY TRANSACTION REPORT - {start.date()}
    ===============================================
    Transactions: {summary['total_transactions']}
    Stock In: {summary['total_in']}
    Stock Out: {summary['total_out']}
    Total Value: ${summary['total_value']}
    ===============================================
    """

    logger.info(report)

    return summary
