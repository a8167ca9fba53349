"""
Stock Ledger API Views.

Implements:
- POST /inventory/stock-in|stock-out|return|damage|expiry/ - Quantity movements
- POST /inventory/adjustment/ - Set stock to a counted level
- POST /inventory/transfer/ - Move stock to another location
- GET /inventory/transactions/ - Filtered, paginated ledger
- GET /inventory/stock-alerts/, /inventory/dashboard/ - Stock overview
- GET /reports/... - Inventory and transaction reports
"""
import logging

from rest_framework import generics, status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from core.rate_limiting import RateLimitMixin
from inventory.alerts import stock_alerts
from inventory.serializers import StockAlertProductSerializer
from . import reports, services
from .models import InventoryTransaction
from .serializers import (
    InventoryTransactionSerializer,
    StockAdjustmentSerializer,
    StockMovementSerializer,
    StockTransferSerializer,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Mutations
# =============================================================================

class StockMutationView(RateLimitMixin, APIView):
    """
    Base view for endpoints that change stock.

    Subclasses set ``serializer_class`` and implement ``mutate``. All of them
    share one rate limit budget per user.

    Returns:
        - 201: Ledger entry created
        - 400: Validation error or insufficient stock
        - 404: Product not found or inactive
        - 409: Concurrent modification, retry
    """
    serializer_class = StockMovementSerializer
    rate_limit_scope = 'stock-mutation'

    def mutate(self, data, user):
        raise NotImplementedError

    def post(self, request):
        serializer = self.serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            entry = self.mutate(dict(serializer.validated_data), request.user)
        except services.StockMutationError as e:
            logger.warning(f"{self.__class__.__name__} rejected: {e}")
            return Response(
                {'error': e.label, 'detail': str(e)},
                status=e.status_code
            )
        except Exception as e:
            logger.exception(f"Unexpected error in {self.__class__.__name__}: {e}")
            return Response(
                {'error': 'Server Error', 'detail': 'An unexpected error occurred'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        return Response(
            InventoryTransactionSerializer(entry).data,
            status=status.HTTP_201_CREATED
        )


class MovementView(StockMutationView):
    operation = None

    def mutate(self, data, user):
        product_id = data.pop('product_id')
        quantity = data.pop('quantity')
        return self.operation(product_id, quantity, user, **data)


class StockInView(MovementView):
    operation = staticmethod(services.stock_in)


class StockOutView(MovementView):
    operation = staticmethod(services.stock_out)


class ReturnView(MovementView):
    operation = staticmethod(services.record_return)


class DamageView(MovementView):
    operation = staticmethod(services.record_damage)


class ExpiryView(MovementView):
    operation = staticmethod(services.record_expiry)


class AdjustmentView(StockMutationView):
    """POST: ``quantity`` is the new stock level, not a delta."""
    serializer_class = StockAdjustmentSerializer

    def mutate(self, data, user):
        return services.adjust_stock(
            data['product_id'],
            data['quantity'],
            user,
            reason=data['reason'],
            notes=data['notes']
        )


class TransferView(StockMutationView):
    serializer_class = StockTransferSerializer

    def mutate(self, data, user):
        product_id = data.pop('product_id')
        quantity = data.pop('quantity')
        return services.transfer_stock(product_id, quantity, user, **data)


# =============================================================================
# Ledger reads
# =============================================================================

def _boundary(params, name, end_of_day=False):
    value = params.get(name)
    parsed = reports.parse_boundary(value, end_of_day=end_of_day)
    if value and parsed is None:
        raise ValidationError({name: f"Invalid date: {value}"})
    return parsed


class TransactionListView(generics.ListAPIView):
    """
    GET: List ledger entries, newest first.

    Query Parameters:
        - product_id: Filter by product
        - type: Filter by transaction type (in, out, adjustment, ...)
        - start_date / end_date: Date or datetime bounds (end date inclusive)
        - sort_by / sort_order: Ordering (default: transaction_date desc)
        - page / limit: Pagination
    """
    serializer_class = InventoryTransactionSerializer

    def get_queryset(self):
        params = self.request.query_params
        product_id = params.get('product_id')
        if product_id and not product_id.isdigit():
            raise ValidationError({'product_id': "Must be an integer"})

        return reports.filter_transactions(
            product_id=product_id,
            transaction_type=params.get('type'),
            start=_boundary(params, 'start_date'),
            end=_boundary(params, 'end_date', end_of_day=True),
            sort_by=params.get('sort_by', 'transaction_date'),
            sort_order=params.get('sort_order', 'desc'),
        )


class TransactionDetailView(generics.RetrieveAPIView):
    serializer_class = InventoryTransactionSerializer
    queryset = InventoryTransaction.objects.select_related('product', 'performed_by', 'approved_by')


class StockAlertsView(APIView):
    """GET: Active products currently below minimum or at/above maximum stock."""

    def get(self, request):
        alerts = stock_alerts()
        return Response({
            'low_stock': StockAlertProductSerializer(alerts['low_stock'], many=True).data,
            'over_stock': StockAlertProductSerializer(alerts['over_stock'], many=True).data,
        })


class DashboardView(APIView):
    def get(self, request):
        summary = reports.dashboard_summary()
        summary['recent_transactions'] = InventoryTransactionSerializer(
            summary['recent_transactions'], many=True
        ).data
        return Response(summary)


# =============================================================================
# Reports
# =============================================================================

class InventorySummaryView(APIView):
    def get(self, request):
        return Response(reports.inventory_summary())


class TransactionSummaryView(APIView):
    """
    GET: Ledger totals for a date range.

    Query Parameters:
        - start_date: Required
        - end_date: Required, inclusive through end of day
    """

    def get(self, request):
        start = _boundary(request.query_params, 'start_date')
        end = _boundary(request.query_params, 'end_date', end_of_day=True)
        if start is None or end is None:
            return Response(
                {'error': 'Validation Error', 'detail': 'start_date and end_date are required'},
                status=status.HTTP_400_BAD_REQUEST
            )
        if start > end:
            return Response(
                {'error': 'Validation Error', 'detail': 'start_date must not be after end_date'},
                status=status.HTTP_400_BAD_REQUEST
            )
        return Response(reports.transaction_summary(start, end))


class LowStockReportView(APIView):
    def get(self, request):
        return Response(reports.low_stock_report())


class OverstockReportView(APIView):
    def get(self, request):
        return Response(reports.overstock_report())
