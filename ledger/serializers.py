"""
Serializers for ledger entries and stock mutation requests.

Input serializers only check shape; the mutation engine owns the business
rules (availability, thresholds, immutability).
"""
from django.contrib.auth import get_user_model
from rest_framework import serializers

from inventory.serializers import LocationSerializer, ProductMinimalSerializer
from .models import InventoryTransaction


class UserSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = get_user_model()
        fields = ['id', 'username']


class InventoryTransactionSerializer(serializers.ModelSerializer):
    """Read-only representation of a ledger entry."""
    product = ProductMinimalSerializer(read_only=True)
    performed_by = UserSummarySerializer(read_only=True)
    approved_by = UserSummarySerializer(read_only=True)
    type_display = serializers.CharField(source='get_type_display', read_only=True)
    stock_impact = serializers.DecimalField(max_digits=15, decimal_places=3, read_only=True)
    net_change = serializers.DecimalField(max_digits=15, decimal_places=3, read_only=True)

    class Meta:
        model = InventoryTransaction
        fields = [
            'id', 'product', 'type', 'type_display', 'quantity',
            'previous_stock', 'new_stock', 'stock_impact', 'net_change',
            'unit_price', 'total_value', 'reference', 'reference_number',
            'from_location', 'to_location', 'reason', 'notes',
            'performed_by', 'approved_by', 'status',
            'transaction_date', 'created_at'
        ]
        read_only_fields = fields


class StockMovementSerializer(serializers.Serializer):
    """
    Request body for stock-in, stock-out, return, damage and expiry.

    {
        "product_id": 1,
        "quantity": "5",
        "reason": "Supplier delivery",
        "unit_price": "2.50",
        "reference": "PO",
        "reference_number": "PO-1042",
        "location": {"warehouse": "Main", "aisle": "A"},
        "notes": ""
    }
    """
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.DecimalField(max_digits=14, decimal_places=3)
    reason = serializers.CharField(max_length=200)
    unit_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True, min_value=0
    )
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    reference_number = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    location = LocationSerializer(required=False, allow_null=True)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')


class StockAdjustmentSerializer(serializers.Serializer):
    """Request body for an adjustment; ``quantity`` is the new stock level."""
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.DecimalField(max_digits=14, decimal_places=3)
    reason = serializers.CharField(max_length=200)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')


class StockTransferSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.DecimalField(max_digits=14, decimal_places=3)
    to_location = LocationSerializer()
    reason = serializers.CharField(max_length=200)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    reference_number = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
