"""
Inventory API Views with optimized queries.

Implements:
- Product list (search, filters, sorting) and creation
- Product detail, update and soft delete
- Product lookup by SKU or barcode (scanner endpoint, rate limited)
"""
import logging

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.rate_limiting import rate_limit
from .alerts import filter_by_status
from .models import Product
from .serializers import ProductSerializer

logger = logging.getLogger(__name__)

PRODUCT_SORT_FIELDS = (
    'name', 'sku', 'created_at', 'updated_at',
    'current_stock', 'cost_price', 'selling_price',
)


def product_queryset():
    return Product.objects.select_related('category', 'supplier')


class ProductListCreateView(generics.ListCreateAPIView):
    """
    GET: List active products with category and supplier info
    POST: Create a new product (stock starts at zero)

    Query Parameters:
        - search: Keyword matched against name, SKU, barcode and description
        - category_id: Filter by category
        - supplier_id: Filter by supplier
        - stock_status: low, normal or high
        - sort_by / sort_order: Ordering (default: created_at desc)
        - page / limit: Pagination
    """
    serializer_class = ProductSerializer

    def get_queryset(self):
        queryset = product_queryset().filter(is_active=True)
        params = self.request.query_params

        keyword = params.get('search', '').strip()
        if keyword:
            queryset = queryset.filter(
                Q(name__icontains=keyword) |
                Q(sku__icontains=keyword) |
                Q(barcode__icontains=keyword) |
                Q(description__icontains=keyword)
            )

        category_id = params.get('category_id')
        if category_id and category_id.isdigit():
            queryset = queryset.filter(category_id=category_id)

        supplier_id = params.get('supplier_id')
        if supplier_id and supplier_id.isdigit():
            queryset = queryset.filter(supplier_id=supplier_id)

        stock_status = params.get('stock_status', '').lower()
        if stock_status:
            queryset = filter_by_status(queryset, stock_status)

        sort_by = params.get('sort_by', 'created_at')
        if sort_by not in PRODUCT_SORT_FIELDS:
            sort_by = 'created_at'
        prefix = '' if params.get('sort_order') == 'asc' else '-'

        return queryset.order_by(f'{prefix}{sort_by}', f'{prefix}id')

    def perform_create(self, serializer):
        product = serializer.save()
        logger.info(f"Product {product.sku} created by {self.request.user}")


class ProductDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a product
    PUT/PATCH: Update product attributes (not its stock)
    DELETE: Soft-delete a product (is_active=False)
    """
    serializer_class = ProductSerializer

    def get_queryset(self):
        return product_queryset()

    def perform_destroy(self, instance):
        instance.is_active = False
        instance.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Product {instance.sku} deactivated by {self.request.user}")

    def destroy(self, request, *args, **kwargs):
        self.perform_destroy(self.get_object())
        return Response({'detail': 'Product removed'}, status=status.HTTP_200_OK)


class ProductBySkuView(APIView):
    """
    GET: Look up an active product by SKU (case-insensitive).
    """

    def get(self, request, sku):
        product = get_object_or_404(product_queryset(), sku=sku.strip().upper(), is_active=True)
        return Response(ProductSerializer(product).data)


class ProductByBarcodeView(APIView):
    """
    GET: Look up an active product by barcode.

    Called on every scan from handheld scanners, so it is rate limited
    to 120 requests per minute per user.
    """

    @rate_limit(max_requests=120, window_seconds=60)
    def get(self, request, barcode):
        product = get_object_or_404(product_queryset(), barcode=barcode.strip(), is_active=True)
        return Response(ProductSerializer(product).data)
