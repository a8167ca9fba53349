"""
Django Admin configuration for inventory models.
"""
from django.contrib import admin
from .models import Category, Product, Supplier


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'color', 'is_active', 'product_count', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name']
    ordering = ['name']

    def product_count(self, obj):
        return obj.products.count()
    product_count.short_description = 'Products'


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'code', 'email', 'phone', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'code', 'email']
    ordering = ['name']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    """Stock is read-only here; it only changes through ledger mutations."""
    list_display = [
        'id', 'sku', 'name', 'category', 'supplier', 'current_stock',
        'min_stock_level', 'max_stock_level', 'stock_status', 'is_active'
    ]
    list_filter = ['category', 'supplier', 'unit', 'is_active']
    search_fields = ['name', 'sku', 'barcode', 'description']
    ordering = ['name']
    raw_id_fields = ['category', 'supplier']
    readonly_fields = ['current_stock', 'version', 'created_at', 'updated_at']

    def stock_status(self, obj):
        return obj.stock_status
    stock_status.short_description = 'Status'
