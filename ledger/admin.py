"""
Django Admin configuration for the stock ledger.

Entries are immutable: they can be browsed but not added, changed or deleted.
"""
from django.contrib import admin
from .models import InventoryTransaction


@admin.register(InventoryTransaction)
class InventoryTransactionAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'transaction_date', 'product', 'type', 'quantity',
        'previous_stock', 'new_stock', 'total_value', 'performed_by', 'status'
    ]
    list_filter = ['type', 'status', 'transaction_date']
    search_fields = ['product__sku', 'product__name', 'reference_number', 'reason']
    ordering = ['-transaction_date', '-id']
    date_hierarchy = 'transaction_date'
    list_select_related = ['product', 'performed_by']

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
