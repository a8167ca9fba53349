"""
URL routing for stock mutations, the ledger and reports.
"""
from django.urls import path
from . import views

app_name = 'ledger'

urlpatterns = [
    # Mutations
    path('inventory/stock-in/', views.StockInView.as_view(), name='stock-in'),
    path('inventory/stock-out/', views.StockOutView.as_view(), name='stock-out'),
    path('inventory/adjustment/', views.AdjustmentView.as_view(), name='adjustment'),
    path('inventory/return/', views.ReturnView.as_view(), name='return'),
    path('inventory/damage/', views.DamageView.as_view(), name='damage'),
    path('inventory/expiry/', views.ExpiryView.as_view(), name='expiry'),
    path('inventory/transfer/', views.TransferView.as_view(), name='transfer'),

    # Ledger and overview
    path('inventory/transactions/', views.TransactionListView.as_view(), name='transaction-list'),
    path('inventory/transactions/<int:pk>/', views.TransactionDetailView.as_view(), name='transaction-detail'),
    path('inventory/stock-alerts/', views.StockAlertsView.as_view(), name='stock-alerts'),
    path('inventory/dashboard/', views.DashboardView.as_view(), name='dashboard'),

    # Reports
    path('reports/inventory-summary/', views.InventorySummaryView.as_view(), name='inventory-summary'),
    path('reports/transaction-summary/', views.TransactionSummaryView.as_view(), name='transaction-summary'),
    path('reports/low-stock/', views.LowStockReportView.as_view(), name='low-stock-report'),
    path('reports/overstock/', views.OverstockReportView.as_view(), name='overstock-report'),
]
