"""
URL routing for product API endpoints.
"""
from django.urls import path
from . import views

app_name = 'inventory'

urlpatterns = [
    path('products/', views.ProductListCreateView.as_view(), name='product-list'),
    path('products/<int:pk>/', views.ProductDetailView.as_view(), name='product-detail'),
    path('products/sku/<str:sku>/', views.ProductBySkuView.as_view(), name='product-by-sku'),
    path('products/barcode/<str:barcode>/', views.ProductByBarcodeView.as_view(), name='product-by-barcode'),
]
