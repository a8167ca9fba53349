from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Category',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, help_text='Unique category name', max_length=50, unique=True)),
                ('description', models.CharField(blank=True, default='', max_length=200)),
                ('color', models.CharField(default='#007bff', max_length=20)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Category',
                'verbose_name_plural': 'Categories',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Supplier',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, max_length=100)),
                ('code', models.CharField(help_text='Unique supplier code (stored uppercase)', max_length=30, unique=True)),
                ('email', models.EmailField(blank=True, default='', max_length=254)),
                ('phone', models.CharField(blank=True, default='', max_length=30)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Supplier',
                'verbose_name_plural': 'Suppliers',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, help_text='Product name for display and search', max_length=100)),
                ('sku', models.CharField(help_text='Stock keeping unit (stored uppercase)', max_length=64, unique=True)),
                ('barcode', models.CharField(blank=True, help_text='Optional unique barcode', max_length=64, null=True, unique=True)),
                ('description', models.CharField(blank=True, default='', max_length=500)),
                ('unit', models.CharField(choices=[('piece', 'Piece'), ('kg', 'Kilogram'), ('liter', 'Liter'), ('meter', 'Meter'), ('box', 'Box'), ('pack', 'Pack'), ('dozen', 'Dozen'), ('pair', 'Pair')], default='piece', max_length=10)),
                ('cost_price', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('selling_price', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('current_stock', models.DecimalField(decimal_places=3, default=Decimal('0'), editable=False, help_text='Live balance, changed only through stock transactions', max_digits=14)),
                ('min_stock_level', models.DecimalField(decimal_places=3, default=Decimal('10'), help_text='At or below this level the product is low on stock', max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('max_stock_level', models.DecimalField(blank=True, decimal_places=3, help_text='At or above this level the product is over-stocked', max_digits=14, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('location_warehouse', models.CharField(blank=True, default='', max_length=100)),
                ('location_aisle', models.CharField(blank=True, default='', max_length=50)),
                ('location_shelf', models.CharField(blank=True, default='', max_length=50)),
                ('location_bin', models.CharField(blank=True, default='', max_length=50)),
                ('tags', models.JSONField(blank=True, default=list)),
                ('notes', models.TextField(blank=True, default='')),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Inactive products are soft-deleted')),
                ('version', models.PositiveIntegerField(default=0, editable=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('category', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='products', to='inventory.category')),
                ('supplier', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='products', to='inventory.supplier')),
            ],
            options={
                'verbose_name': 'Product',
                'verbose_name_plural': 'Products',
                'ordering': ['name'],
                'indexes': [
                    models.Index(fields=['name', 'is_active'], name='product_name_active_idx'),
                    models.Index(fields=['category', 'is_active'], name='product_category_active_idx'),
                    models.Index(fields=['supplier', 'is_active'], name='product_supplier_active_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('current_stock__gte', 0)), name='product_current_stock_non_negative'),
                    models.CheckConstraint(condition=models.Q(('cost_price__gte', 0), ('selling_price__gte', 0)), name='product_prices_non_negative'),
                ],
            },
        ),
    ]
