from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('inventory', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='InventoryTransaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('in', 'Stock In'), ('out', 'Stock Out'), ('adjustment', 'Adjustment'), ('transfer', 'Transfer'), ('return', 'Return'), ('damage', 'Damage'), ('expiry', 'Expiry')], db_index=True, max_length=20)),
                ('quantity', models.DecimalField(decimal_places=3, help_text='Magnitude of the movement', max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('previous_stock', models.DecimalField(decimal_places=3, max_digits=14)),
                ('new_stock', models.DecimalField(decimal_places=3, max_digits=14)),
                ('unit_price', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('total_value', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=16, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('reference', models.CharField(blank=True, default='', max_length=100)),
                ('reference_number', models.CharField(blank=True, default='', max_length=100)),
                ('from_location', models.JSONField(blank=True, null=True)),
                ('to_location', models.JSONField(blank=True, null=True)),
                ('reason', models.CharField(max_length=200)),
                ('notes', models.CharField(blank=True, default='', max_length=500)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected'), ('completed', 'Completed')], db_index=True, default='pending', max_length=20)),
                ('transaction_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='approved_stock_transactions', to=settings.AUTH_USER_MODEL)),
                ('performed_by', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_transactions', to=settings.AUTH_USER_MODEL)),
                ('product', models.ForeignKey(help_text='Product whose stock changed', on_delete=django.db.models.deletion.PROTECT, related_name='transactions', to='inventory.product')),
            ],
            options={
                'verbose_name': 'Inventory Transaction',
                'verbose_name_plural': 'Inventory Transactions',
                'ordering': ['-transaction_date', '-id'],
                'indexes': [
                    models.Index(fields=['product', 'type', '-transaction_date', 'status'], name='txn_product_type_date_idx'),
                    models.Index(fields=['type', 'transaction_date'], name='txn_type_date_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('new_stock__gte', 0), ('previous_stock__gte', 0)), name='transaction_stock_snapshots_non_negative'),
                    models.CheckConstraint(condition=models.Q(('quantity__gte', 0)), name='transaction_quantity_non_negative'),
                ],
            },
        ),
    ]
