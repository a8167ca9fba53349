"""
Serializers for inventory models.
Provides data validation and JSON conversion for API endpoints.
"""
from rest_framework import serializers

from .models import Category, Product, Supplier


class CategoryMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested category representation."""
    class Meta:
        model = Category
        fields = ['id', 'name', 'color']


class SupplierMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested supplier representation."""
    class Meta:
        model = Supplier
        fields = ['id', 'name', 'code']


class LocationSerializer(serializers.Serializer):
    warehouse = serializers.CharField(max_length=100, required=False, allow_blank=True)
    aisle = serializers.CharField(max_length=50, required=False, allow_blank=True)
    shelf = serializers.CharField(max_length=50, required=False, allow_blank=True)
    bin = serializers.CharField(max_length=50, required=False, allow_blank=True)


class TagListField(serializers.ListField):
    """Accepts a list of tags or a comma-separated string."""
    child = serializers.CharField(max_length=50)

    def to_internal_value(self, data):
        if isinstance(data, str):
            data = [tag.strip() for tag in data.split(',')]
        return [tag for tag in super().to_internal_value(data) if tag]


class ProductSerializer(serializers.ModelSerializer):
    """
    Serializer for Product with nested category/supplier and derived fields.

    current_stock is read-only here; stock only moves through ledger endpoints.
    """
    category = CategoryMinimalSerializer(read_only=True)
    category_id = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(),
        source='category',
        write_only=True,
        required=False,
        allow_null=True
    )
    supplier = SupplierMinimalSerializer(read_only=True)
    supplier_id = serializers.PrimaryKeyRelatedField(
        queryset=Supplier.objects.all(),
        source='supplier',
        write_only=True,
        required=False,
        allow_null=True
    )
    barcode = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)
    location = LocationSerializer(required=False)
    tags = TagListField(required=False)
    profit_margin = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        read_only=True,
        allow_null=True
    )
    stock_status = serializers.CharField(read_only=True)
    stock_value = serializers.DecimalField(max_digits=20, decimal_places=2, read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'sku', 'barcode', 'description',
            'category', 'category_id', 'supplier', 'supplier_id',
            'unit', 'cost_price', 'selling_price',
            'current_stock', 'min_stock_level', 'max_stock_level',
            'location', 'tags', 'notes', 'is_active',
            'profit_margin', 'stock_status', 'stock_value',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'current_stock', 'is_active', 'created_at', 'updated_at']

    def validate_sku(self, value):
        sku = value.strip().upper()
        if not sku:
            raise serializers.ValidationError("SKU is required")
        queryset = Product.objects.filter(sku__iexact=sku)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("SKU already exists")
        return sku

    def validate_barcode(self, value):
        barcode = (value or '').strip()
        if not barcode:
            return None
        queryset = Product.objects.filter(barcode=barcode)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("Barcode already exists")
        return barcode

    def validate(self, attrs):
        min_level = attrs.get('min_stock_level', getattr(self.instance, 'min_stock_level', None))
        max_level = attrs.get('max_stock_level', getattr(self.instance, 'max_stock_level', None))
        if min_level is not None and max_level is not None and max_level < min_level:
            raise serializers.ValidationError({
                'max_stock_level': "Maximum stock level cannot be below the minimum stock level"
            })
        return attrs

    def create(self, validated_data):
        location = validated_data.pop('location', None)
        product = Product(**validated_data)
        product.set_location(location)
        product.save()
        return product

    def update(self, instance, validated_data):
        """Save only the submitted columns so concurrent stock writes are never overwritten."""
        location = validated_data.pop('location', None)
        changed = list(validated_data)
        for field, value in validated_data.items():
            setattr(instance, field, value)
        if location is not None:
            changed += instance.set_location({**instance.location, **location})
        instance.save(update_fields=changed + ['updated_at'])
        return instance


class ProductMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested representations in ledger entries."""
    class Meta:
        model = Product
        fields = ['id', 'name', 'sku', 'barcode']


class StockAlertProductSerializer(serializers.ModelSerializer):
    """Product row for alert lists and dashboards."""
    category = CategoryMinimalSerializer(read_only=True)
    supplier = SupplierMinimalSerializer(read_only=True)
    stock_status = serializers.CharField(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'sku', 'barcode', 'unit',
            'current_stock', 'min_stock_level', 'max_stock_level',
            'stock_status', 'category', 'supplier'
        ]

