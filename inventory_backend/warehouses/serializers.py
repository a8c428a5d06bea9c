# warehouses/serializers.py

from rest_framework import serializers

from warehouses.models import Warehouse


class WarehouseSerializer(serializers.ModelSerializer):
    """
    Warehouse representation (camelCase on the wire).

    Accepts both "isMain" and "is_main" (same for isActive) on write.
    """

    isMain = serializers.BooleanField(source="is_main", required=False)
    isActive = serializers.BooleanField(source="is_active", required=False)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    SNAKE_ALIASES = {"is_main": "isMain", "is_active": "isActive"}

    class Meta:
        model = Warehouse
        fields = [
            "id",
            "code",
            "name",
            "description",
            "address",
            "isMain",
            "isActive",
            "createdAt",
            "updatedAt",
        ]
        read_only_fields = ["id"]

    def to_internal_value(self, data):
        if hasattr(data, "items"):
            data = dict(data.items())
            for snake, camel in self.SNAKE_ALIASES.items():
                if snake in data and camel not in data:
                    data[camel] = data.pop(snake)
        return super().to_internal_value(data)

    def validate_code(self, value):
        value = (value or "").strip().upper()
        if not value:
            raise serializers.ValidationError("code is required")
        return value
