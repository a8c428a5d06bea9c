# products/serializers/base.py

"""
Shared serializer plumbing.

Frontend Compatibility:
- The React client sends camelCase ("productId", "unitCost"); scripts and
  tests often send snake_case. Input serializers accept both by folding
  camelCase keys to snake_case before field validation.
- Responses are camelCase (field names below are the wire names).
"""

from __future__ import annotations

import re
from decimal import Decimal

from rest_framework import serializers

_CAMEL = re.compile(r"(?<=[a-z0-9])([A-Z])")


def camel_to_snake(key: str) -> str:
    return _CAMEL.sub(r"_\1", key).lower()


class CamelCaseInputSerializer(serializers.Serializer):
    def to_internal_value(self, data):
        if hasattr(data, "items"):
            data = {camel_to_snake(str(k)): v for k, v in data.items()}
        return super().to_internal_value(data)


class QuantityField(serializers.Field):
    """
    Passes quantities through to the engine untouched (the engine owns
    quantity rules and error codes). JSON floats are converted through
    their shortest repr, so 2.5 arrives as Decimal("2.5").
    """

    def to_internal_value(self, data):
        if isinstance(data, float):
            return Decimal(repr(data))
        if isinstance(data, (list, dict)):
            raise serializers.ValidationError("Expected a number.")
        return data

    def to_representation(self, value):
        return None if value is None else str(value)


def decimal_field(**kwargs):
    kwargs.setdefault("read_only", True)
    return serializers.DecimalField(max_digits=14, decimal_places=3, **kwargs)
