# products/views/errors.py

"""
API ERROR NORMALIZATION

Every domain rejection leaves the API as:
    {"error": {"code": ..., "message": ..., "details": {...}}}
The admin UI switches on error.code to pick a tailored message.
"""

from __future__ import annotations

from rest_framework.response import Response

from permissions.roles import actor_from_user
from products.services.errors import InventoryError


def error_response(*, code: str, message: str, http_status: int, details=None, **extra):
    """
    Canonical API error response.
    """
    error = {"code": code, "message": message}
    if details:
        error["details"] = details
    return Response({"error": error, **extra}, status=http_status)


def inventory_error_response(exc: InventoryError, **extra):
    return error_response(
        code=exc.code,
        message=exc.message,
        http_status=exc.http_status,
        details=exc.details,
        **extra,
    )


class InventoryActorMixin:
    """
    For DRF views that call the transaction engine or the query layer.

    - get_actor(): Actor for request.user (None when misconfigured; the
      services then raise WarehouseAccessDenied)
    - InventoryError raised anywhere in a handler becomes the error envelope
    """

    def get_actor(self):
        return actor_from_user(getattr(self.request, "user", None))

    def get_idempotency_key(self, validated_data=None):
        header = (self.request.headers.get("Idempotency-Key") or "").strip()
        if header:
            return header
        return ((validated_data or {}).get("operation_id") or "").strip() or None

    def handle_exception(self, exc):
        if isinstance(exc, InventoryError):
            return inventory_error_response(exc)
        return super().handle_exception(exc)
