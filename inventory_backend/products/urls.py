# products/urls.py

"""
INVENTORY URLS

Purpose:
- Register ledger + inventory routes under /api/
    /api/transactions/...
    /api/inventory/...
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from products.views import InventoryViewSet, StockTransactionViewSet

router = DefaultRouter()

router.register(r"transactions", StockTransactionViewSet, basename="transactions")
router.register(r"inventory", InventoryViewSet, basename="inventory")

urlpatterns = [
    path("", include(router.urls)),
]
