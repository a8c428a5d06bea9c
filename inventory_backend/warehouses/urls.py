# warehouses/urls.py

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from warehouses.views import WarehouseViewSet

router = DefaultRouter()
router.register(r"warehouses", WarehouseViewSet, basename="warehouses")

urlpatterns = [
    path("", include(router.urls)),
]
