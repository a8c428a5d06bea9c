# products/tests/fixtures.py

"""
Seeding helpers shared by the inventory tests.

Users are created through the custom UserManager (email identity), so
role=user accounts always carry a warehouse.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model

from permissions.roles import ROLE_ADMIN, ROLE_MANAGER, ROLE_USER, actor_from_user
from products.models import Product
from warehouses.services import create_warehouse

User = get_user_model()

PASSWORD = "password123"


def make_warehouses():
    main = create_warehouse(code="MAIN", name="Main Warehouse", is_main=True)
    branch = create_warehouse(code="BRANCH", name="Branch Warehouse")
    return main, branch


def make_user(email: str, role: str, warehouse=None):
    return User.objects.create_user(
        email=email,
        password=PASSWORD,
        role=role,
        warehouse=warehouse,
    )


def make_admin(email: str = "admin@example.com"):
    return make_user(email, ROLE_ADMIN)


def make_manager(email: str = "manager@example.com"):
    return make_user(email, ROLE_MANAGER)


def make_clerk(warehouse, email: str = "clerk@example.com"):
    return make_user(email, ROLE_USER, warehouse=warehouse)


def make_product(sku: str = "WID-001", name: str = "Widget", **extra) -> Product:
    return Product.objects.create(sku=sku, name=name, **extra)


def actor_for(user):
    return actor_from_user(user)
