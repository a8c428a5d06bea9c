# users/tests/test_seed_inventory_users.py

from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import CommandError
from django.core.exceptions import ValidationError
from django.test import TestCase

from warehouses.models import Warehouse
from warehouses.services import create_warehouse

User = get_user_model()


class SeedInventoryUsersCommandTests(TestCase):
    def test_seed_is_idempotent(self):
        call_command("seed_inventory_users", stdout=StringIO())
        call_command("seed_inventory_users", stdout=StringIO())

        self.assertEqual(Warehouse.objects.count(), 2)
        self.assertEqual(Warehouse.objects.get(is_main=True).code, "MAIN")
        self.assertEqual(User.objects.count(), 4)

        clerk = User.objects.get(email="branch.clerk@example.com")
        self.assertEqual(clerk.warehouse.code, "BRANCH")
        self.assertTrue(clerk.check_password("Pass1234!"))

    def test_short_password_rejected(self):
        with self.assertRaises(CommandError):
            call_command("seed_inventory_users", "--password", "abc", stdout=StringIO())


class UserRoleValidationTests(TestCase):
    def setUp(self):
        self.warehouse = create_warehouse(code="MAIN", name="Main", is_main=True)

    def test_user_role_requires_warehouse(self):
        with self.assertRaises(ValidationError):
            User.objects.create_user(email="nowhere@example.com", password="password123", role="user")

    def test_manager_cannot_be_scoped(self):
        with self.assertRaises(ValidationError):
            User.objects.create_user(
                email="scoped.manager@example.com",
                password="password123",
                role="manager",
                warehouse=self.warehouse,
            )
