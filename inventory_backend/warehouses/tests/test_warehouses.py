# warehouses/tests/test_warehouses.py

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from products.services.stock_transactions import record_inbound
from products.tests.fixtures import (
    actor_for,
    make_admin,
    make_clerk,
    make_manager,
    make_product,
    make_warehouses,
)
from warehouses.models import Warehouse
from warehouses.services import (
    RETIRE_DEACTIVATED,
    RETIRE_DELETED,
    create_warehouse,
    get_main_warehouse,
    retire_warehouse,
    set_main_warehouse,
    update_warehouse,
)


class WarehouseServiceTests(TestCase):
    """
    GUARANTEES:
    - at most one main warehouse
    - the main warehouse stays active
    - warehouses with history are deactivated, never deleted
    """

    def setUp(self):
        self.main, self.branch = make_warehouses()

    def test_codes_are_normalized(self):
        w = create_warehouse(code=" east ", name=" East Depot ")
        self.assertEqual(w.code, "EAST")
        self.assertEqual(w.name, "East Depot")

    def test_duplicate_code_rejected(self):
        with self.assertRaises(ValidationError):
            create_warehouse(code="main", name="Another")

    def test_promoting_demotes_previous_main(self):
        set_main_warehouse(warehouse=self.branch)

        self.main.refresh_from_db()
        self.branch.refresh_from_db()
        self.assertFalse(self.main.is_main)
        self.assertTrue(self.branch.is_main)
        self.assertEqual(Warehouse.objects.filter(is_main=True).count(), 1)
        self.assertEqual(get_main_warehouse().pk, self.branch.pk)

    def test_creating_main_demotes_previous_main(self):
        north = create_warehouse(code="NORTH", name="North", is_main=True)
        self.main.refresh_from_db()
        self.assertFalse(self.main.is_main)
        self.assertTrue(north.is_main)

    def test_main_cannot_be_deactivated_or_retired(self):
        with self.assertRaises(ValidationError):
            update_warehouse(warehouse=self.main, is_active=False)
        with self.assertRaises(ValidationError):
            retire_warehouse(warehouse=self.main)

    def test_unknown_field_rejected(self):
        with self.assertRaises(ValidationError):
            update_warehouse(warehouse=self.branch, id=99)

    def test_untouched_warehouse_is_deleted(self):
        self.assertEqual(retire_warehouse(warehouse=self.branch), RETIRE_DELETED)
        self.assertFalse(Warehouse.objects.filter(pk=self.branch.pk).exists())

    def test_warehouse_with_history_is_deactivated(self):
        product = make_product()
        admin = actor_for(make_admin())
        record_inbound(admin, product_id=product.pk, warehouse_id=self.branch.pk, quantity=1, reason="found")

        self.assertEqual(retire_warehouse(warehouse=self.branch), RETIRE_DEACTIVATED)
        self.branch.refresh_from_db()
        self.assertFalse(self.branch.is_active)

        with self.assertRaises(ValidationError):
            self.branch.delete()

    def test_warehouse_with_users_is_deactivated(self):
        make_clerk(self.branch)
        self.assertEqual(retire_warehouse(warehouse=self.branch), RETIRE_DEACTIVATED)


class WarehouseApiTests(TestCase):
    def setUp(self):
        self.main, self.branch = make_warehouses()
        self.manager = make_manager()
        self.clerk = make_clerk(self.branch)

        self.client = APIClient()
        self.client.force_authenticate(user=self.manager)

    def test_list_for_manager_and_user(self):
        res = self.client.get("/api/warehouses/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["count"], 2)
        self.assertEqual([w["code"] for w in res.data["results"]], ["BRANCH", "MAIN"])

        self.client.force_authenticate(user=self.clerk)
        res = self.client.get("/api/warehouses/")
        self.assertEqual(res.data["count"], 1)
        self.assertEqual(res.data["results"][0]["id"], self.branch.pk)

    def test_retrieve_scope(self):
        self.client.force_authenticate(user=self.clerk)
        res = self.client.get(f"/api/warehouses/{self.branch.pk}/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["isMain"], False)

        res = self.client.get(f"/api/warehouses/{self.main.pk}/")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(res.data["error"]["code"], "WAREHOUSE_ACCESS_DENIED")

    def test_create_and_promote(self):
        res = self.client.post(
            "/api/warehouses/",
            {"code": "north", "name": "North Depot", "isMain": True},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_201_CREATED, res.data)
        self.assertEqual(res.data["code"], "NORTH")
        self.assertTrue(res.data["isMain"])

        self.main.refresh_from_db()
        self.assertFalse(self.main.is_main)

        res = self.client.post(f"/api/warehouses/{self.main.pk}/set-main/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertTrue(res.data["isMain"])

    def test_update(self):
        res = self.client.patch(
            f"/api/warehouses/{self.branch.pk}/",
            {"name": "Branch Two", "address": "12 High St"},
            format="json",
        )
        self.assertEqual(res.status_code, status.HTTP_200_OK, res.data)
        self.assertEqual(res.data["name"], "Branch Two")

        res = self.client.patch(f"/api/warehouses/{self.main.pk}/", {"is_active": False}, format="json")
        self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(res.data["error"]["code"], "VALIDATION_ERROR")

    def test_destroy(self):
        empty = create_warehouse(code="EMPTY", name="Empty")
        res = self.client.delete(f"/api/warehouses/{empty.pk}/")
        self.assertEqual(res.status_code, status.HTTP_204_NO_CONTENT)

        record_inbound(
            actor_for(self.manager),
            product_id=make_product().pk,
            warehouse_id=self.branch.pk,
            quantity=Decimal("1"),
            reason="found",
        )
        res = self.client.delete(f"/api/warehouses/{self.branch.pk}/")
        self.assertEqual(res.status_code, status.HTTP_200_OK)
        self.assertEqual(res.data["result"], RETIRE_DEACTIVATED)
        self.assertFalse(res.data["warehouse"]["isActive"])

    def test_user_cannot_manage(self):
        self.client.force_authenticate(user=self.clerk)
        res = self.client.post("/api/warehouses/", {"code": "X", "name": "X"}, format="json")
        self.assertEqual(res.status_code, status.HTTP_403_FORBIDDEN)
