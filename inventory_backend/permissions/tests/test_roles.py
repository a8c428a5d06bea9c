# permissions/tests/test_roles.py

from types import SimpleNamespace

from django.test import SimpleTestCase

from permissions.roles import (
    CAP_INVENTORY_EDIT,
    CAP_INVENTORY_TRANSFER,
    CAP_INVENTORY_VIEW,
    CAP_WAREHOUSES_MANAGE,
    ROLE_ADMIN,
    ROLE_MANAGER,
    ROLE_USER,
    Actor,
    HasAnyCapability,
    HasCapability,
    IsInventoryActor,
    actor_from_user,
    can_access_warehouse,
    can_transfer_between_warehouses,
    capabilities_for,
    get_accessible_warehouses,
    resolve_default_warehouse,
)


def _user(role, warehouse_id=None, authenticated=True):
    return SimpleNamespace(
        role=role,
        warehouse_id=warehouse_id,
        pk="u-1",
        is_authenticated=authenticated,
    )


class ActorTests(SimpleTestCase):
    """
    GUARANTEES:
    - role=user actors are always bound to a warehouse
    - admin/manager actors are never warehouse-scoped
    """

    def test_user_role_requires_warehouse(self):
        with self.assertRaises(ValueError):
            Actor(role=ROLE_USER)

    def test_unrestricted_roles_reject_warehouse(self):
        with self.assertRaises(ValueError):
            Actor(role=ROLE_MANAGER, warehouse_id=1)

    def test_unknown_role_rejected(self):
        with self.assertRaises(ValueError):
            Actor(role="auditor")

    def test_actor_from_user_drops_warehouse_for_admin(self):
        actor = actor_from_user(_user(ROLE_ADMIN, warehouse_id=3))
        self.assertEqual(actor.role, ROLE_ADMIN)
        self.assertIsNone(actor.warehouse_id)

    def test_actor_from_user_rejects_misconfigured_user(self):
        self.assertIsNone(actor_from_user(_user(ROLE_USER, warehouse_id=None)))

    def test_actor_from_anonymous_is_none(self):
        self.assertIsNone(actor_from_user(_user(ROLE_ADMIN, authenticated=False)))
        self.assertIsNone(actor_from_user(None))


class WarehousePolicyTests(SimpleTestCase):
    def setUp(self):
        self.admin = Actor(role=ROLE_ADMIN)
        self.manager = Actor(role=ROLE_MANAGER)
        self.clerk = Actor(role=ROLE_USER, warehouse_id=1)

    def test_admin_and_manager_access_every_warehouse(self):
        for actor in (self.admin, self.manager):
            self.assertTrue(can_access_warehouse(actor, 1))
            self.assertTrue(can_access_warehouse(actor, 99))

    def test_user_only_accesses_own_warehouse(self):
        self.assertTrue(can_access_warehouse(self.clerk, 1))
        self.assertTrue(can_access_warehouse(self.clerk, "1"))
        self.assertFalse(can_access_warehouse(self.clerk, 2))
        self.assertFalse(can_access_warehouse(self.clerk, None))
        self.assertFalse(can_access_warehouse(self.clerk, "abc"))

    def test_no_actor_has_no_access(self):
        self.assertFalse(can_access_warehouse(None, 1))
        self.assertFalse(can_transfer_between_warehouses(None))
        self.assertEqual(capabilities_for(None), set())

    def test_accessible_warehouses_filters_objects_and_ids(self):
        w1 = SimpleNamespace(id=1)
        w2 = SimpleNamespace(id=2)
        self.assertEqual(get_accessible_warehouses(self.clerk, [w1, w2]), [w1])
        self.assertEqual(get_accessible_warehouses(self.admin, [1, 2]), [1, 2])

    def test_only_unrestricted_roles_transfer(self):
        self.assertTrue(can_transfer_between_warehouses(self.admin))
        self.assertTrue(can_transfer_between_warehouses(self.manager))
        self.assertFalse(can_transfer_between_warehouses(self.clerk))

    def test_user_is_pinned_to_own_warehouse(self):
        self.assertEqual(resolve_default_warehouse(self.clerk, explicit=2), 1)
        self.assertEqual(resolve_default_warehouse(self.admin, explicit=2), 2)
        self.assertIsNone(resolve_default_warehouse(self.admin))

    def test_capabilities(self):
        clerk_caps = capabilities_for(self.clerk)
        self.assertIn(CAP_INVENTORY_VIEW, clerk_caps)
        self.assertIn(CAP_INVENTORY_EDIT, clerk_caps)
        self.assertNotIn(CAP_INVENTORY_TRANSFER, clerk_caps)
        self.assertNotIn(CAP_WAREHOUSES_MANAGE, clerk_caps)
        self.assertIn(CAP_WAREHOUSES_MANAGE, capabilities_for(self.manager))


class PermissionClassTests(SimpleTestCase):
    def _check(self, permission, user, **view_attrs):
        request = SimpleNamespace(user=user)
        view = SimpleNamespace(**view_attrs)
        return permission.has_permission(request, view)

    def test_has_capability(self):
        clerk = _user(ROLE_USER, warehouse_id=1)
        manager = _user(ROLE_MANAGER)

        self.assertTrue(self._check(HasCapability(), clerk, required_capability=CAP_INVENTORY_EDIT))
        self.assertFalse(self._check(HasCapability(), clerk, required_capability=CAP_WAREHOUSES_MANAGE))
        self.assertTrue(self._check(HasCapability(), manager, required_capability=CAP_WAREHOUSES_MANAGE))
        self.assertFalse(self._check(HasCapability(), manager, required_capability=None))

    def test_has_any_capability(self):
        clerk = _user(ROLE_USER, warehouse_id=1)
        self.assertTrue(
            self._check(
                HasAnyCapability(),
                clerk,
                required_any_capabilities={CAP_INVENTORY_TRANSFER, CAP_INVENTORY_VIEW},
            )
        )
        self.assertFalse(
            self._check(HasAnyCapability(), clerk, required_any_capabilities={CAP_INVENTORY_TRANSFER})
        )

    def test_misconfigured_or_anonymous_users_are_rejected(self):
        self.assertFalse(self._check(IsInventoryActor(), _user(ROLE_USER)))
        self.assertFalse(self._check(IsInventoryActor(), _user(ROLE_ADMIN, authenticated=False)))
        self.assertTrue(self._check(IsInventoryActor(), _user(ROLE_ADMIN)))
