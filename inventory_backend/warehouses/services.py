# warehouses/services.py

"""
WAREHOUSE SERVICES

Rules:
- Only one main warehouse at a time: promoting a warehouse demotes the
  previous main one inside the same DB transaction.
- The main warehouse cannot be deactivated or retired; promote another
  warehouse first.
- Retiring a warehouse with ledger history (or assigned users) is a soft
  delete. Only untouched warehouses are removed for real.
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from warehouses.models import Warehouse

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {"code", "name", "description", "address", "is_main", "is_active"}

RETIRE_DELETED = "deleted"
RETIRE_DEACTIVATED = "deactivated"


def demote_main_warehouses(*, keep_pk=None) -> None:
    qs = Warehouse.objects.select_for_update().filter(is_main=True)
    if keep_pk is not None:
        qs = qs.exclude(pk=keep_pk)

    # evaluate to take the row locks before updating
    demoted = [w.pk for w in qs]
    if demoted:
        Warehouse.objects.filter(pk__in=demoted).update(is_main=False)
        logger.info("Demoted previous main warehouse", extra={"warehouse_ids": demoted})


@transaction.atomic
def create_warehouse(*, code: str, name: str, description: str = "", address: str = "",
                     is_main: bool = False, is_active: bool = True) -> Warehouse:
    warehouse = Warehouse(
        code=code,
        name=name,
        description=description or "",
        address=address or "",
        is_main=bool(is_main),
        is_active=bool(is_active),
    )
    warehouse.full_clean(exclude=["is_main"])

    if warehouse.is_main:
        demote_main_warehouses()

    warehouse.save()
    logger.info("Warehouse created", extra={"warehouse_id": warehouse.pk, "code": warehouse.code})
    return warehouse


@transaction.atomic
def update_warehouse(*, warehouse: Warehouse, **changes) -> Warehouse:
    unknown = sorted(set(changes) - EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field(s) {unknown} cannot be edited")

    locked = Warehouse.objects.select_for_update().get(pk=warehouse.pk)

    if locked.is_main and changes.get("is_active") is False:
        raise ValidationError("The main warehouse cannot be deactivated. Promote another warehouse first.")

    for field, value in changes.items():
        setattr(locked, field, value)

    locked.full_clean(exclude=["is_main"])

    if locked.is_main:
        demote_main_warehouses(keep_pk=locked.pk)

    locked.save()
    return locked


def set_main_warehouse(*, warehouse: Warehouse) -> Warehouse:
    return update_warehouse(warehouse=warehouse, is_main=True, is_active=True)


def get_main_warehouse():
    return Warehouse.objects.filter(is_main=True, is_active=True).first()


@transaction.atomic
def retire_warehouse(*, warehouse: Warehouse) -> str:
    """
    Remove a warehouse from service.

    Returns RETIRE_DELETED when the row was physically removed, or
    RETIRE_DEACTIVATED when it had to be kept for the audit trail.
    """
    locked = Warehouse.objects.select_for_update().get(pk=warehouse.pk)

    if locked.is_main:
        raise ValidationError("The main warehouse cannot be retired. Promote another warehouse first.")

    if locked.has_ledger_history() or locked.stock_levels.exists() or locked.assigned_users.exists():
        if locked.is_active:
            locked.is_active = False
            locked.save(update_fields=["is_active", "updated_at"])
        logger.info("Warehouse deactivated", extra={"warehouse_id": locked.pk, "code": locked.code})
        return RETIRE_DEACTIVATED

    locked.delete()
    logger.info("Warehouse deleted", extra={"warehouse_id": warehouse.pk, "code": warehouse.code})
    return RETIRE_DELETED
