# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

"""
Inventory invariants:
- One InventoryItem per SKU; quantity never goes negative (also a CHECK constraint).
- Quantity changes are single UPDATE statements (quantity = quantity +/- delta),
  so two concurrent movements on the same SKU cannot lose an update.
- Every movement appends exactly one InventoryHistory row in the same transaction.
- Other field edits go through the ORM and are guarded by version_id.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import or_

from ..extensions import db
from ..models import InventoryHistory, InventoryItem
from portal.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


class InventoryError(ValueError):
    """Raised when an inventory operation violates stock rules."""


class InventoryNotFoundError(InventoryError):
    """Raised when no item exists for the requested SKU."""


OPERATION_TYPES = ("in", "out")
EDITABLE_FIELDS = {"product_name", "batch_number", "expiration_date"}


def _get_item(sku: str, *, lock: bool = False) -> InventoryItem:
    query = db.session.query(InventoryItem).filter_by(sku=sku)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise InventoryNotFoundError(f"No inventory item for SKU {sku}")
    return item


def list_inventory(*, search: str | None = None, page: int = 1, per_page: int = 100) -> dict:
    page = max(1, int(page or 1))
    per_page = max(1, min(500, int(per_page or 100)))

    query = db.session.query(InventoryItem)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(InventoryItem.sku.ilike(pattern), InventoryItem.product_name.ilike(pattern))
        )

    total = query.count()
    items = (
        query.order_by(InventoryItem.sku.asc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return {
        "items": [i.to_dict() for i in items],
        "page": page,
        "per_page": per_page,
        "total": total,
    }


def get_item(sku: str) -> InventoryItem:
    return _get_item(sku)


def stock_out(
    *,
    sku: str,
    quantity: int,
    actor_user_id: int,
    reason: str,
    out_date: date | None = None,
) -> InventoryItem:
    """
    Remove stock for one SKU and log an 'out' movement.

    The decrement is conditional (quantity >= :qty) inside the UPDATE, so
    an overdraw leaves the row untouched and raises InventoryError.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InventoryError("quantity must be a positive integer")
    if not reason or not str(reason).strip():
        raise InventoryError("reason is required")
    out_date = out_date or utcnow().date()

    def _op():
        item = _get_item(sku, lock=True)
        updated = (
            db.session.query(InventoryItem)
            .filter(InventoryItem.id == item.id, InventoryItem.quantity >= quantity)
            .update(
                {
                    InventoryItem.quantity: InventoryItem.quantity - quantity,
                    InventoryItem.version_id: InventoryItem.version_id + 1,
                    InventoryItem.updated_at: utcnow(),
                },
                synchronize_session=False,
            )
        )
        if updated != 1:
            db.session.rollback()
            raise InventoryError(
                f"Insufficient stock for SKU {sku}: requested {quantity}"
            )

        db.session.add(
            InventoryHistory(
                sku=item.sku,
                product_name=item.product_name,
                quantity=quantity,
                operation_type="out",
                unit_cost=item.unit_cost,
                reason=str(reason).strip(),
                batch_number=item.batch_number,
                expiration_date=item.expiration_date,
                occurred_on=out_date,
                created_by_user_id=actor_user_id,
            )
        )
        db.session.commit()
        db.session.refresh(item)
        return item

    return run_with_retry(_op, label=f"stock-out of {sku}")


def update_item_details(*, sku: str, patch: dict, expected_version: int | None = None) -> InventoryItem:
    """
    Edit descriptive fields of an item (never quantity).

    expected_version lets a client detect it edited a stale copy.
    """
    unknown = set(patch) - EDITABLE_FIELDS
    if unknown:
        raise InventoryError(f"Field not editable: {', '.join(sorted(unknown))}")

    def _op():
        item = _get_item(sku)
        if expected_version is not None and item.version_id != expected_version:
            raise InventoryError("Item was modified by someone else; reload and retry")
        for key, value in patch.items():
            setattr(item, key, value)
        db.session.commit()
        return item

    return run_with_retry(_op, label=f"detail edit of {sku}")


def list_history(
    *,
    sku: str | None = None,
    operation_type: str | None = None,
    limit: int = 200,
) -> list[InventoryHistory]:
    if operation_type and operation_type not in OPERATION_TYPES:
        raise InventoryError("operation_type must be 'in' or 'out'")
    limit = max(1, min(1000, int(limit or 200)))

    query = db.session.query(InventoryHistory)
    if sku:
        query = query.filter(InventoryHistory.sku == sku)
    if operation_type:
        query = query.filter(InventoryHistory.operation_type == operation_type)
    return (
        query.order_by(InventoryHistory.created_at.desc(), InventoryHistory.id.desc())
        .limit(limit)
        .all()
    )
