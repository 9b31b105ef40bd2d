from __future__ import annotations

from ..extensions import db
from portal.time_utils import to_iso_date, to_utc_z


def _money(value) -> float | None:
    return float(value) if value is not None else None


class InventoryItem(db.Model):
    """
    Current stock position for one SKU.

    SKU DESIGN DECISION:
    sku is the natural key. Exactly one row per SKU, enforced by a unique
    constraint in addition to the lookup the importer performs before writing.

    QUANTITY:
    - Incremented by every "in" movement, decremented by "out" movements.
    - Always written with an atomic UPDATE ... SET quantity = quantity + delta,
      never read-modify-write in Python.

    unit_cost is overwritten (not averaged) by each import.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_inventory_items_sku"),
        db.CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_non_negative"),
        db.Index("ix_inventory_items_name", "product_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=False)

    batch_number = db.Column(db.String(64), nullable=True)
    expiration_date = db.Column(db.Date, nullable=True)

    # Last in-reason applied to this SKU
    in_reason = db.Column(db.String(16), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem sku={self.sku!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_cost": _money(self.unit_cost),
            "batch_number": self.batch_number,
            "expiration_date": to_iso_date(self.expiration_date),
            "in_reason": self.in_reason,
            "created_by_user_id": self.created_by_user_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryHistory(db.Model):
    """
    Append-only log of stock movements.

    One row per reconciled import row or manual stock-out.
    quantity is the size of the movement (operation_type gives the direction),
    never the resulting total.

    IDEMPOTENCY: (import_batch_id, source_row_number) is unique, so posting the
    same staged row twice cannot append a second entry.
    """
    __tablename__ = "inventory_history"
    __table_args__ = (
        db.UniqueConstraint("import_batch_id", "source_row_number", name="uq_inventory_history_import_row"),
        db.Index("ix_inventory_history_sku_created", "sku", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    operation_type = db.Column(db.String(8), nullable=False, index=True)  # in, out

    unit_cost = db.Column(db.Numeric(12, 2), nullable=True)
    in_reason = db.Column(db.String(16), nullable=True)
    reason = db.Column(db.String(255), nullable=True)

    batch_number = db.Column(db.String(64), nullable=True)
    expiration_date = db.Column(db.Date, nullable=True)

    # Business date of the movement (out date, or the sheet's date column)
    occurred_on = db.Column(db.Date, nullable=True)

    import_batch_id = db.Column(db.Integer, db.ForeignKey("import_batches.id"), nullable=True, index=True)
    source_row_number = db.Column(db.Integer, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "operation_type": self.operation_type,
            "unit_cost": _money(self.unit_cost),
            "in_reason": self.in_reason,
            "reason": self.reason,
            "batch_number": self.batch_number,
            "expiration_date": to_iso_date(self.expiration_date),
            "occurred_on": to_iso_date(self.occurred_on),
            "import_batch_id": self.import_batch_id,
            "source_row_number": self.source_row_number,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class ProductCost(db.Model):
    """Per-SKU cost from uploaded cost sheets. Upserted by SKU; no quantity."""
    __tablename__ = "product_costs"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_product_costs_sku"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False)
    cost = db.Column(db.Numeric(12, 2), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    uploaded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    import_batch_id = db.Column(db.Integer, db.ForeignKey("import_batches.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "cost": _money(self.cost),
            "notes": self.notes,
            "uploaded_by_user_id": self.uploaded_by_user_id,
            "import_batch_id": self.import_batch_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
