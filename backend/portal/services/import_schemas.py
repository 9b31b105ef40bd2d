from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Sequence

from ..extensions import db
from ..models import InventoryHistory, InventoryItem, ProductCost
from ..models.imports import IMPORT_TYPE_COST_SHEET, IMPORT_TYPE_INVENTORY
from portal.time_utils import utcnow
from .column_inference import (
    COST_SHEET_KEYWORDS,
    COST_SHEET_REQUIRED,
    INVENTORY_KEYWORDS,
    INVENTORY_REQUIRED,
    ColumnMapping,
)
from .row_validation import (
    ValidationResult,
    validate_cost_rows,
    validate_inventory_rows,
)


# Closed set of reasons an inventory import can record.
IN_REASONS = ("purchase", "return", "gift", "stocktake", "transfer", "other")

# Labels used by the original spreadsheets / UI.
IN_REASON_ALIASES = {
    "买货": "purchase",
    "赠送": "gift",
    "盘点": "stocktake",
    "调拨": "transfer",
    "其它": "other",
}


def normalize_in_reason(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    text = IN_REASON_ALIASES.get(text, text.lower())
    return text if text in IN_REASONS else None


def _parse_date(value: Any) -> date | None:
    if not value:
        return None
    return date.fromisoformat(str(value))


@dataclass
class SchemaContext:
    batch_id: int
    actor_user_id: int
    row_number: int
    in_reason: str | None = None


class BaseImportSchema:
    import_type: str = ""
    keywords: dict[str, tuple[str, ...]] = {}
    required_fields: tuple[str, ...] = ()

    def validate_rows(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[Any]],
        mapping: ColumnMapping,
        row_numbers: Sequence[int],
    ) -> ValidationResult:
        raise NotImplementedError

    def requires_reason(self) -> bool:
        return False

    def already_posted(self, context: SchemaContext) -> bool:
        return False

    def post_row(self, normalized_row: dict[str, Any], context: SchemaContext) -> dict[str, Any]:
        raise NotImplementedError


class InventorySchema(BaseImportSchema):
    import_type = IMPORT_TYPE_INVENTORY
    keywords = INVENTORY_KEYWORDS
    required_fields = INVENTORY_REQUIRED

    def validate_rows(self, headers, rows, mapping, row_numbers) -> ValidationResult:
        return validate_inventory_rows(headers, rows, mapping, row_numbers)

    def requires_reason(self) -> bool:
        return True

    def already_posted(self, context: SchemaContext) -> bool:
        existing = (
            db.session.query(InventoryHistory.id)
            .filter_by(import_batch_id=context.batch_id, source_row_number=context.row_number)
            .first()
        )
        return existing is not None

    def post_row(self, normalized_row: dict[str, Any], context: SchemaContext) -> dict[str, Any]:
        """
        Upsert one inventory row and append its history entry.

        Existing SKU: quantity += delta in a single UPDATE statement; unit_cost and
        in_reason are overwritten; batch/expiry only when the row supplies them.
        New SKU: inserted as-is.
        """
        sku = normalized_row["sku"]
        quantity = int(normalized_row["quantity"])
        unit_cost = Decimal(normalized_row["unit_cost"])
        batch_number = normalized_row.get("batch_number")
        expiration_date = _parse_date(normalized_row.get("expiration_date"))

        existing_id = db.session.query(InventoryItem.id).filter_by(sku=sku).scalar()
        created = existing_id is None

        if created:
            item = InventoryItem(
                sku=sku,
                product_name=normalized_row["product_name"],
                quantity=quantity,
                unit_cost=unit_cost,
                batch_number=batch_number,
                expiration_date=expiration_date,
                in_reason=context.in_reason,
                created_by_user_id=context.actor_user_id,
            )
            db.session.add(item)
            db.session.flush()
            item_id = item.id
        else:
            values = {
                InventoryItem.quantity: InventoryItem.quantity + quantity,
                InventoryItem.unit_cost: unit_cost,
                InventoryItem.in_reason: context.in_reason,
                InventoryItem.version_id: InventoryItem.version_id + 1,
                InventoryItem.updated_at: utcnow(),
            }
            if batch_number:
                values[InventoryItem.batch_number] = batch_number
            if expiration_date:
                values[InventoryItem.expiration_date] = expiration_date
            db.session.query(InventoryItem).filter(InventoryItem.id == existing_id).update(
                values, synchronize_session=False
            )
            item_id = existing_id

        db.session.add(
            InventoryHistory(
                sku=sku,
                product_name=normalized_row["product_name"],
                quantity=quantity,
                operation_type="in",
                unit_cost=unit_cost,
                in_reason=context.in_reason,
                reason=f"Smart spreadsheet import - {context.in_reason}",
                batch_number=batch_number,
                expiration_date=expiration_date,
                occurred_on=_parse_date(normalized_row.get("date")),
                import_batch_id=context.batch_id,
                source_row_number=context.row_number,
                created_by_user_id=context.actor_user_id,
            )
        )
        db.session.flush()

        return {
            "entity_type": "inventory_item",
            "entity_id": item_id,
            "created": created,
        }


class CostSheetSchema(BaseImportSchema):
    import_type = IMPORT_TYPE_COST_SHEET
    keywords = COST_SHEET_KEYWORDS
    required_fields = COST_SHEET_REQUIRED

    def validate_rows(self, headers, rows, mapping, row_numbers) -> ValidationResult:
        return validate_cost_rows(headers, rows, mapping, row_numbers)

    def post_row(self, normalized_row: dict[str, Any], context: SchemaContext) -> dict[str, Any]:
        sku = normalized_row["sku"]
        cost = Decimal(normalized_row["cost"])
        notes = normalized_row.get("notes") or ""

        record = db.session.query(ProductCost).filter_by(sku=sku).first()
        created = record is None
        if created:
            record = ProductCost(
                sku=sku,
                cost=cost,
                notes=notes,
                uploaded_by_user_id=context.actor_user_id,
                import_batch_id=context.batch_id,
                updated_at=utcnow(),
            )
            db.session.add(record)
        else:
            record.cost = cost
            record.notes = notes
            record.uploaded_by_user_id = context.actor_user_id
            record.import_batch_id = context.batch_id
            record.updated_at = utcnow()
        db.session.flush()

        return {
            "entity_type": "product_cost",
            "entity_id": record.id,
            "created": created,
        }


SCHEMAS: dict[str, BaseImportSchema] = {
    IMPORT_TYPE_INVENTORY: InventorySchema(),
    IMPORT_TYPE_COST_SHEET: CostSheetSchema(),
}
