from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Sequence

from portal.time_utils import parse_business_date, to_iso_date
from ..validation import MAX_MONEY, NoValidDataError
from .column_inference import ColumnMapping, DEFAULT_QUANTITY_ONE


CENT = Decimal("0.01")
_CURRENCY_NOISE = ("$", "¥", "￥", ",", " ")


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, datetime):
        return value.date().isoformat() if value.time() == datetime.min.time() else value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    return text if text else None


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        text = str(value).strip()
        for noise in _CURRENCY_NOISE:
            text = text.replace(noise, "")
        if not text:
            return None
        try:
            amount = Decimal(text)
        except InvalidOperation:
            return None
    if not amount.is_finite():
        return None
    return amount


def _to_quantity(value: Any) -> int | None:
    amount = _to_decimal(value)
    if amount is None or amount != amount.to_integral_value():
        return None
    return int(amount)


@dataclass
class ValidatedRow:
    row_number: int
    sku: str
    product_name: str
    quantity: int
    unit_cost: Decimal
    batch_number: str | None = None
    expiration_date: date | None = None
    date: date | None = None

    def to_dict(self) -> dict:
        return {
            "row_number": self.row_number,
            "sku": self.sku,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_cost": str(self.unit_cost),
            "batch_number": self.batch_number,
            "expiration_date": to_iso_date(self.expiration_date),
            "date": to_iso_date(self.date),
        }


@dataclass
class CostRow:
    row_number: int
    sku: str
    cost: Decimal
    notes: str = ""

    def to_dict(self) -> dict:
        return {
            "row_number": self.row_number,
            "sku": self.sku,
            "cost": str(self.cost),
            "notes": self.notes,
        }


@dataclass
class RejectedRow:
    row_number: int
    errors: list[str]

    def to_dict(self) -> dict:
        return {"row_number": self.row_number, "errors": list(self.errors)}


@dataclass
class ValidationResult:
    valid: list = field(default_factory=list)
    rejected: list[RejectedRow] = field(default_factory=list)


def _cell(row: Sequence[Any], index: int | None) -> Any:
    if index is None or index < 0 or index >= len(row):
        return None
    return row[index]


def _index_of(headers: Sequence[str], header: str | None) -> int | None:
    if not header or header == DEFAULT_QUANTITY_ONE:
        return None
    try:
        return list(headers).index(header)
    except ValueError:
        return None


def validate_inventory_row(
    headers: Sequence[str],
    row: Sequence[Any],
    mapping: ColumnMapping,
    row_number: int,
) -> ValidatedRow | RejectedRow:
    errors: list[str] = []

    sku = _to_text(_cell(row, _index_of(headers, mapping.get("sku")))) or ""
    if not sku:
        errors.append("sku is required")

    product_name = _to_text(_cell(row, _index_of(headers, mapping.get("product_name")))) or ""
    if not product_name:
        errors.append("product_name is required")

    if mapping.quantity_defaults_to_one:
        quantity = 1
    else:
        quantity = _to_quantity(_cell(row, _index_of(headers, mapping.get("quantity"))))
    if quantity is None or quantity <= 0:
        errors.append("quantity must be a positive whole number")

    unit_cost = _to_decimal(_cell(row, _index_of(headers, mapping.get("unit_cost"))))
    if unit_cost is None or unit_cost <= 0:
        errors.append("unit_cost must be a positive number")
    elif unit_cost > MAX_MONEY:
        errors.append("unit_cost is out of range")

    if errors:
        return RejectedRow(row_number=row_number, errors=errors)

    return ValidatedRow(
        row_number=row_number,
        sku=sku,
        product_name=product_name,
        quantity=quantity,
        unit_cost=unit_cost.quantize(CENT, rounding=ROUND_HALF_UP),
        batch_number=_to_text(_cell(row, _index_of(headers, mapping.get("batch_number")))),
        expiration_date=parse_business_date(_cell(row, _index_of(headers, mapping.get("expiration_date")))),
        date=parse_business_date(_cell(row, _index_of(headers, mapping.get("date")))),
    )


def validate_inventory_rows(
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    mapping: ColumnMapping,
    row_numbers: Sequence[int] | None = None,
) -> ValidationResult:
    """
    Turn raw rows into typed records; rows breaking a rule are set aside, not fixed.

    row_numbers gives the sheet row number of each row; defaults to 2.. (row 1 = header).
    """
    result = ValidationResult()
    for position, row in enumerate(rows):
        row_number = row_numbers[position] if row_numbers else position + 2
        outcome = validate_inventory_row(headers, row, mapping, row_number)
        if isinstance(outcome, RejectedRow):
            result.rejected.append(outcome)
        else:
            result.valid.append(outcome)
    return result


def validate_cost_row(
    headers: Sequence[str],
    row: Sequence[Any],
    mapping: ColumnMapping,
    row_number: int,
) -> CostRow | RejectedRow:
    errors: list[str] = []

    sku = _to_text(_cell(row, _index_of(headers, mapping.get("sku")))) or ""
    if not sku:
        errors.append("sku is required")

    cost = _to_decimal(_cell(row, _index_of(headers, mapping.get("cost"))))
    if cost is None:
        errors.append("cost must be a valid number")
    elif cost < 0:
        errors.append("cost must be >= 0")
    elif cost > MAX_MONEY:
        errors.append("cost is out of range")

    if errors:
        return RejectedRow(row_number=row_number, errors=errors)

    notes = _to_text(_cell(row, _index_of(headers, mapping.get("notes")))) or ""
    return CostRow(
        row_number=row_number,
        sku=sku,
        cost=cost.quantize(CENT, rounding=ROUND_HALF_UP),
        notes=notes,
    )


def validate_cost_rows(
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    mapping: ColumnMapping,
    row_numbers: Sequence[int] | None = None,
) -> ValidationResult:
    result = ValidationResult()
    for position, row in enumerate(rows):
        row_number = row_numbers[position] if row_numbers else position + 2
        outcome = validate_cost_row(headers, row, mapping, row_number)
        if isinstance(outcome, RejectedRow):
            result.rejected.append(outcome)
        else:
            result.valid.append(outcome)
    return result


def require_valid(result: ValidationResult) -> ValidationResult:
    if not result.valid:
        raise NoValidDataError(rejected=[r.to_dict() for r in result.rejected])
    return result
