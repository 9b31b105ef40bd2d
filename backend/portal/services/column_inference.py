# Overview: Suggests which spreadsheet column feeds each semantic field.

"""
Column inference for spreadsheet imports.

The suggestion is an assist only: callers always show it to the user, who
confirms or overrides it before any row is validated.

Matching: for each field, walk its keyword list in rank order and pick the
first header (in sheet order) whose lowercased text contains the keyword.
Priority is therefore keyword rank, not header position. Fields with no
match stay unset.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from ..validation import MappingIncompleteError


# Quantity may be mapped to this sentinel instead of a header: every row counts as 1.
DEFAULT_QUANTITY_ONE = "default-quantity-1"

INVENTORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "sku": ("sku", "编号", "货号", "商品编号", "item code", "product code"),
    "product_name": ("name", "名称", "商品名称", "产品名称", "product name", "item name", "bag name"),
    "quantity": ("quantity", "数量", "qty", "入库数量", "amount"),
    "unit_cost": ("cost", "成本", "单价", "价格", "price", "unit cost", "bag cost"),
    "batch_number": ("batch", "批次", "批号", "batch number", "lot"),
    "expiration_date": ("expiration", "有效期", "过期时间", "expiry date", "exp date"),
    "date": ("date", "日期", "时间", "入库时间", "导入时间", "import date"),
}

INVENTORY_REQUIRED = ("sku", "product_name", "quantity", "unit_cost")

COST_SHEET_KEYWORDS: dict[str, tuple[str, ...]] = {
    "sku": ("sku",),
    "cost": ("cost",),
    "notes": ("note", "备注"),
}

COST_SHEET_REQUIRED = ("sku", "cost")


@dataclass
class ColumnMapping:
    """Semantic field -> header text for one import session. Never persisted as-is."""
    fields: dict[str, str] = field(default_factory=dict)

    def get(self, name: str) -> str | None:
        value = self.fields.get(name)
        return value or None

    def set(self, name: str, header: str | None) -> None:
        if header:
            self.fields[name] = header
        else:
            self.fields.pop(name, None)

    @property
    def quantity_defaults_to_one(self) -> bool:
        return self.fields.get("quantity") == DEFAULT_QUANTITY_ONE

    def to_dict(self) -> dict[str, str]:
        return dict(self.fields)

    @classmethod
    def from_dict(cls, data: Mapping[str, object] | None, allowed: Iterable[str]) -> "ColumnMapping":
        allowed = set(allowed)
        fields: dict[str, str] = {}
        for key, value in (data or {}).items():
            if key not in allowed or value is None:
                continue
            text = str(value).strip()
            if text:
                fields[key] = text
        return cls(fields=fields)

    @staticmethod
    def cleared_fields(data: Mapping[str, object] | None, allowed: Iterable[str]) -> list[str]:
        """Fields sent as null or blank: the caller wants them unset."""
        allowed = set(allowed)
        return [
            key for key, value in (data or {}).items()
            if key in allowed and (value is None or not str(value).strip())
        ]

    def merged(self, overrides: "ColumnMapping", cleared: Iterable[str] = ()) -> "ColumnMapping":
        combined = dict(self.fields)
        combined.update(overrides.fields)
        for name in cleared:
            combined.pop(name, None)
        return ColumnMapping(fields=combined)


def infer_columns(headers: Iterable[str], keywords: Mapping[str, Iterable[str]] = INVENTORY_KEYWORDS) -> ColumnMapping:
    """Pure function: header texts -> best-effort ColumnMapping."""
    header_list = [h for h in headers if h]
    lowered = [(h, h.lower()) for h in header_list]
    mapping = ColumnMapping()

    for field_name, field_keywords in keywords.items():
        for keyword in field_keywords:
            needle = keyword.lower()
            match = next((original for original, low in lowered if needle in low), None)
            if match is not None:
                mapping.set(field_name, match)
                break

    return mapping


def require_fields(mapping: ColumnMapping, headers: Iterable[str], required: Iterable[str]) -> None:
    """
    Raise MappingIncompleteError unless every required field points at a real header.

    quantity is also satisfied by the default-to-1 sentinel.
    """
    header_set = set(headers)
    missing: list[str] = []
    for name in required:
        value = mapping.get(name)
        if name == "quantity" and value == DEFAULT_QUANTITY_ONE:
            continue
        if not value or value not in header_set:
            missing.append(name)
    if missing:
        raise MappingIncompleteError(missing)


def check_optional_fields(mapping: ColumnMapping, headers: Iterable[str]) -> None:
    """Optional fields may be unset, but a set field must name an existing header."""
    header_set = set(headers)
    unknown = [
        name for name, value in mapping.fields.items()
        if value != DEFAULT_QUANTITY_ONE and value not in header_set
    ]
    if unknown:
        raise MappingIncompleteError(unknown, f"Mapped columns not found in sheet for: {', '.join(unknown)}")
