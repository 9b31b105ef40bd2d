# Overview: Settlement-sheet profit analysis and its exports.

"""
Profit Aggregator

Inputs:
- a settlement sheet uploaded by the user, mapped to statement date and
  settlement amount columns (never persisted)
- active FixedCost rows and every PayrollRecord total, read fresh per call

Formula:
    total_settlement        = sum(settlement amounts)
    negative_count          = count(amount < 0)
    total_fixed_costs       = sum(active costs; monthly / DAYS_PER_MONTH, others as-is)
    total_payroll_costs     = sum(payroll totals)
    estimated_product_costs = total_settlement * PRODUCT_COST_RATIO
    net_profit              = total_settlement - product - fixed - payroll
    profit_margin           = net_profit / total_settlement * 100 (0 unless the total is positive)

KNOWN SIMPLIFICATION: product cost is a flat ratio of revenue, not per-SKU cost.
"""

from __future__ import annotations

import io
import json
import math
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Iterable, Mapping, Sequence

from flask import current_app
from openpyxl import Workbook

from ..extensions import db
from ..models import FixedCost, PayrollRecord
from ..models.finance import COST_TYPE_MONTHLY
from portal.time_utils import parse_business_date, utcnow
from ..validation import MappingIncompleteError
from .spreadsheet_reader import SheetData


DEFAULT_PRODUCT_COST_RATIO = 0.6
DEFAULT_DAYS_PER_MONTH = 30

SETTLEMENT_FIELDS = ("statement_date", "settlement_amount")


@dataclass
class SettlementRow:
    statement_date: Any
    settlement_amount: float
    # Original sheet cells, kept for the cleaned export
    source: dict[str, Any] = field(default_factory=dict)

    @property
    def is_negative(self) -> bool:
        return self.settlement_amount < 0


@dataclass
class ProfitAnalysis:
    total_orders: int
    total_settlement: float
    negative_count: int
    estimated_product_costs: float
    total_fixed_costs: float
    total_payroll_costs: float
    net_profit: float
    profit_margin: float

    def to_dict(self) -> dict:
        return {
            "totalOrders": self.total_orders,
            "totalSettlement": self.total_settlement,
            "negativeCount": self.negative_count,
            "estimatedProductCosts": self.estimated_product_costs,
            "totalFixedCosts": self.total_fixed_costs,
            "totalPayrollCosts": self.total_payroll_costs,
            "netProfit": self.net_profit,
            "profitMargin": self.profit_margin,
        }


def _amount(value: Any) -> float:
    """Settlement cell -> float. Blank or non-numeric cells count as 0.0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "").replace("$", "")
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
    return number if math.isfinite(number) else 0.0


def map_settlement_rows(
    records: Iterable[Mapping[str, Any]],
    field_mapping: Mapping[str, str | None],
) -> list[SettlementRow]:
    """
    Apply a {statement_date: header, settlement_amount: header} mapping.

    Raises MappingIncompleteError when either field is unmapped.
    """
    missing = [name for name in SETTLEMENT_FIELDS if not field_mapping.get(name)]
    if missing:
        raise MappingIncompleteError(missing)

    date_header = field_mapping["statement_date"]
    amount_header = field_mapping["settlement_amount"]
    return [
        SettlementRow(
            statement_date=record.get(date_header),
            settlement_amount=_amount(record.get(amount_header)),
            source=dict(record),
        )
        for record in records
    ]


def filter_by_date(
    rows: Sequence[SettlementRow],
    start: date | None = None,
    end: date | None = None,
) -> list[SettlementRow]:
    """Inclusive range filter. Rows whose date cannot be read are kept."""
    if start is None and end is None:
        return list(rows)
    kept = []
    for row in rows:
        row_date = parse_business_date(row.statement_date)
        if row_date is None:
            kept.append(row)
            continue
        if start is not None and row_date < start:
            continue
        if end is not None and row_date > end:
            continue
        kept.append(row)
    return kept


def compute_profit_analysis(
    rows: Sequence[SettlementRow],
    fixed_costs: Iterable[tuple[str, float]],
    payroll_totals: Iterable[float],
    product_cost_ratio: float = DEFAULT_PRODUCT_COST_RATIO,
    days_per_month: int = DEFAULT_DAYS_PER_MONTH,
) -> ProfitAnalysis:
    """
    Pure computation over already-loaded inputs.

    fixed_costs is a sequence of (cost_type, amount) pairs for active costs only.
    """
    total_settlement = sum(r.settlement_amount for r in rows)
    negative_count = sum(1 for r in rows if r.is_negative)

    total_fixed = 0.0
    for cost_type, amount in fixed_costs:
        amount = float(amount or 0)
        total_fixed += amount / days_per_month if cost_type == COST_TYPE_MONTHLY else amount

    total_payroll = sum(float(t or 0) for t in payroll_totals)
    estimated_product = total_settlement * product_cost_ratio
    net_profit = total_settlement - estimated_product - total_fixed - total_payroll
    margin = (net_profit / total_settlement * 100) if total_settlement > 0 else 0.0

    return ProfitAnalysis(
        total_orders=len(rows),
        total_settlement=total_settlement,
        negative_count=negative_count,
        estimated_product_costs=estimated_product,
        total_fixed_costs=total_fixed,
        total_payroll_costs=total_payroll,
        net_profit=net_profit,
        profit_margin=margin,
    )


def load_cost_inputs() -> tuple[list[tuple[str, float]], list[float]]:
    """Active fixed costs and all payroll totals, straight from the database."""
    fixed = [
        (c.cost_type, float(c.amount))
        for c in db.session.query(FixedCost).filter(FixedCost.is_active.is_(True)).all()
    ]
    payroll = [float(t) for (t,) in db.session.query(PayrollRecord.total_amount).all()]
    return fixed, payroll


def analyze_settlement(
    sheet: SheetData,
    field_mapping: Mapping[str, str | None],
    *,
    start: date | None = None,
    end: date | None = None,
) -> tuple[ProfitAnalysis, list[SettlementRow]]:
    rows = filter_by_date(map_settlement_rows(sheet.records(), field_mapping), start, end)
    fixed, payroll = load_cost_inputs()
    analysis = compute_profit_analysis(
        rows,
        fixed,
        payroll,
        product_cost_ratio=float(current_app.config.get("PRODUCT_COST_RATIO", DEFAULT_PRODUCT_COST_RATIO)),
        days_per_month=int(current_app.config.get("DAYS_PER_MONTH", DEFAULT_DAYS_PER_MONTH)),
    )
    current_app.logger.info(
        "Profit analysis over %s settlement rows: net_profit=%.2f margin=%.2f",
        analysis.total_orders, analysis.net_profit, analysis.profit_margin,
    )
    return analysis, rows


def _export_cell(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool, date)):
        return value
    return str(value)


def export_cleaned_workbook(rows: Sequence[SettlementRow]) -> bytes:
    """
    Cleaned settlement data as xlsx bytes.

    Columns: Statement Date, Settlement Amount, Negative, then the original columns.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Cleaned Data"

    original_headers: list[str] = []
    for row in rows:
        for header in row.source:
            if header not in original_headers:
                original_headers.append(header)

    ws.append(["Statement Date", "Settlement Amount", "Negative", *original_headers])
    for row in rows:
        ws.append([
            _export_cell(row.statement_date),
            row.settlement_amount,
            "Yes" if row.is_negative else "No",
            *[_export_cell(row.source.get(h)) for h in original_headers],
        ])

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def export_analysis_json(analysis: ProfitAnalysis, *, report_date: date | None = None) -> str:
    payload = {"reportDate": (report_date or utcnow().date()).isoformat(), **analysis.to_dict()}
    return json.dumps(payload, indent=2, ensure_ascii=False)


def analysis_as_dict(analysis: ProfitAnalysis) -> dict:
    """snake_case view for CLI output."""
    return asdict(analysis)
