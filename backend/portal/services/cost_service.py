# Overview: Service-layer operations for fixed costs, payroll and product costs.

from __future__ import annotations

from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from ..extensions import db
from ..models import FixedCost, PayrollRecord, ProductCost


class CostRecordError(ValueError):
    """Raised when a finance record cannot be found or changed."""


CENT = Decimal("0.01")


def create_fixed_cost(*, patch: dict, actor_user_id: int) -> FixedCost:
    cost = FixedCost(**patch, created_by_user_id=actor_user_id)
    if cost.is_active is None:
        cost.is_active = True
    db.session.add(cost)
    db.session.commit()
    return cost


def list_fixed_costs(*, active_only: bool = False) -> list[FixedCost]:
    query = db.session.query(FixedCost)
    if active_only:
        query = query.filter(FixedCost.is_active.is_(True))
    return query.order_by(FixedCost.created_at.desc(), FixedCost.id.desc()).all()


def deactivate_fixed_cost(cost_id: int) -> FixedCost:
    """Soft delete: inactive costs are kept but no longer counted in profit analysis."""
    cost = db.session.get(FixedCost, cost_id)
    if cost is None:
        raise CostRecordError("Fixed cost not found")
    cost.is_active = False
    db.session.commit()
    return cost


def payroll_total(patch: dict) -> Decimal:
    """hours_worked * hourly_rate + commission, rounded to cents."""
    hours = patch.get("hours_worked") or Decimal("0")
    rate = patch.get("hourly_rate") or Decimal("0")
    commission = patch.get("commission") or Decimal("0")
    return (Decimal(hours) * Decimal(rate) + Decimal(commission)).quantize(CENT, rounding=ROUND_HALF_UP)


def create_payroll_record(*, patch: dict, actor_user_id: int) -> PayrollRecord:
    values = dict(patch)
    if values.get("total_amount") is None:
        values["total_amount"] = payroll_total(values)
    values.setdefault("hours_worked", Decimal("0"))
    values.setdefault("hourly_rate", Decimal("0"))
    record = PayrollRecord(**values, created_by_user_id=actor_user_id)
    db.session.add(record)
    db.session.commit()
    return record


def list_payroll_records(*, start: date | None = None, end: date | None = None) -> list[PayrollRecord]:
    query = db.session.query(PayrollRecord)
    if start:
        query = query.filter(PayrollRecord.work_date >= start)
    if end:
        query = query.filter(PayrollRecord.work_date <= end)
    return query.order_by(PayrollRecord.work_date.desc(), PayrollRecord.id.desc()).all()


def list_product_costs(*, search: str | None = None) -> list[ProductCost]:
    query = db.session.query(ProductCost)
    if search:
        query = query.filter(ProductCost.sku.ilike(f"%{search.strip()}%"))
    return query.order_by(ProductCost.sku.asc()).all()
