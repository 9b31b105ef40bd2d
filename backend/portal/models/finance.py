from __future__ import annotations

from ..extensions import db
from portal.time_utils import to_iso_date, to_utc_z


COST_TYPE_MONTHLY = "monthly"
COST_TYPE_DAILY = "daily"


class FixedCost(db.Model):
    """
    Recurring operating cost (rent, software, utilities).

    cost_type decides how the amount is spread in profit analysis:
    monthly amounts are divided by DAYS_PER_MONTH, everything else counts as-is.
    Only is_active rows are read by the analysis.
    """
    __tablename__ = "fixed_costs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    cost_name = db.Column(db.String(128), nullable=False)
    cost_type = db.Column(db.String(16), nullable=False, default=COST_TYPE_MONTHLY)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.Text, nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cost_name": self.cost_name,
            "cost_type": self.cost_type,
            "amount": float(self.amount) if self.amount is not None else None,
            "description": self.description,
            "start_date": to_iso_date(self.start_date),
            "is_active": self.is_active,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PayrollRecord(db.Model):
    __tablename__ = "payroll_records"
    __table_args__ = (
        db.Index("ix_payroll_records_work_date", "work_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_name = db.Column(db.String(128), nullable=False)
    department = db.Column(db.String(64), nullable=True)
    work_date = db.Column(db.Date, nullable=False)

    hours_worked = db.Column(db.Numeric(8, 2), nullable=False, default=0)
    hourly_rate = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    commission = db.Column(db.Numeric(12, 2), nullable=True)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)

    payroll_period = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_name": self.employee_name,
            "department": self.department,
            "work_date": to_iso_date(self.work_date),
            "hours_worked": float(self.hours_worked) if self.hours_worked is not None else None,
            "hourly_rate": float(self.hourly_rate) if self.hourly_rate is not None else None,
            "commission": float(self.commission) if self.commission is not None else None,
            "total_amount": float(self.total_amount) if self.total_amount is not None else None,
            "payroll_period": self.payroll_period,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
