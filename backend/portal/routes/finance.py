# Overview: Flask API routes for finance records and settlement profit analysis.

"""
Finance Routes (admin only)

- Fixed costs and payroll records are the stored inputs of profit analysis.
- Profit analysis and cleaned export take a settlement sheet upload that is
  mapped and analysed per request; the sheet itself is never stored.
"""

import io
from datetime import date

from flask import Blueprint, Response, g, request, send_file

from ..decorators import require_auth, require_role
from ..models import FixedCost, PayrollRecord
from ..models.auth import ROLE_ADMIN
from ..services import cost_service, profit_service
from ..services.cost_service import CostRecordError
from ..services.spreadsheet_reader import read_spreadsheet
from ..validation import (
    MappingIncompleteError,
    ModelValidationPolicy,
    ParseError,
    ValidationError,
    enforce_rules_fixed_cost,
    enforce_rules_payroll,
    validate_payload,
)


finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")

FIXED_COST_POLICY = ModelValidationPolicy(
    writable_fields={"cost_name", "cost_type", "amount", "description", "start_date", "is_active"},
    required_on_create={"cost_name", "cost_type", "amount"},
)

PAYROLL_POLICY = ModelValidationPolicy(
    writable_fields={
        "employee_name",
        "department",
        "work_date",
        "hours_worked",
        "hourly_rate",
        "commission",
        "total_amount",
        "payroll_period",
        "notes",
    },
    required_on_create={"employee_name", "work_date"},
)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _date_arg(source, name: str) -> date | None:
    raw = source.get(name)
    if not raw:
        return None
    try:
        return date.fromisoformat(str(raw).strip())
    except ValueError:
        raise ValidationError(f"{name} must be a YYYY-MM-DD date")


@finance_bp.get("/fixed-costs")
@require_auth
@require_role(ROLE_ADMIN)
def list_fixed_costs_route():
    active_only = request.args.get("active") in ("1", "true", "yes")
    costs = cost_service.list_fixed_costs(active_only=active_only)
    return {"fixed_costs": [c.to_dict() for c in costs]}, 200


@finance_bp.post("/fixed-costs")
@require_auth
@require_role(ROLE_ADMIN)
def create_fixed_cost_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=FixedCost, payload=payload, policy=FIXED_COST_POLICY, partial=False)
        enforce_rules_fixed_cost(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    cost = cost_service.create_fixed_cost(patch=patch, actor_user_id=g.current_user.id)
    return {"fixed_cost": cost.to_dict()}, 201


@finance_bp.post("/fixed-costs/<int:cost_id>/deactivate")
@require_auth
@require_role(ROLE_ADMIN)
def deactivate_fixed_cost_route(cost_id: int):
    try:
        cost = cost_service.deactivate_fixed_cost(cost_id)
    except CostRecordError as e:
        return {"error": str(e)}, 404
    return {"fixed_cost": cost.to_dict()}, 200


@finance_bp.get("/payroll")
@require_auth
@require_role(ROLE_ADMIN)
def list_payroll_route():
    try:
        start = _date_arg(request.args, "start_date")
        end = _date_arg(request.args, "end_date")
    except ValidationError as e:
        return {"error": str(e)}, 400
    records = cost_service.list_payroll_records(start=start, end=end)
    return {"payroll": [r.to_dict() for r in records]}, 200


@finance_bp.post("/payroll")
@require_auth
@require_role(ROLE_ADMIN)
def create_payroll_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=PayrollRecord, payload=payload, policy=PAYROLL_POLICY, partial=False)
        enforce_rules_payroll(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    record = cost_service.create_payroll_record(patch=patch, actor_user_id=g.current_user.id)
    return {"payroll_record": record.to_dict()}, 201


@finance_bp.get("/product-costs")
@require_auth
@require_role(ROLE_ADMIN)
def list_product_costs_route():
    costs = cost_service.list_product_costs(search=request.args.get("q"))
    return {"product_costs": [c.to_dict() for c in costs]}, 200


def _settlement_from_request():
    """Read the uploaded settlement sheet and its form fields."""
    if "file" not in request.files:
        raise ValidationError("file is required")
    file = request.files["file"]
    sheet = read_spreadsheet(file.stream, file.filename)
    mapping = {
        "statement_date": request.form.get("date_column"),
        "settlement_amount": request.form.get("amount_column"),
    }
    start = _date_arg(request.form, "start_date")
    end = _date_arg(request.form, "end_date")
    return sheet, mapping, start, end


@finance_bp.post("/profit-analysis")
@require_auth
@require_role(ROLE_ADMIN)
def profit_analysis_route():
    """
    multipart/form-data: file, date_column, amount_column, start_date?, end_date?, format?

    format=json returns the summary as a downloadable report.
    """
    try:
        sheet, mapping, start, end = _settlement_from_request()
        analysis, _rows = profit_service.analyze_settlement(sheet, mapping, start=start, end=end)
    except MappingIncompleteError as e:
        return {"error": str(e), "missing": e.missing}, 400
    except (ParseError, ValidationError) as e:
        return {"error": str(e)}, 400

    if request.form.get("format") == "json":
        body = profit_service.export_analysis_json(analysis)
        filename = f"profit_analysis_report_{date.today().isoformat()}.json"
        return Response(
            body,
            mimetype="application/json",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    return {"analysis": analysis.to_dict()}, 200


@finance_bp.post("/cleaned-export")
@require_auth
@require_role(ROLE_ADMIN)
def cleaned_export_route():
    try:
        sheet, mapping, start, end = _settlement_from_request()
        rows = profit_service.filter_by_date(
            profit_service.map_settlement_rows(sheet.records(), mapping), start, end
        )
    except MappingIncompleteError as e:
        return {"error": str(e), "missing": e.missing}, 400
    except (ParseError, ValidationError) as e:
        return {"error": str(e)}, 400

    if not rows:
        return {"error": "No data to export"}, 400

    data = profit_service.export_cleaned_workbook(rows)
    return send_file(
        io.BytesIO(data),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=f"cleaned_financial_report_{date.today().isoformat()}.xlsx",
    )
