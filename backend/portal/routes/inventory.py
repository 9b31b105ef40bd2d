# backend/portal/routes/inventory.py
"""
Inventory routes.

SECURITY: All routes require authentication.
- Reads (list, lookup, history) are open to admin and employee
- Stock-out and detail edits are admin only
"""
from datetime import date

from flask import Blueprint, request, g

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN, ROLE_EMPLOYEE
from ..services import inventory_service
from ..services.inventory_service import InventoryError, InventoryNotFoundError


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _inventory_error(e: InventoryError):
    status = 404 if isinstance(e, InventoryNotFoundError) else 400
    return {"error": str(e)}, status


def _parse_date(raw, field: str):
    if raw in (None, ""):
        return None
    try:
        return date.fromisoformat(str(raw).strip())
    except ValueError:
        raise InventoryError(f"{field} must be a YYYY-MM-DD date")


@inventory_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_EMPLOYEE)
def list_inventory_route():
    page = request.args.get("page", 1, type=int)
    per_page = request.args.get("per_page", 100, type=int)
    return inventory_service.list_inventory(
        search=request.args.get("q"),
        page=page,
        per_page=per_page,
    ), 200


@inventory_bp.get("/history")
@require_auth
@require_role(ROLE_ADMIN, ROLE_EMPLOYEE)
def inventory_history_route():
    try:
        rows = inventory_service.list_history(
            sku=request.args.get("sku"),
            operation_type=request.args.get("operation_type"),
            limit=request.args.get("limit", 200, type=int),
        )
    except InventoryError as e:
        return _inventory_error(e)
    return {"history": [r.to_dict() for r in rows]}, 200


@inventory_bp.get("/<sku>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_EMPLOYEE)
def get_item_route(sku: str):
    try:
        item = inventory_service.get_item(sku)
    except InventoryError as e:
        return _inventory_error(e)
    return {"item": item.to_dict()}, 200


@inventory_bp.post("/<sku>/stock-out")
@require_auth
@require_role(ROLE_ADMIN)
def stock_out_route(sku: str):
    """
    Remove stock. Body: {"quantity": int, "reason": str, "out_date": "YYYY-MM-DD"?}
    """
    payload = request.get_json(silent=True) or {}
    try:
        item = inventory_service.stock_out(
            sku=sku,
            quantity=payload.get("quantity"),
            reason=payload.get("reason"),
            out_date=_parse_date(payload.get("out_date"), "out_date"),
            actor_user_id=g.current_user.id,
        )
    except InventoryError as e:
        return _inventory_error(e)
    return {"item": item.to_dict()}, 200


@inventory_bp.patch("/<sku>")
@require_auth
@require_role(ROLE_ADMIN)
def update_item_route(sku: str):
    """
    Edit product_name / batch_number / expiration_date.

    Send "version_id" from the last read to reject edits of a stale copy.
    """
    payload = dict(request.get_json(silent=True) or {})
    expected_version = payload.pop("version_id", None)
    try:
        if "expiration_date" in payload:
            payload["expiration_date"] = _parse_date(payload["expiration_date"], "expiration_date")
        if "product_name" in payload and not str(payload["product_name"] or "").strip():
            raise InventoryError("product_name cannot be blank")
        item = inventory_service.update_item_details(
            sku=sku,
            patch=payload,
            expected_version=expected_version,
        )
    except InventoryError as e:
        return _inventory_error(e)
    return {"item": item.to_dict()}, 200
