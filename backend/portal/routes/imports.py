# Overview: Flask API routes for imports; parses input and returns JSON responses.

"""
Import Routes

Three explicit steps per uploaded file:
1. upload   -> rows staged, suggested column mapping returned
2. mapping  -> user-confirmed mapping applied, rows validated, preview returned
3. post     -> READY rows reconciled into inventory / product costs

Accepts Excel (.xlsx family, .xls) and CSV. Admin only.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..models.imports import IMPORT_TYPE_COST_SHEET, IMPORT_TYPE_INVENTORY
from ..services import import_service
from ..services.import_service import ImportBatchError, ImportBatchNotFoundError
from ..services.spreadsheet_reader import read_spreadsheet
from ..validation import MappingIncompleteError, NoValidDataError, ParseError


imports_bp = Blueprint("imports", __name__, url_prefix="/api/imports")

PREVIEW_ROWS = 10

UPLOAD_KINDS = {
    "inventory": IMPORT_TYPE_INVENTORY,
    "cost-sheet": IMPORT_TYPE_COST_SHEET,
}


def _batch_error_response(exc: ImportBatchError):
    status = 404 if isinstance(exc, ImportBatchNotFoundError) else 409
    return jsonify({"error": str(exc)}), status


@imports_bp.post("/<kind>/upload")
@require_auth
@require_role(ROLE_ADMIN)
def upload_route(kind: str):
    import_type = UPLOAD_KINDS.get(kind)
    if import_type is None:
        return jsonify({"error": f"Unknown import kind: {kind}"}), 404

    if "file" not in request.files:
        return jsonify({"error": "file is required"}), 400
    file = request.files["file"]

    try:
        sheet = read_spreadsheet(file.stream, file.filename)
    except ParseError as e:
        return jsonify({"error": str(e)}), 400

    try:
        batch = import_service.create_batch_from_sheet(
            sheet=sheet,
            import_type=import_type,
            created_by_user_id=g.current_user.id,
            source_file_name=file.filename,
        )
    except ImportBatchError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "batch": batch.to_dict(),
        "headers": sheet.headers,
        "suggested_mapping": batch.suggested_mapping,
        "preview": [
            {header: import_service.json_safe(value) for header, value in record.items()}
            for record in sheet.records()[:PREVIEW_ROWS]
        ],
    }), 201


@imports_bp.post("/batches/<int:batch_id>/mapping")
@require_auth
@require_role(ROLE_ADMIN)
def confirm_mapping_route(batch_id: int):
    data = request.get_json(silent=True) or {}
    mapping = data.get("mapping") or {}
    if not isinstance(mapping, dict):
        return jsonify({"error": "mapping must be an object"}), 400

    try:
        result = import_service.confirm_mapping(batch_id=batch_id, mapping=mapping)
    except MappingIncompleteError as e:
        return jsonify({"error": str(e), "missing": e.missing}), 400
    except NoValidDataError as e:
        return jsonify({"error": str(e), "rejected": e.rejected}), 400
    except ImportBatchError as e:
        return _batch_error_response(e)

    return jsonify(result), 200


@imports_bp.post("/batches/<int:batch_id>/post")
@require_auth
@require_role(ROLE_ADMIN)
def post_batch_route(batch_id: int):
    data = request.get_json(silent=True) or {}

    try:
        summary = import_service.post_batch(
            batch_id=batch_id,
            actor_user_id=g.current_user.id,
            in_reason=data.get("in_reason"),
        )
    except ImportBatchError as e:
        return _batch_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to post import batch %s", batch_id)
        return jsonify({"error": "Internal server error"}), 500

    if summary["errors"]:
        return jsonify({
            "error": f"{summary['errors']} row(s) failed to import; retry to re-post only those rows",
            "summary": summary,
        }), 207
    return jsonify({"summary": summary}), 200


@imports_bp.get("/batches/<int:batch_id>")
@require_auth
@require_role(ROLE_ADMIN)
def get_batch_route(batch_id: int):
    try:
        return jsonify({"batch": import_service.get_batch_status(batch_id=batch_id)}), 200
    except ImportBatchError as e:
        return _batch_error_response(e)


@imports_bp.get("/batches/<int:batch_id>/rows")
@require_auth
@require_role(ROLE_ADMIN)
def list_rows_route(batch_id: int):
    try:
        page = int(request.args.get("page", 1))
        per_page = int(request.args.get("per_page", 100))
    except ValueError:
        return jsonify({"error": "page and per_page must be integers"}), 400

    try:
        result = import_service.list_batch_rows(
            batch_id=batch_id,
            status=request.args.get("status"),
            page=page,
            per_page=per_page,
        )
    except ImportBatchError as e:
        return _batch_error_response(e)
    return jsonify(result), 200
