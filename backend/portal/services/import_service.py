# Overview: Service-layer operations for spreadsheet imports; stages, validates and posts batches.

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Mapping

from flask import current_app
from sqlalchemy import case, func

from ..extensions import db
from ..models import ImportBatch, ImportStagingRow
from portal.time_utils import utcnow
from ..validation import MappingIncompleteError, NoValidDataError, RowCommitError
from .column_inference import ColumnMapping, check_optional_fields, infer_columns, require_fields
from .import_schemas import SCHEMAS, SchemaContext, normalize_in_reason
from .row_validation import RejectedRow, require_valid
from .spreadsheet_reader import SheetData


class ImportBatchError(ValueError):
    """Raised when an import batch is missing or not in a state that allows the operation."""


class ImportBatchNotFoundError(ImportBatchError):
    """Raised when no batch exists for the given id."""


def json_safe(value: Any) -> Any:
    """Cell value as stored in JSON columns and previews; time-like cells become ISO text."""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, timedelta):
        return str(value)
    return value


def _schema_for(batch_or_type):
    import_type = batch_or_type if isinstance(batch_or_type, str) else batch_or_type.import_type
    schema = SCHEMAS.get(import_type)
    if not schema:
        raise ImportBatchError(f"Unsupported import_type: {import_type}")
    return schema


def _get_batch(batch_id: int) -> ImportBatch:
    batch = db.session.get(ImportBatch, batch_id)
    if not batch:
        raise ImportBatchNotFoundError("Import batch not found")
    return batch


def _refresh_batch_counts(batch: ImportBatch) -> None:
    counts = (
        db.session.query(
            func.count(ImportStagingRow.id).label("total"),
            func.sum(case((ImportStagingRow.validation_status == "READY", 1), else_=0)).label("ready"),
            func.sum(case((ImportStagingRow.validation_status == "REJECTED", 1), else_=0)).label("rejected"),
            func.sum(case((ImportStagingRow.posting_status == "POSTED", 1), else_=0)).label("posted"),
            func.sum(case((ImportStagingRow.posting_status == "ERROR", 1), else_=0)).label("post_error"),
        )
        .filter(ImportStagingRow.batch_id == batch.id)
        .one()
    )
    batch.total_rows = int(counts.total or 0)
    batch.valid_rows = int(counts.ready or 0)
    batch.rejected_rows = int(counts.rejected or 0)
    batch.posted_rows = int(counts.posted or 0)
    batch.error_rows = int(counts.post_error or 0)


def create_batch_from_sheet(
    *,
    sheet: SheetData,
    import_type: str,
    created_by_user_id: int,
    source_file_name: str | None = None,
) -> ImportBatch:
    """
    Stage every data row of a parsed sheet and attach the suggested mapping.

    Nothing outside the import tables is written here.
    """
    schema = _schema_for(import_type)
    suggested = infer_columns(sheet.headers, schema.keywords)

    batch = ImportBatch(
        import_type=import_type,
        status="MAPPING",
        source_file_name=source_file_name,
        source_file_format=sheet.source_format,
        headers=list(sheet.headers),
        suggested_mapping=suggested.to_dict(),
        created_by_user_id=created_by_user_id,
        created_at=utcnow(),
    )
    db.session.add(batch)
    db.session.flush()

    for row_number, row in zip(sheet.row_numbers, sheet.rows):
        db.session.add(
            ImportStagingRow(
                batch_id=batch.id,
                row_number=row_number,
                raw_data=[json_safe(v) for v in row],
                validation_status="PENDING",
                posting_status="PENDING",
            )
        )

    _refresh_batch_counts(batch)
    db.session.commit()
    current_app.logger.info(
        "Staged import batch %s (%s, %s rows) from %s",
        batch.id, import_type, batch.total_rows, source_file_name,
    )
    return batch


def confirm_mapping(*, batch_id: int, mapping: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Apply the user-confirmed mapping and validate every staged row.

    Overrides are merged over the suggestion, so a caller may send only the
    fields it changed; a field sent as null or "" is unset. Raises MappingIncompleteError when a required field
    has no column, and NoValidDataError when every row is rejected.
    """
    batch = _get_batch(batch_id)
    if batch.status in ("POSTING", "COMPLETED", "FAILED"):
        raise ImportBatchError("Mapping cannot change after posting has started")
    schema = _schema_for(batch)

    allowed = schema.keywords.keys()
    base = ColumnMapping.from_dict(batch.suggested_mapping, allowed)
    confirmed = base.merged(
        ColumnMapping.from_dict(mapping, allowed),
        cleared=ColumnMapping.cleared_fields(mapping, allowed),
    )

    require_fields(confirmed, batch.headers, schema.required_fields)
    check_optional_fields(confirmed, batch.headers)

    staged = batch.rows.order_by(ImportStagingRow.row_number.asc()).all()
    result = schema.validate_rows(
        batch.headers,
        [r.raw_data for r in staged],
        confirmed,
        [r.row_number for r in staged],
    )
    outcomes: dict[int, Any] = {o.row_number: o for o in (*result.valid, *result.rejected)}

    for row in staged:
        outcome = outcomes[row.row_number]
        if isinstance(outcome, RejectedRow):
            row.validation_status = "REJECTED"
            row.normalized_data = None
            row.error_message = "; ".join(outcome.errors)
        else:
            row.validation_status = "READY"
            row.normalized_data = outcome.to_dict()
            row.error_message = None

    batch.column_mapping = confirmed.to_dict()
    _refresh_batch_counts(batch)

    # Zero valid rows leaves the batch open for re-mapping
    batch.status = "VALIDATED" if result.valid else "MAPPING"
    db.session.commit()
    require_valid(result)

    return {
        "batch": batch.to_dict(),
        "column_mapping": confirmed.to_dict(),
        "valid": [v.to_dict() for v in result.valid],
        "rejected": [r.to_dict() for r in result.rejected],
    }


def _mark_already_posted(row: ImportStagingRow) -> None:
    row.posting_status = "POSTED"
    row.posted_at = row.posted_at or utcnow()
    row.error_message = None


def post_batch(*, batch_id: int, actor_user_id: int, in_reason: str | None = None) -> dict[str, Any]:
    """
    Reconcile every READY row that is not yet POSTED.

    Each row runs in its own savepoint: a failing row is rolled back alone,
    marked ERROR and logged; earlier rows stay committed and later rows still run.
    Re-posting the same batch only retries PENDING/ERROR rows.
    """
    batch = _get_batch(batch_id)
    if batch.status == "MAPPING":
        raise ImportBatchError("Confirm the column mapping before posting")
    schema = _schema_for(batch)

    reason = normalize_in_reason(in_reason) if in_reason is not None else batch.in_reason
    if schema.requires_reason() and not reason:
        raise ImportBatchError(
            "in_reason must be one of: purchase, return, gift, stocktake, transfer, other"
        )
    batch.in_reason = reason

    rows = (
        db.session.query(ImportStagingRow)
        .filter(ImportStagingRow.batch_id == batch.id)
        .filter(ImportStagingRow.validation_status == "READY")
        .filter(ImportStagingRow.posting_status.in_(["PENDING", "ERROR"]))
        .order_by(ImportStagingRow.row_number.asc())
        .all()
    )

    batch.status = "POSTING"
    batch.started_at = batch.started_at or utcnow()
    db.session.commit()

    processed = posted = skipped = errored = inserted = updated = 0

    for row in rows:
        processed += 1
        context = SchemaContext(
            batch_id=batch.id,
            actor_user_id=actor_user_id,
            row_number=row.row_number,
            in_reason=reason,
        )
        if schema.already_posted(context):
            _mark_already_posted(row)
            skipped += 1
            db.session.commit()
            continue

        normalized = row.normalized_data or {}
        nested = db.session.begin_nested()
        try:
            result = schema.post_row(normalized, context)
            nested.commit()
        except Exception as exc:  # noqa: BLE001
            nested.rollback()
            failure = RowCommitError(row.row_number, normalized.get("sku"), str(exc))
            row.posting_status = "ERROR"
            row.error_message = str(failure)
            errored += 1
            current_app.logger.warning("Import batch %s: %s", batch.id, failure)
            db.session.commit()
            continue

        row.posting_status = "POSTED"
        row.posted_at = utcnow()
        row.error_message = None
        posted += 1
        if result.get("created"):
            inserted += 1
        else:
            updated += 1
        db.session.commit()

    _refresh_batch_counts(batch)
    if batch.error_rows:
        batch.status = "FAILED"
    else:
        batch.status = "COMPLETED"
        batch.completed_at = utcnow()
    db.session.commit()

    current_app.logger.info(
        "Posted import batch %s: processed=%s posted=%s skipped=%s errors=%s",
        batch.id, processed, posted, skipped, errored,
    )
    return {
        "batch_id": batch.id,
        "processed": processed,
        "posted": posted,
        "skipped": skipped,
        "errors": errored,
        "inserted": inserted,
        "updated": updated,
        "status": batch.status,
    }


def get_batch_status(*, batch_id: int) -> dict[str, Any]:
    batch = _get_batch(batch_id)
    return batch.to_dict()


def list_batch_rows(
    *,
    batch_id: int,
    status: str | None = None,
    page: int = 1,
    per_page: int = 100,
) -> dict[str, Any]:
    _get_batch(batch_id)
    page = max(1, int(page or 1))
    per_page = max(1, min(500, int(per_page or 100)))

    query = db.session.query(ImportStagingRow).filter_by(batch_id=batch_id)
    if status:
        query = query.filter(
            (ImportStagingRow.validation_status == status)
            | (ImportStagingRow.posting_status == status)
        )

    total = query.count()
    rows = (
        query.order_by(ImportStagingRow.row_number.asc(), ImportStagingRow.id.asc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return {
        "rows": [r.to_dict() for r in rows],
        "page": page,
        "per_page": per_page,
        "total": total,
        "pages": (total + per_page - 1) // per_page if per_page else 1,
    }


def import_sheet(
    *,
    sheet: SheetData,
    import_type: str,
    actor_user_id: int,
    mapping: Mapping[str, Any] | None = None,
    in_reason: str | None = None,
    source_file_name: str | None = None,
) -> dict[str, Any]:
    """Upload, confirm and post in one call (CLI path; no interactive review)."""
    batch = create_batch_from_sheet(
        sheet=sheet,
        import_type=import_type,
        created_by_user_id=actor_user_id,
        source_file_name=source_file_name,
    )
    preview = confirm_mapping(batch_id=batch.id, mapping=mapping)
    summary = post_batch(batch_id=batch.id, actor_user_id=actor_user_id, in_reason=in_reason)
    summary["rejected"] = preview["rejected"]
    return summary


__all__ = [
    "ImportBatchError",
    "ImportBatchNotFoundError",
    "MappingIncompleteError",
    "NoValidDataError",
    "create_batch_from_sheet",
    "confirm_mapping",
    "post_batch",
    "get_batch_status",
    "list_batch_rows",
    "import_sheet",
]
