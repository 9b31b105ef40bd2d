from __future__ import annotations

from ..extensions import db
from portal.time_utils import to_utc_z


IMPORT_TYPE_INVENTORY = "INVENTORY"
IMPORT_TYPE_COST_SHEET = "COST_SHEET"


class ImportBatch(db.Model):
    """
    One uploaded spreadsheet moving through the ingestion pipeline.

    LIFECYCLE:
    1. MAPPING: Raw rows staged, column mapping suggested and awaiting confirmation
    2. VALIDATED: Mapping confirmed, every row marked READY or REJECTED
    3. POSTING: At least one row reconciled, others pending or errored
    4. COMPLETED: Every READY row posted
    5. FAILED: Posting finished with row errors (retry re-posts only those rows)

    DESIGN:
    - Nothing touches inventory or cost tables before the post step
    - Headers and the confirmed mapping are kept on the batch
    - Rows commit independently; there is no cross-row rollback
    """
    __tablename__ = "import_batches"
    __table_args__ = (
        db.Index("ix_import_batches_type_status", "import_type", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # INVENTORY or COST_SHEET
    import_type = db.Column(db.String(32), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="MAPPING", index=True)

    source_file_name = db.Column(db.String(255), nullable=True)
    source_file_format = db.Column(db.String(16), nullable=True)  # XLSX, XLS, CSV

    headers = db.Column(db.JSON, nullable=False, default=list)
    suggested_mapping = db.Column(db.JSON, nullable=True)
    column_mapping = db.Column(db.JSON, nullable=True)

    # In-reason selected at post time (inventory imports only)
    in_reason = db.Column(db.String(16), nullable=True)

    total_rows = db.Column(db.Integer, nullable=False, default=0)
    valid_rows = db.Column(db.Integer, nullable=False, default=0)
    rejected_rows = db.Column(db.Integer, nullable=False, default=0)
    posted_rows = db.Column(db.Integer, nullable=False, default=0)
    error_rows = db.Column(db.Integer, nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by = db.relationship("User", foreign_keys=[created_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "import_type": self.import_type,
            "status": self.status,
            "source_file_name": self.source_file_name,
            "source_file_format": self.source_file_format,
            "headers": self.headers or [],
            "suggested_mapping": self.suggested_mapping,
            "column_mapping": self.column_mapping,
            "in_reason": self.in_reason,
            "total_rows": self.total_rows,
            "valid_rows": self.valid_rows,
            "rejected_rows": self.rejected_rows,
            "posted_rows": self.posted_rows,
            "error_rows": self.error_rows,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "started_at": to_utc_z(self.started_at) if self.started_at else None,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
        }


class ImportStagingRow(db.Model):
    """
    Individual staged row from an import batch.

    - raw_data stores the original cell values as a list aligned with batch.headers
    - normalized_data holds the typed record once the row passes validation
    - validation_status and posting_status are tracked separately so a batch
      can be re-posted without re-validating
    """
    __tablename__ = "import_staging_rows"
    __table_args__ = (
        db.Index("ix_import_staging_batch_status", "batch_id", "validation_status"),
        db.UniqueConstraint("batch_id", "row_number", name="uq_import_staging_batch_row"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("import_batches.id"), nullable=False, index=True)

    # 1-based row number as the user sees it in the sheet (header row included)
    row_number = db.Column(db.Integer, nullable=False)

    raw_data = db.Column(db.JSON, nullable=False)
    normalized_data = db.Column(db.JSON, nullable=True)

    validation_status = db.Column(db.String(16), nullable=False, default="PENDING")  # PENDING, READY, REJECTED
    posting_status = db.Column(db.String(16), nullable=False, default="PENDING")  # PENDING, POSTED, ERROR

    error_message = db.Column(db.Text, nullable=True)
    posted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    batch = db.relationship("ImportBatch", backref=db.backref("rows", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_id": self.batch_id,
            "row_number": self.row_number,
            "raw_data": self.raw_data,
            "normalized_data": self.normalized_data,
            "validation_status": self.validation_status,
            "posting_status": self.posting_status,
            "error_message": self.error_message,
            "posted_at": to_utc_z(self.posted_at) if self.posted_at else None,
        }
