from __future__ import annotations

from ..extensions import db
from portal.time_utils import to_utc_z


class Task(db.Model):
    """Work item assigned by one portal user to another."""
    __tablename__ = "tasks"
    __table_args__ = (
        db.Index("ix_tasks_assignee_created", "assigned_to_user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    assigned_to_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    priority = db.Column(db.String(16), nullable=False, default="medium")  # low, medium, high
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)  # pending, in_progress, completed

    deadline = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "created_by_user_id": self.created_by_user_id,
            "assigned_to_user_id": self.assigned_to_user_id,
            "priority": self.priority,
            "status": self.status,
            "deadline": to_utc_z(self.deadline) if self.deadline else None,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "created_at": to_utc_z(self.created_at),
        }


class NotificationCursor(db.Model):
    """
    Per-user "last seen" marker for task notifications.

    Tasks assigned to the user with created_at > last_seen_at count as new.
    """
    __tablename__ = "notification_cursors"
    __table_args__ = (
        db.UniqueConstraint("user_id", "channel", name="uq_notification_cursor_user_channel"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    channel = db.Column(db.String(32), nullable=False, default="tasks")
    last_seen_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "channel": self.channel,
            "last_seen_at": to_utc_z(self.last_seen_at),
        }
