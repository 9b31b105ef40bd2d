# Overview: Service-layer operations for tasks and the per-user notification cursor.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import NotificationCursor, Task, User
from portal.time_utils import utcnow


class TaskError(ValueError):
    """Raised when a task operation is invalid."""


class TaskNotFoundError(TaskError):
    """Raised when no task exists for the given id."""


PRIORITIES = ("low", "medium", "high")
STATUSES = ("pending", "in_progress", "completed")
TASK_CHANNEL = "tasks"


def create_task(
    *,
    title: str,
    created_by_user_id: int,
    description: str | None = None,
    assigned_to_user_id: int | None = None,
    priority: str = "medium",
    deadline: datetime | None = None,
) -> Task:
    title = (title or "").strip()
    if not title:
        raise TaskError("title is required")
    if priority not in PRIORITIES:
        raise TaskError(f"priority must be one of: {', '.join(PRIORITIES)}")
    if assigned_to_user_id is not None and db.session.get(User, assigned_to_user_id) is None:
        raise TaskError("Assignee not found")

    task = Task(
        title=title,
        description=description,
        created_by_user_id=created_by_user_id,
        assigned_to_user_id=assigned_to_user_id,
        priority=priority,
        status="pending",
        deadline=deadline,
        # Set explicitly so it compares cleanly with cursor timestamps
        created_at=utcnow(),
    )
    db.session.add(task)
    db.session.commit()
    return task


def list_tasks(*, user_id: int, scope: str = "assigned", status: str | None = None) -> list[Task]:
    """scope: 'assigned' (to me) or 'created' (by me)."""
    query = db.session.query(Task)
    if scope == "created":
        query = query.filter(Task.created_by_user_id == user_id)
    elif scope == "assigned":
        query = query.filter(Task.assigned_to_user_id == user_id)
    else:
        raise TaskError("scope must be 'assigned' or 'created'")
    if status:
        query = query.filter(Task.status == status)
    return query.order_by(Task.created_at.desc(), Task.id.desc()).all()


def update_task_status(*, task_id: int, user_id: int, status: str) -> Task:
    """Only the creator or the assignee may move a task."""
    if status not in STATUSES:
        raise TaskError(f"status must be one of: {', '.join(STATUSES)}")
    task = db.session.get(Task, task_id)
    if task is None:
        raise TaskNotFoundError("Task not found")
    if user_id not in (task.created_by_user_id, task.assigned_to_user_id):
        raise TaskError("Only the creator or assignee can update this task")

    task.status = status
    task.completed_at = utcnow() if status == "completed" else None
    db.session.commit()
    return task


def get_cursor(user_id: int, channel: str = TASK_CHANNEL) -> NotificationCursor | None:
    return db.session.query(NotificationCursor).filter_by(user_id=user_id, channel=channel).first()


def count_new_tasks(user_id: int, cursor: NotificationCursor | None = None) -> int:
    """
    Tasks assigned to the user and created after the cursor.

    A user without a cursor has seen nothing, so every assigned task counts.
    """
    cursor = cursor if cursor is not None else get_cursor(user_id)
    query = db.session.query(Task).filter(Task.assigned_to_user_id == user_id)
    if cursor is not None:
        query = query.filter(Task.created_at > cursor.last_seen_at)
    return query.count()


def mark_tasks_seen(user_id: int, now: datetime | None = None) -> NotificationCursor:
    """Advance the cursor; it never moves backwards."""
    now = now or utcnow()
    cursor = get_cursor(user_id)
    if cursor is None:
        cursor = NotificationCursor(user_id=user_id, channel=TASK_CHANNEL, last_seen_at=now)
        db.session.add(cursor)
    elif cursor.last_seen_at < now:
        cursor.last_seen_at = now
    db.session.commit()
    return cursor
