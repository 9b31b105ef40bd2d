# Overview: Flask API routes for tasks and task notifications.

from flask import Blueprint, request, g

from ..decorators import require_auth
from ..services import task_service
from ..services.task_service import TaskError, TaskNotFoundError
from portal.time_utils import parse_iso_datetime


tasks_bp = Blueprint("tasks", __name__, url_prefix="/api/tasks")


@tasks_bp.get("")
@require_auth
def list_tasks_route():
    try:
        tasks = task_service.list_tasks(
            user_id=g.current_user.id,
            scope=request.args.get("scope", "assigned"),
            status=request.args.get("status"),
        )
    except TaskError as e:
        return {"error": str(e)}, 400
    return {"tasks": [t.to_dict() for t in tasks]}, 200


@tasks_bp.post("")
@require_auth
def create_task_route():
    payload = request.get_json(silent=True) or {}
    try:
        deadline = parse_iso_datetime(payload.get("deadline"))
    except ValueError:
        return {"error": "deadline must be an ISO-8601 datetime"}, 400

    try:
        task = task_service.create_task(
            title=payload.get("title"),
            description=payload.get("description"),
            assigned_to_user_id=payload.get("assigned_to_user_id"),
            priority=payload.get("priority") or "medium",
            deadline=deadline,
            created_by_user_id=g.current_user.id,
        )
    except TaskError as e:
        return {"error": str(e)}, 400
    return {"task": task.to_dict()}, 201


@tasks_bp.patch("/<int:task_id>")
@require_auth
def update_task_route(task_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        task = task_service.update_task_status(
            task_id=task_id,
            user_id=g.current_user.id,
            status=payload.get("status"),
        )
    except TaskError as e:
        status = 404 if isinstance(e, TaskNotFoundError) else 400
        return {"error": str(e)}, status
    return {"task": task.to_dict()}, 200


@tasks_bp.get("/notifications")
@require_auth
def notifications_route():
    cursor = task_service.get_cursor(g.current_user.id)
    return {
        "new_tasks": task_service.count_new_tasks(g.current_user.id, cursor),
        "last_seen_at": cursor.to_dict()["last_seen_at"] if cursor else None,
    }, 200


@tasks_bp.post("/notifications/seen")
@require_auth
def mark_seen_route():
    cursor = task_service.mark_tasks_seen(g.current_user.id)
    return {"cursor": cursor.to_dict(), "new_tasks": 0}, 200
