"""
Task and notification cursor tests.

New-task counts come from an explicit per-user cursor record.
"""

from datetime import timedelta

import pytest

from portal.models.auth import ROLE_USER
from portal.services import task_service
from portal.services.auth_service import create_user
from portal.services.task_service import TaskError, TaskNotFoundError
from portal.time_utils import utcnow
from conftest import TEST_PASSWORD, auth_headers, get_auth_token


@pytest.fixture
def worker(db_session):
    return create_user(username="worker", password=TEST_PASSWORD, role=ROLE_USER)


class TestTaskService:
    def test_create_and_list(self, admin_user, worker):
        task_service.create_task(title="Count shelf B", created_by_user_id=admin_user.id, assigned_to_user_id=worker.id)
        assert [t.title for t in task_service.list_tasks(user_id=worker.id)] == ["Count shelf B"]
        assert len(task_service.list_tasks(user_id=admin_user.id, scope="created")) == 1

    def test_validation(self, admin_user):
        with pytest.raises(TaskError):
            task_service.create_task(title=" ", created_by_user_id=admin_user.id)
        with pytest.raises(TaskError):
            task_service.create_task(title="x", created_by_user_id=admin_user.id, priority="urgent")
        with pytest.raises(TaskError):
            task_service.create_task(title="x", created_by_user_id=admin_user.id, assigned_to_user_id=999)

    def test_only_creator_or_assignee_updates(self, admin_user, worker, employee_user):
        task = task_service.create_task(title="x", created_by_user_id=admin_user.id, assigned_to_user_id=worker.id)
        with pytest.raises(TaskError):
            task_service.update_task_status(task_id=task.id, user_id=employee_user.id, status="completed")

        done = task_service.update_task_status(task_id=task.id, user_id=worker.id, status="completed")
        assert done.completed_at is not None

    def test_missing_task(self, worker):
        with pytest.raises(TaskNotFoundError):
            task_service.update_task_status(task_id=42, user_id=worker.id, status="completed")


class TestNotificationCursor:
    def test_without_cursor_every_assigned_task_is_new(self, admin_user, worker):
        task_service.create_task(title="a", created_by_user_id=admin_user.id, assigned_to_user_id=worker.id)
        task_service.create_task(title="b", created_by_user_id=admin_user.id, assigned_to_user_id=worker.id)
        assert task_service.count_new_tasks(worker.id) == 2

    def test_marking_seen_resets_the_count(self, admin_user, worker):
        task_service.create_task(title="a", created_by_user_id=admin_user.id, assigned_to_user_id=worker.id)
        task_service.mark_tasks_seen(worker.id, now=utcnow() + timedelta(seconds=1))
        assert task_service.count_new_tasks(worker.id) == 0

    def test_cursor_never_moves_backwards(self, worker):
        later = utcnow()
        task_service.mark_tasks_seen(worker.id, now=later)
        cursor = task_service.mark_tasks_seen(worker.id, now=later - timedelta(days=1))
        assert cursor.last_seen_at == later

    def test_tasks_assigned_to_others_do_not_count(self, admin_user, worker, employee_user):
        task_service.create_task(title="a", created_by_user_id=admin_user.id, assigned_to_user_id=employee_user.id)
        assert task_service.count_new_tasks(worker.id) == 0


class TestTaskRoutes:
    def test_notification_round_trip(self, client, admin_headers, worker):
        worker_headers = auth_headers(get_auth_token(client, "worker"))
        created = client.post(
            "/api/tasks",
            json={"title": "Restock A1", "assigned_to_user_id": worker.id, "priority": "high"},
            headers=admin_headers,
        )
        assert created.status_code == 201

        assert client.get("/api/tasks/notifications", headers=worker_headers).json["new_tasks"] == 1
        assert client.post("/api/tasks/notifications/seen", headers=worker_headers).status_code == 200

        task_id = created.json["task"]["id"]
        resp = client.patch(f"/api/tasks/{task_id}", json={"status": "in_progress"}, headers=worker_headers)
        assert resp.json["task"]["status"] == "in_progress"

    def test_bad_deadline(self, client, admin_headers):
        resp = client.post("/api/tasks", json={"title": "x", "deadline": "tomorrow"}, headers=admin_headers)
        assert resp.status_code == 400
