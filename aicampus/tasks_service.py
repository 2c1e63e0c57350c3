"""
AICAMPUS Backend - Smart Task Manager storage.
Row-level CRUD on the `tasks` table. Every query is scoped by user_id.
"""

from aicampus.constants import TASK_PRIORITIES
from aicampus.errors import NotFoundError, ValidationError


async def list_tasks(db, user_id: str) -> list[dict]:
    """The user's tasks, newest first."""
    if not user_id:
        raise ValidationError("user_id is required")
    return await db.select("tasks", filters={"user_id": user_id}, order="created_at.desc")


async def create_task(db, user_id: str, fields: dict) -> dict:
    if not user_id:
        raise ValidationError("user_id is required")

    title = (fields.get("title") or "").strip()
    if not title:
        raise ValidationError("Task title is required")

    priority = fields.get("priority") or "medium"
    if priority not in TASK_PRIORITIES:
        raise ValidationError(f"Invalid priority: {priority}")

    row = {
        "user_id": user_id,
        "title": title,
        "description": fields.get("description") or "",
        "category": fields.get("category") or "",
        "priority": priority,
        "deadline": fields.get("deadline") or None,
        "completed": False,
    }
    rows = await db.insert("tasks", row)
    print(f"[TASKS] Created task for {user_id}: {title}")
    return rows[0] if rows else row


async def toggle_task(db, user_id: str, task_id: str) -> dict:
    """Flip `completed`. Raises NotFoundError for someone else's or missing task."""
    task = await db.select_one("tasks", filters={"id": task_id, "user_id": user_id})
    if task is None:
        raise NotFoundError(f"Task {task_id} not found")

    rows = await db.update(
        "tasks",
        {"completed": not task.get("completed", False)},
        filters={"id": task_id, "user_id": user_id},
    )
    return rows[0] if rows else {**task, "completed": not task.get("completed", False)}


async def delete_task(db, user_id: str, task_id: str) -> dict:
    rows = await db.delete("tasks", filters={"id": task_id, "user_id": user_id})
    if not rows:
        raise NotFoundError(f"Task {task_id} not found")
    return {"ok": True, "id": task_id}
