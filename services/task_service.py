from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from core.errors import ValidationError, NotFoundError
from models.tasks import Task
from utils.logger import get_logger

logger = get_logger(__name__)

MAX_TITLE_LENGTH = 500
MAX_CATEGORY_LENGTH = 50

TASK_NOT_FOUND = "Task not found"


def validate_title(title: Optional[str]) -> str:
    """Returns the trimmed title or raises ValidationError."""
    if title is None or not title.strip():
        raise ValidationError("Task title is required", {"field": "title"})

    trimmed = title.strip()
    if len(trimmed) > MAX_TITLE_LENGTH:
        raise ValidationError(
            f"Task title must be {MAX_TITLE_LENGTH} characters or less", {"field": "title"}
        )
    return trimmed


def parse_due_date(due_date: Optional[str]) -> Optional[datetime]:
    """
    Parses an ISO 8601 date or datetime string.

    None stays None. A value without an offset is taken as UTC. Anything
    unparseable raises ValidationError naming the field.
    """
    if due_date is None:
        return None

    try:
        # fromisoformat only accepts the "Z" suffix from Python 3.11 on
        parsed = datetime.fromisoformat(due_date.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(
            "Due date must be a valid ISO 8601 date string", {"field": "dueDate"}
        )

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_category(category: Optional[str]) -> Optional[str]:
    """
    Trims the category. Blank input becomes None rather than an error;
    over-long input raises ValidationError.
    """
    if category is None:
        return None

    trimmed = category.strip()
    if not trimmed:
        return None

    if len(trimmed) > MAX_CATEGORY_LENGTH:
        raise ValidationError(
            f"Category must be {MAX_CATEGORY_LENGTH} characters or less", {"field": "category"}
        )
    return trimmed


class TaskService:
    """
    Task CRUD scoped to a single owner.

    Every read and write filters on user_id. A task owned by someone else is
    reported exactly like a task that does not exist.
    """

    @staticmethod
    def verify_task_ownership(db: Session, task_id: str, user_id: str) -> Optional[Task]:
        return db.query(Task).filter(Task.id == task_id, Task.user_id == user_id).first()

    @staticmethod
    def _get_owned_task(db: Session, task_id: str, user_id: str) -> Task:
        task = TaskService.verify_task_ownership(db, task_id, user_id)
        if not task:
            logger.info(
                "Task not found for user",
                extra={"task_id": task_id, "user_id": user_id}
            )
            raise NotFoundError(TASK_NOT_FOUND)
        return task

    @staticmethod
    def create_task(db: Session, user_id: str, title: Optional[str],
                    due_date: Optional[str] = None, category: Optional[str] = None) -> Task:
        task = Task(
            user_id=user_id,
            title=validate_title(title),
            completed=False,
            due_date=parse_due_date(due_date),
            category=normalize_category(category)
        )
        db.add(task)
        db.commit()
        db.refresh(task)

        logger.info("Task created", extra={"task_id": task.id, "user_id": user_id})
        return task

    @staticmethod
    def list_tasks(db: Session, user_id: str, completed: Optional[bool] = None) -> List[Task]:
        query = db.query(Task).filter(Task.user_id == user_id)
        if completed is not None:
            query = query.filter(Task.completed == completed)
        return query.order_by(Task.created_at.desc()).all()

    @staticmethod
    def update_task(db: Session, user_id: str, task_id: str, patch: Dict[str, Any]) -> Task:
        """
        Applies a partial update.

        Only keys present in patch are touched. An explicit None clears
        due_date or category; title and completed cannot be cleared.
        All fields are validated before any of them is applied.
        """
        task = TaskService._get_owned_task(db, task_id, user_id)

        changes: Dict[str, Any] = {}
        if "title" in patch:
            changes["title"] = validate_title(patch["title"])
        if "completed" in patch:
            if not isinstance(patch["completed"], bool):
                raise ValidationError("Completed must be a boolean", {"field": "completed"})
            changes["completed"] = patch["completed"]
        if "due_date" in patch:
            changes["due_date"] = parse_due_date(patch["due_date"])
        if "category" in patch:
            changes["category"] = normalize_category(patch["category"])

        for field, value in changes.items():
            setattr(task, field, value)

        db.commit()
        db.refresh(task)

        logger.info(
            "Task updated",
            extra={"task_id": task.id, "user_id": user_id, "fields": sorted(changes)}
        )
        return task

    @staticmethod
    def delete_task(db: Session, user_id: str, task_id: str) -> None:
        task = TaskService._get_owned_task(db, task_id, user_id)
        db.delete(task)
        db.commit()

        logger.info("Task deleted", extra={"task_id": task_id, "user_id": user_id})

    @staticmethod
    def toggle_task(db: Session, user_id: str, task_id: str) -> Task:
        task = TaskService._get_owned_task(db, task_id, user_id)
        task.completed = not task.completed
        db.commit()
        db.refresh(task)

        logger.info(
            "Task toggled",
            extra={"task_id": task.id, "user_id": user_id, "completed": task.completed}
        )
        return task
