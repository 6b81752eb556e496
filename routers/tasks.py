from typing import List, Optional
from fastapi import APIRouter, Response
from starlette import status
from schemas.task_schemas import CreateTaskRequest, UpdateTaskRequest, TaskResponse
from services.task_service import TaskService
from utils.deps import db_dependency, user_dependency


router = APIRouter(
    prefix="/api/tasks",
    tags=["tasks"]
)


def parse_completed_filter(completed: Optional[str]) -> Optional[bool]:
    # Only the literal strings filter; any other value lists everything
    if completed == "true":
        return True
    if completed == "false":
        return False
    return None


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(body: CreateTaskRequest, user: user_dependency, db: db_dependency):
    return TaskService.create_task(
        db,
        user_id=user.get("user_id"),
        title=body.title,
        due_date=body.due_date,
        category=body.category
    )


@router.get("", response_model=List[TaskResponse])
async def list_tasks(user: user_dependency, db: db_dependency, completed: Optional[str] = None):
    """
    List the caller's tasks, newest first. ?completed=true|false filters.
    """
    return TaskService.list_tasks(db, user.get("user_id"), parse_completed_filter(completed))


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(task_id: str, body: UpdateTaskRequest, user: user_dependency, db: db_dependency):
    return TaskService.update_task(db, user.get("user_id"), task_id, body.patch_fields())


@router.patch("/{task_id}/toggle", response_model=TaskResponse)
async def toggle_task(task_id: str, user: user_dependency, db: db_dependency):
    return TaskService.toggle_task(db, user.get("user_id"), task_id)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: str, user: user_dependency, db: db_dependency):
    TaskService.delete_task(db, user.get("user_id"), task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
