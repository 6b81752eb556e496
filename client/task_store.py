"""
Optimistic task list on top of TaskFlowClient.

The list is an immutable tuple of task dicts. Every mutation goes through
_apply: keep the current tuple as the snapshot, publish the speculative
tuple, await the API call, and on failure put the snapshot back unchanged
before re-raising.
"""

import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple
from client.api_client import ApiClientError, TaskFlowClient
from utils.dates import utcnow

TaskTuple = Tuple[Dict[str, Any], ...]


def _replace(tasks: TaskTuple, task_id: str, new_task: Dict[str, Any]) -> TaskTuple:
    return tuple(new_task if task["id"] == task_id else task for task in tasks)


class OptimisticTaskList:

    def __init__(self, client: TaskFlowClient):
        self.client = client
        self.tasks: TaskTuple = ()
        self.error: Optional[str] = None

    def get(self, task_id: str) -> Optional[Dict[str, Any]]:
        return next((task for task in self.tasks if task["id"] == task_id), None)

    async def refresh(self) -> TaskTuple:
        self.error = None
        try:
            self.tasks = tuple(await self.client.get_tasks())
        except ApiClientError as exc:
            self.error = exc.message
            raise
        return self.tasks

    async def _apply(self, speculative: TaskTuple, remote: Callable[[], Awaitable[Any]]) -> Any:
        snapshot = self.tasks
        self.tasks = speculative
        try:
            return await remote()
        except Exception as exc:
            self.tasks = snapshot
            self.error = getattr(exc, "message", None) or str(exc)
            raise

    async def create_task(self, title: str, due_date: Optional[str] = None,
                          category: Optional[str] = None) -> Dict[str, Any]:
        now = utcnow().isoformat()
        placeholder = {
            "id": f"temp-{uuid.uuid4()}",
            "userId": "",
            "title": title,
            "completed": False,
            "dueDate": due_date,
            "category": category,
            "createdAt": now,
            "updatedAt": now,
        }

        created = await self._apply(
            (placeholder,) + self.tasks,
            lambda: self.client.create_task(title, due_date=due_date, category=category)
        )
        self.tasks = _replace(self.tasks, placeholder["id"], created)
        return created

    async def update_task(self, task_id: str, **fields) -> Dict[str, Any]:
        current = self.get(task_id)
        speculative = self.tasks
        if current is not None:
            speculative = _replace(self.tasks, task_id, {**current, **fields, "updatedAt": utcnow().isoformat()})

        updated = await self._apply(speculative, lambda: self.client.update_task(task_id, **fields))
        self.tasks = _replace(self.tasks, task_id, updated)
        return updated

    async def delete_task(self, task_id: str) -> None:
        await self._apply(
            tuple(task for task in self.tasks if task["id"] != task_id),
            lambda: self.client.delete_task(task_id)
        )

    async def toggle_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        current = self.get(task_id)
        if current is None:
            return None

        flipped = {**current, "completed": not current["completed"], "updatedAt": utcnow().isoformat()}
        toggled = await self._apply(
            _replace(self.tasks, task_id, flipped),
            lambda: self.client.toggle_task(task_id)
        )
        self.tasks = _replace(self.tasks, task_id, toggled)
        return toggled
