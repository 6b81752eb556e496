from typing import Optional
from pydantic import StrictBool
from schemas.common import CamelModel, UtcDatetime


class CreateTaskRequest(CamelModel):
    title: str
    due_date: Optional[str] = None
    category: Optional[str] = None


class UpdateTaskRequest(CamelModel):
    """
    Partial update. Only fields present in the request body are applied;
    use patch_fields() rather than reading attributes so that an omitted
    field and an explicit null stay distinguishable.
    """
    title: Optional[str] = None
    completed: Optional[StrictBool] = None
    due_date: Optional[str] = None
    category: Optional[str] = None

    def patch_fields(self) -> dict:
        return self.model_dump(exclude_unset=True)


class TaskResponse(CamelModel):
    id: str
    user_id: str
    title: str
    completed: bool
    due_date: Optional[UtcDatetime] = None
    category: Optional[str] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime
