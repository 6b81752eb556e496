from models.users import User
from models.refresh_tokens import RefreshToken
from models.tasks import Task

__all__ = ["User", "RefreshToken", "Task"]
