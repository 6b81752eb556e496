import uuid
from core.database import Base
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin, UpdatedAtMixin

class Task(Base, CreatedAtMixin, UpdatedAtMixin):
    __tablename__ = "tasks"

    #pk
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    #fk
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    #relationships
    user = relationship("User", back_populates="tasks")

    title = Column(String(500), nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=True)
    category = Column(String(50), nullable=True)
