import uuid
from core.database import Base
from sqlalchemy import Column, String
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin, UpdatedAtMixin

class User(Base, CreatedAtMixin, UpdatedAtMixin):
    __tablename__ = "users"

    #pk
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    #relationships
    refresh_tokens = relationship("RefreshToken", back_populates="user",
                                  cascade="all, delete-orphan", passive_deletes=True)
    tasks = relationship("Task", back_populates="user",
                         cascade="all, delete-orphan", passive_deletes=True)

    # Matched exactly as stored, no case folding
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
