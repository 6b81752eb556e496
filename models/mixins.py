from sqlalchemy import Column, DateTime
from utils.dates import utcnow


# Timestamps are set in Python so they keep microseconds on SQLite, which
# newest-first ordering of rows created in the same second depends on.
class CreatedAtMixin:
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

class UpdatedAtMixin:
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
