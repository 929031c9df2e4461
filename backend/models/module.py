from sqlalchemy import Column, String, DateTime, Boolean, Text, JSON, ForeignKey, UniqueConstraint
from database.db import Base
from datetime import datetime
import uuid
import enum

class ModuleStatus(str, enum.Enum):
    """Module publication status"""
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"

class Module(Base):
    """
    Learning module authored by an HR user.
    Visible to employees only while published and active.
    """
    __tablename__ = "modules"
    __table_args__ = (
        UniqueConstraint("hr_id", "title", name="uq_modules_hr_title"),
    )

    # Primary key
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    """Unique module ID (UUID)"""

    # Owner
    hr_id = Column(String, ForeignKey("hr_users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=False)

    learning_objectives = Column(JSON, default=list, nullable=False)
    """
    Non-empty list of non-blank objectives.
    Format: ["Understand X", "Apply Y", ...]
    """

    status = Column(String(20), default=ModuleStatus.DRAFT.value, nullable=False, index=True)
    """Module status: draft, published or archived"""

    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Module(id={self.id}, title={self.title}, status={self.status})>"
