from sqlalchemy import Column, String, DateTime, Boolean
from database.db import Base
from datetime import datetime
import uuid

class User(Base):
    """
    Legacy generic user account.
    Kept for clients still on the /api/user login path.
    """
    __tablename__ = "users"

    # Primary key
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    """Unique user ID (UUID)"""

    email = Column(String(100), unique=True, nullable=False, index=True)
    """User email address"""

    hashed_password = Column(String(255), nullable=True)
    """Hashed password (using bcrypt)"""

    # Account status
    is_active = Column(Boolean, default=True)
    """Whether the user account is active"""

    is_password_set = Column(Boolean, default=False)
    """Whether the user has completed password setup"""

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    """Account creation timestamp"""

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    """Last account update timestamp"""

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, active={self.is_active})>"
