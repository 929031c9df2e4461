from sqlalchemy import Column, String, DateTime
from database.db import Base
from datetime import datetime
import uuid

class HrUser(Base):
    """
    HR administrator account. Owns employees and learning modules.
    """
    __tablename__ = "hr_users"

    # Primary key
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    """Unique HR user ID (UUID)"""

    name = Column(String(100), nullable=False)

    email = Column(String(100), unique=True, nullable=False, index=True)
    """Login email, stored lowercased and trimmed"""

    hashed_password = Column(String(255), nullable=False)
    """Hashed password (using bcrypt)"""

    role = Column(String(20), default="hr")
    department = Column(String(50), default="Human Resources")

    avatar = Column(String(255), nullable=True)
    """Relative public path of the profile image, e.g. /uploads/profiles/x.png"""

    # Password reset link (SHA-256 digest of the emailed token)
    reset_token_hash = Column(String(64), nullable=True, index=True)
    reset_token_expires = Column(DateTime, nullable=True)
    reset_token_used_hash = Column(String(64), nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<HrUser(id={self.id}, email={self.email}, role={self.role})>"
