from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from database.db import Base
from datetime import datetime
import uuid

class Employee(Base):
    """
    Employee account created by an HR user.

    An employee starts without a password. A one-time setup link is emailed
    and exchanged exactly once for the first password (is_password_set).
    """
    __tablename__ = "employees"

    # Primary key
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    """Unique employee ID (UUID)"""

    # Owner
    hr_id = Column(String, ForeignKey("hr_users.id", ondelete="CASCADE"), nullable=False, index=True)
    """Reference to the HR user who created this employee"""

    # Employee information
    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, nullable=False, index=True)
    department = Column(String(50), nullable=False, index=True)
    identity_number = Column(String(20), nullable=True)
    phone_number = Column(String(20), nullable=True)
    position = Column(String(50), nullable=True)
    avatar = Column(String(255), nullable=True)

    # Credentials
    hashed_password = Column(String(255), nullable=True)
    is_password_set = Column(Boolean, default=False, nullable=False)

    setup_token_hash = Column(String(64), nullable=True, index=True)
    """SHA-256 digest of the pending password setup token"""

    setup_token_expires = Column(DateTime, nullable=True)

    setup_token_used_hash = Column(String(64), nullable=True, index=True)
    """Digest of the last consumed setup token, kept to report reused links"""

    # Account status
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationship
    hr_user = relationship("HrUser", backref="employees")

    @property
    def status(self) -> str:
        return "active" if self.is_active else "inactive"

    def __repr__(self):
        return f"<Employee(id={self.id}, email={self.email}, active={self.is_active})>"
