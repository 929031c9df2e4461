from pydantic import model_validator
from pydantic_settings import BaseSettings
from typing import List, Optional
import logging
import secrets

logger = logging.getLogger(__name__)

# Known placeholder values that must never sign production tokens
_PLACEHOLDER_SECRETS = {
    "",
    "default-secret",
    "your-secret-key-change-in-production",
    "change-me",
}

class Settings(BaseSettings):
    """
    Application settings and configuration management.
    Loads environment variables from .env file.
    """

    # ============ API Configuration ============
    API_TITLE: str = "Learning Management System"
    API_VERSION: str = "1.0.0"
    DEBUG: bool = False

    ENVIRONMENT: str = "development"
    """Deployment posture: development, test or production"""

    # ============ Server Configuration ============
    HOST: str = "0.0.0.0"
    PORT: int = 5000

    # ============ Database Configuration ============
    DATABASE_URL: str = "sqlite:///./lms.db"
    """SQLAlchemy database connection string"""

    # ============ JWT Authentication Configuration ============
    SECRET_KEY: Optional[str] = None
    """Secret key for JWT token signing - required in production"""

    ALGORITHM: str = "HS256"
    """JWT algorithm for token encoding"""

    HR_TOKEN_EXPIRE_DAYS: int = 1
    EMPLOYEE_TOKEN_EXPIRE_DAYS: int = 7
    USER_TOKEN_EXPIRE_DAYS: int = 1

    BCRYPT_ROUNDS: int = 12
    """bcrypt cost factor used for every stored password"""

    # ============ One-time Link Configuration ============
    SETUP_TOKEN_EXPIRE_DAYS: int = 7
    """Lifetime of the employee password setup link"""

    RESET_TOKEN_EXPIRE_HOURS: int = 1
    """Lifetime of the HR password reset link"""

    FRONTEND_URL: str = "http://localhost:5173"
    """Base URL used to build setup and reset links"""

    # ============ Email Configuration ============
    EMAIL_ENABLED: bool = True
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    MAIL_FROM_NAME: str = "Learning Management System"

    # ============ Upload Configuration ============
    UPLOAD_DIR: str = "uploads"
    """Directory served under /uploads; avatars land in <UPLOAD_DIR>/profiles"""

    MAX_AVATAR_BYTES: int = 5 * 1024 * 1024

    # ============ CORS Configuration ============
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:5173",  # Vite dev server
        "http://localhost:3000",  # Alternative frontend port
    ]
    """Allowed origins for CORS requests"""

    class Config:
        env_file = ".env"
        """Load environment variables from .env file"""

        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @model_validator(mode="after")
    def _check_secret_key(self):
        if (self.SECRET_KEY or "") in _PLACEHOLDER_SECRETS:
            if self.is_production:
                raise ValueError("SECRET_KEY must be set to a non-default value in production")
            logger.warning("SECRET_KEY not set; using a random per-process key (tokens will not survive restarts)")
            self.SECRET_KEY = secrets.token_urlsafe(48)
        return self

# Create global settings instance
settings = Settings()
