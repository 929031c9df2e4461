from passlib.context import CryptContext
from jose import ExpiredSignatureError, JWTError, jwt
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable, Dict, Optional
from config.settings import settings
import logging

logger = logging.getLogger(__name__)

PRINCIPAL_TYPES = ("hr", "employee", "user")

MIN_PASSWORD_LENGTH = 8
# HR registration and the reset-password link keep the historical 6-character minimum
LEGACY_MIN_PASSWORD_LENGTH = 6

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

# ============ Password Management ============

def hash_password(password: str) -> str:
    """
    Hash a plain text password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Verify a plain text password against a hashed password.

    A missing hash still costs one bcrypt round so callers take the same
    time whether or not the account has a password.

    Args:
        plain_password: Plain text password to verify
        hashed_password: Hashed password to compare against

    Returns:
        True if password matches, False otherwise
    """
    if not hashed_password:
        pwd_context.dummy_verify()
        return False
    return pwd_context.verify(plain_password, hashed_password)

def dummy_verify() -> None:
    """Spend the time of one password check without a stored hash."""
    pwd_context.dummy_verify()

# ============ JWT Token Management ============

class TokenError(Exception):
    """Base class for session token verification failures."""

class TokenExpiredError(TokenError):
    pass

class TokenMalformedError(TokenError):
    pass

@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    email: str
    type: str
    role: Optional[str] = None

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

class TokenCodec:
    """
    Mints and verifies signed, expiring bearer tokens.

    Tokens carry {userId, email, type, role, iat, exp}. Lifetime depends on
    the principal type. There is no revocation: expiry or rotating the
    secret are the only ways a token stops working.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expiry_by_type: Optional[Dict[str, timedelta]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not secret:
            raise ValueError("TokenCodec requires a signing secret")
        self.secret = secret
        self.algorithm = algorithm
        self.expiry_by_type = expiry_by_type or {
            "hr": timedelta(days=1),
            "employee": timedelta(days=7),
            "user": timedelta(days=1),
        }
        self.clock = clock

    def issue(self, principal_id: str, email: str, type: str, role: Optional[str] = None) -> str:
        """
        Create a signed token for a principal.

        Example:
            token = codec.issue(hr.id, hr.email, "hr", role=hr.role)
        """
        if type not in self.expiry_by_type:
            raise ValueError(f"Unknown principal type: {type}")

        now = self.clock()
        payload = {
            "userId": str(principal_id),
            "email": email,
            "type": type,
            "role": role,
            "iat": int(now.timestamp()),
            "exp": int((now + self.expiry_by_type[type]).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """
        Decode and validate a token.

        Raises:
            TokenExpiredError: the embedded expiry has passed
            TokenMalformedError: bad signature, structure or claims
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token expired") from e
        except JWTError as e:
            raise TokenMalformedError("Invalid token") from e

        user_id = payload.get("userId")
        email = payload.get("email")
        token_type = payload.get("type")
        if not user_id or not email or token_type not in PRINCIPAL_TYPES:
            raise TokenMalformedError("Invalid token claims")

        return TokenClaims(
            user_id=str(user_id),
            email=email,
            type=token_type,
            role=payload.get("role"),
        )

@lru_cache
def get_token_codec() -> TokenCodec:
    """Dependency returning the process-wide codec built from settings."""
    return TokenCodec(
        secret=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        expiry_by_type={
            "hr": timedelta(days=settings.HR_TOKEN_EXPIRE_DAYS),
            "employee": timedelta(days=settings.EMPLOYEE_TOKEN_EXPIRE_DAYS),
            "user": timedelta(days=settings.USER_TOKEN_EXPIRE_DAYS),
        },
    )
