"""Request authorization: one configurable guard for every principal type."""

from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from core.errors import forbidden, token_expired, unauthenticated
from database.db import get_db
from models.employee import Employee
from models.hr_user import HrUser
from models.user import User
from utils.security import TokenCodec, TokenExpiredError, TokenError, get_token_codec
import logging

logger = logging.getLogger(__name__)

# Bearer scheme; missing headers are reported by the guard itself
bearer_scheme = HTTPBearer(auto_error=False)

PRINCIPAL_MODELS = {
    "hr": HrUser,
    "employee": Employee,
    "user": User,
}

DEACTIVATED_MESSAGE = "Your account has been deactivated. Please contact HR."

@dataclass(frozen=True)
class Identity:
    """Normalized caller identity attached to request.state.identity."""
    id: str
    email: str
    type: str
    role: Optional[str] = None

@dataclass(frozen=True)
class GuardPolicy:
    """
    What a route group demands of the caller.

    required_type: "hr", "employee", "user", or None to accept any type
    require_active: reject principals whose is_active flag is false
    require_password_set: reject principals that have not completed setup
    """
    required_type: Optional[str] = None
    require_active: bool = True
    require_password_set: bool = False

class AuthGuard:
    """
    FastAPI dependency enforcing a GuardPolicy.

    Order of checks: bearer token present, token verifies, principal still
    exists, token type matches, principal active, password set.
    """

    def __init__(self, policy: GuardPolicy):
        self.policy = policy

    async def __call__(
        self,
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
        db: Session = Depends(get_db),
        codec: TokenCodec = Depends(get_token_codec),
    ) -> Identity:
        if credentials is None or not credentials.credentials:
            raise unauthenticated("Access token required", reason="missing")

        try:
            claims = codec.verify(credentials.credentials)
        except TokenExpiredError:
            logger.info(f"Expired token on {request.url.path}")
            raise token_expired("Token expired. Please login again.")
        except TokenError:
            logger.warning(f"Malformed token on {request.url.path}")
            raise unauthenticated("Invalid token", reason="malformed")

        principal = db.get(PRINCIPAL_MODELS[claims.type], claims.user_id)
        if principal is None:
            logger.warning(f"Token principal not found: type={claims.type} id={claims.user_id}")
            raise unauthenticated("Account not found", reason="principal_not_found")

        policy = self.policy
        if policy.required_type and claims.type != policy.required_type:
            logger.warning(f"Token type {claims.type} rejected, {policy.required_type} required")
            raise forbidden(f"Access denied. {policy.required_type.upper()} privileges required.", reason="wrong_type")

        if policy.require_active and getattr(principal, "is_active", True) is False:
            logger.warning(f"Inactive {claims.type} rejected: {claims.user_id}")
            raise forbidden(DEACTIVATED_MESSAGE, reason="deactivated")

        if policy.require_password_set and getattr(principal, "is_password_set", True) is False:
            raise forbidden("Password not set. Please complete account setup.", reason="password_not_set")

        identity = Identity(
            id=principal.id,
            email=principal.email,
            type=claims.type,
            role=claims.role or getattr(principal, "role", None),
        )
        request.state.identity = identity
        return identity

# ============ Route Group Guards ============

require_hr = AuthGuard(GuardPolicy(required_type="hr"))
require_employee = AuthGuard(GuardPolicy(required_type="employee", require_password_set=True))
require_user = AuthGuard(GuardPolicy(required_type="user", require_password_set=True))
require_any = AuthGuard(GuardPolicy(required_type=None, require_password_set=True))
