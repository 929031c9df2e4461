from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional
from core.errors import bad_request, forbidden, not_found
from database.db import get_db
from models.user import User
from utils.auth import DEACTIVATED_MESSAGE, PRINCIPAL_MODELS, Identity, require_any, require_user
from utils.security import TokenCodec, dummy_verify, get_token_codec, verify_password
from utils.serializers import normalize_email, user_payload
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["user-auth"])
session_router = APIRouter(prefix="/api/auth", tags=["session"])

class LoginRequest(BaseModel):
    """Login request model"""
    email: Optional[str] = None
    password: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "email": "user@co.com",
                "password": "password123",
            }
        }

# ============ Legacy User ============

@router.post("/login")
async def login(request: LoginRequest, db: Session = Depends(get_db), codec: TokenCodec = Depends(get_token_codec)):
    """
    Generic user login endpoint.

    Raises:
        400: Invalid credentials or password not set
        403: Account deactivated
    """
    if not request.email or not request.password:
        raise bad_request("Email and password are required")

    email = normalize_email(request.email)
    user = db.query(User).filter(User.email == email).first()

    if not user:
        dummy_verify()
        logger.warning(f"User login failed: unknown email - {email}")
        raise bad_request("Invalid email or password")

    if not user.is_active:
        dummy_verify()
        raise forbidden(DEACTIVATED_MESSAGE, reason="deactivated")

    if not user.is_password_set or not user.hashed_password:
        dummy_verify()
        raise bad_request("Password not set")

    if not verify_password(request.password, user.hashed_password):
        logger.warning(f"User login failed: wrong password - {email}")
        raise bad_request("Invalid email or password")

    logger.info(f"User logged in: {email}")
    return {
        "success": True,
        "message": "Login successful",
        "token": codec.issue(user.id, user.email, "user"),
        "user": user_payload(user),
    }

@router.get("/me")
async def me(identity: Identity = Depends(require_user), db: Session = Depends(get_db)):
    user = db.get(User, identity.id)
    if not user:
        raise not_found("User not found")
    return {"success": True, "user": user_payload(user)}

# ============ Any Principal ============

@session_router.get("/me")
async def whoami(identity: Identity = Depends(require_any), db: Session = Depends(get_db)):
    """Identity of the caller, whichever kind of account the token belongs to."""
    principal = db.get(PRINCIPAL_MODELS[identity.type], identity.id)
    return {
        "success": True,
        "identity": {
            "id": identity.id,
            "email": identity.email,
            "type": identity.type,
            "role": identity.role,
            "name": getattr(principal, "name", None),
        },
    }
