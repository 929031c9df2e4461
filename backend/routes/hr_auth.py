from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import timedelta
from config.settings import settings
from core.errors import AppHTTPException, bad_request, conflict, forbidden, internal_error, not_found
from database.db import get_db
from models.hr_user import HrUser
from services import one_time_tokens
from services.avatar_storage import AvatarStorage, get_avatar_storage
from services.mailer import Mailer, get_mailer, password_reset_email
from utils.auth import Identity, require_hr
from utils.security import (
    LEGACY_MIN_PASSWORD_LENGTH,
    MIN_PASSWORD_LENGTH,
    TokenCodec,
    dummy_verify,
    get_token_codec,
    hash_password,
    verify_password,
)
from utils.serializers import hr_user_payload, normalize_email
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/hr", tags=["hr-auth"])

# ============ Request Models ============

class RegisterRequest(BaseModel):
    """HR registration request model"""
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    department: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Alice",
                "email": "alice@co.com",
                "department": "Engineering",
                "password": "secret123",
            }
        }

class LoginRequest(BaseModel):
    """Login request model"""
    email: Optional[str] = None
    password: Optional[str] = None

class ForcePasswordChangeRequest(BaseModel):
    new_password: Optional[str] = Field(None, alias="newPassword")

    class Config:
        populate_by_name = True

class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = None

class ResetPasswordRequest(BaseModel):
    token: Optional[str] = None
    password: Optional[str] = None

# ============ Helpers ============

def _session_response(user: HrUser, codec: TokenCodec, storage: AvatarStorage, message: str) -> dict:
    token = codec.issue(user.id, user.email, "hr", role=user.role or "hr")
    return {
        "success": True,
        "message": message,
        "token": token,
        "user": hr_user_payload(user, storage),
    }

def _load_self(db: Session, identity: Identity) -> HrUser:
    user = db.get(HrUser, identity.id)
    if not user:
        raise not_found("User not found")
    return user

# ============ Register / Login ============

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
    storage: AvatarStorage = Depends(get_avatar_storage),
):
    """
    HR registration endpoint.

    Creates a new HR account and logs it in immediately.

    Raises:
        400: Missing fields, short password or email already registered
    """
    if not request.name or not request.email or not request.department or not request.password:
        raise bad_request("All fields are required")

    if len(request.password) < LEGACY_MIN_PASSWORD_LENGTH:
        raise bad_request(f"Password must be at least {LEGACY_MIN_PASSWORD_LENGTH} characters long")

    email = normalize_email(request.email)

    try:
        if db.query(HrUser).filter(HrUser.email == email).first():
            logger.warning(f"Registration failed: Email already exists - {email}")
            raise conflict("Email already exists")

        new_user = HrUser(
            name=request.name.strip(),
            email=email,
            department=request.department.strip(),
            role=(request.role or "hr").strip() or "hr",
            hashed_password=hash_password(request.password),
        )
        db.add(new_user)
        db.commit()
        db.refresh(new_user)

        logger.info(f"New HR user registered: {email}")
        return _session_response(new_user, codec, storage, "HR user registered successfully")

    except AppHTTPException:
        raise
    except Exception as e:
        logger.error(f"Registration error: {str(e)}")
        db.rollback()
        raise internal_error("Registration failed")

@router.post("/login")
async def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
    storage: AvatarStorage = Depends(get_avatar_storage),
):
    """
    HR login endpoint.

    Every credential failure returns the same message so the response does
    not tell whether the email is registered.
    """
    if not request.email or not request.password:
        raise bad_request("Email and password are required")

    email = normalize_email(request.email)
    user = db.query(HrUser).filter(HrUser.email == email).first()

    if not user:
        dummy_verify()
        logger.warning(f"HR login failed: unknown email - {email}")
        raise bad_request("Invalid email or password")

    if not verify_password(request.password, user.hashed_password):
        logger.warning(f"HR login failed: wrong password - {email}")
        raise bad_request("Invalid email or password")

    logger.info(f"HR user logged in: {email}")
    return _session_response(user, codec, storage, "Login successful")

# ============ Profile ============

@router.get("/profile")
async def get_current_profile(
    identity: Identity = Depends(require_hr),
    db: Session = Depends(get_db),
    storage: AvatarStorage = Depends(get_avatar_storage),
):
    """Return the authenticated HR user's profile."""
    user = _load_self(db, identity)
    return {"success": True, "user": hr_user_payload(user, storage)}

@router.get("/profile/{user_id}")
async def get_profile(
    user_id: str,
    identity: Identity = Depends(require_hr),
    db: Session = Depends(get_db),
    storage: AvatarStorage = Depends(get_avatar_storage),
):
    if identity.id != user_id:
        raise forbidden("You can only view your own profile")
    user = _load_self(db, identity)
    return {"success": True, "user": hr_user_payload(user, storage)}

@router.put("/profile/{user_id}")
async def update_profile(
    user_id: str,
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    department: Optional[str] = Form(None),
    role: Optional[str] = Form(None),
    current_password: Optional[str] = Form(None, alias="currentPassword"),
    new_password: Optional[str] = Form(None, alias="newPassword"),
    profile_image: Optional[UploadFile] = File(None, alias="profileImage"),
    identity: Identity = Depends(require_hr),
    db: Session = Depends(get_db),
    storage: AvatarStorage = Depends(get_avatar_storage),
):
    """
    Update the HR user's own profile (multipart form).

    A password change requires the current password. A new profile image
    replaces the old file; if anything fails after the new file is
    written, that file is removed again.
    """
    if identity.id != user_id:
        raise forbidden("Unauthorized to update this profile")

    user = _load_self(db, identity)

    new_email = normalize_email(email) if email else None
    if new_email and new_email != user.email:
        taken = db.query(HrUser).filter(HrUser.email == new_email, HrUser.id != user.id).first()
        if taken:
            raise conflict("Email is already in use by another account")

    if current_password or new_password:
        if not current_password or not new_password:
            raise bad_request("Both current and new password are required to change password")
        if not verify_password(current_password, user.hashed_password):
            raise bad_request("Current password is incorrect")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise bad_request(f"New password must be at least {MIN_PASSWORD_LENGTH} characters long")

    stored_path = None
    if profile_image is not None and profile_image.filename:
        stored_path = await storage.save(profile_image)

    old_avatar = user.avatar
    try:
        if name:
            user.name = name.strip()
        if new_email:
            user.email = new_email
        if department:
            user.department = department.strip()
        if role:
            user.role = role.strip()
        if new_password:
            user.hashed_password = hash_password(new_password)
        if stored_path:
            user.avatar = stored_path

        db.add(user)
        db.commit()
        db.refresh(user)
    except Exception as e:
        logger.error(f"Profile update error for {user_id}: {str(e)}")
        db.rollback()
        storage.discard(stored_path)
        raise internal_error("Server error during profile update")

    if stored_path and old_avatar and old_avatar != stored_path:
        storage.delete(old_avatar)

    logger.info(f"HR profile updated: {user.email}")
    return {
        "success": True,
        "message": "Profile updated successfully",
        "user": hr_user_payload(user, storage),
    }

# ============ Passwords ============

@router.post("/change-password")
async def force_change_password(
    request: ForcePasswordChangeRequest,
    identity: Identity = Depends(require_hr),
    db: Session = Depends(get_db),
):
    """
    Set a new password without re-entering the current one.
    Used by the first-login flow; the profile route is the verified variant.
    """
    if not request.new_password:
        raise bad_request("New password is required")
    if len(request.new_password) < MIN_PASSWORD_LENGTH:
        raise bad_request(f"New password must be at least {MIN_PASSWORD_LENGTH} characters long")

    user = _load_self(db, identity)
    try:
        user.hashed_password = hash_password(request.new_password)
        db.add(user)
        db.commit()
    except Exception as e:
        logger.error(f"Change password error: {str(e)}")
        db.rollback()
        raise internal_error()

    logger.info(f"HR password changed: {user.email}")
    return {"success": True, "message": "Password changed successfully"}

@router.post("/forgot-password")
async def forgot_password(
    request: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Email a one-hour password reset link.

    Unknown emails are reported as such (EMAIL_NOT_REGISTERED). This
    discloses which emails are registered and is kept for the current
    product flow.
    """
    if not request.email:
        raise bad_request("Email is required")

    email = normalize_email(request.email)
    user = db.query(HrUser).filter(HrUser.email == email).first()
    if not user:
        raise bad_request(
            "The email you entered is not registered. Please check your email and try again.",
            reason="EMAIL_NOT_REGISTERED",
        )

    raw_token = one_time_tokens.issue(
        db,
        one_time_tokens.HR_RESET,
        user,
        timedelta(hours=settings.RESET_TOKEN_EXPIRE_HOURS),
    )

    email_sent = mailer.send(password_reset_email(user.email, raw_token))
    if not email_sent:
        logger.error(f"Reset email not delivered to {user.email}")
        return {
            "success": True,
            "message": "Reset link created, but the email could not be sent. Please try again later.",
            "emailSent": False,
        }

    return {
        "success": True,
        "message": "Password reset link sent to your email",
        "emailSent": True,
    }

@router.get("/verify-reset-token/{token}")
async def verify_reset_token(token: str, db: Session = Depends(get_db)):
    """Check a reset link before showing the new-password form."""
    check = one_time_tokens.inspect(db, one_time_tokens.HR_RESET, token)
    if not check.ok:
        raise bad_request("Invalid or expired reset token", reason=check.status.value)
    return {"success": True, "message": "Token is valid", "user": {"email": check.principal.email}}

@router.post("/reset-password")
async def reset_password(request: ResetPasswordRequest, db: Session = Depends(get_db)):
    """Exchange a reset link for a new password. The link works once."""
    if not request.token or not request.password:
        raise bad_request("Token and password are required")

    if len(request.password) < LEGACY_MIN_PASSWORD_LENGTH:
        raise bad_request(f"Password must be at least {LEGACY_MIN_PASSWORD_LENGTH} characters long")

    result = one_time_tokens.consume(
        db,
        one_time_tokens.HR_RESET,
        request.token,
        hash_password(request.password),
    )
    if not result.ok:
        raise bad_request("Invalid or expired reset token", reason=result.status.value)

    return {"success": True, "message": "Password reset successful"}
