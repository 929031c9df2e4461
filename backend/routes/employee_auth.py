from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from core.errors import bad_request, conflict, forbidden, internal_error, not_found
from database.db import get_db
from models.employee import Employee
from services import one_time_tokens
from services.avatar_storage import AvatarStorage, get_avatar_storage
from utils.auth import Identity, require_employee
from utils.security import (
    MIN_PASSWORD_LENGTH,
    TokenCodec,
    dummy_verify,
    get_token_codec,
    hash_password,
    verify_password,
)
from utils.serializers import employee_payload, normalize_email
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/employee", tags=["employee-auth"])

# ============ Request Models ============

class SetPasswordRequest(BaseModel):
    """Password setup request model"""
    token: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = Field(None, alias="confirmPassword")

    class Config:
        populate_by_name = True

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class ChangePasswordRequest(BaseModel):
    new_password: Optional[str] = Field(None, alias="newPassword")

    class Config:
        populate_by_name = True

# ============ Helpers ============

def _load_self(db: Session, identity: Identity) -> Employee:
    employee = db.get(Employee, identity.id)
    if not employee:
        raise not_found("Employee not found")
    return employee

async def _update_profile(
    employee: Employee,
    name: Optional[str],
    email: Optional[str],
    department: Optional[str],
    profile_image: Optional[UploadFile],
    db: Session,
    storage: AvatarStorage,
) -> dict:
    if not name or not name.strip() or not email or not email.strip():
        raise bad_request("Name and email are required")

    new_email = normalize_email(email)
    if new_email != employee.email:
        taken = db.query(Employee).filter(Employee.email == new_email, Employee.id != employee.id).first()
        if taken:
            raise conflict("Email already exists")

    stored_path = None
    if profile_image is not None and profile_image.filename:
        stored_path = await storage.save(profile_image)

    old_avatar = employee.avatar
    try:
        employee.name = name.strip()
        employee.email = new_email
        if department and department.strip():
            employee.department = department.strip()
        if stored_path:
            employee.avatar = stored_path
        db.add(employee)
        db.commit()
        db.refresh(employee)
    except Exception as e:
        logger.error(f"Employee profile update error for {employee.id}: {str(e)}")
        db.rollback()
        storage.discard(stored_path)
        raise internal_error()

    if stored_path and old_avatar and old_avatar != stored_path:
        storage.delete(old_avatar)

    logger.info(f"Employee profile updated: {employee.email}")
    return {
        "success": True,
        "message": "Profile updated successfully",
        "employee": employee_payload(employee, storage),
    }

# ============ Password Setup ============

@router.get("/verify-password-token/{token}")
async def verify_password_token(token: str, db: Session = Depends(get_db)):
    """
    Check a password setup link before showing the form.

    Raises:
        400: Unknown, expired or already used link (see reason)
    """
    check = one_time_tokens.inspect(db, one_time_tokens.EMPLOYEE_SETUP, token)
    if not check.ok:
        raise bad_request("Invalid or expired password setup link", reason=check.status.value)

    employee = check.principal
    return {
        "success": True,
        "message": "Token is valid",
        "employee": {
            "name": employee.name,
            "email": employee.email,
            "department": employee.department,
        },
    }

@router.post("/set-password")
async def set_password(request: SetPasswordRequest, db: Session = Depends(get_db)):
    """Exchange a setup link for the employee's first password."""
    if not request.token or not request.password or not request.confirm_password:
        raise bad_request("Token, password, and confirm password are required")

    if request.password != request.confirm_password:
        raise bad_request("Passwords do not match")

    if len(request.password) < MIN_PASSWORD_LENGTH:
        raise bad_request(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    result = one_time_tokens.consume(
        db,
        one_time_tokens.EMPLOYEE_SETUP,
        request.token,
        hash_password(request.password),
    )
    if not result.ok:
        raise bad_request("Invalid or expired password setup link", reason=result.status.value)

    logger.info(f"✅ Password set for employee: {result.principal.email}")
    return {
        "success": True,
        "message": "Password set successfully! You can now login to the system.",
    }

# ============ Login ============

@router.post("/login")
async def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
    storage: AvatarStorage = Depends(get_avatar_storage),
):
    """
    Employee login endpoint.

    Each rejection runs one password check so response times do not reveal
    which branch was taken.
    """
    if not request.email or not request.password:
        raise bad_request("Email and password are required")

    email = normalize_email(request.email)
    employee = db.query(Employee).filter(Employee.email == email).first()

    if not employee:
        dummy_verify()
        raise bad_request("Invalid email or password")

    if not employee.is_active:
        dummy_verify()
        logger.warning(f"Login blocked for deactivated employee: {email}")
        raise forbidden("Your account has been deactivated. Please contact HR for assistance.", reason="deactivated")

    if not employee.is_password_set or not employee.hashed_password:
        dummy_verify()
        raise bad_request("Password not set. Please check your email for setup instructions.")

    if not verify_password(request.password, employee.hashed_password):
        raise bad_request("Invalid email or password")

    try:
        employee.last_login = datetime.utcnow()
        db.add(employee)
        db.commit()
        db.refresh(employee)
    except Exception as e:
        logger.error(f"Failed to record last login for {email}: {str(e)}")
        db.rollback()
        raise internal_error()

    token = codec.issue(employee.id, employee.email, "employee", role="employee")
    logger.info(f"Employee logged in: {email}")
    return {
        "success": True,
        "message": "Login successful",
        "token": token,
        "employee": employee_payload(employee, storage),
    }

# ============ Profile ============

@router.get("/profile")
async def get_profile(
    identity: Identity = Depends(require_employee),
    db: Session = Depends(get_db),
    storage: AvatarStorage = Depends(get_avatar_storage),
):
    employee = _load_self(db, identity)
    return {"success": True, "employee": employee_payload(employee, storage)}

@router.put("/profile")
async def update_own_profile(
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    department: Optional[str] = Form(None),
    profile_image: Optional[UploadFile] = File(None, alias="profileImage"),
    identity: Identity = Depends(require_employee),
    db: Session = Depends(get_db),
    storage: AvatarStorage = Depends(get_avatar_storage),
):
    """Update the authenticated employee's profile (multipart form)."""
    employee = _load_self(db, identity)
    return await _update_profile(employee, name, email, department, profile_image, db, storage)

@router.put("/profile/{employee_id}")
async def update_profile(
    employee_id: str,
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    department: Optional[str] = Form(None),
    profile_image: Optional[UploadFile] = File(None, alias="profileImage"),
    identity: Identity = Depends(require_employee),
    db: Session = Depends(get_db),
    storage: AvatarStorage = Depends(get_avatar_storage),
):
    if identity.id != employee_id:
        raise forbidden("You can only update your own profile")
    employee = _load_self(db, identity)
    return await _update_profile(employee, name, email, department, profile_image, db, storage)

# ============ Change Password ============

@router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    identity: Identity = Depends(require_employee),
    db: Session = Depends(get_db),
):
    if not request.new_password:
        raise bad_request("New password is required")
    if len(request.new_password) < MIN_PASSWORD_LENGTH:
        raise bad_request(f"New password must be at least {MIN_PASSWORD_LENGTH} characters long")

    employee = _load_self(db, identity)
    if employee.hashed_password and verify_password(request.new_password, employee.hashed_password):
        raise bad_request("New password must be different from current password")

    try:
        employee.hashed_password = hash_password(request.new_password)
        db.add(employee)
        db.commit()
    except Exception as e:
        logger.error(f"Employee change password error: {str(e)}")
        db.rollback()
        raise internal_error()

    logger.info(f"Employee password changed: {employee.email}")
    return {"success": True, "message": "Password changed successfully"}
