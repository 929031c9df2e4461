from fastapi import APIRouter, Depends, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime, timedelta
from config.settings import settings
from core.errors import AppHTTPException, bad_request, conflict, internal_error, not_found
from database.db import get_db
from models.employee import Employee
from models.hr_user import HrUser
from services import one_time_tokens
from services.avatar_storage import AvatarStorage, get_avatar_storage
from services.mailer import Mailer, get_mailer, welcome_email
from utils.auth import Identity, require_hr
from utils.serializers import employee_payload, normalize_email
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/hr/employees", tags=["employees"])

# ============ Request Models ============

class EmployeeRequest(BaseModel):
    """Employee create/update request model"""
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    department: Optional[str] = None
    identity_number: Optional[str] = Field(None, alias="identityNumber", max_length=20)
    phone_number: Optional[str] = Field(None, alias="phoneNumber", max_length=20)
    position: Optional[str] = Field(None, max_length=50)

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "name": "Bob",
                "email": "bob@co.com",
                "department": "Engineering",
                "position": "Backend Developer",
            }
        }

# ============ Helpers ============

def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None

def _require_fields(request: EmployeeRequest) -> None:
    if not _clean(request.name) or not request.email or not _clean(request.department):
        raise bad_request("Name, email, and department are required")

def _owned_employee(db: Session, employee_id: str, hr_id: str) -> Employee:
    employee = db.query(Employee).filter(Employee.id == employee_id, Employee.hr_id == hr_id).first()
    if not employee:
        raise not_found("Employee not found")
    return employee

def _send_setup_email(mailer: Mailer, employee: Employee, hr_user: HrUser, raw_token: str) -> bool:
    try:
        message = welcome_email(employee.email, employee.name, hr_user.department or "Your Company", raw_token)
        return mailer.send(message)
    except Exception as e:
        logger.error(f"❌ Error preparing welcome email for {employee.email}: {str(e)}")
        return False

def _set_active(db: Session, employee_id: str, hr_id: str, active: bool) -> Employee:
    employee = _owned_employee(db, employee_id, hr_id)
    if employee.is_active != active:
        employee.is_active = active
        db.add(employee)
        db.commit()
        db.refresh(employee)
    return employee

# ============ List / Stats ============

@router.get("")
async def list_employees(
    identity: Identity = Depends(require_hr),
    db: Session = Depends(get_db),
    storage: AvatarStorage = Depends(get_avatar_storage),
):
    """List the caller's employees, newest first."""
    employees = (
        db.query(Employee)
        .filter(Employee.hr_id == identity.id)
        .order_by(Employee.created_at.desc())
        .all()
    )
    return {
        "success": True,
        "message": "Employees retrieved successfully",
        "employees": [employee_payload(e, storage) for e in employees],
    }

@router.get("/stats")
async def employee_stats(identity: Identity = Depends(require_hr), db: Session = Depends(get_db)):
    """Headcount statistics for the caller's employees."""
    owned = db.query(Employee).filter(Employee.hr_id == identity.id)
    thirty_days_ago = datetime.utcnow() - timedelta(days=30)

    departments = (
        db.query(Employee.department, func.count(Employee.id))
        .filter(Employee.hr_id == identity.id)
        .group_by(Employee.department)
        .order_by(func.count(Employee.id).desc())
        .all()
    )
    positions = (
        db.query(Employee.position, func.count(Employee.id))
        .filter(Employee.hr_id == identity.id, Employee.position.isnot(None), Employee.position != "")
        .group_by(Employee.position)
        .order_by(func.count(Employee.id).desc())
        .limit(10)
        .all()
    )

    return {
        "success": True,
        "message": "Employee statistics retrieved successfully",
        "stats": {
            "totalEmployees": owned.count(),
            "activeEmployees": owned.filter(Employee.is_active.is_(True)).count(),
            "inactiveEmployees": owned.filter(Employee.is_active.is_(False)).count(),
            "recentEmployees": owned.filter(Employee.created_at >= thirty_days_ago).count(),
            "departmentStats": [{"department": d, "count": c} for d, c in departments],
            "positionStats": [{"position": p, "count": c} for p, c in positions],
        },
    }

# ============ Create ============

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_employee(
    request: EmployeeRequest,
    identity: Identity = Depends(require_hr),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    storage: AvatarStorage = Depends(get_avatar_storage),
):
    """
    Create an employee and email a password setup link.

    The employee is created even when the email cannot be delivered; the
    response reports that in details.welcomeEmailSent.
    """
    _require_fields(request)
    email = normalize_email(request.email)

    hr_user = db.get(HrUser, identity.id)
    if not hr_user:
        raise not_found("HR user not found")

    if db.query(Employee).filter(Employee.email == email).first():
        raise conflict("An employee with this email already exists")

    try:
        employee = Employee(
            name=_clean(request.name),
            email=email,
            department=_clean(request.department),
            identity_number=_clean(request.identity_number),
            phone_number=_clean(request.phone_number),
            position=_clean(request.position),
            hr_id=hr_user.id,
            is_password_set=False,
            is_active=True,
        )
        db.add(employee)
        db.flush()
        raw_token = one_time_tokens.issue(
            db,
            one_time_tokens.EMPLOYEE_SETUP,
            employee,
            timedelta(days=settings.SETUP_TOKEN_EXPIRE_DAYS),
        )
    except IntegrityError:
        db.rollback()
        raise conflict("An employee with this email already exists")
    except Exception as e:
        logger.error(f"❌ Create employee error: {str(e)}")
        db.rollback()
        raise internal_error()

    logger.info(f"✅ Employee created: {employee.email} by HR {hr_user.id}")

    email_sent = _send_setup_email(mailer, employee, hr_user, raw_token)
    if not email_sent:
        logger.error(f"❌ Failed to send welcome email to: {employee.email}")

    message = (
        "Employee created successfully and welcome email sent"
        if email_sent
        else "Employee created successfully, but welcome email failed to send"
    )
    return {
        "success": True,
        "message": message,
        "employee": employee_payload(employee, storage),
        "details": {"welcomeEmailSent": email_sent},
    }

# ============ Read / Update / Delete ============

@router.get("/{employee_id}")
async def get_employee(
    employee_id: str,
    identity: Identity = Depends(require_hr),
    db: Session = Depends(get_db),
    storage: AvatarStorage = Depends(get_avatar_storage),
):
    employee = _owned_employee(db, employee_id, identity.id)
    return {
        "success": True,
        "message": "Employee retrieved successfully",
        "employee": employee_payload(employee, storage),
    }

@router.put("/{employee_id}")
async def update_employee(
    employee_id: str,
    request: EmployeeRequest,
    identity: Identity = Depends(require_hr),
    db: Session = Depends(get_db),
    storage: AvatarStorage = Depends(get_avatar_storage),
):
    _require_fields(request)
    employee = _owned_employee(db, employee_id, identity.id)
    email = normalize_email(request.email)

    if email != employee.email:
        taken = db.query(Employee).filter(Employee.email == email, Employee.id != employee.id).first()
        if taken:
            raise conflict("An employee with this email already exists")

    try:
        employee.name = _clean(request.name)
        employee.email = email
        employee.department = _clean(request.department)
        employee.identity_number = _clean(request.identity_number)
        employee.phone_number = _clean(request.phone_number)
        employee.position = _clean(request.position)
        db.add(employee)
        db.commit()
        db.refresh(employee)
    except IntegrityError:
        db.rollback()
        raise conflict("An employee with this email already exists")
    except Exception as e:
        logger.error(f"Update employee error: {str(e)}")
        db.rollback()
        raise internal_error()

    return {
        "success": True,
        "message": "Employee updated successfully",
        "employee": employee_payload(employee, storage),
    }

@router.delete("/{employee_id}")
async def delete_employee(employee_id: str, identity: Identity = Depends(require_hr), db: Session = Depends(get_db)):
    employee = _owned_employee(db, employee_id, identity.id)
    try:
        db.delete(employee)
        db.commit()
    except Exception as e:
        logger.error(f"Delete employee error: {str(e)}")
        db.rollback()
        raise internal_error()

    logger.info(f"Employee deleted: {employee_id}")
    return {"success": True, "message": "Employee deleted successfully"}

# ============ Activation ============

@router.put("/{employee_id}/deactivate")
async def deactivate_employee(
    employee_id: str,
    identity: Identity = Depends(require_hr),
    db: Session = Depends(get_db),
    storage: AvatarStorage = Depends(get_avatar_storage),
):
    """Block the employee from logging in. Repeating the call is harmless."""
    try:
        employee = _set_active(db, employee_id, identity.id, False)
    except AppHTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error deactivating employee: {str(e)}")
        db.rollback()
        raise internal_error("Failed to deactivate employee")

    logger.info(f"Employee deactivated: {employee.email}")
    return {
        "success": True,
        "message": "Employee deactivated successfully",
        "employee": employee_payload(employee, storage),
    }

@router.put("/{employee_id}/reactivate")
async def reactivate_employee(
    employee_id: str,
    identity: Identity = Depends(require_hr),
    db: Session = Depends(get_db),
    storage: AvatarStorage = Depends(get_avatar_storage),
):
    try:
        employee = _set_active(db, employee_id, identity.id, True)
    except AppHTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error reactivating employee: {str(e)}")
        db.rollback()
        raise internal_error("Failed to reactivate employee")

    logger.info(f"Employee reactivated: {employee.email}")
    return {
        "success": True,
        "message": "Employee reactivated successfully",
        "employee": employee_payload(employee, storage),
    }

@router.post("/{employee_id}/resend-setup-link")
async def resend_setup_link(
    employee_id: str,
    identity: Identity = Depends(require_hr),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """Replace the employee's setup link with a fresh one and email it."""
    employee = _owned_employee(db, employee_id, identity.id)
    if employee.is_password_set:
        raise bad_request("Employee has already set a password")

    raw_token = one_time_tokens.issue(
        db,
        one_time_tokens.EMPLOYEE_SETUP,
        employee,
        timedelta(days=settings.SETUP_TOKEN_EXPIRE_DAYS),
    )
    email_sent = _send_setup_email(mailer, employee, employee.hr_user, raw_token)

    return {
        "success": True,
        "message": "Setup link sent" if email_sent else "Setup link created, but the email failed to send",
        "details": {"welcomeEmailSent": email_sent},
    }
