"""Response shapes. Sensitive columns (password hashes, token digests) never leave here."""

from typing import Optional
from models.employee import Employee
from models.hr_user import HrUser
from models.module import Module
from models.user import User
from services.avatar_storage import AvatarStorage

def normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()

def hr_user_payload(user: HrUser, storage: AvatarStorage) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "department": user.department,
        "role": user.role,
        "avatar": storage.resolve(user.avatar),
        "type": "hr",
    }

def employee_payload(employee: Employee, storage: AvatarStorage) -> dict:
    return {
        "id": employee.id,
        "name": employee.name,
        "email": employee.email,
        "department": employee.department,
        "identityNumber": employee.identity_number,
        "phoneNumber": employee.phone_number,
        "position": employee.position,
        "avatar": storage.resolve(employee.avatar),
        "isPasswordSet": employee.is_password_set,
        "isActive": employee.is_active,
        "status": employee.status,
        "lastLogin": employee.last_login,
        "createdAt": employee.created_at,
        "updatedAt": employee.updated_at,
        "type": "employee",
    }

def user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "isActive": user.is_active,
        "isPasswordSet": user.is_password_set,
        "type": "user",
    }

def module_payload(module: Module) -> dict:
    return {
        "id": module.id,
        "title": module.title,
        "description": module.description,
        "learningObjectives": list(module.learning_objectives or []),
        "status": module.status,
        "isActive": module.is_active,
        "createdAt": module.created_at,
        "updatedAt": module.updated_at,
    }
