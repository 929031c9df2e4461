from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Any, List, Optional
from datetime import datetime, timedelta
from core.errors import AppHTTPException, bad_request, conflict, internal_error, not_found
from database.db import get_db
from models.hr_user import HrUser
from models.module import Module, ModuleStatus
from utils.auth import Identity, require_employee, require_hr
from utils.serializers import module_payload
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/hr/modules", tags=["modules"])
employee_router = APIRouter(prefix="/api/modules", tags=["modules"])

VALID_STATUSES = [s.value for s in ModuleStatus]
INVALID_STATUS_MESSAGE = "Invalid status. Must be draft, published, or archived"
DUPLICATE_TITLE_MESSAGE = "A module with this title already exists"

# ============ Request Models ============

class ModuleRequest(BaseModel):
    """Module create/update request model"""
    title: Optional[str] = None
    description: Optional[str] = None
    learning_objectives: Optional[List[Any]] = Field(None, alias="learningObjectives")
    status: Optional[str] = None
    is_active: Optional[bool] = Field(None, alias="isActive")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "title": "Onboarding 101",
                "description": "Company basics",
                "learningObjectives": ["Know the values", "Find the tools"],
                "status": "draft",
            }
        }

class StatusRequest(BaseModel):
    status: Optional[str] = None

# ============ Validation ============

def _validated_fields(request: ModuleRequest):
    """
    Return (title, description, objectives) or raise 400.

    Objectives are trimmed and blank entries dropped; at least one must remain.
    """
    title = (request.title or "").strip()
    description = (request.description or "").strip()
    if not title or not description or request.learning_objectives is None:
        raise bad_request("Title, description, and learning objectives are required")

    if request.status is not None and request.status not in VALID_STATUSES:
        raise bad_request(INVALID_STATUS_MESSAGE)

    if len(request.learning_objectives) == 0:
        raise bad_request("At least one learning objective is required")

    objectives = [
        str(item).strip()
        for item in request.learning_objectives
        if item is not None and str(item).strip()
    ]
    if not objectives:
        raise bad_request("At least one valid learning objective is required")

    return title, description, objectives

def _owned_module(db: Session, module_id: str, hr_id: str) -> Module:
    module = db.query(Module).filter(Module.id == module_id, Module.hr_id == hr_id).first()
    if not module:
        raise not_found("Module not found")
    return module

def _title_taken(db: Session, hr_id: str, title: str, exclude_id: Optional[str] = None) -> bool:
    query = db.query(Module.id).filter(Module.hr_id == hr_id, Module.title == title)
    if exclude_id:
        query = query.filter(Module.id != exclude_id)
    return query.first() is not None

# ============ HR Module Management ============

@router.get("")
async def list_modules(identity: Identity = Depends(require_hr), db: Session = Depends(get_db)):
    modules = (
        db.query(Module)
        .filter(Module.hr_id == identity.id)
        .order_by(Module.created_at.desc())
        .all()
    )
    return {
        "success": True,
        "message": "Modules retrieved successfully",
        "modules": [module_payload(m) for m in modules],
    }

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_module(request: ModuleRequest, identity: Identity = Depends(require_hr), db: Session = Depends(get_db)):
    """
    Create a learning module. New modules are drafts unless a status is given.

    Raises:
        400: Missing fields, invalid status, no usable objective, duplicate title
        404: HR account no longer exists
    """
    title, description, objectives = _validated_fields(request)

    if not db.get(HrUser, identity.id):
        raise not_found("HR user not found")

    if _title_taken(db, identity.id, title):
        raise conflict(DUPLICATE_TITLE_MESSAGE)

    try:
        module = Module(
            hr_id=identity.id,
            title=title,
            description=description,
            learning_objectives=objectives,
            status=request.status or ModuleStatus.DRAFT.value,
            is_active=True if request.is_active is None else request.is_active,
        )
        db.add(module)
        db.commit()
        db.refresh(module)
    except IntegrityError:
        db.rollback()
        raise conflict(DUPLICATE_TITLE_MESSAGE)
    except Exception as e:
        logger.error(f"Create module error: {str(e)}")
        db.rollback()
        raise internal_error()

    logger.info(f"Module created: {module.title} ({module.status}) by HR {identity.id}")
    return {
        "success": True,
        "message": "Module created successfully",
        "module": module_payload(module),
    }

@router.get("/stats")
async def module_stats(identity: Identity = Depends(require_hr), db: Session = Depends(get_db)):
    owned = db.query(Module).filter(Module.hr_id == identity.id)
    thirty_days_ago = datetime.utcnow() - timedelta(days=30)
    return {
        "success": True,
        "message": "Module statistics retrieved successfully",
        "stats": {
            "totalModules": owned.count(),
            "draftModules": owned.filter(Module.status == ModuleStatus.DRAFT.value).count(),
            "publishedModules": owned.filter(Module.status == ModuleStatus.PUBLISHED.value).count(),
            "archivedModules": owned.filter(Module.status == ModuleStatus.ARCHIVED.value).count(),
            "activeModules": owned.filter(Module.is_active.is_(True)).count(),
            "inactiveModules": owned.filter(Module.is_active.is_(False)).count(),
            "recentModules": owned.filter(Module.created_at >= thirty_days_ago).count(),
        },
    }

@router.get("/{module_id}")
async def get_module(module_id: str, identity: Identity = Depends(require_hr), db: Session = Depends(get_db)):
    module = _owned_module(db, module_id, identity.id)
    return {
        "success": True,
        "message": "Module retrieved successfully",
        "module": module_payload(module),
    }

@router.put("/{module_id}")
async def update_module(
    module_id: str,
    request: ModuleRequest,
    identity: Identity = Depends(require_hr),
    db: Session = Depends(get_db),
):
    title, description, objectives = _validated_fields(request)
    module = _owned_module(db, module_id, identity.id)

    if title != module.title and _title_taken(db, identity.id, title, exclude_id=module.id):
        raise conflict(DUPLICATE_TITLE_MESSAGE)

    try:
        module.title = title
        module.description = description
        module.learning_objectives = objectives
        if request.status is not None:
            module.status = request.status
        if request.is_active is not None:
            module.is_active = request.is_active
        db.add(module)
        db.commit()
        db.refresh(module)
    except IntegrityError:
        db.rollback()
        raise conflict(DUPLICATE_TITLE_MESSAGE)
    except Exception as e:
        logger.error(f"Update module error: {str(e)}")
        db.rollback()
        raise internal_error()

    return {
        "success": True,
        "message": "Module updated successfully",
        "module": module_payload(module),
    }

@router.patch("/{module_id}/status")
async def update_module_status(
    module_id: str,
    request: StatusRequest,
    identity: Identity = Depends(require_hr),
    db: Session = Depends(get_db),
):
    """Publish, archive or return a module to draft."""
    if request.status not in VALID_STATUSES:
        raise bad_request(INVALID_STATUS_MESSAGE)

    try:
        module = _owned_module(db, module_id, identity.id)
        module.status = request.status
        db.add(module)
        db.commit()
        db.refresh(module)
    except AppHTTPException:
        raise
    except Exception as e:
        logger.error(f"Update module status error: {str(e)}")
        db.rollback()
        raise internal_error()

    verb = {"published": "published", "archived": "archived"}.get(module.status, "saved as draft")
    logger.info(f"Module {module.id} is now {module.status}")
    return {
        "success": True,
        "message": f"Module {verb} successfully",
        "module": module_payload(module),
    }

@router.delete("/{module_id}")
async def delete_module(module_id: str, identity: Identity = Depends(require_hr), db: Session = Depends(get_db)):
    module = _owned_module(db, module_id, identity.id)
    try:
        db.delete(module)
        db.commit()
    except Exception as e:
        logger.error(f"Delete module error: {str(e)}")
        db.rollback()
        raise internal_error()

    logger.info(f"Module deleted: {module_id}")
    return {"success": True, "message": "Module deleted successfully"}

# ============ Employee View ============

@employee_router.get("/employee")
async def published_modules(identity: Identity = Depends(require_employee), db: Session = Depends(get_db)):
    """
    Published, active modules for employees, newest first.

    Progress tracking is not stored yet, so every module reports the
    not-started defaults.
    """
    modules = (
        db.query(Module)
        .filter(Module.status == ModuleStatus.PUBLISHED.value, Module.is_active.is_(True))
        .order_by(Module.created_at.desc())
        .all()
    )
    items = [
        {
            **module_payload(module),
            "progress": 0,
            "isCompleted": False,
            "startedAt": None,
            "completedAt": None,
        }
        for module in modules
    ]
    return {
        "success": True,
        "message": "Published modules retrieved successfully",
        "modules": items,
        "total": len(items),
    }
