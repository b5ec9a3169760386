import uuid
from datetime import datetime, timezone
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session, selectinload

from ..db import get_db
from ..errors import NotFoundError, ValidationError
from ..auth.security import Principal, ensure_owner_or_manager, get_current_user, require_roles
from ..models.models import Customer, Project, ProjectEquipment
from ..schemas.common import DataResponse, ListResponse, MessageResponse
from ..schemas.projects import (
    ProjectStatus,
    ProjectCreate,
    ProjectUpdate,
    ProjectResponse,
    ProjectDetail,
    AllocationCreate,
    AllocationResponse,
)
from ..services.allocation import allocate_equipment, release_project_equipment, return_equipment
from ..services.pagination import PageParams, apply_search, list_payload, page_params, paginate


router = APIRouter(prefix="/projects", tags=["projects"])
log = structlog.get_logger(__name__)


def _get_project(db: Session, project_id: uuid.UUID) -> Project:
    row = db.get(Project, project_id)
    if not row:
        raise NotFoundError("Project not found")
    return row


def _snapshot_customer(db: Session, data: dict, customer_id: Optional[uuid.UUID]) -> dict:
    """Copy a customer's contact details into client fields the caller left empty."""
    if customer_id:
        customer = db.get(Customer, customer_id)
        if not customer:
            raise NotFoundError("Customer not found")
        data["client_name"] = data.get("client_name") or customer.company_name
        data["client_email"] = data.get("client_email") or customer.email
        data["client_phone"] = data.get("client_phone") or customer.phone
        data["client_address"] = data.get("client_address") or customer.address
    if not data.get("client_name"):
        raise ValidationError("clientName: Field required")
    return data


@router.get("", response_model=ListResponse[ProjectResponse])
def list_projects(
    status: Optional[ProjectStatus] = None,
    search: Optional[str] = None,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    _: Principal = Depends(get_current_user),
):
    q = db.query(Project).options(selectinload(Project.creator))
    if status:
        q = q.filter(Project.status == status.value)
    q = apply_search(q, search, [Project.name, Project.client_name, Project.description])
    rows, total = paginate(q.order_by(Project.start_date.desc(), Project.created_at.desc()), params)
    return list_payload(rows, total, params)


@router.get("/{project_id}", response_model=DataResponse[ProjectDetail])
def get_project(project_id: uuid.UUID, db: Session = Depends(get_db), _: Principal = Depends(get_current_user)):
    return {"success": True, "data": _get_project(db, project_id)}


@router.post("", response_model=DataResponse[ProjectResponse], status_code=status.HTTP_201_CREATED)
def create_project(
    body: ProjectCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    data = body.model_dump(exclude={"customer_id"})
    data = _snapshot_customer(db, data, body.customer_id)
    row = Project(**data, created_by=principal.id)
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("project_created", project_id=str(row.id), user_id=str(principal.id))
    return {"success": True, "data": row}


@router.put("/{project_id}", response_model=DataResponse[ProjectResponse])
def update_project(
    project_id: uuid.UUID,
    body: ProjectUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    row = _get_project(db, project_id)
    ensure_owner_or_manager(principal, row.created_by, "project")
    for key, value in body.model_dump().items():
        setattr(row, key, value)
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return {"success": True, "data": row}


@router.delete("/{project_id}", response_model=MessageResponse)
def delete_project(
    project_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_roles("admin", "manager")),
):
    row = _get_project(db, project_id)
    released = release_project_equipment(db, row)
    db.delete(row)
    db.commit()
    log.info("project_deleted", project_id=str(project_id), released=released, user_id=str(principal.id))
    return {"success": True, "message": "Project deleted successfully"}


# ---------- EQUIPMENT ALLOCATION ----------
@router.get("/{project_id}/equipment", response_model=DataResponse[List[AllocationResponse]])
def list_project_equipment(project_id: uuid.UUID, db: Session = Depends(get_db), _: Principal = Depends(get_current_user)):
    _get_project(db, project_id)
    rows = (
        db.query(ProjectEquipment)
        .options(selectinload(ProjectEquipment.equipment))
        .filter(ProjectEquipment.project_id == project_id)
        .order_by(ProjectEquipment.allocated_date.desc(), ProjectEquipment.created_at.desc())
        .all()
    )
    return {"success": True, "data": rows}


@router.post(
    "/{project_id}/equipment",
    response_model=DataResponse[AllocationResponse],
    status_code=status.HTTP_201_CREATED,
)
def allocate_project_equipment(
    project_id: uuid.UUID,
    body: AllocationCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    project = _get_project(db, project_id)
    ensure_owner_or_manager(principal, project.created_by, "project")
    allocation = allocate_equipment(db, project, body.equipment_id, quantity=body.quantity, notes=body.notes)
    db.commit()
    db.refresh(allocation)
    return {"success": True, "data": allocation}


@router.put("/{project_id}/equipment/{equipment_id}", response_model=DataResponse[AllocationResponse])
def return_project_equipment(
    project_id: uuid.UUID,
    equipment_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_user),
):
    project = _get_project(db, project_id)
    ensure_owner_or_manager(principal, project.created_by, "project")
    allocation = return_equipment(db, project, equipment_id)
    db.commit()
    db.refresh(allocation)
    return {"success": True, "data": allocation}
