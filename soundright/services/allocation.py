"""
Project <-> equipment allocation.

An open allocation row (``returned_date IS NULL``) and ``is_available = False``
on the equipment always change together, inside one transaction. The flag is
flipped with a compare-and-swap ``UPDATE`` so that two requests racing for the
same unit cannot both win; a partial unique index on open allocations backs it
up at the storage layer.
"""
import uuid
from datetime import date, datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import ConflictError, NotFoundError
from ..models.models import Equipment, Project, ProjectEquipment


log = structlog.get_logger(__name__)

CLOSED_PROJECT_STATUSES = ("completed", "cancelled")
OPEN_PROJECT_STATUSES = ("planning", "active")


def _set_availability(db: Session, equipment_id: uuid.UUID, *, expected: bool, new: bool) -> bool:
    result = db.execute(
        update(Equipment)
        .where(Equipment.id == equipment_id, Equipment.is_available == expected)
        .values(is_available=new, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    return bool(result.rowcount)


def open_allocation(db: Session, project_id: uuid.UUID, equipment_id: uuid.UUID) -> Optional[ProjectEquipment]:
    return (
        db.query(ProjectEquipment)
        .filter(
            ProjectEquipment.project_id == project_id,
            ProjectEquipment.equipment_id == equipment_id,
            ProjectEquipment.returned_date.is_(None),
        )
        .first()
    )


def allocate_equipment(
    db: Session,
    project: Project,
    equipment_id: uuid.UUID,
    quantity: int = 1,
    notes: Optional[str] = None,
) -> ProjectEquipment:
    """Unallocated -> Allocated. Raises ConflictError when any precondition fails."""
    if project.status in CLOSED_PROJECT_STATUSES:
        raise ConflictError("Cannot allocate equipment to completed or cancelled projects")

    equipment = db.get(Equipment, equipment_id)
    if equipment is None:
        raise NotFoundError("Equipment not found")

    if open_allocation(db, project.id, equipment_id) is not None:
        raise ConflictError("Equipment is already allocated to this project")

    if not _set_availability(db, equipment_id, expected=True, new=False):
        raise ConflictError("Equipment is not available for allocation")

    allocation = ProjectEquipment(
        project_id=project.id,
        equipment_id=equipment_id,
        quantity=quantity,
        notes=notes,
        allocated_date=date.today(),
    )
    try:
        with db.begin_nested():
            db.add(allocation)
    except IntegrityError:
        raise ConflictError("Equipment is not available for allocation")

    db.refresh(equipment)
    log.info("equipment_allocated", project_id=str(project.id), equipment_id=str(equipment_id), allocation_id=str(allocation.id))
    return allocation


def return_equipment(db: Session, project: Project, equipment_id: uuid.UUID) -> ProjectEquipment:
    """Allocated -> Returned."""
    allocation = open_allocation(db, project.id, equipment_id)
    if allocation is None:
        raise NotFoundError("Equipment allocation not found or already returned")

    allocation.returned_date = date.today()
    db.flush()
    _set_availability(db, equipment_id, expected=False, new=True)
    equipment = db.get(Equipment, equipment_id)
    if equipment is not None:
        db.refresh(equipment)
    log.info("equipment_returned", project_id=str(project.id), equipment_id=str(equipment_id), allocation_id=str(allocation.id))
    return allocation


def release_project_equipment(db: Session, project: Project) -> int:
    """Close every open allocation of a project (used before deleting it)."""
    released = 0
    for allocation in list(project.allocations):
        if allocation.returned_date is None:
            return_equipment(db, project, allocation.equipment_id)
            released += 1
    return released


def equipment_in_use(db: Session, equipment_id: uuid.UUID) -> bool:
    """True while the unit has an open allocation on a planning/active project."""
    return (
        db.query(ProjectEquipment.id)
        .join(Project, Project.id == ProjectEquipment.project_id)
        .filter(
            ProjectEquipment.equipment_id == equipment_id,
            ProjectEquipment.returned_date.is_(None),
            Project.status.in_(OPEN_PROJECT_STATUSES),
        )
        .first()
        is not None
    )
