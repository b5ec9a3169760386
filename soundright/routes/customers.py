import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ConflictError, NotFoundError
from ..auth.security import Principal, get_current_user, require_roles
from ..models.models import Customer
from ..schemas.common import DataResponse, ListResponse, MessageResponse
from ..schemas.customers import CustomerCreate, CustomerUpdate, CustomerResponse
from ..services.pagination import PageParams, apply_search, list_payload, page_params, paginate


router = APIRouter(prefix="/customers", tags=["customers"])


def _get_customer(db: Session, customer_id: uuid.UUID) -> Customer:
    row = db.get(Customer, customer_id)
    if not row:
        raise NotFoundError("Customer not found")
    return row


def _ensure_email_free(db: Session, email: str, exclude_id: Optional[uuid.UUID] = None) -> None:
    q = db.query(Customer.id).filter(Customer.email == email)
    if exclude_id:
        q = q.filter(Customer.id != exclude_id)
    if q.first():
        raise ConflictError("Customer with this email already exists")


@router.get("", response_model=ListResponse[CustomerResponse])
def list_customers(
    active: Optional[bool] = None,
    search: Optional[str] = None,
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    _: Principal = Depends(get_current_user),
):
    q = db.query(Customer)
    if active is not None:
        q = q.filter(Customer.is_active == active)
    q = apply_search(q, search, [Customer.company_name, Customer.contact_person, Customer.email, Customer.phone])
    rows, total = paginate(q.order_by(Customer.company_name.asc()), params)
    return list_payload(rows, total, params)


@router.get("/{customer_id}", response_model=DataResponse[CustomerResponse])
def get_customer(customer_id: uuid.UUID, db: Session = Depends(get_db), _: Principal = Depends(get_current_user)):
    return {"success": True, "data": _get_customer(db, customer_id)}


@router.post("", response_model=DataResponse[CustomerResponse], status_code=status.HTTP_201_CREATED)
def create_customer(
    body: CustomerCreate,
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles("admin", "manager")),
):
    _ensure_email_free(db, body.email)
    row = Customer(**body.model_dump())
    db.add(row)
    db.commit()
    db.refresh(row)
    return {"success": True, "data": row}


@router.put("/{customer_id}", response_model=DataResponse[CustomerResponse])
def update_customer(
    customer_id: uuid.UUID,
    body: CustomerUpdate,
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles("admin", "manager")),
):
    row = _get_customer(db, customer_id)
    _ensure_email_free(db, body.email, exclude_id=row.id)
    for key, value in body.model_dump().items():
        setattr(row, key, value)
    row.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return {"success": True, "data": row}


@router.delete("/{customer_id}", response_model=MessageResponse)
def delete_customer(
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: Principal = Depends(require_roles("admin")),
):
    row = _get_customer(db, customer_id)
    db.delete(row)
    db.commit()
    return {"success": True, "message": "Customer deleted successfully"}
