import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Integer,
    Numeric,
    UniqueConstraint,
    CheckConstraint,
    Text,
    Index,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def money_column(**kwargs) -> Mapped[Decimal]:
    return mapped_column(Numeric(10, 2, asdecimal=True), default=Decimal("0.00"), nullable=False, **kwargs)


USER_ROLES = ("admin", "manager", "user")
CONDITION_STATUSES = ("excellent", "good", "fair", "poor", "repair")
PROJECT_STATUSES = ("planning", "active", "completed", "cancelled")
QUOTE_STATUSES = ("draft", "sent", "accepted", "rejected", "expired")
INVOICE_STATUSES = ("draft", "sent", "paid", "overdue", "cancelled")
DELIVERY_STATUSES = ("pending", "delivered", "returned")


def _in(column: str, values) -> str:
    return f"{column} IN ({', '.join(repr(v) for v in values)})"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="user", nullable=False)  # admin|manager|user
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint(_in("role", USER_ROLES), name="ck_users_role"),
    )

    @property
    def full_name(self) -> str:
        return " ".join(x for x in [self.first_name, self.last_name] if x)


class Equipment(Base):
    """Rental equipment units: speakers, mixers, microphones, lighting, cabling"""
    __tablename__ = "equipment"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    brand: Mapped[Optional[str]] = mapped_column(String(50))
    model: Mapped[Optional[str]] = mapped_column(String(50))
    serial_number: Mapped[Optional[str]] = mapped_column(String(100), unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    specifications: Mapped[Optional[str]] = mapped_column(Text)
    purchase_date: Mapped[Optional[date]] = mapped_column(Date)
    purchase_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    current_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    condition_status: Mapped[str] = mapped_column(String(20), default="good", nullable=False)  # excellent|good|fair|poor|repair
    location: Mapped[Optional[str]] = mapped_column(String(100))
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    maintenance_notes: Mapped[Optional[str]] = mapped_column(Text)
    last_maintenance: Mapped[Optional[date]] = mapped_column(Date)
    next_maintenance: Mapped[Optional[date]] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=utcnow)

    allocations = relationship("ProjectEquipment", back_populates="equipment")

    __table_args__ = (
        CheckConstraint(_in("condition_status", CONDITION_STATUSES), name="ck_equipment_condition"),
        Index("idx_equipment_category_available", "category", "is_available"),
    )


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    client_name: Mapped[str] = mapped_column(String(100), nullable=False)
    client_email: Mapped[Optional[str]] = mapped_column(String(100))
    client_phone: Mapped[Optional[str]] = mapped_column(String(20))
    client_address: Mapped[Optional[str]] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="planning", nullable=False, index=True)  # planning|active|completed|cancelled
    location: Mapped[Optional[str]] = mapped_column(String(200))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=utcnow)

    creator = relationship("User")
    allocations = relationship(
        "ProjectEquipment",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectEquipment.created_at",
    )

    __table_args__ = (
        CheckConstraint(_in("status", PROJECT_STATUSES), name="ck_projects_status"),
        CheckConstraint("start_date < end_date", name="ck_projects_dates"),
    )

    @property
    def created_by_name(self) -> Optional[str]:
        return self.creator.full_name if self.creator else None


class ProjectEquipment(Base):
    """Allocation of one equipment unit to a project; closed by setting returned_date"""
    __tablename__ = "project_equipment"

    id: Mapped[uuid.UUID] = uuid_pk()
    project_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    equipment_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("equipment.id"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    allocated_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    returned_date: Mapped[Optional[date]] = mapped_column(Date)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    project = relationship("Project", back_populates="allocations")
    equipment = relationship("Equipment", back_populates="allocations")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_project_equipment_quantity"),
        # At most one open allocation per equipment unit
        Index(
            "uq_project_equipment_open",
            "equipment_id",
            unique=True,
            sqlite_where=text("returned_date IS NULL"),
            postgresql_where=text("returned_date IS NULL"),
        ),
    )

    @property
    def is_open(self) -> bool:
        return self.returned_date is None


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = uuid_pk()
    company_name: Mapped[str] = mapped_column(String(100), nullable=False)
    contact_person: Mapped[Optional[str]] = mapped_column(String(100))
    email: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[Optional[str]] = mapped_column(String(50))
    state: Mapped[Optional[str]] = mapped_column(String(50))
    postal_code: Mapped[str] = mapped_column(String(20), nullable=False)
    country: Mapped[Optional[str]] = mapped_column(String(50))
    tax_id: Mapped[Optional[str]] = mapped_column(String(50))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=utcnow)


class Quote(Base):
    __tablename__ = "quotes"

    id: Mapped[uuid.UUID] = uuid_pk()
    quote_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="SET NULL"))
    client_name: Mapped[str] = mapped_column(String(100), nullable=False)
    client_email: Mapped[Optional[str]] = mapped_column(String(100))
    client_phone: Mapped[Optional[str]] = mapped_column(String(20))
    client_address: Mapped[Optional[str]] = mapped_column(Text)
    quote_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    valid_until: Mapped[Optional[date]] = mapped_column(Date)
    subtotal: Mapped[Decimal] = money_column()
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2, asdecimal=True), default=Decimal("0.00"), nullable=False)
    tax_amount: Mapped[Decimal] = money_column()
    total_amount: Mapped[Decimal] = money_column()
    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False, index=True)  # draft|sent|accepted|rejected|expired
    notes: Mapped[Optional[str]] = mapped_column(Text)
    terms_conditions: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=utcnow)

    project = relationship("Project")
    creator = relationship("User")
    items = relationship("QuoteItem", back_populates="quote", cascade="all, delete-orphan", order_by="QuoteItem.created_at")

    __table_args__ = (
        CheckConstraint(_in("status", QUOTE_STATUSES), name="ck_quotes_status"),
        CheckConstraint("tax_rate >= 0 AND tax_rate <= 100", name="ck_quotes_tax_rate"),
    )

    @property
    def document_number(self) -> str:
        return self.quote_number

    @property
    def project_name(self) -> Optional[str]:
        return self.project.name if self.project else None

    @property
    def created_by_name(self) -> Optional[str]:
        return self.creator.full_name if self.creator else None


class QuoteItem(Base):
    __tablename__ = "quote_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    quote_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    equipment_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("equipment.id", ondelete="SET NULL"))
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_price: Mapped[Decimal] = money_column()
    total_price: Mapped[Decimal] = money_column()
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    quote = relationship("Quote", back_populates="items")
    equipment = relationship("Equipment")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_quote_items_quantity"),
        CheckConstraint("unit_price >= 0", name="ck_quote_items_unit_price"),
    )


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[uuid.UUID] = uuid_pk()
    invoice_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="SET NULL"))
    quote_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("quotes.id", ondelete="SET NULL"))
    client_name: Mapped[str] = mapped_column(String(100), nullable=False)
    client_email: Mapped[Optional[str]] = mapped_column(String(100))
    client_phone: Mapped[Optional[str]] = mapped_column(String(20))
    client_address: Mapped[Optional[str]] = mapped_column(Text)
    invoice_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date)
    subtotal: Mapped[Decimal] = money_column()
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2, asdecimal=True), default=Decimal("0.00"), nullable=False)
    tax_amount: Mapped[Decimal] = money_column()
    total_amount: Mapped[Decimal] = money_column()
    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False, index=True)  # draft|sent|paid|overdue|cancelled
    payment_terms: Mapped[Optional[str]] = mapped_column(String(100))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=utcnow)

    project = relationship("Project")
    quote = relationship("Quote")
    creator = relationship("User")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan", order_by="InvoiceItem.created_at")

    __table_args__ = (
        CheckConstraint(_in("status", INVOICE_STATUSES), name="ck_invoices_status"),
        CheckConstraint("tax_rate >= 0 AND tax_rate <= 100", name="ck_invoices_tax_rate"),
    )

    @property
    def document_number(self) -> str:
        return self.invoice_number

    @property
    def project_name(self) -> Optional[str]:
        return self.project.name if self.project else None

    @property
    def created_by_name(self) -> Optional[str]:
        return self.creator.full_name if self.creator else None

    @property
    def quote_number(self) -> Optional[str]:
        return self.quote.quote_number if self.quote else None


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    invoice_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    equipment_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("equipment.id", ondelete="SET NULL"))
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_price: Mapped[Decimal] = money_column()
    total_price: Mapped[Decimal] = money_column()
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    invoice = relationship("Invoice", back_populates="items")
    equipment = relationship("Equipment")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_invoice_items_quantity"),
        CheckConstraint("unit_price >= 0", name="ck_invoice_items_unit_price"),
    )


class DeliveryNote(Base):
    __tablename__ = "delivery_notes"

    id: Mapped[uuid.UUID] = uuid_pk()
    delivery_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    project_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    delivery_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    delivery_address: Mapped[Optional[str]] = mapped_column(Text)
    contact_person: Mapped[Optional[str]] = mapped_column(String(100))
    contact_phone: Mapped[Optional[str]] = mapped_column(String(20))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False, index=True)  # pending|delivered|returned
    created_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), default=utcnow)

    project = relationship("Project")
    creator = relationship("User")
    items = relationship("DeliveryItem", back_populates="delivery_note", cascade="all, delete-orphan", order_by="DeliveryItem.created_at")

    __table_args__ = (
        CheckConstraint(_in("status", DELIVERY_STATUSES), name="ck_delivery_notes_status"),
    )

    @property
    def project_name(self) -> Optional[str]:
        return self.project.name if self.project else None

    @property
    def created_by_name(self) -> Optional[str]:
        return self.creator.full_name if self.creator else None


class DeliveryItem(Base):
    __tablename__ = "delivery_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    delivery_note_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("delivery_notes.id", ondelete="CASCADE"), nullable=False, index=True)
    equipment_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("equipment.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    condition_before: Mapped[Optional[str]] = mapped_column(String(20))
    condition_after: Mapped[Optional[str]] = mapped_column(String(20))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    delivery_note = relationship("DeliveryNote", back_populates="items")
    equipment = relationship("Equipment")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_delivery_items_quantity"),
    )


class DocumentSequence(Base):
    """Per-prefix, per-year counter backing human-readable document numbers"""
    __tablename__ = "document_sequences"

    id: Mapped[uuid.UUID] = uuid_pk()
    prefix: Mapped[str] = mapped_column(String(10), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    last_value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("prefix", "year", name="uq_document_sequence_prefix_year"),
    )
