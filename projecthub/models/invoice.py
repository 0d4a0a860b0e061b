"""
Invoice models.

Monetary values are fixed-precision decimals (12 digits, 2 places).
"""

import datetime as dt
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel


class InvoiceStatus(str, Enum):
    """Invoice status."""
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class Invoice(SQLModel, table=True):
    """
    Invoice database model.

    Attributes:
        id: Primary key.
        number: Human readable number, ``<year><4-digit sequence>``.
        client_id: Billed user; must be approved.
        project_id: Optional related project.
        amount: Total amount due (> 0).
        description: Optional free-form description.
        date: Invoice date.
        due_date: Payment due date; never before ``date``.
        status: Stored status. Overdue is normally derived at read time.
        paid_amount: Sum of applied payments, 0 <= paid_amount <= amount.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
    """

    __tablename__ = "invoices"

    id: Optional[int] = Field(default=None, primary_key=True)
    number: str = Field(unique=True, index=True, max_length=16)
    client_id: int = Field(foreign_key="users.id", index=True)
    project_id: Optional[int] = Field(
        default=None, foreign_key="projects.id", index=True, ondelete="SET NULL"
    )
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    description: Optional[str] = None
    date: dt.date
    due_date: dt.date
    status: InvoiceStatus = InvoiceStatus.PENDING
    paid_amount: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def balance(self) -> Decimal:
        return self.amount - self.paid_amount


class InvoiceSequence(SQLModel, table=True):
    """Last invoice sequence value handed out for a calendar year."""

    __tablename__ = "invoice_sequences"

    year: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    last_value: int = 0


class InvoiceCreate(SQLModel):
    """Schema for creating an invoice."""
    client_id: int
    project_id: Optional[int] = None
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=5000)
    date: dt.date
    due_date: dt.date


class InvoiceUpdate(SQLModel):
    """Schema for updating an invoice. Only submitted fields are applied."""
    client_id: Optional[int] = None
    project_id: Optional[int] = None
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=5000)
    date: Optional[dt.date] = None
    due_date: Optional[dt.date] = None
    status: Optional[InvoiceStatus] = None


class PaymentCreate(SQLModel):
    """
    Payment request.

    With ``mark_as_paid`` the invoice is settled in full and ``amount`` is
    ignored; otherwise ``amount`` is applied as a partial payment.
    """
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    mark_as_paid: bool = False


class InvoiceRead(SQLModel):
    """Schema for reading an invoice with client and project names."""
    id: int
    number: str
    client_id: int
    project_id: Optional[int] = None
    amount: Decimal
    description: Optional[str] = None
    date: dt.date
    due_date: dt.date
    status: InvoiceStatus
    paid_amount: Decimal
    balance: Decimal
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    project_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PaymentResult(SQLModel):
    """Outcome of a payment application."""
    invoice: InvoiceRead
    payment_amount: Decimal
    new_balance: Decimal
    total_paid: Decimal


class InvoiceStats(SQLModel):
    """Invoice counts and revenue by effective status."""
    total: int = 0
    pending: int = 0
    paid: int = 0
    overdue: int = 0
    cancelled: int = 0
    total_revenue: Decimal = Decimal("0.00")
    pending_revenue: Decimal = Decimal("0.00")
    overdue_revenue: Decimal = Decimal("0.00")
    average_invoice_amount: Decimal = Decimal("0.00")


class ReconcileResult(SQLModel):
    """Number of invoices whose stored status was set to overdue."""
    updated: int
