"""
Invoice invariants, payments and numbering.

Invariants:
- the client exists and is approved; a referenced project exists
- due_date is never before the invoice date
- 0 <= paid_amount <= amount after any sequence of payments
- cancelled invoices accept no payment

Overdue is a read-time projection (``effective_status``); stored rows are
only switched to overdue by the explicit ``reconcile_overdue`` step.
"""

import io
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from sqlalchemy import and_, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import or_, select

from projecthub.core.exceptions import ConflictError, NotFoundError, ValidationError
from projecthub.models.common import Pagination
from projecthub.models.invoice import (
    Invoice,
    InvoiceCreate,
    InvoiceRead,
    InvoiceSequence,
    InvoiceStatus,
    InvoiceUpdate,
    PaymentCreate,
    PaymentResult,
)
from projecthub.models.project import Project
from projecthub.models.user import User
from projecthub.services.pagination import paginate

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
CENTS = Decimal("0.01")

# Statuses a client may set directly; paid comes from payments, overdue is derived
SETTABLE_STATUSES = (InvoiceStatus.PENDING, InvoiceStatus.CANCELLED)


def effective_status(invoice: Invoice, today: Optional[date] = None) -> InvoiceStatus:
    """Stored status, with pending-past-due reported as overdue."""
    today = today or date.today()
    if invoice.status == InvoiceStatus.PENDING and invoice.due_date < today:
        return InvoiceStatus.OVERDUE
    return invoice.status


def status_condition(status: InvoiceStatus, today: date):
    """SQL filter matching invoices whose effective status is ``status``."""
    past_due = Invoice.due_date < today
    if status == InvoiceStatus.OVERDUE:
        return or_(
            Invoice.status == InvoiceStatus.OVERDUE,
            and_(Invoice.status == InvoiceStatus.PENDING, past_due),
        )
    if status == InvoiceStatus.PENDING:
        return and_(Invoice.status == InvoiceStatus.PENDING, Invoice.due_date >= today)
    return Invoice.status == status


def format_number(year: int, sequence: int) -> str:
    return f"{year}{sequence:04d}"


def check_dates(invoice_date: date, due_date: date) -> None:
    """
    Raises:
        ValidationError: If due_date precedes the invoice date.
    """
    if due_date < invoice_date:
        raise ValidationError(
            "Due date cannot be before invoice date",
            field="due_date",
            constraint="not_before_date",
        )


async def resolve_client(session: AsyncSession, client_id: int) -> User:
    """
    Load an approved client.

    Raises:
        NotFoundError: If the client does not exist.
        ValidationError: If the client is not approved.
    """
    client = await session.get(User, client_id)
    if client is None:
        raise NotFoundError("Client", field="client_id")
    if not client.approved:
        raise ValidationError(
            "Cannot create invoice for unapproved client",
            field="client_id",
            constraint="approved",
        )
    return client


async def resolve_project(session: AsyncSession, project_id: Optional[int]) -> Optional[Project]:
    """
    Raises:
        NotFoundError: If a project id is given but does not exist.
    """
    if project_id is None:
        return None
    project = await session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project", field="project_id")
    return project


async def reserve_invoice_number(session: AsyncSession, year: int) -> str:
    """
    Reserve the next invoice number for ``year``.

    The per-year counter row is incremented with a single UPDATE so two
    transactions never receive the same value. The first reservation of a
    year seeds the counter from the invoices already dated in it. The unique
    constraint on ``invoices.number`` backs this at the storage boundary.
    """
    result = await session.execute(
        update(InvoiceSequence)
        .where(InvoiceSequence.year == year)
        .values(last_value=InvoiceSequence.last_value + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        existing = (
            await session.execute(
                select(func.count()).select_from(Invoice).where(
                    Invoice.date >= date(year, 1, 1),
                    Invoice.date < date(year + 1, 1, 1),
                )
            )
        ).scalar_one()
        sequence = InvoiceSequence(year=year, last_value=existing + 1)
        session.add(sequence)
        await session.flush()
        return format_number(year, sequence.last_value)

    last_value = (
        await session.execute(
            select(InvoiceSequence.last_value).where(InvoiceSequence.year == year)
        )
    ).scalar_one()
    return format_number(year, last_value)


async def get_invoice(session: AsyncSession, invoice_id: int) -> Invoice:
    """
    Raises:
        NotFoundError: If no such invoice exists.
    """
    invoice = await session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice")
    return invoice


def _build_read(
    invoice: Invoice,
    client: Optional[User],
    project_name: Optional[str],
    today: Optional[date] = None,
) -> InvoiceRead:
    return InvoiceRead(
        id=invoice.id,
        number=invoice.number,
        client_id=invoice.client_id,
        project_id=invoice.project_id,
        amount=invoice.amount,
        description=invoice.description,
        date=invoice.date,
        due_date=invoice.due_date,
        status=effective_status(invoice, today),
        paid_amount=invoice.paid_amount,
        balance=invoice.balance,
        client_name=client.name if client else None,
        client_email=client.email if client else None,
        project_name=project_name,
        created_at=invoice.created_at,
        updated_at=invoice.updated_at,
    )


async def to_read(session: AsyncSession, invoice: Invoice, today: Optional[date] = None) -> InvoiceRead:
    """Attach client and project details and the effective status."""
    client = await session.get(User, invoice.client_id)
    project = await session.get(Project, invoice.project_id) if invoice.project_id else None
    return _build_read(invoice, client, project.name if project else None, today)


async def create_invoice(session: AsyncSession, data: InvoiceCreate) -> Invoice:
    """
    Create a pending invoice with a freshly reserved number.
    """
    await resolve_client(session, data.client_id)
    await resolve_project(session, data.project_id)
    check_dates(data.date, data.due_date)

    invoice = Invoice(
        number=await reserve_invoice_number(session, data.date.year),
        client_id=data.client_id,
        project_id=data.project_id,
        amount=data.amount,
        description=data.description,
        date=data.date,
        due_date=data.due_date,
        status=InvoiceStatus.PENDING,
        paid_amount=ZERO,
    )
    session.add(invoice)
    await session.commit()
    await session.refresh(invoice)

    logger.info(f"Invoice {invoice.number} created for client {invoice.client_id}: {invoice.amount}")
    return invoice


async def update_invoice(session: AsyncSession, invoice: Invoice, data: InvoiceUpdate) -> Invoice:
    """
    Apply submitted fields after checking them against the merged state.

    Raises:
        ValidationError: Bad dates, unapproved client or a status that
            cannot be set directly.
        NotFoundError: Unknown client or project.
        ConflictError: Amount below what has already been paid, or
            reopening a fully paid invoice.
    """
    changes: Dict[str, Any] = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No valid fields to update")
    for key in ("client_id", "amount", "date", "due_date", "status"):
        if key in changes and changes[key] is None:
            raise ValidationError(f"{key} cannot be null", field=key, constraint="required")

    if "client_id" in changes:
        await resolve_client(session, changes["client_id"])
    if changes.get("project_id") is not None:
        await resolve_project(session, changes["project_id"])

    check_dates(changes.get("date", invoice.date), changes.get("due_date", invoice.due_date))

    amount = changes.get("amount", invoice.amount)
    if amount < invoice.paid_amount:
        raise ConflictError(
            f"Amount cannot be less than the amount already paid ({invoice.paid_amount})",
            condition="amount_below_paid",
            paid_amount=str(invoice.paid_amount),
        )

    status = changes.pop("status", None)
    if status is not None and status not in SETTABLE_STATUSES:
        raise ValidationError(
            "Status can only be set to pending or cancelled",
            field="status",
            constraint="settable_status",
        )
    if status == InvoiceStatus.PENDING and invoice.paid_amount >= amount:
        raise ConflictError("Invoice is fully paid", condition="already_paid")

    for key, value in changes.items():
        setattr(invoice, key, value)
    if status is not None:
        invoice.status = status
    elif invoice.status == InvoiceStatus.PAID and invoice.paid_amount < invoice.amount:
        invoice.status = InvoiceStatus.PENDING
    elif invoice.status == InvoiceStatus.PENDING and invoice.paid_amount >= invoice.amount:
        invoice.status = InvoiceStatus.PAID
    invoice.updated_at = datetime.utcnow()

    session.add(invoice)
    await session.commit()
    await session.refresh(invoice)

    logger.info(f"Invoice {invoice.number} updated")
    return invoice


def _quantize(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENTS)


async def apply_payment(
    session: AsyncSession,
    invoice: Invoice,
    payment: PaymentCreate,
    today: Optional[date] = None,
) -> PaymentResult:
    """
    Apply a full or partial payment.

    ``mark_as_paid`` settles the invoice regardless of earlier partial
    payments. A partial payment that would exceed the amount is rejected
    and the invoice is left unchanged.

    Raises:
        ConflictError: ``invoice_cancelled`` or ``payment_exceeds_balance``.
        ValidationError: Partial payment without an amount.
    """
    if invoice.status == InvoiceStatus.CANCELLED:
        raise ConflictError("Cannot add payment to cancelled invoice", condition="invoice_cancelled")

    amount = _quantize(invoice.amount)
    paid = _quantize(invoice.paid_amount)

    if payment.mark_as_paid:
        payment_amount = amount - paid
        new_paid = amount
    else:
        if payment.amount is None:
            raise ValidationError(
                "Payment amount is required",
                field="amount",
                constraint="required",
            )
        payment_amount = _quantize(payment.amount)
        new_paid = paid + payment_amount
        if new_paid > amount:
            remaining = amount - paid
            raise ConflictError(
                f"Payment amount exceeds remaining balance of {remaining}",
                condition="payment_exceeds_balance",
                remaining_balance=str(remaining),
            )

    invoice.paid_amount = new_paid
    invoice.status = InvoiceStatus.PAID if new_paid >= amount else InvoiceStatus.PENDING
    invoice.updated_at = datetime.utcnow()

    session.add(invoice)
    await session.commit()
    await session.refresh(invoice)

    logger.info(f"Payment of {payment_amount} applied to invoice {invoice.number} (paid {new_paid}/{amount})")
    return PaymentResult(
        invoice=await to_read(session, invoice, today),
        payment_amount=payment_amount,
        new_balance=amount - new_paid,
        total_paid=new_paid,
    )


async def delete_invoice(session: AsyncSession, invoice: Invoice) -> None:
    await session.delete(invoice)
    await session.commit()

    logger.info(f"Invoice {invoice.number} deleted")


async def reconcile_overdue(session: AsyncSession, today: Optional[date] = None) -> int:
    """
    Persist overdue status on pending invoices past their due date.

    Returns:
        int: Number of invoices switched to overdue.
    """
    today = today or date.today()
    result = await session.execute(
        update(Invoice)
        .where(Invoice.status == InvoiceStatus.PENDING, Invoice.due_date < today)
        .values(status=InvoiceStatus.OVERDUE, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    logger.info(f"Marked {result.rowcount} invoice(s) overdue as of {today}")
    return result.rowcount


def _filtered_query(
    today: date,
    status: Optional[InvoiceStatus] = None,
    client_id: Optional[int] = None,
    project_id: Optional[int] = None,
    search: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    client = User.__table__.alias("client")
    query = (
        select(Invoice, client.c.name, client.c.email, Project.name)
        .join(client, client.c.id == Invoice.client_id, isouter=True)
        .join(Project, Project.id == Invoice.project_id, isouter=True)
    )
    if status is not None:
        query = query.where(status_condition(status, today))
    if client_id is not None:
        query = query.where(Invoice.client_id == client_id)
    if project_id is not None:
        query = query.where(Invoice.project_id == project_id)
    if search:
        like = f"%{search}%"
        query = query.where(
            or_(
                Invoice.number.ilike(like),
                Invoice.description.ilike(like),
                client.c.name.ilike(like),
            )
        )
    if date_from is not None:
        query = query.where(Invoice.date >= date_from)
    if date_to is not None:
        query = query.where(Invoice.date <= date_to)
    return query


def _row_to_read(row, today: date) -> InvoiceRead:
    invoice, client_name, client_email, project_name = row
    payload = _build_read(invoice, None, project_name, today)
    payload.client_name = client_name
    payload.client_email = client_email
    return payload


async def list_invoices(
    session: AsyncSession,
    limit: int,
    offset: int,
    status: Optional[InvoiceStatus] = None,
    client_id: Optional[int] = None,
    project_id: Optional[int] = None,
    search: Optional[str] = None,
    today: Optional[date] = None,
) -> Tuple[List[InvoiceRead], Pagination]:
    """
    List invoices newest first. Status filters on the effective status;
    nothing is written.
    """
    today = today or date.today()
    query = _filtered_query(today, status, client_id, project_id, search)
    query = query.order_by(Invoice.created_at.desc(), Invoice.id.desc())

    rows, pagination = await paginate(session, query, limit, offset)
    return [_row_to_read(row, today) for row in rows], pagination


EXPORT_COLUMNS = [
    "Invoice Number",
    "Date",
    "Due Date",
    "Amount",
    "Paid Amount",
    "Balance",
    "Status",
    "Client Name",
    "Client Email",
    "Project",
    "Description",
]


async def export_csv(
    session: AsyncSession,
    status: Optional[InvoiceStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    today: Optional[date] = None,
) -> str:
    """
    Render matching invoices as CSV, ordered by invoice date.

    Returns:
        str: CSV text with a header row.
    """
    today = today or date.today()
    query = _filtered_query(today, status, date_from=date_from, date_to=date_to)
    query = query.order_by(Invoice.date.desc(), Invoice.id.desc())
    rows = [_row_to_read(row, today) for row in (await session.execute(query)).all()]

    df = pd.DataFrame(
        [
            [
                invoice.number,
                invoice.date.isoformat(),
                invoice.due_date.isoformat(),
                f"{invoice.amount:.2f}",
                f"{invoice.paid_amount:.2f}",
                f"{invoice.balance:.2f}",
                invoice.status.value,
                invoice.client_name or "",
                invoice.client_email or "",
                invoice.project_name or "",
                invoice.description or "",
            ]
            for invoice in rows
        ],
        columns=EXPORT_COLUMNS,
    )
    buffer = io.StringIO()
    df.to_csv(buffer, index=False)
    return buffer.getvalue()
