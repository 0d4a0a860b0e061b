"""
Invoice endpoints.

The whole resource is gated on billing access (madmin or admin);
deletion and overdue reconciliation are admin only.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Response, status

from projecthub.api.deps import BillingUser, DbSession, Paging
from projecthub.core import access
from projecthub.models.common import Message, Page
from projecthub.models.invoice import (
    InvoiceCreate,
    InvoiceRead,
    InvoiceStats,
    InvoiceStatus,
    InvoiceUpdate,
    PaymentCreate,
    PaymentResult,
    ReconcileResult,
)
from projecthub.services import invoices as invoice_service
from projecthub.services import statistics

router = APIRouter()


@router.get("", response_model=Page[InvoiceRead])
async def list_invoices(
    current_user: BillingUser,
    db: DbSession,
    paging: Paging,
    status: Optional[InvoiceStatus] = None,
    client_id: Optional[int] = None,
    project_id: Optional[int] = None,
    search: Optional[str] = None,
):
    """List invoices; overdue is derived from the due date, not stored."""
    invoices, pagination = await invoice_service.list_invoices(
        db,
        paging.limit,
        paging.offset,
        status=status,
        client_id=client_id,
        project_id=project_id,
        search=search,
    )
    return Page[InvoiceRead](items=invoices, pagination=pagination)


@router.get("/stats/overview", response_model=InvoiceStats)
async def invoice_statistics(current_user: BillingUser, db: DbSession):
    """Invoice counts and revenue by status."""
    return await statistics.invoice_stats(db)


@router.get("/export/csv")
async def export_invoices(
    current_user: BillingUser,
    db: DbSession,
    status: Optional[InvoiceStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Response:
    """Download invoices as a CSV attachment."""
    content = await invoice_service.export_csv(
        db, status=status, date_from=start_date, date_to=end_date
    )
    filename = f"invoices-{date.today().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/reconcile-overdue", response_model=ReconcileResult)
async def reconcile_overdue(current_user: BillingUser, db: DbSession):
    """Persist overdue status on pending invoices past due (admin only)."""
    access.billing_admin(current_user.role_set, "reconcile overdue invoices").enforce()
    updated = await invoice_service.reconcile_overdue(db)
    return ReconcileResult(updated=updated)


@router.get("/{invoice_id}", response_model=InvoiceRead)
async def get_invoice(invoice_id: int, current_user: BillingUser, db: DbSession):
    """Get a single invoice."""
    invoice = await invoice_service.get_invoice(db, invoice_id)
    return await invoice_service.to_read(db, invoice)


@router.post("", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
async def create_invoice(invoice_in: InvoiceCreate, current_user: BillingUser, db: DbSession):
    """Create an invoice for an approved client."""
    invoice = await invoice_service.create_invoice(db, invoice_in)
    return await invoice_service.to_read(db, invoice)


@router.put("/{invoice_id}", response_model=InvoiceRead)
async def update_invoice(
    invoice_id: int,
    invoice_in: InvoiceUpdate,
    current_user: BillingUser,
    db: DbSession,
):
    """Update an invoice."""
    invoice = await invoice_service.get_invoice(db, invoice_id)
    invoice = await invoice_service.update_invoice(db, invoice, invoice_in)
    return await invoice_service.to_read(db, invoice)


@router.put("/{invoice_id}/payment", response_model=PaymentResult)
async def add_payment(
    invoice_id: int,
    payment: PaymentCreate,
    current_user: BillingUser,
    db: DbSession,
):
    """Apply a partial payment, or settle the invoice with ``mark_as_paid``."""
    invoice = await invoice_service.get_invoice(db, invoice_id)
    return await invoice_service.apply_payment(db, invoice, payment)


@router.delete("/{invoice_id}", response_model=Message)
async def delete_invoice(invoice_id: int, current_user: BillingUser, db: DbSession):
    """Delete an invoice (admin only)."""
    access.billing_admin(current_user.role_set).enforce()
    invoice = await invoice_service.get_invoice(db, invoice_id)
    await invoice_service.delete_invoice(db, invoice)
    return Message(message="Invoice deleted successfully")
