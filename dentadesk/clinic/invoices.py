import datetime as dt
import re

from loguru import logger
from pydantic import BaseModel

from dentadesk.clinic.base import TableRepository
from dentadesk.domain.exceptions import RecordNotFoundError
from dentadesk.domain.models import (
    InvoiceChanges,
    InvoiceDetails,
    InvoiceDraft,
    InvoiceStatus,
    InvoiceTotals,
    Page,
    PageRequest,
)
from dentadesk.store.ports import StoreClientProtocol
from dentadesk.store.query import Embed, Query, search_any

INVOICE_EMBEDS = (Embed(alias="patient", table="patients", foreign_key="patient_id"),)

_NUMBER_PATTERN = re.compile(r"INV-\d{4}-(\d+)")


class InvoiceFilters(BaseModel):
    search: str | None = None
    patient_id: str | None = None
    status: InvoiceStatus | None = None
    date_from: dt.date | None = None
    date_to: dt.date | None = None
    amount_from: float | None = None
    amount_to: float | None = None


class InvoiceStats(BaseModel):
    total_invoices: int
    paid_invoices: int
    overdue_invoices: int
    total_revenue: float
    pending_revenue: float
    payment_rate: float


class MonthlyRevenue(BaseModel):
    month: int
    revenue: float
    invoice_count: int


def calculate_invoice_total(subtotal: float, tax_rate: float = 22.0) -> InvoiceTotals:
    """Apply ``tax_rate`` percent to ``subtotal``, rounding amounts to cents."""
    tax_amount = subtotal * tax_rate / 100
    return InvoiceTotals(
        subtotal=subtotal,
        tax_rate=tax_rate,
        tax_amount=round(tax_amount, 2),
        total=round(subtotal + tax_amount, 2),
    )


def format_invoice_number(year: int, sequence: int) -> str:
    return f"INV-{year}-{sequence:03d}"


class InvoiceRepository(TableRepository[InvoiceDetails]):
    """Invoices, numbered ``INV-<year>-<sequence>``."""

    table = "invoices"
    model = InvoiceDetails
    embeds = INVOICE_EMBEDS
    default_sort = ("issue_date", False)

    def __init__(self, client: StoreClientProtocol, *, default_tax_rate: float = 22.0) -> None:
        super().__init__(client)
        self.default_tax_rate = default_tax_rate

    def totals(self, subtotal: float, tax_rate: float | None = None) -> InvoiceTotals:
        return calculate_invoice_total(
            subtotal, self.default_tax_rate if tax_rate is None else tax_rate
        )

    async def find(
        self,
        filters: InvoiceFilters | None = None,
        page: PageRequest | None = None,
    ) -> Page[InvoiceDetails]:
        filters = filters or InvoiceFilters()
        query = self._query()
        if filters.patient_id:
            query.eq("patient_id", filters.patient_id)
        if filters.status:
            query.eq("status", filters.status)
        if filters.date_from:
            query.gte("issue_date", filters.date_from)
        if filters.date_to:
            query.lte("issue_date", filters.date_to)
        if filters.amount_from is not None:
            query.gte("total", filters.amount_from)
        if filters.amount_to is not None:
            query.lte("total", filters.amount_to)
        if filters.search:
            query.any_of(*search_any(("invoice_number", "description"), filters.search))
        return await self._fetch_page(query, page or PageRequest(limit=20), "Listing invoices")

    async def generate_invoice_number(self, year: int) -> str:
        """Next progressive number for ``year``, e.g. ``INV-2024-007``."""
        query = (
            Query(table=self.table)
            .select("invoice_number")
            .like("invoice_number", f"INV-{year}-%")
        )
        result = await self._guard("Generating invoice number", self._client.select(query))

        # Sequences are compared numerically; text order puts -999 after -1000.
        found = (_NUMBER_PATTERN.fullmatch(row.get("invoice_number") or "") for row in result.rows)
        highest = max((int(match.group(1)) for match in found if match), default=0)
        return format_invoice_number(year, highest + 1)

    async def create(self, draft: InvoiceDraft) -> InvoiceDetails:
        values = draft.model_dump(mode="json")
        if not draft.invoice_number:
            values["invoice_number"] = await self.generate_invoice_number(draft.issue_date.year)
            logger.info("Assigned invoice number {}", values["invoice_number"])
        return await self._insert(values)

    async def update(self, invoice_id: str, changes: InvoiceChanges) -> InvoiceDetails:
        invoice = await self._update(invoice_id, changes.model_dump(mode="json", exclude_unset=True))
        if invoice is None:
            raise RecordNotFoundError(self.table, invoice_id)
        return invoice

    async def delete(self, invoice_id: str) -> None:
        await self._delete(invoice_id)

    async def mark_as_paid(
        self,
        invoice_id: str,
        payment_method: str,
        payment_date: dt.date,
    ) -> InvoiceDetails:
        return await self.update(
            invoice_id,
            InvoiceChanges(
                status=InvoiceStatus.PAID,
                payment_method=payment_method,
                payment_date=payment_date,
            ),
        )

    async def stats(self, year: int, today: dt.date) -> InvoiceStats:
        year_query = (
            Query(table=self.table)
            .gte("issue_date", dt.date(year, 1, 1))
            .lte("issue_date", dt.date(year, 12, 31))
        )
        overdue_query = (
            Query(table=self.table)
            .select("id")
            .in_("status", [InvoiceStatus.SENT, InvoiceStatus.OVERDUE])
            .lt("due_date", today)
        )
        year_rows = (await self._guard("Fetching invoice statistics", self._client.select(year_query))).rows
        overdue_rows = (
            await self._guard("Fetching overdue invoices", self._client.select(overdue_query))
        ).rows

        paid = [row for row in year_rows if row.get("status") == InvoiceStatus.PAID.value]
        pending = [
            row
            for row in year_rows
            if row.get("status") in (InvoiceStatus.DRAFT.value, InvoiceStatus.SENT.value)
        ]
        total = len(year_rows)
        return InvoiceStats(
            total_invoices=total,
            paid_invoices=len(paid),
            overdue_invoices=len(overdue_rows),
            total_revenue=sum(float(row.get("total") or 0) for row in paid),
            pending_revenue=sum(float(row.get("total") or 0) for row in pending),
            payment_rate=len(paid) / total * 100 if total else 0.0,
        )

    async def upcoming_due(self, today: dt.date, days: int = 7) -> list[InvoiceDetails]:
        """Sent invoices falling due within ``days`` of ``today``."""
        query = (
            self._query()
            .eq("status", InvoiceStatus.SENT)
            .gte("due_date", today)
            .lte("due_date", today + dt.timedelta(days=days))
            .order("due_date")
        )
        return await self._fetch(query, "Fetching invoices falling due")

    async def by_patient(self, patient_id: str) -> list[InvoiceDetails]:
        query = self._query().eq("patient_id", patient_id).order("issue_date", ascending=False)
        return await self._fetch(query, "Fetching invoices by patient")

    async def monthly_revenue(self, year: int) -> list[MonthlyRevenue]:
        """Paid revenue per month of ``year``, one entry for each of the twelve months."""
        query = (
            Query(table=self.table)
            .select("issue_date", "total", "status")
            .gte("issue_date", dt.date(year, 1, 1))
            .lte("issue_date", dt.date(year, 12, 31))
            .eq("status", InvoiceStatus.PAID)
        )
        result = await self._guard("Fetching monthly revenue", self._client.select(query))

        revenue = {month: 0.0 for month in range(1, 13)}
        counts = {month: 0 for month in range(1, 13)}
        for row in result.rows:
            month = dt.date.fromisoformat(row["issue_date"]).month
            revenue[month] += float(row.get("total") or 0)
            counts[month] += 1
        return [
            MonthlyRevenue(month=month, revenue=revenue[month], invoice_count=counts[month])
            for month in range(1, 13)
        ]
