"""
PDF generation service for job invoices.

WHAT: Renders an invoice into a print-ready PDF using ReportLab.

WHY: The PDF is what the homeowner or insurance carrier receives, so it
must show the invoice number, the job it bills, every line item, and the
totals exactly as stored (integer cents, formatted once here).

HOW: Uses ReportLab's platypus layout:
- Company header from settings (COMPANY_*)
- Bill To / dates block
- Line item table and totals table
- Notes and payment terms
Returns bytes; storing them is the document store's job.
"""

import io
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, List, Optional, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from jobbilling.core.config import settings
from jobbilling.core.money import format_money
from jobbilling.models.invoice import Invoice, InvoiceLineItem, InvoiceStatus
from jobbilling.models.job import Job

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration
# ============================================================================


@dataclass
class CompanyInfo:
    """Contractor branding printed in the invoice header."""

    name: str
    address: str
    city_state_zip: str
    phone: str
    email: str

    @classmethod
    def from_settings(cls) -> "CompanyInfo":
        return cls(
            name=settings.COMPANY_NAME,
            address=settings.COMPANY_ADDRESS,
            city_state_zip=settings.COMPANY_CITY_STATE_ZIP,
            phone=settings.COMPANY_PHONE,
            email=settings.COMPANY_EMAIL,
        )


STATUS_COLORS = {
    InvoiceStatus.SENT: "#3182ce",
    InvoiceStatus.PAID: "#38a169",
    InvoiceStatus.OVERDUE: "#e53e3e",
    InvoiceStatus.CANCELLED: "#718096",
}


# ============================================================================
# PDF Styles
# ============================================================================


def get_styles():
    """
    Get PDF document styles.

    Returns:
        StyleSheet with the invoice styles added
    """
    styles = getSampleStyleSheet()

    styles.add(ParagraphStyle(
        name="CompanyTitle",
        parent=styles["Heading1"],
        fontSize=22,
        spaceAfter=12,
        textColor=colors.HexColor("#1a365d"),
    ))
    styles.add(ParagraphStyle(
        name="SectionHeader",
        parent=styles["Heading2"],
        fontSize=12,
        spaceBefore=12,
        spaceAfter=6,
        textColor=colors.HexColor("#2d3748"),
    ))
    styles.add(ParagraphStyle(
        name="InvoiceBody",
        parent=styles["Normal"],
        fontSize=10,
        spaceBefore=3,
        spaceAfter=3,
    ))
    styles.add(ParagraphStyle(
        name="SmallText",
        parent=styles["Normal"],
        fontSize=8,
        textColor=colors.HexColor("#718096"),
    ))
    styles.add(ParagraphStyle(
        name="RightAlign",
        parent=styles["Normal"],
        fontSize=10,
        alignment=TA_RIGHT,
    ))

    return styles


def format_date(d: Any) -> str:
    """Format a date as e.g. "January 15, 2024" (empty string for None)."""
    if d is None:
        return ""
    if isinstance(d, datetime):
        d = d.date()
    if isinstance(d, date):
        return d.strftime("%B %d, %Y")
    return str(d)


# ============================================================================
# PDF Service
# ============================================================================


class PDFService:
    """
    Service for rendering invoice PDFs.

    HOW: Builds a list of flowables and lets SimpleDocTemplate paginate.
    """

    def __init__(self, company_info: Optional[CompanyInfo] = None):
        """
        Initialize PDF service.

        Args:
            company_info: Branding (defaults to the COMPANY_* settings)
        """
        self.company = company_info or CompanyInfo.from_settings()
        self.styles = get_styles()

    def _paragraph(self, text: str, style: str = "InvoiceBody") -> Paragraph:
        return Paragraph(escape(text), self.styles[style])

    def _build_header(self, invoice: Invoice) -> List:
        elements = [
            self._paragraph(self.company.name, "CompanyTitle"),
            Paragraph(
                "<br/>".join(
                    escape(line)
                    for line in (
                        self.company.address,
                        self.company.city_state_zip,
                        f"{self.company.phone} | {self.company.email}",
                    )
                ),
                self.styles["SmallText"],
            ),
            Spacer(1, 18),
        ]

        header_table = Table(
            [["INVOICE", invoice.invoice_number]],
            colWidths=[3 * inch, 4 * inch],
        )
        header_table.setStyle(TableStyle([
            ("FONTNAME", (0, 0), (0, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (0, 0), 18),
            ("TEXTCOLOR", (0, 0), (0, 0), colors.HexColor("#2563eb")),
            ("FONTSIZE", (1, 0), (1, 0), 12),
            ("ALIGN", (1, 0), (1, 0), "RIGHT"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ]))
        elements.append(header_table)
        elements.append(Spacer(1, 12))

        status = invoice.display_status
        if status != InvoiceStatus.DRAFT:
            color = STATUS_COLORS.get(status, "#718096")
            elements.append(Paragraph(
                f"<font color='{color}'><b>STATUS: {status.value.upper()}</b></font>",
                self.styles["InvoiceBody"],
            ))
            elements.append(Spacer(1, 8))

        return elements

    def _build_bill_to(self, invoice: Invoice, job: Job) -> List:
        left = [
            Paragraph("<b>Bill To:</b>", self.styles["InvoiceBody"]),
            self._paragraph(job.customer_name),
        ]
        if job.address:
            left.append(self._paragraph(job.address))
        if job.email:
            left.append(self._paragraph(job.email))

        dates = [
            ("Job", f"#{job.id}"),
            ("Invoice Date", format_date(invoice.invoice_date)),
            ("Due Date", format_date(invoice.due_date) if invoice.due_date else "Upon Receipt"),
        ]
        if invoice.paid_date:
            dates.append(("Paid Date", format_date(invoice.paid_date)))
        right = [
            Paragraph(f"<b>{label}:</b> {escape(value)}", self.styles["RightAlign"])
            for label, value in dates
        ]

        table = Table([[left, right]], colWidths=[3.5 * inch, 3.5 * inch])
        table.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("ALIGN", (1, 0), (1, 0), "RIGHT"),
        ]))
        return [table, Spacer(1, 18)]

    def _build_line_items_table(self, line_items: Sequence[InvoiceLineItem]) -> Table:
        data = [["Description", "Qty", "Unit Price", "Amount"]]
        for item in line_items:
            data.append([
                self._paragraph(item.description),
                str(item.quantity),
                format_money(item.unit_price),
                format_money(item.total_price),
            ])

        table = Table(data, colWidths=[3.5 * inch, 0.75 * inch, 1.25 * inch, 1.5 * inch])
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f7fafc")),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
            ("TOPPADDING", (0, 0), (-1, -1), 8),
            ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#e2e8f0")),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f7fafc")]),
        ]))
        return table

    def _build_totals_table(self, invoice: Invoice) -> Table:
        data = [["Subtotal", format_money(invoice.amount)]]
        if invoice.tax_amount:
            data.append(["Tax", format_money(invoice.tax_amount)])
        data.append(["Total Due", format_money(invoice.total_amount)])

        total_row = len(data) - 1
        table = Table(data, colWidths=[1.5 * inch, 1.5 * inch])
        table.setStyle(TableStyle([
            ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
            ("FONTSIZE", (0, 0), (-1, -1), 10),
            ("FONTNAME", (0, total_row), (-1, total_row), "Helvetica-Bold"),
            ("FONTSIZE", (0, total_row), (-1, total_row), 12),
            ("TEXTCOLOR", (0, total_row), (-1, total_row), colors.HexColor("#1a365d")),
            ("LINEABOVE", (0, total_row), (-1, total_row), 1, colors.HexColor("#2d3748")),
        ]))
        return table

    # ========================================================================
    # Invoice PDF Generation
    # ========================================================================

    def generate_invoice_pdf(
        self,
        invoice: Invoice,
        job: Job,
        line_items: Optional[Sequence[InvoiceLineItem]] = None,
    ) -> bytes:
        """
        Render an invoice.

        Args:
            invoice: Committed invoice
            job: The billed job (Bill To details)
            line_items: Line items (defaults to invoice.line_items)

        Returns:
            PDF file as bytes
        """
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            rightMargin=0.75 * inch,
            leftMargin=0.75 * inch,
            topMargin=0.75 * inch,
            bottomMargin=0.75 * inch,
            title=f"Invoice {invoice.invoice_number}",
        )

        items = list(line_items if line_items is not None else invoice.line_items)

        elements = []
        elements.extend(self._build_header(invoice))
        elements.extend(self._build_bill_to(invoice, job))
        elements.append(self._build_line_items_table(items))
        elements.append(Spacer(1, 18))

        totals_layout = Table([["", self._build_totals_table(invoice)]], colWidths=[4 * inch, 3 * inch])
        totals_layout.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
        elements.append(totals_layout)
        elements.append(Spacer(1, 18))

        if invoice.notes:
            elements.append(Paragraph("<b>Notes:</b>", self.styles["SectionHeader"]))
            elements.append(self._paragraph(invoice.notes))

        elements.append(Spacer(1, 12))
        elements.append(self._paragraph(
            f"Please reference {invoice.invoice_number} with your payment.",
            "SmallText",
        ))

        doc.build(elements)
        pdf_bytes = buffer.getvalue()
        buffer.close()

        logger.info(f"Generated invoice PDF: {invoice.invoice_number}")
        return pdf_bytes
