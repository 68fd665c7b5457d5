"""
Invoice PDF for a settled payment.

Layout: header, invoice metadata, billed-to block, payment-details block.
"""

import io
import logging

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, HRFlowable, Table, TableStyle

from app.payments.models import Payment

logger = logging.getLogger(__name__)

PLATFORM_NAME = "Public Infrastructure Issue Reporting"
ACCENT = colors.HexColor("#2E86AB")

TYPE_LABELS = {
    "boost_issue": "Issue boost",
    "subscription": "Premium subscription",
}


def _money(amount: int, currency: str) -> str:
    return f"{amount / 100:,.2f} {currency.upper()}"


def _block(rows: list[list[str]]) -> Table:
    t = Table(rows, colWidths=[2 * inch, 4.2 * inch])
    t.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor("#F8F9FA")),
                ("TEXTCOLOR", (0, 0), (0, -1), ACCENT),
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 10),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
                ("TOPPADDING", (0, 0), (-1, -1), 6),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#DEE2E6")),
            ]
        )
    )
    return t


def invoice_number(payment: Payment) -> str:
    return f"INV-{payment.paid_at:%Y%m%d}-{payment.id[:8].upper()}"


def render_invoice(payment: Payment) -> bytes:
    """Render `payment` as a PDF and return the document bytes."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.75 * inch,
        leftMargin=0.75 * inch,
        topMargin=1 * inch,
        bottomMargin=1 * inch,
        title=invoice_number(payment),
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "InvoiceTitle",
        parent=styles["Heading1"],
        fontSize=20,
        spaceAfter=6,
        alignment=TA_CENTER,
        textColor=ACCENT,
    )
    subtitle_style = ParagraphStyle(
        "InvoiceSubtitle",
        parent=styles["Normal"],
        fontSize=10,
        alignment=TA_CENTER,
        textColor=colors.grey,
    )
    heading_style = ParagraphStyle(
        "InvoiceHeading",
        parent=styles["Heading2"],
        fontSize=13,
        spaceBefore=16,
        spaceAfter=8,
        textColor=ACCENT,
    )

    content = []

    # Header
    content.append(Paragraph("INVOICE", title_style))
    content.append(Paragraph(PLATFORM_NAME, subtitle_style))
    content.append(Spacer(1, 12))
    content.append(HRFlowable(width="100%", thickness=1, color=ACCENT))

    # Invoice metadata
    content.append(Paragraph("Invoice", heading_style))
    content.append(_block([
        ["Invoice No:", invoice_number(payment)],
        ["Date:", payment.paid_at.strftime("%B %d, %Y")],
        ["Status:", payment.payment_status.upper()],
    ]))

    # Billed to
    content.append(Paragraph("Billed To", heading_style))
    content.append(_block([
        ["Name:", payment.customer_name or "-"],
        ["Email:", payment.customer_email],
    ]))

    # Payment details
    details = [
        ["Payment Type:", TYPE_LABELS.get(payment.payment_type, payment.payment_type)],
    ]
    if payment.issue_title:
        details.append(["Issue:", payment.issue_title])
    details += [
        ["Amount:", _money(payment.amount, payment.currency)],
        ["Transaction ID:", payment.transaction_id],
    ]
    content.append(Paragraph("Payment Details", heading_style))
    content.append(_block(details))

    content.append(Spacer(1, 24))
    content.append(Paragraph("Thank you for supporting your community.", subtitle_style))

    doc.build(content)
    pdf_bytes = buffer.getvalue()
    buffer.close()
    logger.debug("rendered invoice %s (%d bytes)", invoice_number(payment), len(pdf_bytes))
    return pdf_bytes
