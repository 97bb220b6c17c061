"""CSV and PDF renderers for booking exports.

Rows arrive already scoped and flattened by
:func:`stayledger.services.booking_service.report_rows`; this module only
formats them.
"""

import csv
import io
from dataclasses import astuple, dataclass
from datetime import date, datetime
from decimal import Decimal

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle


@dataclass(frozen=True)
class BookingReportRow:
    booking_id: str
    resource_type: str
    resource_title: str
    guest_name: str
    guest_email: str
    check_in: date
    check_out: date
    guests: int
    total_price: Decimal
    status: str
    payment_status: str
    created_at: datetime | None


HEADERS = [
    "Booking ID",
    "Type",
    "Resource",
    "Guest",
    "Email",
    "Check-in",
    "Check-out",
    "Guests",
    "Total",
    "Status",
    "Payment",
    "Created",
]


def _cell(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    return str(value)


def render_csv(rows: list[BookingReportRow]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(HEADERS)
    for row in rows:
        writer.writerow([_cell(v) for v in astuple(row)])
    return buffer.getvalue()


def render_pdf(rows: list[BookingReportRow], title: str = "Booking report") -> bytes:
    """Render ``rows`` as a landscape A4 table with a totals line."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        topMargin=1.5 * cm,
        bottomMargin=1.5 * cm,
        leftMargin=1 * cm,
        rightMargin=1 * cm,
        title=title,
    )
    styles = getSampleStyleSheet()

    story = [
        Paragraph(title, styles["Title"]),
        Paragraph(f"Generated {datetime.now().strftime('%Y-%m-%d %H:%M')}", styles["Normal"]),
        Spacer(1, 12),
    ]

    # Booking ids are left out of the PDF to keep the table on one page width.
    data = [HEADERS[1:]]
    for row in rows:
        data.append([_cell(v) for v in astuple(row)[1:]])

    total = sum((row.total_price for row in rows), Decimal("0"))
    data.append([f"Total ({len(rows)})", "", "", "", "", "", "", f"{total:.2f}", "", "", ""])

    table = Table(data, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
            ]
        )
    )
    story.append(table)

    doc.build(story)
    return buffer.getvalue()
