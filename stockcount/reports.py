import csv
from datetime import datetime
from io import BytesIO, StringIO
from typing import Iterable

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from .counting import DateFilter, SummaryRow
from .ledger import CountRecord

HISTORY_COLUMNS = [
    "date", "item_name", "yesterday_count", "current_count",
    "restocks_received", "sold_calculated", "created_at",
]


def history_csv_bytes(records: Iterable[CountRecord]) -> bytes:
    si = StringIO()
    cw = csv.writer(si)
    cw.writerow(HISTORY_COLUMNS)
    for r in records:
        cw.writerow([
            r.date.isoformat(),
            r.item_name,
            r.yesterday_count,
            r.current_count,
            r.restocks_received,
            r.sold_calculated,
            r.created_at.isoformat(sep=" ", timespec="seconds") if r.created_at else "",
        ])
    return si.getvalue().encode("utf-8")


def summary_pdf_bytes(rows: list[SummaryRow], date_filter: DateFilter, generated_at: datetime) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    w, h = A4

    y = h - 18 * mm
    c.setFont("Helvetica-Bold", 16)
    c.drawString(18 * mm, y, "STOCK SUMMARY")
    y -= 10 * mm

    c.setFont("Helvetica", 10)
    c.drawString(18 * mm, y, f"Period: {date_filter.describe()}")
    c.drawString(110 * mm, y, f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M')}")
    y -= 10 * mm

    def header(y):
        c.setFont("Helvetica-Bold", 10)
        c.drawString(18 * mm, y, "Item")
        c.drawRightString(100 * mm, y, "Sold")
        c.drawRightString(122 * mm, y, "Restocked")
        c.drawRightString(144 * mm, y, "Avg start")
        c.drawRightString(162 * mm, y, "Stock")
        c.drawRightString(176 * mm, y, "Days")
        c.drawRightString(196 * mm, y, "Turnover %")
        y -= 3 * mm
        c.line(18 * mm, y, 196 * mm, y)
        c.setFont("Helvetica", 10)
        return y - 7 * mm

    y = header(y)
    for row in rows:
        c.drawString(18 * mm, y, row.item_name[:40])
        c.drawRightString(100 * mm, y, str(row.total_sold))
        c.drawRightString(122 * mm, y, str(row.total_restocked))
        c.drawRightString(144 * mm, y, f"{row.avg_starting_stock:.2f}")
        c.drawRightString(162 * mm, y, str(row.current_stock))
        c.drawRightString(176 * mm, y, str(row.days_tracked))
        c.drawRightString(196 * mm, y, f"{row.turnover_rate:.2f}")
        y -= 6 * mm

        if y < 25 * mm:
            c.showPage()
            y = header(h - 18 * mm)

    y -= 6 * mm
    c.setFont("Helvetica-Bold", 11)
    c.drawString(18 * mm, y, f"Unique items: {len(rows)}")
    c.drawRightString(196 * mm, y, (
        f"Total sold: {sum(r.total_sold for r in rows)}   "
        f"Total restocked: {sum(r.total_restocked for r in rows)}"
    ))

    c.showPage()
    c.save()
    return buf.getvalue()
