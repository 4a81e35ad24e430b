"""CSV / PDF report rendering"""

from datetime import date, datetime

from stockcount.counting import DateFilter, SummaryRow
from stockcount.ledger import CountRecord
from stockcount.reports import history_csv_bytes, summary_pdf_bytes


def test_history_csv_empty_has_header():
    assert history_csv_bytes([]).decode("utf-8").strip() == (
        "date,item_name,yesterday_count,current_count,restocks_received,sold_calculated,created_at"
    )


def test_history_csv_quotes_commas():
    rec = CountRecord(
        item_name="Beans, roasted", date=date(2025, 1, 2), yesterday_count=10,
        current_count=4, restocks_received=1, sold_calculated=7,
        created_at=datetime(2025, 1, 2, 8, 30, 15, 123),
    )
    line = history_csv_bytes([rec]).decode("utf-8").splitlines()[1]
    assert line == '2025-01-02,"Beans, roasted",10,4,1,7,2025-01-02 08:30:15'


def test_summary_pdf_many_rows():
    rows = [
        SummaryRow(f"Item {i:03d}", i, i, float(i), i, 1, 0.0)
        for i in range(80)
    ]
    pdf = summary_pdf_bytes(rows, DateFilter(date(2025, 1, 1), date(2025, 1, 31)), datetime(2025, 2, 1, 9, 0))
    assert pdf.startswith(b"%PDF")
