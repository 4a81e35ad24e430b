"""Sales derivation, summary aggregation and the manual theft check.

A day's sold quantity is inferred from the stock delta against the same
item's record on the previous calendar day::

    sold = max(0, starting_count + restocks_received - current_count)

where ``starting_count`` is yesterday's ``current_count``. The first
record for an item has no baseline, so it only initialises stock.
"""
from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, asdict
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from .ledger import CountRecord, LedgerStore

logger = logging.getLogger(__name__)

_WHOLE_NUMBER = re.compile(r"[+-]?[0-9]+")

# Upper bound of the 32-bit INTEGER columns.
MAX_COUNT = 2**31 - 1

FIRST_DAY_MESSAGE = "Initial count recorded!"


class CountInputError(ValueError):
    """Bad caller input; nothing has been computed or written."""

    def __init__(self, message: str, fields: Optional[dict[str, str]] = None):
        super().__init__(message)
        self.fields = fields or {}


# ---------------------------
# Input parsing
# ---------------------------

def parse_count(value, field: str) -> int:
    """Strictly parse a non-negative whole number from an int or a digit string."""
    if isinstance(value, bool) or value is None:
        raise CountInputError(f"{field} is required", {field: "required"})
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and _WHOLE_NUMBER.fullmatch(value.strip()):
        digits = value.strip().lstrip("+-").lstrip("0")
        if len(digits) > len(str(MAX_COUNT)):
            raise CountInputError(f"{field} must be at most {MAX_COUNT}", {field: f"at most {MAX_COUNT}"})
        number = int(value.strip())
    else:
        raise CountInputError(f"{field} must be a whole number", {field: "must be a whole number"})
    if number < 0:
        raise CountInputError(f"{field} must not be negative", {field: "must not be negative"})
    if number > MAX_COUNT:
        raise CountInputError(f"{field} must be at most {MAX_COUNT}", {field: f"at most {MAX_COUNT}"})
    return number


def parse_day(value, field: str = "date") -> date:
    """Parse a YYYY-MM-DD calendar day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), "%Y-%m-%d").date()
        except ValueError:
            pass
    raise CountInputError(f"{field} must be a date in YYYY-MM-DD format", {field: "expected YYYY-MM-DD"})


def today(boundary: str = "utc") -> date:
    if boundary == "local":
        return date.today()
    return datetime.now(timezone.utc).date()


def _round2(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# ---------------------------
# Derivation
# ---------------------------

@dataclass
class CountResult:
    record: CountRecord
    is_first_day: bool
    message: str

    @property
    def sold_calculated(self) -> int:
        return self.record.sold_calculated

    @property
    def starting_count(self) -> int:
        return self.record.yesterday_count


def record_daily_count(
    store: LedgerStore,
    item_name: str,
    day: date,
    current_count,
    restocks_received=0,
) -> CountResult:
    """Derive the day's sales from yesterday's count and store today's snapshot.

    Re-submitting for the same (item_name, day) overwrites the earlier
    snapshot.
    """
    name = (item_name or "").strip() if isinstance(item_name, str) else ""
    if not name:
        raise CountInputError("item_name is required", {"item_name": "required"})
    current = parse_count(current_count, "current_count")
    restocks = parse_count(restocks_received, "restocks_received")

    prior = store.get(name, day - timedelta(days=1))
    if prior is None:
        starting = current
        sold = 0
    else:
        starting = prior.current_count
        sold = max(0, starting + restocks - current)
        if sold > MAX_COUNT:
            raise CountInputError(
                "restocks_received is too large for the previous count",
                {"restocks_received": f"sold quantity would exceed {MAX_COUNT}"},
            )

    saved = store.upsert(CountRecord(
        item_name=name,
        date=day,
        yesterday_count=starting,
        current_count=current,
        restocks_received=restocks,
        sold_calculated=sold,
    ))

    is_first_day = prior is None
    if is_first_day:
        message = FIRST_DAY_MESSAGE
    else:
        message = f"Sales calculated: {sold} items sold yesterday!"
    logger.info(
        "Count saved: item=%s date=%s start=%d current=%d restocks=%d sold=%d first_day=%s",
        name, day.isoformat(), starting, current, restocks, sold, is_first_day,
    )
    return CountResult(record=saved, is_first_day=is_first_day, message=message)


# ---------------------------
# Aggregation
# ---------------------------

@dataclass(frozen=True)
class DateFilter:
    start: Optional[date] = None
    end: Optional[date] = None

    @property
    def is_all_history(self) -> bool:
        return self.start is None and self.end is None

    def describe(self) -> str:
        if self.is_all_history:
            return "All history"
        if self.end is None:
            return f"Since {self.start.isoformat()}"
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


def resolve_date_filter(
    days: Optional[int] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    *,
    today: date,
) -> DateFilter:
    """Turn "last N days" or an inclusive [start, end] range into a DateFilter.

    Giving both modes, or only one end of a range, is rejected.
    """
    has_range = start is not None or end is not None
    if days is not None and has_range:
        raise CountInputError(
            "Use either days or a start/end range, not both",
            {"days": "cannot be combined with a date range"},
        )
    if days is not None:
        try:
            return DateFilter(start=today - timedelta(days=parse_count(days, "days")))
        except OverflowError:
            raise CountInputError("days reaches past the earliest date", {"days": "too large"}) from None
    if has_range:
        if start is None or end is None:
            missing = "startDate" if start is None else "endDate"
            raise CountInputError("A date range needs both startDate and endDate", {missing: "required"})
        if start > end:
            raise CountInputError("startDate must not be after endDate", {"startDate": "after endDate"})
        return DateFilter(start=start, end=end)
    return DateFilter()


@dataclass
class SummaryRow:
    item_name: str
    total_sold: int
    total_restocked: int
    avg_starting_stock: float
    current_stock: int
    days_tracked: int
    turnover_rate: float

    def to_dict(self) -> dict:
        return asdict(self)


def summarize(records: Iterable[CountRecord]) -> list[SummaryRow]:
    """Fold ledger records into one row per item, ordered by item_name."""
    groups: dict[str, list[CountRecord]] = {}
    for r in records:
        groups.setdefault(r.item_name, []).append(r)

    rows = []
    for name in sorted(groups):
        group = groups[name]
        days_tracked = len(group)
        total_sold = sum(r.sold_calculated for r in group)
        avg_starting = sum(r.yesterday_count for r in group) / days_tracked
        latest = max(group, key=lambda r: (r.date, r.id or 0))

        if avg_starting > 0 and days_tracked > 0:
            turnover = total_sold / avg_starting / days_tracked * 100
        else:
            turnover = 0.0

        rows.append(SummaryRow(
            item_name=name,
            total_sold=total_sold,
            total_restocked=sum(r.restocks_received for r in group),
            avg_starting_stock=_round2(avg_starting),
            current_stock=latest.current_count,
            days_tracked=days_tracked,
            turnover_rate=_round2(turnover),
        ))
    return rows


def summarize_ledger(store: LedgerStore, date_filter: DateFilter) -> list[SummaryRow]:
    return summarize(store.between(date_filter.start, date_filter.end))


# ---------------------------
# Theft check
# ---------------------------

class SalesStatus(str, enum.Enum):
    MATCH = "match"
    SHORTAGE = "shortage"
    SURPLUS = "surplus"


@dataclass
class SalesCheck:
    calculated_sales: int
    actual_sales: int
    difference: int
    status: SalesStatus
    message: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data


def compare_sales(calculated_sales, actual_sales) -> SalesCheck:
    """Compare sales derived from counts with sales the till actually recorded."""
    calculated = parse_count(calculated_sales, "calculated_sales")
    actual = parse_count(actual_sales, "actual_sales")
    difference = calculated - actual

    if difference == 0:
        status = SalesStatus.MATCH
        message = "No discrepancy detected. Sales match perfectly."
    elif difference > 0:
        status = SalesStatus.SHORTAGE
        message = f"Potential theft detected! {difference} items missing. Calculated sales exceed actual receipts."
    else:
        status = SalesStatus.SURPLUS
        message = (
            f"Actual sales exceed calculated sales by {abs(difference)} items. "
            "Check for unrecorded restocks or counting errors."
        )
    return SalesCheck(calculated, actual, difference, status, message)
