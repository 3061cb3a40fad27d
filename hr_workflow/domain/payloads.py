"""
Type-specific record payloads (``hr_workflow.domain.payloads``).

Responsibility
--------------
Frozen value objects for the data each record variant carries besides its
workflow state: clock times for time cards, the daily rate for substitutes,
month/year/entries for monthly cards, and the date range for leave requests.
Also owns the JSON shape stored in the ``payload`` column.

Architecture position
---------------------
**Kernel domain layer** -- pure.  ZERO I/O.

Invariants enforced
-------------------
* Clock-out is not before clock-in; a break lies inside the shift.
* ``total_hours`` is derived from clock times when not given explicitly.
* Leave ``end_date`` is not before ``start_date``.
* Monthly cards carry a month in 1..12 and a pay period covering it.

Failure modes
-------------
* ``InvalidPayloadError`` for any violated invariant or malformed JSON.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterator, Union
from uuid import UUID

from hr_workflow.exceptions import InvalidPayloadError

HOURS_QUANTUM = Decimal("0.01")


def compute_total_hours(
    clock_in: datetime,
    clock_out: datetime,
    break_start: datetime | None = None,
    break_end: datetime | None = None,
) -> Decimal:
    """Worked hours between clock-in and clock-out, minus one unpaid break.

    Rounded half-up to hundredths, matching the ``decimal(5, 2)`` columns
    payroll reads.
    """
    worked = clock_out - clock_in
    if break_start is not None and break_end is not None:
        worked -= break_end - break_start
    hours = Decimal(int(worked.total_seconds())) / Decimal(3600)
    return hours.quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _date(value: Any, record_type: str, name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidPayloadError(record_type, f"{name} is not an ISO date: {value!r}")


def _optional_datetime(value: Any, record_type: str, name: str) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidPayloadError(record_type, f"{name} is not an ISO timestamp: {value!r}")


def _optional_decimal(value: Any, record_type: str, name: str) -> Decimal | None:
    if value is None or isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise InvalidPayloadError(record_type, f"{name} is not a number: {value!r}")


def _decimal_str(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


# =========================================================================
# Time cards
# =========================================================================


@dataclass(frozen=True)
class TimeCardPayload:
    """A single worked (or leave) day."""

    RECORD_TYPE = "time_card"

    work_date: date
    clock_in: datetime | None = None
    clock_out: datetime | None = None
    break_start: datetime | None = None
    break_end: datetime | None = None
    total_hours: Decimal | None = None
    overtime_hours: Decimal = Decimal("0")
    leave_type: str | None = None

    def __post_init__(self) -> None:
        if self.clock_in and self.clock_out and self.clock_out < self.clock_in:
            raise InvalidPayloadError(self.RECORD_TYPE, "clock_out is before clock_in")
        if (self.break_start is None) != (self.break_end is None):
            raise InvalidPayloadError(
                self.RECORD_TYPE, "break_start and break_end must be given together",
            )
        if self.break_start and self.break_end:
            if self.break_end < self.break_start:
                raise InvalidPayloadError(self.RECORD_TYPE, "break_end is before break_start")
            if self.clock_in and self.clock_out and not (
                self.clock_in <= self.break_start and self.break_end <= self.clock_out
            ):
                raise InvalidPayloadError(self.RECORD_TYPE, "break lies outside the shift")
        if self.total_hours is None and self.clock_in and self.clock_out:
            object.__setattr__(
                self,
                "total_hours",
                compute_total_hours(
                    self.clock_in, self.clock_out, self.break_start, self.break_end,
                ),
            )

    def to_json(self) -> dict[str, Any]:
        return {
            "work_date": _iso(self.work_date),
            "clock_in": _iso(self.clock_in),
            "clock_out": _iso(self.clock_out),
            "break_start": _iso(self.break_start),
            "break_end": _iso(self.break_end),
            "total_hours": _decimal_str(self.total_hours),
            "overtime_hours": _decimal_str(self.overtime_hours),
            "leave_type": self.leave_type,
        }

    @classmethod
    def _common_fields(cls, data: dict[str, Any]) -> dict[str, Any]:
        rt = cls.RECORD_TYPE
        if "work_date" not in data:
            raise InvalidPayloadError(rt, "work_date is required")
        return {
            "work_date": _date(data["work_date"], rt, "work_date"),
            "clock_in": _optional_datetime(data.get("clock_in"), rt, "clock_in"),
            "clock_out": _optional_datetime(data.get("clock_out"), rt, "clock_out"),
            "break_start": _optional_datetime(data.get("break_start"), rt, "break_start"),
            "break_end": _optional_datetime(data.get("break_end"), rt, "break_end"),
            "total_hours": _optional_decimal(data.get("total_hours"), rt, "total_hours"),
            "overtime_hours": _optional_decimal(
                data.get("overtime_hours", "0"), rt, "overtime_hours",
            ) or Decimal("0"),
            "leave_type": data.get("leave_type"),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> TimeCardPayload:
        return cls(**cls._common_fields(data))


@dataclass(frozen=True)
class SubstituteTimeCardPayload(TimeCardPayload):
    """A substitute's day, paid at a daily rate."""

    RECORD_TYPE = "substitute_time_card"

    daily_rate: Decimal | None = None
    assignment_id: UUID | None = None
    total_pay: Decimal | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.daily_rate is not None and self.daily_rate < 0:
            raise InvalidPayloadError(self.RECORD_TYPE, "daily_rate is negative")
        if self.total_pay is None and self.daily_rate is not None:
            object.__setattr__(self, "total_pay", self.daily_rate)

    def to_json(self) -> dict[str, Any]:
        data = super().to_json()
        data.update({
            "daily_rate": _decimal_str(self.daily_rate),
            "assignment_id": str(self.assignment_id) if self.assignment_id else None,
            "total_pay": _decimal_str(self.total_pay),
        })
        return data

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> SubstituteTimeCardPayload:
        rt = cls.RECORD_TYPE
        assignment = data.get("assignment_id")
        return cls(
            **cls._common_fields(data),
            daily_rate=_optional_decimal(data.get("daily_rate"), rt, "daily_rate"),
            assignment_id=UUID(assignment) if assignment else None,
            total_pay=_optional_decimal(data.get("total_pay"), rt, "total_pay"),
        )


# =========================================================================
# Monthly time cards
# =========================================================================


@dataclass(frozen=True)
class MonthlyTimeCardPayload:
    """One employee's month, with free-form daily entries."""

    RECORD_TYPE = "monthly_time_card"

    month: int
    year: int
    entries: tuple[dict[str, Any], ...] = ()
    pay_period_start: date | None = None
    pay_period_end: date | None = None

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise InvalidPayloadError(self.RECORD_TYPE, f"month out of range: {self.month}")
        if self.pay_period_start is None:
            object.__setattr__(self, "pay_period_start", date(self.year, self.month, 1))
        if self.pay_period_end is None:
            last_day = calendar.monthrange(self.year, self.month)[1]
            object.__setattr__(self, "pay_period_end", date(self.year, self.month, last_day))
        if self.pay_period_end < self.pay_period_start:
            raise InvalidPayloadError(self.RECORD_TYPE, "pay period ends before it starts")

    def to_json(self) -> dict[str, Any]:
        return {
            "month": self.month,
            "year": self.year,
            "entries": [dict(e) for e in self.entries],
            "pay_period_start": _iso(self.pay_period_start),
            "pay_period_end": _iso(self.pay_period_end),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> MonthlyTimeCardPayload:
        rt = cls.RECORD_TYPE
        try:
            month = int(data["month"])
            year = int(data["year"])
        except (KeyError, TypeError, ValueError):
            raise InvalidPayloadError(rt, "month and year are required integers")
        start = data.get("pay_period_start")
        end = data.get("pay_period_end")
        return cls(
            month=month,
            year=year,
            entries=tuple(dict(e) for e in data.get("entries") or ()),
            pay_period_start=_date(start, rt, "pay_period_start") if start else None,
            pay_period_end=_date(end, rt, "pay_period_end") if end else None,
        )


# =========================================================================
# Leave requests
# =========================================================================


@dataclass(frozen=True)
class LeaveRequestPayload:
    """An inclusive date range of leave of one type."""

    RECORD_TYPE = "leave_request"

    leave_type: str
    start_date: date
    end_date: date
    reason: str | None = None
    is_paid: bool = True
    substitute_required: bool = False

    def __post_init__(self) -> None:
        if not self.leave_type:
            raise InvalidPayloadError(self.RECORD_TYPE, "leave_type is required")
        if self.end_date < self.start_date:
            raise InvalidPayloadError(self.RECORD_TYPE, "end_date is before start_date")

    @property
    def day_count(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def covered_days(self) -> Iterator[date]:
        """Every calendar day in ``[start_date, end_date]``, in order."""
        for offset in range(self.day_count):
            yield self.start_date + timedelta(days=offset)

    def to_json(self) -> dict[str, Any]:
        return {
            "leave_type": self.leave_type,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "reason": self.reason,
            "is_paid": self.is_paid,
            "substitute_required": self.substitute_required,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> LeaveRequestPayload:
        rt = cls.RECORD_TYPE
        if "start_date" not in data or "end_date" not in data:
            raise InvalidPayloadError(rt, "start_date and end_date are required")
        return cls(
            leave_type=data.get("leave_type") or "",
            start_date=_date(data["start_date"], rt, "start_date"),
            end_date=_date(data["end_date"], rt, "end_date"),
            reason=data.get("reason"),
            is_paid=bool(data.get("is_paid", True)),
            substitute_required=bool(data.get("substitute_required", False)),
        )


RecordPayload = Union[
    TimeCardPayload,
    SubstituteTimeCardPayload,
    MonthlyTimeCardPayload,
    LeaveRequestPayload,
]

PAYLOAD_TYPES: dict[str, type] = {
    "time_card": TimeCardPayload,
    "substitute_time_card": SubstituteTimeCardPayload,
    "monthly_time_card": MonthlyTimeCardPayload,
    "leave_request": LeaveRequestPayload,
}


def payload_type_for(record_type: str) -> type:
    """Payload class registered for ``record_type`` (a ``RecordType`` or its value)."""
    key = getattr(record_type, "value", record_type)
    try:
        return PAYLOAD_TYPES[key]
    except KeyError:
        raise InvalidPayloadError(str(key), "no payload type registered")


def payload_from_json(record_type: str, data: dict[str, Any]) -> RecordPayload:
    """Parse the JSON column shape back into the typed payload."""
    return payload_type_for(record_type).from_json(data)


def check_payload_type(record_type: str, payload: RecordPayload) -> None:
    """Raise ``InvalidPayloadError`` unless ``payload`` is exactly the registered class."""
    expected = payload_type_for(record_type)
    if type(payload) is not expected:
        raise InvalidPayloadError(
            getattr(record_type, "value", record_type),
            f"expected {expected.__name__}, got {type(payload).__name__}",
        )
