"""
Aging calculator (SLA semaphore).

Maps the time elapsed since a reference instant to GREEN / AMBER / RED.
Thresholds and unit belong to the call site: case lists count days, the
medical-order SLA counts hours.
"""

import enum
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Union

from favsync.core.utc import to_utc, utc_now
from favsync.services.pjn.normalizers import normalize_date

Instant = Union[str, date, datetime, None]

# State after which a scheduled appointment can no longer be overdue
ORDER_COMPLETED_STATES = ("ESTUDIO_REALIZADO",)


class SemaforoColor(enum.Enum):
    GREEN = "VERDE"
    AMBER = "AMARILLO"
    RED = "ROJO"

    @property
    def rank(self) -> int:
        """Sort order, most urgent last."""
        return {"VERDE": 0, "AMARILLO": 1, "ROJO": 2}[self.value]


class AgingUnit(enum.Enum):
    DAYS = "days"
    HOURS = "hours"


@dataclass(frozen=True)
class AgingResult:
    elapsed: Optional[int]
    color: SemaforoColor
    unit: AgingUnit
    overdue: bool = False

    def to_dict(self) -> dict:
        return {
            "elapsed": self.elapsed,
            "unit": self.unit.value,
            "semaforo": self.color.value,
            "overdue": self.overdue,
        }


def _to_instant(value: Instant) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    return normalize_date(value).timestamp


def january_days_between(start: date, end: date) -> int:
    """Days in January within [start, end], both ends included."""
    if end < start:
        return 0
    count = 0
    for year in range(start.year, end.year + 1):
        jan_start = max(start, date(year, 1, 1))
        jan_end = min(end, date(year, 1, 31))
        if jan_end >= jan_start:
            count += (jan_end - jan_start).days + 1
    return count


def elapsed_since(
    reference: Instant,
    now: Optional[datetime] = None,
    unit: AgingUnit = AgingUnit.DAYS,
    exclude_january: bool = False,
) -> Optional[int]:
    """
    Whole units elapsed since `reference`, never negative.

    Days are calendar-day differences; with `exclude_january` the days of
    the January judicial recess inside the range do not count. Hours are
    floored. Returns None for a missing or unparseable reference.
    """
    ref = _to_instant(reference)
    if ref is None:
        return None
    now = to_utc(now) if now is not None else utc_now()

    if unit is AgingUnit.HOURS:
        return max(0, int((now - ref) // timedelta(hours=1)))

    days = (now.date() - ref.date()).days
    if exclude_january:
        days -= january_days_between(ref.date(), now.date())
    return max(0, days)


def color_for(elapsed: Optional[int], amber: int, red: int) -> SemaforoColor:
    if elapsed is None:
        return SemaforoColor.GREEN
    if elapsed >= red:
        return SemaforoColor.RED
    if elapsed >= amber:
        return SemaforoColor.AMBER
    return SemaforoColor.GREEN


def compute_aging(
    reference: Instant,
    now: Optional[datetime] = None,
    *,
    amber: int,
    red: int,
    unit: AgingUnit = AgingUnit.DAYS,
    exclude_january: bool = False,
    deadline: Instant = None,
    state: Optional[str] = None,
    completed_states: Iterable[str] = ORDER_COMPLETED_STATES,
) -> AgingResult:
    """
    Classify the age of a record.

    A `deadline` in the past forces RED unless `state` is one of
    `completed_states`, whatever the elapsed time.
    """
    if amber > red:
        raise ValueError(f"amber threshold ({amber}) must not exceed red ({red})")
    now = to_utc(now) if now is not None else utc_now()

    elapsed = elapsed_since(reference, now, unit, exclude_january)
    color = color_for(elapsed, amber, red)

    overdue = False
    due = _to_instant(deadline)
    if due is not None and due < now and state not in set(completed_states):
        overdue = True
        color = SemaforoColor.RED

    return AgingResult(elapsed=elapsed, color=color, unit=unit, overdue=overdue)


@dataclass(frozen=True)
class AgingThresholds:
    """A named threshold pair bound to a unit, as used by one call site."""
    amber: int
    red: int
    unit: AgingUnit = AgingUnit.DAYS
    exclude_january: bool = False

    def evaluate(self, reference: Instant, now: Optional[datetime] = None, **kwargs) -> AgingResult:
        return compute_aging(
            reference,
            now,
            amber=self.amber,
            red=self.red,
            unit=self.unit,
            exclude_january=self.exclude_january,
            **kwargs,
        )


def case_thresholds(settings) -> AgingThresholds:
    """Semaphore for tracked cases (days since last load)."""
    return AgingThresholds(
        settings.case_amber_days, settings.case_red_days,
        AgingUnit.DAYS, settings.aging_exclude_january,
    )


def pericia_thresholds(settings) -> AgingThresholds:
    """Semaphore for cases in the expert-evidence stage."""
    return AgingThresholds(
        settings.pericia_amber_days, settings.pericia_red_days,
        AgingUnit.DAYS, settings.aging_exclude_january,
    )


def orders_thresholds(settings) -> AgingThresholds:
    """Contact SLA for medical-order follow-ups (hours since last contact)."""
    return AgingThresholds(settings.orders_amber_hours, settings.orders_red_hours, AgingUnit.HOURS)
