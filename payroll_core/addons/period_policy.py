# addons/period_policy.py
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from calendar import monthrange

from .functions import day_start, day_after, money

MONTHLY = 'monthly'
SEMI_MONTHLY = 'semi-monthly'
CONVENTIONS = (MONTHLY, SEMI_MONTHLY)


@dataclass(frozen=True)
class Period:
    """A pay period covering the calendar days start..end inclusive."""
    start: date
    end: date

    def __post_init__(self):
        if self.end < self.start:
            raise ValueError(f"Period end {self.end} is before start {self.start}")

    @property
    def key(self):
        return f"{self.start.isoformat()}_{self.end.isoformat()}"

    @classmethod
    def from_key(cls, key):
        try:
            start, end = key.split('_')
            return cls(date.fromisoformat(start), date.fromisoformat(end))
        except (AttributeError, ValueError):
            raise ValueError(f"Invalid period key: {key!r} (expected YYYY-MM-DD_YYYY-MM-DD)")

    @classmethod
    def from_dates(cls, start, end):
        if isinstance(start, str):
            start = date.fromisoformat(start[:10])
        if isinstance(end, str):
            end = date.fromisoformat(end[:10])
        if isinstance(start, datetime):
            start = start.date()
        if isinstance(end, datetime):
            end = end.date()
        return cls(start, end)

    @property
    def starts_at(self):
        return day_start(self.start)

    @property
    def ends_before(self):
        """Exclusive upper bound: midnight after the last day."""
        return day_after(self.end)

    @property
    def days(self):
        return (self.end - self.start).days + 1

    def contains(self, moment):
        if moment is None:
            return False
        if not isinstance(moment, datetime):
            moment = day_start(moment)
        return self.starts_at <= moment < self.ends_before

    def __str__(self):
        return self.key


@dataclass(frozen=True)
class PeriodPolicy:
    """
    Pay period convention passed explicitly into every computation.

    Semi-monthly periods run from the 1st to the 15th and from the 16th to
    the last day of the month. Monthly periods cover the calendar month.
    """
    convention: str = SEMI_MONTHLY
    working_days_per_month: int = 22

    def __post_init__(self):
        if self.convention not in CONVENTIONS:
            raise ValueError(f"Unknown period convention: {self.convention!r}")
        if self.working_days_per_month <= 0:
            raise ValueError("working_days_per_month must be positive")

    @classmethod
    def from_config(cls, app_config):
        return cls(
            convention=app_config.get('PAYROLL_PERIOD_CONVENTION', SEMI_MONTHLY),
            working_days_per_month=int(app_config.get('PAYROLL_WORKING_DAYS_PER_MONTH', 22)),
        )

    @property
    def periods_per_month(self):
        return 2 if self.convention == SEMI_MONTHLY else 1

    def share(self, monthly_amount, period):
        """
        Part of a monthly amount falling due in one period. Semi-monthly halves
        are rounded half-up in the first half; the second half takes the
        remainder, so the two halves always add up to the monthly amount.
        """
        amount = money(monthly_amount)
        if self.periods_per_month == 1:
            return amount
        first_half = money(amount / 2)
        if period.start.day <= 15:
            return first_half
        return amount - first_half

    def resolve(self, anchor):
        """The period containing the anchor date."""
        if isinstance(anchor, datetime):
            anchor = anchor.date()
        last_day = monthrange(anchor.year, anchor.month)[1]
        if self.convention == MONTHLY:
            return Period(anchor.replace(day=1), anchor.replace(day=last_day))
        if anchor.day <= 15:
            return Period(anchor.replace(day=1), anchor.replace(day=15))
        return Period(anchor.replace(day=16), anchor.replace(day=last_day))

    def next_period(self, period):
        return self.resolve(period.end + timedelta(days=1))

    def previous_period(self, period):
        return self.resolve(period.start - timedelta(days=1))
