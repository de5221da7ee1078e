"""Lead intervals and boundary advancement arithmetic."""

import re
from datetime import date, datetime
from typing import Any, Union

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, Field, model_validator

from partition_lifecycle.utils.datetime_utils import is_last_day_of_month

_PERIOD_RE = re.compile(r"^\s*(\d+)\s*([a-zA-Z]+)\s*$")

_UNIT_ALIASES = {
    "year": "years",
    "years": "years",
    "y": "years",
    "month": "months",
    "months": "months",
    "mo": "months",
    "week": "weeks",
    "weeks": "weeks",
    "w": "weeks",
    "day": "days",
    "days": "days",
    "d": "days",
    "hour": "hours",
    "hours": "hours",
    "h": "hours",
    "step": "step",
    "steps": "step",
}


class Period(BaseModel):
    """A lead interval used to advance partition boundaries.

    Temporal boundaries use the calendar fields; integer boundaries use
    ``step``. Exactly one kind must be set.
    """

    years: int = Field(0, ge=0)
    months: int = Field(0, ge=0)
    weeks: int = Field(0, ge=0)
    days: int = Field(0, ge=0)
    hours: int = Field(0, ge=0)
    step: int = Field(0, ge=0)

    @model_validator(mode="after")
    def check_non_empty(self) -> "Period":
        calendar_set = any((self.years, self.months, self.weeks, self.days, self.hours))
        if calendar_set and self.step:
            raise ValueError("A period is either calendar based or a numeric step, not both")
        if not calendar_set and not self.step:
            raise ValueError("A period must be positive")
        return self

    @classmethod
    def parse(cls, text: Union[str, "Period"]) -> "Period":
        """Parse strings such as ``"1 year"``, ``"3 months"``, ``"7d"`` or ``"1000 steps"``.

        Raises:
            ValueError: If the text is not a recognised period
        """
        if isinstance(text, Period):
            return text
        match = _PERIOD_RE.match(text or "")
        if not match:
            raise ValueError(f"Invalid period: {text!r}")
        amount, unit = int(match.group(1)), match.group(2).lower()
        field = _UNIT_ALIASES.get(unit)
        if field is None:
            raise ValueError(f"Unknown period unit {unit!r} in {text!r}")
        return cls(**{field: amount})

    @property
    def is_numeric(self) -> bool:
        return self.step > 0

    def as_relativedelta(self) -> relativedelta:
        return relativedelta(
            years=self.years, months=self.months, weeks=self.weeks, days=self.days, hours=self.hours
        )

    def __str__(self) -> str:
        parts = [
            f"{value} {name}"
            for name, value in (
                ("years", self.years),
                ("months", self.months),
                ("weeks", self.weeks),
                ("days", self.days),
                ("hours", self.hours),
                ("step", self.step),
            )
            if value
        ]
        return " ".join(parts)


def advance(value: Any, period: Period) -> Any:
    """Advance a boundary value by one period.

    Month-end boundaries stay anchored to month ends, so 2022-02-28 advanced
    by one month is 2022-03-31 rather than 2022-03-28.

    Args:
        value: Current boundary (date, datetime or int)
        period: Period to add

    Returns:
        The next boundary value, same type as ``value``

    Raises:
        TypeError: If the period kind does not fit the value type
    """
    if isinstance(value, bool):
        raise TypeError("Boolean boundaries are not supported")

    if isinstance(value, int):
        if not period.is_numeric:
            raise TypeError(f"Integer boundary {value} needs a numeric step period, got '{period}'")
        return value + period.step

    if not isinstance(value, date):
        raise TypeError(f"Unsupported boundary type: {type(value).__name__}")
    if period.is_numeric:
        raise TypeError(f"Temporal boundary {value} needs a calendar period, got '{period}'")

    delta = period.as_relativedelta()
    moves_months = bool(period.years or period.months)
    if isinstance(value, datetime):
        at_midnight = value.time() == datetime.min.time()
        if moves_months and at_midnight and is_last_day_of_month(value):
            return value + delta + relativedelta(day=31)
        return value + delta

    if period.hours:
        raise TypeError(f"Date boundary {value} cannot advance by hours")
    if moves_months and is_last_day_of_month(value):
        return value + delta + relativedelta(day=31)
    return value + delta
