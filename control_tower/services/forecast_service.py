"""
Forecast engine: monthly burn rate, runway and a flat spend projection.

Paid disbursements are folded by calendar month in Python rather than with
DATE_TRUNC, so the same code runs against any backend. The projection is
the mean of the trailing months repeated forward, not a trend line.
"""

import calendar
import math
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from control_tower.config import settings
from control_tower.services import ledger_store
from control_tower.services.money import CENTS, round_whole

logger = structlog.get_logger()

MonthKey = tuple[int, int]


@dataclass
class MonthlyActual:
    month: str
    label: str
    actual: Decimal


@dataclass
class MonthlyForecast:
    month: str
    label: str
    forecast: int


@dataclass
class SpendForecast:
    actuals: list[MonthlyActual] = field(default_factory=list)
    forecast: list[MonthlyForecast] = field(default_factory=list)
    avg_monthly_burn: int = 0


def shift_month(key: MonthKey, delta: int) -> MonthKey:
    index = key[0] * 12 + (key[1] - 1) + delta
    return index // 12, index % 12 + 1


def month_key(key: MonthKey) -> str:
    return f"{key[0]:04d}-{key[1]:02d}"


def month_label(key: MonthKey) -> str:
    """'Jan 26' style label."""
    return date(key[0], key[1], 1).strftime("%b %y")


def months_before(now: datetime, months: int) -> datetime:
    """Same day-of-month `months` calendar months earlier, clamped to month end."""
    year, month = shift_month((now.year, now.month), -months)
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def monthly_totals(rows: Iterable[tuple[datetime, Decimal]]) -> list[tuple[MonthKey, Decimal]]:
    """Sum amounts per calendar month of paid_at, ascending by month."""
    totals: dict[MonthKey, Decimal] = defaultdict(lambda: Decimal("0"))
    for paid_at, amount in rows:
        totals[(paid_at.year, paid_at.month)] += Decimal(amount)
    return sorted(totals.items())


def runway_months(remaining: Decimal, monthly_burn: Decimal) -> Optional[int]:
    """Whole months of runway left, or None when nothing is being spent."""
    if monthly_burn <= 0:
        return None
    return math.floor(Decimal(remaining) / Decimal(monthly_burn))


def build_forecast(
    rows: Iterable[tuple[datetime, Decimal]],
    now: datetime,
    history_months: int = 12,
    horizon_months: int = 3,
    trailing_months: int = 3,
) -> SpendForecast:
    totals = monthly_totals(rows)[-history_months:]

    trailing = [amount for _, amount in totals[-trailing_months:]]
    avg_burn = sum(trailing, Decimal("0")) / len(trailing) if trailing else Decimal("0")
    projected = round_whole(avg_burn)

    # Project from the latest month with data, or from now when there is none.
    anchor = totals[-1][0] if totals else (now.year, now.month)

    forecast = SpendForecast(avg_monthly_burn=projected)
    for key, amount in totals:
        forecast.actuals.append(
            MonthlyActual(month=month_key(key), label=month_label(key), actual=amount)
        )
    for offset in range(1, horizon_months + 1):
        key = shift_month(anchor, offset)
        forecast.forecast.append(
            MonthlyForecast(month=month_key(key), label=month_label(key), forecast=projected)
        )
    return forecast


async def get_forecast(
    session: AsyncSession,
    project_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> SpendForecast:
    now = now or datetime.utcnow()
    rows = await ledger_store.paid_disbursements_since(session, project_id)
    forecast = build_forecast(
        rows,
        now,
        history_months=settings.FORECAST_HISTORY_MONTHS,
        horizon_months=settings.FORECAST_HORIZON_MONTHS,
        trailing_months=settings.FORECAST_TRAILING_MONTHS,
    )
    logger.debug(
        "spend_forecast_built",
        project_id=str(project_id),
        months=len(forecast.actuals),
        avg_monthly_burn=forecast.avg_monthly_burn,
    )
    return forecast


async def get_monthly_burn(
    session: AsyncSession,
    project_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> Decimal:
    """
    Paid spend over the rolling burn window divided by the number of
    calendar months in that window that saw any payment. 0 without data.
    """
    now = now or datetime.utcnow()
    since = months_before(now, settings.BURN_WINDOW_MONTHS)
    rows = await ledger_store.paid_disbursements_since(session, project_id, since)
    totals = monthly_totals(rows)
    if not totals:
        return Decimal("0")
    total = sum((amount for _, amount in totals), Decimal("0"))
    return (total / len(totals)).quantize(CENTS)
