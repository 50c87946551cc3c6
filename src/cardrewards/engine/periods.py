import calendar
import datetime as dt

from cardrewards.domain.models import CalculationPeriod, Card


def _as_date(now: dt.date | dt.datetime) -> dt.date:
    if isinstance(now, dt.datetime):
        return now.date()
    return now


def _shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def _cycle_start(year: int, month: int, requested_day: int) -> dt.date:
    last_day = calendar.monthrange(year, month)[1]
    return dt.date(year, month, min(requested_day, last_day))


def calculate_period(card: Card, now: dt.date | dt.datetime) -> CalculationPeriod:
    """Billing window containing ``now``; both bounds are inclusive calendar dates.

    Billing cycles anchored on a day the month does not have start on the
    month's last day instead.
    """
    today = _as_date(now)
    cycle = card.billing_cycle

    if cycle.type == "billing" and cycle.day_of_month:
        current_start = _cycle_start(today.year, today.month, cycle.day_of_month)

        if today < current_start:
            year, month = _shift_month(today.year, today.month, -1)
            start = _cycle_start(year, month, cycle.day_of_month)
            end = current_start - dt.timedelta(days=1)
        else:
            year, month = _shift_month(today.year, today.month, 1)
            start = current_start
            end = _cycle_start(year, month, cycle.day_of_month) - dt.timedelta(days=1)

        return CalculationPeriod(start=start, end=end, label=start.isoformat())

    start = today.replace(day=1)
    end = today.replace(day=calendar.monthrange(today.year, today.month)[1])
    return CalculationPeriod(start=start, end=end, label=f"{start.year}-{start.month:02d}")


def recent_periods(card: Card, now: dt.date | dt.datetime, count: int = 3) -> list[CalculationPeriod]:
    today = _as_date(now)
    periods: list[CalculationPeriod] = []

    for offset in range(count):
        year, month = _shift_month(today.year, today.month, -offset)
        periods.append(calculate_period(card, dt.date(year, month, 1)))

    return periods


def days_remaining(period: CalculationPeriod, now: dt.date | dt.datetime) -> int:
    return max((period.end - _as_date(now)).days + 1, 0)
