import datetime as dt

from cardrewards.engine.periods import calculate_period, days_remaining, recent_periods
from tests.factories import make_card


def test_calendar_cycle_covers_whole_month() -> None:
    period = calculate_period(make_card(), dt.date(2025, 9, 15))

    assert period.start == dt.date(2025, 9, 1)
    assert period.end == dt.date(2025, 9, 30)
    assert period.label == "2025-09"


def test_calendar_cycle_handles_leap_february() -> None:
    period = calculate_period(make_card(), dt.date(2024, 2, 10))

    assert period.end == dt.date(2024, 2, 29)


def test_billing_cycle_on_or_after_anchor_starts_this_month() -> None:
    card = make_card(billing_cycle={"type": "billing", "day_of_month": 20})

    period = calculate_period(card, dt.date(2025, 9, 25))

    assert period.start == dt.date(2025, 9, 20)
    assert period.end == dt.date(2025, 10, 19)
    assert period.label == "2025-09-20"


def test_billing_cycle_anchor_day_itself_starts_new_cycle() -> None:
    card = make_card(billing_cycle={"type": "billing", "day_of_month": 20})

    period = calculate_period(card, dt.date(2025, 9, 20))

    assert period.start == dt.date(2025, 9, 20)


def test_billing_cycle_before_anchor_uses_previous_month() -> None:
    card = make_card(billing_cycle={"type": "billing", "day_of_month": 10})

    period = calculate_period(card, dt.date(2025, 5, 1))

    assert period.start == dt.date(2025, 4, 10)
    assert period.end == dt.date(2025, 5, 9)


def test_billing_anchor_is_clamped_to_short_months() -> None:
    card = make_card(billing_cycle={"type": "billing", "day_of_month": 31})

    before = calculate_period(card, dt.date(2025, 2, 15))
    on_clamped_day = calculate_period(card, dt.date(2025, 2, 28))

    assert before.start == dt.date(2025, 1, 31)
    assert before.end == dt.date(2025, 2, 27)
    assert on_clamped_day.start == dt.date(2025, 2, 28)
    assert on_clamped_day.end == dt.date(2025, 3, 30)


def test_billing_cycle_rolls_over_year_boundary() -> None:
    card = make_card(billing_cycle={"type": "billing", "day_of_month": 15})

    january = calculate_period(card, dt.date(2026, 1, 3))
    december = calculate_period(card, dt.date(2025, 12, 20))

    assert january.start == dt.date(2025, 12, 15)
    assert january.end == dt.date(2026, 1, 14)
    assert december == january


def test_billing_type_without_anchor_falls_back_to_calendar() -> None:
    card = make_card(billing_cycle={"type": "billing"})

    period = calculate_period(card, dt.date(2025, 6, 12))

    assert period.start == dt.date(2025, 6, 1)
    assert period.end == dt.date(2025, 6, 30)


def test_datetime_reference_uses_its_calendar_date() -> None:
    period = calculate_period(make_card(), dt.datetime(2025, 12, 31, 23, 59))

    assert period.start == dt.date(2025, 12, 1)
    assert period.end == dt.date(2025, 12, 31)


def test_recent_periods_are_newest_first() -> None:
    periods = recent_periods(make_card(), dt.date(2026, 1, 10), count=3)

    assert [period.label for period in periods] == ["2026-01", "2025-12", "2025-11"]


def test_days_remaining_counts_today_and_never_goes_negative() -> None:
    period = calculate_period(make_card(), dt.date(2025, 10, 18))

    assert days_remaining(period, dt.date(2025, 10, 18)) == 14
    assert days_remaining(period, dt.date(2025, 10, 31)) == 1
    assert days_remaining(period, dt.date(2025, 11, 5)) == 0
