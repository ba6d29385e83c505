"""ISO week numbers for the report header."""

from datetime import date, timedelta

from weekly_report.models import WeekNumbers


def get_week_numbers(today: date | None = None) -> WeekNumbers:
    """Return ISO week numbers for the weeks before, of and after ``today``."""
    today = today or date.today()
    return WeekNumbers(
        last_week=(today - timedelta(days=7)).isocalendar().week,
        current_week=today.isocalendar().week,
        next_week=(today + timedelta(days=7)).isocalendar().week,
        year=today.year,
    )


def week_numbers_to_dict(weeks: WeekNumbers) -> dict:
    return {
        "lastWeek": weeks.last_week,
        "currentWeek": weeks.current_week,
        "nextWeek": weeks.next_week,
        "year": weeks.year,
    }
