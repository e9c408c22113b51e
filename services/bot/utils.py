from datetime import date, datetime, timedelta, timezone

from services.bot.config import TIMEZONE

PUZZLE_EPOCH = date(2023, 6, 12)


def puzzle_today(now: datetime | None = None) -> date:
    return (now or datetime.now(timezone.utc)).astimezone(TIMEZONE).date()


def puzzle_yesterday(now: datetime | None = None) -> date:
    return puzzle_today(now) - timedelta(days=1)


def puzzle_number_for_day(day: date) -> int | None:
    puzzle_number = (day - PUZZLE_EPOCH).days + 1
    if puzzle_number <= 0:
        return None

    return puzzle_number
