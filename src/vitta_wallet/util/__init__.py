from .dates import add_months, clamp_day, day_of_month, parse_calendar_date, parse_us_date
from .money import cents_to_dollars, cents_to_money_str, dollars_to_cents, format_money, money_to_cents

__all__ = [
    "parse_us_date",
    "parse_calendar_date",
    "day_of_month",
    "clamp_day",
    "add_months",
    "money_to_cents",
    "dollars_to_cents",
    "cents_to_dollars",
    "cents_to_money_str",
    "format_money",
]
