"""Edition and price of a calendar unit"""

import re
from dataclasses import dataclass
from datetime import datetime

from ...config import CLASSIC_PRICE_CENTS, CURRENCY, PREMIUM_PRICE_CENTS
from ...enums import Edition

PRETTY_MINUTES = {"11:11", "22:22", "12:34", "00:00"}
PALINDROME_MINUTE = re.compile(r"^(\d)(\d):\2\1$")  # 12:21, 13:31, 20:02


@dataclass(frozen=True)
class Price:
    edition: Edition
    price_cents: int
    currency: str


def is_leap_day(dt: datetime) -> bool:
    return dt.month == 2 and dt.day == 29


def is_pretty_minute(dt: datetime) -> bool:
    hhmm = dt.strftime("%H:%M")
    return hhmm in PRETTY_MINUTES or bool(PALINDROME_MINUTE.match(hhmm))


def detect_edition(dt: datetime) -> Edition:
    if is_leap_day(dt) or is_pretty_minute(dt):
        return Edition.PREMIUM
    return Edition.CLASSIC


def price_for(dt: datetime) -> Price:
    edition = detect_edition(dt)
    price_cents = PREMIUM_PRICE_CENTS if edition == Edition.PREMIUM else CLASSIC_PRICE_CENTS
    return Price(edition=edition, price_cents=price_cents, currency=CURRENCY)
