from enum import Enum


class CertStyle(str, Enum):
    NEUTRAL = "neutral"
    ROMANTIC = "romantic"
    BIRTHDAY = "birthday"
    WEDDING = "wedding"
    BIRTH = "birth"
    CHRISTMAS = "christmas"
    NEWYEAR = "newyear"
    GRADUATION = "graduation"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value) -> "CertStyle":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.NEUTRAL


class TimeDisplay(str, Enum):
    UTC = "utc"
    UTC_PLUS_LOCAL = "utc+local"
    LOCAL_PLUS_UTC = "local+utc"

    @classmethod
    def parse(cls, value) -> "TimeDisplay":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.UTC


class ListingStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    SOLD = "sold"
    CANCELLED = "cancelled"


# Listings a seller can still act on
OPEN_LISTING_STATUSES = (ListingStatus.ACTIVE, ListingStatus.PAUSED)


class ListingAction(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"
    CANCEL = "cancel"


class Edition(str, Enum):
    CLASSIC = "classic"
    PREMIUM = "premium"


class TransferReason(str, Enum):
    TRANSFER = "transfer"
    SALE = "sale"
