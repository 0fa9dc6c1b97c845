"""Unit tests for pricing, timestamps, flags and certificate hashes."""

from datetime import datetime

import pytest

from parcels.config import CLASSIC_PRICE_CENTS, PREMIUM_PRICE_CENTS
from parcels.domain.certificates.hashing import cert_path, compute_cert_hash
from parcels.domain.claims.pricing import detect_edition, price_for
from parcels.enums import CertStyle, Edition, TimeDisplay
from parcels.shared.timestamps import iso_utc, month_range, parse_ts
from parcels.shared.validators import coerce_bool, validate_email


@pytest.mark.parametrize(
    "ts, edition",
    [
        ("2028-02-29T09:41:00Z", Edition.PREMIUM),
        ("2030-05-05T11:11:00Z", Edition.PREMIUM),
        ("2030-05-05T12:21:00Z", Edition.PREMIUM),
        ("2030-05-05T20:02:00Z", Edition.PREMIUM),
        ("2030-05-05T00:00:00Z", Edition.PREMIUM),
        ("2030-05-05T09:41:00Z", Edition.CLASSIC),
        ("2030-05-05T12:22:00Z", Edition.CLASSIC),
    ],
)
def test_edition(ts, edition):
    assert detect_edition(parse_ts(ts)) == edition


def test_price_follows_edition():
    assert price_for(parse_ts("2030-05-05T11:11:00Z")).price_cents == PREMIUM_PRICE_CENTS
    assert price_for(parse_ts("2030-05-05T09:41:00Z")).price_cents == CLASSIC_PRICE_CENTS


@pytest.mark.parametrize(
    "value, expected",
    [(True, True), (1, True), ("1", True), ("TRUE", True), (" on ", True), ("yes", True),
     (False, False), (0, False), ("0", False), ("off", False), (None, False), ([], False)],
)
def test_coerce_bool(value, expected):
    assert coerce_bool(value) is expected


def test_parse_ts_forms():
    assert parse_ts("2030-01-02T03:04:05Z") == datetime(2030, 1, 2, 3, 4, 5)
    assert parse_ts("2030-01-02T05:04:05+02:00") == datetime(2030, 1, 2, 3, 4, 5)
    assert parse_ts("2030-01-02") == datetime(2030, 1, 2)
    for bad in ("", "tomorrow", "2030-13-01"):
        with pytest.raises(ValueError):
            parse_ts(bad)


def test_month_range():
    assert month_range("2030-12") == (datetime(2030, 12, 1), datetime(2031, 1, 1))
    assert month_range("2030-02") == (datetime(2030, 2, 1), datetime(2030, 3, 1))
    for bad in ("2030-13", "2030-1", "nope"):
        with pytest.raises(ValueError):
            month_range(bad)


def test_iso_utc_uses_milliseconds():
    assert iso_utc(datetime(2030, 1, 2, 3, 4, 5, 678901)) == "2030-01-02T03:04:05.678Z"
    assert cert_path(datetime(2030, 1, 2)) == "/cert/2030-01-02T00%3A00%3A00.000Z"


def test_cert_hash_is_stable_and_sensitive():
    ts = datetime(2030, 1, 2, 3, 4)
    created = datetime(2029, 12, 1, 8, 0, 0, 123456)
    digest = compute_cert_hash(ts, "owner-1", 7900, created, salt="s")
    assert len(digest) == 64
    assert digest == compute_cert_hash(ts, "owner-1", 7900, created.replace(microsecond=123999), salt="s")
    assert digest != compute_cert_hash(ts, "owner-2", 7900, created, salt="s")
    assert digest != compute_cert_hash(ts, "owner-1", 7901, created, salt="s")
    assert digest != compute_cert_hash(ts, "owner-1", 7900, created, salt="t")


def test_enum_parsing_falls_back():
    assert CertStyle.parse("Wedding") == CertStyle.WEDDING
    assert CertStyle.parse("disco") == CertStyle.NEUTRAL
    assert CertStyle.parse(None) == CertStyle.NEUTRAL
    assert TimeDisplay.parse("LOCAL+UTC") == TimeDisplay.LOCAL_PLUS_UTC
    assert TimeDisplay.parse("martian") == TimeDisplay.UTC


def test_validate_email():
    assert validate_email("  Ada@Example.COM ") == "ada@example.com"
    for bad in ("", "   ", "ada", "ada@example"):
        with pytest.raises(ValueError):
            validate_email(bad)
