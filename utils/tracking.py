"""Citizen-facing tracking identifiers."""
import re
import secrets

TRACKING_ID_PREFIX = "CMP-"
TRACKING_ID_PATTERN = re.compile(r"^CMP-\d{6}$")


def generate_tracking_id() -> str:
    # 100000-999999: always six digits, never a leading zero.
    return f"{TRACKING_ID_PREFIX}{100000 + secrets.randbelow(900000)}"


def is_tracking_id(value: str | None) -> bool:
    return bool(value and TRACKING_ID_PATTERN.match(value.strip()))


def normalize_tracking_id(value: str | None) -> str:
    return (value or "").strip().upper()
