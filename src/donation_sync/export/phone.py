"""Phone number normalization and mobile/landline classification.

Numbers are normalized to a canonical international form without the
leading ``+``: ``070-123 45 67`` and ``+46 70 123 45 67`` both become
``46701234567``. Normalization is idempotent and maps empty input to an
empty string.
"""

from __future__ import annotations

import re
from typing import NamedTuple

DEFAULT_COUNTRY_CODE = "46"

# First four digits of a normalized Swedish mobile number.
MOBILE_PREFIXES = frozenset({"4670", "4672", "4673", "4676", "4679"})

_NON_DIGITS = re.compile(r"\D+")


class PhoneNumbers(NamedTuple):
    mobile: str
    landline: str


def normalize_phone(raw: str | None, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """Strip formatting, drop any country/trunk prefix and re-prefix canonically."""
    digits = _NON_DIGITS.sub("", raw or "")
    if not digits:
        return ""
    if digits.startswith("00" + country_code):
        digits = digits[2 + len(country_code):]
    elif digits.startswith(country_code):
        digits = digits[len(country_code):]
    if digits.startswith("0"):
        digits = digits[1:]
    if not digits:
        return ""
    return country_code + digits


def is_mobile(normalized: str) -> bool:
    return normalized[:4] in MOBILE_PREFIXES


def classify_phone(raw: str | None, country_code: str = DEFAULT_COUNTRY_CODE) -> PhoneNumbers:
    """Place a number in the mobile or the landline slot, the other stays empty."""
    normalized = normalize_phone(raw, country_code)
    if not normalized:
        return PhoneNumbers(mobile="", landline="")
    if is_mobile(normalized):
        return PhoneNumbers(mobile=normalized, landline="")
    return PhoneNumbers(mobile="", landline=normalized)
