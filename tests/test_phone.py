"""Tests for phone normalization and mobile/landline classification."""

from __future__ import annotations

import pytest

from src.donation_sync.export.phone import classify_phone, is_mobile, normalize_phone


class TestNormalizePhone:

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("0701234567", "46701234567"),
            ("070-123 45 67", "46701234567"),
            ("+46 70 123 45 67", "46701234567"),
            ("0046701234567", "46701234567"),
            ("46701234567", "46701234567"),
            ("+46 (0)70 123 45 67", "46701234567"),
            ("018-123456", "4618123456"),
        ],
    )
    def test_normalizes_to_country_prefix(self, raw, expected):
        """Local and international forms normalize to the country prefix."""
        assert normalize_phone(raw) == expected

    @pytest.mark.parametrize("raw", ["", None, "  ", "-", "0"])
    def test_empty_input_gives_empty(self, raw):
        """Blank or digit-free input normalizes to an empty string."""
        assert normalize_phone(raw) == ""

    @pytest.mark.parametrize("raw", ["0701234567", "+46 8 123 456", "018-123456", "0046317654321"])
    def test_idempotent(self, raw):
        """Normalizing a normalized number changes nothing."""
        once = normalize_phone(raw)
        assert normalize_phone(once) == once

    def test_other_country_code(self):
        """The country prefix is configurable."""
        assert normalize_phone("040 123 456", country_code="47") == "4740123456"


class TestClassifyPhone:

    def test_mobile_goes_to_mobile_slot(self):
        """Mobile numbers fill the mobile slot only."""
        phones = classify_phone("0701234567")
        assert phones.mobile == "46701234567"
        assert phones.landline == ""

    def test_landline_goes_to_landline_slot(self):
        """Fixed-line numbers fill the landline slot only."""
        phones = classify_phone("08-123 456 78")
        assert phones.mobile == ""
        assert phones.landline == "46812345678"

    def test_empty(self):
        """No number gives two empty slots."""
        assert classify_phone("") == ("", "")

    @pytest.mark.parametrize("prefix", ["4670", "4672", "4673", "4676", "4679"])
    def test_mobile_prefixes(self, prefix):
        """Every mobile prefix is recognized."""
        assert is_mobile(prefix + "1234567")

    def test_fixed_prefix_is_not_mobile(self):
        """A Stockholm number is a landline."""
        assert not is_mobile("4681234567")
