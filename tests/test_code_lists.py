"""
Tests for the ISO 4217 / ISO 3166 code-list checkers.
"""

import pytest

from peppol_invoice.code_lists import (
    ISO_3166_ALPHA2_TO_ALPHA3,
    is_country_code_shape,
    is_currency_code_shape,
    is_valid_country_code,
    is_valid_currency_code,
)


class TestCurrencyCodes:
    """Tests for currency code lookups."""

    @pytest.mark.parametrize("code", ["AUD", "aud", " eur ", "USD", "JPY"])
    def test_known_codes(self, code):
        assert is_valid_currency_code(code) is True

    @pytest.mark.parametrize("code", ["ZZZ", "", "AU", "AUDD", None, 123])
    def test_unknown_codes(self, code):
        assert is_valid_currency_code(code) is False

    def test_shape_is_weaker_than_code_list(self):
        # Input checks accept any three letters; only the rule engine resolves them
        assert is_currency_code_shape("ZZZ") is True
        assert is_valid_currency_code("ZZZ") is False

    def test_shape_rejects_digits(self):
        assert is_currency_code_shape("A1D") is False


class TestCountryCodes:
    """Tests for country code lookups."""

    @pytest.mark.parametrize("code", ["AU", "AUS", "aus", "DE", "DEU", "NZL"])
    def test_known_codes(self, code):
        assert is_valid_country_code(code) is True

    @pytest.mark.parametrize("code", ["ZZZ", "ZZ", "A", "ABCD", None])
    def test_unknown_codes(self, code):
        assert is_valid_country_code(code) is False

    def test_every_alpha3_resolves(self):
        for alpha2, alpha3 in ISO_3166_ALPHA2_TO_ALPHA3.items():
            assert is_valid_country_code(alpha2)
            assert is_valid_country_code(alpha3)

    def test_shape(self):
        assert is_country_code_shape("ZZZ") is True
        assert is_country_code_shape("au") is True
        assert is_country_code_shape("A1") is False
        assert is_country_code_shape("AUST") is False
