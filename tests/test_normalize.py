import math

import pytest

from listasprecios.normalize import LESS_THAN_FALLBACK, parse_currency_amount, parse_stock_quantity


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("$ 2,750.00", 2750.0),
        ("2.750,00", 2750.0),
        ("2.750", 2750.0),
        ("2750,5", 2750.5),
        ("19.99", 19.99),
        ("1,234,567", 1234567.0),
        ("USD 1.234.567", 1234567.0),
        ("  $12  ", 12.0),
        ("-3,5", -3.5),
    ],
)
def test_parse_currency_amount_strings(raw, expected):
    assert parse_currency_amount(raw) == pytest.approx(expected)


def test_parse_currency_amount_numbers_pass_through():
    assert parse_currency_amount(100) == 100
    assert parse_currency_amount(99.5) == 99.5


@pytest.mark.parametrize("raw", [None, "", "   ", "abc", "$", "-", True, float("inf"), float("nan")])
def test_parse_currency_amount_unreadable(raw):
    assert parse_currency_amount(raw) is None


def test_parse_currency_amount_never_returns_non_finite():
    value = parse_currency_amount("9" * 400)
    assert value is None or math.isfinite(value)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Menos de 5pz", 5),
        ("menos de diez", LESS_THAN_FALLBACK),
        ("No disponible", None),
        ("  N/A ", None),
        ("12 unidades", 12),
        ("Disponible: 3", 3),
        (7, 7),
        ("", None),
        (None, None),
        ("agotado", None),
    ],
)
def test_parse_stock_quantity(raw, expected):
    assert parse_stock_quantity(raw) == expected


@pytest.mark.parametrize("raw", ["1e3", "12 a 15", "10 o 20 USD", "5x2"])
def test_letters_between_digits_are_unreadable(raw):
    assert parse_currency_amount(raw) is None


@pytest.mark.parametrize("raw, expected", [("USD 1,200.50", 1200.5), ("1.500 MXN", 1500.0), ("US$ 99", 99.0)])
def test_currency_text_around_the_amount_is_ignored(raw, expected):
    assert parse_currency_amount(raw) == pytest.approx(expected)
