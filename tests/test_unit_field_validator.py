from datetime import date

import pytest

from reach_planning.services.field_validator import (
    DATE,
    NUMERIC,
    PERCENTAGE,
    STRING,
    is_valid,
    normalize_date,
    parse_date,
    parse_number,
    parse_percentage,
)


@pytest.mark.parametrize("value", [None, "", "   "])
def test_blank_cells_are_valid_for_every_type(value):
    for field_type in (STRING, NUMERIC, PERCENTAGE, DATE):
        assert is_valid(field_type, value)


@pytest.mark.parametrize("value,expected", [
    ("Black & White", True),
    ("Women 25-54", True),
    ("L'Oréal (Paris)", True),
    ("12345", False),
    ("12.5", False),
    ("---", False),
    ("Deo <script>", False),
])
def test_string_rules(value, expected):
    assert is_valid(STRING, value) is expected


def test_copy_length_accepts_spot_lengths_only():
    assert is_valid(STRING, '30"', field_name="TV Copy Length")
    assert is_valid(STRING, '20" 10"', field_name="TV Copy Length")
    assert not is_valid(STRING, "thirty seconds", field_name="TV Copy Length")
    # Outside the copy-length column a bare spot length is not text
    assert not is_valid(STRING, '30"', field_name="Campaign")


@pytest.mark.parametrize("value,expected", [
    (12, True),
    ("1,200.50", True),
    ("-3", True),
    ("abc", False),
    ("nan", False),
    ("inf", False),
])
def test_numeric_rules(value, expected):
    assert is_valid(NUMERIC, value) is expected


@pytest.mark.parametrize("value,expected", [
    ("45%", True),
    ("100%", True),
    ("0.45", True),
    (1, True),
    ("101%", False),
    ("1.5", False),
    ("-5%", False),
    ("high", False),
])
def test_percentage_rules(value, expected):
    assert is_valid(PERCENTAGE, value) is expected


def test_trend_percentages_may_be_negative():
    assert is_valid(PERCENTAGE, "-12%", allow_negative=True)
    assert is_valid(PERCENTAGE, "-0.3", allow_negative=True)
    assert not is_valid(PERCENTAGE, "-120%", allow_negative=True)


@pytest.mark.parametrize("value,expected", [
    ("2025-09-01", date(2025, 9, 1)),
    ("2025-9-1", date(2025, 9, 1)),
    ("01/09/2025", date(2025, 9, 1)),
    ("1-9-2025", date(2025, 9, 1)),
    ("2025-02-30", None),
    ("2025/31/12", None),
    ("yesterday", None),
])
def test_parse_date_is_day_first_and_strict(value, expected):
    assert parse_date(value) == expected
    assert is_valid(DATE, value) is (expected is not None)


def test_normalize_date_produces_natural_key_form():
    assert normalize_date("01/09/2025") == "2025-09-01"
    assert normalize_date("2025-9-1") == "2025-09-01"
    assert normalize_date("") is None


def test_parse_number_treats_dash_as_missing():
    assert parse_number("-") is None
    assert parse_number("") is None
    assert parse_number("1,500") == 1500.0
    assert parse_number(7) == 7.0


@pytest.mark.parametrize("value,expected", [
    ("45%", 0.45),
    ("45", 0.45),
    ("0.45", 0.45),
    ("150%", 1.0),
    ("-12%", -0.12),
    ("", None),
])
def test_parse_percentage_returns_fractions(value, expected):
    result = parse_percentage(value)
    if expected is None:
        assert result is None
    else:
        assert result == pytest.approx(expected)


def test_unknown_field_type_raises():
    with pytest.raises(ValueError):
        is_valid("currency", "12")
