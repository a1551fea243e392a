import pytest

from ledger.parser import parse_amount, split_expense, split_income


@pytest.mark.parametrize("text, expected", [
    ("15000", 15000),
    ("15rb", 15000),
    ("15 ribu", 15000),
    ("20k", 20000),
    ("20 K", 20000),
    ("100.000", 100000),
    ("1,500,000", 1500000),
    ("1.500.000", 1500000),
    ("2jt", 2000000),
    ("1,5jt", 1500000),
    ("2.5 juta", 2500000),
    ("-500", -500),
])
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "rb", "12abc", "k15"])
def test_parse_amount_rejects(text):
    assert parse_amount(text) is None


def test_split_income():
    assert split_income("500k bonus") == ("500k", "bonus")
    assert split_income("5.000.000 gaji maret") == ("5.000.000", "gaji maret")
    assert split_income("1jt") == ("1jt", "")
    assert split_income("bonus") is None


def test_split_expense():
    assert split_expense("food 15rb nasi padang") == ("food", "15rb", "nasi padang")
    assert split_expense("eating out 20000") == ("eating out", "20000", "")
    assert split_expense("food") is None
    assert split_expense("15rb") is None
