import pytest

from agents.parcelas.validators import (
    is_valid_cpf,
    normalize_cpf,
    normalize_phone,
    only_digits,
    split_phone,
)


@pytest.mark.parametrize(
    "value",
    ["529.982.247-25", "52998224725", "111.444.777-35", " 111.444.777-35 "],
)
def test_valid_cpf(value):
    assert is_valid_cpf(value)


@pytest.mark.parametrize(
    "value",
    [
        "529.982.247-24",  # wrong second digit
        "529.982.247-15",  # wrong first digit
        "111.111.111-11",  # repeated digits
        "000.000.000-00",
        "5299822472",  # too short
        "",
        None,
        52998224725,
    ],
)
def test_invalid_cpf(value):
    assert not is_valid_cpf(value)


def test_normalize_cpf_strips_formatting():
    assert normalize_cpf("529.982.247-25") == "52998224725"
    assert normalize_cpf("123.456.789-00") is None


def test_normalize_phone_adds_country_code_once():
    assert normalize_phone("(11) 98765-4321") == "5511987654321"
    assert normalize_phone("+55 11 98765-4321") == "5511987654321"
    assert normalize_phone("11987654321", country_code="351") == "35111987654321"
    assert normalize_phone("") is None
    assert normalize_phone(None) is None


@pytest.mark.parametrize(
    "value,expected",
    [
        ("(55) 99123-4567", "5555991234567"),  # mobile in DDD 55
        ("(55) 3221-4567", "555532214567"),  # landline in DDD 55
        ("55 55 99123-4567", "5555991234567"),
        ("+55 (55) 3221-4567", "555532214567"),
    ],
)
def test_normalize_phone_area_code_equal_to_country_code(value, expected):
    assert normalize_phone(value) == expected


def test_split_phone():
    assert split_phone("(11) 98765-4321") == ("11", "987654321")
    assert split_phone("1") is None


def test_only_digits():
    assert only_digits("a1-2.3") == "123"
    assert only_digits(123) == ""
