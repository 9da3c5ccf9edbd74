from __future__ import annotations

import re
from typing import Any, Optional

_NON_DIGIT_RE = re.compile(r"\D")
_CPF_LENGTH = 11
# area code + subscriber number, landline (10) or mobile (11)
_NATIONAL_PHONE_LENGTHS = (10, 11)


def only_digits(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return _NON_DIGIT_RE.sub("", value)


def _cpf_check_digit(digits: str) -> int:
    # weights run from len+1 down to 2 over the given prefix
    weight = len(digits) + 1
    total = sum(int(d) * (weight - i) for i, d in enumerate(digits))
    remainder = (total * 10) % 11
    return 0 if remainder == 10 else remainder


def is_valid_cpf(value: Any) -> bool:
    """Validate a CPF with both modulo-11 check digits.

    Formatting characters are ignored. Sequences of one repeated digit
    (000.000.000-00, 111.111.111-11, ...) pass the arithmetic but are not
    issued, so they are rejected.
    """
    digits = only_digits(value)
    if len(digits) != _CPF_LENGTH:
        return False
    if digits == digits[0] * _CPF_LENGTH:
        return False
    if _cpf_check_digit(digits[:9]) != int(digits[9]):
        return False
    return _cpf_check_digit(digits[:10]) == int(digits[10])


def normalize_cpf(value: Any) -> Optional[str]:
    """Return the digit-only CPF, or None when it fails validation."""
    if not is_valid_cpf(value):
        return None
    return only_digits(value)


def normalize_phone(value: Any, country_code: str = "55") -> Optional[str]:
    """Canonical international form: digits only, country code prefixed.

    National numbers are recognised by length, so an area code equal to the
    country code (DDD 55) still gets the prefix.
    """
    digits = only_digits(value)
    if not digits:
        return None
    if len(digits) in _NATIONAL_PHONE_LENGTHS or not digits.startswith(country_code):
        digits = country_code + digits
    return digits


def split_phone(value: Any) -> Optional[tuple[str, str]]:
    """Split a national phone into (area_code, number) for the gateway payer."""
    digits = only_digits(value)
    if len(digits) < 3:
        return None
    return digits[:2], digits[2:]
