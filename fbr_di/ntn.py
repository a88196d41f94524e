"""
NTN / CNIC normalization.

The gateway accepts a seller or buyer identifier only in digit-only form:
7 digits for a National Tax Number or 13 digits for a CNIC. Operators type
these with dashes and spaces ("123-456-7", "42101-1234567-1"), so every
identifier is cleaned before it goes into a payload.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

NTN_LENGTH = 7
CNIC_LENGTH = 13

_NON_DIGITS = re.compile(r'\D')


class IdentifierKind(str, Enum):
    NTN = 'NTN'
    CNIC = 'CNIC'


@dataclass(frozen=True)
class NTNResult:
    original: Any
    normalized: str = ''
    kind: Optional[IdentifierKind] = None
    error: Optional[str] = None

    @property
    def ok(self):
        return self.error is None


def normalize_ntn(value):
    """Reduce an identifier to its digits and classify it as NTN or CNIC.

    Never raises: an unusable input comes back as a failed NTNResult that
    carries the input and the accepted lengths.
    """
    if value is None:
        return NTNResult(original=value, error='NTN/CNIC is empty')

    digits = _NON_DIGITS.sub('', str(value))
    if not digits:
        return NTNResult(original=value, error='NTN/CNIC is empty')

    if len(digits) == NTN_LENGTH:
        return NTNResult(original=value, normalized=digits, kind=IdentifierKind.NTN)
    if len(digits) == CNIC_LENGTH:
        return NTNResult(original=value, normalized=digits, kind=IdentifierKind.CNIC)

    return NTNResult(
        original=value,
        error=(
            f'Invalid NTN/CNIC {value!r}: expected {NTN_LENGTH} digits (NTN) '
            f'or {CNIC_LENGTH} digits (CNIC), found {len(digits)}'
        ),
    )


def is_valid_ntn(value):
    return normalize_ntn(value).ok


def format_ntn(value):
    """Normalized form for display, or the input untouched when it is invalid"""
    result = normalize_ntn(value)
    if not result.ok:
        return value
    return result.normalized
