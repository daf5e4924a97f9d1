# Copyright 2023 Brian T. Park
#
# MIT License
"""
Utils for writing signed integers as base-60 numbers, borrowed from the
moment.js timezone packed format. Digits 0-59 are written as '0'-'9', 'a'-'z',
'A'-'X'. A value in seconds can be written as a fixed-point number of minutes
with a single fractional base-60 digit holding the seconds.
"""

from typing import Union

_DIGITS = (
    '0123456789'
    'abcdefghijklmnopqrstuvwxyz'
    'ABCDEFGHIJKLMNOPQRSTUVWX'
)


def to_base60_digit(x: int) -> str:
    if x < 0 or x > 59:
        raise ValueError(f"x={x} out of range, cannot write base-60 digit")
    return _DIGITS[x]


def from_base60_digit(c: str) -> int:
    if 'a' <= c <= 'z':
        return ord(c) - ord('a') + 10
    if 'A' <= c <= 'X':
        return ord(c) - ord('A') + 36
    if '0' <= c <= '9':
        return ord(c) - ord('0')
    raise ValueError(f"'{c}' is not a base-60 digit")


def to_base60(x: Union[int, float], divide_by_60: bool = False) -> str:
    """Convert x to a base-60 string. If divide_by_60 is True, the last digit
    is written after a '.', as the fractional part of x/60, and a trailing
    '.0' is dropped. Floats are rounded to the nearest integer first.
    """
    x = int(round(x))
    sign = ''
    if x < 0:
        sign = '-'
        x = -x

    if x == 0:
        return '0'

    digits = []
    while x > 0:
        x, digit = divmod(x, 60)
        digits.append(_DIGITS[digit])
    s = ''.join(reversed(digits))

    if divide_by_60:
        if len(s) < 2:
            s = '0.' + s
        else:
            s = s[:-1] + '.' + s[-1]
        if s.endswith('.0'):
            s = s[:-2]

    return sign + s


def from_base60(s: str, multiply_by_60: bool = False) -> int:
    """Inverse of to_base60(). A leading '+' or '-' is accepted. If
    multiply_by_60 is True, the single digit after the '.' (if any) is the
    fractional 1/60 part.
    """
    sign = 1
    if s.startswith('-'):
        sign = -1
        s = s[1:]
    elif s.startswith('+'):
        s = s[1:]

    if multiply_by_60:
        pos = s.find('.')
        if pos >= 0:
            fraction = s[pos + 1:pos + 2]
            s = s[:pos] + (fraction if fraction else '0')
        else:
            s += '0'

    if not s:
        raise ValueError('Empty base-60 number')

    result = 0
    for c in s:
        result = result * 60 + from_base60_digit(c)
    return sign * result
