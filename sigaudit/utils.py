#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Assorted conversion utilities.

Hex-strings are the usual input format at the package boundary:
they are validated here, before any parsing begins.
"""

import string
from collections.abc import Iterable as IterableCollection
from typing import Iterable, Optional, Union

from sigaudit.alias import Integer, Octets
from sigaudit.exceptions import SigAuditValueError

NoneOneOrMoreInt = Optional[Union[int, Iterable[int]]]

_HEX_DIGITS = frozenset(string.hexdigits)


def bytes_from_hex(hex_str: str) -> bytes:
    """Return bytes from a hex-string.

    The hex-string is case-insensitive and it may have a leading '0x'.
    Leading/trailing and internal blanks are ignored.
    An odd number of hex-digits or any non hex-digit character
    raises SigAuditValueError.
    """

    hex_str = "".join(hex_str.split())
    if hex_str[:2].lower() == "0x":
        hex_str = hex_str[2:]
    if len(hex_str) % 2 != 0:
        err_msg = f"odd-length hex-string: {len(hex_str)} hex-digits"
        raise SigAuditValueError(err_msg)
    if any(c not in _HEX_DIGITS for c in hex_str):
        raise SigAuditValueError(f"invalid hex-string: '{hex_str[:16]}'")
    return bytes.fromhex(hex_str)


def bytes_from_octets(octets: Octets, out_size: NoneOneOrMoreInt = None) -> bytes:
    """Return bytes from a hex-string or bytes.

    If the input is not a string, then it goes untouched.
    Optionally, it also ensures required output size.
    """

    if isinstance(octets, str):  # hex string
        octets = bytes_from_hex(octets)

    if (
        out_size is None
        or isinstance(out_size, int)
        and len(octets) == out_size
        or isinstance(out_size, IterableCollection)
        and len(octets) in out_size
    ):
        return octets

    err_msg = f"invalid size: {len(octets)} bytes instead of {out_size}"
    raise SigAuditValueError(err_msg)


def int_from_bits(octets: Octets, nlen: int) -> int:
    """Return the leftmost nlen bits.

    Take as input a sequence of blen bits and calculate a
    non-negative integer i that is less than 2^nlen according to
    SEC 1 v.2 section 4.1.3 (5).
    Note that an additional reduction modulo n would be required
    to ensure that 0 < i < n.
    """

    octets = bytes_from_octets(octets)
    i = int.from_bytes(octets, byteorder="big", signed=False)

    blen = len(octets) * 8  # bits
    n = (blen - nlen) if blen >= nlen else 0
    return i >> n


def int_from_integer(i: Integer) -> int:
    """Return an int from many possible integer representations.

    Allowed integer representations are:

    * 3735928559
    * "0xdeadbeef"
    * "deadbeef"
    * b'\xde\xad\xbe\xef'

    Hex-strings are always interpreted as big-endian unsigned integers.
    """

    if isinstance(i, int):
        return i

    if isinstance(i, str):
        i = bytes_from_hex(i)

    # must be bytes
    return int.from_bytes(i, "big", signed=False)


def hex_string(i: Integer) -> str:
    """Return a hex-string from many positive integer representations.

    Negative integers are not allowed.

    The resulting hex-string has an even number of hex-digits and
    includes a space every four bytes (i.e. every eight hex-digits).
    """

    int_ = int_from_integer(i)
    if int_ < 0:
        raise SigAuditValueError(f"negative integer: {int_}")
    a_str = hex(int_)[2:]
    if len(a_str) % 2 != 0:
        a_str = "0" + a_str

    indx = list(reversed(range(len(a_str), 0, -8)))
    lresult = [(a_str[max(0, i - 8) : i]) for i in indx]
    result = " ".join(lresult)
    return result.upper()


def fixed_hex(i: int, size: int) -> str:
    "Return the lowercase zero-padded hex-string of a size-byte integer."
    return i.to_bytes(size, byteorder="big", signed=False).hex()
