#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Aliases

mypy aliases, documenting also coding input conventions.
"""

from typing import Any, Callable, Tuple, Union

# Octets are a sequence of eight-bit bytes or a hex-string (not text string)
#
# hex-strings are case-insensitive, must have an even number of hex-digits,
# and may have a leading '0x', e.g.:
# "3045022100..."
# "0x3045022100..."
# "30 45 02 21 00..."
#
# use sigaudit.utils.bytes_from_octets to convert Octets to bytes;
# malformed hex-strings raise SigAuditValueError
#
# Octets are used for DER signatures, message digests (hash),
# SEC 1 serialized public keys, sighash bytes, etc.
Octets = Union[bytes, str]

# hex-string or bytes representation of an int
Integer = Union[bytes, str, int]

# Hash digest constructor: it may be any name suitable to hashlib.new()
HashF = Callable[[], Any]

# Elliptic curve point in affine coordinates.
# Warning: to make Point a NamedTuple would slow down the code
Point = Tuple[int, int]

# Note that the infinity point in affine coordinates is INF = (int, 0)
# (no affine point of a prime order group can have y=0)
# It can be checked with 'INF[1] == 0'
INF = 5, 0
