#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Sighash types of transaction signatures.

A transaction signature is the DER signature
followed by one sighash-type byte.

https://raghavsood.com/blog/2018/06/10/bitcoin-signature-types-sighash
"""

from typing import Dict

_FIRST_FIVE_BITS = 0b11111

ALL = 1
NONE = 2
SINGLE = 3
ANYONECANPAY = 0b10000000

SIGHASH_TYPES = [
    ALL,
    NONE,
    SINGLE,
    ANYONECANPAY | ALL,
    ANYONECANPAY | NONE,
    ANYONECANPAY | SINGLE,
]

_BASE_NAMES: Dict[int, str] = {
    ALL: "SIGHASH_ALL",
    NONE: "SIGHASH_NONE",
    SINGLE: "SIGHASH_SINGLE",
}

UNKNOWN = "UNKNOWN"


def classify_sighash_type(sighash_type: int) -> str:
    """Return the sighash type name.

    The base type is given by the lowest five bits,
    the ANYONECANPAY flag by the highest one;
    e.g. 0x81 is 'SIGHASH_ALL|ANYONECANPAY'.
    Anything else is 'UNKNOWN'.
    """

    base_name = _BASE_NAMES.get(sighash_type & _FIRST_FIVE_BITS)
    if base_name is None:
        return UNKNOWN
    if sighash_type & ANYONECANPAY:
        return base_name + "|ANYONECANPAY"
    return base_name
