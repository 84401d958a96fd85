#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""SEC 1 compressed/uncompressed point representation.

SEC 1 v.2 sections 2.3.3 and 2.3.4,
https://www.secg.org/sec1-v2.pdf
"""

from sigaudit.alias import Octets, Point
from sigaudit.ecc.curve import Curve, secp256k1
from sigaudit.exceptions import SigAuditValueError
from sigaudit.utils import bytes_from_octets, hex_string


def bytes_from_point(Q: Point, ec: Curve = secp256k1, compressed: bool = True) -> bytes:
    """Return a point as compressed/uncompressed octet sequence.

    Compressed points are prefixed by 0x02 (even y) or 0x03 (odd y),
    uncompressed ones by 0x04.
    """

    ec.require_on_curve(Q)
    if Q[1] == 0:  # infinity point in affine coordinates
        raise SigAuditValueError("no bytes representation for infinity point")

    x_bytes = Q[0].to_bytes(ec.p_size, byteorder="big", signed=False)
    if compressed:
        return (b"\x03" if Q[1] & 1 else b"\x02") + x_bytes

    y_bytes = Q[1].to_bytes(ec.p_size, byteorder="big", signed=False)
    return b"\x04" + x_bytes + y_bytes


def point_from_octets(pub_key: Octets, ec: Curve = secp256k1) -> Point:
    "Return the curve point (x_Q, y_Q) encoded by the SEC 1 octets."

    pub_key = bytes_from_octets(pub_key, (ec.p_size + 1, 2 * ec.p_size + 1))
    prefix, size = pub_key[0], len(pub_key)

    if prefix in (0x02, 0x03) and size == ec.p_size + 1:
        x_Q = int.from_bytes(pub_key[1:], byteorder="big", signed=False)
        try:
            y_Q = ec.y_even(x_Q)  # also check x_Q validity
        except SigAuditValueError as e:
            err_msg = f"invalid x-coordinate: '{hex_string(x_Q)}'"
            raise SigAuditValueError(err_msg) from e
        return x_Q, y_Q if prefix == 0x02 else ec.p - y_Q

    if prefix == 0x04 and size == 2 * ec.p_size + 1:
        x_Q = int.from_bytes(pub_key[1 : ec.p_size + 1], byteorder="big")
        y_Q = int.from_bytes(pub_key[ec.p_size + 1 :], byteorder="big")
        if y_Q == 0 or not ec.is_on_curve((x_Q, y_Q)):
            raise SigAuditValueError("point not on curve")
        return x_Q, y_Q

    err_msg = f"not a point: prefix 0x{prefix:02x} with {size} bytes"
    raise SigAuditValueError(err_msg)
