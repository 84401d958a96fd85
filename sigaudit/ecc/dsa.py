#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Elliptic Curve Digital Signature Algorithm (ECDSA).

Implementation according to SEC 1 v.2:

http://www.secg.org/sec1-v2.pdf

Optionally specialized with bitcoin canonical 'lower-s' form
to avoid accepting malleable signatures.

This is the reference verifier of the package:
not constant-time, it must not be used to sign with valuable keys.
The nonce is an explicit input, as crafting signatures
with chosen (e.g. reused) nonces is the whole point here.
"""

import secrets
from typing import Optional, Tuple, Union

from sigaudit.alias import Octets, Point
from sigaudit.der import encode_der, parse_der_loose, parse_der_strict
from sigaudit.ecc.curve import Curve, double_mult, mult_aff, secp256k1
from sigaudit.ecc.number_theory import mod_add, mod_inv, mod_mul
from sigaudit.ecc.sec_point import point_from_octets
from sigaudit.exceptions import SigAuditRuntimeError, SigAuditValueError
from sigaudit.utils import bytes_from_octets, hex_string, int_from_bits

Key = Union[Octets, Point]


def challenge_(msg_hash: Octets, ec: Curve = secp256k1) -> int:
    "Return the message digest as scalar: leftmost ec.nlen bits mod n."
    msg_hash = bytes_from_octets(msg_hash)
    return int_from_bits(msg_hash, ec.nlen) % ec.n


def _check_scalar(name: str, i: int, ec: Curve) -> None:
    if not 0 < i < ec.n:
        err_msg = f"{name} not in 1..n-1: "
        err_msg += f"'{hex_string(i)}'" if i > 0xFFFFFFFF else f"{i}"
        raise SigAuditValueError(err_msg)


def _sign_(c: int, q: int, nonce: int, lower_s: bool, ec: Curve) -> Tuple[int, int]:
    # Private function for testing purposes: it allows to explore all
    # possible value of the challenge c (for low-cardinality curves).
    # It assume that c is in [0, n-1], while q and nonce are in [1, n-1]
    # Steps numbering follows SEC 1 v.2 section 4.1.3
    K = mult_aff(nonce, ec.G, ec)  # 1

    # mod n makes the x_K field element a scalar
    r = K[0] % ec.n  # 2, 3
    if r == 0:  # r≠0 required as it multiplies the public key
        raise SigAuditRuntimeError("failed to sign: r = 0")

    s = mod_mul(mod_inv(nonce, ec.n), mod_add(c, r * q, ec.n), ec.n)  # 6
    if s == 0:  # s≠0 required as verify will need the inverse of s
        raise SigAuditRuntimeError("failed to sign: s = 0")

    # bitcoin canonical 'low-s' encoding for ECDSA signatures
    # see https://github.com/bitcoin/bitcoin/pull/6769
    if lower_s and ec.is_high_s(s):
        s = ec.n - s

    return r, s


def sign_(
    msg_hash: Octets,
    prv_key: int,
    nonce: Optional[int] = None,
    lower_s: bool = True,
    ec: Curve = secp256k1,
) -> Tuple[int, int]:
    """Sign a message digest according to ECDSA signature algorithm.

    Return the (r, s) tuple; use sigaudit.der.encode_der
    for its DER serialization.
    If the nonce is not provided, a random one is used.
    """

    c = challenge_(msg_hash, ec)  # 4, 5
    _check_scalar("private key", prv_key, ec)
    if nonce is None:
        nonce = 1 + secrets.randbelow(ec.n - 1)
    _check_scalar("nonce", nonce, ec)
    return _sign_(c, prv_key, nonce, lower_s, ec)


def sign_der_(
    msg_hash: Octets,
    prv_key: int,
    nonce: Optional[int] = None,
    lower_s: bool = True,
    ec: Curve = secp256k1,
) -> bytes:
    "Sign a message digest, returning the strict DER signature."
    return encode_der(*sign_(msg_hash, prv_key, nonce, lower_s, ec))


def _assert_as_valid_(
    c: int, Q: Point, r: int, s: int, lower_s: bool, ec: Curve
) -> None:
    # Private function for test/dev purposes

    _check_scalar("scalar r", r, ec)
    _check_scalar("scalar s", s, ec)
    if lower_s and ec.is_high_s(s):
        raise SigAuditValueError("not a low s")

    w = mod_inv(s, ec.n)
    u = mod_mul(c, w, ec.n)
    v = mod_mul(r, w, ec.n)  # 4
    # Let K = u*G + v*Q.
    K = double_mult(u, ec.G, v, Q, ec)  # 5

    # Fail if infinite(K).
    if K[1] == 0:
        raise SigAuditRuntimeError("invalid (INF) key")

    # Fail if r ≠ x_K %n.
    if r != K[0] % ec.n:  # 6, 7, 8
        raise SigAuditRuntimeError("signature verification failed")


def _point_from_key(key: Key, ec: Curve) -> Point:
    if isinstance(key, tuple):
        ec.require_on_curve(key)
        if key[1] == 0:
            raise SigAuditValueError("INF is not a valid public key")
        return key
    return point_from_octets(key, ec)


def scalars_from_sig(
    sig: Octets, ec: Curve = secp256k1, strict_der: bool = True
) -> Tuple[int, int]:
    """Return the (r, s) tuple of a DER signature.

    With strict_der=False, BER-ish encodings are tolerated
    through the loose parser.
    """

    if strict_der:
        analysis = parse_der_strict(sig, ec, sighash=False)
        if not analysis.is_der:
            issues = ", ".join(str(issue) for issue in analysis.issues)
            raise SigAuditValueError(f"invalid DER signature: {issues}")
        return analysis.r_int, analysis.s_int

    loose = parse_der_loose(sig)
    if not loose.ok:
        raise SigAuditValueError(f"invalid signature: {loose.error}")
    return loose.r_int, loose.s_int


def assert_as_valid_(
    msg_hash: Octets,
    key: Key,
    sig: Octets,
    lower_s: bool = True,
    ec: Curve = secp256k1,
    strict_der: bool = True,
) -> None:
    # Private function for test/dev purposes
    # It raises Errors, while verify should always return True or False

    r, s = scalars_from_sig(sig, ec, strict_der)
    Q = _point_from_key(key, ec)
    c = challenge_(msg_hash, ec)  # 2, 3
    _assert_as_valid_(c, Q, r, s, lower_s, ec)


def verify_(
    msg_hash: Octets,
    key: Key,
    sig: Octets,
    lower_s: bool = True,
    ec: Curve = secp256k1,
    strict_der: bool = True,
) -> bool:
    """ECDSA signature verification (SEC 1 v.2 section 4.1.4)."""
    # all kind of Exceptions are catched because
    # verify must always return a bool
    try:
        assert_as_valid_(msg_hash, key, sig, lower_s, ec, strict_der)
    except Exception:  # pylint: disable=broad-except
        return False

    return True


def nonce_from_prv_key_(
    msg_hash: Octets, prv_key: int, r: int, s: int, ec: Curve = secp256k1
) -> int:
    """Return the nonce used by the private key for the signature.

    k = (m + x·r) · s⁻¹ mod n
    """

    _check_scalar("private key", prv_key, ec)
    _check_scalar("scalar r", r, ec)
    _check_scalar("scalar s", s, ec)
    c = challenge_(msg_hash, ec)
    return mod_mul(mod_add(c, prv_key * r, ec.n), mod_inv(s, ec.n), ec.n)
