#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Elliptic curve classes and functions.

CurveGroup is the group of the points of an elliptic curve over Fp;
Curve is its cyclic subgroup of prime order n generated by G.

Points are in affine coordinates, INF being the point at infinity.
The named curve parameter table (CURVES) includes
secp256k1 and the NIST curves secp256r1, secp384r1, and secp521r1.
"""

from math import ceil, sqrt
from typing import Dict, Optional, Union

from sigaudit.alias import INF, Integer, Point
from sigaudit.ecc.number_theory import mod_inv, mod_sqrt
from sigaudit.exceptions import SigAuditTypeError, SigAuditValueError
from sigaudit.utils import hex_string, int_from_integer

HEX_THRESHOLD = 0xFFFFFFFF


def _str(i: int) -> str:
    return f"'{hex_string(i)}'" if i > HEX_THRESHOLD else f"{i}"


class CurveGroup:
    """Finite group of the points of an elliptic curve over Fp.

    The elliptic curve is the set of points (x, y)
    that are solutions to a Weierstrass equation y^2 = x^3 + a*x + b,
    with x, y, a, and b in Fp (p being a prime),
    together with a point at infinity INF.
    The constants a, b must satisfy the relationship
    4 a^3 + 27 b^2 ≠ 0.
    """

    def __init__(self, p: Integer, a: Integer, b: Integer) -> None:
        # Parameters are checked according to SEC 1 v.2 3.1.1.2.1

        p = int_from_integer(p)
        a = int_from_integer(a)
        b = int_from_integer(b)

        # 1) check that p is a prime
        # Fermat test will do as _probabilistic_ primality test...
        if p < 2 or p % 2 == 0 or pow(2, p - 1, p) != 1:
            raise SigAuditValueError(f"p is not prime: {_str(p)}")

        self.p_size = ceil(p.bit_length() / 8)
        self.p = p

        # 2. check that a and b are integers in the interval [0, p−1]
        if not 0 <= a < p:
            raise SigAuditValueError(f"a not in 0..p-1: {_str(a)}")
        if not 0 <= b < p:
            raise SigAuditValueError(f"b not in 0..p-1: {_str(b)}")

        # 3. Check that 4*a^3 + 27*b^2 ≠ 0 (mod p)
        d = 4 * a * a * a + 27 * b * b
        if d % p == 0:
            raise SigAuditValueError("zero discriminant")
        self._a = a
        self._b = b

    def __repr__(self) -> str:
        return f"CurveGroup({_str(self.p)}, {_str(self._a)}, {_str(self._b)})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CurveGroup):
            return NotImplemented
        return (self.p, self._a, self._b) == (other.p, other._a, other._b)

    def __hash__(self) -> int:
        return hash((self.p, self._a, self._b))

    def negate(self, Q: Point) -> Point:
        """Return the opposite point.

        The input point is not checked to be on the curve.
        """
        # % self.p is required to account for INF (i.e. Q[1]==0)
        # so that negate(INF) = INF
        if len(Q) == 2:
            return Q[0], (self.p - Q[1]) % self.p
        raise SigAuditTypeError("not a point")

    def add(self, Q1: Point, Q2: Point) -> Point:
        """Return the sum of two points.

        The input points must be on the curve.
        """

        self.require_on_curve(Q1)
        self.require_on_curve(Q2)
        return self.add_aff(Q1, Q2)

    def add_aff(self, Q: Point, R: Point) -> Point:
        # points are assumed to be on curve

        if R[1] == 0:  # Infinity point in affine coordinates
            return Q
        if Q[1] == 0:  # Infinity point in affine coordinates
            return R

        if R[0] == Q[0]:
            if R[1] == Q[1]:  # point doubling
                return self.double_aff(R)
            # opposite points: vertical chord
            return INF

        lam = (R[1] - Q[1]) * mod_inv(R[0] - Q[0], self.p)
        x = lam * lam - Q[0] - R[0]
        y = lam * (Q[0] - x) - Q[1]
        return x % self.p, y % self.p

    def double_aff(self, Q: Point) -> Point:
        # point is assumed to be on curve

        if Q[1] == 0:  # Infinity point in affine coordinates
            return INF

        # tangent slope
        lam = (3 * Q[0] * Q[0] + self._a) * mod_inv(2 * Q[1], self.p)
        x = lam * lam - Q[0] - Q[0]
        y = lam * (Q[0] - x) - Q[1]
        return x % self.p, y % self.p

    def _y2(self, x: int) -> int:
        # skipping a crucial check here:
        # if sqrt(y*y) does not exist, then x is not valid.
        # This is a good reason to keep this method private
        return ((x * x + self._a) * x + self._b) % self.p

    def y(self, x: int) -> int:
        """Return the y coordinate from x, as in (x, y)."""
        if not 0 <= x < self.p:
            raise SigAuditValueError(f"x-coordinate not in 0..p-1: {_str(x)}")
        y2 = self._y2(x)
        try:
            return mod_sqrt(y2, self.p)
        except SigAuditValueError as e:
            err_msg = f"invalid x-coordinate: {_str(x)}"
            raise SigAuditValueError(err_msg) from e

    def y_even(self, x: int) -> int:
        """Return the even affine y-coordinate associated to x."""
        root = self.y(x)
        return self.p - root if root % 2 else root

    def require_on_curve(self, Q: Point) -> None:
        """Require the input curve Point to be on the curve.

        An Error is raised if not.
        """
        if not self.is_on_curve(Q):
            raise SigAuditValueError("point not on curve")

    def is_on_curve(self, Q: Point) -> bool:
        """Return True if the point is on the curve.

        The check is the exact y^2 ≡ x^3 + a*x + b (mod p) equality.
        """
        if len(Q) != 2:
            raise SigAuditValueError("point must be a tuple[int, int]")
        if Q[1] == 0:  # Infinity point in affine coordinates
            return True
        if not 0 < Q[1] < self.p or not 0 <= Q[0] < self.p:
            return False
        return self._y2(Q[0]) == (Q[1] * Q[1] % self.p)


def mult_aff(m: int, Q: Point, ec: CurveGroup) -> Point:
    """Scalar multiplication of a curve point in affine coordinates.

    This implementation uses 'double & add' algorithm,
    binary decomposition of m from the least significant bit,
    affine coordinates.
    It is not constant-time.

    The input point is assumed to be on curve,
    m is assumed to have been reduced mod n if appropriate
    (e.g. cyclic groups of order n).
    """

    if m < 0:
        raise SigAuditValueError(f"negative m: {hex(m)}")

    # no shortcut for m == 0 or Q == INF: the loop handles them
    R = INF  # initialize as infinity point
    while m > 0:  # use binary representation of m
        if m & 1:  # if least significant bit is 1
            R = ec.add_aff(R, Q)  # then add current Q
        m = m >> 1  # remove the bit just accounted for
        Q = ec.double_aff(Q)  # double Q for next step
    return R


class Curve(CurveGroup):
    "Prime order subgroup of the points of an elliptic curve over Fp."

    def __init__(
        self,
        p: Integer,
        a: Integer,
        b: Integer,
        G: Point,
        n: Integer,
        h: int,
        weakness_check: bool = True,
        name: Optional[str] = None,
    ) -> None:

        super().__init__(p, a, b)

        # 4. Check that G is on the curve
        if len(G) != 2:
            raise SigAuditValueError("generator must a be a sequence[int, int]")
        self.G = (int_from_integer(G[0]), int_from_integer(G[1]))
        if not self.is_on_curve(self.G):
            raise SigAuditValueError("generator is not on the curve")

        n = int_from_integer(n)
        self.n = n
        self.nlen = n.bit_length()
        self.n_size = (self.nlen + 7) // 8

        # 5. Check that n is prime.
        if n < 2 or n % 2 == 0 or pow(2, n - 1, n) != 1:
            raise SigAuditValueError(f"n is not prime: {_str(n)}")
        delta = int(2 * sqrt(self.p))
        # also check n with Hasse Theorem
        if h < 2 and not self.p + 1 - delta <= n <= self.p + 1 + delta:
            raise SigAuditValueError(f"n not in p+1-delta..p+1+delta: {_str(n)}")

        # 7. Check that G ≠ INF, nG = INF
        if self.G[1] == 0:
            raise SigAuditValueError("INF point cannot be a generator")
        Inf = mult_aff(n, self.G, self)
        if Inf[1] != 0:
            raise SigAuditValueError(f"n is not the group order: {_str(n)}")

        # 6. Check cofactor
        exp_h = int(1 / n + delta / n + self.p / n)
        if h != exp_h:
            raise SigAuditValueError(f"invalid h: {h}, expected {exp_h}")
        self.h = h

        # 8. Check that n ≠ p
        if n == self.p:
            raise SigAuditValueError(f"n=p weak curve: {_str(n)}")

        if weakness_check:
            # 8. Check that p^i % n ≠ 1 for all 1≤i<100
            for i in range(1, 100):
                if pow(self.p, i, n) == 1:
                    raise UserWarning("weak curve")

        self.name = name

    def __repr__(self) -> str:
        if self.name:
            return f"Curve('{self.name}')"
        result = f"Curve({_str(self.p)}, {_str(self._a)}, {_str(self._b)}"
        result += f", ({_str(self.G[0])}, {_str(self.G[1])}), {_str(self.n)}"
        result += f", {self.h})"
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Curve):
            return NotImplemented
        return super().__eq__(other) and (self.G, self.n) == (other.G, other.n)

    def __hash__(self) -> int:
        return hash((self.p, self._a, self._b, self.G, self.n))

    @property
    def half_n(self) -> int:
        "Return n // 2: s is high (BIP62) iff s > n // 2."
        return self.n >> 1

    def is_high_s(self, s: int) -> bool:
        return s > self.half_n


# SEC 2 v.2 recommended parameters, https://www.secg.org/sec2-v2.pdf

# bitcoin curve
secp256k1 = Curve(
    2**256 - 2**32 - 977,
    0,
    7,
    (
        0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798,
        0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8,
    ),
    0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141,
    1,
    name="secp256k1",
)

secp256r1 = Curve(
    2**256 - 2**224 + 2**192 + 2**96 - 1,
    0xFFFFFFFF00000001000000000000000000000000FFFFFFFFFFFFFFFFFFFFFFFC,
    0x5AC635D8AA3A93E7B3EBBD55769886BC651D06B0CC53B0F63BCE3C3E27D2604B,
    (
        0x6B17D1F2E12C4247F8BCE6E563A440F277037D812DEB33A0F4A13945D898C296,
        0x4FE342E2FE1A7F9B8EE7EB4A7C0F9E162BCE33576B315ECECBB6406837BF51F5,
    ),
    0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551,
    1,
    name="secp256r1",
)

secp384r1 = Curve(
    2**384 - 2**128 - 2**96 + 2**32 - 1,
    0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFFFF0000000000000000FFFFFFFC,
    0xB3312FA7E23EE7E4988E056BE3F82D19181D9C6EFE8141120314088F5013875AC656398D8A2ED19D2A85C8EDD3EC2AEF,
    (
        0xAA87CA22BE8B05378EB1C71EF320AD746E1D3B628BA79B9859F741E082542A385502F25DBF55296C3A545E3872760AB7,
        0x3617DE4A96262C6F5D9E98BF9292DC29F8F41DBD289A147CE9DA3113B5F0B8C00A60B1CE1D7E819D7A431D7C90EA0E5F,
    ),
    0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFC7634D81F4372DDF581A0DB248B0A77AECEC196ACCC52973,
    1,
    name="secp384r1",
)

secp521r1 = Curve(
    2**521 - 1,
    0x01FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFC,
    0x0051953EB9618E1C9A1F929A21A0B68540EEA2DA725B99B315F3B8B489918EF109E156193951EC7E937B1652C0BD3BB1BF073573DF883D2C34F1EF451FD46B503F00,
    (
        0x00C6858E06B70404E9CD9E3ECB662395B4429C648139053FB521F828AF606B4D3DBAA14B5E77EFE75928FE1DC127A2FFA8DE3348B3C1856A429BF97E7E31C2E5BD66,
        0x011839296A789A3BC0045C8A5FB42C7D1BD998F54449579B446817AFBD17273E662C97EE72995EF42640C550B9013FAD0761353C7086A272C24088BE94769FD16650,
    ),
    0x01FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFA51868783BF2F966B7FCC0148F709A5D03BB5C9B8899C47AEBB6FB71E91386409,
    1,
    name="secp521r1",
)

CURVES: Dict[str, Curve] = {
    "secp256k1": secp256k1,
    "secp256r1": secp256r1,
    "secp384r1": secp384r1,
    "secp521r1": secp521r1,
}

CurveId = Union[str, Curve]


def curve_from_name(ec: CurveId) -> Curve:
    """Return the curve from its name (e.g. 'secp256k1').

    A Curve instance goes untouched.
    """
    if isinstance(ec, Curve):
        return ec
    curve = CURVES.get(ec.strip().lower())
    if curve is None:
        err_msg = f"unknown curve: '{ec}'"
        err_msg += f", available curves are {', '.join(CURVES)}"
        raise SigAuditValueError(err_msg)
    return curve


def mult(m: Integer, Q: Optional[Point] = None, ec: Curve = secp256k1) -> Point:
    """Elliptic curve scalar multiplication.

    Q defaults to the generator G.
    The scalar is reduced mod n; m = 0 returns INF.
    """
    m = int_from_integer(m)
    if m < 0:
        raise SigAuditValueError(f"negative m: {hex(m)}")
    m %= ec.n
    if Q is None:
        Q = ec.G
    else:
        ec.require_on_curve(Q)
    return mult_aff(m, Q, ec)


def double_mult(u: int, H: Point, v: int, Q: Point, ec: Curve = secp256k1) -> Point:
    "Return u*H + v*Q, the points being assumed on curve."
    return ec.add_aff(mult_aff(u % ec.n, H, ec), mult_aff(v % ec.n, Q, ec))
