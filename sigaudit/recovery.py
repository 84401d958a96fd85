#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""ECDSA private key recovery from nonce reuse or known nonce.

An ECDSA signature (r, s) of the message digest m
with private key x and nonce k satisfies

    s = (m + x·r) · k⁻¹ mod n

Two signatures with the same r share the same nonce k, so that

    k = (m₁ - m₂) · (s₁ - s₂)⁻¹ mod n
    x = (s₁·k - m₁) · r⁻¹ mod n

while a single signature with known nonce k leaks

    x = (s·k - m) · r⁻¹ mod n

Each algebraic step is recorded in an ordered audit trail,
returned together with the result.
Unrecoverable inputs (e.g. identical s values) are
RecoveryFailure values, not exceptions;
only malformed inputs (e.g. invalid hex-strings) raise.
"""

import logging
from dataclasses import dataclass, field
from itertools import combinations
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from dataclasses_json import DataClassJsonMixin, config

from sigaudit.alias import Integer, Octets, Point
from sigaudit.b58 import p2pkh, wif_from_prv_key
from sigaudit.ecc.curve import Curve, CurveId, curve_from_name, mult_aff, secp256k1
from sigaudit.ecc.dsa import Key, challenge_
from sigaudit.ecc.number_theory import mod_inv, mod_mul, mod_sub
from sigaudit.ecc.sec_point import bytes_from_point, point_from_octets
from sigaudit.exceptions import SigAuditValueError
from sigaudit.network import network_from_name
from sigaudit.utils import fixed_hex, int_from_integer

LOGGER = logging.getLogger(__name__)

IDENTICAL_S = "identical S values"
KEY_MISMATCH = "recovered key does not match public key"


def _int_field() -> Any:
    return field(metadata=config(encoder=hex, decoder=lambda v: int(v, 16)))


@dataclass(frozen=True)
class RecoveryStep(DataClassJsonMixin):
    name: str
    formula: str
    value: str


@dataclass(frozen=True)
class KeyMaterial(DataClassJsonMixin):
    "Public key, WIF, and address derived from a private key."

    prv_key: int = _int_field()
    # SEC 1 hex-strings
    pub_key: str = ""
    pub_key_uncompressed: str = ""
    # None if the curve is not the network one
    wif: Optional[str] = None
    address: Optional[str] = None


@dataclass(frozen=True)
class RecoverySuccess(DataClassJsonMixin):
    prv_key: int = _int_field()
    nonce: int = _int_field()
    pub_key: str = ""
    pub_key_uncompressed: str = ""
    wif: Optional[str] = None
    address: Optional[str] = None
    steps: List[RecoveryStep] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class RecoveryFailure(DataClassJsonMixin):
    reason: str
    steps: List[RecoveryStep] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return False


RecoveryResult = Union[RecoverySuccess, RecoveryFailure]


def key_material(
    prv_key: int, ec: CurveId = secp256k1, network: str = "mainnet"
) -> KeyMaterial:
    """Return public key, WIF, and p2pkh address of a private key.

    WIF and address are derived from the compressed public key;
    they are None if the curve is not the network one.
    """

    ec = curve_from_name(ec)
    if not 0 < prv_key < ec.n:
        raise SigAuditValueError(f"private key not in 1..n-1: {hex(prv_key)}")
    Q = mult_aff(prv_key, ec.G, ec)
    pub_key = bytes_from_point(Q, ec)
    pub_key_uncompressed = bytes_from_point(Q, ec, compressed=False)

    wif = address = None
    if network_from_name(network).curve == ec:
        wif = wif_from_prv_key(prv_key, network)
        address = p2pkh(pub_key, network)

    return KeyMaterial(
        prv_key, pub_key.hex(), pub_key_uncompressed.hex(), wif, address
    )


def _digest(m: Integer, ec: Curve) -> int:
    if isinstance(m, int):
        return m % ec.n
    return challenge_(m, ec)


def _expected_point(pub_key: Optional[Key], ec: Curve) -> Optional[Point]:
    if pub_key is None:
        return None
    if isinstance(pub_key, tuple):
        ec.require_on_curve(pub_key)
        return pub_key
    return point_from_octets(pub_key, ec)


def _failure(reason: str, steps: List[RecoveryStep]) -> RecoveryFailure:
    LOGGER.debug("key recovery failed: %s", reason)
    return RecoveryFailure(reason, steps)


def _out_of_range(ec: Curve, **scalars: int) -> Optional[str]:
    for name, value in scalars.items():
        if not 0 < value < ec.n:
            return f"{name} not in [1, n-1]"
    return None


def _success(
    x: int, k: int, ec: Curve, network: str, steps: List[RecoveryStep]
) -> RecoverySuccess:
    keys = key_material(x, ec, network)
    steps.append(
        RecoveryStep(
            "Derive Public Key",
            f"Y = G × x (scalar multiplication on {ec.name})",
            keys.pub_key,
        )
    )
    steps.append(
        RecoveryStep(
            "Generate WIF & Address",
            "WIF = Base58Check(prefix + x + 0x01), "
            "address = Base58Check(prefix + HASH160(Y))",
            f"{keys.wif}, {keys.address}"
            if keys.wif
            else f"no {network} encoding for {ec.name}",
        )
    )
    return RecoverySuccess(
        x,
        k,
        keys.pub_key,
        keys.pub_key_uncompressed,
        keys.wif,
        keys.address,
        steps,
    )


def _crack(
    r: int, s1: int, s2: int, m1: int, m2: int, ec: Curve, steps: List[RecoveryStep]
) -> Union[Tuple[int, int], str]:
    "Return (nonce, private key) or the failure reason."

    n, size = ec.n, ec.n_size
    if s1 == s2:
        return IDENTICAL_S

    dm = mod_sub(m1, m2, n)
    ds_inv = mod_inv(mod_sub(s1, s2, n), n)
    k = mod_mul(dm, ds_inv, n)
    steps.append(
        RecoveryStep(
            "Calculate Nonce (k)",
            "k = (m₁ - m₂) × (s₁ - s₂)⁻¹ mod n",
            f"m₁ - m₂ = {fixed_hex(dm, size)}"
            f", (s₁ - s₂)⁻¹ = {fixed_hex(ds_inv, size)}",
        )
    )
    if k == 0:
        return "recovered nonce is zero"
    steps.append(
        RecoveryStep(
            "Recovered Nonce", "k = (m₁ - m₂) × (s₁ - s₂)⁻¹ mod n", fixed_hex(k, size)
        )
    )

    r_inv = mod_inv(r, n)
    num = mod_sub(mod_mul(s1, k, n), m1, n)
    x = mod_mul(num, r_inv, n)
    steps.append(
        RecoveryStep(
            "Calculate Private Key",
            "x = (s₁ × k - m₁) × r⁻¹ mod n",
            f"s₁ × k - m₁ = {fixed_hex(num, size)}"
            f", r⁻¹ = {fixed_hex(r_inv, size)}",
        )
    )
    if x == 0:
        return "recovered private key is zero"
    steps.append(
        RecoveryStep(
            "Recovered Private Key", "x = (s₁ × k - m₁) × r⁻¹ mod n", fixed_hex(x, size)
        )
    )
    return k, x


def _matches(
    x: int, expected: Optional[Point], ec: Curve, steps: List[RecoveryStep]
) -> bool:
    if expected is None:
        return True
    match = mult_aff(x, ec.G, ec) == expected
    steps.append(
        RecoveryStep(
            "Check Public Key", "G × x == Y", "match" if match else "mismatch"
        )
    )
    return match


def recover_from_nonce_reuse(
    r: Integer,
    s1: Integer,
    s2: Integer,
    m1: Integer,
    m2: Integer,
    pub_key: Optional[Key] = None,
    ec: CurveId = secp256k1,
    network: str = "mainnet",
) -> RecoveryResult:
    """Recover the private key from two signatures sharing the same r.

    r, s1, and s2 are integers (or their big-endian hex/bytes);
    m1 and m2 are message digests (hex-strings or bytes),
    or the already reduced integers.

    If the signer public key is provided, it is used to
    disambiguate low-s normalized signatures:
    when the recovered key does not match, s2 is replaced by n - s2.
    """

    ec = curve_from_name(ec)
    r_, s1_, s2_ = int_from_integer(r), int_from_integer(s1), int_from_integer(s2)
    c1, c2 = _digest(m1, ec), _digest(m2, ec)
    expected = _expected_point(pub_key, ec)

    size = ec.n_size
    steps = [
        RecoveryStep(
            "Parse Input Values",
            "Convert hex strings to scalars in group order field",
            f"r = {fixed_hex(r_ % ec.n, size)}"
            f", s₁ = {fixed_hex(s1_ % ec.n, size)}"
            f", s₂ = {fixed_hex(s2_ % ec.n, size)}"
            f", m₁ = {fixed_hex(c1, size)}"
            f", m₂ = {fixed_hex(c2, size)}",
        )
    ]

    reason = _out_of_range(ec, r=r_, s1=s1_, s2=s2_)
    if reason:
        return _failure(reason, steps)

    candidates = [s2_] if expected is None else [s2_, ec.n - s2_]
    for s2_candidate in candidates:
        outcome = _crack(r_, s1_, s2_candidate, c1, c2, ec, steps)
        if isinstance(outcome, str):
            return _failure(outcome, steps)
        k, x = outcome
        if _matches(x, expected, ec, steps):
            return _success(x, k, ec, network, steps)

    return _failure(KEY_MISMATCH, steps)


def recover_from_known_nonce(
    r: Integer,
    s: Integer,
    m: Integer,
    k: Integer,
    pub_key: Optional[Key] = None,
    ec: CurveId = secp256k1,
    network: str = "mainnet",
) -> RecoveryResult:
    """Recover the private key from a signature with known nonce.

    If the nonce does not commit to r, i.e. r ≠ (G × k).x mod n,
    the recovered key cannot be the signer one: a warning step is
    recorded, while a mismatching public key, if provided, is a failure.
    """

    ec = curve_from_name(ec)
    r_, s_, k_ = int_from_integer(r), int_from_integer(s), int_from_integer(k)
    c = _digest(m, ec)
    expected = _expected_point(pub_key, ec)

    n, size = ec.n, ec.n_size
    steps = [
        RecoveryStep(
            "Parse Input Values",
            "Convert hex to field elements",
            f"r = {fixed_hex(r_ % n, size)}"
            f", s = {fixed_hex(s_ % n, size)}"
            f", m = {fixed_hex(c, size)}"
            f", k = {fixed_hex(k_ % n, size)}",
        )
    ]

    reason = _out_of_range(ec, r=r_, s=s_, k=k_)
    if reason:
        return _failure(reason, steps)

    K = mult_aff(k_, ec.G, ec)
    if K[0] % n != r_:
        steps.append(
            RecoveryStep(
                "Check Nonce Commitment",
                "r = (G × k).x mod n",
                f"warning: (G × k).x mod n = {fixed_hex(K[0] % n, size)} is not r",
            )
        )

    r_inv = mod_inv(r_, n)
    num = mod_sub(mod_mul(s_, k_, n), c, n)
    x = mod_mul(num, r_inv, n)
    steps.append(
        RecoveryStep(
            "Apply Known Nonce Formula",
            "x = (s × k - m) × r⁻¹ mod n",
            f"s × k - m = {fixed_hex(num, size)}"
            f", r⁻¹ = {fixed_hex(r_inv, size)}",
        )
    )
    if x == 0:
        return _failure("recovered private key is zero", steps)
    steps.append(
        RecoveryStep(
            "Recovered Private Key", "x = (s × k - m) × r⁻¹ mod n", fixed_hex(x, size)
        )
    )

    if not _matches(x, expected, ec, steps):
        return _failure(KEY_MISMATCH, steps)
    return _success(x, k_, ec, network, steps)


# (r, s, message digest)
SignatureRecord = Tuple[Integer, Integer, Octets]


def find_nonce_reuse(
    signatures: Iterable[SignatureRecord],
    pub_key: Optional[Key] = None,
    ec: CurveId = secp256k1,
    network: str = "mainnet",
) -> Dict[int, RecoveryResult]:
    """Group signatures by r and attempt recovery for each reused r.

    For each r shared by two or more signatures, the first pair with
    distinct s values and distinct digests is used
    (if no such pair exists, the first pair is).
    Return a dictionary r → RecoveryResult.
    """

    ec = curve_from_name(ec)
    groups: Dict[int, List[Tuple[int, int, Octets]]] = {}
    for r, s, msg_hash in signatures:
        r_ = int_from_integer(r)
        groups.setdefault(r_, []).append((r_, int_from_integer(s), msg_hash))

    results: Dict[int, RecoveryResult] = {}
    for r, group in groups.items():
        if len(group) < 2:
            continue
        LOGGER.info("nonce reuse: r=%s shared by %d signatures", hex(r), len(group))
        pairs = list(combinations(group, 2))
        first, second = next(
            (
                (a, b)
                for a, b in pairs
                if a[1] != b[1] and _digest(a[2], ec) != _digest(b[2], ec)
            ),
            pairs[0],
        )
        results[r] = recover_from_nonce_reuse(
            r, first[1], second[1], first[2], second[2], pub_key, ec, network
        )
    return results
