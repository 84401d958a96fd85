#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"Tests for the `sigaudit.recovery` module."

import secrets

import pytest

from sigaudit.b58 import wif_from_prv_key
from sigaudit.ecc import dsa
from sigaudit.ecc.curve import CURVES, mult, secp256k1, secp256r1
from sigaudit.ecc.sec_point import bytes_from_point
from sigaudit.exceptions import SigAuditValueError
from sigaudit.hashes import reduce_to_hlen
from sigaudit.recovery import (
    IDENTICAL_S,
    KEY_MISMATCH,
    RecoveryFailure,
    RecoverySuccess,
    find_nonce_reuse,
    key_material,
    recover_from_known_nonce,
    recover_from_nonce_reuse,
)

ec = secp256k1

# https://en.bitcoin.it/wiki/Technical_background_of_version_1_Bitcoin_addresses
q = 0x18E14A7B6A307F426A94F8114701E7C8E774E7F9A47E2C2035DB29A206321725
ADDRESS = "1PMycacnJaSqwwJqjawXBErnLsZ7RkXUAs"
PUB_KEY = "0250863ad64a87ae8a2fe83c1af1a8403cb53f53e486d8511dad8a04887e5b2352"

k = 0x6F5DB7A9B0E6A2E1C0D9F3A8B7C6D5E4F3A2B1C0D9E8F7A6B5C4D3E2F1A0B9C8
m1 = reduce_to_hlen(b"Paolo is afraid of ephemeral random numbers")
m2 = reduce_to_hlen(b"and Paolo is right to be afraid")

STEPS = [
    "Parse Input Values",
    "Calculate Nonce (k)",
    "Recovered Nonce",
    "Calculate Private Key",
    "Recovered Private Key",
    "Derive Public Key",
    "Generate WIF & Address",
]


def test_nonce_reuse() -> None:
    r, s1 = dsa.sign_(m1, q, k, lower_s=False)
    r2, s2 = dsa.sign_(m2, q, k, lower_s=False)
    assert r == r2

    result = recover_from_nonce_reuse(r, s1, s2, m1, m2)
    assert isinstance(result, RecoverySuccess)
    assert result.ok
    assert result.prv_key == q
    assert result.nonce == k
    assert result.pub_key == PUB_KEY
    assert result.pub_key_uncompressed[:66] == "04" + PUB_KEY[2:]
    assert result.address == ADDRESS
    assert result.wif == wif_from_prv_key(q)
    assert [step.name for step in result.steps] == STEPS
    assert result.steps[4].value == f"{q:064x}"
    assert result.steps[2].value == f"{k:064x}"
    # intermediate values are reduced mod n
    c1, c2 = dsa.challenge_(m1), dsa.challenge_(m2)
    dm = (c1 - c2) % ec.n
    assert result.steps[1].value.startswith(f"m₁ - m₂ = {dm:064x}, ")
    num = (s1 * k - c1) % ec.n
    assert result.steps[3].value.startswith(f"s₁ × k - m₁ = {num:064x}, ")

    # signatures can be swapped
    result = recover_from_nonce_reuse(r, s2, s1, m2, m1)
    assert result.ok and result.prv_key == q

    # hex-string inputs
    result = recover_from_nonce_reuse(
        f"{r:064x}", f"{s1:064x}", f"0x{s2:064x}", m1.hex(), m2.hex()
    )
    assert result.ok and result.prv_key == q

    # already reduced digests
    result = recover_from_nonce_reuse(r, s1, s2, c1, c2)
    assert result.ok and result.prv_key == q

    # matching public key
    result = recover_from_nonce_reuse(r, s1, s2, m1, m2, PUB_KEY)
    assert result.ok and result.prv_key == q
    assert [step.name for step in result.steps].count("Check Public Key") == 1


def test_random_keys() -> None:
    for curve in CURVES.values():
        x = 1 + secrets.randbelow(curve.n - 1)
        nonce = 1 + secrets.randbelow(curve.n - 1)
        msg1 = secrets.token_bytes(32)
        msg2 = secrets.token_bytes(32)
        r, s1 = dsa.sign_(msg1, x, nonce, False, curve)
        _, s2 = dsa.sign_(msg2, x, nonce, False, curve)
        result = recover_from_nonce_reuse(r, s1, s2, msg1, msg2, ec=curve)
        assert result.ok
        assert result.prv_key == x
        assert result.nonce == nonce
        Q = mult(x, curve.G, curve)
        assert result.pub_key == bytes_from_point(Q, curve).hex()

        result = recover_from_known_nonce(r, s1, msg1, nonce, Q, curve)
        assert result.ok
        assert result.prv_key == x


def test_low_s_disambiguation() -> None:
    r, s1 = dsa.sign_(m1, q, k, lower_s=False)
    _, s2 = dsa.sign_(m2, q, k, lower_s=False)
    # only the second signature is 'malleated'
    flipped_s2 = ec.n - s2

    result = recover_from_nonce_reuse(r, s1, flipped_s2, m1, m2)
    # a key is recovered, but not the right one
    assert not result.ok or result.prv_key != q

    result = recover_from_nonce_reuse(r, s1, flipped_s2, m1, m2, PUB_KEY)
    assert result.ok
    assert result.prv_key == q
    assert result.nonce == k
    checks = [step.value for step in result.steps if step.name == "Check Public Key"]
    assert checks == ["mismatch", "match"]

    # the public key may be a point
    result = recover_from_nonce_reuse(r, s1, flipped_s2, m1, m2, mult(q))
    assert result.ok and result.prv_key == q

    # wrong public key
    result = recover_from_nonce_reuse(r, s1, s2, m1, m2, mult(q + 1))
    assert isinstance(result, RecoveryFailure)
    assert result.reason == KEY_MISMATCH
    checks = [step.value for step in result.steps if step.name == "Check Public Key"]
    assert checks == ["mismatch", "mismatch"]


def test_nonce_reuse_failures() -> None:
    r, s1 = dsa.sign_(m1, q, k, lower_s=False)
    _, s2 = dsa.sign_(m2, q, k, lower_s=False)

    result = recover_from_nonce_reuse(r, s1, s1, m1, m2)
    assert not result.ok
    assert isinstance(result, RecoveryFailure)
    assert result.reason == IDENTICAL_S
    assert [step.name for step in result.steps] == ["Parse Input Values"]

    # same digest, different s: k = 0
    result = recover_from_nonce_reuse(r, s1, s2, m1, m1)
    assert isinstance(result, RecoveryFailure)
    assert result.reason == "recovered nonce is zero"

    for args, reason in (
        ((0, s1, s2), "r not in [1, n-1]"),
        ((ec.n, s1, s2), "r not in [1, n-1]"),
        ((r, 0, s2), "s1 not in [1, n-1]"),
        ((r, s1, ec.n + 1), "s2 not in [1, n-1]"),
    ):
        result = recover_from_nonce_reuse(*args, m1, m2)
        assert isinstance(result, RecoveryFailure)
        assert result.reason == reason

    # malformed inputs are precondition violations
    with pytest.raises(SigAuditValueError, match="odd-length hex-string: "):
        recover_from_nonce_reuse("abc", s1, s2, m1, m2)
    with pytest.raises(SigAuditValueError, match="unknown curve: "):
        recover_from_nonce_reuse(r, s1, s2, m1, m2, ec="secp256k2")


def test_known_nonce() -> None:
    r, s = dsa.sign_(m1, q, k, lower_s=False)

    result = recover_from_known_nonce(r, s, m1, k)
    assert isinstance(result, RecoverySuccess)
    assert result.prv_key == q
    assert result.nonce == k
    assert result.address == ADDRESS
    assert [step.name for step in result.steps] == [
        "Parse Input Values",
        "Apply Known Nonce Formula",
        "Recovered Private Key",
        "Derive Public Key",
        "Generate WIF & Address",
    ]

    result = recover_from_known_nonce(r, s, m1, k, PUB_KEY)
    assert result.ok and result.prv_key == q

    # low-s normalized signature: the nonce is n - k
    result = recover_from_known_nonce(r, ec.n - s, m1, ec.n - k)
    assert result.ok and result.prv_key == q

    # the nonce does not commit to r
    result = recover_from_known_nonce(r, s, m1, k + 1)
    assert result.ok
    assert result.prv_key != q
    assert result.steps[1].name == "Check Nonce Commitment"
    assert result.steps[1].value.startswith("warning: ")

    result = recover_from_known_nonce(r, s, m1, k + 1, PUB_KEY)
    assert isinstance(result, RecoveryFailure)
    assert result.reason == KEY_MISMATCH

    result = recover_from_known_nonce(r, s, m1, 0)
    assert isinstance(result, RecoveryFailure)
    assert result.reason == "k not in [1, n-1]"


def test_key_material() -> None:
    keys = key_material(q)
    assert keys.pub_key == PUB_KEY
    assert keys.address == ADDRESS
    assert keys.wif == wif_from_prv_key(q)

    q2 = 0x0C28FCA386C7A227600B2FE50B7CAE11EC86D3BF1FBE471BE89827E19D72AA1D
    keys = key_material(q2)
    assert keys.wif == "KwdMAjGmerYanjeui5SHS7JkmpZvVipYvB2LJGU1ZxJwYvP98617"
    keys = key_material(q2, network="testnet")
    assert keys.wif == "cMzLdeGd5vEqxB8B6VFQoRopQ3sLAAvEzDAoQgvX54xwofSWj1fx"

    # no WIF nor address for non-bitcoin curves
    keys = key_material(q, secp256r1)
    assert keys.wif is None
    assert keys.address is None
    Q = mult(q, secp256r1.G, secp256r1)
    assert keys.pub_key == bytes_from_point(Q, secp256r1).hex()

    r, s1 = dsa.sign_(m1, q, k, False, secp256r1)
    _, s2 = dsa.sign_(m2, q, k, False, secp256r1)
    result = recover_from_nonce_reuse(r, s1, s2, m1, m2, ec="secp256r1")
    assert result.ok
    assert result.wif is None
    assert result.steps[-1].value == "no mainnet encoding for secp256r1"

    for bad_q in (0, ec.n):
        with pytest.raises(SigAuditValueError, match="private key not in 1..n-1: "):
            key_material(bad_q)


def test_find_nonce_reuse() -> None:
    r, s1 = dsa.sign_(m1, q, k, lower_s=False)
    _, s2 = dsa.sign_(m2, q, k, lower_s=False)
    m3 = reduce_to_hlen(b"a safe signature")
    r3, s3 = dsa.sign_(m3, q, k + 1, lower_s=False)

    signatures = [(r, s1, m1), (r3, s3, m3), (r, s1, m1), (r, s2, m2)]
    results = find_nonce_reuse(signatures)
    assert list(results) == [r]
    assert results[r].ok
    assert results[r].prv_key == q  # type: ignore

    # hex-string inputs and public key check
    signatures = [(f"{r:064x}", s1, m1.hex()), (r, f"{s2:064x}", m2)]
    results = find_nonce_reuse(signatures, PUB_KEY)
    assert results[r].ok

    # no distinct pair: the failure is reported
    results = find_nonce_reuse([(r, s1, m1), (r, s1, m1)])
    assert isinstance(results[r], RecoveryFailure)
    assert results[r].reason == IDENTICAL_S  # type: ignore

    assert find_nonce_reuse([(r, s1, m1), (r3, s3, m3)]) == {}
    assert find_nonce_reuse([]) == {}


def test_json() -> None:
    r, s1 = dsa.sign_(m1, q, k, lower_s=False)
    _, s2 = dsa.sign_(m2, q, k, lower_s=False)
    result = recover_from_nonce_reuse(r, s1, s2, m1, m2)
    assert isinstance(result, RecoverySuccess)
    dict_ = result.to_dict()
    assert dict_["prv_key"] == hex(q)
    assert dict_["nonce"] == hex(k)
    assert dict_["steps"][0]["name"] == "Parse Input Values"
    assert RecoverySuccess.from_json(result.to_json()) == result

    failure = recover_from_nonce_reuse(r, s1, s1, m1, m2)
    assert isinstance(failure, RecoveryFailure)
    assert RecoveryFailure.from_dict(failure.to_dict()) == failure
