#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"Tests for the `sigaudit.verifiers` module."

import pytest

from sigaudit.ecc import dsa
from sigaudit.ecc.curve import mult, secp256r1
from sigaudit.ecc.sec_point import bytes_from_point
from sigaudit.exceptions import SigAuditRuntimeError, SigAuditValueError
from sigaudit.hashes import reduce_to_hlen
from sigaudit.malleability import generate_malleability_variants, high_s_variant
from sigaudit.verifiers import (
    FunctionVerifier,
    Libsecp256k1Verifier,
    NativeVerifier,
    as_verifier,
    is_libsecp256k1_available,
)

q = 0x18E14A7B6A307F426A94F8114701E7C8E774E7F9A47E2C2035DB29A206321725
msg_hash = reduce_to_hlen(b"Satoshi Nakamoto")
der = dsa.sign_der_(msg_hash, q)
pub_key = bytes_from_point(mult(q))


def accept_all(curve: str, msg_hash_hex: str, der_hex: str, pub_key_hex: str) -> bool:
    return True


def test_function_verifier() -> None:
    calls = []

    def verify(curve: str, msg_hash_hex: str, der_hex: str, pub_key_hex: str) -> int:
        calls.append((curve, msg_hash_hex, der_hex, pub_key_hex))
        return 1

    verifier = FunctionVerifier(verify)
    assert verifier.name == "verify"
    assert verifier.verify("secp256k1", "00", "30", "02") is True
    assert calls == [("secp256k1", "00", "30", "02")]

    assert FunctionVerifier(verify, "my-lib").name == "my-lib"
    assert FunctionVerifier(lambda *args: False).name == "<lambda>"


def test_as_verifier() -> None:
    verifier = as_verifier(accept_all)
    assert isinstance(verifier, FunctionVerifier)
    assert verifier.name == "accept_all"

    native = NativeVerifier()
    assert as_verifier(native) is native

    for not_a_verifier in (42, "verify", None):
        with pytest.raises(SigAuditValueError, match="not a verifier: "):
            as_verifier(not_a_verifier)  # type: ignore


def test_native_verifier() -> None:
    verifier = NativeVerifier()
    assert verifier.name == "sigaudit-native"
    assert verifier.verify("secp256k1", msg_hash.hex(), der.hex(), pub_key.hex())
    assert not verifier.verify("secp256k1", "00" * 32, der.hex(), pub_key.hex())
    # garbage never raises
    assert not verifier.verify("secp256k1", msg_hash.hex(), "zz", pub_key.hex())
    assert not verifier.verify("secp256k1", msg_hash.hex(), der.hex(), "02")
    with pytest.raises(SigAuditValueError, match="unknown curve: "):
        verifier.verify("secp256k2", msg_hash.hex(), der.hex(), pub_key.hex())

    # high-s is accepted unless lower_s is enforced
    high_s_der = high_s_variant(der).hex()
    assert verifier.verify("secp256k1", msg_hash.hex(), high_s_der, pub_key.hex())
    verifier = NativeVerifier(lower_s=True)
    assert not verifier.verify("secp256k1", msg_hash.hex(), high_s_der, pub_key.hex())

    ec = secp256r1
    der_r1 = dsa.sign_der_(msg_hash, q, ec=ec)
    pub_key_r1 = bytes_from_point(mult(q, ec.G, ec), ec)
    verifier = NativeVerifier()
    assert verifier.verify("secp256r1", msg_hash.hex(), der_r1.hex(), pub_key_r1.hex())
    assert not verifier.verify("secp256k1", msg_hash.hex(), der_r1.hex(), pub_key.hex())


def test_native_verifier_ber() -> None:
    strict = NativeVerifier()
    loose = NativeVerifier(strict_der=False)
    assert loose.name == "sigaudit-native-loose"
    for variant in generate_malleability_variants(der):
        args = ("secp256k1", msg_hash.hex(), variant.der.hex(), pub_key.hex())
        assert strict.verify(*args) == variant.is_canonical, variant.id
        assert loose.verify(*args), variant.id


def test_libsecp256k1_verifier() -> None:
    if not is_libsecp256k1_available():
        with pytest.raises(SigAuditRuntimeError, match="bindings not available: "):
            Libsecp256k1Verifier()
        pytest.skip("libsecp256k1 bindings not available")

    verifier = Libsecp256k1Verifier()
    assert verifier.name == "libsecp256k1"
    assert verifier.verify("secp256k1", msg_hash.hex(), der.hex(), pub_key.hex())
    assert not verifier.verify("secp256k1", "00" * 32, der.hex(), pub_key.hex())
    for variant in generate_malleability_variants(der):
        args = ("secp256k1", msg_hash.hex(), variant.der.hex(), pub_key.hex())
        assert verifier.verify(*args) == variant.is_canonical, variant.id

    # high-s is normalized unless lower_s is enforced
    high_s_der = high_s_variant(der).hex()
    assert verifier.verify("secp256k1", msg_hash.hex(), high_s_der, pub_key.hex())
    verifier = Libsecp256k1Verifier(lower_s=True)
    assert not verifier.verify("secp256k1", msg_hash.hex(), high_s_der, pub_key.hex())

    with pytest.raises(SigAuditValueError, match="libsecp256k1 does not support "):
        verifier.verify("secp256r1", msg_hash.hex(), der.hex(), pub_key.hex())


def test_coincurve_adapter() -> None:
    coincurve = pytest.importorskip("coincurve")

    def verify(curve: str, msg_hash_hex: str, der_hex: str, pub_key_hex: str) -> bool:
        key = coincurve.PublicKey(bytes.fromhex(pub_key_hex))
        return key.verify(bytes.fromhex(der_hex), bytes.fromhex(msg_hash_hex), None)

    verifier = as_verifier(verify)
    assert verifier.verify("secp256k1", msg_hash.hex(), der.hex(), pub_key.hex())
    # BER is not parsed by coincurve
    variant = generate_malleability_variants(der)[1]
    with pytest.raises(ValueError):
        verifier.verify("secp256k1", msg_hash.hex(), variant.der.hex(), pub_key.hex())
