#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"Tests for the `sigaudit.b58` module."

from typing import List, Tuple

import pytest

from sigaudit import b58
from sigaudit.b58 import _b58decode, _b58encode
from sigaudit.ecc.curve import secp256k1
from sigaudit.exceptions import SigAuditValueError
from sigaudit.hashes import hash160

ec = secp256k1


def test_b58_encoding() -> None:
    assert _b58encode(b"") == b""
    assert _b58decode(b"") == b""
    assert _b58encode(b"hello world") == b"StV1DL6CwTryKyV"
    assert _b58decode(b"StV1DL6CwTryKyV") == b"hello world"
    # leading zeros
    assert _b58encode(b"\0\0hello world") == b"11StV1DL6CwTryKyV"
    assert _b58decode(b"11StV1DL6CwTryKyV") == b"\0\0hello world"

    # base58check
    assert b58.b58encode(b"\x00" * 21) == b"1111111111111111111114oLvT2"
    assert b58.b58decode("1111111111111111111114oLvT2") == b"\x00" * 21
    assert b58.b58decode(b"1111111111111111111114oLvT2", 21) == b"\x00" * 21
    assert b58.b58decode(b58.b58encode("deadbeef")) == b"\xde\xad\xbe\xef"


def test_b58_exceptions() -> None:
    for invalid_char in "0OIl":
        with pytest.raises(SigAuditValueError, match="invalid characters"):
            b58.b58decode("111" + invalid_char)

    with pytest.raises(SigAuditValueError, match="not enough bytes for checksum"):
        b58.b58decode(_b58encode(b"\x00\x01\x02"))

    encoded = b58.b58encode(b"hello world")
    raw = _b58decode(encoded)
    wrong = _b58encode(raw[:-1] + bytes([raw[-1] ^ 1]))
    with pytest.raises(SigAuditValueError, match="invalid checksum: "):
        b58.b58decode(wrong)

    with pytest.raises(SigAuditValueError, match="invalid decoded size: "):
        b58.b58decode(encoded, 4)

    with pytest.raises(SigAuditValueError, match="invalid size: "):
        b58.b58encode(b"hello world", 4)


def test_wif_from_prv_key() -> None:
    q = 0x0C28FCA386C7A227600B2FE50B7CAE11EC86D3BF1FBE471BE89827E19D72AA1D
    test_vectors: List[Tuple[str, str, bool]] = [
        ("KwdMAjGmerYanjeui5SHS7JkmpZvVipYvB2LJGU1ZxJwYvP98617", "mainnet", True),
        ("cMzLdeGd5vEqxB8B6VFQoRopQ3sLAAvEzDAoQgvX54xwofSWj1fx", "testnet", True),
        ("5HueCGU8rMjxEXxiPuD5BDku4MkFqeZyd4dZ1jvhTVqvbTLvyTJ", "mainnet", False),
        ("91gGn1HgSap6CbU12F6z3pJri26xzp7Ay1VW6NHCoEayNXwRpu2", "testnet", False),
    ]
    for wif, network, compressed in test_vectors:
        assert wif == b58.wif_from_prv_key(q, network, compressed)
        assert b58.prv_keyinfo_from_wif(wif) == (q, network, compressed)
        assert b58.prv_keyinfo_from_wif(f" {wif} ") == (q, network, compressed)
        assert b58.prv_keyinfo_from_wif(wif.encode()) == (q, network, compressed)

    # regtest shares the testnet prefixes
    wif = b58.wif_from_prv_key(q, "regtest")
    assert wif == test_vectors[1][0]

    for bad_q in (0, ec.n):
        with pytest.raises(SigAuditValueError, match="private key not in 1..n-1: "):
            b58.wif_from_prv_key(bad_q)


def test_prv_keyinfo_from_wif_exceptions() -> None:
    n_bytes = ec.n.to_bytes(32, byteorder="big")
    for payload, err_msg in (
        (b"\x80" + n_bytes, "private key not in 1..n-1: "),
        (b"\x80" + b"\x00" * 32 + b"\x01", "private key not in 1..n-1: "),
        (b"\x80" + b"\x01" * 32 + b"\x02", "invalid compression flag: "),
        (b"\x80" + b"\x01" * 31, "wrong WIF size: "),
        (b"\x00" + b"\x01" * 32, "invalid wif prefix: "),
    ):
        wif = b58.b58encode(payload)
        with pytest.raises(SigAuditValueError, match=err_msg):
            b58.prv_keyinfo_from_wif(wif)


def test_p2pkh() -> None:
    # https://en.bitcoin.it/wiki/Technical_background_of_version_1_Bitcoin_addresses
    q = 0x18E14A7B6A307F426A94F8114701E7C8E774E7F9A47E2C2035DB29A206321725
    pub_key = "0250863AD64A87AE8A2FE83C1AF1A8403CB53F53E486D8511DAD8A04887E5B2352"
    address = "1PMycacnJaSqwwJqjawXBErnLsZ7RkXUAs"
    assert b58.p2pkh(pub_key) == address
    assert b58.p2pkh_from_prv_key(q) == address
    assert b58.p2pkh_from_prv_key(q, compressed=False) == (
        "16UwLL9Risc3QfPqBUvKofHmBQ7wMtjvM"
    )
    assert b58.h160_from_address(address) == ("p2pkh", hash160(pub_key), "mainnet")
    assert b58.h160_from_address(f" {address} ")[1] == hash160(pub_key)

    testnet_address = b58.p2pkh(pub_key, "testnet")
    assert testnet_address[0] in "mn"
    assert b58.h160_from_address(testnet_address)[2] == "testnet"

    with pytest.raises(SigAuditValueError, match="invalid size: "):
        b58.p2pkh(pub_key[:-2])


def test_address_from_h160() -> None:
    h160 = hash160(b"\x51")
    p2sh = b58.address_from_h160("p2sh", h160)
    assert p2sh[0] == "3"
    assert b58.h160_from_address(p2sh) == ("p2sh", h160, "mainnet")

    with pytest.raises(SigAuditValueError, match="invalid script type: "):
        b58.address_from_h160("p2wpkh", h160)
    with pytest.raises(SigAuditValueError, match="invalid size: "):
        b58.address_from_h160("p2pkh", h160[1:])
    with pytest.raises(SigAuditValueError, match="invalid base58 address prefix: "):
        b58.h160_from_address(b58.b58encode(b"\x99" + h160))
