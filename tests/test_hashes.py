#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"Tests for the `sigaudit.hashes` module."

import hashlib

import pytest

from sigaudit.exceptions import SigAuditValueError
from sigaudit.hashes import (
    hash160,
    hash256,
    hf_from_name,
    reduce_to_hlen,
    ripemd160,
    sha256,
)


def test_hashes() -> None:
    assert (
        sha256(b"").hex()
        == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )
    assert ripemd160(b"").hex() == "9c1185a5c5e9fc54612808977ee8f548b2258d31"
    # hex-string input
    assert sha256("") == sha256(b"")
    assert hash256(b"abc") == sha256(sha256(b"abc"))
    assert hash160(b"abc") == ripemd160(sha256(b"abc"))

    # https://en.bitcoin.it/wiki/Technical_background_of_version_1_Bitcoin_addresses
    pub_key = "0250863AD64A87AE8A2FE83C1AF1A8403CB53F53E486D8511DAD8A04887E5B2352"
    assert hash160(pub_key).hex() == "f54a5851e9372b87810a8e60cdd2e7cfd80b6e31"


def test_reduce_to_hlen() -> None:
    msg = b"Satoshi Nakamoto"
    assert reduce_to_hlen(msg) == hashlib.sha256(msg).digest()
    assert reduce_to_hlen(msg.hex()) == hashlib.sha256(msg).digest()
    assert reduce_to_hlen(msg, hashlib.sha512) == hashlib.sha512(msg).digest()


def test_hf_from_name() -> None:
    assert hf_from_name("SHA-256") is hashlib.sha256
    assert hf_from_name(" sha-512 ") is hashlib.sha512
    assert hf_from_name("SHA3-256") is hashlib.sha3_256
    for name in ("SHA-1", "SHA-224", "SHA-384", "SHA3-224", "SHA3-384", "SHA3-512"):
        assert hf_from_name(name)().name
    with pytest.raises(SigAuditValueError, match="unknown hash function: "):
        hf_from_name("MD5")
