#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Signature verification capability injected into the conformance runners.

A Verifier is the adapter over the ECDSA verification library under test:
a single verify method taking the curve name and
the message digest, DER signature, and SEC 1 public key hex-strings.

Provided implementations:

* FunctionVerifier: wraps a plain callable
* NativeVerifier: the pure python verifier of this package;
  with strict_der=False it tolerates BER-ish encodings,
  i.e. it is deliberately vulnerable
* Libsecp256k1Verifier: bitcoin-core libsecp256k1,
  through the btclib_libsecp256k1 cffi bindings (optional dependency)
"""

import contextlib
from typing import Callable, Protocol, Union

from sigaudit.ecc import dsa
from sigaudit.ecc.curve import curve_from_name
from sigaudit.ecc.sec_point import bytes_from_point, point_from_octets
from sigaudit.exceptions import SigAuditRuntimeError, SigAuditValueError
from sigaudit.utils import bytes_from_octets

LIBSECP256K1_AVAILABLE = False
with contextlib.suppress(ImportError):
    from btclib_libsecp256k1 import ffi, lib

    LIBSECP256K1_AVAILABLE = True
    # Keeping a single one of these is most efficient.
    ctx = lib.secp256k1_context_create(769)


def is_libsecp256k1_available() -> bool:
    return LIBSECP256K1_AVAILABLE


class Verifier(Protocol):
    def verify(
        self, curve: str, msg_hash_hex: str, der_hex: str, pub_key_hex: str
    ) -> bool:
        ...


VerifyFn = Callable[[str, str, str, str], bool]


class FunctionVerifier:
    "Verifier wrapping a verify(curve, msg_hash, der, pub_key) callable."

    def __init__(self, fn: VerifyFn, name: str = "") -> None:
        self.fn = fn
        self.name = name or getattr(fn, "__name__", "verify")

    def verify(
        self, curve: str, msg_hash_hex: str, der_hex: str, pub_key_hex: str
    ) -> bool:
        return bool(self.fn(curve, msg_hash_hex, der_hex, pub_key_hex))


def as_verifier(verifier: Union[Verifier, VerifyFn]) -> Verifier:
    "Return a Verifier, wrapping plain callables."
    if hasattr(verifier, "verify"):
        return verifier  # type: ignore
    if callable(verifier):
        return FunctionVerifier(verifier)
    raise SigAuditValueError(f"not a verifier: {verifier!r}")


class NativeVerifier:
    """Pure python ECDSA verifier.

    strict_der: reject anything but strict DER (BIP66);
    if False, (r, s) are extracted by the loose parser.
    lower_s: reject high-s signatures (BIP62).
    """

    def __init__(self, strict_der: bool = True, lower_s: bool = False) -> None:
        self.strict_der = strict_der
        self.lower_s = lower_s
        self.name = "sigaudit-native" if strict_der else "sigaudit-native-loose"

    def verify(
        self, curve: str, msg_hash_hex: str, der_hex: str, pub_key_hex: str
    ) -> bool:
        ec = curve_from_name(curve)
        return dsa.verify_(
            msg_hash_hex, pub_key_hex, der_hex, self.lower_s, ec, self.strict_der
        )


class Libsecp256k1Verifier:
    """bitcoin-core libsecp256k1 ECDSA verifier (secp256k1 only).

    libsecp256k1 only parses strict DER
    and only verifies low-s signatures:
    if lower_s is False, signatures are normalized before verification.
    """

    name = "libsecp256k1"

    def __init__(self, lower_s: bool = False) -> None:
        if not LIBSECP256K1_AVAILABLE:
            err_msg = "libsecp256k1 bindings not available: "
            err_msg += "pip install sigaudit[secp256k1]"
            raise SigAuditRuntimeError(err_msg)
        self.lower_s = lower_s

    def verify(
        self, curve: str, msg_hash_hex: str, der_hex: str, pub_key_hex: str
    ) -> bool:
        if curve_from_name(curve).name != "secp256k1":
            raise SigAuditValueError(f"libsecp256k1 does not support {curve}")

        msg_hash = bytes_from_octets(msg_hash_hex)
        # leftmost 32 bytes, as int_from_bits does for 256 bits curves
        msg_hash = msg_hash[:32].rjust(32, b"\x00")
        pub_key = bytes_from_point(point_from_octets(pub_key_hex))
        sig_der = bytes_from_octets(der_hex)

        sig_ptr = ffi.new("secp256k1_ecdsa_signature *")
        if not lib.secp256k1_ecdsa_signature_parse_der(
            ctx, sig_ptr, sig_der, len(sig_der)
        ):
            return False

        if not self.lower_s:  # if lower-s is not to be enforced, then normalize
            lib.secp256k1_ecdsa_signature_normalize(ctx, sig_ptr, sig_ptr)

        pubkey_ptr = ffi.new("secp256k1_pubkey *")
        if not lib.secp256k1_ec_pubkey_parse(ctx, pubkey_ptr, pub_key, len(pub_key)):
            raise SigAuditRuntimeError("secp256k1_ec_pubkey_parse failed")

        return bool(lib.secp256k1_ecdsa_verify(ctx, sig_ptr, msg_hash, pubkey_ptr))
