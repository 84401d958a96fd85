#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

from sigaudit.der import parse_der_strict
from sigaudit.ecc.curve import mult, secp256k1 as ec
from sigaudit.ecc.dsa import sign_der_
from sigaudit.ecc.sec_point import bytes_from_point
from sigaudit.hashes import reduce_to_hlen
from sigaudit.recovery import recover_from_nonce_reuse

print("\n*** EC:")
print(ec)

q = 0x18E14A7B6A307F426A94F8114701E7C8E774E7F9A47E2C2035DB29A206321725
Q = mult(q, ec.G, ec)
print("\n*** Keys:")
print("prvkey:   ", hex(q))
print("PubKey:   ", bytes_from_point(Q, ec).hex())

print("\n*** Messages to be signed")
msg1 = "Paolo is afraid of ephemeral random numbers"
msg2 = "and Paolo is right to be afraid"
print(msg1)
print(msg2)
m1 = reduce_to_hlen(msg1.encode())
m2 = reduce_to_hlen(msg2.encode())

print("\n*** Signatures")
# ephemeral key k must be kept secret and never reused !!!!!
k = 0x6F5DB7A9B0E6A2E1C0D9F3A8B7C6D5E4F3A2B1C0D9E8F7A6B5C4D3E2F1A0B9C8
sig1 = parse_der_strict(sign_der_(m1, q, k, lower_s=False), sighash=False)
sig2 = parse_der_strict(sign_der_(m2, q, k, lower_s=False), sighash=False)
print("    r1:", sig1.r.hex())
print("    s1:", sig1.s.hex())
print("    r2:", sig2.r.hex())
print("    s2:", sig2.s.hex())

print("\n*** Same r, private key recovery")
result = recover_from_nonce_reuse(sig1.r_int, sig1.s_int, sig2.s_int, m1, m2, Q)
for step in result.steps:
    print(f"{step.name:22} {step.formula}")
    print(f"{'':22} {step.value}")
assert result.ok
print("\nrecovered prvkey:", hex(result.prv_key))
print("WIF:             ", result.wif)
print("address:         ", result.address)
