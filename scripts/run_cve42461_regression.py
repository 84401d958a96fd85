#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""CVE-2024-42461 regression: all available verifiers must reject BER.

The deliberately loose native verifier is expected to be vulnerable.
"""

import logging
import sys

from sigaudit.cve42461 import run_cve42461_suite
from sigaudit.ecc.curve import CURVES, mult
from sigaudit.ecc.dsa import sign_der_
from sigaudit.ecc.sec_point import bytes_from_point
from sigaudit.hashes import reduce_to_hlen
from sigaudit.verifiers import (
    Libsecp256k1Verifier,
    NativeVerifier,
    is_libsecp256k1_available,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s - %(message)s")

q = 0x18E14A7B6A307F426A94F8114701E7C8E774E7F9A47E2C2035DB29A206321725
msg_hash = reduce_to_hlen(b"Paolo is afraid of ephemeral random numbers")

# (verifier, expected to be vulnerable, curves)
verifiers = [
    (NativeVerifier(), False, list(CURVES)),
    (NativeVerifier(strict_der=False), True, list(CURVES)),
]
if is_libsecp256k1_available():
    verifiers.append((Libsecp256k1Verifier(), False, ["secp256k1"]))

failed = 0
for verifier, expected, curves in verifiers:
    for curve in curves:
        ec = CURVES[curve]
        prv_key = q % ec.n
        der = sign_der_(msg_hash, prv_key, ec=ec)
        pub_key = bytes_from_point(mult(prv_key, ec.G, ec), ec)
        report = run_cve42461_suite(verifier, msg_hash, der, pub_key, curve)
        ok = report.accepts_canonical_der and report.vulnerable == expected
        print(
            f"{report.library_name:22} {curve:10} "
            f"vulnerable={report.vulnerable!s:5} {'PASSED' if ok else 'FAILED'}"
        )
        failed += not ok

print(f"\n{failed} failed")
sys.exit(1 if failed else 0)
