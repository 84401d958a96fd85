#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Run Wycheproof ECDSA test vector files as a regression test.

e.g.

    python scripts/run_wycheproof.py ecdsa_secp256k1_sha256_test.json \\
        --verifier native --workers 4

Test vectors: https://github.com/C2SP/wycheproof/tree/master/testvectors_v1
"""

import argparse
import json
import logging
import sys

from sigaudit.verifiers import (
    Libsecp256k1Verifier,
    NativeVerifier,
    is_libsecp256k1_available,
)
from sigaudit.wycheproof import (
    WycheproofRunOptions,
    cases_from_wycheproof_json,
    run_wycheproof_suite,
)

LOGGER = logging.getLogger("run_wycheproof")


def _verifier(name: str):
    if name == "native":
        return NativeVerifier()
    if name == "native-loose":
        return NativeVerifier(strict_der=False)
    return Libsecp256k1Verifier()


def main() -> int:
    parser = argparse.ArgumentParser(description="Wycheproof ECDSA regression")
    parser.add_argument("files", nargs="+", help="Wycheproof ECDSA json files")
    parser.add_argument("--curve", default="secp256k1", help="curve name")
    verifiers = ["native", "native-loose"]
    if is_libsecp256k1_available():
        verifiers.append("libsecp256k1")
    parser.add_argument("--verifier", choices=verifiers, default="native")
    parser.add_argument("--workers", type=int, default=1, help="thread pool size")
    parser.add_argument("--batch-size", type=int, default=None)
    parser.add_argument("--verbose", action="store_true", help="list mismatches")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    verifier = _verifier(args.verifier)
    options = WycheproofRunOptions(
        curve=args.curve,
        max_workers=args.workers,
        batch_size=args.batch_size,
        progress=lambda done, total: LOGGER.debug("%d/%d", done, total),
    )

    total_passed = total_failed = 0
    for filename in args.files:
        with open(filename, "r", encoding="utf-8") as file_:
            data = json.load(file_)
        cases = cases_from_wycheproof_json(data, args.curve)
        summary = run_wycheproof_suite(cases, verifier, options)
        print(f"{filename}: {summary.passed}/{summary.total} passed")
        for mismatch in summary.mismatches:
            print(
                f"  tcId {mismatch.tc_id:4} expected {mismatch.expected.value:10} "
                f"accepted {mismatch.library_accepts!s:5} {mismatch.comment}"
            )
        total_passed += summary.passed
        total_failed += summary.failed

    print(f"\nTotal: {total_passed} passed, {total_failed} failed")
    return 1 if total_failed else 0


if __name__ == "__main__":
    sys.exit(main())
