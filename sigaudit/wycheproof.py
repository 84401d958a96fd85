#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Wycheproof-style ECDSA conformance runner.

Project Wycheproof test vectors classify each signature as
valid, invalid, or acceptable
(an edge-case encoding where acceptance is tolerated but not required).

https://github.com/C2SP/wycheproof

A case passes iff the library under test

* accepts a valid signature,
* rejects an invalid one, or
* accepts an acceptable one.

Rejecting an acceptable signature is counted as a mismatch:
this is intentionally stricter than a three-state pass/neutral model,
so that mismatches list all the edge cases where the library differs
from the most permissive behavior.

The library is injected as a Verifier (see sigaudit.verifiers);
verifier failures (exceptions) are caught and counted as rejections.
Loading the json test vector files is the caller responsibility.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, List, Mapping, Optional, Union

from dataclasses_json import DataClassJsonMixin, config

from sigaudit.der import parse_der_strict
from sigaudit.ecc.curve import CURVES, curve_from_name
from sigaudit.ecc.sec_point import bytes_from_point
from sigaudit.exceptions import SigAuditValueError
from sigaudit.hashes import hf_from_name, reduce_to_hlen
from sigaudit.utils import bytes_from_octets
from sigaudit.verifiers import Verifier, VerifyFn, as_verifier

LOGGER = logging.getLogger(__name__)


class Expectation(Enum):
    VALID = "valid"
    INVALID = "invalid"
    ACCEPTABLE = "acceptable"


def _hex_field() -> Any:
    return field(metadata=config(encoder=lambda v: v.hex(), decoder=bytes.fromhex))


@dataclass(frozen=True)
class WycheproofCase(DataClassJsonMixin):
    tc_id: int
    msg_hash: bytes = _hex_field()
    sig: bytes = _hex_field()
    # SEC 1 public key
    pub_key: bytes = _hex_field()
    result: Expectation = Expectation.VALID
    comment: str = ""
    flags: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class WycheproofCaseResult(DataClassJsonMixin):
    tc_id: int
    comment: str
    curve: str
    expected: Expectation
    library_accepts: bool
    # strict DER and r, s in [1, n-1]
    parser_accepts: bool
    passed: bool
    flags: List[str] = field(default_factory=list)
    der_issues: List[str] = field(default_factory=list)
    # verifier exception, if any
    error: Optional[str] = None


@dataclass(frozen=True)
class WycheproofSummary(DataClassJsonMixin):
    library_name: str
    curve: str
    total: int
    passed: int
    failed: int
    mismatches: List[WycheproofCaseResult] = field(default_factory=list)


@dataclass(frozen=True)
class WycheproofRunOptions:
    curve: str = "secp256k1"
    library_name: str = ""
    case_filter: Optional[Callable[[WycheproofCase], bool]] = None
    # verifier calls fan out to a thread pool if larger than one
    max_workers: int = 1
    # cases are processed in batches, progress(done, total) after each one
    batch_size: Optional[int] = None
    progress: Optional[Callable[[int, int], None]] = None

    def __post_init__(self) -> None:
        curve_from_name(self.curve)
        if self.max_workers < 1:
            raise SigAuditValueError(f"invalid max_workers: {self.max_workers}")
        if self.batch_size is not None and self.batch_size < 1:
            raise SigAuditValueError(f"invalid batch_size: {self.batch_size}")


def case_passes(expected: Expectation, library_accepts: bool) -> bool:
    if expected == Expectation.INVALID:
        return not library_accepts
    # both valid and acceptable signatures must be accepted
    return library_accepts


def run_case(
    case: WycheproofCase, verifier: Verifier, curve: str = "secp256k1"
) -> WycheproofCaseResult:
    "Run a single case: local strict DER diagnostic and library verification."

    analysis = parse_der_strict(case.sig, curve, sighash=False)
    msg_hash_hex, pub_key_hex = case.msg_hash.hex(), case.pub_key.hex()
    error = None
    try:
        library_accepts = bool(
            verifier.verify(curve, msg_hash_hex, case.sig.hex(), pub_key_hex)
        )
    except Exception as e:  # pylint: disable=broad-except
        # adapter failures must not abort the suite
        error = f"{type(e).__name__}: {e}"
        LOGGER.warning("tcId %s rejected on verifier failure: %s", case.tc_id, error)
        library_accepts = False

    return WycheproofCaseResult(
        tc_id=case.tc_id,
        comment=case.comment,
        curve=curve,
        expected=case.result,
        library_accepts=library_accepts,
        parser_accepts=analysis.is_der and analysis.range_valid,
        passed=case_passes(case.result, library_accepts),
        flags=list(case.flags),
        der_issues=[issue.message for issue in analysis.issues],
        error=error,
    )


def run_wycheproof_suite(
    cases: Iterable[WycheproofCase],
    verifier: Union[Verifier, VerifyFn],
    options: Optional[WycheproofRunOptions] = None,
) -> WycheproofSummary:
    """Run the cases against the verifier, returning the summary.

    Results do not depend on max_workers or batch_size:
    cases are independent and mismatches are listed in input order.
    """

    options = options or WycheproofRunOptions()
    verifier = as_verifier(verifier)
    library_name = options.library_name or getattr(verifier, "name", "")

    cases = list(cases)
    if options.case_filter is not None:
        cases = [case for case in cases if options.case_filter(case)]
    total = len(cases)
    batch_size = options.batch_size or max(total, 1)
    LOGGER.info(
        "running %d cases on %s against %s", total, options.curve, library_name
    )

    def run(case: WycheproofCase) -> WycheproofCaseResult:
        return run_case(case, verifier, options.curve)  # type: ignore

    results: List[WycheproofCaseResult] = []
    executor = (
        ThreadPoolExecutor(max_workers=options.max_workers)
        if options.max_workers > 1
        else None
    )
    try:
        for start in range(0, total, batch_size):
            batch = cases[start : start + batch_size]
            if executor is None:
                results.extend(run(case) for case in batch)
            else:
                # map preserves the input order
                results.extend(executor.map(run, batch))
            if options.progress is not None:
                options.progress(len(results), total)
    finally:
        if executor is not None:
            executor.shutdown()

    mismatches = [result for result in results if not result.passed]
    for mismatch in mismatches:
        LOGGER.debug(
            "tcId %s mismatch: expected %s, library accepts %s",
            mismatch.tc_id,
            mismatch.expected.value,
            mismatch.library_accepts,
        )
    passed = total - len(mismatches)
    LOGGER.info("%d/%d passed, %d failed", passed, total, len(mismatches))

    return WycheproofSummary(
        library_name=library_name,
        curve=options.curve,
        total=total,
        passed=passed,
        failed=len(mismatches),
        mismatches=mismatches,
    )


def _pub_key_from_group(key: Mapping[str, Any], curve: str) -> bytes:
    if "uncompressed" in key:
        return bytes_from_octets(key["uncompressed"])
    # wx and wy are signed big-endian integers: strip and re-encode
    ec = curve_from_name(curve)
    Q = int(key["wx"], 16), int(key["wy"], 16)
    return bytes_from_point(Q, ec, compressed=False)


def cases_from_wycheproof_json(
    data: Mapping[str, Any], curve: Optional[str] = None
) -> List[WycheproofCase]:
    """Return the cases of an already decoded Wycheproof ECDSA test file.

    Each msg is hashed with the group 'sha' hash function.
    If curve is provided, groups on other curves are skipped;
    groups on curves not in the parameter table are always skipped.
    Both the 'key' and the newer 'publicKey' group fields are supported.
    """

    cases: List[WycheproofCase] = []
    for group in data.get("testGroups", []):
        key = group.get("publicKey") or group.get("key") or {}
        group_curve = key.get("curve", curve or "secp256k1")
        if (curve is not None and group_curve != curve) or group_curve not in CURVES:
            LOGGER.debug("skipping test group on %s", group_curve)
            continue
        pub_key = _pub_key_from_group(key, group_curve)
        hf = hf_from_name(group.get("sha", "SHA-256"))
        for test in group.get("tests", []):
            cases.append(
                WycheproofCase(
                    tc_id=test["tcId"],
                    msg_hash=reduce_to_hlen(test.get("msg", ""), hf),
                    sig=bytes_from_octets(test.get("sig", "")),
                    pub_key=pub_key,
                    result=Expectation(test["result"]),
                    comment=test.get("comment", ""),
                    flags=list(test.get("flags", [])),
                )
            )
    return cases
