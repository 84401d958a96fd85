#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Statistical heuristics on the r values of a set of ECDSA signatures.

r = x(k·G) mod n is the only public trace of the nonce k:
these checks flag suspicious r distributions
(small values, close values, shared leading bits,
skewed bit counts, repetitive hex digits)
that may reveal a weak nonce generator.
They are heuristics, not proofs:
a uniform k can yield such r values by chance,
and a biased k usually yields uniform-looking r values.
Nonce reuse itself is handled by the recovery module.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Optional, Type

from dataclasses_json import DataClassJsonMixin, config

from sigaudit.alias import Octets
from sigaudit.der import parse_der_strict
from sigaudit.ecc.curve import CurveId, curve_from_name, secp256k1
from sigaudit.exceptions import SigAuditValueError
from sigaudit.sighash import SINGLE

LOGGER = logging.getLogger(__name__)

BIASED_NONCE = "biased_nonce"
SEQUENTIAL_NONCE = "sequential_nonce"
SIGHASH_SINGLE_USAGE = "sighash_single"

# r values closer than this are considered sequential
SEQUENTIAL_DISTANCE = 1000
# shared leading bits above this threshold flag a lattice-exploitable bias
PREFIX_BITS_THRESHOLD = 8
REPETITIVE_HEX = ("00000", "11111", "fffff")

REPEATED_R = "Repeated R values detected"
UNUSUAL_BIT_DISTRIBUTION = "Unusual bit distribution in nonces"
REPETITIVE_HEX_PATTERNS = "Repetitive hex patterns detected"

NO_SIGNATURES = "No signatures to analyze"
CRITICAL = "Critical: Use RFC 6979 deterministic nonce generation"
WARNING = "Warning: Improve random number generation quality"
GOOD = "Good: Nonce generation appears secure"


def _int_field() -> Any:
    return field(metadata=config(encoder=hex, decoder=lambda v: int(v, 16)))


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class SignatureSample(DataClassJsonMixin):
    r: int = _int_field()
    s: int = _int_field()
    sighash_type: Optional[int] = None

    @classmethod
    def from_der(
        cls: Type["SignatureSample"],
        der: Octets,
        ec: CurveId = secp256k1,
        sighash: Optional[bool] = None,
    ) -> "SignatureSample":
        "Return the sample of a DER signature, with its sighash byte if any."

        analysis = parse_der_strict(der, ec, sighash)
        if not analysis.is_der:
            issues = ", ".join(str(issue) for issue in analysis.issues)
            raise SigAuditValueError(f"invalid DER signature: {issues}")
        return cls(analysis.r_int, analysis.s_int, analysis.sighash_type)


@dataclass(frozen=True)
class WeakPattern(DataClassJsonMixin):
    pattern_type: str
    description: str
    severity: Severity
    signatures: List[SignatureSample] = field(default_factory=list)


@dataclass(frozen=True)
class EntropyReport(DataClassJsonMixin):
    # 100 is best, 0 worst
    score: int
    patterns: List[str] = field(default_factory=list)
    recommendation: str = ""


@dataclass(frozen=True)
class LatticeReport(DataClassJsonMixin):
    is_vulnerable: bool
    # percentage
    confidence: int
    method: str
    # leading bits shared by all r values
    common_prefix_bits: int = 0


def analyze_signature_patterns(
    signatures: Iterable[SignatureSample], ec: CurveId = secp256k1
) -> List[WeakPattern]:
    """Return the weak patterns found in a set of signatures.

    In order, if found:

    - biased_nonce (high): r < n/4
    - sequential_nonce (critical): the first two sorted distinct r values
      closer than SEQUENTIAL_DISTANCE
    - sighash_single (medium): SIGHASH_SINGLE signatures,
      ANYONECANPAY or not
    """

    ec = curve_from_name(ec)
    signatures = list(signatures)
    patterns: List[WeakPattern] = []

    biased = [sig for sig in signatures if sig.r < ec.n // 4]
    if biased:
        patterns.append(
            WeakPattern(
                BIASED_NONCE,
                "Signatures with unusually small R values detected, "
                "indicating potential nonce bias",
                Severity.HIGH,
                biased,
            )
        )

    r_values = sorted({sig.r for sig in signatures})
    for r_prev, r_next in zip(r_values, r_values[1:]):
        if r_next - r_prev < SEQUENTIAL_DISTANCE:
            close = [sig for sig in signatures if sig.r in (r_prev, r_next)]
            patterns.append(
                WeakPattern(
                    SEQUENTIAL_NONCE,
                    "Potentially sequential or predictable nonces detected",
                    Severity.CRITICAL,
                    close,
                )
            )
            break

    single = [
        sig
        for sig in signatures
        if sig.sighash_type is not None and sig.sighash_type & 0x1F == SINGLE
    ]
    if single:
        patterns.append(
            WeakPattern(
                SIGHASH_SINGLE_USAGE,
                "SIGHASH_SINGLE signatures detected: "
                "potential for signature malleability",
                Severity.MEDIUM,
                single,
            )
        )

    for pattern in patterns:
        LOGGER.info(
            "%s: %d signatures", pattern.pattern_type, len(pattern.signatures)
        )
    return patterns


def analyze_nonce_entropy(
    signatures: Iterable[SignatureSample], ec: CurveId = secp256k1
) -> EntropyReport:
    """Return the nonce entropy score of a set of signatures.

    The score starts at 100 and is decreased by:

    - 50 if an r value is repeated
    - ⌊30·d⌋ if the relative deviation d of the average r Hamming weight
      from nlen/2 exceeds 0.2
    - 20 if any zero-padded hex r contains five repeated 0, 1, or f digits

    It is floored at 0; below 70 is critical, below 90 a warning.
    """

    ec = curve_from_name(ec)
    r_values = [sig.r for sig in signatures]
    if not r_values:
        return EntropyReport(0, [], NO_SIGNATURES)

    patterns: List[str] = []
    score = 100

    if len(set(r_values)) < len(r_values):
        patterns.append(REPEATED_R)
        score -= 50

    avg_weight = sum(bin(r).count("1") for r in r_values) / len(r_values)
    expected_weight = ec.nlen / 2
    deviation = abs(avg_weight - expected_weight) / expected_weight
    if deviation > 0.2:
        patterns.append(UNUSUAL_BIT_DISTRIBUTION)
        score -= int(deviation * 30)

    hex_values = [f"{r:0{2 * ec.n_size}x}" for r in r_values]
    if any(p in r_hex for r_hex in hex_values for p in REPETITIVE_HEX):
        patterns.append(REPETITIVE_HEX_PATTERNS)
        score -= 20

    score = max(0, score)
    if score < 70:
        recommendation = CRITICAL
    elif score < 90:
        recommendation = WARNING
    else:
        recommendation = GOOD
    LOGGER.debug("nonce entropy score %d: %s", score, patterns)
    return EntropyReport(score, patterns, recommendation)


def lattice_analysis(
    signatures: Iterable[SignatureSample], ec: CurveId = secp256k1
) -> LatticeReport:
    """Count the leading bits shared by all r values.

    This is the precondition check of a hidden number problem
    lattice attack, not the lattice reduction itself:
    more than PREFIX_BITS_THRESHOLD shared bits
    flag the set as vulnerable, with 10% confidence per bit
    (at most 95%).
    Leading bits are counted from bit nlen-1 of r.
    """

    ec = curve_from_name(ec)
    r_values = [sig.r for sig in signatures]
    if len(r_values) < 2:
        return LatticeReport(False, 0, "insufficient_data")

    # leading bits where r values differ from the first one
    diff = 0
    for r in r_values[1:]:
        diff |= (r_values[0] ^ r) & ((1 << ec.nlen) - 1)
    common_prefix_bits = ec.nlen - diff.bit_length()

    if common_prefix_bits > PREFIX_BITS_THRESHOLD:
        LOGGER.warning("r values share %d leading bits", common_prefix_bits)
        confidence = min(95, common_prefix_bits * 10)
        return LatticeReport(
            True, confidence, "lattice_bias_detection", common_prefix_bits
        )
    return LatticeReport(False, 0, "lattice_analysis_clean", common_prefix_bits)
