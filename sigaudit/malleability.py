#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Non-canonical (BER) variants and mutations of a canonical DER signature.

The variants are not valid alternate encodings of the signature:
they test whether a verification library incorrectly accepts
non-canonical or malformed input
(e.g. CVE-2024-42461, BER-but-not-DER acceptance).

The generation is deterministic:
same input, same ordered list of seven variants.
Input that is not strict DER cannot be padded:
the affected variants are then marked as not applied.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from dataclasses_json import DataClassJsonMixin, config

from sigaudit.alias import Octets
from sigaudit.der import (
    _DER_SCALAR_MARKER,
    _DER_SIG_MARKER,
    _serialize_length,
    encode_der,
    parse_der_strict,
)
from sigaudit.ecc.curve import CurveId, curve_from_name, secp256k1
from sigaudit.exceptions import SigAuditValueError
from sigaudit.utils import bytes_from_octets

LOGGER = logging.getLogger(__name__)

TRAILING_GARBAGE = bytes.fromhex("deadbeef")


def _hex_field():
    return field(metadata=config(encoder=lambda v: v.hex(), decoder=bytes.fromhex))


class EncodingKind(Enum):
    CANONICAL = "canonical"
    BER_PADDING_R = "BER-padding-r"
    BER_PADDING_S = "BER-padding-s"
    BER_PADDING_BOTH = "BER-padding-both"
    BER_LENGTH_MISMATCH = "BER-length-mismatch"
    WRONG_SEQ_TAG = "wrong-seq-tag"
    TRAILING_GARBAGE = "trailing-garbage"


@dataclass(frozen=True)
class MalleabilityVariant(DataClassJsonMixin):
    id: str
    encoding_kind: EncodingKind
    der: bytes = _hex_field()
    # False if the variant is an unchanged copy of the input
    applied: bool = True

    @property
    def is_canonical(self) -> bool:
        return self.encoding_kind == EncodingKind.CANONICAL


def _tlv(tag: int, content: bytes, extra_length: int = 0) -> bytes:
    length = _serialize_length(len(content) + extra_length)
    return bytes([tag]) + length + content


def _pad_integers(der: bytes, pad_r: bool, pad_s: bool) -> bytes:
    """Insert a 0x00 in front of the R and/or S INTEGER contents.

    All lengths are re-encoded (short or long form),
    so that the result is a well-formed BER encoding of the same integers.
    Unexpected structures are returned unchanged.
    """

    analysis = parse_der_strict(der, sighash=False)
    if not analysis.is_der:
        return der
    r = b"\x00" + analysis.r if pad_r else analysis.r
    s = b"\x00" + analysis.s if pad_s else analysis.s
    content = _tlv(_DER_SCALAR_MARKER, r) + _tlv(_DER_SCALAR_MARKER, s)
    return _tlv(_DER_SIG_MARKER, content)


def _increment_seq_length(der: bytes) -> bytes:
    if len(der) < 2:
        return der
    # last byte of the short or long form length
    i = 1 if der[1] < 0x80 else 1 + (der[1] & 0x7F)
    if i >= len(der):
        return der
    out = bytearray(der)
    out[i] = (out[i] + 1) & 0xFF
    return bytes(out)


def _wrong_seq_tag(der: bytes) -> bytes:
    if not der:
        return der
    return b"\x31" + der[1:]


def generate_malleability_variants(canonical_der: Octets) -> List[MalleabilityVariant]:
    """Return the seven non-canonical variants of a DER signature.

    In order: the canonical input unchanged, R padded, S padded,
    both padded, SEQUENCE length incremented by one,
    SEQUENCE tag replaced by 0x31 (SET), and
    deadbeef garbage appended.

    A variant identical to the input is marked as not applied,
    as it does not test any BER acceptance.
    """

    der = bytes_from_octets(canonical_der)
    if not parse_der_strict(der, sighash=False).is_der:
        LOGGER.warning("not a strict DER signature: %s", der.hex())

    variants = [MalleabilityVariant("canonical", EncodingKind.CANONICAL, der)]
    for id_, kind, variant_der in (
        ("ber-pad-r", EncodingKind.BER_PADDING_R, _pad_integers(der, True, False)),
        ("ber-pad-s", EncodingKind.BER_PADDING_S, _pad_integers(der, False, True)),
        ("ber-pad-both", EncodingKind.BER_PADDING_BOTH, _pad_integers(der, True, True)),
        ("ber-length", EncodingKind.BER_LENGTH_MISMATCH, _increment_seq_length(der)),
        ("wrong-seq-tag", EncodingKind.WRONG_SEQ_TAG, _wrong_seq_tag(der)),
        ("trailing-garbage", EncodingKind.TRAILING_GARBAGE, der + TRAILING_GARBAGE),
    ):
        applied = variant_der != der
        if not applied:
            LOGGER.warning("%s variant not applied: unchanged input", id_)
        variants.append(MalleabilityVariant(id_, kind, variant_der, applied))
    return variants


def high_s_variant(der: Octets, ec: CurveId = secp256k1) -> bytes:
    """Return the DER signature (r, n - s) of the same message.

    (r, s) and (r, n - s) are both valid signatures:
    this is the ECDSA malleability law that BIP62 low-s rule removes.
    """

    ec = curve_from_name(ec)
    analysis = parse_der_strict(der, ec, sighash=False)
    if not analysis.is_der or not analysis.range_valid:
        issues = ", ".join(str(issue) for issue in analysis.issues)
        raise SigAuditValueError(f"invalid DER signature: {issues}")
    return encode_der(analysis.r_int, ec.n - analysis.s_int)


class DerMutation(Enum):
    HIGH_S = "HIGH_S"
    ZERO_PAD_R = "ZERO_PAD_R"
    ZERO_PAD_S = "ZERO_PAD_S"
    TRAILING_GARBAGE = "TRAILING_GARBAGE"
    WRONG_R_LENGTH = "WRONG_R_LENGTH"
    WRONG_S_LENGTH = "WRONG_S_LENGTH"
    NON_MINIMAL_R = "NON_MINIMAL_R"
    NON_MINIMAL_S = "NON_MINIMAL_S"


@dataclass(frozen=True)
class MutationResult(DataClassJsonMixin):
    mutation: DerMutation
    original: bytes = _hex_field()
    mutated: bytes = _hex_field()
    description: str = ""
    # the mutated bytes are still a parsable (BER) signature encoding
    is_valid: bool = False
    reason: Optional[str] = None


def mutate_der(
    der: Octets,
    mutation: DerMutation,
    ec: CurveId = secp256k1,
    sighash: Optional[bool] = None,
) -> MutationResult:
    """Apply a single mutation to a DER signature.

    The optional trailing sighash byte (see parse_der_strict)
    is carried over to the mutated signature,
    with trailing garbage appended after it.
    Input that is not strict DER is returned unchanged
    with is_valid False.
    """

    original = bytes_from_octets(der)
    ec = curve_from_name(ec)
    analysis = parse_der_strict(original, ec, sighash)
    if not analysis.is_der:
        LOGGER.warning("cannot mutate a non-DER signature: %s", original.hex())
        return MutationResult(
            mutation,
            original,
            original,
            "Failed to parse original DER",
            False,
            "Invalid original DER format",
        )

    suffix = b"" if analysis.sighash_type is None else bytes([analysis.sighash_type])
    r, s = analysis.r, analysis.s
    extra_r = extra_s = 0
    is_valid = True
    reason = None
    if mutation == DerMutation.HIGH_S:
        high_s = (ec.n - analysis.s_int) % ec.n
        mutated = encode_der(r, high_s, analysis.sighash_type)
        form = "low" if analysis.is_high_s else "high"
        return MutationResult(
            mutation, original, mutated, f"Converted S to {form}-S form (n - s)", True
        )
    if mutation == DerMutation.TRAILING_GARBAGE:
        return MutationResult(
            mutation,
            original,
            original + TRAILING_GARBAGE,
            "Added trailing garbage bytes",
            False,
            "Extra trailing bytes invalidate DER",
        )
    if mutation == DerMutation.ZERO_PAD_R:
        r = b"\x00" + r
        description = "Added zero padding to R value"
    elif mutation == DerMutation.ZERO_PAD_S:
        s = b"\x00" + s
        description = "Added zero padding to S value"
    elif mutation == DerMutation.NON_MINIMAL_R:
        # a leading zero is redundant only before a clear high bit
        if r[0] < 0x80:
            r = b"\x00" + r
        description = "Made R non-minimal (unnecessary leading zero)"
    elif mutation == DerMutation.NON_MINIMAL_S:
        if s[0] < 0x80:
            s = b"\x00" + s
        description = "Made S non-minimal (unnecessary leading zero)"
    elif mutation == DerMutation.WRONG_R_LENGTH:
        extra_r = 1
        description = "Incorrect R length field (+1)"
    else:
        extra_s = 1
        description = "Incorrect S length field (+1)"
    if extra_r or extra_s:
        is_valid = False
        reason = "Length field mismatch"

    content = _tlv(_DER_SCALAR_MARKER, r, extra_r)
    content += _tlv(_DER_SCALAR_MARKER, s, extra_s)
    mutated = _tlv(_DER_SIG_MARKER, content, extra_r + extra_s) + suffix
    return MutationResult(mutation, original, mutated, description, is_valid, reason)


def generate_all_mutations(
    der: Octets, ec: CurveId = secp256k1, sighash: Optional[bool] = None
) -> List[MutationResult]:
    "Return the results of all DerMutation members, in definition order."
    return [mutate_der(der, mutation, ec, sighash) for mutation in DerMutation]
