#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Strict ASN.1 DER analysis of ECDSA signatures.

The original Bitcoin implementation used OpenSSL to verify
ECDSA signatures in ASN.1 DER representation.
However, OpenSSL does not do strict validation
(e.g. extra padding is ignored) and this changes the transaction
hash value, leading to transaction malleability.
This was fixed by BIP66, activated on block 363,724.
Verification libraries accepting BER-but-not-DER encodings
are still being found (e.g. CVE-2024-42461).

source:
https://github.com/bitcoin/bips/blob/master/bip-0066.mediawiki

BIP66 mandates a strict DER format:

Format:
[0x30] [data-size][0x02][r-size][r][0x02][s-size][s]

* 0x30: header byte to indicate compound structure
* data-size: size descriptor of the following data
* 0x02: header byte indicating an integer
* r-size: size descriptor of the r value that follows
* r: arbitrary-size big-endian r value.
    It must use the shortest possible encoding for
    a positive integers (which means no null bytes at the start,
    except a single one when the next byte has its highest bit set
    to avoid being interpreted as a negative number)
* 0x02: header byte indicating an integer
* s-size: size descriptor of the s value that follows
* s: arbitrary-size big-endian s value. Same rules as for r apply

Size descriptors are single bytes, unless the size is
larger than 127 (e.g. secp521r1 signatures):
then the long form 0x81 [size] is used.

Transaction signatures are followed by one sighash-type byte.

parse_der_strict does not raise on malformed signatures:
every deviation from the strict format is reported as a DerIssue,
as malformed signatures are expected adversarial input.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple, Union

from dataclasses_json import DataClassJsonMixin, config

from sigaudit.alias import Octets
from sigaudit.ecc.curve import CurveId, curve_from_name
from sigaudit.exceptions import SigAuditValueError
from sigaudit.sighash import classify_sighash_type
from sigaudit.utils import bytes_from_octets

_DER_SCALAR_MARKER = 0x02
_DER_SIG_MARKER = 0x30

HIGH_S_WARNING = "High-S value (non-canonical under BIP62)"

LOGGER = logging.getLogger(__name__)


class DerIssueCode(Enum):
    NON_CANONICAL = "NON_CANONICAL"
    EXTRA_PADDING_R = "EXTRA_PADDING_R"
    EXTRA_PADDING_S = "EXTRA_PADDING_S"
    BAD_SEQ_TAG = "BAD_SEQ_TAG"
    BAD_LENGTH = "BAD_LENGTH"
    TRAILING_GARBAGE = "TRAILING_GARBAGE"
    OUT_OF_RANGE_R = "OUT_OF_RANGE_R"
    OUT_OF_RANGE_S = "OUT_OF_RANGE_S"


RANGE_ISSUES = (DerIssueCode.OUT_OF_RANGE_R, DerIssueCode.OUT_OF_RANGE_S)


@dataclass(frozen=True)
class DerIssue(DataClassJsonMixin):
    code: DerIssueCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


def _hex_field() -> Any:
    return field(
        default=b"", metadata=config(encoder=lambda v: v.hex(), decoder=bytes.fromhex)
    )


@dataclass(frozen=True)
class SignatureAnalysis(DataClassJsonMixin):
    """Result of the strict analysis of a DER signature.

    r and s are the big-endian INTEGER contents as found in the encoding
    (i.e. including any padding), empty if not found.
    """

    r: bytes = _hex_field()
    s: bytes = _hex_field()
    # strict DER and low-s
    is_canonical: bool = False
    # r and s in [1, n-1]
    range_valid: bool = False
    is_high_s: bool = False
    sighash_type: Optional[int] = None
    sighash_name: Optional[str] = None
    issues: List[DerIssue] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    curve: str = "secp256k1"

    @property
    def r_int(self) -> int:
        return int.from_bytes(self.r, byteorder="big", signed=False)

    @property
    def s_int(self) -> int:
        return int.from_bytes(self.s, byteorder="big", signed=False)

    @property
    def issue_codes(self) -> List[DerIssueCode]:
        return [issue.code for issue in self.issues]

    @property
    def is_der(self) -> bool:
        "Return True if there are no structural issues (range and high-s aside)."
        return all(issue.code in RANGE_ISSUES for issue in self.issues)

    def has_issue(self, code: DerIssueCode) -> bool:
        return code in self.issue_codes


def _read_length(data: bytes, offset: int) -> Optional[Tuple[int, int, bool]]:
    """Return (length, next offset, minimal encoding) or None if invalid.

    Both the short form and the definite long form are accepted;
    the indefinite form (0x80) is invalid in DER.
    """

    if offset >= len(data):
        return None
    first = data[offset]
    if first < 0x80:
        return first, offset + 1, True

    size = first & 0x7F
    if size == 0 or offset + 1 + size > len(data):
        return None
    len_bytes = data[offset + 1 : offset + 1 + size]
    length = int.from_bytes(len_bytes, byteorder="big", signed=False)
    minimal = length >= 0x80 and len_bytes[0] != 0
    return length, offset + 1 + size, minimal


def _has_sighash_byte(data: bytes) -> bool:
    # the R and S TLVs end one byte before the end,
    # whatever the SEQUENCE length says
    length = _read_length(data, 1)
    if length is None:
        return False
    _, offset, _ = length
    for _ in range(2):
        length = _read_length(data, offset + 1)
        if length is None:
            return False
        size, offset, _ = length
        offset += size
    return offset == len(data) - 1


def _read_integer(
    sig: bytes, offset: int, name: str, issues: List[DerIssue]
) -> Tuple[Optional[bytes], int]:

    if offset >= len(sig):
        issues.append(DerIssue(DerIssueCode.BAD_LENGTH, f"missing {name} INTEGER"))
        return None, offset

    if sig[offset] != _DER_SCALAR_MARKER:
        err_msg = f"{name} INTEGER does not start with 0x02"
        issues.append(DerIssue(DerIssueCode.BAD_LENGTH, err_msg))
    length = _read_length(sig, offset + 1)
    if length is None:
        err_msg = f"invalid {name} length encoding"
        issues.append(DerIssue(DerIssueCode.BAD_LENGTH, err_msg))
        return None, offset

    size, offset, minimal = length
    if not minimal:
        err_msg = f"non-minimal {name} length encoding"
        issues.append(DerIssue(DerIssueCode.NON_CANONICAL, err_msg))
    if offset + size > len(sig):
        err_msg = f"{name} INTEGER truncated: {size} bytes declared"
        err_msg += f", {len(sig) - offset} available"
        issues.append(DerIssue(DerIssueCode.BAD_LENGTH, err_msg))
        return None, offset

    return sig[offset : offset + size], offset + size


def _check_integer(
    i_bytes: bytes, name: str, padding_code: DerIssueCode, issues: List[DerIssue]
) -> None:

    if not i_bytes:
        err_msg = f"zero-length {name} INTEGER"
        issues.append(DerIssue(DerIssueCode.NON_CANONICAL, err_msg))
        return
    if len(i_bytes) > 1 and i_bytes[0] == 0 and i_bytes[1] & 0x80 == 0:
        issues.append(DerIssue(padding_code, f"Unnecessary leading zero in {name}"))
    if i_bytes[0] & 0x80:
        err_msg = f"negative {name} INTEGER: missing 0x00 padding"
        issues.append(DerIssue(DerIssueCode.NON_CANONICAL, err_msg))


def _walk(
    sig: bytes, issues: List[DerIssue]
) -> Tuple[Optional[bytes], Optional[bytes]]:
    "Positional walk of the DER structure, collecting issues."

    if len(sig) < 2:
        err_msg = f"signature too short: {len(sig)} bytes"
        issues.append(DerIssue(DerIssueCode.BAD_LENGTH, err_msg))
        return None, None

    if sig[0] != _DER_SIG_MARKER:
        err_msg = f"Signature does not start with 0x30 (SEQUENCE): 0x{sig[0]:02x}"
        issues.append(DerIssue(DerIssueCode.BAD_SEQ_TAG, err_msg))

    length = _read_length(sig, 1)
    if length is None:
        err_msg = "invalid SEQUENCE length encoding"
        issues.append(DerIssue(DerIssueCode.BAD_LENGTH, err_msg))
        return None, None
    seq_len, offset, minimal = length
    if not minimal:
        err_msg = "non-minimal SEQUENCE length encoding"
        issues.append(DerIssue(DerIssueCode.NON_CANONICAL, err_msg))
    if offset + seq_len != len(sig):
        err_msg = f"SEQUENCE length mismatch: {seq_len} declared"
        err_msg += f", {len(sig) - offset} available"
        issues.append(DerIssue(DerIssueCode.BAD_LENGTH, err_msg))

    r_bytes, offset = _read_integer(sig, offset, "R", issues)
    if r_bytes is None:
        return None, None
    s_bytes, offset = _read_integer(sig, offset, "S", issues)
    if s_bytes is None:
        return r_bytes, None

    if offset != len(sig):
        err_msg = f"Trailing data after S INTEGER: {len(sig) - offset} bytes"
        issues.append(DerIssue(DerIssueCode.TRAILING_GARBAGE, err_msg))

    return r_bytes, s_bytes


def parse_der_strict(
    data: Octets, curve: CurveId = "secp256k1", sighash: Optional[bool] = None
) -> SignatureAnalysis:
    """Return the strict analysis of a DER signature.

    The optional trailing sighash byte is stripped
    if sighash is True, kept if it is False;
    if sighash is None, the byte is stripped only when
    the R and S INTEGERs end exactly one byte before the end,
    so that a wrong SEQUENCE length is still reported as BAD_LENGTH.

    It never raises on malformed signatures;
    a malformed hex-string raises SigAuditValueError.
    """

    data = bytes_from_octets(data)
    ec = curve_from_name(curve)

    if sighash is None:
        sighash = _has_sighash_byte(data)
    sighash_type: Optional[int] = None
    if sighash and data:
        data, sighash_type = data[:-1], data[-1]

    issues: List[DerIssue] = []
    warnings: List[str] = []
    r_found, s_found = _walk(data, issues)
    if r_found is not None:
        _check_integer(r_found, "R", DerIssueCode.EXTRA_PADDING_R, issues)
    if s_found is not None:
        _check_integer(s_found, "S", DerIssueCode.EXTRA_PADDING_S, issues)
    r_bytes = r_found or b""
    s_bytes = s_found or b""
    structurally_valid = not issues

    r = int.from_bytes(r_bytes, byteorder="big", signed=False)
    s = int.from_bytes(s_bytes, byteorder="big", signed=False)
    range_valid = True
    if not 0 < r < ec.n:
        range_valid = False
        issues.append(DerIssue(DerIssueCode.OUT_OF_RANGE_R, "R is not in [1, n-1]"))
    if not 0 < s < ec.n:
        range_valid = False
        issues.append(DerIssue(DerIssueCode.OUT_OF_RANGE_S, "S is not in [1, n-1]"))

    is_high_s = ec.is_high_s(s)
    if is_high_s:
        warnings.append(HIGH_S_WARNING)

    analysis = SignatureAnalysis(
        r=r_bytes,
        s=s_bytes,
        is_canonical=structurally_valid and not is_high_s,
        range_valid=range_valid,
        is_high_s=is_high_s,
        sighash_type=sighash_type,
        sighash_name=None
        if sighash_type is None
        else classify_sighash_type(sighash_type),
        issues=issues,
        warnings=warnings,
        curve=ec.name or repr(ec),
    )
    if issues:
        LOGGER.debug("DER issues: %s", ", ".join(str(i) for i in issues))
    return analysis


@dataclass(frozen=True)
class LooseParseResult(DataClassJsonMixin):
    ok: bool
    r: bytes = _hex_field()
    s: bytes = _hex_field()
    error: Optional[str] = None

    @property
    def r_int(self) -> int:
        return int.from_bytes(self.r, byteorder="big", signed=False)

    @property
    def s_int(self) -> int:
        return int.from_bytes(self.s, byteorder="big", signed=False)


def _loose_integer(data: bytes, start: int, name: str) -> Tuple[bytes, int]:
    tag = data.find(_DER_SCALAR_MARKER, start)
    if tag < 0:
        raise SigAuditValueError(f"No {name} integer tag (0x02) found")
    if tag + 1 >= len(data):
        raise SigAuditValueError(f"No {name} integer length found")
    size = data[tag + 1]
    return data[tag + 2 : tag + 2 + size], tag + 2 + size


def parse_der_loose(data: Octets) -> LooseParseResult:
    """Best-effort extraction of (r, s) from a BER-ish signature.

    The first two 0x02-tagged integers are extracted
    without validating the surrounding structure:
    never use it for security decisions.
    """

    data = bytes_from_octets(data)
    try:
        r_bytes, offset = _loose_integer(data, 2, "R")
        s_bytes, _ = _loose_integer(data, offset, "S")
    except SigAuditValueError as e:
        return LooseParseResult(False, error=str(e))
    return LooseParseResult(True, r_bytes, s_bytes)


def _serialize_length(length: int) -> bytes:
    if length < 0x80:
        return bytes([length])
    size = (length.bit_length() + 7) // 8
    return bytes([0x80 | size]) + length.to_bytes(size, byteorder="big")


def _serialize_scalar(scalar: Union[int, Octets]) -> bytes:
    if isinstance(scalar, int):
        if scalar < 0:
            raise SigAuditValueError(f"negative scalar: {hex(scalar)}")
        scalar_bytes = scalar.to_bytes(max(1, (scalar.bit_length() + 7) // 8), "big")
    else:
        # trim non-minimal leading zeros, keeping one byte for zero
        scalar_bytes = bytes_from_octets(scalar).lstrip(b"\x00") or b"\x00"
    # 'highest bit set' padding
    if scalar_bytes[0] & 0x80:
        scalar_bytes = b"\x00" + scalar_bytes
    header = bytes([_DER_SCALAR_MARKER]) + _serialize_length(len(scalar_bytes))
    return header + scalar_bytes


def encode_der(
    r: Union[int, Octets], s: Union[int, Octets], sighash_type: Optional[int] = None
) -> bytes:
    """Serialize (r, s) to strict ASN.1 DER representation.

    r and s are ints or big-endian byte strings;
    the optional sighash-type byte is appended.
    """

    out = _serialize_scalar(r) + _serialize_scalar(s)
    der = bytes([_DER_SIG_MARKER]) + _serialize_length(len(out)) + out
    if sighash_type is None:
        return der
    if not 0 <= sighash_type <= 0xFF:
        raise SigAuditValueError(f"invalid sighash type: {sighash_type}")
    return der + bytes([sighash_type])


def der_from_analysis(analysis: SignatureAnalysis, sighash: bool = True) -> bytes:
    "Re-encode the (r, s) of a strict analysis, with its sighash byte if any."
    sighash_type = analysis.sighash_type if sighash else None
    return encode_der(analysis.r, analysis.s, sighash_type)
