#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""CVE-2024-42461 regression: BER-encoded ECDSA signature acceptance.

https://nvd.nist.gov/vuln/detail/CVE-2024-42461

A library is vulnerable if it verifies any non-canonical (BER)
variant of a valid DER signature:
only the canonical encoding should verify.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from dataclasses_json import DataClassJsonMixin, config

from sigaudit.alias import Octets
from sigaudit.ecc.curve import curve_from_name
from sigaudit.malleability import EncodingKind, generate_malleability_variants
from sigaudit.utils import bytes_from_octets
from sigaudit.verifiers import Verifier, VerifyFn, as_verifier

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Cve42461Case(DataClassJsonMixin):
    id: str
    encoding_kind: EncodingKind
    der: bytes = field(
        metadata=config(encoder=lambda v: v.hex(), decoder=bytes.fromhex)
    )
    should_verify: bool = False
    did_verify: bool = False
    # verifier exception, if any
    error: Optional[str] = None
    # False if the variant is an unchanged copy of the canonical input
    applied: bool = True


@dataclass(frozen=True)
class Cve42461Report(DataClassJsonMixin):
    library_name: str
    curve: str
    accepts_canonical_der: bool
    accepts_ber_variants: bool
    vulnerable: bool
    test_cases: List[Cve42461Case] = field(default_factory=list)


def run_cve42461_suite(
    verifier: Union[Verifier, VerifyFn],
    msg_hash: Octets,
    canonical_der: Octets,
    pub_key: Octets,
    curve: str = "secp256k1",
    library_name: str = "",
) -> Cve42461Report:
    """Verify all malleability variants of a valid DER signature.

    The (msg_hash, canonical_der, pub_key) triple must be a valid signature,
    otherwise accepts_canonical_der is False and the report is meaningless
    as a regression signal.
    Verifier exceptions count as rejections.
    """

    curve = curve_from_name(curve).name or curve
    verifier = as_verifier(verifier)
    library_name = library_name or getattr(verifier, "name", "")
    msg_hash_hex = bytes_from_octets(msg_hash).hex()
    pub_key_hex = bytes_from_octets(pub_key).hex()

    cases: List[Cve42461Case] = []
    for variant in generate_malleability_variants(canonical_der):
        error = None
        try:
            did_verify = bool(
                verifier.verify(curve, msg_hash_hex, variant.der.hex(), pub_key_hex)
            )
        except Exception as e:  # pylint: disable=broad-except
            error = f"{type(e).__name__}: {e}"
            LOGGER.warning("%s rejected on verifier failure: %s", variant.id, error)
            did_verify = False
        cases.append(
            Cve42461Case(
                variant.id,
                variant.encoding_kind,
                variant.der,
                variant.is_canonical,
                did_verify,
                error,
                variant.applied,
            )
        )

    accepts_canonical = any(case.did_verify for case in cases if case.should_verify)
    # an unchanged copy of the input tests nothing
    ber_cases = [c for c in cases if not c.should_verify and c.applied]
    accepts_ber = any(case.did_verify for case in ber_cases)
    if not accepts_canonical:
        LOGGER.warning("%s rejects the canonical DER signature", library_name)
    if accepts_ber:
        accepted = ", ".join(c.id for c in ber_cases if c.did_verify)
        LOGGER.warning("%s accepts BER variants: %s", library_name, accepted)
    else:
        LOGGER.info("%s rejects all BER variants", library_name)

    return Cve42461Report(
        library_name=library_name,
        curve=curve,
        accepts_canonical_der=accepts_canonical,
        accepts_ber_variants=accepts_ber,
        vulnerable=accepts_ber,
        test_cases=cases,
    )
