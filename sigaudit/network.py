#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Network constants used for key material derivation.

The WIF and base58 address version prefixes of each network
are loaded from the json files in the _data folder.
"""

import json
from dataclasses import dataclass
from os import path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar

from sigaudit.alias import Octets
from sigaudit.ecc.curve import Curve, curve_from_name
from sigaudit.exceptions import SigAuditValueError
from sigaudit.utils import bytes_from_octets

_KEY_SIZE: List[Tuple[str, int]] = [
    ("wif", 1),
    ("p2pkh", 1),
    ("p2sh", 1),
]

_Network = TypeVar("_Network", bound="Network")


@dataclass(frozen=True)
class Network:
    curve: Curve

    # base58 wif starts with 'K' or 'L' if compressed else '5'
    wif: bytes

    # base58 address starts with '1'
    p2pkh: bytes
    # base58 address starts with '3'
    p2sh: bytes

    def __init__(
        self,
        curve: Curve,
        wif: Octets,
        p2pkh: Octets,
        p2sh: Octets,
        check_validity: bool = True,
    ) -> None:

        object.__setattr__(self, "curve", curve)
        object.__setattr__(self, "wif", bytes_from_octets(wif))
        object.__setattr__(self, "p2pkh", bytes_from_octets(p2pkh))
        object.__setattr__(self, "p2sh", bytes_from_octets(p2sh))

        if check_validity:
            self.assert_valid()

    def to_dict(self, check_validity: bool = True) -> Dict[str, Optional[str]]:

        if check_validity:
            self.assert_valid()

        return {
            "curve": self.curve.name,
            "wif": self.wif.hex(),
            "p2pkh": self.p2pkh.hex(),
            "p2sh": self.p2sh.hex(),
        }

    @classmethod
    def from_dict(
        cls: Type[_Network], dict_: Mapping[str, Any], check_validity: bool = True
    ) -> _Network:

        return cls(
            curve_from_name(dict_["curve"]),
            dict_["wif"],
            dict_["p2pkh"],
            dict_["p2sh"],
            check_validity,
        )

    def assert_valid(self) -> None:

        if not isinstance(self.curve, Curve):
            raise SigAuditValueError(f"invalid curve: {self.curve!r}")

        for key, size in _KEY_SIZE:
            value = bytes(getattr(self, key))
            if len(value) != size:
                err_msg = f"invalid {key} length: "
                err_msg += f"{len(value)} bytes"
                err_msg += f" instead of {size}"
                raise SigAuditValueError(err_msg)


NETWORKS: Dict[str, Network] = {}
datadir = path.join(path.dirname(__file__), "_data")
for net in ("mainnet", "testnet", "regtest"):
    filename = path.join(datadir, net + ".json")
    with open(filename, "r", encoding="ascii") as f:
        NETWORKS[net] = Network.from_dict(json.load(f))


def network_from_name(network: str) -> Network:
    try:
        return NETWORKS[network.strip().lower()]
    except KeyError as e:
        err_msg = f"unknown network: '{network}'"
        err_msg += f", available networks are {', '.join(NETWORKS)}"
        raise SigAuditValueError(err_msg) from e


def network_from_key_value(key: str, prefix: bytes) -> Optional[str]:
    """Return network string from (key, value) pair.

    Warning: when used on 'regtest' it returns 'testnet',
    which is not a problem as long as it is used for WIF/address
    because the two networks share the same prefixes.
    """
    for network, value in NETWORKS.items():
        if getattr(value, key) == prefix:
            return network
    return None
