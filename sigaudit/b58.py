#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Base58Check encoding, WIF private keys, and base58 addresses.

Base58 omits the similar-looking characters
0 (zero), O (capital o), I (capital i), and l (lower case L);
Base58Check appends hash256(v)[:4] as checksum before encoding.

A recovered private key is exported as WIF:
version prefix + key bytes + optional 0x01 compression flag,
then Base58Check.
Its public key is exported as p2pkh address:
version prefix + hash160(SEC 1 public key), then Base58Check.
"""

from typing import Optional, Tuple, Union

from sigaudit.alias import Octets, Point
from sigaudit.ecc.curve import mult
from sigaudit.ecc.sec_point import bytes_from_point
from sigaudit.exceptions import SigAuditValueError
from sigaudit.hashes import hash160, hash256
from sigaudit.network import network_from_key_value, network_from_name
from sigaudit.utils import bytes_from_octets

_ALPHABET = b"123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
__BASE = len(_ALPHABET)


def _b58encode(v: bytes) -> bytes:

    # leading-0s become base58 leading-1s
    n_pad = len(v)
    v = v.lstrip(b"\0")
    n_pad -= len(v)

    i = int.from_bytes(v, byteorder="big", signed=False)
    result = b""
    while i:
        i, idx = divmod(i, __BASE)
        result = _ALPHABET[idx : idx + 1] + result

    return _ALPHABET[:1] * n_pad + result


def _b58decode(v: bytes) -> bytes:

    if any(x not in _ALPHABET for x in v):
        raise SigAuditValueError("Base58 string contains invalid characters")

    # base58 leading-1s become leading-0s
    n_pad = len(v)
    v = v.lstrip(_ALPHABET[:1])
    n_pad -= len(v)

    i = 0
    for char in v:
        i = i * __BASE + _ALPHABET.index(char)
    nbytes = (i.bit_length() + 7) // 8
    return b"\0" * n_pad + i.to_bytes(nbytes, byteorder="big", signed=False)


def b58encode(v: Octets, in_size: Optional[int] = None) -> bytes:
    """Encode a bytes-like object using Base58Check."""

    v = bytes_from_octets(v, in_size)
    h256 = hash256(v)
    return _b58encode(v + h256[:4])


def b58decode(v: Union[bytes, str], out_size: Optional[int] = None) -> bytes:
    """Decode a Base58Check encoded bytes-like object or ASCII string.

    Optionally, it also ensures required output size.
    """

    if isinstance(v, str):
        v = v.encode("ascii")

    result = _b58decode(v)
    if len(result) < 4:
        err_msg = "not enough bytes for checksum, "
        err_msg += f"invalid base58 decoded size: {len(result)}"
        raise SigAuditValueError(err_msg)

    result, checksum = result[:-4], result[-4:]
    h256 = hash256(result)
    if checksum != h256[:4]:
        err_msg = f"invalid checksum: 0x{checksum.hex()} instead of 0x{h256[:4].hex()}"
        raise SigAuditValueError(err_msg)

    if out_size is None or len(result) == out_size:
        return result

    err_msg = "valid checksum, invalid decoded size: "
    err_msg += f"{len(result)} bytes instead of {out_size}"
    raise SigAuditValueError(err_msg)


def wif_from_prv_key(
    prv_key: int, network: str = "mainnet", compressed: bool = True
) -> str:
    "Return the WIF encoding of a private key."

    ec = network_from_name(network).curve
    if not 0 < prv_key < ec.n:
        raise SigAuditValueError(f"private key not in 1..n-1: {hex(prv_key)}")

    payload = b"".join(
        [
            network_from_name(network).wif,
            prv_key.to_bytes(ec.n_size, byteorder="big", signed=False),
            b"\x01" if compressed else b"",
        ]
    )
    return b58encode(payload).decode("ascii")


def prv_keyinfo_from_wif(wif: Union[bytes, str]) -> Tuple[int, str, bool]:
    "Return (private key, network, compressed) tuple from a WIF."

    if isinstance(wif, str):
        wif = wif.strip()
    payload = b58decode(wif)

    network = network_from_key_value("wif", payload[:1])
    if network is None:
        raise SigAuditValueError(f"invalid wif prefix: 0x{payload[:1].hex()}")

    ec = network_from_name(network).curve
    if len(payload) == ec.n_size + 2:  # compressed WIF
        if payload[-1] != 0x01:
            err_msg = f"invalid compression flag: 0x{payload[-1:].hex()}"
            raise SigAuditValueError(err_msg)
        compressed = True
    elif len(payload) == ec.n_size + 1:  # uncompressed WIF
        compressed = False
    else:
        raise SigAuditValueError(f"wrong WIF size: {len(payload)}")

    prv_key = int.from_bytes(payload[1 : 1 + ec.n_size], byteorder="big")
    if not 0 < prv_key < ec.n:
        raise SigAuditValueError(f"private key not in 1..n-1: {hex(prv_key)}")

    return prv_key, network, compressed


def address_from_h160(script_type: str, h160: Octets, network: str = "mainnet") -> str:
    "Return a base58 address from the payload."

    if script_type == "p2sh":
        prefix = network_from_name(network).p2sh
    elif script_type == "p2pkh":
        prefix = network_from_name(network).p2pkh
    else:
        raise SigAuditValueError(f"invalid script type: {script_type}")

    payload = prefix + bytes_from_octets(h160, 20)
    return b58encode(payload).decode("ascii")


def h160_from_address(b58addr: Union[bytes, str]) -> Tuple[str, bytes, str]:
    "Return (script type, payload, network) from a base58 address."

    if isinstance(b58addr, str):
        b58addr = b58addr.strip()
    payload = b58decode(b58addr, 21)
    prefix = payload[:1]

    for script_type in ("p2pkh", "p2sh"):
        network = network_from_key_value(script_type, prefix)
        if network:
            return script_type, payload[1:], network

    err_msg = f"invalid base58 address prefix: 0x{prefix.hex()}"
    raise SigAuditValueError(err_msg)


def p2pkh(pub_key: Octets, network: str = "mainnet") -> str:
    "Return the p2pkh base58 address corresponding to a SEC 1 public key."
    ec = network_from_name(network).curve
    pub_key = bytes_from_octets(pub_key, (ec.p_size + 1, 2 * ec.p_size + 1))
    return address_from_h160("p2pkh", hash160(pub_key), network)


def p2pkh_from_prv_key(
    prv_key: int, network: str = "mainnet", compressed: bool = True
) -> str:
    "Return the p2pkh base58 address controlled by the private key."
    ec = network_from_name(network).curve
    Q: Point = mult(prv_key, ec.G, ec)
    return p2pkh(bytes_from_point(Q, ec, compressed), network)
