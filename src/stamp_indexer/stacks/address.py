"""Stacks c32check address encoding and validation."""

from __future__ import annotations

import hashlib

C32_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"

# Address version bytes for standard (single-sig P2PKH / multisig P2SH) principals.
VERSION_MAINNET_SINGLE = 22  # SP
VERSION_MAINNET_MULTI = 20  # SM
VERSION_TESTNET_SINGLE = 26  # ST
VERSION_TESTNET_MULTI = 21  # SN

_ADDRESS_VERSIONS = {
    VERSION_MAINNET_SINGLE,
    VERSION_MAINNET_MULTI,
    VERSION_TESTNET_SINGLE,
    VERSION_TESTNET_MULTI,
}

_HASH_LEN = 20
_CHECKSUM_LEN = 4


def _checksum(version: int, hash160: bytes) -> bytes:
    data = bytes([version]) + hash160
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()[:_CHECKSUM_LEN]


def c32_encode(data: bytes) -> str:
    """Big-endian base32 over the c32 alphabet; each leading zero byte becomes '0'."""
    leading = len(data) - len(data.lstrip(b"\x00"))
    n = int.from_bytes(data, "big")
    chars = []
    while n:
        n, rem = divmod(n, 32)
        chars.append(C32_ALPHABET[rem])
    return "0" * leading + "".join(reversed(chars))


def c32_decode(text: str, length: int) -> bytes | None:
    """Inverse of c32_encode for a payload of known byte length."""
    n = 0
    for ch in text:
        idx = C32_ALPHABET.find(ch)
        if idx < 0:
            return None
        n = n * 32 + idx
    if n.bit_length() > length * 8:
        return None
    return n.to_bytes(length, "big")


def c32_address(version: int, hash160: bytes) -> str:
    """Build a c32check address such as ``ST...`` from a version and hash160."""
    if version not in _ADDRESS_VERSIONS or len(hash160) != _HASH_LEN:
        raise ValueError("invalid address version or hash length")
    return "S" + C32_ALPHABET[version] + c32_encode(hash160 + _checksum(version, hash160))


def is_valid_stacks_address(address: str) -> bool:
    """Check prefix, version, alphabet, and checksum of a standard principal."""
    if len(address) < 3 or address[0] != "S":
        return False
    version = C32_ALPHABET.find(address[1])
    if version not in _ADDRESS_VERSIONS:
        return False
    raw = c32_decode(address[2:], _HASH_LEN + _CHECKSUM_LEN)
    if raw is None:
        return False
    hash160, checksum = raw[:_HASH_LEN], raw[_HASH_LEN:]
    if c32_encode(raw) != address[2:]:
        return False  # non-canonical padding
    return _checksum(version, hash160) == checksum
