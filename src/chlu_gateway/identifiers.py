"""
Identifier gates for the query gateway.

Both predicates are purely syntactic: a content identifier must decode as a
base58btc multihash, a DID identifier must carry the ``did:`` scheme prefix.
Deeper validity (signatures, DID method rules) belongs to the review store.
"""
from __future__ import annotations

import base58

__all__ = [
    "DID_PREFIX",
    "is_content_identifier",
    "is_did_identifier",
    "decode_multihash",
]

DID_PREFIX = "did:"

# Hash function codes from the multicodec table.
_HASH_CODES: frozenset[int] = frozenset(
    [
        0x00,  # identity
        *range(0x01, 0x10),  # application-specific
        0x11,  # sha1
        0x12,  # sha2-256
        0x13,  # sha2-512
        0x14,  # sha3-512
        0x15,  # sha3-384
        0x16,  # sha3-256
        0x17,  # sha3-224
        0x18,  # shake-128
        0x19,  # shake-256
        0x1A,  # keccak-224
        0x1B,  # keccak-256
        0x1C,  # keccak-384
        0x1D,  # keccak-512
        0x22,  # murmur3-128
        0x23,  # murmur3-32
        0x56,  # dbl-sha2-256
        *range(0xB201, 0xB241),  # blake2b-8 .. blake2b-512
        *range(0xB241, 0xB261),  # blake2s-8 .. blake2s-256
    ]
)

_MAX_VARINT_BYTES = 9

# Longest accepted base58 form; blake2b-512 encodes to about 93 characters.
MAX_MULTIHASH_CHARS = 128


def _read_varint(data: bytes, offset: int) -> tuple[int, int]:
    value = 0
    shift = 0
    for i in range(_MAX_VARINT_BYTES):
        pos = offset + i
        if pos >= len(data):
            raise ValueError("truncated varint")
        byte = data[pos]
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, pos + 1
        shift += 7
    raise ValueError("varint too long")


def decode_multihash(value: str) -> tuple[int, bytes]:
    """
    Decode a base58btc multihash string into ``(code, digest)``.

    Raises:
        ValueError: If the string is not base58btc or the multihash header
            does not describe the remaining bytes.
    """
    raw = base58.b58decode(value)
    if len(raw) < 3:
        raise ValueError("multihash too short")
    code, offset = _read_varint(raw, 0)
    length, offset = _read_varint(raw, offset)
    if code not in _HASH_CODES:
        raise ValueError(f"unknown multihash code: {code:#x}")
    digest = raw[offset:]
    if length < 1 or length != len(digest):
        raise ValueError("multihash length does not match digest")
    return code, digest


def is_content_identifier(value: object) -> bool:
    if not isinstance(value, str) or not value or value.strip() != value:
        return False
    if len(value) > MAX_MULTIHASH_CHARS:
        return False
    try:
        decode_multihash(value)
    except ValueError:
        return False
    return True


def is_did_identifier(value: object) -> bool:
    return isinstance(value, str) and value.startswith(DID_PREFIX)
