"""Text encodings for account addresses (bech32) and identifiers (cb58)."""

from __future__ import annotations

import hashlib

PUBLIC_KEY_LEN = 32
ID_LEN = 32

_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
_BECH32_CHECKSUM_LEN = 6
_MAX_BECH32_LEN = 90

_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_CB58_CHECKSUM_LEN = 4


class AddressError(ValueError):
    """Raised when an address cannot be encoded or parsed."""


def _polymod(values: list[int]) -> int:
    chk = 1
    for value in values:
        top = chk >> 25
        chk = ((chk & 0x1FFFFFF) << 5) ^ value
        for bit, generator in enumerate(_GENERATOR):
            if (top >> bit) & 1:
                chk ^= generator
    return chk


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _convert_bits(data: bytes | list[int], from_bits: int, to_bits: int, pad: bool) -> list[int]:
    acc = 0
    bits = 0
    out: list[int] = []
    max_value = (1 << to_bits) - 1
    max_acc = (1 << (from_bits + to_bits - 1)) - 1
    for value in data:
        if value >> from_bits:
            raise AddressError("invalid data range")
        acc = ((acc << from_bits) | value) & max_acc
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            out.append((acc >> bits) & max_value)
    if pad:
        if bits:
            out.append((acc << (to_bits - bits)) & max_value)
    elif bits >= from_bits or (acc << (to_bits - bits)) & max_value:
        raise AddressError("invalid padding")
    return out


def _bech32_encode(hrp: str, data: list[int]) -> str:
    polymod = _polymod(_hrp_expand(hrp) + data + [0] * _BECH32_CHECKSUM_LEN) ^ 1
    checksum = [(polymod >> 5 * (5 - i)) & 31 for i in range(_BECH32_CHECKSUM_LEN)]
    return hrp + "1" + "".join(_CHARSET[d] for d in data + checksum)


def _bech32_decode(text: str) -> tuple[str, list[int]]:
    if len(text) > _MAX_BECH32_LEN:
        raise AddressError(f"address too long ({len(text)} > {_MAX_BECH32_LEN})")
    if any(ord(c) < 33 or ord(c) > 126 for c in text):
        raise AddressError("address contains invalid characters")
    if text.lower() != text and text.upper() != text:
        raise AddressError("address uses mixed case")
    text = text.lower()
    separator = text.rfind("1")
    if separator < 1 or separator + _BECH32_CHECKSUM_LEN + 1 > len(text):
        raise AddressError("invalid separator position")
    hrp = text[:separator]
    try:
        data = [_CHARSET.index(c) for c in text[separator + 1 :]]
    except ValueError:
        raise AddressError("address contains invalid data characters") from None
    if _polymod(_hrp_expand(hrp) + data) != 1:
        raise AddressError("invalid checksum")
    return hrp, data[:-_BECH32_CHECKSUM_LEN]


def address(public_key: bytes, hrp: str) -> str:
    """Render a public key as a bech32 address with the given prefix."""
    if len(public_key) != PUBLIC_KEY_LEN:
        raise AddressError(f"public key must be {PUBLIC_KEY_LEN} bytes, got {len(public_key)}")
    return _bech32_encode(hrp, _convert_bits(public_key, 8, 5, True))


def parse_address(text: str, hrp: str) -> bytes:
    """Parse a bech32 address and return the public key it holds."""
    found_hrp, data = _bech32_decode(text)
    if found_hrp != hrp:
        raise AddressError(f"expected hrp {hrp!r} but got {found_hrp!r}")
    payload = bytes(_convert_bits(data, 5, 8, False))
    if len(payload) != PUBLIC_KEY_LEN:
        raise AddressError(f"invalid public key length {len(payload)}")
    return payload


def _base58_encode(raw: bytes) -> str:
    number = int.from_bytes(raw, "big")
    digits: list[str] = []
    while number:
        number, remainder = divmod(number, 58)
        digits.append(_BASE58_ALPHABET[remainder])
    leading = len(raw) - len(raw.lstrip(b"\x00"))
    return "1" * leading + "".join(reversed(digits))


def _base58_decode(text: str) -> bytes:
    number = 0
    for char in text:
        index = _BASE58_ALPHABET.find(char)
        if index < 0:
            raise ValueError(f"invalid base58 character {char!r}")
        number = number * 58 + index
    leading = len(text) - len(text.lstrip("1"))
    body = number.to_bytes((number.bit_length() + 7) // 8, "big")
    return b"\x00" * leading + body


def _checksum(raw: bytes) -> bytes:
    return hashlib.sha256(raw).digest()[-_CB58_CHECKSUM_LEN:]


def encode_id(raw: bytes) -> str:
    """Render a 32-byte identifier as checksummed base58 text."""
    if len(raw) != ID_LEN:
        raise ValueError(f"identifier must be {ID_LEN} bytes, got {len(raw)}")
    return _base58_encode(bytes(raw) + _checksum(bytes(raw)))


def decode_id(text: str) -> bytes:
    """Parse checksummed base58 text into a 32-byte identifier."""
    decoded = _base58_decode(text)
    if len(decoded) != ID_LEN + _CB58_CHECKSUM_LEN:
        raise ValueError(f"identifier has wrong length {len(decoded)}")
    raw, checksum = decoded[:ID_LEN], decoded[ID_LEN:]
    if _checksum(raw) != checksum:
        raise ValueError("identifier checksum mismatch")
    return raw