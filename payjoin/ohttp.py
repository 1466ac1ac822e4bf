"""OHTTP key configurations and their short bech32 text form."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional

__all__ = ["ParseOhttpKeysError", "OhttpKeys"]

KEM_K256_SHA256 = 0x0016
KDF_HKDF_SHA256 = 0x0001
KDF_HKDF_SHA384 = 0x0002
KDF_HKDF_SHA512 = 0x0003
AEAD_AES128_GCM = 0x0001
AEAD_AES256_GCM = 0x0002
AEAD_CHACHA20_POLY1305 = 0x0003

_SUPPORTED_KDFS = frozenset({KDF_HKDF_SHA256, KDF_HKDF_SHA384, KDF_HKDF_SHA512})
_SUPPORTED_AEADS = frozenset({AEAD_AES128_GCM, AEAD_AES256_GCM, AEAD_CHACHA20_POLY1305})
# Public key length for each supported KEM.
_KEM_PUBLIC_KEY_SIZE = {KEM_K256_SHA256: 65}

_HRP = "OH"
_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_SECP256K1_P = 2**256 - 2**32 - 977


# --- secp256k1 points -------------------------------------------------------


def _on_curve(x: int, y: int) -> bool:
    return (y * y - x * x * x - 7) % _SECP256K1_P == 0


def _check_uncompressed(point: bytes) -> None:
    if len(point) != 65 or point[0] != 0x04:
        raise ValueError("public key must be a 65-byte uncompressed point")
    x = int.from_bytes(point[1:33], "big")
    y = int.from_bytes(point[33:], "big")
    if x >= _SECP256K1_P or y >= _SECP256K1_P or not _on_curve(x, y):
        raise ValueError("public key is not a point on secp256k1")


def _decompress(point: bytes) -> bytes:
    if len(point) != 33 or point[0] not in (0x02, 0x03):
        raise ValueError("malformed compressed public key")
    x = int.from_bytes(point[1:], "big")
    if x >= _SECP256K1_P:
        raise ValueError("x coordinate out of range")
    y_squared = (pow(x, 3, _SECP256K1_P) + 7) % _SECP256K1_P
    y = pow(y_squared, (_SECP256K1_P + 1) // 4, _SECP256K1_P)
    if y * y % _SECP256K1_P != y_squared:
        raise ValueError("x coordinate is not on secp256k1")
    if y & 1 != point[0] & 1:
        y = _SECP256K1_P - y
    return b"\x04" + x.to_bytes(32, "big") + y.to_bytes(32, "big")


def _compress(point: bytes) -> bytes:
    return bytes([0x02 | (point[64] & 1)]) + point[1:33]


# --- bech32 without checksum ------------------------------------------------


def _convert_bits(data: bytes | list[int], from_bits: int, to_bits: int, pad: bool) -> list[int]:
    acc = 0
    bits = 0
    out: list[int] = []
    max_value = (1 << to_bits) - 1
    max_acc = (1 << (from_bits + to_bits - 1)) - 1
    for value in data:
        acc = ((acc << from_bits) | value) & max_acc
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            out.append((acc >> bits) & max_value)
    if pad:
        if bits:
            out.append((acc << (to_bits - bits)) & max_value)
    elif bits >= from_bits or (acc << (to_bits - bits)) & max_value:
        raise ValueError("invalid padding in data part")
    return out


def _bech32_encode(hrp: str, data: bytes) -> str:
    chars = "".join(_CHARSET[value] for value in _convert_bits(data, 8, 5, pad=True))
    return f"{hrp}1{chars}".upper()


def _bech32_decode(text: str) -> tuple[str, bytes]:
    if any(not 33 <= ord(ch) <= 126 for ch in text):
        raise ValueError("invalid character in string")
    if text.lower() != text and text.upper() != text:
        raise ValueError("mixed-case string")
    lowered = text.lower()
    separator = lowered.rfind("1")
    if separator < 0:
        raise ValueError("missing human-readable separator")
    if separator == 0:
        raise ValueError("empty human-readable part")
    hrp, data_part = lowered[:separator], lowered[separator + 1:]
    values = []
    for ch in data_part:
        index = _CHARSET.find(ch)
        if index < 0:
            raise ValueError(f"invalid character {ch!r} in data part")
        values.append(index)
    return hrp, bytes(_convert_bits(values, 5, 8, pad=False))


# --- keys -------------------------------------------------------------------


class ParseOhttpKeysError(ValueError):
    """Text or bytes could not be parsed into OHTTP keys."""

    _KINDS = ("invalid_format", "invalid_public_key", "decode_bech32", "decode_key_config")

    def __init__(self, kind: str, source: Optional[BaseException] = None) -> None:
        if kind not in self._KINDS:
            raise ValueError(f"unknown kind {kind!r}")
        self.kind = kind
        self.source = source
        if kind == "invalid_format":
            message = "Invalid format"
        elif kind == "invalid_public_key":
            message = "Invalid public key"
        elif kind == "decode_bech32":
            message = f"Failed to decode base64: {source}"
        else:
            message = f"Failed to decode KeyConfig: {source}"
        super().__init__(message)
        if source is not None:
            self.__cause__ = source


@dataclass(frozen=True)
class OhttpKeys:
    """An OHTTP key configuration for a secp256k1 gateway key.

    ``public_key`` is the uncompressed point; ``symmetric`` lists
    ``(kdf_id, aead_id)`` suites.
    """

    key_id: int
    public_key: bytes
    kem_id: int = KEM_K256_SHA256
    symmetric: tuple[tuple[int, int], ...] = ((KDF_HKDF_SHA256, AEAD_CHACHA20_POLY1305),)

    def __post_init__(self) -> None:
        object.__setattr__(self, "public_key", bytes(self.public_key))
        object.__setattr__(self, "symmetric", tuple((kdf, aead) for kdf, aead in self.symmetric))
        if not 0 <= self.key_id <= 0xFF:
            raise ValueError(f"key id out of range: {self.key_id}")
        if self.kem_id not in _KEM_PUBLIC_KEY_SIZE:
            raise ValueError(f"unsupported KEM {self.kem_id:#06x}")
        if not self.symmetric:
            raise ValueError("no symmetric suites in key configuration")
        for kdf, aead in self.symmetric:
            if kdf not in _SUPPORTED_KDFS:
                raise ValueError(f"unsupported KDF {kdf:#06x}")
            if aead not in _SUPPORTED_AEADS:
                raise ValueError(f"unsupported AEAD {aead:#06x}")
        _check_uncompressed(self.public_key)

    @classmethod
    def decode(cls, data: bytes) -> OhttpKeys:
        """Decode an encoded key configuration; raises ValueError."""
        data = bytes(data)
        if len(data) < 3:
            raise ValueError("truncated key configuration")
        key_id = data[0]
        kem_id = struct.unpack(">H", data[1:3])[0]
        pk_size = _KEM_PUBLIC_KEY_SIZE.get(kem_id)
        if pk_size is None:
            raise ValueError(f"unsupported KEM {kem_id:#06x}")
        pk_end = 3 + pk_size
        if len(data) < pk_end + 2:
            raise ValueError("truncated key configuration")
        public_key = data[3:pk_end]
        sym_len = struct.unpack(">H", data[pk_end:pk_end + 2])[0]
        sym = data[pk_end + 2:pk_end + 2 + sym_len]
        if len(sym) != sym_len:
            raise ValueError("truncated symmetric suites")
        if not sym or len(sym) % 4:
            raise ValueError("invalid symmetric suites length")
        if pk_end + 2 + sym_len != len(data):
            raise ValueError("trailing data in key configuration")
        suites = tuple(struct.iter_unpack(">HH", sym))
        return cls(key_id=key_id, public_key=public_key, kem_id=kem_id, symmetric=suites)

    def encode(self) -> bytes:
        suites = b"".join(struct.pack(">HH", kdf, aead) for kdf, aead in self.symmetric)
        return (
            bytes([self.key_id])
            + struct.pack(">H", self.kem_id)
            + self.public_key
            + struct.pack(">H", len(suites))
            + suites
        )

    def __bytes__(self) -> bytes:
        return self.encode()

    @classmethod
    def from_compressed(cls, data: bytes) -> OhttpKeys:
        """Build keys from ``key_id || compressed_public_key``."""
        data = bytes(data)
        if len(data) < 34:
            raise ParseOhttpKeysError("invalid_format")
        try:
            public_key = _decompress(data[1:34])
        except ValueError as exc:
            raise ParseOhttpKeysError("invalid_public_key", exc) from exc
        encoded = (
            bytes([data[0]])
            + struct.pack(">H", KEM_K256_SHA256)
            + public_key
            + struct.pack(">HHH", 4, KDF_HKDF_SHA256, AEAD_CHACHA20_POLY1305)
        )
        try:
            return cls.decode(encoded)
        except ValueError as exc:
            raise ParseOhttpKeysError("decode_key_config", exc) from exc

    @classmethod
    def from_str(cls, text: str) -> OhttpKeys:
        """Parse the bech32 (no checksum) form with human-readable part ``OH``."""
        try:
            hrp, data = _bech32_decode(text)
        except ValueError as exc:
            raise ParseOhttpKeysError("decode_bech32", exc) from exc
        if hrp != _HRP.lower():
            raise ParseOhttpKeysError("invalid_format")
        return cls.from_compressed(data)

    def __str__(self) -> str:
        encoded = self.encode()
        compressed = _compress(encoded[3:68])
        return _bech32_encode(_HRP, bytes([self.key_id]) + compressed)