"""OHTTP key configurations and their short bech32 text form."""

from __future__ import annotations

from dataclasses import dataclass

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

__all__ = ["OhttpKeys", "KeyConfigError", "ParseOhttpKeysError"]

KEM_K256_SHA256 = 0x0016
KDF_HKDF_SHA256 = 0x0001
AEAD_CHACHA20_POLY1305 = 0x0003

_SUPPORTED_KDFS = frozenset({0x0001, 0x0002, 0x0003})
_SUPPORTED_AEADS = frozenset({0x0001, 0x0002, 0x0003})
_UNCOMPRESSED_KEY_LEN = 65
_COMPRESSED_KEY_LEN = 33
_DEFAULT_SUITES = ((KDF_HKDF_SHA256, AEAD_CHACHA20_POLY1305),)

_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_HRP = "oh"


class KeyConfigError(ValueError):
    """An OHTTP key configuration could not be decoded."""


class ParseOhttpKeysError(ValueError):
    """The text or bytes do not describe OHTTP keys; ``kind`` names why."""

    INVALID_FORMAT = "invalid_format"
    INVALID_PUBLIC_KEY = "invalid_public_key"
    DECODE_BECH32 = "decode_bech32"
    DECODE_KEY_CONFIG = "decode_key_config"

    def __init__(self, kind: str, error: Exception | None = None) -> None:
        messages = {
            self.INVALID_FORMAT: "Invalid format",
            self.INVALID_PUBLIC_KEY: "Invalid public key",
            self.DECODE_BECH32: f"Failed to decode base64: {error}",
            self.DECODE_KEY_CONFIG: f"Failed to decode KeyConfig: {error}",
        }
        if kind not in messages:
            raise ValueError(f"unknown parse error kind: {kind!r}")
        self.kind = kind
        self.error = error
        super().__init__(messages[kind])
        if error is not None:
            self.__cause__ = error


class _Bech32Error(ValueError):
    """Malformed checksum-less bech32 text."""


def _convert_bits(data: bytes | list[int], from_bits: int, to_bits: int, pad: bool) -> list[int]:
    acc = 0
    bits = 0
    out: list[int] = []
    maxv = (1 << to_bits) - 1
    for value in data:
        acc = (acc << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            out.append((acc >> bits) & maxv)
        acc &= (1 << bits) - 1
    if pad and bits:
        out.append((acc << (to_bits - bits)) & maxv)
    return out


def _bech32_encode(hrp: str, data: bytes) -> str:
    groups = _convert_bits(data, 8, 5, pad=True)
    text = hrp + "1" + "".join(_CHARSET[g] for g in groups)
    return text.upper()


def _bech32_decode(text: str) -> tuple[str, bytes]:
    if any(not 33 <= ord(ch) <= 126 for ch in text):
        raise _Bech32Error("invalid character in string")
    if text.lower() != text and text.upper() != text:
        raise _Bech32Error("mixed case string")
    lowered = text.lower()
    sep = lowered.rfind("1")
    if sep < 1:
        raise _Bech32Error("missing human-readable part or separator")
    hrp, data_part = lowered[:sep], lowered[sep + 1:]
    try:
        groups = [_CHARSET.index(ch) for ch in data_part]
    except ValueError as err:
        raise _Bech32Error("invalid data character") from err
    return hrp, bytes(_convert_bits(groups, 5, 8, pad=False))


def _load_point(data: bytes) -> ec.EllipticCurvePublicKey:
    return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), data)


@dataclass(frozen=True)
class OhttpKeys:
    """An OHTTP key configuration using DHKEM(secp256k1, HKDF-SHA256).

    ``public_key`` is the uncompressed 65-byte point; ``symmetric`` lists
    (KDF id, AEAD id) suites.
    """

    key_id: int
    public_key: bytes
    symmetric: tuple[tuple[int, int], ...] = _DEFAULT_SUITES

    @classmethod
    def generate(cls, key_id: int) -> OhttpKeys:
        """A configuration around a freshly generated key pair."""
        if not 0 <= key_id <= 0xFF:
            raise ValueError("key id must fit in one byte")
        private_key = ec.generate_private_key(ec.SECP256K1())
        public_key = private_key.public_key().public_bytes(
            Encoding.X962, PublicFormat.UncompressedPoint
        )
        return cls(key_id, public_key)

    @classmethod
    def decode(cls, data: bytes) -> OhttpKeys:
        """Decode the binary key configuration; raises KeyConfigError."""
        data = bytes(data)
        if len(data) < 3:
            raise KeyConfigError("truncated key configuration")
        key_id = data[0]
        kem_id = int.from_bytes(data[1:3], "big")
        if kem_id != KEM_K256_SHA256:
            raise KeyConfigError(f"unsupported KEM {kem_id:#06x}")
        end_key = 3 + _UNCOMPRESSED_KEY_LEN
        public_key = data[3:end_key]
        if len(public_key) < _UNCOMPRESSED_KEY_LEN:
            raise KeyConfigError("truncated key configuration")
        if public_key[0] != 0x04:
            raise KeyConfigError("invalid public key")
        try:
            _load_point(public_key)
        except (ValueError, TypeError) as err:
            raise KeyConfigError("invalid public key") from err
        rest = data[end_key:]
        if len(rest) < 2:
            raise KeyConfigError("truncated key configuration")
        suites_len = int.from_bytes(rest[:2], "big")
        suites_data = rest[2:2 + suites_len]
        if len(suites_data) < suites_len:
            raise KeyConfigError("truncated key configuration")
        if len(rest) > 2 + suites_len:
            raise KeyConfigError("trailing data after key configuration")
        if suites_len == 0 or suites_len % 4:
            raise KeyConfigError("invalid symmetric suite list length")
        suites = tuple(
            (kdf, aead)
            for kdf, aead in (
                (
                    int.from_bytes(suites_data[pos:pos + 2], "big"),
                    int.from_bytes(suites_data[pos + 2:pos + 4], "big"),
                )
                for pos in range(0, suites_len, 4)
            )
            if kdf in _SUPPORTED_KDFS and aead in _SUPPORTED_AEADS
        )
        if not suites:
            raise KeyConfigError("no supported symmetric suite")
        return cls(key_id, public_key, suites)

    def encode(self) -> bytes:
        """The binary key configuration."""
        suites = b"".join(
            kdf.to_bytes(2, "big") + aead.to_bytes(2, "big") for kdf, aead in self.symmetric
        )
        return (
            bytes([self.key_id])
            + KEM_K256_SHA256.to_bytes(2, "big")
            + self.public_key
            + len(suites).to_bytes(2, "big")
            + suites
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> OhttpKeys:
        """Build keys from ``key_id || compressed_public_key``."""
        data = bytes(data)
        if len(data) < 1 + _COMPRESSED_KEY_LEN:
            raise ParseOhttpKeysError(ParseOhttpKeysError.INVALID_FORMAT)
        key_id = data[0]
        compressed = data[1:1 + _COMPRESSED_KEY_LEN]
        if compressed[0] not in (0x02, 0x03):
            raise ParseOhttpKeysError(ParseOhttpKeysError.INVALID_PUBLIC_KEY)
        try:
            point = _load_point(compressed)
        except (ValueError, TypeError) as err:
            raise ParseOhttpKeysError(ParseOhttpKeysError.INVALID_PUBLIC_KEY) from err
        uncompressed = point.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)
        config = (
            bytes([key_id])
            + KEM_K256_SHA256.to_bytes(2, "big")
            + uncompressed
            + b"\x00\x04"
            + KDF_HKDF_SHA256.to_bytes(2, "big")
            + AEAD_CHACHA20_POLY1305.to_bytes(2, "big")
        )
        try:
            return cls.decode(config)
        except KeyConfigError as err:
            raise ParseOhttpKeysError(ParseOhttpKeysError.DECODE_KEY_CONFIG, err) from err

    @classmethod
    def from_str(cls, text: str) -> OhttpKeys:
        """Parse the ``OH1...`` bech32 form without checksum."""
        try:
            hrp, data = _bech32_decode(text)
        except _Bech32Error as err:
            raise ParseOhttpKeysError(ParseOhttpKeysError.DECODE_BECH32, err) from err
        if hrp != _HRP:
            raise ParseOhttpKeysError(ParseOhttpKeysError.INVALID_FORMAT)
        return cls.from_bytes(data)

    def __str__(self) -> str:
        point = _load_point(self.public_key)
        compressed = point.public_bytes(Encoding.X962, PublicFormat.CompressedPoint)
        return _bech32_encode(_HRP, bytes([self.key_id]) + compressed)

    def __bytes__(self) -> bytes:
        return self.encode()