"""Bitcoin transactions, scripts and fee rates."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum

__all__ = [
    "OutPoint",
    "TxIn",
    "TxOut",
    "Transaction",
    "FeeRate",
    "AddressType",
    "InvalidScriptError",
    "address_type",
    "is_p2wpkh",
    "redeem_script_from_script_sig",
]

SEQUENCE_MAX = 0xFFFFFFFF


def _compact_size(n: int) -> bytes:
    if n < 0xFD:
        return bytes([n])
    if n <= 0xFFFF:
        return b"\xfd" + n.to_bytes(2, "little")
    if n <= 0xFFFFFFFF:
        return b"\xfe" + n.to_bytes(4, "little")
    return b"\xff" + n.to_bytes(8, "little")


def _var_bytes(data: bytes) -> bytes:
    return _compact_size(len(data)) + data


class _Reader:
    """Sequential reader over a byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def read(self, n: int) -> bytes:
        end = self._pos + n
        if end > len(self._data):
            raise ValueError("unexpected end of data")
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def peek(self) -> int:
        if self.at_end:
            raise ValueError("unexpected end of data")
        return self._data[self._pos]

    def u32(self) -> int:
        return int.from_bytes(self.read(4), "little")

    def u64(self) -> int:
        return int.from_bytes(self.read(8), "little")

    def compact_size(self) -> int:
        first = self.read(1)[0]
        if first < 0xFD:
            return first
        width = {0xFD: 2, 0xFE: 4, 0xFF: 8}[first]
        return int.from_bytes(self.read(width), "little")

    def var_bytes(self) -> bytes:
        return self.read(self.compact_size())


@dataclass(frozen=True)
class OutPoint:
    """A reference to a transaction output; ``txid`` is in internal byte order."""

    txid: bytes
    vout: int


@dataclass(frozen=True)
class TxIn:
    previous_output: OutPoint
    script_sig: bytes = b""
    sequence: int = SEQUENCE_MAX
    witness: tuple[bytes, ...] = ()


@dataclass(frozen=True)
class TxOut:
    value: int
    script_pubkey: bytes

    def serialize(self) -> bytes:
        return self.value.to_bytes(8, "little") + _var_bytes(self.script_pubkey)

    @classmethod
    def _read(cls, reader: _Reader) -> TxOut:
        value = reader.u64()
        return cls(value, reader.var_bytes())


@dataclass
class Transaction:
    version: int = 2
    lock_time: int = 0
    inputs: list[TxIn] = field(default_factory=list)
    outputs: list[TxOut] = field(default_factory=list)

    def _serialize(self, with_witness: bool) -> bytes:
        segwit = with_witness and any(txin.witness for txin in self.inputs)
        parts = [self.version.to_bytes(4, "little", signed=True)]
        if segwit:
            parts.append(b"\x00\x01")
        parts.append(_compact_size(len(self.inputs)))
        for txin in self.inputs:
            parts.append(txin.previous_output.txid)
            parts.append(txin.previous_output.vout.to_bytes(4, "little"))
            parts.append(_var_bytes(txin.script_sig))
            parts.append(txin.sequence.to_bytes(4, "little"))
        parts.append(_compact_size(len(self.outputs)))
        parts.extend(txout.serialize() for txout in self.outputs)
        if segwit:
            for txin in self.inputs:
                parts.append(_compact_size(len(txin.witness)))
                parts.extend(_var_bytes(item) for item in txin.witness)
        parts.append(self.lock_time.to_bytes(4, "little"))
        return b"".join(parts)

    def serialize(self) -> bytes:
        """Consensus encoding, with witness data when any input has some."""
        return self._serialize(True)

    @classmethod
    def _read(cls, reader: _Reader) -> Transaction:
        version = int.from_bytes(reader.read(4), "little", signed=True)
        count = reader.compact_size()
        segwit = False
        if count == 0 and not reader.at_end and reader.peek() == 1:
            reader.read(1)
            segwit = True
            count = reader.compact_size()
        raw_inputs = []
        for _ in range(count):
            txid = reader.read(32)
            vout = reader.u32()
            script_sig = reader.var_bytes()
            sequence = reader.u32()
            raw_inputs.append((OutPoint(txid, vout), script_sig, sequence))
        outputs = [TxOut._read(reader) for _ in range(reader.compact_size())]
        witnesses: list[tuple[bytes, ...]] = [()] * len(raw_inputs)
        if segwit:
            witnesses = [
                tuple(reader.var_bytes() for _ in range(reader.compact_size()))
                for _ in raw_inputs
            ]
        lock_time = reader.u32()
        inputs = [
            TxIn(outpoint, script_sig, sequence, witness)
            for (outpoint, script_sig, sequence), witness in zip(raw_inputs, witnesses)
        ]
        return cls(version, lock_time, inputs, outputs)

    @classmethod
    def from_bytes(cls, data: bytes) -> Transaction:
        """Decode a consensus-encoded transaction; raises ValueError if malformed."""
        reader = _Reader(data)
        tx = cls._read(reader)
        if not reader.at_end:
            raise ValueError("trailing data after transaction")
        return tx

    def compute_txid(self) -> bytes:
        """Double SHA-256 of the witness-stripped encoding, internal byte order."""
        data = self._serialize(False)
        return hashlib.sha256(hashlib.sha256(data).digest()).digest()


@dataclass(frozen=True, order=True)
class FeeRate:
    sat_per_kwu: int

    @classmethod
    def from_sat_per_kwu(cls, sat_per_kwu: int) -> FeeRate:
        return cls(sat_per_kwu)

    @classmethod
    def from_sat_per_vb(cls, sat_per_vb: int) -> FeeRate:
        return cls(sat_per_vb * 250)

    def __str__(self) -> str:
        return f"{self.sat_per_kwu} sat/kwu"


FeeRate.BROADCAST_MIN = FeeRate(250)  # type: ignore[attr-defined]


class AddressType(Enum):
    P2PKH = "p2pkh"
    P2SH = "p2sh"
    P2WPKH = "p2wpkh"
    P2WSH = "p2wsh"
    P2TR = "p2tr"


class InvalidScriptError(ValueError):
    """The script is not one that an address can describe."""


def _witness_version(script: bytes) -> int | None:
    if not 4 <= len(script) <= 42:
        return None
    opcode = script[0]
    if opcode != 0 and not 0x51 <= opcode <= 0x60:
        return None
    if script[1] != len(script) - 2:
        return None
    return 0 if opcode == 0 else opcode - 0x50


def address_type(script_pubkey: bytes) -> AddressType | None:
    """Classify an output script.

    Returns None for a valid witness program of a version with no known type,
    and raises InvalidScriptError for anything that is not an address script.
    """
    s = script_pubkey
    if len(s) == 25 and s[:3] == b"\x76\xa9\x14" and s[23:] == b"\x88\xac":
        return AddressType.P2PKH
    if len(s) == 23 and s[:2] == b"\xa9\x14" and s[22] == 0x87:
        return AddressType.P2SH
    version = _witness_version(s)
    if version is None:
        raise InvalidScriptError("script is not a standard address script")
    program_len = len(s) - 2
    if version == 0:
        if program_len == 20:
            return AddressType.P2WPKH
        if program_len == 32:
            return AddressType.P2WSH
        raise InvalidScriptError("invalid segwit v0 program length")
    if version == 1 and program_len == 32:
        return AddressType.P2TR
    return None


def is_p2wpkh(script: bytes) -> bool:
    return len(script) == 22 and script[0] == 0 and script[1] == 0x14


def redeem_script_from_script_sig(script_sig: bytes) -> bytes | None:
    """The last push of a push-only script, or None if it is not push-only."""
    reader = _Reader(script_sig)
    last = None
    try:
        while not reader.at_end:
            opcode = reader.read(1)[0]
            if opcode <= 0x4B:
                last = reader.read(opcode)
            elif opcode == 0x4C:
                last = reader.read(reader.read(1)[0])
            elif opcode == 0x4D:
                last = reader.read(int.from_bytes(reader.read(2), "little"))
            elif opcode == 0x4E:
                last = reader.read(int.from_bytes(reader.read(4), "little"))
            else:
                return None
    except ValueError:
        return None
    return last