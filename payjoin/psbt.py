"""Partially signed bitcoin transactions (version 0) and input validation."""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterator
from dataclasses import dataclass, field

from .transaction import (
    AddressType,
    InvalidScriptError,
    Transaction,
    TxIn,
    TxOut,
    _compact_size,
    _Reader,
    _var_bytes,
    address_type,
    is_p2wpkh,
    redeem_script_from_script_sig,
)

__all__ = [
    "PsbtInput",
    "PsbtOutput",
    "Psbt",
    "InconsistentPsbt",
    "UnequalInputCounts",
    "UnequalOutputCounts",
    "PrevTxOutError",
    "MissingUtxoInformation",
    "IndexOutOfBounds",
    "PsbtInputError",
    "PsbtInputsError",
    "AddressTypeError",
    "InputWeightError",
    "InputPairView",
]

_MAGIC = b"psbt\xff"
_GLOBAL_UNSIGNED_TX = 0x00
_IN_NON_WITNESS_UTXO = 0x00
_IN_WITNESS_UTXO = 0x01
_IN_REDEEM_SCRIPT = 0x04
_IN_FINAL_SCRIPTSIG = 0x07
_IN_FINAL_SCRIPTWITNESS = 0x08


def _predict_weight(script_len: int, witness_lens: list[int]) -> int:
    script_size = script_len + len(_compact_size(script_len))
    witness_size = sum(len(_compact_size(n)) + n for n in witness_lens)
    if witness_lens:
        witness_size += len(_compact_size(len(witness_lens)))
    return script_size * 4 + witness_size


_P2PKH_COMPRESSED_MAX = _predict_weight(107, [])
_P2WPKH_MAX = _predict_weight(0, [72, 33])
_P2TR_KEY_DEFAULT_SIGHASH = _predict_weight(0, [64])
# scriptSig 0x160014{20-byte key hash}; witness <signature> <pubkey>
_NESTED_P2WPKH_MAX = _predict_weight(23, [72, 33])
# txid, index and sequence
_OUTPOINT_AND_SEQUENCE_WEIGHT = (32 + 4 + 4) * 4


class InconsistentPsbt(ValueError):
    """The PSBT maps do not line up with the unsigned transaction."""


class UnequalInputCounts(InconsistentPsbt):
    def __init__(self, tx_ins: int, psbt_ins: int) -> None:
        self.tx_ins = tx_ins
        self.psbt_ins = psbt_ins
        super().__init__(
            f"The number of PSBT inputs ({psbt_ins}) doesn't equal to the number "
            f"of unsigned transaction inputs ({tx_ins})"
        )


class UnequalOutputCounts(InconsistentPsbt):
    def __init__(self, tx_outs: int, psbt_outs: int) -> None:
        self.tx_outs = tx_outs
        self.psbt_outs = psbt_outs
        super().__init__(
            f"The number of PSBT outputs ({psbt_outs}) doesn't equal to the number "
            f"of unsigned transaction outputs ({tx_outs})"
        )


class PrevTxOutError(ValueError):
    """The previous output of an input cannot be determined."""


class MissingUtxoInformation(PrevTxOutError):
    def __init__(self) -> None:
        super().__init__("missing UTXO information")


class IndexOutOfBounds(PrevTxOutError):
    def __init__(self, output_count: int, index: int) -> None:
        self.output_count = output_count
        self.index = index
        super().__init__(f"index {index} out of bounds (number of outputs: {output_count})")


class PsbtInputError(ValueError):
    """A PSBT input failed validation; ``kind`` names the reason."""

    PREV_TXOUT = "prev_txout"
    UNEQUAL_TXID = "unequal_txid"
    SEGWIT_TXOUT_MISMATCH = "segwit_txout_mismatch"
    ADDRESS_TYPE = "address_type"
    NO_REDEEM_SCRIPT = "no_redeem_script"

    _MESSAGES = {
        PREV_TXOUT: "invalid previous transaction output",
        UNEQUAL_TXID: "transaction ID of previous transaction doesn't match one "
        "specified in input spending it",
        SEGWIT_TXOUT_MISMATCH: "transaction output provided in SegWit UTXO field "
        "doesn't match the one in non-SegWit UTXO field",
        ADDRESS_TYPE: "invalid address type",
        NO_REDEEM_SCRIPT: "provided p2sh PSBT input is missing a redeem_script",
    }

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(self._MESSAGES[kind])


class PsbtInputsError(ValueError):
    """An input at ``index`` failed validation; the cause holds the reason."""

    def __init__(self, index: int, error: PsbtInputError) -> None:
        self.index = index
        self.error = error
        super().__init__(f"invalid PSBT input #{index}")
        self.__cause__ = error


class AddressTypeError(ValueError):
    PREV_TXOUT = "prev_txout"
    INVALID_SCRIPT = "invalid_script"
    UNKNOWN = "unknown"

    _MESSAGES = {
        PREV_TXOUT: "invalid previous transaction output",
        INVALID_SCRIPT: "invalid script",
        UNKNOWN: "unknown address type",
    }

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(self._MESSAGES[kind])


class InputWeightError(ValueError):
    ADDRESS_TYPE = "address_type"
    NO_REDEEM_SCRIPT = "no_redeem_script"
    NOT_SUPPORTED = "not_supported"

    _MESSAGES = {
        ADDRESS_TYPE: "invalid address type",
        NO_REDEEM_SCRIPT: "p2sh input missing a redeem script",
        NOT_SUPPORTED: "weight prediction not supported",
    }

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(self._MESSAGES[kind])


@dataclass
class PsbtInput:
    non_witness_utxo: Transaction | None = None
    witness_utxo: TxOut | None = None
    redeem_script: bytes | None = None
    final_script_sig: bytes | None = None
    final_script_witness: tuple[bytes, ...] | None = None
    unknown: dict[bytes, bytes] = field(default_factory=dict)

    def _serialize(self) -> bytes:
        entries: list[tuple[bytes, bytes]] = []
        if self.non_witness_utxo is not None:
            entries.append((bytes([_IN_NON_WITNESS_UTXO]), self.non_witness_utxo.serialize()))
        if self.witness_utxo is not None:
            entries.append((bytes([_IN_WITNESS_UTXO]), self.witness_utxo.serialize()))
        if self.redeem_script is not None:
            entries.append((bytes([_IN_REDEEM_SCRIPT]), self.redeem_script))
        if self.final_script_sig is not None:
            entries.append((bytes([_IN_FINAL_SCRIPTSIG]), self.final_script_sig))
        if self.final_script_witness is not None:
            witness = _compact_size(len(self.final_script_witness)) + b"".join(
                _var_bytes(item) for item in self.final_script_witness
            )
            entries.append((bytes([_IN_FINAL_SCRIPTWITNESS]), witness))
        entries.extend(self.unknown.items())
        return _serialize_map(entries)

    @classmethod
    def _from_entries(cls, entries: list[tuple[bytes, bytes]]) -> PsbtInput:
        psbtin = cls()
        for key, value in entries:
            if key == bytes([_IN_NON_WITNESS_UTXO]):
                psbtin.non_witness_utxo = Transaction.from_bytes(value)
            elif key == bytes([_IN_WITNESS_UTXO]):
                reader = _Reader(value)
                psbtin.witness_utxo = TxOut._read(reader)
                if not reader.at_end:
                    raise ValueError("trailing data in witness utxo")
            elif key == bytes([_IN_REDEEM_SCRIPT]):
                psbtin.redeem_script = value
            elif key == bytes([_IN_FINAL_SCRIPTSIG]):
                psbtin.final_script_sig = value
            elif key == bytes([_IN_FINAL_SCRIPTWITNESS]):
                reader = _Reader(value)
                psbtin.final_script_witness = tuple(
                    reader.var_bytes() for _ in range(reader.compact_size())
                )
                if not reader.at_end:
                    raise ValueError("trailing data in final script witness")
            else:
                psbtin.unknown[key] = value
        return psbtin


@dataclass
class PsbtOutput:
    unknown: dict[bytes, bytes] = field(default_factory=dict)


def _serialize_map(entries: list[tuple[bytes, bytes]]) -> bytes:
    return b"".join(_var_bytes(k) + _var_bytes(v) for k, v in entries) + b"\x00"


def _read_map(reader: _Reader) -> list[tuple[bytes, bytes]]:
    entries: list[tuple[bytes, bytes]] = []
    seen: set[bytes] = set()
    while True:
        key_len = reader.compact_size()
        if key_len == 0:
            return entries
        key = reader.read(key_len)
        if key in seen:
            raise ValueError(f"duplicate key {key.hex()}")
        seen.add(key)
        entries.append((key, reader.var_bytes()))


@dataclass(frozen=True)
class InputPairView:
    """A transaction input together with its PSBT input map."""

    txin: TxIn
    psbtin: PsbtInput

    def _output_of(self, tx: Transaction) -> TxOut:
        index = self.txin.previous_output.vout
        if index >= len(tx.outputs):
            raise IndexOutOfBounds(len(tx.outputs), index)
        return tx.outputs[index]

    def previous_txout(self) -> TxOut:
        """The output this input spends; raises PrevTxOutError."""
        if self.psbtin.witness_utxo is not None:
            return self.psbtin.witness_utxo
        if self.psbtin.non_witness_utxo is not None:
            return self._output_of(self.psbtin.non_witness_utxo)
        raise MissingUtxoInformation()

    def validate_utxo(self) -> None:
        """Check that the UTXO fields are present and consistent."""
        full_tx = self.psbtin.non_witness_utxo
        witness_txout = self.psbtin.witness_utxo
        if full_tx is None:
            if witness_txout is None:
                raise PsbtInputError(PsbtInputError.PREV_TXOUT) from MissingUtxoInformation()
            return
        if full_tx.compute_txid() != self.txin.previous_output.txid:
            raise PsbtInputError(PsbtInputError.UNEQUAL_TXID)
        try:
            txout = self._output_of(full_tx)
        except IndexOutOfBounds as err:
            raise PsbtInputError(PsbtInputError.PREV_TXOUT) from err
        if witness_txout is not None and witness_txout != txout:
            raise PsbtInputError(PsbtInputError.SEGWIT_TXOUT_MISMATCH)

    def address_type(self) -> AddressType:
        try:
            txout = self.previous_txout()
        except PrevTxOutError as err:
            raise AddressTypeError(AddressTypeError.PREV_TXOUT) from err
        try:
            kind = address_type(txout.script_pubkey)
        except InvalidScriptError as err:
            raise AddressTypeError(AddressTypeError.INVALID_SCRIPT) from err
        if kind is None:
            raise AddressTypeError(AddressTypeError.UNKNOWN)
        return kind

    def expected_input_weight(self) -> int:
        """Predicted weight, in weight units, of spending this input."""
        try:
            kind = self.address_type()
        except AddressTypeError as err:
            raise InputWeightError(InputWeightError.ADDRESS_TYPE) from err
        if kind is AddressType.P2PKH:
            prediction = _P2PKH_COMPRESSED_MAX
        elif kind is AddressType.P2SH:
            if self.psbtin.final_script_sig is not None:
                redeem = redeem_script_from_script_sig(self.psbtin.final_script_sig)
            else:
                redeem = self.psbtin.redeem_script
            if redeem is None:
                raise InputWeightError(InputWeightError.NO_REDEEM_SCRIPT)
            if not is_p2wpkh(redeem):
                raise InputWeightError(InputWeightError.NOT_SUPPORTED)
            prediction = _NESTED_P2WPKH_MAX
        elif kind is AddressType.P2WPKH:
            prediction = _P2WPKH_MAX
        elif kind is AddressType.P2TR:
            prediction = _P2TR_KEY_DEFAULT_SIGHASH
        else:
            raise InputWeightError(InputWeightError.NOT_SUPPORTED)
        return prediction + _OUTPOINT_AND_SEQUENCE_WEIGHT


@dataclass
class Psbt:
    unsigned_tx: Transaction
    inputs: list[PsbtInput] = field(default_factory=list)
    outputs: list[PsbtOutput] = field(default_factory=list)
    unknown: dict[bytes, bytes] = field(default_factory=dict)

    @classmethod
    def from_unsigned_tx(cls, tx: Transaction) -> Psbt:
        if any(txin.script_sig or txin.witness for txin in tx.inputs):
            raise ValueError("unsigned transaction has script_sigs or witnesses")
        return cls(
            tx,
            [PsbtInput() for _ in tx.inputs],
            [PsbtOutput() for _ in tx.outputs],
        )

    def serialize(self) -> bytes:
        global_entries = [(bytes([_GLOBAL_UNSIGNED_TX]), self.unsigned_tx.serialize())]
        global_entries.extend(self.unknown.items())
        parts = [_MAGIC, _serialize_map(global_entries)]
        parts.extend(psbtin._serialize() for psbtin in self.inputs)
        parts.extend(_serialize_map(list(out.unknown.items())) for out in self.outputs)
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> Psbt:
        if not data.startswith(_MAGIC):
            raise ValueError("invalid PSBT magic bytes")
        reader = _Reader(data[len(_MAGIC):])
        unsigned_tx = None
        unknown: dict[bytes, bytes] = {}
        for key, value in _read_map(reader):
            if key == bytes([_GLOBAL_UNSIGNED_TX]):
                unsigned_tx = Transaction.from_bytes(value)
            else:
                unknown[key] = value
        if unsigned_tx is None:
            raise ValueError("PSBT is missing the unsigned transaction")
        psbt = cls.from_unsigned_tx(unsigned_tx)
        psbt.unknown = unknown
        psbt.inputs = [PsbtInput._from_entries(_read_map(reader)) for _ in unsigned_tx.inputs]
        psbt.outputs = [PsbtOutput(dict(_read_map(reader))) for _ in unsigned_tx.outputs]
        if not reader.at_end:
            raise ValueError("trailing data after PSBT")
        return psbt

    @classmethod
    def from_base64(cls, text: str) -> Psbt:
        try:
            data = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as err:
            raise ValueError(f"invalid base64: {err}") from err
        return cls.from_bytes(data)

    def to_base64(self) -> str:
        return base64.b64encode(self.serialize()).decode("ascii")

    def validate(self) -> Psbt:
        """Require the PSBT maps to match the unsigned transaction's counts."""
        tx_ins, psbt_ins = len(self.unsigned_tx.inputs), len(self.inputs)
        tx_outs, psbt_outs = len(self.unsigned_tx.outputs), len(self.outputs)
        if psbt_ins != tx_ins:
            raise UnequalInputCounts(tx_ins, psbt_ins)
        if psbt_outs != tx_outs:
            raise UnequalOutputCounts(tx_outs, psbt_outs)
        return self

    def input_pairs(self) -> Iterator[InputPairView]:
        for txin, psbtin in zip(self.unsigned_tx.inputs, self.inputs):
            yield InputPairView(txin, psbtin)

    def validate_input_utxos(self) -> None:
        for index, pair in enumerate(self.input_pairs()):
            try:
                pair.validate_utxo()
            except PsbtInputError as err:
                raise PsbtInputsError(index, err) from err