"""Merging of PSBTs whose unsigned transactions differ."""

from __future__ import annotations

from itertools import chain, groupby

from .psbt import Psbt
from .transaction import Transaction

__all__ = ["merge_unsigned_tx"]


def merge_unsigned_tx(acc: Psbt, psbt: Psbt) -> Psbt:
    """Merge the inputs and outputs of two PSBTs into a new one.

    The PSBTs should not share an unsigned transaction. Only inputs and
    outputs are merged. Of adjacent inputs spending the same outpoint only
    the first is kept; duplicate outputs are all kept. Each merged input
    receives the ``witness_utxo`` found at the same position in the
    concatenated PSBT input maps.
    """
    inputs = [
        next(group)
        for _, group in groupby(
            chain(acc.unsigned_tx.inputs, psbt.unsigned_tx.inputs),
            key=lambda txin: txin.previous_output,
        )
    ]
    outputs = [*acc.unsigned_tx.outputs, *psbt.unsigned_tx.outputs]
    unsigned_tx = Transaction(
        version=acc.unsigned_tx.version,
        lock_time=acc.unsigned_tx.lock_time,
        inputs=inputs,
        outputs=outputs,
    )
    merged = Psbt.from_unsigned_tx(unsigned_tx)
    for merged_input, source_input in zip(merged.inputs, chain(acc.inputs, psbt.inputs)):
        merged_input.witness_utxo = source_input.witness_utxo
    return merged