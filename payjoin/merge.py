"""Merging PSBTs whose unsigned transactions differ."""

from __future__ import annotations

from itertools import groupby

from .primitives import Transaction
from .psbt import Psbt

__all__ = ["merge_unsigned_tx"]


def merge_unsigned_tx(acc: Psbt, psbt: Psbt) -> Psbt:
    """Merge the inputs and outputs of two PSBTs into a fresh PSBT.

    Only inputs and outputs are merged, and of the input maps only the
    witness UTXO is kept. Of adjacent inputs spending the same outpoint the
    first is kept; duplicate outputs are all kept.
    """
    combined = [*acc.unsigned_tx.inputs, *psbt.unsigned_tx.inputs]
    inputs = [next(group) for _, group in groupby(combined, key=lambda txin: txin.previous_output)]
    outputs = [*acc.unsigned_tx.outputs, *psbt.unsigned_tx.outputs]
    tx = Transaction(
        version=acc.unsigned_tx.version,
        lock_time=acc.unsigned_tx.lock_time,
        inputs=inputs,
        outputs=outputs,
    )
    merged = Psbt.from_unsigned_tx(tx)
    for merged_input, source in zip(merged.inputs, [*acc.inputs, *psbt.inputs]):
        merged_input.witness_utxo = source.witness_utxo
    return merged