"""Partially signed bitcoin transactions (version 0) and checks on their inputs."""

from __future__ import annotations

import base64
import binascii
import struct
from dataclasses import dataclass, field
from typing import ClassVar, Iterator, Optional, Sequence

from .primitives import (
    AddressType,
    Transaction,
    TxIn,
    TxOut,
    _compact_size,
    _Reader,
    _var_bytes,
    address_type_of_script,
    is_p2wpkh,
    redeem_script_from_script_sig,
)

__all__ = [
    "InconsistentPsbt",
    "PrevTxOutError",
    "PsbtInputValidationError",
    "PsbtInputsError",
    "AddressTypeError",
    "InputWeightError",
    "PsbtInput",
    "PsbtOutput",
    "Psbt",
    "PsbtInputPair",
]

PSBT_MAGIC = b"psbt\xff"

_GLOBAL_UNSIGNED_TX = 0x00
_IN_NON_WITNESS_UTXO = 0x00
_IN_WITNESS_UTXO = 0x01
_IN_REDEEM_SCRIPT = 0x04
_IN_WITNESS_SCRIPT = 0x05
_IN_FINAL_SCRIPTSIG = 0x07
_IN_FINAL_SCRIPTWITNESS = 0x08
_OUT_REDEEM_SCRIPT = 0x00
_OUT_WITNESS_SCRIPT = 0x01


# --- errors -----------------------------------------------------------------


class InconsistentPsbt(ValueError):
    """The PSBT maps do not line up with the unsigned transaction."""

    def __init__(self, kind: str, tx_count: int, psbt_count: int) -> None:
        if kind not in ("inputs", "outputs"):
            raise ValueError(f"unknown kind {kind!r}")
        self.kind = kind
        self.tx_count = tx_count
        self.psbt_count = psbt_count
        super().__init__(
            f"The number of PSBT {kind} ({psbt_count}) doesn't equal to the number "
            f"of unsigned transaction {kind} ({tx_count})"
        )


class PrevTxOutError(ValueError):
    """The output an input spends cannot be found.

    With no ``index`` the UTXO information is missing altogether.
    """

    def __init__(self, index: Optional[int] = None, output_count: Optional[int] = None) -> None:
        self.index = index
        self.output_count = output_count
        if index is None:
            message = "missing UTXO information"
        else:
            message = f"index {index} out of bounds (number of outputs: {output_count})"
        super().__init__(message)


class _KindError(ValueError):
    _MESSAGES: ClassVar[dict[str, str]] = {}

    def __init__(self, kind: str, source: Optional[BaseException] = None) -> None:
        if kind not in self._MESSAGES:
            raise ValueError(f"unknown kind {kind!r}")
        self.kind = kind
        self.source = source
        super().__init__(self._MESSAGES[kind])
        if source is not None:
            self.__cause__ = source


class AddressTypeError(_KindError):
    """The address type of a spent output cannot be determined."""

    _MESSAGES = {
        "prev_txout": "invalid previous transaction output",
        "invalid_script": "invalid script",
        "unknown_address_type": "unknown address type",
    }


class PsbtInputValidationError(_KindError):
    """A PSBT input carries UTXO information that is missing or inconsistent."""

    _MESSAGES = {
        "prev_txout": "invalid previous transaction output",
        "unequal_txid": "transaction ID of previous transaction doesn't match one "
        "specified in input spending it",
        "segwit_txout_mismatch": "transaction output provided in SegWit UTXO field "
        "doesn't match the one in non-SegWit UTXO field",
        "address_type": "invalid address type",
        "no_redeem_script": "provided p2sh PSBT input is missing a redeem_script",
    }


class InputWeightError(_KindError):
    """The weight of spending an input cannot be predicted."""

    _MESSAGES = {
        "address_type": "invalid address type",
        "no_redeem_script": "p2sh input missing a redeem script",
        "not_supported": "weight prediction not supported",
    }


class PsbtInputsError(ValueError):
    """One input of a PSBT failed validation."""

    def __init__(self, index: int, error: PsbtInputValidationError) -> None:
        self.index = index
        self.error = error
        super().__init__(f"invalid PSBT input #{index}")
        self.__cause__ = error


# --- weight prediction ------------------------------------------------------


def _predicted_weight(script_len: int, witness_lengths: Sequence[int]) -> int:
    script_size = script_len + len(_compact_size(script_len))
    witness_size = 0
    if witness_lengths:
        witness_size = sum(n + len(_compact_size(n)) for n in witness_lengths)
        witness_size += len(_compact_size(len(witness_lengths)))
    return script_size * 4 + witness_size


_P2PKH_COMPRESSED_MAX = _predicted_weight(107, ())
_P2WPKH_MAX = _predicted_weight(0, (72, 33))
_P2TR_KEY_DEFAULT_SIGHASH = _predicted_weight(0, (64,))
# scriptSig 0x160014{20-byte key hash}; witness <signature> <pubkey>
_NESTED_P2WPKH_MAX = _predicted_weight(23, (72, 33))
# txid, vout and sequence are non-witness data
_OUTPOINT_AND_SEQUENCE_WEIGHT = (32 + 4 + 4) * 4


# --- maps -------------------------------------------------------------------


@dataclass
class PsbtInput:
    non_witness_utxo: Optional[Transaction] = None
    witness_utxo: Optional[TxOut] = None
    redeem_script: Optional[bytes] = None
    witness_script: Optional[bytes] = None
    final_script_sig: Optional[bytes] = None
    final_script_witness: Optional[tuple[bytes, ...]] = None
    # Raw key/value pairs of every other kind, keyed by the full key.
    unknown: dict[bytes, bytes] = field(default_factory=dict)


@dataclass
class PsbtOutput:
    redeem_script: Optional[bytes] = None
    witness_script: Optional[bytes] = None
    unknown: dict[bytes, bytes] = field(default_factory=dict)


def _pair(key: bytes, value: bytes) -> bytes:
    return _var_bytes(key) + _var_bytes(value)


def _read_map(reader: _Reader) -> list[tuple[bytes, bytes]]:
    pairs: list[tuple[bytes, bytes]] = []
    seen: set[bytes] = set()
    while True:
        key = reader.var_bytes()
        if not key:
            return pairs
        value = reader.var_bytes()
        if key in seen:
            raise ValueError(f"duplicate key {key.hex()}")
        seen.add(key)
        pairs.append((key, value))


def _single(key: bytes) -> None:
    if len(key) != 1:
        raise ValueError(f"invalid key {key.hex()}")


def _decode_txout(data: bytes) -> TxOut:
    reader = _Reader(data)
    txout = TxOut(value=reader.unpack("<Q"), script_pubkey=reader.var_bytes())
    if not reader.finished:
        raise ValueError("trailing data in witness utxo")
    return txout


def _encode_txout(txout: TxOut) -> bytes:
    return struct.pack("<Q", txout.value) + _var_bytes(txout.script_pubkey)


def _decode_witness(data: bytes) -> tuple[bytes, ...]:
    reader = _Reader(data)
    items = tuple(reader.var_bytes() for _ in range(reader.compact_size()))
    if not reader.finished:
        raise ValueError("trailing data in final script witness")
    return items


def _encode_witness(items: Sequence[bytes]) -> bytes:
    return _compact_size(len(items)) + b"".join(_var_bytes(item) for item in items)


def _parse_input(pairs: list[tuple[bytes, bytes]]) -> PsbtInput:
    psbtin = PsbtInput()
    for key, value in pairs:
        kind = key[0]
        if kind == _IN_NON_WITNESS_UTXO:
            _single(key)
            psbtin.non_witness_utxo = Transaction.parse(value)
        elif kind == _IN_WITNESS_UTXO:
            _single(key)
            psbtin.witness_utxo = _decode_txout(value)
        elif kind == _IN_REDEEM_SCRIPT:
            _single(key)
            psbtin.redeem_script = value
        elif kind == _IN_WITNESS_SCRIPT:
            _single(key)
            psbtin.witness_script = value
        elif kind == _IN_FINAL_SCRIPTSIG:
            _single(key)
            psbtin.final_script_sig = value
        elif kind == _IN_FINAL_SCRIPTWITNESS:
            _single(key)
            psbtin.final_script_witness = _decode_witness(value)
        else:
            psbtin.unknown[key] = value
    return psbtin


def _encode_input(psbtin: PsbtInput) -> bytes:
    parts = []
    if psbtin.non_witness_utxo is not None:
        parts.append(_pair(bytes([_IN_NON_WITNESS_UTXO]), psbtin.non_witness_utxo.serialize()))
    if psbtin.witness_utxo is not None:
        parts.append(_pair(bytes([_IN_WITNESS_UTXO]), _encode_txout(psbtin.witness_utxo)))
    if psbtin.redeem_script is not None:
        parts.append(_pair(bytes([_IN_REDEEM_SCRIPT]), psbtin.redeem_script))
    if psbtin.witness_script is not None:
        parts.append(_pair(bytes([_IN_WITNESS_SCRIPT]), psbtin.witness_script))
    if psbtin.final_script_sig is not None:
        parts.append(_pair(bytes([_IN_FINAL_SCRIPTSIG]), psbtin.final_script_sig))
    if psbtin.final_script_witness is not None:
        parts.append(
            _pair(bytes([_IN_FINAL_SCRIPTWITNESS]), _encode_witness(psbtin.final_script_witness))
        )
    parts.extend(_pair(key, psbtin.unknown[key]) for key in sorted(psbtin.unknown))
    parts.append(b"\x00")
    return b"".join(parts)


def _parse_output(pairs: list[tuple[bytes, bytes]]) -> PsbtOutput:
    psbtout = PsbtOutput()
    for key, value in pairs:
        kind = key[0]
        if kind == _OUT_REDEEM_SCRIPT:
            _single(key)
            psbtout.redeem_script = value
        elif kind == _OUT_WITNESS_SCRIPT:
            _single(key)
            psbtout.witness_script = value
        else:
            psbtout.unknown[key] = value
    return psbtout


def _encode_output(psbtout: PsbtOutput) -> bytes:
    parts = []
    if psbtout.redeem_script is not None:
        parts.append(_pair(bytes([_OUT_REDEEM_SCRIPT]), psbtout.redeem_script))
    if psbtout.witness_script is not None:
        parts.append(_pair(bytes([_OUT_WITNESS_SCRIPT]), psbtout.witness_script))
    parts.extend(_pair(key, psbtout.unknown[key]) for key in sorted(psbtout.unknown))
    parts.append(b"\x00")
    return b"".join(parts)


def _check_unsigned(tx: Transaction) -> None:
    if any(txin.script_sig for txin in tx.inputs):
        raise ValueError("unsigned tx has script sigs")
    if any(txin.witness for txin in tx.inputs):
        raise ValueError("unsigned tx has script witnesses")


# --- input pairs ------------------------------------------------------------


@dataclass
class PsbtInputPair:
    """A transaction input together with its PSBT input map."""

    txin: TxIn
    psbtin: PsbtInput

    def _output_of(self, tx: Transaction) -> TxOut:
        vout = self.txin.previous_output.vout
        if vout >= len(tx.outputs):
            raise PrevTxOutError(vout, len(tx.outputs))
        return tx.outputs[vout]

    def previous_txout(self) -> TxOut:
        """The output this input spends; raises PrevTxOutError."""
        non_witness, witness = self.psbtin.non_witness_utxo, self.psbtin.witness_utxo
        if witness is not None:
            return witness
        if non_witness is None:
            raise PrevTxOutError()
        return self._output_of(non_witness)

    def validate_utxo(self) -> None:
        """Check the UTXO fields; raises PsbtInputValidationError."""
        non_witness, witness = self.psbtin.non_witness_utxo, self.psbtin.witness_utxo
        if non_witness is None:
            if witness is None:
                error = PrevTxOutError()
                raise PsbtInputValidationError("prev_txout", error) from error
            return
        if non_witness.compute_txid() != self.txin.previous_output.txid:
            raise PsbtInputValidationError("unequal_txid")
        try:
            non_witness_txout = self._output_of(non_witness)
        except PrevTxOutError as exc:
            raise PsbtInputValidationError("prev_txout", exc) from exc
        if witness is not None and witness != non_witness_txout:
            raise PsbtInputValidationError("segwit_txout_mismatch")

    def address_type(self) -> AddressType:
        """The address type of the spent output; raises AddressTypeError."""
        try:
            txout = self.previous_txout()
        except PrevTxOutError as exc:
            raise AddressTypeError("prev_txout", exc) from exc
        try:
            kind = address_type_of_script(txout.script_pubkey)
        except ValueError as exc:
            raise AddressTypeError("invalid_script", exc) from exc
        if kind is None:
            raise AddressTypeError("unknown_address_type")
        return kind

    def expected_input_weight(self) -> int:
        """Predicted weight, in weight units, of spending this input."""
        try:
            kind = self.address_type()
        except AddressTypeError as exc:
            raise InputWeightError("address_type", exc) from exc

        if kind is AddressType.P2PKH:
            predicted = _P2PKH_COMPRESSED_MAX
        elif kind is AddressType.P2SH:
            # Signed inputs carry the redeem script in their scriptSig.
            if self.psbtin.final_script_sig is not None:
                redeem_script = redeem_script_from_script_sig(self.psbtin.final_script_sig)
            else:
                redeem_script = self.psbtin.redeem_script
            if redeem_script is None:
                raise InputWeightError("no_redeem_script")
            if not is_p2wpkh(redeem_script):
                raise InputWeightError("not_supported")
            predicted = _NESTED_P2WPKH_MAX
        elif kind is AddressType.P2WPKH:
            predicted = _P2WPKH_MAX
        elif kind is AddressType.P2WSH:
            raise InputWeightError("not_supported")
        elif kind is AddressType.P2TR:
            predicted = _P2TR_KEY_DEFAULT_SIGHASH
        else:
            error = AddressTypeError("unknown_address_type")
            raise InputWeightError("address_type", error) from error
        return predicted + _OUTPOINT_AND_SEQUENCE_WEIGHT


# --- psbt -------------------------------------------------------------------


@dataclass
class Psbt:
    unsigned_tx: Transaction
    inputs: list[PsbtInput] = field(default_factory=list)
    outputs: list[PsbtOutput] = field(default_factory=list)
    # Raw global key/value pairs other than the unsigned transaction.
    unknown: dict[bytes, bytes] = field(default_factory=dict)

    @classmethod
    def from_unsigned_tx(cls, tx: Transaction) -> Psbt:
        """A PSBT with empty maps for every input and output of ``tx``."""
        _check_unsigned(tx)
        return cls(
            unsigned_tx=tx,
            inputs=[PsbtInput() for _ in tx.inputs],
            outputs=[PsbtOutput() for _ in tx.outputs],
        )

    @classmethod
    def from_base64(cls, text: str) -> Psbt:
        """Parse a base64 PSBT; raises ValueError."""
        try:
            data = base64.b64decode(text.strip(), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"invalid base64: {exc}") from exc
        return cls._from_bytes(data)

    @classmethod
    def _from_bytes(cls, data: bytes) -> Psbt:
        if not data.startswith(PSBT_MAGIC):
            raise ValueError("invalid PSBT magic bytes")
        reader = _Reader(data[len(PSBT_MAGIC):])
        unsigned_tx: Optional[Transaction] = None
        unknown: dict[bytes, bytes] = {}
        for key, value in _read_map(reader):
            if key[0] == _GLOBAL_UNSIGNED_TX:
                _single(key)
                unsigned_tx = Transaction.parse(value)
            else:
                unknown[key] = value
        if unsigned_tx is None:
            raise ValueError("missing unsigned transaction")
        _check_unsigned(unsigned_tx)
        inputs = [_parse_input(_read_map(reader)) for _ in unsigned_tx.inputs]
        outputs = [_parse_output(_read_map(reader)) for _ in unsigned_tx.outputs]
        if not reader.finished:
            raise ValueError("trailing data after PSBT")
        return cls(unsigned_tx=unsigned_tx, inputs=inputs, outputs=outputs, unknown=unknown)

    def _to_bytes(self) -> bytes:
        parts = [PSBT_MAGIC, _pair(bytes([_GLOBAL_UNSIGNED_TX]), self.unsigned_tx.serialize())]
        parts.extend(_pair(key, self.unknown[key]) for key in sorted(self.unknown))
        parts.append(b"\x00")
        parts.extend(_encode_input(psbtin) for psbtin in self.inputs)
        parts.extend(_encode_output(psbtout) for psbtout in self.outputs)
        return b"".join(parts)

    def to_base64(self) -> str:
        return base64.b64encode(self._to_bytes()).decode("ascii")

    def __str__(self) -> str:
        return self.to_base64()

    def input_pairs(self) -> Iterator[PsbtInputPair]:
        for txin, psbtin in zip(self.unsigned_tx.inputs, self.inputs):
            yield PsbtInputPair(txin, psbtin)

    def validate(self) -> Psbt:
        """Return self if the maps match the transaction; raise InconsistentPsbt."""
        tx_ins, psbt_ins = len(self.unsigned_tx.inputs), len(self.inputs)
        tx_outs, psbt_outs = len(self.unsigned_tx.outputs), len(self.outputs)
        if tx_ins != psbt_ins:
            raise InconsistentPsbt("inputs", tx_ins, psbt_ins)
        if tx_outs != psbt_outs:
            raise InconsistentPsbt("outputs", tx_outs, psbt_outs)
        return self

    def validate_input_utxos(self) -> None:
        """Check every input's UTXO fields; raises PsbtInputsError."""
        for index, pair in enumerate(self.input_pairs()):
            try:
                pair.validate_utxo()
            except PsbtInputValidationError as exc:
                raise PsbtInputsError(index, exc) from exc