"""Bitcoin transaction primitives, fee rates and script classification."""

from __future__ import annotations

import enum
import hashlib
import struct
from dataclasses import dataclass, field, replace
from typing import ClassVar, Iterator, Optional

__all__ = [
    "AddressType",
    "FeeRate",
    "OutPoint",
    "TxIn",
    "TxOut",
    "Transaction",
    "address_type_of_script",
    "redeem_script_from_script_sig",
    "is_p2wpkh",
]

_U64_MAX = 2**64 - 1
_SEQUENCE_MAX = 0xFFFFFFFF


class AddressType(enum.Enum):
    """Standard output script kinds that map onto an address."""

    P2PKH = "p2pkh"
    P2SH = "p2sh"
    P2WPKH = "p2wpkh"
    P2WSH = "p2wsh"
    P2TR = "p2tr"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, order=True)
class FeeRate:
    """A fee rate in satoshis per 1000 weight units."""

    sat_per_kwu: int

    BROADCAST_MIN: ClassVar[FeeRate]
    ZERO: ClassVar[FeeRate]

    def __post_init__(self) -> None:
        if isinstance(self.sat_per_kwu, bool) or not isinstance(self.sat_per_kwu, int):
            raise TypeError("fee rate must be an integer number of sat/kwu")
        if not 0 <= self.sat_per_kwu <= _U64_MAX:
            raise ValueError(f"fee rate out of range: {self.sat_per_kwu}")

    @classmethod
    def from_sat_per_kwu(cls, sat_per_kwu: int) -> FeeRate:
        return cls(sat_per_kwu)

    @classmethod
    def from_sat_per_vb(cls, sat_per_vb: int) -> FeeRate:
        """One virtual byte is four weight units, so 1 sat/vB is 250 sat/kwu."""
        sat_per_kwu = sat_per_vb * 250
        if sat_per_kwu > _U64_MAX:
            raise OverflowError(f"fee rate too large: {sat_per_vb} sat/vB")
        return cls(sat_per_kwu)

    def __str__(self) -> str:
        return str(self.sat_per_kwu)


FeeRate.BROADCAST_MIN = FeeRate(250)
FeeRate.ZERO = FeeRate(0)


@dataclass(frozen=True)
class OutPoint:
    """A reference to a transaction output; ``txid`` is in internal byte order."""

    txid: bytes
    vout: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "txid", bytes(self.txid))
        if len(self.txid) != 32:
            raise ValueError(f"txid must be 32 bytes, got {len(self.txid)}")
        if not 0 <= self.vout <= 0xFFFFFFFF:
            raise ValueError(f"vout out of range: {self.vout}")

    def __str__(self) -> str:
        return f"{self.txid[::-1].hex()}:{self.vout}"


@dataclass(frozen=True)
class TxIn:
    previous_output: OutPoint
    script_sig: bytes = b""
    sequence: int = _SEQUENCE_MAX
    witness: tuple[bytes, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "script_sig", bytes(self.script_sig))
        object.__setattr__(self, "witness", tuple(bytes(item) for item in self.witness))


@dataclass(frozen=True)
class TxOut:
    value: int
    script_pubkey: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "script_pubkey", bytes(self.script_pubkey))
        if not 0 <= self.value <= _U64_MAX:
            raise ValueError(f"output value out of range: {self.value}")


def _compact_size(n: int) -> bytes:
    if n < 0xFD:
        return bytes([n])
    if n <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", n)
    if n <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", n)
    return b"\xff" + struct.pack("<Q", n)


def _var_bytes(data: bytes) -> bytes:
    return _compact_size(len(data)) + data


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def take(self, n: int) -> bytes:
        end = self._pos + n
        if end > len(self._data):
            raise ValueError("unexpected end of data")
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def unpack(self, fmt: str) -> int:
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))[0]

    def compact_size(self) -> int:
        first = self.unpack("<B")
        if first < 0xFD:
            return first
        fmt, minimum = {0xFD: ("<H", 0xFD), 0xFE: ("<I", 0x10000), 0xFF: ("<Q", 0x100000000)}[first]
        n = self.unpack(fmt)
        if n < minimum:
            raise ValueError("non-minimal compact size")
        return n

    def var_bytes(self) -> bytes:
        return self.take(self.compact_size())

    @property
    def finished(self) -> bool:
        return self._pos == len(self._data)


def _read_inputs(reader: _Reader) -> list[TxIn]:
    return [
        TxIn(
            previous_output=OutPoint(reader.take(32), reader.unpack("<I")),
            script_sig=reader.var_bytes(),
            sequence=reader.unpack("<I"),
        )
        for _ in range(reader.compact_size())
    ]


def _read_outputs(reader: _Reader) -> list[TxOut]:
    return [
        TxOut(value=reader.unpack("<Q"), script_pubkey=reader.var_bytes())
        for _ in range(reader.compact_size())
    ]


def _read_witness(reader: _Reader) -> tuple[bytes, ...]:
    return tuple(reader.var_bytes() for _ in range(reader.compact_size()))


@dataclass
class Transaction:
    version: int = 2
    lock_time: int = 0
    inputs: list[TxIn] = field(default_factory=list)
    outputs: list[TxOut] = field(default_factory=list)

    def _encode(self, include_witness: bool) -> bytes:
        parts = [struct.pack("<i", self.version)]
        if include_witness:
            parts.append(b"\x00\x01")
        parts.append(_compact_size(len(self.inputs)))
        for txin in self.inputs:
            outpoint = txin.previous_output
            parts.append(outpoint.txid + struct.pack("<I", outpoint.vout))
            parts.append(_var_bytes(txin.script_sig))
            parts.append(struct.pack("<I", txin.sequence))
        parts.append(_compact_size(len(self.outputs)))
        for txout in self.outputs:
            parts.append(struct.pack("<Q", txout.value))
            parts.append(_var_bytes(txout.script_pubkey))
        if include_witness:
            for txin in self.inputs:
                parts.append(_compact_size(len(txin.witness)))
                parts.extend(_var_bytes(item) for item in txin.witness)
        parts.append(struct.pack("<I", self.lock_time))
        return b"".join(parts)

    def serialize(self) -> bytes:
        """Consensus serialization, using the segwit layout when needed."""
        segwit = not self.inputs or any(txin.witness for txin in self.inputs)
        return self._encode(segwit)

    @classmethod
    def parse(cls, data: bytes) -> Transaction:
        """Parse a consensus-serialized transaction; raises ValueError."""
        reader = _Reader(data)
        version = struct.unpack("<i", reader.take(4))[0]
        inputs = _read_inputs(reader)
        segwit = False
        if not inputs:
            flag = reader.unpack("<B")
            if flag != 1:
                raise ValueError(f"unsupported segwit flag {flag}")
            segwit = True
            inputs = _read_inputs(reader)
        outputs = _read_outputs(reader)
        if segwit:
            inputs = [replace(txin, witness=_read_witness(reader)) for txin in inputs]
            if inputs and not any(txin.witness for txin in inputs):
                raise ValueError("witness flag set but no witnesses present")
        lock_time = reader.unpack("<I")
        if not reader.finished:
            raise ValueError("data not consumed entirely")
        return cls(version=version, lock_time=lock_time, inputs=inputs, outputs=outputs)

    def compute_txid(self) -> bytes:
        """Double SHA-256 of the witness-stripped serialization, internal byte order."""
        return hashlib.sha256(hashlib.sha256(self._encode(False)).digest()).digest()


def _is_p2pkh(script: bytes) -> bool:
    return (
        len(script) == 25
        and script[:3] == b"\x76\xa9\x14"
        and script[23:] == b"\x88\xac"
    )


def _is_p2sh(script: bytes) -> bool:
    return len(script) == 23 and script[:2] == b"\xa9\x14" and script[22] == 0x87


def _witness_program(script: bytes) -> Optional[tuple[int, bytes]]:
    if not 4 <= len(script) <= 42:
        return None
    opcode = script[0]
    if opcode == 0:
        version = 0
    elif 0x51 <= opcode <= 0x60:
        version = opcode - 0x50
    else:
        return None
    if script[1] != len(script) - 2:
        return None
    return version, script[2:]


def is_p2wpkh(script: bytes) -> bool:
    """True for a version 0 witness program with a 20-byte key hash."""
    return len(script) == 22 and script[0] == 0 and script[1] == 0x14


def address_type_of_script(script: bytes) -> Optional[AddressType]:
    """Classify an output script.

    Returns ``None`` for valid witness programs of a kind with no known
    address type, and raises ValueError for scripts that are no address.
    """
    script = bytes(script)
    if _is_p2pkh(script):
        return AddressType.P2PKH
    if _is_p2sh(script):
        return AddressType.P2SH
    program = _witness_program(script)
    if program is None:
        raise ValueError("script is not a p2pkh, p2sh or witness program")
    version, data = program
    if version == 0:
        if len(data) == 20:
            return AddressType.P2WPKH
        if len(data) == 32:
            return AddressType.P2WSH
        raise ValueError(f"invalid segwit v0 program length {len(data)}")
    if version == 1 and len(data) == 32:
        return AddressType.P2TR
    return None


def _instructions(script: bytes) -> Iterator[Optional[bytes]]:
    """Yield pushed data for push instructions and None for other opcodes."""
    pos = 0
    while pos < len(script):
        opcode = script[pos]
        pos += 1
        if opcode <= 0x4B:
            size = opcode
        elif opcode in (0x4C, 0x4D, 0x4E):
            width = {0x4C: 1, 0x4D: 2, 0x4E: 4}[opcode]
            if pos + width > len(script):
                raise ValueError("truncated push length")
            size = int.from_bytes(script[pos:pos + width], "little")
            pos += width
        else:
            yield None
            continue
        if pos + size > len(script):
            raise ValueError("truncated push data")
        yield script[pos:pos + size]
        pos += size


def redeem_script_from_script_sig(script_sig: bytes) -> Optional[bytes]:
    """The last push of a push-only scriptSig, or None."""
    last = None
    try:
        for pushed in _instructions(bytes(script_sig)):
            if pushed is None:
                return None
            last = pushed
    except ValueError:
        return None
    return last