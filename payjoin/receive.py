"""Receiver-side helpers: contributed inputs and parsing of the sender's payload."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from .optional_parameters import Params, ParamsError
from .primitives import AddressType, TxIn, TxOut
from .psbt import (
    AddressTypeError,
    InconsistentPsbt,
    Psbt,
    PsbtInput,
    PsbtInputPair,
    PsbtInputValidationError,
)
from .receive_errors import PayloadError

__all__ = ["InputPair", "parse_payload"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InputPair:
    """A receiver input with its PSBT map, validated on construction.

    Raises :class:`PsbtInputValidationError` when the UTXO information is
    missing or inconsistent, the spent script has no address type, or a
    P2SH input lacks its redeem script.
    """

    txin: TxIn
    psbtin: PsbtInput

    def __post_init__(self) -> None:
        pair = PsbtInputPair(self.txin, self.psbtin)
        pair.validate_utxo()
        try:
            address_type = pair.address_type()
        except AddressTypeError as exc:
            raise PsbtInputValidationError("address_type", exc) from exc
        if address_type is AddressType.P2SH and self.psbtin.redeem_script is None:
            raise PsbtInputValidationError("no_redeem_script")

    def previous_txout(self) -> TxOut:
        """The output this input spends."""
        return PsbtInputPair(self.txin, self.psbtin).previous_txout()


def parse_payload(
    base64_psbt: str, query: str, supported_versions: Sequence[int]
) -> tuple[Psbt, Params]:
    """Parse and sanity-check the sender's PSBT and query parameters.

    Raises :class:`PayloadError`.
    """
    try:
        unchecked = Psbt.from_base64(base64_psbt)
    except ValueError as exc:
        raise PayloadError("parse_psbt", exc) from exc
    try:
        psbt = unchecked.validate()
    except InconsistentPsbt as exc:
        raise PayloadError("inconsistent_psbt", exc) from exc
    logger.debug("Received original psbt: %r", psbt)

    try:
        params = Params.from_query(query, supported_versions)
    except ParamsError as exc:
        raise PayloadError("sender_params", exc) from exc
    logger.debug("Received request with params: %r", params)
    return psbt, params