"""Errors raised while a payjoin receiver handles a sender's request."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Union

from .optional_parameters import UnknownVersionError
from .psbt import _KindError

__all__ = [
    "ErrorCode",
    "ImplementationError",
    "JsonReply",
    "ReceiveError",
    "ReplyableError",
    "PayloadError",
    "OutputSubstitutionError",
    "SelectionError",
    "InputContributionError",
]


class ErrorCode(enum.Enum):
    """Well-known error codes a receiver replies with."""

    UNAVAILABLE = "unavailable"
    NOT_ENOUGH_MONEY = "not-enough-money"
    VERSION_UNSUPPORTED = "version-unsupported"
    ORIGINAL_PSBT_REJECTED = "original-psbt-rejected"

    def __str__(self) -> str:
        return self.value


class ImplementationError(Exception):
    """A failure inside the receiver's own implementation (database, wallet, network)."""


def _fee_rates(template: str) -> Callable[[Any], str]:
    def render(detail: Any) -> str:
        first, second = detail
        return template.format(first, second)

    return render


_PAYLOAD_MESSAGES: dict[str, Callable[[Any], str]] = {
    "utf8": str,
    "parse_psbt": str,
    "sender_params": str,
    "inconsistent_psbt": str,
    "prev_txout": lambda error: f"PrevTxOut Error: {error}",
    "missing_payment": lambda _: "Missing payment.",
    "original_psbt_not_broadcastable": lambda _: "Can't broadcast. PSBT rejected by mempool.",
    "input_owned": lambda _: "The receiver rejected the original PSBT.",
    "input_weight": lambda error: f"InputWeight Error: {error}",
    "input_seen": lambda _: "The receiver rejected the original PSBT.",
    "psbt_below_fee_rate": _fee_rates("Original PSBT fee rate too low: {} < {}."),
    "fee_too_high": _fee_rates(
        "Effective receiver feerate exceeds maximum allowed feerate: {} > {}"
    ),
}


class PayloadError(ValueError):
    """The sender's original PSBT payload failed validation.

    ``detail`` holds what the kind refers to: the underlying exception for
    parsing and validation kinds, the script for ``input_owned``, the
    outpoint for ``input_seen`` and a pair of fee rates for the fee kinds.
    """

    def __init__(self, kind: str, detail: Any = None) -> None:
        if kind not in _PAYLOAD_MESSAGES:
            raise ValueError(f"unknown kind {kind!r}")
        self.kind = kind
        self.detail = detail
        super().__init__(_PAYLOAD_MESSAGES[kind](detail))
        if isinstance(detail, BaseException):
            self.__cause__ = detail


class ReplyableError(Exception):
    """A failure that is reported back to the sender.

    Wraps either a :class:`PayloadError` or an :class:`ImplementationError`.
    """

    def __init__(self, error: Union[PayloadError, ImplementationError]) -> None:
        if isinstance(error, PayloadError):
            message = str(error)
            cause = error.__cause__
        elif isinstance(error, ImplementationError):
            message = f"Internal Server Error: {error}"
            cause = error
        else:
            raise TypeError(f"cannot reply with {type(error).__name__}")
        self.error = error
        super().__init__(message)
        self.__cause__ = cause


class ReceiveError(Exception):
    """The top-level error of the payjoin receiver."""

    def __init__(self, error: ReplyableError) -> None:
        if not isinstance(error, ReplyableError):
            raise TypeError(f"expected ReplyableError, got {type(error).__name__}")
        self.error = error
        super().__init__(f"replyable error: {error}")
        self.__cause__ = error.__cause__


@dataclass
class JsonReply:
    """An error reply in the JSON shape ``{"errorCode": ..., "message": ...}``."""

    error_code: ErrorCode
    message: str
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.message = str(self.message)
        self.extra = dict(self.extra)

    def with_extra(self, key: str, value: Any) -> JsonReply:
        """A copy of this reply with one more field in the JSON object."""
        return replace(self, extra={**self.extra, key: value})

    def to_json(self) -> dict[str, Any]:
        reply: dict[str, Any] = {"errorCode": str(self.error_code), "message": self.message}
        reply.update(self.extra)
        return reply

    @classmethod
    def from_error(cls, error: Union[ReplyableError, PayloadError]) -> JsonReply:
        """The reply that tells the sender about ``error``."""
        if isinstance(error, ReplyableError):
            if isinstance(error.error, PayloadError):
                return cls.from_error(error.error)
            return cls(ErrorCode.UNAVAILABLE, "Receiver error")
        if not isinstance(error, PayloadError):
            raise TypeError(f"cannot build a reply from {type(error).__name__}")
        if error.kind == "fee_too_high":
            return cls(ErrorCode.NOT_ENOUGH_MONEY, error)
        if error.kind == "sender_params":
            params_error = error.detail
            if isinstance(params_error, UnknownVersionError):
                supported = json.dumps(list(params_error.supported_versions), separators=(",", ":"))
                return cls(
                    ErrorCode.VERSION_UNSUPPORTED, "This version of payjoin is not supported."
                ).with_extra("supported", supported)
            return cls(ErrorCode.ORIGINAL_PSBT_REJECTED, params_error)
        return cls(ErrorCode.ORIGINAL_PSBT_REJECTED, error)


class OutputSubstitutionError(_KindError):
    """Substituting the receiver's outputs failed."""

    _MESSAGES = {
        "decreased_value_when_disabled": "Decreasing the receiver output value is not "
        "allowed when output substitution is disabled",
        "script_pubkey_changed_when_disabled": "Changing the receiver output script pubkey "
        "is not allowed when output substitution is disabled",
        "not_enough_outputs": "Current output substitution implementation doesn't support "
        "reducing the number of outputs",
        "invalid_drain_script": "The provided drain script could not be identified in the "
        "provided replacement outputs",
    }


class SelectionError(_KindError):
    """Privacy-preserving coin selection failed."""

    _MESSAGES = {
        "empty": "No candidates available for selection",
        "unsupported_output_length": "Current privacy selection implementation only "
        "supports 2-output transactions",
        "not_found": "No selection candidates improve privacy",
    }


class InputContributionError(_KindError):
    """Contributing receiver inputs failed."""

    _MESSAGES = {
        "value_too_low": "Total input value is not enough to cover additional output value",
    }