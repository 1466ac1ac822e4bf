"""Optional parameters a payjoin sender attaches to its request query."""

from __future__ import annotations

import logging
import math
import re
import struct
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence
from urllib.parse import parse_qsl

from .output_substitution import OutputSubstitution
from .primitives import FeeRate

__all__ = ["Params", "ParamsError", "UnknownVersionError", "FeeRateParseError"]

logger = logging.getLogger(__name__)

_U64_MAX = 2**64 - 1
_UINT_RE = re.compile(r"\+?[0-9]+")
_SATS_RE = re.compile(r"\+?([0-9]+)(?:\.0*)?")
_FLOAT_RE = re.compile(
    r"[+-]?(?:inf|infinity|nan|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)",
    re.IGNORECASE,
)


class ParamsError(ValueError):
    """The sender's optional parameters could not be accepted."""


class UnknownVersionError(ParamsError):
    def __init__(self, supported_versions: Sequence[int]) -> None:
        super().__init__("unknown version")
        self.supported_versions = tuple(supported_versions)


class FeeRateParseError(ParamsError):
    def __init__(self) -> None:
        super().__init__("could not parse feerate")


def _parse_usize(text: str) -> int:
    if not text:
        raise ValueError("cannot parse integer from empty string")
    if not _UINT_RE.fullmatch(text):
        raise ValueError("invalid digit found in string")
    value = int(text)
    if value > _U64_MAX:
        raise ValueError("number too large to fit in target type")
    return value


def _parse_sats(text: str) -> int:
    match = _SATS_RE.fullmatch(text)
    if match is None:
        raise ValueError("invalid amount")
    value = int(match.group(1))
    if value > _U64_MAX:
        raise ValueError("amount is too big")
    return value


def _to_f32(value: float) -> float:
    if math.isnan(value) or math.isinf(value):
        return value
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _parse_f32(text: str) -> float:
    if not _FLOAT_RE.fullmatch(text):
        raise ValueError("invalid float literal")
    return _to_f32(float(text))


def _saturating_u64(value: float) -> int:
    if math.isnan(value) or value <= 0:
        return 0
    if math.isinf(value) or value >= 2**64:
        return _U64_MAX
    return int(value)


@dataclass
class Params:
    v: int = 1
    output_substitution: OutputSubstitution = OutputSubstitution.ENABLED
    # (max additional fee contribution in sats, index of the output paying it)
    additional_fee_contribution: Optional[tuple[int, int]] = None
    min_fee_rate: FeeRate = FeeRate.BROADCAST_MIN
    optimistic_merge: bool = False

    @classmethod
    def from_query_pairs(
        cls, pairs: Iterable[tuple[str, str]], supported_versions: Sequence[int]
    ) -> Params:
        """Build parameters from decoded query pairs; unknown keys are ignored."""
        params = cls()
        fee_output_index: Optional[int] = None
        max_fee_contribution: Optional[int] = None

        for key, value in pairs:
            if key == "v":
                try:
                    version = _parse_usize(value)
                except ValueError:
                    raise UnknownVersionError(supported_versions) from None
                if version not in supported_versions:
                    raise UnknownVersionError(supported_versions)
                params.v = version
            elif key == "additionalfeeoutputindex":
                try:
                    fee_output_index = _parse_usize(value)
                except ValueError as exc:
                    logger.warning("bad `additionalfeeoutputindex` query value '%s': %s", value, exc)
                    fee_output_index = None
            elif key == "maxadditionalfeecontribution":
                try:
                    max_fee_contribution = _parse_sats(value)
                except ValueError as exc:
                    logger.warning(
                        "bad `maxadditionalfeecontribution` query value '%s': %s", value, exc
                    )
                    max_fee_contribution = None
            elif key == "minfeerate":
                try:
                    sat_per_vb = _parse_f32(value)
                except ValueError:
                    raise FeeRateParseError() from None
                sat_per_kwu = _to_f32(sat_per_vb * 250.0)
                # A minimum, so round up.
                ceiled = sat_per_kwu if math.isnan(sat_per_kwu) or math.isinf(sat_per_kwu) else math.ceil(sat_per_kwu)
                params.min_fee_rate = FeeRate.from_sat_per_kwu(_saturating_u64(ceiled))
            elif key == "disableoutputsubstitution":
                params.output_substitution = (
                    OutputSubstitution.DISABLED if value == "true" else OutputSubstitution.ENABLED
                )
            elif key == "optimisticmerge":
                params.optimistic_merge = value == "true"

        if max_fee_contribution is not None and fee_output_index is not None:
            params.additional_fee_contribution = (max_fee_contribution, fee_output_index)
        elif max_fee_contribution is not None or fee_output_index is not None:
            logger.warning("only one additional-fee parameter specified: %r", params)

        logger.debug("parsed optional parameters: %r", params)
        return params

    @classmethod
    def from_query(cls, query: str, supported_versions: Sequence[int]) -> Params:
        """Build parameters from a form-urlencoded query string."""
        return cls.from_query_pairs(parse_qsl(query, keep_blank_values=True), supported_versions)