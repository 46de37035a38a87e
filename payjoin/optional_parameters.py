"""Optional parameters a sender passes in the payjoin request query."""

from __future__ import annotations

import logging
import math
import re
import struct
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from urllib.parse import parse_qsl

from .output_substitution import OutputSubstitution
from .transaction import FeeRate

__all__ = [
    "Version",
    "Params",
    "ParamsError",
    "UnknownVersionError",
    "FeeRateParseError",
]

logger = logging.getLogger(__name__)

_U64_MAX = 2**64 - 1
_UNSIGNED_RE = re.compile(r"\+?[0-9]+")
_AMOUNT_RE = re.compile(r"[0-9]+")
_FLOAT_RE = re.compile(
    r"[+-]?(?:inf|infinity|nan|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:e[+-]?[0-9]+)?)",
    re.IGNORECASE,
)


class Version(Enum):
    """Payjoin protocol version."""

    ONE = 1
    TWO = 2

    def __str__(self) -> str:
        return str(self.value)


class ParamsError(ValueError):
    """The sender's optional parameters could not be accepted."""


class UnknownVersionError(ParamsError):
    def __init__(self, supported_versions: Iterable[Version]) -> None:
        self.supported_versions = tuple(supported_versions)
        super().__init__("unknown version")


class FeeRateParseError(ParamsError):
    def __init__(self) -> None:
        super().__init__("could not parse feerate")


def _to_f32(value: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _saturating_u64(value: float) -> int:
    if math.isnan(value) or value <= 0:
        return 0
    if math.isinf(value) or value >= _U64_MAX:
        return _U64_MAX
    return int(value)


def _parse_unsigned(text: str, pattern: re.Pattern[str]) -> int | None:
    if not pattern.fullmatch(text):
        return None
    number = int(text)
    return number if number <= _U64_MAX else None


def _parse_min_fee_rate(text: str) -> FeeRate:
    if not _FLOAT_RE.fullmatch(text):
        raise FeeRateParseError()
    sat_per_vb = _to_f32(float(text))
    sat_per_kwu = _to_f32(sat_per_vb * 250.0)
    # a minimum, so round up
    rounded = sat_per_kwu if math.isnan(sat_per_kwu) or math.isinf(sat_per_kwu) else math.ceil(sat_per_kwu)
    return FeeRate.from_sat_per_kwu(_saturating_u64(rounded))


@dataclass
class Params:
    """Parsed sender parameters with the protocol's defaults."""

    v: Version = Version.ONE
    output_substitution: OutputSubstitution = OutputSubstitution.ENABLED
    # (max additional fee contribution in satoshis, additional fee output index)
    additional_fee_contribution: tuple[int, int] | None = None
    min_fee_rate: FeeRate = FeeRate.BROADCAST_MIN  # type: ignore[attr-defined]
    optimistic_merge: bool = False

    @classmethod
    def from_query_pairs(
        cls,
        pairs: Iterable[tuple[str, str]],
        supported_versions: Iterable[Version],
    ) -> Params:
        """Build parameters from decoded key/value pairs; unknown keys are ignored."""
        params = cls()
        fee_output_index: int | None = None
        max_fee_contribution: int | None = None

        for key, value in pairs:
            if key == "v":
                if value == "1":
                    params.v = Version.ONE
                elif value == "2":
                    params.v = Version.TWO
                else:
                    raise UnknownVersionError(supported_versions)
            elif key == "additionalfeeoutputindex":
                fee_output_index = _parse_unsigned(value, _UNSIGNED_RE)
                if fee_output_index is None:
                    logger.warning("bad `additionalfeeoutputindex` query value '%s'", value)
            elif key == "maxadditionalfeecontribution":
                max_fee_contribution = _parse_unsigned(value, _AMOUNT_RE)
                if max_fee_contribution is None:
                    logger.warning("bad `maxadditionalfeecontribution` query value '%s'", value)
            elif key == "minfeerate":
                params.min_fee_rate = _parse_min_fee_rate(value)
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
    def from_query(cls, query: str, supported_versions: Iterable[Version]) -> Params:
        """Parse a URL-encoded query string."""
        pairs = parse_qsl(query, keep_blank_values=True, errors="replace")
        return cls.from_query_pairs(pairs, supported_versions)