"""Errors raised by the payjoin receiver and their JSON replies to the sender."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from .optional_parameters import UnknownVersionError

__all__ = [
    "ErrorCode",
    "JsonReply",
    "ReceiveError",
    "ReplyableError",
    "ImplementationError",
    "PayloadError",
    "OutputSubstitutionError",
    "SelectionError",
    "InputContributionError",
]


class ErrorCode(Enum):
    """Well-known error codes a receiver replies with."""

    UNAVAILABLE = "unavailable"
    NOT_ENOUGH_MONEY = "not-enough-money"
    VERSION_UNSUPPORTED = "version-unsupported"
    ORIGINAL_PSBT_REJECTED = "original-psbt-rejected"

    def __str__(self) -> str:
        return self.value


class ImplementationError(Exception):
    """A failure inside the receiver's own implementation (database, network, wallet)."""


class PayloadError(ValueError):
    """The original PSBT payload sent by the sender failed validation; ``kind`` names why."""

    UTF8 = "utf8"
    PARSE_PSBT = "parse_psbt"
    SENDER_PARAMS = "sender_params"
    INCONSISTENT_PSBT = "inconsistent_psbt"
    PREV_TXOUT = "prev_txout"
    MISSING_PAYMENT = "missing_payment"
    ORIGINAL_PSBT_NOT_BROADCASTABLE = "original_psbt_not_broadcastable"
    INPUT_OWNED = "input_owned"
    INPUT_WEIGHT = "input_weight"
    INPUT_SEEN = "input_seen"
    PSBT_BELOW_FEE_RATE = "psbt_below_fee_rate"
    FEE_TOO_HIGH = "fee_too_high"

    _FORMATS = {
        UTF8: "{0}",
        PARSE_PSBT: "{0}",
        SENDER_PARAMS: "{0}",
        INCONSISTENT_PSBT: "{0}",
        PREV_TXOUT: "PrevTxOut Error: {0}",
        MISSING_PAYMENT: "Missing payment.",
        ORIGINAL_PSBT_NOT_BROADCASTABLE: "Can't broadcast. PSBT rejected by mempool.",
        INPUT_OWNED: "The receiver rejected the original PSBT.",
        INPUT_WEIGHT: "InputWeight Error: {0}",
        INPUT_SEEN: "The receiver rejected the original PSBT.",
        PSBT_BELOW_FEE_RATE: "Original PSBT fee rate too low: {0} < {1}.",
        FEE_TOO_HIGH: "Effective receiver feerate exceeds maximum allowed feerate: {0} > {1}",
    }
    _ARITY = {
        UTF8: 1,
        PARSE_PSBT: 1,
        SENDER_PARAMS: 1,
        INCONSISTENT_PSBT: 1,
        PREV_TXOUT: 1,
        MISSING_PAYMENT: 0,
        ORIGINAL_PSBT_NOT_BROADCASTABLE: 0,
        INPUT_OWNED: 1,
        INPUT_WEIGHT: 1,
        INPUT_SEEN: 1,
        PSBT_BELOW_FEE_RATE: 2,
        FEE_TOO_HIGH: 2,
    }
    _WRAPPING = frozenset(
        {UTF8, PARSE_PSBT, SENDER_PARAMS, INCONSISTENT_PSBT, PREV_TXOUT, INPUT_WEIGHT}
    )

    def __init__(self, kind: str, *details: Any) -> None:
        if kind not in self._FORMATS:
            raise ValueError(f"unknown payload error kind: {kind!r}")
        if len(details) != self._ARITY[kind]:
            raise TypeError(
                f"payload error {kind!r} takes {self._ARITY[kind]} details, got {len(details)}"
            )
        self.kind = kind
        self.details = details
        super().__init__(self._FORMATS[kind].format(*details))
        if kind in self._WRAPPING:
            self.__cause__ = details[0]

    @property
    def error(self) -> BaseException | None:
        """The underlying error, for kinds that wrap one."""
        return self.details[0] if self.kind in self._WRAPPING else None


class ReplyableError(Exception):
    """A receiver failure that is reported back to the sender."""

    def __init__(self, error: PayloadError | ImplementationError) -> None:
        self.error = error
        if isinstance(error, PayloadError):
            message = str(error)
        elif isinstance(error, ImplementationError):
            message = f"Internal Server Error: {error}"
        else:
            raise TypeError(f"cannot reply with {type(error).__name__}")
        super().__init__(message)
        self.__cause__ = error


class ReceiveError(Exception):
    """The top-level error of the payjoin receiver."""

    def __init__(self, error: ReplyableError) -> None:
        self.error = error
        super().__init__(f"replyable error: {error}")
        self.__cause__ = error


@dataclass
class JsonReply:
    """An error reply in the JSON form ``{"errorCode": ..., "message": ...}``."""

    error_code: ErrorCode
    message: Any
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.message = str(self.message)
        self.extra = dict(self.extra)

    def with_extra(self, key: str, value: Any) -> JsonReply:
        """A copy of this reply with one more field in the JSON object."""
        return replace(self, extra={**self.extra, key: value})

    def to_json(self) -> dict[str, Any]:
        return {"errorCode": str(self.error_code), "message": self.message, **self.extra}

    @classmethod
    def from_error(
        cls, error: ReplyableError | PayloadError | ImplementationError
    ) -> JsonReply:
        """The reply to send for a receiver error."""
        if isinstance(error, ReplyableError):
            error = error.error
        if isinstance(error, ImplementationError):
            return cls(ErrorCode.UNAVAILABLE, "Receiver error")
        if not isinstance(error, PayloadError):
            raise TypeError(f"no JSON reply for {type(error).__name__}")
        if error.kind == PayloadError.FEE_TOO_HIGH:
            return cls(ErrorCode.NOT_ENOUGH_MONEY, error)
        inner = error.error
        if error.kind == PayloadError.SENDER_PARAMS and isinstance(inner, UnknownVersionError):
            supported = json.dumps(
                [version.value for version in inner.supported_versions], separators=(",", ":")
            )
            return cls(
                ErrorCode.VERSION_UNSUPPORTED, "This version of payjoin is not supported."
            ).with_extra("supported", supported)
        return cls(ErrorCode.ORIGINAL_PSBT_REJECTED, error)


class OutputSubstitutionError(ValueError):
    """Substituting the receiver's outputs failed; ``kind`` names why."""

    DECREASED_VALUE_WHEN_DISABLED = "decreased_value_when_disabled"
    SCRIPT_PUBKEY_CHANGED_WHEN_DISABLED = "script_pubkey_changed_when_disabled"
    NOT_ENOUGH_OUTPUTS = "not_enough_outputs"
    INVALID_DRAIN_SCRIPT = "invalid_drain_script"

    _MESSAGES = {
        DECREASED_VALUE_WHEN_DISABLED: "Decreasing the receiver output value is not allowed "
        "when output substitution is disabled",
        SCRIPT_PUBKEY_CHANGED_WHEN_DISABLED: "Changing the receiver output script pubkey is "
        "not allowed when output substitution is disabled",
        NOT_ENOUGH_OUTPUTS: "Current output substitution implementation doesn't support "
        "reducing the number of outputs",
        INVALID_DRAIN_SCRIPT: "The provided drain script could not be identified in the "
        "provided replacement outputs",
    }

    def __init__(self, kind: str) -> None:
        if kind not in self._MESSAGES:
            raise ValueError(f"unknown output substitution error kind: {kind!r}")
        self.kind = kind
        super().__init__(self._MESSAGES[kind])


class SelectionError(ValueError):
    """Coin selection failed; ``kind`` names why."""

    EMPTY = "empty"
    UNSUPPORTED_OUTPUT_LENGTH = "unsupported_output_length"
    NOT_FOUND = "not_found"

    _MESSAGES = {
        EMPTY: "No candidates available for selection",
        UNSUPPORTED_OUTPUT_LENGTH: "Current privacy selection implementation only supports "
        "2-output transactions",
        NOT_FOUND: "No selection candidates improve privacy",
    }

    def __init__(self, kind: str) -> None:
        if kind not in self._MESSAGES:
            raise ValueError(f"unknown selection error kind: {kind!r}")
        self.kind = kind
        super().__init__(self._MESSAGES[kind])


class InputContributionError(ValueError):
    """Contributing receiver inputs failed; ``kind`` names why."""

    VALUE_TOO_LOW = "value_too_low"

    _MESSAGES = {
        VALUE_TOO_LOW: "Total input value is not enough to cover additional output value",
    }

    def __init__(self, kind: str) -> None:
        if kind not in self._MESSAGES:
            raise ValueError(f"unknown input contribution error kind: {kind!r}")
        self.kind = kind
        super().__init__(self._MESSAGES[kind])