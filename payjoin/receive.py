"""Receiver-side helpers: contributed input pairs and payload parsing."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .optional_parameters import Params, ParamsError, Version
from .psbt import (
    AddressTypeError,
    InconsistentPsbt,
    InputPairView,
    Psbt,
    PsbtInput,
    PsbtInputError,
)
from .receive_errors import PayloadError
from .transaction import AddressType, TxIn, TxOut

__all__ = ["InputPair", "parse_payload"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InputPair:
    """A receiver input and its PSBT map, validated on construction.

    Raises PsbtInputError when the UTXO information is missing or
    inconsistent, the address type cannot be determined, or a P2SH input
    has no redeem script.
    """

    txin: TxIn
    psbtin: PsbtInput

    def __post_init__(self) -> None:
        view = InputPairView(self.txin, self.psbtin)
        view.validate_utxo()
        try:
            kind = view.address_type()
        except AddressTypeError as err:
            raise PsbtInputError(PsbtInputError.ADDRESS_TYPE) from err
        if kind is AddressType.P2SH and self.psbtin.redeem_script is None:
            raise PsbtInputError(PsbtInputError.NO_REDEEM_SCRIPT)

    def previous_txout(self) -> TxOut:
        """The output this input spends."""
        return InputPairView(self.txin, self.psbtin).previous_txout()


def parse_payload(
    base64_text: str, query: str, supported_versions: Iterable[Version]
) -> tuple[Psbt, Params]:
    """Parse and sanity-check the original PSBT and the sender's query parameters."""
    try:
        unchecked = Psbt.from_base64(base64_text)
    except ValueError as err:
        raise PayloadError(PayloadError.PARSE_PSBT, err) from err
    try:
        psbt = unchecked.validate()
    except InconsistentPsbt as err:
        raise PayloadError(PayloadError.INCONSISTENT_PSBT, err) from err
    logger.debug("Received original psbt: %r", psbt)

    try:
        params = Params.from_query(query, supported_versions)
    except ParamsError as err:
        raise PayloadError(PayloadError.SENDER_PARAMS, err) from err
    logger.debug("Received request with params: %r", params)
    return psbt, params