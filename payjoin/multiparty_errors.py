"""Errors raised while assembling a multiparty payjoin."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .psbt import Psbt

__all__ = [
    "IdenticalProposalError",
    "IdenticalPsbts",
    "IdenticalContexts",
    "MultipartyError",
    "NotEnoughProposals",
    "IdenticalProposals",
    "ProposalVersionNotSupported",
    "OptimisticMergeNotSupported",
    "ExtractTxFailed",
    "InputMissingWitnessOrScriptSig",
    "CombinePsbtsFailed",
]


class IdenticalProposalError:
    """Why two proposals count as the same participant."""


@dataclass(frozen=True)
class IdenticalPsbts(IdenticalProposalError):
    current: Psbt
    incoming: Psbt

    def __str__(self) -> str:
        return (
            "Two sender psbts are identical\n"
            f" left psbt: {self.current.to_base64()}\n"
            f" right psbt: {self.incoming.to_base64()}"
        )


@dataclass(frozen=True)
class IdenticalContexts(IdenticalProposalError):
    current: Any
    incoming: Any

    def __str__(self) -> str:
        return (
            "Two sender contexts are identical\n"
            f" left id: {self.current}\n"
            f" right id: {self.incoming}"
        )


class MultipartyError(Exception):
    """A multiparty proposal could not be built or combined."""


class NotEnoughProposals(MultipartyError):
    def __init__(self) -> None:
        super().__init__("Not enough proposals")


class IdenticalProposals(MultipartyError):
    def __init__(self, error: IdenticalProposalError) -> None:
        self.error = error
        super().__init__(f"More than one identical participant: {error}")


class ProposalVersionNotSupported(MultipartyError):
    def __init__(self, version: Any) -> None:
        self.version = version
        super().__init__(f"Proposal version not supported: {version}")


class OptimisticMergeNotSupported(MultipartyError):
    def __init__(self) -> None:
        super().__init__("Optimistic merge not supported")


class ExtractTxFailed(MultipartyError):
    def __init__(self, error: BaseException) -> None:
        self.error = error
        super().__init__(f"Bitcoin extract tx error: {error!r}")
        self.__cause__ = error


class InputMissingWitnessOrScriptSig(MultipartyError):
    def __init__(self) -> None:
        super().__init__("Input in Finalized Proposal is missing witness or script_sig")


class CombinePsbtsFailed(MultipartyError):
    def __init__(self, error: BaseException) -> None:
        self.error = error
        super().__init__(f"Failed to combine psbts: {error!r}")
        self.__cause__ = error