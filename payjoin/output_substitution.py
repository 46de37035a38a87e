"""Whether the receiver may substitute the original outputs."""

from __future__ import annotations

from enum import Enum

__all__ = ["OutputSubstitution"]


class OutputSubstitution(Enum):
    """Whether the receiver is allowed to substitute original outputs or not."""

    ENABLED = "enabled"
    DISABLED = "disabled"

    def combine(self, other: OutputSubstitution) -> OutputSubstitution:
        """Enabled only if both flags are enabled."""
        if self is OutputSubstitution.ENABLED and other is OutputSubstitution.ENABLED:
            return OutputSubstitution.ENABLED
        return OutputSubstitution.DISABLED