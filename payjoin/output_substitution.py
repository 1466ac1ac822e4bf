"""Whether a receiver may substitute the sender's original outputs."""

from __future__ import annotations

import enum

__all__ = ["OutputSubstitution"]


class OutputSubstitution(enum.Enum):
    """Whether the receiver is allowed to substitute original outputs or not."""

    ENABLED = "enabled"
    DISABLED = "disabled"

    def combine(self, other: OutputSubstitution) -> OutputSubstitution:
        """Enabled only when both flags are enabled."""
        if self is OutputSubstitution.ENABLED and other is OutputSubstitution.ENABLED:
            return OutputSubstitution.ENABLED
        return OutputSubstitution.DISABLED