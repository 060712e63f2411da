"""Finalization guard.

A finalized timeline is frozen: every mutating operation is refused, reads
still succeed. Pure domain logic with no external dependencies.
"""

from dataclasses import dataclass

from eyedoo.schemas.timeline import TimelineConfig


@dataclass(frozen=True)
class GuardResult:
    """Result of a guard check."""

    allowed: bool
    reason: str = ""


def ensure_not_finalized(config: TimelineConfig) -> GuardResult:
    """Refuse mutation iff the timeline is finalized.

    Called by every mutating engine operation before validation or
    persistence. Never called on read paths or by initialize.
    """
    if config.finalized:
        return GuardResult(False, "Timeline is finalized and can no longer be changed")
    return GuardResult(True)
