"""Sync service state machine."""

from __future__ import annotations

from enum import Enum, auto


class SyncState(Enum):
    """
    Sync service states representing the current synchronization phase.

    State Machine Diagram
    ---------------------
    ::

        IDLE --> SYNCING --> SYNCED
          ^         |           |
          +---------+-----------+

    Transitions
    -----------
    IDLE -> SYNCING
        - Triggered when: the loop starts its first pass

    SYNCING -> SYNCED
        - Triggered when: a gap scan up to the head finds nothing missing

    SYNCED -> SYNCING
        - Triggered when: the head moved on or an earlier failure left a gap

    Any -> IDLE
        - Triggered when: shutdown requested
    """

    IDLE = auto()
    """Not running. No requests are sent."""

    SYNCING = auto()
    """Filling gaps between the low watermark and the head."""

    SYNCED = auto()
    """Storage holds every block up to the last known head."""

    def can_transition_to(self, target: SyncState) -> bool:
        """
        Check if transition to target state is valid.

        Args:
            target: The proposed target state.

        Returns:
            True if the transition is allowed by the state machine rules.
        """
        return target in _VALID_TRANSITIONS.get(self, set())

    @property
    def is_syncing(self) -> bool:
        """Check if this state represents active gap filling."""
        return self == SyncState.SYNCING


_VALID_TRANSITIONS: dict[SyncState, set[SyncState]] = {
    SyncState.IDLE: {SyncState.SYNCING},
    SyncState.SYNCING: {SyncState.SYNCED, SyncState.IDLE},
    SyncState.SYNCED: {SyncState.SYNCING, SyncState.IDLE},
}
"""Valid state transitions for the sync state machine."""
