"""
Finality tracking for stored blocks.

Blocks close to the chain head can be reorganized away. Blocks further back
are settled under the external chain's security model. The tracker turns the
current head into a boundary and marks everything at or below it final.

Policy
------
With head H and confirmation window W, every stored block with number
<= H - W becomes final. The update is one bulk statement, not one round
trip per block, and it is idempotent: running it twice, or with a lower
head, finalizes nothing new. Finality never goes back to pending.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ledger_sync import metrics
from ledger_sync.containers import MAX_QUANTITY
from ledger_sync.storage import BlockRepository
from ledger_sync.types import InvalidRangeError

from .config import FINALITY_WINDOW

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FinalityTracker:
    """Marks stored blocks final once they leave the confirmation window."""

    repository: BlockRepository
    """Storage holding the blocks."""

    window: int = FINALITY_WINDOW
    """Confirmation window W."""

    last_head: int | None = field(default=None)
    """Highest head seen so far."""

    def __post_init__(self) -> None:
        """Validate the window."""
        if self.window < 0:
            raise InvalidRangeError(f"finality window must be non-negative, got {self.window}")

    def final_boundary(self, head: int) -> int:
        """Highest block number that is final for the given head."""
        return head - self.window

    def update(self, head: int) -> int:
        """
        Finalize every stored block at or below `head - window`.

        Args:
            head: Current chain head number.

        Returns:
            Number of blocks that changed from pending to final.

        Raises:
            InvalidRangeError: If the head is negative or past MAX_QUANTITY.
        """
        if head < 0:
            raise InvalidRangeError(f"chain head must be non-negative, got {head}", end=head)
        if head > MAX_QUANTITY:
            raise InvalidRangeError(f"chain head {head} exceeds {MAX_QUANTITY}", end=head)

        changed = self.repository.set_final_below(head, self.window)
        if self.last_head is None or head > self.last_head:
            self.last_head = head

        if changed:
            metrics.blocks_finalized.inc(changed)
            logger.debug(
                "Finalized %d blocks at or below %d (head=%d)",
                changed,
                self.final_boundary(head),
                head,
            )
        return changed
