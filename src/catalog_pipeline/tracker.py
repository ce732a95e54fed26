"""Dedup/Quota Tracker

Run-wide state shared by every page visit of one crawl: the product ids
already saved and how many records have been accepted so far.

Page visits may run concurrently. Each batch decision (which records are
new, where the quota cuts off) and the matching state update happen
together under one lock, so concurrent batches can neither save the same
id twice nor overshoot the target.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import FrozenSet, List, Set, Tuple

from .models import NormalizedProduct

logger = logging.getLogger(__name__)


@dataclass
class PipelineState:
    """Created at run start, mutated only by accept_batch, discarded at run end."""
    seen_ids: Set[str] = field(default_factory=set)
    saved_count: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


def remaining_quota(state: PipelineState, target_count: int) -> int:
    with state._lock:
        return max(0, target_count - state.saved_count)


def quota_reached(state: PipelineState, target_count: int) -> bool:
    return remaining_quota(state, target_count) == 0


def quota_snapshot(state: PipelineState, target_count: int) -> Tuple[int, FrozenSet[str]]:
    """Remaining quota and saved ids, read together under the lock."""
    with state._lock:
        return max(0, target_count - state.saved_count), frozenset(state.seen_ids)


def accept_batch(
    products: List[NormalizedProduct],
    state: PipelineState,
    target_count: int,
) -> Tuple[List[NormalizedProduct], int]:
    """
    Select the records from ``products`` that should be persisted.

    Iterates in discovery order, skipping ids already seen (in earlier
    batches or earlier in this one) and stopping once saved_count reaches
    target_count.

    Returns:
        (accepted records in input order, saved_count right after this batch)
    """
    with state._lock:
        accepted: List[NormalizedProduct] = []
        batch_ids: Set[str] = set()
        duplicate_count = 0
        room = max(0, target_count - state.saved_count)

        for product in products:
            if len(accepted) >= room:
                break
            if product.product_id in state.seen_ids or product.product_id in batch_ids:
                duplicate_count += 1
                continue
            batch_ids.add(product.product_id)
            accepted.append(product)

        # Decision complete; apply it as one unit
        state.seen_ids.update(batch_ids)
        state.saved_count += len(accepted)
        saved_count = state.saved_count

    logger.debug(
        "Tracker accepted %d/%d (duplicates=%d, total=%d/%d)",
        len(accepted),
        len(products),
        duplicate_count,
        saved_count,
        target_count,
    )
    return accepted, saved_count
