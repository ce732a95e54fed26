import threading

from catalog_pipeline.models import NormalizedProduct
from catalog_pipeline.tracker import (
    PipelineState,
    accept_batch,
    quota_reached,
    quota_snapshot,
    remaining_quota,
)


def make_products(*ids):
    return [NormalizedProduct(product_id=pid, name=f"Product {pid}", currency="GBP") for pid in ids]


def test_quota_caps_batch_in_discovery_order():
    state = PipelineState()
    batch = make_products("10001", "10002", "10003", "10004", "10005")

    accepted, saved_count = accept_batch(batch, state, target_count=2)

    assert [p.product_id for p in accepted] == ["10001", "10002"]
    assert state.seen_ids == {"10001", "10002"}
    assert state.saved_count == saved_count == 2
    assert quota_reached(state, 2)


def test_ids_seen_in_earlier_batches_are_skipped():
    state = PipelineState()
    accept_batch(make_products("10001", "10002"), state, target_count=10)

    accepted, saved_count = accept_batch(make_products("10002", "10003"), state, target_count=10)

    assert [p.product_id for p in accepted] == ["10003"]
    assert state.saved_count == saved_count == 3
    assert remaining_quota(state, 10) == 7


def test_duplicates_inside_one_batch_are_accepted_once():
    state = PipelineState()

    accepted, _ = accept_batch(make_products("10001", "10001", "10002"), state, target_count=10)

    assert [p.product_id for p in accepted] == ["10001", "10002"]
    assert state.saved_count == 2


def test_batch_after_quota_reached_accepts_nothing():
    state = PipelineState()
    accept_batch(make_products("10001"), state, target_count=1)

    assert accept_batch(make_products("10002"), state, target_count=1) == ([], 1)
    assert state.seen_ids == {"10001"}
    assert remaining_quota(state, 1) == 0


def test_empty_batch_leaves_state_untouched():
    state = PipelineState()

    assert accept_batch([], state, target_count=5) == ([], 0)
    assert state == PipelineState()


def test_quota_snapshot_reads_remaining_and_saved_ids_together():
    state = PipelineState()
    accept_batch(make_products("10001", "10002"), state, target_count=5)

    remaining, seen_ids = quota_snapshot(state, 5)

    assert remaining == 3
    assert seen_ids == frozenset({"10001", "10002"})
    # later batches do not change an earlier snapshot
    accept_batch(make_products("10003"), state, target_count=5)
    assert seen_ids == frozenset({"10001", "10002"})


def test_concurrent_batches_never_overshoot_or_duplicate():
    """Overlapping batches from many threads: no id saved twice, count capped."""
    state = PipelineState()
    target_count = 25
    accepted_ids = []
    reported = []
    results_lock = threading.Lock()
    barrier = threading.Barrier(8)

    def worker(offset):
        batch = make_products(*[str(10000 + offset + i) for i in range(20)])
        barrier.wait()
        accepted, saved_count = accept_batch(batch, state, target_count)
        with results_lock:
            accepted_ids.extend(p.product_id for p in accepted)
            reported.append((saved_count, len(accepted)))

    threads = [threading.Thread(target=worker, args=(n * 5,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(accepted_ids) == target_count
    assert len(set(accepted_ids)) == target_count
    assert state.saved_count == target_count
    assert set(accepted_ids) == state.seen_ids

    # Each batch reports the total as of its own update, so replaying the
    # reports in count order rebuilds the running total exactly.
    running = 0
    for saved_count, accepted_count in sorted(reported, key=lambda r: (r[0], -r[1])):
        running += accepted_count
        assert saved_count == running
