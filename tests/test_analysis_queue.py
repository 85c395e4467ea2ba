import datetime
import threading

import pytest

from janusleaf.analysis.db import (
    claim_ready,
    count_pending,
    delete_for_entry,
    enqueue_or_reset,
    mark_failed,
    mark_processed,
)
from janusleaf.analysis.models import MoodAnalysisTask
from janusleaf.analysis.schemas import BackoffPolicy
from janusleaf.analysis.service import MoodAnalysisQueue
from janusleaf.core.clock import as_aware

from conftest import pending_task

DEBOUNCE = datetime.timedelta(seconds=5)
LEASE = datetime.timedelta(seconds=60)


def task_count(db, entry_id):
    return db.query(MoodAnalysisTask).filter(MoodAnalysisTask.journal_entry_id == entry_id).count()


class TestEnqueueOrReset:
    def test_new_task_is_scheduled_after_debounce(self, db, user, make_entry, clock):
        entry = make_entry(user.id)
        enqueue_or_reset(db, entry.id, "first draft", DEBOUNCE, clock())

        task = pending_task(db, entry.id)
        assert task.body_snapshot == "first draft"
        assert task.retry_count == 0
        assert as_aware(task.scheduled_for) == clock() + DEBOUNCE

    def test_repeated_edits_keep_one_task_with_latest_content(self, db, user, make_entry, clock):
        entry = make_entry(user.id)
        for i in range(5):
            enqueue_or_reset(db, entry.id, f"draft {i}", DEBOUNCE, clock())
            clock.advance(seconds=1)

        db.expire_all()
        assert task_count(db, entry.id) == 1
        task = pending_task(db, entry.id)
        assert task.body_snapshot == "draft 4"
        assert task.revision == 4
        # Last edit happened at T0 + 4s
        assert as_aware(task.scheduled_for) == clock() - datetime.timedelta(seconds=1) + DEBOUNCE

    def test_reset_preserves_retry_count(self, db, user, make_entry, clock):
        entry = make_entry(user.id)
        enqueue_or_reset(db, entry.id, "draft", DEBOUNCE, clock())
        mark_failed(db, entry.id, rate_limited=False, now=clock(), policy=BackoffPolicy())
        mark_failed(db, entry.id, rate_limited=False, now=clock(), policy=BackoffPolicy())

        enqueue_or_reset(db, entry.id, "edited", DEBOUNCE, clock())
        db.expire_all()
        task = pending_task(db, entry.id)
        assert task.retry_count == 2
        assert task.body_snapshot == "edited"

    def test_short_body_is_not_queued_and_drops_existing_task(self, session_factory, user, make_entry, clock):
        queue = MoodAnalysisQueue(session_factory, clock=clock, debounce_delay=DEBOUNCE)
        entry = make_entry(user.id)

        assert queue.queue_mood_analysis(entry.id, "a long enough body") is True
        assert queue.pending_count(user.id) == 1

        assert queue.queue_mood_analysis(entry.id, "  short  ") is False
        assert queue.pending_count(user.id) == 0


    def test_callers_session_is_left_uncommitted(self, session_factory, db, user, make_entry, clock):
        queue = MoodAnalysisQueue(session_factory, clock=clock, debounce_delay=DEBOUNCE)
        entry = make_entry(user.id)

        assert queue.queue_mood_analysis(entry.id, "queued inside a transaction", db=db) is True
        db.rollback()

        assert pending_task(db, entry.id) is None

    def test_cancel_in_callers_session_is_left_uncommitted(self, session_factory, db, user, make_entry, clock):
        queue = MoodAnalysisQueue(session_factory, clock=clock, debounce_delay=DEBOUNCE)
        entry = make_entry(user.id)
        queue.queue_mood_analysis(entry.id, "committed on its own")

        queue.cancel_pending_analysis(entry.id, db=db)
        db.rollback()

        assert pending_task(db, entry.id) is not None


class TestClaimReady:
    def test_only_due_tasks_are_claimed_oldest_first(self, db, user, make_entry, clock):
        first = make_entry(user.id)
        second = make_entry(user.id)
        later = make_entry(user.id)
        enqueue_or_reset(db, first.id, "first entry", DEBOUNCE, clock())
        clock.advance(seconds=1)
        enqueue_or_reset(db, second.id, "second entry", DEBOUNCE, clock())
        clock.advance(seconds=30)
        enqueue_or_reset(db, later.id, "not due yet", DEBOUNCE, clock())

        claimed = claim_ready(db, clock(), limit=10, lease=LEASE)
        assert [t.journal_entry_id for t in claimed] == [first.id, second.id]

    def test_nothing_is_claimed_inside_the_debounce_window(self, db, user, make_entry, clock):
        entry = make_entry(user.id)
        enqueue_or_reset(db, entry.id, "draft", DEBOUNCE, clock())

        assert claim_ready(db, clock() + datetime.timedelta(seconds=4), limit=10, lease=LEASE) == []
        assert len(claim_ready(db, clock() + DEBOUNCE, limit=10, lease=LEASE)) == 1

    def test_limit_bounds_the_batch(self, db, user, make_entry, clock):
        for _ in range(5):
            entry = make_entry(user.id)
            enqueue_or_reset(db, entry.id, "some content", DEBOUNCE, clock())

        claimed = claim_ready(db, clock() + DEBOUNCE, limit=3, lease=LEASE)
        assert len(claimed) == 3

    def test_claimed_task_is_hidden_until_lease_expires(self, db, user, make_entry, clock):
        entry = make_entry(user.id)
        enqueue_or_reset(db, entry.id, "draft", DEBOUNCE, clock())
        now = clock() + DEBOUNCE

        assert len(claim_ready(db, now, limit=10, lease=LEASE)) == 1
        assert claim_ready(db, now, limit=10, lease=LEASE) == []
        assert len(claim_ready(db, now + LEASE, limit=10, lease=LEASE)) == 1

    def test_concurrent_claims_never_share_an_entry(self, session_factory, db, user, make_entry, clock):
        entry_ids = []
        for _ in range(30):
            entry = make_entry(user.id)
            enqueue_or_reset(db, entry.id, "content to analyze", DEBOUNCE, clock())
            entry_ids.append(entry.id)
        now = clock() + DEBOUNCE

        results = []
        barrier = threading.Barrier(4)

        def poll():
            barrier.wait()
            with session_factory() as session:
                results.append(claim_ready(session, now, limit=30, lease=LEASE))

        threads = [threading.Thread(target=poll) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        claimed_ids = [task.journal_entry_id for batch in results for task in batch]
        assert len(claimed_ids) == len(set(claimed_ids))
        assert set(claimed_ids) == set(entry_ids)


class TestCompletion:
    def test_mark_processed_deletes_task(self, db, user, make_entry, clock):
        entry = make_entry(user.id)
        enqueue_or_reset(db, entry.id, "draft", DEBOUNCE, clock())

        assert mark_processed(db, entry.id) is True
        assert pending_task(db, entry.id) is None
        assert mark_processed(db, entry.id) is False

    def test_mark_processed_with_stale_revision_keeps_newer_task(self, db, user, make_entry, clock):
        entry = make_entry(user.id)
        enqueue_or_reset(db, entry.id, "draft", DEBOUNCE, clock())
        claimed = claim_ready(db, clock() + DEBOUNCE, limit=1, lease=LEASE)[0]

        enqueue_or_reset(db, entry.id, "edited meanwhile", DEBOUNCE, clock())
        assert mark_processed(db, entry.id, revision=claimed.revision) is False
        db.expire_all()
        assert pending_task(db, entry.id).body_snapshot == "edited meanwhile"

    def test_delete_for_entry(self, db, user, make_entry, clock):
        entry = make_entry(user.id)
        enqueue_or_reset(db, entry.id, "draft", DEBOUNCE, clock())

        assert delete_for_entry(db, entry.id) == 1
        assert delete_for_entry(db, entry.id) == 0
        assert count_pending(db) == 0

    def test_deleting_entry_cascades_to_task(self, db, user, make_entry, clock):
        entry = make_entry(user.id)
        enqueue_or_reset(db, entry.id, "draft", DEBOUNCE, clock())

        db.delete(entry)
        db.commit()
        assert count_pending(db) == 0


class TestMarkFailed:
    def test_backoff_grows_and_is_capped(self, db, user, make_entry, clock):
        policy = BackoffPolicy(retry_base=2, rate_limit_base=10, max_delay=60, max_retries=10)
        entry = make_entry(user.id)
        enqueue_or_reset(db, entry.id, "draft", DEBOUNCE, clock())

        delays = []
        for _ in range(7):
            outcome = mark_failed(db, entry.id, rate_limited=False, now=clock(), policy=policy)
            delays.append((outcome.scheduled_for - clock()).total_seconds())

        assert delays == sorted(delays)
        assert delays[:4] == [4, 8, 16, 32]
        assert max(delays) == 60

    def test_rate_limited_failures_wait_longer(self, db, user, make_entry, clock):
        policy = BackoffPolicy()
        plain = make_entry(user.id)
        limited = make_entry(user.id)
        enqueue_or_reset(db, plain.id, "draft", DEBOUNCE, clock())
        enqueue_or_reset(db, limited.id, "draft", DEBOUNCE, clock())

        plain_outcome = mark_failed(db, plain.id, rate_limited=False, now=clock(), policy=policy)
        limited_outcome = mark_failed(db, limited.id, rate_limited=True, now=clock(), policy=policy)
        assert limited_outcome.scheduled_for > plain_outcome.scheduled_for

    def test_task_is_abandoned_after_max_retries(self, db, user, make_entry, clock):
        policy = BackoffPolicy(max_retries=3)
        entry = make_entry(user.id)
        enqueue_or_reset(db, entry.id, "draft", DEBOUNCE, clock())

        outcomes = [mark_failed(db, entry.id, rate_limited=False, now=clock(), policy=policy) for _ in range(4)]

        assert [o.abandoned for o in outcomes] == [False, False, False, True]
        assert outcomes[-1].retry_count == 4
        assert pending_task(db, entry.id) is None

    def test_failure_after_edit_is_ignored(self, db, user, make_entry, clock):
        entry = make_entry(user.id)
        enqueue_or_reset(db, entry.id, "draft", DEBOUNCE, clock())
        claimed = claim_ready(db, clock() + DEBOUNCE, limit=1, lease=LEASE)[0]
        enqueue_or_reset(db, entry.id, "edited", DEBOUNCE, clock())

        outcome = mark_failed(
            db, entry.id, rate_limited=False, now=clock(), policy=BackoffPolicy(), revision=claimed.revision
        )
        assert outcome is None
        db.expire_all()
        assert pending_task(db, entry.id).retry_count == 0

    def test_missing_task(self, db, user, make_entry, clock):
        entry = make_entry(user.id)
        assert mark_failed(db, entry.id, rate_limited=False, now=clock(), policy=BackoffPolicy()) is None


@pytest.mark.parametrize(
    "retry_count,rate_limited,expected",
    [(0, False, 2), (1, False, 4), (3, True, 80), (10, True, 600)],
)
def test_backoff_policy_delay(retry_count, rate_limited, expected):
    delay = BackoffPolicy().delay_for(retry_count, rate_limited)
    assert delay == datetime.timedelta(seconds=expected)
