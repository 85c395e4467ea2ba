import datetime

import pytest

from janusleaf.analysis.service import MoodAnalysisQueue
from janusleaf.core.errors import NotFound, VersionConflict
from janusleaf.inspiration.db import get_quote, upsert_quote
from janusleaf.inspiration.service import QuoteRegenerator
from janusleaf.journals.db import set_mood_score
from janusleaf.journals.schemas import JournalEntryCreate
from janusleaf.journals.service import (
    create_entry,
    delete_entry,
    get_entry,
    list_entries,
    list_entries_in_range,
    update_body,
    update_metadata,
)

from conftest import pending_task


@pytest.fixture
def queue(session_factory, clock):
    return MoodAnalysisQueue(session_factory, clock=clock, debounce_delay=datetime.timedelta(seconds=5))


@pytest.fixture
def regenerator(session_factory, fake_ai, clock):
    service = QuoteRegenerator(session_factory, fake_ai, clock=clock)
    yield service
    service.shutdown()


def test_create_defaults_title_to_entry_date(db, user, queue, regenerator, clock):
    entry = create_entry(db, user.id, JournalEntryCreate(), queue, regenerator, now=clock())

    assert entry.title == clock().date().isoformat()
    assert entry.body == ""
    assert entry.version == 0
    assert pending_task(db, entry.id) is None


def test_create_queues_analysis_and_flags_quote(db, user, queue, regenerator, clock):
    upsert_quote(db, user.id, "Existing", ["a", "b", "c", "d"], clock())

    entry = create_entry(
        db, user.id, JournalEntryCreate(title="Walk", body="  A calm walk by the river.  "), queue, regenerator, now=clock()
    )

    assert entry.body == "A calm walk by the river."
    assert pending_task(db, entry.id).body_snapshot == "A calm walk by the river."
    db.expire_all()
    assert get_quote(db, user.id).needs_regeneration is True


def test_update_body_checks_version(db, user, make_entry, queue, clock):
    entry = make_entry(user.id)

    updated = update_body(db, user.id, entry.id, "Second version of the text", 0, queue, now=clock())
    assert updated.version == 1

    with pytest.raises(VersionConflict) as exc:
        update_body(db, user.id, entry.id, "Lost update attempt", 0, queue, now=clock())
    assert exc.value.expected == 0
    assert exc.value.current == 1
    assert get_entry(db, user.id, entry.id).body == "Second version of the text"


def test_update_body_without_expected_version_always_bumps(db, user, make_entry, queue, clock):
    entry = make_entry(user.id)
    update_body(db, user.id, entry.id, "one more edit here", None, queue, now=clock())
    updated = update_body(db, user.id, entry.id, "and another edit here", None, queue, now=clock())
    assert updated.version == 2


def test_update_body_resets_mood_and_requeues(db, user, make_entry, queue, clock):
    entry = make_entry(user.id)
    set_mood_score(db, entry.id, 8)
    db.commit()

    updated = update_body(db, user.id, entry.id, "A rather different mood today", 0, queue, now=clock())

    assert updated.mood_score is None
    assert pending_task(db, entry.id).body_snapshot == "A rather different mood today"


def test_update_metadata_bumps_version_without_queueing(db, user, make_entry, queue, clock):
    entry = make_entry(user.id)

    updated = update_metadata(db, user.id, entry.id, "New title", 0, now=clock())

    assert updated.title == "New title"
    assert updated.version == 1
    assert pending_task(db, entry.id) is None
    with pytest.raises(VersionConflict):
        update_metadata(db, user.id, entry.id, "Stale title", 0, now=clock())


def test_missing_entry_raises_not_found(db, user, make_user, make_entry, queue):
    other = make_user()
    entry = make_entry(other.id)

    with pytest.raises(NotFound):
        get_entry(db, user.id, entry.id)
    with pytest.raises(NotFound):
        update_body(db, user.id, entry.id, "not my entry at all", None, queue)
    with pytest.raises(NotFound):
        delete_entry(db, user.id, entry.id, queue)


def test_delete_cancels_pending_analysis(db, user, make_entry, queue, clock):
    entry = make_entry(user.id)
    queue.queue_mood_analysis(entry.id, "some pending body text")

    delete_entry(db, user.id, entry.id, queue)

    assert pending_task(db, entry.id) is None
    with pytest.raises(NotFound):
        get_entry(db, user.id, entry.id)


def test_list_entries_newest_first_with_preview(db, user, make_entry):
    make_entry(user.id, body="old", entry_date=datetime.date(2025, 1, 1))
    make_entry(user.id, body="x" * 200, entry_date=datetime.date(2025, 2, 1))

    summaries = list_entries(db, user.id)

    assert [s.entry_date for s in summaries] == [datetime.date(2025, 2, 1), datetime.date(2025, 1, 1)]
    assert summaries[0].body_preview == "x" * 150 + "..."
    assert summaries[1].body_preview == "old"


def test_list_entries_in_range_is_inclusive(db, user, make_user, make_entry):
    for day in (1, 5, 10, 15):
        make_entry(user.id, body=f"day {day}", entry_date=datetime.date(2025, 1, day))
    make_entry(make_user().id, body="someone else", entry_date=datetime.date(2025, 1, 5))

    summaries = list_entries_in_range(db, user.id, datetime.date(2025, 1, 5), datetime.date(2025, 1, 10))

    assert [s.body_preview for s in summaries] == ["day 10", "day 5"]
