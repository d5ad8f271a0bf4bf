import random
import threading

import pytest

from zoya.cards import Card
from zoya.session import LastCardError, NothingDueError, ReviewSession, SessionNotActiveError, SessionState
from zoya.srs import DAY_IN_MS, Grade, InvalidGradeError
from zoya.store import CardNotFoundError

NOW = 1_709_294_400_000


@pytest.fixture()
def session(store):
    return ReviewSession(store, clock=lambda: NOW)


def _seed(store, *ids):
    store.add_many([Card.create(i, term=f"Term {i}", now=1) for i in ids])


def test_start_with_nothing_due_stays_idle(store, session):
    store.add(Card.create("f", term="Future"))
    future = store.get("f")
    future.next_review_date = NOW + DAY_IN_MS
    store.save(future)
    with pytest.raises(NothingDueError):
        session.start()
    assert session.state is SessionState.IDLE
    assert session.current is None


def test_start_snapshots_due_cards(store, session):
    _seed(store, "a", "b")
    queue = session.start()
    assert [c.id for c in queue] == ["a", "b"]
    assert session.state is SessionState.REVIEWING
    assert session.current.id == "a"
    # cards added after the start are not picked up
    _seed(store, "c")
    assert len(session.queue) == 2


def test_successful_grade_removes_and_persists(store, session):
    _seed(store, "a", "b")
    session.start()
    outcome = session.grade(Grade.GOOD)
    assert outcome.requeued is False
    assert outcome.completed is False
    assert outcome.remaining == 1
    assert session.current.id == "b"
    saved = store.get("a")
    assert saved.interval == 1
    assert saved.next_review_date == NOW + DAY_IN_MS
    assert store.get_stats(now=NOW)[1] == 1


def test_lapse_keeps_card_and_advances(store, session):
    _seed(store, "a", "b")
    session.start()
    outcome = session.grade(Grade.AGAIN)
    assert outcome.requeued is True
    assert outcome.remaining == 2
    assert session.current.id == "b"
    assert store.get("a").repetition == 0
    # the requeued copy carries the updated schedule
    assert session.queue[0].interval == 1


def test_lapse_on_last_position_wraps(store, session):
    _seed(store, "a", "b")
    session.start()
    session.next()
    session.grade(Grade.AGAIN)
    assert session.position == 0
    assert session.current.id == "a"


def test_single_card_lapse_stays_on_same_card(store, session):
    _seed(store, "a")
    session.start()
    session.grade(Grade.AGAIN)
    assert session.current.id == "a"
    assert session.active


def test_grading_last_card_completes_and_returns_idle(store, session):
    _seed(store, "a")
    session.start()
    outcome = session.grade(Grade.EASY)
    assert outcome.completed is True
    assert outcome.remaining == 0
    assert session.state is SessionState.IDLE
    assert session.queue == []


def test_grade_after_remove_at_end_wraps_position(store, session):
    _seed(store, "a", "b", "c")
    session.start()
    session.previous()
    assert session.current.id == "c"
    session.grade(Grade.HARD)
    assert session.position == 0
    assert session.current.id == "a"


def test_grade_requires_active_session(session):
    with pytest.raises(SessionNotActiveError):
        session.grade(Grade.GOOD)


def test_invalid_grade_leaves_state_untouched(store, session):
    _seed(store, "a")
    session.start()
    with pytest.raises(InvalidGradeError):
        session.grade(7)
    assert session.current.id == "a"
    assert store.get("a").next_review_date == 0


def test_grading_deleted_card_drops_it(store, session):
    _seed(store, "a", "b")
    session.start()
    store.delete("a")
    with pytest.raises(CardNotFoundError):
        session.grade(Grade.GOOD)
    assert [c.id for c in session.queue] == ["b"]


def test_remove_before_current_keeps_current(store, session):
    _seed(store, "a", "b", "c")
    session.start()
    session.next()
    assert session.remove("a") is True
    assert session.current.id == "b"
    assert session.remove("zzz") is False


def test_remove_last_card_ends_session(store, session):
    _seed(store, "a")
    session.start()
    assert session.remove("a") is True
    assert session.state is SessionState.IDLE


def test_navigation_wraps(store, session):
    _seed(store, "a", "b", "c")
    session.start()
    assert session.previous().id == "c"
    assert session.next().id == "a"
    assert session.next().id == "b"


def test_shuffle_resets_position(store, session):
    _seed(store, *[str(i) for i in range(6)])
    session.start()
    session.next()
    shuffled = session.shuffle(random.Random(3))
    assert sorted(c.id for c in shuffled) == [str(i) for i in range(6)]
    assert session.position == 0


def test_exit_keeps_saved_progress(store, session):
    _seed(store, "a", "b")
    session.start()
    session.grade(Grade.GOOD)
    session.exit()
    assert session.state is SessionState.IDLE
    assert store.get("a").interval == 1
    assert store.get("b").next_review_date == 0
    with pytest.raises(SessionNotActiveError):
        session.next()


def test_delete_card_refuses_last_card_when_idle(store, session):
    _seed(store, "a")
    with pytest.raises(LastCardError):
        session.delete_card("a")
    assert store.count() == 1
    with pytest.raises(CardNotFoundError):
        session.delete_card("missing")


def test_delete_card_during_session_updates_queue(store, session):
    _seed(store, "a", "b")
    session.start()
    session.delete_card("a")
    assert store.get("a") is None
    assert [c.id for c in session.queue] == ["b"]
    # the last card may go while reviewing; the session then ends
    session.delete_card("b")
    assert store.count() == 0
    assert session.state is SessionState.IDLE


def test_delete_card_waits_for_the_session_lock(store, session):
    _seed(store, "a", "b")
    finished = threading.Event()

    def _delete():
        session.delete_card("a")
        finished.set()

    with session._lock:
        worker = threading.Thread(target=_delete)
        worker.start()
        assert not finished.wait(0.2)
        assert store.get("a") is not None
    worker.join(timeout=5)
    assert finished.is_set()
    assert store.get("a") is None
