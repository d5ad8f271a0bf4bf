import pytest

from zoya.srs import (
    DAY_IN_MS,
    DEFAULT_EASE_FACTOR,
    MIN_EASE_FACTOR,
    Grade,
    InvalidGradeError,
    ReviewItem,
    calculate_next_review,
    get_due_cards,
    is_due,
    next_ease_factor,
)

NOW = 1_700_000_000_000


def _item(**kw) -> ReviewItem:
    base = dict(id="x", interval=0, repetition=0, ease_factor=2.5, next_review_date=0, created_at=0)
    base.update(kw)
    return ReviewItem(**base)


def test_new_item_defaults():
    item = ReviewItem.create(now=NOW)
    assert item.interval == 0
    assert item.repetition == 0
    assert item.ease_factor == DEFAULT_EASE_FACTOR
    assert item.next_review_date == 0
    assert item.created_at == NOW
    assert isinstance(item.id, str) and item.id


def test_first_good_review_schedules_one_day():
    out = calculate_next_review(_item(), Grade.GOOD, now=NOW)
    assert out.interval == 1
    assert out.repetition == 1
    assert out.ease_factor == pytest.approx(2.5)
    assert out.next_review_date == NOW + DAY_IN_MS


def test_second_success_schedules_six_days():
    out = calculate_next_review(_item(interval=1, repetition=1), Grade.GOOD, now=NOW)
    assert out.interval == 6
    assert out.repetition == 2
    assert out.next_review_date == NOW + 6 * DAY_IN_MS


def test_third_success_multiplies_by_ease():
    out = calculate_next_review(_item(interval=6, repetition=2, ease_factor=2.5), Grade.GOOD, now=NOW)
    assert out.interval == 15
    assert out.repetition == 3


def test_interval_rounds_half_away_from_zero():
    # 5 * 2.5 = 12.5 -> 13
    out = calculate_next_review(_item(interval=5, repetition=3, ease_factor=2.5), Grade.GOOD, now=NOW)
    assert out.interval == 13


def test_interval_uses_ease_before_update():
    # HARD lowers the ease, but the interval is computed with the old value
    out = calculate_next_review(_item(interval=10, repetition=4, ease_factor=2.0), Grade.HARD, now=NOW)
    assert out.interval == 20
    assert out.ease_factor == pytest.approx(1.86)


@pytest.mark.parametrize(
    "grade, expected",
    [(Grade.HARD, 2.36), (Grade.GOOD, 2.5), (Grade.EASY, 2.6)],
)
def test_ease_update_per_grade(grade, expected):
    assert next_ease_factor(2.5, grade) == pytest.approx(expected)


def test_ease_factor_has_floor():
    out = calculate_next_review(_item(ease_factor=1.35, interval=6, repetition=2), Grade.HARD, now=NOW)
    assert out.ease_factor == MIN_EASE_FACTOR
    out2 = calculate_next_review(out, Grade.HARD, now=NOW)
    assert out2.ease_factor == MIN_EASE_FACTOR


def test_ease_factor_has_no_ceiling():
    item = _item(ease_factor=3.0)
    for _ in range(5):
        item = calculate_next_review(item, Grade.EASY, now=NOW)
    assert item.ease_factor == pytest.approx(3.5)


def test_lapse_resets_streak_and_keeps_ease():
    item = _item(interval=15, repetition=3, ease_factor=2.2)
    out = calculate_next_review(item, Grade.AGAIN, now=NOW)
    assert out.interval == 1
    assert out.repetition == 0
    assert out.ease_factor == 2.2
    assert out.next_review_date == NOW + DAY_IN_MS


def test_success_after_lapse_restarts_at_one_day():
    item = calculate_next_review(_item(interval=15, repetition=3), Grade.AGAIN, now=NOW)
    out = calculate_next_review(item, Grade.EASY, now=NOW)
    assert out.interval == 1
    assert out.repetition == 1


def test_missing_ease_defaults():
    out = calculate_next_review(_item(ease_factor=0), Grade.GOOD, now=NOW)
    assert out.ease_factor == pytest.approx(2.5)


def test_input_is_not_mutated():
    item = _item(interval=6, repetition=2)
    out = calculate_next_review(item, Grade.EASY, now=NOW)
    assert out is not item
    assert item.interval == 6
    assert item.repetition == 2
    assert item.ease_factor == 2.5
    assert item.next_review_date == 0


def test_plain_int_grades_accepted():
    out = calculate_next_review(_item(), 3, now=NOW)
    assert out.ease_factor == pytest.approx(2.6)


@pytest.mark.parametrize("bad", [-1, 4, 2.0, "2", None, True, False])
def test_invalid_grades_rejected(bad):
    with pytest.raises(InvalidGradeError):
        calculate_next_review(_item(), bad, now=NOW)


def test_is_due():
    assert is_due(_item(next_review_date=0), now=NOW)
    assert is_due(_item(next_review_date=NOW), now=NOW)
    assert not is_due(_item(next_review_date=NOW + 1), now=NOW)


def test_due_cards_filters_and_orders():
    items = [
        _item(id="future", next_review_date=NOW + DAY_IN_MS),
        _item(id="yesterday", next_review_date=NOW - DAY_IN_MS),
        _item(id="new", next_review_date=0),
        _item(id="last-week", next_review_date=NOW - 7 * DAY_IN_MS),
        _item(id="now", next_review_date=NOW),
    ]
    due = get_due_cards(items, now=NOW)
    assert [i.id for i in due] == ["new", "last-week", "yesterday", "now"]


def test_due_cards_ties_keep_collection_order():
    items = [_item(id=str(n), next_review_date=0) for n in range(5)]
    assert [i.id for i in get_due_cards(items, now=NOW)] == ["0", "1", "2", "3", "4"]


def test_due_cards_does_not_reorder_input():
    items = [_item(id="b", next_review_date=NOW - 1), _item(id="a", next_review_date=0)]
    due = get_due_cards(items, now=NOW)
    assert [i.id for i in items] == ["b", "a"]
    assert [i.id for i in due] == ["a", "b"]


def test_due_cards_empty():
    assert get_due_cards([], now=NOW) == []


def test_due_set_scenario_with_fixed_clock():
    items = [
        _item(id="new", next_review_date=0),
        _item(id="overdue", next_review_date=NOW - 1000),
        _item(id="later", next_review_date=NOW + 5000),
    ]
    first = get_due_cards(items, now=NOW)
    assert [i.id for i in first] == ["new", "overdue"]
    # same input and clock, same answer
    assert get_due_cards(items, now=NOW) == first


def test_success_never_schedules_less_than_a_day():
    # a streak with no interval, as hand-edited data can carry
    out = calculate_next_review(_item(interval=0, repetition=4), Grade.GOOD, now=NOW)
    assert out.interval == 1
    assert out.next_review_date == NOW + DAY_IN_MS
