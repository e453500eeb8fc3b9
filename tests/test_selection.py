import pytest

from conftest import Recorder, make_rows, row_key
from reflex_list_toolbar.models import SelectionChange
from reflex_list_toolbar.selection import SelectionModel


@pytest.fixture
def model(scheduler):
    return SelectionModel(scheduler, key=row_key)


@pytest.fixture
def changes(model):
    recorder = Recorder()
    model.changed.connect(recorder)
    return recorder


def test_toggle_twice_restores_membership_and_emits_twice(model, changes):
    row = make_rows(1)[0]

    model.toggle(row)
    model.toggle(row)

    assert not model.is_selected(row)
    assert len(model) == 0
    assert [call[0] for call in changes.calls] == [
        SelectionChange(added=(row,)),
        SelectionChange(removed=(row,)),
    ]


def test_checked_and_unchecked_are_idempotent(model, changes):
    row = make_rows(1)[0]

    model.checked(row)
    model.checked(row)
    model.unchecked(row)
    model.unchecked(row)

    assert len(changes) == 2


def test_selection_is_keyed_not_positional(model):
    rows = make_rows(3)
    model.checked(rows[1])

    # A refreshed copy of the same entity is still selected.
    assert model.is_selected(dict(rows[1]))
    assert model.keys == [1]


def test_default_identity_key_for_hashable_entities(scheduler):
    model = SelectionModel(scheduler)
    model.toggle("alice")
    model.toggle("bob")

    assert model.selected == ["alice", "bob"]
    assert list(model) == ["alice", "bob"]


def test_clear_is_deferred_until_the_batch_finishes(model, changes, scheduler):
    rows = make_rows(3)
    for row in rows:
        model.checked(row)

    model.clear()
    assert len(model) == 3

    scheduler.run_pending()
    assert len(model) == 0
    assert changes.last == SelectionChange(removed=tuple(rows))


def test_clear_of_empty_selection_is_silent(model, changes, scheduler):
    model.clear()
    scheduler.run_pending()

    assert len(changes) == 0


def test_check_all_emits_one_change_for_the_batch(model, changes):
    rows = make_rows(4)
    model.checked(rows[0])

    model.check_all(rows)

    assert len(changes) == 2
    assert changes.last == SelectionChange(added=tuple(rows[1:]))


def test_uncheck_all_skips_unselected(model, changes):
    rows = make_rows(3)
    model.checked(rows[0])

    model.uncheck_all(rows)

    assert len(model) == 0
    assert changes.last == SelectionChange(removed=(rows[0],))


def test_preselect_is_silent_and_suspends_immediately(model, changes, scheduler):
    rows = make_rows(3)

    model.preselect(rows[:2])
    assert model.is_suspended
    # Nothing applied yet, and user toggles in between are not reported.
    model.toggle(rows[2])

    scheduler.run_pending()

    assert not model.is_suspended
    assert {row["id"] for row in model.selected} == {0, 1, 2}
    assert len(changes) == 0


def test_suspended_context_restores_previous_flag(model, changes):
    row = make_rows(1)[0]
    with model.suspended():
        model.toggle(row)
    model.toggle(row)

    assert len(changes) == 1
    assert not model.is_suspended
