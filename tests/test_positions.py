"""Tests for PositionStore (dense ordering of columns, cards and placements).

Covers:
- Append and positioned insert
- Moves within a container (down, up, no-op, append)
- Moves across containers, including a round trip
- Removal closing the gap, and renumbering a container with gaps
- Rejection of out-of-range positions before anything changes
- Column-less placement buckets (column_id NULL)
- Density after a long random sequence of operations
"""

import random

import pytest

from taskboard.errors import ValidationError
from taskboard.extensions import db
from taskboard.models.card import Card, CardBoardAssignment
from taskboard.models.column import BoardColumn
from taskboard.services.positions import (
    assignment_positions,
    card_positions,
    column_positions,
)


# ─── Helpers ───────────────────────────────────────────────

def _box(column_id):
    return card_positions.container(column_id=column_id)


def _titles(column_id):
    return [
        c.title
        for c in Card.query.filter_by(column_id=column_id).order_by(Card.position).all()
    ]


def _assert_dense(column_id):
    positions = card_positions.positions(_box(column_id))
    assert positions == list(range(len(positions)))


def _new_card(user_id, title):
    return Card(title=title, owner_id=user_id, created_by=user_id)


def _card(card_id):
    return db.session.get(Card, card_id)


class TestInsert:
    """Placing new items."""

    def test_append_without_position(self, app, seed_data):
        with app.app_context():
            card = _new_card(seed_data["owner_id"], "Third")
            assigned = card_positions.insert(_box(seed_data["todo_id"]), card)
            assert assigned == 2
            assert _titles(seed_data["todo_id"]) == ["Fix bug", "Write docs", "Third"]
            _assert_dense(seed_data["todo_id"])

    def test_append_to_empty_container(self, app, seed_data):
        with app.app_context():
            card = _new_card(seed_data["owner_id"], "First")
            assert card_positions.insert(_box(seed_data["done_id"]), card) == 0

    def test_insert_at_front_shifts_others(self, app, seed_data):
        with app.app_context():
            card = _new_card(seed_data["owner_id"], "Urgent")
            card_positions.insert(_box(seed_data["todo_id"]), card, 0)
            assert _titles(seed_data["todo_id"]) == ["Urgent", "Fix bug", "Write docs"]
            _assert_dense(seed_data["todo_id"])

    def test_insert_at_count_appends(self, app, seed_data):
        with app.app_context():
            card = _new_card(seed_data["owner_id"], "Last")
            assert card_positions.insert(_box(seed_data["todo_id"]), card, 2) == 2
            assert _titles(seed_data["todo_id"])[-1] == "Last"

    @pytest.mark.parametrize("position", [-1, 3, 99])
    def test_insert_out_of_range_rejected(self, app, seed_data, position):
        with app.app_context():
            card = _new_card(seed_data["owner_id"], "Nope")
            with pytest.raises(ValidationError, match="out of range"):
                card_positions.insert(_box(seed_data["todo_id"]), card, position)
            assert _titles(seed_data["todo_id"]) == ["Fix bug", "Write docs"]

    def test_column_insert_shifts_columns(self, app, seed_data):
        with app.app_context():
            column = BoardColumn(name="Ideas")
            column_positions.insert(
                column_positions.container(board_id=seed_data["board_id"]), column, 0
            )
            names = [
                c.name
                for c in BoardColumn.query.filter_by(board_id=seed_data["board_id"])
                .order_by(BoardColumn.position)
                .all()
            ]
            assert names == ["Ideas", "Todo", "Doing", "Done"]


class TestMoveWithin:
    """Reordering inside one container."""

    def _three_cards(self, seed_data):
        card_positions.insert(_box(seed_data["todo_id"]), _new_card(seed_data["owner_id"], "Third"))
        return _box(seed_data["todo_id"])

    def test_move_down(self, app, seed_data):
        with app.app_context():
            box = self._three_cards(seed_data)
            final = card_positions.move(_card(seed_data["fix_bug_id"]), box, box, 2)
            assert final == 2
            assert _titles(seed_data["todo_id"]) == ["Write docs", "Third", "Fix bug"]
            _assert_dense(seed_data["todo_id"])

    def test_move_up(self, app, seed_data):
        with app.app_context():
            box = self._three_cards(seed_data)
            third = Card.query.filter_by(title="Third").one()
            card_positions.move(third, box, box, 0)
            assert _titles(seed_data["todo_id"]) == ["Third", "Fix bug", "Write docs"]
            _assert_dense(seed_data["todo_id"])

    def test_move_to_same_position_is_noop(self, app, seed_data):
        with app.app_context():
            box = self._three_cards(seed_data)
            before = [(c.id, c.position) for c in Card.query.filter_by(column_id=seed_data["todo_id"])]
            card_positions.move(_card(seed_data["write_docs_id"]), box, box, 1)
            after = [(c.id, c.position) for c in Card.query.filter_by(column_id=seed_data["todo_id"])]
            assert sorted(before) == sorted(after)

    def test_move_to_count_lands_last(self, app, seed_data):
        with app.app_context():
            box = self._three_cards(seed_data)
            assert card_positions.move(_card(seed_data["fix_bug_id"]), box, box, 3) == 2
            assert _titles(seed_data["todo_id"])[-1] == "Fix bug"

    def test_move_past_end_rejected(self, app, seed_data):
        with app.app_context():
            box = _box(seed_data["todo_id"])
            with pytest.raises(ValidationError):
                card_positions.move(_card(seed_data["fix_bug_id"]), box, box, 5)
            assert _titles(seed_data["todo_id"]) == ["Fix bug", "Write docs"]

    def test_wrong_source_container_rejected(self, app, seed_data):
        with app.app_context():
            wrong = _box(seed_data["doing_id"])
            with pytest.raises(ValidationError, match="not in the given container"):
                card_positions.move(_card(seed_data["fix_bug_id"]), wrong, wrong, 0)


class TestMoveAcross:
    """Moving between two containers."""

    def test_move_to_other_column(self, app, seed_data):
        with app.app_context():
            card_positions.move(
                _card(seed_data["fix_bug_id"]),
                _box(seed_data["todo_id"]),
                _box(seed_data["doing_id"]),
                0,
            )
            assert _titles(seed_data["todo_id"]) == ["Write docs"]
            assert _titles(seed_data["doing_id"]) == ["Fix bug", "Deploy"]
            _assert_dense(seed_data["todo_id"])
            _assert_dense(seed_data["doing_id"])
            assert _card(seed_data["fix_bug_id"]).column_id == seed_data["doing_id"]

    def test_move_to_end_of_other_column(self, app, seed_data):
        with app.app_context():
            final = card_positions.move(
                _card(seed_data["fix_bug_id"]),
                _box(seed_data["todo_id"]),
                _box(seed_data["doing_id"]),
                1,
            )
            assert final == 1
            assert _titles(seed_data["doing_id"]) == ["Deploy", "Fix bug"]

    def test_round_trip_restores_positions(self, app, seed_data):
        with app.app_context():
            todo, doing = _box(seed_data["todo_id"]), _box(seed_data["doing_id"])
            snapshot = {
                c.id: (c.column_id, c.position)
                for c in Card.query.filter(Card.column_id.in_([seed_data["todo_id"], seed_data["doing_id"]]))
            }

            card_positions.move(_card(seed_data["fix_bug_id"]), todo, doing, 1)
            card_positions.move(_card(seed_data["fix_bug_id"]), doing, todo, 0)

            restored = {
                c.id: (c.column_id, c.position)
                for c in Card.query.filter(Card.column_id.in_([seed_data["todo_id"], seed_data["doing_id"]]))
            }
            assert restored == snapshot

    def test_unreachable_destination_rejected(self, app, seed_data):
        with app.app_context():
            with pytest.raises(ValidationError):
                card_positions.move(
                    _card(seed_data["fix_bug_id"]),
                    _box(seed_data["todo_id"]),
                    _box(seed_data["doing_id"]),
                    2,
                )
            assert _titles(seed_data["todo_id"]) == ["Fix bug", "Write docs"]
            assert _titles(seed_data["doing_id"]) == ["Deploy"]


class TestRemove:
    """Closing gaps."""

    def test_remove_first_shifts_rest(self, app, seed_data):
        with app.app_context():
            card = _card(seed_data["fix_bug_id"])
            card_positions.remove(_box(seed_data["todo_id"]), card)
            db.session.delete(card)
            db.session.flush()
            assert _titles(seed_data["todo_id"]) == ["Write docs"]
            _assert_dense(seed_data["todo_id"])

    def test_normalize_closes_gaps(self, app, seed_data):
        with app.app_context():
            _card(seed_data["fix_bug_id"]).position = 3
            _card(seed_data["write_docs_id"]).position = 7
            db.session.flush()

            card_positions.normalize(_box(seed_data["todo_id"]))
            assert card_positions.positions(_box(seed_data["todo_id"])) == [0, 1]
            assert _titles(seed_data["todo_id"]) == ["Fix bug", "Write docs"]


class TestPlacementBuckets:
    """CardBoardAssignment buckets keyed by (board, column or NULL)."""

    def test_column_less_bucket(self, app, seed_data):
        with app.app_context():
            ops = seed_data["ops_board_id"]
            loose = assignment_positions.container(board_id=ops, column_id=None)
            for card_id in (seed_data["fix_bug_id"], seed_data["deploy_id"]):
                assignment_positions.insert(loose, CardBoardAssignment(card_id=card_id))
            assert assignment_positions.positions(loose) == [0, 1]

            first = CardBoardAssignment.query.filter_by(card_id=seed_data["fix_bug_id"]).one()
            backlog = assignment_positions.container(board_id=ops, column_id=seed_data["backlog_id"])
            assignment_positions.move(first, loose, backlog, 0)

            assert assignment_positions.positions(loose) == [0]
            assert assignment_positions.positions(backlog) == [0]
            moved = CardBoardAssignment.query.filter_by(card_id=seed_data["fix_bug_id"]).one()
            assert moved.column_id == seed_data["backlog_id"]


class TestDensityInvariant:
    """Random insert/move/remove sequences never leave gaps or duplicates."""

    def test_random_operations_keep_positions_dense(self, app, seed_data):
        rng = random.Random(20240611)
        columns = [seed_data["todo_id"], seed_data["doing_id"], seed_data["done_id"]]

        with app.app_context():
            for step in range(60):
                op = rng.choice(["insert", "move", "remove"])
                cards = Card.query.filter(Card.column_id.in_(columns)).all()

                if op == "insert" or not cards:
                    target = rng.choice(columns)
                    size = card_positions.count(_box(target))
                    card_positions.insert(
                        _box(target),
                        _new_card(seed_data["owner_id"], f"card {step}"),
                        rng.randint(0, size),
                    )
                elif op == "move":
                    card = rng.choice(cards)
                    source = card.column_id
                    target = rng.choice(columns)
                    size = card_positions.count(_box(target))
                    if target == source:
                        position = rng.randint(0, size - 1)
                    else:
                        position = rng.randint(0, size)
                    card_positions.move(card, _box(source), _box(target), position)
                else:
                    card = rng.choice(cards)
                    card_positions.remove(_box(card.column_id), card)
                    db.session.delete(card)
                    db.session.flush()

                for column_id in columns:
                    _assert_dense(column_id)
