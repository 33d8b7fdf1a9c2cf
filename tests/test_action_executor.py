"""Tests for applying parsed chat actions.

Covers:
- Board chat: create/move/tag/delete actions, parameter aliases
- Permission failures leave the board untouched
- Missing fields and unknown actions become failed outcomes
- Read-only actions are not reported
- Batches run in order; later actions see earlier effects
- Global chat: board resolution, create_board, cross-board moves
"""

from taskboard.extensions import db
from taskboard.models.board import Board
from taskboard.models.card import Card
from taskboard.models.column import BoardColumn
from taskboard.models.enums import BoardRole
from taskboard.services import (
    action_executor,
    board_service,
    card_service,
    tag_service,
)
from taskboard.services.action_parser import ActionDescriptor, ChatAction, parse


# ─── Helpers ───────────────────────────────────────────────

def _d(action, **params):
    return ActionDescriptor(ChatAction.from_name(action), action, params)


def _board(board_id):
    return db.session.get(Board, board_id)


def _titles(column_id):
    return [c.title for c in card_service.list_column_cards(column_id)]


def _run_board(seed_data, user_key, *descriptors):
    return action_executor.execute_board_actions(
        _board(seed_data["board_id"]), seed_data[user_key], list(descriptors)
    )


class TestMoveCard:
    """move_card lands the card at the top of the target column."""

    def test_move_to_empty_column(self, app, seed_data):
        with app.app_context():
            descriptors = parse(
                '{"action": "move_card", "params": {"card_title": "Fix bug", '
                '"target_column": "Done"}, "message": "Moved."}'
            )
            [outcome] = _run_board(seed_data, "owner_id", *descriptors)

            assert outcome.success is True
            assert outcome.action == "move_card"
            assert outcome.description == "Moved 'Fix bug' to 'Done'"

            card = db.session.get(Card, seed_data["fix_bug_id"])
            assert card.column_id == seed_data["done_id"]
            assert card.position == 0
            assert _titles(seed_data["todo_id"]) == ["Write docs"]
            assert db.session.get(Card, seed_data["write_docs_id"]).position == 0

    def test_move_to_top_of_busy_column(self, app, seed_data):
        with app.app_context():
            _run_board(seed_data, "editor_id", _d("move_card", card="fix bug", to="doing"))
            assert _titles(seed_data["doing_id"]) == ["Fix bug", "Deploy"]

    def test_unknown_card(self, app, seed_data):
        with app.app_context():
            [outcome] = _run_board(
                seed_data, "owner_id", _d("move_card", card_title="Ghost", target_column="Done")
            )
            assert outcome.success is False
            assert outcome.description == "Card 'Ghost' not found"

    def test_unknown_column(self, app, seed_data):
        with app.app_context():
            [outcome] = _run_board(
                seed_data, "owner_id", _d("move_card", card_title="Fix bug", target_column="Nope")
            )
            assert outcome.description == "Column 'Nope' not found"
            assert db.session.get(Card, seed_data["fix_bug_id"]).column_id == seed_data["todo_id"]


class TestCreateCard:
    def test_editor_creates_with_aliases(self, app, seed_data):
        with app.app_context():
            [outcome] = _run_board(
                seed_data,
                "editor_id",
                _d("create_card", column_name="todo", name="Ship it", content="Friday"),
            )
            assert outcome.success is True
            assert outcome.description == "Created card 'Ship it' in column 'Todo'"
            card = Card.query.filter_by(title="Ship it").one()
            assert card.body == "Friday"
            assert card.position == 2

    def test_reader_is_denied_and_nothing_written(self, app, seed_data):
        with app.app_context():
            before = Card.query.count()
            [outcome] = _run_board(
                seed_data, "reader_id", _d("create_card", column="Todo", title="X")
            )
            assert outcome.success is False
            assert outcome.description == "You don't have permission to edit board 'Sprint'"
            assert Card.query.count() == before

    def test_permission_checked_before_fields(self, app, seed_data):
        with app.app_context():
            [outcome] = _run_board(seed_data, "reader_id", _d("create_card"))
            assert "permission" in outcome.description

    def test_missing_title(self, app, seed_data):
        with app.app_context():
            [outcome] = _run_board(seed_data, "owner_id", _d("create_card", column="Todo"))
            assert outcome.success is False
            assert outcome.description == 'Missing title. Received params: {"column": "Todo"}'

    def test_blank_values_count_as_missing(self, app, seed_data):
        with app.app_context():
            [outcome] = _run_board(
                seed_data, "owner_id", _d("create_card", column="  ", title="X")
            )
            assert outcome.description.startswith("Missing column.")


class TestTags:
    def test_create_then_add_in_one_batch(self, app, seed_data):
        with app.app_context():
            outcomes = _run_board(
                seed_data,
                "owner_id",
                _d("create_tag", name="blocker", color="#ff0000"),
                _d("add_tag", card_title="Fix bug", tag_name="blocker"),
            )
            assert [o.success for o in outcomes] == [True, True]
            card = db.session.get(Card, seed_data["fix_bug_id"])
            assert [t.name for t in card.tags] == ["blocker"]

    def test_reversed_batch_fails_first_only(self, app, seed_data):
        with app.app_context():
            outcomes = _run_board(
                seed_data,
                "owner_id",
                _d("add_tag", card_title="Fix bug", tag_name="blocker"),
                _d("create_tag", name="blocker"),
            )
            assert outcomes[0].success is False
            assert outcomes[0].description == "Tag 'blocker' not found"
            assert outcomes[1].success is True

    def test_add_tag_falls_back_to_global_tag(self, app, seed_data):
        with app.app_context():
            tag_service.create_global_tag(seed_data["owner_id"], "mine")
            [outcome] = _run_board(
                seed_data, "owner_id", _d("add_tag", card="Deploy", tag="MINE")
            )
            assert outcome.success is True
            assert outcome.description == "Added tag 'mine' to 'Deploy'"

    def test_add_tag_twice_is_harmless(self, app, seed_data):
        with app.app_context():
            add = _d("add_tag", card_title="Fix bug", tag_name="urgent")
            outcomes = _run_board(seed_data, "owner_id", add, add)
            assert [o.success for o in outcomes] == [True, True]
            assert db.session.get(Card, seed_data["fix_bug_id"]).tags.count() == 1

    def test_bad_color_reported(self, app, seed_data):
        with app.app_context():
            [outcome] = _run_board(seed_data, "owner_id", _d("create_tag", name="x", color="red"))
            assert outcome.success is False
            assert "Invalid color" in outcome.description

    def test_delete_tag(self, app, seed_data):
        with app.app_context():
            [outcome] = _run_board(seed_data, "owner_id", _d("delete_tag", tag="urgent"))
            assert outcome.description == "Deleted tag 'urgent'"
            assert tag_service.list_board_tags(seed_data["board_id"], seed_data["owner_id"]) == []


class TestDeletes:
    def test_delete_card_closes_gap(self, app, seed_data):
        with app.app_context():
            [outcome] = _run_board(seed_data, "owner_id", _d("delete_card", card="Fix bug"))
            assert outcome.description == "Deleted card 'Fix bug'"
            assert db.session.get(Card, seed_data["fix_bug_id"]) is None
            assert db.session.get(Card, seed_data["write_docs_id"]).position == 0

    def test_delete_column_removes_cards(self, app, seed_data):
        with app.app_context():
            [outcome] = _run_board(seed_data, "editor_id", _d("delete_column", column="Todo"))
            assert outcome.description == "Deleted column 'Todo'"
            assert db.session.get(BoardColumn, seed_data["todo_id"]) is None
            assert db.session.get(Card, seed_data["fix_bug_id"]) is None
            positions = [c.position for c in board_service.board_columns(seed_data["board_id"])]
            assert positions == [0, 1]


class TestDispatch:
    def test_read_only_actions_not_reported(self, app, seed_data):
        with app.app_context():
            outcomes = _run_board(
                seed_data,
                "reader_id",
                _d("list_cards"),
                _d("list_tags"),
                _d("no_action"),
            )
            assert outcomes == []

    def test_read_only_single_outcome(self, app, seed_data):
        with app.app_context():
            outcome = action_executor.execute_board_action(
                _board(seed_data["board_id"]), seed_data["reader_id"], _d("list_cards")
            )
            assert outcome.success is True
            assert outcome.description == "No modification made"

    def test_unknown_action(self, app, seed_data):
        with app.app_context():
            [outcome] = _run_board(seed_data, "owner_id", _d("launch_rocket"))
            assert outcome.to_dict() == {
                "action": "launch_rocket",
                "description": "Unknown action: launch_rocket",
                "success": False,
            }

    def test_global_only_actions_refused_on_board(self, app, seed_data):
        with app.app_context():
            [outcome] = _run_board(seed_data, "owner_id", _d("create_board", name="New"))
            assert outcome.success is False
            assert outcome.description == "This action is only available in global chat"
            assert Board.query.filter_by(name="New").count() == 0

    def test_role_reread_between_actions(self, app, seed_data):
        with app.app_context():
            board = _board(seed_data["board_id"])
            first = action_executor.execute_board_action(
                board, seed_data["editor_id"], _d("create_card", column="Todo", title="A")
            )
            board_service.add_permission(
                seed_data["board_id"], seed_data["owner_id"], seed_data["editor_id"], "reader"
            )
            second = action_executor.execute_board_action(
                board, seed_data["editor_id"], _d("create_card", column="Todo", title="B")
            )
            assert first.success is True
            assert second.success is False


class TestGlobalActions:
    def _run(self, seed_data, user_key, *descriptors):
        return action_executor.execute_global_actions(seed_data[user_key], list(descriptors))

    def test_create_board(self, app, seed_data):
        with app.app_context():
            [outcome] = self._run(
                seed_data, "outsider_id", _d("create_board", board_name="Personal")
            )
            assert outcome.description == "Created board 'Personal'"
            board = Board.query.filter_by(name="Personal").one()
            assert board_service.get_user_role(board.id, seed_data["outsider_id"]) == BoardRole.OWNER

    def test_create_board_missing_name(self, app, seed_data):
        with app.app_context():
            [outcome] = self._run(seed_data, "owner_id", _d("create_board"))
            assert outcome.description == "Missing board name. Received params: {}"

    def test_board_named_action(self, app, seed_data):
        with app.app_context():
            [outcome] = self._run(
                seed_data,
                "editor_id",
                _d("create_card", board="sprint", column="Doing", title="Hotfix"),
            )
            assert outcome.success is True
            assert _titles(seed_data["doing_id"]) == ["Deploy", "Hotfix"]

    def test_board_name_required(self, app, seed_data):
        with app.app_context():
            [outcome] = self._run(seed_data, "owner_id", _d("create_card", column="Todo", title="X"))
            assert outcome.description.startswith("Missing board name. Please specify which board.")

    def test_non_member_sees_board_as_missing(self, app, seed_data):
        with app.app_context():
            [outcome] = self._run(
                seed_data, "outsider_id", _d("delete_card", board="Sprint", card="Fix bug")
            )
            assert outcome.description == "Board 'Sprint' not found"
            assert db.session.get(Card, seed_data["fix_bug_id"]) is not None

    def test_reader_denied(self, app, seed_data):
        with app.app_context():
            [outcome] = self._run(
                seed_data, "reader_id", _d("delete_card", board="Sprint", card="Fix bug")
            )
            assert outcome.description == "You don't have permission to edit board 'Sprint'"

    def test_cross_board_move(self, app, seed_data):
        with app.app_context():
            [outcome] = self._run(
                seed_data,
                "owner_id",
                _d(
                    "move_card_cross_board",
                    from_board="Sprint",
                    to_board="Ops",
                    card="Fix bug",
                    column="Backlog",
                ),
            )
            assert outcome.success is True
            assert outcome.description == (
                "Moved 'Fix bug' from 'Sprint' to 'Ops' (column 'Backlog')"
            )
            card = db.session.get(Card, seed_data["fix_bug_id"])
            assert card.id == seed_data["fix_bug_id"]
            assert card.column_id == seed_data["backlog_id"]
            assert _titles(seed_data["todo_id"]) == ["Write docs"]
            assert db.session.get(Card, seed_data["write_docs_id"]).position == 0

    def test_cross_board_appends(self, app, seed_data):
        with app.app_context():
            self._run(
                seed_data,
                "owner_id",
                _d("move_card_cross_board", from_board="Sprint", to_board="Ops",
                   card="Fix bug", column="Backlog"),
                _d("move_card_cross_board", from_board="Sprint", to_board="Ops",
                   card="Deploy", column="Backlog"),
            )
            assert _titles(seed_data["backlog_id"]) == ["Fix bug", "Deploy"]

    def test_cross_board_needs_both_boards(self, app, seed_data):
        with app.app_context():
            [outcome] = self._run(
                seed_data,
                "editor_id",
                _d("move_card_cross_board", from_board="Sprint", to_board="Ops",
                   card="Fix bug", column="Backlog"),
            )
            assert outcome.description == "Board 'Ops' not found"
            assert db.session.get(Card, seed_data["fix_bug_id"]).column_id == seed_data["todo_id"]

    def test_cross_board_missing_params(self, app, seed_data):
        with app.app_context():
            [outcome] = self._run(
                seed_data, "owner_id", _d("move_card_cross_board", from_board="Sprint")
            )
            assert outcome.description.startswith(
                "Missing params. Need from_board, to_board, card, column."
            )

    def test_cross_board_drops_target_placement(self, app, seed_data):
        with app.app_context():
            card_service.assign_to_board(
                seed_data["fix_bug_id"], seed_data["owner_id"], seed_data["ops_board_id"]
            )
            self._run(
                seed_data,
                "owner_id",
                _d("move_card_cross_board", from_board="Sprint", to_board="Ops",
                   card="Fix bug", column="Backlog"),
            )
            card = db.session.get(Card, seed_data["fix_bug_id"])
            assert card.assignments.count() == 0
            ops_cards = card_service.list_board_cards(
                seed_data["ops_board_id"], seed_data["owner_id"]
            )
            assert [c.title for c in ops_cards] == ["Fix bug"]
