"""Shared test fixtures for the taskboard test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite)
- db_session: clean database per test (tables created/dropped)
- seed_data: users with every role on a "Sprint" board, columns, cards, a tag,
  plus a second "Ops" board
- FakeLLM: stand-in language model returning canned replies
"""

import pytest

from taskboard import create_app
from taskboard.errors import LLMServiceError
from taskboard.extensions import db as _db
from taskboard.models.user import User
from taskboard.services import board_service, card_service, column_service, tag_service


class FakeLLM:
    """Records the prompts it gets and answers with a fixed reply."""

    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def chat(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise LLMServiceError(self.error)
        return self.reply


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


def make_user(session, email, name=None, llm_context=None):
    user = User(email=email, name=name or email.split("@")[0], llm_context=llm_context)
    session.add(user)
    session.flush()
    return user


@pytest.fixture
def seed_data(app, db_session):
    """Seed two boards with columns, cards and members of every role.

    Sprint board (owned by owner):
        Todo:  "Fix bug" (0), "Write docs" (1)
        Doing: "Deploy" (0)
        Done:  (empty)
        tag:   "urgent"
    Ops board (owned by owner):
        Backlog: (empty)

    Returns a dict of plain IDs so tests can use them from any app context.
    """
    with app.app_context():
        owner = make_user(_db.session, "owner@example.com", "Olive Owner")
        editor = make_user(_db.session, "editor@example.com", "Eddie Editor")
        reader = make_user(_db.session, "reader@example.com", "Rita Reader")
        outsider = make_user(_db.session, "outsider@example.com", "Otto Outsider")

        sprint = board_service.create_board(owner.id, "Sprint", "Current sprint")
        board_service.add_permission(sprint.id, owner.id, editor.id, "editor")
        board_service.add_permission(sprint.id, owner.id, reader.id, "reader")

        todo = column_service.create_column(sprint.id, owner.id, "Todo")
        doing = column_service.create_column(sprint.id, owner.id, "Doing")
        done = column_service.create_column(sprint.id, owner.id, "Done")

        fix_bug = card_service.create_card(todo.id, owner.id, "Fix bug")
        write_docs = card_service.create_card(todo.id, owner.id, "Write docs")
        deploy = card_service.create_card(doing.id, owner.id, "Deploy")

        urgent = tag_service.create_board_tag(sprint.id, owner.id, "urgent", "#dc3545")

        ops = board_service.create_board(owner.id, "Ops")
        backlog = column_service.create_column(ops.id, owner.id, "Backlog")

        _db.session.commit()

        return {
            "owner_id": owner.id,
            "editor_id": editor.id,
            "reader_id": reader.id,
            "outsider_id": outsider.id,
            "board_id": sprint.id,
            "todo_id": todo.id,
            "doing_id": doing.id,
            "done_id": done.id,
            "fix_bug_id": fix_bug.id,
            "write_docs_id": write_docs.id,
            "deploy_id": deploy.id,
            "urgent_id": urgent.id,
            "ops_board_id": ops.id,
            "backlog_id": backlog.id,
        }
