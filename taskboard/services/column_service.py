"""Column service: lanes of a board and their ordering.

Functions flush but do NOT commit. The caller commits.
"""

import logging

import bleach

from taskboard.errors import NotFoundError, ValidationError
from taskboard.extensions import db
from taskboard.models.card import Card
from taskboard.models.column import BoardColumn
from taskboard.services import access_policy, board_service, card_service
from taskboard.services.positions import assignment_positions, column_positions

logger = logging.getLogger(__name__)


def _clean_name(name):
    name = bleach.clean(name or "", tags=[], strip=True).strip()
    if not name:
        raise ValidationError("Column name is required")
    return name[:255]


def _editable_column(column_id, user_id):
    column = db.session.get(BoardColumn, column_id)
    if column is None:
        raise NotFoundError(f"Column {column_id} not found")
    board_service.require_role(column.board_id, user_id, access_policy.can_edit, "edit")
    return column


def list_columns(board_id, user_id):
    """Columns of a board the user can see, in position order."""
    board_service.require_role(board_id, user_id)
    return board_service.board_columns(board_id)


def create_column(board_id, user_id, name, position=None):
    """Add a column to a board, appended unless a position is given."""
    name = _clean_name(name)
    board_service.require_role(board_id, user_id, access_policy.can_edit, "edit")

    column = BoardColumn(name=name)
    column_positions.insert(column_positions.container(board_id=board_id), column, position)
    board_service.touch_board(board_id)
    return column


def rename_column(column_id, user_id, name):
    column = _editable_column(column_id, user_id)
    column.name = _clean_name(name)
    db.session.flush()
    return column


def move_column(column_id, user_id, position):
    """Reorder a column within its board. Returns its final position."""
    column = _editable_column(column_id, user_id)
    scope = column_positions.container_of(column)
    return column_positions.move(column, scope, scope, position)


def delete_column(column_id, user_id):
    """Delete a column and the cards in it, closing the gap it leaves."""
    column = _editable_column(column_id, user_id)
    name = column.name
    column_positions.remove(column_positions.container_of(column), column)
    purge_column(column)
    board_service.touch_board(column.board_id)
    logger.info(f"Column '{name}' ({column_id}) deleted by {user_id}")


def purge_column(column):
    """Delete a column's cards and the column itself (no permission checks).

    Cards also placed on some other board survive as column-less cards.
    Assignment placements pointing at this column fall back to the board's
    column-less bucket.
    """
    for card in Card.query.filter_by(column_id=column.id).order_by(Card.position.desc()).all():
        placed_elsewhere = any(
            a.board_id != column.board_id for a in card.assignments
        )
        if placed_elsewhere:
            card_service.detach_from_column(card)
        else:
            card_service.destroy_card(card)

    assignment_positions.append_all(
        assignment_positions.container(board_id=column.board_id, column_id=column.id),
        assignment_positions.container(board_id=column.board_id, column_id=None),
    )

    db.session.delete(column)
    db.session.flush()
