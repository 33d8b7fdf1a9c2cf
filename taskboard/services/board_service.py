"""Board service: boards, membership roles and board deletion.

A board's creator becomes its single owner in the same transaction that
creates the board. Users without any role on a board are told the board does
not exist; users with a role that is too weak get PermissionDenied.

Functions flush but do NOT commit. The caller commits.
"""

import logging
from datetime import datetime, timezone

import bleach
from sqlalchemy import delete, select

from taskboard.errors import NotFoundError, PermissionDenied, ValidationError
from taskboard.extensions import db
from taskboard.models.board import Board, BoardPermission
from taskboard.models.card import CardBoardAssignment
from taskboard.models.chat import ChatMessage
from taskboard.models.column import BoardColumn
from taskboard.models.enums import BoardRole
from taskboard.models.user import User
from taskboard.services import access_policy

logger = logging.getLogger(__name__)


def _sanitize(text):
    """Strip all HTML tags from user input."""
    if text is None:
        return text
    return bleach.clean(text, tags=[], strip=True).strip()


def get_user_role(board_id, user_id):
    """Return the user's BoardRole on the board, or None."""
    role = db.session.execute(
        select(BoardPermission.role).where(
            BoardPermission.board_id == board_id,
            BoardPermission.user_id == user_id,
        )
    ).scalar()
    return BoardRole.parse(role) if role is not None else None


def require_role(board_id, user_id, check=access_policy.can_view_board, action="access"):
    """Load a board the user may act on.

    Args:
        board_id: Board UUID string.
        user_id: Acting user's UUID string.
        check: AccessPolicy predicate applied to the user's role.
        action: Verb used in the denial message.

    Returns:
        (board, role) tuple.

    Raises:
        NotFoundError: If the board is missing or the user has no role on it.
        PermissionDenied: If the user's role fails ``check``.
    """
    board = db.session.get(Board, board_id)
    role = get_user_role(board_id, user_id) if board is not None else None
    if board is None or role is None:
        raise NotFoundError("Board not found")
    if not check(role):
        raise PermissionDenied(f"You don't have permission to {action} board '{board.name}'")
    return board, role


def create_board(user_id, name, description=None):
    """Create a board and the owner permission for its creator.

    Raises:
        ValidationError: If the name is empty.
        NotFoundError: If the user does not exist.
    """
    name = _sanitize(name)
    if not name:
        raise ValidationError("Board name is required")
    if db.session.get(User, user_id) is None:
        raise NotFoundError(f"User {user_id} not found")

    board = Board(name=name[:255], description=_sanitize(description) or None, owner_id=user_id)
    db.session.add(board)
    db.session.flush()

    db.session.add(
        BoardPermission(board_id=board.id, user_id=user_id, role=BoardRole.OWNER.value)
    )
    db.session.flush()

    logger.info(f"Board '{board.name}' ({board.id}) created by {user_id}")
    return board


def get_board(board_id, user_id):
    """Return (board, role) for a board the user can see."""
    return require_role(board_id, user_id)


def list_boards_for_user(user_id):
    """All boards the user has a role on, most recently updated first.

    Returns:
        List of (Board, BoardRole) tuples.
    """
    rows = db.session.execute(
        select(Board, BoardPermission.role)
        .join(BoardPermission, BoardPermission.board_id == Board.id)
        .where(BoardPermission.user_id == user_id)
        .order_by(Board.updated_at.desc(), Board.name)
    ).all()
    return [(board, BoardRole.parse(role)) for board, role in rows]


def update_board(board_id, user_id, name=None, description=None):
    """Rename a board or change its description (owners and editors)."""
    board, _ = require_role(board_id, user_id, access_policy.can_edit, "edit")

    if name is not None:
        name = _sanitize(name)
        if not name:
            raise ValidationError("Board name is required")
        board.name = name[:255]
    if description is not None:
        board.description = _sanitize(description) or None

    db.session.flush()
    return board


def delete_board(board_id, user_id):
    """Delete a board and everything scoped to it (owner only).

    Columns, their cards, board tags, permissions, chat history and card
    placements on this board go away. Cards that are also placed on another
    board are detached from their column instead of deleted.
    """
    board, _ = require_role(board_id, user_id, access_policy.can_delete_board, "delete")
    # Imported here: both services depend on this module.
    from taskboard.services import column_service, tag_service

    for column in board.columns.all():
        column_service.purge_column(column)

    for assignment in db.session.execute(
        select(CardBoardAssignment).where(CardBoardAssignment.board_id == board_id)
    ).scalars().all():
        db.session.delete(assignment)

    for tag in board.tags.all():
        tag_service.destroy_tag(tag)

    db.session.execute(
        delete(ChatMessage).where(ChatMessage.board_id == board_id)
    )
    db.session.execute(
        delete(BoardPermission).where(BoardPermission.board_id == board_id)
    )
    db.session.flush()

    name = board.name
    db.session.delete(board)
    db.session.flush()

    logger.info(f"Board '{name}' ({board_id}) deleted by {user_id}")


def touch_board(board_id):
    """Bump updated_at so the board sorts first in listings."""
    board = db.session.get(Board, board_id)
    if board is not None:
        board.updated_at = datetime.now(timezone.utc)


# ─── Permissions ─────────────────────────────────────────────────


def list_permissions(board_id, user_id):
    """Permissions on a board, owner first. Any member may list them."""
    require_role(board_id, user_id)
    permissions = BoardPermission.query.filter_by(board_id=board_id).all()
    order = {BoardRole.OWNER: 0, BoardRole.EDITOR: 1, BoardRole.READER: 2}
    return sorted(permissions, key=lambda p: (order[p.board_role], p.user_id))


def add_permission(board_id, actor_id, user_id, role):
    """Grant or change a user's role on a board (owner only).

    Upserts on (board, user). Granting Owner is rejected, and the owner's own
    permission cannot be changed through here.

    Raises:
        ValidationError: Unknown role, Owner role, or target is the owner.
        NotFoundError: Board or target user not found.
        PermissionDenied: Actor is not the owner.
    """
    board, _ = require_role(
        board_id, actor_id, access_policy.can_manage_permissions, "manage permissions on"
    )
    parsed = access_policy.validate_grantable_role(role)

    if db.session.get(User, user_id) is None:
        raise NotFoundError(f"User {user_id} not found")

    permission = BoardPermission.query.filter_by(board_id=board_id, user_id=user_id).first()
    if permission is not None:
        if permission.board_role == BoardRole.OWNER:
            raise ValidationError("Cannot change the owner's permission")
        permission.role = parsed.value
    else:
        permission = BoardPermission(board_id=board_id, user_id=user_id, role=parsed.value)
        db.session.add(permission)

    db.session.flush()
    logger.info(f"{actor_id} granted {parsed.value} on board {board.id} to {user_id}")
    return permission


def remove_permission(board_id, actor_id, user_id):
    """Revoke a user's role on a board (owner only). The owner row stays."""
    require_role(
        board_id, actor_id, access_policy.can_manage_permissions, "manage permissions on"
    )

    permission = BoardPermission.query.filter_by(board_id=board_id, user_id=user_id).first()
    if permission is None or permission.board_role == BoardRole.OWNER:
        raise ValidationError("Cannot remove owner permission or permission not found")

    db.session.delete(permission)
    db.session.flush()


def board_columns(board_id):
    """Columns of a board in position order."""
    return (
        BoardColumn.query.filter_by(board_id=board_id)
        .order_by(BoardColumn.position)
        .all()
    )
