"""Card service: board cards, inbox cards, multi-board placement, listing.

A card either sits in a board column (column_id set) or is a standalone inbox
card owned by a user. Any card can additionally be placed on other boards via
CardBoardAssignment. Visibility and edit rights come from access_policy,
using the roles the actor holds on every board the card is attached to.

All card text (title, body) is sanitized with bleach.clean().

Functions flush but do NOT commit. The caller commits.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional

import bleach
from sqlalchemy import or_, select
from sqlalchemy.orm import aliased

from taskboard.errors import NotFoundError, PermissionDenied, ValidationError
from taskboard.extensions import db
from taskboard.models.board import Board, BoardPermission
from taskboard.models.card import Card, CardBoardAssignment
from taskboard.models.column import BoardColumn
from taskboard.models.comment import Comment
from taskboard.models.enums import BoardRole, CardStatus, Visibility
from taskboard.models.tag import card_tags
from taskboard.services import access_policy, board_service
from taskboard.services.positions import assignment_positions, card_positions

logger = logging.getLogger(__name__)

TITLE_MAX = 500


def _sanitize(text):
    """Strip all HTML tags from user input."""
    if text is None:
        return text
    return bleach.clean(text, tags=[], strip=True).strip()


def _clean_title(title):
    title = _sanitize(title)
    if not title:
        raise ValidationError("Card title is required")
    return title[:TITLE_MAX]


def _parse_enum(enum_cls, value, default=None):
    if value is None:
        if default is None:
            raise ValidationError(f"{enum_cls.__name__} is required")
        return default
    try:
        return enum_cls.parse(value)
    except ValueError as e:
        raise ValidationError(str(e)) from e


def _coerce_date(value, label):
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise ValidationError(f"Invalid {label} '{value}'. Expected YYYY-MM-DD") from e


# ─── Access helpers ──────────────────────────────────────────────


def attached_board_ids(card):
    """Boards the card is attached to: its column's board plus assignments."""
    board_ids = []
    if card.column_id is not None:
        board_ids.append(card.column.board_id)
    for assignment in card.assignments:
        if assignment.board_id not in board_ids:
            board_ids.append(assignment.board_id)
    return board_ids


def board_roles_for_card(card, user_id):
    """Roles ``user_id`` holds on each board the card is attached to."""
    board_ids = attached_board_ids(card)
    if not board_ids:
        return []
    roles = db.session.execute(
        select(BoardPermission.role).where(
            BoardPermission.board_id.in_(board_ids),
            BoardPermission.user_id == user_id,
        )
    ).scalars()
    return [BoardRole.parse(r) for r in roles]


def _load_card(card_id):
    card = db.session.get(Card, card_id)
    if card is None:
        raise NotFoundError(f"Card {card_id} not found")
    return card


def editable_card(card_id, user_id):
    card = _load_card(card_id)
    if not access_policy.can_edit_card(card, board_roles_for_card(card, user_id), user_id):
        raise PermissionDenied("You don't have permission to edit this card")
    return card


def _editable_column(column_id, user_id):
    column = db.session.get(BoardColumn, column_id)
    if column is None:
        raise NotFoundError(f"Column {column_id} not found")
    board_service.require_role(column.board_id, user_id, access_policy.can_edit, "edit")
    return column


# ─── Board cards ─────────────────────────────────────────────────


def create_card(
    column_id,
    user_id,
    title,
    body=None,
    position=None,
    visibility=None,
    status=None,
    start_date=None,
    end_date=None,
    due_date=None,
):
    """Create a card in a column.

    Args:
        column_id: Target column UUID string.
        user_id: Creator's user UUID string (needs edit rights on the board).
        title: Card title (will be sanitized, required).
        body: Optional markdown body (will be sanitized).
        position: Optional slot; appended when omitted.
        visibility: Visibility or string; defaults to Restricted.
        status: CardStatus or string; defaults to Open.

    Returns:
        The created Card.

    Raises:
        ValidationError: Empty title, bad enum/date value, bad position.
        NotFoundError: Column or board not found.
        PermissionDenied: Creator cannot edit the board.
    """
    title = _clean_title(title)
    column = _editable_column(column_id, user_id)

    card = Card(
        title=title,
        body=_sanitize(body) or None,
        visibility=_parse_enum(Visibility, visibility, Visibility.RESTRICTED).value,
        status=_parse_enum(CardStatus, status, CardStatus.OPEN).value,
        start_date=_coerce_date(start_date, "start_date"),
        end_date=_coerce_date(end_date, "end_date"),
        due_date=_coerce_date(due_date, "due_date"),
        owner_id=user_id,
        created_by=user_id,
    )
    card_positions.insert(card_positions.container(column_id=column.id), card, position)

    logger.info(f"Card '{card.title}' created in column {column.id} by {user_id}")
    return card


def get_card(card_id, user_id):
    """Return a card the user may see.

    Raises:
        NotFoundError: If the card does not exist.
        PermissionDenied: If the user may not see it.
    """
    card = _load_card(card_id)
    attached = bool(attached_board_ids(card))
    if not access_policy.can_view_card(
        card, board_roles_for_card(card, user_id), user_id, attached=attached
    ):
        raise PermissionDenied("You don't have permission to view this card")
    return card


def update_card(card_id, user_id, **changes):
    """Update card fields.

    Accepted keys: title, body, visibility, status, start_date, end_date,
    due_date. Unknown keys raise ValidationError.
    """
    allowed = {"title", "body", "visibility", "status", "start_date", "end_date", "due_date"}
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(f"Unknown card field(s): {', '.join(sorted(unknown))}")

    card = editable_card(card_id, user_id)

    if "title" in changes:
        card.title = _clean_title(changes["title"])
    if "body" in changes:
        card.body = _sanitize(changes["body"]) or None
    if "visibility" in changes:
        card.visibility = _parse_enum(Visibility, changes["visibility"], None).value
    if "status" in changes:
        card.status = _parse_enum(CardStatus, changes["status"], None).value
    for key in ("start_date", "end_date", "due_date"):
        if key in changes:
            setattr(card, key, _coerce_date(changes[key], key))

    card.updated_at = datetime.now(timezone.utc)
    db.session.flush()
    return card


def update_status(card_id, user_id, status):
    """Set a card's status (open, in_progress, done, closed)."""
    card = editable_card(card_id, user_id)
    card.status = _parse_enum(CardStatus, status, None).value
    card.updated_at = datetime.now(timezone.utc)
    db.session.flush()
    return card


def move_card(card_id, user_id, column_id, position):
    """Move a column card to ``position`` in ``column_id``.

    Moving between boards needs edit rights on both.

    Returns:
        The card's final position.
    """
    card = _load_card(card_id)
    if card.column_id is None:
        raise ValidationError("Card is not in a column")

    source = _editable_column(card.column_id, user_id)
    target = source if column_id == source.id else _editable_column(column_id, user_id)

    final = card_positions.move(
        card,
        card_positions.container(column_id=source.id),
        card_positions.container(column_id=target.id),
        position,
    )
    if target.board_id != source.board_id:
        # The card now lives on the target board directly.
        drop_assignment(card, target.board_id)
    card.updated_at = datetime.now(timezone.utc)
    db.session.flush()
    return final


def delete_card(card_id, user_id):
    """Delete a card the user may edit, closing every gap it leaves."""
    card = editable_card(card_id, user_id)
    title = card.title
    destroy_card(card)
    logger.info(f"Card '{title}' ({card_id}) deleted by {user_id}")


def destroy_card(card):
    """Remove a card and its dependents without permission checks."""
    if card.column_id is not None:
        card_positions.remove(card_positions.container_of(card), card)
    for assignment in card.assignments.all():
        assignment_positions.remove(assignment_positions.container_of(assignment), assignment)
        db.session.delete(assignment)

    db.session.execute(card_tags.delete().where(card_tags.c.card_id == card.id))
    for comment in Comment.query.filter_by(card_id=card.id).all():
        db.session.delete(comment)

    db.session.delete(card)
    db.session.flush()


def drop_assignment(card, board_id):
    """Remove the card's placement on ``board_id`` if it has one."""
    assignment = CardBoardAssignment.query.filter_by(card_id=card.id, board_id=board_id).first()
    if assignment is None:
        return False
    assignment_positions.remove(assignment_positions.container_of(assignment), assignment)
    db.session.delete(assignment)
    db.session.flush()
    return True


def detach_from_column(card):
    """Take a card out of its column but keep it (it lives on elsewhere)."""
    card_positions.remove(card_positions.container_of(card), card)
    card.column_id = None
    card.position = 0
    db.session.flush()
    db.session.expire(card)


# ─── Listing ─────────────────────────────────────────────────────


@dataclass
class CardFilter:
    """Optional narrowing for board listings. All criteria are ANDed."""

    query: Optional[str] = None
    start_date_from: Optional[date] = None
    start_date_to: Optional[date] = None
    end_date_from: Optional[date] = None
    end_date_to: Optional[date] = None
    due_date_from: Optional[date] = None
    due_date_to: Optional[date] = None
    updated_from: Optional[datetime] = None
    updated_to: Optional[datetime] = None
    tag_ids: list = field(default_factory=list)

    def clauses(self):
        clauses = []
        if self.query:
            pattern = f"%{self.query}%"
            clauses.append(or_(Card.title.ilike(pattern), Card.body.ilike(pattern)))
        ranges = (
            (Card.start_date, self.start_date_from, self.start_date_to),
            (Card.end_date, self.end_date_from, self.end_date_to),
            (Card.due_date, self.due_date_from, self.due_date_to),
            (Card.updated_at, self.updated_from, self.updated_to),
        )
        for column, low, high in ranges:
            if low is not None:
                clauses.append(column >= low)
            if high is not None:
                clauses.append(column <= high)
        if self.tag_ids:
            clauses.append(
                Card.id.in_(
                    select(card_tags.c.card_id).where(card_tags.c.tag_id.in_(self.tag_ids))
                )
            )
        return clauses


def list_board_cards(board_id, user_id, card_filter=None):
    """Cards on a board the user may see.

    Column cards come first, ordered by column then card position, followed
    by cards placed on the board through an assignment. Owners and editors
    see everything, readers all but Private cards, anyone else Public only.

    Raises:
        NotFoundError: If the board does not exist.
    """
    if db.session.get(Board, board_id) is None:
        raise NotFoundError("Board not found")

    role = board_service.get_user_role(board_id, user_id)
    extra = card_filter.clauses() if card_filter else []

    in_columns = db.session.execute(
        select(Card)
        .join(BoardColumn, Card.column_id == BoardColumn.id)
        .where(BoardColumn.board_id == board_id, *extra)
        .order_by(BoardColumn.position, Card.position)
    ).scalars().all()

    bucket_column = aliased(BoardColumn)
    assigned = db.session.execute(
        select(Card)
        .join(CardBoardAssignment, CardBoardAssignment.card_id == Card.id)
        .outerjoin(bucket_column, CardBoardAssignment.column_id == bucket_column.id)
        .where(CardBoardAssignment.board_id == board_id, *extra)
        .order_by(
            bucket_column.position.is_(None),
            bucket_column.position,
            CardBoardAssignment.position,
        )
    ).scalars().all()

    seen = set()
    visible = []
    for card in list(in_columns) + list(assigned):
        if card.id in seen:
            continue
        seen.add(card.id)
        if access_policy.can_see_in_listing(card, role, user_id):
            visible.append(card)
    return visible


def list_column_cards(column_id):
    """Cards of one column in position order (no permission check)."""
    return Card.query.filter_by(column_id=column_id).order_by(Card.position).all()


# ─── Inbox (standalone) cards ────────────────────────────────────


def create_standalone_card(
    user_id,
    title,
    body=None,
    visibility=None,
    status=None,
    start_date=None,
    end_date=None,
    due_date=None,
):
    """Create an inbox card owned by ``user_id``. Private unless told otherwise."""
    card = Card(
        column_id=None,
        title=_clean_title(title),
        body=_sanitize(body) or None,
        position=0,
        visibility=_parse_enum(Visibility, visibility, Visibility.PRIVATE).value,
        status=_parse_enum(CardStatus, status, CardStatus.OPEN).value,
        start_date=_coerce_date(start_date, "start_date"),
        end_date=_coerce_date(end_date, "end_date"),
        due_date=_coerce_date(due_date, "due_date"),
        owner_id=user_id,
        created_by=user_id,
    )
    db.session.add(card)
    db.session.flush()
    return card


def list_inbox(user_id, status=None):
    """Standalone cards owned by the user, newest first, optionally by status."""
    query = Card.query.filter(Card.owner_id == user_id, Card.column_id.is_(None))
    if status is not None:
        query = query.filter(Card.status == _parse_enum(CardStatus, status, None).value)
    return query.order_by(Card.created_at.desc(), Card.title).all()


def assign_to_board(card_id, user_id, board_id, column_id=None, position=None):
    """Place a card on a board, optionally in one of its columns.

    Needs edit rights on the card and on the target board.

    Raises:
        ValidationError: Column not on this board, or card already placed there.
    """
    card = editable_card(card_id, user_id)
    board_service.require_role(board_id, user_id, access_policy.can_edit, "edit")

    if column_id is not None:
        column = db.session.get(BoardColumn, column_id)
        if column is None or column.board_id != board_id:
            raise ValidationError("Column does not belong to this board")

    if card.column_id is not None and card.column.board_id == board_id:
        raise ValidationError("Card is already assigned to this board")
    existing = CardBoardAssignment.query.filter_by(card_id=card.id, board_id=board_id).first()
    if existing is not None:
        raise ValidationError("Card is already assigned to this board")

    assignment = CardBoardAssignment(card_id=card.id)
    assignment_positions.insert(
        assignment_positions.container(board_id=board_id, column_id=column_id),
        assignment,
        position,
    )
    logger.info(f"Card {card.id} placed on board {board_id} by {user_id}")
    return assignment


def remove_from_board(card_id, user_id, board_id):
    """Drop a card's placement on a board (card owner or board editor)."""
    card = _load_card(card_id)
    assignment = CardBoardAssignment.query.filter_by(card_id=card_id, board_id=board_id).first()
    if assignment is None:
        raise NotFoundError("Card is not assigned to this board")

    board_role = board_service.get_user_role(board_id, user_id)
    if not (access_policy.is_card_principal(card, user_id) or access_policy.can_edit(board_role)):
        raise PermissionDenied("You don't have permission to edit this card")

    drop_assignment(card, board_id)


def move_in_board(card_id, user_id, board_id, column_id, position):
    """Move a placed card to another column bucket (or none) on the same board."""
    assignment = CardBoardAssignment.query.filter_by(card_id=card_id, board_id=board_id).first()
    if assignment is None:
        raise NotFoundError("Card is not assigned to this board")

    board_role = board_service.get_user_role(board_id, user_id)
    if not access_policy.can_edit(board_role):
        raise PermissionDenied("You don't have permission to edit this board")

    if column_id is not None:
        column = db.session.get(BoardColumn, column_id)
        if column is None or column.board_id != board_id:
            raise ValidationError("Column does not belong to this board")

    return assignment_positions.move(
        assignment,
        assignment_positions.container_of(assignment),
        assignment_positions.container(board_id=board_id, column_id=column_id),
        position,
    )


def list_card_boards(card_id, user_id):
    """Boards a visible card is attached to."""
    card = get_card(card_id, user_id)
    return [db.session.get(Board, board_id) for board_id in attached_board_ids(card)]
