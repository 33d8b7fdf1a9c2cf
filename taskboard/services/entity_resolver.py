"""Entity resolver: find columns, cards, tags and boards by name.

Names coming out of a chat are matched case-insensitively and exactly (after
trimming surrounding whitespace): no substring or fuzzy matching. Duplicate
names are legal and resolve to the first one in a fixed order, so the same
request always picks the same entity. Every finder returns None when nothing
matches.
"""

from taskboard.models.board import Board, BoardPermission
from taskboard.models.card import Card, CardBoardAssignment
from taskboard.models.column import BoardColumn
from taskboard.models.enums import BoardRole
from taskboard.models.tag import Tag


def _key(name):
    return (name or "").strip().casefold()


def _first(items, attr, name):
    wanted = _key(name)
    if not wanted:
        return None
    for item in items:
        if _key(getattr(item, attr)) == wanted:
            return item
    return None


def find_column(board_id, name):
    """Column of the board whose name matches, lowest position first."""
    columns = (
        BoardColumn.query.filter_by(board_id=board_id)
        .order_by(BoardColumn.position)
        .all()
    )
    return _first(columns, "name", name)


def find_card(columns, title):
    """First card titled ``title`` across ``columns``.

    Columns are scanned in ascending position order and, inside a column,
    cards in position order.

    Args:
        columns: Iterable of BoardColumn, or a board id string.
    """
    if isinstance(columns, str):
        columns = BoardColumn.query.filter_by(board_id=columns).all()
    for column in sorted(columns, key=lambda c: c.position):
        cards = Card.query.filter_by(column_id=column.id).order_by(Card.position).all()
        card = _first(cards, "title", title)
        if card is not None:
            return card
    return None


def find_card_anywhere(board_id, title):
    """Like find_card, then falls back to cards placed on the board by assignment."""
    card = find_card(board_id, title)
    if card is not None:
        return card

    placed = (
        Card.query.join(CardBoardAssignment, CardBoardAssignment.card_id == Card.id)
        .outerjoin(BoardColumn, CardBoardAssignment.column_id == BoardColumn.id)
        .filter(CardBoardAssignment.board_id == board_id)
        .order_by(
            BoardColumn.position.is_(None),
            BoardColumn.position,
            CardBoardAssignment.position,
        )
        .all()
    )
    return _first(placed, "title", title)


def find_tag(name, board_id=None, owner_id=None):
    """Board tag (when board_id is given) or global tag of ``owner_id``."""
    if (board_id is None) == (owner_id is None):
        raise ValueError("find_tag needs exactly one of board_id or owner_id")
    if board_id is not None:
        query = Tag.query.filter_by(board_id=board_id)
    else:
        query = Tag.query.filter(Tag.owner_id == owner_id, Tag.board_id.is_(None))
    return _first(query.order_by(Tag.created_at, Tag.id).all(), "name", name)


def find_board(user_id, name):
    """Board the user has a role on, most recently updated first.

    Returns:
        (Board, BoardRole) tuple, or None.
    """
    rows = (
        Board.query.join(BoardPermission, BoardPermission.board_id == Board.id)
        .filter(BoardPermission.user_id == user_id)
        .with_entities(Board, BoardPermission.role)
        .order_by(Board.updated_at.desc(), Board.name)
        .all()
    )
    wanted = _key(name)
    if not wanted:
        return None
    for board, role in rows:
        if _key(board.name) == wanted:
            return board, BoardRole.parse(role)
    return None
