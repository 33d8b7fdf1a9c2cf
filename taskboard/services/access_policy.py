"""Access policy: every board and card permission rule lives here.

Pure functions over facts the caller has already loaded: a board role (or
None when the user has no relation to the board) and, for cards, the card
itself plus the roles the viewer holds on each board the card is attached to.
Nothing here touches the database.

Role lattice: owner ⊇ editor ⊇ reader.
"""

from taskboard.errors import ValidationError
from taskboard.models.enums import BoardRole, Visibility

_EDIT_ROLES = frozenset({BoardRole.OWNER, BoardRole.EDITOR})


def _role(role):
    if role is None:
        return None
    return BoardRole.parse(role)


def can_view_board(role):
    """Any recognised role may read a board."""
    return _role(role) is not None


def can_edit(role):
    """Owners and editors may change a board's columns, cards and tags."""
    return _role(role) in _EDIT_ROLES


def can_delete_board(role):
    return _role(role) == BoardRole.OWNER


def can_manage_permissions(role):
    return _role(role) == BoardRole.OWNER


def is_card_principal(card, viewer_id):
    """True when the viewer owns or created the card."""
    if viewer_id is None:
        return False
    return viewer_id in (card.owner_id, card.created_by)


def can_view_card(card, board_roles, viewer_id, attached=True):
    """Decide whether ``viewer_id`` may see ``card``.

    Args:
        card: Card (only owner_id, created_by and visibility are read).
        board_roles: Roles the viewer holds on the boards the card is attached
            to; None entries stand for "no relation".
        viewer_id: User UUID string.
        attached: False for inbox cards (attached to no board at all).

    Owner and creator always see the card. Nobody else sees an inbox card,
    whatever its visibility. Otherwise Public cards are visible to everyone,
    Restricted cards to any role on an attached board and Private cards only
    to editors of an attached board.
    """
    if is_card_principal(card, viewer_id):
        return True
    if not attached:
        return False

    visibility = Visibility.from_stored(card.visibility)
    if visibility == Visibility.PUBLIC:
        return True
    if visibility == Visibility.RESTRICTED:
        return any(can_view_board(r) for r in board_roles)
    return any(can_edit(r) for r in board_roles)


def can_edit_card(card, board_roles, viewer_id):
    """Owner/creator, or an editor of at least one attached board."""
    if is_card_principal(card, viewer_id):
        return True
    return any(can_edit(r) for r in board_roles)


def can_see_in_listing(card, role, viewer_id):
    """Visibility filter for a single board's card listing.

    Owners and editors see every card, readers everything except Private ones
    and users without a role only Public cards.
    """
    if is_card_principal(card, viewer_id):
        return True
    visibility = Visibility.from_stored(card.visibility)
    if can_edit(role):
        return True
    if can_view_board(role):
        return visibility != Visibility.PRIVATE
    return visibility == Visibility.PUBLIC


def validate_grantable_role(role):
    """Parse a role for the permission-management operation.

    Raises:
        ValidationError: If the role is unknown or is Owner (a board has
            exactly one owner, set when the board is created).
    """
    try:
        parsed = BoardRole.parse(role)
    except ValueError as e:
        raise ValidationError(str(e)) from e
    if parsed == BoardRole.OWNER:
        raise ValidationError("Cannot add another owner")
    return parsed
