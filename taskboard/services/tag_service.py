"""Tag service: board tags, a user's global tags and card tagging.

Board tags are managed by the board's owners and editors; global tags belong
to one user. Tagging a card that already carries the tag is a no-op.

Functions flush but do NOT commit. The caller commits.
"""

import re

import bleach
from sqlalchemy import delete, insert, select

from taskboard.errors import NotFoundError, PermissionDenied, ValidationError
from taskboard.extensions import db
from taskboard.models.tag import DEFAULT_TAG_COLOR, Tag, card_tags
from taskboard.services import access_policy, board_service, card_service

_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")


def _clean_name(name):
    name = bleach.clean(name or "", tags=[], strip=True).strip()
    if not name:
        raise ValidationError("Tag name is required")
    return name[:100]


def _clean_color(color):
    if color is None or not str(color).strip():
        return DEFAULT_TAG_COLOR
    color = str(color).strip()
    if not _COLOR_RE.match(color):
        raise ValidationError(f"Invalid color '{color}'. Use a hex value like #6c757d")
    return color


def _load_tag(tag_id):
    tag = db.session.get(Tag, tag_id)
    if tag is None:
        raise NotFoundError(f"Tag {tag_id} not found")
    return tag


def can_use_tag(tag, user_id):
    """Global tags are usable by their owner, board tags by board members."""
    if tag.is_global:
        return tag.owner_id == user_id
    return access_policy.can_view_board(board_service.get_user_role(tag.board_id, user_id))


def _editable_tag(tag_id, user_id):
    tag = _load_tag(tag_id)
    if tag.is_global:
        if tag.owner_id != user_id:
            raise PermissionDenied("You don't have permission to edit this tag")
    else:
        board_service.require_role(tag.board_id, user_id, access_policy.can_edit, "edit")
    return tag


def create_board_tag(board_id, user_id, name, color=None):
    board_service.require_role(board_id, user_id, access_policy.can_edit, "edit")
    tag = Tag(board_id=board_id, owner_id=None, name=_clean_name(name), color=_clean_color(color))
    db.session.add(tag)
    db.session.flush()
    return tag


def create_global_tag(user_id, name, color=None):
    tag = Tag(board_id=None, owner_id=user_id, name=_clean_name(name), color=_clean_color(color))
    db.session.add(tag)
    db.session.flush()
    return tag


def list_board_tags(board_id, user_id):
    board_service.require_role(board_id, user_id)
    return Tag.query.filter_by(board_id=board_id).order_by(Tag.name).all()


def list_global_tags(user_id):
    return (
        Tag.query.filter(Tag.owner_id == user_id, Tag.board_id.is_(None))
        .order_by(Tag.name)
        .all()
    )


def update_tag(tag_id, user_id, name=None, color=None):
    tag = _editable_tag(tag_id, user_id)
    if name is not None:
        tag.name = _clean_name(name)
    if color is not None:
        tag.color = _clean_color(color)
    db.session.flush()
    return tag


def delete_tag(tag_id, user_id):
    destroy_tag(_editable_tag(tag_id, user_id))


def destroy_tag(tag):
    """Delete a tag and its card links (no permission checks)."""
    db.session.execute(delete(card_tags).where(card_tags.c.tag_id == tag.id))
    db.session.delete(tag)
    db.session.flush()


# ─── Card tagging ────────────────────────────────────────────────


def attach(card, tag):
    """Link a tag to a card. Returns False when it was already linked."""
    exists = db.session.execute(
        select(card_tags.c.card_id).where(
            card_tags.c.card_id == card.id, card_tags.c.tag_id == tag.id
        )
    ).first()
    if exists is not None:
        return False
    db.session.execute(insert(card_tags).values(card_id=card.id, tag_id=tag.id))
    db.session.flush()
    return True


def add_tag_to_card(card_id, tag_id, user_id):
    """Tag a card the user may edit with a tag the user may use."""
    card = card_service.editable_card(card_id, user_id)
    tag = _load_tag(tag_id)
    if not can_use_tag(tag, user_id):
        raise NotFoundError(f"Tag {tag_id} not found")
    return attach(card, tag)


def remove_tag_from_card(card_id, tag_id, user_id):
    card = card_service.editable_card(card_id, user_id)
    db.session.execute(
        delete(card_tags).where(card_tags.c.card_id == card.id, card_tags.c.tag_id == tag_id)
    )
    db.session.flush()


def list_card_tags(card_id, user_id):
    card = card_service.get_card(card_id, user_id)
    return card.tags.all()
