"""Comment service: discussion threads on cards.

Anyone who can see a card can read its comments; adding one needs edit
rights on the card; only the author may change or remove a comment.

Functions flush but do NOT commit. The caller commits.
"""

from datetime import datetime, timezone

import bleach

from taskboard.errors import NotFoundError, PermissionDenied, ValidationError
from taskboard.extensions import db
from taskboard.models.comment import Comment
from taskboard.services import card_service


def _clean_body(body):
    body = bleach.clean(body or "", tags=[], strip=True).strip()
    if not body:
        raise ValidationError("Comment body is required")
    return body


def list_comments(card_id, user_id):
    """Comments on a visible card, oldest first."""
    card_service.get_card(card_id, user_id)
    return (
        Comment.query.filter_by(card_id=card_id)
        .order_by(Comment.created_at, Comment.id)
        .all()
    )


def add_comment(card_id, user_id, body):
    body = _clean_body(body)
    card_service.editable_card(card_id, user_id)

    comment = Comment(card_id=card_id, user_id=user_id, body=body)
    db.session.add(comment)
    db.session.flush()
    return comment


def _own_comment(comment_id, user_id):
    comment = db.session.get(Comment, comment_id)
    if comment is None:
        raise NotFoundError(f"Comment {comment_id} not found")
    if comment.user_id != user_id:
        raise PermissionDenied("Only the author can change this comment")
    return comment


def update_comment(comment_id, user_id, body):
    body = _clean_body(body)
    comment = _own_comment(comment_id, user_id)
    comment.body = body
    comment.updated_at = datetime.now(timezone.utc)
    db.session.flush()
    return comment


def delete_comment(comment_id, user_id):
    db.session.delete(_own_comment(comment_id, user_id))
    db.session.flush()


def count_comments(card_id):
    return Comment.query.filter_by(card_id=card_id).count()
