"""Tags.

A tag belongs to exactly one board (board-scoped) or to exactly one user
(global), never both and never neither. card_tags is a plain join table.
"""

import uuid
from datetime import datetime, timezone

from taskboard.extensions import db

DEFAULT_TAG_COLOR = "#6c757d"

card_tags = db.Table(
    "card_tags",
    db.Column(
        "card_id",
        db.String(36),
        db.ForeignKey("cards.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Column(
        "tag_id",
        db.String(36),
        db.ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Tag(db.Model):
    __tablename__ = "tags"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    board_id = db.Column(
        db.String(36),
        db.ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=True,
    )
    owner_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    name = db.Column(db.String(100), nullable=False)
    color = db.Column(db.String(20), nullable=False, default=DEFAULT_TAG_COLOR)
    # Python-side default so duplicate names resolve to the oldest tag.
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        db.CheckConstraint(
            "(board_id IS NULL) <> (owner_id IS NULL)",
            name="ck_tag_scope",
        ),
    )

    board = db.relationship("Board", back_populates="tags")

    @property
    def is_global(self):
        return self.board_id is None

    def __repr__(self):
        return f"<Tag {self.name}>"
