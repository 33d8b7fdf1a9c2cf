"""Card models.

- Card: a task. Lives in a column (column_id set) or stands alone as an
  inbox card owned by a user (column_id NULL).
- CardBoardAssignment: secondary placement of a card on another board,
  optionally in one of that board's columns. One row per (card, board).
"""

import uuid

from taskboard.extensions import db
from taskboard.models.enums import CardStatus, Visibility


class Card(db.Model):
    __tablename__ = "cards"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    column_id = db.Column(
        db.String(36),
        db.ForeignKey("columns.id", ondelete="SET NULL"),
        nullable=True,
    )
    title = db.Column(db.String(500), nullable=False)
    body = db.Column(db.Text, nullable=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    visibility = db.Column(
        db.String(20), nullable=False, default=Visibility.RESTRICTED.value
    )
    status = db.Column(
        db.String(20), nullable=False, default=CardStatus.OPEN.value
    )
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    owner_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    created_by = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    column = db.relationship("BoardColumn", back_populates="cards")
    assignments = db.relationship(
        "CardBoardAssignment", back_populates="card", lazy="dynamic"
    )
    tags = db.relationship(
        "Tag", secondary="card_tags", lazy="dynamic", order_by="Tag.name"
    )

    @property
    def visibility_tier(self):
        return Visibility.from_stored(self.visibility)

    @property
    def card_status(self):
        return CardStatus.parse(self.status)

    @property
    def board_id(self):
        """Board of the card's column, or None for column-less cards."""
        return self.column.board_id if self.column is not None else None

    def __repr__(self):
        return f"<Card {self.title[:40]}>"


class CardBoardAssignment(db.Model):
    __tablename__ = "card_boards"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    card_id = db.Column(
        db.String(36),
        db.ForeignKey("cards.id", ondelete="CASCADE"),
        nullable=False,
    )
    board_id = db.Column(
        db.String(36),
        db.ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
    )
    column_id = db.Column(
        db.String(36),
        db.ForeignKey("columns.id", ondelete="SET NULL"),
        nullable=True,
    )
    position = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    __table_args__ = (
        db.UniqueConstraint("card_id", "board_id", name="uq_card_board"),
    )

    card = db.relationship("Card", back_populates="assignments")
    board = db.relationship("Board")
    column = db.relationship("BoardColumn")

    def __repr__(self):
        return f"<CardBoardAssignment {self.card_id} on {self.board_id}>"
