"""Board column (lane). Positions are dense and zero-based within a board."""

import uuid

from taskboard.extensions import db


class BoardColumn(db.Model):
    __tablename__ = "columns"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    board_id = db.Column(
        db.String(36),
        db.ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = db.Column(db.String(255), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    board = db.relationship("Board", back_populates="columns")
    cards = db.relationship(
        "Card",
        back_populates="column",
        lazy="dynamic",
        order_by="Card.position",
    )

    def __repr__(self):
        return f"<BoardColumn {self.name}>"
