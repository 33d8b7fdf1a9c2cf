"""Board models.

- Board: the tenant container. Owns columns, board-scoped tags and chat history.
- BoardPermission: (board, user) -> role. Exactly one owner row per board,
  written in the same transaction that creates the board.
"""

import uuid
from datetime import datetime, timezone

from taskboard.extensions import db
from taskboard.models.enums import BoardRole


class Board(db.Model):
    __tablename__ = "boards"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    owner_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # --- Relationships ---
    owner = db.relationship("User", foreign_keys=[owner_id])
    columns = db.relationship(
        "BoardColumn",
        back_populates="board",
        lazy="dynamic",
        order_by="BoardColumn.position",
    )
    permissions = db.relationship(
        "BoardPermission", back_populates="board", lazy="dynamic"
    )
    tags = db.relationship(
        "Tag", back_populates="board", lazy="dynamic", order_by="Tag.name"
    )

    def __repr__(self):
        return f"<Board {self.name}>"


class BoardPermission(db.Model):
    __tablename__ = "board_permissions"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    board_id = db.Column(
        db.String(36),
        db.ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False
    )
    role = db.Column(db.String(20), nullable=False)  # owner, editor, reader
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    __table_args__ = (
        db.UniqueConstraint("board_id", "user_id", name="uq_board_permission"),
    )

    # --- Relationships ---
    board = db.relationship("Board", back_populates="permissions")
    user = db.relationship("User", back_populates="board_permissions")

    @property
    def board_role(self):
        return BoardRole.parse(self.role)

    def __repr__(self):
        return f"<BoardPermission {self.user_id} {self.role} on {self.board_id}>"
