"""Chat history.

One row per chat request: the user's message, the reply shown back and the
JSON-encoded list of action outcomes (NULL when nothing was attempted).
board_id is NULL for the global (cross-board) assistant.
"""

import json
import uuid
from datetime import datetime, timezone

from taskboard.extensions import db


class ChatMessage(db.Model):
    __tablename__ = "chat_messages"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    board_id = db.Column(
        db.String(36),
        db.ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=True,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False
    )
    message = db.Column(db.Text, nullable=False)
    response = db.Column(db.Text, nullable=False)
    actions_taken = db.Column(db.Text, nullable=True)
    # Python-side default keeps sub-second ordering for history.
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def actions(self):
        """Decoded outcome list, empty when no actions were recorded."""
        if not self.actions_taken:
            return []
        return json.loads(self.actions_taken)

    def __repr__(self):
        return f"<ChatMessage {self.id}>"
