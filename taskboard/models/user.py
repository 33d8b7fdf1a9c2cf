"""User model.

Anchors ownership of boards, inbox cards, global tags and chat history.
Credentials and sessions live outside this package.
"""

import uuid

from taskboard.extensions import db


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    # Free-form notes the user wants the assistant to always know about.
    llm_context = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    board_permissions = db.relationship(
        "BoardPermission", back_populates="user", lazy="dynamic"
    )

    def __repr__(self):
        return f"<User {self.email}>"
