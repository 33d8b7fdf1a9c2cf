"""Chat service: the board and global assistants.

One request runs start to finish in a single transaction:

    prompt → language model → action_parser.parse → action_executor
    → reply text → ChatMessage history row → commit

If the language model fails, nothing has been written and LLMServiceError
propagates. If the database fails mid-way the transaction is rolled back,
so a request never leaves half of its actions applied.

Usage:
    reply = send_board_message(board_id, user_id, "Move 'Fix bug' to Done")
    reply.message   # text to show
    reply.actions   # [ActionOutcome, ...]
"""

import json
import logging
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError

from taskboard.errors import ValidationError
from taskboard.extensions import db
from taskboard.models.chat import ChatMessage
from taskboard.models.user import User
from taskboard.services import access_policy, action_executor, action_parser, board_service
from taskboard.services.llm_service import LLMClient
from taskboard.services.prompts import build_global_system_prompt, build_system_prompt

logger = logging.getLogger(__name__)

PROCESSING_REPLY = "Processing your request..."


@dataclass
class ChatReply:
    message: str
    actions: list = field(default_factory=list)
    chat_message_id: str = None

    def to_dict(self):
        return {
            "message": self.message,
            "actions": [a.to_dict() for a in self.actions],
            "chat_message_id": self.chat_message_id,
        }


def extract_readable_message(raw_text, descriptors):
    """Reply to show the user.

    Messages carried by the parsed actions are joined with spaces. Without
    any, raw JSON output is replaced by a neutral placeholder and anything
    else is shown as the model wrote it.
    """
    messages = [d.message.strip() for d in descriptors if d.message and d.message.strip()]
    if messages:
        return " ".join(messages)
    if action_parser.looks_like_json(raw_text):
        return PROCESSING_REPLY
    return (raw_text or "").strip()


def _client(llm_client):
    return llm_client or LLMClient.from_config(current_app.config)


def _clean_message(message):
    message = (message or "").strip()
    if not message:
        raise ValidationError("Message is required")
    return message


def _record(board_id, user_id, message, reply, outcomes):
    actions_json = json.dumps([o.to_dict() for o in outcomes]) if outcomes else None
    chat = ChatMessage(
        board_id=board_id,
        user_id=user_id,
        message=message,
        response=reply,
        actions_taken=actions_json,
    )
    db.session.add(chat)
    db.session.flush()
    return chat


def _run(board_id, user_id, message, system_prompt, llm_client, execute):
    raw = _client(llm_client).chat(
        [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": message},
        ]
    )

    descriptors = action_parser.parse(raw)
    try:
        outcomes = execute(descriptors)
        reply = extract_readable_message(raw, descriptors)
        chat = _record(board_id, user_id, message, reply, outcomes)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception(f"Chat request for user {user_id} rolled back")
        raise

    succeeded = sum(1 for o in outcomes if o.success)
    logger.info(
        f"Chat by {user_id} on {board_id or 'global'}: "
        f"{len(descriptors)} parsed, {len(outcomes)} attempted, {succeeded} succeeded"
    )
    return ChatReply(message=reply, actions=outcomes, chat_message_id=chat.id)


def send_board_message(board_id, user_id, message, llm_client=None):
    """Chat with the assistant of one board.

    Any member may chat; each mutating action is still checked against the
    member's role when it runs.

    Raises:
        ValidationError: Empty message.
        NotFoundError: Board missing or the user has no role on it.
        LLMServiceError: The language model failed; nothing was applied.
    """
    message = _clean_message(message)
    board, _ = board_service.require_role(board_id, user_id)
    user = db.session.get(User, user_id)

    return _run(
        board.id,
        user_id,
        message,
        build_system_prompt(board, user),
        llm_client,
        lambda descriptors: action_executor.execute_board_actions(board, user_id, descriptors),
    )


def send_global_message(user_id, message, llm_client=None):
    """Chat with the cross-board assistant (board named in every action)."""
    message = _clean_message(message)
    user = db.session.get(User, user_id)

    return _run(
        None,
        user_id,
        message,
        build_global_system_prompt(user_id, user),
        llm_client,
        lambda descriptors: action_executor.execute_global_actions(user_id, descriptors),
    )


# ─── History ─────────────────────────────────────────────────────


def _latest(query, limit):
    limit = limit or current_app.config.get("CHAT_HISTORY_LIMIT", 50)
    newest_first = query.order_by(ChatMessage.created_at.desc()).limit(limit).all()
    return list(reversed(newest_first))


def get_history(board_id, user_id, limit=None):
    """Most recent board chat messages, oldest first."""
    board_service.require_role(board_id, user_id)
    return _latest(ChatMessage.query.filter_by(board_id=board_id), limit)


def get_global_history(user_id, limit=None):
    """The user's most recent global chat messages, oldest first."""
    return _latest(
        ChatMessage.query.filter(
            ChatMessage.user_id == user_id, ChatMessage.board_id.is_(None)
        ),
        limit,
    )


def clear_history(board_id, user_id):
    """Delete a board's chat history (owners and editors). Returns the count."""
    board_service.require_role(board_id, user_id, access_policy.can_edit, "edit")
    result = db.session.execute(delete(ChatMessage).where(ChatMessage.board_id == board_id))
    db.session.commit()
    return result.rowcount


def clear_global_history(user_id):
    result = db.session.execute(
        delete(ChatMessage).where(
            ChatMessage.user_id == user_id, ChatMessage.board_id.is_(None)
        )
    )
    db.session.commit()
    return result.rowcount
