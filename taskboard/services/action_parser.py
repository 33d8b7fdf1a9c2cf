"""Action parser: pull action descriptors out of free-form model output.

The model is asked to answer with a JSON object such as::

    {"action": "create_card", "params": {"column": "Todo", "title": "x"},
     "message": "Added it."}

but real replies wrap that in prose, in a ```json fence, or emit several
objects in a row. Parsing never raises: text with nothing usable yields an
empty list.

Order of attempts:
    1. The whole (trimmed) text as one JSON object.
    2. The body of the first ```json fence as one JSON object.
    3. Every brace-balanced {...} span, left to right; spans that are not
       valid action objects are skipped.
"""

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

FENCE_OPEN = "```json"
FENCE_CLOSE = "```"


class ChatAction(enum.Enum):
    CREATE_BOARD = "create_board"
    CREATE_CARD = "create_card"
    MOVE_CARD = "move_card"
    MOVE_CARD_CROSS_BOARD = "move_card_cross_board"
    CREATE_TAG = "create_tag"
    ADD_TAG = "add_tag"
    LIST_CARDS = "list_cards"
    LIST_TAGS = "list_tags"
    DELETE_COLUMN = "delete_column"
    DELETE_TAG = "delete_tag"
    DELETE_CARD = "delete_card"
    NO_ACTION = "no_action"
    UNKNOWN = "unknown"

    @classmethod
    def from_name(cls, name):
        """Match ignoring case and underscores; anything else is UNKNOWN."""
        key = str(name).strip().lower().replace("_", "")
        for member in cls:
            if member is not cls.UNKNOWN and member.value.replace("_", "") == key:
                return member
        return cls.UNKNOWN

    @property
    def is_read_only(self):
        return self in _READ_ONLY


_READ_ONLY = frozenset({ChatAction.LIST_CARDS, ChatAction.LIST_TAGS, ChatAction.NO_ACTION})


@dataclass
class ActionDescriptor:
    """One requested action, parsed but not yet executed."""

    action: ChatAction
    raw_action: str
    params: dict = field(default_factory=dict)
    message: Optional[str] = None

    @property
    def name(self):
        """Canonical action name, or the raw name for unknown actions."""
        if self.action is ChatAction.UNKNOWN:
            return self.raw_action
        return self.action.value


def _descriptor(obj):
    if not isinstance(obj, dict):
        return None
    raw_action = obj.get("action")
    if not isinstance(raw_action, str):
        return None

    params = obj.get("params")
    if not isinstance(params, dict):
        params = {}
    message = obj.get("message")
    if message is not None and not isinstance(message, str):
        message = str(message)

    return ActionDescriptor(
        action=ChatAction.from_name(raw_action),
        raw_action=raw_action,
        params=params,
        message=message,
    )


def _loads(text):
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return None


def _fenced_block(text):
    start = text.find(FENCE_OPEN)
    if start == -1:
        return None
    start += len(FENCE_OPEN)
    end = text.find(FENCE_CLOSE, start)
    if end == -1:
        return None
    return text[start:end].strip()


def _span_end(text, start, skip_strings):
    """Index just past the ``}`` closing the ``{`` at ``start``, or None."""
    depth = 0
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"' and skip_strings:
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def balanced_spans(text):
    """Yield every top-level ``{...}`` span whose braces balance.

    Braces inside JSON string literals are not counted. When that reading
    does not give valid JSON (a stray quote in malformed text), the span is
    re-read counting every brace, so one bad span never hides the ones
    after it.
    """
    pos = 0
    while True:
        start = text.find("{", pos)
        if start == -1:
            return

        end = _span_end(text, start, skip_strings=True)
        if end is None or _loads(text[start:end]) is None:
            end = _span_end(text, start, skip_strings=False)
        if end is None:
            pos = start + 1
            continue

        yield text[start:end]
        pos = end


def parse(raw_text):
    """Extract action descriptors from model output.

    Returns:
        List of ActionDescriptor in the order they appear. Possibly empty.
    """
    if not raw_text or not isinstance(raw_text, str):
        return []
    text = raw_text.strip()

    single = _descriptor(_loads(text))
    if single is not None:
        return [single]

    fenced = _fenced_block(text)
    if fenced is not None:
        single = _descriptor(_loads(fenced))
        if single is not None:
            return [single]

    descriptors = []
    for span in balanced_spans(text):
        descriptor = _descriptor(_loads(span))
        if descriptor is not None:
            descriptors.append(descriptor)

    if not descriptors:
        logger.debug("No actions found in model output")
    return descriptors


def looks_like_json(text):
    """True when text looks like raw action JSON rather than prose."""
    stripped = (text or "").strip()
    return (
        stripped.startswith("{")
        or stripped.startswith(FENCE_OPEN)
        or '"action"' in stripped
    )
