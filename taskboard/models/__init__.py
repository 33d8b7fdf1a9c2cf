# Models package: import all models here so the metadata knows every table.

from taskboard.models.user import User  # noqa: F401
from taskboard.models.board import Board, BoardPermission  # noqa: F401
from taskboard.models.column import BoardColumn  # noqa: F401
from taskboard.models.card import Card, CardBoardAssignment  # noqa: F401
from taskboard.models.tag import Tag, card_tags  # noqa: F401
from taskboard.models.comment import Comment  # noqa: F401
from taskboard.models.chat import ChatMessage  # noqa: F401
from taskboard.models.enums import BoardRole, CardStatus, Visibility  # noqa: F401
