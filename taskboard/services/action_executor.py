"""Action executor: turn parsed chat actions into board mutations.

Each descriptor goes through the same steps: read-only actions are answered
with "No modification made" and touch nothing; everything else is
authorized against the actor's current role (re-read for every action),
has its parameters resolved through the alias table below, its entities
looked up by name and is then applied through the card, column and tag
services.

A failed action is never an exception: it becomes an ActionOutcome with
success=False and a readable description, and the batch carries on.
Database errors are not caught here; they abort the whole request.
"""

import json
import logging
from dataclasses import asdict, dataclass

from taskboard.errors import TaskboardError
from taskboard.services import (
    access_policy,
    board_service,
    card_service,
    column_service,
    entity_resolver,
    tag_service,
)
from taskboard.services.action_parser import ChatAction

logger = logging.getLogger(__name__)

NO_MODIFICATION = "No modification made"
GLOBAL_ONLY = "This action is only available in global chat"


@dataclass
class ActionOutcome:
    """Uniform result of one attempted action."""

    action: str
    description: str
    success: bool

    def to_dict(self):
        return asdict(self)


# ─── Parameter aliases ───────────────────────────────────────────
# For each action and logical field, the accepted parameter keys in priority
# order. The first key holding a non-empty string wins.

FIELD_ALIASES = {
    ChatAction.CREATE_CARD: {
        "column": ("column", "column_name", "in"),
        "title": ("title", "name", "card_title"),
        "body": ("body", "description", "content"),
    },
    ChatAction.MOVE_CARD: {
        "card": ("card_title", "card", "title", "name"),
        "column": ("target_column", "column", "to", "destination"),
    },
    ChatAction.CREATE_TAG: {
        "name": ("name", "tag_name", "tag"),
        "color": ("color", "hex_color"),
    },
    ChatAction.ADD_TAG: {
        "card": ("card_title", "card", "title"),
        "tag": ("tag_name", "tag", "name"),
    },
    ChatAction.DELETE_COLUMN: {
        "column": ("column", "column_name", "name"),
    },
    ChatAction.DELETE_TAG: {
        "tag": ("tag", "tag_name", "name"),
    },
    ChatAction.DELETE_CARD: {
        "card": ("card", "card_title", "title", "name"),
    },
    ChatAction.CREATE_BOARD: {
        "name": ("name", "board_name", "title"),
        "description": ("description", "desc"),
    },
    ChatAction.MOVE_CARD_CROSS_BOARD: {
        "from_board": ("from_board", "source_board", "source"),
        "to_board": ("to_board", "target_board", "destination"),
        "card": ("card", "card_title", "title"),
        "column": ("column", "target_column", "to_column"),
    },
}

REQUIRED_FIELDS = {
    ChatAction.CREATE_CARD: ("column", "title"),
    ChatAction.MOVE_CARD: ("card", "column"),
    ChatAction.CREATE_TAG: ("name",),
    ChatAction.ADD_TAG: ("card", "tag"),
    ChatAction.DELETE_COLUMN: ("column",),
    ChatAction.DELETE_TAG: ("tag",),
    ChatAction.DELETE_CARD: ("card",),
    ChatAction.CREATE_BOARD: ("name",),
    ChatAction.MOVE_CARD_CROSS_BOARD: ("from_board", "to_board", "card", "column"),
}

BOARD_ALIASES = ("board", "board_name")

GLOBAL_ONLY_ACTIONS = frozenset({ChatAction.CREATE_BOARD, ChatAction.MOVE_CARD_CROSS_BOARD})


def pick(params, aliases):
    """First non-empty string value among ``aliases``, stripped, or None."""
    for key in aliases:
        value = params.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def resolve_fields(action, params):
    """Resolve an action's logical fields from its raw params.

    Returns:
        (fields, missing) where ``fields`` maps field name to value (or None)
        and ``missing`` lists required fields with no value.
    """
    aliases = FIELD_ALIASES.get(action, {})
    fields = {name: pick(params, keys) for name, keys in aliases.items()}
    missing = [name for name in REQUIRED_FIELDS.get(action, ()) if not fields.get(name)]
    return fields, missing


def _dump(params):
    return json.dumps(params, sort_keys=True, default=str)


def _failure(descriptor, description):
    return ActionOutcome(descriptor.name, description, False)


def _success(descriptor, description):
    return ActionOutcome(descriptor.name, description, True)


# ─── Board-level actions ─────────────────────────────────────────


def _create_card(descriptor, board, user_id, fields):
    column = entity_resolver.find_column(board.id, fields["column"])
    if column is None:
        return _failure(descriptor, f"Column '{fields['column']}' not found")
    card = card_service.create_card(column.id, user_id, fields["title"], body=fields["body"])
    return _success(descriptor, f"Created card '{card.title}' in column '{column.name}'")


def _move_card(descriptor, board, user_id, fields):
    card = entity_resolver.find_card(board.id, fields["card"])
    if card is None:
        return _failure(descriptor, f"Card '{fields['card']}' not found")
    column = entity_resolver.find_column(board.id, fields["column"])
    if column is None:
        return _failure(descriptor, f"Column '{fields['column']}' not found")
    card_service.move_card(card.id, user_id, column.id, 0)
    return _success(descriptor, f"Moved '{card.title}' to '{column.name}'")


def _create_tag(descriptor, board, user_id, fields):
    tag = tag_service.create_board_tag(board.id, user_id, fields["name"], fields["color"])
    return _success(descriptor, f"Created tag '{tag.name}'")


def _add_tag(descriptor, board, user_id, fields):
    card = entity_resolver.find_card_anywhere(board.id, fields["card"])
    if card is None:
        return _failure(descriptor, f"Card '{fields['card']}' not found")
    tag = entity_resolver.find_tag(fields["tag"], board_id=board.id)
    if tag is None:
        tag = entity_resolver.find_tag(fields["tag"], owner_id=user_id)
    if tag is None:
        return _failure(descriptor, f"Tag '{fields['tag']}' not found")
    tag_service.add_tag_to_card(card.id, tag.id, user_id)
    return _success(descriptor, f"Added tag '{tag.name}' to '{card.title}'")


def _delete_column(descriptor, board, user_id, fields):
    column = entity_resolver.find_column(board.id, fields["column"])
    if column is None:
        return _failure(descriptor, f"Column '{fields['column']}' not found")
    name = column.name
    column_service.delete_column(column.id, user_id)
    return _success(descriptor, f"Deleted column '{name}'")


def _delete_tag(descriptor, board, user_id, fields):
    tag = entity_resolver.find_tag(fields["tag"], board_id=board.id)
    if tag is None:
        return _failure(descriptor, f"Tag '{fields['tag']}' not found")
    name = tag.name
    tag_service.delete_tag(tag.id, user_id)
    return _success(descriptor, f"Deleted tag '{name}'")


def _delete_card(descriptor, board, user_id, fields):
    card = entity_resolver.find_card(board.id, fields["card"])
    if card is None:
        return _failure(descriptor, f"Card '{fields['card']}' not found")
    title = card.title
    card_service.delete_card(card.id, user_id)
    return _success(descriptor, f"Deleted card '{title}'")


BOARD_HANDLERS = {
    ChatAction.CREATE_CARD: _create_card,
    ChatAction.MOVE_CARD: _move_card,
    ChatAction.CREATE_TAG: _create_tag,
    ChatAction.ADD_TAG: _add_tag,
    ChatAction.DELETE_COLUMN: _delete_column,
    ChatAction.DELETE_TAG: _delete_tag,
    ChatAction.DELETE_CARD: _delete_card,
}


def _run(handler, descriptor, *args):
    """Apply a handler, folding domain errors into a failed outcome."""
    try:
        return handler(descriptor, *args)
    except TaskboardError as e:
        return _failure(descriptor, str(e))


def _denied(descriptor, board):
    return _failure(descriptor, f"You don't have permission to edit board '{board.name}'")


def _on_board(descriptor, board, user_id):
    """Authorize and apply a board-level action on an already-known board."""
    role = board_service.get_user_role(board.id, user_id)
    if not access_policy.can_edit(role):
        return _denied(descriptor, board)

    fields, missing = resolve_fields(descriptor.action, descriptor.params)
    if missing:
        return _failure(
            descriptor,
            f"Missing {' or '.join(missing)}. Received params: {_dump(descriptor.params)}",
        )
    return _run(BOARD_HANDLERS[descriptor.action], descriptor, board, user_id, fields)


def execute_board_action(board, user_id, descriptor):
    """Execute one descriptor in a board's chat. Returns an ActionOutcome."""
    if descriptor.action.is_read_only:
        return _success(descriptor, NO_MODIFICATION)
    if descriptor.action is ChatAction.UNKNOWN:
        return _failure(descriptor, f"Unknown action: {descriptor.raw_action}")
    if descriptor.action in GLOBAL_ONLY_ACTIONS:
        return _failure(descriptor, GLOBAL_ONLY)
    return _on_board(descriptor, board, user_id)


# ─── Global (cross-board) actions ────────────────────────────────


def _create_board(descriptor, user_id):
    fields, missing = resolve_fields(descriptor.action, descriptor.params)
    if missing:
        return _failure(
            descriptor,
            f"Missing board name. Received params: {_dump(descriptor.params)}",
        )

    def apply(descriptor):
        board = board_service.create_board(user_id, fields["name"], fields["description"])
        return _success(descriptor, f"Created board '{board.name}'")

    return _run(apply, descriptor)


def _move_card_cross_board(descriptor, user_id):
    fields, missing = resolve_fields(descriptor.action, descriptor.params)
    if missing:
        return _failure(
            descriptor,
            "Missing params. Need from_board, to_board, card, column. "
            f"Got: {_dump(descriptor.params)}",
        )

    found = []
    for name in (fields["from_board"], fields["to_board"]):
        match = entity_resolver.find_board(user_id, name)
        if match is None:
            return _failure(descriptor, f"Board '{name}' not found")
        board, role = match
        if not access_policy.can_edit(role):
            return _denied(descriptor, board)
        found.append(board)
    source, target = found

    def apply(descriptor):
        card = entity_resolver.find_card(source.id, fields["card"])
        if card is None:
            return _failure(descriptor, f"Card '{fields['card']}' not found")
        column = entity_resolver.find_column(target.id, fields["column"])
        if column is None:
            return _failure(descriptor, f"Column '{fields['column']}' not found")

        # Appended to the bottom of the target column.
        position = len(card_service.list_column_cards(column.id))
        if card.column_id == column.id:
            position -= 1
        card_service.move_card(card.id, user_id, column.id, position)
        return _success(
            descriptor,
            f"Moved '{card.title}' from '{source.name}' to '{target.name}' "
            f"(column '{column.name}')",
        )

    return _run(apply, descriptor)


def execute_global_action(user_id, descriptor):
    """Execute one descriptor in the user's cross-board chat."""
    if descriptor.action.is_read_only:
        return _success(descriptor, NO_MODIFICATION)
    if descriptor.action is ChatAction.UNKNOWN:
        return _failure(descriptor, f"Unknown action: {descriptor.raw_action}")
    if descriptor.action is ChatAction.CREATE_BOARD:
        return _create_board(descriptor, user_id)
    if descriptor.action is ChatAction.MOVE_CARD_CROSS_BOARD:
        return _move_card_cross_board(descriptor, user_id)

    board_name = pick(descriptor.params, BOARD_ALIASES)
    if board_name is None:
        return _failure(
            descriptor,
            "Missing board name. Please specify which board. "
            f"Params: {_dump(descriptor.params)}",
        )
    match = entity_resolver.find_board(user_id, board_name)
    if match is None:
        return _failure(descriptor, f"Board '{board_name}' not found")
    board, _ = match
    return _on_board(descriptor, board, user_id)


# ─── Batches ─────────────────────────────────────────────────────


def _log(outcome):
    if outcome.success:
        logger.info(f"Action {outcome.action} applied: {outcome.description}")
    else:
        logger.warning(f"Action {outcome.action} failed: {outcome.description}")


def execute_board_actions(board, user_id, descriptors):
    """Run descriptors in order on one board.

    Returns:
        Outcomes of the mutating actions, in input order. Read-only actions
        are processed but left out of the report.
    """
    outcomes = []
    for descriptor in descriptors:
        outcome = execute_board_action(board, user_id, descriptor)
        if descriptor.action.is_read_only:
            continue
        _log(outcome)
        outcomes.append(outcome)
    return outcomes


def execute_global_actions(user_id, descriptors):
    """Run descriptors in order in the cross-board chat (see execute_board_actions)."""
    outcomes = []
    for descriptor in descriptors:
        outcome = execute_global_action(user_id, descriptor)
        if descriptor.action.is_read_only:
            continue
        _log(outcome)
        outcomes.append(outcome)
    return outcomes
