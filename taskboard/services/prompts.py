"""System prompts describing the board state and the action vocabulary."""

from taskboard.models.card import Card
from taskboard.services import board_service

BOARD_ACTIONS = """\
1. create_card - add a card to a column
   {"action": "create_card", "params": {"column": "Todo", "title": "Card title", "body": "optional details"}, "message": "Created the card."}
2. move_card - move a card to another column
   {"action": "move_card", "params": {"card_title": "Card title", "target_column": "Done"}, "message": "Moved the card."}
3. create_tag - create a tag
   {"action": "create_tag", "params": {"name": "urgent", "color": "#dc3545"}, "message": "Created the tag."}
4. add_tag - tag a card
   {"action": "add_tag", "params": {"card_title": "Card title", "tag_name": "urgent"}, "message": "Tagged the card."}
5. list_cards - show cards, optionally of one column
   {"action": "list_cards", "params": {"column": "Todo"}, "message": "Here are the cards..."}
6. list_tags - show the board's tags
   {"action": "list_tags", "params": {}, "message": "Here are the tags..."}
7. delete_column - delete a column and its cards
   {"action": "delete_column", "params": {"column": "Old"}, "message": "Deleted the column."}
8. delete_tag - delete a tag
   {"action": "delete_tag", "params": {"tag": "urgent"}, "message": "Deleted the tag."}
9. delete_card - delete a card
   {"action": "delete_card", "params": {"card": "Card title"}, "message": "Deleted the card."}
10. no_action - just answer
   {"action": "no_action", "params": {}, "message": "Your answer..."}
"""

GLOBAL_ACTIONS = """\
1. create_board - create a board
   {"action": "create_board", "params": {"name": "Board name", "description": "optional"}, "message": "Created the board."}
2. create_card - add a card to a column of a board
   {"action": "create_card", "params": {"board": "Board name", "column": "Todo", "title": "Card title"}, "message": "Created the card."}
3. move_card - move a card to another column of the same board
   {"action": "move_card", "params": {"board": "Board name", "card_title": "Card title", "target_column": "Done"}, "message": "Moved the card."}
4. move_card_cross_board - move a card to a column of another board
   {"action": "move_card_cross_board", "params": {"from_board": "Source", "to_board": "Target", "card": "Card title", "column": "Todo"}, "message": "Moved the card."}
5. create_tag - create a tag on a board
   {"action": "create_tag", "params": {"board": "Board name", "name": "urgent", "color": "#dc3545"}, "message": "Created the tag."}
6. add_tag - tag a card
   {"action": "add_tag", "params": {"board": "Board name", "card_title": "Card title", "tag_name": "urgent"}, "message": "Tagged the card."}
7. list_cards / list_tags - show a board's cards or tags
   {"action": "list_cards", "params": {"board": "Board name"}, "message": "Here are the cards..."}
8. delete_column / delete_tag / delete_card - delete from a board
   {"action": "delete_card", "params": {"board": "Board name", "card": "Card title"}, "message": "Deleted the card."}
9. no_action - just answer
   {"action": "no_action", "params": {}, "message": "Your answer..."}
"""


def _user_context(user):
    if user is not None and user.llm_context and user.llm_context.strip():
        return f"\nAbout the user:\n{user.llm_context.strip()}\n"
    return ""


def _tag_names(board):
    names = [t.name for t in board.tags.all()]
    return ", ".join(names) if names else "none"


def build_system_prompt(board, user=None):
    """Prompt for a single board's assistant: columns with card counts and tags."""
    columns = board_service.board_columns(board.id)
    column_info = ", ".join(
        f"{c.name} ({Card.query.filter_by(column_id=c.id).count()} cards)" for c in columns
    ) or "none"

    return (
        f'You are the assistant of the Kanban board "{board.name}".\n'
        f"{_user_context(user)}\n"
        "Act on the board by replying with JSON objects like these:\n"
        f"{BOARD_ACTIONS}\n"
        "Board state:\n"
        f"- Board: {board.name}\n"
        f"- Columns: {column_info}\n"
        f"- Tags: {_tag_names(board)}\n\n"
        'Always reply with valid JSON in the format above. Use "no_action" '
        "when the user is only asking or chatting.\n"
    )


def build_global_system_prompt(user_id, user=None):
    """Prompt for the cross-board assistant listing every board of the user."""
    boards = board_service.list_boards_for_user(user_id)
    if not boards:
        return (
            "You are a Kanban assistant.\n"
            f"{_user_context(user)}\n"
            "The user has no boards yet. Suggest creating one, or create it with:\n"
            '{"action": "create_board", "params": {"name": "Board name"}, "message": "Created the board."}\n'
            'Otherwise reply with {"action": "no_action", "params": {}, "message": "..."}\n'
        )

    summaries = []
    for board, role in boards:
        columns = board_service.board_columns(board.id)
        card_count = sum(Card.query.filter_by(column_id=c.id).count() for c in columns)
        summaries.append(
            f"- {board.name} (role: {role.value}, {len(columns)} columns: "
            f"[{', '.join(c.name for c in columns)}], {card_count} cards, "
            f"tags: [{_tag_names(board)}])"
        )

    return (
        "You are a Kanban assistant with access to several boards.\n"
        f"{_user_context(user)}\n"
        'Every board-specific action must name its board in a "board" param.\n\n'
        "Available actions:\n"
        f"{GLOBAL_ACTIONS}\n"
        "Boards:\n"
        + "\n".join(summaries)
        + '\n\nAlways reply with valid JSON. Use "no_action" for questions.\n'
    )
