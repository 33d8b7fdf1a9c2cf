"""Dense position maintenance for ordered containers.

A container is every row of one model sharing the same values for a fixed set
of scope columns: a board's columns, a column's cards, or a board's bucket of
assigned cards (board_id + column_id, where column_id may be NULL). Within a
container positions are always 0..n-1 with no gaps and no duplicates.

Shifts are set-based UPDATEs and run in the caller's transaction together
with the final write of the moved item, so a failure anywhere rolls back the
whole operation. Container rows are read with SELECT ... FOR UPDATE before any
shift is computed; moves between two containers lock both in a fixed order.

Functions flush but do NOT commit. The caller commits.
"""

from sqlalchemy import func, select, update

from taskboard.errors import ValidationError
from taskboard.extensions import db
from taskboard.models.card import Card, CardBoardAssignment
from taskboard.models.column import BoardColumn


class PositionStore:
    """Insert, move and remove items while keeping positions dense.

    Args:
        model: Mapped class with ``id`` and ``position`` columns.
        *scope_fields: Column names identifying the container.
    """

    def __init__(self, model, *scope_fields):
        self.model = model
        self.scope_fields = scope_fields

    def __repr__(self):
        return f"<PositionStore {self.model.__name__} by {', '.join(self.scope_fields)}>"

    # ─── Containers ──────────────────────────────────────────────

    def container(self, **scope):
        """Build a container key, e.g. ``card_positions.container(column_id=c)``."""
        if set(scope) != set(self.scope_fields):
            raise ValueError(
                f"Container for {self.model.__name__} needs exactly: "
                f"{', '.join(self.scope_fields)}"
            )
        return {field: scope[field] for field in self.scope_fields}

    def container_of(self, item):
        """Container key the item currently belongs to."""
        return {field: getattr(item, field) for field in self.scope_fields}

    def _where(self, scope, exclude_id=None):
        clauses = []
        for field in self.scope_fields:
            column = getattr(self.model, field)
            value = scope[field]
            clauses.append(column.is_(None) if value is None else column == value)
        if exclude_id is not None:
            clauses.append(self.model.id != exclude_id)
        return clauses

    @staticmethod
    def _sort_key(scope):
        return tuple("" if v is None else str(v) for v in scope.values())

    def _lock(self, *scopes):
        unique = {self._sort_key(s): s for s in scopes}
        for key in sorted(unique):
            db.session.execute(
                select(self.model.id)
                .where(*self._where(unique[key]))
                .order_by(self.model.id)
                .with_for_update()
            ).all()

    # ─── Reads ───────────────────────────────────────────────────

    def count(self, scope, exclude_id=None):
        return db.session.execute(
            select(func.count(self.model.id)).where(*self._where(scope, exclude_id))
        ).scalar_one()

    def positions(self, scope):
        """Positions of the container in ascending order."""
        return list(
            db.session.execute(
                select(self.model.position)
                .where(*self._where(scope))
                .order_by(self.model.position)
            ).scalars()
        )

    def _next_position(self, scope, exclude_id=None):
        highest = db.session.execute(
            select(func.max(self.model.position)).where(
                *self._where(scope, exclude_id)
            )
        ).scalar()
        return 0 if highest is None else highest + 1

    def _shift(self, scope, delta, lower=None, upper=None, exclude_id=None):
        """Add ``delta`` to every position in [lower, upper] of the container."""
        clauses = self._where(scope, exclude_id)
        if lower is not None:
            clauses.append(self.model.position >= lower)
        if upper is not None:
            clauses.append(self.model.position <= upper)
        db.session.execute(
            update(self.model)
            .where(*clauses)
            .values(position=self.model.position + delta)
            .execution_options(synchronize_session="fetch")
        )

    # ─── Mutations ───────────────────────────────────────────────

    def insert(self, scope, item, desired_position=None):
        """Place a new item in ``scope``.

        Without a desired position the item is appended. With one, items at or
        after it move up by one.

        Returns:
            The position assigned to the item.

        Raises:
            ValidationError: If desired_position is outside 0..count.
        """
        with db.session.no_autoflush:
            self._lock(scope)
            exclude_id = item.id
            if desired_position is None:
                position = self._next_position(scope, exclude_id)
            else:
                count = self.count(scope, exclude_id)
                position = self._check_position(desired_position, count)
                self._shift(scope, +1, lower=position, exclude_id=exclude_id)

        for field, value in scope.items():
            setattr(item, field, value)
        item.position = position
        db.session.add(item)
        db.session.flush()
        # Reload so relationships follow the new scope values.
        db.session.expire(item)
        return position

    def move(self, item, old_scope, new_scope, desired_position):
        """Move an item within a container or between two containers.

        Appending to the item's own container (desired_position == count) is
        accepted and lands on the last slot.

        Returns:
            The item's final position.

        Raises:
            ValidationError: If desired_position is negative or past the end.
        """
        if self._sort_key(self.container_of(item)) != self._sort_key(old_scope):
            raise ValidationError(
                f"{self.model.__name__} {item.id} is not in the given container."
            )
        if self._sort_key(old_scope) == self._sort_key(new_scope):
            return self._move_within(item, old_scope, desired_position)

        self._lock(old_scope, new_scope)
        count = self.count(new_scope, exclude_id=item.id)
        position = self._check_position(desired_position, count)
        old_position = item.position

        self._shift(old_scope, -1, lower=old_position + 1, exclude_id=item.id)
        self._shift(new_scope, +1, lower=position, exclude_id=item.id)

        for field, value in new_scope.items():
            setattr(item, field, value)
        item.position = position
        db.session.flush()
        db.session.expire(item)
        return position

    def _move_within(self, item, scope, desired_position):
        self._lock(scope)
        count = self.count(scope)
        if desired_position == count and count > 0:
            desired_position = count - 1
        position = self._check_position(desired_position, count - 1)
        old_position = item.position

        if position == old_position:
            return position
        if position > old_position:
            self._shift(
                scope, -1, lower=old_position + 1, upper=position, exclude_id=item.id
            )
        else:
            self._shift(
                scope, +1, lower=position, upper=old_position - 1, exclude_id=item.id
            )
        item.position = position
        db.session.flush()
        return position

    def remove(self, scope, item):
        """Close the gap left by ``item``; the caller deletes or re-homes it."""
        self._lock(scope)
        self._shift(scope, -1, lower=item.position + 1, exclude_id=item.id)
        db.session.flush()

    def append_all(self, source, target):
        """Move every item of ``source`` to the end of ``target`` in one go.

        The items keep their relative order. ``target`` is renumbered
        afterwards, so gaps left in ``source`` are not carried over.
        """
        self._lock(source, target)
        offset = self.count(target)
        db.session.execute(
            update(self.model)
            .where(*self._where(source))
            .values(position=self.model.position + offset, **target)
            .execution_options(synchronize_session="fetch")
        )
        self.normalize(target)

    def normalize(self, scope):
        """Renumber a container 0..n-1 keeping its current order."""
        self._lock(scope)
        items = db.session.execute(
            select(self.model)
            .where(*self._where(scope))
            .order_by(self.model.position, self.model.created_at)
        ).scalars().all()
        for index, row in enumerate(items):
            if row.position != index:
                row.position = index
        db.session.flush()

    @staticmethod
    def _check_position(desired_position, highest):
        if (
            isinstance(desired_position, bool)
            or not isinstance(desired_position, int)
            or desired_position < 0
            or desired_position > highest
        ):
            raise ValidationError(
                f"Position {desired_position} is out of range (0..{max(highest, 0)})."
            )
        return desired_position


column_positions = PositionStore(BoardColumn, "board_id")
card_positions = PositionStore(Card, "column_id")
assignment_positions = PositionStore(CardBoardAssignment, "board_id", "column_id")
