"""Sorted key-value store over the single ``records`` table.

Every item is a plain dict carrying its primary key (``pk``, ``sk``), the
optional secondary index projection (``gsi1pk``, ``gsi1sk``), an optional
``entity`` tag, and any other JSON-serializable attributes. Range queries
compare keys as raw strings (SQLite BINARY collation), so zero-padded
timestamps in sort keys order chronologically.

Each write commits immediately. Point writes are atomic; there are no
multi-key transactions. ``put_if_absent`` is the only concurrency primitive.
"""

from typing import Any, Iterable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from handwash.errors import ConditionFailed
from handwash.models.record import Record

KEY_FIELDS = ("pk", "sk", "gsi1pk", "gsi1sk", "entity")


def _prefix_end(prefix: str) -> str:
    """Smallest string greater than every string starting with ``prefix``."""
    return prefix[:-1] + chr(ord(prefix[-1]) + 1)


def _to_item(record: Record) -> dict[str, Any]:
    item = dict(record.data or {})
    item["pk"] = record.pk
    item["sk"] = record.sk
    if record.gsi1pk is not None:
        item["gsi1pk"] = record.gsi1pk
        item["gsi1sk"] = record.gsi1sk
    if record.entity is not None:
        item["entity"] = record.entity
    return item


def _to_record(item: dict[str, Any]) -> Record:
    if not item.get("pk") or not item.get("sk"):
        raise ValueError("item requires pk and sk")
    # None attributes are dropped, not stored
    data = {k: v for k, v in item.items() if k not in KEY_FIELDS and v is not None}
    return Record(
        pk=item["pk"],
        sk=item["sk"],
        gsi1pk=item.get("gsi1pk"),
        gsi1sk=item.get("gsi1sk"),
        entity=item.get("entity"),
        data=data,
    )


class KeyValueStore:
    """Partitioned, sorted key-value access bound to one session."""

    def __init__(self, session: Session):
        self.session = session

    # --- Point operations ---

    def get(self, pk: str, sk: str) -> Optional[dict[str, Any]]:
        record = self.session.get(Record, (pk, sk))
        return _to_item(record) if record else None

    def batch_get(self, keys: Iterable[tuple[str, str]]) -> list[dict[str, Any]]:
        """Fetch several items; missing keys are skipped."""
        items = []
        for pk, sk in keys:
            item = self.get(pk, sk)
            if item is not None:
                items.append(item)
        return items

    def put(self, item: dict[str, Any]) -> None:
        """Insert or fully replace the item at its key."""
        self.session.merge(_to_record(item))
        self._commit()

    def put_if_absent(self, item: dict[str, Any]) -> None:
        """Insert the item only if nothing exists at its key.

        Raises ConditionFailed when a record is already there, including
        when a concurrent insert wins the race.
        """
        record = _to_record(item)
        if self.session.get(Record, (record.pk, record.sk)) is not None:
            raise ConditionFailed(record.pk, record.sk)

        self.session.add(record)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ConditionFailed(record.pk, record.sk)
        except SQLAlchemyError:
            self.session.rollback()
            raise

    def _commit(self) -> None:
        # A failed flush leaves the session unusable until rolled back
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    def delete(self, pk: str, sk: str) -> None:
        """Delete the item at the key. Deleting an absent key is a no-op."""
        record = self.session.get(Record, (pk, sk))
        if record is None:
            return
        self.session.delete(record)
        self._commit()

    # --- Range operations ---

    def query(
        self,
        pk: str,
        begins_with: Optional[str] = None,
        between: Optional[tuple[str, str]] = None,
        limit: Optional[int] = None,
        ascending: bool = True,
    ) -> list[dict[str, Any]]:
        """Range query within a primary partition, ordered by sort key."""
        statement = select(Record).where(Record.pk == pk)
        statement = self._key_condition(statement, Record.sk, begins_with, between)
        statement = statement.order_by(col(Record.sk).asc() if ascending else col(Record.sk).desc())
        if limit is not None:
            statement = statement.limit(limit)
        return [_to_item(r) for r in self.session.exec(statement).all()]

    def query_index(
        self,
        gsi1pk: str,
        begins_with: Optional[str] = None,
        between: Optional[tuple[str, str]] = None,
        limit: Optional[int] = None,
        ascending: bool = True,
    ) -> list[dict[str, Any]]:
        """Range query against the secondary index, ordered by its sort key."""
        statement = select(Record).where(Record.gsi1pk == gsi1pk)
        statement = self._key_condition(statement, Record.gsi1sk, begins_with, between)
        order = col(Record.gsi1sk).asc() if ascending else col(Record.gsi1sk).desc()
        statement = statement.order_by(order, col(Record.pk).asc())
        if limit is not None:
            statement = statement.limit(limit)
        return [_to_item(r) for r in self.session.exec(statement).all()]

    def scan(self, entity: str) -> list[dict[str, Any]]:
        """Enumerate every record of one type. Not for request paths."""
        statement = (
            select(Record)
            .where(Record.entity == entity)
            .order_by(col(Record.pk).asc(), col(Record.sk).asc())
        )
        return [_to_item(r) for r in self.session.exec(statement).all()]

    @staticmethod
    def _key_condition(statement, column, begins_with, between):
        if begins_with and between:
            raise ValueError("use either begins_with or between, not both")
        if begins_with:
            statement = statement.where(col(column) >= begins_with, col(column) < _prefix_end(begins_with))
        elif between:
            low, high = between
            statement = statement.where(col(column) >= low, col(column) <= high)
        return statement
