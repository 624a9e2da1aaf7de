"""
Booking record store.

``MongoRecordStore`` talks to the ``bookingStatus`` collection (MongoDB / Cosmos DB Mongo API).
``InMemoryRecordStore`` supports the same dotted-path equality predicates and is used for local
runs without a database and in tests.
"""

import logging
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
)

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    """Persistent record lookup used by the booking tool."""

    def find_one(self, predicate: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """Return the first record matching *predicate*, or *None*."""


_MISSING = object()


def _lookup(record: Mapping[str, Any], dotted: str) -> Any:
    """Resolve ``"data.id"`` style paths; missing keys resolve to a sentinel."""
    current: Any = record
    for part in dotted.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


class InMemoryRecordStore:
    """List-backed store matching equality predicates on dotted paths."""

    def __init__(self, records: Iterable[Dict[str, Any]] | None = None) -> None:
        self._records: List[Dict[str, Any]] = list(records or [])

    def add(self, record: Dict[str, Any]) -> None:
        self._records.append(record)

    def find_one(self, predicate: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        for record in self._records:
            if all(_lookup(record, key) == value for key, value in predicate.items()):
                return dict(record)
        return None


class MongoRecordStore:
    """
    pymongo wrapper around a single collection.

    The ObjectId ``_id`` is stringified so that results are JSON-serializable.
    """

    def __init__(self, uri: str, database: str, collection: str) -> None:
        # Lazy import - keeps pymongo out of pkg-import time for in-memory runs
        import pymongo  # pylint: disable=import-outside-toplevel

        self._client: Any = pymongo.MongoClient(uri)
        self._col = self._client[database][collection]
        logger.info("Connected record store to %s.%s", database, collection)

    def find_one(self, predicate: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        doc = self._col.find_one(dict(predicate))
        if doc is None:
            return None
        record = dict(doc)
        if "_id" in record:
            record["_id"] = str(record["_id"])
        return record
