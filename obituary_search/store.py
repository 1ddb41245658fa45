import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import orjson

from obituary_search.errors import StorageError
from obituary_search.predicates import (
    DESCENDING,
    And,
    CountQuery,
    DateRange,
    ExistsIn,
    FieldContains,
    FieldEquals,
    FieldStartsWith,
    FindQuery,
    Or,
    Predicate,
)

DATE_FIELDS = ("birthDate", "deathDate")


class ObituaryStore(Protocol):
    """
    The read capability the search services need from a storage backend.
    """
    async def execute_atomic(self, find: FindQuery, count: CountQuery) -> Tuple[List[Dict[str, Any]], int]:
        """Runs both queries against one consistent snapshot."""
        ...

    async def find_one(
        self, collection: str, where: Predicate, projection: Sequence[str] = ()
    ) -> Optional[Dict[str, Any]]:
        ...

    async def ping(self) -> bool:
        ...


# --- IN-MEMORY BACKEND

def _resolve(document: Any, path: str) -> Any:
    value = document
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def matches(predicate: Predicate, document: Dict[str, Any]) -> bool:
    """Evaluates a predicate tree against one document."""
    if isinstance(predicate, And):
        return all(matches(child, document) for child in predicate.children)
    if isinstance(predicate, Or):
        return any(matches(child, document) for child in predicate.children)
    if isinstance(predicate, FieldContains):
        value = _resolve(document, predicate.field)
        return isinstance(value, str) and predicate.text.casefold() in value.casefold()
    if isinstance(predicate, FieldStartsWith):
        value = _resolve(document, predicate.field)
        return isinstance(value, str) and value.casefold().startswith(predicate.prefix.casefold())
    if isinstance(predicate, FieldEquals):
        return _resolve(document, predicate.field) == predicate.value
    if isinstance(predicate, DateRange):
        value = _resolve(document, predicate.field)
        if not isinstance(value, datetime):
            return False
        if predicate.gte is not None and value < predicate.gte:
            return False
        if predicate.lte is not None and value > predicate.lte:
            return False
        return True
    if isinstance(predicate, ExistsIn):
        elements = _resolve(document, predicate.field)
        if not isinstance(elements, list):
            return False
        return any(isinstance(el, dict) and matches(predicate.predicate, el) for el in elements)
    raise TypeError(f"Unsupported predicate node: {type(predicate).__name__}")


def _sort_key(value: Any) -> Tuple[int, Any]:
    # Missing values first, text compared case-insensitively (MongoDB with a strength 2 collation).
    if value is None:
        return (0, "")
    if isinstance(value, str):
        return (1, value.casefold())
    return (1, value)


def _project(document: Dict[str, Any], projection: Sequence[str]) -> Dict[str, Any]:
    if not projection:
        return dict(document)
    return {field: document.get(field) for field in projection}


def _normalize_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """Parses ISO date strings and pins naive datetimes to UTC."""
    normalized = dict(document)
    for field in DATE_FIELDS:
        if field not in normalized:
            continue
        value = normalized[field]
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        if isinstance(value, datetime) and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        normalized[field] = value
    if "id" not in normalized and "_id" in normalized:
        normalized["id"] = str(normalized["_id"])
    elif "_id" not in normalized and "id" in normalized:
        normalized["_id"] = normalized["id"]
    return normalized


class InMemoryObituaryStore:
    """
    Holds whole collections as lists of dicts. Collections are only ever
    replaced wholesale under a lock, so a query that grabbed a collection
    keeps reading the same snapshot for its page and its count.
    """
    def __init__(self, collections: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.collections: Dict[str, List[Dict[str, Any]]] = {}
        self.lock = threading.Lock()
        for name, documents in (collections or {}).items():
            self.replace_collection(name, documents)

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryObituaryStore":
        """
        Loads {"<collection>": [documents, ...], ...} from a JSON file.
        """
        try:
            payload = orjson.loads(Path(path).read_bytes())
        except (OSError, orjson.JSONDecodeError) as e:
            raise StorageError(f"Could not load seed file {path}: {e}") from e
        if not isinstance(payload, dict):
            raise StorageError(f"Seed file {path} must contain a JSON object of collections")
        return cls(payload)

    def replace_collection(self, name: str, documents: List[Dict[str, Any]]) -> None:
        """
        Atomically swaps in a new version of a collection.
        """
        snapshot = [_normalize_document(doc) for doc in documents]
        with self.lock:
            self.collections[name] = snapshot

    def _snapshot(self, name: str) -> List[Dict[str, Any]]:
        with self.lock:
            return self.collections.get(name, [])

    async def execute_atomic(self, find: FindQuery, count: CountQuery) -> Tuple[List[Dict[str, Any]], int]:
        if find.collection != count.collection:
            raise StorageError("Atomic page and count must target the same collection")
        documents = self._snapshot(find.collection)

        matched = [doc for doc in documents if matches(find.where, doc)]
        if count.where == find.where:
            total_count = len(matched)
        else:
            total_count = sum(1 for doc in documents if matches(count.where, doc))

        for field, direction in reversed(find.order_by):
            matched.sort(key=lambda doc: _sort_key(_resolve(doc, field)), reverse=direction == DESCENDING)

        end = None if find.limit is None else find.skip + find.limit
        page = [_project(doc, find.projection) for doc in matched[find.skip:end]]
        return page, total_count

    async def find_one(
        self, collection: str, where: Predicate, projection: Sequence[str] = ()
    ) -> Optional[Dict[str, Any]]:
        for doc in self._snapshot(collection):
            if matches(where, doc):
                return _project(doc, projection)
        return None

    async def ping(self) -> bool:
        return True
