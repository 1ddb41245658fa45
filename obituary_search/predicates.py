# obituary_search/predicates.py
"""
Storage-neutral query description.

The search services only ever build these objects; each storage adapter
compiles them into its own query language (see services/processing/filter_builder.py
for MongoDB and store.py for the in-memory evaluator).

Field names are dotted paths ("birthCity.country.name"). Inside an ExistsIn the
paths are relative to the array element being tested.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union

ASCENDING = 1
DESCENDING = -1


@dataclass(frozen=True)
class And:
    children: Tuple["Predicate", ...]


@dataclass(frozen=True)
class Or:
    children: Tuple["Predicate", ...]


@dataclass(frozen=True)
class FieldContains:
    """Case-insensitive substring match on a text field."""
    field: str
    text: str


@dataclass(frozen=True)
class FieldStartsWith:
    """Case-insensitive prefix match on a text field."""
    field: str
    prefix: str


@dataclass(frozen=True)
class FieldEquals:
    field: str
    value: Any


@dataclass(frozen=True)
class DateRange:
    """Inclusive bounds; either side may be open."""
    field: str
    gte: Optional[datetime] = None
    lte: Optional[datetime] = None


@dataclass(frozen=True)
class ExistsIn:
    """At least one element of the array at `field` satisfies `predicate`."""
    field: str
    predicate: "Predicate"


Predicate = Union[And, Or, FieldContains, FieldStartsWith, FieldEquals, DateRange, ExistsIn]


def all_of(*children: Predicate) -> And:
    return And(tuple(children))


def any_of(*children: Predicate) -> Or:
    return Or(tuple(children))


@dataclass(frozen=True)
class FindQuery:
    collection: str
    where: Predicate
    projection: Tuple[str, ...] = ()
    order_by: Tuple[Tuple[str, int], ...] = ()
    skip: int = 0
    limit: Optional[int] = None


@dataclass(frozen=True)
class CountQuery:
    collection: str
    where: Predicate


def describe(predicate: Predicate) -> Dict[str, Any]:
    """
    JSON-friendly rendering of a predicate tree, used for debug logging.
    """
    if isinstance(predicate, And):
        return {"AND": [describe(child) for child in predicate.children]}
    if isinstance(predicate, Or):
        return {"OR": [describe(child) for child in predicate.children]}
    if isinstance(predicate, FieldContains):
        return {predicate.field: {"contains": predicate.text}}
    if isinstance(predicate, FieldStartsWith):
        return {predicate.field: {"startsWith": predicate.prefix}}
    if isinstance(predicate, FieldEquals):
        value = predicate.value.isoformat() if isinstance(predicate.value, datetime) else predicate.value
        return {predicate.field: {"equals": value}}
    if isinstance(predicate, DateRange):
        bounds: Dict[str, str] = {}
        if predicate.gte is not None:
            bounds["gte"] = predicate.gte.isoformat()
        if predicate.lte is not None:
            bounds["lte"] = predicate.lte.isoformat()
        return {predicate.field: bounds}
    if isinstance(predicate, ExistsIn):
        return {predicate.field: {"some": describe(predicate.predicate)}}
    raise TypeError(f"Unsupported predicate node: {type(predicate).__name__}")
