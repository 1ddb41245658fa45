import re
from typing import Any, Dict, List, Sequence, Tuple

from obituary_search.predicates import (
    And,
    DateRange,
    ExistsIn,
    FieldContains,
    FieldEquals,
    FieldStartsWith,
    Or,
    Predicate,
)

# A filter no document can satisfy, for an empty OR.
MATCH_NOTHING: Dict[str, Any] = {"$nor": [{}]}


def build_mongo_filter(predicate: Predicate) -> Dict[str, Any]:
    """
    Compiles a predicate tree into a MongoDB query document.

    Text matches become escaped, case-insensitive regexes so user input is
    always treated literally. ExistsIn becomes $elemMatch, whose inner filter
    is compiled the same way with paths relative to the array element.
    """
    if isinstance(predicate, And):
        if not predicate.children:
            return {}
        if len(predicate.children) == 1:
            return build_mongo_filter(predicate.children[0])
        return {"$and": [build_mongo_filter(child) for child in predicate.children]}

    if isinstance(predicate, Or):
        if not predicate.children:
            return dict(MATCH_NOTHING)
        if len(predicate.children) == 1:
            return build_mongo_filter(predicate.children[0])
        return {"$or": [build_mongo_filter(child) for child in predicate.children]}

    if isinstance(predicate, FieldContains):
        return {predicate.field: {"$regex": re.escape(predicate.text), "$options": "i"}}

    if isinstance(predicate, FieldStartsWith):
        return {predicate.field: {"$regex": "^" + re.escape(predicate.prefix), "$options": "i"}}

    if isinstance(predicate, FieldEquals):
        return {predicate.field: predicate.value}

    if isinstance(predicate, DateRange):
        bounds: Dict[str, Any] = {}
        if predicate.gte is not None:
            bounds["$gte"] = predicate.gte
        if predicate.lte is not None:
            bounds["$lte"] = predicate.lte
        if not bounds:
            return {}
        return {predicate.field: bounds}

    if isinstance(predicate, ExistsIn):
        return {predicate.field: {"$elemMatch": build_mongo_filter(predicate.predicate)}}

    raise TypeError(f"Unsupported predicate node: {type(predicate).__name__}")


def build_projection(fields: Sequence[str]) -> Dict[str, int]:
    """Inclusion projection; _id is dropped unless asked for."""
    projection = {field: 1 for field in fields}
    if "_id" not in projection:
        projection["_id"] = 0
    return projection


def build_sort(order_by: Sequence[Tuple[str, int]]) -> List[Tuple[str, int]]:
    return [(field, direction) for field, direction in order_by]
