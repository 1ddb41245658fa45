import math
from typing import Any, Dict, Optional

from pydantic import ValidationError

from obituary_search.config import RELATIONSHIP_COLLECTION
from obituary_search.errors import InvalidInput, SearchFailed, StorageError
from obituary_search.logging_setup import logger
from obituary_search.models import FamilyRelationship, RelationshipPage, RelationshipQuery
from obituary_search.predicates import ASCENDING, CountQuery, FieldContains, FindQuery, all_of
from obituary_search.store import ObituaryStore


async def list_relationships(
    store: ObituaryStore,
    search: Optional[str] = None,
    page: Any = 1,
    per_page: Any = None,
) -> RelationshipPage:
    """
    One page of family relationship types (the choices offered for a relative
    in the search form), ordered by name and optionally narrowed by a
    case-insensitive substring of the name.
    """
    raw: Dict[str, Any] = {"search": search, "page": page}
    if per_page is not None:
        raw["perPage"] = per_page
    try:
        query = RelationshipQuery.model_validate(raw)
    except ValidationError as e:
        raise InvalidInput.from_validation_error(e, "Invalid relationship query.") from e

    where = FieldContains("name", query.search) if query.search else all_of()
    find = FindQuery(
        collection=RELATIONSHIP_COLLECTION,
        where=where,
        projection=("_id", "name"),
        order_by=(("name", ASCENDING), ("_id", ASCENDING)),
        skip=(query.page - 1) * query.per_page,
        limit=query.per_page,
    )
    try:
        rows, total_count = await store.execute_atomic(find, CountQuery(RELATIONSHIP_COLLECTION, where))
    except StorageError as e:
        logger.error(f"Error listing relationships: {e}", exc_info=True)
        raise SearchFailed("Failed to retrieve relationships.") from e

    relationships = [FamilyRelationship(id=str(row["_id"]), name=row["name"]) for row in rows]
    return RelationshipPage(
        relationships=relationships,
        total_count=total_count,
        total_pages=math.ceil(total_count / query.per_page),
    )
