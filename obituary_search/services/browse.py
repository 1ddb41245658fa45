import math
from typing import Any

from pydantic import ValidationError

from obituary_search.config import BROWSE_PAGE_SIZE, OBITUARY_COLLECTION, RESULT_FIELDS
from obituary_search.errors import InvalidInput, SearchFailed, StorageError
from obituary_search.logging_setup import logger
from obituary_search.models import LetterPage, LetterQuery
from obituary_search.predicates import CountQuery, FieldStartsWith, FindQuery
from obituary_search.services.search import SEARCH_ORDER, to_result
from obituary_search.store import ObituaryStore


async def browse_by_letter(
    letter: Any,
    store: ObituaryStore,
    page: Any = 1,
    page_size: Any = BROWSE_PAGE_SIZE,
) -> LetterPage:
    """
    Obituaries whose surname starts with `letter` (case-insensitive), in the
    same order and row shape as the search results.
    """
    try:
        query = LetterQuery.model_validate({"letter": letter, "page": page, "pageSize": page_size})
    except ValidationError as e:
        raise InvalidInput.from_validation_error(e, "Invalid surname letter.") from e

    where = FieldStartsWith("surname", query.letter)
    find = FindQuery(
        collection=OBITUARY_COLLECTION,
        where=where,
        projection=tuple(RESULT_FIELDS),
        order_by=SEARCH_ORDER,
        skip=query.skip,
        limit=query.page_size,
    )
    try:
        rows, total_count = await store.execute_atomic(find, CountQuery(OBITUARY_COLLECTION, where))
    except StorageError as e:
        logger.error(f"Failed to fetch obituaries by letter {query.letter}: {e}", exc_info=True)
        raise SearchFailed("Database error. Please try again later.") from e

    return LetterPage(
        results=[to_result(row) for row in rows],
        total_count=total_count,
        total_pages=math.ceil(total_count / query.page_size),
    )
