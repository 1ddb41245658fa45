from typing import Any

from obituary_search.config import OBITUARY_COLLECTION
from obituary_search.errors import InvalidInput, ObituaryNotFound, SearchFailed, StorageError
from obituary_search.logging_setup import logger
from obituary_search.models import ObituaryDetails
from obituary_search.predicates import FieldEquals
from obituary_search.store import ObituaryStore


async def get_obituary_details(reference: Any, store: ObituaryStore) -> ObituaryDetails:
    """
    Image availability for one obituary, looked up by its reference.
    The image count comes from the record's imageNames list.
    """
    if not isinstance(reference, str) or not reference.strip():
        raise InvalidInput("Obituary reference is required.", [{"loc": "reference", "msg": "Obituary reference is required"}])
    reference = reference.strip()

    try:
        obituary = await store.find_one(
            OBITUARY_COLLECTION,
            FieldEquals("reference", reference),
            projection=("reference", "imageNames"),
        )
    except StorageError as e:
        logger.error(f"Error fetching obituary details for {reference}: {e}", exc_info=True)
        raise SearchFailed("Failed to retrieve obituary details.") from e

    if not obituary:
        raise ObituaryNotFound(reference)

    image_count = len(obituary.get("imageNames") or [])
    return ObituaryDetails(
        reference=obituary["reference"],
        has_images=image_count > 0,
        image_count=image_count,
    )
