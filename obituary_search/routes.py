# obituary_search/routes.py

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from fastapi.responses import ORJSONResponse

from obituary_search.config import DEFAULT_RELATIONSHIP_PAGE_SIZE
from obituary_search.errors import InvalidInput, ObituaryNotFound, SearchFailed
from obituary_search.models import LetterPage, ObituaryDetails, RelationshipPage, SearchResponse
from obituary_search.services.browse import browse_by_letter
from obituary_search.services.details import get_obituary_details
from obituary_search.services.relationships import list_relationships
from obituary_search.services.search import search as run_search
from obituary_search.store import ObituaryStore

router = APIRouter()


def get_store(request: Request) -> ObituaryStore:
    """
    The store is created in the application lifespan and kept on app.state.
    """
    store = getattr(request.app.state, "obituary_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage is not available yet. Please try again later."
        )
    return store


def _invalid_input_response(e: InvalidInput) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": e.message, "errors": e.errors},
    )


@router.get("/health/ready", tags=["Health"])
async def get_readiness_status(store: ObituaryStore = Depends(get_store)):
    """
    Readiness probe to check that the storage backend answers.
    """
    if await store.ping():
        return {"status": "ready"}
    return ORJSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "unavailable"}
    )


@router.post("/obituaries/search", tags=["Search"], response_model=SearchResponse)
async def search_obituaries(
    payload: Any = Body(default=None),
    store: ObituaryStore = Depends(get_store),
):
    """
    Faceted obituary search. isPartialMatch in the response tells the caller
    that nothing matched every criterion and a name-only search was applied.
    A request without a body searches everything, like an empty form.
    """
    if payload is None:
        payload = {}
    try:
        return await run_search(payload, store)
    except InvalidInput as e:
        return _invalid_input_response(e)
    except SearchFailed as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)


@router.get("/obituaries/by-letter/{letter}", tags=["Search"], response_model=LetterPage)
async def get_obituaries_by_letter(letter: str, page: int = 1, store: ObituaryStore = Depends(get_store)):
    """
    Surname index: obituaries whose surname starts with the given letter.
    """
    try:
        return await browse_by_letter(letter, store, page=page)
    except InvalidInput as e:
        return _invalid_input_response(e)
    except SearchFailed as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)


@router.get("/obituaries/{reference}", tags=["Details"], response_model=ObituaryDetails)
async def get_details(reference: str, store: ObituaryStore = Depends(get_store)):
    """
    Retrieves image availability for one obituary.
    """
    try:
        return await get_obituary_details(reference, store)
    except InvalidInput as e:
        return _invalid_input_response(e)
    except ObituaryNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SearchFailed as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)


@router.get("/relationships", tags=["Metadata"], response_model=RelationshipPage)
async def get_relationships(
    search: Optional[str] = None,
    page: int = 1,
    per_page: int = Query(DEFAULT_RELATIONSHIP_PAGE_SIZE, alias="perPage"),
    store: ObituaryStore = Depends(get_store),
):
    """
    Family relationship types for the relatives section of the search form.
    """
    try:
        return await list_relationships(store, search=search, page=page, per_page=per_page)
    except InvalidInput as e:
        return _invalid_input_response(e)
    except SearchFailed as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
