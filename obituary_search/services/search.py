from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from obituary_search.config import OBITUARY_COLLECTION, RESULT_FIELDS
from obituary_search.errors import InvalidInput, SearchFailed, StorageError
from obituary_search.logging_setup import logger
from obituary_search.models import DateFacet, DateMode, SearchCriteria, SearchResponse, SearchResult
from obituary_search.predicates import (
    ASCENDING,
    CountQuery,
    DateRange,
    ExistsIn,
    FieldContains,
    FieldEquals,
    FindQuery,
    Predicate,
    all_of,
    any_of,
    describe,
)
from obituary_search.services.common import (
    end_of_year,
    month_bounds,
    parse_int,
    start_of_year,
    utc_date,
    year_bounds,
)
from obituary_search.store import ObituaryStore

# reference breaks ties so that consecutive pages never overlap.
SEARCH_ORDER: Tuple[Tuple[str, int], ...] = (
    ("surname", ASCENDING),
    ("givenNames", ASCENDING),
    ("reference", ASCENDING),
)


# --- VALIDATION

def parse_criteria(raw: Any) -> SearchCriteria:
    """
    Validates a raw search form (usually the decoded JSON body).
    Raises InvalidInput before any query is built.
    """
    if isinstance(raw, SearchCriteria):
        return raw
    try:
        return SearchCriteria.model_validate(raw)
    except ValidationError as e:
        raise InvalidInput.from_validation_error(e) from e


# --- NAME FACET

def _name_conditions(criteria: SearchCriteria) -> Tuple[Optional[Predicate], Optional[Predicate], Optional[Predicate]]:
    """
    Each supplied name field also matches the record's also-known-as entries:
    surname and maiden name against AKA surnames, given names against AKA other names.
    """
    surname_cond = given_names_cond = maiden_name_cond = None
    if criteria.surname:
        surname_cond = any_of(
            FieldContains("surname", criteria.surname),
            ExistsIn("alsoKnownAs", FieldContains("surname", criteria.surname)),
        )
    if criteria.given_names:
        given_names_cond = any_of(
            FieldContains("givenNames", criteria.given_names),
            ExistsIn("alsoKnownAs", FieldContains("otherNames", criteria.given_names)),
        )
    if criteria.maiden_name:
        maiden_name_cond = any_of(
            FieldContains("maidenName", criteria.maiden_name),
            ExistsIn("alsoKnownAs", FieldContains("surname", criteria.maiden_name)),
        )
    return surname_cond, given_names_cond, maiden_name_cond


def build_name_condition(criteria: SearchCriteria) -> Optional[Predicate]:
    """
    Surname + given names (optionally + maiden name) and given names + maiden name
    are treated as a strong identity and AND-ed. Any other combination only
    needs one of the supplied names to match.
    """
    surname_cond, given_names_cond, maiden_name_cond = _name_conditions(criteria)

    if surname_cond and given_names_cond:
        parts = [surname_cond, given_names_cond]
        if maiden_name_cond:
            parts.append(maiden_name_cond)
        return all_of(*parts)

    if given_names_cond and maiden_name_cond:
        return all_of(given_names_cond, maiden_name_cond)

    present = [cond for cond in (surname_cond, given_names_cond, maiden_name_cond) if cond]
    if not present:
        return None
    return any_of(*present)


def build_relaxed_name_condition(criteria: SearchCriteria) -> Optional[Predicate]:
    """Flat OR of every supplied name condition, whatever the combination."""
    present = [cond for cond in _name_conditions(criteria) if cond]
    if not present:
        return None
    return any_of(*present)


# --- RELATIVES FACET

def build_relatives_condition(criteria: SearchCriteria) -> Optional[Predicate]:
    clauses: List[Predicate] = []
    for relative in criteria.relatives or []:
        parts: List[Predicate] = []
        if relative.name:
            parts.append(any_of(
                FieldContains("surname", relative.name),
                FieldContains("givenNames", relative.name),
            ))
        if relative.relationship_id:
            parts.append(FieldEquals("familyRelationshipId", relative.relationship_id))
        if parts:
            clauses.append(all_of(*parts))

    if not clauses:
        return None
    return ExistsIn("relatives", any_of(*clauses))


# --- DATE FACETS

def _exact_date_condition(field: str, facet: DateFacet) -> Optional[Predicate]:
    """
    Full date -> that day; year + month -> the whole month; year alone -> the
    whole year. Each step down is taken when the more precise parts are
    missing or out of range.
    """
    year = parse_int(facet.year)
    month = parse_int(facet.month)
    day = parse_int(facet.day)

    if year is None:
        return None

    if month is not None and day is not None and 1 <= month <= 12 and 1 <= day <= 31:
        try:
            return FieldEquals(field, utc_date(year, month, day))
        except ValueError:
            logger.warning(
                f"Invalid exact {field} components: {year}-{month}-{day}, searching the whole month instead"
            )

    if month is not None and 1 <= month <= 12:
        bounds = month_bounds(year, month)
        if bounds:
            return DateRange(field, gte=bounds[0], lte=bounds[1])

    bounds = year_bounds(year)
    if bounds:
        return DateRange(field, gte=bounds[0], lte=bounds[1])
    return None


def _range_date_condition(field: str, facet: DateFacet) -> Optional[Predicate]:
    year_from = parse_int(facet.year_from)
    year_to = parse_int(facet.year_to)

    gte: Optional[datetime] = start_of_year(year_from) if year_from is not None else None
    lte: Optional[datetime] = end_of_year(year_to) if year_to is not None else None

    if gte is None and lte is None:
        return None
    return DateRange(field, gte=gte, lte=lte)


def build_date_condition(field: str, facet: DateFacet) -> Optional[Predicate]:
    if facet.mode == DateMode.RANGE:
        return _range_date_condition(field, facet)
    return _exact_date_condition(field, facet)


# --- PLACE FACETS

def build_place_condition(relation: str, text: Optional[str]) -> Optional[Predicate]:
    if not text:
        return None
    return any_of(
        FieldContains(f"{relation}.name", text),
        FieldContains(f"{relation}.province", text),
        FieldContains(f"{relation}.country.name", text),
    )


def build_primary_predicate(criteria: SearchCriteria) -> Predicate:
    blocks = [
        build_name_condition(criteria),
        build_relatives_condition(criteria),
        build_date_condition("birthDate", criteria.birth),
        build_date_condition("deathDate", criteria.death),
        build_place_condition("birthCity", criteria.birth_place),
        build_place_condition("deathCity", criteria.death_place),
    ]
    return all_of(*[block for block in blocks if block is not None])


# --- EXECUTION

def to_result(row: Dict[str, Any]) -> SearchResult:
    shaped = {name: row.get(name) for name in RESULT_FIELDS}
    for date_field in ("birthDate", "deathDate"):
        if isinstance(shaped[date_field], datetime):
            shaped[date_field] = shaped[date_field].date()
    return SearchResult.model_validate(shaped)


async def _run_page(
    store: ObituaryStore,
    predicate: Predicate,
    criteria: SearchCriteria,
) -> Tuple[List[SearchResult], int]:
    find = FindQuery(
        collection=OBITUARY_COLLECTION,
        where=predicate,
        projection=tuple(RESULT_FIELDS),
        order_by=SEARCH_ORDER,
        skip=criteria.skip,
        limit=criteria.page_size,
    )
    count = CountQuery(collection=OBITUARY_COLLECTION, where=predicate)
    try:
        rows, total_count = await store.execute_atomic(find, count)
    except StorageError as e:
        logger.error(f"Obituary search failed: {e}", exc_info=True)
        raise SearchFailed() from e
    return [to_result(row) for row in rows], total_count


async def search(criteria: Any, store: ObituaryStore) -> SearchResponse:
    """
    Runs the faceted obituary search.

    When the strict search finds nothing and a name was given, the search is
    repeated with only the name conditions OR-ed together; if that finds
    anything the response carries those rows with is_partial_match=True.
    The same page window is applied to both attempts.

    Raises InvalidInput for a malformed form and SearchFailed when the store
    cannot answer.
    """
    validated = parse_criteria(criteria)

    primary = build_primary_predicate(validated)
    logger.debug("Obituary search predicate", extra={"predicate": describe(primary)})

    results, total_count = await _run_page(store, primary, validated)

    if total_count == 0 and validated.has_name_criteria:
        relaxed = build_relaxed_name_condition(validated)
        logger.info("No exact matches, retrying with partial name match")
        partial_results, partial_count = await _run_page(store, relaxed, validated)
        if partial_count > 0:
            logger.info(
                "Obituary search completed",
                extra={"total_count": partial_count, "is_partial_match": True},
            )
            return SearchResponse(results=partial_results, total_count=partial_count, is_partial_match=True)

    logger.info(
        "Obituary search completed",
        extra={"total_count": total_count, "is_partial_match": False},
    )
    return SearchResponse(results=results, total_count=total_count, is_partial_match=False)
