from datetime import date
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from obituary_search.config import BROWSE_PAGE_SIZE, DEFAULT_PAGE, DEFAULT_PAGE_SIZE, DEFAULT_RELATIONSHIP_PAGE_SIZE

# -ENUMS for validation and type safety
class DateMode(str, Enum):
    EXACT = "exact"
    RANGE = "range"

DAY_MONTH_PATTERN = r"^\d{1,2}$"
YEAR_PATTERN = r"^\d{4}$"


def _blank_strings_to_none(values: Any) -> Any:
    """
    Search forms submit untouched inputs as "" - treat those as not supplied.
    """
    if not isinstance(values, dict):
        return values
    cleaned = {}
    for key, value in values.items():
        if isinstance(value, str) and not value.strip():
            cleaned[key] = None
        else:
            cleaned[key] = value
    return cleaned


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- PYDANTIC MODELS for API requests

class Relative(CamelModel):
    name: Optional[str] = Field(None, strict=True)
    relationship_id: Optional[str] = Field(None, strict=True)

    @model_validator(mode='before')
    @classmethod
    def drop_blank_fields(cls, values):
        return _blank_strings_to_none(values)

    @property
    def is_empty(self) -> bool:
        return not self.name and not self.relationship_id


class DateFacet(BaseModel):
    """
    One date facet (birth or death) with its mode made explicit. Only the
    fields belonging to `mode` are ever read by the query builder.
    """
    model_config = ConfigDict(frozen=True)

    mode: DateMode = DateMode.EXACT
    day: Optional[str] = None
    month: Optional[str] = None
    year: Optional[str] = None
    year_from: Optional[str] = None
    year_to: Optional[str] = None


class SearchCriteria(CamelModel):
    # Name facet
    surname: Optional[str] = Field(None, strict=True)
    given_names: Optional[str] = Field(None, strict=True)
    maiden_name: Optional[str] = Field(None, strict=True)

    relatives: Optional[List[Relative]] = None

    # Birth facet
    birth_date_type: Optional[DateMode] = None
    birth_day: Optional[str] = Field(None, strict=True, pattern=DAY_MONTH_PATTERN)
    birth_month: Optional[str] = Field(None, strict=True, pattern=DAY_MONTH_PATTERN)
    birth_year: Optional[str] = Field(None, strict=True, pattern=YEAR_PATTERN)
    birth_year_from: Optional[str] = Field(None, strict=True, pattern=YEAR_PATTERN)
    birth_year_to: Optional[str] = Field(None, strict=True, pattern=YEAR_PATTERN)
    birth_place: Optional[str] = Field(None, strict=True)

    # Death facet
    death_date_type: Optional[DateMode] = None
    death_day: Optional[str] = Field(None, strict=True, pattern=DAY_MONTH_PATTERN)
    death_month: Optional[str] = Field(None, strict=True, pattern=DAY_MONTH_PATTERN)
    death_year: Optional[str] = Field(None, strict=True, pattern=YEAR_PATTERN)
    death_year_from: Optional[str] = Field(None, strict=True, pattern=YEAR_PATTERN)
    death_year_to: Optional[str] = Field(None, strict=True, pattern=YEAR_PATTERN)
    death_place: Optional[str] = Field(None, strict=True)

    page: int = Field(DEFAULT_PAGE, gt=0, strict=True)
    page_size: int = Field(DEFAULT_PAGE_SIZE, gt=0, strict=True)

    @model_validator(mode='before')
    @classmethod
    def drop_blank_fields(cls, values):
        return _blank_strings_to_none(values)

    @property
    def has_name_criteria(self) -> bool:
        return bool(self.surname or self.given_names or self.maiden_name)

    @property
    def birth(self) -> DateFacet:
        return DateFacet(
            mode=self.birth_date_type or DateMode.EXACT,
            day=self.birth_day,
            month=self.birth_month,
            year=self.birth_year,
            year_from=self.birth_year_from,
            year_to=self.birth_year_to,
        )

    @property
    def death(self) -> DateFacet:
        return DateFacet(
            mode=self.death_date_type or DateMode.EXACT,
            day=self.death_day,
            month=self.death_month,
            year=self.death_year,
            year_from=self.death_year_from,
            year_to=self.death_year_to,
        )

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size


class RelationshipQuery(CamelModel):
    search: Optional[str] = Field(None, strict=True)
    page: int = Field(DEFAULT_PAGE, gt=0, strict=True)
    per_page: int = Field(DEFAULT_RELATIONSHIP_PAGE_SIZE, gt=0, strict=True)

    @model_validator(mode='before')
    @classmethod
    def drop_blank_fields(cls, values):
        return _blank_strings_to_none(values)


class LetterQuery(CamelModel):
    letter: str = Field(strict=True)
    page: int = Field(DEFAULT_PAGE, gt=0, strict=True)
    page_size: int = Field(BROWSE_PAGE_SIZE, gt=0, strict=True)

    @field_validator('letter')
    @classmethod
    def single_letter(cls, value: str) -> str:
        value = value.strip()
        if len(value) != 1 or not value.isalpha():
            raise ValueError("letter must be a single alphabetic character")
        return value

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size


# --- RESPONSE MODELS

class SearchResult(CamelModel):
    reference: str
    given_names: Optional[str] = None
    surname: Optional[str] = None
    maiden_name: Optional[str] = None
    birth_date: Optional[date] = None
    death_date: Optional[date] = None


class SearchResponse(CamelModel):
    results: List[SearchResult]
    total_count: int
    is_partial_match: bool = False


class ObituaryDetails(CamelModel):
    reference: str
    has_images: bool
    image_count: int


class FamilyRelationship(CamelModel):
    id: str
    name: str


class RelationshipPage(CamelModel):
    relationships: List[FamilyRelationship]
    total_count: int
    total_pages: int


class LetterPage(CamelModel):
    results: List[SearchResult]
    total_count: int
    total_pages: int
