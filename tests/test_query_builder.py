"""Tests for predicate construction in the faceted search."""

from datetime import datetime, timezone

import pytest

from obituary_search.models import DateFacet, DateMode
from obituary_search.predicates import And, DateRange, ExistsIn, FieldContains, FieldEquals, Or
from obituary_search.services.search import (
    build_date_condition,
    build_name_condition,
    build_place_condition,
    build_primary_predicate,
    build_relatives_condition,
    build_relaxed_name_condition,
    parse_criteria,
)


def surname_cond(text):
    return Or((FieldContains("surname", text), ExistsIn("alsoKnownAs", FieldContains("surname", text))))


def given_names_cond(text):
    return Or((FieldContains("givenNames", text), ExistsIn("alsoKnownAs", FieldContains("otherNames", text))))


def maiden_name_cond(text):
    return Or((FieldContains("maidenName", text), ExistsIn("alsoKnownAs", FieldContains("surname", text))))


def end_of_day(year, month, day):
    return datetime(year, month, day, 23, 59, 59, 999000, tzinfo=timezone.utc)


def start_of_day(year, month, day):
    return datetime(year, month, day, tzinfo=timezone.utc)


class TestNamePrecedence:
    """The three-way AND/OR branch over surname, given names and maiden name."""

    def test_surname_and_given_names_are_anded(self):
        criteria = parse_criteria({"surname": "Smith", "givenNames": "John"})
        assert build_name_condition(criteria) == And((surname_cond("Smith"), given_names_cond("John")))

    def test_maiden_name_joins_the_and_when_surname_and_given_names_present(self):
        criteria = parse_criteria({"surname": "Smith", "givenNames": "Alice", "maidenName": "Brown"})
        assert build_name_condition(criteria) == And((
            surname_cond("Smith"), given_names_cond("Alice"), maiden_name_cond("Brown"),
        ))

    def test_given_names_and_maiden_name_are_anded(self):
        criteria = parse_criteria({"givenNames": "Mary", "maidenName": "Whitfield"})
        assert build_name_condition(criteria) == And((given_names_cond("Mary"), maiden_name_cond("Whitfield")))

    def test_surname_and_maiden_name_fall_back_to_or(self):
        criteria = parse_criteria({"surname": "Jones", "maidenName": "Brown"})
        assert build_name_condition(criteria) == Or((surname_cond("Jones"), maiden_name_cond("Brown")))

    @pytest.mark.parametrize("payload,expected", [
        ({"surname": "Smith"}, Or((surname_cond("Smith"),))),
        ({"givenNames": "John"}, Or((given_names_cond("John"),))),
        ({"maidenName": "Brown"}, Or((maiden_name_cond("Brown"),))),
    ])
    def test_single_name_is_a_one_branch_or(self, payload, expected):
        assert build_name_condition(parse_criteria(payload)) == expected

    def test_no_names_means_no_condition(self):
        assert build_name_condition(parse_criteria({"birthYear": "1950"})) is None

    def test_relaxed_condition_is_always_a_flat_or(self):
        criteria = parse_criteria({"surname": "Smith", "givenNames": "John", "maidenName": "Brown"})
        assert build_relaxed_name_condition(criteria) == Or((
            surname_cond("Smith"), given_names_cond("John"), maiden_name_cond("Brown"),
        ))

    def test_relaxed_condition_without_names_is_none(self):
        assert build_relaxed_name_condition(parse_criteria({})) is None


class TestRelativesCondition:

    def test_each_relative_is_an_and_of_its_fields(self):
        criteria = parse_criteria({"relatives": [
            {"name": "Mary", "relationshipId": "rel-wife"},
            {"relationshipId": "rel-son"},
        ]})
        assert build_relatives_condition(criteria) == ExistsIn("relatives", Or((
            And((
                Or((FieldContains("surname", "Mary"), FieldContains("givenNames", "Mary"))),
                FieldEquals("familyRelationshipId", "rel-wife"),
            )),
            And((FieldEquals("familyRelationshipId", "rel-son"),)),
        )))

    def test_empty_relatives_are_skipped(self):
        criteria = parse_criteria({"relatives": [{}, {"name": ""}, {"name": "Ingrid"}]})
        condition = build_relatives_condition(criteria)
        assert isinstance(condition, ExistsIn)
        assert len(condition.predicate.children) == 1

    @pytest.mark.parametrize("payload", [{}, {"relatives": []}, {"relatives": [{}, {"relationshipId": " "}]}])
    def test_no_usable_relatives_means_no_condition(self, payload):
        assert build_relatives_condition(parse_criteria(payload)) is None


class TestExactDateCondition:
    """Full date, then month, then year precision."""

    def test_full_date_is_an_equality(self):
        facet = DateFacet(mode=DateMode.EXACT, day="14", month="2", year="1950")
        assert build_date_condition("birthDate", facet) == FieldEquals("birthDate", start_of_day(1950, 2, 14))

    def test_impossible_day_falls_back_to_the_whole_month(self):
        facet = DateFacet(mode=DateMode.EXACT, day="31", month="2", year="1950")
        assert build_date_condition("birthDate", facet) == DateRange(
            "birthDate", gte=start_of_day(1950, 2, 1), lte=end_of_day(1950, 2, 28),
        )

    def test_month_fallback_respects_leap_years(self):
        facet = DateFacet(mode=DateMode.EXACT, day="30", month="2", year="1952")
        condition = build_date_condition("deathDate", facet)
        assert condition.lte == end_of_day(1952, 2, 29)

    @pytest.mark.parametrize("day", [None, "0", "32"])
    def test_missing_or_out_of_range_day_searches_the_month(self, day):
        facet = DateFacet(mode=DateMode.EXACT, day=day, month="4", year="1931")
        assert build_date_condition("birthDate", facet) == DateRange(
            "birthDate", gte=start_of_day(1931, 4, 1), lte=end_of_day(1931, 4, 30),
        )

    @pytest.mark.parametrize("month,day", [("13", "5"), ("0", None), (None, "12")])
    def test_invalid_or_missing_month_searches_the_year(self, month, day):
        facet = DateFacet(mode=DateMode.EXACT, day=day, month=month, year="1931")
        assert build_date_condition("birthDate", facet) == DateRange(
            "birthDate", gte=start_of_day(1931, 1, 1), lte=end_of_day(1931, 12, 31),
        )

    def test_no_year_means_no_condition(self):
        facet = DateFacet(mode=DateMode.EXACT, day="1", month="1")
        assert build_date_condition("birthDate", facet) is None

    def test_unrepresentable_year_means_no_condition(self):
        facet = DateFacet(mode=DateMode.EXACT, year="0000")
        assert build_date_condition("birthDate", facet) is None

    def test_exact_mode_ignores_range_fields(self):
        facet = DateFacet(mode=DateMode.EXACT, year_from="1900", year_to="1910")
        assert build_date_condition("birthDate", facet) is None


class TestRangeDateCondition:

    def test_both_bounds(self):
        facet = DateFacet(mode=DateMode.RANGE, year_from="1900", year_to="1920")
        assert build_date_condition("birthDate", facet) == DateRange(
            "birthDate", gte=start_of_day(1900, 1, 1), lte=end_of_day(1920, 12, 31),
        )

    def test_open_upper_bound(self):
        facet = DateFacet(mode=DateMode.RANGE, year_from="1950")
        assert build_date_condition("deathDate", facet) == DateRange("deathDate", gte=start_of_day(1950, 1, 1))

    def test_open_lower_bound(self):
        facet = DateFacet(mode=DateMode.RANGE, year_to="1995")
        assert build_date_condition("deathDate", facet) == DateRange("deathDate", lte=end_of_day(1995, 12, 31))

    def test_no_bounds_means_no_condition(self):
        assert build_date_condition("birthDate", DateFacet(mode=DateMode.RANGE)) is None

    def test_range_mode_ignores_exact_fields(self):
        facet = DateFacet(mode=DateMode.RANGE, day="1", month="1", year="1950")
        assert build_date_condition("birthDate", facet) is None


class TestPlaceAndCombination:

    def test_place_matches_city_province_or_country(self):
        assert build_place_condition("birthCity", "Kelowna") == Or((
            FieldContains("birthCity.name", "Kelowna"),
            FieldContains("birthCity.province", "Kelowna"),
            FieldContains("birthCity.country.name", "Kelowna"),
        ))

    def test_blank_place_means_no_condition(self):
        assert build_place_condition("deathCity", None) is None

    def test_empty_form_matches_everything(self):
        assert build_primary_predicate(parse_criteria({})) == And(())

    def test_active_blocks_are_anded_in_facet_order(self):
        criteria = parse_criteria({
            "surname": "Anderson",
            "relatives": [{"name": "Mary"}],
            "birthDateType": "range",
            "birthYearFrom": "1900",
            "deathYear": "1990",
            "birthPlace": "Kelowna",
            "deathPlace": "Vernon",
        })
        predicate = build_primary_predicate(criteria)
        assert isinstance(predicate, And)
        assert len(predicate.children) == 6
        assert predicate.children[0] == Or((surname_cond("Anderson"),))
        assert isinstance(predicate.children[1], ExistsIn)
        assert predicate.children[2] == DateRange("birthDate", gte=start_of_day(1900, 1, 1))
        assert predicate.children[3] == DateRange(
            "deathDate", gte=start_of_day(1990, 1, 1), lte=end_of_day(1990, 12, 31),
        )
        assert predicate.children[4] == build_place_condition("birthCity", "Kelowna")
        assert predicate.children[5] == build_place_condition("deathCity", "Vernon")
