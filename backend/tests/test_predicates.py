"""Tests for property predicates and list statement construction."""

import pytest
from sqlalchemy.dialects import postgresql

from propmap.schemas.property import (
    DEFAULT_SEARCH_COLUMNS,
    FilterCriteria,
    MapBounds,
    PropertyRecord,
    SearchColumn,
)
from propmap.services.predicates import (
    BoundsPredicate,
    ContactPredicate,
    ResponseStatusPredicate,
    SizeBucketPredicate,
    SizeRangePredicate,
    TextSearchPredicate,
    describe,
    local_predicates,
    parse_size,
    size_predicate,
)
from propmap.services.property_query import PropertyQuery, build_list_statement


def _compile(stmt):
    compiled = stmt.compile(dialect=postgresql.dialect())
    return str(compiled), compiled.params


def _record(**fields) -> PropertyRecord:
    return PropertyRecord(id=fields.pop("id", 1), **fields)


@pytest.mark.parametrize(
    "size, bucket, expected",
    [
        (79.99, "below_80", True),
        (80, "below_80", False),
        (80, "80_to_110", True),
        (109.9, "80_to_110", True),
        (110, "80_to_110", False),
        (110, "110_to_140", True),
        (1499.99, "1000_to_1500", True),
        (1500, "1500_plus", True),
        (1500, "1000_to_1500", False),
    ],
)
def test_size_bucket_boundaries_are_half_open(size, bucket, expected):
    assert SizeBucketPredicate(bucket).matches(_record(plot_size=size)) is expected


def test_size_bucket_skips_unparseable_sizes():
    predicate = SizeBucketPredicate("below_80")
    assert predicate.matches(_record(plot_size="approx 50 gaj")) is False
    assert predicate.matches(_record(plot_size=None)) is False
    assert predicate.matches(_record(plot_size="45")) is True


def test_parse_size():
    assert parse_size("120.5") == 120.5
    assert parse_size(80) == 80.0
    assert parse_size("") is None
    assert parse_size(True) is None


def test_custom_range_is_inclusive():
    predicate = SizeRangePredicate(min_size=80, max_size=110)
    assert predicate.matches(_record(plot_size=80))
    assert predicate.matches(_record(plot_size=110))
    assert not predicate.matches(_record(plot_size=110.01))


def test_size_predicate_resolution():
    assert size_predicate("80_to_110", 10, 20) == SizeBucketPredicate("80_to_110")
    assert size_predicate("custom", 100, 0) == SizeRangePredicate(min_size=100, max_size=None)
    assert size_predicate("", 0, 250) == SizeRangePredicate(min_size=None, max_size=250)
    assert size_predicate("custom", 0, 0) is None
    assert size_predicate("huge", 100, 200) == SizeRangePredicate(min_size=100, max_size=200)
    assert size_predicate("huge", 0, 0) is None


def test_bounds_predicate_is_closed_and_requires_coordinates():
    bounds = MapBounds(min_lat=29.3, max_lat=29.4, min_lng=76.9, max_lng=77.0)
    predicate = BoundsPredicate(bounds)

    assert predicate.matches(_record(latitude=29.3, longitude=77.0))
    assert not predicate.matches(_record(latitude=29.41, longitude=76.95))
    assert not predicate.matches(_record(latitude=None, longitude=76.95))


def test_response_status_predicate_matches_normalized_outcome():
    not_contacted = ResponseStatusPredicate("Not contacted")

    assert not_contacted.matches(_record(response=None))
    assert not_contacted.matches(_record(response="Left voicemail"))
    assert not not_contacted.matches(_record(response="Ready to Sell"))
    assert ResponseStatusPredicate("Ready to Sell").matches(_record(response="Ready to Sell"))


def test_contact_predicate():
    assert ContactPredicate(True).matches(_record(mobile_no="98120"))
    assert ContactPredicate(False).matches(_record(mobile_no=""))
    assert ContactPredicate(False).matches(_record(mobile_no=None))


def test_text_search_falls_back_to_default_columns():
    restricted = TextSearchPredicate.for_request("ram", "OwnerName")
    fallback = TextSearchPredicate.for_request("ram", "password")

    assert restricted.columns == (SearchColumn.OWNER_NAME,)
    assert fallback.columns == DEFAULT_SEARCH_COLUMNS
    assert SearchColumn.PROPERTY_CATEGORY not in DEFAULT_SEARCH_COLUMNS


def test_text_search_matches_case_insensitively():
    predicate = TextSearchPredicate("KUMAR")

    assert predicate.matches(_record(owner_name="Ram Kumar"))
    assert predicate.matches(_record(pk_property_id=4455, owner_name="x")) is False
    assert TextSearchPredicate("445").matches(_record(pk_property_id=4455))


def test_bounds_statement_is_parameterized_and_capped():
    query = PropertyQuery(min_lat=29.3, max_lat=29.4, min_lng=76.9, max_lng=77.0)

    sql, params = _compile(build_list_statement(query))

    assert '"Lat" BETWEEN' in sql
    assert '"Long" BETWEEN' in sql
    assert "LIMIT" in sql
    assert 29.3 in params.values()
    assert 1000 in params.values()


def test_search_statement_ignores_bounds_and_binds_term():
    query = PropertyQuery(
        min_lat=29.3,
        max_lat=29.4,
        search="  o'neil; drop table  ",
        where="OwnerName",
    )

    sql, params = _compile(build_list_statement(query))

    assert "BETWEEN" not in sql
    assert '"OwnerName"' in sql
    assert "ILIKE" in sql
    assert "drop table" not in sql
    assert "%o'neil; drop table%" in params.values()


def test_default_search_covers_property_id_as_text():
    sql, _ = _compile(build_list_statement(PropertyQuery(search="1234")))

    assert 'CAST(gov_properties."pkPropertyId" AS VARCHAR) ILIKE' in sql
    assert '"PropertyCategory"' not in sql.split("WHERE", 1)[1]


def test_not_contacted_statement_includes_null_and_unknown_values():
    sql, params = _compile(build_list_statement(PropertyQuery(response_status="Not contacted")))

    assert "gov_properties.response IS NULL" in sql
    assert "NOT IN" in sql
    assert "Not contacted" not in str(params.values())


def test_query_predicates_compose_every_filter():
    query = PropertyQuery(
        type="Residential",
        size_range="custom",
        min_size=100,
        response_status="Ready to Sell",
        has_contact="true",
    )

    assert describe(query.predicates()) == {
        "BoundsPredicate": 1,
        "CategoryPredicate": 1,
        "SizeRangePredicate": 1,
        "ResponseStatusPredicate": 1,
        "ContactPredicate": 1,
    }


def test_local_predicates_follow_filter_criteria():
    criteria = FilterCriteria(
        property_category="Residential",
        colony_name="Model Town",
        size_range="custom",
        min_size=0,
        max_size=200,
        has_contact=False,
    )

    assert describe(local_predicates(criteria)) == {
        "SizeRangePredicate": 1,
        "CategoryPredicate": 1,
        "ColonyPredicate": 1,
        "ContactPredicate": 1,
    }
    assert local_predicates(FilterCriteria()) == []


def test_unknown_size_range_still_limits_by_min_and_max():
    sql, params = _compile(
        build_list_statement(PropertyQuery(size_range="huge", min_size=100, max_size=200))
    )

    assert 'gov_properties."PlotSize" >=' in sql
    assert 'gov_properties."PlotSize" <=' in sql
    assert 100 in params.values()
    assert 200 in params.values()
