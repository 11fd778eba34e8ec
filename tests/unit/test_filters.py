"""Tests for predicates and field resolution."""

import pytest

from iptv_catalog import FilterPredicate, MatchMode, StreamRecord, StreamStatus, filter_records
from iptv_catalog.core.filters import field_value


@pytest.fixture
def records(catalog):
    return catalog.records


def test_substring_is_case_insensitive(records):
    kept = filter_records(records, [FilterPredicate("group-title", "spo")])

    assert [r.title for r in kept] == ["ESPN"]


def test_exact_is_case_insensitive(records):
    assert [r.title for r in filter_records(records, [FilterPredicate("title", "cnn", MatchMode.EXACT)])] == ["CNN"]
    assert filter_records(records, [FilterPredicate("title", "cn", MatchMode.EXACT)]) == []


def test_regex_is_case_sensitive_unless_pattern_says_otherwise(records):
    assert filter_records(records, [FilterPredicate("title", "^espn$", MatchMode.REGEX)]) == []
    kept = filter_records(records, [FilterPredicate("title", "(?i)^espn$", MatchMode.REGEX)])
    assert [r.title for r in kept] == ["ESPN"]


def test_predicates_are_anded_values_are_ored(records):
    either = FilterPredicate("title", ["CNN", "ESPN"], MatchMode.EXACT)
    news = FilterPredicate("category", "news")

    assert len(filter_records(records, [either])) == 2
    assert [r.title for r in filter_records(records, [either, news])] == ["CNN"]


def test_absent_field_never_matches(records):
    kept = filter_records(records, [FilterPredicate("tvg-id", "", MatchMode.SUBSTRING)])
    missing_key = filter_records(records, [FilterPredicate("no-such-key", "x")])

    assert [r.title for r in kept] == ["CNN"]
    assert missing_key == []


def test_exclude_keeps_records_without_the_field(records):
    kept = filter_records(records, [FilterPredicate("tvg-id", "1", MatchMode.EXACT, exclude=True)])

    assert [r.title for r in kept] == ["ESPN"]


def test_zero_predicates_returns_all_in_order(records):
    assert filter_records(records, []) == records


def test_filtering_is_idempotent(records):
    predicates = [FilterPredicate("url", "http://a/"), FilterPredicate("title", "N")]
    once = filter_records(records, predicates)

    assert filter_records(once, predicates) == once


def test_invalid_regex_raises_at_construction():
    with pytest.raises(ValueError, match="invalid regex"):
        FilterPredicate("title", "(", MatchMode.REGEX)


def test_mode_accepts_plain_strings():
    assert FilterPredicate("title", "x", "regex").mode is MatchMode.REGEX


def test_field_value_aliases():
    record = StreamRecord(
        url="http://x",
        title="T",
        logo="http://logo",
        category="C",
        tvg={"id": "t.fr", "country": "fr", "language": "French;English"},
        extra_attributes={"catchup": "default"},
        duration=-1.0,
        status=StreamStatus.GOOD,
    )

    assert field_value(record, "group-title") == "C"
    assert field_value(record, "TVG-ID") == "t.fr"
    assert field_value(record, "tvg.id") == "t.fr"
    assert field_value(record, "tvg_id") == "t.fr"
    assert field_value(record, "tvg-logo") == "http://logo"
    assert field_value(record, "status") == "GOOD"
    assert field_value(record, "duration") == "-1"
    assert field_value(record, "country") == "fr"
    assert field_value(record, "country.name") == "France"
    assert field_value(record, "language.code") == "FR"
    assert field_value(record, "language.name") == "French;English"
    assert field_value(record, "catchup") == "default"
    assert field_value(record, "tvg-name") is None


def test_status_filter_after_check(catalog):
    catalog.check_availability(probe=lambda url, timeout: url.endswith("/2"))

    good = catalog.filter([FilterPredicate("status", "GOOD", MatchMode.EXACT)])
    assert [r.title for r in good.records] == ["ESPN"]
