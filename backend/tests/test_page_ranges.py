"""
Unit tests for page-range parsing, validation and serialization.
"""

import pytest

from printshop.services.pricing.page_ranges import (
    MAX_RANGE_SPAN,
    check_page_spec,
    correct_page_spec,
    parse,
    serialize,
    validate_against_page_count,
)


class TestParse:
    """Tests for parse()."""

    def test_singles_and_ranges(self):
        assert parse("1,3,5-6") == {1, 3, 5, 6}

    def test_whitespace_around_tokens_is_ignored(self):
        assert parse(" 1 , 2 - 4 ,7 ") == {1, 2, 3, 4, 7}

    def test_duplicates_collapse(self):
        assert parse("1,1,1-3,2") == {1, 2, 3}

    def test_single_page_range(self):
        assert parse("4-4") == {4}

    @pytest.mark.parametrize(
        "spec",
        ["", None, "abc", "0", "-3", "5-2", "1-", "1-2-3", "1.5", "٣", "0-2", "9" * 5000, "1-" + "9" * 5000],
    )
    def test_malformed_tokens_are_dropped(self, spec):
        assert parse(spec) == set()

    def test_malformed_tokens_do_not_affect_valid_ones(self):
        assert parse("x, 2, 9-7, 4-5, ,") == {2, 4, 5}

    def test_no_upper_bound(self):
        assert parse("1000") == {1000}

    def test_oversized_range_is_dropped(self):
        assert parse(f"1-{MAX_RANGE_SPAN + 1}, 3") == {3}

    def test_overlong_page_number_does_not_stop_parsing(self):
        assert parse("1," + "9" * 5000 + ", 1234567890, 4") == {1, 4}


class TestValidateAgainstPageCount:
    """Tests for validate_against_page_count()."""

    def test_scenario_out_of_range_page(self):
        split = validate_against_page_count(parse("1,3,50"), 10)

        assert split.valid == {1, 3}
        assert split.invalid == {50}

    def test_boundary_page_is_valid(self):
        split = validate_against_page_count({10, 11}, 10)

        assert split.valid == {10}
        assert split.invalid == {11}


class TestSerialize:
    """Tests for serialize()."""

    @pytest.mark.parametrize(
        ("pages", "expected"),
        [
            (set(), ""),
            ({1}, "1"),
            ({6, 1, 3, 5}, "1,3,5-6"),
            ({1, 2, 3, 4}, "1-4"),
            ({2, 4, 6}, "2,4,6"),
            ({10, 9, 1, 2, 3, 20}, "1-3,9-10,20"),
        ],
    )
    def test_canonical_form(self, pages, expected):
        assert serialize(pages) == expected

    @pytest.mark.parametrize(
        "pages",
        [
            set(),
            {7},
            {1, 2},
            {1, 3},
            {5, 4, 3, 10, 12, 11},
            set(range(1, 200, 3)) | set(range(300, 350)),
        ],
    )
    def test_round_trip(self, pages):
        assert parse(serialize(pages)) == pages


class TestCorrection:
    """Tests for check_page_spec() and correct_page_spec()."""

    def test_correction_drops_out_of_range_pages(self):
        assert correct_page_spec("1,3,50", 10) == "1,3"

    @pytest.mark.parametrize(
        ("spec", "page_count"),
        [("1,3,50", 10), ("5-20, 2", 8), ("x,1", 3), ("9", 4), ("", 5)],
    )
    def test_correction_is_idempotent(self, spec, page_count):
        once = correct_page_spec(spec, page_count)
        twice = correct_page_spec(once, page_count)

        assert once == twice

    def test_check_reports_invalid_pages_and_correction(self):
        warning = check_page_spec("1,3,50,60", 10)

        assert warning is not None
        assert warning.pages == (50, 60)
        assert warning.page_count == 10
        assert warning.corrected_spec == "1,3"
        assert "60" in str(warning)

    def test_check_passes_when_all_pages_exist(self):
        assert check_page_spec("1-10", 10) is None

    def test_check_skipped_for_unknown_page_count(self):
        assert check_page_spec("1,50", 0) is None
