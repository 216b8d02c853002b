"""
Tests for pagination.py.
"""

import pytest

from pagination import (
    ELLIPSIS,
    page_slice,
    page_window,
    total_pages,
    last_page_index,
    clamp_page_index
)


class TestPageSlice:
    """Tests for slicing the filtered view into pages."""

    def test_twenty_five_rows(self):
        """Test 25 rows split 20 / 5 / empty at page size 20."""
        view = list(range(25))

        assert page_slice(view, 0) == list(range(20))
        assert page_slice(view, 1) == list(range(20, 25))
        assert page_slice(view, 2) == []

    def test_custom_page_size(self):
        assert page_slice(list('abcdefg'), 1, page_size=3) == ['d', 'e', 'f']

    def test_negative_page_is_empty(self):
        assert page_slice([1, 2, 3], -1) == []

    def test_empty_view(self):
        assert page_slice([], 0) == []


class TestPageCounts:
    """Tests for page count helpers."""

    @pytest.mark.parametrize('count,expected', [(0, 0), (1, 1), (20, 1), (21, 2), (25, 2), (40, 2)])
    def test_total_pages(self, count, expected):
        assert total_pages(count) == expected

    def test_last_page_index(self):
        assert last_page_index(0) == 0
        assert last_page_index(25) == 1

    def test_clamp_page_index(self):
        assert clamp_page_index(5, 25) == 1
        assert clamp_page_index(-3, 25) == 0
        assert clamp_page_index(1, 0) == 0


class TestPageWindow:
    """Tests for the compressed page-number strip."""

    def test_start_of_long_range(self):
        assert page_window(10, 1) == [1, 2, 3, 4, 5, ELLIPSIS, 10]

    def test_end_of_long_range(self):
        assert page_window(10, 10) == [1, ELLIPSIS, 6, 7, 8, 9, 10]

    def test_middle_of_long_range(self):
        assert page_window(10, 5) == [1, ELLIPSIS, 3, 4, 5, 6, 7, ELLIPSIS, 10]

    def test_short_range_shows_everything(self):
        assert page_window(3, 2) == [1, 2, 3]

    def test_single_page(self):
        assert page_window(1, 1) == [1]

    def test_no_pages(self):
        assert page_window(0, 1) == []

    def test_no_ellipsis_for_single_gap(self):
        """Test adjacent first page is shown without an ellipsis."""
        assert page_window(7, 4) == [1, 2, 3, 4, 5, 6, 7]

    def test_always_includes_first_last_and_current(self):
        for total in range(1, 15):
            for current in range(1, total + 1):
                window = page_window(total, current)
                assert window[0] == 1
                assert window[-1] == total
                assert current in window
