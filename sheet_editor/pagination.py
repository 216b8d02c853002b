"""
Pagination over the filtered row view.
"""

from typing import List, Sequence, TypeVar, Union

from config import DEFAULT_PAGE_SIZE

T = TypeVar('T')

PAGE_SIZE = DEFAULT_PAGE_SIZE
ELLIPSIS = '...'

PageMarker = Union[int, str]


def page_slice(view: Sequence[T], page_index: int, page_size: int = PAGE_SIZE) -> List[T]:
    """
    Rows visible on a 0-based page.

    Pages past the end (or negative) are empty; clamping navigation is the
    caller's job.
    """
    if page_index < 0 or page_size <= 0:
        return []
    start = page_index * page_size
    return list(view[start:start + page_size])


def total_pages(count: int, page_size: int = PAGE_SIZE) -> int:
    if count <= 0:
        return 0
    return (count + page_size - 1) // page_size


def last_page_index(count: int, page_size: int = PAGE_SIZE) -> int:
    """Index of the last page that has rows (0 for an empty view)."""
    return max(0, total_pages(count, page_size) - 1)


def clamp_page_index(page_index: int, count: int, page_size: int = PAGE_SIZE) -> int:
    return min(max(0, page_index), last_page_index(count, page_size))


def page_window(total: int, current_page: int, window_radius: int = 2,
                max_window_near_edge: int = 5) -> List[PageMarker]:
    """
    Compressed page numbers for display, e.g. [1, 2, 3, 4, 5, '...', 10].

    Page numbers are 1-based. The first and last pages are always shown,
    plus window_radius pages around current_page. Near either edge the
    window widens to max_window_near_edge pages from that edge. An ellipsis
    marks a gap of more than one page.
    """
    if total <= 0:
        return []

    start = max(1, current_page - window_radius)
    end = min(total, current_page + window_radius)
    if current_page <= window_radius + 1:
        end = min(total, max_window_near_edge)
    if current_page >= total - window_radius:
        start = max(1, total - max_window_near_edge + 1)

    pages: List[PageMarker] = []
    if start > 1:
        pages.append(1)
        if start > 2:
            pages.append(ELLIPSIS)
    pages.extend(range(start, end + 1))
    if end < total:
        if end < total - 1:
            pages.append(ELLIPSIS)
        pages.append(total)
    return pages
