"""
In-memory row collection for the selected document/sheet.

Holds the fetched rows, reconciles them locally after successful updates and
deletes, tracks which rows were edited this session and filters by search term.

Row identity is the row's `row_number` column when every row carries one,
otherwise its position in the fetched sequence. Position identities are only
stable until the first delete: rows after the deleted one shift down.
"""

from typing import Any, Dict, Hashable, List, Optional, Sequence, Set

from utils import stringify_value, logger

Row = Dict[str, Any]

IDENTITY_COLUMN = 'row_number'


class RowNotFoundError(LookupError):
    """Raised when no row in the collection matches an identity."""
    pass


def row_identity(row: Row, position: int) -> Hashable:
    """Identity of a row: its row_number when present, else its position."""
    value = row.get(IDENTITY_COLUMN)
    if value is not None:
        return value
    return position


def collection_identities(rows: Sequence[Row]) -> List[Hashable]:
    """
    Identities for a whole collection.

    Keyed by row_number only when every row carries one; a collection with
    any row missing it is keyed by position throughout.
    """
    if rows and all(row.get(IDENTITY_COLUMN) is not None for row in rows):
        return [row_identity(row, position) for position, row in enumerate(rows)]
    return list(range(len(rows)))


def matches_search(row: Row, term: str) -> bool:
    """Case-insensitive substring match against every non-null value."""
    needle = term.lower()
    for value in row.values():
        text = stringify_value(value)
        if text is not None and needle in text.lower():
            return True
    return False


class RowStore:
    """Rows of the current sheet plus the set of locally edited identities."""

    def __init__(self):
        self._rows: List[Row] = []
        self._edited: Set[Hashable] = set()

    def __len__(self) -> int:
        return len(self._rows)

    @property
    def rows(self) -> List[Row]:
        return list(self._rows)

    @property
    def edited(self) -> Set[Hashable]:
        return set(self._edited)

    def is_edited(self, identity: Hashable) -> bool:
        return identity in self._edited

    def clear(self):
        self._rows = []
        self._edited = set()

    def identities(self) -> List[Hashable]:
        return collection_identities(self._rows)

    def identity_at(self, position: int) -> Hashable:
        """Identity of the row at a position in the full collection."""
        return self.identities()[position]

    def identity_of(self, row: Row) -> Hashable:
        """Identity of a row object held by this store (e.g. from filtered_view)."""
        for position, candidate in enumerate(self._rows):
            if candidate is row:
                return self.identity_at(position)
        raise RowNotFoundError("Row is not part of the current collection")

    def index_of(self, identity: Hashable) -> int:
        """
        Position of the row matching an identity.

        Raises:
            RowNotFoundError: If no row matches
        """
        for position, candidate in enumerate(self.identities()):
            if candidate == identity:
                return position
        raise RowNotFoundError(f"No row with identity {identity!r}")

    def get_row(self, identity: Hashable) -> Optional[Row]:
        try:
            return self._rows[self.index_of(identity)]
        except RowNotFoundError:
            return None

    def columns(self) -> List[str]:
        """Column names across all rows, in first-seen order."""
        seen: Dict[str, None] = {}
        for row in self._rows:
            for column in row:
                seen.setdefault(column, None)
        return list(seen)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def apply_fetch_result(self, rows: Sequence[Row]):
        """Replace the whole collection; edits from a previous sheet no longer apply."""
        self._rows = [dict(row) for row in rows]
        self._edited = set()

    def apply_update_result(self, identity: Hashable, new_row: Row) -> bool:
        """
        Replace the row matching identity and mark it edited.

        Returns False (and changes nothing) if the row is gone, e.g. deleted
        while the update was in flight.
        """
        try:
            position = self.index_of(identity)
        except RowNotFoundError as e:
            logger.debug(f"Update reconciliation skipped: {e}")
            return False
        self._rows[position] = dict(new_row)
        self._edited.add(identity)
        return True

    def apply_delete_result(self, identity: Hashable) -> bool:
        """Remove the row matching identity and forget its edited mark."""
        try:
            position = self.index_of(identity)
        except RowNotFoundError as e:
            logger.debug(f"Delete reconciliation skipped: {e}")
            return False
        del self._rows[position]
        self._edited.discard(identity)
        return True

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def filtered_view(self, search_term: str = '') -> List[Row]:
        """Rows matching the search term in original order; blank term means all rows."""
        if not search_term or not search_term.strip():
            return list(self._rows)
        return [row for row in self._rows if matches_search(row, search_term)]
