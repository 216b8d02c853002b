"""
Selected document/sheet, remembered across runs.
"""

from dataclasses import dataclass
from typing import Optional

from storage import StateStore
from utils import logger

DOCUMENT_KEY = 'selected_document'
SHEET_KEY = 'selected_sheet'


@dataclass(frozen=True)
class SelectionState:
    """A sheet is only meaningful together with a document."""
    document: Optional[str] = None
    sheet: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.document and self.sheet)


class SelectionManager:
    """Tracks the current selection and writes every change through to the store."""

    def __init__(self, store: StateStore):
        self.store = store
        self._state = SelectionState()

    @property
    def state(self) -> SelectionState:
        return self._state

    def load(self) -> SelectionState:
        """
        Seed the selection from storage.

        A stored sheet without a stored document is invalid and is deleted.
        """
        document = self.store.get_item(DOCUMENT_KEY) or None
        sheet = self.store.get_item(SHEET_KEY) or None

        if sheet and not document:
            logger.warning(f"Discarding stored sheet '{sheet}' with no stored document")
            self.store.remove_item(SHEET_KEY)
            sheet = None

        self._state = SelectionState(document=document, sheet=sheet)
        return self._state

    def select_document(self, name: str) -> SelectionState:
        """Select a document; any previously selected sheet is cleared."""
        self.store.set_item(DOCUMENT_KEY, name)
        self.store.remove_item(SHEET_KEY)
        self._state = SelectionState(document=name)
        return self._state

    def select_sheet(self, name: str) -> SelectionState:
        """
        Select a sheet of the current document.

        Raises:
            ValueError: If no document is selected
        """
        if not self._state.document:
            raise ValueError("Cannot select a sheet before a document is selected")
        self.store.set_item(SHEET_KEY, name)
        self._state = SelectionState(document=self._state.document, sheet=name)
        return self._state

    def back_to_sheets(self) -> SelectionState:
        """Leave the sheet but keep the document."""
        self.store.remove_item(SHEET_KEY)
        self._state = SelectionState(document=self._state.document)
        return self._state

    def back_to_documents(self) -> SelectionState:
        """Clearing the document also clears the sheet."""
        self.store.remove_item(DOCUMENT_KEY)
        self.store.remove_item(SHEET_KEY)
        self._state = SelectionState()
        return self._state

    def reset(self) -> SelectionState:
        """Forget all stored client state."""
        removed = self.store.clear()
        logger.info(f"Cleared {removed} stored client state value(s)")
        self._state = SelectionState()
        return self._state
