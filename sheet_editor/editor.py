#!/usr/bin/env python3
"""
Sheet Editor - Main Entry Point

Browse, search, edit and delete rows of configured document/sheet pairs
through n8n webhooks. The last selected document and sheet are remembered
between runs.

Usage:
    python editor.py --check-config                     # Show webhook configuration
    python editor.py --list-documents                   # List configured documents/sheets
    python editor.py -D Sales -S Q1                     # Select and show the first page
    python editor.py --search ann --page 2              # Search the remembered sheet
    python editor.py --update 7 --set name=Ann          # Edit a row
    python editor.py --delete 7 --yes                   # Delete a row
    python editor.py --back document                    # Forget the selection
"""

import argparse
import sys
from typing import Any, Dict, Hashable, List, Optional, Tuple

from config import (
    EditorConfig, ConfigurationError, load_editor_config, log_environment_config
)
from utils import setup_logging, truncate_cell, logger
from webhooks import WebhookClient, EndpointExhaustionError, IDENTITY_COLUMNS, describe_failure
from rows import Row, RowStore
from pagination import page_slice, page_window, total_pages, clamp_page_index, ELLIPSIS
from storage import StateStore
from session import SelectionManager, SelectionState


def fetch_failure_message(attempted_urls: List[str]) -> str:
    return "Failed to fetch data from all endpoints.\nTried:\n" + "\n".join(attempted_urls)


class SheetEditor:
    """
    Ties selection, webhook calls and the row store together.

    Every operation catches its own endpoint errors and turns them into
    display text (error, save_error, delete_error) instead of raising.
    Successful updates and deletes are reconciled locally without re-fetching.
    """

    def __init__(self, config: EditorConfig, client: WebhookClient, selection: SelectionManager):
        self.config = config
        self.client = client
        self.selection = selection
        self.store = RowStore()
        self.page_size = config.settings.page_size

        # Display state
        self.config_error: Optional[str] = config.config_error
        self.error = ''
        self.save_error = ''
        self.delete_error = ''
        self.loading = False
        self.saving = False
        self.deleting = False
        self.search_term = ''
        self.page_index = 0

    @property
    def state(self) -> SelectionState:
        return self.selection.state

    def start(self, fetch: bool = True) -> SelectionState:
        """Restore the remembered selection and fetch its rows if a sheet was selected."""
        state = self.selection.load()
        if fetch and state.is_complete:
            self.refresh()
        return state

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def documents(self) -> List[str]:
        return list(self.config.doc_sheets)

    def sheets(self) -> List[str]:
        if not self.state.document:
            return []
        return list(self.config.doc_sheets.get(self.state.document, []))

    def select_document(self, name: str) -> SelectionState:
        """
        Raises:
            ValueError: If the document is not configured
        """
        if name not in self.config.doc_sheets:
            raise ValueError(f"Unknown document '{name}'")
        self._reset_view()
        return self.selection.select_document(name)

    def select_sheet(self, name: str) -> SelectionState:
        """
        Select a sheet of the current document and fetch its rows.

        Raises:
            ValueError: If no document is selected or the sheet is not configured for it
        """
        if not self.state.document:
            raise ValueError("Select a document before selecting a sheet")
        if name not in self.sheets():
            raise ValueError(f"Unknown sheet '{name}' for document '{self.state.document}'")
        state = self.selection.select_sheet(name)
        self.refresh()
        return state

    def back_to_sheets(self) -> SelectionState:
        self._reset_view()
        return self.selection.back_to_sheets()

    def back_to_documents(self) -> SelectionState:
        self._reset_view()
        return self.selection.back_to_documents()

    def reset(self) -> SelectionState:
        self._reset_view()
        return self.selection.reset()

    def _reset_view(self):
        self.store.clear()
        self.error = ''
        self.save_error = ''
        self.delete_error = ''
        self.search_term = ''
        self.page_index = 0

    # ------------------------------------------------------------------
    # Webhook operations
    # ------------------------------------------------------------------

    def _require_sheet(self) -> Tuple[str, str]:
        state = self.state
        if not state.is_complete:
            raise ValueError("No document/sheet selected")
        return state.document, state.sheet

    def refresh(self) -> bool:
        """
        Fetch the selected sheet, replacing the row collection.

        Returns:
            True if rows were loaded; on failure self.error holds the message
        """
        document, sheet = self._require_sheet()
        self._reset_view()
        self.loading = True
        try:
            rows = self.client.fetch_rows(document, sheet)
        except EndpointExhaustionError as e:
            self.error = fetch_failure_message(e.attempted_urls)
            return False
        except ConfigurationError as e:
            self.error = str(e)
            return False
        finally:
            self.loading = False

        self.store.apply_fetch_result(rows)
        return True

    def save_row(self, identity: Hashable, row: Row) -> bool:
        """
        Send an edited row and, on success, replace it locally and mark it edited.

        Returns:
            True on success; on failure self.save_error holds the message
        """
        document, sheet = self._require_sheet()
        self.saving = True
        self.save_error = ''
        try:
            self.client.update_row(document, sheet, identity, row)
        except EndpointExhaustionError as e:
            logger.error(f"Save error: {e}")
            self.save_error = describe_failure(e, "Failed to save changes.")
            return False
        except ConfigurationError as e:
            self.save_error = str(e)
            return False
        finally:
            self.saving = False

        self.store.apply_update_result(identity, row)
        return True

    def delete_row(self, identity: Hashable) -> bool:
        """
        Delete a row and, on success, remove it locally.

        Returns:
            True on success; on failure self.delete_error holds the message
        """
        document, sheet = self._require_sheet()
        self.deleting = True
        self.delete_error = ''
        try:
            self.client.delete_row(document, sheet, identity)
        except EndpointExhaustionError as e:
            logger.error(f"Delete error: {e}")
            self.delete_error = describe_failure(e, "Failed to delete row.")
            return False
        except ConfigurationError as e:
            self.delete_error = str(e)
            return False
        finally:
            self.deleting = False

        self.store.apply_delete_result(identity)
        # The current page may have disappeared
        self.page_index = clamp_page_index(self.page_index, len(self.filtered_rows()), self.page_size)
        return True

    # ------------------------------------------------------------------
    # Search and pagination
    # ------------------------------------------------------------------

    def set_search_term(self, term: str):
        self.search_term = term or ''
        self.page_index = 0

    def filtered_rows(self) -> List[Row]:
        return self.store.filtered_view(self.search_term)

    def total_pages(self) -> int:
        return total_pages(len(self.filtered_rows()), self.page_size)

    def go_to_page(self, page_index: int) -> int:
        self.page_index = clamp_page_index(page_index, len(self.filtered_rows()), self.page_size)
        return self.page_index

    def next_page(self) -> int:
        return self.go_to_page(self.page_index + 1)

    def previous_page(self) -> int:
        return self.go_to_page(self.page_index - 1)

    def visible_rows(self) -> List[Row]:
        return page_slice(self.filtered_rows(), self.page_index, self.page_size)

    def visible_entries(self) -> List[Tuple[Hashable, Row, bool]]:
        """(identity, row, edited) for each row on the current page."""
        entries = []
        for row in self.visible_rows():
            identity = self.store.identity_of(row)
            entries.append((identity, row, self.store.is_edited(identity)))
        return entries

    def page_numbers(self) -> List[Any]:
        return page_window(self.total_pages(), self.page_index + 1)

    def match_summary(self) -> str:
        if not self.search_term.strip():
            return ''
        return f"Found {len(self.filtered_rows())} of {len(self.store)} rows"


# ============================================================================
# Command Line Interface
# ============================================================================

def resolve_identity(store: RowStore, text: str) -> Optional[Hashable]:
    """
    Find the identity of the current collection written as text on the command line.

    row_number values may be numbers or strings, so identities are matched
    by their string form. Returns None when no row matches.
    """
    wanted = text.strip()
    for identity in store.identities():
        if str(identity) == wanted:
            return identity
    return None


def parse_assignments(assignments: List[str]) -> Dict[str, str]:
    """
    Parse COLUMN=VALUE pairs.

    Raises:
        ValueError: If an assignment has no '='
    """
    result = {}
    for assignment in assignments:
        column, separator, value = assignment.partition('=')
        if not separator or not column.strip():
            raise ValueError(f"Invalid assignment '{assignment}' (expected COLUMN=VALUE)")
        result[column.strip()] = value
    return result


def print_documents(editor: SheetEditor):
    if not editor.config.doc_sheets:
        print("No document configuration found (set DOC_SHEET_CONFIG in your .env file)")
        return
    state = editor.state
    print("\nDocuments:")
    for document, sheets in editor.config.doc_sheets.items():
        marker = '*' if document == state.document else ' '
        print(f"  {marker} {document}")
        for sheet in sheets:
            sheet_marker = '*' if document == state.document and sheet == state.sheet else ' '
            print(f"      {sheet_marker} {sheet}")


def print_page(editor: SheetEditor):
    state = editor.state
    print(f"\nDocument: {state.document} | Sheet: {state.sheet}")
    summary = editor.match_summary()
    if summary:
        print(summary)

    entries = editor.visible_entries()
    if not entries:
        print("No rows to display")
        return

    columns = editor.store.columns()
    print("-" * 80)
    for identity, row, edited in entries:
        marker = '*' if edited else ' '
        cells = " | ".join(f"{column}: {truncate_cell(row.get(column))}" for column in columns)
        print(f"{marker} [{identity}] {cells}")
    print("-" * 80)

    current = editor.page_index + 1
    markers = []
    for page in editor.page_numbers():
        if page == ELLIPSIS:
            markers.append(ELLIPSIS)
        elif page == current:
            markers.append(f"[{page}]")
        else:
            markers.append(str(page))
    print(f"Page {current} of {editor.total_pages()}: {' '.join(markers)}")
    if editor.store.edited:
        print("* edited this session")


def confirm(prompt: str) -> bool:
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ('y', 'yes')


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Sheet Editor')
    parser.add_argument('--env-file', metavar='FILE', help='Load configuration from this .env file')
    parser.add_argument('--verbose', '-v', action='store_true', help='Verbose output')
    parser.add_argument('--check-config', action='store_true',
                        help='Show webhook configuration status and exit')
    parser.add_argument('--list-documents', '-l', action='store_true',
                        help='List configured documents and sheets')
    parser.add_argument('--reset', action='store_true',
                        help='Forget the remembered document/sheet selection')
    parser.add_argument('--back', choices=['sheet', 'document'],
                        help='Go back to sheet or document selection')
    parser.add_argument('--document', '-D', help='Select a document')
    parser.add_argument('--sheet', '-S', help='Select a sheet of the selected document')
    parser.add_argument('--search', '-s', help='Filter rows by text in any column')
    parser.add_argument('--page', '-p', type=int, default=1, help='Page number to show (1-based)')
    parser.add_argument('--update', metavar='ROW', help='Update the row with this identity')
    parser.add_argument('--set', dest='assignments', action='append', default=[],
                        metavar='COLUMN=VALUE', help='Column value for --update (repeatable)')
    parser.add_argument('--delete', metavar='ROW', help='Delete the row with this identity')
    parser.add_argument('--yes', '-y', action='store_true', help='Do not ask for delete confirmation')

    args = parser.parse_args(argv)

    config = load_editor_config(env_file=args.env_file)
    setup_logging(config.settings, verbose=args.verbose)

    if args.check_config:
        log_environment_config(config, logger)
        return 0 if config.is_valid else 1

    store = StateStore(config.settings.state_database_file)
    client = WebhookClient(config)
    editor = SheetEditor(config, client, SelectionManager(store))

    try:
        if args.reset:
            editor.reset()
            print("Selection cleared")
            return 0

        if editor.config_error:
            print(f"\n!! {editor.config_error}\n")

        editor.start(fetch=False)

        try:
            if args.back == 'document':
                editor.back_to_documents()
            elif args.back == 'sheet':
                editor.back_to_sheets()
            if args.document:
                editor.select_document(args.document)
            if args.sheet:
                editor.select_sheet(args.sheet)
            elif editor.state.is_complete:
                editor.refresh()
        except ValueError as e:
            print(f"Error: {e}")
            return 2

        if args.list_documents or not editor.state.document:
            print_documents(editor)
            return 0

        if not editor.state.sheet:
            print(f"\nDocument: {editor.state.document}")
            print("Select a sheet with --sheet:")
            for sheet in editor.sheets():
                print(f"  {sheet}")
            return 0

        if editor.error:
            print(editor.error)
            return 1

        if args.update is not None:
            identity = resolve_identity(editor.store, args.update)
            if identity is None:
                print(f"Row {args.update} not found")
                return 1
            row = editor.store.get_row(identity)
            try:
                changes = parse_assignments(args.assignments)
            except ValueError as e:
                print(f"Error: {e}")
                return 2
            read_only = [column for column in changes if column in IDENTITY_COLUMNS]
            if read_only:
                print(f"Error: read-only column(s): {', '.join(read_only)}")
                return 2
            unknown = [column for column in changes if column not in row]
            if unknown:
                print(f"Error: unknown column(s): {', '.join(unknown)}")
                return 2
            new_row = dict(row)
            new_row.update(changes)
            if not editor.save_row(identity, new_row):
                print(editor.save_error)
                return 1
            print(f"Row {identity} saved")

        if args.delete is not None:
            identity = resolve_identity(editor.store, args.delete)
            if identity is None:
                print(f"Row {args.delete} not found")
                return 1
            if not args.yes and not confirm(
                'Are you sure you want to delete this row? This action cannot be undone.'
            ):
                print("Delete cancelled")
                return 0
            if not editor.delete_row(identity):
                print(editor.delete_error)
                return 1
            print(f"Row {identity} deleted")

        if args.search:
            editor.set_search_term(args.search)
        editor.go_to_page(args.page - 1)
        print_page(editor)
        return 0
    finally:
        client.close()
        store.close()


if __name__ == "__main__":
    sys.exit(main())
