"""
Tests for the SQLite client state store.
"""

import sqlite3

import pytest


@pytest.fixture
def store(temp_dir):
    """StateStore backed by a temporary database file."""
    from storage import StateStore
    state_store = StateStore(str(temp_dir / 'state.db'))
    yield state_store
    state_store.close()


class TestStateStore:
    """Tests for StateStore key/value operations."""

    def test_missing_key_returns_none(self, store):
        assert store.get_item('selected_document') is None

    def test_set_and_get(self, store):
        store.set_item('selected_document', 'Sales')

        assert store.get_item('selected_document') == 'Sales'

    def test_set_overwrites(self, store):
        store.set_item('selected_document', 'Sales')
        store.set_item('selected_document', 'HR')

        assert store.get_item('selected_document') == 'HR'

    def test_remove_item(self, store):
        store.set_item('selected_sheet', 'Q1')
        store.remove_item('selected_sheet')

        assert store.get_item('selected_sheet') is None

    def test_remove_missing_key_is_noop(self, store):
        store.remove_item('never_set')

    def test_clear_returns_count(self, store):
        store.set_item('a', '1')
        store.set_item('b', '2')

        assert store.clear() == 2
        assert store.get_item('a') is None

    def test_values_survive_reopen(self, temp_dir):
        """Test values persist across store instances on the same file."""
        from storage import StateStore

        db_path = str(temp_dir / 'state.db')
        first = StateStore(db_path)
        first.set_item('selected_document', 'Sales')
        first.close()

        second = StateStore(db_path)
        try:
            assert second.get_item('selected_document') == 'Sales'
        finally:
            second.close()

    def test_creates_parent_directory(self, temp_dir):
        from storage import StateStore

        db_path = temp_dir / 'nested' / 'dir' / 'state.db'
        state_store = StateStore(str(db_path))
        try:
            state_store.set_item('k', 'v')
        finally:
            state_store.close()

        assert db_path.exists()

    def test_schema_created(self, store):
        store.init_database()

        with store.get_db() as conn:
            tables = [row['name'] for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            )]

        assert 'client_state' in tables

    def test_get_db_rolls_back_on_error(self, store):
        """Test a failing transaction leaves no partial writes."""
        with pytest.raises(RuntimeError):
            with store.get_db() as conn:
                conn.execute(
                    "INSERT INTO client_state (key, value, updated_at) VALUES ('k', 'v', 'now')"
                )
                raise RuntimeError('abort')

        assert store.get_item('k') is None

    def test_unopenable_database_raises(self, temp_dir, monkeypatch):
        """Test repeated connection failures surface as StateStoreError."""
        import storage
        from storage import StateStore, StateStoreError

        def fail_connect(*args, **kwargs):
            raise sqlite3.OperationalError('unable to open database file')

        monkeypatch.setattr(storage.sqlite3, 'connect', fail_connect)
        monkeypatch.setattr(storage, 'DB_CONNECT_RETRY_DELAY', 0)

        with pytest.raises(StateStoreError):
            StateStore(str(temp_dir / 'state.db')).get_item('k')
