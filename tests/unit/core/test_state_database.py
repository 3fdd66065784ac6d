"""Tests for the adaptive state table and DatabaseManager."""

import pytest

from src.core.database import DatabaseManager
from src.core.models import AdaptiveStateEntry


@pytest.fixture
def db_manager(tmp_path):
    """Database manager on a temporary SQLite file."""
    manager = DatabaseManager(tmp_path / "nested" / "adaptive.db")
    yield manager
    manager.close()


class TestDatabaseManager:
    """Test state document storage."""

    def test_creates_parent_directory(self, tmp_path):
        """Test that the database directory is created on demand."""
        manager = DatabaseManager(tmp_path / "a" / "b" / "state.db")
        try:
            assert (tmp_path / "a" / "b").is_dir()
        finally:
            manager.close()

    def test_no_states(self, db_manager):
        """Test that a learner without stored state gets an empty mapping."""
        assert db_manager.get_all_states("user") == {}

    def test_set_and_get_states(self, db_manager):
        """Test a JSON round trip through one key."""
        db_manager.set_states("user", {"difficulty_profile": {"global_level": 6}})
        assert db_manager.get_all_states("user") == {
            "difficulty_profile": {"global_level": 6}
        }

    def test_set_states_upserts(self, db_manager):
        """Test that writing an existing key replaces its value in place."""
        db_manager.set_states("user", {"a": 1, "b": [1, 2]})
        db_manager.set_states("user", {"a": 2})

        assert db_manager.get_all_states("user") == {"a": 2, "b": [1, 2]}
        with db_manager.get_session() as session:
            assert session.query(AdaptiveStateEntry).filter_by(state_key="a").count() == 1

    def test_users_are_isolated(self, db_manager):
        """Test that state is kept per learner."""
        db_manager.set_states("ana", {"k": "ana-value"})
        db_manager.set_states("joan", {"k": "joan-value"})

        assert db_manager.get_all_states("ana") == {"k": "ana-value"}
        assert db_manager.get_all_states("joan") == {"k": "joan-value"}

    def test_invalid_json_is_skipped(self, db_manager):
        """Test that corrupted documents don't break loading."""
        db_manager.set_states("user", {"good": {"x": 1}})
        with db_manager.get_session() as session:
            session.add(
                AdaptiveStateEntry(user_id="user", state_key="bad", state_value="{oops")
            )

        assert db_manager.get_all_states("user") == {"good": {"x": 1}}

    def test_clear_states(self, db_manager):
        """Test that clearing removes only the learner's entries."""
        db_manager.set_states("user", {"a": 1, "b": 2})
        db_manager.set_states("other", {"a": 1})

        assert db_manager.clear_states("user") == 2
        assert db_manager.get_all_states("user") == {}
        assert db_manager.get_all_states("other") == {"a": 1}

    def test_session_rolls_back_on_error(self, db_manager):
        """Test that a failing session leaves no partial writes."""
        with pytest.raises(RuntimeError):
            with db_manager.get_session() as session:
                session.add(
                    AdaptiveStateEntry(user_id="user", state_key="k", state_value="1")
                )
                session.flush()
                raise RuntimeError("boom")

        assert db_manager.get_all_states("user") == {}
