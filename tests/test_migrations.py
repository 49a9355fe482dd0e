"""Tests for the ai_pending_actions migration."""

from sqlalchemy import create_engine, inspect, text

from schedulesync.migrations.add_ai_pending_actions import add_ai_pending_actions


def legacy_engine():
    """Schema from before the assistant state table existed"""
    bind = create_engine("sqlite://")
    with bind.begin() as conn:
        conn.execute(text("CREATE TABLE users (id INTEGER PRIMARY KEY)"))
        conn.execute(text("CREATE TABLE event_types (id INTEGER PRIMARY KEY, title VARCHAR(255))"))
    return bind


class TestAddAIPendingActions:
    def test_creates_table_and_column(self):
        bind = legacy_engine()
        assert add_ai_pending_actions(bind) is True

        inspector = inspect(bind)
        assert inspector.has_table("ai_pending_actions")
        assert "default_template_id" in {c["name"] for c in inspector.get_columns("event_types")}

    def test_rerun_is_a_no_op(self):
        bind = legacy_engine()
        add_ai_pending_actions(bind)
        assert add_ai_pending_actions(bind) is False
