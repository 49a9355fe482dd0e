"""
Add the ai_pending_actions table and event_types.default_template_id
Run with: python -m schedulesync.migrations.add_ai_pending_actions
"""

from sqlalchemy import inspect, text

from ..database import engine
from ..models import AIPendingAction


def add_ai_pending_actions(bind=engine):
    """Create the pending action table and backfill the template column; safe to re-run"""
    print("🚀 Starting migration: add_ai_pending_actions")

    inspector = inspect(bind)
    if inspector.has_table(AIPendingAction.__tablename__):
        print("ℹ️  ai_pending_actions table already exists")
    else:
        AIPendingAction.__table__.create(bind=bind)
        print("✅ Created ai_pending_actions table")

    if not inspector.has_table("event_types"):
        print("⚠️  Skipping default_template_id - no event_types table")
        return False

    columns = {column["name"] for column in inspector.get_columns("event_types")}
    if "default_template_id" in columns:
        print("ℹ️  default_template_id column already exists in event_types")
        return False

    with bind.begin() as conn:
        conn.execute(text("ALTER TABLE event_types ADD COLUMN default_template_id INTEGER"))
    print("✅ Added default_template_id column to event_types")
    return True


def main():
    try:
        add_ai_pending_actions()
        print("\n✅ Migration completed successfully!")
    except Exception as e:
        print(f"\n❌ Migration failed: {e}")
        raise


if __name__ == "__main__":
    main()
