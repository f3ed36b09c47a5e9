"""
Add overlap exclusion constraint to appointments table (PostgreSQL)

No two tentative/confirmed appointments of the same technician may overlap:
- btree_gist extension (equality on technician_id inside a GiST index)
- ex_appointments_technician_overlap EXCLUDE USING gist
"""

# Ensure this script can be run directly from repo root
import sys
from pathlib import Path

CURRENT_DIR = Path(__file__).resolve().parent
PROJECT_DIR = CURRENT_DIR.parent
if str(PROJECT_DIR) not in sys.path:
    sys.path.insert(0, str(PROJECT_DIR))

from sqlalchemy import text
from quotd.database import engine

CONSTRAINT_NAME = "ex_appointments_technician_overlap"


def upgrade():
    with engine.connect() as conn:
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))

        exists = conn.execute(
            text("SELECT 1 FROM pg_constraint WHERE conname = :name"),
            {"name": CONSTRAINT_NAME},
        ).first()
        if exists:
            conn.commit()
            print(f"Constraint {CONSTRAINT_NAME} already exists, skipping")
            return

        conn.execute(
            text(
                f"""
                ALTER TABLE appointments
                ADD CONSTRAINT {CONSTRAINT_NAME}
                EXCLUDE USING gist (
                    technician_id WITH =,
                    tsrange(start_time, end_time) WITH &&
                )
                WHERE (status IN ('tentative', 'confirmed'));
                """
            )
        )
        conn.commit()
        print("Migration add_appointment_exclusion_constraint applied successfully")


def downgrade():
    with engine.connect() as conn:
        conn.execute(
            text(f"ALTER TABLE appointments DROP CONSTRAINT IF EXISTS {CONSTRAINT_NAME}")
        )
        conn.commit()
        print("Migration add_appointment_exclusion_constraint rolled back")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Manage appointment overlap constraint migration")
    parser.add_argument("--down", action="store_true", help="Rollback the migration")
    args = parser.parse_args()

    if args.down:
        downgrade()
    else:
        upgrade()
