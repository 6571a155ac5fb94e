import json

from sqlmodel import Session, select

from capture import material_cost
from db import engine
from extraction import estimate_blades
from models import BladeLog, ProductionLog


def seed_database():
    """Seed the database with one sample run per log, dated today."""
    with Session(engine) as session:
        # Check if data already exists
        existing = session.exec(select(ProductionLog)).first() or session.exec(select(BladeLog)).first()
        if existing:
            print("Database already has data, skipping seed.")
            return

        # Sample data, read off the demo photos
        sample_entries = [
            ProductionLog(
                type="molding",
                good_parts=323,
                scrap_parts=29,
                reject_parts=0,
                total_parts=352,
                shift="day",
                operator="Demo",
                notes="Sample Engel screen",
            ),
            BladeLog(
                coil_count=2,
                total_length_ft=546,
                blades_cut=estimate_blades(546),
                material_cost=material_cost(2),
                operator="Demo",
                coil_ids=json.dumps(["5114FLC12127", "5114FLC12127"]),
            ),
        ]

        session.add_all(sample_entries)
        session.commit()
        print(f"Seeded database with {len(sample_entries)} sample entries.")


if __name__ == "__main__":
    from db import create_db_and_tables

    create_db_and_tables()
    seed_database()
