"""
Initialize the database: create all tables, optionally seed demo data.
Run with: python -m scripts.init_db [--seed]
"""

import argparse
import asyncio
from datetime import timedelta
from sqlalchemy import select
from telehealth.database import engine, Base, async_session
from telehealth.models import Appointment, AppointmentCategory, Patient, User
from telehealth.services.category_service import TELEHEALTH_CATEGORY_CONSTANT_IDS
from telehealth.services.time_window import utc_now


async def seed_demo_data():
    """Create demo staff, patients, telehealth categories and two appointments for today. Idempotent."""
    async with async_session() as db:
        if await db.scalar(select(User).where(User.username == "dr.smith")):
            print("Demo data already present. Skipping.")
            return

        categories = [
            AppointmentCategory(constant_id=constant_id, name=constant_id.replace("_", " ").title())
            for constant_id in TELEHEALTH_CATEGORY_CONSTANT_IDS
        ]
        provider = User(username="dr.smith", first_name="Jane", last_name="Smith", email="jane.smith@example.org")
        patients = [
            Patient(first_name="Ana", last_name="Gomez", email="ana.gomez@example.org"),
            Patient(first_name="Luis", last_name="Perez", email="luis.perez@example.org"),
        ]
        db.add_all(categories + [provider] + patients)
        await db.flush()

        start = utc_now().replace(second=0, microsecond=0)
        for i, patient in enumerate(patients, start=1):
            db.add(Appointment(
                id=f"APPT-{i}",
                patient_id=patient.id,
                provider_id=provider.id,
                category_id=categories[0].id,
                starts_at=start + timedelta(minutes=30 * (i - 1)),
                title="Telehealth follow-up",
            ))
        await db.commit()
        print(f"Seeded provider {provider.username}, {len(patients)} patients and {len(patients)} appointments.")


async def init(seed: bool = False):
    print("Creating database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("All tables created successfully.")
    if seed:
        await seed_demo_data()
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create telehealth tables")
    parser.add_argument("--seed", action="store_true", help="Also insert demo staff, patients and appointments")
    args = parser.parse_args()

    asyncio.run(init(seed=args.seed))
