"""Script to initialize the database and optionally seed demo data."""

import asyncio
import sys

from sqlalchemy import func, insert, select

from clinic_portal.database import engine
from clinic_portal.models import doctors, metadata, symptom_scopes

SAMPLE_SCOPES = [
    {
        "symptom_name": "fever",
        "category": "General",
        "possible_conditions": "Flu, Viral Infection, Common Cold, COVID-19",
        "warning_keywords": "stiff neck, rash, confusion",
        "urgency_level": "routine",
        "guidance": "Check your temperature every few hours",
        "recommended_specialization": "General Practice",
    },
    {
        "symptom_name": "cough",
        "category": "Respiratory",
        "possible_conditions": "Common Cold, Bronchitis, Pneumonia, Asthma",
        "warning_keywords": "blood, wheezing, shortness of breath",
        "urgency_level": "routine",
        "recommended_specialization": "Pulmonology",
    },
    {
        "symptom_name": "chest pain",
        "category": "Cardiovascular",
        "possible_conditions": "Angina, Costochondritis, GERD, Heart Attack",
        "warning_keywords": "radiating, sweating, shortness of breath",
        "urgency_level": "urgent",
        "recommended_specialization": "Cardiology",
    },
    {
        "symptom_name": "headache",
        "category": "Neurological",
        "possible_conditions": "Tension Headache, Migraine, Sinusitis",
        "warning_keywords": "worst headache, vision loss, numbness",
        "urgency_level": "routine",
        "recommended_specialization": "Neurology",
    },
    {
        "symptom_name": "vomiting",
        "category": "Gastrointestinal",
        "possible_conditions": "Gastroenteritis, Food Poisoning, Gastritis",
        "warning_keywords": "blood, severe abdominal pain",
        "urgency_level": "routine",
        "recommended_specialization": "Gastroenterology",
    },
]

SAMPLE_DOCTORS = [
    {
        "full_name": "Dr. Amina Rahman",
        "specialization": "General Practice",
        "qualification": "MBBS",
        "consultation_fee": 500,
        "available_days": ["Monday", "Wednesday", "Friday"],
        "available_hours": "09:00-12:00",
    },
    {
        "full_name": "Dr. Tanvir Hossain",
        "specialization": "Cardiology",
        "qualification": "MBBS, FCPS (Cardiology)",
        "consultation_fee": 1200,
        "available_days": ["Tuesday", "Thursday"],
        "available_hours": "14:00-17:00",
    },
]


async def init_db(seed: bool = False) -> None:
    """Create all tables, then seed demo rows into empty tables if requested."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
        print("✓ Database initialized successfully!")

        if not seed:
            return

        scope_count = (await conn.execute(select(func.count()).select_from(symptom_scopes))).scalar()
        if not scope_count:
            await conn.execute(insert(symptom_scopes), SAMPLE_SCOPES)
            print(f"✓ Seeded {len(SAMPLE_SCOPES)} symptom scopes")

        doctor_count = (await conn.execute(select(func.count()).select_from(doctors))).scalar()
        if not doctor_count:
            await conn.execute(insert(doctors), SAMPLE_DOCTORS)
            print(f"✓ Seeded {len(SAMPLE_DOCTORS)} doctors")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_db(seed="--seed" in sys.argv[1:]))
