"""
Seed script -- populates the database with sample tours for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 3 sample users
  - 4 sample tours around Champaign-Urbana, each with ordered stops
    (audio, video and media-less stops)
  - 1 tour with a malformed longitude, to show discovery skipping it
"""

import asyncio

from sqlalchemy import text

from walkable.infrastructure.database import async_session_factory, engine
from walkable.infrastructure.models import UserModel
from walkable.infrastructure.repositories import TourRepository

MEDIA = "https://media.example.com"


USERS = [
    {"username": "maya_walks", "email": "maya@example.com"},
    {"username": "historybuff", "email": "history@example.com"},
    {"username": "quadexplorer", "email": "quad@example.com"},
]


TOURS = [
    {
        "title": "Main Quad Highlights",
        "description": "The classic first walk across campus.",
        "category": "history",
        "latitude": "40.1074",
        "longitude": "-88.2272",
        "duration": 45,
        "distance": "1.2 miles",
        "stops": [
            {"title": "Alma Mater", "latitude": "40.1099", "longitude": "-88.2284",
             "media_type": "audio", "audio_file_url": f"{MEDIA}/alma.mp3", "order": 1},
            {"title": "Foellinger Auditorium", "latitude": "40.1059", "longitude": "-88.2273",
             "media_type": "video", "video_file_url": f"{MEDIA}/foellinger.mp4", "order": 2},
            {"title": "Morrow Plots", "latitude": "40.1043", "longitude": "-88.2262",
             "media_type": "audio", "audio_file_url": f"{MEDIA}/morrow.mp3", "order": 3},
        ],
    },
    {
        "title": "Downtown Champaign Murals",
        "description": "Street art between the train station and Neil Street.",
        "category": "art",
        "latitude": "40.1164",
        "longitude": "-88.2434",
        "duration": 60,
        "distance": "1.8 miles",
        "stops": [
            {"title": "Illinois Terminal", "latitude": "40.1156", "longitude": "-88.2410",
             "media_type": "audio", "audio_file_url": f"{MEDIA}/terminal.mp3", "order": 1},
            {"title": "Neil Street mural", "latitude": "40.1170", "longitude": "-88.2437",
             "media_type": "audio", "order": 2},
        ],
    },
    {
        "title": "Urbana Arboretum Loop",
        "description": "Gardens, prairie and a pond.",
        "category": "nature",
        "latitude": "40.0930",
        "longitude": "-88.2170",
        "duration": 50,
        "distance": "1.5 miles",
        "stops": [
            {"title": "Japan House", "latitude": "40.0937", "longitude": "-88.2164",
             "media_type": "video", "video_file_url": f"{MEDIA}/japan-house.mp4", "order": 1},
            {"title": "Hartley Garden", "latitude": "40.0923", "longitude": "-88.2149",
             "media_type": "audio", "audio_file_url": f"{MEDIA}/hartley.mp3", "order": 2},
        ],
    },
    {
        "title": "Chicago Loop Architecture",
        "description": "Far from campus; only shows up in wide searches.",
        "category": "architecture",
        "latitude": "41.8789",
        "longitude": "-87.6359",
        "stops": [
            {"title": "Willis Tower", "latitude": "41.8789", "longitude": "-87.6359",
             "media_type": "audio", "audio_file_url": f"{MEDIA}/willis.mp3", "order": 1},
        ],
    },
    {
        "title": "Legacy import (bad coordinates)",
        "description": "Imported with a typo in the longitude.",
        "category": "history",
        "latitude": "40.1100",
        "longitude": "-88.22.7",
        "stops": [],
    },
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users ─────────────────────────────────────────────────────
        user_models = [UserModel(**u) for u in USERS]
        session.add_all(user_models)
        await session.flush()
        print(f"  Created {len(user_models)} users")

        # ── Tours & stops ─────────────────────────────────────────────
        repo = TourRepository(session)
        for i, t in enumerate(TOURS):
            data = dict(t)
            stops = [
                {"description": "", **s} for s in data.pop("stops")
            ]
            await repo.create_tour_with_stops(
                creator_id=user_models[i % len(user_models)].id,
                stops=stops,
                **data,
            )
        print(f"  Created {len(TOURS)} tours")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
