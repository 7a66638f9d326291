from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from showbook.application.show_service import ShowService
from showbook.infrastructure.db.models import Base, Show
from showbook.infrastructure.db.session import SessionLocal, engine


def _dt(days_from_now: int, hour: int, minute: int) -> datetime:
    now = datetime.now(timezone.utc)
    target = now + timedelta(days=days_from_now)
    return target.replace(hour=hour, minute=minute, second=0, microsecond=0)


SHOW_DEFS = [
    {
        "name": "Evening Jazz Quartet",
        "description": "Live jazz in the small hall.",
        "start_time": _dt(days_from_now=10, hour=19, minute=30),
        "duration": timedelta(hours=2),
        "total_seats": 40,
        "price": "35.00",
    },
    {
        "name": "Morning Ferry to the Islands",
        "description": "Return trip, numbered seats.",
        "start_time": _dt(days_from_now=3, hour=8, minute=0),
        "duration": timedelta(hours=4),
        "total_seats": 120,
        "price": "18.50",
    },
    {
        "name": "Dental Check-up Slots",
        "description": None,
        "start_time": _dt(days_from_now=1, hour=9, minute=0),
        "duration": timedelta(hours=8),
        "total_seats": 16,
        "price": "0",
    },
]


def seed_shows() -> None:
    shows = ShowService()

    for item in SHOW_DEFS:
        with SessionLocal() as db:
            existing = db.execute(
                select(Show.id).where(Show.name == item["name"])
            ).scalar_one_or_none()
        if existing:
            print(f"Skipping existing show: {item['name']}")
            continue

        show = shows.create_show(
            name=item["name"],
            description=item["description"],
            start_time=item["start_time"],
            end_time=item["start_time"] + item["duration"],
            total_seats=item["total_seats"],
            price=item["price"],
        )
        print(f"Created show {show.id}: {show.name}")


def main() -> None:
    Base.metadata.create_all(bind=engine)
    seed_shows()
    print("Demo data seeded successfully.")


if __name__ == "__main__":
    main()
