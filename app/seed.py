import logging
import uuid

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import ProgrammingError

from app.db.session import SessionLocal
from app.db import base  # noqa: F401
from app.models.category import Category

logger = logging.getLogger(__name__)

# (name, slug, description, icon, color)
CATEGORIES = [
    ("Music", "music", "Live music events", "music", "#8B5CF6"),
    ("Sports", "sports", "Games, races and tournaments", "trophy", "#10B981"),
    ("Arts & Theatre", "arts-theatre", "Exhibitions, plays and performances", "palette", "#F59E0B"),
    ("Food & Drink", "food-drink", "Tastings, festivals and pop-ups", "utensils", "#EF4444"),
    ("Business", "business", "Conferences and networking", "briefcase", "#3B82F6"),
    ("Technology", "technology", "Meetups, hackathons and talks", "cpu", "#6366F1"),
    ("Community", "community", "Local gatherings and causes", "users", "#14B8A6"),
    ("Family", "family", "Events for all ages", "heart", "#EC4899"),
]


def ensure_category(db: Session, name: str, slug: str, description: str, icon: str, color: str) -> bool:
    if db.query(Category).filter(Category.slug == slug).first():
        return False
    db.add(Category(id=str(uuid.uuid4()), name=name, slug=slug, description=description, icon=icon, color=color))
    return True


def run(db=None):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM event_categories LIMIT 1"))
        except ProgrammingError:
            db.rollback()
            logger.warning("event_categories table not found yet. Skipping seeding (run alembic upgrade head).")
            return 0

        created = sum(ensure_category(db, *row) for row in CATEGORIES)
        db.commit()
        if created:
            logger.info("Seeded %d categories", created)
        return created
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run()
