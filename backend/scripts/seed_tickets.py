#!/usr/bin/env python
"""
Seed demo tickets and print a bearer token for local development.
Run with: cd backend; python scripts/seed_tickets.py
Uses DATABASE_URL and SECRET_KEY from .env.
"""

import os
import sys

# Add timeharbor to path
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from timeharbor.auth import create_access_token
from timeharbor.database import Base, SessionLocal, engine
from timeharbor.models.ticket import Ticket

DEMO_TEAM = os.getenv("DEMO_TEAM_ID", "team-demo")
DEMO_USER = os.getenv("DEMO_USER_ID", "user-demo")
DEMO_TICKETS = [
    ("Onboarding checklist", None),
    ("Fix login redirect", "https://github.com/example/timeharbor/issues/12"),
    ("Weekly report", None),
]


def seed_tickets():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        existing = db.query(Ticket).filter(Ticket.team_id == DEMO_TEAM).count()
        if existing:
            print(f"Team {DEMO_TEAM} already has {existing} tickets. Skipping seed.")
            return
        for title, reference_url in DEMO_TICKETS:
            db.add(Ticket(team_id=DEMO_TEAM, title=title, reference_url=reference_url, created_by=DEMO_USER))
        db.commit()
        for ticket in db.query(Ticket).filter(Ticket.team_id == DEMO_TEAM).all():
            print(f"Created ticket {ticket.id}: {ticket.title}")
    except Exception as e:
        db.rollback()
        print(f"Error seeding tickets: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_tickets()
    token = create_access_token({"sub": DEMO_USER, "role": "admin"})
    print(f"Bearer token for {DEMO_USER}: {token}")
