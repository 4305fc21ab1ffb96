"""
Seed demo data for Alumni Connect

Creates an admin, a handful of alumni mentors and students, a few upcoming
events and one pending mentorship request. Existing accounts (matched by
email) are left alone.

Run with: DATABASE_URL=mongodb://localhost:27017 python seed.py [--reset]
"""
import argparse
import logging
from datetime import timedelta

from database import EVENTS, MENTORSHIP, USERS, create_document, ensure_indexes, get_db, get_documents, utcnow
from schemas import Event as EventSchema, MentorshipRequest as MentorshipSchema, User as UserSchema
from security import hash_password

logger = logging.getLogger("seed")

DEMO_PASSWORD = "Password123"

DEMO_USERS = [
    {
        "firstName": "Admin",
        "lastName": "User",
        "email": "admin@alumni.edu",
        "role": "admin",
        "department": "Administration",
    },
    {
        "firstName": "Priya",
        "lastName": "Subramanian",
        "email": "priya.subramanian@alumni.edu",
        "role": "alumni",
        "graduationYear": 2015,
        "department": "Computer Science",
        "currentJob": {"title": "Senior Engineer", "company": "TCS", "location": "Chennai"},
        "isMentor": True,
        "mentorshipAreas": ["technical-skills", "career-guidance"],
    },
    {
        "firstName": "Arjun",
        "lastName": "Krishna",
        "email": "arjun.krishna@alumni.edu",
        "role": "alumni",
        "graduationYear": 2012,
        "department": "Information Technology",
        "currentJob": {"title": "Product Manager", "company": "Infosys", "location": "Bangalore"},
        "isMentor": True,
        "mentorshipAreas": ["entrepreneurship", "interview-preparation"],
    },
    {
        "firstName": "Vikram",
        "lastName": "Chandra",
        "email": "vikram.chandra@alumni.edu",
        "role": "alumni",
        "graduationYear": 2018,
        "department": "Mechanical Engineering",
        "currentJob": {"title": "Founder", "company": "Zoho", "location": "Chennai"},
    },
    {
        "firstName": "Kavya",
        "lastName": "Shree",
        "email": "kavya.shree@alumni.edu",
        "role": "student",
        "graduationYear": 2027,
        "department": "Information Technology",
    },
    {
        "firstName": "Madhu",
        "lastName": "Sri",
        "email": "madhu.sri@alumni.edu",
        "role": "student",
        "graduationYear": 2027,
        "department": "Computer Science",
    },
]

DEMO_EVENTS = [
    {
        "title": "Annual Alumni Reunion",
        "description": "Meet your batchmates and faculty at the annual reunion dinner.",
        "days_ahead": 30,
        "eventTime": "18:30",
        "location": "Main Auditorium",
        "eventType": "reunion",
        "maxAttendees": 300,
        "tags": ["reunion", "networking"],
    },
    {
        "title": "Interview Preparation Workshop",
        "description": "Mock interviews and resume reviews with alumni from industry.",
        "days_ahead": 14,
        "eventTime": "10:00",
        "location": "Online",
        "eventType": "workshop",
        "isVirtual": True,
        "virtualLink": "https://meet.example.com/interview-prep",
        "maxAttendees": 50,
        "tags": ["career", "interviews"],
    },
    {
        "title": "Startup Founders Panel",
        "description": "Alumni founders share lessons from building their companies.",
        "days_ahead": 45,
        "eventTime": "16:00",
        "location": "Seminar Hall B",
        "eventType": "seminar",
        "tags": ["entrepreneurship"],
    },
]


def reset(db) -> None:
    for name in (USERS, EVENTS, MENTORSHIP):
        db[name].delete_many({})
    logger.info("Cleared users, events and mentorship requests")


def seed_users(db) -> dict:
    for data in DEMO_USERS:
        if get_documents(USERS, {"email": data["email"]}, limit=1, database=db):
            continue
        user = UserSchema(password=hash_password(DEMO_PASSWORD), **data)
        create_document(USERS, user.model_dump(exclude_none=True), database=db)
        logger.info("Created %s %s", data["role"], data["email"])
    return {data["email"]: db[USERS].find_one({"email": data["email"]})["_id"] for data in DEMO_USERS}


def seed_events(db, organizer_id) -> int:
    created = 0
    now = utcnow()
    for data in DEMO_EVENTS:
        if get_documents(EVENTS, {"title": data["title"]}, limit=1, database=db):
            continue
        fields = {k: v for k, v in data.items() if k != "days_ahead"}
        event = EventSchema(organizer=organizer_id, eventDate=now + timedelta(days=data["days_ahead"]), **fields)
        create_document(EVENTS, event.model_dump(by_alias=True, exclude_none=True), database=db)
        created += 1
    return created


def seed_mentorship(db, mentor_id, mentee_id) -> bool:
    if get_documents(MENTORSHIP, {"mentor": mentor_id, "mentee": mentee_id}, limit=1, database=db):
        return False
    request = MentorshipSchema(
        mentor=mentor_id,
        mentee=mentee_id,
        subject="Guidance on backend engineering roles",
        message="I would like advice on preparing for backend engineering interviews next year.",
        mentorshipArea="technical-skills",
        requestedAt=utcnow(),
        tags=["backend", "interviews"],
    )
    create_document(MENTORSHIP, request.model_dump(by_alias=True), database=db)
    return True


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed Alumni Connect demo data")
    parser.add_argument("--reset", action="store_true", help="delete existing users, events and requests first")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    db = get_db()
    if args.reset:
        reset(db)
    ensure_indexes(db)

    accounts = seed_users(db)
    events = seed_events(db, accounts["admin@alumni.edu"])
    seeded_request = seed_mentorship(db, accounts["priya.subramanian@alumni.edu"], accounts["kavya.shree@alumni.edu"])
    logger.info(
        "Seed complete: %d accounts, %d new events, mentorship request %s",
        len(accounts), events, "created" if seeded_request else "already present",
    )
    logger.info("Demo password for every account: %s", DEMO_PASSWORD)


if __name__ == "__main__":
    main()
