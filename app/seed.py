"""Idempotent bootstrap data: the first admin, starter invite codes and FAQs.

Run with ``python -m app.seed``.
"""
import logging

from sqlalchemy.orm import Session

from app import config
from app.auth.utils import get_password_hash
from app.database import Base, SessionLocal, engine
from app.models import FAQ, InviteCode, User, UserRole
from app.services.invite_service import create_invite_code

logger = logging.getLogger(__name__)

SEED_INVITES = [
    {"purpose": "SEED_AGENT", "role": UserRole.AGENT, "max_uses": 10, "expires_in_days": 30},
    {"purpose": "SEED_ADMIN", "role": UserRole.ADMIN, "max_uses": 1, "expires_in_days": 7},
]

SEED_FAQS = [
    {
        "question": "How long does visa processing take?",
        "answer": "Processing times depend on the visa type and destination. Student and tourist visas "
                  "usually take 2 to 6 weeks, while work permits and residency applications can take several months.",
        "category": "Visa Process",
        "display_order": 1,
    },
    {
        "question": "Which documents do I need to start my application?",
        "answer": "A valid passport, a recent photo and proof of residence are required for every case. "
                  "Your agent will request any additional documents specific to your service type.",
        "category": "Documents",
        "display_order": 1,
    },
    {
        "question": "How can I follow the progress of my case?",
        "answer": "Open your case in the dashboard to see its current status and full history. "
                  "You also receive a notification and an email whenever the status changes.",
        "category": "Case Tracking",
        "display_order": 1,
    },
]


def seed_admin(db: Session) -> User:
    # stored lowercase to match how login looks users up
    admin_email = config.ADMIN_EMAIL.strip().lower()
    admin = db.query(User).filter(User.email == admin_email).first()
    if admin:
        logger.info(f"Admin {admin_email} already exists")
        return admin

    admin = User(
        email=admin_email,
        password_hash=get_password_hash(config.ADMIN_PASSWORD),
        first_name="System",
        last_name="Administrator",
        role=UserRole.ADMIN,
        is_active=True,
        is_verified=True,
    )
    db.add(admin)
    db.flush()
    logger.info(f"Created admin {admin_email}")
    return admin


def seed_invite_codes(db: Session, admin: User) -> list[InviteCode]:
    created = []
    for seed in SEED_INVITES:
        if db.query(InviteCode).filter(InviteCode.purpose == seed["purpose"]).first():
            logger.info(f"Invite code {seed['purpose']} already exists")
            continue
        invite = create_invite_code(
            db,
            seed["role"],
            admin.id,
            expires_in_days=seed["expires_in_days"],
            max_uses=seed["max_uses"],
            purpose=seed["purpose"],
        )
        created.append(invite)
        logger.info(f"Created {seed['purpose']} invite code {invite.code}")
    return created


def seed_faqs(db: Session) -> int:
    """Insert or refresh the starter FAQs, matched by question."""
    changed = 0
    for entry in SEED_FAQS:
        faq = db.query(FAQ).filter(FAQ.question == entry["question"]).first()
        if faq is None:
            db.add(FAQ(**entry, language="en", is_active=True))
            changed += 1
            continue
        for field, value in entry.items():
            if getattr(faq, field) != value:
                setattr(faq, field, value)
                changed += 1
    return changed


def run_seed(db: Session) -> None:
    admin = seed_admin(db)
    seed_invite_codes(db, admin)
    seed_faqs(db)
    db.commit()


def main():
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        run_seed(db)
    except Exception:
        db.rollback()
        logger.exception("Seeding failed")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
