import sys
import os

# Add the project root directory to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlmodel import Session
from datetime import timedelta
import random
from app.models.common import utcnow
from app.models.user import User
from app.models.gift import GiftCreate
from app.models.challenge import ChallengeType, ReminderFrequency
from app.database import engine, create_db_and_tables
from app.services.lifecycle import GiftLifecycle
from app.services.store import GiftStore

# Test data
test_users = [
    {"username": "john_doe", "display_name": "John Doe", "email": "john@example.com", "phone_number": "+12345678900"},
    {"username": "jane_smith", "display_name": "Jane Smith", "email": "jane@example.com", "phone_number": "+12345678901"},
    {"username": "bob_wilson", "display_name": "Bob Wilson", "email": "bob@example.com", "phone_number": "+12345678902"},
    {"username": "alice_jones", "display_name": "Alice Jones", "email": "alice@example.com"},
]

test_recipients = [
    {"recipient_name": "Charlie Brown", "recipient_phone": "+12345678904"},
    {"recipient_name": "Emma Davis", "recipient_phone": "+12345678905", "recipient_email": "emma@example.com"},
    {"recipient_name": "David Miller", "recipient_email": "david@example.com"},
]

test_challenges = [
    {"challenge_type": ChallengeType.PHOTO, "challenge_description": "Send a photo of you at the gym"},
    {"challenge_type": ChallengeType.TEXT, "challenge_description": "Tell us about the best part of your day"},
    {"challenge_type": ChallengeType.KEYWORD, "challenge_description": "Find the secret word on the fridge",
     "challenge_requirements": {"keyword": "honey"}},
    {"challenge_type": ChallengeType.MULTI_DAY, "challenge_description": "Go for a run three days in a row",
     "duration": 3},
]

test_gifts = [
    {"gift_type": "giftcard", "gift_value": "$25 Starbucks"},
    {"gift_type": "experience", "gift_value": "Spa day", "redemption_instructions": "Show this text at the front desk"},
    {"gift_type": "cash", "gift_value": "$50", "personal_note": "You've earned it!"},
]

def create_users(session: Session):
    users = [User(**user_data) for user_data in test_users]
    session.add_all(users)
    session.commit()
    for user in users:
        session.refresh(user)
    return users

def create_gifts(session: Session, users: list[User]):
    lifecycle = GiftLifecycle(GiftStore(session))
    gifts = []
    for _ in range(10):  # Create 10 random gifts
        sender = random.choice(users)
        payload = GiftCreate(
            **random.choice(test_recipients),
            **random.choice(test_gifts),
            **random.choice(test_challenges),
            reminder_frequency=random.choice(list(ReminderFrequency)),
            # Random expiry within the next 30 days
            expires_at=utcnow() + timedelta(days=random.randint(1, 30))
        )
        gift, _ = lifecycle.create_gift(payload, sender)
        gifts.append(gift)

    session.commit()
    return gifts

def main():
    create_db_and_tables()

    with Session(engine) as session:
        # Create users
        users = create_users(session)
        print(f"Created {len(users)} users")

        # Create gifts with their challenges
        gifts = create_gifts(session, users)
        print(f"Created {len(gifts)} gifts")

if __name__ == "__main__":
    main()
