import random
from enum import Enum

from ..config import BASE_URL

class NotificationKind(str, Enum):
    INITIAL = "initial"
    REMINDER = "reminder"
    PROGRESS = "progress"
    COMPLETION = "completion"
    APPROVAL_REQUEST = "approval_request"
    PHOTO_RECEIVED = "photo_received"
    UNLOCKED = "unlocked"
    REJECTED = "rejected"

MOTIVATIONAL_MESSAGES = [
    "🦡 Honey Badger doesn't give up, and neither should you!",
    "🦡 Still working on that challenge? You've got this!",
    "🦡 Your gift is waiting! Let's crush this challenge!",
    "🦡 Honey Badger believes in you! Keep going!",
    "🦡 Remember: {sender_name} is rooting for you!",
]

NO_ACTIVE_CHALLENGE = (
    "🦡 Hi! You don't have any active challenges right now. "
    "Ask your friend to send you a Honey Badger gift!"
)
TRY_AGAIN = "🦡 Hmm, that doesn't seem right for your challenge. Try again! Reply HELP for hints."
SUBMISSION_UNDER_REVIEW = (
    "🦡 Your last submission is still being reviewed. "
    "Hang tight, you'll hear from us as soon as it's approved or rejected!"
)
HELP = (
    "🍯 HONEY BADGER HELP 🍯\n\n"
    "Reply to this number to complete your challenge:\n"
    "📸 Photo/video challenges: send a photo or video\n"
    "✍️ Text challenges: tell us what you did\n"
    "🔑 Keyword challenges: include the secret word\n\n"
    "START - Get your challenge again\n"
    "STATUS - Check your progress\n"
    "HELP - Show this message"
)

def _plural(count: int) -> str:
    return "" if count == 1 else "s"

def _initial(data: dict) -> str:
    text = (
        f"🦡 HONEY BADGER HERE! {data['sender_name']} sent you a special gift!\n\n"
        f"🎁 Gift: {data['gift_type']} - {data.get('gift_value') or 'A surprise!'}\n\n"
        f"🎯 Your challenge: {data['challenge_description']}\n\n"
    )
    if data.get("personal_note"):
        text += f"💌 \"{data['personal_note']}\"\n\n"
    return text + (
        "Complete it to unlock your gift! I'll be here to help and motivate you. Let's do this!\n\n"
        "Reply START when you're ready to begin!"
    )

def _reminder(data: dict) -> str:
    if data.get("custom_message"):
        return data["custom_message"]
    opener = random.choice(MOTIVATIONAL_MESSAGES).format(sender_name=data["sender_name"])
    return (
        f"{opener}\n\n"
        f"Progress: {data['current_step']}/{data['total_steps']} steps\n\n"
        f"Challenge: {data['challenge_description']}"
    )

def _progress(data: dict) -> str:
    remaining = data["remaining_steps"]
    return (
        "🦡 Great job! You're making progress!\n\n"
        f"{remaining} more step{_plural(remaining)} to go!\n"
        f"Keep it up - your {data['gift_type']} is almost yours!"
    )

def _completion(data: dict) -> str:
    return (
        "🎊 YOU DID IT! 🎊\n\n"
        f"Challenge COMPLETE! Your {data['gift_type']} is unlocked!\n\n"
        f"{data.get('redemption_instructions') or 'Congratulations on your achievement!'}"
    )

def _approval_request(data: dict) -> str:
    return (
        f"🦡 {data.get('recipient_name') or 'Your recipient'} just submitted a photo for their "
        "Honey Badger challenge!\n\n"
        "Open the app to review and approve their submission. 📸\n\n"
        "Once approved, their gift will be unlocked!"
    )

def _photo_received(data: dict) -> str:
    return (
        "🦡 Photo received! 📸\n\n"
        "Your submission has been sent to the gift sender for approval.\n\n"
        "You'll be notified once it's reviewed. Hang tight!"
    )

def _unlocked(data: dict) -> str:
    value = f"Value: {data['gift_value']}\n" if data.get("gift_value") else ""
    return (
        "🎉 CONGRATULATIONS! 🎉\n\n"
        "🦡 Your photo has been approved!\n\n"
        f"🎁 Your {data['gift_type']} gift is now UNLOCKED!\n"
        f"{value}\n"
        "The Honey Badger is proud of you! 💪"
    )

def _rejected(data: dict) -> str:
    reason = f"\n\nReason: {data['reason']}" if data.get("reason") else ""
    return (
        f"🦡 Your photo submission wasn't approved this time.{reason}\n\n"
        "Don't give up! Send another photo to complete your challenge.\n\n"
        "The Honey Badger believes in you! 💪"
    )

SMS_TEMPLATES = {
    NotificationKind.INITIAL: _initial,
    NotificationKind.REMINDER: _reminder,
    NotificationKind.PROGRESS: _progress,
    NotificationKind.COMPLETION: _completion,
    NotificationKind.APPROVAL_REQUEST: _approval_request,
    NotificationKind.PHOTO_RECEIVED: _photo_received,
    NotificationKind.UNLOCKED: _unlocked,
    NotificationKind.REJECTED: _rejected,
}

EMAIL_SUBJECTS = {
    NotificationKind.INITIAL: "🍯 {sender_name} sent you a Honey Badger Gift!",
    NotificationKind.REMINDER: "🍯 Reminder: Your Honey Badger is waiting!",
    NotificationKind.PROGRESS: "🦡 Nice progress on your Honey Badger challenge!",
    NotificationKind.COMPLETION: "🎉 Congratulations! You've unlocked your Honey Badger Gift!",
    NotificationKind.APPROVAL_REQUEST: "🦡 {recipient_name} submitted a photo for your Honey Badger gift!",
    NotificationKind.PHOTO_RECEIVED: "🦡 We received your photo!",
    NotificationKind.UNLOCKED: "🎉 Your photo was approved and your gift is unlocked!",
    NotificationKind.REJECTED: "🦡 Your photo submission needs another try",
}

def render_text(kind: NotificationKind, data: dict) -> str:
    return SMS_TEMPLATES[kind](data)

def render_subject(kind: NotificationKind, data: dict) -> str:
    return EMAIL_SUBJECTS[kind].format(
        sender_name=data.get("sender_name") or "Someone special",
        recipient_name=data.get("recipient_name") or "Your recipient",
    )

def ready(challenge_description: str) -> str:
    return (
        f"🦡 Let's go! Your challenge: {challenge_description}\n\n"
        "Reply here when you've done it. Reply STATUS to check your progress."
    )

def tracking_url(tracking_id: str) -> str:
    return f"{BASE_URL}/gifts/{tracking_id}"

def status_summary(entries: list) -> str:
    """Summarise (gift, progress) pairs for the STATUS command."""
    lines = ["📊 CHALLENGE STATUS"]
    for gift, progress in entries:
        lines.append(
            f"\n🎁 {gift.gift_type} from {gift.sender_name}: "
            f"{progress.current_step}/{progress.total_steps} steps ({progress.percent_complete:.0f}%)"
        )
    lines.append("\nKeep going! The Honey Badger believes in you! 💪")
    return "\n".join(lines)
