"""System prompt and canned assistant replies."""

from datetime import date

from ..models import Account, Registration, RegistrationDraft, Workshop

ASSISTANT_NAME = "WorkshopBot"

WELCOME_MESSAGE = (
    f"Hi there! 👋 I'm {ASSISTANT_NAME}, your Workshop Hub assistant. "
    "How can I help you today?"
)
ERROR_REPLY = (
    "I'm sorry, I encountered an error while processing your request. Please try again."
)
APOLOGY_REPLY = (
    "Sorry, I encountered an error while processing your request. Please try again later."
)
ABANDONED_REPLY = (
    "No problem, I've stopped that registration. Is there anything else I can help you with?"
)
SIGN_IN_TO_CANCEL_REPLY = (
    "To cancel a workshop registration, please sign in first so I can find your booking."
)


def join_fields(labels: list[str]) -> str:
    """'a', 'a and b', 'a, b and c'."""
    if not labels:
        return ""
    if len(labels) == 1:
        return labels[0]
    return f"{', '.join(labels[:-1])} and {labels[-1]}"


def missing_fields_prompt(missing: list[str]) -> str:
    return f"To complete your registration, could you please tell me your {join_fields(missing)}?"


def registration_confirmed_reply(title: str) -> str:
    return (
        f'Great! You\'re now registered for "{title}". '
        "Is there anything else you'd like help with?"
    )


def already_registered_reply(title: str) -> str:
    return (
        f'It looks like you\'re already registered for "{title}". '
        "Is there anything else I can help you with?"
    )


def workshop_full_reply(title: str) -> str:
    return (
        f'I\'m sorry, "{title}" is already full. '
        "Is there anything else I can help you with?"
    )


def registration_failed_reply(title: str, reason: str) -> str:
    return (
        f'I\'m sorry, I couldn\'t complete your registration for "{title}". '
        f"{reason} Please correct the details and I'll try again."
    )


def deregistration_reply(title: str, cancelled: bool, reason: str) -> str:
    if cancelled:
        return f'Done! Your registration for "{title}" has been cancelled.'
    return f'I couldn\'t cancel a registration for "{title}". {reason}'


def _format_workshop(workshop: Workshop) -> str:
    when = workshop.start_date.strftime("%B %d, %Y %H:%M") if workshop.start_date else "TBA"
    until = workshop.end_date.strftime("%H:%M") if workshop.end_date else "TBA"
    price = f"${workshop.price:.2f}" if workshop.price else "Free"
    return (
        f"Workshop: {workshop.title}\n"
        f"Description: {workshop.description}\n"
        f"Date: {when} - {until}\n"
        f"Location: {workshop.location}\n"
        f"Capacity: {workshop.capacity} attendees\n"
        f"Price: {price}\n"
        f"Instructor: {workshop.instructor or 'TBA'}"
    )


def format_workshops(workshops: list[Workshop]) -> str:
    if not workshops:
        return "No workshops are currently available."
    return "\n---\n".join(_format_workshop(w) for w in workshops)


def format_user_data(
    account: Account | None,
    registrations: list[tuple[Registration, Workshop]],
) -> str:
    lines = []
    if account:
        lines.append("User Information:")
        lines.append(f"Name: {account.full_name or 'No name provided'}")
        lines.append(f"Email: {account.email or 'No email provided'}")
    elif registrations:
        first = registrations[0][0]
        lines.append("User Information:")
        lines.append(f"Name: {first.first_name} {first.last_name}".rstrip())
        lines.append(f"Email: {first.email}")

    if registrations:
        lines.append("")
        lines.append("Registered Workshops:")
        for index, (registration, workshop) in enumerate(registrations, start=1):
            lines.append(f"{index}. {workshop.title} (status: {registration.status})")
    else:
        lines.append("")
        lines.append("No registered workshops found.")

    return "\n".join(lines).strip()


def format_draft(draft: RegistrationDraft | None) -> str:
    if draft is None:
        return ""
    missing = draft.user_info.missing_contact_fields()
    if not draft.workshop_title:
        missing = ["workshop they want to join"] + missing
    title = draft.workshop_title or "an unspecified workshop"
    if not missing:
        return (
            f"A registration for {title} is in progress with all details collected. "
            "Ask the user to confirm so it can be submitted."
        )
    return (
        f"A registration for {title} is in progress. "
        f"Still missing: {join_fields(missing)}. Ask the user for them."
    )


def build_system_prompt(
    workshops: list[Workshop],
    authenticated: bool,
    account: Account | None = None,
    registrations: list[tuple[Registration, Workshop]] | None = None,
    draft: RegistrationDraft | None = None,
    today: date | None = None,
) -> str:
    """Instruction preamble with live workshop data and the user's context."""
    today = today or date.today()

    if authenticated:
        greeting = "The user is logged in."
        user_data = format_user_data(account, registrations or [])
    else:
        greeting = "The user is not logged in. You don't have any personal information about them."
        user_data = ""

    sections = [
        "You are a helpful assistant for Workshop Hub, a platform where students "
        f"can sign up for educational workshops. Your name is {ASSISTANT_NAME}.",
        greeting,
        user_data,
        "This is data about the current workshops available to sign up for:",
        format_workshops(workshops),
        "You can help students with:\n"
        "1. Finding workshops based on their interests\n"
        "2. Explaining the registration process\n"
        "3. Providing information about upcoming workshops\n"
        "4. Helping users register for workshops directly through this chat\n"
        "5. Providing information about the user's registered workshops",
        "When helping users register: logged-in users' stored details are used; "
        "other users must give their first name, last name, and email. "
        "Confirm the details before the registration is submitted.",
        format_draft(draft),
        "Be friendly, concise, and helpful. Never reveal workshop IDs. If a detail "
        "isn't in the data above, ask the user to check the workshop page or "
        "contact the organizer.",
        f"Current date: {today.isoformat()}",
    ]
    return "\n\n".join(section for section in sections if section)


def fallback_system_prompt() -> str:
    """Used when live workshop data can't be read."""
    return (
        "You are a helpful assistant for Workshop Hub, a platform where students "
        f"can sign up for educational workshops. Your name is {ASSISTANT_NAME}.\n\n"
        "The latest workshop information is unavailable right now. You can still "
        "answer general questions about Workshop Hub and the registration process."
    )
