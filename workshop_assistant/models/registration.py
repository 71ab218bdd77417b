"""Workshop and registration data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

CONTACT_FIELDS = (
    ("first_name", "first name"),
    ("last_name", "last name"),
    ("email", "email"),
)


@dataclass
class UserInfo:
    """Contact fields collected for a registration, each optional until filled."""

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None

    def merge(self, other: "UserInfo | None") -> None:
        """Fill empty fields from ``other``; never overwrite filled ones."""
        if other is None:
            return
        for name in ("first_name", "last_name", "email", "phone"):
            if not getattr(self, name) and getattr(other, name):
                setattr(self, name, getattr(other, name))

    def missing_contact_fields(self) -> list[str]:
        """Human labels of missing contact fields, in fixed order."""
        return [label for name, label in CONTACT_FIELDS if not getattr(self, name)]

    def has_full_contact(self) -> bool:
        return not self.missing_contact_fields()

    def is_empty(self) -> bool:
        return not any((self.first_name, self.last_name, self.email, self.phone))


@dataclass
class RegistrationDraft:
    """In-progress, partially filled registration request."""

    workshop_title: str | None = None
    user_info: UserInfo = field(default_factory=UserInfo)


@dataclass
class RegistrationIntent:
    """Classification of a transcript by the intent extractor."""

    intent: bool
    deregister: bool = False
    workshop_title: str | None = None
    user_info: UserInfo | None = None


@dataclass
class Workshop:
    """A workshop offered in the catalog."""

    id: str
    title: str
    capacity: int
    description: str = ""
    location: str = ""
    start_date: datetime | None = None
    end_date: datetime | None = None
    price: float | None = None
    instructor: str | None = None


@dataclass
class Registration:
    """A registration record stored for a workshop."""

    id: str
    workshop_id: str
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    user_id: str | None = None
    status: str = "confirmed"
    created_at: datetime | None = None


@dataclass
class Account:
    """Stored profile of an authenticated user."""

    id: str
    email: str | None = None
    full_name: str | None = None


class RegistrationStatus(str, Enum):
    """Outcome of a registration or deregistration attempt."""

    REGISTERED = "registered"
    CANCELLED = "cancelled"
    ALREADY_REGISTERED = "already_registered"
    NOT_REGISTERED = "not_registered"
    WORKSHOP_FULL = "workshop_full"
    WORKSHOP_NOT_FOUND = "workshop_not_found"


@dataclass
class RegistrationOutcome:
    """Result returned by the registration service."""

    status: RegistrationStatus
    message: str
    workshop: Workshop | None = None

    @property
    def success(self) -> bool:
        return self.status in (RegistrationStatus.REGISTERED, RegistrationStatus.CANCELLED)
