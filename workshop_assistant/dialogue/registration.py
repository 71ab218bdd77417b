"""Registration workflow against the workshop directory and registration store."""

from ..logging_config import get_logger
from ..models import (
    Registration,
    RegistrationOutcome,
    RegistrationStatus,
    UserInfo,
    Workshop,
)
from ..storage import IRegistrationStore, IWorkshopDirectory

logger = get_logger(__name__)

WORKSHOP_NOT_FOUND_MESSAGE = (
    "Workshop not found. Please check the workshop title and try again."
)
ALREADY_REGISTERED_MESSAGE = "You are already registered for this workshop."
WORKSHOP_FULL_MESSAGE = "This workshop is already full."
NOT_REGISTERED_MESSAGE = "You don't have an active registration for this workshop."


class RegistrationService:
    """Resolves workshop titles and creates or cancels registrations.

    Storage errors propagate to the caller; the dialogue controller turns
    them into a user-facing error reply.
    """

    def __init__(self, directory: IWorkshopDirectory, store: IRegistrationStore):
        self._directory = directory
        self._store = store

    async def resolve_workshop(self, title: str) -> Workshop | None:
        return await self._directory.find_workshop_by_fuzzy_title(title)

    async def is_user_registered(self, user_id: str | None, title: str) -> bool:
        """Whether an authenticated user already holds a seat for ``title``."""
        if not user_id:
            return False

        workshop = await self.resolve_workshop(title)
        if workshop is None:
            return False

        return await self._store.is_registered(workshop.id, user_id)

    async def register(
        self,
        title: str,
        user_id: str | None,
        user_info: UserInfo,
    ) -> RegistrationOutcome:
        """Resolve ``title``, check duplicates and capacity, insert a record."""
        workshop = await self.resolve_workshop(title)
        if workshop is None:
            return RegistrationOutcome(
                RegistrationStatus.WORKSHOP_NOT_FOUND, WORKSHOP_NOT_FOUND_MESSAGE
            )

        if user_id and await self._store.is_registered(workshop.id, user_id):
            return RegistrationOutcome(
                RegistrationStatus.ALREADY_REGISTERED, ALREADY_REGISTERED_MESSAGE, workshop
            )

        count = await self._directory.count_registrations(workshop.id)
        if count >= workshop.capacity:
            logger.info(
                "Workshop %s is full (%s/%s)", workshop.id, count, workshop.capacity
            )
            return RegistrationOutcome(
                RegistrationStatus.WORKSHOP_FULL, WORKSHOP_FULL_MESSAGE, workshop
            )

        registration = Registration(
            id="",
            workshop_id=workshop.id,
            first_name=user_info.first_name or "",
            last_name=user_info.last_name or "",
            email=user_info.email or "",
            phone=user_info.phone,
            user_id=user_id,
            status="confirmed",
        )
        if not await self._store.insert_registration_if_open(registration, workshop.capacity):
            # Lost the seat or the duplicate check to a concurrent registration.
            if user_id and await self._store.is_registered(workshop.id, user_id):
                return RegistrationOutcome(
                    RegistrationStatus.ALREADY_REGISTERED, ALREADY_REGISTERED_MESSAGE, workshop
                )
            logger.info("Workshop %s filled up during registration", workshop.id)
            return RegistrationOutcome(
                RegistrationStatus.WORKSHOP_FULL, WORKSHOP_FULL_MESSAGE, workshop
            )

        logger.info("Registered %s for workshop %s", registration.email, workshop.id)

        return RegistrationOutcome(
            RegistrationStatus.REGISTERED,
            f"Registration successful for {workshop.title}!",
            workshop,
        )

    async def deregister(self, title: str, user_id: str) -> RegistrationOutcome:
        """Cancel the user's confirmed registration for ``title``."""
        workshop = await self.resolve_workshop(title)
        if workshop is None:
            return RegistrationOutcome(
                RegistrationStatus.WORKSHOP_NOT_FOUND, WORKSHOP_NOT_FOUND_MESSAGE
            )

        if not await self._store.cancel_registration(workshop.id, user_id):
            return RegistrationOutcome(
                RegistrationStatus.NOT_REGISTERED, NOT_REGISTERED_MESSAGE, workshop
            )

        logger.info("Cancelled registration of %s for workshop %s", user_id, workshop.id)
        return RegistrationOutcome(
            RegistrationStatus.CANCELLED,
            f"Registration for {workshop.title} cancelled.",
            workshop,
        )
