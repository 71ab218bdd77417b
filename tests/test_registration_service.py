"""Tests for RegistrationService."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from workshop_assistant.dialogue import RegistrationService
from workshop_assistant.dialogue.registration import WORKSHOP_NOT_FOUND_MESSAGE
from workshop_assistant.models import RegistrationStatus, UserInfo

ADA = UserInfo(first_name="Ada", last_name="Lovelace", email="ada@example.com")


@pytest.fixture
def service(seeded_storage):
    return RegistrationService(seeded_storage, seeded_storage)


class TestRegister:
    """Tests for RegistrationService.register()."""

    @pytest.mark.asyncio
    async def test_register_success(self, service, seeded_storage):
        """Test that a free seat produces a confirmed registration."""
        outcome = await service.register("web development", None, ADA)

        assert outcome.status == RegistrationStatus.REGISTERED
        assert outcome.success
        assert outcome.workshop.title == "Web Development Fundamentals"
        assert outcome.message == "Registration successful for Web Development Fundamentals!"
        assert await seeded_storage.count_registrations("web-dev") == 1

    @pytest.mark.asyncio
    async def test_workshop_not_found(self, service, seeded_storage):
        outcome = await service.register("underwater basket weaving", None, ADA)

        assert outcome.status == RegistrationStatus.WORKSHOP_NOT_FOUND
        assert outcome.message == WORKSHOP_NOT_FOUND_MESSAGE
        assert outcome.workshop is None

    @pytest.mark.asyncio
    async def test_full_workshop(self, service, seeded_storage, add_registrations):
        """Test that capacity counts confirmed registrations."""
        await add_registrations(seeded_storage, "web-dev", 5)

        outcome = await service.register("web development", None, ADA)

        assert outcome.status == RegistrationStatus.WORKSHOP_FULL
        assert await seeded_storage.count_registrations("web-dev") == 5

    @pytest.mark.asyncio
    async def test_one_seat_left(self, service, seeded_storage, add_registrations):
        await add_registrations(seeded_storage, "web-dev", 4)

        outcome = await service.register("web development", None, ADA)

        assert outcome.status == RegistrationStatus.REGISTERED
        assert await seeded_storage.count_registrations("web-dev") == 5

    @pytest.mark.asyncio
    async def test_already_registered(self, service, seeded_storage, add_registrations):
        await add_registrations(seeded_storage, "web-dev", 1, user_id="u1")

        outcome = await service.register("web development", "u1", ADA)

        assert outcome.status == RegistrationStatus.ALREADY_REGISTERED
        assert await seeded_storage.count_registrations("web-dev") == 1

    @pytest.mark.asyncio
    async def test_missing_names_stored_empty(self, service, seeded_storage):
        await service.register("data science", "u1", UserInfo(email="u1@example.com"))

        registration = await seeded_storage.most_recent_registration("u1")
        assert registration.first_name == ""
        assert registration.last_name == ""
        assert registration.email == "u1@example.com"
        assert registration.status == "confirmed"

    @pytest.mark.asyncio
    async def test_storage_errors_propagate(self, service, seeded_storage):
        seeded_storage.insert_registration_if_open = AsyncMock(
            side_effect=RuntimeError("db down")
        )

        with pytest.raises(RuntimeError, match="db down"):
            await service.register("web development", None, ADA)


class TestIsUserRegistered:
    """Tests for RegistrationService.is_user_registered()."""

    @pytest.mark.asyncio
    async def test_anonymous_is_never_registered(self, service):
        assert await service.is_user_registered(None, "web development") is False

    @pytest.mark.asyncio
    async def test_unknown_title(self, service):
        assert await service.is_user_registered("u1", "pottery") is False

    @pytest.mark.asyncio
    async def test_registered(self, service, seeded_storage, add_registrations):
        await add_registrations(seeded_storage, "web-dev", 1, user_id="u1")
        assert await service.is_user_registered("u1", "web dev workshop") is True


class TestDeregister:
    """Tests for RegistrationService.deregister()."""

    @pytest.mark.asyncio
    async def test_cancel_frees_seat(self, service, seeded_storage, add_registrations):
        await add_registrations(seeded_storage, "web-dev", 1, user_id="u1")

        outcome = await service.deregister("web development", "u1")

        assert outcome.status == RegistrationStatus.CANCELLED
        assert outcome.success
        assert await seeded_storage.count_registrations("web-dev") == 0

    @pytest.mark.asyncio
    async def test_not_registered(self, service):
        outcome = await service.deregister("web development", "u1")
        assert outcome.status == RegistrationStatus.NOT_REGISTERED

    @pytest.mark.asyncio
    async def test_not_found(self, service):
        outcome = await service.deregister("pottery", "u1")
        assert outcome.status == RegistrationStatus.WORKSHOP_NOT_FOUND


class TestConcurrentRegistration:
    """Tests for registrations that race for the same seat."""

    @pytest.mark.asyncio
    async def test_last_seat_taken_once(self, service, seeded_storage, add_registrations):
        """Test that two simultaneous registrations cannot overfill a workshop."""
        await add_registrations(seeded_storage, "web-dev", 4)

        outcomes = await asyncio.gather(
            service.register("web development", None, ADA),
            service.register(
                "web development",
                None,
                UserInfo(first_name="Grace", last_name="Hopper", email="grace@example.com"),
            ),
        )

        statuses = sorted(outcome.status.value for outcome in outcomes)
        assert statuses == [
            RegistrationStatus.REGISTERED.value,
            RegistrationStatus.WORKSHOP_FULL.value,
        ]
        assert await seeded_storage.count_registrations("web-dev") == 5

    @pytest.mark.asyncio
    async def test_same_user_registers_once(self, service, seeded_storage):
        """Test that one user racing from two sessions gets a single seat."""
        outcomes = await asyncio.gather(
            service.register("web development", "u1", ADA),
            service.register("web development", "u1", ADA),
        )

        statuses = sorted(outcome.status.value for outcome in outcomes)
        assert statuses == [
            RegistrationStatus.ALREADY_REGISTERED.value,
            RegistrationStatus.REGISTERED.value,
        ]
        assert await seeded_storage.count_registrations("web-dev") == 1
