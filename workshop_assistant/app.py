"""Application bootstrap and lifecycle management."""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Protocol

from .config import resolve_db_path
from .dialogue import DialogueController, IDialogueController
from .llm import ICompletionClient, create_completion_client
from .logging_config import get_logger
from .models import Workshop
from .storage import IStorage, Storage
from .tracker import ITracker, Tracker

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between test runs."""
        ...


def load_workshops(path: str | Path) -> list[Workshop]:
    """Read workshop records from a JSON list."""
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    workshops = []
    for item in raw:
        workshops.append(
            Workshop(
                id=str(item["id"]),
                title=item["title"],
                capacity=int(item["capacity"]),
                description=item.get("description", ""),
                location=item.get("location", ""),
                start_date=(
                    datetime.fromisoformat(item["start_date"]) if item.get("start_date") else None
                ),
                end_date=(
                    datetime.fromisoformat(item["end_date"]) if item.get("end_date") else None
                ),
                price=item.get("price"),
                instructor=item.get("instructor"),
            )
        )
    return workshops


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        db_path: str | None = None,
        completion_client: ICompletionClient | None = None,
        workshops_file: str | None = None,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._workshops_file = workshops_file or os.getenv("WORKSHOPS_SEED_FILE")

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._tracker: ITracker | None = None
        self._completion: ICompletionClient | None = completion_client
        self._owns_completion = completion_client is None
        self._dialogue_controller: IDialogueController | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        if self._workshops_file:
            await self._seed_workshops(self._workshops_file)

        # 2. Tracker (depends on Storage)
        self._tracker = Tracker(self._storage)

        # 3. Completion client (no internal dependencies)
        if self._completion is None:
            self._completion = create_completion_client()
        logger.info("Completion client initialized")

        # 4. DialogueController (depends on completion client, Storage, Tracker)
        self._dialogue_controller = DialogueController(
            completion_client=self._completion,
            storage=self._storage,
            tracker=self._tracker,
        )
        await self._dialogue_controller.start()
        logger.info("All components initialized successfully")

    async def _seed_workshops(self, path: str) -> None:
        workshops = load_workshops(path)
        for workshop in workshops:
            await self._storage.save_workshop(workshop)
        logger.info("Seeded %s workshops from %s", len(workshops), path)

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._dialogue_controller:
            await self._dialogue_controller.stop()
        if self._completion and self._owns_completion:
            await self._completion.aclose()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Reset data between test runs."""
        if self._dialogue_controller:
            self._dialogue_controller.reset()

        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")

            if self._workshops_file:
                await self._seed_workshops(self._workshops_file)

        logger.info("Reset complete")

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def dialogue_controller(self) -> IDialogueController:
        """Get dialogue controller instance."""
        if not self._dialogue_controller:
            raise RuntimeError("Application not started")
        return self._dialogue_controller
