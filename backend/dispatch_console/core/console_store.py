"""
RAPID Dispatch Console - Console Store

In-memory registry of operator consoles. Each console owns an independent
CallSessionController, so several calls can be handled side by side.
Bounded to prevent resource exhaustion; ephemeral by nature.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Callable, Dict, List, Optional

from dispatch_console.config import Settings
from dispatch_console.core.controller import CallSessionController, create_controller
from dispatch_console.core.exceptions import ConsoleLimitError, ConsoleNotFoundError
from dispatch_console.core.logging import mask_id

logger = logging.getLogger(__name__)

ControllerFactory = Callable[[str], CallSessionController]


class ConsoleStore:
    """
    Registry of live consoles keyed by console ID.

    Usage:
        store = ConsoleStore(settings)
        controller = await store.create()
        ...
        await store.close_all()
    """

    def __init__(
        self,
        settings: Settings,
        factory: Optional[ControllerFactory] = None,
    ):
        """
        Initialize the console store.

        Args:
            settings: Application settings (capacity and controller wiring)
            factory: Builds a controller for a console ID
                (default: create_controller with these settings)
        """
        self._settings = settings
        self._factory = factory or (lambda console_id: create_controller(settings, console_id=console_id))
        self._consoles: Dict[str, CallSessionController] = {}
        self._lock = asyncio.Lock()
        self._max_consoles = settings.max_consoles

    async def create(self) -> CallSessionController:
        """
        Create a console.

        Raises:
            ConsoleLimitError: If at capacity
        """
        async with self._lock:
            if len(self._consoles) >= self._max_consoles:
                raise ConsoleLimitError(
                    f"Maximum concurrent consoles ({self._max_consoles}) reached"
                )

            console_id = f"con_{uuid.uuid4().hex[:12]}"
            controller = self._factory(console_id)
            self._consoles[console_id] = controller

        logger.info("Console created: %s (%d active)", mask_id(console_id), len(self._consoles))
        return controller

    async def get(self, console_id: str) -> Optional[CallSessionController]:
        async with self._lock:
            return self._consoles.get(console_id)

    async def get_or_raise(self, console_id: str) -> CallSessionController:
        """Get a console by ID or raise ConsoleNotFoundError."""
        controller = await self.get(console_id)
        if controller is None:
            raise ConsoleNotFoundError(f"Console not found: {mask_id(console_id)}")
        return controller

    async def remove(self, console_id: str) -> bool:
        """Close and forget a console. Returns False if it did not exist."""
        async with self._lock:
            controller = self._consoles.pop(console_id, None)
        if controller is None:
            return False

        await controller.close()
        logger.info("Console removed: %s", mask_id(console_id))
        return True

    async def list_ids(self) -> List[str]:
        async with self._lock:
            return list(self._consoles)

    async def close_all(self) -> int:
        """Close every console. Returns how many were closed."""
        async with self._lock:
            controllers = list(self._consoles.values())
            self._consoles.clear()

        for controller in controllers:
            await controller.close()

        logger.info("ConsoleStore closed: %d consoles", len(controllers))
        return len(controllers)

    def __len__(self) -> int:
        return len(self._consoles)
