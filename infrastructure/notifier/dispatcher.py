"""Fire-and-forget notification delivery.

dispatch() schedules Notifier.send as an asyncio task and returns at once,
so a slow or failing mail provider never delays or fails an OTP request.
Errors are logged and swallowed inside the task. drain() awaits everything
still in flight; the app lifespan calls it on shutdown.
"""

import asyncio
from typing import Optional

from infrastructure.notifier.protocol import NotificationPayload, Notifier
from shared.logging import get_logger

log = get_logger(__name__)


class NotificationDispatcher:
    def __init__(self, notifier: Notifier, timeout_seconds: Optional[float] = 10.0) -> None:
        self._notifier = notifier
        self._timeout = timeout_seconds
        self._pending: set[asyncio.Task] = set()

    async def _deliver(self, identifier: str, payload: NotificationPayload) -> bool:
        try:
            delivered = await asyncio.wait_for(
                self._notifier.send(identifier, payload), timeout=self._timeout
            )
        except Exception as e:
            log.error(
                "notification_failed",
                kind=payload.kind.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        if not delivered:
            log.warning("notification_not_delivered", kind=payload.kind.value)
        return bool(delivered)

    def dispatch(self, identifier: str, payload: NotificationPayload) -> asyncio.Task:
        task = asyncio.create_task(self._deliver(identifier, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
