"""Development Notifier: writes the notification to the log instead of sending it.

The redaction processor masks the code, so even this notifier never prints
a usable OTP outside development consoles with redaction disabled.
"""

from infrastructure.notifier.protocol import NotificationPayload
from shared.logging import get_logger

log = get_logger(__name__)


class LogNotifier:
    async def send(self, identifier: str, payload: NotificationPayload) -> bool:
        log.info(
            "notification_logged",
            recipient=identifier,
            kind=payload.kind.value,
            subject=payload.subject,
            **payload.data,
        )
        return True
