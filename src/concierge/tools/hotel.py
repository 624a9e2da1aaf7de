"""Hotel concierge tools: current date/time, booking lookup and reception e-mail."""

import json
import logging
from datetime import (
    datetime,
    timezone,
)
from typing import (
    Callable,
    Protocol,
)

import httpx
from pydantic import (
    BaseModel,
    Field,
)

from concierge.memory.record_store import RecordStore
from concierge.tools import (
    BaseTool,
    ToolRegistry,
)

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Reservation not found."


# ---------------------------------------------------------------------------
# Notification channel
# ---------------------------------------------------------------------------
class Notifier(Protocol):
    """Side-effecting delivery of a message to the hotel reception."""

    def send(self, content: str) -> None:
        """Deliver *content*; raise on failure."""


class LogNotifier:
    """Default notifier: records the message in the application log only."""

    def send(self, content: str) -> None:
        logger.info("Sending email to reception - content: %s", content)


class WebhookNotifier:
    """POST the message as JSON to a reception webhook."""

    def __init__(self, url: str, timeout: float = 10.0) -> None:
        self.url = url
        self.timeout = timeout

    def send(self, content: str) -> None:
        with httpx.Client(timeout=self.timeout) as client:
            resp = client.post(self.url, json={"content": content})
            resp.raise_for_status()
        logger.info("Reception webhook accepted message (%d chars)", len(content))


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------
class GetDateTime(BaseTool):
    """Current instant as ISO-8601 text."""

    name = "getDateTime"
    description = "Get the current date and time"

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def run(self, args: BaseModel) -> str:
        return self._clock().isoformat()


class BookingArgs(BaseModel):
    bookingId: str = Field(..., min_length=1, description="booking id")


class GetBookingStatus(BaseTool):
    """Look a booking up by id; a missing booking is a normal result, not an error."""

    name = "getBookingStatus"
    description = "Get booking status/informations"
    Args = BookingArgs

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def run(self, args: BookingArgs) -> str:
        logger.debug("Looking up booking %s", args.bookingId)
        record = self._store.find_one({"data.id": args.bookingId})
        if record is None:
            return json.dumps(
                {"bookingId": args.bookingId, "error": True, "errors": [NOT_FOUND_MESSAGE]}
            )
        return json.dumps({**record, "error": False, "errors": []}, default=str)


class EmailArgs(BaseModel):
    content: str = Field(..., min_length=1, description="email content")


class SendEmailToReception(BaseTool):
    """Forward a guest message to the reception desk."""

    name = "sendEmailToReception"
    description = "Send email to reception"
    Args = EmailArgs

    def __init__(self, notifier: Notifier | None = None) -> None:
        self._notifier = notifier or LogNotifier()

    def run(self, args: EmailArgs) -> str:
        self._notifier.send(args.content)
        return "Email was sent to the reception."


def build_hotel_registry(store: RecordStore, notifier: Notifier | None = None) -> ToolRegistry:
    """Build the static tool catalog used by the orchestrator."""
    registry = ToolRegistry()
    registry.register(GetDateTime())
    registry.register(GetBookingStatus(store))
    registry.register(SendEmailToReception(notifier))
    return registry
