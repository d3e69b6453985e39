"""
Notification Service.

Lifecycle events are handed to a `NotificationSink`. Emitting is one-way:
it never blocks the transition, never raises into it and is never retried.
The email sink schedules a single delivery attempt through the Resend API.
"""

import asyncio
import html
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Set, Tuple, Union

import httpx

from accountability.app.core.config import settings
from accountability.app.core.reliability import CircuitBreaker, CircuitOpenError

logger = logging.getLogger("accountability.notifications")


@dataclass(frozen=True)
class ProposalCreated:
    recipient: str
    proposer_name: str
    title: str
    penalty: float


@dataclass(frozen=True)
class StatusChanged:
    recipient: str
    actor_name: str
    title: str
    new_status: str  # "accepted" or "rejected"


@dataclass(frozen=True)
class Completed:
    recipient: str
    completer_name: str
    title: str


@dataclass(frozen=True)
class Failed:
    recipient: str
    title: str
    penalty: float


NotificationEvent = Union[ProposalCreated, StatusChanged, Completed, Failed]


class NotificationSink(Protocol):
    def emit(self, event: NotificationEvent) -> None:
        """Hand over an event. Must return immediately."""
        ...


def render_email(event: NotificationEvent) -> Tuple[str, str]:
    """Build the (subject, html) pair for an event. User-supplied text is escaped in the body."""
    title = html.escape(event.title)
    if isinstance(event, ProposalCreated):
        proposer = html.escape(event.proposer_name)
        return (
            f"New proposal from {event.proposer_name}: {event.title}",
            f"<h2>New Task Proposed</h2>"
            f"<p><strong>{proposer}</strong> has proposed a task for you:</p>"
            f"<p><strong>{title}</strong></p>"
            f"<p>Penalty: <strong>${event.penalty:.2f}</strong></p>"
            f"<p>Log in to accept or reject this proposal.</p>"
        )
    if isinstance(event, StatusChanged):
        actor = html.escape(event.actor_name)
        return (
            f"{event.actor_name} {event.new_status} your proposal: {event.title}",
            f"<h2>Proposal {event.new_status.capitalize()}</h2>"
            f"<p><strong>{actor}</strong> has <strong>{event.new_status}</strong> "
            f"your proposal: <strong>{title}</strong></p>"
        )
    if isinstance(event, Completed):
        completer = html.escape(event.completer_name)
        return (
            f"{event.completer_name} completed: {event.title} - Please verify",
            f"<h2>Task Completed</h2>"
            f"<p><strong>{completer}</strong> says they completed: <strong>{title}</strong></p>"
            f"<p>Log in to verify or mark as failed.</p>"
        )
    if isinstance(event, Failed):
        return (
            f"Task failed: {event.title} - ${event.penalty:.2f} penalty",
            f"<h2>Task Failed</h2>"
            f"<p>The task <strong>{title}</strong> has been marked as failed.</p>"
            f"<p>A penalty of <strong>${event.penalty:.2f}</strong> has been recorded.</p>"
        )
    raise TypeError(f"Unknown notification event: {type(event).__name__}")


class EmailNotificationSink:
    """
    Email sink backed by the Resend HTTP API.

    Each event gets exactly one delivery task. Failures (HTTP errors,
    timeouts, open circuit) are logged and dropped.
    """

    def __init__(
        self,
        api_key: str,
        from_email: str,
        api_url: str,
        timeout: float = 10.0,
        breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key
        self.from_email = from_email
        self.api_url = api_url
        self.timeout = timeout
        self.breaker = breaker or CircuitBreaker("email")
        self._transport = transport
        self._pending: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return bool(self.api_key) and not self.api_key.startswith("re_your_")

    def emit(self, event: NotificationEvent) -> None:
        if not self.enabled:
            logger.debug("Email disabled, dropping %s", type(event).__name__)
            return

        task = asyncio.get_running_loop().create_task(self._deliver(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: NotificationEvent) -> None:
        try:
            await self.breaker.call(self._send, event)
        except CircuitOpenError:
            logger.warning("Email circuit open, dropping %s for %s", type(event).__name__, event.recipient)
        except Exception:
            logger.exception("Email delivery failed for %s to %s", type(event).__name__, event.recipient)

    async def _send(self, event: NotificationEvent) -> None:
        subject, body = render_email(event)
        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            response = await client.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "from": self.from_email,
                    "to": event.recipient,
                    "subject": subject,
                    "html": body
                }
            )
            response.raise_for_status()
        logger.info("Sent %s email to %s", type(event).__name__, event.recipient)

    async def drain(self) -> None:
        """Wait for in-flight deliveries (used at shutdown and in tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


_email_sink: Optional[EmailNotificationSink] = None


def get_notification_sink() -> NotificationSink:
    """
    FastAPI dependency returning the process-wide email sink.

    Tests override this dependency with a recording sink.
    """
    global _email_sink
    if _email_sink is None:
        _email_sink = EmailNotificationSink(
            api_key=settings.resend_api_key,
            from_email=settings.email_from,
            api_url=settings.email_api_url,
            timeout=settings.email_timeout_seconds,
            breaker=CircuitBreaker(
                "email",
                failure_threshold=settings.notification_failure_threshold,
                reset_timeout=settings.notification_reset_timeout
            )
        )
    return _email_sink
