"""
Enrollment Notifications

Turns committed approval/rejection events into notices and hands them to the
notification service. Delivery is best-effort: a failure is logged and never
reaches the caller or undoes the transition that produced the event.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

import httpx
import structlog

from shared.config import Settings, get_settings
from shared.domain.exceptions import ExternalServiceError
from shared.domain.grades import CLASS_DAYS
from shared.events.academic_events import EnrollmentApprovedEvent, EnrollmentRejectedEvent
from shared.events.base import DomainEvent

logger = structlog.get_logger(__name__)

APPROVAL_TEMPLATE = "enrollment_approved"
REJECTION_TEMPLATE = "enrollment_rejected"


class Notifier(ABC):
    """Delivers a rendered-by-template message to one recipient."""

    @abstractmethod
    async def send(self, to_address: str, subject: str, template: str, data: dict[str, Any]) -> None:
        """
        Send a notice.

        Args:
            to_address: Recipient email address
            subject: Message subject line
            template: Template kind (approval or rejection)
            data: Structured values the template renders
        """


class HttpNotifier(Notifier):
    """Posts notices to the notification service."""

    def __init__(self, base_url: str, timeout: float = 10.0, client: httpx.AsyncClient | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def send(self, to_address: str, subject: str, template: str, data: dict[str, Any]) -> None:
        payload = {"to": to_address, "subject": subject, "template": template, "data": data}
        url = f"{self.base_url}/api/v1/notifications"

        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=payload)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise ExternalServiceError(
                service_name="notification", timeout=True, cause=e
            )
        except httpx.HTTPError as e:
            raise ExternalServiceError(
                service_name="notification", message=f"Notification request failed: {e}", cause=e
            )

        logger.info("Notice delivered", template=template, to=to_address)


class LoggingNotifier(Notifier):
    """Used when no notification service is configured."""

    async def send(self, to_address: str, subject: str, template: str, data: dict[str, Any]) -> None:
        logger.info("Notice (not delivered)", to=to_address, subject=subject, template=template, data=data)


def build_notifier(settings: Settings | None = None) -> Notifier:
    settings = settings or get_settings()
    if settings.notification_service_url:
        return HttpNotifier(settings.notification_service_url, settings.notification_timeout_seconds)
    return LoggingNotifier()


class NotificationDispatcher:
    """Post-commit subscriber that sends enrollment notices."""

    def __init__(self, notifier: Notifier, settings: Settings | None = None):
        self.notifier = notifier
        self.settings = settings or get_settings()

    async def dispatch(self, events: Iterable[DomainEvent]) -> None:
        """Send a notice for every approval/rejection event; never raises."""
        for event in events:
            try:
                await self._dispatch_one(event)
            except Exception:
                logger.exception(
                    "Failed to send enrollment notice", **event.log_context()
                )

    async def _dispatch_one(self, event: DomainEvent) -> None:
        if isinstance(event, EnrollmentApprovedEvent):
            to_address = event.contact_email
            subject = f"Enrollment Approved - {self.settings.school_name}"
            template = APPROVAL_TEMPLATE
            data = self.approval_data(event)
        elif isinstance(event, EnrollmentRejectedEvent):
            to_address = event.contact_email
            subject = f"Enrollment Application Update - {self.settings.school_name}"
            template = REJECTION_TEMPLATE
            data = self.rejection_data(event)
        else:
            return

        if not to_address:
            logger.warning(
                "No contact address for enrollment notice", **event.log_context()
            )
            return

        await self.notifier.send(to_address, subject, template, data)

    def approval_data(self, event: EnrollmentApprovedEvent) -> dict[str, Any]:
        data: dict[str, Any] = {
            "student_name": event.student_name,
            "parent_name": event.parent_name,
            "grade_level": event.grade_level,
            "section": event.section,
            "room": event.room,
            "shift": event.shift,
            "time_window": event.time_window,
            "class_days": CLASS_DAYS,
            **self._school(),
        }
        if event.teachers:
            data["teachers"] = dict(sorted(event.teachers.items()))
        else:
            data["adviser"] = event.adviser or "To Be Assigned"
        return data

    def rejection_data(self, event: EnrollmentRejectedEvent) -> dict[str, Any]:
        return {
            "student_name": event.student_name,
            "parent_name": event.parent_name,
            **self._school(),
        }

    def _school(self) -> dict[str, str]:
        return {
            "school_name": self.settings.school_name,
            "contact_phone": self.settings.school_contact_phone,
            "contact_email": self.settings.school_contact_email,
        }
