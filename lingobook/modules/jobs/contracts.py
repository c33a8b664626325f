"""Typed background job requests.

Each request model names its queue and job name; the ``kind`` literal is the
discriminator stored with the payload so a worker can parse it back into the
exact model.
"""

from __future__ import annotations

from typing import Annotated, Any, ClassVar, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, TypeAdapter

from lingobook.core.enums import QueueEnum


class JobRequestBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    queue: ClassVar[QueueEnum]
    job_name: ClassVar[str]

    tenant_id: UUID


class LessonJobRequest(JobRequestBase):
    lesson_id: UUID


class CreateCalendarEvent(LessonJobRequest):
    queue: ClassVar[QueueEnum] = QueueEnum.CALENDAR
    job_name: ClassVar[str] = "create-event"
    kind: Literal["calendar.create-event"] = "calendar.create-event"


class UpdateCalendarEvent(LessonJobRequest):
    queue: ClassVar[QueueEnum] = QueueEnum.CALENDAR
    job_name: ClassVar[str] = "update-event"
    kind: Literal["calendar.update-event"] = "calendar.update-event"


class DeleteCalendarEvent(LessonJobRequest):
    queue: ClassVar[QueueEnum] = QueueEnum.CALENDAR
    job_name: ClassVar[str] = "delete-event"
    kind: Literal["calendar.delete-event"] = "calendar.delete-event"

    calendar_event_id: str


class SendConfirmationEmail(LessonJobRequest):
    queue: ClassVar[QueueEnum] = QueueEnum.EMAIL
    job_name: ClassVar[str] = "send-confirmation"
    kind: Literal["email.send-confirmation"] = "email.send-confirmation"


class SendReminder24hEmail(LessonJobRequest):
    queue: ClassVar[QueueEnum] = QueueEnum.EMAIL
    job_name: ClassVar[str] = "send-reminder-24h"
    kind: Literal["email.send-reminder-24h"] = "email.send-reminder-24h"


class SendReminder1hEmail(LessonJobRequest):
    queue: ClassVar[QueueEnum] = QueueEnum.EMAIL
    job_name: ClassVar[str] = "send-reminder-1h"
    kind: Literal["email.send-reminder-1h"] = "email.send-reminder-1h"


class SendPaymentChaseEmail(LessonJobRequest):
    queue: ClassVar[QueueEnum] = QueueEnum.EMAIL
    job_name: ClassVar[str] = "send-payment-chase"
    kind: Literal["email.send-payment-chase"] = "email.send-payment-chase"

    attempt: int = Field(default=1, ge=1)


class SendFollowUpEmail(LessonJobRequest):
    queue: ClassVar[QueueEnum] = QueueEnum.EMAIL
    job_name: ClassVar[str] = "send-follow-up"
    kind: Literal["email.send-follow-up"] = "email.send-follow-up"


class ScheduleReminders(LessonJobRequest):
    queue: ClassVar[QueueEnum] = QueueEnum.REMINDER
    job_name: ClassVar[str] = "schedule-reminders"
    kind: Literal["reminder.schedule-reminders"] = "reminder.schedule-reminders"


class ChasePayment(LessonJobRequest):
    queue: ClassVar[QueueEnum] = QueueEnum.PAYMENT_CHASE
    job_name: ClassVar[str] = "chase-payment"
    kind: Literal["payment-chase.chase-payment"] = "payment-chase.chase-payment"

    attempt: int = Field(ge=1)


class FollowUp(LessonJobRequest):
    queue: ClassVar[QueueEnum] = QueueEnum.FOLLOW_UP
    job_name: ClassVar[str] = "send-follow-up"
    kind: Literal["follow-up.send-follow-up"] = "follow-up.send-follow-up"


class LeadContact(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    phone: str
    email: EmailStr | None = None
    objective: str | None = None


class SendWelcome(JobRequestBase):
    queue: ClassVar[QueueEnum] = QueueEnum.WELCOME
    job_name: ClassVar[str] = "send-welcome"
    kind: Literal["welcome.send-welcome"] = "welcome.send-welcome"

    lead: LeadContact


JobRequest = Annotated[
    Union[
        CreateCalendarEvent,
        UpdateCalendarEvent,
        DeleteCalendarEvent,
        SendConfirmationEmail,
        SendReminder24hEmail,
        SendReminder1hEmail,
        SendPaymentChaseEmail,
        SendFollowUpEmail,
        ScheduleReminders,
        ChasePayment,
        FollowUp,
        SendWelcome,
    ],
    Field(discriminator="kind"),
]

JOB_REQUEST_ADAPTER: TypeAdapter[JobRequest] = TypeAdapter(JobRequest)

# Per-queue worker concurrency.
QUEUE_CONCURRENCY: dict[QueueEnum, int] = {
    QueueEnum.CALENDAR: 2,
    QueueEnum.EMAIL: 5,
    QueueEnum.REMINDER: 5,
    QueueEnum.PAYMENT_CHASE: 3,
    QueueEnum.FOLLOW_UP: 3,
    QueueEnum.WELCOME: 3,
}


def parse_job_request(payload: dict[str, Any]) -> JobRequest:
    return JOB_REQUEST_ADAPTER.validate_python(payload)


def dump_job_request(request: JobRequestBase) -> dict[str, Any]:
    return request.model_dump(mode="json")
