"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """System roles."""

    STUDENT = "student"
    TENANT_ADMIN = "tenant_admin"
    SUPER_ADMIN = "super_admin"


class LessonStatusEnum(StrEnum):
    """Lesson lifecycle status."""

    RESERVED = "reserved"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


ACTIVE_LESSON_STATUSES = (LessonStatusEnum.RESERVED, LessonStatusEnum.CONFIRMED)


class PaymentStatusEnum(StrEnum):
    """Payment status of a lesson or a payment attempt."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FAILED = "failed"
    COVERED_BY_PACK = "covered_by_pack"
    REFUNDED = "refunded"


class LedgerReasonEnum(StrEnum):
    """Reason tag of a pack ledger row."""

    BOOKING = "booking"
    CANCEL_REFUND = "cancel_refund"
    NO_SHOW_FORFEIT = "no_show_forfeit"


class LeadStatusEnum(StrEnum):
    """Sales lead status."""

    NEW = "new"
    CONTACTED = "contacted"
    CONVERTED = "converted"
    LOST = "lost"


class OutboxStatusEnum(StrEnum):
    """Outbox job status for queue publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class JobRunStatusEnum(StrEnum):
    """Status of one background job execution."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    DEAD_LETTER = "dead_letter"


class QueueEnum(StrEnum):
    """Background job queues."""

    CALENDAR = "calendar"
    EMAIL = "email"
    REMINDER = "reminder"
    PAYMENT_CHASE = "payment-chase"
    FOLLOW_UP = "follow-up"
    WELCOME = "welcome"
