"""Default lifecycle email copy and rendering."""

from __future__ import annotations

from dataclasses import dataclass
from html import escape

from lingobook.shared.utils import fill_template


@dataclass(frozen=True, slots=True)
class EmailTemplate:
    subject: str
    body: str
    # Name of the TenantSettings column that overrides ``body``.
    override_field: str | None = None


DEFAULT_TEMPLATES: dict[str, EmailTemplate] = {
    "send-confirmation": EmailTemplate(
        subject="Lesson confirmed: {{date}}",
        body=(
            "Hi {{studentName}}! Your {{lessonType}} lesson is confirmed for {{date}} at {{time}}. "
            "Join here: {{meetUrl}}"
        ),
        override_field="confirmation_template",
    ),
    "send-reminder-24h": EmailTemplate(
        subject="Reminder: lesson tomorrow at {{time}}",
        body="Hi {{studentName}}! This is a reminder of your lesson tomorrow at {{time}}. Join here: {{meetUrl}}",
        override_field="reminder_24h_template",
    ),
    "send-reminder-1h": EmailTemplate(
        subject="Your lesson starts in 1 hour",
        body="{{studentName}}, your lesson starts in 1 hour! Join here: {{meetUrl}}",
        override_field="reminder_1h_template",
    ),
    "send-payment-chase": EmailTemplate(
        subject="Pending payment: {{lessonType}}",
        body=(
            "Hi {{studentName}}, you have a pending payment of {{amount}} for your lesson on {{date}}. "
            "Pay here: {{checkoutUrl}}"
        ),
        override_field="pending_payment_template",
    ),
    "send-follow-up": EmailTemplate(
        subject="How did your lesson go?",
        body="Hi {{studentName}}! How did today's lesson go? Book your next one: {{bookingUrl}}",
        override_field="follow_up_template",
    ),
    "send-welcome": EmailTemplate(
        subject="Welcome to {{tenantName}}",
        body=(
            "Hi {{studentName}}! Thanks for your interest in {{tenantName}}. "
            "We will contact you soon to schedule your first lesson."
        ),
        override_field="welcome_template",
    ),
}


def render_email(
    job_name: str,
    variables: dict[str, str],
    override_body: str | None = None,
    tenant_name: str = "",
) -> tuple[str, str]:
    """Return ``(subject, html)`` for a lifecycle email."""
    template = DEFAULT_TEMPLATES[job_name]
    subject = fill_template(template.subject, variables)
    text = fill_template(override_body or template.body, variables)
    html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 24px;">'
        f"<h1 style=\"font-size: 20px;\">{escape(tenant_name)}</h1>"
        f"<p style=\"font-size: 16px; line-height: 1.6;\">{escape(text)}</p>"
        "</div>"
    )
    return subject, html
