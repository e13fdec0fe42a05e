import logging
import re
import smtplib
from html import escape
from email.message import EmailMessage
from typing import Iterable, Optional

from app import config

logger = logging.getLogger(__name__)

SIGNATURE = "<br><br><p>Best regards,<br>Patrick Travel Services</p>"


def send_email(to: str, subject: str, html: str, text: Optional[str] = None) -> bool:
    """Send one message over SMTP. Returns False when SMTP is not configured."""
    if not config.SMTP_USER or not config.SMTP_PASSWORD:
        logger.warning("Email service not configured. Skipping email send.")
        return False

    message = EmailMessage()
    message["From"] = config.EMAIL_FROM
    message["To"] = to
    message["Subject"] = subject
    message.set_content(text or re.sub(r"<[^>]*>", "", html))
    message.add_alternative(html, subtype="html")

    with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=10) as server:
        if config.SMTP_USE_TLS:
            server.starttls()
        server.login(config.SMTP_USER, config.SMTP_PASSWORD)
        server.send_message(message)

    logger.info(f"Email sent to {to}: {subject}")
    return True


def dashboard_link(path: str = "/dashboard/cases") -> str:
    return f'<a href="{config.APP_URL}{path}">View Dashboard</a>'

# ===== Transactional templates =====

def send_case_status_email(to: str, case_reference: str, status: str, client_name: str) -> bool:
    case_reference, status, client_name = escape(case_reference), escape(status), escape(client_name)
    return send_email(
        to,
        f"Case {case_reference} Status Update",
        f"<h2>Case Status Update</h2><p>Dear {client_name},</p>"
        f"<p>Your case <strong>{case_reference}</strong> status has been updated to: <strong>{status}</strong></p>"
        f"<p>Login to your dashboard to view more details.</p>{dashboard_link()}{SIGNATURE}",
    )


def send_documents_requested_email(
    to: str, case_reference: str, document_types: Iterable[str], client_name: str, note: Optional[str] = None
) -> bool:
    items = "".join(f"<li>{escape(doc_type.replace('_', ' ').title())}</li>" for doc_type in document_types)
    extra = f"<p>{escape(note)}</p>" if note else ""
    case_reference, client_name = escape(case_reference), escape(client_name)
    return send_email(
        to,
        f"Documents Required for Case {case_reference}",
        f"<h2>Documents Required</h2><p>Dear {client_name},</p>"
        f"<p>Please upload the following documents for case <strong>{case_reference}</strong>:</p>"
        f"<ul>{items}</ul>{extra}{dashboard_link('/dashboard/documents')}{SIGNATURE}",
    )


def send_document_verified_email(to: str, document_name: str, client_name: str) -> bool:
    document_name, client_name = escape(document_name), escape(client_name)
    return send_email(
        to,
        "Document Verified",
        f"<h2>Document Verified</h2><p>Dear {client_name},</p>"
        f"<p>Your document <strong>{document_name}</strong> has been verified and approved.</p>{SIGNATURE}",
    )


def send_document_rejected_email(to: str, document_name: str, reason: str, client_name: str) -> bool:
    document_name, reason, client_name = escape(document_name), escape(reason), escape(client_name)
    return send_email(
        to,
        "Document Requires Attention",
        f"<h2>Document Rejected</h2><p>Dear {client_name},</p>"
        f"<p>Your document <strong>{document_name}</strong> could not be accepted.</p>"
        f"<p><strong>Reason:</strong> {reason}</p><p>Please upload a corrected version.</p>"
        f"{dashboard_link('/dashboard/documents')}{SIGNATURE}",
    )


def send_case_assigned_email(to: str, case_reference: str, agent_name: str, client_name: str) -> bool:
    case_reference, agent_name, client_name = escape(case_reference), escape(agent_name), escape(client_name)
    return send_email(
        to,
        f"New Case Assigned: {case_reference}",
        f"<h2>Case Assigned</h2><p>Dear {agent_name},</p>"
        f"<p>Case <strong>{case_reference}</strong> for {client_name} has been assigned to you.</p>"
        f"{dashboard_link()}{SIGNATURE}",
    )


def send_case_transferred_client_email(to: str, case_reference: str, agent_name: str, client_name: str) -> bool:
    case_reference, agent_name, client_name = escape(case_reference), escape(agent_name), escape(client_name)
    return send_email(
        to,
        f"Your Case {case_reference} Has a New Advisor",
        f"<h2>New Case Advisor</h2><p>Dear {client_name},</p>"
        f"<p>Your case <strong>{case_reference}</strong> is now handled by {agent_name}.</p>"
        f"{dashboard_link()}{SIGNATURE}",
    )


def send_new_message_email(to: str, sender_name: str, preview: str, recipient_name: str) -> bool:
    return send_email(
        to,
        f"New message from {sender_name}",
        f"<h2>New Message</h2><p>Dear {escape(recipient_name)},</p>"
        f"<p>{escape(sender_name)} sent you a message:</p><blockquote>{escape(preview[:500])}</blockquote>"
        f"{dashboard_link('/dashboard/messages')}{SIGNATURE}",
    )


def send_verification_email(to: str, verification_link: str, client_name: str) -> bool:
    client_name, verification_link = escape(client_name), escape(verification_link)
    return send_email(
        to,
        "Verify your email address",
        f"<h2>Welcome to Patrick Travel Services</h2><p>Dear {client_name},</p>"
        f"<p>Please confirm your email address to activate every feature of your account.</p>"
        f'<p><a href="{verification_link}">Verify Email</a></p>{SIGNATURE}',
    )


def send_password_reset_email(to: str, reset_link: str, client_name: str, expires_minutes: int) -> bool:
    client_name, reset_link = escape(client_name), escape(reset_link)
    return send_email(
        to,
        "Reset your password",
        f"<h2>Password Reset</h2><p>Dear {client_name},</p>"
        f"<p>We received a request to reset your password. This link expires in {expires_minutes} minutes.</p>"
        f'<p><a href="{reset_link}">Reset Password</a></p>'
        f"<p>If you did not ask for this, you can ignore this email.</p>{SIGNATURE}",
    )


def send_appointment_scheduled_email(
    to: str,
    case_reference: str,
    scheduled_at: str,
    location: str,
    client_name: str,
    advisor_name: Optional[str] = None,
    notes: Optional[str] = None,
) -> bool:
    case_reference, scheduled_at, location = escape(case_reference), escape(scheduled_at), escape(location)
    advisor = f"<p><strong>Advisor:</strong> {escape(advisor_name)}</p>" if advisor_name else ""
    extra = f"<p><strong>Notes:</strong> {escape(notes)}</p>" if notes else ""
    return send_email(
        to,
        f"Appointment Scheduled for Case {case_reference}",
        f"<h2>Appointment Scheduled</h2><p>Dear {escape(client_name)},</p>"
        f"<p>An appointment for case <strong>{case_reference}</strong> has been scheduled.</p>"
        f"<p><strong>When:</strong> {scheduled_at} UTC</p><p><strong>Where:</strong> {location}</p>"
        f"{advisor}{extra}{dashboard_link('/dashboard/appointments')}{SIGNATURE}",
    )
