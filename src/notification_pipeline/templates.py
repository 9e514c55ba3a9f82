"""
Envelope builders for the emails upstream services send.

- Password reset (auth service)
- Application submitted (user service)
- Application status update (job service)

All interpolated values are HTML-escaped.
"""

from html import escape
from string import Template
from typing import Optional

from notification_pipeline.schemas import MailEnvelope

SUPPORT_ADDRESS = "support@nexthire.com"

_LAYOUT = Template(
    """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>$title</title>
</head>
<body style="margin: 0; padding: 0; font-family: Arial, sans-serif; background-color: #f4f4f4;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="margin: 0 auto; background-color: #ffffff; border-radius: 8px;">
        <tr>
            <td style="padding: 40px;">
$body
            </td>
        </tr>
        <tr>
            <td style="padding: 20px 40px; background-color: #f8f9fa; border-radius: 0 0 8px 8px;">
                <p style="color: #999999; font-size: 12px; margin: 0;">Questions? Contact us at <a href="mailto:$support">$support</a></p>
                <p style="color: #999999; font-size: 12px; margin: 0;">&copy; NextHire. All rights reserved.</p>
            </td>
        </tr>
    </table>
</body>
</html>
"""
)

_BUTTON = Template(
    '<a href="$href" style="display: inline-block; padding: 14px 40px; '
    'background-color: #0033A0; color: #ffffff; text-decoration: none; '
    'border-radius: 6px; font-weight: bold;">$label</a>'
)

_JOB_DETAILS = Template(
    """                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: #f8f9fa; border-radius: 6px;">
                    <tr><td style="padding: 15px;" colspan="2"><strong style="color: #0033A0; font-size: 20px;">$job_title</strong></td></tr>
                    <tr><td style="padding: 5px 15px;">Company</td><td>$company_name</td></tr>
                    <tr><td style="padding: 5px 15px;">Location</td><td>$location</td></tr>
                    <tr><td style="padding: 5px 15px;">$date_label</td><td>$date</td></tr>
                    <tr><td style="padding: 5px 15px;">Role</td><td>$role</td></tr>
                </table>"""
)


def _render(title: str, body: str) -> str:
    return _LAYOUT.substitute(title=escape(title), body=body, support=SUPPORT_ADDRESS)


def _paragraph(text: str) -> str:
    return f'                <p style="color: #666666; font-size: 16px; line-height: 24px;">{text}</p>'


def password_reset_envelope(
    to: str,
    reset_link: str,
    expires_in_minutes: int = 15,
    idempotency_key: Optional[str] = None,
) -> MailEnvelope:
    """Password reset link email."""
    link = escape(reset_link)
    body = "\n".join(
        [
            '                <h1 style="color: #333333;">Reset Your Password</h1>',
            _paragraph("Hello,"),
            _paragraph(
                "We received a request to reset your password for your NextHire "
                "account. Click the button below to create a new password:"
            ),
            "                " + _BUTTON.substitute(href=link, label="Reset Password"),
            _paragraph(
                f"This link will expire in {expires_in_minutes} minutes for security reasons."
            ),
            _paragraph(
                "If you didn't request a password reset, you can safely ignore this "
                "email. Your password will remain unchanged."
            ),
            _paragraph("If the button doesn't work, copy and paste this link into your browser:"),
            _paragraph(link),
        ]
    )
    return MailEnvelope(
        to=to,
        subject="Password Reset Request - NextHire",
        html=_render("Reset Your Password - NextHire", body),
        idempotency_key=idempotency_key,
    )


def application_submitted_envelope(
    to: str,
    candidate_name: str,
    job_title: str,
    company_name: str,
    location: str,
    submitted_on: str,
    role: str,
    tracking_link: str,
    idempotency_key: Optional[str] = None,
) -> MailEnvelope:
    """Confirmation sent to a candidate after applying."""
    body = "\n".join(
        [
            '                <h1 style="color: #28a745;">Application Successfully Submitted!</h1>',
            _paragraph(f"Dear {escape(candidate_name)},"),
            _paragraph(
                "Thank you for your interest in joining our team! Your application has "
                "been successfully submitted and is now being reviewed by our hiring team."
            ),
            _JOB_DETAILS.substitute(
                job_title=escape(job_title),
                company_name=escape(company_name),
                location=escape(location),
                date_label="Submitted On",
                date=escape(submitted_on),
                role=escape(role),
            ),
            "                "
            + _BUTTON.substitute(href=escape(tracking_link), label="Track Application"),
        ]
    )
    return MailEnvelope(
        to=to,
        subject=f"Application Received: {job_title} - NextHire",
        html=_render("Application Received - NextHire", body),
        idempotency_key=idempotency_key,
    )


def application_status_envelope(
    to: str,
    candidate_name: str,
    job_title: str,
    company_name: str,
    location: str,
    applied_on: str,
    status: str,
    action_link: str,
    role: str = "",
    idempotency_key: Optional[str] = None,
) -> MailEnvelope:
    """Status update sent when a recruiter changes an application's status."""
    paragraphs = [
        '                <h1 style="color: #0033A0;">Application Update</h1>',
        _paragraph(f"Dear {escape(candidate_name)},"),
        _paragraph(
            "Thank you for your interest in the following position with our company. "
            "We wanted to update you on the status of your application."
        ),
    ]
    if status:
        paragraphs.append(_paragraph(f"New status: <strong>{escape(status)}</strong>"))
    paragraphs.extend(
        [
            _JOB_DETAILS.substitute(
                job_title=escape(job_title),
                company_name=escape(company_name),
                location=escape(location),
                date_label="Applied On",
                date=escape(applied_on),
                role=escape(role) or "-",
            ),
            "                " + _BUTTON.substitute(href=escape(action_link), label="See Here"),
            _paragraph(
                "We truly appreciate the time and effort you invested in your "
                "application and the opportunity to learn more about your qualifications."
            ),
        ]
    )
    return MailEnvelope(
        to=to,
        subject="Application Update - NextHire",
        html=_render("Job Application Update - NextHire", "\n".join(paragraphs)),
        idempotency_key=idempotency_key,
    )


__all__ = [
    "application_status_envelope",
    "application_submitted_envelope",
    "password_reset_envelope",
]
