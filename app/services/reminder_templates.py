"""Email copy for certification reminders and certificate delivery.

Rendering is pure: callers pass everything in, nothing is looked up.
HTML and plain-text bodies are built from the same detail rows so a
text-only client sees the same course, certificate number and dates.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from datetime import datetime

from app.db.enums import CertificationStatus
from app.services.certification_status import URGENT_WINDOW_DAYS, EXPIRING_WINDOW_DAYS

COLOR_URGENT = "#dc2626"
COLOR_WARNING = "#f59e0b"
COLOR_INFO = "#3b82f6"

RENEWAL_BENEFITS = (
    "Legal compliance and professional standing",
    "Insurance coverage validity",
    "Continued access to work opportunities",
    "Up-to-date knowledge of safety standards and regulations",
)


@dataclass(frozen=True)
class Branding:
    company_name: str
    phone: str
    email: str
    website: str


@dataclass(frozen=True)
class ReminderContext:
    customer_name: str
    course_title: str
    category: str
    certification_date: datetime
    expiry_date: datetime | None
    certificate_number: str | None
    state: CertificationStatus
    days_until_expiry: int | None
    branding: Branding


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str
    urgency_label: str | None = None


@dataclass(frozen=True)
class _Urgency:
    subject: str
    label: str
    color: str
    action: str


def format_date(value: datetime) -> str:
    """05 March 2027"""
    return value.strftime("%d %B %Y")


def format_category(category: str) -> str:
    return category.replace("_", " ")


def _urgency(context: ReminderContext) -> _Urgency:
    course = context.course_title
    days = context.days_until_expiry

    if context.state == CertificationStatus.EXPIRED:
        return _Urgency(
            subject=f"URGENT: Your {course} certification has expired",
            label="EXPIRED",
            color=COLOR_URGENT,
            action=(
                "Your certification has expired. Please book a renewal course "
                "immediately to maintain your qualifications."
            ),
        )
    if days is not None and days <= URGENT_WINDOW_DAYS:
        return _Urgency(
            subject=f"URGENT: Your {course} certification expires in {days} days",
            label="EXPIRES SOON",
            color=COLOR_URGENT,
            action=(
                f"Your certification expires in just {days} days. Book your renewal "
                "course now to avoid any disruption to your work."
            ),
        )
    if days is not None and days <= EXPIRING_WINDOW_DAYS:
        return _Urgency(
            subject=f"Reminder: Your {course} certification expires in {days} days",
            label="RENEWAL DUE",
            color=COLOR_WARNING,
            action=(
                f"Your certification expires in {days} days. We recommend booking your "
                "renewal course soon to secure your preferred date."
            ),
        )
    if days is not None:
        action = (
            f"Your certification expires in {days} days. Start planning your renewal "
            "course to maintain your qualifications."
        )
    else:
        action = (
            "Please check your certification expiry date and book a renewal course if needed."
        )
    return _Urgency(
        subject=f"Reminder: Your {course} certification renewal",
        label="RENEWAL REMINDER",
        color=COLOR_INFO,
        action=action,
    )


def _detail_rows(
    course_title: str,
    category: str,
    certification_date: datetime,
    expiry_date: datetime | None,
    certificate_number: str | None,
    *,
    certification_label: str = "Original Certification Date",
    expiry_label: str = "Expiry Date",
) -> list[tuple[str, str]]:
    rows = [
        ("Course", course_title),
        ("Category", format_category(category)),
        (certification_label, format_date(certification_date)),
    ]
    if expiry_date is not None:
        rows.append((expiry_label, format_date(expiry_date)))
    if certificate_number:
        rows.append(("Certificate Number", certificate_number))
    return rows


def _html_rows(rows: list[tuple[str, str]]) -> str:
    return "\n".join(
        f"<p><strong>{html.escape(label)}:</strong> {html.escape(value)}</p>"
        for label, value in rows
    )


def _text_rows(rows: list[tuple[str, str]]) -> str:
    return "\n".join(f"- {label}: {value}" for label, value in rows)


def _html_document(title: str, header_subtitle: str, company_name: str, body: str, footer: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{html.escape(title)}</title>
  <style>
    body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
    .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
    .header {{ background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; padding: 30px; text-align: center; border-radius: 8px 8px 0 0; }}
    .content {{ background: #ffffff; padding: 30px; border: 1px solid #e5e7eb; }}
    .footer {{ background: #f9fafb; padding: 20px; text-align: center; border-radius: 0 0 8px 8px; border: 1px solid #e5e7eb; border-top: none; }}
    .badge {{ display: inline-block; padding: 8px 16px; border-radius: 20px; font-weight: bold; font-size: 12px; text-transform: uppercase; letter-spacing: 0.5px; margin-bottom: 20px; color: white; }}
    .cert-details {{ background: #f8fafc; padding: 20px; border-radius: 6px; margin: 20px 0; }}
    .cert-details h3 {{ margin: 0 0 10px 0; color: #1f2937; }}
    .cert-details p {{ margin: 5px 0; }}
    .warning {{ background: #fef3c7; border: 1px solid #f59e0b; padding: 15px; border-radius: 6px; margin: 15px 0; }}
    .contact-info {{ background: #f0f9ff; padding: 15px; border-radius: 6px; margin: 15px 0; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h1>{html.escape(company_name)}</h1>
      <p>{html.escape(header_subtitle)}</p>
    </div>
    <div class="content">
{body}
    </div>
    <div class="footer">
      <p><small>{footer}</small></p>
    </div>
  </div>
</body>
</html>
"""


def render_reminder(context: ReminderContext) -> RenderedEmail:
    """Render the renewal reminder for a classified certification."""
    urgency = _urgency(context)
    brand = context.branding
    rows = _detail_rows(
        context.course_title,
        context.category,
        context.certification_date,
        context.expiry_date,
        context.certificate_number,
    )
    name = html.escape(context.customer_name)
    company = html.escape(brand.company_name)
    benefits_html = "\n".join(f"<li>{html.escape(item)}</li>" for item in RENEWAL_BENEFITS)

    body = f"""      <div class="badge" style="background-color: {urgency.color};">{urgency.label}</div>
      <h2>Dear {name},</h2>
      <p>This is an important reminder regarding your professional certification.</p>
      <div class="cert-details">
        <h3>Certification Details</h3>
{_html_rows(rows)}
      </div>
      <div class="warning"><strong>Action Required:</strong> {html.escape(urgency.action)}</div>
      <p>Maintaining current certifications is essential for:</p>
      <ul>
{benefits_html}
      </ul>
      <div class="contact-info">
        <h3>Book Your Renewal Course</h3>
        <p><strong>Phone:</strong> {html.escape(brand.phone)}</p>
        <p><strong>Email:</strong> {html.escape(brand.email)}</p>
        <p><strong>Website:</strong> {html.escape(brand.website)}</p>
      </div>
      <p>If you have already renewed your certification, please disregard this message or contact us to update our records.</p>
      <p>Thank you for choosing {company} for your professional development needs.</p>
      <p>Best regards,<br><strong>The {company} Team</strong></p>"""
    footer = (
        f"{company} | Registered Training Provider<br>"
        "This is an automated reminder. Please do not reply to this email."
    )
    html_body = _html_document(
        urgency.subject, "Certification Renewal Notice", brand.company_name, body, footer
    )

    benefits_text = "\n".join(f"* {item}" for item in RENEWAL_BENEFITS)
    text_body = f"""{brand.company_name} - Certification Renewal Notice
{urgency.label}

Dear {context.customer_name},

This is an important reminder regarding your professional certification.

Certification Details:
{_text_rows(rows)}

Action Required: {urgency.action}

Maintaining current certifications is essential for:
{benefits_text}

Book Your Renewal Course:
Phone: {brand.phone}
Email: {brand.email}
Website: {brand.website}

If you have already renewed your certification, please disregard this message or contact us to update our records.

Thank you for choosing {brand.company_name} for your professional development needs.

Best regards,
The {brand.company_name} Team

---
{brand.company_name} | Registered Training Provider
This is an automated reminder. Please do not reply to this email.
"""
    return RenderedEmail(
        subject=urgency.subject,
        html=html_body,
        text=text_body,
        urgency_label=urgency.label,
    )


def render_certificate_delivery(
    *,
    customer_name: str,
    course_title: str,
    category: str,
    certification_date: datetime,
    expiry_date: datetime | None,
    certificate_number: str | None,
    subject: str,
    message: str,
    branding: Branding,
) -> RenderedEmail:
    """Render the email that delivers an issued certificate."""
    rows = _detail_rows(
        course_title,
        category,
        certification_date,
        expiry_date,
        certificate_number,
        certification_label="Certification Date",
        expiry_label="Valid Until",
    )
    company = html.escape(branding.company_name)
    message_html = html.escape(message).replace("\n", "<br>")

    body = f"""      <div class="badge" style="background-color: #10b981;">CERTIFICATE ISSUED</div>
      <h2>Dear {html.escape(customer_name)},</h2>
      <div style="margin: 20px 0;">{message_html}</div>
      <div class="cert-details">
        <h3>Certificate Details</h3>
{_html_rows(rows)}
      </div>
      <p>Please keep this certificate in a safe place for your records. You may need to present it for work purposes or regulatory compliance.</p>
      <p>If you have any questions about your certificate, please don't hesitate to contact us.</p>
      <p>Best regards,<br><strong>The {company} Team</strong></p>"""
    footer = (
        f"{company} | Registered Training Provider<br>"
        f"Contact: {html.escape(branding.email)} | Phone: {html.escape(branding.phone)}"
    )
    html_body = _html_document(subject, "Certificate Delivery", branding.company_name, body, footer)

    text_body = f"""{branding.company_name} - Certificate Delivery

Dear {customer_name},

{message}

Certificate Details:
{_text_rows(rows)}

Please keep this certificate in a safe place for your records. You may need to present it for work purposes or regulatory compliance.

If you have any questions about your certificate, please don't hesitate to contact us.

Best regards,
The {branding.company_name} Team
"""
    return RenderedEmail(subject=subject, html=html_body, text=text_body)
