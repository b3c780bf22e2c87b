"""Compliance notice templates."""

from dataclasses import dataclass
from datetime import date
from html import escape

PRE_ADVERSE_SUBJECT = "Important: Pre-Adverse Action Notice from {company}"
WAITING_PERIOD_BUSINESS_DAYS = 5


@dataclass(frozen=True)
class RenderedNotice:
    """A notice ready to hand to a mail transport."""

    subject: str
    html: str
    text: str


def render_pre_adverse_notice(
    *,
    first_name: str | None,
    report_url: str,
    company: str,
    agency_name: str,
    contact_email: str,
    sent_on: date,
) -> RenderedNotice:
    """Render the FCRA pre-adverse action notice in HTML and plain text."""
    name = first_name or "Applicant"
    subject = PRE_ADVERSE_SUBJECT.format(company=company)

    html = f"""<!DOCTYPE html>
<html>
  <head><meta charset="utf-8"><title>Pre-Adverse Action Notice</title></head>
  <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <h1>Pre-Adverse Action Notice</h1>
    <p><strong>From:</strong> {escape(company)}<br><strong>Date:</strong> {sent_on.isoformat()}</p>
    <p>Dear {escape(name)},</p>
    <p style="background-color: #fff3cd; padding: 15px; border-radius: 5px;">
      <strong>IMPORTANT NOTICE:</strong> This is not a final denial of your application.
    </p>
    <p>We have obtained a consumer report as part of your application to rent or list
    outdoor gear on {escape(company)}. Information in this report may result in an adverse
    action regarding your application.</p>
    <ul>
      <li>We have not made a final decision on your application</li>
      <li>You have the right to review the information that may affect our decision</li>
      <li>You have the right to dispute any inaccurate information</li>
      <li>We will wait at least {WAITING_PERIOD_BUSINESS_DAYS} business days before making a
      final decision</li>
    </ul>
    <p><a href="{escape(report_url, quote=True)}">View your background check report</a></p>
    <p>{escape(agency_name)} prepared this report. It did not make the decision to take
    adverse action and cannot explain the reasons for it.</p>
    <p>Under the Fair Credit Reporting Act you may obtain a free copy of your report from
    {escape(agency_name)} and dispute incomplete or inaccurate information with them.</p>
    <p>Questions: <a href="mailto:{escape(contact_email, quote=True)}">{escape(contact_email)}</a></p>
  </body>
</html>
"""

    text = f"""PRE-ADVERSE ACTION NOTICE
From: {company}
Date: {sent_on.isoformat()}

Dear {name},

IMPORTANT NOTICE: This is not a final denial of your application.

We have obtained a consumer report as part of your application to rent or list
outdoor gear on {company}. Information in this report may result in an adverse
action regarding your application.

- We have not made a final decision on your application
- You have the right to review the information that may affect our decision
- You have the right to dispute any inaccurate information
- We will wait at least {WAITING_PERIOD_BUSINESS_DAYS} business days before making a final decision

View your background check report: {report_url}

{agency_name} prepared this report. It did not make the decision to take adverse
action and cannot explain the reasons for it. Under the Fair Credit Reporting Act
you may obtain a free copy of your report from {agency_name} and dispute
incomplete or inaccurate information with them.

Questions: {contact_email}
"""
    return RenderedNotice(subject=subject, html=html, text=text)
