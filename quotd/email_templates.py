"""
MJML Email Templates
Appointment emails rendered with MJML for responsive, cross-client compatibility
"""

from html import escape
from typing import Optional

# App theme colors - Blue/Slate color scheme
THEME = {
    "primary": "#2563eb",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    company_name: str,
) -> str:
    """Base MJML template wrapper for all emails"""
    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="40px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        <!-- Footer -->
        <mj-section padding="32px 20px">
          <mj-column>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="0 0 16px 0" />
            <mj-text align="center" font-size="12px" color="#94a3b8" padding="0">
              This is an automated notification from {company_name}
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def appointment_reminder_template(
    team_name: str,
    appointment_date: str,
    appointment_time: str,
    job_title: str,
    company_phone: Optional[str] = None,
) -> str:
    """Appointment reminder sent to the customer a day ahead"""
    team_name = escape(team_name)
    job_title = escape(job_title)

    phone_section = ""
    if company_phone:
        phone_section = f"""
    <mj-text>
      Need to reschedule? Call us at <strong>{escape(company_phone)}</strong>.
    </mj-text>
    """

    content = f"""
    <mj-text>
      This is a reminder that <strong>{team_name}</strong> is scheduled to visit tomorrow.
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}" padding="20px 0">
      🔧 {job_title}<br/>
      📅 {appointment_date} at {appointment_time}
    </mj-text>
    {phone_section}
    """

    return get_base_template(
        title="Appointment Reminder",
        preview_text=f"Reminder: {job_title} on {appointment_date}",
        content_sections=content,
        company_name=team_name,
    )
