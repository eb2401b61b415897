# backend/eduportal/services/email_service.py
from typing import List, Optional
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from datetime import datetime
import aiosmtplib
from jinja2 import Template

from eduportal.core.config import settings
from eduportal.core.logging import logger


WELCOME_TEMPLATE = """
<!DOCTYPE html>
<html>
<head>
    <style>
        body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
        .container { max-width: 600px; margin: 0 auto; padding: 20px; }
        .header { background: #1f6f5c; color: white; padding: 30px; text-align: center; border-radius: 8px 8px 0 0; }
        .content { background: #f9f9f9; padding: 30px; border-radius: 0 0 8px 8px; }
        .credentials { background: #fff; border: 1px solid #ddd; padding: 15px; border-radius: 4px; font-family: monospace; }
        .button { display: inline-block; padding: 12px 24px; background: #1f6f5c;
                  color: white; text-decoration: none; border-radius: 4px; margin: 20px 0; }
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>Welcome to EduPortal, {{ school_name }}!</h1>
        </div>
        <div class="content">
            <p>Your school has been set up and your {{ trial_days }}-day trial has started.</p>

            <div class="credentials">
                School ID: {{ school_id }}<br>
                Subdomain: {{ subdomain }}<br>
                API key: {{ api_key }}
            </div>

            {% if login_url %}
            <a href="{{ login_url }}" class="button">Open your school portal</a>
            {% else %}
            <p>Your school database is still being prepared. We will email you when it is ready.</p>
            {% endif %}

            {% if admin_email %}
            <p>The administrator account for {{ admin_email }} has been created; a temporary password will be shared separately.</p>
            {% endif %}

            <p>Your trial ends on {{ trial_expires_at }}.</p>
            <p>Questions? Reach us at <a href="mailto:{{ support_email }}">{{ support_email }}</a>.</p>
        </div>
    </div>
</body>
</html>
"""


class EmailService:
    """Service for sending emails"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.FROM_EMAIL

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host)

    async def send_email(
        self,
        to: List[str],
        subject: str,
        html_content: str,
        text_content: str = None
    ) -> bool:
        """Send an email; returns False when SMTP is not configured or sending failed"""
        if not self.smtp_host:
            logger.warning("SMTP not configured, skipping email")
            return False

        try:
            message = MIMEMultipart('alternative')
            message['Subject'] = subject
            message['From'] = self.from_email
            message['To'] = ', '.join(to)

            if text_content:
                message.attach(MIMEText(text_content, 'plain'))

            message.attach(MIMEText(html_content, 'html'))

            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=True,
            )

            logger.info(f"Email sent to {to}: {subject}")
            return True

        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email: {str(e)}")
            return False

    async def send_welcome_email(
        self,
        email: str,
        school_name: str,
        school_id: str,
        subdomain: str,
        api_key: str,
        trial_days: int,
        trial_expires_at: Optional[datetime] = None,
        login_url: Optional[str] = None,
        admin_email: Optional[str] = None,
    ) -> bool:
        """Send the onboarding welcome email to a school's contact address"""
        subject = f"Welcome to EduPortal, {school_name}!"

        html_content = Template(WELCOME_TEMPLATE).render(
            school_name=school_name,
            school_id=school_id,
            subdomain=subdomain,
            api_key=api_key,
            trial_days=trial_days,
            trial_expires_at=trial_expires_at.strftime("%Y-%m-%d") if trial_expires_at else "-",
            login_url=login_url,
            admin_email=admin_email,
            support_email=settings.SUPPORT_EMAIL,
        )

        return await self.send_email([email], subject, html_content)
