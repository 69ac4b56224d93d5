"""
Email Service

Sends the bilingual notification emails (plans ready, check-in reminder).
Uses SMTP; in local development without credentials the message is logged
instead of sent.
"""

import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def _wrap(body: str, is_ar: bool) -> str:
    return (
        f'<div dir="{"rtl" if is_ar else "ltr"}" '
        'style="font-family:sans-serif;max-width:600px;margin:0 auto;padding:24px">'
        f"{body}"
        '<p style="color:#6b7280;font-size:12px;margin-top:32px">FitFast</p>'
        "</div>"
    )


class EmailService:
    """Service for sending emails"""

    def __init__(self):
        self.smtp_server = settings.SMTP_SERVER
        self.smtp_port = settings.SMTP_PORT
        self.smtp_username = settings.SMTP_USERNAME
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.FROM_EMAIL
        self.from_name = settings.FROM_NAME
        self.enabled = settings.EMAIL_ENABLED

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email.

        Returns True if sent successfully, False otherwise.
        """
        if not self.enabled:
            logger.info(f"Email disabled, would send to {to_email}: {subject}")
            return False

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = to_email

            if text_content:
                msg.attach(MIMEText(text_content, 'plain', 'utf-8'))
            msg.attach(MIMEText(html_content, 'html', 'utf-8'))

            if self.smtp_username and self.smtp_password:
                server = smtplib.SMTP(self.smtp_server, self.smtp_port)
                server.starttls()
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)
                server.quit()
            else:
                # Local development - just log
                logger.info(f"Would send email to {to_email}: {subject}")
                logger.debug(f"Content: {html_content[:200]}...")

            return True

        except Exception as e:
            logger.error(f"Error sending email to {to_email}: {str(e)}")
            return False

    def send_plans_ready(self, to_email: str, full_name: Optional[str], language: str = "en") -> bool:
        is_ar = language == "ar"
        name = full_name or ("صديقنا" if is_ar else "there")
        if is_ar:
            subject = "خططك الجديدة جاهزة!"
            body = (
                f'<h1 style="color:#10B981">{name}، خططك جاهزة!</h1>'
                "<p>تم إنشاء خطة الوجبات وخطة التمارين الجديدة بنجاح بناءً على آخر تسجيل متابعة.</p>"
                "<p>افتح التطبيق لعرض خططك المحدثة.</p>"
            )
            text = "تم إنشاء خطة الوجبات وخطة التمارين الجديدة. افتح التطبيق لعرضها."
        else:
            subject = "Your new plans are ready!"
            body = (
                f'<h1 style="color:#10B981">{name}, your plans are ready!</h1>'
                "<p>Your new meal plan and workout plan have been generated based on your latest check-in.</p>"
                "<p>Open the app to view your updated plans.</p>"
            )
            text = "Your new meal and workout plans are ready. Open the app to view them."
        return self.send_email(to_email, subject, _wrap(body, is_ar), text)

    def send_check_in_reminder(self, to_email: str, full_name: Optional[str], language: str = "en") -> bool:
        is_ar = language == "ar"
        name = full_name or ("صديقنا" if is_ar else "there")
        if is_ar:
            subject = "حان وقت المتابعة!"
            body = (
                f'<h1 style="color:#10B981">{name}، حان وقت المتابعة</h1>'
                "<p>سجّل تقدمك اليوم حتى يتمكن مدربك من تحديث خططك.</p>"
            )
        else:
            subject = "Time for your check-in!"
            body = (
                f'<h1 style="color:#10B981">{name}, it\'s check-in time</h1>'
                "<p>Track your progress today so your coach can update your plans.</p>"
            )
        return self.send_email(to_email, subject, _wrap(body, is_ar))


# Global instance
email_service = EmailService()
