import asyncio
import smtplib
from email.message import EmailMessage

from revision_planner.config import Config, logger

mail_logger = logger.getChild("mailer")


class PasswordResetMailer:
    """Delivers password reset links over SMTP, or logs them when SMTP is not configured."""

    def __init__(self, frontend_url: str = None):
        self.frontend_url = (frontend_url or Config.FRONTEND_URL).rstrip("/")

    def reset_link(self, token: str) -> str:
        return f"{self.frontend_url}/reset-password?token={token}"

    async def send_reset_email(self, email: str, token: str) -> None:
        link = self.reset_link(token)
        if not Config.SMTP_HOST:
            mail_logger.info(f"SMTP not configured; password reset link for {email}: {link}")
            return

        message = EmailMessage()
        message["Subject"] = "Reset your Revision Planner password"
        message["From"] = Config.MAIL_FROM
        message["To"] = email
        message.set_content(
            "Someone asked to reset the password of your Revision Planner account.\n\n"
            f"Open this link to choose a new password:\n{link}\n\n"
            "If this wasn't you, ignore this email."
        )
        await asyncio.to_thread(self._deliver, message)
        mail_logger.info(f"Password reset email sent to {email}")

    @staticmethod
    def _deliver(message: EmailMessage) -> None:
        with smtplib.SMTP(Config.SMTP_HOST, Config.SMTP_PORT) as smtp:
            smtp.starttls()
            if Config.SMTP_USER:
                smtp.login(Config.SMTP_USER, Config.SMTP_PASSWORD or "")
            smtp.send_message(message)


def get_mailer() -> PasswordResetMailer:
    return PasswordResetMailer()
