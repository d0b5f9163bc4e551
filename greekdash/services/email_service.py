"""
Service d'envoi d'emails pour GreekDash.
Gère les emails de réinitialisation de mot de passe, d'invitation,
d'approbation d'adhésion et les diffusions de chapitre.
"""

import asyncio
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.utils import make_msgid
from html import escape
from typing import Any, Dict, Optional

from greekdash.config import settings
from greekdash.core.logging import logger, log_message_sent


def _render_layout(title: str, body_html: str, accent_color: str = "#1E3A8A") -> str:
    """Gabarit HTML commun à tous les emails."""
    return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <style>
                body {{ font-family: 'Segoe UI', Arial, sans-serif; background-color: #f5f5f5; margin: 0; padding: 20px; }}
                .container {{ max-width: 560px; margin: 0 auto; background: white; border-radius: 12px; overflow: hidden; box-shadow: 0 4px 20px rgba(0,0,0,0.1); }}
                .header {{ background: {accent_color}; padding: 24px; text-align: center; }}
                .header h1 {{ color: white; margin: 0; font-size: 24px; }}
                .content {{ padding: 30px; }}
                .button {{ display: inline-block; background: {accent_color}; color: white; padding: 12px 24px; border-radius: 8px; text-decoration: none; font-weight: bold; }}
                .footer {{ background: #f8f9fa; padding: 20px; text-align: center; color: #666; font-size: 12px; }}
                p {{ color: #333; line-height: 1.6; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="header">
                    <h1>{title}</h1>
                </div>
                <div class="content">
                    {body_html}
                </div>
                <div class="footer">
                    <p>This email was sent automatically by {settings.APP_NAME}.</p>
                </div>
            </div>
        </body>
        </html>
        """


class EmailService:
    """Service pour l'envoi d'emails."""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.email_from = settings.EMAIL_FROM

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    def _create_connection(self) -> smtplib.SMTP:
        """Crée une connexion SMTP."""
        server = smtplib.SMTP(self.smtp_host, self.smtp_port)
        server.starttls()
        if self.smtp_user and self.smtp_password:
            server.login(self.smtp_user, self.smtp_password)
        return server

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Envoie un email.

        Args:
            to_email: Adresse email du destinataire
            subject: Sujet de l'email
            html_content: Contenu HTML de l'email
            text_content: Contenu texte (fallback)

        Returns:
            {"success": True, "message_id": ...} ou {"success": False, "error": ...}
        """
        message_id = make_msgid(domain="greekdash")

        if not self.is_configured:
            logger.warning("Configuration SMTP manquante - Email non envoyé")
            logger.info(f"Email simulé vers {to_email}: {subject}")
            log_message_sent("EMAIL", to_email, True, preview=subject)
            return {"success": True, "message_id": message_id, "simulated": True}

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = f"{settings.APP_NAME} <{self.email_from}>"
            msg["To"] = to_email
            msg["Message-ID"] = message_id

            if text_content:
                msg.attach(MIMEText(text_content, "plain", "utf-8"))

            msg.attach(MIMEText(html_content, "html", "utf-8"))

            with self._create_connection() as server:
                server.sendmail(self.email_from, to_email, msg.as_string())

            logger.info(f"Email envoyé à {to_email}: {subject}")
            log_message_sent("EMAIL", to_email, True, preview=subject)
            return {"success": True, "message_id": message_id}

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Erreur lors de l'envoi de l'email à {to_email}: {e}")
            log_message_sent("EMAIL", to_email, False, preview=str(e))
            return {"success": False, "error": str(e)}

    async def send_email_async(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Version asynchrone de send_email (exécutée dans un thread)."""
        return await asyncio.to_thread(
            self.send_email, to_email, subject, html_content, text_content
        )

    # ============== Templates ==============

    def render_password_reset(self, user_name: str, reset_url: str) -> Dict[str, str]:
        subject = f"{settings.APP_NAME} - Reset your password"
        body = f"""
            <p>Hi <strong>{escape(user_name)}</strong>,</p>
            <p>We received a request to reset your password. Click the button below to choose a new one.</p>
            <p style="text-align: center;"><a class="button" href="{reset_url}">Reset password</a></p>
            <p>This link expires in {settings.PASSWORD_RESET_EXPIRE_HOURS} hour(s).
            If you did not request a password reset, you can ignore this email.</p>
        """
        text = (
            f"Hi {user_name},\n\n"
            f"Reset your password here: {reset_url}\n\n"
            f"This link expires in {settings.PASSWORD_RESET_EXPIRE_HOURS} hour(s).\n"
            "If you did not request a password reset, you can ignore this email.\n"
        )
        return {
            "subject": subject,
            "html": _render_layout("Password reset", body),
            "text": text,
        }

    def render_chapter_invite(
        self,
        chapter_name: str,
        inviter_name: str,
        role: str,
        invite_url: str,
        accent_color: Optional[str] = None,
    ) -> Dict[str, str]:
        subject = f"You're invited to join {chapter_name} on {settings.APP_NAME}"
        body = f"""
            <p><strong>{escape(inviter_name)}</strong> invited you to join
            <strong>{escape(chapter_name)}</strong> as {role.lower()}.</p>
            <p style="text-align: center;"><a class="button" href="{invite_url}">Accept invitation</a></p>
            <p>This invitation expires in {settings.INVITE_EXPIRE_DAYS} days.</p>
        """
        text = (
            f"{inviter_name} invited you to join {chapter_name} as {role.lower()}.\n\n"
            f"Accept the invitation: {invite_url}\n\n"
            f"This invitation expires in {settings.INVITE_EXPIRE_DAYS} days.\n"
        )
        return {
            "subject": subject,
            "html": _render_layout(escape(chapter_name), body, accent_color or "#1E3A8A"),
            "text": text,
        }

    def render_member_approval(
        self,
        user_name: str,
        chapter_name: str,
        dashboard_url: str,
        accent_color: Optional[str] = None,
    ) -> Dict[str, str]:
        subject = f"Welcome to {chapter_name}!"
        body = f"""
            <p>Hi <strong>{escape(user_name)}</strong>,</p>
            <p>Your request to join <strong>{escape(chapter_name)}</strong> has been approved.</p>
            <p style="text-align: center;"><a class="button" href="{dashboard_url}">Go to dashboard</a></p>
        """
        text = (
            f"Hi {user_name},\n\n"
            f"Your request to join {chapter_name} has been approved.\n"
            f"Dashboard: {dashboard_url}\n"
        )
        return {
            "subject": subject,
            "html": _render_layout("Membership approved", body, accent_color or "#1E3A8A"),
            "text": text,
        }

    def render_chapter_broadcast(
        self,
        chapter_name: str,
        subject: str,
        message: str,
        accent_color: Optional[str] = None,
    ) -> Dict[str, str]:
        paragraphs = "".join(
            f"<p>{escape(line)}</p>" for line in message.splitlines() if line.strip()
        )
        body = f"""
            <h2>{escape(subject)}</h2>
            {paragraphs}
            <p style="color: #666; font-size: 13px;">Sent to members of {escape(chapter_name)}.</p>
        """
        return {
            "subject": f"[{chapter_name}] {subject}",
            "html": _render_layout(escape(chapter_name), body, accent_color or "#1E3A8A"),
            "text": f"{subject}\n\n{message}\n\n-- {chapter_name}\n",
        }

    # ============== Envois ==============

    def send_password_reset_email(
        self,
        to_email: str,
        user_name: str,
        reset_url: str,
    ) -> Dict[str, Any]:
        """
        Envoie un email de réinitialisation de mot de passe.

        Args:
            to_email: Email du destinataire
            user_name: Nom de l'utilisateur
            reset_url: Lien de réinitialisation contenant le token
        """
        rendered = self.render_password_reset(user_name, reset_url)
        return self.send_email(to_email, rendered["subject"], rendered["html"], rendered["text"])

    def send_chapter_invite_email(
        self,
        to_email: str,
        chapter_name: str,
        inviter_name: str,
        role: str,
        invite_url: str,
        accent_color: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Envoie une invitation à rejoindre un chapitre."""
        rendered = self.render_chapter_invite(
            chapter_name, inviter_name, role, invite_url, accent_color
        )
        return self.send_email(to_email, rendered["subject"], rendered["html"], rendered["text"])

    def send_member_approval_email(
        self,
        to_email: str,
        user_name: str,
        chapter_name: str,
        dashboard_url: str,
        accent_color: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Prévient un membre que sa demande d'adhésion est acceptée."""
        rendered = self.render_member_approval(
            user_name, chapter_name, dashboard_url, accent_color
        )
        return self.send_email(to_email, rendered["subject"], rendered["html"], rendered["text"])


# Instance globale du service
email_service = EmailService()


__all__ = ["EmailService", "email_service"]
