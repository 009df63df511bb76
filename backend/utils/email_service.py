# utils/email_service.py
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Optional
from urllib.parse import quote

import httpx

from config import settings

logger = logging.getLogger(__name__)

APP_NAME = "Fire Parts Supply"
MAX_RETRIES = 2


@dataclass
class EmailTemplate:
    subject: str
    html: str
    text: str


def _page(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{escape(title)} - {APP_NAME}</title></head>"
        "<body style=\"font-family: Arial, sans-serif; line-height: 1.6; color: #333;\">"
        f"<div style=\"max-width: 600px; margin: 0 auto;\">{body}"
        f"<p style=\"font-size: 12px; color: #888;\">Questions? Contact us at "
        f"<a href=\"mailto:{settings.SUPPORT_EMAIL}\">{settings.SUPPORT_EMAIL}</a></p>"
        "</div></body></html>"
    )


class EmailService:
    def __init__(self):
        self.api_url = settings.SENDGRID_API_URL
        self.from_email = settings.MAIL_FROM
        self.from_name = settings.MAIL_FROM_NAME
        self.support_email = settings.SUPPORT_EMAIL
        self.base_url = settings.BASE_URL.rstrip("/")

    def generate_registration_link(self, token: str, email: str) -> str:
        return f"{self.base_url}/register?invitation_token={token}&email={quote(email, safe='')}"

    @staticmethod
    def format_date(value: datetime) -> str:
        return value.strftime("%A, %B %d, %Y %H:%M UTC")

    # --- Templates ---

    def invitation_email(self, *, pm_name: str, company_name: str, tradie_email: str,
                         registration_link: str, expiry_date: str,
                         personal_message: Optional[str] = None) -> EmailTemplate:
        subject = f"You've been invited to join {company_name} on {APP_NAME}"
        message_html = ""
        message_text = ""
        if personal_message:
            message_html = f"<blockquote><h4>Personal Message from {escape(pm_name)}:</h4><p>\"{escape(personal_message)}\"</p></blockquote>"
            message_text = f"Personal Message: \"{personal_message}\"\n\n"

        html = _page("Company Invitation", (
            f"<h2>You're Invited to Join {escape(company_name)}!</h2>"
            f"<p><strong>{escape(pm_name)}</strong> from <strong>{escape(company_name)}</strong> "
            f"has invited you to join their team on {APP_NAME}.</p>"
            f"{message_html}"
            f"<p><a href=\"{escape(registration_link)}\">Accept Invitation &amp; Register</a></p>"
            f"<h4>Invitation Details:</h4>"
            f"<p><strong>Company:</strong> {escape(company_name)}<br>"
            f"<strong>Invited by:</strong> {escape(pm_name)}<br>"
            f"<strong>Your email:</strong> {escape(tradie_email)}</p>"
            f"<p style=\"color: #dc3545;\"><strong>This invitation expires on {escape(expiry_date)}</strong></p>"
        ))
        text = (
            f"{APP_NAME} - Company Invitation\n\n"
            f"You're Invited to Join {company_name}!\n\n"
            f"{pm_name} from {company_name} has invited you to join their team on {APP_NAME}.\n\n"
            f"{message_text}"
            f"Accept your invitation by visiting: {registration_link}\n\n"
            f"Invitation Details:\n- Company: {company_name}\n- Invited by: {pm_name}\n"
            f"- Your email: {tradie_email}\n- Expires: {expiry_date}\n\n"
            f"Questions? Contact us at {self.support_email}\n"
        )
        return EmailTemplate(subject, html, text)

    def acceptance_email(self, *, pm_name: str, company_name: str, tradie_email: str,
                         tradie_name: Optional[str] = None, response_date: Optional[str] = None) -> EmailTemplate:
        who = tradie_name or tradie_email
        joined = response_date or "Just now"
        subject = f"Great news! {who} has joined your company"
        html = _page("Invitation Accepted", (
            f"<h2>Wonderful news, {escape(pm_name)}!</h2>"
            f"<p><strong>{escape(who)}</strong> has accepted your invitation and joined "
            f"<strong>{escape(company_name)}</strong> on {APP_NAME}.</p>"
            f"<p><strong>Email:</strong> {escape(tradie_email)}<br>"
            f"<strong>Joined:</strong> {escape(joined)}<br>"
            f"<strong>Status:</strong> Active - Full access granted</p>"
        ))
        text = (
            f"{APP_NAME} - Invitation Accepted\n\n"
            f"Wonderful news, {pm_name}!\n\n"
            f"{who} has accepted your invitation and joined {company_name} on {APP_NAME}.\n\n"
            f"- Email: {tradie_email}\n- Joined: {joined}\n- Status: Active - Full access granted\n"
        )
        return EmailTemplate(subject, html, text)

    def rejection_email(self, *, pm_name: str, company_name: str, tradie_email: str,
                        response_date: Optional[str] = None) -> EmailTemplate:
        declined = response_date or "Just now"
        subject = f"Invitation to {tradie_email} was declined"
        html = _page("Invitation Declined", (
            f"<h2>Hi {escape(pm_name)},</h2>"
            f"<p>The invitation you sent to <strong>{escape(tradie_email)}</strong> to join "
            f"<strong>{escape(company_name)}</strong> was declined on {escape(declined)}.</p>"
            f"<p>You can send a new invitation at any time from your team management page.</p>"
        ))
        text = (
            f"{APP_NAME} - Invitation Declined\n\n"
            f"Hi {pm_name},\n\n"
            f"The invitation you sent to {tradie_email} to join {company_name} was declined on {declined}.\n\n"
            f"You can send a new invitation at any time from your team management page.\n"
        )
        return EmailTemplate(subject, html, text)

    def removal_email(self, *, tradie_name: str, company_name: str, pm_name: str,
                      reason: Optional[str] = None) -> EmailTemplate:
        subject = f"Your access to {company_name} has been updated"
        reason_html = f"<p><strong>Reason:</strong> {escape(reason)}</p>" if reason else ""
        reason_text = f"Reason: {reason}\n\n" if reason else ""
        html = _page("Access Updated", (
            f"<h2>Hi {escape(tradie_name)},</h2>"
            f"<p>Your access level for {escape(company_name)} on {APP_NAME} has been updated by {escape(pm_name)}.</p>"
            f"<p><strong>Your Current Access Level:</strong> Browse Access Only</p>"
            f"{reason_html}"
            f"<p>You can still browse the parts catalog and product specifications. "
            f"Ordering has been restricted for your account with this company.</p>"
            f"<p>Company contact: {escape(pm_name)} at {escape(company_name)}</p>"
        ))
        text = (
            f"Hi {tradie_name},\n\n"
            f"Your access level for {company_name} on {APP_NAME} has been updated by {pm_name}.\n\n"
            f"Your Current Access Level: Browse Access Only\n\n"
            f"{reason_text}"
            f"You can still browse the parts catalog and product specifications. "
            f"Ordering has been restricted for your account with this company.\n\n"
            f"Company contact: {pm_name} at {company_name}\n"
            f"{APP_NAME} Support: {self.support_email}\n"
        )
        return EmailTemplate(subject, html, text)

    # --- Transport ---

    async def send_email(self, to: str, template: EmailTemplate) -> bool:
        if not settings.SENDGRID_API_KEY:
            logger.error("SENDGRID_API_KEY not configured, skipping email to %s", to)
            return False

        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email, "name": self.from_name},
            "subject": template.subject,
            "content": [
                {"type": "text/plain", "value": template.text},
                {"type": "text/html", "value": template.html},
            ],
        }
        headers = {
            "Authorization": f"Bearer {settings.SENDGRID_API_KEY}",
            "Content-Type": "application/json",
        }

        attempt = 0
        async with httpx.AsyncClient(timeout=10.0) as client:
            while True:
                try:
                    response = await client.post(self.api_url, json=payload, headers=headers)
                    response.raise_for_status()
                    logger.info("Email sent successfully to %s: %s", to, template.subject)
                    return True
                except httpx.HTTPStatusError as e:
                    logger.error("Email send failed to %s: %s %s", to, e.response.status_code, e.response.text)
                    # Only provider-side failures are worth another attempt
                    if e.response.status_code >= 500 and attempt < MAX_RETRIES:
                        attempt += 1
                        logger.info("Retrying email send to %s (attempt %s)", to, attempt)
                        await asyncio.sleep(attempt)
                        continue
                    return False
                except httpx.RequestError as e:
                    logger.error("Email send failed to %s: %s", to, e)
                    return False

    async def send_invitation_email(self, *, tradie_email: str, pm_name: str, company_name: str,
                                    token: str, token_expiry: datetime,
                                    personal_message: Optional[str] = None) -> bool:
        template = self.invitation_email(
            pm_name=pm_name,
            company_name=company_name,
            tradie_email=tradie_email,
            registration_link=self.generate_registration_link(token, tradie_email),
            expiry_date=self.format_date(token_expiry),
            personal_message=personal_message,
        )
        return await self.send_email(tradie_email, template)

    async def send_pm_response_email(self, *, pm_email: str, pm_name: str, company_name: str,
                                     tradie_email: str, accepted: bool,
                                     tradie_name: Optional[str] = None) -> bool:
        response_date = self.format_date(datetime.utcnow())
        if accepted:
            template = self.acceptance_email(pm_name=pm_name, company_name=company_name, tradie_email=tradie_email,
                                             tradie_name=tradie_name, response_date=response_date)
        else:
            template = self.rejection_email(pm_name=pm_name, company_name=company_name, tradie_email=tradie_email,
                                            response_date=response_date)
        return await self.send_email(pm_email, template)

    async def send_removal_email(self, *, tradie_email: str, tradie_name: str, company_name: str,
                                 pm_name: str, reason: Optional[str] = None) -> bool:
        template = self.removal_email(tradie_name=tradie_name, company_name=company_name, pm_name=pm_name, reason=reason)
        return await self.send_email(tradie_email, template)


email_service = EmailService()
