"""
Outbound email via the Resend HTTP API.

Email is best-effort: a failed send is logged and reported as False, never
raised, so account flows do not depend on the mail provider being up.
"""
import logging

import httpx
from jinja2 import Environment, select_autoescape

from core.config import get_settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
DEFAULT_TIMEOUT = 10.0

_jinja_env = Environment(autoescape=select_autoescape(default=True, default_for_string=True))

_LAYOUT = """\
<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <style>
      body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
      .container { max-width: 600px; margin: 0 auto; padding: 20px; }
      .button { display: inline-block; padding: 12px 24px; background-color: #007bff;
                color: #ffffff; text-decoration: none; border-radius: 4px; margin: 20px 0; }
      .warning { background-color: #fff3cd; border-left: 4px solid #ffc107;
                 padding: 12px; margin: 20px 0; }
      .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #eee;
                font-size: 12px; color: #666; }
    </style>
  </head>
  <body>
    <div class="container">
      <h2>{{ heading }}</h2>
      <p>Hi {{ username }},</p>
      <p>{{ intro }}</p>
      <a href="{{ link }}" class="button">{{ button }}</a>
      <p>Or copy this link into your browser:</p>
      <p><a href="{{ link }}">{{ link }}</a></p>
      {% if warning %}<div class="warning">{{ warning }}</div>{% endif %}
      <p>This link is valid for {{ validity }}.</p>
      <div class="footer">
        <p>If you did not expect this email, you can safely ignore it.</p>
      </div>
    </div>
  </body>
</html>
"""


def render_verification_email(username: str, link: str, validity: str = "24 hours") -> str:
    """Render the HTML body asking a new user to confirm their address."""
    return _jinja_env.from_string(_LAYOUT).render(
        heading="Confirm your email address",
        username=username,
        intro="Thanks for signing up for Bookmark Manager. "
              "Click the button below to confirm your email address.",
        button="Confirm email",
        link=link,
        warning=None,
        validity=validity,
    )


def render_password_reset_email(username: str, link: str, validity: str = "1 hour") -> str:
    """Render the HTML body carrying a password reset link."""
    return _jinja_env.from_string(_LAYOUT).render(
        heading="Reset your password",
        username=username,
        intro="We received a request to reset your password. "
              "Click the button below to choose a new one.",
        button="Reset password",
        link=link,
        warning="If you did not request a password reset, your password has not been changed.",
        validity=validity,
    )


async def send_email(to: str, subject: str, html: str) -> bool:
    """
    Send an email through Resend.

    Args:
        to: Recipient address.
        subject: Subject line.
        html: HTML body.

    Returns:
        True if the provider accepted the message, False otherwise.
    """
    settings = get_settings()
    if not settings.resend_api_key:
        logger.error("RESEND_API_KEY is not set; email to %s not sent", to)
        return False

    try:
        async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as client:
            response = await client.post(
                RESEND_API_URL,
                headers={"Authorization": f"Bearer {settings.resend_api_key}"},
                json={"from": settings.email_from, "to": to, "subject": subject, "html": html},
            )
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error(
            "Email provider rejected message to %s: HTTP %s %s",
            to, e.response.status_code, e.response.text,
        )
        return False
    except httpx.HTTPError as e:
        logger.error("Email send to %s failed: %s", to, e, exc_info=True)
        return False

    return True
