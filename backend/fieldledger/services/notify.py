"""Outbound email for OTP and password-reset delivery.

Messages are rendered from jinja2 templates into a plain-text plus HTML
``multipart/alternative`` message and sent with aiosmtplib. With
``MAIL_SUPPRESS_SEND`` on they are kept in ``OUTBOX`` instead, which is what
the tests read; the outbox only holds the most recent ``OUTBOX_LIMIT`` messages.
"""
from __future__ import annotations
from collections import deque
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Deque, Optional
import asyncio
import logging

import aiosmtplib
from flask import current_app
from jinja2 import Template

from fieldledger.errors import Internal

logger = logging.getLogger(__name__)

OUTBOX_LIMIT = 100
OUTBOX: Deque[MIMEMultipart] = deque(maxlen=OUTBOX_LIMIT)

recoverable_exceptions = (aiosmtplib.SMTPException, asyncio.TimeoutError, OSError)

HTML_LAYOUT = Template("""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{{ subject }}</title></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    {% for paragraph in paragraphs %}<p>{{ paragraph }}</p>
    {% endfor %}{% if link %}<p style="text-align: center; margin: 30px 0;"><a href="{{ link }}">{{ link_label }}</a></p>{% endif %}
  </div>
</body>
</html>
""", autoescape=True)

OTP_TEXT = Template(
    "Hello {{ name }},\n\n"
    "Your password reset code is {{ otp }}. It expires in {{ minutes }} minutes.\n\n"
    "If you did not request this, you can ignore this email."
)

RESET_TEXT = Template(
    "Hello {{ name }},\n\n"
    "Reset your password using the link below. It is valid for one hour.\n\n{{ link }}\n\n"
    "If you did not request this, you can ignore this email."
)


def plain_body(message: MIMEMultipart) -> str:
    """Decoded text/plain part of a message built by ``send_email``."""
    for part in message.walk():
        if part.get_content_type() == 'text/plain':
            return part.get_payload(decode=True).decode(part.get_content_charset() or 'utf-8')
    return ''


def build_message(to: str, subject: str, body: str, link: Optional[str] = None,
                  link_label: Optional[str] = None) -> MIMEMultipart:
    message = MIMEMultipart('alternative')
    message['From'] = current_app.config.get('MAIL_DEFAULT_SENDER')
    message['To'] = to
    message['Subject'] = subject
    paragraphs = [p for p in body.split('\n\n') if p and p != link]
    html = HTML_LAYOUT.render(subject=subject, paragraphs=paragraphs, link=link, link_label=link_label or link)
    message.attach(MIMEText(body, 'plain', 'utf-8'))
    message.attach(MIMEText(html, 'html', 'utf-8'))
    return message


def _deliver(message: MIMEMultipart) -> None:
    cfg = current_app.config
    asyncio.run(aiosmtplib.send(
        message,
        hostname=cfg['MAIL_SERVER'],
        port=cfg['MAIL_PORT'],
        start_tls=bool(cfg.get('MAIL_USE_TLS')),
        username=cfg.get('MAIL_USERNAME'),
        password=cfg.get('MAIL_PASSWORD') if cfg.get('MAIL_USERNAME') else None,
        timeout=10,
    ))


def send_email(to: str, subject: str, body: str, link: Optional[str] = None,
               link_label: Optional[str] = None) -> MIMEMultipart:
    message = build_message(to, subject, body, link, link_label)
    if current_app.config.get('MAIL_SUPPRESS_SEND'):
        OUTBOX.append(message)
        logger.debug('Mail suppressed: %s -> %s', subject, to)
        return message
    try:
        _deliver(message)
    except recoverable_exceptions:
        logger.exception('Failed to send "%s" to %s', subject, to)
        raise Internal('Failed to send email')
    logger.info('Sent "%s" to %s', subject, to)
    return message


def send_otp_email(to: str, otp: str, name: str) -> MIMEMultipart:
    minutes = int(current_app.config['OTP_TTL'].total_seconds() // 60)
    body = OTP_TEXT.render(name=name, otp=otp, minutes=minutes)
    return send_email(to, 'Your password reset code', body)


def send_password_reset_email(to: str, token: str, name: str) -> MIMEMultipart:
    link = f"{current_app.config['ADMIN_RESET_URL']}?token={token}"
    body = RESET_TEXT.render(name=name, link=link)
    return send_email(to, 'Reset your password', body, link=link, link_label='Reset password')


__all__ = [
    'OUTBOX', 'OUTBOX_LIMIT', 'plain_body', 'build_message', 'send_email', 'send_otp_email',
    'send_password_reset_email',
]
